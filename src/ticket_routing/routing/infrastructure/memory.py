"""
In-Memory Routing Stores
========================

Process-local implementations of the vector store adapter and department
hierarchy, used by tests and by local runs without a database.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ticket_routing.config import EntityKind
from ticket_routing.routing.application import IDepartmentHierarchy, IVectorStoreAdapter
from ticket_routing.routing.domain import (
    CorpusEntry,
    IndexStats,
    compose_document_text,
    compose_ticket_text,
    validate_kind,
)


@dataclass
class _Record:
    title: str
    body: Optional[str]
    department_id: Optional[str] = None
    assigned_to: Optional[str] = None
    # (vector, updated_at) is replaced as one tuple so readers never see half a write
    embedding: Optional[Tuple[Tuple[float, ...], datetime]] = None


class InMemoryVectorStoreAdapter(IVectorStoreAdapter):
    """Dictionary-backed vector store adapter."""

    def __init__(self):
        self._records: Dict[str, Dict[str, _Record]] = {
            EntityKind.DOCUMENT: {},
            EntityKind.TICKET: {},
        }
        self.writes: List[Tuple[str, str]] = []

    # ========== Seeding ==========

    def add_document(self, document_id: str, title: str, content: str = "") -> None:
        self._records[EntityKind.DOCUMENT][document_id] = _Record(title=title, body=content)

    def add_ticket(
        self,
        ticket_id: str,
        title: str,
        description: Optional[str] = None,
        department_id: Optional[str] = None,
        assigned_to: Optional[str] = None
    ) -> None:
        self._records[EntityKind.TICKET][ticket_id] = _Record(
            title=title,
            body=description,
            department_id=department_id,
            assigned_to=assigned_to,
        )

    def update_text(self, kind: str, entity_id: str, title: Optional[str] = None, body: Optional[str] = None) -> None:
        record = self._records[kind][entity_id]
        if title is not None:
            record.title = title
        if body is not None:
            record.body = body

    def delete(self, kind: str, entity_id: str) -> None:
        self._records[kind].pop(entity_id, None)

    # ========== Adapter ==========

    def _table(self, kind: str) -> Dict[str, _Record]:
        validate_kind(kind)
        return self._records[kind]

    async def get_text(self, kind: str, entity_id: str) -> Optional[str]:
        record = self._table(kind).get(entity_id)
        if record is None:
            return None
        if kind == EntityKind.DOCUMENT:
            return compose_document_text(record.title, record.body)
        return compose_ticket_text(record.title, record.body)

    async def get_vector(self, kind: str, entity_id: str) -> Optional[List[float]]:
        record = self._table(kind).get(entity_id)
        if record is None or record.embedding is None:
            return None
        return list(record.embedding[0])

    async def set_vector(
        self,
        kind: str,
        entity_id: str,
        vector: Sequence[float],
        updated_at: datetime
    ) -> None:
        record = self._table(kind).get(entity_id)
        if record is None:
            return
        record.embedding = (tuple(float(x) for x in vector), updated_at)
        self.writes.append((kind, entity_id))

    async def get_entity(self, kind: str, entity_id: str) -> Optional[CorpusEntry]:
        record = self._table(kind).get(entity_id)
        return self._entry(kind, entity_id, record) if record is not None else None

    async def list_embeddable(self, kind: str) -> List[CorpusEntry]:
        return [
            self._entry(kind, entity_id, record)
            for entity_id, record in self._table(kind).items()
            if record.embedding is not None
        ]

    async def list_ids(self, kind: str) -> List[str]:
        return list(self._table(kind))

    async def count_indexed(self, kind: str) -> IndexStats:
        table = self._table(kind)
        indexed = sum(1 for record in table.values() if record.embedding is not None)
        return IndexStats(kind=kind, total=len(table), indexed=indexed)

    @staticmethod
    def _entry(kind: str, entity_id: str, record: _Record) -> CorpusEntry:
        vector, updated_at = record.embedding if record.embedding is not None else (None, None)
        return CorpusEntry(
            kind=kind,
            entity_id=entity_id,
            title=record.title,
            vector=vector,
            vector_updated_at=updated_at,
            department_id=record.department_id,
            assigned_to=record.assigned_to,
        )


class InMemoryDepartmentHierarchy(IDepartmentHierarchy):
    """Department hierarchy from a list of (parent, child) edges, first edge wins."""

    def __init__(self, edges: Iterable[Tuple[str, str]] = ()):
        self._children: Dict[str, str] = {}
        for parent, child in edges:
            self._children.setdefault(parent, child)

    async def child_of(self, parent_department_id: str) -> Optional[str]:
        return self._children.get(parent_department_id)
