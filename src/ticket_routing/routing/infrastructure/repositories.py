"""
Routing Infrastructure Repositories
===================================

SQLAlchemy implementations of the vector store adapter and the department
hierarchy reader.

Each call opens its own short-lived session from the session maker, since
the embedding workers run outside any request scope.
"""

from datetime import datetime
from typing import List, Optional, Sequence, Type, Union

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ticket_routing.config import EntityKind
from ticket_routing.core import RepositoryException
from ticket_routing.routing.application import IDepartmentHierarchy, IVectorStoreAdapter
from ticket_routing.routing.domain import (
    CorpusEntry,
    IndexStats,
    compose_document_text,
    compose_ticket_text,
    validate_kind,
)
from ticket_routing.routing.infrastructure.models import (
    DepartmentHierarchyModel,
    DocumentModel,
    TicketModel,
)
from ticket_routing.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

EntityModel = Union[DocumentModel, TicketModel]


def _model_for(kind: str) -> Type[EntityModel]:
    validate_kind(kind)
    return DocumentModel if kind == EntityKind.DOCUMENT else TicketModel


def _to_entry(kind: str, row: EntityModel) -> CorpusEntry:
    is_ticket = kind == EntityKind.TICKET
    return CorpusEntry(
        kind=kind,
        entity_id=row.id,
        title=row.title,
        vector=tuple(row.embedding) if row.embedding is not None else None,
        vector_updated_at=row.embedding_updated_at,
        department_id=row.department_id if is_ticket else None,
        assigned_to=row.assigned_to if is_ticket else None,
    )


class SQLAlchemyVectorStoreAdapter(IVectorStoreAdapter):
    """Vector store adapter over the platform's documents and tickets tables."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def get_text(self, kind: str, entity_id: str) -> Optional[str]:
        model = _model_for(kind)
        try:
            async with self._session_maker() as session:
                row = await session.get(model, entity_id)
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to load {kind} {entity_id}: {e}")

        if row is None:
            return None
        if kind == EntityKind.DOCUMENT:
            return compose_document_text(row.title, row.content)
        return compose_ticket_text(row.title, row.description)

    async def get_vector(self, kind: str, entity_id: str) -> Optional[List[float]]:
        model = _model_for(kind)
        try:
            async with self._session_maker() as session:
                result = await session.execute(select(model.embedding).where(model.id == entity_id))
                vector = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to load vector of {kind} {entity_id}: {e}")
        return list(vector) if vector is not None else None

    async def set_vector(
        self,
        kind: str,
        entity_id: str,
        vector: Sequence[float],
        updated_at: datetime
    ) -> None:
        """Write vector and timestamp in a single UPDATE."""
        model = _model_for(kind)
        stmt = (
            update(model)
            .where(model.id == entity_id)
            .values(embedding=[float(x) for x in vector], embedding_updated_at=updated_at)
        )
        try:
            async with self._session_maker() as session:
                result = await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to store vector of {kind} {entity_id}: {e}")

        if result.rowcount == 0:
            logger.info(
                "Entity deleted before its vector was stored",
                extra={"kind": kind, "entity_id": entity_id}
            )

    async def get_entity(self, kind: str, entity_id: str) -> Optional[CorpusEntry]:
        model = _model_for(kind)
        try:
            async with self._session_maker() as session:
                row = await session.get(model, entity_id)
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to load {kind} {entity_id}: {e}")
        return _to_entry(kind, row) if row is not None else None

    async def list_embeddable(self, kind: str) -> List[CorpusEntry]:
        model = _model_for(kind)
        stmt = select(model).where(model.embedding.is_not(None)).order_by(model.id)
        try:
            async with self._session_maker() as session:
                rows = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to list embedded {kind}s: {e}")
        return [_to_entry(kind, row) for row in rows]

    async def list_ids(self, kind: str) -> List[str]:
        model = _model_for(kind)
        try:
            async with self._session_maker() as session:
                result = await session.execute(select(model.id).order_by(model.id))
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to list {kind} ids: {e}")

    async def count_indexed(self, kind: str) -> IndexStats:
        model = _model_for(kind)
        # count(column) skips NULLs, so the second count is the embedded rows
        stmt = select(func.count(model.id), func.count(model.embedding))
        try:
            async with self._session_maker() as session:
                total, indexed = (await session.execute(stmt)).one()
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to count {kind}s: {e}")
        return IndexStats(kind=kind, total=total, indexed=indexed)


class SQLAlchemyDepartmentHierarchy(IDepartmentHierarchy):
    """Department hierarchy reader over the ``department_hierarchy`` table."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def child_of(self, parent_department_id: str) -> Optional[str]:
        """First child edge recorded for the parent, if any."""
        stmt = (
            select(DepartmentHierarchyModel.child_department_id)
            .where(DepartmentHierarchyModel.parent_department_id == parent_department_id)
            .order_by(DepartmentHierarchyModel.created_at, DepartmentHierarchyModel.id)
            .limit(1)
        )
        try:
            async with self._session_maker() as session:
                return (await session.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to read department hierarchy: {e}")
