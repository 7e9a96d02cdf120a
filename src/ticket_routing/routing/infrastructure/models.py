"""
Routing Infrastructure Models
=============================

SQLAlchemy ORM models for the slice of the intranet schema the routing core
reads and writes: documents, tickets and department hierarchy edges.

The platform owns these tables; only ``embedding`` and
``embedding_updated_at`` are written from here.
"""

from datetime import datetime, timezone
from typing import List, Optional
from uuid import uuid4

from sqlalchemy import JSON, String, DateTime, Text, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from ticket_routing.infrastructure.database import Base


def _new_id() -> str:
    return str(uuid4())


class DepartmentModel(Base):
    """Department referenced by tickets and hierarchy edges."""
    __tablename__ = "departments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)


class DocumentModel(Base):
    """
    Knowledge-base page.

    Embedded text is ``title`` + ``content``.
    """
    __tablename__ = "documents"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Vector and its timestamp are always written together
    embedding: Mapped[Optional[List[float]]] = mapped_column(JSON(none_as_null=True), nullable=True)
    embedding_updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )


class TicketModel(Base):
    """
    Helpdesk ticket.

    Embedded text is ``title`` + ``description``.
    """
    __tablename__ = "tickets"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Routing evidence
    department_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("departments.id", ondelete="SET NULL"), nullable=True, index=True
    )
    assigned_to: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    embedding: Mapped[Optional[List[float]]] = mapped_column(JSON(none_as_null=True), nullable=True)
    embedding_updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )


class DepartmentHierarchyModel(Base):
    """Parent/child edge between two departments."""
    __tablename__ = "department_hierarchy"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    parent_department_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("departments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    child_department_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("departments.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )
