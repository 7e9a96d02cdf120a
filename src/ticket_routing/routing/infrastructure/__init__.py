"""
Routing Infrastructure Layer
============================

Infrastructure implementations for routing:
- Models: SQLAlchemy ORM models
- Repositories: SQLAlchemy vector store adapter and department hierarchy
- Memory: in-process stores for tests and local runs
- External: routing weights file watcher
"""

from ticket_routing.routing.infrastructure.models import (
    DepartmentModel,
    DocumentModel,
    TicketModel,
    DepartmentHierarchyModel,
)
from ticket_routing.routing.infrastructure.repositories import (
    SQLAlchemyVectorStoreAdapter,
    SQLAlchemyDepartmentHierarchy,
)
from ticket_routing.routing.infrastructure.memory import (
    InMemoryVectorStoreAdapter,
    InMemoryDepartmentHierarchy,
)
from ticket_routing.routing.infrastructure.external import RoutingConfigManager

__all__ = [
    "DepartmentModel",
    "DocumentModel",
    "TicketModel",
    "DepartmentHierarchyModel",
    "SQLAlchemyVectorStoreAdapter",
    "SQLAlchemyDepartmentHierarchy",
    "InMemoryVectorStoreAdapter",
    "InMemoryDepartmentHierarchy",
    "RoutingConfigManager",
]
