"""
Routing Interfaces Layer
========================

Interface adapters (controllers) for the routing module.

Contains:
- Controllers: FastAPI route handlers
"""

from ticket_routing.routing.interfaces.controllers import routing_router

__all__ = ["routing_router"]
