"""
Routing Module
==============

Bounded Context for similarity-driven ticket routing.

Responsibilities:
- Keep document and ticket vectors in line with their text (embedding queue)
- Find documents and tickets similar to a ticket
- Suggest department, sub-department and assignee for new tickets
"""
