"""
Ticket Routing
==============

Similarity-driven ticket routing for the intranet helpdesk: keeps document
and ticket embeddings fresh, searches them by cosine similarity, and turns
the nearest neighbours into a department/assignee suggestion.
"""

__version__ = "1.0.0"
