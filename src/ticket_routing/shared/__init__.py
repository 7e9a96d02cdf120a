"""
Shared Kernel Module
====================

Generic infrastructure used by the routing bounded context: structured
logging, metrics export and HTTP middleware.

DO NOT add routing or scoring logic to the shared kernel.
"""
