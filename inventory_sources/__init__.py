"""
Module: inventory_sources
Responsibility:
    Boundary adapters for the collaborators snapshot generation reads from:
    the inventory (current component list) and the optional event log.

Architecture position:
    Sources -- I/O at the edge.  May import inventory_kernel and the pure
    inventory_engines helpers.  MUST NOT import inventory_services.
"""
