"""
MCP tools for the circulation desk.

Each tool is a dict with name, description, inputSchema and handler, the
shape the server uses to register them.
"""

from .circulation import (
    cancel_reservation,
    create_borrowing,
    create_reservation,
    fulfill_reservation,
    get_engine,
    list_borrowings,
    list_reservations,
    return_borrowing,
    set_engine,
)

circulation_tools = [
    create_borrowing,
    return_borrowing,
    create_reservation,
    fulfill_reservation,
    cancel_reservation,
    list_borrowings,
    list_reservations,
]

__all__ = [
    "circulation_tools",
    "get_engine",
    "set_engine",
]
