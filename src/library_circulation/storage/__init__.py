"""
Storage collaborators for the lifecycle engine.

- base: the LifecycleStore and IdentityDirectory interfaces
- memory: a lock-guarded in-memory store
- identity: a set-backed identity directory and a permissive one

The SQLAlchemy-backed store lives in ``library_circulation.database``.
"""

from .base import IdentityDirectory, LifecycleStore, Record
from .identity import PermissiveIdentityDirectory, StaticIdentityDirectory
from .memory import InMemoryLifecycleStore

__all__ = [
    "IdentityDirectory",
    "InMemoryLifecycleStore",
    "LifecycleStore",
    "PermissiveIdentityDirectory",
    "Record",
    "StaticIdentityDirectory",
]
