"""Persistence layer: a JSON key-value store over SQLAlchemy."""

from cardgraph.db.database import create_db_engine, init_db, session_scope
from cardgraph.db.kv_store import InMemoryStore, KeyValueStore, SqlKeyValueStore
from cardgraph.db.models import Base, KeyValueEntry

__all__ = [
    "Base",
    "KeyValueEntry",
    "KeyValueStore",
    "InMemoryStore",
    "SqlKeyValueStore",
    "create_db_engine",
    "init_db",
    "session_scope",
]
