"""
Persisted key-value store used by the index and relation caches.

Values are arbitrary JSON-serializable documents addressed by an exact
string key. There are no transactions beyond a single write: keys are
content-addressed, so last-write-wins is sufficient.
"""

from __future__ import annotations

import copy
from typing import Any, Protocol, runtime_checkable

from loguru import logger
from sqlalchemy import Engine, delete, select
from sqlalchemy.orm import Session, sessionmaker

from cardgraph.db.database import create_db_engine, make_session_factory, session_scope
from cardgraph.db.models import KeyValueEntry


@runtime_checkable
class KeyValueStore(Protocol):
    """Minimal get/set contract shared by the caches."""

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> bool: ...

    def keys(self, prefix: str = "") -> list[str]: ...


class InMemoryStore:
    """
    Dict-backed store for tests and throwaway runs.

    Values are deep-copied on the way in and out so callers cannot mutate
    stored documents behind the store's back, matching the SQL store.
    """

    def __init__(self, initial: dict[str, Any] | None = None):
        self._data: dict[str, Any] = copy.deepcopy(initial) if initial else {}

    def get(self, key: str) -> Any | None:
        value = self._data.get(key)
        return copy.deepcopy(value) if value is not None else None

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def keys(self, prefix: str = "") -> list[str]:
        return [k for k in self._data if k.startswith(prefix)]

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


class SqlKeyValueStore:
    """
    SQLAlchemy-backed store (SQLite by default, any SQLAlchemy URL works).

    Example:
        >>> store = SqlKeyValueStore.from_url("sqlite:///cardgraph.db")
        >>> store.set("greeting", {"text": "hello"})
        >>> store.get("greeting")
        {'text': 'hello'}
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self._session_factory: sessionmaker[Session] = make_session_factory(engine)

    @classmethod
    def from_url(cls, database_url: str | None = None) -> SqlKeyValueStore:
        """Create a store, creating the backing table if needed."""
        return cls(create_db_engine(database_url))

    def get(self, key: str) -> Any | None:
        with session_scope(self._session_factory) as session:
            entry = session.get(KeyValueEntry, key)
            return entry.value if entry is not None else None

    def set(self, key: str, value: Any) -> None:
        with session_scope(self._session_factory) as session:
            session.merge(KeyValueEntry(key=key, value=value))
        logger.debug(f"Stored key {key}")

    def delete(self, key: str) -> bool:
        with session_scope(self._session_factory) as session:
            result = session.execute(delete(KeyValueEntry).where(KeyValueEntry.key == key))
            return result.rowcount > 0

    def keys(self, prefix: str = "") -> list[str]:
        with session_scope(self._session_factory) as session:
            query = select(KeyValueEntry.key)
            if prefix:
                query = query.where(KeyValueEntry.key.startswith(prefix, autoescape=True))
            return list(session.scalars(query))

    def close(self) -> None:
        """Dispose of pooled connections."""
        self.engine.dispose()
