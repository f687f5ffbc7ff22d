"""Key/value store capability used by every stateful component.

The engine only ever needs ``get``, ``set`` and ``remove`` on string
values. Anything that offers those three methods can back it: the
in-memory store below (tests), the DuckDB warehouse (CLI, demo data),
or a browser-storage bridge.
"""

import json
import logging
from typing import Any, Protocol

from helmet_analytics.errors import StoreUnavailable

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryStore:
    """Dict-backed store. ``fail=True`` simulates a disabled or full store."""

    def __init__(self, data: dict[str, str] | None = None, fail: bool = False):
        self.data: dict[str, str] = dict(data or {})
        self.fail = fail

    def get(self, key: str) -> str | None:
        if self.fail:
            raise StoreUnavailable(f"store disabled, cannot read {key!r}")
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        if self.fail:
            raise StoreUnavailable(f"store disabled, cannot write {key!r}")
        self.data[key] = value

    def remove(self, key: str) -> None:
        if self.fail:
            raise StoreUnavailable(f"store disabled, cannot remove {key!r}")
        self.data.pop(key, None)


class ResilientStore:
    """Wraps a store so that an outage never reaches the caller.

    Backends may raise ``StoreUnavailable`` or whatever their medium raises
    (``OSError`` for a full quota, driver errors). After the first failure
    of any kind the wrapper trips: reads return ``None`` and writes are
    dropped for the rest of its lifetime, so the session sees a
    consistently empty store instead of half-written state.
    """

    def __init__(self, backend: KeyValueStore):
        self.backend = backend
        self.available = True

    def _trip(self, exc: Exception) -> None:
        logger.warning("Analytics store unavailable, disabling persistence: %s", exc)
        self.available = False

    def get(self, key: str) -> str | None:
        if not self.available:
            return None
        try:
            return self.backend.get(key)
        except Exception as exc:
            self._trip(exc)
            return None

    def set(self, key: str, value: str) -> None:
        if not self.available:
            return
        try:
            self.backend.set(key, value)
        except Exception as exc:
            self._trip(exc)

    def remove(self, key: str) -> None:
        if not self.available:
            return
        try:
            self.backend.remove(key)
        except Exception as exc:
            self._trip(exc)


def load_json(store: KeyValueStore, key: str, default: Any) -> Any:
    """Read and decode a JSON value, returning ``default`` if missing or corrupt."""
    raw = store.get(key)
    if raw is None:
        return default
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        logger.warning("Ignoring corrupt value under %r: %s", key, exc)
        return default


def save_json(store: KeyValueStore, key: str, value: Any) -> None:
    store.set(key, json.dumps(value, separators=(",", ":")))
