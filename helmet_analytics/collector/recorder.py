"""Append-only funnel event log.

Events are validated against ``FunnelEvent`` and appended to a JSON list
in the store. Anything that fails validation is dropped with a warning;
the caller only learns about it through the boolean return value.
"""

import logging
from typing import Any, Callable, Mapping

from pydantic import ValidationError

from helmet_analytics.collector.emitter import Emitter, NullEmitter, notify
from helmet_analytics.collector.schemas import FunnelEvent
from helmet_analytics.config import DEFAULT_SETTINGS, Settings
from helmet_analytics.errors import MalformedEvent
from helmet_analytics.storage.store import KeyValueStore, load_json, save_json

logger = logging.getLogger(__name__)


def parse_event(raw: FunnelEvent | Mapping[str, Any], clock: Callable[[], int]) -> FunnelEvent:
    """Validate a raw event, stamping it with ``clock()`` if it has no timestamp."""
    if isinstance(raw, FunnelEvent):
        return raw
    if not isinstance(raw, Mapping):
        raise MalformedEvent(f"expected a mapping, got {type(raw).__name__}")
    for required in ("session_id", "stage"):
        if not raw.get(required):
            raise MalformedEvent(f"missing required field: {required}")
    data = dict(raw)
    if data.get("timestamp") is None:
        data["timestamp"] = clock()
    try:
        return FunnelEvent.model_validate(data)
    except ValidationError as exc:
        raise MalformedEvent(str(exc)) from exc


class EventRecorder:
    def __init__(
        self,
        store: KeyValueStore,
        clock: Callable[[], int],
        emitter: Emitter | None = None,
        settings: Settings = DEFAULT_SETTINGS,
    ):
        self.store = store
        self.clock = clock
        self.emitter = emitter or NullEmitter()
        self.key = settings.funnel_log_key

    def _load_raw(self) -> list:
        data = load_json(self.store, self.key, [])
        return data if isinstance(data, list) else []

    def record(self, event: FunnelEvent | Mapping[str, Any]) -> bool:
        try:
            parsed = parse_event(event, self.clock)
        except MalformedEvent as exc:
            logger.warning("Dropping malformed funnel event: %s", exc)
            return False

        log = self._load_raw()
        log.append(parsed.model_dump(mode="json"))
        save_json(self.store, self.key, log)

        notify(self.emitter, parsed.stage.value, {
            "session_id": parsed.session_id,
            "helmet_id": parsed.helmet_id,
            "affiliate_network": parsed.network,
            "value": parsed.value,
            "timestamp": parsed.timestamp,
        })
        return True

    def events(self) -> list[FunnelEvent]:
        """Every logged event in append order."""
        parsed = []
        for i, item in enumerate(self._load_raw()):
            try:
                parsed.append(FunnelEvent.model_validate(item))
            except ValidationError as exc:
                logger.warning("Skipping unreadable funnel log entry %d: %s", i, exc)
        return parsed

    def prune_before(self, cutoff_ms: int) -> int:
        """Drop events older than ``cutoff_ms``. Returns how many were removed."""
        events = self.events()
        kept = [e for e in events if e.timestamp >= cutoff_ms]
        removed = len(events) - len(kept)
        if removed:
            save_json(self.store, self.key, [e.model_dump(mode="json") for e in kept])
            logger.info("Pruned %d funnel events older than %d", removed, cutoff_ms)
        return removed

    def clear(self) -> None:
        self.store.remove(self.key)
