"""Third-party analytics sinks.

The engine tells an emitter about assignments and funnel events, in the
same shape as a GA4 ``gtag('event', action, params)`` call. Emitters are
fire-and-forget: ``notify`` logs and swallows whatever the sink raises,
so a broken sink never costs us our own analytics.
"""

import logging
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class Emitter(Protocol):
    def emit(self, action: str, params: dict[str, Any]) -> None: ...


class NullEmitter:
    def emit(self, action: str, params: dict[str, Any]) -> None:
        pass


class LoggingEmitter:
    """Writes each event to a logger; handy in development."""

    def __init__(self, name: str = "helmet_analytics.events"):
        self.log = logging.getLogger(name)

    def emit(self, action: str, params: dict[str, Any]) -> None:
        self.log.info("event action=%s params=%s", action, params)


class RecordingEmitter:
    """Keeps emitted events in memory."""

    def __init__(self):
        self.events: list[tuple[str, dict[str, Any]]] = []

    def emit(self, action: str, params: dict[str, Any]) -> None:
        self.events.append((action, dict(params)))


def notify(emitter: Emitter, action: str, params: dict[str, Any]) -> None:
    try:
        emitter.emit(action, params)
    except Exception:
        logger.warning("Analytics emitter failed for action %s", action, exc_info=True)
