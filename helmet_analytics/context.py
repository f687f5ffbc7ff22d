"""The analytics context: one object wiring every component together.

Build it once when a process or browser session starts and hand it to
whatever needs to record or report. It owns no module-level state, so
tests can build as many independent contexts as they like.

    ctx = AnalyticsContext(MemoryStore()).init()
    variant = ctx.assign("amazon_button_color_test_1", ctx.visitor_id)
    ctx.record_funnel_event({"stage": "homepage_visit"})
    report = ctx.generate_report()

Lifecycle: ``init()`` loads (or creates) the persistent visitor id and
opens a new session id. ``reset()`` wipes all persisted analytics and
then behaves like ``init()``.
"""

import logging
import random
import string
from typing import Any, Callable, Mapping

from helmet_analytics.ab.assignment import AssignmentEngine, now_ms
from helmet_analytics.ab.counters import CounterAggregator
from helmet_analytics.ab.experiment import DEFAULT_REGISTRY, ExperimentRegistry
from helmet_analytics.analysis.funnel import SessionFunnel, reconstruct_funnels
from helmet_analytics.analysis.report import ConversionReport, ReportGenerator
from helmet_analytics.collector.emitter import Emitter, NullEmitter
from helmet_analytics.collector.recorder import EventRecorder
from helmet_analytics.collector.schemas import FunnelEvent, VariantResult
from helmet_analytics.config import DEFAULT_SETTINGS, Settings
from helmet_analytics.storage.store import KeyValueStore, ResilientStore

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.digits + string.ascii_lowercase


class AnalyticsContext:
    def __init__(
        self,
        store: KeyValueStore,
        registry: ExperimentRegistry = DEFAULT_REGISTRY,
        emitter: Emitter | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], int] = now_ms,
        settings: Settings = DEFAULT_SETTINGS,
    ):
        self.store = store if isinstance(store, ResilientStore) else ResilientStore(store)
        self.registry = registry
        self.emitter = emitter or NullEmitter()
        self.rng = rng if rng is not None else random.SystemRandom()
        self.clock = clock
        self.settings = settings

        self.counters = CounterAggregator(self.store, settings)
        self.assignments = AssignmentEngine(
            self.store, registry, self.counters,
            rng=self.rng, clock=clock, emitter=self.emitter, settings=settings,
        )
        self.recorder = EventRecorder(self.store, clock, self.emitter, settings)
        self.reports = ReportGenerator(
            self.recorder, clock, lambda: self.session_id, settings
        )

        self.visitor_id: str | None = None
        self.session_id: str | None = None

    def _random_suffix(self) -> str:
        return "".join(self.rng.choice(_ID_ALPHABET) for _ in range(9))

    def init(self) -> "AnalyticsContext":
        key = self.settings.visitor_id_key
        visitor_id = self.store.get(key)
        if not visitor_id:
            visitor_id = f"user_{self.clock()}_{self._random_suffix()}"
            self.store.set(key, visitor_id)
        self.visitor_id = visitor_id
        self.session_id = self.new_session()
        logger.debug("Analytics context ready: visitor=%s session=%s", visitor_id, self.session_id)
        return self

    def new_session(self) -> str:
        self.session_id = f"session_{self.clock()}_{self._random_suffix()}"
        return self.session_id

    def reset(self) -> "AnalyticsContext":
        self.clear_all()
        return self.init()

    def clear_all(self) -> None:
        """Wipe assignments, counters, the funnel log and the visitor id."""
        self.assignments.clear()
        self.counters.clear()
        self.recorder.clear()
        self.store.remove(self.settings.visitor_id_key)
        self.visitor_id = None
        self.session_id = None

    # Assignment API

    def assign(self, experiment_id: str, visitor_id: str | None = None) -> str | None:
        return self.assignments.assign(experiment_id, visitor_id or self.visitor_id)

    def get_assigned_variant(self, experiment_id: str, visitor_id: str | None = None) -> str | None:
        return self.assignments.get_assigned_variant(experiment_id, visitor_id or self.visitor_id)

    def get_variant_config(
        self, experiment_id: str, visitor_id: str | None = None
    ) -> Mapping[str, Any] | None:
        return self.assignments.get_variant_config(experiment_id, visitor_id or self.visitor_id)

    # Tracking API

    def record_impression(self, experiment_id: str, variant_id: str) -> None:
        self.counters.record_impression(experiment_id, variant_id)

    def record_click(self, experiment_id: str, variant_id: str) -> None:
        self.counters.record_click(experiment_id, variant_id)

    def record_conversion(self, experiment_id: str, variant_id: str, revenue: float = 0.0) -> None:
        self.counters.record_conversion(experiment_id, variant_id, revenue)

    def get_results(self, experiment_id: str) -> dict[str, VariantResult]:
        return self.counters.get_results(experiment_id)

    # Funnel API

    def record_funnel_event(self, event: FunnelEvent | Mapping[str, Any]) -> bool:
        """Append a funnel event; mappings without a session id join the current session."""
        if isinstance(event, Mapping) and not event.get("session_id") and self.session_id:
            event = {**event, "session_id": self.session_id}
        return self.recorder.record(event)

    def reconstruct_funnels(self, session_id: str | None = None) -> list[SessionFunnel]:
        return reconstruct_funnels(
            self.recorder.events(),
            session_id,
            self.settings.affiliate_click_default_value,
        )

    # Reporting API

    def generate_report(self) -> ConversionReport | None:
        return self.reports.generate()
