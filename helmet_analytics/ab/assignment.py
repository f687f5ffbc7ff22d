"""Sticky A/B experiment assignment.

A visitor's first call for an experiment draws a variant at random,
weighted by the configured allocations, and persists the result. Every
later call returns the stored variant, so weight edits never re-bucket
existing visitors and the impression for the pair is counted once.

Enrollment under a traffic split is hash-based instead: given the same
(experiment_id, visitor_id) pair the gate always gives the same answer,
without storing anything for visitors left out of the test.
"""

import hashlib
import logging
import random
import time
from typing import Any, Callable, Mapping

from helmet_analytics.ab.counters import CounterAggregator
from helmet_analytics.ab.experiment import Experiment, ExperimentRegistry
from helmet_analytics.collector.emitter import Emitter, NullEmitter, notify
from helmet_analytics.collector.schemas import Assignment
from helmet_analytics.config import DEFAULT_SETTINGS, Settings
from helmet_analytics.storage.store import KeyValueStore, load_json, save_json

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


def traffic_bucket(experiment_id: str, visitor_id: str) -> float:
    """Stable value in [0.0, 1.0) for the (experiment, visitor) pair.

    Uses the first 8 bytes of SHA-256 of ``"{experiment_id}:{visitor_id}"``.
    """
    hash_input = f"{experiment_id}:{visitor_id}"
    hash_bytes = hashlib.sha256(hash_input.encode()).digest()
    return int.from_bytes(hash_bytes[:8], "big") / (2**64)


def pick_weighted(experiment: Experiment, rng: random.Random) -> str:
    """Draw a variant id with P(variant) = weight / total_weight."""
    r = rng.random() * experiment.total_weight

    cumulative = 0.0
    for variant in experiment.variants:
        cumulative += variant.weight
        if cumulative > r:
            return variant.variant_id

    # Fallback to last variant (handles floating point edge cases)
    return experiment.variants[-1].variant_id


class AssignmentEngine:
    def __init__(
        self,
        store: KeyValueStore,
        registry: ExperimentRegistry,
        counters: CounterAggregator,
        rng: random.Random | None = None,
        clock: Callable[[], int] = now_ms,
        emitter: Emitter | None = None,
        settings: Settings = DEFAULT_SETTINGS,
    ):
        self.store = store
        self.registry = registry
        self.counters = counters
        self.rng = rng if rng is not None else random.SystemRandom()
        self.clock = clock
        self.emitter = emitter or NullEmitter()
        self.key = settings.assignments_key

    def _load(self) -> dict:
        data = load_json(self.store, self.key, {})
        return data if isinstance(data, dict) else {}

    def _visitors(self, data: dict, experiment_id: str) -> dict:
        """Visitor entries for one experiment; a malformed entry reads as empty."""
        visitors = data.get(experiment_id)
        return visitors if isinstance(visitors, dict) else {}

    def _stored_entry(self, data: dict, experiment_id: str, visitor_id: str) -> dict | None:
        entry = self._visitors(data, experiment_id).get(visitor_id)
        if not isinstance(entry, dict) or not isinstance(entry.get("variant_id"), str):
            return None
        return entry

    def get_assignment(self, experiment_id: str, visitor_id: str) -> Assignment | None:
        if not visitor_id:
            return None
        entry = self._stored_entry(self._load(), experiment_id, visitor_id)
        if entry is None:
            return None
        assigned_at = entry.get("assigned_at")
        return Assignment(
            experiment_id=experiment_id,
            visitor_id=visitor_id,
            variant_id=entry["variant_id"],
            assigned_at=assigned_at if isinstance(assigned_at, int) else 0,
        )

    def get_assigned_variant(self, experiment_id: str, visitor_id: str) -> str | None:
        """Stored variant for the pair, without ever creating an assignment."""
        assignment = self.get_assignment(experiment_id, visitor_id)
        return assignment.variant_id if assignment else None

    def assign(self, experiment_id: str, visitor_id: str) -> str | None:
        """Return the visitor's variant, bucketing them on first sight.

        Returns None for unknown or non-active experiments and for visitors
        outside the experiment's traffic split, and when there is no visitor
        id yet; nothing is persisted then.
        """
        if not visitor_id:
            logger.debug("assign: no visitor id for %s", experiment_id)
            return None
        experiment = self.registry.get(experiment_id)
        if experiment is None:
            logger.debug("assign: unknown experiment %s", experiment_id)
            return None
        if not experiment.is_active:
            logger.debug("assign: experiment %s is %s", experiment_id, experiment.status.value)
            return None

        data = self._load()
        entry = self._stored_entry(data, experiment_id, visitor_id)
        if entry is not None:
            return entry["variant_id"]

        if traffic_bucket(experiment_id, visitor_id) >= experiment.traffic_split / 100:
            return None

        variant_id = pick_weighted(experiment, self.rng)
        assignment = Assignment(
            experiment_id=experiment_id,
            visitor_id=visitor_id,
            variant_id=variant_id,
            assigned_at=self.clock(),
        )
        visitors = self._visitors(data, experiment_id)
        visitors[visitor_id] = {
            "variant_id": assignment.variant_id,
            "assigned_at": assignment.assigned_at,
        }
        data[experiment_id] = visitors
        save_json(self.store, self.key, data)
        self.counters.record_impression(experiment_id, variant_id)

        notify(self.emitter, "experiment_assignment", {
            "experiment_id": experiment_id,
            "variant_id": variant_id,
        })
        logger.debug("Assigned %s to %s/%s", visitor_id, experiment_id, variant_id)
        return variant_id

    def get_variant_config(self, experiment_id: str, visitor_id: str) -> Mapping[str, Any] | None:
        variant_id = self.assign(experiment_id, visitor_id)
        if variant_id is None:
            return None
        variant = self.registry.get(experiment_id).get_variant(variant_id)
        return variant.config if variant else None

    def clear(self) -> None:
        self.store.remove(self.key)
