"""Per-variant impression/click/conversion counters.

Counters only ever go up. Each call reads the counters blob, bumps one
field and writes it back; two writers racing on the same store can lose
increments (last write wins), which is accepted for analytics.
"""

import logging

from pydantic import ValidationError

from helmet_analytics.collector.schemas import VariantCounters, VariantResult
from helmet_analytics.config import DEFAULT_SETTINGS, Settings
from helmet_analytics.storage.store import KeyValueStore, load_json, save_json

logger = logging.getLogger(__name__)

_FIELDS = ("impressions", "clicks", "conversions", "revenue_total")


class CounterAggregator:
    def __init__(self, store: KeyValueStore, settings: Settings = DEFAULT_SETTINGS):
        self.store = store
        self.key = settings.counters_key

    def _load(self) -> dict:
        data = load_json(self.store, self.key, {})
        return data if isinstance(data, dict) else {}

    def _rows(self, data: dict, experiment_id: str) -> dict:
        """Variant rows for one experiment; entries of the wrong shape read as empty."""
        rows = data.get(experiment_id)
        if not isinstance(rows, dict):
            return {}
        return {vid: row for vid, row in rows.items() if isinstance(row, dict)}

    def _parse(self, experiment_id: str, variant_id: str, row: dict) -> VariantCounters | None:
        try:
            return VariantCounters(
                experiment_id=experiment_id,
                variant_id=variant_id,
                **{f: row[f] for f in _FIELDS if f in row},
            )
        except ValidationError as exc:
            logger.warning("Ignoring unreadable counters for %s/%s: %s", experiment_id, variant_id, exc)
            return None

    def _increment(self, experiment_id: str, variant_id: str, **deltas) -> None:
        data = self._load()
        rows = self._rows(data, experiment_id)
        current = self._parse(experiment_id, variant_id, rows.get(variant_id, {}))
        row = {f: getattr(current, f) if current else 0 for f in _FIELDS}
        for name, delta in deltas.items():
            row[name] += delta
        rows[variant_id] = row
        data[experiment_id] = rows
        save_json(self.store, self.key, data)

    def record_impression(self, experiment_id: str, variant_id: str) -> None:
        self._increment(experiment_id, variant_id, impressions=1)

    def record_click(self, experiment_id: str, variant_id: str) -> None:
        self._increment(experiment_id, variant_id, clicks=1)

    def record_conversion(self, experiment_id: str, variant_id: str, revenue: float = 0.0) -> None:
        if revenue < 0:
            logger.warning(
                "Dropping conversion for %s/%s with negative revenue %s",
                experiment_id, variant_id, revenue,
            )
            return
        self._increment(experiment_id, variant_id, conversions=1, revenue_total=revenue)

    def get_counters(self, experiment_id: str, variant_id: str) -> VariantCounters:
        row = self._rows(self._load(), experiment_id).get(variant_id, {})
        counters = self._parse(experiment_id, variant_id, row)
        return counters or VariantCounters(experiment_id=experiment_id, variant_id=variant_id)

    def get_results(self, experiment_id: str) -> dict[str, VariantResult]:
        """Raw counters with click/conversion rates recomputed on every call."""
        results = {}
        for variant_id, row in self._rows(self._load(), experiment_id).items():
            counters = self._parse(experiment_id, variant_id, row)
            if counters is not None:
                results[variant_id] = VariantResult.from_counters(counters)
        return results

    def best_variant(self, experiment_id: str) -> VariantResult | None:
        """Variant with the highest click rate; the first one wins ties."""
        best = None
        for result in self.get_results(experiment_id).values():
            if best is None or result.click_rate > best.click_rate:
                best = result
        return best

    def clear(self) -> None:
        self.store.remove(self.key)
