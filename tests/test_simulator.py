"""Tests for the demo traffic simulator and report export."""

import json
import logging
import random

from ci.validate_analytics import validate
from helmet_analytics.analysis.export import build_export, export_report
from helmet_analytics.analysis.export import main as export_main
from helmet_analytics.collector.emitter import LoggingEmitter
from helmet_analytics.collector.schemas import FunnelStage
from helmet_analytics.context import AnalyticsContext
from helmet_analytics.simulator.config import SimulationConfig
from helmet_analytics.simulator.engine import simulate
from helmet_analytics.simulator.generate import main as generate_main
from helmet_analytics.storage.store import MemoryStore
from helmet_analytics.warehouse.db import DuckDBStore

# Small config for fast tests
SMALL_CONFIG = SimulationConfig(num_sessions=150, seed=42)
COLOR_TEST = "amazon_button_color_test_1"


def _run(config=SMALL_CONFIG):
    ctx = AnalyticsContext(MemoryStore(), rng=random.Random(config.seed), clock=lambda: 0).init()
    summary = simulate(ctx, config)
    return ctx, summary


class TestSimulate:
    def test_records_events(self):
        ctx, summary = _run()
        assert summary.sessions == 150
        assert summary.events == len(ctx.recorder.events())

    def test_deterministic_with_same_seed(self):
        ctx_a, _ = _run()
        ctx_b, _ = _run()
        assert ctx_a.recorder.events() == ctx_b.recorder.events()
        assert ctx_a.get_results(COLOR_TEST) == ctx_b.get_results(COLOR_TEST)

    def test_different_seed_produces_different_events(self):
        ctx_a, _ = _run()
        ctx_b, _ = _run(SimulationConfig(num_sessions=150, seed=99))
        assert ctx_a.recorder.events() != ctx_b.recorder.events()

    def test_one_funnel_per_session(self):
        ctx, _ = _run()
        funnels = ctx.reconstruct_funnels()
        assert len(funnels) == 150
        for f in funnels:
            assert f.conversion_path[0] == FunnelStage.HOMEPAGE_VISIT

    def test_funnel_has_natural_dropoff(self):
        _, summary = _run()
        counts = summary.stage_counts
        assert counts["homepage_visit"] == 150
        assert counts["affiliate_click"] < 150
        assert counts["external_visit"] <= counts["affiliate_click"]

    def test_clicks_match_attribution(self):
        ctx, summary = _run()
        report = ctx.generate_report()
        assert report.attribution_summary.total_clicks == summary.clicks
        networks = {n.network for n in report.attribution_summary.networks}
        assert networks <= set(SMALL_CONFIG.networks)

    def test_experiment_counters(self):
        ctx, summary = _run()
        results = ctx.get_results(COLOR_TEST)
        assert set(results) <= {"control", "variant_blue", "variant_green"}
        assert sum(r.clicks for r in results.values()) == summary.clicks
        for r in results.values():
            assert r.clicks <= r.impressions


class TestExport:
    def test_export_passes_ci_validation(self, tmp_path):
        ctx, _ = _run()
        report = ctx.generate_report()
        out = export_report(build_export(ctx, report), tmp_path / "dash" / "data.json")
        data = json.loads(out.read_text())
        assert validate(data) == []
        assert data["experiments"][0]["experiment_id"] == COLOR_TEST

    def test_generate_cli_then_export_cli(self, tmp_path):
        db = str(tmp_path / "analytics.duckdb")
        out = tmp_path / "data.json"
        generate_main(["--sessions", "40", "--db", db, "--reset"])
        assert export_main(["--db", db, "--out", str(out)]) == 0
        assert validate(json.loads(out.read_text())) == []

        store = DuckDBStore.open(db)
        assert store.get("funnel_log") is not None
        store.close()

    def test_export_cli_with_empty_db(self, tmp_path):
        db = str(tmp_path / "empty.duckdb")
        assert export_main(["--db", db, "--out", str(tmp_path / "data.json")]) == 1

    def test_generate_cli_logs_events(self, tmp_path, caplog):
        caplog.set_level(logging.INFO, logger="helmet_analytics.events")
        db = str(tmp_path / "analytics.duckdb")
        generate_main(["--sessions", "5", "--db", db, "--reset", "--log-events"])
        events = [r for r in caplog.records if r.name == "helmet_analytics.events"]
        assert events
        assert any("action=homepage_visit" in r.getMessage() for r in events)

    def test_generate_cli_quiet_by_default(self, tmp_path, caplog):
        caplog.set_level(logging.INFO, logger="helmet_analytics.events")
        generate_main(["--sessions", "5", "--db", str(tmp_path / "a.duckdb"), "--reset"])
        assert not [r for r in caplog.records if r.name == "helmet_analytics.events"]


class TestLoggingEmitter:
    def test_emit_logs_action_and_params(self, caplog):
        caplog.set_level(logging.INFO, logger="helmet_analytics.events")
        LoggingEmitter().emit("affiliate_click", {"network": "amazon"})
        assert "action=affiliate_click" in caplog.text
        assert "'network': 'amazon'" in caplog.text
