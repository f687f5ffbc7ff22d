"""CLI entrypoint: simulate demo traffic into the warehouse and export a report.

Usage:
    python -m helmet_analytics.simulator.generate
    python -m helmet_analytics.simulator.generate --sessions 1000 --days 14
    python -m helmet_analytics.simulator.generate --reset --out dashboard/data.json
    python -m helmet_analytics.simulator.generate --log-events
"""

import argparse
import logging
import random

from helmet_analytics.analysis.export import build_export, export_report
from helmet_analytics.collector.emitter import LoggingEmitter, NullEmitter
from helmet_analytics.config import Settings
from helmet_analytics.context import AnalyticsContext
from helmet_analytics.simulator.config import SimulationConfig
from helmet_analytics.simulator.engine import simulate
from helmet_analytics.warehouse.db import DuckDBStore


def main(args: list[str] | None = None) -> None:
    settings = Settings.from_env()
    parser = argparse.ArgumentParser(description="Generate simulated helmet-shopping sessions")
    parser.add_argument("--sessions", type=int, default=200, help="Number of sessions")
    parser.add_argument("--days", type=int, default=7, help="Simulation window in days")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    parser.add_argument("--db", type=str, default=settings.db_path, help="Database path")
    parser.add_argument("--out", type=str, default=None, help="Also export the report to this JSON path")
    parser.add_argument("--reset", action="store_true", help="Clear stored analytics first")
    parser.add_argument("--log-events", action="store_true", help="Log every emitted analytics event")
    opts = parser.parse_args(args)

    logging.basicConfig(level=settings.log_level)

    config = SimulationConfig(num_sessions=opts.sessions, days=opts.days, seed=opts.seed)

    print(f"Loading warehouse at {opts.db}...")
    store = DuckDBStore.open(opts.db)
    emitter = LoggingEmitter() if opts.log_events else NullEmitter()
    ctx = AnalyticsContext(store, emitter=emitter, rng=random.Random(opts.seed), settings=settings)
    if opts.reset:
        ctx.reset()
        print("Cleared existing analytics data")
    else:
        ctx.init()

    for exp in ctx.registry.active():
        print(f"Experiment: {exp.name} ({exp.experiment_id}), {exp.traffic_split:.0f}% traffic")
        for v in exp.variants:
            print(f"  {v.variant_id}: {v.weight / exp.total_weight:.0%} of enrolled")

    print(f"Simulating {config.num_sessions} sessions over {config.days} days (seed={config.seed})...")
    summary = simulate(ctx, config)
    print(f"Recorded {summary.events} events, {summary.clicks} affiliate clicks, "
          f"{summary.conversions} conversions")

    print("Stage breakdown:")
    for stage, count in sorted(summary.stage_counts.items()):
        print(f"  {stage}: {count}")

    for exp in ctx.registry.active():
        print(f"\nResults for {exp.name}:")
        for variant_id, r in ctx.get_results(exp.experiment_id).items():
            print(f"  {variant_id}: {r.impressions} impressions, {r.clicks} clicks "
                  f"({r.click_rate:.2%} CTR), ${r.revenue_total:.2f} revenue")

    if opts.out:
        report = ctx.generate_report()
        if report is not None:
            out = export_report(build_export(ctx, report), opts.out)
            print(f"\nReport written to {out}")

    store.close()
    print("Done.")


if __name__ == "__main__":
    main()
