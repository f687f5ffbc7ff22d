"""Export the current conversion report and experiment results to JSON.

Usage:
    python -m helmet_analytics.analysis.export
    python -m helmet_analytics.analysis.export --db data/analytics.duckdb --out dashboard/data.json
"""

import argparse
import json
import logging
from pathlib import Path
from typing import Any

from helmet_analytics.analysis.report import ConversionReport
from helmet_analytics.config import Settings
from helmet_analytics.context import AnalyticsContext
from helmet_analytics.warehouse.db import DuckDBStore

logger = logging.getLogger(__name__)


def build_export(ctx: AnalyticsContext, report: ConversionReport) -> dict[str, Any]:
    """Report payload plus per-variant results for every active experiment."""
    data = report.model_dump(mode="json")
    data["experiments"] = [
        {
            "experiment_id": exp.experiment_id,
            "name": exp.name,
            "variants": [r.model_dump(mode="json") for r in ctx.get_results(exp.experiment_id).values()],
        }
        for exp in ctx.registry.active()
    ]
    return data


def export_report(data: dict[str, Any], path: str | Path) -> Path:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(json.dumps(data, indent=2))
    logger.info("Wrote report to %s", out)
    return out


def main(args: list[str] | None = None) -> int:
    settings = Settings.from_env()
    parser = argparse.ArgumentParser(description="Export the conversion report as JSON")
    parser.add_argument("--db", type=str, default=settings.db_path, help="Database path")
    parser.add_argument("--out", type=str, default="dashboard/data.json", help="Output JSON path")
    opts = parser.parse_args(args)

    logging.basicConfig(level=settings.log_level)

    store = DuckDBStore.open(opts.db)
    try:
        ctx = AnalyticsContext(store, settings=settings).init()
        report = ctx.generate_report()
        if report is None:
            print("No funnel events recorded yet, nothing to export.")
            return 1
        out = export_report(build_export(ctx, report), opts.out)
    finally:
        store.close()

    metrics = report.performance_metrics
    print(f"Exported {len(report.funnel_analysis)} sessions to {out}")
    print(f"  Conversion rate: {metrics.conversion_rate:.1%}")
    print(f"  Most effective path: {metrics.most_effective_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
