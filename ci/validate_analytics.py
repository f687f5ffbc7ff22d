"""CI validation: verify an exported conversion report is complete and sane.

This script is the final gate in CI. It reads the exported dashboard JSON
and asserts structural and logical invariants. If anything is wrong, it
exits non-zero and fails the build.

Usage:
    python ci/validate_analytics.py
    python ci/validate_analytics.py --data dashboard/data.json
"""

import argparse
import json
import sys
from pathlib import Path

REQUIRED_TOP_KEYS = {
    "session_summary",
    "attribution_summary",
    "funnel_analysis",
    "performance_metrics",
    "experiments",
}
FUNNEL_STAGES = [
    "homepage_visit",
    "helmet_search",
    "helmet_view",
    "affiliate_click",
    "external_visit",
]
METRIC_FIELDS = {"conversion_rate", "avg_time_to_click", "most_effective_path"}
VARIANT_FIELDS = {
    "variant_id",
    "impressions",
    "clicks",
    "click_rate",
    "conversions",
    "conversion_rate",
    "revenue_total",
}


def validate(data: dict) -> list[str]:
    """Return a list of validation errors (empty = pass)."""
    errors = []

    # --- Top-level structure ---
    for key in sorted(REQUIRED_TOP_KEYS):
        if key not in data:
            errors.append(f"Missing top-level key: {key}")

    if errors:
        return errors  # Can't continue without structure

    # --- Funnels ---
    funnels = data["funnel_analysis"]
    if not funnels:
        errors.append("funnel_analysis is empty, no sessions were exported")

    converted = 0
    # A click logged before the homepage visit makes a negative time-to-click legitimate
    click_before_home = False
    for funnel in funnels:
        sid = funnel.get("session_id", "UNKNOWN")
        path = funnel.get("conversion_path", [])
        stages = funnel.get("stages", {})

        unknown = [s for s in path if s not in FUNNEL_STAGES]
        if unknown:
            errors.append(f"Session {sid} has unknown stages: {unknown}")
        if len(path) != len(set(path)):
            errors.append(f"Session {sid} conversion_path has repeated stages: {path}")
        if set(path) != set(stages):
            errors.append(f"Session {sid} stages {sorted(stages)} don't match path {path}")
        else:
            times = [stages[s] for s in path]
            if times != sorted(times):
                errors.append(f"Session {sid} conversion_path is not in first-occurrence order")
        if funnel.get("total_value", 0) < 0:
            errors.append(f"Session {sid} has negative total_value")
        if "affiliate_click" in path:
            converted += 1
            if {"homepage_visit", "affiliate_click"} <= set(stages) and (
                stages["affiliate_click"] < stages["homepage_visit"]
            ):
                click_before_home = True

    # --- Performance metrics ---
    metrics = data["performance_metrics"]
    missing = METRIC_FIELDS - set(metrics.keys())
    if missing:
        errors.append(f"performance_metrics missing fields: {sorted(missing)}")
    else:
        rate = metrics["conversion_rate"]
        if rate < 0 or rate > 1:
            errors.append(f"conversion_rate out of range: {rate}")
        elif funnels and abs(rate - converted / len(funnels)) > 1e-9:
            errors.append(
                f"conversion_rate {rate} != {converted}/{len(funnels)} converted sessions"
            )
        if metrics["avg_time_to_click"] < 0 and not click_before_home:
            errors.append(f"avg_time_to_click is negative: {metrics['avg_time_to_click']}")
        if (metrics["most_effective_path"] is None) != (converted == 0):
            errors.append("most_effective_path must be null exactly when no session converted")

    # --- Attribution ---
    attribution = data["attribution_summary"]
    networks = attribution.get("networks", [])
    network_clicks = sum(n["clicks"] for n in networks)
    if attribution.get("total_clicks") != network_clicks:
        errors.append(
            f"total_clicks {attribution.get('total_clicks')} != sum of network clicks {network_clicks}"
        )
    for n in networks:
        if n["clicks"] > 0 and abs(n["avg_value"] - n["total_value"] / n["clicks"]) > 1e-6:
            errors.append(f"Network {n['network']} avg_value does not match total/clicks")
    helmet_clicks = [h["clicks"] for h in attribution.get("top_helmets", [])]
    if helmet_clicks != sorted(helmet_clicks, reverse=True):
        errors.append("top_helmets not sorted by clicks descending")

    # --- Experiments ---
    for exp in data["experiments"]:
        exp_id = exp.get("experiment_id", "UNKNOWN")
        for v in exp.get("variants", []):
            missing = VARIANT_FIELDS - set(v.keys())
            if missing:
                errors.append(f"Experiment {exp_id} variant missing fields: {sorted(missing)}")
                continue
            for counter in ("impressions", "clicks", "conversions", "revenue_total"):
                if v[counter] < 0:
                    errors.append(f"Experiment {exp_id} variant {v['variant_id']} has negative {counter}")
            if v["impressions"] == 0 and v["click_rate"] != 0:
                errors.append(
                    f"Experiment {exp_id} variant {v['variant_id']} has a click rate without impressions"
                )

    return errors


def main() -> None:
    parser = argparse.ArgumentParser(description="Validate an exported conversion report")
    parser.add_argument(
        "--data",
        default="dashboard/data.json",
        help="Path to exported dashboard JSON",
    )
    opts = parser.parse_args()

    path = Path(opts.data)
    if not path.exists():
        print(f"FAIL: {opts.data} not found. Run 'python -m helmet_analytics.analysis.export' first.")
        sys.exit(1)

    data = json.loads(path.read_text())
    errors = validate(data)

    if errors:
        print(f"FAIL: {len(errors)} validation error(s):")
        for e in errors:
            print(f"  - {e}")
        sys.exit(1)

    # Print summary on success
    metrics = data["performance_metrics"]
    attribution = data["attribution_summary"]

    print("PASS: Analytics integrity validated")
    print(f"  Sessions: {len(data['funnel_analysis']):,}")
    print(f"  Affiliate clicks: {attribution['total_clicks']:,}")
    print(f"  Conversion rate: {metrics['conversion_rate']:.1%}")
    for exp in data["experiments"]:
        print(f"  Experiment {exp['experiment_id']}: {len(exp['variants'])} variant(s) with data")


if __name__ == "__main__":
    main()
