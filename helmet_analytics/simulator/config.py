"""Simulation parameters for demo helmet-shopping traffic.

These numbers model an affiliate review site funnel:
  homepage_visit -> helmet_search -> helmet_view -> affiliate_click -> external_visit

Drop-off rates are tuned so a few hundred sessions give every dashboard
panel something to show.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class SimulationConfig:
    num_sessions: int = 200
    # Random seed for reproducibility
    seed: int = 42
    # Simulation window starts 2025-09-28 00:00 UTC, in epoch millis
    start_ms: int = 1_759_017_600_000
    days: int = 7

    # Stage probabilities (conditional on reaching the previous stage)
    prob_search: float = 0.60
    prob_view: float = 0.75      # applied whether or not the visitor searched
    prob_click: float = 0.35     # baseline affiliate click rate
    prob_external: float = 0.80  # click-through actually lands on the retailer
    prob_conversion: float = 0.08

    # Click-rate lift per variant id, on top of prob_click
    variant_click_uplift: tuple[tuple[str, float], ...] = (
        ("variant_blue", 0.07),
        ("variant_green", 0.03),
    )

    max_searches: int = 3
    max_views: int = 4

    networks: tuple[str, ...] = ("amazon", "competitivecyclist", "backcountry")
    # Weighted toward Amazon
    network_weights: tuple[float, ...] = (0.7, 0.2, 0.1)
    helmet_ids: tuple[str, ...] = tuple(str(i) for i in range(1, 41))

    # Commission range for simulated conversions, dollars
    min_revenue: int = 25
    max_revenue: int = 75
