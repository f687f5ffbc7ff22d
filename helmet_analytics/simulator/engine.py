"""Simulation engine that drives an analytics context with demo sessions.

Each simulated visitor runs one session through the funnel:
  homepage_visit -> search(es) -> view(s) -> assignment -> affiliate_click -> external_visit

At each stage the visitor may drop off based on configured probabilities.
Visitors are bucketed into every active experiment before the click
decision, and variant uplift changes their chance of clicking.
Funnel randomness comes from ``config.seed``; pass a seeded ``rng`` to the
context as well to make the variant draws reproducible.
"""

import random
from dataclasses import dataclass, field

from helmet_analytics.collector.schemas import FunnelStage
from helmet_analytics.context import AnalyticsContext
from helmet_analytics.simulator.config import SimulationConfig


@dataclass
class SimulationSummary:
    sessions: int = 0
    events: int = 0
    clicks: int = 0
    conversions: int = 0
    stage_counts: dict[str, int] = field(default_factory=dict)


def simulate(ctx: AnalyticsContext, config: SimulationConfig | None = None) -> SimulationSummary:
    """Record ``config.num_sessions`` sessions into ``ctx``."""
    if config is None:
        config = SimulationConfig()

    rng = random.Random(config.seed)
    summary = SimulationSummary()
    for i in range(config.num_sessions):
        _simulate_session(ctx, i, config, rng, summary)
        summary.sessions += 1
    return summary


def _simulate_session(
    ctx: AnalyticsContext,
    index: int,
    config: SimulationConfig,
    rng: random.Random,
    summary: SimulationSummary,
) -> None:
    visitor_id = f"visitor_{index:05d}"
    session_id = f"sim_session_{config.seed}_{index:05d}"
    # Random arrival time within the simulation window
    current = config.start_ms + rng.randint(0, config.days * 86_400_000)

    def record(stage: FunnelStage, **fields) -> None:
        nonlocal current
        ctx.record_funnel_event(
            {"session_id": session_id, "stage": stage.value, "timestamp": current, **fields}
        )
        summary.events += 1
        summary.stage_counts[stage.value] = summary.stage_counts.get(stage.value, 0) + 1
        current += rng.randint(5_000, 120_000)

    record(FunnelStage.HOMEPAGE_VISIT)

    if rng.random() < config.prob_search:
        for _ in range(rng.randint(1, config.max_searches)):
            record(FunnelStage.HELMET_SEARCH, value=1)

    if rng.random() >= config.prob_view:
        return  # dropped off before viewing a helmet

    for _ in range(rng.randint(1, config.max_views)):
        helmet_id = rng.choice(config.helmet_ids)
        record(FunnelStage.HELMET_VIEW, helmet_id=helmet_id, value=1)

    # --- Experiment assignment (before the click decision) ---
    uplifts = dict(config.variant_click_uplift)
    variants = []
    for experiment in ctx.registry.active():
        variant_id = ctx.assign(experiment.experiment_id, visitor_id)
        if variant_id is not None:
            variants.append((experiment.experiment_id, variant_id))

    click_prob = config.prob_click + sum(uplifts.get(v, 0.0) for _, v in variants)
    if rng.random() >= min(click_prob, 1.0):
        return  # dropped off before clicking out

    network = rng.choices(config.networks, weights=config.network_weights, k=1)[0]
    record(FunnelStage.AFFILIATE_CLICK, helmet_id=helmet_id, network=network)
    summary.clicks += 1
    for experiment_id, variant_id in variants:
        ctx.record_click(experiment_id, variant_id)

    if rng.random() >= config.prob_external:
        return

    record(FunnelStage.EXTERNAL_VISIT, helmet_id=helmet_id, network=network)

    if rng.random() < config.prob_conversion:
        revenue = float(rng.randint(config.min_revenue, config.max_revenue))
        summary.conversions += 1
        for experiment_id, variant_id in variants:
            ctx.record_conversion(experiment_id, variant_id, revenue)
