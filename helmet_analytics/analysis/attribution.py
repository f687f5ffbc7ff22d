"""Affiliate click attribution by network and by helmet."""

from typing import Iterable

from pydantic import BaseModel

from helmet_analytics.collector.schemas import (
    AFFILIATE_CLICK_DEFAULT_VALUE,
    FunnelEvent,
    FunnelStage,
)

UNKNOWN_NETWORK = "unknown"


class NetworkAttribution(BaseModel):
    network: str
    clicks: int
    total_value: float
    avg_value: float


class HelmetAttribution(BaseModel):
    helmet_id: str
    clicks: int


class AttributionSummary(BaseModel):
    total_clicks: int
    networks: list[NetworkAttribution]
    top_helmets: list[HelmetAttribution]


def summarize_attribution(
    events: Iterable[FunnelEvent],
    affiliate_default: float = AFFILIATE_CLICK_DEFAULT_VALUE,
) -> AttributionSummary:
    """Credit every affiliate click to its network and helmet.

    Networks are listed in first-seen order. Helmets are sorted by click
    count, highest first; equal counts keep first-seen order. Clicks with
    no helmet id still count toward their network and the total.
    """
    clicks = [e for e in events if e.stage == FunnelStage.AFFILIATE_CLICK]

    network_clicks: dict[str, int] = {}
    network_value: dict[str, float] = {}
    helmet_clicks: dict[str, int] = {}
    for event in clicks:
        network = event.network or UNKNOWN_NETWORK
        network_clicks[network] = network_clicks.get(network, 0) + 1
        network_value[network] = network_value.get(network, 0.0) + event.effective_value(
            affiliate_default
        )
        if event.helmet_id:
            helmet_clicks[event.helmet_id] = helmet_clicks.get(event.helmet_id, 0) + 1

    networks = [
        NetworkAttribution(
            network=network,
            clicks=count,
            total_value=network_value[network],
            avg_value=network_value[network] / count if count else 0.0,
        )
        for network, count in network_clicks.items()
    ]
    top_helmets = [
        HelmetAttribution(helmet_id=helmet_id, clicks=count)
        for helmet_id, count in sorted(
            helmet_clicks.items(), key=lambda item: item[1], reverse=True
        )
    ]
    return AttributionSummary(
        total_clicks=len(clicks),
        networks=networks,
        top_helmets=top_helmets,
    )
