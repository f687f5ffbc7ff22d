"""Records persisted by the analytics engine.

Funnel events come from the UI and are validated here before they are
appended to the log. Assignments and counters are what the A/B side
keeps per experiment.
"""

from enum import Enum

from pydantic import BaseModel, Field, field_validator

# Value credited to an affiliate click that arrives without one
AFFILIATE_CLICK_DEFAULT_VALUE = 1.0


class FunnelStage(str, Enum):
    HOMEPAGE_VISIT = "homepage_visit"
    HELMET_SEARCH = "helmet_search"
    HELMET_VIEW = "helmet_view"
    AFFILIATE_CLICK = "affiliate_click"
    EXTERNAL_VISIT = "external_visit"


class FunnelEvent(BaseModel):
    """One touchpoint in a visitor session. ``timestamp`` is epoch millis."""

    session_id: str = Field(min_length=1)
    stage: FunnelStage
    helmet_id: str | None = None
    network: str | None = None
    value: float | None = None
    timestamp: int

    @field_validator("helmet_id", mode="before")
    @classmethod
    def _helmet_id_as_str(cls, v):
        # Catalog ids are numeric in some call sites
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    def effective_value(self, affiliate_default: float = AFFILIATE_CLICK_DEFAULT_VALUE) -> float:
        if self.value is not None:
            return self.value
        if self.stage == FunnelStage.AFFILIATE_CLICK:
            return affiliate_default
        return 0.0


class Assignment(BaseModel):
    experiment_id: str
    visitor_id: str
    variant_id: str
    assigned_at: int


class VariantCounters(BaseModel):
    experiment_id: str
    variant_id: str
    impressions: int = 0
    clicks: int = 0
    conversions: int = 0
    revenue_total: float = 0.0


class VariantResult(BaseModel):
    """Counters plus rates derived from them at read time."""

    variant_id: str
    impressions: int
    clicks: int
    click_rate: float
    conversions: int
    conversion_rate: float
    revenue_total: float
    revenue_per_visitor: float
    # Clicks or conversions exist without the denominator they are measured against
    anomaly: bool = False

    @classmethod
    def from_counters(cls, counters: VariantCounters) -> "VariantResult":
        impressions, clicks = counters.impressions, counters.clicks
        anomaly = (impressions == 0 and (clicks > 0 or counters.conversions > 0)) or (
            clicks == 0 and counters.conversions > 0
        )
        return cls(
            variant_id=counters.variant_id,
            impressions=impressions,
            clicks=clicks,
            click_rate=clicks / impressions if impressions else 0.0,
            conversions=counters.conversions,
            conversion_rate=counters.conversions / clicks if clicks else 0.0,
            revenue_total=counters.revenue_total,
            revenue_per_visitor=counters.revenue_total / impressions if impressions else 0.0,
            anomaly=anomaly,
        )
