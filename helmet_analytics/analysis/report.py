"""Point-in-time conversion report.

Composes the current session's summary, affiliate attribution, every
session's funnel and a few derived performance metrics. Reading the
report never writes anything back to the store.
"""

from typing import Callable

from pydantic import BaseModel

from helmet_analytics.analysis.attribution import AttributionSummary, summarize_attribution
from helmet_analytics.analysis.funnel import SessionFunnel, reconstruct_funnels
from helmet_analytics.collector.recorder import EventRecorder
from helmet_analytics.collector.schemas import FunnelEvent, FunnelStage
from helmet_analytics.config import DEFAULT_SETTINGS, Settings


class SessionSummary(BaseModel):
    session_id: str | None = None
    start_time: int | None = None
    total_events: int = 0
    total_value: float = 0.0


class PerformanceMetrics(BaseModel):
    conversion_rate: float
    # Milliseconds from first homepage visit to first affiliate click
    avg_time_to_click: float
    most_effective_path: str | None


class ConversionReport(BaseModel):
    generated_at: int
    session_summary: SessionSummary
    attribution_summary: AttributionSummary
    funnel_analysis: list[SessionFunnel]
    performance_metrics: PerformanceMetrics


def summarize_session(
    events: list[FunnelEvent],
    session_id: str | None,
    affiliate_default: float,
) -> SessionSummary:
    own = [e for e in events if session_id is not None and e.session_id == session_id]
    return SessionSummary(
        session_id=session_id,
        start_time=min((e.timestamp for e in own), default=None),
        total_events=len(own),
        total_value=sum(e.effective_value(affiliate_default) for e in own),
    )


def compute_performance(funnels: list[SessionFunnel], separator: str = " > ") -> PerformanceMetrics:
    converted = [f for f in funnels if f.converted]
    conversion_rate = len(converted) / len(funnels) if funnels else 0.0

    # Sessions that clicked without a recorded homepage visit have no start point
    click_times = [
        f.stages[FunnelStage.AFFILIATE_CLICK] - f.stages[FunnelStage.HOMEPAGE_VISIT]
        for f in converted
        if FunnelStage.HOMEPAGE_VISIT in f.stages
    ]
    avg_time_to_click = sum(click_times) / len(click_times) if click_times else 0.0

    path_counts: dict[str, int] = {}
    path_values: dict[str, float] = {}
    for funnel in converted:
        path = separator.join(stage.value for stage in funnel.conversion_path)
        path_counts[path] = path_counts.get(path, 0) + 1
        path_values[path] = path_values.get(path, 0.0) + funnel.total_value

    most_effective_path = None
    for path in path_counts:
        if most_effective_path is None or (path_counts[path], path_values[path]) > (
            path_counts[most_effective_path],
            path_values[most_effective_path],
        ):
            most_effective_path = path

    return PerformanceMetrics(
        conversion_rate=conversion_rate,
        avg_time_to_click=avg_time_to_click,
        most_effective_path=most_effective_path,
    )


class ReportGenerator:
    def __init__(
        self,
        recorder: EventRecorder,
        clock: Callable[[], int],
        current_session: Callable[[], str | None] = lambda: None,
        settings: Settings = DEFAULT_SETTINGS,
    ):
        self.recorder = recorder
        self.clock = clock
        self.current_session = current_session
        self.settings = settings

    def generate(self) -> ConversionReport | None:
        """Build a fresh report, or None when no events have been recorded yet."""
        events = self.recorder.events()
        if not events:
            return None

        affiliate_default = self.settings.affiliate_click_default_value
        funnels = reconstruct_funnels(events, affiliate_default=affiliate_default)
        return ConversionReport(
            generated_at=self.clock(),
            session_summary=summarize_session(events, self.current_session(), affiliate_default),
            attribution_summary=summarize_attribution(events, affiliate_default),
            funnel_analysis=funnels,
            performance_metrics=compute_performance(funnels, self.settings.path_separator),
        )
