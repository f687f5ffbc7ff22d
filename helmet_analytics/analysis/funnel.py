"""Session funnel reconstruction.

Funnels are never stored. Every call groups the raw event log by session
and rebuilds each session's stage map, conversion path and value from
scratch, so there is no cached aggregate that could drift from the log.
"""

from collections import defaultdict
from typing import Iterable

from pydantic import BaseModel

from helmet_analytics.collector.schemas import (
    AFFILIATE_CLICK_DEFAULT_VALUE,
    FunnelEvent,
    FunnelStage,
)


class SessionFunnel(BaseModel):
    session_id: str
    # Stage -> timestamp of its first occurrence
    stages: dict[FunnelStage, int]
    # Distinct stages in order of first occurrence
    conversion_path: list[FunnelStage]
    total_value: float

    @property
    def converted(self) -> bool:
        return FunnelStage.AFFILIATE_CLICK in self.stages


def build_session_funnel(
    session_id: str,
    events: Iterable[FunnelEvent],
    affiliate_default: float = AFFILIATE_CLICK_DEFAULT_VALUE,
) -> SessionFunnel:
    # Stable sort keeps log order for events sharing a timestamp
    ordered = sorted(events, key=lambda e: e.timestamp)
    stages: dict[FunnelStage, int] = {}
    path: list[FunnelStage] = []
    total = 0.0
    for event in ordered:
        if event.stage not in stages:
            stages[event.stage] = event.timestamp
            path.append(event.stage)
        total += event.effective_value(affiliate_default)
    return SessionFunnel(
        session_id=session_id,
        stages=stages,
        conversion_path=path,
        total_value=total,
    )


def reconstruct_funnels(
    events: Iterable[FunnelEvent],
    session_id: str | None = None,
    affiliate_default: float = AFFILIATE_CLICK_DEFAULT_VALUE,
) -> list[SessionFunnel]:
    """Group ``events`` by session and rebuild one funnel per session.

    Sessions come back in order of their first appearance in the log.
    Pass ``session_id`` to rebuild only that session.
    """
    by_session: dict[str, list[FunnelEvent]] = defaultdict(list)
    for event in events:
        if session_id is not None and event.session_id != session_id:
            continue
        by_session[event.session_id].append(event)

    return [
        build_session_funnel(sid, session_events, affiliate_default)
        for sid, session_events in by_session.items()
    ]
