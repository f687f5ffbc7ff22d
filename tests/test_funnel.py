"""Tests for the funnel event log and session reconstruction."""

import pytest

from helmet_analytics.analysis.funnel import reconstruct_funnels
from helmet_analytics.collector.emitter import RecordingEmitter
from helmet_analytics.collector.recorder import EventRecorder
from helmet_analytics.collector.schemas import FunnelEvent, FunnelStage
from helmet_analytics.storage.store import MemoryStore

HOME = FunnelStage.HOMEPAGE_VISIT
SEARCH = FunnelStage.HELMET_SEARCH
VIEW = FunnelStage.HELMET_VIEW
CLICK = FunnelStage.AFFILIATE_CLICK
EXTERNAL = FunnelStage.EXTERNAL_VISIT


def ev(stage, ts, session="s1", **fields):
    return FunnelEvent(session_id=session, stage=stage, timestamp=ts, **fields)


class TestEventRecorder:
    @pytest.fixture
    def recorder(self):
        return EventRecorder(MemoryStore(), clock=lambda: 5000)

    def test_appends_in_order(self, recorder):
        assert recorder.record(ev(HOME, 10))
        assert recorder.record({"session_id": "s1", "stage": "helmet_view", "timestamp": 5})
        events = recorder.events()
        assert [e.stage for e in events] == [HOME, VIEW]
        assert events[1].timestamp == 5

    def test_missing_session_id_dropped(self, recorder):
        assert recorder.record({"stage": "homepage_visit", "timestamp": 1}) is False
        assert recorder.events() == []

    def test_missing_stage_dropped(self, recorder):
        assert recorder.record({"session_id": "s1", "timestamp": 1}) is False
        assert recorder.events() == []

    def test_unknown_stage_dropped(self, recorder):
        assert recorder.record({"session_id": "s1", "stage": "checkout", "timestamp": 1}) is False

    def test_non_mapping_dropped(self, recorder):
        assert recorder.record("homepage_visit") is False

    def test_missing_timestamp_uses_clock(self, recorder):
        recorder.record({"session_id": "s1", "stage": "homepage_visit"})
        assert recorder.events()[0].timestamp == 5000

    def test_numeric_helmet_id_coerced(self, recorder):
        recorder.record({"session_id": "s1", "stage": "helmet_view", "helmet_id": 42, "timestamp": 1})
        assert recorder.events()[0].helmet_id == "42"

    def test_emitter_notified(self):
        emitter = RecordingEmitter()
        recorder = EventRecorder(MemoryStore(), clock=lambda: 0, emitter=emitter)
        recorder.record(ev(CLICK, 1, network="amazon", helmet_id="7"))
        recorder.record({"stage": "homepage_visit"})  # malformed
        assert len(emitter.events) == 1
        action, params = emitter.events[0]
        assert action == "affiliate_click"
        assert params["affiliate_network"] == "amazon"

    def test_failing_emitter_does_not_break_recording(self):
        class Broken:
            def emit(self, action, params):
                raise RuntimeError("sink down")

        recorder = EventRecorder(MemoryStore(), clock=lambda: 0, emitter=Broken())
        assert recorder.record(ev(HOME, 1))
        assert len(recorder.events()) == 1

    def test_prune_before(self, recorder):
        for ts in (10, 20, 30, 40):
            recorder.record(ev(HOME, ts, session=f"s{ts}"))
        assert recorder.prune_before(30) == 2
        assert [e.timestamp for e in recorder.events()] == [30, 40]
        assert recorder.prune_before(0) == 0

    def test_unreadable_entries_skipped(self):
        store = MemoryStore({"funnel_log": '[{"session_id": "s1"}, '
                             '{"session_id": "s1", "stage": "homepage_visit", "timestamp": 1}]'})
        recorder = EventRecorder(store, clock=lambda: 0)
        assert len(recorder.events()) == 1

    def test_clear(self, recorder):
        recorder.record(ev(HOME, 1))
        recorder.clear()
        assert recorder.events() == []


class TestReconstruct:
    def test_first_occurrence_wins(self):
        [funnel] = reconstruct_funnels([ev(VIEW, 100), ev(VIEW, 200)])
        assert funnel.stages[VIEW] == 100

    def test_first_occurrence_with_unordered_log(self):
        [funnel] = reconstruct_funnels([ev(VIEW, 200), ev(HOME, 50), ev(VIEW, 100)])
        assert funnel.stages[VIEW] == 100
        assert funnel.conversion_path == [HOME, VIEW]

    def test_distinct_conversion_path(self):
        events = [ev(HOME, 1), ev(SEARCH, 2), ev(HOME, 3), ev(VIEW, 4)]
        [funnel] = reconstruct_funnels(events)
        assert funnel.conversion_path == [HOME, SEARCH, VIEW]

    def test_revisited_stage_not_repeated(self):
        events = [ev(HOME, 1), ev(SEARCH, 2), ev(VIEW, 3), ev(SEARCH, 4)]
        [funnel] = reconstruct_funnels(events)
        assert funnel.conversion_path == [HOME, SEARCH, VIEW]

    def test_total_value_defaults(self):
        events = [
            ev(HOME, 1),
            ev(SEARCH, 2, value=1),
            ev(CLICK, 3),
            ev(CLICK, 4, value=12.5),
        ]
        [funnel] = reconstruct_funnels(events)
        assert funnel.total_value == pytest.approx(0 + 1 + 1 + 12.5)

    def test_custom_affiliate_default(self):
        [funnel] = reconstruct_funnels([ev(CLICK, 1)], affiliate_default=5)
        assert funnel.total_value == 5

    def test_groups_by_session_in_first_seen_order(self):
        events = [ev(HOME, 5, "b"), ev(HOME, 1, "a"), ev(VIEW, 6, "b"), ev(CLICK, 9, "a")]
        funnels = reconstruct_funnels(events)
        assert [f.session_id for f in funnels] == ["b", "a"]
        assert funnels[1].converted
        assert not funnels[0].converted

    def test_filter_by_session(self):
        events = [ev(HOME, 1, "a"), ev(HOME, 2, "b")]
        funnels = reconstruct_funnels(events, session_id="b")
        assert [f.session_id for f in funnels] == ["b"]
        assert reconstruct_funnels(events, session_id="zzz") == []

    def test_empty_log(self):
        assert reconstruct_funnels([]) == []

    def test_full_funnel(self):
        events = [ev(s, i) for i, s in enumerate([HOME, SEARCH, VIEW, CLICK, EXTERNAL])]
        [funnel] = reconstruct_funnels(events)
        assert funnel.conversion_path == [HOME, SEARCH, VIEW, CLICK, EXTERNAL]
        assert funnel.stages == {HOME: 0, SEARCH: 1, VIEW: 2, CLICK: 3, EXTERNAL: 4}
