"""Shared fixtures: a controllable clock and fresh in-memory contexts."""

import random

import pytest

from helmet_analytics.ab.experiment import Experiment, ExperimentRegistry, Variant
from helmet_analytics.collector.emitter import RecordingEmitter
from helmet_analytics.context import AnalyticsContext
from helmet_analytics.storage.store import MemoryStore

START_MS = 1_759_017_600_000


class FakeClock:
    def __init__(self, now: int = START_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


EXP_A = Experiment(
    experiment_id="expA",
    name="Even split",
    variants=[Variant("v1", 1), Variant("v2", 1)],
)
EXP_PAUSED = Experiment(
    experiment_id="exp_paused",
    name="Paused",
    status="paused",
    variants=[Variant("a", 1), Variant("b", 1)],
)
TEST_REGISTRY = ExperimentRegistry([EXP_A, EXP_PAUSED])


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def emitter():
    return RecordingEmitter()


@pytest.fixture
def ctx(store, clock, emitter):
    return AnalyticsContext(
        store,
        registry=TEST_REGISTRY,
        emitter=emitter,
        rng=random.Random(1234),
        clock=clock,
    ).init()
