"""Experiment definitions and the static registry.

Each experiment has a unique ID, a status, and a list of variants with
relative traffic weights. Variants also carry the button presentation
the UI renders for visitors bucketed into them.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, Mapping


class ExperimentStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


@dataclass(frozen=True)
class Variant:
    variant_id: str
    weight: float  # Relative allocation, any positive number
    name: str = ""
    config: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Experiment:
    experiment_id: str
    name: str
    variants: tuple[Variant, ...]
    status: ExperimentStatus = ExperimentStatus.ACTIVE
    description: str = ""
    target_metric: str = "click_rate"
    # Percentage of visitors enrolled at all (0, 100]
    traffic_split: float = 100.0

    def __post_init__(self):
        object.__setattr__(self, "variants", tuple(self.variants))
        object.__setattr__(self, "status", ExperimentStatus(self.status))
        if not self.variants:
            raise ValueError("Experiment must have at least 1 variant")
        ids = [v.variant_id for v in self.variants]
        if len(ids) != len(set(ids)):
            raise ValueError("Variant ids must be unique")
        for v in self.variants:
            if v.weight <= 0:
                raise ValueError(f"Variant {v.variant_id} weight must be positive, got {v.weight}")
        if not 0 < self.traffic_split <= 100:
            raise ValueError(f"traffic_split must be in (0, 100], got {self.traffic_split}")

    @property
    def total_weight(self) -> float:
        return sum(v.weight for v in self.variants)

    @property
    def is_active(self) -> bool:
        return self.status == ExperimentStatus.ACTIVE

    def get_variant(self, variant_id: str) -> Variant | None:
        for v in self.variants:
            if v.variant_id == variant_id:
                return v
        return None


class ExperimentRegistry:
    """Read-only catalog of experiments, keyed by id, in definition order."""

    def __init__(self, experiments: Iterable[Experiment]):
        by_id: dict[str, Experiment] = {}
        for exp in experiments:
            if exp.experiment_id in by_id:
                raise ValueError(f"Duplicate experiment id: {exp.experiment_id}")
            by_id[exp.experiment_id] = exp
        self._experiments = MappingProxyType(by_id)

    def get(self, experiment_id: str) -> Experiment | None:
        return self._experiments.get(experiment_id)

    def __contains__(self, experiment_id: str) -> bool:
        return experiment_id in self._experiments

    def __iter__(self):
        return iter(self._experiments.values())

    def __len__(self) -> int:
        return len(self._experiments)

    def active(self) -> list[Experiment]:
        return [e for e in self._experiments.values() if e.is_active]


# Amazon button experiments shipped with the helmet catalog
AMAZON_BUTTON_COLOR_TEST = Experiment(
    experiment_id="amazon_button_color_test_1",
    name="Amazon Button Color Optimization",
    description="Test different button colors to maximize click-through rates",
    status=ExperimentStatus.ACTIVE,
    target_metric="click_rate",
    variants=(
        Variant(
            "control", 50, "Control (Original)",
            {"button_text": "View on Amazon", "button_color": "orange", "button_size": "md",
             "button_style": "solid", "icon_position": "right", "show_price": True},
        ),
        Variant(
            "variant_blue", 25, "Blue Variant",
            {"button_text": "Buy on Amazon", "button_color": "blue", "button_size": "md",
             "button_style": "solid", "icon_position": "right", "show_price": True},
        ),
        Variant(
            "variant_green", 25, "Green Variant",
            {"button_text": "Get This Helmet", "button_color": "green", "button_size": "md",
             "button_style": "solid", "icon_position": "right", "show_price": True},
        ),
    ),
)

AMAZON_BUTTON_COPY_TEST = Experiment(
    experiment_id="amazon_button_copy_test_1",
    name="Amazon Button Copy Optimization",
    description="Test different call-to-action text to improve conversions",
    status=ExperimentStatus.DRAFT,
    target_metric="conversion_rate",
    traffic_split=40,
    variants=(
        Variant("control_copy", 34, "Control Copy", {"button_text": "View on Amazon"}),
        Variant(
            "urgent_copy", 33, "Urgency Copy",
            {"button_text": "Buy Now - Limited Stock", "urgency_text": "Fast Shipping"},
        ),
        Variant(
            "value_copy", 33, "Value Copy",
            {"button_text": "Best Price on Amazon", "cta_text": "Price Match Guarantee"},
        ),
    ),
)

AMAZON_BUTTON_SIZE_TEST = Experiment(
    experiment_id="amazon_button_size_test_1",
    name="Amazon Button Size & Style Test",
    description="Test button size and visual prominence for mobile optimization",
    status=ExperimentStatus.DRAFT,
    target_metric="click_rate",
    traffic_split=30,
    variants=(
        Variant("control_size", 50, "Standard Size", {"button_text": "View on Amazon", "button_size": "md"}),
        Variant(
            "large_prominent", 50, "Large Prominent",
            {"button_text": "Buy on Amazon", "button_size": "lg", "icon_position": "left"},
        ),
    ),
)

DEFAULT_REGISTRY = ExperimentRegistry(
    [AMAZON_BUTTON_COLOR_TEST, AMAZON_BUTTON_COPY_TEST, AMAZON_BUTTON_SIZE_TEST]
)
