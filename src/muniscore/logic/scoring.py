from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from muniscore.config import settings

_CENT = Decimal("0.01")


def round2(value: float) -> float:
    """Round to 2 decimals, half-up. The single rounding rule for every metric."""
    return float(Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP))


def percentage(part: float, whole: float) -> float:
    if whole <= 0:
        return 0.0
    return round2(part / whole * 100)


def mean(values: Iterable[float]) -> float:
    values = list(values)
    if not values:
        return 0.0
    return sum(values) / len(values)


@dataclass
class ScoringConfig:
    # Weights for sub-components (Must sum to 1.0)
    weight_coverage: float = 0.40
    weight_punctuality: float = 0.30
    weight_quality: float = 0.20
    weight_quantity: float = 0.10

    # Quantity sub-score is capped so duplicate deliveries cannot dominate
    quantity_multiplier: float = 20.0
    quantity_cap: float = 100.0

    @classmethod
    def from_settings(cls) -> "ScoringConfig":
        s = settings.scoring
        return cls(
            weight_coverage=s.weight_coverage,
            weight_punctuality=s.weight_punctuality,
            weight_quality=s.weight_quality,
            weight_quantity=s.weight_quantity,
            quantity_multiplier=s.quantity_multiplier,
            quantity_cap=s.quantity_cap,
        )


class ScoringEngine:
    """
    Pure logic engine for delivery punctuality and composite unit scores.
    """
    def __init__(self, config: Optional[ScoringConfig] = None):
        self.config = config or ScoringConfig.from_settings()

    @staticmethod
    def punctuality_score(submitted_at: datetime, start: datetime, deadline: datetime) -> float:
        """
        100 when delivered at or before the task start, 0 at or after the deadline,
        linear in between.
        """
        elapsed = (submitted_at - start).total_seconds()
        window = (deadline - start).total_seconds()

        if elapsed <= 0:
            return 100.0
        if elapsed >= window:
            return 0.0
        return round2(100 - (elapsed / window) * 100)

    @staticmethod
    def is_on_time(submitted_at: datetime, deadline: datetime) -> bool:
        return submitted_at <= deadline

    def quantity_subscore(self, avg_quantity: float) -> float:
        return min(avg_quantity * self.config.quantity_multiplier, self.config.quantity_cap)

    def composite_score(
        self,
        coverage_pct: float,
        avg_punctuality: float,
        avg_quality: float,
        avg_quantity: float,
    ) -> float:
        final_score = (
            (coverage_pct * self.config.weight_coverage) +
            (avg_punctuality * self.config.weight_punctuality) +
            (avg_quality * self.config.weight_quality) +
            (self.quantity_subscore(avg_quantity) * self.config.weight_quantity)
        )
        return round2(final_score)
