from muniscore.services.deliveries import DeliveryAggregator, DeliveryRatingService
from muniscore.services.evaluation import EvaluationEngine, EvaluationFilter, RankingMetric
from muniscore.services.lifecycle import TaskLifecycleService
from muniscore.services.monthly import MonthlyBreakdownCalculator
from muniscore.services.performance import PerformanceCalculator

__all__ = [
    "DeliveryAggregator",
    "DeliveryRatingService",
    "EvaluationEngine",
    "EvaluationFilter",
    "MonthlyBreakdownCalculator",
    "PerformanceCalculator",
    "RankingMetric",
    "TaskLifecycleService",
]
