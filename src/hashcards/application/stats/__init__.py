# Application Stats Package
from .metrics_calculator import EnrichedRecord, MetricsCalculator
from .service import CollectionStats, StatsService

__all__ = ["CollectionStats", "EnrichedRecord", "MetricsCalculator", "StatsService"]
