"""Analytics engine: Normalizer, ColumnStore, Query, Statistics, Models."""

from quarry.engine.column_store import ColumnStore
from quarry.engine.models import ModelAdapter
from quarry.engine.normalizer import DatasetSnapshot, IngestReport, SchemaNormalizer
from quarry.engine.query import QueryEngine
from quarry.engine.service import AnalyticsEngine
from quarry.engine.statistics import StatisticsEngine

__all__ = [
    "AnalyticsEngine",
    "ColumnStore",
    "DatasetSnapshot",
    "IngestReport",
    "ModelAdapter",
    "QueryEngine",
    "SchemaNormalizer",
    "StatisticsEngine",
]
