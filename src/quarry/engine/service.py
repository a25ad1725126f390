# src/quarry/engine/service.py
"""
AnalyticsEngine: the single entry point callers talk to.

It owns the published snapshot and the computation cache. Ingestion builds a
new snapshot off to the side and publishes it with one reference swap, then
advances the cache generation so no artifact of an older version is served
again. Each request captures the published store exactly once, so a
concurrent re-ingestion never mixes versions inside one request.
"""

import threading
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from quarry.contracts import (
    ColumnDef,
    ColumnSummary,
    CorrelationMatrix,
    DatasetNotLoadedError,
    ModelArtifact,
    OperationKind,
    PagedResult,
    PredictResult,
    QuerySpec,
    TrainerKind,
    TrainResult,
    UnknownModelError,
)
from quarry.core.cache import CacheKey, ComputationCache
from quarry.core.config import QuarrySettings
from quarry.core.logging import get_logger
from quarry.engine.column_store import ColumnStore
from quarry.engine.models import ModelAdapter
from quarry.engine.normalizer import DatasetSnapshot, SchemaNormalizer
from quarry.engine.query import QueryEngine
from quarry.engine.statistics import StatisticsEngine
from quarry.plugins.manager import PluginManager

logger = get_logger(__name__)


class AnalyticsEngine:
    """Versioned dataset plus memoized analytics over it.

    Example:
        engine = AnalyticsEngine(QuarrySettings())
        engine.ingest(rows, schema=[{"name": "pclass", "type": "numeric"}, ...])
        page = engine.query({
            "group_by": {"column": "pclass"},
            "aggregations": [{"function": "avg", "column": "survived"}],
        })
        model = engine.train("regression", ["age"], target="fare")
        engine.predict(model.model_id, [30.0])
    """

    def __init__(
        self,
        settings: QuarrySettings | None = None,
        plugins: PluginManager | None = None,
        cache: ComputationCache | None = None,
    ) -> None:
        self._settings = settings or QuarrySettings()
        if plugins is None:
            plugins = PluginManager()
            plugins.register_builtin_plugins()
        self._plugins = plugins
        self._cache = cache or ComputationCache.from_settings(self._settings.cache)
        self._normalizer = SchemaNormalizer()
        self._store: ColumnStore | None = None
        self._publish_lock = threading.Lock()

    @property
    def settings(self) -> QuarrySettings:
        return self._settings

    @property
    def cache(self) -> ComputationCache:
        return self._cache

    @property
    def plugins(self) -> PluginManager:
        return self._plugins

    @property
    def version(self) -> int:
        """Version of the published snapshot (0 before the first ingest)."""
        store = self._store
        return store.version if store is not None else 0

    # === Ingestion ===

    def ingest(
        self,
        rows: Iterable[Any],
        schema: Sequence[ColumnDef | Mapping[str, Any]] | None = None,
    ) -> DatasetSnapshot:
        """Normalize rows and publish them as the new current snapshot.

        Args:
            rows: Raw row mappings
            schema: Column declarations; defaults to settings.dataset

        Raises:
            SchemaError: If the rows cannot be normalized. The previously
                published snapshot remains current.
        """
        declared = schema if schema is not None else self._settings.dataset.schema()
        snapshot = self._normalizer.ingest(rows, declared)
        store = ColumnStore(snapshot)
        with self._publish_lock:
            # Versions are monotonic, but two racing ingests may finish out of order
            if self._store is None or self._store.version < snapshot.version:
                self._store = store
                self._cache.advance_to(snapshot.version)
        logger.info("snapshot_published", version=snapshot.version, rows=snapshot.row_count)
        return snapshot

    def _current(self) -> ColumnStore:
        store = self._store
        if store is None:
            raise DatasetNotLoadedError("No dataset has been ingested")
        return store

    # === Requests ===

    def query(self, spec: QuerySpec | Mapping[str, Any]) -> PagedResult:
        """Run a query given as a QuerySpec or an untrusted request dict."""
        if not isinstance(spec, QuerySpec):
            payload = {"page_size": self._settings.query.default_page_size, **spec}
            spec = QuerySpec.from_request(payload)
        engine = QueryEngine(
            self._current(),
            self._cache,
            max_page_size=self._settings.query.max_page_size,
        )
        return engine.execute(spec)

    def describe(self, column: str) -> ColumnSummary:
        return StatisticsEngine(self._current(), self._cache).describe(column)

    def correlate(self, columns: Sequence[str]) -> CorrelationMatrix:
        return StatisticsEngine(self._current(), self._cache).correlate(columns)

    def train(
        self,
        trainer: TrainerKind | str,
        feature_columns: Sequence[str],
        target: str | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> TrainResult:
        """Train a model. The model_id stays valid until re-ingestion or eviction."""
        adapter = ModelAdapter(self._current(), self._cache, self._plugins)
        artifact = adapter.train(trainer, feature_columns, target=target, params=params)
        return TrainResult(model_id=artifact.model_id, metrics=dict(artifact.metrics))

    def model(self, model_id: str) -> ModelArtifact:
        """Look up a live model artifact.

        Raises:
            UnknownModelError: If the id is malformed, evicted, or was trained
                on an older dataset version
        """
        self._current()
        try:
            key = CacheKey.parse(model_id)
        except ValueError:
            raise UnknownModelError(model_id) from None
        if key.operation is not OperationKind.TRAIN:
            raise UnknownModelError(model_id)
        try:
            artifact: ModelArtifact = self._cache.peek(key)
        except KeyError:
            raise UnknownModelError(model_id) from None
        return artifact

    def predict(self, model_id: str, feature_vector: Sequence[Any]) -> PredictResult:
        """Apply a previously trained model. Never trains."""
        artifact = self.model(model_id)
        return PredictResult(value=artifact.predict(feature_vector))

    # === Lifecycle ===

    def close(self) -> None:
        """Shut down the cache's worker pool."""
        self._cache.close()

    def __enter__(self) -> "AnalyticsEngine":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
