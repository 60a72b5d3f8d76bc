"""Single-run pipeline: fetch, decode, reconcile.

Fetch and decode errors end the run without touching the store. Store
initialization and write errors are not handled here; they propagate to
the caller as ``StoreError``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from warnung_tracker.config import Settings
from warnung_tracker.ingestor.client import FeedClient, FetchError
from warnung_tracker.ingestor.models import DecodeError, decode_warnings
from warnung_tracker.reconciler import ReconcileResult, ReconcileStats, Reconciler, format_result
from warnung_tracker.storage.repos import KeyValueStore, open_store

logger = logging.getLogger(__name__)

Reporter = Callable[[str], None]


@dataclass
class RunResult:
    """Summary of one pipeline run."""

    results: list[ReconcileResult] = field(default_factory=list)
    stats: ReconcileStats = field(default_factory=ReconcileStats)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class Pipeline:
    """Runs one fetch/decode/reconcile pass.

    The client and store may be injected; anything the pipeline creates
    itself is closed at the end of ``run``.

    Example:
        ```python
        pipeline = Pipeline(get_settings())
        result = pipeline.run()
        print(result.stats.new_count)
        ```
    """

    def __init__(
        self,
        settings: Settings,
        *,
        client: FeedClient | None = None,
        store: KeyValueStore | None = None,
        report: Reporter = print,
    ) -> None:
        """Initialize the pipeline.

        Args:
            settings: Application settings.
            client: Feed client to use instead of one built from settings.
            store: Store to use instead of one opened from settings.
            report: Callable receiving each report line.
        """
        self._settings = settings
        self._client = client
        self._store = store
        self._report = report

    def run(self) -> RunResult:
        """Execute the pipeline once.

        Returns:
            RunResult with one entry per reconciled warning, or with
            ``error`` set when the feed could not be fetched or decoded.

        Raises:
            StoreInitError: If the store cannot be opened.
            StoreWriteError: If a new warning cannot be persisted.
        """
        owns_store = self._store is None
        store = self._store if self._store is not None else open_store(self._settings.store)
        owns_client = self._client is None
        client = self._client if self._client is not None else FeedClient(self._settings.feed)

        try:
            try:
                warnings = decode_warnings(client.fetch())
            except (FetchError, DecodeError) as e:
                logger.error("Could not get data: %s", e)
                self._report(f"Could not get data due to error {e}")
                return RunResult(error=str(e))

            logger.info("Decoded %d warnings", len(warnings))
            reconciler = Reconciler(store, collection=self._settings.store.collection)
            run = RunResult(stats=reconciler.stats)
            for warning in warnings:
                result = reconciler.reconcile_one(warning)
                run.results.append(result)
                self._report(format_result(result))

            logger.info(
                "Run complete: %d new, %d known",
                run.stats.new_count,
                run.stats.known_count,
            )
            return run
        finally:
            if owns_client:
                client.close()
            if owns_store:
                store.close()
