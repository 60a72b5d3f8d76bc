"""Reconcile fetched warnings against the store of seen warnings.

Each warning is looked up by identifier. Unseen warnings are written to
the store and reported as new; seen ones are reported as known. The store
only grows: nothing is updated or removed here.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from warnung_tracker.config import DEFAULT_COLLECTION
from warnung_tracker.ingestor.models import WarningMessage
from warnung_tracker.storage.repos import KeyValueStore, StoreReadError

logger = logging.getLogger(__name__)

# json.loads pairs valid surrogates, so any left over are unpaired.
_LONE_SURROGATE = re.compile("[\ud800-\udfff]")


class Outcome(str, Enum):
    """Classification of a warning after reconciliation."""

    NEW = "new"
    KNOWN = "known"


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome for a single warning."""

    warning: WarningMessage
    outcome: Outcome

    @property
    def is_new(self) -> bool:
        return self.outcome is Outcome.NEW


@dataclass
class ReconcileStats:
    """Counts for one reconciliation pass."""

    new_count: int = 0
    known_count: int = 0

    @property
    def total(self) -> int:
        return self.new_count + self.known_count


def _printable(text: str) -> str:
    """Replace unpaired surrogates with U+FFFD so the text encodes as UTF-8."""
    return _LONE_SURROGATE.sub("\ufffd", text)


def pretty_print(warning: WarningMessage) -> str:
    """Render a warning as tab-indented JSON."""
    return _printable(json.dumps(warning.to_dict(), indent="\t", ensure_ascii=False))


def format_result(result: ReconcileResult) -> str:
    """Render the report line for a reconciled warning."""
    if result.is_new:
        return f"Neue Meldung:\n{pretty_print(result.warning)}"
    return f"Alte Meldung gefunden: {_printable(result.warning.identifier)}"


class Reconciler:
    """Classifies warnings as new or known using a key-value store.

    Duplicates inside one batch are not collapsed: the second occurrence
    finds the record written for the first and is reported as known.

    Example:
        ```python
        reconciler = Reconciler(InMemoryKeyValueStore())
        for result in reconciler.reconcile(warnings):
            print(format_result(result))
        ```
    """

    def __init__(self, store: KeyValueStore, *, collection: str = DEFAULT_COLLECTION) -> None:
        """Initialize the reconciler.

        Args:
            store: Store holding previously seen warnings.
            collection: Collection name the warnings are kept under.
        """
        self._store = store
        self._collection = collection
        self._stats = ReconcileStats()

    @property
    def collection(self) -> str:
        return self._collection

    @property
    def stats(self) -> ReconcileStats:
        """Counts accumulated over all reconcile calls."""
        return self._stats

    def _is_known(self, warning: WarningMessage) -> bool:
        try:
            record = self._store.read(self._collection, warning.identifier)
        except StoreReadError as e:
            logger.warning("Treating unreadable record %s as unseen: %s", warning.identifier, e)
            return False
        return record is not None

    def reconcile_one(self, warning: WarningMessage) -> ReconcileResult:
        """Reconcile a single warning.

        Raises:
            StoreWriteError: If a new warning cannot be persisted.
        """
        if self._is_known(warning):
            self._stats.known_count += 1
            logger.debug("Known warning %s", warning.identifier)
            return ReconcileResult(warning=warning, outcome=Outcome.KNOWN)

        self._store.write(self._collection, warning.identifier, warning.to_dict())
        self._stats.new_count += 1
        logger.info("New warning %s from %s", warning.identifier, warning.sender)
        return ReconcileResult(warning=warning, outcome=Outcome.NEW)

    def reconcile(self, warnings: Iterable[WarningMessage]) -> list[ReconcileResult]:
        """Reconcile warnings in order.

        Args:
            warnings: Decoded warnings in feed order.

        Returns:
            One result per warning, in the same order.

        Raises:
            StoreWriteError: If a new warning cannot be persisted. Warnings
                written before the failure stay in the store.
        """
        return [self.reconcile_one(warning) for warning in warnings]
