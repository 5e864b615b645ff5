"""Existence check in front of the storage collaborator.

`exists` is always consulted before `insert`. Storage failures are logged
and reported as an outcome; they never propagate into the pipeline.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Protocol, Set, Tuple

from citypulse.ingestion.activity_types import Activity
from citypulse.ingestion.errors import InsertError


logger = logging.getLogger(__name__)


class ActivityStore(Protocol):
    def exists(self, source: str, source_id: str) -> bool:
        ...

    def insert(self, activity: Activity) -> bool:
        ...


class InsertOutcome(str, Enum):
    ADDED = "added"
    DUPLICATE = "duplicate"
    FAILED = "failed"


class DedupGateway:
    def __init__(self, store: ActivityStore):
        self.store = store
        self._seen: Set[Tuple[str, str]] = set()

    def reset(self) -> None:
        """Forget identities submitted in the previous run."""
        self._seen.clear()

    def submit(self, activity: Activity) -> InsertOutcome:
        key = activity.identity
        if key in self._seen:
            return InsertOutcome.DUPLICATE
        try:
            if self.store.exists(*key):
                self._seen.add(key)
                return InsertOutcome.DUPLICATE
            if not self.store.insert(activity):
                self._seen.add(key)
                return InsertOutcome.DUPLICATE
        except InsertError as e:
            logger.warning("Insert failed for %s:%s: %s", key[0], key[1], e.cause)
            return InsertOutcome.FAILED
        except Exception as e:
            # any store-side failure is counted, never raised into the run
            logger.warning("Store error for %s:%s: %s", key[0], key[1], e)
            return InsertOutcome.FAILED
        self._seen.add(key)
        return InsertOutcome.ADDED
