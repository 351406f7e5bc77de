"""
Optimistic concurrency over a record store.

Every stored record carries an integer ``version``. A writer reads a record,
computes the replacement and commits it together with the version it read.
The commit re-reads the stored versions under a lock and refuses the whole
batch if any of them moved on.

Commit-time checks are callables run inside the same lock, after the
version comparison and before the batch is written. They re-validate
invariants that span records the batch does not itself replace (e.g.
"no activity references this column").
"""
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Dict, Any, TypeVar

from .errors import StaleWriteError
from .store import Write

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 3

RECORD_LABELS = {"projects": "Project", "activities": "Activity"}


@dataclass
class Change:
    """A versioned write. ``expected_version`` None means "must not exist"."""
    collection: str
    record_id: str
    body: Optional[Dict[str, Any]]
    expected_version: Optional[int]

    @classmethod
    def create(cls, collection: str, body: Dict[str, Any]) -> "Change":
        return cls(collection, str(body["id"]), body, None)

    @classmethod
    def update(cls, collection: str, body: Dict[str, Any], expected_version: int) -> "Change":
        return cls(collection, str(body["id"]), body, expected_version)

    @classmethod
    def delete(cls, collection: str, record_id: str, expected_version: int) -> "Change":
        return cls(collection, record_id, None, expected_version)


class VersionGuard:
    """Detects lost updates on top of a read/replace store."""

    def __init__(self, store, max_retries: int = DEFAULT_MAX_RETRIES):
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.store = store
        self.max_retries = max_retries
        self._lock = threading.Lock()

    def load(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        return self.store.get(collection, record_id)

    def scan(self, collection: str, project_id: Optional[str] = None) -> List[Dict[str, Any]]:
        return self.store.scan(collection, project_id=project_id)

    def commit(
        self,
        changes: List[Change],
        checks: Iterable[Callable[[Any], None]] = (),
    ) -> List[Dict[str, Any]]:
        """
        Write every change or none of them.

        Returns the committed bodies (deletes omitted) with their new version.

        Raises:
            StaleWriteError: a stored version differs from the expected one.
            BoardError: raised by a commit-time check.
        """
        with self._lock:
            for change in changes:
                current = self.store.get(change.collection, change.record_id)
                current_version = int(current.get("version", 0)) if current is not None else None
                if current_version != change.expected_version:
                    logger.warning(
                        "Stale write on %s/%s: expected version %s, stored %s",
                        change.collection, change.record_id,
                        change.expected_version, current_version,
                    )
                    raise StaleWriteError(
                        f"{RECORD_LABELS.get(change.collection, change.collection)} {change.record_id} "
                        "was modified by someone else; reload and try again"
                    )

            for check in checks:
                check(self.store)

            writes: List[Write] = []
            committed: List[Dict[str, Any]] = []
            for change in changes:
                if change.body is None:
                    writes.append(Write(change.collection, change.record_id, None))
                    continue
                body = dict(change.body)
                body["version"] = (change.expected_version or 0) + 1
                writes.append(Write(change.collection, change.record_id, body))
                committed.append(body)

            self.store.replace(writes)
            return committed

    def retrying(self, operation: Callable[[], T]) -> T:
        """Run a read-compute-commit cycle, repeating it on stale writes."""
        for attempt in range(1, self.max_retries + 1):
            try:
                return operation()
            except StaleWriteError:
                if attempt == self.max_retries:
                    logger.warning("Giving up after %d stale write attempts", attempt)
                    raise
                logger.info("Stale write, retrying (attempt %d/%d)", attempt + 1, self.max_retries)
        raise AssertionError("unreachable")
