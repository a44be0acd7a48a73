"""
Usage Ledger — per-surface, per-operation field occurrence counts.

Updated by: the shaper, after every successful backend response
Queried by: the Admission Policy and the ledger API endpoints

Behavioral Contract:
- Entries are created lazily on the first learnable response.
- Counts only ever increase; entries are never deleted.
- Concurrent updates to the same entry never lose an increment.
- Readers get a copy of an entry taken under its lock, so observation_count
  and field_counts always come from the same update.
"""

import logging
import threading
from typing import Dict, Iterable, Optional, Protocol, Tuple

from query_shaper.learning.paths import extract_field_paths
from query_shaper.models.ledger import LedgerEntry, LedgerSnapshot

logger = logging.getLogger(__name__)

EntryKey = Tuple[str, str]


class UsageStore(Protocol):
    """Protocol for ledger backends — pluggable storage."""

    def get(self, surface: str, operation: str) -> Optional[LedgerEntry]: ...

    def record_observation(
        self, surface: str, operation: str, paths: Iterable[str]
    ) -> LedgerEntry: ...

    def snapshot(self) -> LedgerSnapshot: ...


class _GuardedEntry:
    """A ledger entry together with the lock that serializes its updates."""

    def __init__(self):
        self.lock = threading.Lock()
        self.entry = LedgerEntry()


class UsageLedger:
    """
    In-memory usage ledger.
    Durability is handled by a snapshot store; see ledger.persistence.
    """

    def __init__(self):
        self._entries: Dict[EntryKey, _GuardedEntry] = {}
        self._entries_lock = threading.Lock()

    @classmethod
    def from_snapshot(cls, snapshot: LedgerSnapshot) -> "UsageLedger":
        """Rebuild a ledger from a persisted snapshot."""
        ledger = cls()
        surfaces = set(snapshot.screen_request_counts) | set(snapshot.screen_patterns)
        for surface in surfaces:
            counts = snapshot.screen_request_counts.get(surface, {})
            patterns = snapshot.screen_patterns.get(surface, {})
            for operation in set(counts) | set(patterns):
                guarded = ledger._get_or_create(surface, operation)
                guarded.entry = LedgerEntry(
                    observation_count=counts.get(operation, 0),
                    field_counts=dict(patterns.get(operation, {})),
                )
        return ledger

    def _get_or_create(self, surface: str, operation: str) -> _GuardedEntry:
        key = (surface, operation)
        with self._entries_lock:
            guarded = self._entries.get(key)
            if guarded is None:
                guarded = _GuardedEntry()
                self._entries[key] = guarded
            return guarded

    def get(self, surface: str, operation: str) -> Optional[LedgerEntry]:
        """Get a consistent copy of an entry, or None if nothing was learned yet."""
        with self._entries_lock:
            guarded = self._entries.get((surface, operation))
        if guarded is None:
            return None
        with guarded.lock:
            return guarded.entry.model_copy(deep=True)

    def record_observation(
        self, surface: str, operation: str, paths: Iterable[str]
    ) -> LedgerEntry:
        """Fold one observation (the set of paths seen in a response) into an entry."""
        seen = set(paths)
        guarded = self._get_or_create(surface, operation)
        with guarded.lock:
            entry = guarded.entry
            entry.observation_count += 1
            for path in seen:
                entry.field_counts[path] = entry.field_counts.get(path, 0) + 1
            return entry.model_copy(deep=True)

    def record(
        self, surface: str, operation: str, response: Optional[dict]
    ) -> Optional[LedgerEntry]:
        """
        Learn from a backend response for ``operation``.

        The payload is read from the ``data`` envelope when present, else from
        the response root. Nothing is recorded when the operation key is
        missing from the payload (e.g. ``user`` asked, ``users`` returned).
        """
        if not response or not isinstance(response, dict):
            return None

        data = response.get("data")
        data_root = data if isinstance(data, dict) else response

        root_value = data_root.get(operation)
        if root_value is None:
            return None

        paths = extract_field_paths(root_value, operation)
        entry = self.record_observation(surface, operation, paths)

        logger.info(
            "Learned: [surface=%s] observation #%d for '%s' (%d paths)",
            surface,
            entry.observation_count,
            operation,
            len(set(paths)),
        )
        return entry

    def surfaces(self) -> Dict[str, list]:
        """Map each surface to the operations learned under it."""
        with self._entries_lock:
            keys = list(self._entries)
        result: Dict[str, list] = {}
        for surface, operation in sorted(keys):
            result.setdefault(surface, []).append(operation)
        return result

    def snapshot(self) -> LedgerSnapshot:
        """Get a serializable snapshot of every entry."""
        with self._entries_lock:
            items = list(self._entries.items())

        patterns: Dict[str, Dict[str, Dict[str, int]]] = {}
        counts: Dict[str, Dict[str, int]] = {}
        for (surface, operation), guarded in items:
            with guarded.lock:
                patterns.setdefault(surface, {})[operation] = dict(guarded.entry.field_counts)
                counts.setdefault(surface, {})[operation] = guarded.entry.observation_count

        return LedgerSnapshot(screen_patterns=patterns, screen_request_counts=counts)

    def count(self) -> int:
        """Number of (surface, operation) entries."""
        with self._entries_lock:
            return len(self._entries)
