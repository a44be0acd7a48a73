"""
Admission Policy — decides which field paths a (surface, operation) pair
may keep requesting.

A path is admitted when it was present in strictly more than
``threshold`` of the observed responses, and only once at least
``min_observations`` responses have been seen. Each path is judged on its
own ratio; parent/child counts are never reconciled.

Returns None ("no decision") rather than an empty allow-list when there is
not enough evidence. An empty allow-list is possible and callers must treat
it as "skip pruning" as well.
"""

from typing import Dict, FrozenSet, Optional

from query_shaper.ledger.store import UsageStore
from query_shaper.models.config import ShaperConfig
from query_shaper.models.ledger import LedgerEntry

MIN_OBSERVATIONS = 3
THRESHOLD = 0.8


class AdmissionPolicy:
    """Turns ledger entries into allow-lists."""

    def __init__(
        self,
        ledger: UsageStore,
        min_observations: int = MIN_OBSERVATIONS,
        threshold: float = THRESHOLD,
    ):
        self.ledger = ledger
        self.min_observations = min_observations
        self.threshold = threshold

    @classmethod
    def from_config(cls, ledger: UsageStore, config: ShaperConfig) -> "AdmissionPolicy":
        return cls(
            ledger,
            min_observations=config.min_observations,
            threshold=config.admission_threshold,
        )

    def decide(self, surface: str, operation: str) -> Optional[FrozenSet[str]]:
        """Allow-list for the pair, or None when no decision can be made yet."""
        entry = self.ledger.get(surface, operation)
        if entry is None:
            return None
        return self.allow_list_for(entry)

    def allow_list_for(self, entry: LedgerEntry) -> Optional[FrozenSet[str]]:
        """Allow-list for a single entry."""
        if entry.observation_count < self.min_observations:
            return None

        return frozenset(
            path for path, ratio in self.usage_ratios(entry).items()
            if ratio > self.threshold
        )

    @staticmethod
    def usage_ratios(entry: LedgerEntry) -> Dict[str, float]:
        """Fraction of observations in which each path was present."""
        total = entry.observation_count
        if total <= 0:
            return {}
        return {path: count / total for path, count in entry.field_counts.items()}
