"""Usage Ledger Model — per-surface, per-operation field observations."""

from typing import Dict

from pydantic import BaseModel, ConfigDict, Field


class LedgerEntry(BaseModel):
    """Accumulated field observations for one (surface, operation) pair."""

    observation_count: int = 0              # Responses folded in
    field_counts: Dict[str, int] = {}       # Field path -> observations containing it


class LedgerSnapshot(BaseModel):
    """
    Persisted form of the whole ledger.

    Keeps the key names of the on-disk format so existing
    learned_patterns.json files load unchanged.
    """

    model_config = ConfigDict(populate_by_name=True)

    screen_patterns: Dict[str, Dict[str, Dict[str, int]]] = Field(
        default_factory=dict, alias="screenPatterns"
    )
    screen_request_counts: Dict[str, Dict[str, int]] = Field(
        default_factory=dict, alias="screenRequestCounts"
    )

    def to_wire(self) -> dict:
        """Serialize using the persisted key names."""
        return self.model_dump(mode="json", by_alias=True)
