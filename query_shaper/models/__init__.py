"""Query shaper data models."""

from query_shaper.models.config import ShaperConfig
from query_shaper.models.ledger import LedgerEntry, LedgerSnapshot
from query_shaper.models.request import GraphQLRequest, ShapingOutcome

__all__ = [
    "GraphQLRequest",
    "LedgerEntry",
    "LedgerSnapshot",
    "ShaperConfig",
    "ShapingOutcome",
]
