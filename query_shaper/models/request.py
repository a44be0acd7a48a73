"""Request Model — inbound GraphQL requests and per-request shaping outcomes."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class GraphQLRequest(BaseModel):
    """A GraphQL request as sent by a client."""

    query: str
    variables: Optional[dict] = None


class ShapingOutcome(BaseModel):
    """Result of passing one request through the shaper."""

    surface: str
    operation: Optional[str] = None         # None when unclassifiable
    optimized: bool = False                 # Forwarded query differs from the original
    forwarded_query: str
    allowed_fields: Optional[List[str]] = None
    learned: bool = False                   # Response was folded into the ledger
    response: dict
    latency_ms: float
    response_bytes: int
    completed_at: datetime
