"""
Query Shaper — sequences one request through the learning/pruning engine.

  classify → decide → prune → forward → learn → return verbatim

Behavioral Contract:
- Learning always uses the real backend response and the operation key of
  the original (unpruned) query.
- Parse failures never fail a request: the original query is forwarded.
- Backend failures propagate as BackendError; nothing is learned from them.
- Learning failures are logged; the response is still returned.
- Persistence is requested, never awaited, on the request path: callers
  schedule persist() after responding.
"""

import json
import logging
import threading
from datetime import datetime
from typing import FrozenSet, Optional

from query_shaper.learning.policy import AdmissionPolicy
from query_shaper.ledger.persistence import PersistenceError, SnapshotStore
from query_shaper.ledger.store import UsageLedger
from query_shaper.models.config import ShaperConfig
from query_shaper.models.request import GraphQLRequest, ShapingOutcome
from query_shaper.proxy.backend import BackendClient
from query_shaper.shaping.classifier import QueryParseError, detect_operation_key
from query_shaper.shaping.pruner import prune_query

logger = logging.getLogger(__name__)


class ShapingPlan:
    """What will be sent upstream for a request, decided before forwarding."""

    def __init__(
        self,
        surface: str,
        operation: Optional[str],
        query: str,
        allow_list: Optional[FrozenSet[str]] = None,
        optimized: bool = False,
    ):
        self.surface = surface
        self.operation = operation
        self.query = query
        self.allow_list = allow_list
        self.optimized = optimized

    def to_dict(self) -> dict:
        return {
            "surface": self.surface,
            "operation": self.operation,
            "query": self.query,
            "allow_list": sorted(self.allow_list) if self.allow_list is not None else None,
            "optimized": self.optimized,
        }


class QueryShaper:
    """
    Ties together the ledger, the admission policy, the pruner and the
    backend client.
    """

    def __init__(
        self,
        backend: BackendClient,
        ledger: Optional[UsageLedger] = None,
        config: Optional[ShaperConfig] = None,
        snapshot_store: Optional[SnapshotStore] = None,
    ):
        self.config = config or ShaperConfig()
        self.backend = backend
        self.ledger = ledger or UsageLedger()
        self.policy = AdmissionPolicy.from_config(self.ledger, self.config)
        self.snapshot_store = snapshot_store
        self._persist_lock = threading.Lock()

    def resolve_surface(self, surface: Optional[str]) -> str:
        """Fall back to the default surface when none was given."""
        if surface is None or not surface.strip():
            return self.config.default_surface
        return surface.strip()

    def plan(self, query: str, surface: Optional[str] = None) -> ShapingPlan:
        """Classify, consult the policy and prune, without contacting the backend."""
        surface = self.resolve_surface(surface)
        operation = detect_operation_key(query)
        if operation is None:
            return ShapingPlan(surface, None, query)

        allow_list = self.policy.decide(surface, operation)
        if not allow_list:
            return ShapingPlan(surface, operation, query, allow_list)

        try:
            pruned, changed = prune_query(query, allow_list)
        except QueryParseError as e:
            logger.warning("Optimization skipped for '%s': %s", operation, e)
            return ShapingPlan(surface, operation, query, allow_list)

        if changed:
            logger.info("[%s] Auto-optimizing '%s'", surface, operation)
        return ShapingPlan(surface, operation, pruned, allow_list, optimized=changed)

    async def handle(
        self, request: GraphQLRequest, surface: Optional[str] = None
    ) -> ShapingOutcome:
        """Shape, forward and learn from one request."""
        plan = self.plan(request.query, surface)
        logger.debug("Plan: %s", plan.to_dict())

        response, latency_ms = await self.backend.execute(plan.query, request.variables)

        learned = False
        if plan.operation is not None:
            try:
                learned = self.ledger.record(plan.surface, plan.operation, response) is not None
            except Exception:
                logger.exception("[%s] Learning failed for '%s'", plan.surface, plan.operation)

        response_bytes = _encoded_size(response)
        logger.info(
            "Request: %s | surface=%s | optimized=%s | latency=%.1fms | size=%d bytes",
            plan.operation,
            plan.surface,
            plan.optimized,
            latency_ms,
            response_bytes,
        )

        return ShapingOutcome(
            surface=plan.surface,
            operation=plan.operation,
            optimized=plan.optimized,
            forwarded_query=plan.query,
            allowed_fields=sorted(plan.allow_list) if plan.allow_list is not None else None,
            learned=learned,
            response=response,
            latency_ms=latency_ms,
            response_bytes=response_bytes,
            completed_at=datetime.utcnow(),
        )

    def persist(self) -> bool:
        """Write the current ledger snapshot. Failures are logged, never raised."""
        if self.snapshot_store is None:
            return False
        # Snapshot and save together, so an older snapshot never lands last.
        with self._persist_lock:
            try:
                self.snapshot_store.save(self.ledger.snapshot())
            except PersistenceError as e:
                logger.error("Error saving ledger snapshot: %s", e)
                return False
        return True


def _encoded_size(response: dict) -> int:
    try:
        return len(json.dumps(response, separators=(",", ":")))
    except (TypeError, ValueError, RecursionError):
        return 0
