"""
Query Shaper API — FastAPI endpoints.

Exposes:
- The GraphQL proxy endpoint (shaping + learning)
- Health check
- Ledger inspection (learned usage per surface and operation)
- Effective configuration
"""

import logging
from typing import Optional

import httpx
from fastapi import BackgroundTasks, FastAPI, HTTPException, Request

from query_shaper.ledger.persistence import (
    PersistenceError,
    SnapshotStore,
    load_ledger,
    open_snapshot_store,
)
from query_shaper.ledger.store import UsageLedger
from query_shaper.models.config import ShaperConfig
from query_shaper.models.request import GraphQLRequest
from query_shaper.proxy.backend import BackendClient, BackendError
from query_shaper.proxy.shaper import QueryShaper

logger = logging.getLogger(__name__)


# --- Application Factory ---

def create_app(
    config: Optional[ShaperConfig] = None,
    ledger: Optional[UsageLedger] = None,
    snapshot_store: Optional[SnapshotStore] = None,
    backend_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title="Query Shaper",
        description="Adaptive GraphQL query shaping proxy",
        version="0.1.0",
    )

    cfg = config or ShaperConfig()

    store = snapshot_store
    if store is None:
        try:
            store = open_snapshot_store(cfg.snapshot_path)
        except PersistenceError as e:
            logger.error("Snapshot store unavailable, learning will not persist: %s", e)
            store = None

    usage = ledger or load_ledger(store)
    backend = BackendClient(
        cfg.backend_url,
        timeout=cfg.backend_timeout_seconds,
        transport=backend_transport,
    )
    shaper = QueryShaper(
        backend=backend,
        ledger=usage,
        config=cfg,
        snapshot_store=store,
    )

    # Store components on app state for access in endpoints
    app.state.config = cfg
    app.state.ledger = usage
    app.state.shaper = shaper

    # === HEALTH ===

    @app.get("/health")
    def health():
        """Liveness check."""
        return {"status": "ok", "message": "GraphQL query shaper is running"}

    # === PROXY ===

    @app.post("/graphql")
    async def graphql_proxy(
        req: GraphQLRequest, request: Request, background_tasks: BackgroundTasks
    ):
        """Shape the query for the calling surface, forward it, learn from the result."""
        surface = request.headers.get(cfg.surface_header)
        try:
            outcome = await shaper.handle(req, surface)
        except BackendError as e:
            logger.error("Backend error: %s", e)
            raise HTTPException(502, "Upstream GraphQL request failed")

        if outcome.learned:
            background_tasks.add_task(shaper.persist)
        return outcome.response

    # === LEDGER ===

    @app.get("/ledger")
    def get_ledger():
        """Everything learned so far, in the persisted snapshot format."""
        return usage.snapshot().to_wire()

    @app.get("/ledger/surfaces")
    def list_surfaces():
        """Surfaces with learned usage, each with its operation keys."""
        return {"surfaces": usage.surfaces()}

    @app.get("/ledger/{surface}/{operation}")
    def get_ledger_entry(surface: str, operation: str):
        """Usage ratios and current admission decision for one surface/operation."""
        entry = usage.get(surface, operation)
        if entry is None:
            raise HTTPException(404, "Nothing learned for this surface and operation")
        allow_list = shaper.policy.allow_list_for(entry)
        return {
            "surface": surface,
            "operation": operation,
            "entry": entry.model_dump(mode="json"),
            "usage_ratios": shaper.policy.usage_ratios(entry),
            "allowed_fields": sorted(allow_list) if allow_list is not None else None,
        }

    # === CONFIG ===

    @app.get("/config")
    def get_config():
        """Effective configuration."""
        return cfg.model_dump()

    return app
