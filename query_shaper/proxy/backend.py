"""
Backend Client — forwards (possibly rewritten) GraphQL requests to the
upstream API.

Behavioral Contract:
- Sends ``{query, variables}`` as JSON; variables are forwarded unchanged.
- Returns the decoded JSON body verbatim.
- Any transport failure, non-2xx status or non-JSON body raises BackendError.
- No retries; retry policy belongs to the caller's transport.
"""

import logging
import time
from typing import Optional, Tuple

import httpx

logger = logging.getLogger(__name__)


class BackendError(Exception):
    """Raised when the upstream GraphQL API cannot serve a request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class BackendClient:
    """
    Thin async client for the upstream GraphQL endpoint.
    ``transport`` can be swapped (e.g. httpx.MockTransport) for tests.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.timeout = timeout
        self._transport = transport

    async def execute(
        self, query: str, variables: Optional[dict] = None
    ) -> Tuple[dict, float]:
        """Run a query upstream. Returns the JSON body and the latency in ms."""
        start = time.monotonic()
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    self.url,
                    json={"query": query, "variables": variables},
                    headers={"Content-Type": "application/json"},
                )
        except httpx.TimeoutException as e:
            raise BackendError(f"Backend timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise BackendError(f"Backend unreachable: {e}") from e

        latency_ms = round((time.monotonic() - start) * 1000, 2)

        if response.status_code < 200 or response.status_code >= 300:
            raise BackendError(
                f"Backend returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except (ValueError, RecursionError) as e:
            raise BackendError("Backend returned a non-JSON body") from e
        if not isinstance(body, dict):
            raise BackendError("Backend returned a JSON body that is not an object")

        return body, latency_ms
