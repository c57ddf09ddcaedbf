"""Access-control gate for ipgate.

Every request, for every method and every path, passes through
AccessControlMiddleware before any route handler runs. There is no bypass
list.

Per request:
  1. The client address is taken from the transport (the ASGI ``client``
     tuple). Forwarding headers are never consulted.
  2. The AllowListChecker is awaited; it re-reads the allow-list file.
  3. One log line records timestamp, decision, method, address and path.
  4. Admitted requests continue unchanged. Rejected requests get HTTP 403
     with an empty body.

If the allow-list cannot be read the request fails closed with HTTP 500 and
an empty body; the error is logged and other requests are unaffected.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from ipgate.allowlist.checker import AllowListChecker
from ipgate.errors import AllowListReadError
from ipgate.utils.logger import get_logger

logger = get_logger(__name__)


class AdmissionDecision(str, enum.Enum):
    ADMITTED = "admitted"
    REJECTED = "rejected"


@dataclass(frozen=True)
class RequestContext:
    """Facts about one request, captured on arrival."""

    client_address: Optional[str]
    method: str
    path: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_request(cls, request: Request) -> "RequestContext":
        return cls(
            client_address=request.client.host if request.client else None,
            method=request.method,
            path=request.url.path,
        )


class AccessControlMiddleware(BaseHTTPMiddleware):
    """Admit only clients whose address is listed in the allow-list.

    Registration (done by the bootstrap sequencer, before any route):
        app.add_middleware(AccessControlMiddleware, checker=checker)
    """

    def __init__(self, app: ASGIApp, checker: AllowListChecker) -> None:
        super().__init__(app)
        self.checker = checker

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        ctx = RequestContext.from_request(request)

        try:
            allowed = await self.checker.is_allowed(ctx.client_address)
        except AllowListReadError as exc:
            logger.error(
                "Allow-list check failed, rejecting request",
                timestamp=ctx.timestamp.isoformat(),
                method=ctx.method,
                client_address=ctx.client_address,
                path=ctx.path,
                allowlist_path=exc.path,
                error=str(exc.cause),
            )
            return Response(status_code=500)

        decision = AdmissionDecision.ADMITTED if allowed else AdmissionDecision.REJECTED
        logger.info(
            "Request " + decision.value,
            timestamp=ctx.timestamp.isoformat(),
            decision=decision.value,
            method=ctx.method,
            client_address=ctx.client_address,
            path=ctx.path,
        )

        if decision is AdmissionDecision.REJECTED:
            return Response(status_code=403)
        return await call_next(request)
