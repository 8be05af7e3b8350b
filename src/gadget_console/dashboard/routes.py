"""Route handlers for the console.

Every handler is a thin shim over ``DashboardController``. Pages are
rendered from a ``ConsoleState`` snapshot; state-changing JSON endpoints
return the controller's ``MutationResult`` together with the new snapshot so
the browser can redraw without a second request.

State-changing endpoints require a single-use CSRF token in the
``X-CSRF-Token`` header, obtained from ``GET /api/csrf-token``.
"""

from __future__ import annotations

import secrets
from typing import TYPE_CHECKING, Any

from cachetools import TTLCache
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.responses import HTMLResponse

from gadget_console.dashboard.models import (
    ActionResponse,
    ConfirmDestructionRequest,
    CreateGadgetRequest,
    CredentialsRequest,
    EnterCodeRequest,
    FilterRequest,
    TransitionRequest,
)
from gadget_console.logging import get_logger
from gadget_console.types import StatusFilter

if TYPE_CHECKING:
    from gadget_console.controller import DashboardController, MutationResult
    from gadget_console.dashboard.app import PageRenderer

logger = get_logger(__name__)

# Maximum CSRF token requests allowed per client host per minute.
# Guards against TTLCache exhaustion in the csrf_tokens cache (maxsize=1000).
CSRF_TOKEN_RATE_LIMIT_PER_MINUTE = 60


def create_routes(controller: DashboardController) -> APIRouter:
    """Create console routes bound to a controller.

    Args:
        controller: The dashboard controller every route delegates to.

    Returns:
        An APIRouter with all console routes configured.
    """
    csrf_tokens: TTLCache[str, bool] = TTLCache(maxsize=1000, ttl=3600)
    csrf_rate_limit: TTLCache[str, int] = TTLCache(maxsize=256, ttl=60)

    def _generate_csrf_token() -> str:
        """Generate a CSRF token and store it for validation."""
        token = secrets.token_urlsafe(32)
        csrf_tokens[token] = True
        return token

    def _require_csrf_token(x_csrf_token: str | None = Header(None)) -> None:
        """FastAPI dependency that validates and consumes a CSRF token.

        Raises:
            HTTPException: 403 if token is missing or invalid.
        """
        if not x_csrf_token or x_csrf_token not in csrf_tokens:
            logger.warning("Rejected request with missing or invalid CSRF token")
            raise HTTPException(
                status_code=403,
                detail="Invalid or missing CSRF token",
            )
        # Consume token (single-use)
        del csrf_tokens[x_csrf_token]

    def _respond(result: MutationResult) -> ActionResponse:
        return ActionResponse(
            succeeded=result.succeeded,
            refreshed=result.refreshed,
            message=result.message,
            state=controller.snapshot().to_dict(),
        )

    router = APIRouter()
    protected = [Depends(_require_csrf_token)]

    @router.get("/api/csrf-token")
    async def api_csrf_token(request: Request) -> dict[str, str]:
        """Generate and return a single-use CSRF token.

        Raises:
            HTTPException: 429 if the per-host rate limit is exceeded.
        """
        client_host = request.client.host if request.client else "unknown"
        current_count = csrf_rate_limit.get(client_host, 0)
        if current_count >= CSRF_TOKEN_RATE_LIMIT_PER_MINUTE:
            logger.warning("CSRF token rate limit exceeded for %s", client_host)
            raise HTTPException(
                status_code=429,
                detail="CSRF token request rate limit exceeded. Please try again later.",
            )
        csrf_rate_limit[client_host] = current_count + 1
        return {"csrf_token": _generate_csrf_token()}

    @router.get("/", response_class=HTMLResponse)
    async def index(request: Request) -> HTMLResponse:
        """Render the login page when logged out, the dashboard otherwise."""
        state = controller.snapshot()
        pages: PageRenderer = request.app.state.pages
        name = "index.html" if state.authenticated else "login.html"
        return await pages.render(name, state=state, filters=list(StatusFilter))

    @router.get("/api/state")
    async def api_state() -> dict[str, Any]:
        """Return the current console state as JSON."""
        return controller.snapshot().to_dict()

    @router.get("/health/live")
    async def health_live() -> dict[str, str]:
        """Liveness probe."""
        return {"status": "ok"}

    @router.post("/api/login", dependencies=protected)
    async def api_login(body: CredentialsRequest) -> ActionResponse:
        """Log in with username and password."""
        return _respond(await controller.login(body.username, body.password))

    @router.post("/api/register", dependencies=protected)
    async def api_register(body: CredentialsRequest) -> ActionResponse:
        """Register a new account and log in."""
        return _respond(await controller.register(body.username, body.password))

    @router.post("/api/logout", dependencies=protected)
    async def api_logout() -> ActionResponse:
        """Log out and clear the collection."""
        return _respond(controller.logout())

    @router.post("/api/filter", dependencies=protected)
    async def api_filter(body: FilterRequest) -> ActionResponse:
        """Change the status filter; the list is re-fetched server-side."""
        return _respond(await controller.set_filter(body.status))

    @router.post("/api/refresh", dependencies=protected)
    async def api_refresh() -> ActionResponse:
        """Re-fetch the collection under the current filter."""
        refreshed = await controller.refresh()
        return ActionResponse(
            succeeded=refreshed,
            refreshed=refreshed,
            message=None if refreshed else controller.error,
            state=controller.snapshot().to_dict(),
        )

    @router.post("/api/gadgets", dependencies=protected)
    async def api_create_gadget(body: CreateGadgetRequest) -> ActionResponse:
        """Create a gadget."""
        return _respond(await controller.create_gadget(body.name))

    @router.post("/api/gadgets/{gadget_id}/transition", dependencies=protected)
    async def api_transition(gadget_id: str, body: TransitionRequest) -> ActionResponse:
        """Request a status change or open a self-destruct prompt."""
        return _respond(await controller.transition(gadget_id, body.status))

    @router.post("/api/gadgets/{gadget_id}/destruction/code", dependencies=protected)
    async def api_enter_code(gadget_id: str, body: EnterCodeRequest) -> ActionResponse:
        """Record typed confirmation input."""
        return _respond(controller.enter_code(gadget_id, body.code))

    @router.post("/api/gadgets/{gadget_id}/destruction/confirm", dependencies=protected)
    async def api_confirm_destruction(
        gadget_id: str, body: ConfirmDestructionRequest
    ) -> ActionResponse:
        """Submit the entered confirmation code."""
        return _respond(await controller.confirm_destruction(gadget_id, body.code))

    @router.post("/api/gadgets/{gadget_id}/destruction/cancel", dependencies=protected)
    async def api_cancel_destruction(gadget_id: str) -> ActionResponse:
        """Dismiss a self-destruct prompt without contacting the service."""
        return _respond(controller.cancel_destruction(gadget_id))

    @router.post("/api/error/dismiss", dependencies=protected)
    async def api_dismiss_error() -> ActionResponse:
        """Clear the current error message."""
        controller.dismiss_error()
        return ActionResponse(
            succeeded=True,
            refreshed=False,
            message=None,
            state=controller.snapshot().to_dict(),
        )

    return router


__all__ = ["CSRF_TOKEN_RATE_LIMIT_PER_MINUTE", "create_routes"]
