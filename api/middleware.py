"""Request-scoped middleware for API requests."""

from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from utils.actor_context import actor_context, SYSTEM_ACTOR

ACTOR_HEADER = "X-Actor"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns a unique request ID to every request."""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class ActorMiddleware(BaseHTTPMiddleware):
    """
    Attributes every mutation in the request to the caller.

    The actor comes from the X-Actor header set by the fronting gateway;
    requests without one act as the system.
    """

    async def dispatch(self, request: Request, call_next):
        actor = request.headers.get(ACTOR_HEADER, "").strip() or SYSTEM_ACTOR
        request.state.actor = actor
        with actor_context(actor):
            return await call_next(request)
