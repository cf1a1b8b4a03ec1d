from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request


class NoStoreMiddleware(BaseHTTPMiddleware):
    """Responses carry tokens and profiles; no cache may keep them."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["Cache-Control"] = "no-store"
        return response
