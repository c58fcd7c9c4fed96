"""Security utilities for the chat API."""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware to add security headers to responses."""
    
    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        
        response.headers["X-Content-Type-Options"] = "nosniff"  # Prevent MIME type sniffing
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        
        # Session state is per-client and changes every few seconds
        if request.url.path.startswith("/api/"):
            response.headers["Cache-Control"] = "no-store"
        
        return response
