from fastapi import HTTPException, status
from fastapi.requests import HTTPConnection

from app.core.context import AppContext


def get_context(connection: HTTPConnection) -> AppContext:
    """Resolve the application context for both HTTP requests and WebSockets."""
    context = getattr(connection.app.state, "context", None)
    if context is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is starting up",
        )
    return context
