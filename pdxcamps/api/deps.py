from fastapi import HTTPException

from pdxcamps.services import graph as graph_store
from pdxcamps.services.errors import ForbiddenError, NotFoundError, PaywallError


def get_store():
    """Document store used by the routers; tests override this dependency."""
    return graph_store


def http_error(exc: Exception, action: str = "Request failed") -> HTTPException:
    """Map a service exception onto the HTTP status the API reports for it."""
    if isinstance(exc, HTTPException):
        return exc
    if isinstance(exc, PaywallError):
        return HTTPException(status_code=402, detail=exc.payload)
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ForbiddenError):
        return HTTPException(status_code=403, detail=str(exc))
    if isinstance(exc, ValueError):
        return HTTPException(status_code=400, detail=str(exc))
    return HTTPException(status_code=500, detail=f"{action}: {exc}")
