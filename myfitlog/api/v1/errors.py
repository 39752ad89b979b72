"""Translate collaborator failures into HTTP errors."""

from fastapi import HTTPException, status

from myfitlog.services.backend import (
    BackendConnectionError,
    BackendError,
    RecordNotFoundError,
    UnauthenticatedError,
)


def http_error_for(exc: BackendError, message: str) -> HTTPException:
    """Map a BackendError to an HTTPException carrying a user-facing message.

    Args:
        exc: The collaborator failure.
        message: Short notification text shown to the user.

    Returns:
        HTTPException to raise from the endpoint.
    """
    if isinstance(exc, UnauthenticatedError):
        return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc))
    if isinstance(exc, RecordNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=message)
    if isinstance(exc, BackendConnectionError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=message)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=message)
