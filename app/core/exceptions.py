"""
Domain errors raised by the dispatch services.

Routers never translate these by hand; the handlers registered in
``main.py`` map each class onto its HTTP status code.
"""
from fastapi import status


class DispatchError(Exception):
    """Base class for every error the dispatch core raises."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(DispatchError):
    """Malformed or missing required input."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class NotFoundError(DispatchError):
    """Referenced job, member or property does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(DispatchError):
    """State machine violation, e.g. accepting an already accepted job."""

    status_code = status.HTTP_409_CONFLICT


class BackendUnavailableError(DispatchError):
    """Document store or geocoder could not be reached."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
