from typing import Dict, Optional
from fastapi import HTTPException, status
import logging

logger = logging.getLogger(__name__)


def error_response(
    message: str,
    field_errors: Dict[str, str],
    code: int = status.HTTP_422_UNPROCESSABLE_ENTITY,
) -> HTTPException:
    """Return an HTTPException with a consistent structure and log details.

    Client errors are logged at WARNING, server errors at ERROR.
    """
    level = logging.ERROR if code >= status.HTTP_500_INTERNAL_SERVER_ERROR else logging.WARNING
    logger.log(level, "%s %s %s", code, message, field_errors)
    detail = {"message": message, "field_errors": field_errors}
    return HTTPException(status_code=code, detail=detail)


class DisputeError(Exception):
    """Base class for per-request home size dispute failures."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, field_errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        self.field_errors = dict(field_errors or {})

    def to_http(self) -> HTTPException:
        return error_response(self.message, self.field_errors, self.status_code)


class ValidationError(DisputeError):
    """Malformed claim input, rejected before any write."""

    status_code = status.HTTP_400_BAD_REQUEST


class StaleStateError(DisputeError):
    """The dispute is no longer in the status the transition expected."""

    status_code = status.HTTP_409_CONFLICT


class AuthorizationError(DisputeError):
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Not authorized to access this dispute.", field_errors=None):
        super().__init__(message, field_errors)


class NotFoundError(DisputeError):
    status_code = status.HTTP_404_NOT_FOUND


class CodecError(DisputeError):
    """PII encrypt/decrypt failure."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
