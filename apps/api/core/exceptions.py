"""
Typed API errors.

Services raise these directly; main.py renders every one of them as
{"detail": ..., "error_code": ...} with the matching status code.
"""
from fastapi import HTTPException, status
from typing import Optional, Dict, Any


class APIException(HTTPException):
    """HTTPException that also carries a stable error_code."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code


class NotFoundError(APIException):
    def __init__(self, resource: str, identifier: str):
        super().__init__(status.HTTP_404_NOT_FOUND, f"{resource} not found: {identifier}", "NOT_FOUND")


class ValidationError(APIException):
    """
    Malformed input (day key, role, list name, template content).

    Raised before the store is touched. With a field, the error code names
    it: field="date" -> VALIDATION_ERROR_DATE.
    """

    def __init__(self, detail: str, field: Optional[str] = None):
        error_code = f"VALIDATION_ERROR_{field.upper()}" if field else "VALIDATION_ERROR"
        super().__init__(status.HTTP_422_UNPROCESSABLE_ENTITY, detail, error_code)
        self.field = field


class ConfigurationError(APIException):
    """Deployment is missing required data, e.g. a role with no active template."""

    def __init__(self, detail: str):
        super().__init__(status.HTTP_500_INTERNAL_SERVER_ERROR, detail, "CONFIGURATION_ERROR")


class StorageError(APIException):
    """Store unreachable or timed out after retries. The request can be repeated."""

    def __init__(self, detail: str = "Data store unavailable"):
        super().__init__(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            detail,
            "STORAGE_UNAVAILABLE",
            headers={"Retry-After": "1"},
        )
        self.retryable = True


class UnauthorizedError(APIException):
    def __init__(self, detail: str = "Authentication required"):
        super().__init__(
            status.HTTP_401_UNAUTHORIZED,
            detail,
            "UNAUTHORIZED",
            headers={"WWW-Authenticate": "Bearer"},
        )


class ForbiddenError(APIException):
    def __init__(self, detail: str = "Access denied"):
        super().__init__(status.HTTP_403_FORBIDDEN, detail, "FORBIDDEN")


class ConflictError(APIException):
    """Lost a compare-and-swap (activation, version number) or hit a duplicate."""

    def __init__(self, detail: str):
        super().__init__(status.HTTP_409_CONFLICT, detail, "CONFLICT")
