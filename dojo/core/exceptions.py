from typing import Optional

from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ValidationError(ServiceError):
    """Bad input: nothing was written, the caller must fix the request."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class AuthorizationError(ServiceError):
    def __init__(self, message: str = "Insufficient permissions") -> None:
        super().__init__(message, status.HTTP_403_FORBIDDEN)


class NotFoundError(ServiceError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class ConflictError(ServiceError):
    """Someone else changed the row (payment race, duplicate period). Reload and retry."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


class ConfigurationMissingError(ServiceError):
    """No active price for a fee type. Recoverable: callers usually downgrade it to a warning."""

    def __init__(self, fee_type: str, belt_level: Optional[str] = None) -> None:
        label = f"{fee_type} ({belt_level})" if belt_level else fee_type
        super().__init__(f"Fee not configured: {label}", status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.fee_type = fee_type
        self.belt_level = belt_level
