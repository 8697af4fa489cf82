from fastapi import status


class JeuxBoardError(Exception):
    """Base class for failures that are surfaced to the acting user as a toast."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    level: str = "danger"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(JeuxBoardError):
    """Raised at startup when required settings are missing or blank."""


class AuthenticationError(JeuxBoardError):
    """Raised when credentials are rejected or no session is present."""

    status_code = status.HTTP_401_UNAUTHORIZED
    level = "warning"


class PermissionDenied(JeuxBoardError):
    """Raised by the service layer when the policy engine denies an action."""

    status_code = status.HTTP_403_FORBIDDEN
    level = "warning"


class NotFoundError(JeuxBoardError):
    """Raised when a record is missing or not readable by the actor."""

    status_code = status.HTTP_404_NOT_FOUND
    level = "warning"


class ConflictError(JeuxBoardError):
    """Raised when a write violates a uniqueness constraint."""

    status_code = status.HTTP_409_CONFLICT


class StoreError(JeuxBoardError):
    """Raised when the backing store or the auth service fails. Nothing is applied."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class InvalidInputError(JeuxBoardError):
    """Raised when a request is well-formed but references values the system does not accept."""

    status_code = 422  # Unprocessable Content
    level = "warning"
