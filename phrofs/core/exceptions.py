"""
core/exceptions.py
------------------
Domain error taxonomy.

Services raise these instead of HTTP exceptions; main.py maps every
AppError to a JSON body of the form {"error": message} with the status
code carried by the class.
"""

from fastapi import status


class AppError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationFailed(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class InvalidRating(ValidationFailed):
    default_message = "Stars must be between 1 and 5"


class Unauthorized(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Could not validate credentials"


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Insufficient role"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class Conflict(AppError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Already exists"


class Gone(AppError):
    status_code = status.HTTP_410_GONE
    default_message = "This endpoint has been removed"


class UpstreamIdentityFailure(AppError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Sign-in with the identity provider failed"


class StorageUnavailable(AppError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Storage unavailable"
