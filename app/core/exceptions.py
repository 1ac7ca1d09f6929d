from fastapi import status


class AppError(Exception):
    """Base class for errors rendered to clients as ``{"message": ...}``."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request data"


class SlotConflict(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Time slot is already booked"


class Unavailable(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Doctor is not available"


class InvalidTransition(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid appointment status transition"


class Unauthorized(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Not authorized, token failed"


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Not authorized"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"
