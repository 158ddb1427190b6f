# core/errors.py
"""
Error taxonomy shared by every service.

Each class carries the HTTP status the API gateway answers with and a
human-readable message that the UI shows as-is.
"""


class AppError(Exception):
    """Base class for expected application failures."""
    status_code: int = 500
    default_message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ConfigurationError(AppError):
    """Supabase URL or keys missing/invalid."""
    status_code = 503
    default_message = "Supabase is not configured. Please check your environment variables."


class ValidationError(AppError):
    """Bad local input. Raised before any network round-trip."""
    status_code = 400
    default_message = "Invalid input."


class AuthError(AppError):
    status_code = 401
    default_message = "Authentication failed."


class StorageError(AppError):
    status_code = 502
    default_message = "Storage request failed."


class UploadError(StorageError):
    """Upload rejected by storage, e.g. the key already exists."""
    status_code = 409
    default_message = "Upload failed."


class InvocationError(AppError):
    status_code = 502
    default_message = "Remote function invocation failed."


class BusyError(AppError):
    """The same action is already in flight."""
    status_code = 409
    default_message = "This action is already in progress."


class UnexpectedError(AppError):
    """Failure outside the taxonomy (transport errors, undecodable replies)."""
    status_code = 500
    default_message = "An unexpected error occurred. Check service logs."


def user_message(exc: BaseException) -> str:
    """Converts any exception into a single line suitable for the user."""
    if isinstance(exc, AppError):
        return exc.message
    return UnexpectedError.default_message
