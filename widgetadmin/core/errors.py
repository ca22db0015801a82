"""Domain errors. Each carries the HTTP status it surfaces with."""

from typing import Any


class AppError(Exception):
    """Base for errors that reach the client unchanged as {message, status, errors?}."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(
        self,
        message: str | None = None,
        errors: list[Any] | None = None,
        headers: dict[str, str] | None = None,
        **extra: Any,
    ) -> None:
        self.message = message or self.default_message
        self.errors = errors
        self.headers = headers
        self.extra = extra
        super().__init__(self.message)

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"message": self.message, "status": self.status_code}
        if self.errors is not None:
            body["errors"] = self.errors
        body.update(self.extra)
        return body


class InvalidCredentials(AppError):
    """Bad email or password. The message never says which."""

    status_code = 401
    default_message = "Invalid credentials"


class InvalidToken(AppError):
    """Missing, malformed, expired or unsigned token, or a subject that no longer resolves."""

    status_code = 401
    default_message = "Invalid or expired token"

    def __init__(self, message: str | None = None, **kwargs: Any) -> None:
        kwargs.setdefault("headers", {"WWW-Authenticate": "Bearer"})
        super().__init__(message, **kwargs)


class InsufficientGrant(AppError):
    status_code = 403
    default_message = "Not authorized"


class ProtectedRoleError(AppError):
    status_code = 403
    default_message = "Cannot modify built-in role"


class NotFound(AppError):
    status_code = 404
    default_message = "Not found"


class Conflict(AppError):
    status_code = 409
    default_message = "Conflict"


class DuplicateUser(Conflict):
    default_message = "User already exists"


class ValidationError(AppError):
    """Malformed input; `errors` holds field-level entries."""

    status_code = 400
    default_message = "Validation failed"
