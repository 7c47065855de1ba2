"""Error taxonomy raised by the service modules.

Routers never build error responses themselves; ``main.py`` registers
handlers that turn these into ``{"error": ...}`` / ``{"errors": [...]}``.
"""

from typing import Any, Optional


class AppError(Exception):
    status_code = 500
    default_message = "internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_body(self) -> dict[str, Any]:
        return {"error": self.message}


class ValidationError(AppError):
    status_code = 400
    default_message = "invalid input"

    def __init__(self, message: Optional[str] = None, *, errors: Optional[list[dict[str, Any]]] = None):
        super().__init__(message)
        self.errors = errors or []

    def to_body(self) -> dict[str, Any]:
        if self.errors:
            return {"errors": self.errors}
        return {"error": self.message}


class AuthenticationError(AppError):
    status_code = 401
    default_message = "authentication required"


class AuthorizationError(AppError):
    status_code = 403
    default_message = "insufficient permissions"


class NotFoundError(AppError):
    status_code = 404
    default_message = "not found"


class ConflictError(AppError):
    status_code = 409
    default_message = "conflict"


class InternalError(AppError):
    pass
