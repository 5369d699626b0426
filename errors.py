"""Taxonomía de errores del panel.

Cada excepción lleva el código HTTP y un mensaje apto para el cliente; los
manejadores de app.py las traducen a respuestas {"error": detail}.
"""


class PanelError(Exception):
    """Error base: nunca incluye detalles internos en `detail`."""
    status_code = 500
    detail = "Internal server error"

    def __init__(self, detail: str = None):
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


# ----------------------------- 400 -------------------------------
class ValidationError(PanelError):
    status_code = 400
    detail = "Invalid request"


class PasswordMismatch(ValidationError):
    detail = "Passwords do not match"


class PasswordTooShort(ValidationError):
    detail = "Password must be at least 6 characters"


class UsernameTooShort(ValidationError):
    detail = "Username must be at least 3 characters"


class EmptyMessage(ValidationError):
    detail = "Message cannot be empty"


class MessageTooLong(ValidationError):
    detail = "Message is too long"


class InvalidStatus(ValidationError):
    detail = "Invalid status"


class ConflictError(PanelError):
    status_code = 400
    detail = "Conflict"


class UsernameConflict(ConflictError):
    detail = "Username already exists in pending or approved requests"


# ------------------------- 401 / 403 -----------------------------
class AuthenticationError(PanelError):
    status_code = 401
    detail = "Authentication required"


class InvalidCredentials(AuthenticationError):
    detail = "Invalid credentials"


class TokenMissing(AuthenticationError):
    detail = "Access token required"


class TokenInvalid(AuthenticationError):
    status_code = 403
    detail = "Invalid token"


class TokenExpired(AuthenticationError):
    status_code = 403
    detail = "Token expired"


class Forbidden(AuthenticationError):
    status_code = 403
    detail = "Admin access required"


# ----------------------------- 404 -------------------------------
class NotFound(PanelError):
    status_code = 404
    detail = "Not found"


class InternalError(PanelError):
    pass
