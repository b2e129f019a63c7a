from __future__ import annotations
from typing import Any, List, Optional


class PortfolioError(Exception):
    """Base for errors that map onto an HTTP status at the app boundary."""
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, errors: Optional[List[Any]] = None):
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)


class ValidationFailed(PortfolioError):
    status_code = 400
    default_message = "Validation failed"


class Conflict(PortfolioError):
    status_code = 400
    default_message = "Resource already exists"


class WrongRole(PortfolioError):
    status_code = 400
    default_message = "User is not a student"


class Unauthorized(PortfolioError):
    status_code = 401
    default_message = "Not authorized to access this route"


class InvalidCredentials(Unauthorized):
    default_message = "Invalid credentials"


class RoleMismatch(Unauthorized):
    def __init__(self, actual_role: str):
        self.actual_role = actual_role
        super().__init__(f"Invalid role selection. This email is registered as a {actual_role}.")


class PendingApproval(Unauthorized):
    default_message = "Your account is pending approval. Please contact administrator."


class Forbidden(PortfolioError):
    status_code = 403
    default_message = "Forbidden"


class NotFound(PortfolioError):
    status_code = 404
    default_message = "Not found"


class PayloadTooLarge(PortfolioError):
    status_code = 413
    default_message = "File too large. Maximum size is 10MB per file."


class UnsupportedMediaType(PortfolioError):
    status_code = 415
    default_message = "Only image files are allowed (JPEG, PNG, GIF, etc.)"


class UpstreamError(PortfolioError):
    status_code = 500
    default_message = "Image host request failed"
