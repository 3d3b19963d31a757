"""
Referral API Exception Hierarchy

Structured exception classes for the authentication subsystem. Every error
carries an HTTP status, a machine-readable code and a client-safe message.

Exception Hierarchy:
    AuthError
    ├── ValidationError
    │   ├── DuplicateUsernameError
    │   └── DuplicateEmailError
    ├── AuthenticationError
    ├── NotAuthenticatedError
    ├── AccountLockedError
    ├── AccountInactiveError
    ├── EmailNotVerifiedError
    ├── AccountNotFoundError
    ├── AlreadyVerifiedError
    ├── TokenInvalidError
    └── InternalError
"""
from typing import Optional, Dict, Any, List


class AuthError(Exception):
    """
    Base exception for all auth errors.

    Attributes:
        message: Client-safe error description
        code: Machine-readable error code for programmatic handling
        status_code: HTTP status the API layer responds with
        details: Additional client-safe context
    """

    default_code: str = "internal_error"
    default_message: str = "An unexpected error occurred. Please try again later."
    status_code: int = 500

    def __init__(
        self,
        message: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON error body."""
        body = {"error": self.code, "message": self.message}
        body.update(self.details)
        return body

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


class ValidationError(AuthError):
    """Malformed or missing input. Carries field-level detail."""
    default_code = "validation_error"
    default_message = "Invalid input"
    status_code = 400

    def __init__(self, message: Optional[str] = None, field: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        if field:
            details.setdefault("errors", [{"field": field, "message": message or self.default_message}])
        super().__init__(message, details=details, **kwargs)

    @classmethod
    def from_fields(cls, errors: List[Dict[str, str]]) -> "ValidationError":
        message = errors[0]["message"] if errors else cls.default_message
        return cls(message, details={"errors": errors})


class DuplicateUsernameError(ValidationError):
    default_code = "duplicate_username"
    default_message = "Username already taken"

    def __init__(self, message: Optional[str] = None, **kwargs):
        super().__init__(message, field="username", **kwargs)


class DuplicateEmailError(ValidationError):
    default_code = "duplicate_email"
    default_message = "Email already registered"

    def __init__(self, message: Optional[str] = None, **kwargs):
        super().__init__(message, field="email", **kwargs)


class AuthenticationError(AuthError):
    """Bad credentials. Never says whether the username or the password was wrong."""
    default_code = "invalid_credentials"
    default_message = "Invalid credentials"
    status_code = 401


class NotAuthenticatedError(AuthError):
    default_code = "not_authenticated"
    default_message = "Not authenticated"
    status_code = 401


class AccountLockedError(AuthError):
    default_code = "account_locked"
    status_code = 423

    def __init__(self, remaining_minutes: int, message: Optional[str] = None, **kwargs):
        self.remaining_minutes = remaining_minutes
        if message is None:
            unit = "minute" if remaining_minutes == 1 else "minutes"
            message = f"Account locked. Try again in {remaining_minutes} {unit}."
        details = kwargs.pop("details", {})
        details.setdefault("remaining_minutes", remaining_minutes)
        super().__init__(message, details=details, **kwargs)


class AccountInactiveError(AuthError):
    default_code = "account_inactive"
    default_message = "Account is disabled"
    status_code = 403


class EmailNotVerifiedError(AuthError):
    default_code = "email_not_verified"
    default_message = "Email not verified. Check your inbox."
    status_code = 403


class AccountNotFoundError(AuthError):
    default_code = "account_not_found"
    default_message = "User not found"
    status_code = 404


class AlreadyVerifiedError(AuthError):
    default_code = "already_verified"
    default_message = "Email is already verified"
    status_code = 400


class TokenInvalidError(AuthError):
    """Same message for unknown, wrong-kind, expired and already-consumed tokens."""
    default_code = "invalid_token"
    default_message = "Invalid or expired token"
    status_code = 400


class InternalError(AuthError):
    """Generic failure. Details are logged server-side only."""
