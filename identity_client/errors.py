"""
Error taxonomy for the identity client.
Everything raised by the manager derives from AuthError so callers can catch one type.
"""
from pydantic import ValidationError


class AuthError(Exception):
    """Base class for identity client failures."""


class CredentialValidationError(AuthError):
    """Credentials do not match any accepted shape. Raised before any network call."""

    def __init__(self, message: str, issues: list[str] | None = None):
        self.issues = issues or []
        if self.issues:
            message = f"{message}: {' '.join(self.issues)}"
        super().__init__(message)


class ShapeMismatchError(AuthError):
    """Response body from the remote service does not have the expected shape."""

    def __init__(self, message: str, issues: list[str] | None = None):
        self.issues = issues or []
        if self.issues:
            message = f"{message}: {', '.join(self.issues)}"
        super().__init__(message)


class ProtocolError(AuthError):
    """
    Non-200 response or transport failure.
    status is None when no response was received at all.
    """

    def __init__(self, status: int | None, message: str):
        self.status = status
        self.message = message
        super().__init__(message)


class LoginFailedError(ProtocolError):
    pass


class RefreshFailedError(ProtocolError):
    pass


class RegistrationFailedError(ProtocolError):
    pass


class InsufficientCredentialsError(AuthError):
    """No login strategy that the supplied credentials made eligible produced a session."""


class SessionExpiredError(AuthError):
    """No valid session, even after an attempted refresh."""


class NotAuthenticatedError(SessionExpiredError):
    """No session at all; login first."""


def _schema_path(loc: tuple) -> str:
    if not loc:
        return "Schema"
    return "Schema." + ".".join(str(part) for part in loc)


def format_validation_errors(exc: ValidationError) -> list[str]:
    """
    Render pydantic issues as short sentences, e.g.
    "Schema.accessToken input should be a valid string (string_type)."
    """
    messages = []
    for issue in exc.errors():
        text = issue.get("msg", "")
        # Model-level validators prefix their message with "Value error, "
        if text.startswith("Value error, "):
            text = text[len("Value error, "):]
        if text:
            text = text[0].lower() + text[1:]
        messages.append(f"{_schema_path(issue.get('loc', ()))} {text} ({issue.get('type', 'unknown')}).")
    return messages
