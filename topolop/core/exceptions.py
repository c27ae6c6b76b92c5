"""Custom exception hierarchy for Topolop.

Every error an adapter or the core can raise belongs to a named kind, so
the harness can record adapter outcomes without matching on messages.
"""


class TopolopError(Exception):
    """Base exception for all Topolop errors.

    All custom exceptions inherit from this class so callers can catch
    every Topolop-specific error with a single except clause.
    """

    kind = "Error"


# =============================================================================
# Adapter / Tool Errors
# =============================================================================

class AdapterError(TopolopError):
    """Base exception for failures inside an adapter run."""

    kind = "AdapterError"


class UnavailableError(AdapterError):
    """Tool binary or remote API cannot be reached."""

    kind = "Unavailable"


class ParseError(AdapterError):
    """Tool output is malformed and cannot be converted."""

    kind = "ParseFailure"


class CancelledError(AdapterError):
    """Adapter run was cancelled through its cancellation token."""

    kind = "Cancelled"


class AdapterTimeoutError(AdapterError):
    """Adapter exceeded its deadline."""

    kind = "Timeout"


# =============================================================================
# Client Errors (API/Network)
# =============================================================================

class ClientError(AdapterError):
    """Base exception for API client errors."""

    kind = "Unavailable"


class NetworkError(ClientError):
    """Network connectivity or request error."""
    pass


class APIError(ClientError):
    """Error returned by an external API."""

    def __init__(self, message: str, status_code: int | None = None, response_body: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class RateLimitError(ClientError):
    """Request budget exhausted for this run."""

    kind = "RateLimited"

    def __init__(self, message: str, retry_after: float | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class AuthenticationError(ClientError):
    """API authentication failed (invalid/missing credentials)."""

    kind = "AuthFailed"


# =============================================================================
# Validation Errors
# =============================================================================

class ValidationError(TopolopError):
    """Base exception for input validation errors."""

    kind = "ValidationError"


class InvalidPathError(ValidationError):
    """A tool-supplied file identifier is not a usable path."""

    kind = "InvalidPath"


class InvalidIssueError(ValidationError):
    """An issue failed the constructor's invariants.

    Attributes:
        reasons: list of (field, message) pairs, one per violated rule
    """

    kind = "InvalidIssue"

    def __init__(self, reasons: list[tuple[str, str]]):
        self.reasons = list(reasons)
        summary = "; ".join(f"{field}: {message}" for field, message in self.reasons)
        super().__init__(f"Invalid issue ({summary})")


class SchemaVersionError(ParseError):
    """Serialized report has an incompatible major schema version."""
    pass


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(TopolopError):
    """Base exception for configuration errors."""

    kind = "ConfigurationError"


class InvalidConfigError(ConfigurationError):
    """Configuration file is invalid or malformed."""
    pass


class MissingConfigError(ConfigurationError):
    """Required configuration (such as a credential) is missing."""
    pass

