"""Core services: path normalization, severity mapping, entities and issue construction."""

from .exceptions import (
    AdapterError,
    AdapterTimeoutError,
    APIError,
    AuthenticationError,
    CancelledError,
    ClientError,
    ConfigurationError,
    InvalidConfigError,
    InvalidIssueError,
    InvalidPathError,
    NetworkError,
    ParseError,
    RateLimitError,
    SchemaVersionError,
    TopolopError,
    UnavailableError,
)

__all__ = [
    "TopolopError",
    "AdapterError",
    "UnavailableError",
    "ParseError",
    "CancelledError",
    "AdapterTimeoutError",
    "ClientError",
    "NetworkError",
    "APIError",
    "RateLimitError",
    "AuthenticationError",
    "InvalidPathError",
    "InvalidIssueError",
    "SchemaVersionError",
    "ConfigurationError",
    "InvalidConfigError",
]
