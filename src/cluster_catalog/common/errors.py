from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ErrorCode(str, Enum):
    """Standardized error codes for cluster and source management."""
    INVALID_CLUSTER = "INVALID_CLUSTER"
    UNKNOWN_ENGINE = "UNKNOWN_ENGINE"
    MISSING_CREDENTIALS = "MISSING_CREDENTIALS"
    DUPLICATE_SOURCE = "DUPLICATE_SOURCE"
    UNKNOWN_CLUSTER = "UNKNOWN_CLUSTER"
    TRANSPORT_FAILURE = "TRANSPORT_FAILURE"
    TRANSPORT_TIMEOUT = "TRANSPORT_TIMEOUT"
    CIRCUIT_OPEN = "CIRCUIT_OPEN"
    VERSION_DETECTION_FAILED = "VERSION_DETECTION_FAILED"
    SOURCE_LIST_FAILED = "SOURCE_LIST_FAILED"
    INTROSPECTION_FAILED = "INTROSPECTION_FAILED"


class CatalogError(Exception):
    """Base class for every error raised by cluster_catalog."""

    default_code = ErrorCode.TRANSPORT_FAILURE

    def __init__(self, message: str, error_code: Optional[ErrorCode] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code


class ConfigurationError(CatalogError):
    """Invalid cluster configuration or missing transport parameters.

    Fatal at construction time: a manager is never built from a
    configuration that raised this.
    """

    default_code = ErrorCode.INVALID_CLUSTER


class TransportError(CatalogError):
    """A single transport call failed (network, protocol, timeout).

    Always recoverable. The manager logs it and treats the affected step
    as a no-op for the current cycle.
    """

    default_code = ErrorCode.TRANSPORT_FAILURE

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        cluster: Optional[str] = None,
        source: Optional[str] = None,
    ):
        super().__init__(message, error_code)
        self.cluster = cluster
        self.source = source


class IntrospectionFailure(BaseModel):
    """Represents the last failed introspection of a source.

    Attributes:
        source (str): The raw source identifier that failed.
        message (str): A human-readable error message.
        error_code (ErrorCode): The standardized error code.
        occurred_at (datetime): When the failure was recorded (UTC).
    """
    model_config = ConfigDict(extra="ignore", frozen=True)

    source: str
    message: str
    error_code: ErrorCode = ErrorCode.INTROSPECTION_FAILED
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_exception(cls, source: str, exc: BaseException) -> "IntrospectionFailure":
        code = getattr(exc, "error_code", None) or ErrorCode.INTROSPECTION_FAILED
        return cls(source=source, message=str(exc) or type(exc).__name__, error_code=code)
