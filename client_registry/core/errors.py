"""
Application Exception Hierarchy
Domain-level errors raised by the client registry.
Store-level failures that are not listed here propagate unchanged.
"""
from typing import Optional, Dict, Any, List, Sequence
from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
import traceback
import uuid


class ErrorCode(str, Enum):
    """Standardized error codes"""
    # General errors (1xxx)
    INTERNAL_ERROR = "ERR_1000"
    NOT_FOUND = "ERR_1002"
    CONFIGURATION_ERROR = "ERR_1006"

    # Resource errors (4xxx)
    CLIENT_NOT_FOUND = "ERR_4010"
    CLIENT_VERSION_NOT_FOUND = "ERR_4011"

    # Data errors (7xxx)
    DUPLICATE_KEY = "ERR_7001"


@dataclass
class ErrorContext:
    """Additional context for errors"""
    error_id: str = field(default_factory=lambda: f"err_{uuid.uuid4().hex[:12]}")
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    extra: Dict[str, Any] = field(default_factory=dict)


class AppError(Exception):
    """
    Base application exception.

    All custom exceptions should inherit from this class.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
        context: Optional[ErrorContext] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}
        self.cause = cause
        self.context = context or ErrorContext()

    @property
    def cause_trace(self) -> Optional[str]:
        """Formatted traceback of ``cause``, if any"""
        if self.cause is None:
            return None
        return "".join(traceback.format_exception(
            type(self.cause), self.cause, self.cause.__traceback__
        ))

    def to_dict(self, include_trace: bool = False) -> Dict[str, Any]:
        """Convert exception to dictionary"""
        result = {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
            "error_id": self.context.error_id,
            "timestamp": self.context.timestamp.isoformat()
        }

        if include_trace and self.cause is not None:
            result["trace"] = self.cause_trace

        return result

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"


# ==================== Resource Errors ====================

class NotFoundError(AppError):
    """Resource not found"""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        message: Optional[str] = None,
        code: ErrorCode = ErrorCode.NOT_FOUND,
        **kwargs
    ):
        if message is None:
            message = f"{resource_type} not found"
            if resource_id:
                message = f"{resource_type} '{resource_id}' not found"

        details = kwargs.pop("details", {})
        details["resource_type"] = resource_type
        if resource_id:
            details["resource_id"] = resource_id

        super().__init__(message, code, details=details, **kwargs)


class ClientNotFoundError(NotFoundError):
    """Client not found"""

    def __init__(self, client_id: Optional[str] = None, **kwargs):
        super().__init__(
            "Client", client_id, code=ErrorCode.CLIENT_NOT_FOUND, **kwargs
        )


class ClientVersionNotFoundError(NotFoundError):
    """Client version not found"""

    def __init__(self, client_version_id: Optional[str] = None, **kwargs):
        super().__init__(
            "ClientVersion", client_version_id,
            code=ErrorCode.CLIENT_VERSION_NOT_FOUND, **kwargs
        )


# ==================== Data Errors ====================

class DuplicateKeyError(AppError):
    """
    A write was rejected because it violates a uniqueness constraint.

    ``fields`` names the colliding field(s), e.g. ``["name"]`` or
    ``["client_version_id", "environment_id"]``.
    """

    def __init__(
        self,
        fields: Sequence[str],
        message: Optional[str] = None,
        value: Optional[str] = None,
        **kwargs
    ):
        fields = list(fields)
        if message is None:
            message = f"Duplicate key for {', '.join(fields)}"

        details = kwargs.pop("details", {})
        details["fields"] = fields
        if value:
            details["value"] = value

        super().__init__(message, ErrorCode.DUPLICATE_KEY, details=details, **kwargs)

    @property
    def fields(self) -> List[str]:
        return self.details["fields"]


# ==================== Configuration Errors ====================

class ConfigurationError(AppError):
    """Invalid or incomplete configuration"""

    def __init__(self, message: str = "Invalid configuration", setting: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        if setting:
            details["setting"] = setting

        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, details=details, **kwargs)
