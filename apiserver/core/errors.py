"""Error Hierarchy: typed, categorized exceptions for every apiserver failure mode.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Configuration errors are raised before the listener starts, never per request
    - Request errors (400-level) are recoverable; listener/internal errors are critical
    - to_response() produces the REST envelope, with no internal details leaked

Design Decisions:
    - Single hierarchy with ApiServerError base: one FastAPI handler renders all of them
    - ErrorContext as dataclass: carries prefix/path/variable without coupling to logging
"""

from dataclasses import dataclass, field
from enum import Enum
from datetime import datetime, timezone


class ErrorSeverity(str, Enum):
    """How loudly a failure is logged; warnings are client-side and expected."""
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    CONFIGURATION = "configuration"
    VALIDATION = "validation"
    TIMEOUT = "timeout"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Where the error happened: which prefix, route path or variable."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    prefix: str | None = None
    path: str | None = None
    variable: str | None = None

    def located(self) -> dict[str, str]:
        """Location fields that were set, safe to return to clients."""
        places = {"prefix": self.prefix, "path": self.path, "variable": self.variable}
        return {k: v for k, v in places.items() if v is not None}


class ApiServerError(Exception):
    """Base exception for all apiserver errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Envelope rendered for clients; context lists only the fields that were set."""
        body = dict(
            code=self.code,
            message=self.message,
            category=self.category.value,
            severity=self.severity.value,
            timestamp=self.context.timestamp.isoformat(),
        )
        located = self.context.located()
        if located:
            body["context"] = located
        return {"error": body}


# ─── Configuration Errors (startup) ─────────────────────────────

class ConfigurationError(ApiServerError):
    """Server could not be configured. Raised before anything listens."""
    def __init__(
        self, message: str, code: str = "CONFIGURATION_ERROR",
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, code, ErrorCategory.CONFIGURATION,
            ErrorSeverity.CRITICAL, context, 500,
        )


class InvalidPrefixError(ConfigurationError):
    """Prefix is empty or not of the form [/]name[/]."""
    def __init__(self, prefix: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.prefix = prefix
        super().__init__(f"prefix ({prefix}) is invalid", "INVALID_PREFIX", ctx)
        self.prefix = prefix


class InvalidSettingError(ConfigurationError):
    """A setting failed validation (port range, negative timeout, ...)."""
    def __init__(self, setting: str, reason: str, context: ErrorContext | None = None):
        super().__init__(
            f"invalid {setting}: {reason}", "INVALID_SETTING", context,
        )
        self.setting = setting
        self.reason = reason


class DuplicatePathError(ConfigurationError):
    """Same path registered twice for one method within a specification."""
    def __init__(
        self, method: str, path: str, prefix: str,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.prefix = prefix
        ctx.path = path
        super().__init__(
            f"duplicate {method} path: {path}", "DUPLICATE_PATH", ctx,
        )
        self.method = method
        self.path = path


class DuplicatePrefixError(ConfigurationError):
    """Two specifications claim the same prefix."""
    def __init__(self, prefix: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.prefix = prefix
        super().__init__(
            f"attempt to register {prefix} twice", "DUPLICATE_PREFIX", ctx,
        )
        self.prefix = prefix


class ConfigurationFrozenError(ConfigurationError):
    """Mutation attempted after the server was built from the configuration."""
    def __init__(self, what: str, context: ErrorContext | None = None):
        super().__init__(
            f"{what} is frozen and can no longer be modified",
            "CONFIGURATION_FROZEN", context,
        )


# ─── Request Errors (per request) ───────────────────────────────

class PathVariableConversionError(ApiServerError):
    """Path variable present but not parseable as the requested type."""
    def __init__(
        self, name: str, value: str, type_name: str,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.variable = name
        super().__init__(
            f"path variable '{name}' ({value}) is not a valid {type_name}",
            "PATH_VARIABLE_INVALID", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, ctx, 400,
        )
        self.name = name
        self.value = value
        self.type_name = type_name


class UnsupportedPathVariableTypeError(ApiServerError):
    """Handler asked for a path variable type there is no accessor for."""
    def __init__(self, name: str, type_name: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.variable = name
        super().__init__(
            f"unsupported type {type_name} for path variable '{name}'",
            "PATH_VARIABLE_UNSUPPORTED_TYPE", ErrorCategory.INTERNAL,
            ErrorSeverity.CRITICAL, ctx, 500,
        )
        self.name = name
        self.type_name = type_name


class RequestReadTimeoutError(ApiServerError):
    """Request body was not received within the read timeout."""
    def __init__(self, timeout: float, context: ErrorContext | None = None):
        super().__init__(
            f"request not read within {timeout:g}s",
            "REQUEST_READ_TIMEOUT", ErrorCategory.TIMEOUT,
            ErrorSeverity.WARNING, context, 408,
        )
        self.timeout = timeout


class ResponseWriteTimeoutError(ApiServerError):
    """Handler did not produce a response within the write timeout."""
    def __init__(self, timeout: float, context: ErrorContext | None = None):
        super().__init__(
            f"response not written within {timeout:g}s",
            "RESPONSE_WRITE_TIMEOUT", ErrorCategory.TIMEOUT,
            ErrorSeverity.ERROR, context, 503,
        )
        self.timeout = timeout
