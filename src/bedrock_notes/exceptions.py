"""Custom exceptions for Bedrock Notes.

Provides a structured exception hierarchy with error codes and
machine-readable error information, so callers branch on the kind of
failure rather than on message text.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Error codes for machine-readable error identification."""

    # Note errors (1xxx)
    NOTE_NOT_FOUND = 1001
    EMBEDDING_NOT_FOUND = 1002

    # Link errors (2xxx)
    LINK_INVALID = 2001
    LINK_NOT_FOUND = 2002

    # Storage errors (4xxx)
    STORAGE_READ_FAILED = 4001
    STORAGE_WRITE_FAILED = 4002
    STORAGE_DELETE_FAILED = 4003

    # Search errors (5xxx)
    SEARCH_INVALID_QUERY = 5002

    # Configuration errors (6xxx)
    CONFIG_MISSING = 6002

    # Validation errors (7xxx)
    VALIDATION_FAILED = 7001
    PATH_TRAVERSAL_DETECTED = 7005

    # Embedding provider errors (8xxx)
    PROVIDER_REQUEST_FAILED = 8001
    PROVIDER_BAD_STATUS = 8002
    PROVIDER_BAD_RESPONSE = 8003


class BedrockError(Exception):
    """Base exception for all Bedrock Notes errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"[{self.code.name}] {self.message} ({detail_str})"
        return f"[{self.code.name}] {self.message}"


class ConfigError(BedrockError):
    """Raised when the provider credential or other configuration is missing or invalid."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        code: ErrorCode = ErrorCode.CONFIG_MISSING
    ):
        details = {}
        if config_key:
            details["config_key"] = config_key

        super().__init__(message, code=code, details=details)
        self.config_key = config_key


class ProviderError(BedrockError):
    """Raised when the embedding provider cannot be reached or answers with an error."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: ErrorCode = ErrorCode.PROVIDER_REQUEST_FAILED,
        original_error: Optional[Exception] = None
    ):
        details: Dict[str, Any] = {}
        if status_code is not None:
            details["status_code"] = status_code
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.status_code = status_code
        self.original_error = original_error


class NotFoundError(BedrockError):
    """Raised when a note or embedding a query depends on does not exist."""

    def __init__(self, path: str, message: str, code: ErrorCode):
        super().__init__(message, code=code, details={"path": path})
        self.path = path


class NoteNotFoundError(NotFoundError):
    """Raised when a note cannot be found."""

    def __init__(self, path: str, message: Optional[str] = None):
        super().__init__(
            path,
            message or f"Note '{path}' not found",
            code=ErrorCode.NOTE_NOT_FOUND,
        )


class EmbeddingNotFoundError(NotFoundError):
    """Raised when a note exists but has not been embedded yet."""

    def __init__(self, path: str, message: Optional[str] = None):
        super().__init__(
            path,
            message or f"No embedding stored for note '{path}'",
            code=ErrorCode.EMBEDDING_NOT_FOUND,
        )


class StorageError(BedrockError):
    """Raised for storage/persistence errors."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        path: Optional[str] = None,
        code: ErrorCode = ErrorCode.STORAGE_READ_FAILED,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if path:
            details["path"] = path
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.operation = operation
        self.path = path
        self.original_error = original_error


class ValidationError(BedrockError):
    """Raised for general validation errors (bad paths, bad limits)."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED
    ):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)[:100]

        super().__init__(message, code=code, details=details)
        self.field = field
        self.value = value


class LinkError(BedrockError):
    """Raised for link-related errors."""

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        target: Optional[str] = None,
        code: ErrorCode = ErrorCode.LINK_INVALID
    ):
        details = {}
        if source:
            details["source"] = source
        if target:
            details["target"] = target

        super().__init__(message, code=code, details=details)
        self.source = source
        self.target = target
