"""Custom exceptions for the Fusen vault engine.

Provides a structured exception hierarchy with error codes and
machine-readable error information for better error handling.
"""
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class ErrorCode(Enum):
    """Error codes for machine-readable error identification."""

    # Note errors (1xxx)
    NOTE_NOT_FOUND = 1001

    # Path errors (2xxx)
    PATH_NO_FILENAME = 2001
    PATH_NO_PARENT = 2002

    # Tag errors (3xxx)
    TAG_INVALID = 3001

    # Storage errors (4xxx)
    STORAGE_READ_FAILED = 4001
    STORAGE_WRITE_FAILED = 4002
    STORAGE_RENAME_FAILED = 4003
    STORAGE_DELETE_FAILED = 4004
    STORAGE_COPY_FAILED = 4005
    STORAGE_LINK_FAILED = 4006
    STORAGE_TARGET_EXISTS = 4007

    # Bulk errors (44xx)
    BULK_OPERATION_FAILED = 4401

    # Archive errors (45xx)
    ARCHIVE_FAILED = 4501
    ARCHIVE_PARTIAL = 4502

    # State errors (5xxx)
    STATE_LOCK_POISONED = 5001

    # Configuration errors (6xxx)
    CONFIG_INVALID = 6001
    SETTINGS_INVALID = 6002

    # Validation errors (7xxx)
    VALIDATION_FAILED = 7001


class FusenError(Exception):
    """Base exception for all vault engine errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for serialization."""
        return {
            "error": self.__class__.__name__,
            "code": self.code.value,
            "code_name": self.code.name,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"[{self.code.name}] {self.message} ({detail_str})"
        return f"[{self.code.name}] {self.message}"


class PathError(FusenError):
    """Raised when a note path lacks a file name or a parent directory."""

    def __init__(self, path: str, code: ErrorCode = ErrorCode.PATH_NO_FILENAME):
        reason = "no parent" if code == ErrorCode.PATH_NO_PARENT else "invalid path"
        super().__init__(
            f"Cannot plan effect for '{path}': {reason}",
            code=code,
            details={"path": path},
        )
        self.path = path


class NoteNotFoundError(FusenError):
    """Raised when a note file does not exist."""

    def __init__(self, path: str, message: Optional[str] = None):
        super().__init__(
            message or f"Note '{path}' not found",
            code=ErrorCode.NOTE_NOT_FOUND,
            details={"path": path},
        )
        self.path = path


class StorageError(FusenError):
    """Raised for storage/persistence errors coming out of the gateway."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        path: Optional[str] = None,
        code: ErrorCode = ErrorCode.STORAGE_READ_FAILED,
        original_error: Optional[Exception] = None,
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if path:
            # Only the file name, not the full location
            details["path_hint"] = path.replace("\\", "/").split("/")[-1]
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.operation = operation
        self.path = path
        self.original_error = original_error


class ArchiveError(FusenError):
    """Raised when a note cannot be moved into the archive tree.

    Per-tag symlink failures do not raise; they are collected in the
    archive report. ``link_errors`` is populated only when a caller chooses
    to escalate a partial fan-out.
    """

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        link_errors: Optional[List[Tuple[str, str]]] = None,
        code: ErrorCode = ErrorCode.ARCHIVE_FAILED,
        original_error: Optional[Exception] = None,
    ):
        details: Dict[str, Any] = {}
        if path:
            details["path"] = path
        if link_errors:
            details["failed_tags"] = [tag for tag, _ in link_errors][:10]
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.path = path
        self.link_errors: List[Tuple[str, str]] = list(link_errors or [])
        self.original_error = original_error


class BulkOperationError(FusenError):
    """Raised when a command over many notes finished with failures.

    Every item is attempted; ``failed_paths`` lists the ones that failed.
    The ``details`` dict carries at most 10 of them.
    """

    def __init__(
        self,
        message: str,
        operation: str,
        total_count: int = 0,
        success_count: int = 0,
        failed_paths: Optional[List[str]] = None,
        code: ErrorCode = ErrorCode.BULK_OPERATION_FAILED,
    ):
        details: Dict[str, Any] = {
            "operation": operation,
            "total_count": total_count,
            "success_count": success_count,
            "failed_count": total_count - success_count,
        }
        if failed_paths:
            details["failed_paths"] = failed_paths[:10]

        super().__init__(message, code=code, details=details)
        self.operation = operation
        self.total_count = total_count
        self.success_count = success_count
        self.failed_paths: List[str] = list(failed_paths or [])


class LockPoisonedError(FusenError):
    """Raised when the shared state lock was left poisoned by a failed update.

    The mirror may be half-mutated; callers must treat this as fatal.
    """

    def __init__(self, message: str = "Vault state lock is poisoned"):
        super().__init__(message, code=ErrorCode.STATE_LOCK_POISONED)


class ConfigurationError(FusenError):
    """Raised for configuration and settings errors."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        code: ErrorCode = ErrorCode.CONFIG_INVALID,
    ):
        details = {}
        if config_key:
            details["config_key"] = config_key

        super().__init__(message, code=code, details=details)
        self.config_key = config_key


class ValidationError(FusenError):
    """Raised for general validation errors."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
    ):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)[:100]

        super().__init__(message, code=code, details=details)
        self.field = field
        self.value = value
