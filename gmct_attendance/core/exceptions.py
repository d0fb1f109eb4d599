"""
Error taxonomy for the offline sync subsystem.

Read paths against the local store degrade on ``StorageError``; write paths
propagate it. ``RemoteSubmissionError`` is caught per item by the sync
orchestrator and never reaches the UI.
"""

from datetime import datetime
from typing import Any, Dict, Optional


class GMCTError(Exception):
    """Base exception for the attendance application."""


class ConfigurationError(GMCTError):
    """Raised when required settings are missing or invalid."""


class StorageError(GMCTError):
    """Raised when the local durable store fails to read or write."""

    def __init__(self, message: str, operation: Optional[str] = None,
                 original_exception: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.original_exception = original_exception


class RemoteSubmissionError(GMCTError):
    """Raised when the remote store rejects or fails a request."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        retryable: bool = True,
        details: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.retryable = retryable
        self.details = details or {}
        self.original_exception = original_exception
        self.timestamp = datetime.utcnow()

    @classmethod
    def from_status(cls, status_code: int, message: str,
                    details: Optional[Dict[str, Any]] = None) -> "RemoteSubmissionError":
        # 4xx means the payload itself was refused; 408/429 are transient.
        retryable = status_code >= 500 or status_code in (408, 429)
        return cls(message, status_code=status_code, retryable=retryable, details=details)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging."""
        return {
            'message': self.message,
            'status_code': self.status_code,
            'retryable': self.retryable,
            'details': self.details,
            'timestamp': self.timestamp.isoformat(),
            'original_exception': str(self.original_exception) if self.original_exception else None,
        }
