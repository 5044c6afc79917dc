"""Domain-specific exceptions"""

from typing import Any, Dict


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class RecordValidationError(DomainException):
    """Input record, snapshot or argument failed validation"""

    def __init__(self, message: str, details: Dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details


class EmptyResultError(RecordValidationError):
    """A composed operation returned neither a value nor an error"""

    def __init__(self, context: str, details: Dict[str, Any] | None = None):
        super().__init__(f"{context} is unexpectedly empty", details)
