"""Two-slot (value, error) results returned by every engine operation"""

from dataclasses import dataclass
from enum import Enum
from functools import wraps
from typing import Any, Callable, Dict, NamedTuple

from budget_cockpit.domain.exceptions import EmptyResultError, RecordValidationError


class ErrorKind(str, Enum):
    VALIDATION = "VALIDATION"


@dataclass(frozen=True)
class AppError:
    """User-facing error carried in the error slot of a Result"""

    kind: ErrorKind
    message: str
    recoverable: bool = True
    details: Dict[str, Any] | None = None

    @classmethod
    def from_exception(cls, exc: RecordValidationError) -> "AppError":
        return cls(kind=ErrorKind.VALIDATION, message=exc.message, recoverable=True, details=exc.details)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "recoverable": self.recoverable,
            "details": self.details,
        }


class Result(NamedTuple):
    """Exactly one of value / error is set"""

    value: Any
    error: AppError | None

    @property
    def ok(self) -> bool:
        return self.error is None


def success(value: Any) -> Result:
    return Result(value, None)


def failure(message: str, details: Dict[str, Any] | None = None) -> Result:
    return Result(None, AppError(ErrorKind.VALIDATION, message, True, details))


def result_boundary(func: Callable[..., Any]) -> Callable[..., Result]:
    """
    Turn a raising engine function into one that returns a Result.

    Validation errors raised anywhere below the boundary become the error slot;
    a plain return value becomes the value slot.
    """

    @wraps(func)
    def wrapper(*args, **kwargs) -> Result:
        try:
            value = func(*args, **kwargs)
        except RecordValidationError as exc:
            return Result(None, AppError.from_exception(exc))
        if isinstance(value, Result):
            return value
        return Result(value, None)

    return wrapper


def unwrap(result: Result, context: str) -> Any:
    """
    Fail fast on a composed call.

    Re-raises the error slot so the enclosing boundary returns it unchanged, and
    rejects an empty (None, None) result as an internal-consistency error.
    """
    value, error = result
    if error is not None:
        raise RecordValidationError(error.message, error.details)
    if value is None:
        raise EmptyResultError(context)
    return value
