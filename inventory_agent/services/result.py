from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")

# Failure codes shared by the parsers and media attachment.
INVALID_VALUE = "invalid_value"
NOT_FOUND = "not_found"
LIMIT_REACHED = "limit_reached"
TOO_LARGE = "too_large"
TOO_LONG = "too_long"


@dataclass
class Result(Generic[T]):
    """Outcome of a step that can be rejected without raising.

    `error` is the user-facing reason; `error_code` is one of the codes above.
    """

    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @staticmethod
    def success(value: T) -> "Result[T]":
        return Result(ok=True, value=value)

    @staticmethod
    def failure(error: str, code: str = INVALID_VALUE) -> "Result[T]":
        return Result(ok=False, error=error, error_code=code)
