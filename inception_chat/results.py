from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class FailureReason(str, Enum):
    INVALID_ROLE = "invalid_role"
    EMPTY_CONTENT = "empty_content"
    INVALID_ID = "invalid_id"
    INVALID_ARGUMENT = "invalid_argument"
    INVALID_SETTING = "invalid_setting"
    STORAGE_ERROR = "storage_error"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Outcome of a store operation.

    Stores never raise across their public methods. A failed result still
    carries a usable ``value`` where one makes sense (an empty list for list
    queries) so callers can keep going with no history instead of crashing.
    """

    value: T | None = None
    reason: FailureReason | None = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.reason is None

    def __bool__(self) -> bool:
        return self.ok

    def unwrap_or(self, default: T) -> T:
        if self.ok and self.value is not None:
            return self.value
        return default

    @classmethod
    def success(cls, value: T | None = None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(
        cls,
        reason: FailureReason,
        detail: str = "",
        value: T | None = None,
    ) -> "Result[T]":
        return cls(value=value, reason=reason, detail=detail)
