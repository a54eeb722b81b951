"""
Closed error code families and a small result type.

Recoverable failures travel as :class:`Result` values; only programming errors
(invalid construction arguments) are raised.
"""
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorCode(Enum):
    """Base for the error families; subclasses define ``_messages``."""

    @property
    def category(self) -> str:
        return type(self).__name__

    @property
    def message(self) -> str:
        return type(self)._messages().get(self, "unknown")

    @classmethod
    def _messages(cls) -> dict:
        return {}

    def __str__(self) -> str:
        return f"{self.category}: {self.message}"


class PropagatorError(ErrorCode):
    FAILURE = 1
    STEP_COUNT_LIMIT_REACHED = 2
    STEP_SIZE_ADJUSTMENT_FAILED = 3
    NAVIGATION_DEAD_END = 4

    @classmethod
    def _messages(cls) -> dict:
        return {
            cls.FAILURE: "Propagation failed",
            cls.STEP_COUNT_LIMIT_REACHED: "Propagation reached the configured maximum number of steps",
            cls.STEP_SIZE_ADJUSTMENT_FAILED: "Step size adjustment exceeds maximum trials",
            cls.NAVIGATION_DEAD_END: "Navigator found no further target surface",
        }


class SurfaceError(ErrorCode):
    INVALID_LOCAL_POSITION = 1

    @classmethod
    def _messages(cls) -> dict:
        return {
            cls.INVALID_LOCAL_POSITION: "Local position is outside the surface bounds",
        }


class SimulatorError(ErrorCode):
    INVALID_INPUT_PARTICLE_ID = 1

    @classmethod
    def _messages(cls) -> dict:
        return {
            cls.INVALID_INPUT_PARTICLE_ID: "Input particle id with non-zero generation or sub-particle",
        }


class TrackingError(RuntimeError):
    """Raised by :meth:`Result.unwrap` on a failed result."""

    def __init__(self, code: ErrorCode):
        super().__init__(str(code))
        self.code = code


class Result(Generic[T]):
    """Either a value or an :class:`ErrorCode`."""

    __slots__ = ("_value", "_error")

    def __init__(self, value: Any = None, error: Optional[ErrorCode] = None):
        self._value = value
        self._error = error

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: ErrorCode) -> "Result[T]":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self._error is None

    @property
    def error(self) -> Optional[ErrorCode]:
        return self._error

    @property
    def value(self) -> T:
        if self._error is not None:
            raise TrackingError(self._error)
        return self._value

    def unwrap(self) -> T:
        return self.value

    def __bool__(self) -> bool:
        return self.ok

    def __repr__(self) -> str:
        if self.ok:
            return f"Result.success({self._value!r})"
        return f"Result.failure({self._error})"
