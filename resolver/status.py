from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .classifier import IndicatorSet


class StatusKind(str, Enum):
    PENDING = "pending"
    LOADING = "loading"
    BLOCKED = "blocked"
    TIMED_OUT = "timed_out"
    HTTP_ERROR = "http_error"
    UNSUPPORTED = "unsupported"
    NOT_FOUND = "not_found"
    FOUND = "found"


TERMINAL_KINDS = frozenset({
    StatusKind.BLOCKED,
    StatusKind.TIMED_OUT,
    StatusKind.HTTP_ERROR,
    StatusKind.UNSUPPORTED,
    StatusKind.NOT_FOUND,
    StatusKind.FOUND,
})


@dataclass(frozen=True)
class Status:
    kind: StatusKind
    code: Optional[int] = None                  # HTTP_ERROR only
    indicators: IndicatorSet = field(default_factory=IndicatorSet)   # FOUND only

    @property
    def terminal(self) -> bool:
        return self.kind in TERMINAL_KINDS

    @classmethod
    def http_error(cls, code: int) -> "Status":
        return cls(StatusKind.HTTP_ERROR, code=int(code))

    @classmethod
    def found(cls, indicators: IndicatorSet) -> "Status":
        if not indicators:
            raise ValueError("Found requires a non-empty IndicatorSet; use NOT_FOUND")
        return cls(StatusKind.FOUND, indicators=IndicatorSet(indicators))

    @classmethod
    def from_indicators(cls, indicators: IndicatorSet) -> "Status":
        """Terminal status of a completed classification: Found or NotFound."""
        return cls.found(indicators) if indicators else NOT_FOUND

    def __str__(self) -> str:
        if self.kind is StatusKind.HTTP_ERROR:
            return f"HttpError({self.code})"
        if self.kind is StatusKind.FOUND:
            return f"Found({','.join(self.indicators.ordered())})"
        return self.kind.value


PENDING = Status(StatusKind.PENDING)
LOADING = Status(StatusKind.LOADING)
BLOCKED = Status(StatusKind.BLOCKED)
TIMED_OUT = Status(StatusKind.TIMED_OUT)
UNSUPPORTED = Status(StatusKind.UNSUPPORTED)
NOT_FOUND = Status(StatusKind.NOT_FOUND)
