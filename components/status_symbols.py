from __future__ import annotations

from resolver.classifier import NOT_FOUND_SYMBOL
from resolver.status import Status, StatusKind

PENDING_SYMBOL = "◌"
BLOCKED_SYMBOL = "⛔"
TIMED_OUT_SYMBOL = "💤"
UNSUPPORTED_SYMBOL = "❓"

_FIXED = {
    StatusKind.PENDING: PENDING_SYMBOL,
    StatusKind.LOADING: PENDING_SYMBOL,
    StatusKind.BLOCKED: BLOCKED_SYMBOL,
    StatusKind.TIMED_OUT: TIMED_OUT_SYMBOL,
    StatusKind.UNSUPPORTED: UNSUPPORTED_SYMBOL,
    StatusKind.NOT_FOUND: NOT_FOUND_SYMBOL,
}


def render_status(status: Status) -> str:
    """Symbol shown in a row's subtitle cell."""
    if status.kind is StatusKind.FOUND:
        return status.indicators.symbols()
    if status.kind is StatusKind.HTTP_ERROR:
        return f"HTTP {status.code}"
    return _FIXED[status.kind]
