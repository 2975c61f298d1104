from __future__ import annotations
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional
from contextvars import ContextVar

# Per-task context: which candidate address are we resolving right now?
_CURRENT_CANDIDATE: ContextVar[Optional[str]] = ContextVar("_CURRENT_CANDIDATE", default=None)


def current_candidate() -> Optional[str]:
    return _CURRENT_CANDIDATE.get()


@contextmanager
def candidate_context(address: str) -> Iterator[None]:
    """
    Tag every record logged inside the block (from any module) with
    `address`. asyncio tasks copy the context on creation, so each
    resolution task keeps its own value while interleaved with others.
    """
    token = _CURRENT_CANDIDATE.set(str(address))
    try:
        yield
    finally:
        _CURRENT_CANDIDATE.reset(token)


class _CandidateFilter(logging.Filter):
    """Stamp record.candidate so formatters can use %(candidate)s."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        record.candidate = _CURRENT_CANDIDATE.get() or "-"
        return True


class LoggingExtension:
    def __init__(
        self,
        log_file: Optional[Path] = None,
        *,
        global_level: int = logging.INFO,
        file_level: Optional[int] = None,  # default to global_level if None
    ) -> None:
        self.log_file = log_file
        self.global_level = global_level
        self.file_level = file_level if file_level is not None else global_level
        self._handlers: list[logging.Handler] = []

        # Console formatter/handler on root
        self._install_console(self.global_level)
        if log_file is not None:
            self._install_file(log_file, self.file_level)

        # Make root permissive; rely on handler levels to filter.
        logging.getLogger().setLevel(logging.DEBUG)

    # ---------------- Handlers ----------------

    def _install_console(self, level: int) -> None:
        root = logging.getLogger()
        # Remove any default handlers (e.g., from basicConfig)
        for h in list(root.handlers):
            root.removeHandler(h)

        ch = logging.StreamHandler()
        ch.setLevel(level)
        ch.addFilter(_CandidateFilter())
        ch.setFormatter(logging.Formatter("[subtitle-resolver] %(levelname)s: %(message)s"))
        root.addHandler(ch)
        self._handlers.append(ch)

    def _install_file(self, log_path: Path, level: int) -> None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_path, mode="a", encoding="utf-8")
        fh.setLevel(level)
        fh.addFilter(_CandidateFilter())
        fh.setFormatter(logging.Formatter(
            fmt="%(asctime)s %(levelname)s [%(name)s] <%(candidate)s> %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        logging.getLogger().addHandler(fh)
        self._handlers.append(fh)

    # ---------------- Cleanup ----------------

    def close(self) -> None:
        root = logging.getLogger()
        for h in self._handlers:
            try:
                root.removeHandler(h)
                h.flush()
                h.close()
            except Exception:
                pass
        self._handlers.clear()
