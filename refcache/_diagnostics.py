from __future__ import annotations

import enum
import logging
import typing as tp
from dataclasses import dataclass

__all__ = (
    "Diagnostic",
    "DiagnosticKind",
    "BaseDiagnosticSink",
    "LoggingSink",
    "MemorySink",
)


class DiagnosticKind(enum.Enum):
    NOT_A_URI = "not_a_uri"
    MISS = "miss"
    CORRUPT = "corrupt"
    WRITE = "write"
    REVALIDATED = "revalidated"
    STALE = "stale"
    REDIRECT = "redirect"
    BUDGET_EXHAUSTED = "budget_exhausted"
    FETCH_FAILED = "fetch_failed"


FAILURE_KINDS = frozenset(
    [
        DiagnosticKind.NOT_A_URI,
        DiagnosticKind.CORRUPT,
        DiagnosticKind.BUDGET_EXHAUSTED,
        DiagnosticKind.FETCH_FAILED,
    ]
)


@dataclass(frozen=True)
class Diagnostic:
    kind: DiagnosticKind
    uri: str
    message: str

    @property
    def is_failure(self) -> bool:
        return self.kind in FAILURE_KINDS

    def __str__(self) -> str:
        return f"RESOLVER: {self.message}"


class BaseDiagnosticSink:
    def emit(self, diagnostic: Diagnostic) -> None:
        raise NotImplementedError()


class LoggingSink(BaseDiagnosticSink):
    """
    Forwards diagnostics to a standard library logger.

    :param logger: Logger to write to, defaults to the `refcache.resolver` logger
    :type logger: tp.Optional[logging.Logger], optional
    """

    def __init__(self, logger: tp.Optional[logging.Logger] = None) -> None:
        self._logger = logger if logger is not None else logging.getLogger("refcache.resolver")

    def emit(self, diagnostic: Diagnostic) -> None:
        level = logging.WARNING if diagnostic.is_failure else logging.INFO
        self._logger.log(level, str(diagnostic))


class MemorySink(BaseDiagnosticSink):
    def __init__(self) -> None:
        self.diagnostics: tp.List[Diagnostic] = []

    def emit(self, diagnostic: Diagnostic) -> None:
        self.diagnostics.append(diagnostic)

    def kinds(self) -> tp.List[DiagnosticKind]:
        return [diagnostic.kind for diagnostic in self.diagnostics]

    def messages(self) -> tp.List[str]:
        return [str(diagnostic) for diagnostic in self.diagnostics]

    def clear(self) -> None:
        self.diagnostics.clear()
