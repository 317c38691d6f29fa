# src/sus2timeline/diagnostics.py
from __future__ import annotations
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, List, Optional, Union
import logging

LOGGER_NAME = "sus2timeline"


class Severity(IntEnum):
    INFORMATION = 0
    WARNING = 1
    ERROR = 2

    @classmethod
    def parse(cls, name: str) -> "Severity":
        key = (name or "").strip().upper()
        if key in ("INFO", "INFORMATION"):
            return cls.INFORMATION
        try:
            return cls[key]
        except KeyError:
            raise ValueError(f"unknown severity: {name!r}") from None


@dataclass(frozen=True)
class Diagnostic:
    severity: Severity
    message: str
    source_line: Optional[int] = None   # 0-basiert, Anzeige 1-basiert

    def __str__(self) -> str:
        where = f" (line {self.source_line + 1})" if self.source_line is not None else ""
        return f"{self.severity.name.lower()}: {self.message}{where}"


class SusParseException(Exception):
    """Vom Aufrufer gewählter Abbruch (StrictSink) – der Core selbst wirft nie."""

    def __init__(self, diagnostic: Diagnostic):
        super().__init__(str(diagnostic))
        self.diagnostic = diagnostic


class DiagnosticSink:
    """Basis: alles mit report(diagnostic) ist eine Senke."""

    def report(self, diagnostic: Diagnostic) -> None:
        raise NotImplementedError

    # Bequeme Helfer für den Core
    def information(self, message: str, line: Optional[int] = None) -> None:
        self.report(Diagnostic(Severity.INFORMATION, message, line))

    def warning(self, message: str, line: Optional[int] = None) -> None:
        self.report(Diagnostic(Severity.WARNING, message, line))

    def error(self, message: str, line: Optional[int] = None) -> None:
        self.report(Diagnostic(Severity.ERROR, message, line))


class NullSink(DiagnosticSink):
    def report(self, diagnostic: Diagnostic) -> None:
        pass


class DiagnosticCollector(DiagnosticSink):
    def __init__(self):
        self.diagnostics: List[Diagnostic] = []

    def report(self, diagnostic: Diagnostic) -> None:
        self.diagnostics.append(diagnostic)

    def of(self, severity: Severity) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == severity]

    @property
    def informations(self) -> List[Diagnostic]:
        return self.of(Severity.INFORMATION)

    @property
    def warnings(self) -> List[Diagnostic]:
        return self.of(Severity.WARNING)

    @property
    def errors(self) -> List[Diagnostic]:
        return self.of(Severity.ERROR)

    @property
    def has_errors(self) -> bool:
        return any(d.severity >= Severity.ERROR for d in self.diagnostics)

    def __len__(self) -> int:
        return len(self.diagnostics)

    def __iter__(self):
        return iter(self.diagnostics)


_LEVELS = {
    Severity.INFORMATION: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}


class LoggingSink(DiagnosticSink):
    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(LOGGER_NAME)

    def report(self, diagnostic: Diagnostic) -> None:
        self.logger.log(_LEVELS[diagnostic.severity], "%s", diagnostic)


class CallbackSink(DiagnosticSink):
    def __init__(self, callback: Callable[[Diagnostic], None]):
        self.callback = callback

    def report(self, diagnostic: Diagnostic) -> None:
        self.callback(diagnostic)


class TeeSink(DiagnosticSink):
    """Verteilt jede Meldung an mehrere Senken (z.B. Sammler + Logging)."""

    def __init__(self, *sinks: DiagnosticSink):
        self.sinks = sinks

    def report(self, diagnostic: Diagnostic) -> None:
        for s in self.sinks:
            s.report(diagnostic)


class StrictSink(DiagnosticSink):
    """
    Strikter Modus als Aufrufer-Policy: leitet weiter und bricht ab, sobald
    eine Meldung die Schwelle erreicht.
    """

    def __init__(self, inner: Optional[DiagnosticSink] = None, threshold: Severity = Severity.WARNING):
        self.inner = inner if inner is not None else NullSink()
        self.threshold = threshold

    def report(self, diagnostic: Diagnostic) -> None:
        self.inner.report(diagnostic)
        if diagnostic.severity >= self.threshold:
            raise SusParseException(diagnostic)


SinkLike = Union[DiagnosticSink, Callable[[Diagnostic], None], None]


def as_sink(sink: SinkLike) -> DiagnosticSink:
    if sink is None:
        return LoggingSink()
    if isinstance(sink, DiagnosticSink):
        return sink
    if callable(sink):
        return CallbackSink(sink)
    raise TypeError(f"not a diagnostic sink: {sink!r}")
