"""
Diagnostics module

Collects the non-fatal findings of a run so they can be reported together at
the end, and replayed from the incremental cache for units that were not
re-extracted.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

logger = logging.getLogger(__name__)


class Severity(Enum):
    INFO = 'info'
    WARNING = 'warning'
    ERROR = 'error'


class DiagnosticCode(Enum):
    MALFORMED_ANNOTATION = 'MalformedAnnotation'
    INVALID_ITEM = 'InvalidItem'
    UNSUPPORTED_OPERATOR = 'UnsupportedOperator'
    UNREADABLE_CACHE_RECORD = 'UnreadableCacheRecord'
    FRONT_END_FAILURE = 'FrontEndFailure'
    PLAN_BUILDER_FAILURE = 'PlanBuilderFailure'
    # informational findings outside the failure taxonomy
    NOTE = 'Note'


_LOG_LEVELS = {
    Severity.INFO: logging.DEBUG,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}


@dataclass(frozen=True)
class Diagnostic:
    """One reported finding"""
    severity: Severity
    code: DiagnosticCode
    message: str
    location: str = ''

    def format(self) -> str:
        where = f'{self.location}: ' if self.location else ''
        return f'{where}{self.severity.value}: [{self.code.value}] {self.message}'

    def to_dict(self) -> dict:
        return {
            'severity': self.severity.value,
            'code': self.code.value,
            'message': self.message,
            'location': self.location,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Diagnostic':
        return cls(
            severity=Severity(data['severity']),
            code=DiagnosticCode(data['code']),
            message=data['message'],
            location=data.get('location', ''),
        )


class DiagnosticLog:
    """Ordered, thread-safe collection of diagnostics"""

    def __init__(self, diagnostics: Optional[Iterable[Diagnostic]] = None):
        self._items: list[Diagnostic] = list(diagnostics or [])
        self._lock = threading.Lock()

    def add(self, severity: Severity, code: DiagnosticCode, message: str,
            location: str = '') -> Diagnostic:
        diag = Diagnostic(severity, code, message, location)
        with self._lock:
            self._items.append(diag)
        logger.log(_LOG_LEVELS[severity], '%s', diag.format())
        return diag

    def info(self, code: DiagnosticCode, message: str, location: str = '') -> Diagnostic:
        return self.add(Severity.INFO, code, message, location)

    def warning(self, code: DiagnosticCode, message: str, location: str = '') -> Diagnostic:
        return self.add(Severity.WARNING, code, message, location)

    def error(self, code: DiagnosticCode, message: str, location: str = '') -> Diagnostic:
        return self.add(Severity.ERROR, code, message, location)

    def extend(self, diagnostics: Iterable[Diagnostic]):
        with self._lock:
            self._items.extend(diagnostics)

    def by_code(self, code: DiagnosticCode) -> list[Diagnostic]:
        return [d for d in self._items if d.code == code]

    def by_severity(self, severity: Severity) -> list[Diagnostic]:
        return [d for d in self._items if d.severity == severity]

    @property
    def has_errors(self) -> bool:
        return any(d.severity == Severity.ERROR for d in self._items)

    def __iter__(self):
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)
