"""Parse diagnostics.

Parsers report recoverable problems as DiagnosticEvents to an injected sink
instead of logging directly, so callers (and tests) can inspect them. The
default sink forwards everything to structlog.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import structlog

logger = structlog.get_logger(__name__)

DEBUG = "debug"
INFO = "info"
WARNING = "warning"


@dataclass(frozen=True)
class DiagnosticEvent:
    """One structured parse diagnostic."""

    level: str
    code: str
    message: str
    context: Dict[str, Any] = field(default_factory=dict)


DiagnosticSink = Callable[[DiagnosticEvent], None]


def log_diagnostic(event: DiagnosticEvent) -> None:
    """Default sink: emit the event through structlog at its own level."""
    log = getattr(logger, event.level, logger.warning)
    log(event.code, message=event.message, **event.context)


class DiagnosticCollector:
    """Sink that records events in arrival order.

    Pass ``forward_to=log_diagnostic`` to keep logging while collecting.
    """

    def __init__(self, forward_to: Optional[DiagnosticSink] = None):
        self.events: List[DiagnosticEvent] = []
        self.forward_to = forward_to

    def __call__(self, event: DiagnosticEvent) -> None:
        self.events.append(event)
        if self.forward_to:
            self.forward_to(event)

    @property
    def warnings(self) -> List[DiagnosticEvent]:
        return [e for e in self.events if e.level == WARNING]

    def codes(self) -> List[str]:
        return [e.code for e in self.events]


class DiagnosticReporter:
    """Small helper the parsers hold to emit events to a sink."""

    def __init__(self, sink: Optional[DiagnosticSink] = None, **context):
        self.sink = sink or log_diagnostic
        self.context = context

    def emit(self, level: str, code: str, message: str, **context) -> None:
        self.sink(DiagnosticEvent(level, code, message, {**self.context, **context}))

    def warning(self, code: str, message: str, **context) -> None:
        self.emit(WARNING, code, message, **context)

    def debug(self, code: str, message: str, **context) -> None:
        self.emit(DEBUG, code, message, **context)
