"""Report sink: turns report events into terminal output and a session outcome."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import IO, Any, Callable, Iterable

import click

from labrunner.report import report_results
from labrunner.schemas import ReportAction, ReportEvent

logger = logging.getLogger(__name__)

# Log lines forwarded from the orchestration server
remote_logger = logging.getLogger("labrunner.remote")

LOG_LEVELS = {
    ReportAction.DEBUG.value: logging.DEBUG,
    ReportAction.INFO.value: logging.INFO,
    ReportAction.WARN.value: logging.WARNING,
    ReportAction.ERROR.value: logging.ERROR,
}

# (marker, color) per test outcome
MARKERS = {
    ReportAction.PASS.value: (".", "green"),
    ReportAction.PENDING.value: (".", "cyan"),
    ReportAction.FAIL.value: ("×", "red"),
}

Formatter = Callable[[Any, bool], bool]


@dataclass(frozen=True)
class SessionOutcome:
    """Terminal result of a session; the CLI turns it into an exit code."""

    success: bool

    @property
    def exit_code(self) -> int:
        return 0 if self.success else 1


def _format_args(info: Any) -> str:
    """Join log arguments in order, like a console log call."""
    if info is None:
        return ""
    if not isinstance(info, list):
        info = [info]
    return " ".join(str(arg) for arg in info)


class ReportSink:
    """Consumes ``order/report`` batches."""

    def __init__(
        self,
        formatter: Formatter = report_results,
        verbose: bool = False,
        color: bool | None = None,
        stream: IO[str] | None = None,
    ):
        self.formatter = formatter
        self.verbose = verbose
        self._color = color
        self._stream = stream

    def handle(self, events: Iterable[ReportEvent]) -> SessionOutcome | None:
        """Process events in order.

        Returns the session outcome once the run ends (``endAll`` or
        ``timeout``); events after that point are not processed.
        """
        for event in events:
            action = event.action

            if action in LOG_LEVELS:
                remote_logger.log(LOG_LEVELS[action], "%s", _format_args(event.info))
            elif action in MARKERS:
                self._mark(*MARKERS[action])
            elif action in (ReportAction.TIMEOUT, ReportAction.END_ALL):
                # A timeout always finishes the run as well
                if action == ReportAction.TIMEOUT:
                    logger.warning("Timeout!")
                return self._finish(event.info)
            else:
                logger.warning("Unrecognized report action <%s>", action)

        return None

    def _mark(self, marker: str, color: str) -> None:
        click.echo(click.style(marker, fg=color), nl=False, file=self._stream, color=self._color)

    def _finish(self, info: Any) -> SessionOutcome:
        success = bool(self.formatter(info, self.verbose))
        logger.debug("Run finished, success=%s", success)
        return SessionOutcome(success=success)
