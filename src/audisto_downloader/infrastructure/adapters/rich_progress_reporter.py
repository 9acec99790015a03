"""Rich-based progress reporter adapter for crawl downloads."""

from __future__ import annotations

import contextvars
import logging
import sys
import threading
from typing import TYPE_CHECKING

from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
)

from ...application.ports.progress_reporter import (
    ProgressContext,
    ProgressReporterPort,
    SnapshotProvider,
)

if TYPE_CHECKING:
    from ...domain.models.transfer_status import TransferSnapshot

logger = logging.getLogger(__name__)


def format_eta(seconds: int) -> str:
    """Render whole seconds as e.g. ``1h2m3s``, ``4m0s`` or ``17s``."""
    hours, rest = divmod(max(0, seconds), 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}h{minutes}m{secs}s"
    if minutes:
        return f"{minutes}m{secs}s"
    return f"{secs}s"


def describe(snapshot: TransferSnapshot) -> str:
    """One-line status used by both the rich and the logging display."""
    return (
        f"{snapshot.status_text} | ETA {format_eta(snapshot.eta_seconds)} | "
        f"Chunk size {snapshot.chunk_size} | {snapshot.timeout_count} timeouts | "
        f"{snapshot.error_count} errors"
    )


class _PollingContext:
    """
    Polls the snapshot provider on a daemon thread until finish() is called.

    The thread runs in a copy of the creating context so its log records carry
    the session's correlation ID.
    """

    def __init__(self, provider: SnapshotProvider, interval: float) -> None:
        self.provider = provider
        self.interval = interval
        self._stop = threading.Event()
        context = contextvars.copy_context()
        self._thread = threading.Thread(
            target=context.run, args=(self._run,), name="progress-reporter", daemon=True
        )

    def start(self) -> None:
        self._thread.start()

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            self.refresh()

    def refresh(self) -> None:
        raise NotImplementedError

    def _stop_polling(self) -> None:
        self._stop.set()
        if self._thread.is_alive():
            self._thread.join(timeout=self.interval * 2)


class RichProgressContext(_PollingContext):
    """Live progress bar using Rich."""

    def __init__(
        self,
        progress: Progress,
        task_id: TaskID,
        provider: SnapshotProvider,
        interval: float = 0.5,
    ) -> None:
        """
        Initialize rich progress context.

        Args:
            progress: Started Rich Progress instance
            task_id: Task ID for the transfer
            provider: Returns the current TransferSnapshot
            interval: Seconds between polls
        """
        super().__init__(provider, interval)
        self.progress = progress
        self.task_id = task_id

    def refresh(self) -> None:
        snapshot = self.provider()
        self.progress.update(
            self.task_id,
            description=snapshot.status_text,
            completed=snapshot.done_elements,
            total=max(snapshot.total_elements, 1),
            eta=format_eta(snapshot.eta_seconds),
            chunk_size=snapshot.chunk_size,
            timeouts=snapshot.timeout_count,
            errors=snapshot.error_count,
        )

    def finish(self) -> None:
        """Stop polling and leave the final state on screen."""
        self._stop_polling()
        self.refresh()
        self.progress.stop_task(self.task_id)
        self.progress.stop()


class LoggingProgressContext(_PollingContext):
    """Fallback progress context for non-interactive mode using logging."""

    def __init__(self, provider: SnapshotProvider, interval: float = 30.0) -> None:
        super().__init__(provider, interval)

    def refresh(self) -> None:
        logger.info(f"Progress: {describe(self.provider())}")

    def finish(self) -> None:
        self._stop_polling()
        snapshot = self.provider()
        logger.info(
            f"Finished: {describe(snapshot)}",
            extra={"done_elements": snapshot.done_elements, "total_elements": snapshot.total_elements},
        )


class RichProgressReporterAdapter(ProgressReporterPort):
    """Rich-based progress reporter adapter."""

    def __init__(self, console: Console | None = None, interval: float = 0.5, log_interval: float = 30.0) -> None:
        """
        Initialize Rich progress reporter.

        Args:
            console: Console to draw on (defaults to stderr; stdout may carry data)
            interval: Seconds between redraws in interactive mode
            log_interval: Seconds between log lines in non-interactive mode
        """
        self.console = console or Console(file=sys.stderr)
        self.is_interactive = self.console.is_terminal
        self.interval = interval
        self.log_interval = log_interval

        if not self.is_interactive:
            logger.info("Non-interactive mode detected - using structured logging for progress")

    def start(
        self,
        provider: SnapshotProvider,
        description: str = "Downloading pages",
    ) -> ProgressContext:
        """
        Start displaying progress polled from provider.

        Returns:
            ProgressContext; call finish() when the transfer ends
        """
        context: RichProgressContext | LoggingProgressContext
        if self.is_interactive:
            progress = Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TextColumn("ETA {task.fields[eta]}"),
                TextColumn("| Chunk size {task.fields[chunk_size]}"),
                TextColumn("| {task.fields[timeouts]} timeouts"),
                TextColumn("| {task.fields[errors]} errors"),
                console=self.console,
                expand=True,
            )
            progress.start()
            task_id = progress.add_task(
                description,
                total=None,
                eta="-",
                chunk_size="-",
                timeouts=0,
                errors=0,
            )
            context = RichProgressContext(progress, task_id, provider, interval=self.interval)
        else:
            context = LoggingProgressContext(provider, interval=self.log_interval)

        context.refresh()
        context.start()
        return context
