from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from ...domain.errors import (
    DetailFlagMismatchError,
    DownloadError,
    MalformedChunkError,
    OutputExistsError,
    ResumeUnavailableError,
    TotalElementsError,
    TransportError,
)
from ...domain.models.checkpoint import ChunkAddress, TransferCheckpoint
from ...domain.models.chunk import ChunkResponse
from ...domain.models.transfer_status import TransferSnapshot
from ...domain.policy.status_policy import (
    StatusAction,
    classify_status,
    counts_as_error,
    fatal_error_for,
)
from ...domain.policy.transfer_policy import TransferPolicy
from ...domain.services.throughput import ThroughputEstimator
from ..dto.probe import ProbeEnvelope
from ..dto.transfer import TransferRequest, TransferResult
from ..ports.checkpoint_manager import CheckpointManagerPort
from ..ports.chunk_source import ChunkSourcePort
from ..ports.output_sink import OutputSinkPort
from ..ports.progress_reporter import ProgressContext, ProgressReporterPort
from ..services.retry import retry_call

logger = logging.getLogger(__name__)

# (output_path, create, truncate_to=None) -> OutputSinkPort
SinkOpener = Callable[..., OutputSinkPort]


class ProbeStatusError(DownloadError):
    """Non-200, non-fatal answer to the row-count probe; retried like a transport failure."""

    def __init__(self, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(
            f"error while trying to get total number of elements; statusCode {status_code}"
        )


def probe_total_elements(
    chunk_source: ChunkSourcePort,
    policy: TransferPolicy,
    sleep: Callable[[float], None] = time.sleep,
    on_failure: Callable[[int, BaseException], None] | None = None,
) -> int:
    """
    Ask the API how many rows the crawl holds.

    Uses the same retry policy as chunk fetches. Client-fatal statuses
    (403, 404, other 4xx) abort at once; other non-200 statuses count as a
    failed attempt.

    Returns:
        Total number of rows

    Raises:
        ClientFatalError: On 4xx
        RetryExhaustedError: If every attempt failed
        TotalElementsError: If the envelope is not the expected JSON
    """

    def _probe() -> ChunkResponse:
        response = chunk_source.fetch_total()
        if response.ok:
            return response
        if classify_status(response.status_code) is StatusAction.FATAL:
            raise fatal_error_for(response.status_code)
        raise ProbeStatusError(response.status_code)

    response = retry_call(
        _probe,
        policy.retry,
        retry_on=(TransportError, ProbeStatusError),
        on_failure=on_failure,
        sleep=sleep,
        description="Row-count probe",
    )

    try:
        envelope = ProbeEnvelope.model_validate_json(response.body)
    except ValidationError as e:
        raise TotalElementsError(str(e)) from e

    logger.info(f"Crawl holds {envelope.chunk.total} rows", extra={"total_elements": envelope.chunk.total})
    return envelope.chunk.total


@dataclass
class TransferSession:
    """
    Everything the engine needs to run: progress record, sink and where to persist.

    Attributes:
        checkpoint: Fresh or resumed TransferCheckpoint
        sink: Open output sink
        checkpoint_manager: None for non-durable (stdout) sessions
        output_path: Output file path ("" for stdout)
        resumed: True when the checkpoint came from a sidecar
        probe_failures: Failed probe attempts (seed for the error counter)
    """

    checkpoint: TransferCheckpoint
    sink: OutputSinkPort
    checkpoint_manager: CheckpointManagerPort | None
    output_path: str
    resumed: bool = False
    probe_failures: int = 0


def prepare_session(
    request: TransferRequest,
    chunk_source: ChunkSourcePort,
    checkpoint_manager: CheckpointManagerPort,
    open_sink: SinkOpener,
    policy: TransferPolicy | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> TransferSession:
    """
    Decide between a fresh download and a resume, and open the output.

    Rules:
    - No output path: stdout session, totals probed, nothing persisted.
    - Fresh start when resume is off or neither output nor sidecar exist.
      An existing output file is never overwritten.
    - Resume requires both files and the same detail flag; a mismatch aborts
      before any network call. The output is cut back to the byte length
      recorded with the checkpoint.

    Args:
        request: Validated TransferRequest
        chunk_source: ChunkSourcePort used for the row-count probe
        checkpoint_manager: CheckpointManagerPort for the sidecar
        open_sink: Callable (output_path, create, truncate_to=None) -> OutputSinkPort
        policy: TransferPolicy (defaults apply if None)
        sleep: Sleep function (injectable for tests)

    Returns:
        TransferSession ready to run

    Raises:
        OutputExistsError, ResumeUnavailableError, DetailFlagMismatchError,
        CheckpointReadError, plus any probe error
    """
    policy = policy or TransferPolicy()
    failures = 0

    def _count_failure(attempt: int, error: BaseException) -> None:
        nonlocal failures
        failures += 1

    if request.to_stdout:
        total = probe_total_elements(chunk_source, policy, sleep=sleep, on_failure=_count_failure)
        checkpoint = TransferCheckpoint(
            output_filename="",
            total_elements=total,
            no_details=request.no_details,
            chunk_size=policy.initial_chunk_size,
        )
        return TransferSession(
            checkpoint=checkpoint,
            sink=open_sink("", True),
            checkpoint_manager=None,
            output_path="",
            probe_failures=failures,
        )

    output_path = request.output
    output_exists = Path(output_path).exists()
    sidecar_exists = checkpoint_manager.checkpoint_exists(output_path)
    start_anew = not output_exists and not sidecar_exists

    if not request.resume or start_anew:
        if start_anew and request.resume:
            logger.info("No download to resume; starting new.", extra={"output": output_path})
        if output_exists:
            raise OutputExistsError(output_path)

        total = probe_total_elements(chunk_source, policy, sleep=sleep, on_failure=_count_failure)
        checkpoint = TransferCheckpoint(
            output_filename=output_path,
            total_elements=total,
            no_details=request.no_details,
            chunk_size=policy.initial_chunk_size,
        )
        # Output first: an existing sidecar always implies an existing output file.
        sink = open_sink(output_path, True)
        checkpoint.output_bytes = sink.committed_bytes()
        checkpoint_manager.save_checkpoint(checkpoint, output_path)
        logger.info(
            f"Starting new download of {total} rows into {output_path}",
            extra={"output": output_path, "total_elements": total},
        )
        return TransferSession(
            checkpoint=checkpoint,
            sink=sink,
            checkpoint_manager=checkpoint_manager,
            output_path=output_path,
            probe_failures=failures,
        )

    if not output_exists:
        raise ResumeUnavailableError(output_path, hint="use --no-resume to create new")
    if not sidecar_exists:
        raise ResumeUnavailableError(
            str(checkpoint_manager.get_checkpoint_path(output_path)),
            hint="resumer file missing",
        )

    checkpoint = checkpoint_manager.load_checkpoint(output_path)
    if checkpoint is None:
        raise ResumeUnavailableError(str(checkpoint_manager.get_checkpoint_path(output_path)))

    if checkpoint.no_details != request.no_details:
        raise DetailFlagMismatchError(persisted=checkpoint.no_details, requested=request.no_details)

    logger.info(
        f"Resuming download at row {checkpoint.done_elements} of {checkpoint.total_elements}",
        extra={
            "output": output_path,
            "done_elements": checkpoint.done_elements,
            "total_elements": checkpoint.total_elements,
        },
    )
    return TransferSession(
        checkpoint=checkpoint,
        sink=open_sink(output_path, False, truncate_to=checkpoint.output_bytes),
        checkpoint_manager=checkpoint_manager,
        output_path=output_path,
        resumed=True,
    )


class TransferEngine:
    """
    Sequential chunk-transfer loop.

    Each iteration: address the next chunk, fetch it with retries, classify
    the status, append new rows, flush the sink, then persist the checkpoint.
    Exactly one request is in flight at a time because every address depends
    on the progress committed by the previous iteration.
    """

    def __init__(
        self,
        chunk_source: ChunkSourcePort,
        checkpoint: TransferCheckpoint,
        sink: OutputSinkPort,
        checkpoint_manager: CheckpointManagerPort | None = None,
        output_path: str = "",
        policy: TransferPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        initial_error_count: int = 0,
    ) -> None:
        """
        Initialize transfer engine.

        Args:
            chunk_source: ChunkSourcePort for chunk requests
            checkpoint: TransferCheckpoint to advance (mutated in place)
            sink: OutputSinkPort receiving rows
            checkpoint_manager: Persists the checkpoint; None disables persistence
            output_path: Output file the checkpoint belongs to
            policy: TransferPolicy (defaults apply if None)
            sleep: Sleep function (injectable for tests)
            clock: Monotonic clock for throughput measurements
            initial_error_count: Errors already seen (e.g. failed probe attempts)
        """
        self.chunk_source = chunk_source
        self.checkpoint = checkpoint
        self.sink = sink
        self.checkpoint_manager = checkpoint_manager
        self.output_path = output_path
        self.policy = policy or TransferPolicy()
        self._sleep = sleep
        self._clock = clock

        self.timeout_count = 0
        self.error_count = initial_error_count
        self.chunks_fetched = 0
        self.rows_written = 0
        self.completed = False
        self.status_text = ""
        self.throughput = ThroughputEstimator(
            smoothing_factor=self.policy.smoothing_factor,
            initial_seconds_per_1000=self.policy.initial_seconds_per_1000,
        )

    @classmethod
    def from_session(
        cls,
        chunk_source: ChunkSourcePort,
        session: TransferSession,
        policy: TransferPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> TransferEngine:
        return cls(
            chunk_source=chunk_source,
            checkpoint=session.checkpoint,
            sink=session.sink,
            checkpoint_manager=session.checkpoint_manager,
            output_path=session.output_path,
            policy=policy,
            sleep=sleep,
            initial_error_count=session.probe_failures,
        )

    def snapshot(self) -> TransferSnapshot:
        """Current progress for reporters (safe to call from another thread)."""
        return TransferSnapshot(
            status_text=self.status_text,
            done_elements=self.checkpoint.done_elements,
            total_elements=self.checkpoint.total_elements,
            chunk_size=self.checkpoint.chunk_size,
            timeout_count=self.timeout_count,
            error_count=self.error_count,
            seconds_per_1000=self.throughput.seconds_per_1000,
            completed=self.completed,
        )

    def run(self) -> TransferResult:
        """
        Transfer chunks until the checkpoint is complete.

        Returns:
            TransferResult summarising the session

        Raises:
            ClientFatalError: On 403, 404 or other 4xx
            RetryExhaustedError: When transport failures outlast the retry budget
            MalformedChunkError: When a chunk body cannot be scanned
            CheckpointWriteError: When the sidecar cannot be written
            OutputWriteError: When the output cannot be written or flushed
        """
        started = self._clock()

        while True:
            iteration_start = self._clock()
            checkpoint = self.checkpoint
            self._update_status()

            if checkpoint.is_complete():
                self._complete()
                break

            address = checkpoint.next_chunk_address()
            if checkpoint.clamp_chunk_size():
                logger.debug(
                    f"Chunk size clamped to the {checkpoint.chunk_size} remaining rows",
                    extra={"chunk_size": checkpoint.chunk_size},
                )

            response = self._fetch(address)
            if not self._accept(response, address):
                continue

            rows = self._append_rows(response, address)
            self.sink.flush()
            self._persist()

            self.chunks_fetched += 1
            self.rows_written += rows
            self.throughput.observe(self._clock() - iteration_start, rows)
            logger.debug(
                f"Chunk {address.index} committed: {rows} rows, {checkpoint.done_elements}/{checkpoint.total_elements}",
                extra={"chunk_index": address.index, "rows": rows, "done_elements": checkpoint.done_elements},
            )

        return TransferResult(
            output=self.output_path,
            done_elements=self.checkpoint.done_elements,
            total_elements=self.checkpoint.total_elements,
            chunks_fetched=self.chunks_fetched,
            rows_written=self.rows_written,
            duration_seconds=self._clock() - started,
            timeout_count=self.timeout_count,
            error_count=self.error_count,
            completed=self.completed,
        )

    def _update_status(self) -> None:
        snapshot = self.snapshot()
        self.status_text = f"{snapshot.percent_complete:.1f}% of {snapshot.total_elements} pages"

    def _count_failure(self, attempt: int, error: BaseException) -> None:
        self.error_count += 1

    def _fetch(self, address: ChunkAddress) -> ChunkResponse:
        logger.debug(
            f"Requesting chunk {address.index} (size {address.size}, skip {address.skip_rows})",
            extra={"chunk_index": address.index, "chunk_size": address.size, "skip_rows": address.skip_rows},
        )
        return retry_call(
            lambda: self.chunk_source.fetch_chunk(address.index, address.size, self.checkpoint.no_details),
            self.policy.retry,
            on_failure=self._count_failure,
            sleep=self._sleep,
            description=f"Chunk {address.index}",
        )

    def _accept(self, response: ChunkResponse, address: ChunkAddress) -> bool:
        """
        Apply the status table.

        Returns:
            True if rows should be processed, False to retry the same progress
        """
        status_code = response.status_code
        action = classify_status(status_code)
        if counts_as_error(action):
            self.error_count += 1

        if action is StatusAction.PROCEED:
            return True

        extra = {"chunk_index": address.index, "status_code": status_code}
        if action is StatusAction.FATAL:
            logger.error(f"Chunk {address.index} rejected with status {status_code}", extra=extra)
            raise fatal_error_for(status_code)

        if action is StatusAction.THROTTLE:
            logger.info(f"Throttled; pausing {self.policy.backoff_seconds:.0f}s", extra=extra)
        elif action is StatusAction.SHRINK:
            self.timeout_count += 1
            if self.timeout_count >= self.policy.timeout_threshold:
                new_size = self.checkpoint.shrink_chunk_size(self.policy.shrink_step)
                self.timeout_count = 0
                logger.warning(
                    f"Repeated gateway timeouts; chunk size reduced to {new_size}",
                    extra={**extra, "chunk_size": new_size},
                )
            else:
                logger.warning(
                    f"Gateway timeout ({self.timeout_count}/{self.policy.timeout_threshold})",
                    extra=extra,
                )
        else:
            logger.warning(f"Server error {status_code}; retrying", extra=extra)

        self._sleep(self.policy.backoff_seconds)
        return False

    def _append_rows(self, response: ChunkResponse, address: ChunkAddress) -> int:
        """
        Write the header (first chunk only) and the rows not yet stored.

        Nothing is written unless the whole chunk checks out, so a malformed
        chunk leaves the output untouched.

        Returns:
            Number of data rows appended
        """
        checkpoint = self.checkpoint
        try:
            rows = response.rows()
        except UnicodeDecodeError as e:
            raise MalformedChunkError(address.index, f"body is not valid UTF-8 ({e.reason})") from e

        header: str | None = None
        position = 0
        if checkpoint.done_elements == 0:
            if not rows:
                raise MalformedChunkError(address.index, "first chunk has no header row")
            header = rows[0]
            position = 1

        new_rows = rows[position + address.skip_rows:]
        remaining = checkpoint.remaining_elements
        if len(new_rows) > remaining:
            logger.warning(
                f"Chunk {address.index} carries {len(new_rows) - remaining} rows beyond the probed total; ignoring them",
                extra={"chunk_index": address.index},
            )
            new_rows = new_rows[:remaining]
        if not new_rows:
            raise MalformedChunkError(
                address.index,
                f"no rows beyond the {address.skip_rows} to skip ({len(rows)} rows received)",
            )

        if header is not None:
            self.sink.write_row(header)
        for row in new_rows:
            self.sink.write_row(row)
        checkpoint.record_rows(len(new_rows))
        return len(new_rows)

    def _persist(self) -> None:
        if self.checkpoint_manager is not None:
            self.checkpoint.output_bytes = self.sink.committed_bytes()
            self.checkpoint_manager.save_checkpoint(self.checkpoint, self.output_path)

    def _complete(self) -> None:
        if self.checkpoint_manager is not None:
            self.checkpoint_manager.delete_checkpoint(self.output_path)
        self.completed = True
        self.status_text = "@@@ COMPLETED 100% @@@"
        logger.info(
            f"Download complete: {self.checkpoint.total_elements} rows",
            extra={"output": self.output_path, "total_elements": self.checkpoint.total_elements},
        )


def download_crawl(
    request: TransferRequest,
    chunk_source: ChunkSourcePort,
    checkpoint_manager: CheckpointManagerPort,
    open_sink: SinkOpener,
    policy: TransferPolicy | None = None,
    progress_reporter: ProgressReporterPort | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> TransferResult:
    """
    Orchestrate a crawl download: prepare session → run engine → close output.

    The progress reporter only runs for durable sinks; stdout carries the data.
    When the run fails the sink is aborted, which keeps only the rows covered
    by the last persisted checkpoint.

    Args:
        request: TransferRequest from the CLI layer
        chunk_source: ChunkSourcePort bound to the crawl and credentials
        checkpoint_manager: CheckpointManagerPort for the sidecar
        open_sink: Callable (output_path, create, truncate_to=None) -> OutputSinkPort
        policy: TransferPolicy (defaults apply if None)
        progress_reporter: Optional ProgressReporterPort
        sleep: Sleep function (injectable for tests)

    Returns:
        TransferResult
    """
    policy = policy or TransferPolicy()
    session = prepare_session(request, chunk_source, checkpoint_manager, open_sink, policy=policy, sleep=sleep)
    engine = TransferEngine.from_session(chunk_source, session, policy=policy, sleep=sleep)

    progress: ProgressContext | None = None
    if progress_reporter is not None and session.sink.durable:
        progress = progress_reporter.start(engine.snapshot, description=f"Crawl {request.crawl_id}")

    try:
        result = engine.run()
    except BaseException:
        # rows of the interrupted chunk are not covered by the checkpoint
        session.sink.abort()
        raise
    finally:
        if progress is not None:
            progress.finish()
    session.sink.close()

    return result.model_copy(update={"crawl_id": request.crawl_id})
