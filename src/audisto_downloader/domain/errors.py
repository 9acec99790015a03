"""Domain errors for crawl download sessions."""


class DownloadError(Exception):
    """Base class for every error that aborts a download session."""


class ClientFatalError(DownloadError):
    """
    Raised when the API answers a chunk request with a non-retryable 4xx status.

    Nothing was written for the failing chunk, so output and checkpoint stay
    consistent and the session can be resumed once the cause is fixed.

    Attributes:
        status_code: HTTP status code returned by the API
    """

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        super().__init__(message)


class AccessDeniedError(ClientFatalError):
    """Raised on HTTP 403."""

    def __init__(self, status_code: int = 403) -> None:
        super().__init__(status_code, "Access denied. Wrong credentials?")


class CrawlNotFoundError(ClientFatalError):
    """Raised on HTTP 404."""

    def __init__(self, status_code: int = 404) -> None:
        super().__init__(status_code, "Not found. Correct crawl ID?")


class UnexpectedStatusError(ClientFatalError):
    """Raised on any other 4xx status (and on codes outside the known classes)."""

    def __init__(self, status_code: int) -> None:
        super().__init__(status_code, f"Unknown error occurred (code {status_code}).")


class TransportError(DownloadError):
    """
    Raised by the transport on connection-level failures (DNS, connect, read, decode).

    Status codes are never turned into TransportError; the engine interprets them.

    Attributes:
        url: Request URL (credentials stripped)
    """

    def __init__(self, message: str, url: str | None = None) -> None:
        self.url = url
        super().__init__(message)


class RetryExhaustedError(DownloadError):
    """
    Raised when an operation keeps failing after the whole retry budget.

    The last underlying error is chained as ``__cause__``.

    Attributes:
        attempts: Number of attempts made
        last_error: Last error raised by the operation
    """

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Abandoned after {attempts} attempts, last error: {last_error}")


class MalformedChunkError(DownloadError):
    """
    Raised when a chunk body cannot be scanned as the expected TSV rows.

    Attributes:
        chunk_index: Index of the offending chunk
        reason: What was wrong with the body
    """

    def __init__(self, chunk_index: int, reason: str) -> None:
        self.chunk_index = chunk_index
        self.reason = reason
        super().__init__(f"Malformed chunk {chunk_index}: {reason}")


class TotalElementsError(DownloadError):
    """Raised when the row-count probe answers with an unusable envelope."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Cannot determine total number of elements: {reason}")


class DetailFlagMismatchError(DownloadError):
    """
    Raised when a resumed file was begun with a different detail flag.

    Continuing would interleave two incompatible row schemas in one file.

    Attributes:
        persisted: no_details value stored in the checkpoint
        requested: no_details value of the current invocation
    """

    def __init__(self, persisted: bool, requested: bool) -> None:
        self.persisted = persisted
        self.requested = requested
        super().__init__(
            f"Warning! This file was begun with --no-details={str(persisted).lower()}; "
            f"continuing with --no-details={str(requested).lower()} will break the file."
        )


class OutputExistsError(DownloadError):
    """
    Raised when a fresh download would overwrite an existing output file.

    Attributes:
        output_path: Path of the existing file
    """

    def __init__(self, output_path: str) -> None:
        self.output_path = output_path
        super().__init__(
            "File already exists; please resume removing --no-resume, "
            "delete or specify another output filename."
        )


class ResumeUnavailableError(DownloadError):
    """
    Raised when a resume is requested but the output or its checkpoint is missing.

    Attributes:
        path: Path of the missing file
        hint: Actionable hint for resolution
    """

    def __init__(self, path: str, hint: str | None = None) -> None:
        self.path = path
        self.hint = hint
        msg = f"Cannot resume; {path!r} does not exist"
        if hint:
            msg += f": {hint}"
        super().__init__(msg)


class CheckpointWriteError(DownloadError):
    """Raised when checkpoint save fails."""


class CheckpointReadError(DownloadError):
    """Raised when checkpoint load fails."""


class OutputWriteError(DownloadError):
    """
    Raised when the output file cannot be opened, written or flushed.

    Rows written since the last checkpoint are rolled back, so the session can
    be resumed once the cause (disk full, permissions) is fixed.

    Attributes:
        output_path: Path of the output file
    """

    def __init__(self, output_path: str, reason: str) -> None:
        self.output_path = output_path
        super().__init__(f"Cannot write {output_path}: {reason}")


class OutputMismatchError(DownloadError):
    """
    Raised when a resumed output file is shorter than its checkpoint records.

    Attributes:
        output_path: Path of the output file
        expected_bytes: Byte length stored in the checkpoint
        actual_bytes: Byte length found on disk
    """

    def __init__(self, output_path: str, expected_bytes: int, actual_bytes: int) -> None:
        self.output_path = output_path
        self.expected_bytes = expected_bytes
        self.actual_bytes = actual_bytes
        super().__init__(
            f"Cannot resume; {output_path} holds {actual_bytes} bytes but the checkpoint "
            f"recorded {expected_bytes}. Delete the file and its .audisto_ sidecar to start over."
        )
