import logging
import uuid

import typer
from pydantic import ValidationError

from audisto_downloader.application.dto.transfer import TransferRequest
from audisto_downloader.application.ports.progress_reporter import ProgressReporterPort
from audisto_downloader.application.use_cases.download_crawl import download_crawl
from audisto_downloader.domain.errors import DownloadError, RetryExhaustedError
from audisto_downloader.infrastructure.adapters.audisto_client import AudistoChunkSource, AudistoHttpTransport
from audisto_downloader.infrastructure.adapters.checkpoint_manager import CheckpointManagerAdapter
from audisto_downloader.infrastructure.adapters.rich_progress_reporter import RichProgressReporterAdapter
from audisto_downloader.infrastructure.adapters.tsv_sink import open_output_sink
from audisto_downloader.infrastructure.config.environment import load_environment_variables, require_credential
from audisto_downloader.infrastructure.config.settings import Settings
from audisto_downloader.infrastructure.logging import configure_logging, set_correlation_id

app = typer.Typer(help="Download the pages of a crawl as TSV")
logger = logging.getLogger(__name__)

NETWORK_ERROR_MESSAGE = "Network error; please check your connection to the internet and resume download."


@app.command()
def run(
    username: str | None = typer.Option(None, help="API Username (required; falls back to AUDISTO_USERNAME)"),
    password: str | None = typer.Option(None, help="API Password (required; falls back to AUDISTO_PASSWORD)"),
    crawl: int = typer.Option(0, help="ID of the crawl to download (required)"),
    no_details: bool = typer.Option(False, "--no-details", help="Request pages without details (deep=0)"),
    output: str = typer.Option("", help="Path for the output file (stdout if omitted; only files can be resumed)"),
    no_resume: bool = typer.Option(False, "--no-resume", help="Start a new download instead of resuming"),
    config_path: str = typer.Option("audisto.toml", envvar="AUDISTO_CONFIG", help="Path to audisto.toml configuration file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging including HTTP requests"),
) -> None:
    """
    Download all pages of a crawl, resuming an interrupted download of the same file.

    Progress is checkpointed after every chunk in a sidecar file next to the
    output ({output}.audisto_), which is removed once the download completes.

    Examples:
        audisto-downloader download run --crawl 12345 --output pages.tsv
        audisto-downloader download run --crawl 12345 --output pages.tsv --no-resume
    """
    configure_logging(logging.DEBUG if verbose else logging.INFO, verbose=verbose)
    correlation_id = str(uuid.uuid4())
    set_correlation_id(correlation_id)
    load_environment_variables()

    try:
        username = require_credential(username, "AUDISTO_USERNAME")
        password = require_credential(password, "AUDISTO_PASSWORD")
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(2)
    if crawl <= 0:
        typer.echo("Error: --crawl is required (ID of the crawl to download)", err=True)
        raise typer.Exit(2)

    try:
        settings = Settings.from_toml(config_path)
    except (OSError, ValueError) as e:
        typer.echo(f"Error loading configuration: {e}", err=True)
        raise typer.Exit(1)

    try:
        request = TransferRequest(
            username=username,
            password=password,
            crawl_id=crawl,
            no_details=no_details,
            output=output,
            resume=not no_resume,
        )
    except ValidationError as e:
        typer.echo(f"Error: invalid arguments: {e}", err=True)
        raise typer.Exit(2)

    checkpoint_manager = CheckpointManagerAdapter(
        suffix=settings.paths.checkpoint_suffix,
        default_chunk_size=settings.transfer.initial_chunk_size,
    )
    progress_reporter: ProgressReporterPort | None = None
    if not request.to_stdout:
        progress_reporter = RichProgressReporterAdapter()

    logger.info(
        f"Downloading crawl {request.crawl_id}",
        extra={"crawl_id": request.crawl_id, "output": request.output or "<stdout>"},
    )

    with AudistoHttpTransport(
        username=request.username,
        password=request.password,
        base_url=settings.api.base_url,
        timeout_seconds=settings.api.timeout_seconds,
    ) as transport:
        try:
            result = download_crawl(
                request=request,
                chunk_source=AudistoChunkSource(transport, request.crawl_id),
                checkpoint_manager=checkpoint_manager,
                open_sink=open_output_sink,
                policy=settings.transfer.to_policy(),
                progress_reporter=progress_reporter,
            )
        except RetryExhaustedError as e:
            logger.error(f"Too many failures: {e}", extra={"crawl_id": request.crawl_id})
            typer.echo(NETWORK_ERROR_MESSAGE, err=True)
            raise typer.Exit(1)
        except DownloadError as e:
            logger.error(f"Download aborted: {e}", extra={"crawl_id": request.crawl_id})
            typer.echo(str(e), err=True)
            raise typer.Exit(1)

    typer.echo(
        f"Downloaded {result.done_elements}/{result.total_elements} pages of crawl {request.crawl_id} "
        f"({result.rows_written} rows in {result.chunks_fetched} chunks, {result.duration_seconds:.1f}s)",
        err=True,
    )
    typer.echo(f"correlation_id={correlation_id}", err=True)
