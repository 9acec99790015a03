import typer

from .commands import (
    download as download_cmd,
    status as status_cmd,
)

app = typer.Typer(help="Audisto crawl downloader CLI")

app.add_typer(download_cmd.app, name="download")
app.add_typer(status_cmd.app, name="status")


if __name__ == "__main__":
    app()
