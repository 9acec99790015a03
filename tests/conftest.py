"""Shared fakes for transfer tests."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from audisto_downloader.domain.models.checkpoint import TransferCheckpoint
from audisto_downloader.domain.models.chunk import ChunkResponse

HEADER = "url\tstatus_code\ttitle"


def make_rows(count: int) -> list[str]:
    """Data rows of a fake crawl (header excluded)."""
    return [f"https://example.com/page/{i}\t200\tPage {i}" for i in range(count)]


def expected_output(rows: list[str]) -> str:
    return "".join(f"{row}\n" for row in [HEADER, *rows])


class FakeCrawlApi:
    """
    In-memory pages endpoint serving fixed-size chunk windows.

    Every chunk starts with the header row, like the real API. ``script``
    holds one entry per chunk request, consumed in order; once it runs out
    the real window is served:

    - None: serve the window
    - int: answer with that status code and an empty body
    - ChunkResponse: answer with it verbatim
    - Exception instance: raise it
    """

    def __init__(
        self,
        rows: list[str],
        script: list[Any] | None = None,
        probe_script: list[Any] | None = None,
    ) -> None:
        self.rows = rows
        self.script = list(script or [])
        self.probe_script = list(probe_script or [])
        self.calls: list[tuple[int, int, bool]] = []
        self.probe_calls = 0

    def window(self, chunk_index: int, chunk_size: int) -> ChunkResponse:
        start = chunk_index * chunk_size
        lines = [HEADER, *self.rows[start:start + chunk_size]]
        body = "".join(f"{line}\n" for line in lines)
        return ChunkResponse(status_code=200, body=body.encode("utf-8"))

    def fetch_chunk(self, chunk_index: int, chunk_size: int, no_details: bool) -> ChunkResponse:
        self.calls.append((chunk_index, chunk_size, no_details))
        entry = self.script.pop(0) if self.script else None
        return self._answer(entry, lambda: self.window(chunk_index, chunk_size))

    def fetch_total(self) -> ChunkResponse:
        self.probe_calls += 1
        entry = self.probe_script.pop(0) if self.probe_script else None
        envelope = {"chunk": {"total": len(self.rows), "page": 0, "size": 1}, "pages": []}
        return self._answer(
            entry,
            lambda: ChunkResponse(status_code=200, body=json.dumps(envelope).encode("utf-8")),
        )

    @staticmethod
    def _answer(entry: Any, serve: Any) -> ChunkResponse:
        if entry is None:
            return serve()
        if isinstance(entry, BaseException):
            raise entry
        if isinstance(entry, ChunkResponse):
            return entry
        return ChunkResponse(status_code=entry)


class MemorySink:
    """Sink keeping rows in memory; abort() drops rows written since the last flush."""

    def __init__(self, events: list[str] | None = None, durable: bool = True) -> None:
        self.rows: list[str] = []
        self.flushes = 0
        self.closed = False
        self.aborted = False
        self._committed_rows = 0
        self.events = events if events is not None else []
        self._durable = durable

    @property
    def durable(self) -> bool:
        return self._durable

    def write_row(self, row: str) -> None:
        self.rows.append(row)

    def flush(self) -> None:
        self.flushes += 1
        self._committed_rows = len(self.rows)
        self.events.append(f"flush:{len(self.rows)}")

    def committed_bytes(self) -> int | None:
        if not self._durable:
            return None
        return sum(len(row.encode("utf-8")) + 1 for row in self.rows[:self._committed_rows])

    def close(self) -> None:
        self.closed = True

    def abort(self) -> None:
        del self.rows[self._committed_rows:]
        self.aborted = True

    @property
    def text(self) -> str:
        return "".join(f"{row}\n" for row in self.rows)


class MemoryCheckpointManager:
    """Checkpoint manager keeping sidecars as dicts."""

    def __init__(self, events: list[str] | None = None) -> None:
        self.saved: dict[str, dict[str, Any]] = {}
        self.saves = 0
        self.deleted: list[str] = []
        self.events = events if events is not None else []

    def get_checkpoint_path(self, output_path: Path | str) -> Path:
        return Path(f"{output_path}.audisto_")

    def save_checkpoint(self, checkpoint: TransferCheckpoint, output_path: Path | str) -> None:
        self.saves += 1
        self.saved[str(output_path)] = checkpoint.to_dict()
        self.events.append(f"save:{checkpoint.done_elements}")

    def load_checkpoint(self, output_path: Path | str) -> TransferCheckpoint | None:
        data = self.saved.get(str(output_path))
        return TransferCheckpoint.from_dict(data) if data is not None else None

    def delete_checkpoint(self, output_path: Path | str) -> bool:
        self.deleted.append(str(output_path))
        return self.saved.pop(str(output_path), None) is not None

    def checkpoint_exists(self, output_path: Path | str) -> bool:
        return str(output_path) in self.saved


class RecordingSleep:
    """Stand-in for time.sleep that only records the requested delays."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep credentials and API overrides from the developer's shell out of tests."""
    for key in ("AUDISTO_USERNAME", "AUDISTO_PASSWORD", "AUDISTO_API_URL", "AUDISTO_CONFIG"):
        monkeypatch.delenv(key, raising=False)
