"""End-to-end resume tests with real output files and sidecars."""

from __future__ import annotations

import errno
import logging
from pathlib import Path

import pytest

from audisto_downloader.application.dto.transfer import TransferRequest
from audisto_downloader.application.use_cases.download_crawl import download_crawl
from audisto_downloader.domain.errors import CrawlNotFoundError, OutputMismatchError, OutputWriteError
from audisto_downloader.domain.policy.transfer_policy import TransferPolicy
from audisto_downloader.infrastructure.adapters.checkpoint_manager import CheckpointManagerAdapter
from audisto_downloader.infrastructure.adapters.tsv_sink import open_output_sink

from conftest import FakeCrawlApi, expected_output, make_rows

pytestmark = pytest.mark.integration


class SimulatedCrash(Exception):
    """Stands in for the process being killed mid-download."""


class FillingFile:
    """Wraps an open output file; the disk fills up on the given write."""

    def __init__(self, wrapped, fail_at: int) -> None:
        self._wrapped = wrapped
        self.fail_at = fail_at
        self.writes = 0

    def write(self, text: str) -> int:
        self.writes += 1
        if self.writes == self.fail_at:
            raise OSError(errno.ENOSPC, "No space left on device")
        return self._wrapped.write(text)

    def __getattr__(self, name):
        return getattr(self._wrapped, name)


def filling_disk_opener(fail_at: int):
    def opener(output_path: str, create: bool, truncate_to: int | None = None):
        sink = open_output_sink(output_path, create, truncate_to)
        sink._file = FillingFile(sink._file, fail_at)
        return sink

    return opener


def run_download(api, output: Path, sleep, open_sink=open_output_sink, **policy_overrides):
    policy_values = {"initial_chunk_size": 1000}
    policy_values.update(policy_overrides)
    return download_crawl(
        request=TransferRequest(username="alice", password="s3cret", crawl_id=5, output=str(output)),
        chunk_source=api,
        checkpoint_manager=CheckpointManagerAdapter(),
        open_sink=open_sink,
        policy=TransferPolicy(**policy_values),
        sleep=sleep,
    )


def test_interrupted_download_resumes_to_identical_file(tmp_path, sleep):
    rows = make_rows(2500)
    reference = tmp_path / "reference.tsv"
    resumed = tmp_path / "resumed.tsv"
    manager = CheckpointManagerAdapter()

    run_download(FakeCrawlApi(rows), reference, sleep)

    crashing = FakeCrawlApi(rows, script=[None, None, SimulatedCrash("killed")])
    with pytest.raises(SimulatedCrash):
        run_download(crashing, resumed, sleep)

    checkpoint = manager.load_checkpoint(resumed)
    assert checkpoint.done_elements == 2000
    assert resumed.read_text(encoding="utf-8") == expected_output(rows[:2000])

    api = FakeCrawlApi(rows)
    result = run_download(api, resumed, sleep)

    assert api.probe_calls == 0
    assert api.calls[0][:2] == (2, 1000)
    assert result.done_elements == 2500
    assert resumed.read_bytes() == reference.read_bytes()
    assert resumed.read_text(encoding="utf-8") == expected_output(rows)
    assert not manager.checkpoint_exists(resumed)


def test_resume_after_shrink_continues_mid_chunk(tmp_path, sleep):
    rows = make_rows(2500)
    output = tmp_path / "pages.tsv"

    # three gateway timeouts shrink 1000 -> 700, then the process dies
    crashing = FakeCrawlApi(rows, script=[None, 504, 504, 504, None, SimulatedCrash("killed")])
    with pytest.raises(SimulatedCrash):
        run_download(crashing, output, sleep, shrink_step=300)

    checkpoint = CheckpointManagerAdapter().load_checkpoint(output)
    assert checkpoint.done_elements == 1400
    assert checkpoint.chunk_size == 700

    api = FakeCrawlApi(rows)
    run_download(api, output, sleep)

    assert api.calls[0][:2] == (2, 700)
    assert output.read_text(encoding="utf-8") == expected_output(rows)


def test_fatal_status_leaves_resumable_state(tmp_path, sleep):
    rows = make_rows(2500)
    output = tmp_path / "pages.tsv"

    with pytest.raises(CrawlNotFoundError):
        run_download(FakeCrawlApi(rows, script=[None, 404]), output, sleep)

    manager = CheckpointManagerAdapter()
    assert manager.load_checkpoint(output).done_elements == 1000
    assert output.read_text(encoding="utf-8") == expected_output(rows[:1000])

    run_download(FakeCrawlApi(rows), output, sleep)

    assert output.read_text(encoding="utf-8") == expected_output(rows)


def test_fresh_download_creates_output_and_sidecar_first(tmp_path, sleep):
    output = tmp_path / "pages.tsv"

    with pytest.raises(SimulatedCrash):
        run_download(FakeCrawlApi(make_rows(10), script=[SimulatedCrash("killed")]), output, sleep)

    assert output.exists()
    assert output.read_bytes() == b""
    checkpoint = CheckpointManagerAdapter().load_checkpoint(output)
    assert checkpoint.done_elements == 0
    assert checkpoint.total_elements == 10


def test_disk_full_mid_chunk_resumes_without_duplicates(tmp_path, sleep):
    rows = make_rows(25)
    output = tmp_path / "pages.tsv"

    # header + 10 rows commit, then the 5th row of the second chunk fails
    with pytest.raises(OutputWriteError) as exc_info:
        run_download(FakeCrawlApi(rows), output, sleep, open_sink=filling_disk_opener(16), initial_chunk_size=10)

    assert "No space left on device" in str(exc_info.value)
    assert isinstance(exc_info.value.__cause__, OSError)
    assert CheckpointManagerAdapter().load_checkpoint(output).done_elements == 10
    assert output.read_text(encoding="utf-8") == expected_output(rows[:10])

    run_download(FakeCrawlApi(rows), output, sleep, initial_chunk_size=10)

    assert output.read_text(encoding="utf-8") == expected_output(rows)


def test_bytes_past_checkpoint_are_discarded_on_resume(tmp_path, sleep, caplog):
    rows = make_rows(2500)
    output = tmp_path / "pages.tsv"

    with pytest.raises(SimulatedCrash):
        run_download(FakeCrawlApi(rows, script=[None, SimulatedCrash("killed")]), output, sleep)
    # a killed process can leave part of the next chunk behind
    with output.open("a", encoding="utf-8", newline="") as f:
        f.write(f"{rows[1000]}\n{rows[1001][:12]}")

    with caplog.at_level(logging.WARNING):
        run_download(FakeCrawlApi(rows), output, sleep)

    assert output.read_text(encoding="utf-8") == expected_output(rows)
    assert "after the last checkpoint" in caplog.text


def test_output_shorter_than_checkpoint_refuses_resume(tmp_path, sleep):
    rows = make_rows(2500)
    output = tmp_path / "pages.tsv"

    with pytest.raises(SimulatedCrash):
        run_download(FakeCrawlApi(rows, script=[None, SimulatedCrash("killed")]), output, sleep)
    output.write_text(expected_output(rows[:500]), encoding="utf-8")
    api = FakeCrawlApi(rows)

    with pytest.raises(OutputMismatchError):
        run_download(api, output, sleep)

    assert api.calls == []
    assert output.read_text(encoding="utf-8") == expected_output(rows[:500])
