"""Integration tests for the JSON sidecar checkpoint manager."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from audisto_downloader.domain.errors import CheckpointReadError, CheckpointWriteError
from audisto_downloader.domain.models.checkpoint import TransferCheckpoint
from audisto_downloader.infrastructure.adapters.checkpoint_manager import CheckpointManagerAdapter

pytestmark = pytest.mark.integration


@pytest.fixture
def output(tmp_path: Path) -> Path:
    return tmp_path / "pages.tsv"


def make_checkpoint(output: Path, **kwargs) -> TransferCheckpoint:
    values = {"output_filename": str(output), "total_elements": 25000, "done_elements": 10000}
    values.update(kwargs)
    return TransferCheckpoint(**values)


def test_sidecar_sits_next_to_output(output):
    manager = CheckpointManagerAdapter()

    assert manager.get_checkpoint_path(output) == output.parent / "pages.tsv.audisto_"
    assert CheckpointManagerAdapter(suffix=".resume").get_checkpoint_path("a.tsv") == Path("a.tsv.resume")


def test_empty_suffix_rejected():
    with pytest.raises(ValueError):
        CheckpointManagerAdapter(suffix="")


def test_saved_sidecar_layout(output):
    manager = CheckpointManagerAdapter()

    manager.save_checkpoint(make_checkpoint(output, no_details=True, chunk_size=9000), output)

    data = json.loads(manager.get_checkpoint_path(output).read_text(encoding="utf-8"))
    assert data == {
        "outputFilename": str(output),
        "doneElements": 10000,
        "totalElements": 25000,
        "noDetails": True,
        "chunkSize": 9000,
    }


def test_save_replaces_previous_state_without_temp_leftovers(output):
    manager = CheckpointManagerAdapter()

    manager.save_checkpoint(make_checkpoint(output, done_elements=10000), output)
    manager.save_checkpoint(make_checkpoint(output, done_elements=20000), output)

    assert manager.load_checkpoint(output).done_elements == 20000
    assert sorted(p.name for p in output.parent.iterdir()) == ["pages.tsv.audisto_"]


def test_failed_write_keeps_previous_sidecar(output):
    manager = CheckpointManagerAdapter()
    manager.save_checkpoint(make_checkpoint(output, done_elements=10000), output)

    with patch("audisto_downloader.infrastructure.adapters.checkpoint_manager.os.replace", side_effect=OSError("disk full")):
        with pytest.raises(CheckpointWriteError, match="disk full"):
            manager.save_checkpoint(make_checkpoint(output, done_elements=20000), output)

    assert manager.load_checkpoint(output).done_elements == 10000
    assert sorted(p.name for p in output.parent.iterdir()) == ["pages.tsv.audisto_"]


def test_load_missing_sidecar_returns_none(output):
    assert CheckpointManagerAdapter().load_checkpoint(output) is None


def test_load_sidecar_without_chunk_size(output):
    manager = CheckpointManagerAdapter(default_chunk_size=10000)
    manager.get_checkpoint_path(output).write_text(
        json.dumps(
            {"outputFilename": str(output), "doneElements": 30000, "totalElements": 120000, "noDetails": False}
        ),
        encoding="utf-8",
    )

    checkpoint = manager.load_checkpoint(output)

    assert checkpoint.chunk_size == 10000
    assert checkpoint.done_elements == 30000


@pytest.mark.parametrize(
    "content",
    [
        "{broken",
        json.dumps({"outputFilename": "pages.tsv", "doneElements": 5}),
        json.dumps({"outputFilename": "pages.tsv", "doneElements": 50, "totalElements": 10}),
        json.dumps({"outputFilename": "pages.tsv", "doneElements": "many", "totalElements": 10}),
    ],
)
def test_unreadable_sidecar_raises(output, content):
    manager = CheckpointManagerAdapter()
    manager.get_checkpoint_path(output).write_text(content, encoding="utf-8")

    with pytest.raises(CheckpointReadError, match="Resumer file error"):
        manager.load_checkpoint(output)


def test_delete_checkpoint(output):
    manager = CheckpointManagerAdapter()
    manager.save_checkpoint(make_checkpoint(output), output)

    assert manager.checkpoint_exists(output)
    assert manager.delete_checkpoint(output) is True
    assert not manager.checkpoint_exists(output)
    assert manager.delete_checkpoint(output) is False
