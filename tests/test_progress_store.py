"""Tests for the in-memory progress store."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

import pytest
from pydantic import ValidationError as PydanticValidationError

from depara.progress import ProgressSnapshot, ProgressStore

if TYPE_CHECKING:
    from conftest import FakeClock


def test_report_replaces_previous_snapshot(progress: ProgressStore, clock: FakeClock) -> None:
    progress.report("op-1", 10, 4, "Starting")
    clock.advance(1)

    latest = progress.report("op-1", 50, 4, "Processed 2/4 files")

    assert progress.get("op-1") == latest
    assert latest.timestamp == clock.now()
    assert len(progress) == 1


def test_unknown_operation_has_no_snapshot(progress: ProgressStore) -> None:
    assert progress.get("missing") is None
    assert progress.clear("missing") is False


def test_list_active_excludes_finished_runs(progress: ProgressStore) -> None:
    progress.report("running", 40, 5, "Processed 2/5 files")
    progress.report("queued", 0, 5, "Starting")
    progress.report("done", 100, 5, "Copy finished")
    progress.report("failed", -1, 0, "Batch failed")

    active = sorted(snapshot.operation_id for snapshot in progress.list_active())

    assert active == ["queued", "running"]


def test_clear_forgets_snapshot(progress: ProgressStore) -> None:
    progress.report("op-1", 100, 1, "done")

    assert progress.clear("op-1") is True
    assert progress.get("op-1") is None


def test_prune_only_drops_old_terminal_snapshots(
    progress: ProgressStore, clock: FakeClock
) -> None:
    """Finished runs age out; in-flight runs survive regardless of age.

    Args:
        progress: Store under test.
        clock: Fake clock advanced between reports.
    """
    progress.report("old-done", 100, 1, "done")
    progress.report("old-failed", -1, 1, "failed")
    progress.report("old-running", 50, 2, "half")
    clock.advance(600)
    progress.report("new-done", 100, 1, "done")

    removed = progress.prune(300)

    assert sorted(removed) == ["old-done", "old-failed"]
    assert progress.get("old-running") is not None
    assert progress.get("new-done") is not None


def test_snapshot_payload_uses_camel_case(progress: ProgressStore) -> None:
    snapshot = progress.report("op-1", 25, 4, "Processed 1/4 files")

    payload = snapshot.to_payload()

    assert payload["operationId"] == "op-1"
    assert payload["percentage"] == 25
    assert payload["timestamp"].startswith("2024-05-01T12:30:45")


@pytest.mark.parametrize("value", [-2, 101])
def test_percentage_is_bounded(value: int, clock: FakeClock) -> None:
    with pytest.raises(PydanticValidationError):
        ProgressSnapshot(operation_id="x", percentage=value, timestamp=clock.now())


def test_concurrent_reports_are_safe(progress: ProgressStore) -> None:
    def _report(worker: int) -> None:
        for step in range(50):
            progress.report(f"op-{worker}", step, 50, f"step {step}")

    threads = [threading.Thread(target=_report, args=(worker,)) for worker in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(progress) == 8
    assert {snapshot.percentage for snapshot in progress.list_active()} == {49}
