# tests/test_plan_executor.py
import json
from unittest.mock import MagicMock

import pytest

from aiplan.data_models import (
    CreateOperation,
    DeleteOperation,
    EditOperation,
    PlanExecutionError,
    RenameOperation,
    ReplaceOperation,
    ResponseOperation,
)
from aiplan.history_store import HistoryStore
from aiplan.plan_executor import apply_operations, capture_backups, execute_plan


@pytest.fixture
def mock_console():
    """Fixture for a mock Rich console object."""
    return MagicMock()


@pytest.fixture
def store(tmp_path):
    return HistoryStore(tmp_path)


def write(root, name, content):
    path = root / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content.encode("utf-8"))
    return path


def read(root, name):
    return (root / name).read_bytes().decode("utf-8")


def test_sequential_ranged_edits_use_original_line_numbers(tmp_path, store):
    write(tmp_path, "f.txt", "1\n2\n3\n4\n5\n6\n")
    operations = [
        EditOperation(path="f.txt", content="a\nb\nc", start_line=2, end_line=3),  # +2 lines
        EditOperation(path="f.txt", content="", start_line=4, end_line=6),         # -2 lines
        EditOperation(path="f.txt", content="end", start_line=7, end_line=7),      # insert at end
    ]
    report = execute_plan(operations, "edits", store)
    assert report.ok
    assert read(tmp_path, "f.txt") == "1\na\nb\nc\n3\n6\nend\n"


def test_edit_deltas_follow_a_rename(tmp_path):
    write(tmp_path, "old.txt", "1\n2\n3\n")
    operations = [
        EditOperation(path="old.txt", content="x\ny", start_line=1, end_line=2),
        RenameOperation(old_path="old.txt", new_path="new.txt"),
        EditOperation(path="new.txt", content="three", start_line=3, end_line=4),
    ]
    results = apply_operations(operations, tmp_path)
    assert all(r.success for r in results)
    assert read(tmp_path, "new.txt") == "x\ny\n2\nthree\n"


def test_line_deltas_carry_into_a_later_run(tmp_path, store):
    write(tmp_path, "f.txt", "1\n2\n3\n4\n")
    first = execute_plan([EditOperation(path="f.txt", content="a\nb", start_line=1, end_line=2)], "first", store)
    assert first.line_deltas == {str((tmp_path / "f.txt").resolve()): 1}

    second = execute_plan(
        [EditOperation(path="f.txt", content="three", start_line=3, end_line=4)],
        "second",
        store,
        line_deltas=first.line_deltas,
    )
    assert second.ok
    assert read(tmp_path, "f.txt") == "a\nb\n2\nthree\n4\n"
    assert first.line_deltas == {str((tmp_path / "f.txt").resolve()): 1}


def test_whole_file_operations(tmp_path, store):
    write(tmp_path, "keep.txt", "old")
    write(tmp_path, "swap.txt", "alpha beta")
    write(tmp_path, "doomed.txt", "bye")
    operations = [
        CreateOperation(path="pkg/new.py", content="print('new')\n"),
        EditOperation(path="keep.txt", content="rewritten"),
        ReplaceOperation(path="swap.txt", find="beta", content="gamma"),
        DeleteOperation(path="doomed.txt"),
        ResponseOperation(text="done"),
    ]
    report = execute_plan(operations, "mixed", store)
    assert report.ok and report.total == 5
    assert read(tmp_path, "pkg/new.py") == "print('new')\n"
    assert read(tmp_path, "keep.txt") == "rewritten"
    assert read(tmp_path, "swap.txt") == "alpha gamma"
    assert not (tmp_path / "doomed.txt").exists()


def test_whole_file_edit_requires_existing_file(tmp_path):
    results = apply_operations([EditOperation(path="missing.txt", content="x")], tmp_path)
    assert not results[0].success
    assert not (tmp_path / "missing.txt").exists()


def test_capture_backups_only_existing_targets(tmp_path):
    write(tmp_path, "a.txt", "A")
    write(tmp_path, "b.txt", "B")
    operations = [
        CreateOperation(path="c.txt", content="C"),
        EditOperation(path="a.txt", content="x"),
        EditOperation(path="a.txt", content="y"),
        RenameOperation(old_path="b.txt", new_path="d.txt"),
        DeleteOperation(path="missing.txt"),
    ]
    assert capture_backups(operations, tmp_path) == {"a.txt": "A", "b.txt": "B"}


def test_fail_fast_records_attempted_operations(tmp_path, store, mock_console):
    write(tmp_path, "a.txt", "A")
    operations = [
        EditOperation(path="a.txt", content="changed"),
        DeleteOperation(path="missing.txt"),
        CreateOperation(path="never.txt", content="x"),
    ]
    report = execute_plan(operations, "partial", store, console_obj=mock_console, prompt="do things", name="p1")

    assert not report.ok
    assert report.total == 2
    assert report.failed_index == 1
    assert "File not found" in report.results[1].error
    assert not (tmp_path / "never.txt").exists()
    with pytest.raises(PlanExecutionError):
        report.raise_for_failure()

    entry = store.resolve("p1")
    assert entry.id == report.entry_id
    assert entry.prompt == "do things"
    assert [op.kind for op in entry.operations] == ["edit", "delete"]
    assert entry.succeeded == [True, False]
    assert entry.original_content == {"a.txt": "A"}


def test_continue_on_error_attempts_everything(tmp_path, store):
    operations = [
        DeleteOperation(path="missing.txt"),
        CreateOperation(path="made.txt", content="x"),
    ]
    report = execute_plan(operations, "keep going", store, continue_on_error=True)
    assert report.total == 2
    assert [r.success for r in report.results] == [False, True]
    assert (tmp_path / "made.txt").exists()


def test_history_entry_written_as_json(tmp_path, store):
    execute_plan([CreateOperation(path="x.txt", content="x")], "make x", store)
    raw = json.loads((tmp_path / ".aiplan-history.json").read_text())
    assert len(raw) == 1
    assert raw[0]["description"] == "make x"
    assert raw[0]["operations"][0]["type"] == "create"
    assert raw[0]["operations"][0]["filePath"] == "x.txt"
    assert raw[0]["originalContent"] == {}
    assert raw[0]["resultContent"] == {"x.txt": "x"}


def test_execute_then_undo_restores_exact_bytes(tmp_path, store):
    write(tmp_path, "crlf.txt", "one\r\ntwo\r\nthree\r\n")
    write(tmp_path, "plain.txt", "no newline at end")
    write(tmp_path, "gone.txt", "bye\n")
    operations = [
        EditOperation(path="crlf.txt", content="TWO", start_line=2, end_line=3),
        ReplaceOperation(path="plain.txt", find="no", content="a"),
        RenameOperation(old_path="gone.txt", new_path="moved.txt"),
        CreateOperation(path="brand/new.txt", content="new"),
    ]
    report = execute_plan(operations, "round trip", store)
    assert report.ok
    assert read(tmp_path, "crlf.txt") == "one\r\nTWO\r\nthree\r\n"

    store.undo(report.entry_id)
    assert read(tmp_path, "crlf.txt") == "one\r\ntwo\r\nthree\r\n"
    assert read(tmp_path, "plain.txt") == "no newline at end"
    assert read(tmp_path, "gone.txt") == "bye\n"
    assert not (tmp_path / "moved.txt").exists()
    assert not (tmp_path / "brand" / "new.txt").exists()


def test_size_limit_fails_the_operation(tmp_path, store):
    report = execute_plan([CreateOperation(path="big.txt", content="x" * 20)], "big", store, max_file_size_bytes=10)
    assert not report.ok
    assert not (tmp_path / "big.txt").exists()


def test_warnings_are_reported(tmp_path, store):
    write(tmp_path, "a.txt", "1\n2\n")
    operations = [
        EditOperation(path="a.txt", content="x"),
        EditOperation(path="a.txt", content="y", start_line=1, end_line=2),
    ]
    report = execute_plan(operations, "ambiguous", store)
    assert len(report.warnings) == 1
