# tests/test_operation_validator.py
import pytest

from aiplan.data_models import (
    CreateOperation,
    DeleteOperation,
    EditOperation,
    RenameOperation,
    ReplaceOperation,
    ResponseOperation,
)
from aiplan.operation_validator import check_reachability, plan_warnings, validate, validate_all


def test_validate_each_kind():
    assert isinstance(validate({"type": "create", "filePath": "a", "content": ""}), CreateOperation)
    assert isinstance(validate({"type": "edit", "filePath": "a", "content": "x"}), EditOperation)
    assert isinstance(validate({"type": "replace", "filePath": "a", "find": "x", "content": "y"}), ReplaceOperation)
    assert isinstance(validate({"type": "rename", "oldPath": "a", "newPath": "b"}), RenameOperation)
    assert isinstance(validate({"type": "delete", "filePath": "a"}), DeleteOperation)
    response = validate({"type": "response", "content": "hello"})
    assert isinstance(response, ResponseOperation)
    assert response.text == "hello"


def test_validate_type_is_case_insensitive():
    assert isinstance(validate({"type": "Delete", "filePath": "a"}), DeleteOperation)


def test_ranged_edit_bounds_are_integers():
    op = validate({"type": "edit", "filePath": "a", "content": "x", "startLine": "3", "endLine": "5"})
    assert (op.start_line, op.end_line) == (3, 5)
    assert op.is_ranged


@pytest.mark.parametrize("record, field", [
    ({"filePath": "a"}, "type"),
    ({"type": "explode", "filePath": "a"}, "type"),
    ({"type": "create", "content": "x"}, "filePath"),
    ({"type": "create", "filePath": "a"}, "content"),
    ({"type": "rename", "oldPath": "a"}, "newPath"),
    ({"type": "delete", "filePath": "a", "colour": "blue"}, "colour"),
    ({"type": "edit", "filePath": "a", "content": "x", "startLine": "zero", "endLine": "2"}, "startLine"),
    ({"type": "edit", "filePath": "a", "content": "x", "startLine": "0", "endLine": "2"}, "startLine"),
])
def test_validate_reports_offending_field(record, field):
    issues = validate(record)
    assert isinstance(issues, list) and issues
    assert any(issue.field == field for issue in issues)


@pytest.mark.parametrize("bounds", [{"startLine": "3"}, {"endLine": "3"}, {"startLine": "5", "endLine": "3"}])
def test_inconsistent_line_bounds_are_rejected(bounds):
    issues = validate({"type": "edit", "filePath": "a", "content": "x", **bounds})
    assert isinstance(issues, list) and issues


def test_validate_all_keeps_plan_positions():
    records = [
        {"type": "delete", "filePath": "a"},
        {"type": "bogus"},
        {"type": "delete", "filePath": "c"},
    ]
    validation = validate_all(records)
    assert not validation.ok
    assert [op.path for op in validation.operations] == ["a", "c"]
    assert validation.indices == [1, 3]
    assert validation.errors[0].index == 2
    assert validation.messages()[0].startswith("operation 2: type:")


def test_check_reachability_simulates_the_plan(tmp_path):
    (tmp_path / "existing.txt").write_text("one\ntwo\n")
    operations = [
        CreateOperation(path="new.txt", content="fresh"),
        EditOperation(path="new.txt", content="changed"),
        RenameOperation(old_path="existing.txt", new_path="moved.txt"),
        DeleteOperation(path="moved.txt"),
    ]
    assert check_reachability(operations, tmp_path) == []


def test_check_reachability_reports_filesystem_conflicts(tmp_path):
    (tmp_path / "existing.txt").write_text("x\nx\n")
    operations = [
        CreateOperation(path="existing.txt", content=""),
        DeleteOperation(path="missing.txt"),
        RenameOperation(old_path="missing.txt", new_path="existing.txt"),
        ReplaceOperation(path="existing.txt", find="x", content="y"),
        ReplaceOperation(path="existing.txt", find="z", content="y"),
        EditOperation(path="existing.txt", content="", start_line=1, end_line=9),
        DeleteOperation(path="../outside.txt"),
    ]
    errors = check_reachability(operations, tmp_path)
    assert [error.index for error in errors] == [1, 2, 3, 4, 5, 6, 7]
    assert {issue.field for issue in errors[2].issues} == {"oldPath", "newPath"}
    assert "ambiguous" in errors[3].issues[0].message
    assert "not found" in errors[4].issues[0].message


def test_check_reachability_allows_insert_at_end(tmp_path):
    (tmp_path / "f.txt").write_text("a\nb\n")
    assert check_reachability([EditOperation(path="f.txt", content="c", start_line=3, end_line=3)], tmp_path) == []


def test_plan_warnings_for_ranged_edit_after_rewrite():
    operations = [
        ReplaceOperation(path="a.py", content="whole"),
        EditOperation(path="a.py", content="x", start_line=1, end_line=2),
    ]
    warnings = plan_warnings(operations)
    assert len(warnings) == 1
    assert "whole-file rewrite" in warnings[0]


def test_plan_warnings_for_overlapping_ranges():
    operations = [
        EditOperation(path="a.py", content="x", start_line=5, end_line=8),
        EditOperation(path="a.py", content="y", start_line=6, end_line=7),
        EditOperation(path="b.py", content="y", start_line=1, end_line=2),
    ]
    warnings = plan_warnings(operations)
    assert len(warnings) == 1
    assert warnings[0].startswith("operation 2")


def test_plan_warnings_silent_for_ordered_ranges():
    operations = [
        EditOperation(path="a.py", content="x", start_line=1, end_line=3),
        EditOperation(path="a.py", content="y", start_line=3, end_line=3),
        EditOperation(path="a.py", content="z", start_line=7, end_line=9),
    ]
    assert plan_warnings(operations) == []
