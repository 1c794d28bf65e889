# tests/test_file_utils.py
from pathlib import Path
from unittest.mock import patch

import pytest

from aiplan.file_utils import (
    count_lines,
    create_file,
    delete_file,
    move_file,
    normalize_path,
    read_local_file,
    replace_line_range,
    replace_snippet,
    split_lines,
    write_local_file,
)

# Define a mock max file size for tests
MOCK_MAX_FILE_SIZE_BYTES = 1024  # 1 KB for testing size limits

# --- Tests for normalize_path ---

def test_normalize_path_relative_to_root(tmp_path):
    """Relative paths are resolved against the given project root."""
    normalized = normalize_path("subdir/test_file.txt", tmp_path)
    assert Path(normalized).is_absolute()
    assert Path(normalized) == (tmp_path / "subdir" / "test_file.txt").resolve()

def test_normalize_path_relative_to_cwd(tmp_path, monkeypatch):
    """Without a root, relative paths are resolved against the working directory."""
    monkeypatch.chdir(tmp_path)
    assert Path(normalize_path("file.txt")) == (tmp_path / "file.txt").resolve()

def test_normalize_path_absolute(tmp_path):
    """Test normalizing an absolute path."""
    absolute_path = str(tmp_path / "another_file.txt")
    normalized = normalize_path(absolute_path, "/somewhere/else")
    assert Path(normalized) == Path(absolute_path).resolve()

def test_normalize_path_with_tilde(tmp_path):
    """Test normalizing a path with a tilde (~)."""
    with patch("aiplan.file_utils.Path.expanduser") as mock_expanduser:
        mock_expanduser.return_value = tmp_path / "home_dir_file.txt"
        normalized = normalize_path("~/some_file.txt")
        assert Path(normalized) == (tmp_path / "home_dir_file.txt").resolve()

@pytest.mark.parametrize("bad_path", ["", "   ", "../escape.txt", "a/../../b.txt"])
def test_normalize_path_rejects_empty_and_parent_references(bad_path, tmp_path):
    with pytest.raises(ValueError, match="Invalid path"):
        normalize_path(bad_path, tmp_path)

# --- Tests for reading, writing and moving files ---

def test_read_and_write_keep_line_endings(tmp_path):
    target = tmp_path / "nested" / "crlf.txt"
    write_local_file(str(target), "a\r\nb\r\n")
    assert target.read_bytes() == b"a\r\nb\r\n"
    assert read_local_file(str(target)) == "a\r\nb\r\n"

def test_read_local_file_not_found(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_local_file(str(tmp_path / "missing.txt"))

def test_write_local_file_size_limit(tmp_path):
    with pytest.raises(ValueError, match="size limit"):
        write_local_file(str(tmp_path / "big.txt"), "x" * (MOCK_MAX_FILE_SIZE_BYTES + 1), MOCK_MAX_FILE_SIZE_BYTES)
    assert not (tmp_path / "big.txt").exists()

def test_create_file_refuses_existing(tmp_path):
    target = tmp_path / "exists.txt"
    target.write_text("old")
    with pytest.raises(FileExistsError):
        create_file(str(target), "new")
    create_file(str(target), "new", overwrite=True)
    assert target.read_text() == "new"

def test_move_file(tmp_path):
    source = tmp_path / "a.txt"
    source.write_text("data")
    move_file(str(source), str(tmp_path / "sub" / "b.txt"))
    assert not source.exists()
    assert (tmp_path / "sub" / "b.txt").read_text() == "data"

def test_move_file_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        move_file(str(tmp_path / "nope"), str(tmp_path / "b"))
    (tmp_path / "a").write_text("1")
    (tmp_path / "b").write_text("2")
    with pytest.raises(FileExistsError):
        move_file(str(tmp_path / "a"), str(tmp_path / "b"))

def test_delete_file(tmp_path):
    target = tmp_path / "gone.txt"
    target.write_text("bye")
    delete_file(str(target))
    assert not target.exists()
    with pytest.raises(FileNotFoundError):
        delete_file(str(target))
    delete_file(str(target), missing_ok=True)

# --- Tests for line helpers ---

def test_split_lines():
    assert split_lines("") == ([], "\n", False)
    assert split_lines("a\nb") == (["a", "b"], "\n", False)
    assert split_lines("a\r\nb\r\n") == (["a", "b"], "\r\n", True)
    assert count_lines("a\n\nb\n") == 3

@pytest.mark.parametrize("content, new, start, end, expected, delta", [
    ("1\n2\n3\n", "two", 2, 3, "1\ntwo\n3\n", 0),
    ("1\n2\n3\n", "a\nb", 2, 3, "1\na\nb\n3\n", 1),
    ("1\n2\n3\n", "", 1, 3, "3\n", -2),
    ("1\n2\n3\n", "0", 1, 1, "0\n1\n2\n3\n", 1),
    ("1\n2\n3\n", "4", 4, 4, "1\n2\n3\n4\n", 1),
    ("1\n2", "x", 2, 3, "1\nx", 0),
    ("1\r\n2\r\n", "a\nb", 1, 2, "a\r\nb\r\n2\r\n", 1),
    ("", "first", 1, 1, "first", 1),
])
def test_replace_line_range(content, new, start, end, expected, delta):
    assert replace_line_range(content, new, start, end) == (expected, delta)

def test_replace_line_range_out_of_bounds():
    with pytest.raises(ValueError, match="outside the file"):
        replace_line_range("1\n2\n", "x", 2, 5)

# --- Tests for replace_snippet ---

def test_replace_snippet_success():
    assert replace_snippet("Hello world", "world", "there") == "Hello there"

def test_replace_snippet_not_found():
    with pytest.raises(ValueError, match="Original snippet not found"):
        replace_snippet("Hello world", "planet", "there")

def test_replace_snippet_ambiguous():
    with pytest.raises(ValueError, match="Ambiguous edit: 2 matches"):
        replace_snippet("ab ab", "ab", "cd")
