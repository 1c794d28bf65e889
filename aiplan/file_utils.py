# aiplan/file_utils.py
import os
import re
from pathlib import Path
from typing import List, Optional, Tuple, Union

_LINE_BREAK_RE = re.compile(r"\r?\n")


def normalize_path(path_str: str, root: Optional[Union[str, Path]] = None) -> str:
    """Return a canonical, absolute version of the path with security checks.

    Relative paths are resolved against `root` (the project root) when given,
    otherwise against the current working directory.
    """
    try:
        if not path_str or not path_str.strip():
            raise ValueError("Path cannot be empty.")
        expanded_path = Path(path_str.strip()).expanduser()
        if ".." in expanded_path.parts:
            raise ValueError(f"Invalid path: {path_str} contains parent directory references")
        if root is not None and not expanded_path.is_absolute():
            expanded_path = Path(root) / expanded_path
        resolved_path = expanded_path.resolve()
        return str(resolved_path)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid path: \"{path_str}\". Error: {e}") from e
    except OSError as e:
        raise ValueError(f"Error normalizing path: \"{path_str}\". Details: {e}") from e


def is_binary_file(file_path: str, peek_size: int = 1024) -> bool:
    """Checks if a file is likely binary by looking for null bytes."""
    try:
        with open(file_path, "rb") as f:
            chunk = f.read(peek_size)
    except OSError:
        return True
    return b"\0" in chunk


def read_local_file(file_path: str) -> str:
    """Return the text content of a local file, line endings untouched.
    Raises FileNotFoundError or OSError on issues.
    """
    with open(file_path, "r", encoding="utf-8", newline="") as f:
        return f.read()


def read_if_exists(file_path: str) -> Optional[str]:
    """Content of the file, or None when nothing is there."""
    try:
        return read_local_file(file_path)
    except FileNotFoundError:
        return None


def write_local_file(file_path: str, content: str, max_file_size_bytes: Optional[int] = None):
    """Write `content` verbatim, creating parent directories as needed."""
    if max_file_size_bytes is not None and len(content.encode("utf-8")) > max_file_size_bytes:
        raise ValueError(f"File content exceeds the {max_file_size_bytes} byte size limit")
    path_obj = Path(file_path)
    path_obj.parent.mkdir(parents=True, exist_ok=True)
    try:
        with open(path_obj, "w", encoding="utf-8", newline="") as f:
            f.write(content)
    except OSError as e:
        raise OSError(f"Failed to write file '{path_obj}': {e}") from e


def create_file(file_path: str, content: str, max_file_size_bytes: Optional[int] = None, overwrite: bool = False):
    """Create a new file. Fails if something already exists at the path unless `overwrite`."""
    if not overwrite and os.path.lexists(file_path):
        raise FileExistsError(f"File already exists: '{file_path}'")
    write_local_file(file_path, content, max_file_size_bytes)


def move_file(old_path: str, new_path: str):
    if not os.path.exists(old_path):
        raise FileNotFoundError(f"Source file not found: '{old_path}'")
    if os.path.lexists(new_path):
        raise FileExistsError(f"Destination already exists: '{new_path}'")
    Path(new_path).parent.mkdir(parents=True, exist_ok=True)
    os.replace(old_path, new_path)


def delete_file(file_path: str, missing_ok: bool = False):
    try:
        os.remove(file_path)
    except FileNotFoundError:
        if not missing_ok:
            raise FileNotFoundError(f"File not found: '{file_path}'") from None


def split_lines(content: str) -> Tuple[List[str], str, bool]:
    """Split text into lines.

    Returns (lines, newline, has_trailing_newline). `newline` is "\\r\\n" when the
    text uses CRLF anywhere, "\\n" otherwise.
    """
    newline = "\r\n" if "\r\n" in content else "\n"
    if not content:
        return [], newline, False
    lines = _LINE_BREAK_RE.split(content)
    trailing = lines[-1] == ""
    if trailing:
        lines.pop()
    return lines, newline, trailing


def count_lines(content: str) -> int:
    return len(split_lines(content)[0])


def replace_line_range(content: str, new_content: str, start_line: int, end_line: int) -> Tuple[str, int]:
    """Replace the half-open, 1-based line range [start_line, end_line) of `content`.

    Returns (updated_content, line_delta). The file's newline style and its
    trailing newline are kept. Empty `new_content` deletes the range.
    """
    lines, newline, trailing = split_lines(content)
    if start_line < 1 or end_line < start_line:
        raise ValueError(f"Invalid line range {start_line}-{end_line}")
    if end_line > len(lines) + 1:
        raise ValueError(
            f"Line range {start_line}-{end_line} is outside the file ({len(lines)} lines)"
        )
    new_lines = split_lines(new_content)[0]
    lines[start_line - 1:end_line - 1] = new_lines
    updated = newline.join(lines)
    if lines and trailing:
        updated += newline
    return updated, len(new_lines) - (end_line - start_line)


def replace_snippet(content: str, find: str, replacement: str) -> str:
    """Replace the single occurrence of `find` in `content`.

    Raises ValueError when the snippet is absent or ambiguous.
    """
    occurrences = content.count(find)
    if occurrences == 0:
        raise ValueError("Original snippet not found")
    if occurrences > 1:
        raise ValueError(f"Ambiguous edit: {occurrences} matches")
    return content.replace(find, replacement, 1)
