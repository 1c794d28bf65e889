# aiplan/file_context_utils.py
"""
Project files sent to the model alongside a request.

A file spec is a file path, a directory, or a glob pattern relative to the
project root. A file path may carry a line range, `src/app.py:10-20` (1-based,
both ends included). Files are read again for every request and shown with
line numbers so the model can address ranged edits.
"""
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from rich.markup import escape

from aiplan.config_utils import MAX_FILES_TO_PROCESS_IN_DIR
from aiplan.file_utils import is_binary_file, normalize_path, read_local_file

_RANGE_RE = re.compile(r"^(?P<path>.+):(?P<start>\d+)-(?P<end>\d+)$")
_GLOB_CHARS = ("*", "?", "[")

EXCLUDED_NAMES = {
    ".DS_Store", "Thumbs.db", ".python-version",
    "uv.lock", ".uv", "uvenv", ".uvenv", ".venv", "venv",
    "__pycache__", ".pytest_cache", ".coverage", ".mypy_cache",
    "node_modules", "package-lock.json", "yarn.lock", "pnpm-lock.yaml",
    ".next", ".nuxt", "dist", "build", ".cache", ".parcel-cache",
    "coverage", ".nyc_output",
    ".env", ".env.local", ".env.development", ".env.production",
    ".git", ".svn", ".hg", "CVS",
}
EXCLUDED_EXTENSIONS = {
    ".png", ".jpg", ".jpeg", ".gif", ".ico", ".webp", ".avif",
    ".mp4", ".webm", ".mov", ".mp3", ".wav", ".ogg",
    ".zip", ".tar", ".gz", ".7z", ".rar",
    ".exe", ".dll", ".so", ".dylib", ".bin",
    ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx",
    ".pyc", ".pyo", ".pyd", ".egg", ".whl",
    ".db", ".sqlite", ".sqlite3", ".log",
    ".map", ".min.js", ".min.css",
    ".ttf", ".otf", ".woff", ".woff2", ".eot",
}


@dataclass(frozen=True)
class FileSpec:
    pattern: str
    start_line: Optional[int] = None
    end_line: Optional[int] = None

    @property
    def is_glob(self) -> bool:
        return any(char in self.pattern for char in _GLOB_CHARS)

    @property
    def is_ranged(self) -> bool:
        return self.start_line is not None


@dataclass
class ContextFile:
    path: str  # as shown to the model: relative to the project root when inside it
    content: str
    start_line: Optional[int] = None
    end_line: Optional[int] = None

    def render(self) -> str:
        lines = self.content.splitlines()
        first = 1
        span = ""
        if self.start_line is not None:
            first = self.start_line
            lines = lines[self.start_line - 1:self.end_line]
            span = f" (lines {self.start_line}-{self.end_line} of {len(self.content.splitlines())})"
        numbered = "\n".join(f"{number:>4}|{line}" for number, line in enumerate(lines, start=first))
        return f"Content of file '{self.path}'{span}:\n\n{numbered}"


def parse_file_spec(spec: str) -> FileSpec:
    """Split an optional `:start-end` line range off a file spec."""
    spec = (spec or "").strip()
    if not spec:
        raise ValueError("File spec cannot be empty.")
    match = _RANGE_RE.match(spec)
    if not match:
        return FileSpec(spec)
    file_spec = FileSpec(match.group("path"), int(match.group("start")), int(match.group("end")))
    if file_spec.is_glob:
        raise ValueError(f"Line ranges need a file path, not a glob pattern: '{spec}'")
    if file_spec.start_line < 1 or file_spec.end_line < file_spec.start_line:
        raise ValueError(f"Invalid line range in '{spec}': expected 1 <= start <= end")
    return file_spec


def _is_excluded_name(name: str) -> bool:
    if name in EXCLUDED_NAMES:
        return True
    return any(name.lower().endswith(ext) for ext in EXCLUDED_EXTENSIONS)


def _walk_directory(directory: Path) -> List[Path]:
    found = []
    for dir_root, dirs, files in os.walk(directory):
        dirs[:] = sorted(d for d in dirs if not d.startswith('.') and d not in EXCLUDED_NAMES)
        for name in sorted(files):
            if name.startswith('.') or _is_excluded_name(name):
                continue
            found.append(Path(dir_root) / name)
    return found


def _expand(spec: FileSpec, root: Path) -> List[Path]:
    if spec.is_glob:
        pattern_path = Path(spec.pattern)
        if pattern_path.is_absolute() or ".." in pattern_path.parts:
            raise ValueError(f"Glob patterns must stay inside the project root: '{spec.pattern}'")
        return sorted(
            match for match in root.glob(spec.pattern)
            if match.is_file()
            and not any(part in EXCLUDED_NAMES for part in match.relative_to(root).parts)
        )
    target = Path(normalize_path(spec.pattern, root))
    if target.is_dir():
        if spec.is_ranged:
            raise ValueError(f"Line ranges need a file path, not a directory: '{spec.pattern}'")
        return _walk_directory(target)
    if target.is_file():
        return [target]
    raise ValueError(f"'{spec.pattern}' is not a file or directory")


def _display_path(path: Path, root: Path) -> str:
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return str(path)


def collect_context_files(
    specs: Sequence[str],
    root,
    console_obj=None,
    max_file_size_bytes: Optional[int] = None,
) -> List[ContextFile]:
    """
    Reads every file the specs name. Unreadable, binary, oversized and
    unmatched entries are reported on the console and left out.
    """
    root_path = Path(root).resolve()
    collected: List[ContextFile] = []
    seen = set()
    skipped: List[str] = []
    for raw_spec in specs:
        try:
            spec = parse_file_spec(raw_spec)
            candidates = _expand(spec, root_path)
        except ValueError as e:
            skipped.append(str(e))
            continue
        if not candidates:
            skipped.append(f"'{raw_spec}' matched no files")
        for candidate in candidates:
            if len(collected) >= MAX_FILES_TO_PROCESS_IN_DIR:
                skipped.append(f"{candidate} (reached maximum file limit of {MAX_FILES_TO_PROCESS_IN_DIR})")
                break
            key = (str(candidate), spec.start_line, spec.end_line)
            if key in seen:
                continue
            seen.add(key)
            try:
                if max_file_size_bytes is not None and candidate.stat().st_size > max_file_size_bytes:
                    skipped.append(f"{candidate} (exceeds size limit)")
                    continue
                if is_binary_file(str(candidate)):
                    skipped.append(f"{candidate} (binary)")
                    continue
                content = read_local_file(str(candidate))
            except (OSError, UnicodeDecodeError) as e:
                skipped.append(f"{candidate} ({e})")
                continue
            collected.append(ContextFile(_display_path(candidate, root_path), content, spec.start_line, spec.end_line))

    if skipped and console_obj:
        console_obj.print(f"[bold yellow]⏭ Skipped context files:[/bold yellow] [dim]({len(skipped)})[/dim]")
        for reason in skipped[:10]:
            console_obj.print(f"  [yellow dim]⚠ {escape(reason)}[/yellow dim]")
        if len(skipped) > 10:
            console_obj.print(f"  [dim]... and {len(skipped) - 10} more[/dim]")
    return collected
