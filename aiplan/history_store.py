# aiplan/history_store.py
"""
Linear, most-recent-first log of executed plans.

The log is a single JSON array in a file at the project root. The whole file
is loaded on first access and rewritten in full on every change. There is no
locking: two processes mutating the same project's history race, and the last
writer wins.
"""
import json
import re
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union

from pydantic import ValidationError

from aiplan.data_models import HistoryEntry, describe_operation, touched_paths
from aiplan.file_utils import (
    delete_file,
    move_file,
    normalize_path,
    read_if_exists,
    write_local_file,
)
from aiplan.plan_executor import apply_operations
from aiplan.protocol_parser import end_marker, format_operations, start_marker

DEFAULT_HISTORY_FILE = ".aiplan-history.json"
DEFAULT_ROOT_MARKERS = (".git", "pyproject.toml", "package.json")
_RECENCY_RE = re.compile(r"^~?(\d+)$")


class HistoryError(Exception):
    pass


class HistoryNotFoundError(HistoryError, LookupError):
    pass


class HistoryIndexError(HistoryError, IndexError):
    pass


class HistoryFileError(HistoryError):
    pass


def find_project_root(start: Optional[Union[str, Path]] = None, markers: Sequence[str] = DEFAULT_ROOT_MARKERS) -> Path:
    """Walk upward from `start` (default: cwd) to the first directory holding a marker.

    Falls back to `start` itself when no marker is found.
    """
    start_dir = Path(start or Path.cwd()).resolve()
    for directory in (start_dir, *start_dir.parents):
        if any((directory / marker).exists() for marker in markers):
            return directory
    return start_dir


@dataclass
class InversionResult:
    operation: object
    status: str  # "reverted", "skipped" or "failed"
    message: str = ""


@dataclass
class UndoReport:
    entry: HistoryEntry
    results: List[InversionResult] = field(default_factory=list)

    def count(self, status: str) -> int:
        return sum(1 for r in self.results if r.status == status)


@dataclass(frozen=True)
class Divergence:
    path: str
    reason: str  # "modified", "missing" or "present"

    def __str__(self):
        if self.reason == "missing":
            return f"{self.path} (the plan left a file here; it is gone)"
        if self.reason == "present":
            return f"{self.path} (the plan left no file here; one exists now)"
        return f"{self.path} (differs from what the plan produced)"


@dataclass
class RedoReport:
    entry: HistoryEntry
    divergences: List[Divergence] = field(default_factory=list)
    blocked: bool = False
    results: list = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.blocked and all(r.success for r in self.results)


class HistoryStore:
    """History of applied plans for one project root.

    Construct one per invocation and pass it to whatever needs it.
    """

    def __init__(self, root: Union[str, Path], file_name: str = DEFAULT_HISTORY_FILE, console_obj=None):
        self.root = Path(root).resolve()
        self.path = self.root / file_name
        self.console = console_obj
        self._entries: Optional[List[HistoryEntry]] = None

    @classmethod
    def discover(cls, start=None, markers: Sequence[str] = DEFAULT_ROOT_MARKERS,
                 file_name: str = DEFAULT_HISTORY_FILE, console_obj=None) -> "HistoryStore":
        return cls(find_project_root(start, markers), file_name=file_name, console_obj=console_obj)

    def _print(self, message: str):
        if self.console:
            self.console.print(message)

    # --- persistence -------------------------------------------------------

    def _load(self) -> List[HistoryEntry]:
        if self._entries is None:
            if not self.path.exists():
                self._entries = []
            else:
                try:
                    raw = json.loads(self.path.read_text(encoding="utf-8") or "[]")
                except (OSError, json.JSONDecodeError) as e:
                    raise HistoryFileError(f"Could not read history file '{self.path}': {e}") from e
                if not isinstance(raw, list):
                    raise HistoryFileError(f"History file '{self.path}' does not contain a JSON array")
                try:
                    self._entries = [HistoryEntry.model_validate(item) for item in raw]
                except ValidationError as e:
                    raise HistoryFileError(f"History file '{self.path}' holds an invalid entry: {e}") from e
        return self._entries

    def _save(self):
        payload = [entry.model_dump(mode="json", by_alias=True) for entry in self._load()]
        try:
            write_local_file(str(self.path), json.dumps(payload, indent=2, ensure_ascii=False))
        except OSError as e:
            raise HistoryFileError(f"Could not write history file '{self.path}': {e}") from e

    # --- log operations ----------------------------------------------------

    def new_entry_id(self) -> str:
        """Millisecond timestamp, kept strictly above the newest stored id."""
        candidate = int(time.time() * 1000)
        for entry in self._load():
            if entry.id.isdigit():
                candidate = max(candidate, int(entry.id) + 1)
        return str(candidate)

    def append(self, entry: HistoryEntry):
        entries = self._load()
        if any(existing.id == entry.id for existing in entries):
            raise HistoryError(f"History entry id '{entry.id}' already exists")
        entries.insert(0, entry)
        self._save()

    def list(self) -> List[HistoryEntry]:
        return list(self._load())

    def resolve(self, ref: str) -> HistoryEntry:
        """Find an entry by id, user-assigned name, or recency token (`~N` or `N`, 1 = newest)."""
        entries = self._load()
        ref = (ref or "").strip()
        for entry in entries:
            if entry.id == ref:
                return entry
        for entry in entries:
            if entry.name and entry.name == ref:
                return entry
        match = _RECENCY_RE.match(ref)
        if match:
            position = int(match.group(1))
            if 1 <= position <= len(entries):
                return entries[position - 1]
            raise HistoryIndexError(
                f"History index {ref} is out of range (valid range: 1-{len(entries)})"
                if entries else f"History index {ref} is out of range (history is empty)"
            )
        raise HistoryNotFoundError(f"No history entry matches '{ref}'")

    def delete(self, ref: str) -> HistoryEntry:
        entry = self.resolve(ref)
        self._entries = [e for e in self._load() if e.id != entry.id]
        self._save()
        return entry

    def clear(self) -> int:
        removed = len(self._load())
        self._entries = []
        self._save()
        return removed

    # --- undo / redo -------------------------------------------------------

    def _resolve_path(self, path: str) -> str:
        return normalize_path(path, self.root)

    def _invert(self, entry: HistoryEntry, op) -> InversionResult:
        backups = entry.original_content
        if op.kind == "create":
            target = self._resolve_path(op.path)
            delete_file(target, missing_ok=True)
            return InversionResult(op, "reverted", f"removed {op.path}")
        if op.kind in ("edit", "replace"):
            if op.path not in backups:
                if any(other.kind == "rename" and other.new_path == op.path for other in entry.operations):
                    return InversionResult(
                        op, "skipped",
                        f"{op.path} was created by a rename in this plan; undoing the rename restores its source",
                    )
                return InversionResult(op, "skipped", f"no backup of {op.path}; restore it manually")
            write_local_file(self._resolve_path(op.path), backups[op.path])
            return InversionResult(op, "reverted", f"restored {op.path}")
        if op.kind == "rename":
            source = self._resolve_path(op.old_path)
            move_file(self._resolve_path(op.new_path), source)
            if op.old_path not in backups:
                return InversionResult(op, "reverted", f"moved {op.new_path} back to {op.old_path}")
            if read_if_exists(source) != backups[op.old_path]:
                # Later operations edited the file under its new name.
                write_local_file(source, backups[op.old_path])
                return InversionResult(
                    op, "reverted",
                    f"moved {op.new_path} back to {op.old_path} and restored its content from before the plan",
                )
            return InversionResult(op, "reverted", f"moved {op.new_path} back to {op.old_path}")
        if op.kind == "delete":
            if op.path not in backups:
                return InversionResult(op, "skipped", f"no backup of {op.path}; cannot recreate it")
            write_local_file(self._resolve_path(op.path), backups[op.path])
            return InversionResult(op, "reverted", f"recreated {op.path}")
        return InversionResult(op, "skipped", "nothing to undo")

    def undo(self, ref: str) -> UndoReport:
        """Revert the entry's applied operations, newest first. The entry is kept for redo."""
        entry = self.resolve(ref)
        report = UndoReport(entry)
        self._print(f"[bold bright_blue]Undoing '{entry.label}': {entry.description}[/bold bright_blue]")
        indexed = list(enumerate(entry.operations))
        for index, op in reversed(indexed):
            if op.kind == "response":
                continue
            if not entry.operation_succeeded(index):
                report.results.append(InversionResult(op, "skipped", "operation had not been applied"))
                continue
            try:
                result = self._invert(entry, op)
            except (OSError, ValueError) as e:
                result = InversionResult(op, "failed", str(e))
            report.results.append(result)
            if result.status == "reverted":
                self._print(f"  [bold blue]✓[/bold blue] {result.message}")
            elif result.status == "skipped":
                self._print(f"  [yellow]⚠ Skipped {describe_operation(op)}: {result.message}[/yellow]")
            else:
                self._print(f"  [bold red]✗[/bold red] Could not undo {describe_operation(op)}: {result.message}")
        self._print(f"[green]Undo finished: {report.count('reverted')} reverted, "
                    f"{report.count('skipped')} skipped, {report.count('failed')} failed.[/green]")
        return report

    def _expected_state(self, entry: HistoryEntry):
        """Content each touched path had right after the plan ran (None = absent).

        Paths missing from the recorded result are left out.
        """
        expected = {}
        for op in entry.operations:
            for path in touched_paths(op):
                if path not in expected and path in entry.result_content:
                    expected[path] = entry.result_content[path]
        return expected

    def check_divergence(self, entry: HistoryEntry) -> List[Divergence]:
        """Paths whose current state differs from the state the plan produced."""
        divergences = []
        for path, after in self._expected_state(entry).items():
            try:
                current = read_if_exists(self._resolve_path(path))
            except (OSError, ValueError, UnicodeDecodeError):
                divergences.append(Divergence(path, "modified"))
                continue
            if current == after:
                continue
            if current is None:
                divergences.append(Divergence(path, "missing"))
            elif after is None:
                divergences.append(Divergence(path, "present"))
            else:
                divergences.append(Divergence(path, "modified"))
        return divergences

    def redo(
        self,
        ref: str,
        force: bool = False,
        confirm: Optional[Callable[[List[Divergence]], bool]] = None,
    ) -> RedoReport:
        """Re-apply the entry's operations.

        When files differ from the state the plan produced (after an undo, or
        an edit by hand), redo only proceeds if `force` is set or
        `confirm(divergences)` returns True. When nothing differs the plan's
        result is already in place and no operation is replayed.
        """
        entry = self.resolve(ref)
        report = RedoReport(entry, divergences=self.check_divergence(entry))
        if not report.divergences:
            self._print(f"[green]✓ '{entry.label}' is already in place; nothing to redo.[/green]")
            return report
        if force:
            self._print("[yellow]⚠ Force mode: the following files diverged and will be overwritten:[/yellow]")
            for divergence in report.divergences:
                self._print(f"   - {divergence}")
        elif confirm is None or not confirm(report.divergences):
            report.blocked = True
            self._print(f"[yellow]Redo of '{entry.label}' cancelled: files differ from the plan's result.[/yellow]")
            return report

        self._print(f"[bold bright_blue]Redoing '{entry.label}': {entry.description}[/bold bright_blue]")
        report.results = apply_operations(
            entry.operations,
            self.root,
            console_obj=self.console,
            overwrite_creates=True,
        )
        return report


def format_history_context(entries: Sequence[HistoryEntry], positions: Optional[Sequence[int]] = None) -> str:
    """Render past plans as a context block the model can read.

    `positions` gives each entry's recency (1 = newest) when `entries` is not
    the head of the history list.
    """
    blocks = []
    for position, entry in zip(positions or range(1, len(entries) + 1), entries):
        lines = [
            start_marker("HISTORY"),
            f"ref: ~{position}",
            f"id: {entry.id}",
        ]
        if entry.name:
            lines.append(f"name: {entry.name}")
        lines.append(f"timestamp: {entry.timestamp}")
        if entry.prompt:
            lines.append(f"prompt: {' '.join(entry.prompt.split())}")
        if entry.description:
            lines.append(f"description: {' '.join(entry.description.split())}")
        lines.append(format_operations(entry.operations).rstrip("\n"))
        lines.append(end_marker("HISTORY"))
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)
