# aiplan/plan_executor.py
"""
Applies a validated plan to the filesystem.

Operations run strictly in order. Ranged edits are addressed against the file
as it was when the plan started; `_PlanRun.deltas` tracks, per file, how many
lines earlier edits in the same plan added or removed so later ranges can be
shifted onto the current content. The map lives for one call unless the
caller passes in the map of an earlier, partially applied run of the same plan.
"""
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from aiplan.data_models import (
    BACKED_UP_KINDS,
    ExecutionReport,
    HistoryEntry,
    OperationResult,
    describe_operation,
    touched_paths,
)
from aiplan.file_utils import (
    create_file,
    delete_file,
    move_file,
    normalize_path,
    read_if_exists,
    read_local_file,
    replace_line_range,
    replace_snippet,
    write_local_file,
)
from aiplan.operation_validator import plan_warnings


def capture_backups(operations, root) -> Dict[str, str]:
    """Current content of every existing file the plan edits, deletes or renames away.

    Keys are the paths as written in the operations. Missing files have nothing
    to back up and are skipped.
    """
    backups: Dict[str, str] = {}
    for op in operations:
        if op.kind not in BACKED_UP_KINDS:
            continue
        path = op.old_path if op.kind == "rename" else op.path
        if path in backups:
            continue
        try:
            content = read_if_exists(normalize_path(path, root))
        except (OSError, ValueError, UnicodeDecodeError):
            content = None
        if content is not None:
            backups[path] = content
    return backups


def snapshot_paths(operations, root) -> Dict[str, Optional[str]]:
    """Content of every path the operations touch; None where no file exists."""
    snapshot: Dict[str, Optional[str]] = {}
    for op in operations:
        for path in touched_paths(op):
            if path in snapshot:
                continue
            try:
                snapshot[path] = read_if_exists(normalize_path(path, root))
            except (OSError, ValueError, UnicodeDecodeError):
                snapshot[path] = None
    return snapshot


class _PlanRun:
    def __init__(self, root, max_file_size_bytes: Optional[int] = None, overwrite_creates: bool = False,
                 deltas: Optional[Dict[str, int]] = None):
        self.root = root
        self.max_file_size_bytes = max_file_size_bytes
        self.overwrite_creates = overwrite_creates
        self.deltas: Dict[str, int] = deltas if deltas is not None else {}

    def resolve(self, path: str) -> str:
        return normalize_path(path, self.root)

    def apply(self, op):
        handler = getattr(self, f"_apply_{op.kind}", None)
        if handler is None:
            raise ValueError(f"Unknown operation type: {op.kind}")
        handler(op)

    def _apply_response(self, op):
        pass

    def _apply_create(self, op):
        target = self.resolve(op.path)
        create_file(target, op.content, self.max_file_size_bytes, overwrite=self.overwrite_creates)

    def _apply_edit(self, op):
        target = self.resolve(op.path)
        if not op.is_ranged:
            if not Path(target).is_file():
                raise FileNotFoundError(f"File not found: '{op.path}'")
            write_local_file(target, op.content, self.max_file_size_bytes)
            self.deltas[target] = 0
            return
        delta = self.deltas.get(target, 0)
        current = read_local_file(target)
        updated, change = replace_line_range(current, op.content, op.start_line + delta, op.end_line + delta)
        write_local_file(target, updated, self.max_file_size_bytes)
        self.deltas[target] = delta + change

    def _apply_replace(self, op):
        target = self.resolve(op.path)
        current = read_local_file(target)
        updated = replace_snippet(current, op.find, op.content) if op.find else op.content
        write_local_file(target, updated, self.max_file_size_bytes)
        self.deltas[target] = 0

    def _apply_rename(self, op):
        source = self.resolve(op.old_path)
        destination = self.resolve(op.new_path)
        move_file(source, destination)
        if source in self.deltas:
            self.deltas[destination] = self.deltas.pop(source)

    def _apply_delete(self, op):
        target = self.resolve(op.path)
        delete_file(target)
        self.deltas.pop(target, None)


def apply_operations(
    operations,
    root,
    console_obj=None,
    continue_on_error: bool = False,
    max_file_size_bytes: Optional[int] = None,
    overwrite_creates: bool = False,
    line_deltas: Optional[Dict[str, int]] = None,
) -> List[OperationResult]:
    """Apply operations in order and return one result per attempted operation.

    Stops at the first failure unless `continue_on_error` is set. A `line_deltas`
    map is used as the starting per-file shift and is updated in place.
    """
    run = _PlanRun(root, max_file_size_bytes, overwrite_creates, line_deltas)
    results: List[OperationResult] = []
    for index, op in enumerate(operations, start=1):
        try:
            run.apply(op)
        except (OSError, ValueError, UnicodeDecodeError) as e:
            results.append(OperationResult(operation=op, success=False, error=str(e)))
            if console_obj:
                console_obj.print(f"[bold red]✗[/bold red] {index}. {describe_operation(op)}: {e}")
            if not continue_on_error:
                if console_obj and index < len(operations):
                    console_obj.print(f"[yellow]⚠ Stopping: {len(operations) - index} remaining operation(s) not applied.[/yellow]")
                break
            continue
        results.append(OperationResult(operation=op, success=True))
        if console_obj and op.kind != "response":
            console_obj.print(f"[bold blue]✓[/bold blue] {index}. {describe_operation(op)}")
    return results


def execute_plan(
    operations,
    description: str,
    store,
    console_obj=None,
    prompt: str = "",
    name: Optional[str] = None,
    continue_on_error: bool = False,
    max_file_size_bytes: Optional[int] = None,
    line_deltas: Optional[Dict[str, int]] = None,
) -> ExecutionReport:
    """Apply a plan under `store.root` and record it in `store`.

    A history entry is written whatever the outcome, holding every attempted
    operation and the pre-plan backups, so a partially applied plan can still
    be undone. Check `report.ok` (or call `report.raise_for_failure()`).

    Pass the `line_deltas` of an earlier report to continue a plan whose first
    part was already applied; ranged edits keep their original line numbers.
    """
    operations = list(operations)
    root = store.root
    report = ExecutionReport(warnings=plan_warnings(operations))
    for warning in report.warnings:
        if console_obj:
            console_obj.print(f"[yellow]⚠ Ambiguous plan: {warning}[/yellow]")

    backups = capture_backups(operations, root)
    if console_obj:
        console_obj.print(f"[bold bright_blue]Executing plan ({len(operations)} operation(s))...[/bold bright_blue]")
    deltas = dict(line_deltas or {})
    report.results = apply_operations(
        operations,
        root,
        console_obj=console_obj,
        continue_on_error=continue_on_error,
        max_file_size_bytes=max_file_size_bytes,
        line_deltas=deltas,
    )
    report.line_deltas = deltas

    attempted = [result.operation for result in report.results]
    entry = HistoryEntry(
        id=store.new_entry_id(),
        name=name or None,
        timestamp=datetime.now(timezone.utc).isoformat(),
        prompt=prompt,
        description=description,
        operations=attempted,
        original_content=backups,
        succeeded=[result.success for result in report.results],
        result_content=snapshot_paths(attempted, root),
    )
    store.append(entry)
    report.entry_id = entry.id

    if console_obj:
        if report.ok:
            console_obj.print(f"[bold green]✓ Plan applied: {report.summary()}. Saved as '{entry.label}'.[/bold green]")
        else:
            console_obj.print(f"[bold red]✗ Plan incomplete: {report.summary()}. Saved as '{entry.label}'; undo is available.[/bold red]")
    return report
