# aiplan/review_coordinator.py
from typing import List, Optional, Protocol, Sequence

from aiplan.data_models import ExecutionReport
from aiplan.operation_validator import check_reachability, plan_warnings, validate_all
from aiplan.plan_executor import execute_plan
from aiplan.protocol_parser import format_operations, parse

ACTION_APPLY = "apply"
ACTION_EDIT = "edit"
ACTION_CANCEL = "cancel"
ACTION_RETRY = "retry"


class ReviewCapabilities(Protocol):
    """What the coordinator needs from a human (or a stand-in)."""

    def present_plan(self, operations, warnings: List[str]) -> None: ...

    def present_errors(self, title: str, messages: List[str]) -> None: ...

    def choose_action(self, actions: Sequence[str]) -> str: ...

    def confirm_choice(self, message: str) -> bool: ...

    def edit_plan_text(self, text: str) -> Optional[str]: ...


def _plan_from_text(raw_text: str, reviewer: ReviewCapabilities, store, allow_force: bool = True):
    """Parse, validate and pre-flight plan text. Returns the operations to use, or None to stop."""
    parsed = parse(raw_text)
    if parsed.diagnostics:
        reviewer.present_errors("Plan text could not be fully parsed", [str(d) for d in parsed.diagnostics])
    validation = validate_all(parsed.records)
    if not validation.ok:
        reviewer.present_errors("Invalid operations", validation.messages())
        if not validation.operations or not allow_force:
            return None
        if not reviewer.confirm_choice(
            f"Force-apply the {len(validation.operations)} valid operation(s) and drop the invalid ones?"
        ):
            return None
    reachability = check_reachability(validation.operations, store.root)
    if reachability:
        reviewer.present_errors(
            "Pre-flight check failed",
            [msg for error in reachability for msg in error.messages()],
        )
    return validation.operations


def review_plan_text(
    raw_text: str,
    reviewer: ReviewCapabilities,
    store,
    console_obj=None,
    prompt: str = "",
    name: Optional[str] = None,
    continue_on_error: bool = False,
    max_file_size_bytes: Optional[int] = None,
    assume_yes: bool = False,
) -> Optional[ExecutionReport]:
    """Present a model-produced plan and apply, edit or cancel it as the operator decides.

    Returns the report of the last execution attempt, or None when nothing was executed.
    """
    operations = _plan_from_text(raw_text, reviewer, store, allow_force=not assume_yes)
    if operations is None:
        return None
    if not operations:
        if console_obj:
            console_obj.print("[yellow]The plan contains no operations.[/yellow]")
        return None

    description = prompt or "AI plan execution"
    last_report: Optional[ExecutionReport] = None
    carried_deltas = None
    actions = [ACTION_APPLY, ACTION_EDIT, ACTION_CANCEL]

    while True:
        reviewer.present_plan(operations, plan_warnings(operations))
        choice = ACTION_APPLY if assume_yes else reviewer.choose_action(actions)

        if choice == ACTION_CANCEL:
            if console_obj:
                console_obj.print("[yellow]Plan cancelled.[/yellow]")
            return last_report

        if choice == ACTION_EDIT:
            edited = reviewer.edit_plan_text(format_operations(operations))
            if edited is None:
                continue
            edited_operations = _plan_from_text(edited, reviewer, store)
            if edited_operations is None:
                continue
            if not edited_operations:
                if console_obj:
                    console_obj.print("[yellow]The edited plan is empty; nothing to apply.[/yellow]")
                return last_report
            operations = edited_operations
            actions = [ACTION_APPLY, ACTION_EDIT, ACTION_CANCEL]
            continue

        last_report = execute_plan(
            operations,
            description,
            store,
            console_obj=console_obj,
            prompt=prompt,
            name=name,
            continue_on_error=continue_on_error,
            max_file_size_bytes=max_file_size_bytes,
            line_deltas=carried_deltas,
        )
        if last_report.ok or assume_yes:
            return last_report

        # Offer the operations that were not applied: the failed one onward.
        failed_at = last_report.failed_index
        remaining = [
            result.operation for result in last_report.results[failed_at:] if not result.success
        ] if continue_on_error else operations[failed_at:]
        if not remaining:
            return last_report
        operations = remaining
        # The remainder keeps its original line numbers; start from the shifts already applied.
        carried_deltas = last_report.line_deltas
        # A retried remainder gets its own history entry; the name stays with the first.
        name = None
        actions = [ACTION_RETRY, ACTION_EDIT, ACTION_CANCEL]
