# aiplan/commands/history_command.py
import shlex
from typing import TYPE_CHECKING

from rich.markup import escape
from rich.table import Table

from aiplan.console_review import ConsoleReviewer
from aiplan.history_store import HistoryError

if TYPE_CHECKING:
    from aiplan.app_state import AppState

USAGE = (
    "Usage: /history [list | undo <ref> | redo <ref> [--force] | delete <ref> | clear]"
    " (quote names that contain spaces)"
)


def _print_history(app_state: 'AppState'):
    entries = app_state.history_store.list()
    if not entries:
        app_state.console.print("[dim]No plans in history.[/dim]")
        return
    table = Table(title=f"🕘 Plan History ({app_state.history_store.path})", header_style="bold bright_blue")
    table.add_column("Ref", justify="right", style="dim")
    table.add_column("Id")
    table.add_column("Name", style="magenta")
    table.add_column("When")
    table.add_column("Ops", justify="right")
    table.add_column("Description", overflow="fold")
    for position, entry in enumerate(entries, start=1):
        failed = len(entry.succeeded) - sum(entry.succeeded)
        ops = str(len(entry.operations)) + (f" [red]({failed} failed)[/red]" if failed else "")
        table.add_row(
            f"~{position}",
            entry.id,
            escape(entry.name or ""),
            entry.timestamp[:19].replace("T", " "),
            ops,
            escape(entry.description),
        )
    app_state.console.print(table)


def try_handle_history_command(user_input: str, app_state: 'AppState') -> bool:
    """
    Handles the /history command.
        /history                      - Lists applied plans, most recent first (~1).
        /history undo <ref>           - Reverts a plan; <ref> is an id, a name, or ~N.
        /history redo <ref> [--force] - Re-applies a plan, asking first if files changed since.
        /history delete <ref>         - Removes a plan from history without touching files.
        /history clear                - Removes every plan from history.
    """
    stripped_input = user_input.strip()
    if not stripped_input.split() or stripped_input.split()[0].lower() != "/history":
        return False

    try:
        parts = shlex.split(stripped_input)
    except ValueError as e:
        app_state.console.print(f"[yellow]Could not parse arguments: {e}. {USAGE}[/yellow]")
        return True

    action = parts[1].lower() if len(parts) > 1 else "list"
    args = parts[2:]
    force = "--force" in args
    refs = [arg for arg in args if arg != "--force"]
    store = app_state.history_store

    try:
        if action == "list":
            _print_history(app_state)
        elif action == "clear":
            removed = store.clear()
            app_state.console.print(f"[green]✓ Cleared {removed} plan(s) from history.[/green]")
        elif action in ("undo", "redo", "delete"):
            if len(refs) != 1:
                app_state.console.print(f"[yellow]{USAGE}[/yellow]")
                return True
            ref = refs[0]
            if action == "undo":
                store.undo(ref)
            elif action == "delete":
                entry = store.delete(ref)
                app_state.console.print(f"[green]✓ Removed '{escape(entry.label)}' from history. Files were not changed.[/green]")
            else:
                reviewer = ConsoleReviewer(app_state.console, app_state.prompt_session)
                report = store.redo(ref, force=force, confirm=reviewer.confirm_divergences)
                if report.results and report.ok:
                    app_state.console.print(f"[bold green]✓ Redo of '{escape(report.entry.label)}' complete.[/bold green]")
                elif report.results:
                    app_state.console.print(f"[bold red]✗ Redo of '{escape(report.entry.label)}' stopped at a failed operation.[/bold red]")
        else:
            app_state.console.print(f"[yellow]Unknown /history action: '{action}'. {USAGE}[/yellow]")
    except HistoryError as e:
        app_state.console.print(f"[red]Error: {e}[/red]")
    return True
