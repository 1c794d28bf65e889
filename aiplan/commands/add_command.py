# aiplan/commands/add_command.py
import shlex
from typing import TYPE_CHECKING

from rich.markup import escape

from aiplan.config_utils import get_config_value
from aiplan.file_context_utils import collect_context_files

if TYPE_CHECKING:
    from aiplan.app_state import AppState

USAGE = "Usage: /add <path | path:start-end | directory | glob> ... (or /add --clear)"


def try_handle_add_command(user_input: str, app_state: 'AppState') -> bool:
    """
    Handles the /add command.
        /add                 - Lists the files sent to the model with every request.
        /add <spec> ...      - Adds files, directories, globs or ranges like src/app.py:10-20.
        /add --clear         - Stops sending files.
    """
    command_prefix = "/add"
    parts = user_input.strip().split(maxsplit=1)
    if not parts or parts[0].lower() != command_prefix:
        return False

    path_arg = parts[1].strip() if len(parts) > 1 else ""
    if not path_arg:
        if not app_state.context_files:
            app_state.console.print(f"[dim]No files in context. {USAGE}[/dim]")
        else:
            app_state.console.print("[bold bright_blue]📁 Files sent with every request:[/bold bright_blue]")
            for spec in app_state.context_files:
                app_state.console.print(f"  [bright_cyan]📄 {escape(spec)}[/bright_cyan]")
        return True

    if path_arg == "--clear":
        app_state.context_files.clear()
        app_state.console.print("[green]✓ Context files cleared.[/green]")
        return True

    try:
        specs = shlex.split(path_arg)
    except ValueError as e:
        app_state.console.print(f"[yellow]Could not parse arguments: {e}. {USAGE}[/yellow]")
        return True

    root = app_state.history_store.root
    max_file_size = get_config_value("max_file_size_bytes", app_state.RUNTIME_OVERRIDES, app_state.console)
    for spec in specs:
        files = collect_context_files([spec], root, app_state.console, max_file_size)
        if not files:
            app_state.console.print(f"[red]Error: '{escape(spec)}' matched no readable files.[/red]")
            continue
        if spec not in app_state.context_files:
            app_state.context_files.append(spec)
        app_state.console.print(
            f"[bold blue]✓[/bold blue] Added '[bright_cyan]{escape(spec)}[/bright_cyan]' to context "
            f"[dim]({len(files)} file(s))[/dim]"
        )
        for context_file in files[:10]:
            app_state.console.print(f"  [bright_cyan]📄 {escape(context_file.path)}[/bright_cyan]")
        if len(files) > 10:
            app_state.console.print(f"  [dim]... and {len(files) - 10} more[/dim]")
    return True
