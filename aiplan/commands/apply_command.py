# aiplan/commands/apply_command.py
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from aiplan.config_utils import get_config_value
from aiplan.console_review import ConsoleReviewer
from aiplan.file_utils import read_local_file
from aiplan.history_store import HistoryError
from aiplan.review_coordinator import review_plan_text

if TYPE_CHECKING:
    from aiplan.app_state import AppState
    from aiplan.data_models import ExecutionReport


def review_and_apply(raw_text: str, app_state: 'AppState', prompt: str = "", name: Optional[str] = None,
                     assume_yes: bool = False) -> Optional['ExecutionReport']:
    """Runs the interactive review of plan text against the current project."""
    try:
        return review_plan_text(
            raw_text,
            ConsoleReviewer(app_state.console, app_state.prompt_session),
            app_state.history_store,
            console_obj=app_state.console,
            prompt=prompt,
            name=name,
            continue_on_error=get_config_value("continue_on_error", app_state.RUNTIME_OVERRIDES, app_state.console),
            max_file_size_bytes=get_config_value("max_file_size_bytes", app_state.RUNTIME_OVERRIDES, app_state.console),
            assume_yes=assume_yes,
        )
    except HistoryError as e:
        app_state.console.print(f"[bold red]✗ History error: {e}[/bold red]")
        return None


def try_handle_apply_command(user_input: str, app_state: 'AppState') -> bool:
    """
    Handles the /apply command.
        /apply <plan-file> [name] - Reviews the plan in <plan-file> and applies it on approval.
    """
    command_prefix = "/apply"
    parts = user_input.strip().split(maxsplit=2)
    if not parts or parts[0].lower() != command_prefix:
        return False

    if len(parts) == 1:
        app_state.console.print("[yellow]Usage: /apply <plan-file> [name][/yellow]")
        return True

    plan_path = Path(parts[1]).expanduser()
    name = parts[2].strip() if len(parts) == 3 else None
    try:
        raw_text = read_local_file(str(plan_path))
    except FileNotFoundError:
        app_state.console.print(f"[red]Error: Plan file not found: '{plan_path}'[/red]")
        return True
    except (OSError, UnicodeDecodeError) as e:
        app_state.console.print(f"[red]Error reading plan file '{plan_path}': {e}[/red]")
        return True

    review_and_apply(raw_text, app_state, prompt=f"Plan from {plan_path.name}", name=name)
    return True
