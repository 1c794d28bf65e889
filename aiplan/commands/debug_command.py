# aiplan/commands/debug_command.py
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from aiplan.app_state import AppState


def try_handle_debug_command(user_input: str, app_state: 'AppState') -> bool:
    command_prefix = "/debug"
    parts = user_input.strip().lower().split()

    if not parts or parts[0] != command_prefix:
        return False

    if len(parts) == 1:
        app_state.console.print("[yellow]Usage: /debug <on|off>[/yellow]")
        app_state.console.print(f"[dim]Current LLM interaction debug mode: {'ON' if app_state.DEBUG_LLM_INTERACTIONS else 'OFF'}[/dim]")
        return True

    action = parts[1]
    if action == "on":
        app_state.DEBUG_LLM_INTERACTIONS = True
        app_state.console.print("[green]✓ LLM Interaction Debugging: ON[/green]")
    elif action == "off":
        app_state.DEBUG_LLM_INTERACTIONS = False
        app_state.console.print("[yellow]✓ LLM Interaction Debugging: OFF[/yellow]")
    else:
        app_state.console.print(f"[yellow]Unknown /debug action: {action}. Usage: /debug <on|off>[/yellow]")
    return True
