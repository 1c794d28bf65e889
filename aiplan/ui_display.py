import os

from rich.panel import Panel

from aiplan.app_state import AppState
from aiplan.config_utils import get_config_value


def display_welcome_panel(app_state: AppState):
    """Displays the welcome panel."""
    model_name = get_config_value("model", app_state.RUNTIME_OVERRIDES, app_state.console)
    store = app_state.history_store

    instructions = f"""  📁 [bold bright_blue]Current Directory: [/bold bright_blue][bold green]{os.getcwd()}[/bold green]
  🏠 [bold bright_blue]Project Root: [/bold bright_blue][bold green]{store.root}[/bold green]
  🕘 [bold bright_blue]History File: [/bold bright_blue][dim]{store.path}[/dim]

  🧠 [bold bright_blue]Model: [/bold bright_blue][bold magenta]{model_name}[/bold magenta]

  📋 [bold bright_blue]/apply <plan-file> [name][/bold bright_blue] - Review and apply a plan from a file.
  🕘 [bold bright_blue]/history[/bold bright_blue] - List, undo, redo or delete applied plans.
  ❓ [bold bright_blue]/help[/bold bright_blue] - All commands.

  👥 [bold white]Describe a change; the model proposes a plan and nothing is applied until you approve it.[/bold white]"""

    app_state.console.print(Panel(
        instructions,
        border_style="blue",
        padding=(1, 2),
        title="[bold blue]🎯 AI Plan: reviewed file changes with undo[/bold blue]",
        title_align="left"
    ))
    app_state.console.print()
