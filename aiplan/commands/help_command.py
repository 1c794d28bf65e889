# aiplan/commands/help_command.py
from typing import TYPE_CHECKING

from rich.panel import Panel

from aiplan.config_utils import SUPPORTED_SET_PARAMS
from aiplan.prompts import RichMarkdown

if TYPE_CHECKING:
    from aiplan.app_state import AppState

GENERAL_HELP = """\
Type a request in plain language. The model answers with a plan of file
operations (create, edit, replace, rename, delete) which is shown for review.
Nothing changes on disk until you choose **apply**.

| Command | Description |
|---|---|
| `/apply <plan-file> [name]` | Review and apply a plan stored in a file |
| `/add <path> ...` | Send files with every request; accepts directories, globs and ranges like `src/app.py:10-20` |
| `/add [--clear]` | List the files in context, or stop sending them |
| `/history` | List applied plans, most recent first (`~1`) |
| `/history undo <ref>` | Revert a plan; `<ref>` is an id, a name, or `~N` |
| `/history redo <ref> [--force]` | Re-apply a plan |
| `/history delete <ref>` | Forget a plan without touching files |
| `/history clear` | Forget every plan |
| `/set <param> <value>` | Override a setting for this session (`/help set`) |
| `/debug <on\\|off>` | Print model request details |
| `/help [topic]` | This help; topics: `set`, `plan` |
| `/exit` | Quit |
"""

PLAN_HELP = """\
A plan is a sequence of blocks:

```
--- OPERATION START ---
type: edit
filePath: src/app.py
startLine: 3
endLine: 5
--- content START ---
import os
import sys
--- content END ---
--- OPERATION END ---
```

Ranged edits replace lines `startLine` up to, but not including, `endLine`,
numbered as in the file before the plan started. Every applied plan is
recorded in the history file at the project root, even when an operation
fails, so it can be undone.
"""


def _set_help() -> str:
    rows = "\n".join(
        f"| `{name}` | `{param['env_var']}` | {param['description']} |"
        for name, param in SUPPORTED_SET_PARAMS.items()
    )
    return ("Settings resolve in this order: `/set` override, environment variable, "
            "`config.toml`, built-in default.\n\n| Parameter | Env var | Description |\n|---|---|---|\n" + rows)


HELP_TOPICS = {
    "help": GENERAL_HELP,
    "plan": PLAN_HELP,
}


def try_handle_help_command(user_input: str, app_state: 'AppState') -> bool:
    command_prefix = "/help"
    parts = user_input.strip().split(maxsplit=1)

    if not parts or parts[0].lower() != command_prefix:
        return False

    topic = parts[1].strip().lower() if len(parts) > 1 else "help"
    if topic == "set":
        help_content = _set_help()
    elif topic in HELP_TOPICS:
        help_content = HELP_TOPICS[topic]
    else:
        app_state.console.print(f"[red]Error: Help topic '{topic}' not found. Showing default help.[/red]")
        topic, help_content = "help", GENERAL_HELP

    title = "General" if topic == "help" else topic
    app_state.console.print(Panel(
        RichMarkdown(help_content), title=f"[bold blue]📚 AI Plan Help ({title})[/bold blue]",
        title_align="left", border_style="blue"
    ))
    return True
