#!/usr/bin/env python3
"""
AI Plan: reviewed, reversible file changes proposed by a language model.

The model answers each request with a plan of file operations. The plan is
shown for review, applied on approval, and recorded in a per-project history
so it can be undone or redone later.
"""
import argparse
import logging
import sys
from pathlib import Path

import litellm

from aiplan import command_handlers
from aiplan.app_state import AppState
from aiplan.commands.apply_command import review_and_apply
from aiplan.config_utils import load_configuration
from aiplan.file_utils import read_local_file
from aiplan.llm_interaction import request_plan
from aiplan.ui_display import display_welcome_panel

__version__ = "0.1.0"

litellm.suppress_debug_info = True
logging.getLogger("litellm").setLevel(logging.WARNING)


def comma_separated(value: str):
    """argparse type for `--history ~1,cleanup`."""
    refs = [ref.strip() for ref in value.split(",") if ref.strip()]
    if not refs:
        raise argparse.ArgumentTypeError("expected at least one history reference")
    return refs


def handle_user_request(user_input: str, app_state: AppState, name=None, assume_yes: bool = False, history_refs=None):
    """Asks the model for a plan and hands it to the review flow."""
    reply = request_plan(user_input, app_state, files=app_state.context_files, history_refs=history_refs)
    if reply is None:
        return None
    return review_and_apply(reply, app_state, prompt=user_input, name=name, assume_yes=assume_yes)


def run_once(args, app_state: AppState) -> int:
    """Non-interactive mode for --apply and --prompt. Returns the exit code."""
    if args.apply:
        plan_path = Path(args.apply).expanduser()
        try:
            raw_text = read_local_file(str(plan_path))
        except (OSError, UnicodeDecodeError) as e:
            app_state.console.print(f"[red]Error reading plan file '{plan_path}': {e}[/red]")
            return 2
        report = review_and_apply(raw_text, app_state, prompt=args.prompt or f"Plan from {plan_path.name}",
                                  name=args.name, assume_yes=args.yes)
    else:
        report = handle_user_request(args.prompt, app_state, name=args.name, assume_yes=args.yes,
                                     history_refs=args.history)
    if report is None:
        return 1
    return 0 if report.ok else 1


def main():
    app_state = AppState()
    load_configuration(app_state.console)

    parser = argparse.ArgumentParser(
        description="AI Plan: reviewed, reversible file changes proposed by a language model.",
        formatter_class=argparse.RawTextHelpFormatter
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('--apply', metavar='PLAN_FILE', type=str, help='Review and apply the plan in PLAN_FILE, then exit.')
    parser.add_argument('--prompt', metavar='TEXT', type=str,
                        help='Ask the model for a plan for TEXT, review it, then exit.\nWith --apply, used as the recorded prompt.')
    parser.add_argument('--name', metavar='NAME', type=str, help='Name the recorded history entry.')
    parser.add_argument('--yes', action='store_true', help='Apply without asking for approval (non-interactive modes only).')
    parser.add_argument('--files', metavar='PATH', nargs='+', default=[],
                        help='Files sent to the model as context. Accepts directories, globs\nand line ranges such as src/app.py:10-20.')
    parser.add_argument('--history', metavar='REFS', type=comma_separated,
                        help='Past plans sent to the model as context: ids, names or ~N,\ncomma-separated (e.g. ~1,cleanup). Replaces history_depth.')
    args = parser.parse_args()
    app_state.context_files.extend(args.files)

    if args.apply or args.prompt:
        sys.exit(run_once(args, app_state))

    display_welcome_panel(app_state)

    while True:
        try:
            user_input = app_state.prompt_session.prompt("🔵 You> ").strip()
        except (EOFError, KeyboardInterrupt):
            app_state.console.print("\n[bold yellow]👋 Exiting gracefully...[/bold yellow]")
            sys.exit(0)

        if not user_input:
            continue

        if user_input.lower() in ["exit", "quit", "/exit", "/quit"]:
            app_state.console.print("[bold bright_blue]👋 Goodbye! Happy coding![/bold bright_blue]")
            sys.exit(0)

        if command_handlers.dispatch_command(user_input, app_state):
            continue

        if user_input.startswith("/"):
            app_state.console.print(f"[yellow]Unknown command: '{user_input.split()[0]}'. Type '/help' for a list of commands.[/yellow]")
            continue

        handle_user_request(user_input, app_state, history_refs=args.history)


if __name__ == "__main__":
    main()
