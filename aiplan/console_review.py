# aiplan/console_review.py
from typing import List, Optional, Sequence

from prompt_toolkit import PromptSession
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from aiplan.prompts import RichMarkdown

_KIND_STYLES = {
    "create": "green",
    "edit": "cyan",
    "replace": "cyan",
    "rename": "magenta",
    "delete": "red",
    "response": "dim",
}


def _preview(text: str, limit: int = 60) -> str:
    first_line = text.splitlines()[0] if text else ""
    if len(first_line) > limit:
        first_line = first_line[:limit - 1] + "…"
    line_count = text.count("\n") + 1 if text else 0
    first_line = escape(first_line)
    return f"{first_line} [dim]({line_count} line(s))[/dim]" if line_count > 1 else first_line


class ConsoleReviewer:
    """Interactive plan review on a rich console with prompt_toolkit input."""

    def __init__(self, console_obj, prompt_session: Optional[PromptSession] = None):
        self.console = console_obj
        self.prompt_session = prompt_session or PromptSession()

    def present_plan(self, operations, warnings: List[str]):
        table = Table(title="📋 Proposed Plan", show_lines=False, header_style="bold bright_blue")
        table.add_column("#", justify="right", style="dim")
        table.add_column("Type")
        table.add_column("Target")
        table.add_column("Details", overflow="fold")
        for index, op in enumerate(operations, start=1):
            style = _KIND_STYLES.get(op.kind, "white")
            if op.kind == "response":
                continue
            if op.kind == "rename":
                target = escape(f"{op.old_path} → {op.new_path}")
                details = escape(op.comment or "")
            else:
                target = escape(op.path)
                details = ""
                if op.kind == "edit" and op.is_ranged:
                    details = f"lines {op.start_line}-{op.end_line}: "
                elif op.kind == "replace" and op.find:
                    details = f"find {_preview(op.find, 30)} → "
                if op.kind != "delete":
                    details += _preview(op.content)
                if op.comment:
                    note = f"[dim]{escape(op.comment)}[/dim]"
                    details = f"{details}\n{note}" if details else note
            table.add_row(str(index), f"[{style}]{op.kind}[/{style}]", target, details)
        self.console.print(table)

        for op in operations:
            if op.kind == "response":
                self.console.print(Panel(RichMarkdown(op.text), title="[bold blue]💬 Response[/bold blue]",
                                         title_align="left", border_style="blue"))
        for warning in warnings:
            self.console.print(f"[yellow]⚠ {warning}[/yellow]")

    def present_errors(self, title: str, messages: List[str]):
        self.console.print(f"[bold red]✗ {title}:[/bold red]")
        for message in messages:
            self.console.print(f"  [red]- {message}[/red]")

    def choose_action(self, actions: Sequence[str]) -> str:
        shortcuts = {action[0]: action for action in actions}
        label = " / ".join(f"({action[0]}){action[1:]}" for action in actions)
        while True:
            try:
                answer = self.prompt_session.prompt(f"🔵 {label}? ").strip().lower()
            except (EOFError, KeyboardInterrupt):
                return actions[-1]
            if answer in actions:
                return answer
            if answer in shortcuts:
                return shortcuts[answer]
            self.console.print(f"[yellow]Please answer one of: {', '.join(actions)}[/yellow]")

    def confirm_choice(self, message: str) -> bool:
        try:
            answer = self.prompt_session.prompt(f"🔵 {message} (y/N) ").strip().lower()
        except (EOFError, KeyboardInterrupt):
            return False
        return answer in ("y", "yes")

    def edit_plan_text(self, text: str) -> Optional[str]:
        self.console.print("[dim]Edit the plan below. Press Esc then Enter to finish, Ctrl-C to discard changes.[/dim]")
        try:
            return self.prompt_session.prompt("", default=text, multiline=True)
        except (EOFError, KeyboardInterrupt):
            self.console.print("[yellow]Edit discarded.[/yellow]")
            return None

    def confirm_divergences(self, divergences) -> bool:
        self.console.print("[yellow]⚠ These files differ from what the plan produced:[/yellow]")
        for divergence in divergences:
            self.console.print(f"   - {divergence}")
        return self.confirm_choice("Redo anyway and overwrite them?")
