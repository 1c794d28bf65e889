# aiplan/llm_interaction.py
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

from litellm import completion
from rich.console import Console
from rich.markup import escape

from aiplan.config_utils import get_config_value
from aiplan.file_context_utils import collect_context_files
from aiplan.history_store import (
    HistoryError,
    HistoryIndexError,
    HistoryNotFoundError,
    format_history_context,
)
from aiplan.prompts import build_system_prompt

if TYPE_CHECKING:
    from aiplan.app_state import AppState


def _history_context(app_state: 'AppState', history_refs: Optional[Sequence[str]] = None) -> str:
    """Plans sent to the model: the named `history_refs`, or else the `history_depth` most recent."""
    store = app_state.history_store
    if not history_refs:
        history_depth = get_config_value("history_depth", app_state.RUNTIME_OVERRIDES, app_state.console) or 0
        if history_depth <= 0:
            return ""
    try:
        entries = store.list()
        if history_refs:
            selected = []
            for ref in history_refs:
                try:
                    entry = store.resolve(ref)
                except (HistoryNotFoundError, HistoryIndexError) as e:
                    app_state.console.print(f"[yellow]Warning: {escape(str(e))}; not sent to the model.[/yellow]")
                    continue
                if all(entry.id != other.id for other in selected):
                    selected.append(entry)
        else:
            selected = entries[:history_depth]
    except HistoryError as e:
        app_state.console.print(f"[yellow]Warning: Plan history not sent to the model: {e}[/yellow]")
        return ""
    if not selected:
        return ""
    ids = [entry.id for entry in entries]
    return format_history_context(selected, positions=[ids.index(entry.id) + 1 for entry in selected])


def build_messages(
    user_prompt: str,
    app_state: 'AppState',
    files: Optional[Sequence[str]] = None,
    history_refs: Optional[Sequence[str]] = None,
) -> List[Dict[str, Any]]:
    """System prompt (with past plans, if any are selected), one message per context file, then the request."""
    messages = [{"role": "system", "content": build_system_prompt(_history_context(app_state, history_refs))}]
    if files:
        max_file_size = get_config_value("max_file_size_bytes", app_state.RUNTIME_OVERRIDES, app_state.console)
        for context_file in collect_context_files(files, app_state.history_store.root, app_state.console, max_file_size):
            messages.append({"role": "system", "content": context_file.render()})
    messages.append({"role": "user", "content": user_prompt})
    return messages


def request_plan(
    user_prompt: str,
    app_state: 'AppState',
    files: Optional[Sequence[str]] = None,
    history_refs: Optional[Sequence[str]] = None,
) -> Optional[str]:
    """
    Asks the configured model for a plan answering `user_prompt`.
    `files` are file specs sent as context; `history_refs` pick past plans to send.
    Returns the raw reply text, or None if the call failed. There are no retries.
    """
    model_name = get_config_value("model", app_state.RUNTIME_OVERRIDES, app_state.console)
    completion_params: Dict[str, Any] = {
        "model": model_name,
        "messages": build_messages(user_prompt, app_state, files=files, history_refs=history_refs),
        "max_tokens": get_config_value("max_tokens", app_state.RUNTIME_OVERRIDES, app_state.console),
        "temperature": get_config_value("temperature", app_state.RUNTIME_OVERRIDES, app_state.console),
        "api_base": get_config_value("api_base", app_state.RUNTIME_OVERRIDES, app_state.console),
    }
    # LM Studio accepts any key but LiteLLM insists on one.
    if model_name.startswith("lm_studio/"):
        completion_params["api_key"] = "dummy"

    if app_state.DEBUG_LLM_INTERACTIONS:
        Console(stderr=True).print(f"[dim bold red]LLM DEBUG: requesting plan from {model_name}[/dim bold red]")

    app_state.console.print(f"[dim]🧠 Asking [bold magenta]{model_name}[/bold magenta] for a plan...[/dim]")
    try:
        response = completion(**completion_params)
    except Exception as e:
        # LiteLLM raises provider-specific exception types.
        app_state.console.print(f"[bold red]✗ Model request failed: {e}[/bold red]")
        return None

    content = response.choices[0].message.content if response.choices else None
    if not content:
        app_state.console.print("[yellow]⚠ The model returned an empty reply.[/yellow]")
        return None
    return content
