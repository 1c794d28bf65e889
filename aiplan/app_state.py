# aiplan/app_state.py
from typing import Any, Dict, List, Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.styles import Style as PromptStyle
from rich.console import Console

from aiplan.config_utils import get_config_value
from aiplan.history_store import HistoryStore


class AppState:
    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()
        self.prompt_session = PromptSession(
            style=PromptStyle.from_dict({
                'prompt': '#0066ff bold',
                'completion-menu.completion': 'bg:#1e3a8a fg:#ffffff',
                'completion-menu.completion.current': 'bg:#3b82f6 fg:#ffffff bold',
            })
        )
        self.DEBUG_LLM_INTERACTIONS: bool = False
        self.RUNTIME_OVERRIDES: Dict[str, Any] = {}
        # File specs (paths, globs, ranges) sent to the model with every request.
        self.context_files: List[str] = []
        self._history_store: Optional[HistoryStore] = None

    @property
    def history_store(self) -> HistoryStore:
        """History of the project containing the current directory, discovered on first use."""
        if self._history_store is None:
            self._history_store = HistoryStore.discover(
                markers=get_config_value("root_markers", self.RUNTIME_OVERRIDES, self.console),
                file_name=get_config_value("history_file", self.RUNTIME_OVERRIDES, self.console),
                console_obj=self.console,
            )
        return self._history_store

    def reset_history_store(self):
        """Forget the discovered store, e.g. after the history file setting changes."""
        self._history_store = None
