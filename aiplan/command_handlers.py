# aiplan/command_handlers.py
from aiplan.commands.add_command import try_handle_add_command
from aiplan.commands.apply_command import try_handle_apply_command
from aiplan.commands.debug_command import try_handle_debug_command
from aiplan.commands.help_command import try_handle_help_command
from aiplan.commands.history_command import try_handle_history_command
from aiplan.commands.set_command import try_handle_set_command

MAIN_LOOP_COMMAND_HANDLERS = [
    try_handle_history_command,
    try_handle_apply_command,
    try_handle_add_command,
    try_handle_set_command,
    try_handle_help_command,
    try_handle_debug_command,
]


def dispatch_command(user_input: str, app_state) -> bool:
    """Runs the first handler that accepts `user_input`. Returns False if none did."""
    for handler_func in MAIN_LOOP_COMMAND_HANDLERS:
        if handler_func(user_input, app_state):
            return True
    return False
