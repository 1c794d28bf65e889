# aiplan/config_utils.py
import os
from pathlib import Path
from typing import Any, Dict, Optional

import toml
from dotenv import load_dotenv

# --- Ultimate Fallback Defaults ---
# Used when config.toml is missing or a key is not found,
# and no environment variable or runtime override is set.
ULTIMATE_DEFAULTS = {
    "model": "ollama_chat/devstral",
    "api_base": None,
    "max_tokens": 8192,
    "temperature": 0.2,
    "history_file": ".aiplan-history.json",
    "history_depth": 0,
    "root_markers": [".git", "pyproject.toml", "package.json"],
    "continue_on_error": False,
    "max_file_size_bytes": 5_000_000,  # 5MB
}

# Flattened values from config.toml
_CONFIG_FROM_TOML: Dict[str, Any] = {}

# TOML section/key -> flat parameter name
_TOML_KEYS = {
    ("model", "name"): "model",
    ("model", "api_base"): "api_base",
    ("model", "max_tokens"): "max_tokens",
    ("model", "temperature"): "temperature",
    ("history", "file_name"): "history_file",
    ("history", "depth"): "history_depth",
    ("project", "root_markers"): "root_markers",
    ("execution", "continue_on_error"): "continue_on_error",
    ("execution", "max_file_size_bytes"): "max_file_size_bytes",
}

SUPPORTED_SET_PARAMS = {
    "model": {
        "env_var": "AIPLAN_MODEL",
        "description": "The LiteLLM model that proposes plans (e.g., 'ollama_chat/devstral', 'openrouter/deepseek/deepseek-chat')."
    },
    "api_base": {
        "env_var": "AIPLAN_API_BASE",
        "description": "API base URL passed to LiteLLM. Leave unset to use the provider default."
    },
    "max_tokens": {
        "env_var": "AIPLAN_MAX_TOKENS",
        "type": int,
        "description": "Maximum number of tokens for the model's plan (e.g., 8192)."
    },
    "temperature": {
        "env_var": "AIPLAN_TEMPERATURE",
        "type": float,
        "description": "Sampling temperature for plan generation (0.0 to 2.0, lower is more deterministic)."
    },
    "history_file": {
        "env_var": "AIPLAN_HISTORY_FILE",
        "description": "File name of the plan history, stored at the project root."
    },
    "history_depth": {
        "env_var": "AIPLAN_HISTORY_DEPTH",
        "type": int,
        "description": "Number of most recent plans sent to the model as context (0 disables)."
    },
    "continue_on_error": {
        "env_var": "AIPLAN_CONTINUE_ON_ERROR",
        "type": bool,
        "allowed_values": ["true", "false"],
        "description": "When 'true', keep applying a plan after a failed operation instead of stopping at the first failure."
    },
    "max_file_size_bytes": {
        "env_var": "AIPLAN_MAX_FILE_SIZE_BYTES",
        "type": int,
        "description": "Largest file content, in bytes, a plan may write."
    },
}

# Upper bound on files read from one directory given as context.
MAX_FILES_TO_PROCESS_IN_DIR = 1000

_TRUE_STRINGS = {"true", "1", "yes", "on"}
_FALSE_STRINGS = {"false", "0", "no", "off"}


def _coerce(param_name: str, value: Any) -> Any:
    """Converts a raw value to the parameter's declared type. Raises ValueError."""
    expected_type = SUPPORTED_SET_PARAMS.get(param_name, {}).get("type")
    if expected_type is None or value is None:
        return value
    if expected_type is bool:
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
        raise ValueError(f"'{value}' is not a boolean")
    if expected_type is int:
        number = int(value)
        if number < 0:
            raise ValueError("must not be negative")
        return number
    if expected_type is float:
        number = float(value)
        if param_name == "temperature" and not (0.0 <= number <= 2.0):
            raise ValueError("Temperature must be between 0.0 and 2.0.")
        return number
    return value


def update_runtime_override(param_name: str, value: Any, runtime_overrides: Dict[str, Any], console_obj=None):
    """
    Updates a runtime override for a given parameter.
    Validates against SUPPORTED_SET_PARAMS.
    """
    param_name_lower = param_name.lower()
    if param_name_lower not in SUPPORTED_SET_PARAMS:
        if console_obj:
            console_obj.print(f"[red]Error: Unknown parameter '{param_name}'. Cannot set override.[/red]")
        return

    allowed_values = SUPPORTED_SET_PARAMS[param_name_lower].get("allowed_values")
    if allowed_values and str(value).lower() not in allowed_values:
        if console_obj:
            console_obj.print(f"[red]Error: Invalid value '{value}' for {param_name_lower}. Allowed values: {', '.join(allowed_values)}[/red]")
        return

    try:
        value = _coerce(param_name_lower, value)
    except ValueError as e:
        if console_obj:
            console_obj.print(f"[red]Error: Invalid value '{value}' for {param_name_lower}: {e}[/red]")
        return

    runtime_overrides[param_name_lower] = value
    if console_obj:
        console_obj.print(f"[green]✓ Runtime override set: {param_name_lower} = {value}[/green]")


def remove_runtime_override(param_name: str, runtime_overrides: Dict[str, Any], console_obj=None):
    """Removes a runtime override."""
    if param_name.lower() in runtime_overrides:
        del runtime_overrides[param_name.lower()]
        if console_obj: console_obj.print(f"[yellow]✓ Runtime override removed for: {param_name.lower()}[/yellow]")
    elif console_obj: console_obj.print(f"[dim]No runtime override found for '{param_name.lower()}' to remove.[/dim]")


def list_runtime_overrides(runtime_overrides: Dict[str, Any], console_obj):
    """Lists current runtime overrides."""
    if not runtime_overrides:
        console_obj.print("[dim]No active runtime overrides.[/dim]")
        return
    console_obj.print("[bold blue]Active Runtime Overrides:[/bold blue]")
    for key, value in runtime_overrides.items():
        console_obj.print(f"  - {key}: {value}")


def load_configuration(console_obj, config_path: Optional[Path] = None):
    """
    Loads .env file into environment variables and config.toml into _CONFIG_FROM_TOML.
    """
    load_dotenv()
    _CONFIG_FROM_TOML.clear()

    try:
        toml_config_path = config_path or Path("config.toml")
        if toml_config_path.exists():
            loaded_toml = toml.load(toml_config_path)
            for (section, key), param_name in _TOML_KEYS.items():
                section_values = loaded_toml.get(section)
                if isinstance(section_values, dict) and key in section_values:
                    _CONFIG_FROM_TOML[param_name] = section_values[key]
    except (OSError, toml.TomlDecodeError) as e:
        if console_obj:
            console_obj.print(f"[yellow]Warning: Could not load or parse config.toml: {e}. Using internal defaults.[/yellow]")


def get_config_value(param_name: str, runtime_overrides: Dict[str, Any], console_obj=None) -> Any:
    """
    Retrieves a configuration value based on precedence:
    1. Runtime overrides
    2. Environment variables
    3. Values from config.toml (_CONFIG_FROM_TOML)
    4. Ultimate hardcoded defaults (ULTIMATE_DEFAULTS)
    """
    if param_name not in SUPPORTED_SET_PARAMS:
        if param_name in _CONFIG_FROM_TOML:
            return _CONFIG_FROM_TOML[param_name]
        if param_name not in ULTIMATE_DEFAULTS and console_obj:
            console_obj.print(f"[yellow]Warning: Attempted to get unknown config param '{param_name}'. Using default.[/yellow]")
        return ULTIMATE_DEFAULTS.get(param_name)

    runtime_val = runtime_overrides.get(param_name)
    if runtime_val is not None:
        return runtime_val

    fallback = _CONFIG_FROM_TOML.get(param_name, ULTIMATE_DEFAULTS.get(param_name))

    env_var_name = SUPPORTED_SET_PARAMS[param_name].get("env_var")
    env_val = os.getenv(env_var_name) if env_var_name else None
    if env_val is not None:
        try:
            return _coerce(param_name, env_val)
        except ValueError:
            if console_obj:
                console_obj.print(f"[yellow]Warning: Ignoring invalid {env_var_name}='{env_val}'.[/yellow]")

    try:
        return _coerce(param_name, fallback)
    except ValueError:
        return ULTIMATE_DEFAULTS.get(param_name)
