#!/usr/bin/env python3
"""
Configuration management for Basecamp.
Handles the hint endpoint settings and the local storage location.
"""

import os
import json
from pathlib import Path
from typing import Dict, Any


DEFAULTS = {
    'ollama_url': 'http://localhost:11434',
    'ollama_model': 'llama2',
    'enable_hints': True,
    'hint_timeout': 60.0,
}

# Environment variables checked before the config file
ENV_OVERRIDES = {
    'ollama_url': 'BASECAMP_OLLAMA_URL',
    'ollama_model': 'BASECAMP_OLLAMA_MODEL',
}


def get_config_dir() -> Path:
    """Get the Basecamp config directory (~/.basecamp or $BASECAMP_HOME)"""
    home = os.getenv('BASECAMP_HOME')
    config_dir = Path(home) if home else Path.home() / '.basecamp'
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_config_path() -> Path:
    """Get the config file path"""
    return get_config_dir() / 'config.json'


def get_storage_dir() -> Path:
    """Directory holding one progress database per course"""
    storage_dir = get_config_dir() / 'storage'
    storage_dir.mkdir(parents=True, exist_ok=True)
    return storage_dir


def load_config() -> Dict[str, Any]:
    """Load configuration from file"""
    config_path = get_config_path()
    if config_path.exists():
        try:
            with open(config_path, 'r') as f:
                return json.load(f)
        except (json.JSONDecodeError, IOError):
            return {}
    return {}


def save_config(config: Dict[str, Any]) -> None:
    """Save configuration to file"""
    config_path = get_config_path()
    with open(config_path, 'w') as f:
        json.dump(config, f, indent=2)
    # Secure the file (read/write only for owner)
    config_path.chmod(0o600)


def get_config_value(key: str, default: Any = None) -> Any:
    """
    Get a specific config value.

    Priority:
    1. Environment variable (for keys in ENV_OVERRIDES)
    2. Config file
    3. Explicit default, then built-in default
    """
    env_var = ENV_OVERRIDES.get(key)
    if env_var and os.getenv(env_var):
        return os.getenv(env_var)

    config = load_config()
    if key in config:
        return config[key]
    if default is not None:
        return default
    return DEFAULTS.get(key)


def set_config_value(key: str, value: Any) -> None:
    """Set a specific config value"""
    config = load_config()
    config[key] = value
    save_config(config)


def prompt_for_hint_settings() -> None:
    """Interactively configure the hint endpoint"""
    print("\n" + "=" * 60)
    print("Hint Endpoint Setup")
    print("=" * 60)
    print("\nHints are generated by a locally running Ollama server.")
    print("Install it from https://ollama.ai and pull a model first.\n")

    try:
        url = input(f"Ollama URL [{get_config_value('ollama_url')}]: ").strip()
        model = input(f"Model name [{get_config_value('ollama_model')}]: ").strip()
        enable = input("Enable AI hints? [Y/n]: ").strip().lower()
    except (KeyboardInterrupt, EOFError):
        print("\nCancelled.")
        return

    config = load_config()
    if url:
        config['ollama_url'] = url.rstrip('/')
    if model:
        config['ollama_model'] = model
    config['enable_hints'] = enable != 'n'
    save_config(config)
    print(f"\nSettings saved to {get_config_path()}")
