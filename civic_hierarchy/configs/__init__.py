import yaml
import os
import re
import json
import logging
from pathlib import Path
from dotenv import dotenv_values
from typing import Union

logger = logging.getLogger(__name__)


def get_ancestor_dir(start_path: Union[str, Path], steps: int) -> Path:
    if not isinstance(steps, int) or steps < 0:
        raise ValueError("Steps must be a non-negative integer.")

    path = Path(start_path).resolve()
    if path.is_file():
        path = path.parent

    for _ in range(steps):
        original_path = path
        path = path.parent
        # Gone past the filesystem root
        if path == original_path:
            raise ValueError(
                f"Cannot go up {steps} levels from '{start_path}'. "
                "Traversal went beyond the filesystem root."
            )

    return path


def _load_yaml_file(filepath: str):
    """Loads a single YAML file."""
    if os.path.exists(filepath):
        try:
            with open(filepath, "r", encoding="utf-8") as f:
                return yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.error(f"Error loading YAML file '{filepath}': {e}")
            return {}
    return {}


def _load_json_file(filepath: str):
    """Loads a single JSON file."""
    if os.path.exists(filepath):
        try:
            with open(filepath, "r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Error loading JSON file '{filepath}': {e}")
    return {}


def _load_env(filepath: str = ".env"):
    """Loads environment variables from a .env file."""
    if os.path.exists(filepath):
        return dotenv_values(filepath)
    logger.warning(f".env file not found at '{filepath}'")
    return {}


def _resolve_placeholders(data, original_data: dict):
    """
    Recursively replaces placeholder strings (e.g. '${key}') in a dictionary or
    list with top-level values of `original_data`.
    """
    if isinstance(data, dict):
        return {k: _resolve_placeholders(v, original_data) for k, v in data.items()}
    elif isinstance(data, list):
        return [_resolve_placeholders(item, original_data) for item in data]
    elif isinstance(data, str):
        for match in re.findall(r"\$\{(\w+)\}", data):
            replacement_value = original_data.get(match)
            data = data.replace(f"${{{match}}}", f"{replacement_value}")
        return data
    else:
        return data


def recursive_replace(data, old_value, new_value):
    """
    Recursively replace string values in nested dictionaries/lists.
    """
    if isinstance(data, dict):
        return {
            key: recursive_replace(value, old_value, new_value)
            for key, value in data.items()
        }
    elif isinstance(data, list):
        return [recursive_replace(item, old_value, new_value) for item in data]
    elif isinstance(data, str):
        return data.replace(old_value, new_value)
    else:
        return data


def _sanitize_name(filename: str) -> str:
    """Sanitizes a filename to be a valid Python identifier."""
    name = filename.replace("-", "_")
    name = re.sub(r"[^a-zA-Z0-9_]", "", name)
    if name and name[0].isdigit():
        name = "_" + name
    return name


def load_file(filename, DIR):
    filepath = os.path.join(DIR, filename)
    loaded_data = None
    config_name = os.path.splitext(filename)[0]
    sanitized_config_name = _sanitize_name(config_name)
    if filename.endswith(".env"):
        loaded_data = _load_env(filepath)
        sanitized_config_name = (
            "env" if sanitized_config_name == "" else sanitized_config_name
        )
    elif filename.endswith((".yaml", ".yml")):
        loaded_data = _load_yaml_file(filepath)
    elif filename.endswith(".json"):
        loaded_data = _load_json_file(filepath)
    return loaded_data, sanitized_config_name


def handle_env_path(filedir, filename):
    """
    `.env` at the repository root wins, then a directory named by ENV_FILE_DIR,
    then the process environment for the known keys.
    """
    loaded_data = None
    if os.path.exists(os.path.join(filedir, filename)):
        loaded_data, _ = load_file(filename, filedir)
    elif os.environ.get("ENV_FILE_DIR"):
        loaded_data, _ = load_file(filename, os.environ.get("ENV_FILE_DIR"))
    else:
        loaded_data = dict((key, os.environ.get(key)) for key in ENV_KEYS)
    for key in ENV_KEYS:
        # process environment overrides unset file values
        if not loaded_data.get(key) and os.environ.get(key):
            loaded_data[key] = os.environ.get(key)
    return loaded_data


ENV_KEYS = [
    "APP_NAME",
    "DEBUG",
    "SECRET_KEY",
    "MONGO_URI",
    "MONGO_DB",
    "ACCESS_TOKEN_EXPIRE_MINUTES",
]

REPO_ROOT = get_ancestor_dir(__file__, 2)
CONFIGS_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = Path(CONFIGS_DIR).parent.resolve()

replacements = {"<ROOT_PATH>": str(PROJECT_ROOT)}
__include__ = [(".env", str(REPO_ROOT)), ("config.yaml", CONFIGS_DIR)]

env = {}
configs = {}

for filename, filedir in __include__:
    if filename == ".env":
        env = handle_env_path(filedir, filename)
        continue
    loaded_data, sanitized_config_name = load_file(filename, filedir)
    for key, value in replacements.items():
        loaded_data = recursive_replace(loaded_data, old_value=key, new_value=value)
    loaded_data = _resolve_placeholders(loaded_data, loaded_data)
    if sanitized_config_name == "config":
        configs = loaded_data
    else:
        globals()[sanitized_config_name] = loaded_data
