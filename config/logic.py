from collections.abc import Mapping
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from config.loader import load_config
from config.models import Config
from utils.errors import ConfigError
from utils.logger import logger

DEFAULT_CONFIG_PATH = Path(__file__).parent / "default.yaml"
USER_CONFIG_DIR = Path.home() / ".aichat"
USER_CONFIG_PATH = USER_CONFIG_DIR / "config.yaml"
PROJECT_CONFIG_FILENAME = ".aichat.yaml"
PROJECT_MARKERS = (".git", "pyproject.toml", "package.json")


def deep_merge(target: Dict[str, Any], source: Mapping) -> Dict[str, Any]:
    """Overlays `source` onto `target`; nested sections merge, lists are replaced."""
    for key, value in source.items():
        current = target.get(key)
        if isinstance(value, Mapping) and isinstance(current, Mapping):
            target[key] = deep_merge(dict(current), value)
        else:
            target[key] = value
    return target


def find_project_root(start_dir: Path = Path(".")) -> Optional[Path]:
    """Walks up from `start_dir` to the first directory holding a project marker."""
    for directory in (start_dir.resolve(), *start_dir.resolve().parents):
        if any((directory / marker).exists() for marker in PROJECT_MARKERS):
            return directory
    return None


def find_project_config(start_dir: Path = Path(".")) -> Optional[Path]:
    root = find_project_root(start_dir)
    if root is None:
        return None
    candidate = root / PROJECT_CONFIG_FILENAME
    return candidate if candidate.is_file() else None


def config_layers(custom_config_path: Optional[str] = None, start_dir: Path = Path(".")) -> List[Path]:
    """
    Lists the files to merge, lowest precedence first.

    The layers are the bundled defaults, `~/.aichat/config.yaml` and the
    project's `.aichat.yaml`. An explicit `custom_config_path` stands in for
    the user and project layers.

    Raises:
        ConfigError: If the defaults or the custom file are missing.
    """
    if not DEFAULT_CONFIG_PATH.is_file():
        raise ConfigError(f"Bundled defaults missing at {DEFAULT_CONFIG_PATH}")

    if custom_config_path:
        custom = Path(custom_config_path)
        if not custom.is_file():
            raise ConfigError(f"Custom config file not found at: {custom_config_path}")
        return [DEFAULT_CONFIG_PATH, custom]

    layers = [DEFAULT_CONFIG_PATH]
    if USER_CONFIG_PATH.is_file():
        layers.append(USER_CONFIG_PATH)
    project = find_project_config(start_dir)
    if project is not None:
        layers.append(project)
    return layers


def _read_layer(path: Path) -> Dict[str, Any]:
    # Unreadable overrides are skipped; only validation failures are fatal.
    try:
        with open(path, "r", encoding="utf-8") as f:
            return load_config(f)
    except (OSError, ConfigError) as e:
        logger.warning(f"Ignoring config at {path}: {e}")
        return {}


def load_and_merge_configs(custom_config_path: Optional[str] = None, start_dir: Path = Path(".")) -> Config:
    """
    Builds the effective `Config` from every layer returned by `config_layers`.

    Raises:
        ConfigError: If a layer is missing or the merged values fail validation.
    """
    merged: Dict[str, Any] = {}
    for path in config_layers(custom_config_path, start_dir):
        logger.debug(f"Loading configuration from: {path}")
        merged = deep_merge(merged, _read_layer(path))

    try:
        config = Config(**merged)
    except ValidationError as e:
        raise ConfigError(f"Configuration validation failed: {e}") from e
    logger.debug(f"Effective config: {config.model_dump_json()}")
    return config
