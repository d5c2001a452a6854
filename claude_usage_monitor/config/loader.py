"""
Configuration management and loading.

Handles the persisted plan selection (a small JSON document) and the
optional YAML monitor settings file.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import typer
import yaml

from claude_usage_monitor.core.plans import DEFAULT_PLAN, Plan

logger = logging.getLogger(__name__)

APP_NAME = "claude-usage-monitor"
PLAN_CONFIG_FILENAME = "usage.json"

PathLike = Union[str, Path]


@dataclass(frozen=True)
class PlanConfig:
    """Persisted plan selection."""
    plan: Plan = DEFAULT_PLAN

    def to_dict(self) -> Dict[str, str]:
        return {"plan": self.plan.value}


@dataclass(frozen=True)
class MonitorSettings:
    """Settings for loading and refreshing usage data."""
    data_paths: Tuple[str, ...] = field(default_factory=tuple)
    session_hours: float = 5.0
    refresh_interval: float = 5.0
    file_extension: str = ".jsonl"

    def __post_init__(self):
        """Validate settings values."""
        if self.session_hours <= 0:
            raise ValueError("session_hours must be > 0")
        if self.refresh_interval <= 0:
            raise ValueError("refresh_interval must be > 0")
        if not self.file_extension.startswith("."):
            raise ValueError("file_extension must start with '.'")


def default_plan_config_path() -> Path:
    return Path(typer.get_app_dir(APP_NAME)) / PLAN_CONFIG_FILENAME


def load_plan_config(path: Optional[PathLike] = None) -> PlanConfig:
    """Load the persisted plan selection.

    A missing file yields the default plan. An unreadable file or an
    unknown plan name is logged and also yields the default, so a damaged
    config never prevents startup.
    """
    config_path = Path(path) if path else default_plan_config_path()
    if not config_path.exists():
        return PlanConfig()

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw_config = json.load(f)
        return PlanConfig(plan=Plan.parse(raw_config["plan"]))
    except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
        logger.warning("Ignoring invalid plan config %s: %s", config_path, e)
        return PlanConfig()


def save_plan_config(config: PlanConfig, path: Optional[PathLike] = None) -> Path:
    """Write the plan selection, creating parent directories as needed.

    Returns:
        Path the config was written to

    Raises:
        OSError: If the file cannot be written
    """
    config_path = Path(path) if path else default_plan_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w", encoding="utf-8") as f:
        json.dump(config.to_dict(), f, indent=2)
    return config_path


def load_settings(path: Optional[PathLike] = None) -> MonitorSettings:
    """Load and validate monitor settings from a YAML file.

    Strict validation ensures a typo in the settings file is reported
    instead of silently falling back to defaults.

    Args:
        path: Path to YAML settings file, or None for defaults

    Returns:
        Validated MonitorSettings object

    Raises:
        FileNotFoundError: If an explicit settings file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If settings are invalid
    """
    if path is None:
        return MonitorSettings()

    settings_path = Path(path)
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {path}")

    with open(settings_path, 'r', encoding='utf-8') as f:
        try:
            raw_settings = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in settings file {path}: {e}")

    if raw_settings is None:
        return MonitorSettings()
    if not isinstance(raw_settings, dict):
        raise ValueError("Settings file must contain a mapping")

    allowed_keys = {'data_paths', 'session_hours', 'refresh_interval', 'file_extension'}
    unknown_keys = set(raw_settings.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown settings keys: {unknown_keys}")

    kwargs: Dict[str, Any] = {}

    if 'data_paths' in raw_settings:
        data_paths = raw_settings['data_paths']
        if not isinstance(data_paths, list) or not all(isinstance(p, str) for p in data_paths):
            raise ValueError("'data_paths' must be a list of strings")
        kwargs['data_paths'] = tuple(data_paths)

    for key in ('session_hours', 'refresh_interval'):
        if key in raw_settings:
            value = raw_settings[key]
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                raise ValueError(f"'{key}' must be a number > 0")
            kwargs[key] = float(value)

    if 'file_extension' in raw_settings:
        extension = raw_settings['file_extension']
        if not isinstance(extension, str):
            raise ValueError("'file_extension' must be a string")
        kwargs['file_extension'] = extension

    return MonitorSettings(**kwargs)
