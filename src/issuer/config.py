"""Configuration management for issuer.

Handles:
- .issuer/config.yaml parsing
- Environment variable overrides
- .issuer/ directory discovery
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any

import yaml


CONFIG_YAML = "config.yaml"
ISSUER_DIR = ".issuer"
DEFAULT_DB_NAME = "issuer.db"

DEFAULT_STATUSES = ["open", "in_progress", "closed"]
DEFAULT_RESOLVED_STATUSES = ["closed"]

ENV_DB = "ISSUER_DB"
ENV_JSON = "ISSUER_JSON"
ENV_LOG = "ISSUER_LOG"


def _name_list(data: dict, key: str, default: list[str]) -> list[str]:
    """Read a list of names; a bare string is a one-element list."""
    value = data.get(key)
    if value is None:
        return list(default)
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        raise ValueError(f"{key}: expected a list of names, got {value!r}")
    return [str(v) for v in value]


@dataclass
class IssuerConfig:
    """User-facing config from config.yaml."""
    db: str = ""
    json_output: bool = False
    default_statuses: list[str] = field(default_factory=lambda: list(DEFAULT_STATUSES))
    resolved_statuses: list[str] = field(
        default_factory=lambda: list(DEFAULT_RESOLVED_STATUSES)
    )
    busy_timeout: float = 5.0
    max_conflict_retries: int = 3
    log_level: str = "WARNING"

    @classmethod
    def load(cls, issuer_dir: str) -> IssuerConfig:
        """Load config.yaml from the issuer directory."""
        config_path = os.path.join(issuer_dir, CONFIG_YAML)
        cfg = cls()
        if os.path.exists(config_path):
            with open(config_path) as f:
                try:
                    data = yaml.safe_load(f) or {}
                except yaml.YAMLError as e:
                    raise ValueError(f"{config_path}: {e}") from None
            if not isinstance(data, dict):
                raise ValueError(f"{config_path}: expected a mapping at top level")
            cfg.db = data.get("db", "")
            cfg.json_output = bool(data.get("json", False))
            cfg.default_statuses = _name_list(data, "default-statuses", DEFAULT_STATUSES)
            cfg.resolved_statuses = _name_list(
                data, "resolved-statuses", DEFAULT_RESOLVED_STATUSES
            )
            try:
                cfg.busy_timeout = float(data.get("busy-timeout", 5.0))
                cfg.max_conflict_retries = int(data.get("max-conflict-retries", 3))
            except (TypeError, ValueError) as e:
                raise ValueError(f"{config_path}: {e}") from None
            cfg.log_level = str(data.get("log-level", "WARNING"))

        # Environment variable overrides
        if os.environ.get(ENV_DB):
            cfg.db = os.environ[ENV_DB]
        if os.environ.get(ENV_JSON):
            cfg.json_output = os.environ[ENV_JSON].lower() in ("1", "true", "yes")
        if os.environ.get(ENV_LOG):
            cfg.log_level = os.environ[ENV_LOG]

        return cfg

    def save(self, issuer_dir: str) -> None:
        """Save config to config.yaml."""
        config_path = os.path.join(issuer_dir, CONFIG_YAML)
        data: dict[str, Any] = {
            "default-statuses": self.default_statuses,
            "resolved-statuses": self.resolved_statuses,
            "busy-timeout": self.busy_timeout,
            "max-conflict-retries": self.max_conflict_retries,
        }
        if self.db:
            data["db"] = self.db
        if self.json_output:
            data["json"] = self.json_output
        if self.log_level != "WARNING":
            data["log-level"] = self.log_level

        with open(config_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False)


def find_issuer_dir(start: str | None = None) -> str | None:
    """Walk up from start directory to find .issuer/ directory.

    Returns absolute path to .issuer/ directory, or None if not found.
    """
    if start is None:
        start = os.getcwd()
    current = os.path.abspath(start)
    while True:
        candidate = os.path.join(current, ISSUER_DIR)
        if os.path.isdir(candidate):
            return candidate
        parent = os.path.dirname(current)
        if parent == current:
            return None
        current = parent


def get_db_path(issuer_dir: str, config: IssuerConfig | None = None) -> str:
    """Get the full path to the SQLite database."""
    env_db = os.environ.get(ENV_DB)
    if env_db:
        return env_db
    if config and config.db:
        if os.path.isabs(config.db):
            return config.db
        return os.path.join(issuer_dir, config.db)
    return os.path.join(issuer_dir, DEFAULT_DB_NAME)


def parse_log_level(value: str | int | None, default: int = logging.WARNING) -> int:
    """Map a level name ("debug", "INFO") or number to a logging level."""
    if value is None or value == "":
        return default
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if text.isdigit():
        return int(text)
    level = logging.getLevelName(text.upper())
    if isinstance(level, int):
        return level
    return default
