# Task board: configuration
# Defaults < taskboard.yaml < TASKBOARD_* environment variables < CLI args.

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import List, Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_PATH = Path(__file__).resolve().parents[2] / "taskboard.yaml"

ENV_OVERRIDES = {
    "TASKBOARD_DB": "db_path",
    "TASKBOARD_HOST": "host",
    "TASKBOARD_PORT": "port",
    "TASKBOARD_LOG_LEVEL": "log_level",
    "TASKBOARD_MAX_WRITE_RETRIES": "max_write_retries",
}


class ConfigError(Exception):
    """Raised when configuration is invalid."""
    pass


@dataclass
class BoardConfig:
    """Runtime configuration for the board server."""

    # Storage ("" = in-memory, lost on restart)
    db_path: str = ""

    # HTTP
    host: str = "127.0.0.1"
    port: int = 3000

    # Optimistic-concurrency attempts per write before reporting a conflict
    max_write_retries: int = 3

    log_level: str = "INFO"

    # Known user ids; empty = accept any X-User-Id
    users: List[str] = field(default_factory=list)

    def apply_env(self, environ=None) -> "BoardConfig":
        environ = os.environ if environ is None else environ
        for var, attr in ENV_OVERRIDES.items():
            if environ.get(var):
                setattr(self, attr, environ[var])
        return self

    def validate(self) -> "BoardConfig":
        try:
            self.port = int(self.port)
            self.max_write_retries = int(self.max_write_retries)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid numeric setting: {e}") from e
        if self.max_write_retries < 1:
            raise ConfigError("max_write_retries must be at least 1")
        if logging.getLevelName(str(self.log_level).upper()) not in (
            logging.DEBUG, logging.INFO, logging.WARNING, logging.ERROR, logging.CRITICAL
        ):
            raise ConfigError(f"Invalid log_level: {self.log_level}")
        self.log_level = str(self.log_level).upper()
        self.users = [str(u) for u in self.users or []]
        if self.db_path:
            self.db_path = str(Path(self.db_path).expanduser())
        return self

    @classmethod
    def load(cls, path: Optional[str] = None, environ=None) -> "BoardConfig":
        """Load config from YAML file, falling back to defaults."""
        cfg_path = Path(path) if path else CONFIG_PATH
        known = {f.name for f in fields(cls)}
        if cfg_path.exists():
            with open(cfg_path, "r") as f:
                try:
                    data = yaml.safe_load(f) or {}
                except yaml.YAMLError as e:
                    raise ConfigError(f"Cannot parse {cfg_path}: {e}") from e
            if not isinstance(data, dict):
                raise ConfigError(f"{cfg_path} must contain a mapping")
            ignored = sorted(set(data) - known)
            if ignored:
                logger.warning("Ignoring unknown config keys in %s: %s", cfg_path, ignored)
            cfg = cls(**{k: v for k, v in data.items() if k in known})
        elif path:
            raise ConfigError(f"Config file not found: {cfg_path}")
        else:
            cfg = cls()
        return cfg.apply_env(environ).validate()
