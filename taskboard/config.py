# taskboard - configuration
# Defaults, overridden by config.yaml, overridden by TASKBOARD_* environment variables.

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

CONFIG_PATH = Path("~/.config/taskboard/config.yaml")

ENV_PREFIX = "TASKBOARD_"


class ConfigError(Exception):
    """Raised when configuration is invalid."""
    pass


@dataclass
class Config:
    """Runtime configuration for the board client and server."""

    # Client
    api_base: str = "http://localhost:4001/api"
    api_key: str = ""
    user_id: str = ""            # acting user, sent as X-User-Id
    timeout: float = 10.0        # seconds per request

    # Server
    db_path: str = "~/.local/share/taskboard/board.db"
    host: str = "127.0.0.1"
    port: int = 4001

    log_level: str = "INFO"

    def resolve_paths(self):
        """Expand ~ in filesystem paths."""
        self.db_path = str(Path(self.db_path).expanduser())

    def apply_env(self, environ=None):
        """Override fields from TASKBOARD_<FIELD> environment variables."""
        environ = os.environ if environ is None else environ
        for f in fields(self):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            setattr(self, f.name, _coerce(f.name, raw, type(getattr(self, f.name))))

    @classmethod
    def load(cls, path: Optional[str] = None, environ=None) -> "Config":
        """Load config from YAML, then environment. A missing file means defaults."""
        cfg_path = Path(path).expanduser() if path else CONFIG_PATH.expanduser()
        data = {}
        if cfg_path.exists():
            try:
                with open(cfg_path, "r") as f:
                    data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {cfg_path}: {e}") from e
            if not isinstance(data, dict):
                raise ConfigError(f"{cfg_path} must contain a mapping")
        known = {f.name: f for f in fields(cls)}
        cfg = cls()
        for key, value in data.items():
            if key in known and value is not None:
                setattr(cfg, key, _coerce(key, value, type(getattr(cfg, key))))
        cfg.apply_env(environ)
        cfg.resolve_paths()
        return cfg


def _coerce(name: str, value, kind):
    try:
        return kind(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid value for {name}: {value!r}") from None
