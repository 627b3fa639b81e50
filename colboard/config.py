# colboard: configuration
# Override defaults via config.yaml, environment variables or CLI args.

import os
import yaml
from pathlib import Path
from dataclasses import dataclass, fields
from typing import Optional

CONFIG_PATH = Path(__file__).parent.parent / "config.yaml"

BACKENDS = ("sqlite", "http", "memory")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


class ConfigError(Exception):
    """Raised when configuration is invalid or incomplete."""
    pass


_TRUE = ("true", "yes", "on", "1")
_FALSE = ("false", "no", "off", "0")


def _as_bool(name: str, value) -> bool:
    """Accept YAML booleans and their usual spellings as strings."""
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigError(f"{name} must be true or false, got {value!r}")


@dataclass
class Config:
    """Runtime configuration for the board editor and the snapshot server."""

    # Remote snapshot store
    backend: str = "sqlite"                  # sqlite | http | memory
    db_path: str = "~/.local/share/colboard/boards.db"
    server_url: str = "http://localhost:3000"
    api_key_env: str = "COLBOARD_API_KEY"    # env var holding the X-API-Key value
    request_timeout: float = 10.0

    # Session (None = no session, nothing is persisted)
    identity: Optional[str] = None

    # Export / clipboard
    export_dir: str = "."
    clipboard: str = "auto"                  # auto | off | memory | <command>

    # Single-flight saves instead of one save per edit
    coalesce_saves: bool = False

    log_level: str = "INFO"

    def resolve_paths(self):
        """Expand ~ in path settings."""
        self.db_path = str(Path(self.db_path).expanduser())
        self.export_dir = str(Path(self.export_dir).expanduser())

    def apply_env(self):
        """COLBOARD_DB and COLBOARD_USER override the file settings."""
        if os.environ.get("COLBOARD_DB"):
            self.db_path = os.environ["COLBOARD_DB"]
        if os.environ.get("COLBOARD_USER"):
            self.identity = os.environ["COLBOARD_USER"]

    def validate(self):
        if self.backend not in BACKENDS:
            raise ConfigError(
                f"Unknown backend '{self.backend}'. Available: {list(BACKENDS)}"
            )
        self.log_level = str(self.log_level).upper()
        if self.log_level not in LOG_LEVELS:
            raise ConfigError(
                f"Unknown log_level '{self.log_level}'. Available: {list(LOG_LEVELS)}"
            )
        if isinstance(self.request_timeout, bool):
            raise ConfigError(f"request_timeout must be a number, got {self.request_timeout!r}")
        try:
            self.request_timeout = float(self.request_timeout)
        except (TypeError, ValueError):
            raise ConfigError(f"request_timeout must be a number, got {self.request_timeout!r}")
        if self.request_timeout <= 0:
            raise ConfigError("request_timeout must be positive")
        self.coalesce_saves = _as_bool("coalesce_saves", self.coalesce_saves)

    @property
    def api_key(self) -> str:
        return os.environ.get(self.api_key_env, "")

    @classmethod
    def load(cls, path: Optional[str] = None) -> "Config":
        """
        Load config from a YAML file, falling back to defaults.

        Lookup order: explicit path, $COLBOARD_CONFIG, config.yaml next to
        the package. Unknown keys are ignored; a file that cannot be parsed
        raises ConfigError.
        """
        path = path or os.environ.get("COLBOARD_CONFIG")
        cfg_path = Path(path).expanduser() if path else CONFIG_PATH
        known = {f.name for f in fields(cls)}
        if cfg_path.exists():
            try:
                with open(cfg_path, "r") as f:
                    data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Cannot parse {cfg_path}: {e}") from e
            if not isinstance(data, dict):
                raise ConfigError(f"{cfg_path}: expected a mapping at top level")
            cfg = cls(**{k: v for k, v in data.items() if k in known})
        else:
            cfg = cls()
        cfg.apply_env()
        cfg.resolve_paths()
        cfg.validate()
        return cfg
