"""Configuration loading for tmux-visualiser.

Settings come from built-in defaults, then config.yaml, then CLI flags.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "~/.config/tmux-visualiser/config.yaml"
CONFIG_ENV_VAR = "TMUX_VISUALISER_CONFIG"

MIN_LINES = 20
MIN_INTERVAL = 0.2
MIN_CMD_TIMEOUT = 0.3


@dataclass
class VisualiserConfig:
    """Runtime settings for discovery, capture and the dashboard."""
    lines: int = 500
    interval: float = 1.0
    cmd_timeout: float = 0.9
    max_workers: int = 4
    all_panes: bool = False
    include_default_socket: bool = True
    explicit_sockets: List[str] = field(default_factory=list)
    include_lisa_sockets: bool = True
    socket_glob: str = ""
    log_file: Optional[str] = None
    log_level: str = "INFO"

    def normalize(self) -> "VisualiserConfig":
        """Clamp values to their floors and drop blank socket entries."""
        self.lines = max(MIN_LINES, int(self.lines))
        self.interval = max(MIN_INTERVAL, float(self.interval))
        self.cmd_timeout = max(MIN_CMD_TIMEOUT, float(self.cmd_timeout))
        self.max_workers = max(1, int(self.max_workers))
        self.explicit_sockets = [s.strip() for s in self.explicit_sockets if s and s.strip()]
        self.socket_glob = (self.socket_glob or "").strip()
        return self

    @classmethod
    def from_dict(cls, data: dict) -> "VisualiserConfig":
        """Build config from a parsed config.yaml mapping."""
        config = cls()
        config.lines = data.get("lines", config.lines)
        config.interval = data.get("interval", config.interval)
        config.cmd_timeout = data.get("cmd_timeout", config.cmd_timeout)
        config.max_workers = data.get("workers", config.max_workers)
        config.all_panes = bool(data.get("all_panes", config.all_panes))
        config.include_default_socket = bool(data.get("default_socket", config.include_default_socket))
        config.explicit_sockets = list(data.get("sockets") or [])
        config.include_lisa_sockets = bool(data.get("lisa_sockets", config.include_lisa_sockets))
        config.socket_glob = data.get("socket_glob") or ""

        logging_config = data.get("logging", {}) or {}
        config.log_file = logging_config.get("file", config.log_file)
        config.log_level = logging_config.get("level", config.log_level)
        return config.normalize()


def resolve_config_path(config_path: Optional[str] = None) -> Path:
    raw = config_path or os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH
    return Path(raw).expanduser()


def load_config(config_path: Optional[str] = None) -> dict:
    """Load configuration from YAML file."""
    path = resolve_config_path(config_path)

    if not path.exists():
        logger.debug(f"Config file not found: {path}, using defaults")
        return {}

    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping, got {type(data).__name__}")
    return data
