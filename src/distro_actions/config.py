"""Configuration loading utilities for distro-actions."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()

_DEFAULT_CONFIG_PATH = Path("config/default_config.json")

DISPATCHER_MODES = ("http", "file")


@dataclass
class DispatcherConfig:
    """Where action definitions live and how commands reach a distribution."""

    mode: str = "file"                       # "http" | "file"
    endpoint: Optional[str] = None           # e.g. "http://127.0.0.1:8765"
    token: Optional[str] = None
    proxy: Optional[str] = None
    request_timeout: int = 130               # longer than the slowest sudo command
    data_dir: Optional[str] = None           # file mode only, defaults to .distro-actions


@dataclass
class ExecutionConfig:
    """Settings for interactive and startup execution."""

    default_step_timeout: int = 60
    prompt_for_sudo: bool = True


@dataclass
class LoggingConfig:
    level: str = "INFO"


@dataclass
class AppConfig:
    """Top-level configuration."""

    dispatcher: DispatcherConfig = field(default_factory=DispatcherConfig)
    execution: ExecutionConfig = field(default_factory=ExecutionConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "AppConfig":
        dispatcher_payload = _strip_comments(payload.get("dispatcher", {}) or {})
        execution_payload = _strip_comments(payload.get("execution", {}) or {})
        logging_payload = _strip_comments(payload.get("logging", {}) or {})

        config = cls(
            dispatcher=DispatcherConfig(
                **{**DispatcherConfig().__dict__, **dispatcher_payload}
            ),
            execution=ExecutionConfig(
                **{**ExecutionConfig().__dict__, **execution_payload}
            ),
            logging=LoggingConfig(**{**LoggingConfig().__dict__, **logging_payload}),
        )
        config.validate()
        return config

    def validate(self) -> None:
        if self.dispatcher.mode not in DISPATCHER_MODES:
            raise ValueError(
                f"Unsupported dispatcher mode: {self.dispatcher.mode}. "
                f"Supported modes: {', '.join(DISPATCHER_MODES)}"
            )
        if self.dispatcher.mode == "http" and not self.dispatcher.endpoint:
            raise ValueError("HTTP dispatcher selected but no endpoint provided")
        if self.execution.default_step_timeout <= 0:
            raise ValueError("execution.default_step_timeout must be positive")


def _strip_comments(section: Dict[str, Any]) -> Dict[str, Any]:
    # Keys starting with "_" are annotations in the JSON file
    return {k: v for k, v in section.items() if not k.startswith("_")}


def load_config(path: Optional[str] = None) -> AppConfig:
    """Load configuration from `path` or the default location.

    Environment variables (higher priority than config file):
    - DISTRO_ACTIONS_DISPATCHER_MODE: "http" or "file"
    - DISTRO_ACTIONS_ENDPOINT: Base URL of the command dispatcher service
    - DISTRO_ACTIONS_TOKEN: Bearer token for the dispatcher service
    - DISTRO_ACTIONS_PROXY: HTTP proxy for dispatcher requests
    - DISTRO_ACTIONS_DATA_DIR: Directory for the local JSON store
    - DISTRO_ACTIONS_LOG_LEVEL: Root log level
    """

    if path:
        candidate = Path(path)
        if not candidate.is_file():
            raise FileNotFoundError(f"Could not find configuration file: {candidate}")
    else:
        candidate = _DEFAULT_CONFIG_PATH

    data: Dict[str, Any] = {}
    if candidate.is_file():
        with candidate.open("r", encoding="utf-8") as handle:
            data = json.load(handle)

    # Environment overrides are applied before validation so that an
    # endpoint supplied only through the environment is accepted.
    overrides = {
        ("dispatcher", "mode"): os.getenv("DISTRO_ACTIONS_DISPATCHER_MODE"),
        ("dispatcher", "endpoint"): os.getenv("DISTRO_ACTIONS_ENDPOINT"),
        ("dispatcher", "token"): os.getenv("DISTRO_ACTIONS_TOKEN"),
        ("dispatcher", "proxy"): os.getenv("DISTRO_ACTIONS_PROXY"),
        ("dispatcher", "data_dir"): os.getenv("DISTRO_ACTIONS_DATA_DIR"),
        ("logging", "level"): os.getenv("DISTRO_ACTIONS_LOG_LEVEL"),
    }
    for (section, key), value in overrides.items():
        if value:
            data.setdefault(section, {})[key] = value

    return AppConfig.from_dict(data)
