"""Unified path constants for distro-actions.

All local data is stored under the .distro-actions directory:
- .distro-actions/custom-actions.json    # Action definitions
- .distro-actions/startup-configs.json   # Per-distribution startup sequences
"""

from pathlib import Path
from typing import Optional, Union

BASE_DIR = Path(".distro-actions")

ACTIONS_FILE_NAME = "custom-actions.json"
STARTUP_FILE_NAME = "startup-configs.json"


def get_data_dir(override: Optional[Union[str, Path]] = None) -> Path:
    """Return the data directory, creating it on first use."""
    data_dir = Path(override) if override else BASE_DIR
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


def get_actions_file(data_dir: Optional[Union[str, Path]] = None) -> Path:
    return get_data_dir(data_dir) / ACTIONS_FILE_NAME


def get_startup_file(data_dir: Optional[Union[str, Path]] = None) -> Path:
    return get_data_dir(data_dir) / STARTUP_FILE_NAME
