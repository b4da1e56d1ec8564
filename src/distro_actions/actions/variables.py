"""Placeholder substitution for action command templates.

Supported placeholders:
    ${DISTRO_NAME}   name of the target distribution
    ${HOME}          home directory inside the distribution
    ${USER}          default user of the distribution
    ${WINDOWS_HOME}  host user's home, as a path inside the distribution
"""

from __future__ import annotations

import re
import shlex
from dataclasses import dataclass
from typing import Dict, Optional

PLACEHOLDERS = {
    "DISTRO_NAME": "Name of the distribution",
    "HOME": "Home directory path in the distribution",
    "USER": "Default user in the distribution",
    "WINDOWS_HOME": "Host user home path (in distribution format)",
}

_TOKEN_RE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")
_DRIVE_RE = re.compile(r"^([A-Za-z]):")


@dataclass
class InterpolationContext:
    """Per-invocation values; None means the value is unknown."""
    distro_name: str
    home: Optional[str] = None
    user: Optional[str] = None
    windows_home: Optional[str] = None

    def values(self) -> Dict[str, Optional[str]]:
        return {
            "DISTRO_NAME": self.distro_name,
            "HOME": self.home,
            "USER": self.user,
            "WINDOWS_HOME": self.windows_home,
        }


def windows_home_to_wsl(path: str) -> str:
    """Convert C:\\Users\\name to /mnt/c/Users/name."""
    converted = path.replace("\\", "/")
    return _DRIVE_RE.sub(lambda m: f"/mnt/{m.group(1).lower()}", converted, count=1)


def interpolate(template: str, context: InterpolationContext, *, quote: bool = True) -> str:
    """Expand known placeholders in a single pass.

    Substituted values are shell-quoted unless `quote` is False. Unknown
    tokens, and known tokens without a value, are left as written.
    """
    values = context.values()

    def _replace(match: "re.Match[str]") -> str:
        value = values.get(match.group(1))
        if value is None:
            return match.group(0)
        return shlex.quote(value) if quote else value

    return _TOKEN_RE.sub(_replace, template)


def used_placeholders(template: str) -> set:
    """Known placeholder names that appear in `template`."""
    return {name for name in _TOKEN_RE.findall(template) if name in PLACEHOLDERS}
