"""Data models for actions and startup sequences.

All entities round-trip through camelCase JSON dictionaries, the shape
used by the dispatcher boundary and by exported documents.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from .errors import ErrorKind


class ActionIcon(str, Enum):
    """Icons an action can be displayed with."""
    TERMINAL = "terminal"
    FOLDER = "folder"
    GEAR = "gear"
    ROCKET = "rocket"
    WRENCH = "wrench"
    BOX = "box"
    LIGHTNING = "lightning"
    REFRESH = "refresh"
    DATABASE = "database"
    CLOUD = "cloud"
    LOCK = "lock"
    CODE = "code"


ICON_EMOJI = {
    ActionIcon.TERMINAL: "💻",
    ActionIcon.FOLDER: "📁",
    ActionIcon.GEAR: "⚙️",
    ActionIcon.ROCKET: "🚀",
    ActionIcon.WRENCH: "🔧",
    ActionIcon.BOX: "📦",
    ActionIcon.LIGHTNING: "⚡",
    ActionIcon.REFRESH: "🔄",
    ActionIcon.DATABASE: "🗄️",
    ActionIcon.CLOUD: "☁️",
    ActionIcon.LOCK: "🔒",
    ActionIcon.CODE: "💾",
}


def icon_emoji(icon: str) -> str:
    """Emoji for an icon id; unknown ids render as a bullet."""
    try:
        return ICON_EMOJI[ActionIcon(icon)]
    except ValueError:
        return "•"


# ---------------------------------------------------------------------------
# Distribution scope
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AllScope:
    """Applies to every distribution."""

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "all"}


@dataclass(frozen=True)
class SpecificScope:
    """Applies to an explicit list of distribution names."""

    distros: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "distros", tuple(self.distros))

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "specific", "distros": list(self.distros)}


@dataclass(frozen=True)
class PatternScope:
    """Applies to distributions matching a regular expression.

    The pattern is user-entered text and is only compiled at match time,
    so an invalid pattern is a valid stored value.
    """

    pattern: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "pattern", "pattern": self.pattern}


DistroScope = Union[AllScope, SpecificScope, PatternScope]


def scope_from_dict(data: Any) -> DistroScope:
    if not isinstance(data, dict):
        raise ValueError(f"scope must be an object, got {type(data).__name__}")
    kind = data.get("type")
    if kind == "all":
        return AllScope()
    if kind == "specific":
        distros = data.get("distros", [])
        if not isinstance(distros, list) or not all(isinstance(d, str) for d in distros):
            raise ValueError("specific scope needs a list of distribution names")
        return SpecificScope(tuple(distros))
    if kind == "pattern":
        pattern = data.get("pattern")
        if not isinstance(pattern, str):
            raise ValueError("pattern scope needs a string pattern")
        return PatternScope(pattern)
    raise ValueError(f"Unknown scope type: {kind!r}")


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------

def _require(data: Dict[str, Any], key: str, kind: Union[type, Tuple[type, ...]]) -> Any:
    if key not in data:
        raise ValueError(f"missing field '{key}'")
    value = data[key]
    # bool is a subclass of int; an int field must not accept True/False
    if kind is int and isinstance(value, bool):
        raise ValueError(f"field '{key}' must be int")
    if not isinstance(value, kind):
        name = kind.__name__ if isinstance(kind, type) else "/".join(k.__name__ for k in kind)
        raise ValueError(f"field '{key}' must be {name}")
    return value


def _optional_bool(data: Dict[str, Any], key: str, default: bool = False) -> bool:
    if key not in data or data[key] is None:
        return default
    return _require(data, key, bool)


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------

@dataclass
class Action:
    """A reusable command definition."""
    id: str
    name: str
    command: str
    icon: str = ActionIcon.TERMINAL.value
    scope: DistroScope = field(default_factory=AllScope)
    confirm_before_run: bool = False
    show_output: bool = True
    requires_sudo: bool = False
    requires_stopped: bool = False
    run_in_terminal: bool = False
    order: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "icon": self.icon,
            "command": self.command,
            "scope": self.scope.to_dict(),
            "confirmBeforeRun": self.confirm_before_run,
            "showOutput": self.show_output,
            "requiresSudo": self.requires_sudo,
            "requiresStopped": self.requires_stopped,
            "runInTerminal": self.run_in_terminal,
            "order": self.order,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Action":
        """Build an Action from its JSON form.

        Raises:
            ValueError: if a required field is missing or has the wrong type.
        """
        if not isinstance(data, dict):
            raise ValueError(f"action must be an object, got {type(data).__name__}")
        action_id = _require(data, "id", str)
        if not action_id:
            raise ValueError("field 'id' must not be empty")
        return cls(
            id=action_id,
            name=_require(data, "name", str),
            icon=_require(data, "icon", str),
            command=_require(data, "command", str),
            scope=scope_from_dict(_require(data, "scope", dict)),
            confirm_before_run=_require(data, "confirmBeforeRun", bool),
            show_output=_require(data, "showOutput", bool),
            # Added after the first release; older files omit them
            requires_sudo=_optional_bool(data, "requiresSudo"),
            requires_stopped=_optional_bool(data, "requiresStopped"),
            run_in_terminal=_optional_bool(data, "runInTerminal"),
            order=_require(data, "order", int),
        )


@dataclass
class ActionResult:
    """Outcome of one execution request."""
    success: bool
    output: str = ""
    error: Optional[str] = None
    # Local classification only, never serialised
    error_kind: Optional[ErrorKind] = field(default=None, compare=False)

    @classmethod
    def failed(cls, error: str, kind: Optional[ErrorKind] = None, output: str = "") -> "ActionResult":
        return cls(success=False, output=output, error=error, error_kind=kind)

    @classmethod
    def timed_out(cls) -> "ActionResult":
        return cls(success=False, output="", error="timeout", error_kind=ErrorKind.TIMEOUT)

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.success, "output": self.output, "error": self.error}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ActionResult":
        if not isinstance(data, dict):
            raise ValueError(f"result must be an object, got {type(data).__name__}")
        error = data.get("error")
        success = bool(data.get("success", False))
        return cls(
            success=success,
            output=str(data.get("output") or ""),
            error=str(error) if error else None,
            error_kind=None if success else (ErrorKind.DISPATCH_FAILURE if error else None),
        )


# ---------------------------------------------------------------------------
# Startup sequences
# ---------------------------------------------------------------------------

DEFAULT_STEP_TIMEOUT = 60


@dataclass
class StartupAction:
    """One step of a distribution's startup sequence."""
    id: str
    action_id: str = ""                 # empty means the inline command is used
    command: Optional[str] = None
    continue_on_error: bool = True
    timeout: int = DEFAULT_STEP_TIMEOUT  # seconds

    @property
    def is_inline(self) -> bool:
        return not self.action_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "actionId": self.action_id,
            "command": self.command,
            "continueOnError": self.continue_on_error,
            "timeout": self.timeout,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StartupAction":
        if not isinstance(data, dict):
            raise ValueError(f"startup action must be an object, got {type(data).__name__}")
        command = data.get("command")
        if command is not None and not isinstance(command, str):
            raise ValueError("field 'command' must be str")
        timeout = _require(data, "timeout", int)
        if timeout <= 0:
            raise ValueError("field 'timeout' must be a positive number of seconds")
        return cls(
            id=_require(data, "id", str),
            action_id=data.get("actionId") or "",
            command=command,
            continue_on_error=_require(data, "continueOnError", bool),
            timeout=timeout,
        )


@dataclass
class StartupConfig:
    """Startup sequence and enablement flags for one distribution."""
    distro_name: str
    actions: List[StartupAction] = field(default_factory=list)
    run_on_app_start: bool = False
    enabled: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "distroName": self.distro_name,
            "actions": [a.to_dict() for a in self.actions],
            "runOnAppStart": self.run_on_app_start,
            "enabled": self.enabled,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StartupConfig":
        if not isinstance(data, dict):
            raise ValueError(f"startup config must be an object, got {type(data).__name__}")
        return cls(
            distro_name=_require(data, "distroName", str),
            actions=[StartupAction.from_dict(a) for a in _require(data, "actions", list)],
            run_on_app_start=_require(data, "runOnAppStart", bool),
            enabled=_require(data, "enabled", bool),
        )


def actions_from_list(items: Any) -> List[Action]:
    if not isinstance(items, list):
        raise ValueError(f"expected a list of actions, got {type(items).__name__}")
    return [Action.from_dict(item) for item in items]


def startup_configs_from_list(items: Any) -> List[StartupConfig]:
    if not isinstance(items, list):
        raise ValueError(f"expected a list of startup configs, got {type(items).__name__}")
    return [StartupConfig.from_dict(item) for item in items]
