"""Action definitions, scope matching, execution and startup sequences."""

from .errors import (
    ActionsError,
    ActionNotApplicableError,
    ActionNotFoundError,
    DispatchError,
    DocumentFormatError,
    ErrorKind,
    PersistenceError,
)
from .models import (
    Action,
    ActionIcon,
    ActionResult,
    AllScope,
    DistroScope,
    PatternScope,
    SpecificScope,
    StartupAction,
    StartupConfig,
    icon_emoji,
)
from .scope import action_applies, applicable_actions, matches
from .variables import InterpolationContext, interpolate
from .document import ImportMode, dump_document, merge_actions, parse_document
from .registry import ActionRegistry
from .coordinator import ExecutionCoordinator, ExecutionState
from .sequencer import StartupSequencer, StepStatus

__all__ = [
    "ActionsError",
    "ActionNotApplicableError",
    "ActionNotFoundError",
    "DispatchError",
    "DocumentFormatError",
    "ErrorKind",
    "PersistenceError",
    "Action",
    "ActionIcon",
    "ActionResult",
    "AllScope",
    "DistroScope",
    "PatternScope",
    "SpecificScope",
    "StartupAction",
    "StartupConfig",
    "icon_emoji",
    "action_applies",
    "applicable_actions",
    "matches",
    "InterpolationContext",
    "interpolate",
    "ImportMode",
    "dump_document",
    "merge_actions",
    "parse_document",
    "ActionRegistry",
    "ExecutionCoordinator",
    "ExecutionState",
    "StartupSequencer",
    "StepStatus",
]
