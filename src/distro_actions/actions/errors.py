"""Error taxonomy for the action orchestration core."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Why an ActionResult failed."""
    DISTRO_RUNNING_CONFLICT = "distro_running_conflict"
    TIMEOUT = "timeout"
    DISPATCH_FAILURE = "dispatch_failure"
    CREDENTIAL_REQUIRED = "credential_required"
    NOT_FOUND = "not_found"
    NOT_APPLICABLE = "not_applicable"
    PERSISTENCE_FAILURE = "persistence_failure"


class ActionsError(RuntimeError):
    """Base class for errors raised by this package."""

    pass


class PersistenceError(ActionsError):
    """A CRUD, import or export call against the dispatcher failed."""

    pass


class DocumentFormatError(PersistenceError):
    """An import document does not have the exported shape."""

    pass


class ActionNotFoundError(PersistenceError):
    def __init__(self, action_id: str) -> None:
        super().__init__(f"Action not found: {action_id}")
        self.action_id = action_id


class DispatchError(ActionsError):
    """The external executor returned or raised an error."""

    pass


class ActionNotApplicableError(ActionsError):
    def __init__(self, action_name: str, distro: str) -> None:
        super().__init__(
            f"Action '{action_name}' does not apply to distribution '{distro}'"
        )
        self.action_name = action_name
        self.distro = distro
