"""Boundary between the orchestration core and whatever actually runs commands."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from ..actions.document import ImportMode
    from ..actions.models import Action, ActionResult, StartupConfig
    from ..actions.variables import InterpolationContext


class CommandDispatcher(ABC):
    """Asynchronous command surface the core depends on.

    Every mutating call returns the canonical collection after the change;
    callers replace their local copy with it instead of patching.
    Implementations raise PersistenceError / DispatchError on failure.
    """

    # Actions

    @abstractmethod
    async def list_actions(self) -> List[Action]:
        pass

    @abstractmethod
    async def add_action(self, action: Action) -> List[Action]:
        pass

    @abstractmethod
    async def update_action(self, action: Action) -> List[Action]:
        pass

    @abstractmethod
    async def delete_action(self, action_id: str) -> List[Action]:
        pass

    @abstractmethod
    async def export_actions(self) -> str:
        """Return a versioned export document (JSON text)."""
        pass

    @abstractmethod
    async def import_actions(self, document: str, mode: ImportMode) -> List[Action]:
        pass

    # Execution

    @abstractmethod
    async def execute_action(
        self,
        action_id: str,
        distro: str,
        invocation_id: Optional[str] = None,
        credential: Optional[str] = None,
    ) -> ActionResult:
        pass

    @abstractmethod
    async def execute_command(
        self,
        distro: str,
        command: str,
        invocation_id: Optional[str] = None,
        credential: Optional[str] = None,
    ) -> ActionResult:
        """Run an already interpolated command inside `distro`.

        When `credential` is given the command is run with elevated
        privileges; the dispatcher must not keep the credential.
        """
        pass

    @abstractmethod
    async def run_action_in_terminal(
        self,
        action_id: str,
        distro: str,
        invocation_id: Optional[str] = None,
    ) -> None:
        pass

    @abstractmethod
    async def list_running_distros(self) -> List[str]:
        pass

    # Startup configs

    @abstractmethod
    async def list_startup_configs(self) -> List[StartupConfig]:
        pass

    @abstractmethod
    async def get_startup_config(self, distro: str) -> Optional[StartupConfig]:
        pass

    @abstractmethod
    async def save_startup_config(self, config: StartupConfig) -> List[StartupConfig]:
        pass

    @abstractmethod
    async def delete_startup_config(self, distro: str) -> List[StartupConfig]:
        pass

    @abstractmethod
    async def execute_startup_actions(
        self,
        distro: str,
        invocation_id: Optional[str] = None,
    ) -> List[ActionResult]:
        pass


class DistroInspector(ABC):
    """Answers questions about a distribution's state."""

    @abstractmethod
    async def is_running(self, distro: str) -> bool:
        pass

    @abstractmethod
    async def describe(self, distro: str) -> InterpolationContext:
        """Values for command placeholders in `distro`."""
        pass
