"""Single-flight execution of actions against a distribution.

"Single-flight" is a convention, not a lock: `is_executing` tells the UI
not to offer another interactive execution, but concurrent calls are still
accepted and run. Each result is stored under its invocation id and also
written to `last_result`, where the last call to finish wins.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..dispatch.base import CommandDispatcher, DistroInspector
from ..interaction import UserInteractionHandler
from .errors import ActionNotApplicableError, ErrorKind
from .models import Action, ActionResult
from .registry import ActionRegistry
from .scope import action_applies
from .variables import InterpolationContext, interpolate, used_placeholders

logger = logging.getLogger(__name__)

SUDO_REQUIRED_MESSAGE = "This action requires sudo. Please provide your password."

# Placeholders that need a round trip to the distribution
_PROBED = {"HOME", "USER", "WINDOWS_HOME"}


@dataclass(frozen=True)
class ExecutionState:
    """Idle, or running the invocation `invocation_id`."""
    invocation_id: Optional[str] = None

    @property
    def is_running(self) -> bool:
        return self.invocation_id is not None

    @classmethod
    def idle(cls) -> "ExecutionState":
        return cls()

    @classmethod
    def running(cls, invocation_id: str) -> "ExecutionState":
        return cls(invocation_id)


def new_invocation_id() -> str:
    return uuid.uuid4().hex


class ExecutionCoordinator:
    """Runs one action at a time (by convention) and never raises."""

    def __init__(
        self,
        dispatcher: CommandDispatcher,
        registry: ActionRegistry,
        inspector: DistroInspector,
        interaction_handler: Optional[UserInteractionHandler] = None,
    ) -> None:
        self.dispatcher = dispatcher
        self.registry = registry
        self.inspector = inspector
        self.interaction_handler = interaction_handler

        self.last_result: Optional[ActionResult] = None
        self.results: Dict[str, ActionResult] = {}
        self._in_flight: List[str] = []

    @property
    def state(self) -> ExecutionState:
        if not self._in_flight:
            return ExecutionState.idle()
        return ExecutionState.running(self._in_flight[-1])

    @property
    def is_executing(self) -> bool:
        return bool(self._in_flight)

    def result_for(self, invocation_id: str) -> Optional[ActionResult]:
        return self.results.get(invocation_id)

    def clear_result(self) -> None:
        self.last_result = None

    def discard_result(self, invocation_id: str) -> Optional[ActionResult]:
        """Drop a stored result once the caller has read it. `last_result` is kept."""
        return self.results.pop(invocation_id, None)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def execute_one(
        self,
        action_id: str,
        distro: str,
        credential: Optional[str] = None,
        *,
        invocation_id: Optional[str] = None,
    ) -> ActionResult:
        """Run a stored action against `distro`.

        Checks, in order: the action exists and applies to `distro`; a
        `requires_stopped` action only runs on a stopped distribution; a
        `requires_sudo` action gets a credential (the one passed in, or one
        asked for). The command is then interpolated and dispatched.
        """
        invocation_id = invocation_id or new_invocation_id()
        self._begin(invocation_id)
        try:
            result = await self._execute_one(action_id, distro, credential, invocation_id)
        except Exception as exc:
            logger.error("Action %s on %s failed: %s", action_id, distro, exc)
            result = ActionResult.failed(str(exc) or exc.__class__.__name__, ErrorKind.DISPATCH_FAILURE)
        finally:
            self._end(invocation_id)
        return self._settle(invocation_id, result)

    async def execute_command(
        self,
        template: str,
        distro: str,
        *,
        invocation_id: Optional[str] = None,
    ) -> ActionResult:
        """Interpolate and dispatch a raw command template, with no action checks."""
        invocation_id = invocation_id or new_invocation_id()
        self._begin(invocation_id)
        try:
            command = await self._interpolate(template, distro)
            result = await self._dispatch(distro, command, invocation_id, None)
        except Exception as exc:
            logger.error("Command on %s failed: %s", distro, exc)
            result = ActionResult.failed(str(exc) or exc.__class__.__name__, ErrorKind.DISPATCH_FAILURE)
        finally:
            self._end(invocation_id)
        return self._settle(invocation_id, result)

    async def run_in_terminal(self, action_id: str, distro: str) -> ActionResult:
        """Open the action in the user's terminal.

        The terminal shows output itself, so success only means the terminal
        was launched. Sudo is left to the user typing into that terminal.
        """
        invocation_id = new_invocation_id()
        try:
            action, refusal = await self._resolve(action_id, distro)
            if refusal is not None:
                return refusal
            refusal = await self._check_stopped(action, distro)
            if refusal is not None:
                return refusal
            await self.dispatcher.run_action_in_terminal(action.id, distro, invocation_id)
            logger.info("Opened '%s' in terminal for %s", action.name, distro)
            return ActionResult(success=True)
        except Exception as exc:
            logger.error("Failed to run action in terminal: %s", exc)
            return ActionResult.failed(str(exc) or exc.__class__.__name__, ErrorKind.DISPATCH_FAILURE)

    # ------------------------------------------------------------------

    async def _execute_one(
        self,
        action_id: str,
        distro: str,
        credential: Optional[str],
        invocation_id: str,
    ) -> ActionResult:
        action, refusal = await self._resolve(action_id, distro)
        if refusal is not None:
            return refusal

        refusal = await self._check_stopped(action, distro)
        if refusal is not None:
            return refusal

        if action.requires_sudo:
            if not credential:
                credential = await self._ask_credential(action, distro)
            if not credential:
                return ActionResult.failed(SUDO_REQUIRED_MESSAGE, ErrorKind.CREDENTIAL_REQUIRED)
        else:
            credential = None

        command = await self._interpolate(action.command, distro)
        logger.info("Executing action '%s' on %s", action.name, distro)
        return await self._dispatch(distro, command, invocation_id, credential)

    async def _resolve(self, action_id: str, distro: str):
        action = self.registry.find(action_id)
        if action is None:
            await self.registry.refresh()
            action = self.registry.find(action_id)
        if action is None:
            return None, ActionResult.failed(f"Action not found: {action_id}", ErrorKind.NOT_FOUND)
        if not action_applies(action, distro):
            error = ActionNotApplicableError(action.name, distro)
            return None, ActionResult.failed(str(error), ErrorKind.NOT_APPLICABLE)
        return action, None

    async def _check_stopped(self, action: Action, distro: str) -> Optional[ActionResult]:
        if action.requires_stopped and await self.inspector.is_running(distro):
            logger.warning("Refusing '%s': %s is running", action.name, distro)
            return ActionResult.failed(
                f"Action '{action.name}' requires {distro} to be stopped",
                ErrorKind.DISTRO_RUNNING_CONFLICT,
            )
        return None

    async def _ask_credential(self, action: Action, distro: str) -> Optional[str]:
        if self.interaction_handler is None:
            return None
        # Prompts block on the terminal
        return await asyncio.to_thread(self.interaction_handler.request_credential, action.name, distro)

    async def _interpolate(self, template: str, distro: str) -> str:
        if used_placeholders(template) & _PROBED:
            context = await self.inspector.describe(distro)
        else:
            context = InterpolationContext(distro_name=distro)
        return interpolate(template, context)

    async def _dispatch(
        self,
        distro: str,
        command: str,
        invocation_id: str,
        credential: Optional[str],
    ) -> ActionResult:
        result = await self.dispatcher.execute_command(
            distro, command, invocation_id=invocation_id, credential=credential
        )
        if not result.success and result.error_kind is None:
            result.error_kind = ErrorKind.DISPATCH_FAILURE
        return result

    def _begin(self, invocation_id: str) -> None:
        self._in_flight.append(invocation_id)

    def _end(self, invocation_id: str) -> None:
        if invocation_id in self._in_flight:
            self._in_flight.remove(invocation_id)

    def _settle(self, invocation_id: str, result: ActionResult) -> ActionResult:
        self.results[invocation_id] = result
        self.last_result = result
        logger.debug("Invocation %s settled: success=%s", invocation_id, result.success)
        return result
