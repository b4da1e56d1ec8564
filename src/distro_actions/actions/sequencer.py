"""Ordered startup sequences with per-step timeouts."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Callable, Dict, List, Optional

from .coordinator import ExecutionCoordinator
from .errors import ErrorKind, PersistenceError
from .models import DEFAULT_STEP_TIMEOUT, ActionResult, StartupAction
from .registry import ActionRegistry

logger = logging.getLogger(__name__)

StepCallback = Callable[[int, StartupAction, ActionResult], None]


class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SETTLED = "settled"


class StartupSequencer:
    """Runs a distribution's startup steps one after another.

    A step settles either with its dispatcher result or, when its timeout
    elapses first, with a `timeout` failure. The sequence stops after a
    failed step unless that step has `continue_on_error` set. Skipped
    steps (no command to run) add no result.
    """

    def __init__(
        self,
        registry: ActionRegistry,
        coordinator: ExecutionCoordinator,
        on_step: Optional[StepCallback] = None,
        default_timeout: int = DEFAULT_STEP_TIMEOUT,
    ) -> None:
        self.registry = registry
        self.coordinator = coordinator
        self.on_step = on_step
        self.default_timeout = default_timeout
        self.status: Dict[str, StepStatus] = {}

    async def run_sequence(self, distro: str) -> List[ActionResult]:
        try:
            config = await self.registry.get_startup_config(distro)
        except PersistenceError as exc:
            logger.error("Could not load startup config for %s: %s", distro, exc)
            return [ActionResult.failed(str(exc), ErrorKind.PERSISTENCE_FAILURE)]

        if config is None or not config.enabled or not config.actions:
            logger.debug("No startup sequence to run for %s", distro)
            return []

        self.status = {step.id: StepStatus.PENDING for step in config.actions}
        logger.info("Running %d startup step(s) for %s", len(config.actions), distro)

        results: List[ActionResult] = []
        for index, step in enumerate(config.actions):
            command = await self._resolve_command(step)
            if not command:
                self.status[step.id] = StepStatus.SETTLED
                continue

            self.status[step.id] = StepStatus.RUNNING
            result = await self._run_step(step, command, distro)
            self.status[step.id] = StepStatus.SETTLED
            results.append(result)

            if self.on_step is not None:
                try:
                    self.on_step(index, step, result)
                except Exception:
                    logger.exception("Step callback failed for startup step %s", step.id)

            if not result.success and not step.continue_on_error:
                logger.warning("Startup step %s failed on %s, stopping sequence", step.id, distro)
                break

        return results

    async def run_app_start(self) -> Dict[str, List[ActionResult]]:
        """Run every sequence flagged to run when the application starts."""
        outcomes: Dict[str, List[ActionResult]] = {}
        for distro in await self.registry.app_start_distros():
            outcomes[distro] = await self.run_sequence(distro)
        return outcomes

    async def _resolve_command(self, step: StartupAction) -> Optional[str]:
        if step.is_inline:
            command = (step.command or "").strip()
            if not command:
                logger.warning("Skipping startup step %s: empty command", step.id)
            return command or None

        action = self.registry.find(step.action_id)
        if action is None:
            await self.registry.refresh()
            action = self.registry.find(step.action_id)
        if action is None:
            logger.warning("Skipping startup step %s: action %s no longer exists", step.id, step.action_id)
            return None
        return action.command

    async def _run_step(self, step: StartupAction, command: str, distro: str) -> ActionResult:
        # Steps built in code may carry no timeout of their own
        timeout = step.timeout if step.timeout and step.timeout > 0 else self.default_timeout
        try:
            return await asyncio.wait_for(
                self.coordinator.execute_command(command, distro),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Startup step %s timed out after %ss on %s", step.id, timeout, distro)
            return ActionResult.timed_out()
