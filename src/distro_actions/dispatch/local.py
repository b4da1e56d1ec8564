"""Dispatcher backed by JSON files in the local data directory."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Union

from ..actions.document import ImportMode, dump_document, merge_actions, parse_document
from ..actions.errors import (
    ActionNotApplicableError,
    ActionNotFoundError,
    DispatchError,
    PersistenceError,
)
from ..actions.models import (
    Action,
    ActionResult,
    StartupConfig,
    actions_from_list,
    startup_configs_from_list,
)
from ..actions.scope import action_applies
from ..actions.variables import InterpolationContext, interpolate, used_placeholders
from ..paths import get_actions_file, get_startup_file
from .base import CommandDispatcher
from .probe import DistroProbe

logger = logging.getLogger(__name__)

RESOURCES_DIR = Path(__file__).resolve().parent.parent / "resources"
DEFAULT_ACTIONS_FILE = RESOURCES_DIR / "default-custom-actions.json"
DEFAULT_STARTUP_FILE = RESOURCES_DIR / "default-startup-configs.json"

# (distro, command, credential) -> result
CommandRunner = Callable[[str, str, Optional[str]], Awaitable[ActionResult]]
# (distro, command) -> None, opens an interactive terminal
TerminalLauncher = Callable[[str, str], Awaitable[None]]


class DryRunRunner:
    """Records commands instead of running them.

    Every command succeeds with empty output, so distribution facts read
    through it fall back to their defaults.
    """

    def __init__(self) -> None:
        self.commands: List[tuple] = []

    async def __call__(self, distro: str, command: str, credential: Optional[str] = None) -> ActionResult:
        # Only whether a credential was supplied is kept
        self.commands.append((distro, command, credential is not None))
        logger.info("[dry run] %s: %s", distro, command)
        return ActionResult(success=True, output="")


class FileDispatcher(CommandDispatcher):
    """Stores actions and startup configs as JSON under `data_dir`.

    Missing or unreadable files fall back to the built-in defaults, which
    are written back on the next save. Commands are handed to `runner`;
    without one every execution fails with a DispatchError.
    """

    def __init__(
        self,
        data_dir: Optional[Union[str, Path]] = None,
        *,
        runner: Optional[CommandRunner] = None,
        terminal: Optional[TerminalLauncher] = None,
        running_distros: Optional[Iterable[str]] = None,
    ) -> None:
        self.actions_file = get_actions_file(data_dir)
        self.startup_file = get_startup_file(data_dir)
        self.runner = runner
        self.terminal = terminal
        self.running = set(running_distros or ())
        self.probe = DistroProbe(self)

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    def load_actions(self) -> List[Action]:
        data = _read_json(self.actions_file, DEFAULT_ACTIONS_FILE)
        try:
            return actions_from_list(data)
        except ValueError as exc:
            logger.warning("Invalid %s: %s. Using defaults.", self.actions_file.name, exc)
            return actions_from_list(_read_json(DEFAULT_ACTIONS_FILE, None))

    def save_actions(self, actions: List[Action]) -> None:
        _write_json(self.actions_file, [a.to_dict() for a in actions])

    def load_startup_configs(self) -> List[StartupConfig]:
        data = _read_json(self.startup_file, DEFAULT_STARTUP_FILE)
        try:
            return startup_configs_from_list(data)
        except ValueError as exc:
            logger.warning("Invalid %s: %s. Using defaults.", self.startup_file.name, exc)
            return startup_configs_from_list(_read_json(DEFAULT_STARTUP_FILE, None))

    def save_startup_configs(self, configs: List[StartupConfig]) -> None:
        _write_json(self.startup_file, [c.to_dict() for c in configs])

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def list_actions(self) -> List[Action]:
        return self.load_actions()

    async def add_action(self, action: Action) -> List[Action]:
        actions = self.load_actions()
        if any(a.id == action.id for a in actions):
            raise PersistenceError(f"Action id already exists: {action.id}")
        actions.append(action)
        self.save_actions(actions)
        return actions

    async def update_action(self, action: Action) -> List[Action]:
        actions = self.load_actions()
        for index, existing in enumerate(actions):
            if existing.id == action.id:
                actions[index] = action
                break
        else:
            raise ActionNotFoundError(action.id)
        self.save_actions(actions)
        return actions

    async def delete_action(self, action_id: str) -> List[Action]:
        actions = self.load_actions()
        remaining = [a for a in actions if a.id != action_id]
        if len(remaining) == len(actions):
            raise ActionNotFoundError(action_id)
        self.save_actions(remaining)
        return remaining

    async def export_actions(self) -> str:
        return dump_document(self.load_actions())

    async def import_actions(self, document: str, mode: ImportMode) -> List[Action]:
        imported = parse_document(document)
        actions = merge_actions(self.load_actions(), imported, ImportMode.parse(mode))
        self.save_actions(actions)
        logger.info("Imported %d action(s), %d total", len(imported), len(actions))
        return actions

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute_action(
        self,
        action_id: str,
        distro: str,
        invocation_id: Optional[str] = None,
        credential: Optional[str] = None,
    ) -> ActionResult:
        action = self._find(action_id)
        if not action_applies(action, distro):
            raise ActionNotApplicableError(action.name, distro)
        if action.requires_sudo and not credential:
            raise DispatchError("This action requires sudo. Please provide your password.")
        command = await self._expand(action.command, distro)
        return await self.execute_command(
            distro,
            command,
            invocation_id,
            credential if action.requires_sudo else None,
        )

    async def execute_command(
        self,
        distro: str,
        command: str,
        invocation_id: Optional[str] = None,
        credential: Optional[str] = None,
    ) -> ActionResult:
        if self.runner is None:
            raise DispatchError("No command runner configured")
        return await self.runner(distro, command, credential)

    async def run_action_in_terminal(
        self,
        action_id: str,
        distro: str,
        invocation_id: Optional[str] = None,
    ) -> None:
        action = self._find(action_id)
        if self.terminal is None:
            raise DispatchError("No terminal launcher configured")
        await self.terminal(distro, await self._expand(action.command, distro))

    async def list_running_distros(self) -> List[str]:
        return sorted(self.running)

    # ------------------------------------------------------------------
    # Startup configs
    # ------------------------------------------------------------------

    async def list_startup_configs(self) -> List[StartupConfig]:
        return self.load_startup_configs()

    async def get_startup_config(self, distro: str) -> Optional[StartupConfig]:
        for config in self.load_startup_configs():
            if config.distro_name == distro:
                return config
        return None

    async def save_startup_config(self, config: StartupConfig) -> List[StartupConfig]:
        configs = self.load_startup_configs()
        for index, existing in enumerate(configs):
            if existing.distro_name == config.distro_name:
                configs[index] = config
                break
        else:
            configs.append(config)
        self.save_startup_configs(configs)
        return configs

    async def delete_startup_config(self, distro: str) -> List[StartupConfig]:
        configs = [c for c in self.load_startup_configs() if c.distro_name != distro]
        self.save_startup_configs(configs)
        return configs

    async def execute_startup_actions(
        self,
        distro: str,
        invocation_id: Optional[str] = None,
    ) -> List[ActionResult]:
        # actions.registry imports this package
        from ..actions.coordinator import ExecutionCoordinator
        from ..actions.registry import ActionRegistry
        from ..actions.sequencer import StartupSequencer

        registry = ActionRegistry(self)
        await registry.refresh()
        coordinator = ExecutionCoordinator(self, registry, self.probe)
        return await StartupSequencer(registry, coordinator).run_sequence(distro)

    # ------------------------------------------------------------------

    def _find(self, action_id: str) -> Action:
        for action in self.load_actions():
            if action.id == action_id:
                return action
        raise ActionNotFoundError(action_id)

    async def _expand(self, template: str, distro: str) -> str:
        if used_placeholders(template) - {"DISTRO_NAME"}:
            context = await self.probe.describe(distro)
        else:
            context = InterpolationContext(distro_name=distro)
        return interpolate(template, context)


def _read_json(path: Path, fallback: Optional[Path]) -> Any:
    try:
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)
    except FileNotFoundError:
        pass
    except (OSError, ValueError) as exc:
        logger.warning("Failed to read %s: %s. Using defaults.", path.name, exc)
    if fallback is None:
        return []
    return _read_json(fallback, None)


def _write_json(path: Path, payload: Any) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    except OSError as exc:
        raise PersistenceError(f"Failed to write {path.name}: {exc}") from exc
