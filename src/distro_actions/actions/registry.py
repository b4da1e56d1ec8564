"""Client-side store of action definitions and startup configurations.

The dispatcher is the source of truth. Every successful call replaces the
local collection with the list the dispatcher returns; a failed call
leaves the collection as it was and records the error instead of raising.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, List, Optional, Union

from ..dispatch.base import CommandDispatcher
from .document import ImportMode, parse_document
from .errors import PersistenceError
from .models import Action, StartupConfig

logger = logging.getLogger(__name__)


class ActionRegistry:
    """CRUD front for actions and startup configs.

    `is_loading` is True while any call is in flight so readers can tell
    stale data from data that is known to be fresh.
    """

    def __init__(self, dispatcher: CommandDispatcher) -> None:
        self.dispatcher = dispatcher
        self.actions: List[Action] = []
        self.startup_configs: List[StartupConfig] = []
        self.error: Optional[str] = None
        self.last_error: Optional[PersistenceError] = None
        self._pending = 0

    @property
    def is_loading(self) -> bool:
        return self._pending > 0

    def find(self, action_id: str) -> Optional[Action]:
        for action in self.actions:
            if action.id == action_id:
                return action
        return None

    def clear_error(self) -> None:
        self.error = None
        self.last_error = None

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def refresh(self) -> List[Action]:
        async with self._call("Failed to fetch actions"):
            self.actions = await self.dispatcher.list_actions()
        return self.actions

    async def add(self, action: Action) -> List[Action]:
        if self.find(action.id) is not None:
            self._record(PersistenceError(f"Action id already exists: {action.id}"), "Failed to add action")
            return self.actions
        async with self._call("Failed to add action"):
            logger.info("Adding action: %s", action.name)
            self.actions = await self.dispatcher.add_action(action)
        return self.actions

    async def update(self, action: Action) -> List[Action]:
        async with self._call("Failed to update action"):
            logger.info("Updating action: %s", action.name)
            self.actions = await self.dispatcher.update_action(action)
        return self.actions

    async def delete(self, action_id: str) -> List[Action]:
        async with self._call("Failed to delete action"):
            logger.info("Deleting action: %s", action_id)
            self.actions = await self.dispatcher.delete_action(action_id)
        return self.actions

    async def export_all(self) -> Optional[str]:
        """Return the export document, or None if the export failed."""
        document = None
        async with self._call("Failed to export actions"):
            document = await self.dispatcher.export_actions()
        return document

    async def export_to_file(self, path: Union[str, Path]) -> bool:
        document = await self.export_all()
        if document is None:
            return False
        try:
            Path(path).write_text(document, encoding="utf-8")
        except OSError as exc:
            self._record(PersistenceError(f"Failed to write file: {exc}"), "Failed to export actions to file")
            return False
        logger.info("Exported %d bytes to %s", len(document), path)
        return True

    async def import_all(self, document: str, mode: Union[ImportMode, str] = ImportMode.MERGE) -> List[Action]:
        """Import an export document.

        The document is validated locally first; a malformed document is
        rejected as a whole and nothing is sent to the dispatcher.
        """
        async with self._call("Failed to import actions"):
            mode = ImportMode.parse(mode)
            parse_document(document)
            logger.info("Importing actions (mode=%s)", mode.value)
            self.actions = await self.dispatcher.import_actions(document, mode)
        return self.actions

    async def import_from_file(self, path: Union[str, Path], mode: Union[ImportMode, str] = ImportMode.MERGE) -> List[Action]:
        try:
            document = Path(path).read_text(encoding="utf-8")
        except OSError as exc:
            self._record(PersistenceError(f"Failed to read file: {exc}"), "Failed to import actions from file")
            return self.actions
        return await self.import_all(document, mode)

    # ------------------------------------------------------------------
    # Startup configs
    # ------------------------------------------------------------------

    async def refresh_startup_configs(self) -> List[StartupConfig]:
        async with self._call("Failed to fetch startup configs"):
            self.startup_configs = await self.dispatcher.list_startup_configs()
        return self.startup_configs

    async def get_startup_config(self, distro: str) -> Optional[StartupConfig]:
        """Fetch one config from the dispatcher.

        Raises:
            PersistenceError: if the lookup failed. Unlike the CRUD calls this
            raises, because "no config" and "could not load" mean different
            things to the sequencer.
        """
        self._pending += 1
        try:
            return await self.dispatcher.get_startup_config(distro)
        except PersistenceError:
            raise
        except Exception as exc:
            raise PersistenceError(f"Failed to get startup config: {exc}") from exc
        finally:
            self._pending -= 1

    async def save_startup_config(self, config: StartupConfig) -> List[StartupConfig]:
        async with self._call("Failed to save startup config"):
            logger.info("Saving startup config for: %s", config.distro_name)
            self.startup_configs = await self.dispatcher.save_startup_config(config)
        return self.startup_configs

    async def delete_startup_config(self, distro: str) -> List[StartupConfig]:
        async with self._call("Failed to delete startup config"):
            logger.info("Deleting startup config for: %s", distro)
            self.startup_configs = await self.dispatcher.delete_startup_config(distro)
        return self.startup_configs

    async def app_start_distros(self) -> List[str]:
        """Distributions whose sequence should run when the app starts."""
        configs = await self.refresh_startup_configs()
        return [c.distro_name for c in configs if c.enabled and c.run_on_app_start]

    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _call(self, failure_message: str) -> AsyncIterator[None]:
        self._pending += 1
        self.clear_error()
        try:
            yield
        except Exception as exc:
            self._record(exc, failure_message)
        finally:
            self._pending -= 1

    def _record(self, exc: Exception, failure_message: str) -> None:
        if isinstance(exc, PersistenceError):
            error = exc
        else:
            error = PersistenceError(f"{failure_message}: {exc}")
            error.__cause__ = exc
        self.error = str(error) or failure_message
        self.last_error = error
        logger.error("%s: %s", failure_message, exc)
