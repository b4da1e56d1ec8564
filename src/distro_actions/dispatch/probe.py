"""Distribution probing through the command dispatcher."""

from __future__ import annotations

import logging
import os
from typing import Dict, Optional

from ..actions.variables import InterpolationContext, windows_home_to_wsl
from .base import CommandDispatcher, DistroInspector

logger = logging.getLogger(__name__)

FALLBACK_HOME = "/home"
FALLBACK_USER = "root"


class DistroProbe(DistroInspector):
    """Collects distribution facts by running simple commands.

    Home directory and user are cached per distribution for the lifetime
    of the probe; call `forget()` after a distribution is reconfigured.
    """

    def __init__(
        self,
        dispatcher: CommandDispatcher,
        *,
        host_home: Optional[str] = None,
    ) -> None:
        self.dispatcher = dispatcher
        self.host_home = host_home if host_home is not None else os.environ.get("USERPROFILE")
        self._cache: Dict[str, InterpolationContext] = {}

    async def is_running(self, distro: str) -> bool:
        running = await self.dispatcher.list_running_distros()
        return distro in running

    async def describe(self, distro: str) -> InterpolationContext:
        cached = self._cache.get(distro)
        if cached is not None:
            return cached
        home = await self._safe_run(distro, "echo $HOME")
        user = await self._safe_run(distro, "whoami")
        context = InterpolationContext(
            distro_name=distro,
            home=home or FALLBACK_HOME,
            user=user or FALLBACK_USER,
            windows_home=windows_home_to_wsl(self.host_home) if self.host_home else None,
        )
        self._cache[distro] = context
        return context

    def forget(self, distro: Optional[str] = None) -> None:
        if distro is None:
            self._cache.clear()
        else:
            self._cache.pop(distro, None)

    async def _safe_run(self, distro: str, command: str) -> str:
        try:
            result = await self.dispatcher.execute_command(distro, command)
        except Exception as exc:
            logger.debug("Probe %r could not run on %s: %s", command, distro, exc)
            return ""
        if not result.success:
            logger.debug("Probe %r failed on %s: %s", command, distro, result.error)
            return ""
        return result.output.strip()
