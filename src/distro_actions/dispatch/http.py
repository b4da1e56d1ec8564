"""Dispatcher that forwards every command to a backend service over HTTP."""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, List, Optional

import requests

from ..actions.document import ImportMode
from ..actions.errors import DispatchError, PersistenceError
from ..actions.models import (
    Action,
    ActionResult,
    StartupConfig,
    actions_from_list,
    startup_configs_from_list,
)
from .base import CommandDispatcher

logger = logging.getLogger(__name__)


class HttpDispatcher(CommandDispatcher):
    """Calls `POST {endpoint}/invoke/{command}` with camelCase JSON arguments.

    The backend answers with the command's return value as JSON, or with
    a non-2xx status and `{"error": "..."}`.
    """

    def __init__(
        self,
        endpoint: str,
        *,
        token: Optional[str] = None,
        proxy: Optional[str] = None,
        timeout: int = 130,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not endpoint:
            raise ValueError("Dispatcher endpoint is required")
        self.base_url = endpoint.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

        proxy = proxy or os.environ.get("HTTPS_PROXY") or os.environ.get("HTTP_PROXY")
        if proxy:
            self.session.proxies = {"http": proxy, "https": proxy}
            logger.info("Dispatcher using proxy: %s", proxy)
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    @classmethod
    def from_config(cls, config: Any) -> "HttpDispatcher":
        return cls(
            config.endpoint,
            token=config.token,
            proxy=config.proxy,
            timeout=config.request_timeout,
        )

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _post(self, method: str, arguments: dict) -> Any:
        url = f"{self.base_url}/invoke/{method}"
        try:
            response = self.session.post(url, json=arguments, timeout=self.timeout)
        except requests.exceptions.RequestException as exc:
            raise DispatchError(f"{method}: {exc}") from exc

        if response.status_code >= 400:
            raise DispatchError(f"{method}: {_error_message(response)}")
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise DispatchError(f"{method}: invalid JSON in response") from exc

    async def _invoke(self, method: str, /, **arguments: Any) -> Any:
        # `command` is itself a payload key, so the method name is positional-only
        logger.debug("Invoking %s", method)
        # requests blocks; keep the event loop free
        return await asyncio.to_thread(self._post, method, arguments)

    async def _invoke_store(self, method: str, /, **arguments: Any) -> Any:
        """Invoke a CRUD command; failures surface as PersistenceError."""
        try:
            return await self._invoke(method, **arguments)
        except DispatchError as exc:
            raise PersistenceError(str(exc)) from exc

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def list_actions(self) -> List[Action]:
        return _parse(actions_from_list, await self._invoke_store("get_custom_actions"))

    async def add_action(self, action: Action) -> List[Action]:
        return _parse(actions_from_list, await self._invoke_store("add_custom_action", action=action.to_dict()))

    async def update_action(self, action: Action) -> List[Action]:
        return _parse(actions_from_list, await self._invoke_store("update_custom_action", action=action.to_dict()))

    async def delete_action(self, action_id: str) -> List[Action]:
        return _parse(actions_from_list, await self._invoke_store("delete_custom_action", id=action_id))

    async def export_actions(self) -> str:
        document = await self._invoke_store("export_custom_actions")
        if not isinstance(document, str):
            raise PersistenceError("export_custom_actions: expected a JSON document string")
        return document

    async def import_actions(self, document: str, mode: ImportMode) -> List[Action]:
        merge = ImportMode.parse(mode) is ImportMode.MERGE
        return _parse(
            actions_from_list,
            await self._invoke_store("import_custom_actions", json=document, merge=merge),
        )

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
        payload = await self._invoke(
            "execute_custom_action",
            actionId=action_id,
            distro=distro,
            id=invocation_id,
            password=credential,
        )
        return _result(payload)

    async def execute_command(
        self,
        distro: str,
        command: str,
        invocation_id: Optional[str] = None,
        credential: Optional[str] = None,
    ) -> ActionResult:
        payload = await self._invoke(
            "execute_command",
            distro=distro,
            command=command,
            id=invocation_id,
            password=credential,
        )
        return _result(payload)

    async def run_action_in_terminal(
        self,
        action_id: str,
        distro: str,
        invocation_id: Optional[str] = None,
    ) -> None:
        await self._invoke("run_action_in_terminal", actionId=action_id, distro=distro, id=invocation_id)

    async def list_running_distros(self) -> List[str]:
        payload = await self._invoke("list_running_distros")
        if not isinstance(payload, list):
            raise DispatchError("list_running_distros: expected a list of names")
        return [str(name) for name in payload]

    # ------------------------------------------------------------------
    # Startup configs
    # ------------------------------------------------------------------

    async def list_startup_configs(self) -> List[StartupConfig]:
        return _parse(startup_configs_from_list, await self._invoke_store("get_startup_configs"))

    async def get_startup_config(self, distro: str) -> Optional[StartupConfig]:
        payload = await self._invoke_store("get_startup_config", distroName=distro)
        if payload is None:
            return None
        return _parse(StartupConfig.from_dict, payload)

    async def save_startup_config(self, config: StartupConfig) -> List[StartupConfig]:
        return _parse(
            startup_configs_from_list,
            await self._invoke_store("save_startup_config", config=config.to_dict()),
        )

    async def delete_startup_config(self, distro: str) -> List[StartupConfig]:
        return _parse(
            startup_configs_from_list,
            await self._invoke_store("delete_startup_config", distroName=distro),
        )

    async def execute_startup_actions(
        self,
        distro: str,
        invocation_id: Optional[str] = None,
    ) -> List[ActionResult]:
        payload = await self._invoke("execute_startup_actions", distroName=distro, id=invocation_id)
        if not isinstance(payload, list):
            raise DispatchError("execute_startup_actions: expected a list of results")
        return [_result(item) for item in payload]


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:500] or f"HTTP {response.status_code}"
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return f"HTTP {response.status_code}"


def _parse(parser, payload: Any) -> Any:
    try:
        return parser(payload)
    except ValueError as exc:
        raise PersistenceError(f"Malformed response: {exc}") from exc


def _result(payload: Any) -> ActionResult:
    try:
        return ActionResult.from_dict(payload)
    except ValueError as exc:
        raise DispatchError(f"Malformed result: {exc}") from exc
