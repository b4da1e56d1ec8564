"""Shared in-memory fakes for the orchestration tests."""

import asyncio
from typing import Dict, List, Optional

import pytest

from distro_actions.actions.document import ImportMode, dump_document, merge_actions, parse_document
from distro_actions.actions.errors import ActionNotFoundError, DispatchError
from distro_actions.actions.models import Action, ActionResult, StartupConfig
from distro_actions.actions.variables import InterpolationContext
from distro_actions.dispatch.base import CommandDispatcher, DistroInspector


class FakeDispatcher(CommandDispatcher):
    """Dispatcher holding everything in memory.

    `responses` maps a command to the ActionResult (or exception) it
    produces; commands in `hang` never settle. A command or store call
    named in `gates` waits until its event is set.
    """

    def __init__(self, actions=None, configs=None, running=None):
        self.actions: List[Action] = list(actions or [])
        self.configs: List[StartupConfig] = list(configs or [])
        self.running = set(running or ())
        self.responses: Dict[str, object] = {}
        self.hang = set()
        self.executed: List[tuple] = []
        self.terminal: List[tuple] = []
        self.calls: List[str] = []
        self.fail_with: Optional[Exception] = None
        self.gates: Dict[str, asyncio.Event] = {}

    async def _wait_gate(self, name):
        gate = self.gates.get(name)
        if gate is not None:
            await gate.wait()

    def _maybe_fail(self, name):
        self.calls.append(name)
        if self.fail_with is not None:
            raise self.fail_with

    async def list_actions(self):
        self._maybe_fail("list_actions")
        await self._wait_gate("list_actions")
        return list(self.actions)

    async def add_action(self, action):
        self._maybe_fail("add_action")
        self.actions.append(action)
        return list(self.actions)

    async def update_action(self, action):
        self._maybe_fail("update_action")
        for index, existing in enumerate(self.actions):
            if existing.id == action.id:
                self.actions[index] = action
                return list(self.actions)
        raise ActionNotFoundError(action.id)

    async def delete_action(self, action_id):
        self._maybe_fail("delete_action")
        remaining = [a for a in self.actions if a.id != action_id]
        if len(remaining) == len(self.actions):
            raise ActionNotFoundError(action_id)
        self.actions = remaining
        return list(self.actions)

    async def export_actions(self):
        self._maybe_fail("export_actions")
        return dump_document(self.actions)

    async def import_actions(self, document, mode):
        self._maybe_fail("import_actions")
        self.actions = merge_actions(self.actions, parse_document(document), ImportMode.parse(mode))
        return list(self.actions)

    async def execute_action(self, action_id, distro, invocation_id=None, credential=None):
        for action in self.actions:
            if action.id == action_id:
                return await self.execute_command(distro, action.command, invocation_id, credential)
        raise ActionNotFoundError(action_id)

    async def execute_command(self, distro, command, invocation_id=None, credential=None):
        self.executed.append((distro, command, credential))
        if command in self.hang:
            await asyncio.sleep(3600)
        await self._wait_gate(command)
        response = self.responses.get(command, ActionResult(success=True, output=f"ran {command}"))
        if isinstance(response, Exception):
            raise response
        return response

    async def run_action_in_terminal(self, action_id, distro, invocation_id=None):
        self.terminal.append((action_id, distro))

    async def list_running_distros(self):
        return sorted(self.running)

    async def list_startup_configs(self):
        self._maybe_fail("list_startup_configs")
        return list(self.configs)

    async def get_startup_config(self, distro):
        self._maybe_fail("get_startup_config")
        for config in self.configs:
            if config.distro_name == distro:
                return config
        return None

    async def save_startup_config(self, config):
        self._maybe_fail("save_startup_config")
        self.configs = [c for c in self.configs if c.distro_name != config.distro_name] + [config]
        return list(self.configs)

    async def delete_startup_config(self, distro):
        self._maybe_fail("delete_startup_config")
        self.configs = [c for c in self.configs if c.distro_name != distro]
        return list(self.configs)

    async def execute_startup_actions(self, distro, invocation_id=None):
        raise DispatchError("not used in tests")


class FakeInspector(DistroInspector):
    def __init__(self, running=None, home="/home/alice", user="alice", windows_home=None):
        self.running = set(running or ())
        self.home = home
        self.user = user
        self.windows_home = windows_home
        self.described: List[str] = []

    async def is_running(self, distro):
        return distro in self.running

    async def describe(self, distro):
        self.described.append(distro)
        return InterpolationContext(
            distro_name=distro,
            home=self.home,
            user=self.user,
            windows_home=self.windows_home,
        )


def make_action(action_id, command=None, **kwargs):
    kwargs.setdefault("name", action_id.replace("-", " ").title())
    return Action(id=action_id, command=command or f"echo {action_id}", **kwargs)


@pytest.fixture
def dispatcher():
    return FakeDispatcher()


@pytest.fixture
def inspector():
    return FakeInspector()


@pytest.fixture
def action_factory():
    return make_action
