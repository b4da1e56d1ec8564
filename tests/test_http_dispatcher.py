"""Tests for the HTTP dispatcher, using a stub session."""

import asyncio
import json

import pytest
import requests

from distro_actions.actions.coordinator import ExecutionCoordinator
from distro_actions.actions.document import ImportMode
from distro_actions.actions.errors import DispatchError, PersistenceError
from distro_actions.actions.models import StartupAction, StartupConfig
from distro_actions.actions.registry import ActionRegistry
from distro_actions.actions.sequencer import StartupSequencer
from distro_actions.dispatch.http import HttpDispatcher


_MISSING = object()


class StubResponse:
    def __init__(self, status_code=200, payload=_MISSING, text=None):
        self.status_code = status_code
        self._payload = payload
        if text is not None:
            self.text = text
        else:
            self.text = "" if payload is _MISSING else json.dumps(payload)
        self.content = self.text.encode("utf-8")

    def json(self):
        if self._payload is _MISSING:
            raise ValueError("no JSON")
        return self._payload


class StubSession:
    def __init__(self):
        self.headers = {}
        self.proxies = {}
        self.posts = []
        self.queue = []

    def post(self, url, json=None, timeout=None):
        self.posts.append((url, json, timeout))
        response = self.queue.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def session():
    return StubSession()


@pytest.fixture
def client(session):
    return HttpDispatcher("http://backend:8765/", token="t0ken", timeout=5, session=session)


class TestTransport:
    def test_invoke_url_and_body(self, client, session, action_factory):
        action = action_factory("a")
        session.queue.append(StubResponse(payload=[action.to_dict()]))

        actions = run(client.add_action(action))

        assert actions == [action]
        url, body, timeout = session.posts[0]
        assert url == "http://backend:8765/invoke/add_custom_action"
        assert body == {"action": action.to_dict()}
        assert timeout == 5
        assert session.headers["Authorization"] == "Bearer t0ken"

    def test_error_body_becomes_message(self, client, session):
        session.queue.append(StubResponse(status_code=500, payload={"error": "Action not found: x"}))
        with pytest.raises(DispatchError, match="Action not found: x"):
            run(client.execute_action("x", "Ubuntu"))

    def test_transport_error_is_wrapped(self, client, session):
        session.queue.append(requests.exceptions.ConnectionError("refused"))
        with pytest.raises(DispatchError) as exc_info:
            run(client.execute_command("Ubuntu", "ls"))
        assert isinstance(exc_info.value.__cause__, requests.exceptions.ConnectionError)

    def test_crud_failures_are_persistence_errors(self, client, session):
        session.queue.append(StubResponse(status_code=404, text="gone"))
        with pytest.raises(PersistenceError, match="gone"):
            run(client.delete_action("x"))

    def test_malformed_list_is_persistence_error(self, client, session):
        session.queue.append(StubResponse(payload=[{"id": "broken"}]))
        with pytest.raises(PersistenceError):
            run(client.list_actions())

    def test_endpoint_required(self):
        with pytest.raises(ValueError):
            HttpDispatcher("")


class TestCommands:
    def test_execute_command_arguments(self, client, session):
        session.queue.append(StubResponse(payload={"success": True, "output": "bin", "error": None}))
        result = run(client.execute_command("Ubuntu", "ls", invocation_id="inv"))
        assert result.output == "bin"
        url, body, _ = session.posts[0]
        assert url.endswith("/invoke/execute_command")
        assert body == {"distro": "Ubuntu", "command": "ls", "id": "inv", "password": None}

    def test_execute_action_arguments(self, client, session):
        session.queue.append(StubResponse(payload={"success": True, "output": "ok", "error": None}))
        result = run(client.execute_action("upd", "Ubuntu", invocation_id="inv", credential="pw"))
        assert result.success is True and result.output == "ok"
        assert session.posts[0][1] == {"actionId": "upd", "distro": "Ubuntu", "id": "inv", "password": "pw"}

    def test_import_sends_merge_flag(self, client, session):
        session.queue.append(StubResponse(payload=[]))
        run(client.import_actions('{"version": 1, "actions": []}', ImportMode.REPLACE))
        url, body, _ = session.posts[0]
        assert url.endswith("/invoke/import_custom_actions")
        assert body["merge"] is False

    def test_get_startup_config_none(self, client, session):
        session.queue.append(StubResponse(payload=None))
        assert run(client.get_startup_config("Ubuntu")) is None
        assert session.posts[0][1] == {"distroName": "Ubuntu"}

    def test_save_startup_config(self, client, session):
        config = StartupConfig("Ubuntu", run_on_app_start=True)
        session.queue.append(StubResponse(payload=[config.to_dict()]))
        assert run(client.save_startup_config(config)) == [config]

    def test_execute_startup_actions(self, client, session):
        session.queue.append(
            StubResponse(payload=[{"success": True, "output": "", "error": None}, {"success": False, "output": "", "error": "timeout"}])
        )
        results = run(client.execute_startup_actions("Ubuntu"))
        assert [r.error for r in results] == [None, "timeout"]

    def test_list_running_distros(self, client, session):
        session.queue.append(StubResponse(payload=["Ubuntu"]))
        assert run(client.list_running_distros()) == ["Ubuntu"]


class TestOrchestrationOverHttp:
    def test_coordinator_runs_action(self, client, session, inspector, action_factory):
        action = action_factory("listing", command="ls ${DISTRO_NAME}")
        session.queue.append(StubResponse(payload=[action.to_dict()]))
        session.queue.append(StubResponse(payload={"success": True, "output": "bin etc", "error": None}))
        coordinator = ExecutionCoordinator(client, ActionRegistry(client), inspector)

        result = run(coordinator.execute_one("listing", "Ubuntu"))

        assert result.success is True
        assert result.output == "bin etc"
        assert [url.rsplit("/", 1)[-1] for url, _, _ in session.posts] == [
            "get_custom_actions",
            "execute_command",
        ]
        assert session.posts[1][1]["command"] == "ls Ubuntu"

    def test_sequencer_inline_step(self, client, session, inspector):
        config = StartupConfig("Ubuntu", actions=[StartupAction(id="s1", command="uptime")])
        session.queue.append(StubResponse(payload=config.to_dict()))
        session.queue.append(StubResponse(payload={"success": True, "output": "up 1 day", "error": None}))
        registry = ActionRegistry(client)
        sequencer = StartupSequencer(registry, ExecutionCoordinator(client, registry, inspector))

        results = run(sequencer.run_sequence("Ubuntu"))

        assert [r.output for r in results] == ["up 1 day"]
        assert session.posts[1][1]["command"] == "uptime"
