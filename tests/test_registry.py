"""Tests for the action registry."""

import asyncio
import json

import pytest

from distro_actions.actions.document import ImportMode
from distro_actions.actions.errors import PersistenceError
from distro_actions.actions.models import StartupConfig
from distro_actions.actions.registry import ActionRegistry


def run(coro):
    return asyncio.run(coro)


class TestCrud:
    def test_refresh_replaces_collection(self, dispatcher, action_factory):
        dispatcher.actions = [action_factory("a"), action_factory("b")]
        registry = ActionRegistry(dispatcher)
        assert [a.id for a in run(registry.refresh())] == ["a", "b"]
        assert registry.is_loading is False
        assert registry.error is None

    def test_loading_while_call_in_flight(self, dispatcher, action_factory):
        dispatcher.actions = [action_factory("a")]
        registry = ActionRegistry(dispatcher)

        async def scenario():
            gate = asyncio.Event()
            dispatcher.gates["list_actions"] = gate
            task = asyncio.create_task(registry.refresh())
            await asyncio.sleep(0.05)
            assert registry.is_loading is True
            assert registry.actions == []
            gate.set()
            await task
            assert registry.is_loading is False
            assert [a.id for a in registry.actions] == ["a"]

        run(scenario())

    def test_add_update_delete(self, dispatcher, action_factory):
        registry = ActionRegistry(dispatcher)
        run(registry.add(action_factory("a")))
        run(registry.add(action_factory("b")))
        updated = action_factory("a", command="echo changed")
        run(registry.update(updated))
        assert registry.find("a").command == "echo changed"
        run(registry.delete("b"))
        assert [a.id for a in registry.actions] == ["a"]
        assert dispatcher.calls == ["add_action", "add_action", "update_action", "delete_action"]

    def test_add_duplicate_id_is_rejected_locally(self, dispatcher, action_factory):
        registry = ActionRegistry(dispatcher)
        run(registry.add(action_factory("a")))
        run(registry.add(action_factory("a", command="other")))
        assert "already exists" in registry.error
        assert dispatcher.calls == ["add_action"]
        assert len(registry.actions) == 1

    def test_failure_keeps_collection_and_records_error(self, dispatcher, action_factory):
        dispatcher.actions = [action_factory("a")]
        registry = ActionRegistry(dispatcher)
        run(registry.refresh())

        dispatcher.fail_with = RuntimeError("backend down")
        result = run(registry.add(action_factory("b")))

        assert [a.id for a in result] == ["a"]
        assert "backend down" in registry.error
        assert isinstance(registry.last_error, PersistenceError)
        assert isinstance(registry.last_error.__cause__, RuntimeError)
        assert registry.is_loading is False

    def test_unknown_id_error_message(self, dispatcher):
        registry = ActionRegistry(dispatcher)
        run(registry.delete("ghost"))
        assert registry.error == "Action not found: ghost"

    def test_next_call_clears_error(self, dispatcher):
        registry = ActionRegistry(dispatcher)
        run(registry.delete("ghost"))
        assert registry.error
        run(registry.refresh())
        assert registry.error is None


class TestImportExport:
    def test_export_then_replace_import_is_identity(self, dispatcher, action_factory):
        dispatcher.actions = [action_factory("a"), action_factory("b", order=2)]
        registry = ActionRegistry(dispatcher)
        before = run(registry.refresh())
        document = run(registry.export_all())

        dispatcher.actions = [action_factory("junk")]
        after = run(registry.import_all(document, ImportMode.REPLACE))
        assert after == before

    def test_merge_replaces_existing_id(self, dispatcher, action_factory):
        dispatcher.actions = [action_factory("a"), action_factory("b")]
        registry = ActionRegistry(dispatcher)
        run(registry.refresh())
        document = json.dumps(
            {"version": 1, "actions": [action_factory("a", command="echo new", name="New A").to_dict()]}
        )
        actions = run(registry.import_all(document))
        assert [a.id for a in actions] == ["a", "b"]
        assert registry.find("a").command == "echo new"
        assert registry.find("a").name == "New A"

    def test_malformed_import_is_atomic(self, dispatcher, action_factory):
        dispatcher.actions = [action_factory("a")]
        registry = ActionRegistry(dispatcher)
        run(registry.refresh())
        bad = json.dumps({"version": 1, "actions": [action_factory("b").to_dict(), {"id": "c"}]})
        actions = run(registry.import_all(bad, "replace"))
        assert [a.id for a in actions] == ["a"]
        assert "import_actions" not in dispatcher.calls
        assert registry.error.startswith("Failed to parse actions")

    def test_export_failure_returns_none(self, dispatcher):
        dispatcher.fail_with = RuntimeError("nope")
        registry = ActionRegistry(dispatcher)
        assert run(registry.export_all()) is None
        assert registry.error

    def test_file_round_trip(self, dispatcher, action_factory, tmp_path):
        dispatcher.actions = [action_factory("a")]
        registry = ActionRegistry(dispatcher)
        target = tmp_path / "actions.json"
        assert run(registry.export_to_file(target)) is True

        dispatcher.actions = []
        run(registry.import_from_file(target, ImportMode.MERGE))
        assert [a.id for a in registry.actions] == ["a"]

    def test_import_missing_file(self, dispatcher, tmp_path):
        registry = ActionRegistry(dispatcher)
        run(registry.import_from_file(tmp_path / "missing.json"))
        assert "Failed to read file" in registry.error


class TestStartupConfigs:
    def test_save_list_delete(self, dispatcher):
        registry = ActionRegistry(dispatcher)
        run(registry.save_startup_config(StartupConfig("Ubuntu")))
        run(registry.save_startup_config(StartupConfig("Ubuntu", enabled=False)))
        assert len(registry.startup_configs) == 1
        assert registry.startup_configs[0].enabled is False
        run(registry.delete_startup_config("Ubuntu"))
        assert registry.startup_configs == []

    def test_app_start_distros(self, dispatcher):
        dispatcher.configs = [
            StartupConfig("A", run_on_app_start=True),
            StartupConfig("B", run_on_app_start=True, enabled=False),
            StartupConfig("C"),
        ]
        registry = ActionRegistry(dispatcher)
        assert run(registry.app_start_distros()) == ["A"]

    def test_get_startup_config_raises_on_failure(self, dispatcher):
        dispatcher.fail_with = OSError("unreadable")
        registry = ActionRegistry(dispatcher)
        with pytest.raises(PersistenceError):
            run(registry.get_startup_config("Ubuntu"))
        assert registry.is_loading is False
