"""Tests for DistroProbe."""

import asyncio

from distro_actions.actions.errors import DispatchError
from distro_actions.actions.models import ActionResult
from distro_actions.dispatch.probe import FALLBACK_HOME, FALLBACK_USER, DistroProbe


def run(coro):
    return asyncio.run(coro)


class TestDistroProbe:
    def test_describe_collects_facts(self, dispatcher):
        dispatcher.responses["echo $HOME"] = ActionResult(success=True, output="/home/bob\n")
        dispatcher.responses["whoami"] = ActionResult(success=True, output="bob\n")
        probe = DistroProbe(dispatcher, host_home="C:\\Users\\Bob")

        context = run(probe.describe("Ubuntu"))

        assert context.distro_name == "Ubuntu"
        assert context.home == "/home/bob"
        assert context.user == "bob"
        assert context.windows_home == "/mnt/c/Users/Bob"

    def test_fallbacks_on_failure(self, dispatcher):
        dispatcher.responses["echo $HOME"] = DispatchError("distro not installed")
        dispatcher.responses["whoami"] = ActionResult(success=False, error="exit 1")
        probe = DistroProbe(dispatcher, host_home="")

        context = run(probe.describe("Ubuntu"))

        assert context.home == FALLBACK_HOME
        assert context.user == FALLBACK_USER
        assert context.windows_home is None

    def test_unexpected_dispatcher_error_falls_back(self, dispatcher):
        dispatcher.responses["echo $HOME"] = TypeError("bad arguments")
        dispatcher.responses["whoami"] = RuntimeError("backend crashed")
        probe = DistroProbe(dispatcher, host_home="")

        context = run(probe.describe("Ubuntu"))

        assert context.home == FALLBACK_HOME
        assert context.user == FALLBACK_USER

    def test_results_are_cached(self, dispatcher):
        probe = DistroProbe(dispatcher, host_home="")
        run(probe.describe("Ubuntu"))
        run(probe.describe("Ubuntu"))
        assert len(dispatcher.executed) == 2

        probe.forget("Ubuntu")
        run(probe.describe("Ubuntu"))
        assert len(dispatcher.executed) == 4

    def test_is_running(self, dispatcher):
        dispatcher.running = {"Ubuntu"}
        probe = DistroProbe(dispatcher, host_home="")
        assert run(probe.is_running("Ubuntu")) is True
        assert run(probe.is_running("Debian")) is False
