"""Command-line interface for distro-actions."""

from __future__ import annotations

import argparse
import asyncio
import sys
from dataclasses import dataclass
from typing import List, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .actions import (
    Action,
    ActionRegistry,
    ActionResult,
    AllScope,
    ExecutionCoordinator,
    ImportMode,
    PatternScope,
    PersistenceError,
    SpecificScope,
    StartupSequencer,
    applicable_actions,
    icon_emoji,
)
from .actions.models import ActionIcon
from .config import AppConfig, load_config
from .dispatch import CommandDispatcher, DistroProbe, DryRunRunner, FileDispatcher, HttpDispatcher
from .interaction import AutoResponseHandler, CLIInteractionHandler
from .utils.logging import get_logger


@dataclass
class CLIContext:
    """Objects wired together from CLI arguments and configuration."""

    config: AppConfig
    console: Console
    dispatcher: CommandDispatcher
    registry: ActionRegistry
    coordinator: ExecutionCoordinator
    sequencer: StartupSequencer
    interaction: CLIInteractionHandler


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="distro-actions",
        description="Manage and run custom actions against WSL distributions.",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to a JSON config file overriding defaults.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="File mode only: log commands instead of running them",
    )
    parser.add_argument(
        "--running",
        action="append",
        default=None,
        metavar="DISTRO",
        help="File mode only: treat this distribution as running (repeatable)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list", help="List actions")
    list_parser.add_argument("--distro", help="Only actions that apply to this distribution")

    add_parser = subparsers.add_parser("add", help="Add an action")
    add_parser.add_argument("--id", required=True, dest="action_id")
    add_parser.add_argument("--name", required=True)
    add_parser.add_argument("--command", required=True, dest="action_command")
    add_parser.add_argument(
        "--icon", default=ActionIcon.TERMINAL.value, choices=[i.value for i in ActionIcon]
    )
    scope = add_parser.add_mutually_exclusive_group()
    scope.add_argument("--distros", help="Comma-separated distribution names")
    scope.add_argument("--pattern", help="Regular expression matched against distribution names")
    add_parser.add_argument("--confirm", action="store_true", help="Ask before running")
    add_parser.add_argument("--hide-output", action="store_true")
    add_parser.add_argument("--sudo", action="store_true", help="Run with elevated privileges")
    add_parser.add_argument("--stopped", action="store_true", help="Only run on stopped distributions")
    add_parser.add_argument("--terminal", action="store_true", help="Run in an interactive terminal")
    add_parser.add_argument("--order", type=int, default=0)

    delete_parser = subparsers.add_parser("delete", help="Delete an action")
    delete_parser.add_argument("action_id")

    run_parser = subparsers.add_parser("run", help="Run an action against a distribution")
    run_parser.add_argument("action_id")
    run_parser.add_argument("distro")
    run_parser.add_argument(
        "--password-stdin", action="store_true",
        help="Read the sudo password from standard input",
    )
    run_parser.add_argument("--yes", "-y", action="store_true", help="Skip the confirmation prompt")

    export_parser = subparsers.add_parser("export", help="Export all actions as JSON")
    export_parser.add_argument("--file", "-f", help="Write to this file instead of stdout")

    import_parser = subparsers.add_parser("import", help="Import actions from an export file")
    import_parser.add_argument("file")
    import_parser.add_argument(
        "--replace", action="store_true",
        help="Replace all actions instead of merging by id",
    )

    startup_parser = subparsers.add_parser("startup", help="Startup sequences")
    startup_sub = startup_parser.add_subparsers(dest="startup_command", required=True)
    startup_sub.add_parser("list", help="List startup configurations")
    show_parser = startup_sub.add_parser("show", help="Show one distribution's sequence")
    show_parser.add_argument("distro")
    startup_run_parser = startup_sub.add_parser("run", help="Run one distribution's sequence")
    startup_run_parser.add_argument("distro")

    subparsers.add_parser("app-start", help="Run every sequence flagged to run on app start")

    return parser


def build_dispatcher(
    config: AppConfig,
    dry_run: bool = False,
    running: Optional[List[str]] = None,
) -> CommandDispatcher:
    settings = config.dispatcher
    if settings.mode == "http":
        return HttpDispatcher.from_config(settings)
    # File mode cannot see real distributions; `running` stands in for them
    return FileDispatcher(
        settings.data_dir,
        runner=DryRunRunner() if dry_run else None,
        running_distros=running,
    )


def _build_context(args: argparse.Namespace) -> CLIContext:
    config = load_config(args.config)
    get_logger(__name__, config.logging.level)

    console = Console()
    interaction = CLIInteractionHandler(console)
    dispatcher = build_dispatcher(config, args.dry_run, args.running)
    registry = ActionRegistry(dispatcher)
    coordinator = ExecutionCoordinator(
        dispatcher,
        registry,
        DistroProbe(dispatcher),
        interaction if config.execution.prompt_for_sudo else None,
    )
    return CLIContext(
        config=config,
        console=console,
        dispatcher=dispatcher,
        registry=registry,
        coordinator=coordinator,
        sequencer=StartupSequencer(
            registry,
            coordinator,
            default_timeout=config.execution.default_step_timeout,
        ),
        interaction=interaction,
    )


# ----------------------------------------------------------------------
# Rendering
# ----------------------------------------------------------------------

def _describe_scope(action: Action) -> str:
    scope = action.scope
    if isinstance(scope, SpecificScope):
        return ", ".join(scope.distros) or "(none)"
    if isinstance(scope, PatternScope):
        return f"/{scope.pattern}/"
    return "all"


def _flags(action: Action) -> str:
    flags = []
    if action.requires_sudo:
        flags.append("sudo")
    if action.requires_stopped:
        flags.append("stopped")
    if action.confirm_before_run:
        flags.append("confirm")
    if action.run_in_terminal:
        flags.append("terminal")
    return " ".join(flags)


def print_actions(console: Console, actions: List[Action], title: str = "Actions") -> None:
    table = Table(title=title)
    table.add_column("", no_wrap=True)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Scope")
    table.add_column("Flags", style="magenta")
    table.add_column("Command", style="dim")
    for action in actions:
        table.add_row(
            icon_emoji(action.icon),
            action.id,
            action.name,
            _describe_scope(action),
            _flags(action),
            escape(action.command),
        )
    console.print(table)


def print_result(console: Console, result: ActionResult, show_output: bool = True) -> None:
    if result.success:
        console.print("✅ Success", style="green")
    else:
        console.print(f"❌ Failed: {result.error}", style="bold red", markup=False)
    if show_output and result.output.strip():
        console.print(result.output.rstrip(), markup=False, highlight=False)


def print_results(console: Console, distro: str, results: List[ActionResult]) -> None:
    if not results:
        console.print(f"📭 Nothing ran for {distro}")
        return
    ok = sum(1 for r in results if r.success)
    console.print(f"🚀 {distro}: {ok}/{len(results)} step(s) succeeded")
    for index, result in enumerate(results, 1):
        status = "✓" if result.success else "✗"
        console.print(f"  [{index}] {status} {result.error or ''}".rstrip())


# ----------------------------------------------------------------------
# Command handlers
# ----------------------------------------------------------------------

def _report_registry_error(context: CLIContext) -> int:
    if context.registry.error:
        context.interaction.notify(f"❌ {context.registry.error}", "error")
        return 1
    return 0


async def handle_list(args: argparse.Namespace, context: CLIContext) -> int:
    actions = await context.registry.refresh()
    if context.registry.error:
        return _report_registry_error(context)
    if args.distro:
        print_actions(context.console, applicable_actions(actions, args.distro), f"Actions for {args.distro}")
    else:
        print_actions(context.console, sorted(actions, key=lambda a: (a.order, a.name)))
    return 0


async def handle_add(args: argparse.Namespace, context: CLIContext) -> int:
    if args.distros:
        scope = SpecificScope(tuple(d.strip() for d in args.distros.split(",") if d.strip()))
    elif args.pattern:
        scope = PatternScope(args.pattern)
    else:
        scope = AllScope()
    action = Action(
        id=args.action_id,
        name=args.name,
        command=args.action_command,
        icon=args.icon,
        scope=scope,
        confirm_before_run=args.confirm,
        show_output=not args.hide_output,
        requires_sudo=args.sudo,
        requires_stopped=args.stopped,
        run_in_terminal=args.terminal,
        order=args.order,
    )
    await context.registry.refresh()
    await context.registry.add(action)
    if context.registry.error:
        return _report_registry_error(context)
    context.interaction.notify(f"✅ Added action {action.id}", "success")
    return 0


async def handle_delete(args: argparse.Namespace, context: CLIContext) -> int:
    await context.registry.delete(args.action_id)
    if context.registry.error:
        return _report_registry_error(context)
    context.interaction.notify(f"✅ Deleted action {args.action_id}", "success")
    return 0


async def handle_run(args: argparse.Namespace, context: CLIContext) -> int:
    await context.registry.refresh()
    action = context.registry.find(args.action_id)

    if action is not None and action.confirm_before_run:
        # --yes answers the confirmation instead of prompting
        handler = AutoResponseHandler() if args.yes else context.interaction
        confirmed = handler.confirm(
            f"Run '{action.name}' on {args.distro}?",
            context=action.command,
        )
        if not confirmed:
            context.interaction.notify("❌ Cancelled", "warning")
            return 1

    if action is not None and action.run_in_terminal:
        result = await context.coordinator.run_in_terminal(args.action_id, args.distro)
        print_result(context.console, result, show_output=False)
        return 0 if result.success else 1

    credential = None
    if args.password_stdin:
        credential = sys.stdin.readline().rstrip("\n") or None

    result = await context.coordinator.execute_one(args.action_id, args.distro, credential)
    print_result(context.console, result, show_output=action.show_output if action else True)
    return 0 if result.success else 1


async def handle_export(args: argparse.Namespace, context: CLIContext) -> int:
    if args.file:
        if not await context.registry.export_to_file(args.file):
            return _report_registry_error(context)
        context.interaction.notify(f"✅ Exported actions to {args.file}", "success")
        return 0
    document = await context.registry.export_all()
    if document is None:
        return _report_registry_error(context)
    print(document)
    return 0


async def handle_import(args: argparse.Namespace, context: CLIContext) -> int:
    mode = ImportMode.REPLACE if args.replace else ImportMode.MERGE
    actions = await context.registry.import_from_file(args.file, mode)
    if context.registry.error:
        return _report_registry_error(context)
    context.interaction.notify(f"✅ Imported ({mode.value}), {len(actions)} action(s) stored", "success")
    return 0


async def handle_startup(args: argparse.Namespace, context: CLIContext) -> int:
    console = context.console
    if args.startup_command == "list":
        configs = await context.registry.refresh_startup_configs()
        if context.registry.error:
            return _report_registry_error(context)
        table = Table(title="Startup configurations")
        table.add_column("Distribution", style="cyan")
        table.add_column("Enabled")
        table.add_column("On app start")
        table.add_column("Steps", justify="right")
        for config in configs:
            table.add_row(
                config.distro_name,
                "yes" if config.enabled else "no",
                "yes" if config.run_on_app_start else "no",
                str(len(config.actions)),
            )
        console.print(table)
        return 0

    if args.startup_command == "show":
        try:
            config = await context.registry.get_startup_config(args.distro)
        except PersistenceError as exc:
            context.interaction.notify(f"❌ {exc}", "error")
            return 1
        if config is None:
            context.interaction.notify(f"📭 No startup configuration for {args.distro}")
            return 0
        await context.registry.refresh()
        table = Table(title=f"Startup sequence for {config.distro_name}")
        table.add_column("#", justify="right")
        table.add_column("Command")
        table.add_column("Timeout", justify="right")
        table.add_column("On error")
        for index, step in enumerate(config.actions, 1):
            if step.is_inline:
                command = step.command or "(empty)"
            else:
                action = context.registry.find(step.action_id)
                command = f"{action.name}: {action.command}" if action else f"(missing action {step.action_id})"
            table.add_row(
                str(index),
                escape(command),
                f"{step.timeout}s",
                "continue" if step.continue_on_error else "stop",
            )
        console.print(table)
        return 0

    if args.startup_command == "run":
        results = await context.sequencer.run_sequence(args.distro)
        print_results(console, args.distro, results)
        return 0 if all(r.success for r in results) else 1

    raise ValueError(f"Unsupported startup command: {args.startup_command}")


async def handle_app_start(args: argparse.Namespace, context: CLIContext) -> int:
    outcomes = await context.sequencer.run_app_start()
    if not outcomes:
        context.interaction.notify("📭 No distributions are set to run on app start")
        return 0
    for distro, results in outcomes.items():
        print_results(context.console, distro, results)
    return 0 if all(r.success for results in outcomes.values() for r in results) else 1


HANDLERS = {
    "list": handle_list,
    "add": handle_add,
    "delete": handle_delete,
    "run": handle_run,
    "export": handle_export,
    "import": handle_import,
    "startup": handle_startup,
    "app-start": handle_app_start,
}


def dispatch_command(args: argparse.Namespace) -> int:
    context = _build_context(args)
    handler = HANDLERS.get(args.command)
    if handler is None:
        raise ValueError(f"Unsupported command: {args.command}")
    return asyncio.run(handler(args, context))


def run_cli(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return dispatch_command(args)
