"""
Command-line interface for inspecting extensions.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

import yaml
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from agent_extensions.config import DEFAULT_HOME, DEFAULT_STATE_DB, ExtensionsConfig
from agent_extensions.extensions.loader import ExtensionLoader
from agent_extensions.extensions.manager import ExtensionManager
from agent_extensions.extensions.models import GET_TOOLS, TaskInfo
from agent_extensions.extensions.validation import validate_extension, validate_tool_definition
from agent_extensions.logging import setup_logging

console = Console()

CONFIG_PATHS = [
    Path.cwd() / "agent-extensions.yaml",
    DEFAULT_HOME / "config.yaml",
]


def main() -> None:
    """Main CLI entry point."""
    load_dotenv()

    parser = argparse.ArgumentParser(
        description="Agent Extensions CLI",
        prog="agent-extensions",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output (debug logging)",
    )
    parser.add_argument(
        "-c",
        "--config",
        help="Path to a YAML config file",
    )
    parser.add_argument(
        "--extension-log-level",
        help="Log level for messages written by extensions (default: follow -v)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    list_parser = subparsers.add_parser("list", help="List loaded extensions")
    list_parser.add_argument("-p", "--project", help="Also load extensions for this project")

    tools_parser = subparsers.add_parser("tools", help="List aggregated tools")
    tools_parser.add_argument("-p", "--project", help="Project directory the tools are for")
    tools_parser.add_argument("--mode", default="agent", help="Agent mode passed to suppliers")

    validate_parser = subparsers.add_parser("validate", help="Validate one extension module")
    validate_parser.add_argument("path", help="Extension file or package __init__.py")

    config_parser = subparsers.add_parser("config", help="Show the effective configuration")
    config_parser.add_argument("--paths", action="store_true", help="Show config file search paths")

    args = parser.parse_args()

    level = "DEBUG" if getattr(args, "verbose", False) else "WARNING"
    setup_logging(level, extension_level=args.extension_log_level)

    if args.command == "list":
        asyncio.run(cmd_list(args))
    elif args.command == "tools":
        asyncio.run(cmd_tools(args))
    elif args.command == "validate":
        asyncio.run(cmd_validate(args))
    elif args.command == "config":
        cmd_config(args)
    else:
        parser.print_help()


def _load_config(path: str | None = None) -> ExtensionsConfig:
    """Config file (explicit or first found), then environment overrides."""
    candidates = [Path(path)] if path else CONFIG_PATHS
    config = None
    for candidate in candidates:
        if candidate.exists():
            config = ExtensionsConfig.from_yaml(candidate)
            break
    if config is None:
        config = ExtensionsConfig(state_db_path=DEFAULT_STATE_DB)
    elif config.state_db_path is None:
        config.state_db_path = DEFAULT_STATE_DB
    return ExtensionsConfig.from_env(config)


async def _start(args: argparse.Namespace) -> ExtensionManager:
    config = _load_config(args.config)
    if config.state_db_path is not None:
        config.state_db_path.parent.mkdir(parents=True, exist_ok=True)
    config.hot_reload = False
    manager = ExtensionManager(config)
    await manager.init()
    if getattr(args, "project", None):
        await manager.reload_project_extensions(str(Path(args.project).resolve()))
    return manager


async def cmd_list(args: argparse.Namespace) -> None:
    """List loaded extensions."""
    manager = await _start(args)
    try:
        entries = manager.registry.list_all()

        table = Table(title="Loaded Extensions")
        table.add_column("Name", style="cyan", no_wrap=True)
        table.add_column("Version")
        table.add_column("Scope")
        table.add_column("Hooks", style="dim")
        table.add_column("Source", style="dim")

        for entry in entries:
            scope = "global" if entry.is_global else entry.project_dir
            table.add_row(
                entry.name,
                entry.metadata.version,
                scope,
                ", ".join(sorted(entry.capabilities)),
                entry.module_path,
            )

        console.print(table)
        console.print(f"\n[dim]Total: {len(entries)} extensions[/dim]")
    finally:
        await manager.dispose()


async def cmd_tools(args: argparse.Namespace) -> None:
    """List the tools an agent would see."""
    manager = await _start(args)
    try:
        project_dir = str(Path(args.project).resolve()) if args.project else str(Path.cwd())
        task = TaskInfo(id="cli", project_dir=project_dir)
        tools = await manager.get_tools(task, mode=args.mode)

        table = Table(title="Extension Tools")
        table.add_column("Name", style="cyan", no_wrap=True)
        table.add_column("Extension")
        table.add_column("Description")

        for registered in tools:
            table.add_row(registered.name, registered.extension_name, registered.tool.description[:60])

        console.print(table)
        console.print(f"\n[dim]Total: {len(tools)} tools[/dim]")
    finally:
        await manager.dispose()


async def cmd_validate(args: argparse.Namespace) -> None:
    """Load one module and report its shape and tools."""
    path = Path(args.path)
    if not path.exists():
        console.print(f"[red]File not found: {path}[/red]")
        sys.exit(1)

    loaded = ExtensionLoader().load(path)
    if loaded is None:
        console.print(f"  [red]✗[/red] {path}: failed to load (run with -v for details)")
        sys.exit(1)

    console.print(f"\n[bold]{loaded.metadata.name}[/bold] v{loaded.metadata.version}")
    if loaded.metadata.description:
        console.print(f"[dim]{loaded.metadata.description}[/dim]")

    shape = validate_extension(loaded.extension, loaded.metadata)
    for warning in shape.warnings:
        console.print(f"  [yellow]⚠[/yellow] {warning}")
    for error in shape.result.errors:
        console.print(f"  [red]✗[/red] {error}")
    if shape.is_valid:
        console.print(f"  [green]✓[/green] hooks: {', '.join(sorted(shape.capabilities)) or '(none)'}")

    tool_errors = 0
    if shape.is_valid and GET_TOOLS in shape.capabilities:
        manager = ExtensionManager(ExtensionsConfig(entry_point_group=None))
        entry = await manager.register_loaded(loaded)
        try:
            context = manager.create_context(loaded.metadata.name, project_dir=str(Path.cwd()))
            tools = loaded.extension.get_tools(context, "agent", None) if entry is not None else []
            if asyncio.iscoroutine(tools):
                tools = await tools
            for tool in tools or []:
                result = validate_tool_definition(tool)
                name = tool.get("name") if isinstance(tool, dict) else getattr(tool, "name", "?")
                if result.is_valid:
                    console.print(f"  [green]✓[/green] tool {name}")
                else:
                    tool_errors += 1
                    console.print(f"  [red]✗[/red] tool {name}: {', '.join(result.errors)}")
        except Exception as e:
            tool_errors += 1
            console.print(f"  [red]✗[/red] get_tools() raised: {e}")
        finally:
            await manager.dispose()

    console.print("\n[bold]Summary:[/bold]")
    console.print(f"  Errors: {len(shape.result.errors) + tool_errors}")
    console.print(f"  Warnings: {len(shape.warnings)}")

    if not shape.is_valid or tool_errors:
        sys.exit(1)


def cmd_config(args: argparse.Namespace) -> None:
    """Show configuration, or where it is looked up."""
    if args.paths:
        console.print("[bold]Config file search paths:[/bold]\n")
        for path in CONFIG_PATHS:
            exists = "[green]✓[/green]" if path.exists() else "[dim]·[/dim]"
            console.print(f"  {exists} {path}")
        return

    config = _load_config(args.config)
    console.print("[bold]Current Configuration:[/bold]\n")
    console.print(yaml.dump(config.to_dict(), default_flow_style=False, sort_keys=False))


if __name__ == "__main__":
    main()
