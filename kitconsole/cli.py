"""Command-line interface for Kit Console."""

import asyncio
import sys
import time
from typing import Optional

import click
import uvicorn
from rich.panel import Panel

from kitconsole import __version__
from kitconsole.logger import console, setup_global_logger

MODES = ["install", "update", "uninstall"]


@click.group()
@click.version_option(version=__version__)
@click.option("--log-level", default=None, help="Override LOG_LEVEL for this command")
def main(log_level: Optional[str]):
    """
    Kit Console - install, update and uninstall prototype kit plugins.
    """
    from kitconsole.config import settings

    setup_global_logger(log_level or settings.LOG_LEVEL)


@main.command()
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--port", default=3100, help="Port to bind to (default: 3100)")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
def start(host: str, port: int, reload: bool):
    """Start the console server."""
    from kitconsole.config import settings

    url = f"http://{host}:{port}"
    console.print(
        Panel.fit(
            f"""[bold cyan]Kit Console[/bold cyan]

[dim]Project:[/dim] {settings.PROJECT_DIR}
[dim]Kit:[/dim] {settings.KIT_URL}
[dim]Reload:[/dim] {reload}

[yellow]API at:[/yellow] [link]{url}{settings.API_V1_STR}[/link]
            """,
            title="Server Configuration",
            border_style="cyan",
        )
    )

    try:
        uvicorn.run(
            "kitconsole.main:app",
            host=host,
            port=port,
            reload=reload,
            log_level="info",
        )
    except KeyboardInterrupt:
        console.print("\n[yellow]Server stopped[/yellow]")
        sys.exit(0)


@main.command()
def init():
    """Create an empty known-plugins catalog in the project directory."""
    from kitconsole.config import settings
    from kitconsole.plugins.packages import KnownPlugins, dump_known_plugins

    path = settings.known_plugins_path
    if path.exists():
        console.print(f"[yellow]⚠ {path} already exists[/yellow]")
        return

    dump_known_plugins(path, KnownPlugins())
    console.print(f"[green]✓ Created {path}[/green]")
    console.print("Add plugin package names under [cyan]plugins.available[/cyan].")


@main.command()
@click.argument("mode", type=click.Choice(MODES))
@click.argument("package")
@click.option("--version", "version", default=None, help="Exact version to install")
def plan(mode: str, package: str, version: Optional[str]):
    """Show the npm command an operation would run, without running it."""
    from kitconsole.errors import ConsoleError
    from kitconsole.plugins.commands import resolve_command
    from kitconsole.plugins.router import build_plugin_service

    service = build_plugin_service()

    async def _resolve():
        manifest = service.resolver.read_manifest()
        info = await service.resolver.lookup(package, manifest)
        return resolve_command(
            mode,
            package,
            version,
            info,
            service.resolver.project_dir,
            manifest=manifest,
            npm_command=service.npm_command,
        )

    try:
        command_plan = asyncio.run(_resolve())
    except ConsoleError as e:
        console.print(f"[red]✗ {e.message}[/red]")
        sys.exit(1)

    console.print(f"[cyan]{command_plan.command_line}[/cyan]")
    console.print(f"[dim]in {command_plan.cwd}[/dim]")


@main.command()
@click.argument("mode", type=click.Choice(MODES))
@click.argument("package")
@click.option("--version", "version", default=None, help="Exact version to install")
@click.option("--wait", is_flag=True, help="Poll until the kit has restarted with the change")
@click.option("--timeout", default=300, help="Seconds to wait with --wait")
def run(mode: str, package: str, version: Optional[str], wait: bool, timeout: int):
    """Start an operation, optionally waiting for it to complete."""
    from kitconsole.config import settings
    from kitconsole.errors import ConsoleError
    from kitconsole.plugins.router import build_plugin_service
    from kitconsole.plugins.service import is_terminal
    from kitconsole.plugins.watcher import KitRestartDetector

    service = build_plugin_service()
    detector = None
    if wait:
        # Baseline the manifest before npm touches it
        detector = KitRestartDetector(
            settings.manifest_path,
            settings.KIT_URL,
            interval=settings.KIT_WATCH_INTERVAL,
        )
        detector.start()

    try:
        asyncio.run(service.start_operation(mode, package, version))
    except ConsoleError as e:
        console.print(f"[red]✗ {e.message}[/red]")
        if detector is not None:
            detector.stop()
        sys.exit(1)

    console.print(f"[cyan]⚙ {mode} {package}: processing[/cyan]")
    console.print(f"[dim]npm output: {service.launcher.log_path(package)}[/dim]")
    if not wait:
        return

    deadline = time.monotonic() + timeout
    try:
        while True:
            report = asyncio.run(service.check_status(mode, package, version))
            if is_terminal(report):
                break
            if time.monotonic() > deadline:
                console.print("[yellow]⚠ Timed out waiting for the kit to restart[/yellow]")
                sys.exit(2)
            time.sleep(settings.KIT_WATCH_INTERVAL)
    finally:
        detector.stop()

    if report.status.value == "completed":
        console.print(f"[bold green]✓ {mode} {package} completed[/bold green]")
    else:
        console.print(f"[red]✗ {report.message}[/red]")
        sys.exit(1)


@main.command()
@click.argument("mode", type=click.Choice(MODES))
@click.argument("package")
@click.option("--version", "version", default=None, help="Version the operation asked for")
@click.option("--restarted", is_flag=True, help="Treat the kit as already restarted")
def status(mode: str, package: str, version: Optional[str], restarted: bool):
    """Evaluate an operation's status once against the project on disk."""
    from kitconsole.plugins.router import build_plugin_service
    from kitconsole.plugins.schemas import OperationRequest
    from kitconsole.plugins.status import reconcile

    service = build_plugin_service()
    request = OperationRequest(mode=mode, package_name=package, requested_version=version)
    report = asyncio.run(
        reconcile(request, restarted or service.signal.is_set(), service.resolver)
    )

    colour = {"completed": "green", "processing": "cyan"}.get(report.status.value, "red")
    console.print(f"[{colour}]{report.status.value}[/{colour}]")
    if report.message:
        console.print(f"[dim]{report.message}[/dim]")
    if report.status.value == "error":
        sys.exit(1)


@main.command()
def version():
    """Show version information."""
    from rich.table import Table

    table = Table(title="Version Information", show_header=False)
    table.add_row("Package", "kitconsole")
    table.add_row("Version", __version__)
    table.add_row(
        "Python",
        f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}",
    )

    console.print(table)


if __name__ == "__main__":
    main()
