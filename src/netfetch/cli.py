"""
Command-line interface for Netfetch.

Provides commands for collecting a host snapshot and inspecting the module
registry.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from netfetch import __version__
from netfetch.config import Config

console = Console()


def setup_logging(level: str, log_file: str | None = None) -> None:
    """Configure logging with rich handler."""
    handlers: list[logging.Handler] = [RichHandler(console=console, rich_tracebacks=True)]
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        handlers.append(file_handler)

    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=handlers,
        force=True,
    )


@click.group()
@click.version_option(version=__version__, prog_name="netfetch")
@click.option(
    "-c",
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file",
)
@click.option(
    "-V",
    "--verbose",
    is_flag=True,
    help="Enable verbose output",
)
@click.pass_context
def main(ctx: click.Context, config: Path | None, verbose: bool) -> None:
    """
    Netfetch - host hardware, OS, desktop and network snapshot.
    """
    ctx.ensure_object(dict)

    ctx.obj["config"] = Config.load(config) if config else Config.load()

    log_level = "DEBUG" if verbose else ctx.obj["config"].log_level
    setup_logging(log_level, ctx.obj["config"].log_file)
    ctx.obj["verbose"] = verbose


@main.command()
@click.option(
    "--module",
    "-m",
    "modules",
    multiple=True,
    help="Specific modules to run (can be repeated)",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path),
    help="Write JSON snapshot to file instead of stdout",
)
@click.option(
    "--format",
    "-f",
    type=click.Choice(["json", "pretty"]),
    default="pretty",
    help="Output format",
)
@click.pass_context
def collect(
    ctx: click.Context,
    modules: tuple[str, ...],
    output: Path | None,
    format: str,
) -> None:
    """
    Collect a host snapshot.

    By default, runs every configured module. Use --module to run specific
    modules only.
    """
    from netfetch.core import Collector

    config: Config = ctx.obj["config"]
    active = list(modules) if modules else None

    if format == "pretty":
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task("Collecting host information...", total=None)
            collector = Collector(active, config=config)
            collector.collect_dynamic()
            progress.update(task, completed=True)
    else:
        collector = Collector(active, config=config)
        collector.collect_dynamic()

    snapshot = collector.snapshot()

    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(snapshot.to_json())
        console.print(f"[dim]Snapshot saved to: {output}[/]")
    elif format == "json":
        # Plain stdout so the output stays machine readable.
        click.echo(snapshot.to_json())
    else:
        _display_snapshot(snapshot, list(collector.modules.values()))


def format_value(value: Any) -> str:
    """Render one snapshot field as a single display line."""
    if value is None or value == "" or value == []:
        return "[dim]Unknown[/]"
    if isinstance(value, list):
        return ", ".join(format_value(item) for item in value)
    if hasattr(value, "__dataclass_fields__"):
        parts = []
        for name in value.__dataclass_fields__:
            item = getattr(value, name)
            if item in ("", 0, 0.0, None, []) and not isinstance(item, bool):
                continue
            parts.append(f"{name}={format_value(item)}")
        return " ".join(parts) or "[dim]Unknown[/]"
    return str(value)


def _display_snapshot(snapshot, modules) -> None:
    """Display the collected fields grouped by module."""
    table = Table(title=f"Netfetch v{__version__}", show_header=True)
    table.add_column("Module", style="cyan")
    table.add_column("Field", style="dim")
    table.add_column("Value")

    for module in modules:
        for field_name in module.fields:
            table.add_row(module.name, field_name, format_value(getattr(snapshot, field_name)))

    console.print()
    console.print(table)


@main.command("list")
def list_available() -> None:
    """List all available modules."""
    from netfetch.collectors import COLLECTORS

    table = Table(title="Available Modules", show_header=True)
    table.add_column("Name", style="cyan")
    table.add_column("Kind", justify="center")
    table.add_column("Description")

    for name, cls in COLLECTORS.items():
        kind = "[yellow]dynamic[/]" if cls.dynamic else "[green]static[/]"
        table.add_row(name, kind, cls.description)

    console.print()
    console.print(table)


@main.command("version", short_help="Display version information")
def version() -> None:
    """Display version information for Netfetch."""
    console.print()
    console.print(
        Panel.fit(
            f"[bold blue]Netfetch[/]\nVersion: [cyan]{__version__}[/]",
            border_style="blue",
            title="Version Information",
        )
    )
    console.print()

    table = Table(show_header=False, box=None)
    table.add_column("Component", style="dim", width=20)
    table.add_column("Version", style="cyan")

    table.add_row("Netfetch", __version__)
    table.add_row("Python", sys.version.split()[0])

    console.print(table)
    console.print()


@main.command()
@click.argument("output_path", type=click.Path(path_type=Path))
def init_config(output_path: Path) -> None:
    """
    Generate a sample configuration file.

    Creates a YAML configuration file with all available options
    and helpful comments.
    """
    sample_config = """# Netfetch Configuration

# Collection settings
collection:
  # Modules to collect, in order (empty list = defaults)
  modules: []

  # Modules to skip
  disabled: []

  # Seconds between dynamic refreshes when running on a timer
  interval: 300

  # Timeout for every external command, in seconds
  command_timeout: 10

  # Timeout for the whole package census, in seconds
  census_timeout: 30

# Public IP lookup (only used when the public_ip module is enabled)
public_ip:
  timeout: 3
  services:
    - https://api.ipify.org
    - https://ifconfig.me/ip
    - https://icanhazip.com

# Desktop configuration directory (defaults to $XDG_CONFIG_HOME or ~/.config)
desktop:
  config_home: null

# Logging
logging:
  # Log level: DEBUG, INFO, WARNING, ERROR
  level: INFO

  # Log file path (null = stderr only)
  file: null
"""

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(sample_config)
    console.print(f"[green]✓ Configuration file created: {output_path}[/]")
    console.print()
    console.print("Next steps:")
    console.print("  1. Pick the modules you want under collection.modules")
    console.print("  2. Run collection: [cyan]netfetch -c PATH collect[/]")


if __name__ == "__main__":
    main()
