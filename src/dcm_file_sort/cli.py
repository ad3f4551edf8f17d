"""Command line interface for the DICOM file sorter."""

import logging
import os
import signal
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.prompt import Confirm, IntPrompt, Prompt
from rich.table import Table

from . import __version__
from .core.metadata import MetadataHandler
from .core.organizer import DicomFileSorter, ShutdownSignal
from .core.path_generators import create_path_generator
from .core.scanner import FileScanner
from .exceptions import DicomSortError, PathGenerationError
from .models.config import (
    LOG_LEVELS,
    Config,
    LogConfig,
    OtherConfig,
    PathGeneratorsConfig,
    PathGeneratorType,
    PathsConfig,
    create_default_config,
    load_config,
    save_config,
)
from .models.sorting import CycleReport, Disposition, Identified

LOG_ENV_VAR = "DCM_FILE_SORT_LOG"

console = Console()


def resolve_log_level(config: Optional[Config], verbose: bool = False, debug: bool = False) -> int:
    """Pick the log level: --debug, then --verbose, then the environment, then the config."""
    if debug:
        return logging.DEBUG
    if verbose:
        return logging.INFO

    env_level = os.environ.get(LOG_ENV_VAR, "").strip()
    if env_level:
        if env_level.upper() in LOG_LEVELS:
            return Config(log=LogConfig(level=env_level)).log_level
        console.print(f"[yellow]Ignoring invalid {LOG_ENV_VAR} value: {env_level}[/yellow]")

    return config.log_level if config else logging.INFO


def configure_logging(level: int) -> None:
    """Send log records to the console through rich."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def install_signal_handlers(shutdown: ShutdownSignal) -> None:
    """Request a graceful stop on SIGINT and SIGTERM; the main loop logs it."""
    def handler(signum, frame):
        shutdown.request(signal.Signals(signum).name)

    signal.signal(signal.SIGINT, handler)
    signal.signal(signal.SIGTERM, handler)


def render_cycle_report(report: CycleReport) -> Table:
    """Build a rich table summarizing one cycle."""
    table = Table(title="Results")
    table.add_column("Disposition", style="cyan")
    table.add_column("Count", justify="right")

    for disposition, count in report.summary().items():
        table.add_row(disposition.replace("_", " ").title(), str(count))

    return table


@click.group()
@click.version_option(__version__, prog_name="dcm-file-sort")
def cli():
    """Sort incoming DICOM files into a directory tree built from their headers."""
    pass


@cli.command()
@click.option(
    '--config',
    'config_path',
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Configuration file path'
)
@click.option(
    '--once',
    is_flag=True,
    help='Process a single batch and exit'
)
@click.option(
    '--verbose',
    is_flag=True,
    help='Verbose output'
)
@click.option(
    '--debug',
    is_flag=True,
    help='Debug output'
)
def run(config_path: Path, once: bool, verbose: bool, debug: bool):
    """Watch the input directory and sort files until interrupted."""

    try:
        cfg = load_config(config_path)
        configure_logging(resolve_log_level(cfg, verbose=verbose, debug=debug))

        cfg.create_dirs()
        cfg.check_roots()

        shutdown = ShutdownSignal()
        install_signal_handlers(shutdown)
        sorter = DicomFileSorter(cfg, shutdown=shutdown)

        if once:
            sorter.clean_leftovers()
            report = sorter.run_cycle()
            console.print(render_cycle_report(report))
            failures = [
                f for f in report.files
                if f.disposition in (Disposition.FAILED, Disposition.PARTIAL)
            ]
            if failures:
                console.print("\n[red]Errors encountered:[/red]")
                for failure in failures[:10]:
                    console.print(f"  • {failure.source.name}: {failure.message}")
                if len(failures) > 10:
                    console.print(f"  ... and {len(failures) - 10} more errors")
        else:
            sorter.run()

    except DicomSortError as e:
        console.print(f"\n[red]Error: {e}[/red]")
        sys.exit(1)


@cli.command('init-config')
@click.option(
    '--output',
    type=click.Path(dir_okay=False, path_type=Path),
    default=Path('config.toml'),
    show_default=True,
    help='Where to write the configuration'
)
@click.option(
    '--interactive',
    is_flag=True,
    help='Prompt for each setting'
)
@click.option(
    '--force',
    is_flag=True,
    help='Overwrite an existing file without asking'
)
def init_config(output: Path, interactive: bool, force: bool):
    """Write a configuration file with default settings."""

    try:
        if output.exists() and not force:
            if not Confirm.ask(f"{output} exists. Overwrite?", console=console):
                console.print("[yellow]Cancelled[/yellow]")
                return

        if interactive:
            cfg = _prompt_config()
            save_config(cfg, output)
        else:
            cfg = create_default_config(output)

        console.print(f"[green]✓ Configuration written to {output}[/green]")
        if not interactive:
            console.print("Edit the [cyan][paths][/cyan] section before starting the service.")

    except DicomSortError as e:
        console.print(f"\n[red]Error: {e}[/red]")
        sys.exit(1)
    except OSError as e:
        console.print(f"\n[red]Error: unable to write {output}: {e}[/red]")
        sys.exit(1)


def _prompt_config() -> Config:
    """Ask for the settings that usually differ between installations."""
    defaults = OtherConfig()

    input_dir = Prompt.ask("Input directory", console=console)
    output_dir = Prompt.ask("Output directory", console=console)
    unknown_dir = Prompt.ask("Unknown directory", console=console)
    generator = Prompt.ask(
        "Path generator",
        choices=[t.value for t in PathGeneratorType],
        default=PathGeneratorType.DEFAULT.value,
        console=console,
    )
    level = Prompt.ask(
        "Log level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        console=console,
    )
    wait_time = IntPrompt.ask(
        "Wait time between scans (ms)",
        default=defaults.wait_time_millisec,
        console=console,
    )

    cfg = Config(
        paths=PathsConfig(
            input_dir=Path(input_dir).expanduser(),
            output_dir=Path(output_dir).expanduser(),
            unknown_dir=Path(unknown_dir).expanduser(),
        ),
        path_generators=PathGeneratorsConfig(dicom=generator),
        log=LogConfig(level=level),
        other=OtherConfig(wait_time_millisec=wait_time),
    )
    cfg.validate()
    return cfg


@cli.command()
@click.argument('file_path', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    '--generator',
    type=click.Choice([t.value for t in PathGeneratorType]),
    default=PathGeneratorType.DEFAULT.value,
    show_default=True,
    help='Path generator used to compute the destination'
)
def inspect(file_path: Path, generator: str):
    """Show the header fields of FILE_PATH and where it would be sorted."""

    try:
        fields = MetadataHandler.read_fields(file_path)

        console.print(f"\n[bold]File: {file_path.name}[/bold]")

        info_table = Table()
        info_table.add_column("Field", style="cyan")
        info_table.add_column("Value")
        for name, value in fields.items():
            info_table.add_row(name, value)
        console.print(info_table)

        path_generator = create_path_generator(PathGeneratorType.parse(generator))
        try:
            spec = path_generator.generate(Identified(fields))
            console.print(f"\nDestination: [green]{spec.relative_path}[/green]")
        except PathGenerationError as e:
            console.print(f"\nDestination: [yellow]unknown directory[/yellow] ({e})")

    except DicomSortError as e:
        console.print(f"\n[red]Error: {e}[/red]")
        sys.exit(1)
    except OSError as e:
        console.print(f"\n[red]Error: unable to read {file_path}: {e}[/red]")
        sys.exit(1)


@cli.command()
@click.option(
    '--config',
    'config_path',
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Configuration file path'
)
def scan(config_path: Path):
    """List the files the next batch would process, without moving anything."""

    try:
        cfg = load_config(config_path)
        scanner = FileScanner(
            cfg.paths.input_dir,
            settle_delay=cfg.other.mtime_delay_secs,
            max_batch=cfg.other.limit_max_processed_files,
            recursive=cfg.other.recursive,
        )
        candidates = scanner.scan()

        if not candidates:
            console.print("[yellow]No settled files found[/yellow]")
            return

        table = Table(title=f"Next batch ({len(candidates)} files)")
        table.add_column("File", style="cyan")
        table.add_column("Size", justify="right")
        table.add_column("Modified")

        for candidate in candidates:
            try:
                name = str(candidate.path.relative_to(cfg.paths.input_dir))
            except ValueError:
                name = str(candidate.path)
            table.add_row(
                name,
                f"{candidate.size:,}",
                candidate.modified_at.strftime("%Y-%m-%d %H:%M:%S"),
            )

        console.print(table)

    except DicomSortError as e:
        console.print(f"\n[red]Error: {e}[/red]")
        sys.exit(1)


def main():
    """Entry point for the CLI."""
    cli()


if __name__ == '__main__':
    main()
