# src/rebound/cli.py
"""rebound Command Line Interface.

Inspects policy configuration; the engine itself is a library and is not
driven from the command line.
"""

from __future__ import annotations

import json
from pathlib import Path

import typer
from dynaconf.vendor.ruamel.yaml.parser import ParserError as YamlParserError
from dynaconf.vendor.ruamel.yaml.scanner import ScannerError as YamlScannerError
from pydantic import ValidationError

from rebound import __version__
from rebound.contracts.errors import ConfigurationError
from rebound.contracts.policy import Policy
from rebound.core.config import ReboundSettings, load_settings
from rebound.engine.backoff import BackoffScheduler

__all__ = ["app"]

app = typer.Typer(
    name="rebound",
    help="rebound: resilient invocation of fallible external calls.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"rebound version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose/debug logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Output structured JSON logs (for machine processing).",
    ),
) -> None:
    """rebound: resilient invocation of fallible external calls."""
    from rebound.core.logging import configure_logging

    # Flags win over the settings file; None leaves the file's value in place
    ctx.obj = {"level": "DEBUG" if verbose else None, "json_output": True if json_logs else None}
    configure_logging(**ctx.obj)


def _format_validation_error(
    title: str,
    message: str,
    hint: str | None = None,
    details: list[str] | None = None,
) -> None:
    """Display a formatted validation error with optional hint and details."""
    from rich.console import Console
    from rich.panel import Panel
    from rich.text import Text

    console = Console(stderr=True)

    content = Text()
    content.append(message, style="white")

    if details:
        content.append("\n\n")
        for detail in details:
            content.append(f"  • {detail}\n", style="dim")

    if hint:
        content.append("\n")
        content.append("Hint: ", style="yellow bold")
        content.append(hint, style="yellow")

    console.print(Panel(content, title=f"[red bold]{title}[/]", border_style="red"))


def _load_policy(ctx: typer.Context, settings_path: Path) -> tuple[ReboundSettings, Policy]:
    """Load settings, apply their logging section and build the runtime Policy.

    Exits 1 on any error.
    """
    from rebound.core.logging import configure_logging

    try:
        settings = load_settings(settings_path)
        configure_logging(settings.logging, **(ctx.obj or {}))
        return settings, settings.policy.to_policy()
    except (YamlParserError, YamlScannerError) as e:
        _format_validation_error(
            title="YAML Syntax Error",
            message=f"Failed to parse {settings_path.name}",
            details=[str(e.problem)] if hasattr(e, "problem") else None,
            hint="Check for unclosed brackets, incorrect indentation, or invalid characters.",
        )
        raise typer.Exit(1) from None
    except FileNotFoundError:
        _format_validation_error(
            title="File Not Found",
            message=f"Settings file does not exist: {settings_path}",
            hint="Check the path and ensure the file exists.",
        )
        raise typer.Exit(1) from None
    except ValidationError as e:
        # Must be before ConfigurationError/ValueError: ValidationError inherits from ValueError
        details = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            details.append(f"{loc}: {error['msg']}")
        _format_validation_error(
            title="Configuration Validation Failed",
            message=f"Invalid settings in {settings_path.name}",
            details=details,
            hint="Check field names, types, and ranges.",
        )
        raise typer.Exit(1) from None
    except ConfigurationError as e:
        _format_validation_error(
            title="Invalid Policy",
            message=str(e),
            details=[f"field: {e.field}"] if e.field else None,
        )
        raise typer.Exit(1) from None


@app.command()
def validate(
    ctx: typer.Context,
    settings: Path = typer.Argument(..., help="Path to settings file (YAML or TOML)."),
) -> None:
    """Validate a settings file and print the resolved policy as JSON."""
    _, policy = _load_policy(ctx, settings.expanduser())
    typer.echo(json.dumps(policy.to_dict(), indent=2))


@app.command()
def schedule(
    ctx: typer.Context,
    settings: Path = typer.Argument(..., help="Path to settings file (YAML or TOML)."),
    as_json: bool = typer.Option(False, "--json", help="Print the schedule as a JSON list."),
) -> None:
    """Show the backoff delay before each retry the policy allows."""
    _, policy = _load_policy(ctx, settings.expanduser())
    delays = BackoffScheduler(policy).schedule()

    if as_json:
        typer.echo(json.dumps(delays))
        return

    if not delays:
        typer.echo("max_attempts=1: no retries, no delays")
        return

    from rich.console import Console
    from rich.table import Table

    table = Table(title=f"Backoff schedule ({policy.max_attempts} attempts)")
    table.add_column("After attempt", justify="right")
    table.add_column("Delay (s)", justify="right")
    table.add_column("Cumulative (s)", justify="right")

    cumulative = 0.0
    for attempt_index, delay in enumerate(delays, start=1):
        cumulative += delay
        table.add_row(str(attempt_index), f"{delay:.3f}", f"{cumulative:.3f}")
    if policy.jitter:
        table.caption = f"jitter ±{policy.jitter:.0%}: values shown are one sample"

    Console().print(table)


if __name__ == "__main__":
    app()
