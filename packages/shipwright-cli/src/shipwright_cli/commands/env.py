"""shipwright env command - Check a service environment before launch."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any

import click
from rich.table import Table
from rich.text import Text

from shipwright_cli import output

if TYPE_CHECKING:
    from shipwright_core.schemas import ServiceEnvironment

MASK = "********"


def collect_environment(env_files: tuple[str, ...], ignore_environment: bool) -> dict[str, str]:
    """Merge the process environment with .env files, later files winning."""
    from dotenv import dotenv_values

    values: dict[str, str] = {} if ignore_environment else dict(os.environ)
    for env_file in env_files:
        for key, value in dotenv_values(env_file).items():
            if value is not None:
                values[key] = value
    return values


def describe_environment(schema: ServiceEnvironment, env: dict[str, str]) -> list[dict[str, Any]]:
    """One row per schema variable with masked secrets and its problem, if any."""
    problems = schema.check_values(env)
    rows: list[dict[str, Any]] = []
    for variable in schema.variables:
        raw = env.get(variable.name)
        if raw is not None:
            source = "set"
            value = MASK if variable.secret else raw
        elif variable.default is not None:
            source = "default"
            value = variable.default
        else:
            source = "unset"
            value = None
        rows.append(
            {
                "name": variable.name,
                "value": value,
                "source": source,
                "required": variable.required,
                "secret": variable.secret,
                "problem": problems.get(variable.name),
            }
        )
    return rows


def _print_table(service: str, rows: list[dict[str, Any]]) -> None:
    table = Table(title=f"{service} environment", show_header=True, header_style="bold")
    table.add_column("Status", width=6, justify="center")
    table.add_column("Variable")
    table.add_column("Value")
    table.add_column("Source")

    for row in rows:
        ok = row["problem"] is None
        status = Text("ok" if ok else "FAIL", style="green" if ok else "red")
        value = row["value"] if row["value"] is not None else "-"
        if not ok:
            value = f"{value}  ({row['problem']})"
        table.add_row(status, row["name"], Text(value), row["source"])

    output.console.print(table)


@click.command()
@click.option(
    "--env-file",
    "env_files",
    type=click.Path(exists=True, dir_okay=False),
    multiple=True,
    help="Read variables from a .env file; repeatable",
)
@click.option(
    "-i",
    "--ignore-environment",
    is_flag=True,
    default=False,
    help="Check only the --env-file values, not the current process environment",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format [default: table]",
)
def env(env_files: tuple[str, ...], ignore_environment: bool, output_format: str) -> None:
    """Validate a service environment against the backvonia schema.

    Required variables must be set, typed variables must parse, and unset
    optional variables fall back to their defaults. Secret values are
    never printed.

    Examples:

        shipwright env

        shipwright env -i --env-file .env.production --format json
    """
    from shipwright_core.schemas import BACKVONIA_ENVIRONMENT

    values = collect_environment(env_files, ignore_environment)
    rows = describe_environment(BACKVONIA_ENVIRONMENT, values)
    invalid = [row["name"] for row in rows if row["problem"] is not None]

    if output_format == "json":
        output.print_json(
            {
                "service": BACKVONIA_ENVIRONMENT.service,
                "valid": not invalid,
                "variables": rows,
            }
        )
    else:
        _print_table(BACKVONIA_ENVIRONMENT.service, rows)

    if invalid:
        if output_format == "table":
            output.error(f"Environment invalid: {', '.join(invalid)}")
        raise SystemExit(1)
    if output_format == "table":
        output.success("Environment valid")
