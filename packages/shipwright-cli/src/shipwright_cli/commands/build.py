"""shipwright build command - Resolve, compile and collect release binaries."""

from __future__ import annotations

import click

from shipwright_cli.config import load_release_spec, run_pipeline


@click.command()
@click.option(
    "-f",
    "--file",
    "file_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to shipwright.yaml [default: search from the current directory]",
)
@click.option(
    "-p",
    "--package",
    "packages",
    multiple=True,
    help="Build only this binary (package or install name); repeatable",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format [default: table]",
)
def build(file_path: str | None, packages: tuple[str, ...], output_format: str) -> None:
    """Build release binaries and collect them into the dist directory.

    Only the selected binaries and the workspace members they depend on
    are compiled. On failure nothing from this run is left in the dist
    directory.

    Examples:

        shipwright build

        shipwright build -p backvonia

        shipwright build -p migration --format json
    """
    from shipwright_core.pipeline import PipelineState

    spec = load_release_spec(file_path)
    run_pipeline(
        spec,
        until=PipelineState.BINARIES_COLLECTED,
        output_format=output_format,
        targets=list(packages) or None,
    )
