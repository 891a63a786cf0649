"""shipwright release command - Run the full pipeline."""

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
    "--docker",
    default="docker",
    show_default=True,
    help="Container CLI used to build and inspect the image",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format [default: table]",
)
def release(file_path: str | None, docker: str, output_format: str) -> None:
    """Resolve, build, collect and assemble the runtime image.

    The image holds every release binary in the install directory, runs as
    the configured non-root uid and starts the service binary. Auxiliary
    binaries such as migrations are installed but never started; run them
    to completion and check their exit status.

    Examples:

        shipwright release

        shipwright release --docker podman --format json
    """
    from shipwright_core.pipeline import PipelineState

    spec = load_release_spec(file_path)
    run_pipeline(
        spec,
        until=PipelineState.IMAGE_ASSEMBLED,
        output_format=output_format,
        docker=docker,
    )
