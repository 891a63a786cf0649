"""shipwright fetch command - Resolve locked dependencies into the cache."""

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
    "--format",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format [default: table]",
)
def fetch(file_path: str | None, output_format: str) -> None:
    """Resolve and fetch every locked registry package.

    Fails before any download when the lock does not satisfy the
    manifests. An unchanged workspace is a cache hit with zero fetches.
    The cache lives in SHIPWRIGHT_CACHE_DIR when set.

    Examples:

        shipwright fetch

        SHIPWRIGHT_CACHE_DIR=/ci/cache shipwright fetch --format json
    """
    from shipwright_core.pipeline import PipelineState

    spec = load_release_spec(file_path)
    run_pipeline(spec, until=PipelineState.DEPENDENCIES_RESOLVED, output_format=output_format)
