"""shipwright render command - Print the runtime Containerfile."""

from __future__ import annotations

from pathlib import Path

import click

from shipwright_cli import output
from shipwright_cli.config import load_release_spec


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
    "-o",
    "--output",
    "output_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Write the Containerfile here instead of stdout",
)
def render(file_path: str | None, output_path: str | None) -> None:
    """Render the runtime image Containerfile without building anything.

    The build context is the dist directory, so the file can be used
    directly after `shipwright build`:

        docker build -f Containerfile .shipwright/dist

    Examples:

        shipwright render

        shipwright render -o Containerfile
    """
    spec = load_release_spec(file_path)

    from shipwright_core.errors import ShipwrightError
    from shipwright_core.image import RuntimeImageAssembler, render_containerfile

    try:
        containerfile = render_containerfile(RuntimeImageAssembler(spec).preview())
    except ShipwrightError as e:
        output.error(e.user_message, markup=False)
        raise SystemExit(1) from None

    if output_path is None:
        output.console.file.write(containerfile)
        return

    try:
        Path(output_path).write_text(containerfile)
    except PermissionError:
        output.error(f"Cannot write {output_path}")
        raise SystemExit(2) from None
    output.success(f"Wrote {output_path}")
