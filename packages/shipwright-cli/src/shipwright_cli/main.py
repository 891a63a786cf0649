"""CLI entry point for shipwright.

The main group loads subcommands lazily so --help stays fast without
importing the pipeline, httpx or pydantic models.
"""

from __future__ import annotations

import importlib
from typing import Any

import click
import rich_click as rclick

from shipwright_cli import __version__
from shipwright_cli.output import set_no_color

rclick.rich_click.TEXT_MARKUP = "markdown"
rclick.rich_click.SHOW_ARGUMENTS = True
rclick.rich_click.GROUP_ARGUMENTS_OPTIONS = True


class LazyGroup(rclick.RichGroup):
    """Click group that imports a command only when it is requested.

    Attributes:
        lazy_subcommands: Command name to "module.attribute" path.
    """

    def __init__(
        self,
        *args: Any,
        lazy_subcommands: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(*args, **kwargs)
        self.lazy_subcommands: dict[str, str] = lazy_subcommands or {}

    def list_commands(self, ctx: click.Context) -> list[str]:
        commands = set(super().list_commands(ctx))
        commands.update(self.lazy_subcommands.keys())
        return sorted(commands)

    def get_command(self, ctx: click.Context, cmd_name: str) -> click.Command | None:
        cmd = super().get_command(ctx, cmd_name)  # type: ignore[arg-type]
        if cmd is not None:
            return cmd

        if cmd_name not in self.lazy_subcommands:
            return None

        module_name, attr_name = self.lazy_subcommands[cmd_name].rsplit(".", 1)
        mod = importlib.import_module(module_name)
        return getattr(mod, attr_name)  # type: ignore[no-any-return]


LAZY_COMMANDS = {
    "init": "shipwright_cli.commands.init.init",
    "validate": "shipwright_cli.commands.validate.validate",
    "fetch": "shipwright_cli.commands.fetch.fetch",
    "build": "shipwright_cli.commands.build.build",
    "release": "shipwright_cli.commands.release.release",
    "render": "shipwright_cli.commands.render.render",
    "env": "shipwright_cli.commands.env.env",
}


def _configure_logging(verbose: bool, log_json: bool) -> None:
    from shipwright_core.observability import configure_logging

    configure_logging(
        log_level="DEBUG" if verbose else "WARNING",
        json_format=log_json,
        add_timestamp=log_json,
    )


@click.command(cls=LazyGroup, lazy_subcommands=LAZY_COMMANDS)
@click.version_option(version=__version__, prog_name="shipwright")
@click.option(
    "--no-color",
    is_flag=True,
    default=False,
    help="Disable colored output.",
    is_eager=True,
    expose_value=False,
    callback=lambda ctx, param, value: set_no_color(value) if value else None,
)
@click.option("-v", "--verbose", is_flag=True, default=False, help="Debug logs on stderr.")
@click.option("--log-json", is_flag=True, default=False, help="Emit logs as JSON lines.")
def cli(verbose: bool, log_json: bool) -> None:
    """Shipwright - reproducible builds and minimal runtime images for Cargo workspaces.

    Resolve locked dependencies, compile release binaries, collect them and
    assemble a non-root runtime image, driven by shipwright.yaml.

    **Getting Started:**

    - `shipwright init` - Write a default shipwright.yaml
    - `shipwright validate` - Check configuration, manifests and lock
    - `shipwright build` - Resolve, compile and collect binaries
    - `shipwright release` - Run the full pipeline and build the image

    **Runtime:**

    - `shipwright render` - Print the runtime Containerfile
    - `shipwright env` - Check a service environment before launch
    """
    _configure_logging(verbose, log_json)


if __name__ == "__main__":
    cli()
