"""shipwright init command - Write a default release configuration."""

from __future__ import annotations

import re
from pathlib import Path

import click

from shipwright_cli.output import error, success, warning

_NAME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_-]*$")

RELEASE_TEMPLATE = """\
# {{ name }} release configuration
#
# shipwright resolves the locked dependencies of the Cargo workspace,
# builds the binaries below and installs them into a minimal runtime image.

name: {{ name }}
workspace: {{ workspace }}

binaries:
  - package: {{ service }}
    role: service
{% if migration %}
  - package: {{ migration }}
    install_name: {{ service }}-migrate
    role: auxiliary
{% endif %}

build:
  profile: release
  parallel: true

runtime:
  base_image: debian:trixie-slim
  packages:
    - ca-certificates
    - libssl3
  install_dir: /usr/local/bin
  user:
    name: appuser
    uid: {{ uid }}
  port: {{ port }}
  env:
    HOST: "0.0.0.0"
    PORT: "{{ port }}"
    RUST_LOG: "info,{{ service | replace('-', '_') }}=debug"
"""


def render_release_file(
    name: str,
    *,
    workspace: str = ".",
    service: str | None = None,
    migration: str | None = "migration",
    uid: int = 10001,
    port: int = 8080,
) -> str:
    """Render shipwright.yaml content from the bundled template."""
    from jinja2.sandbox import SandboxedEnvironment

    env = SandboxedEnvironment(trim_blocks=True, lstrip_blocks=True)
    return env.from_string(RELEASE_TEMPLATE).render(
        name=name,
        workspace=workspace,
        service=service or name,
        migration=migration,
        uid=uid,
        port=port,
    )


@click.command()
@click.option(
    "-n",
    "--name",
    "name",
    type=str,
    default=None,
    help="Release name [default: current directory name]",
)
@click.option(
    "--service",
    type=str,
    default=None,
    help="Package holding the service binary [default: release name]",
)
@click.option(
    "--migration",
    type=str,
    default="migration",
    help="Package holding the migration binary",
)
@click.option("--no-migration", is_flag=True, default=False, help="Release no migration binary")
@click.option("--force", is_flag=True, default=False, help="Overwrite an existing shipwright.yaml")
def init(
    name: str | None,
    service: str | None,
    migration: str,
    no_migration: bool,
    force: bool,
) -> None:
    """Write a default shipwright.yaml in the current directory.

    The defaults describe a service binary installed as the entry point, a
    migration binary installed as `<service>-migrate`, and a Debian slim
    runtime running as uid 10001 on port 8080.

    Examples:

        shipwright init

        shipwright init --name backvonia

        shipwright init --service api --no-migration --force
    """
    if name is None:
        name = Path.cwd().name

    release_path = Path("shipwright.yaml")
    existed = release_path.exists()
    if existed and not force:
        error("shipwright.yaml already exists.")
        error("Use --force to overwrite.")
        raise SystemExit(1)

    for label, value in (("release name", name), ("service package", service)):
        if value is not None and not _NAME_RE.match(value):
            error(f"Invalid {label}: {value}")
            error("Names start with a letter and contain letters, digits, '-' or '_'.")
            raise SystemExit(1)

    content = render_release_file(
        name,
        service=service,
        migration=None if no_migration else migration,
    )

    try:
        import yaml
        from shipwright_core.schemas import ReleaseSpec

        ReleaseSpec.model_validate(yaml.safe_load(content))
        release_path.write_text(content)
    except PermissionError:
        error("Cannot write to current directory.")
        raise SystemExit(2) from None
    except ValueError as e:
        error(f"Failed to create release configuration: {e}")
        raise SystemExit(1) from None

    if existed:
        warning("Overwrote existing shipwright.yaml")
    success(f"Created release configuration: {name}")
