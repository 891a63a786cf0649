"""shipwright validate command - Check configuration, manifests and lock."""

from __future__ import annotations

import click

from shipwright_cli.config import load_release_spec
from shipwright_cli.output import error, info, success


@click.command()
@click.option(
    "-f",
    "--file",
    "file_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to shipwright.yaml [default: search from the current directory]",
)
def validate(file_path: str | None) -> None:
    """Validate shipwright.yaml against the Cargo workspace.

    Checks, without fetching or compiling anything:

    - the release configuration schema
    - every workspace member manifest and the lock artifact
    - that the lock satisfies every manifest requirement
    - that each release binary exists in its package
    - that the runtime image plan holds no build tooling or baked secrets

    Examples:

        shipwright validate

        shipwright validate --file deploy/shipwright.yaml
    """
    spec = load_release_spec(file_path)

    from shipwright_core.build import BuildGraph
    from shipwright_core.errors import ManifestLockMismatchError, ShipwrightError
    from shipwright_core.image import RuntimeImageAssembler
    from shipwright_core.manifest import load_manifest_set
    from shipwright_core.resolver import check_lock_consistency

    try:
        manifest_set = load_manifest_set(spec.workspace_dir)
        problems = check_lock_consistency(manifest_set)
        if problems:
            raise ManifestLockMismatchError(problems)
        units = BuildGraph.from_manifest_set(manifest_set).plan(list(spec.binaries))
        image = RuntimeImageAssembler(spec).preview()
    except ShipwrightError as e:
        error(e.user_message, markup=False)
        raise SystemExit(1) from None

    info(
        f"Workspace: {len(manifest_set.members)} members, "
        f"{len(manifest_set.lockfile.registry_packages())} locked registry packages"
    )
    for unit in units:
        info(f"  {unit.target.installed_name}: {' -> '.join(unit.members)}", markup=False)
    info(f"Image: {image.tag} (uid {image.user.uid}, entrypoint {image.entrypoint})", markup=False)
    success("Release configuration valid")
