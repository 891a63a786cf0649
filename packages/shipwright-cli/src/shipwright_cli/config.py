"""Shared command plumbing: loading shipwright.yaml and running the pipeline."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import yaml
from pydantic import ValidationError as PydanticValidationError

from shipwright_cli import output
from shipwright_cli.errors import (
    EXIT_SUCCESS,
    EXIT_USER_ERROR,
    CLIError,
    handle_file_not_found,
    handle_permission_error,
    handle_validation_error,
    handle_yaml_error,
)

if TYPE_CHECKING:
    from shipwright_core.pipeline import PipelineState
    from shipwright_core.schemas import ReleaseSpec


def load_release_spec(file_path: str | None) -> ReleaseSpec:
    """Locate and load the release configuration.

    Args:
        file_path: Explicit path from --file, or None to search
            SHIPWRIGHT_CONFIG, then the current directory and its parents.

    Raises:
        CLIError: With EXIT_SYSTEM_ERROR when the file is missing or
            unreadable, EXIT_USER_ERROR when it is invalid.
    """
    from shipwright_core.schemas import ReleaseSpec, find_release_file

    if file_path is not None and not Path(file_path).is_dir():
        path = Path(file_path)
    else:
        try:
            path = find_release_file(file_path)
        except FileNotFoundError as e:
            handle_file_not_found(str(e).removeprefix("File not found: "))

    try:
        return ReleaseSpec.from_yaml(path)
    except FileNotFoundError:
        handle_file_not_found(str(path))
    except PermissionError:
        handle_permission_error(str(path), "read")
    except yaml.YAMLError as e:
        handle_yaml_error(e, str(path))
    except PydanticValidationError as e:
        handle_validation_error(e, str(path))


def run_pipeline(
    spec: ReleaseSpec,
    *,
    until: PipelineState,
    output_format: str,
    targets: list[str] | None = None,
    docker: str | None = None,
) -> None:
    """Run the pipeline up to ``until``, print the result and exit.

    Raises:
        SystemExit: EXIT_SUCCESS when the target state was reached,
            EXIT_USER_ERROR otherwise.
        CLIError: If the run cannot be configured.
    """
    from shipwright_core.build import CargoToolchain
    from shipwright_core.cache import FileSystemDependencyCache, get_cache_dir
    from shipwright_core.errors import ShipwrightError
    from shipwright_core.image import DockerCliBackend
    from shipwright_core.pipeline import PipelineRunner, PipelineState, print_result
    from shipwright_core.resolver import RegistryFetcher

    toolchain = None
    if until.index >= PipelineState.BINARIES_BUILT.index:
        toolchain = CargoToolchain(spec.build.cargo, spec.build.timeout_seconds)
    backend = None
    if until == PipelineState.IMAGE_ASSEMBLED:
        backend = DockerCliBackend(docker or "docker")

    cache_dir = get_cache_dir(spec.workspace_path(spec.cache.path) if spec.cache.path else None)
    cache = FileSystemDependencyCache(cache_dir)

    with RegistryFetcher(spec.registry) as fetcher:
        try:
            runner = PipelineRunner(
                spec,
                cache=cache,
                fetcher=fetcher,
                toolchain=toolchain,
                backend=backend,
                targets=targets,
                until=until,
            )
        except ShipwrightError as e:
            raise CLIError(e.user_message) from None
        result = runner.run()

    print_result(result, output_format=output_format, console=output.console)

    if result.passed:
        if output_format == "table":
            output.success(f"Reached '{result.state.value}'")
        raise SystemExit(EXIT_SUCCESS)
    if output_format == "table":
        output.error(f"Pipeline stopped at '{result.state.value}'")
    raise SystemExit(EXIT_USER_ERROR)

