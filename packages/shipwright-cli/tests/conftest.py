"""Shared test fixtures for shipwright-cli tests.

Provides CliRunner fixtures, an on-disk backvonia workspace with its
shipwright.yaml, and patches that swap cargo, docker and the registry
for in-process fakes.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Generator
from pathlib import Path
from unittest.mock import patch

import pytest
import structlog
from click.testing import CliRunner

from testing.fixtures import (
    FakeBackend,
    FakeFetcher,
    FakeToolchain,
    locked_crates,
    write_release_file,
    write_workspace,
)


def _current_stderr(*args: object) -> structlog.PrintLogger:
    return structlog.PrintLogger(file=sys.stderr)


@pytest.fixture(autouse=True)
def configure_structlog_for_tests() -> None:
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
        context_class=dict,
        logger_factory=_current_stderr,
        cache_logger_on_first_use=False,
    )


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the dependency cache under tmp_path and ignore SHIPWRIGHT_CONFIG."""
    monkeypatch.setenv("SHIPWRIGHT_CACHE_DIR", str(tmp_path / "cache"))
    monkeypatch.delenv("SHIPWRIGHT_CONFIG", raising=False)


@pytest.fixture
def cli_runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def isolated_runner(cli_runner: CliRunner, tmp_path: Path) -> Generator[CliRunner, None, None]:
    """CliRunner whose working directory is an empty directory under tmp_path."""
    with cli_runner.isolated_filesystem(temp_dir=tmp_path):
        yield cli_runner


@pytest.fixture
def crates() -> dict[tuple[str, str], bytes]:
    return locked_crates()


@pytest.fixture
def workspace(tmp_path: Path, crates: dict[tuple[str, str], bytes]) -> Path:
    return write_workspace(tmp_path / "backvonia", crates)


@pytest.fixture
def release_file(workspace: Path) -> Path:
    """shipwright.yaml next to the workspace manifests."""
    return write_release_file(workspace, workspace)


@pytest.fixture
def fakes(crates: dict[tuple[str, str], bytes]) -> Generator[dict[str, object], None, None]:
    """Patch the registry fetcher, cargo toolchain and docker backend.

    Yields:
        The fake instances keyed by "fetcher", "toolchain" and "backend".
    """
    fetcher = FakeFetcher(crates)
    toolchain = FakeToolchain()
    backend = FakeBackend()
    with (
        patch("shipwright_core.resolver.RegistryFetcher", lambda *a, **k: fetcher),
        patch("shipwright_core.build.CargoToolchain", lambda *a, **k: toolchain),
        patch("shipwright_core.image.DockerCliBackend", lambda *a, **k: backend),
    ):
        yield {"fetcher": fetcher, "toolchain": toolchain, "backend": backend}
