"""Shared pytest fixtures for shipwright-core tests.

Every test gets a fresh on-disk workspace and fakes for the fetcher,
toolchain and image backend, so no network, cargo or docker is needed.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from pathlib import Path

import pytest
import structlog

from shipwright_core.cache import InMemoryDependencyCache
from shipwright_core.schemas import ReleaseSpec, RuntimeConfig
from testing.fixtures import (
    FakeBackend,
    FakeFetcher,
    FakeToolchain,
    locked_crates,
    write_workspace,
)


def _current_stderr(*args: object) -> structlog.PrintLogger:
    # capsys swaps sys.stderr after autouse fixtures run
    return structlog.PrintLogger(file=sys.stderr)


@pytest.fixture(autouse=True)
def configure_structlog_for_tests() -> None:
    """Send structlog output to stderr without caching loggers.

    Uncached loggers keep tests isolated from each other's configuration.
    """
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
        context_class=dict,
        logger_factory=_current_stderr,
        cache_logger_on_first_use=False,
    )


@pytest.fixture
def crates() -> dict[tuple[str, str], bytes]:
    """Archive bytes for every locked registry package."""
    return locked_crates()


@pytest.fixture
def workspace(tmp_path: Path, crates: dict[tuple[str, str], bytes]) -> Path:
    """A consistent backvonia workspace."""
    return write_workspace(tmp_path / "backvonia", crates)


@pytest.fixture
def make_workspace(
    tmp_path: Path,
    crates: dict[tuple[str, str], bytes],
) -> Callable[..., Path]:
    """Factory for workspaces pinning different registry versions.

    Example:
        >>> root = make_workspace("stale", serde="0.9.15")
    """

    def _make(name: str = "variant", **lock_overrides: str) -> Path:
        return write_workspace(tmp_path / name, crates, **lock_overrides)

    return _make


@pytest.fixture
def release_spec(workspace: Path) -> ReleaseSpec:
    """Default backvonia release configuration for ``workspace``."""
    return ReleaseSpec(
        name="backvonia",
        workspace=str(workspace),
        runtime=RuntimeConfig(check_linkage=False),
    )


@pytest.fixture
def cache() -> InMemoryDependencyCache:
    return InMemoryDependencyCache()


@pytest.fixture
def fetcher(crates: dict[tuple[str, str], bytes]) -> FakeFetcher:
    return FakeFetcher(crates)


@pytest.fixture
def toolchain() -> FakeToolchain:
    return FakeToolchain()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()
