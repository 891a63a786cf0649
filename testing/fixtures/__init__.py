"""Shared test fixtures for shipwright packages.

Exports:
    Workspace fixtures:
        LOCKED_CRATES: Registry packages locked by the test workspace
        make_crate: Build a .crate archive in memory
        write_workspace: Write a backvonia-shaped Cargo workspace
        write_release_file: Write shipwright.yaml for a workspace

    Fakes:
        FakeFetcher: In-memory PackageFetcher that records calls
        FakeToolchain: Toolchain writing small executables
        FakeBackend: ImageBackend returning a canned inspection
        default_inspection: Inspection of a correctly built backvonia image
        SLIM_IMAGE_PACKAGES: Installed packages of the default runtime image
"""

from __future__ import annotations

from testing.fixtures.fakes import (
    SLIM_IMAGE_PACKAGES,
    FakeBackend,
    FakeFetcher,
    FakeToolchain,
    default_inspection,
)
from testing.fixtures.workspace import (
    CRATES_IO,
    LOCKED_CRATES,
    locked_crates,
    make_crate,
    remove_lock_entry,
    write_release_file,
    write_workspace,
)

__all__ = [
    # Workspace fixtures
    "CRATES_IO",
    "LOCKED_CRATES",
    "locked_crates",
    "make_crate",
    "remove_lock_entry",
    "write_release_file",
    "write_workspace",
    # Fakes
    "FakeBackend",
    "FakeFetcher",
    "FakeToolchain",
    "default_inspection",
    "SLIM_IMAGE_PACKAGES",
]
