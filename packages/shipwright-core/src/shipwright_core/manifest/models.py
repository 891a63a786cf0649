"""Manifest Set models.

This module defines the immutable models describing a Cargo workspace as
seen by the release pipeline:
- DependencyDecl: One dependency declared in a member's Cargo.toml
- PackageManifest: A workspace member (name, version, targets, dependencies)
- LockedPackage / LockFile: The pinned, transitively resolved package set
- ManifestSet: Root + member manifests + lock file, with a content fingerprint

The fingerprint covers manifests and the lock file only, never source
files, so source edits do not invalidate the dependency cache.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

# Lock sources the registry fetcher understands
CRATES_IO_SOURCES = frozenset(
    {
        "registry+https://github.com/rust-lang/crates.io-index",
        "sparse+https://index.crates.io/",
    }
)


class DependencyKind(str, Enum):
    """Dependency table a declaration came from."""

    NORMAL = "normal"
    DEV = "dev"
    BUILD = "build"


class DependencyDecl(BaseModel):
    """A dependency declared in a member manifest.

    Attributes:
        name: Key used in the manifest (may be a rename).
        package: Real crate name when renamed with ``package = "..."``.
        requirement: Version requirement string, if any.
        path: Path dependency, relative to the declaring member.
        git: Git repository URL for git dependencies.
        optional: Whether the dependency is feature-gated.
        kind: Dependency table (normal, dev, build).
        target: ``cfg(...)`` or triple for target-specific tables.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1, description="Manifest key")
    package: str | None = Field(default=None, description="Real crate name if renamed")
    requirement: str | None = Field(default=None, description="Version requirement")
    path: str | None = Field(default=None, description="Path dependency")
    git: str | None = Field(default=None, description="Git repository URL")
    optional: bool = Field(default=False, description="Feature-gated dependency")
    kind: DependencyKind = Field(default=DependencyKind.NORMAL, description="Dependency table")
    target: str | None = Field(default=None, description="Target-specific table")

    @property
    def crate_name(self) -> str:
        """Crate name as recorded in Cargo.lock."""
        return self.package or self.name

    @property
    def is_registry(self) -> bool:
        """True when the dependency comes from a package registry."""
        return self.path is None and self.git is None


class PackageManifest(BaseModel):
    """A workspace member manifest.

    Attributes:
        name: Package name.
        version: Package version.
        member_path: Member directory relative to the workspace root ("." for root).
        manifest_path: Absolute path to the member's Cargo.toml.
        dependencies: Declared dependencies from every dependency table.
        has_library: Whether the member has a library target.
        binaries: Names of the member's binary targets.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1, description="Package name")
    version: str = Field(..., min_length=1, description="Package version")
    member_path: str = Field(default=".", description="Member directory relative to root")
    manifest_path: Path = Field(..., description="Path to Cargo.toml")
    dependencies: list[DependencyDecl] = Field(
        default_factory=list, description="Declared dependencies"
    )
    has_library: bool = Field(default=False, description="Has a library target")
    binaries: list[str] = Field(default_factory=list, description="Binary target names")

    @property
    def is_executable(self) -> bool:
        return bool(self.binaries)

    def registry_dependencies(self) -> list[DependencyDecl]:
        return [d for d in self.dependencies if d.is_registry]

    def path_dependencies(self) -> list[DependencyDecl]:
        return [d for d in self.dependencies if d.path is not None]


class LockedPackage(BaseModel):
    """One ``[[package]]`` entry of Cargo.lock.

    Attributes:
        name: Package name.
        version: Exact pinned version.
        source: Source URL (None for workspace members and path packages).
        checksum: SHA-256 of the packaged crate for registry sources.
        dependencies: Dependency references ("name" or "name version [source]").
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1)
    version: str = Field(..., min_length=1)
    source: str | None = Field(default=None)
    checksum: str | None = Field(default=None)
    dependencies: list[str] = Field(default_factory=list)

    @property
    def is_registry(self) -> bool:
        return self.source is not None and (
            self.source.startswith("registry+") or self.source.startswith("sparse+")
        )

    @property
    def is_git(self) -> bool:
        return self.source is not None and self.source.startswith("git+")

    @property
    def key(self) -> tuple[str, str]:
        return (self.name, self.version)

    def dependency_names(self) -> set[str]:
        """Names referenced in this entry's dependency list."""
        return {ref.split(" ", 1)[0] for ref in self.dependencies}

    def references(self, name: str, version: str) -> bool:
        """Check whether this entry's dependency list points at ``name`` ``version``.

        Lock format v3+ omits the version when only one version of a
        package is locked, so a bare name reference also counts.
        """
        for ref in self.dependencies:
            parts = ref.split(" ")
            if parts[0] != name:
                continue
            if len(parts) == 1 or parts[1] == version:
                return True
        return False


class LockFile(BaseModel):
    """Parsed Cargo.lock.

    Attributes:
        version: Lock file format version.
        path: Path the lock was read from.
        packages: All locked packages.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    version: int = Field(default=1, ge=1)
    path: Path = Field(...)
    packages: list[LockedPackage] = Field(default_factory=list)

    def find(self, name: str) -> list[LockedPackage]:
        return [p for p in self.packages if p.name == name]

    def get(self, name: str, version: str) -> LockedPackage | None:
        for package in self.packages:
            if package.name == name and package.version == version:
                return package
        return None

    def registry_packages(self) -> list[LockedPackage]:
        """Registry packages sorted by (name, version) for deterministic fetch order."""
        return sorted((p for p in self.packages if p.is_registry), key=lambda p: p.key)


class ManifestSet(BaseModel):
    """Root + member manifests + lock file for one workspace.

    Attributes:
        root_dir: Workspace root directory.
        members: Workspace member manifests (root package included when present).
        lockfile: Parsed Cargo.lock.
        fingerprint: SHA-256 over lock file and manifest contents.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    root_dir: Path = Field(...)
    members: list[PackageManifest] = Field(default_factory=list)
    lockfile: LockFile = Field(...)
    fingerprint: str = Field(..., min_length=64, max_length=64)

    def member(self, name: str) -> PackageManifest | None:
        for manifest in self.members:
            if manifest.name == name:
                return manifest
        return None

    @property
    def member_names(self) -> list[str]:
        return [m.name for m in self.members]
