"""ReleaseSpec root model for shipwright.yaml.

shipwright.yaml describes how one Cargo workspace becomes a runtime image:
which workspace packages produce which installed executables, where build
outputs and caches live, and how the runtime stage is assembled. Every
field has a default reproducing the backvonia release recipe, so a minimal
file only needs a name.
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from shipwright_core.schemas.service_env import (
    DEFAULT_HOST,
    DEFAULT_LOG_FILTER,
    DEFAULT_PORT,
)

# Environment variable naming an explicit shipwright.yaml
CONFIG_ENV_VAR = "SHIPWRIGHT_CONFIG"

# Standard release file name
RELEASE_FILE_NAME = "shipwright.yaml"

# Valid binary / package name pattern (Cargo package naming)
PACKAGE_NAME_PATTERN = r"^[A-Za-z][A-Za-z0-9_-]*$"


class BinaryRole(str, Enum):
    """Role of an installed executable in the runtime image.

    Attributes:
        SERVICE: The long-running entry point of the image.
        AUXILIARY: Run to completion by an operator or orchestrator, never auto-started.
    """

    SERVICE = "service"
    AUXILIARY = "auxiliary"


class BinaryTarget(BaseModel):
    """One executable produced from a workspace package.

    Attributes:
        package: Workspace package passed to ``cargo build -p``.
        artifact: Binary target name produced by the build (defaults to package).
        install_name: File name under the runtime install dir (defaults to artifact).
        role: Service entry point or auxiliary tool.

    Example:
        >>> BinaryTarget(package="migration", install_name="backvonia-migrate")
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    package: str = Field(..., pattern=PACKAGE_NAME_PATTERN, description="Workspace package")
    artifact: str | None = Field(
        default=None, pattern=PACKAGE_NAME_PATTERN, description="Binary target name"
    )
    install_name: str | None = Field(
        default=None, pattern=PACKAGE_NAME_PATTERN, description="Installed file name"
    )
    role: BinaryRole = Field(default=BinaryRole.AUXILIARY, description="Binary role")

    @property
    def artifact_name(self) -> str:
        return self.artifact or self.package

    @property
    def installed_name(self) -> str:
        return self.install_name or self.artifact_name


def _default_binaries() -> list[BinaryTarget]:
    return [
        BinaryTarget(package="backvonia", role=BinaryRole.SERVICE),
        BinaryTarget(package="migration", install_name="backvonia-migrate"),
    ]


class BuildConfig(BaseModel):
    """Compiler stage configuration.

    Attributes:
        profile: Cargo build profile.
        parallel: Build independent binaries concurrently.
        target_dir: Intermediate-artifact cache (cargo target dir).
        dist_dir: Durable directory that receives collected executables.
        vendor_dir: Offline dependency sources unpacked from the cache.
        cargo: Cargo executable.
        timeout_seconds: Per-binary build timeout.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    profile: str = Field(default="release", pattern=r"^[a-z][a-z0-9_-]*$")
    parallel: bool = Field(default=True)
    target_dir: str = Field(default=".shipwright/target")
    dist_dir: str = Field(default=".shipwright/dist")
    vendor_dir: str = Field(default=".shipwright/vendor")
    cargo: str = Field(default="cargo", min_length=1)
    timeout_seconds: int = Field(default=3600, ge=1)


class CacheConfig(BaseModel):
    """Dependency cache location (overridden by SHIPWRIGHT_CACHE_DIR)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str | None = Field(default=None, description="Cache directory")


class RegistryConfig(BaseModel):
    """Package registry download configuration."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    download_url: str = Field(
        default="https://static.crates.io/crates/{name}/{name}-{version}.crate",
        description="Download URL template with {name} and {version}",
    )
    timeout_seconds: float = Field(default=30.0, gt=0, le=600)
    concurrency: int = Field(default=8, ge=1, le=64, description="Parallel downloads")

    @field_validator("download_url")
    @classmethod
    def _template_has_placeholders(cls, v: str) -> str:
        if "{name}" not in v or "{version}" not in v:
            raise ValueError("download_url must contain {name} and {version}")
        return v


class ExecutionIdentity(BaseModel):
    """Unprivileged user the runtime process runs as.

    Attributes:
        name: User (and primary group) name.
        uid: Fixed numeric user id; never 0.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(default="appuser", pattern=r"^[a-z_][a-z0-9_-]*$")
    uid: int = Field(default=10001, ge=1, le=2**31 - 1)

    @field_validator("name")
    @classmethod
    def _not_root(cls, v: str) -> str:
        if v == "root":
            raise ValueError("runtime user must not be root")
        return v


def _default_env() -> dict[str, str]:
    return {
        "HOST": DEFAULT_HOST,
        "PORT": str(DEFAULT_PORT),
        "RUST_LOG": DEFAULT_LOG_FILTER,
    }


class RuntimeConfig(BaseModel):
    """Runtime image configuration.

    Attributes:
        base_image: Minimal base distribution image.
        packages: Native runtime packages (shared libraries, certificate bundles).
        install_dir: Where executables are installed.
        workdir: Working directory of the runtime process.
        user: Execution identity.
        port: Exposed TCP port.
        env: Default environment, overridable at launch.
        tag: Image tag to build.
        platform: Target platform.
        check_linkage: Check executables only need installed shared libraries.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    base_image: str = Field(default="debian:trixie-slim", min_length=1)
    packages: list[str] = Field(default_factory=lambda: ["ca-certificates", "libssl3"])
    install_dir: str = Field(default="/usr/local/bin", pattern=r"^/")
    workdir: str = Field(default="/app", pattern=r"^/")
    user: ExecutionIdentity = Field(default_factory=ExecutionIdentity)
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    env: dict[str, str] = Field(default_factory=_default_env)
    tag: str | None = Field(default=None)
    platform: str = Field(default="linux/amd64")
    check_linkage: bool = Field(default=True, description="Verify shared libraries")


class ReleaseSpec(BaseModel):
    """Root configuration model for shipwright.yaml.

    Attributes:
        name: Release name (used for the default image tag).
        workspace: Cargo workspace root, relative to shipwright.yaml.
        binaries: Executables to build, collect, and install.
        build: Compiler stage configuration.
        cache: Dependency cache configuration.
        registry: Registry download configuration.
        runtime: Runtime image configuration.

    Example:
        >>> spec = ReleaseSpec.from_yaml("shipwright.yaml")
        >>> spec.service_binary.installed_name
        'backvonia'
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., pattern=PACKAGE_NAME_PATTERN, description="Release name")
    workspace: str = Field(default=".", description="Workspace root")
    binaries: list[BinaryTarget] = Field(default_factory=_default_binaries)
    build: BuildConfig = Field(default_factory=BuildConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    registry: RegistryConfig = Field(default_factory=RegistryConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)

    @model_validator(mode="after")
    def _check_binaries(self) -> ReleaseSpec:
        if not self.binaries:
            raise ValueError("at least one binary is required")

        services = [b for b in self.binaries if b.role == BinaryRole.SERVICE]
        if len(services) != 1:
            raise ValueError(f"exactly one binary must have role 'service', found {len(services)}")

        names = [b.installed_name for b in self.binaries]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"duplicate install names: {', '.join(duplicates)}")
        return self

    @property
    def service_binary(self) -> BinaryTarget:
        return next(b for b in self.binaries if b.role == BinaryRole.SERVICE)

    @property
    def image_tag(self) -> str:
        return self.runtime.tag or f"{self.name}:latest"

    @property
    def workspace_dir(self) -> Path:
        return Path(self.workspace)

    def workspace_path(self, value: str) -> Path:
        """Resolve a configured path against the workspace root."""
        path = Path(value).expanduser()
        return path if path.is_absolute() else self.workspace_dir / path

    def binary(self, package: str) -> BinaryTarget | None:
        for target in self.binaries:
            if target.package == package:
                return target
        return None

    @classmethod
    def from_yaml(cls, path: str | Path) -> ReleaseSpec:
        """Load and validate a ReleaseSpec from shipwright.yaml.

        Relative ``workspace`` values are resolved against the file's directory.

        Raises:
            FileNotFoundError: If file doesn't exist.
            yaml.YAMLError: If YAML syntax is invalid.
            pydantic.ValidationError: If schema validation fails.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")

        with path.open("r") as f:
            data: dict[str, Any] = yaml.safe_load(f) or {}

        spec = cls.model_validate(data)
        workspace = Path(spec.workspace)
        if not workspace.is_absolute():
            workspace = (path.parent / workspace).resolve()
        return spec.model_copy(update={"workspace": str(workspace)})

    def to_yaml(self) -> str:
        """Serialize to YAML suitable for shipwright.yaml."""
        return yaml.safe_dump(
            self.model_dump(mode="json", exclude_none=True),
            sort_keys=False,
        )


def find_release_file(start: Path | str | None = None) -> Path:
    """Locate shipwright.yaml.

    Search order:
    1. SHIPWRIGHT_CONFIG environment variable
    2. ``start`` (a file, or a directory containing shipwright.yaml)
    3. Current directory and its parents

    Raises:
        FileNotFoundError: If no release file is found.
    """
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        candidate = Path(env_path)
        if candidate.is_file():
            return candidate
        raise FileNotFoundError(f"{CONFIG_ENV_VAR} points to a missing file: {candidate}")

    if start is not None:
        start_path = Path(start)
        if start_path.is_file():
            return start_path
        candidate = start_path / RELEASE_FILE_NAME
        if candidate.is_file():
            return candidate
        raise FileNotFoundError(f"File not found: {candidate}")

    current = Path.cwd()
    for directory in (current, *current.parents):
        candidate = directory / RELEASE_FILE_NAME
        if candidate.is_file():
            return candidate

    raise FileNotFoundError(f"{RELEASE_FILE_NAME} not found in {current} or its parents")
