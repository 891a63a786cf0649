"""Compiler toolchains.

A toolchain turns one BuildRequest into one executable on disk. The
default CargoToolchain runs ``cargo build`` fully offline against a vendor
directory materialized from the dependency cache, so compilation can never
reach the network or re-resolve the lock.
"""

from __future__ import annotations

import json
import shutil
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path

import structlog
from pydantic import BaseModel, ConfigDict, Field

from shipwright_core.errors import CompilationError

logger = structlog.get_logger(__name__)

# Lines of toolchain output kept on failure
OUTPUT_TAIL_LINES = 40


class BuildRequest(BaseModel):
    """Everything needed to build one executable.

    Attributes:
        package: Workspace package to build.
        artifact: Binary target name.
        profile: Build profile.
        workspace_dir: Workspace root.
        target_dir: Intermediate-artifact directory for this build.
        vendor_dir: Vendored dependency sources, if building offline.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    package: str = Field(..., min_length=1)
    artifact: str = Field(..., min_length=1)
    profile: str = Field(default="release")
    workspace_dir: Path = Field(...)
    target_dir: Path = Field(...)
    vendor_dir: Path | None = Field(default=None)


def profile_dir_name(profile: str) -> str:
    """Output subdirectory cargo uses for a profile."""
    return "debug" if profile in ("dev", "test") else profile


def _tail(text: str, lines: int = OUTPUT_TAIL_LINES) -> str:
    return "\n".join(text.splitlines()[-lines:])


class Toolchain(ABC):
    """Builds workspace executables."""

    name: str = "toolchain"

    @abstractmethod
    def build(self, request: BuildRequest) -> Path:
        """Build one executable and return its path.

        Raises:
            CompilationError: If the build fails or produces no executable.
        """


class CargoToolchain(Toolchain):
    """Build with the cargo CLI.

    Attributes:
        cargo: Cargo executable name or path.
        timeout_seconds: Per-build timeout.

    Example:
        >>> toolchain = CargoToolchain()
        >>> toolchain.build(BuildRequest(package="backvonia", artifact="backvonia", ...))
        PosixPath('.../release/backvonia')
    """

    name = "cargo"

    def __init__(self, cargo: str = "cargo", timeout_seconds: int = 3600) -> None:
        self.cargo = cargo
        self.timeout_seconds = timeout_seconds

    def command(self, request: BuildRequest) -> list[str]:
        args = [
            self.cargo,
            "build",
            "-p",
            request.package,
            "--bin",
            request.artifact,
            "--locked",
            "--target-dir",
            str(request.target_dir),
        ]
        if request.profile == "release":
            args.append("--release")
        elif request.profile != "dev":
            args.extend(["--profile", request.profile])

        if request.vendor_dir is not None:
            args.extend(
                [
                    "--offline",
                    "--config",
                    'source.crates-io.replace-with="vendored-sources"',
                    "--config",
                    f"source.vendored-sources.directory={json.dumps(str(request.vendor_dir))}",
                ]
            )
        return args

    def build(self, request: BuildRequest) -> Path:
        if shutil.which(self.cargo) is None:
            raise CompilationError(request.package, f"'{self.cargo}' not found on PATH")

        args = self.command(request)
        log = logger.bind(package=request.package, artifact=request.artifact)
        log.info("cargo_build_started", profile=request.profile)

        try:
            completed = subprocess.run(  # noqa: S603
                args,
                cwd=request.workspace_dir,
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise CompilationError(
                request.package,
                f"build timed out after {self.timeout_seconds}s",
            ) from e

        if completed.returncode != 0:
            tail = _tail(completed.stderr or completed.stdout)
            raise CompilationError(
                request.package,
                f"cargo build exited with status {completed.returncode}",
                exit_code=completed.returncode,
                output_tail=tail,
                internal_details=" ".join(args),
            )

        executable = request.target_dir / profile_dir_name(request.profile) / request.artifact
        if not executable.is_file():
            raise CompilationError(
                request.package,
                f"cargo reported success but {executable} does not exist",
            )

        log.info("cargo_build_completed", executable=str(executable))
        return executable
