"""Runtime Image models.

The Runtime Image is an ordered layer stack:
base -> native runtime libraries -> execution identity -> collected
binaries -> configuration. It never carries a compiler toolchain, source
or the dependency cache.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from shipwright_core.schemas.release_spec import BinaryRole, ExecutionIdentity


class LayerKind(str, Enum):
    """Kinds of layers in a runtime image, in stacking order."""

    BASE = "base"
    RUNTIME_LIBRARIES = "runtime_libraries"
    BINARIES = "binaries"
    IDENTITY = "identity"
    CONFIGURATION = "configuration"


class InstalledBinary(BaseModel):
    """A collected executable placed in the image.

    Attributes:
        name: Install name.
        source: File in the dist directory (build context).
        destination: Absolute path inside the image.
        role: Service entry point or auxiliary tool.
        sha256: Content digest of the collected file (None in previews).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1)
    source: Path = Field(...)
    destination: str = Field(..., pattern=r"^/")
    role: BinaryRole = Field(...)
    sha256: str | None = Field(default=None, min_length=64, max_length=64)


class ImageLayer(BaseModel):
    """One logical layer and a short description of its content."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: LayerKind = Field(...)
    description: str = Field(default="")


class RuntimeImage(BaseModel):
    """Planned runtime image.

    Attributes:
        base_image: Base distribution image.
        packages: Native runtime packages installed on top of the base.
        binaries: Installed executables.
        user: Execution identity the process runs as.
        workdir: Working directory.
        port: Exposed TCP port.
        env: Baked default environment.
        entrypoint: Exec-form entry point.
        tag: Image tag.
        platform: Target platform.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    base_image: str = Field(..., min_length=1)
    packages: list[str] = Field(default_factory=list)
    binaries: list[InstalledBinary] = Field(default_factory=list)
    user: ExecutionIdentity = Field(default_factory=ExecutionIdentity)
    workdir: str = Field(default="/app")
    port: int = Field(..., ge=1, le=65535)
    env: dict[str, str] = Field(default_factory=dict)
    entrypoint: list[str] = Field(..., min_length=1)
    tag: str = Field(..., min_length=1)
    platform: str = Field(default="linux/amd64")

    @property
    def service(self) -> InstalledBinary:
        return next(b for b in self.binaries if b.role == BinaryRole.SERVICE)

    @property
    def layers(self) -> list[ImageLayer]:
        return [
            ImageLayer(kind=LayerKind.BASE, description=self.base_image),
            ImageLayer(
                kind=LayerKind.RUNTIME_LIBRARIES,
                description=" ".join(self.packages) or "none",
            ),
            ImageLayer(
                kind=LayerKind.BINARIES,
                description=" ".join(b.destination for b in self.binaries),
            ),
            ImageLayer(
                kind=LayerKind.IDENTITY,
                description=f"{self.user.name} (uid {self.user.uid})",
            ),
            ImageLayer(
                kind=LayerKind.CONFIGURATION,
                description=f"port {self.port}, entrypoint {self.entrypoint}",
            ),
        ]


class ImageInspection(BaseModel):
    """Facts read back from a built image.

    Attributes:
        image_id: Image identifier.
        user: Configured user.
        entrypoint: Configured entry point.
        env: Configured environment.
        exposed_ports: Exposed ports ("8080/tcp").
        packages: Installed distribution packages.
        installed_files: Files present in the install directory.
        uid: Numeric id of the configured user.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    image_id: str = Field(default="")
    user: str = Field(default="")
    entrypoint: list[str] = Field(default_factory=list)
    env: dict[str, str] = Field(default_factory=dict)
    exposed_ports: list[str] = Field(default_factory=list)
    packages: list[str] = Field(default_factory=list)
    installed_files: list[str] = Field(default_factory=list)
    uid: int | None = Field(default=None)


class AssembledImage(BaseModel):
    """A built and verified runtime image."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    image: RuntimeImage = Field(...)
    image_id: str = Field(default="")
    containerfile: str = Field(...)
    inspection: ImageInspection | None = Field(default=None)
