"""Artifact Collector.

Copies built executables out of the ephemeral build area into the durable
dist directory under their install names. Collection is idempotent: a file
already holding the same bytes and mode is left untouched, and every write
is a temp file renamed into place.
"""

from __future__ import annotations

import os
import shutil
import stat
import tempfile
from pathlib import Path

import structlog
from pydantic import BaseModel, ConfigDict, Field

from shipwright_core.build.compiler import BuildOutput, BuildOutputSet, file_digest
from shipwright_core.errors import CollectionError

logger = structlog.get_logger(__name__)

# Mode of every collected executable
EXECUTABLE_MODE = 0o755


class CollectedArtifact(BaseModel):
    """One executable in the dist directory.

    Attributes:
        name: Install name.
        path: Location in the dist directory.
        sha256: Content digest.
        size: Size in bytes.
        written: False when an identical file was already present.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1)
    path: Path = Field(...)
    sha256: str = Field(..., min_length=64, max_length=64)
    size: int = Field(..., ge=0)
    written: bool = Field(default=True)


class CollectedArtifacts(BaseModel):
    """Executables collected by one run."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    dist_dir: Path = Field(...)
    artifacts: list[CollectedArtifact] = Field(default_factory=list)

    @property
    def names(self) -> list[str]:
        return [a.name for a in self.artifacts]

    def get(self, name: str) -> CollectedArtifact | None:
        for artifact in self.artifacts:
            if artifact.name == name:
                return artifact
        return None


def _is_unchanged(dest: Path, digest: str) -> bool:
    if not dest.is_file():
        return False
    if stat.S_IMODE(dest.stat().st_mode) != EXECUTABLE_MODE:
        return False
    return file_digest(dest) == digest


class ArtifactCollector:
    """Collect built executables into a dist directory.

    Example:
        >>> collector = ArtifactCollector(Path(".shipwright/dist"))
        >>> collected = collector.collect(outputs)
        >>> collected.names
        ['backvonia', 'backvonia-migrate']
    """

    def __init__(self, dist_dir: Path) -> None:
        self.dist_dir = dist_dir
        self._log = logger.bind(component="artifact_collector", dist_dir=str(dist_dir))

    def collect(self, outputs: BuildOutputSet) -> CollectedArtifacts:
        """Copy every output into the dist directory.

        Raises:
            CollectionError: If an output is missing, changed since the build,
                or cannot be written.
        """
        try:
            self.dist_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CollectionError(
                f"Cannot create dist directory {self.dist_dir}",
                internal_details=str(e),
            ) from e

        artifacts = [self._collect_one(outputs.outputs[name]) for name in outputs.names]
        self._log.info(
            "collect_completed",
            collected=[a.name for a in artifacts],
            written=sum(1 for a in artifacts if a.written),
        )
        return CollectedArtifacts(dist_dir=self.dist_dir, artifacts=artifacts)

    def _collect_one(self, output: BuildOutput) -> CollectedArtifact:
        if not output.path.is_file():
            raise CollectionError(
                f"Built executable for '{output.name}' is missing: {output.path}"
            )

        digest = file_digest(output.path)
        if digest != output.sha256:
            raise CollectionError(
                f"Built executable for '{output.name}' changed after the build",
                internal_details=f"expected {output.sha256}, found {digest}",
            )

        dest = self.dist_dir / output.name
        if _is_unchanged(dest, digest):
            self._log.debug("artifact_unchanged", name=output.name)
            return CollectedArtifact(
                name=output.name, path=dest, sha256=digest, size=output.size, written=False
            )

        fd, tmp_name = tempfile.mkstemp(dir=self.dist_dir, prefix=f".{output.name}.")
        try:
            with os.fdopen(fd, "wb") as dst, output.path.open("rb") as src:
                shutil.copyfileobj(src, dst)
            os.chmod(tmp_name, EXECUTABLE_MODE)
            os.replace(tmp_name, dest)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            raise CollectionError(
                f"Cannot write {dest}",
                internal_details=str(e),
            ) from e

        self._log.debug("artifact_collected", name=output.name, size=output.size)
        return CollectedArtifact(name=output.name, path=dest, sha256=digest, size=output.size)

    def remove(self, collected: CollectedArtifacts) -> None:
        """Delete the artifacts a run wrote (those it found unchanged stay)."""
        for artifact in collected.artifacts:
            if artifact.written:
                artifact.path.unlink(missing_ok=True)
