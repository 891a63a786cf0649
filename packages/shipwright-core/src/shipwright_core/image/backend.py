"""Container image backends.

The assembler renders a Containerfile; a backend turns it into an image
and reads the result back for verification. DockerCliBackend drives the
docker CLI (or any CLI-compatible engine such as podman).
"""

from __future__ import annotations

import json
import shutil
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import structlog

from shipwright_core.errors import ImageAssemblyError
from shipwright_core.image.models import ImageInspection

logger = structlog.get_logger(__name__)

# Prints the user's uid, then pkg:<name> and file:<name> lines
_PROBE_SCRIPT = (
    "id -u \"$1\"; "
    "dpkg-query -W -f='${Package}\\n' 2>/dev/null | sed 's/^/pkg:/'; "
    "ls -1 \"$2\" 2>/dev/null | sed 's/^/file:/'"
)


class ImageBackend(ABC):
    """Builds and inspects runtime images."""

    @abstractmethod
    def build(
        self,
        containerfile: str,
        context_dir: Path,
        tag: str,
        *,
        platform: str | None = None,
    ) -> str:
        """Build an image and return its id.

        Raises:
            ImageAssemblyError: If the build fails.
        """

    @abstractmethod
    def inspect(self, tag: str, *, user: str, install_dir: str) -> ImageInspection:
        """Read configuration and content facts back from a built image."""


def _parse_env(entries: list[str] | None) -> dict[str, str]:
    env: dict[str, str] = {}
    for entry in entries or []:
        key, _, value = entry.partition("=")
        env[key] = value
    return env


class DockerCliBackend(ImageBackend):
    """Image backend driving the docker CLI.

    Attributes:
        docker: CLI executable (``docker`` or ``podman``).
        timeout_seconds: Timeout for each CLI call.
    """

    def __init__(self, docker: str = "docker", timeout_seconds: int = 1800) -> None:
        self.docker = docker
        self.timeout_seconds = timeout_seconds
        self._log = logger.bind(component="docker_backend")

    def _run(self, args: list[str], *, stdin: str | None = None) -> str:
        if shutil.which(self.docker) is None:
            raise ImageAssemblyError(f"'{self.docker}' not found on PATH")
        try:
            completed = subprocess.run(  # noqa: S603
                [self.docker, *args],
                input=stdin,
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise ImageAssemblyError(
                f"'{self.docker} {args[0]}' timed out after {self.timeout_seconds}s"
            ) from e

        if completed.returncode != 0:
            stderr_tail = "\n".join(completed.stderr.splitlines()[-20:])
            raise ImageAssemblyError(
                f"'{self.docker} {args[0]}' failed with status {completed.returncode}",
                internal_details=stderr_tail,
            )
        return completed.stdout

    def build(
        self,
        containerfile: str,
        context_dir: Path,
        tag: str,
        *,
        platform: str | None = None,
    ) -> str:
        args = ["build", "--file", "-", "--tag", tag, "--quiet"]
        if platform:
            args.extend(["--platform", platform])
        args.append(str(context_dir))

        self._log.info("image_build_started", tag=tag, context=str(context_dir))
        image_id = self._run(args, stdin=containerfile).strip()
        self._log.info("image_build_completed", tag=tag, image_id=image_id)
        return image_id

    def inspect(self, tag: str, *, user: str, install_dir: str) -> ImageInspection:
        raw = self._run(["image", "inspect", "--format", "{{json .}}", tag])
        try:
            data: dict[str, Any] = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ImageAssemblyError(
                f"Could not parse image metadata for {tag}",
                internal_details=str(e),
            ) from e

        config = data.get("Config") or {}
        probe = self._run(
            [
                "run",
                "--rm",
                "--user",
                "0",
                "--entrypoint",
                "sh",
                tag,
                "-c",
                _PROBE_SCRIPT,
                "probe",
                user,
                install_dir,
            ]
        )

        lines = probe.splitlines()
        uid = int(lines[0]) if lines and lines[0].strip().isdigit() else None
        packages = sorted(line[4:] for line in lines if line.startswith("pkg:"))
        files = sorted(line[5:] for line in lines if line.startswith("file:"))

        return ImageInspection(
            image_id=str(data.get("Id", "")),
            user=str(config.get("User") or ""),
            entrypoint=list(config.get("Entrypoint") or []),
            env=_parse_env(config.get("Env")),
            exposed_ports=sorted((config.get("ExposedPorts") or {}).keys()),
            packages=packages,
            installed_files=files,
            uid=uid,
        )
