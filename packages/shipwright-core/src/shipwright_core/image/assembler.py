"""Runtime Image Assembler.

Plans, builds and verifies the minimal runtime image from collected
artifacts:

- only native runtime packages are installed (no compiler toolchain)
- every release binary lands in the install directory under its install name
- the process runs as a fixed, non-root uid
- defaults bind HOST=0.0.0.0, PORT=8080, RUST_LOG=info,backvonia=debug
- the service binary is the exec-form entry point; auxiliary binaries
  are installed but never started automatically
"""

from __future__ import annotations

import fnmatch
import shutil
from pathlib import Path

import structlog

from shipwright_core.build.collector import CollectedArtifacts
from shipwright_core.errors import (
    EnvironmentValidationError,
    ImageAssemblyError,
    MinimalityError,
)
from shipwright_core.image.backend import ImageBackend
from shipwright_core.image.containerfile import render_containerfile
from shipwright_core.image.linkage import check_runtime_linkage
from shipwright_core.image.models import (
    AssembledImage,
    ImageInspection,
    InstalledBinary,
    RuntimeImage,
)
from shipwright_core.observability import span
from shipwright_core.schemas.release_spec import ReleaseSpec
from shipwright_core.schemas.service_env import BACKVONIA_ENVIRONMENT, ServiceEnvironment

logger = structlog.get_logger(__name__)

# Build tooling that must never reach the runtime stage
TOOLCHAIN_PACKAGE_PATTERNS: tuple[str, ...] = (
    "cargo",
    "rustc",
    "rustup",
    "rust-*",
    "gcc",
    "gcc-*",
    "g++",
    "g++-*",
    "cpp",
    "cpp-*",
    "clang",
    "clang-*",
    "llvm",
    "llvm-*",
    "make",
    "cmake",
    "pkg-config",
    "pkgconf",
    "build-essential",
    "*-dev",
)

# Runtime packages matching a deny-list pattern; gcc-N-base comes with
# libgcc-s1 in every Debian image and holds no compiler
RUNTIME_PACKAGE_EXCEPTIONS: tuple[str, ...] = (
    "gcc-*-base",
)

# Directories on the default PATH of Debian-based images
DEFAULT_PATH_DIRS = frozenset({"/usr/local/bin", "/usr/bin", "/bin"})


def check_minimality(packages: list[str]) -> list[str]:
    """Return the packages that match the toolchain deny-list."""
    return [
        package
        for package in packages
        if any(fnmatch.fnmatchcase(package, pattern) for pattern in TOOLCHAIN_PACKAGE_PATTERNS)
        and not any(
            fnmatch.fnmatchcase(package, pattern) for pattern in RUNTIME_PACKAGE_EXCEPTIONS
        )
    ]


class RuntimeImageAssembler:
    """Assemble the runtime image for a release.

    Attributes:
        spec: Release configuration.
        backend: Image backend used by assemble().
        environment: Service environment schema the baked defaults must satisfy.

    Example:
        >>> assembler = RuntimeImageAssembler(spec, backend=DockerCliBackend())
        >>> image = assembler.plan(collected)
        >>> image.entrypoint
        ['backvonia']
    """

    def __init__(
        self,
        spec: ReleaseSpec,
        *,
        backend: ImageBackend | None = None,
        environment: ServiceEnvironment = BACKVONIA_ENVIRONMENT,
    ) -> None:
        self.spec = spec
        self.backend = backend
        self.environment = environment
        self._log = logger.bind(component="image_assembler")

    def check_environment_defaults(self, env: dict[str, str]) -> None:
        """Validate baked defaults against the service schema.

        Raises:
            ImageAssemblyError: If a secret would be baked or PORT disagrees
                with the exposed port.
            EnvironmentValidationError: If a default has an invalid value.
        """
        baked_secrets = sorted(set(env) & self.environment.secret_names)
        if baked_secrets:
            raise ImageAssemblyError(
                "Secrets must be supplied at launch, not baked into the image: "
                + ", ".join(baked_secrets)
            )

        problems = self.environment.check_values(env, require=False)
        if problems:
            raise EnvironmentValidationError(problems)

        port = env.get("PORT")
        if port is not None and port.strip() != str(self.spec.runtime.port):
            raise ImageAssemblyError(
                f"Default PORT {port} does not match the exposed port {self.spec.runtime.port}"
            )

    def plan(self, collected: CollectedArtifacts) -> RuntimeImage:
        """Plan the runtime image from collected artifacts.

        Raises:
            MinimalityError: If a runtime package is build tooling.
            ImageAssemblyError: If a release binary was not collected or the
                configuration is inconsistent.
        """
        sources: dict[str, tuple[Path, str | None]] = {}
        for target in self.spec.binaries:
            artifact = collected.get(target.installed_name)
            if artifact is None:
                raise ImageAssemblyError(
                    f"'{target.installed_name}' was not collected; build it before assembling"
                )
            if artifact.path.parent.resolve() != collected.dist_dir.resolve():
                raise ImageAssemblyError(
                    f"'{target.installed_name}' is outside the dist directory"
                )
            sources[target.installed_name] = (artifact.path, artifact.sha256)
        return self._build_image(sources)

    def preview(self) -> RuntimeImage:
        """Plan the runtime image from configuration alone.

        Sources point at the configured dist directory whether or not the
        binaries have been collected yet; digests are left unset.
        """
        dist_dir = self.spec.workspace_path(self.spec.build.dist_dir)
        sources: dict[str, tuple[Path, str | None]] = {
            target.installed_name: (dist_dir / target.installed_name, None)
            for target in self.spec.binaries
        }
        return self._build_image(sources)

    def _build_image(self, sources: dict[str, tuple[Path, str | None]]) -> RuntimeImage:
        runtime = self.spec.runtime

        offenders = check_minimality(runtime.packages)
        if offenders:
            raise MinimalityError(offenders)

        self.check_environment_defaults(runtime.env)

        install_dir = runtime.install_dir.rstrip("/")
        binaries = [
            InstalledBinary(
                name=target.installed_name,
                source=sources[target.installed_name][0],
                destination=f"{install_dir}/{target.installed_name}",
                role=target.role,
                sha256=sources[target.installed_name][1],
            )
            for target in self.spec.binaries
        ]

        service = self.spec.service_binary
        if install_dir in DEFAULT_PATH_DIRS:
            entrypoint = [service.installed_name]
        else:
            entrypoint = [f"{install_dir}/{service.installed_name}"]

        image = RuntimeImage(
            base_image=runtime.base_image,
            packages=list(runtime.packages),
            binaries=binaries,
            user=runtime.user,
            workdir=runtime.workdir,
            port=runtime.port,
            env=dict(runtime.env),
            entrypoint=entrypoint,
            tag=self.spec.image_tag,
            platform=runtime.platform,
        )
        self._log.debug("image_planned", tag=image.tag, binaries=[b.name for b in binaries])
        return image

    def check_linkage(self, image: RuntimeImage) -> bool:
        """Check collected executables against the runtime packages.

        Returns:
            False when the check was skipped (disabled, or readelf unavailable).

        Raises:
            MissingRuntimeDependencyError: If an executable needs a missing library.
        """
        if not self.spec.runtime.check_linkage:
            return False
        if shutil.which("readelf") is None:
            self._log.warning("linkage_check_skipped", reason="readelf not found")
            return False
        check_runtime_linkage({b.name: b.source for b in image.binaries}, image.packages)
        return True

    def verify(self, image: RuntimeImage, inspection: ImageInspection) -> None:
        """Compare a built image with its plan.

        Raises:
            MinimalityError: If build tooling is installed in the image.
            ImageAssemblyError: If user, entry point, env, ports or installed
                executables differ from the plan.
        """
        offenders = check_minimality(inspection.packages)
        if offenders:
            raise MinimalityError(offenders)

        problems: list[str] = []
        if inspection.user not in (image.user.name, str(image.user.uid)):
            problems.append(f"user is '{inspection.user}', expected '{image.user.name}'")
        if inspection.uid is not None and inspection.uid != image.user.uid:
            problems.append(f"uid is {inspection.uid}, expected {image.user.uid}")
        if inspection.entrypoint != image.entrypoint:
            problems.append(f"entrypoint is {inspection.entrypoint}, expected {image.entrypoint}")
        for key, value in image.env.items():
            if inspection.env.get(key) != value:
                problems.append(f"env {key} is {inspection.env.get(key)!r}, expected {value!r}")
        if f"{image.port}/tcp" not in inspection.exposed_ports:
            problems.append(f"port {image.port}/tcp is not exposed")
        expected_files = sorted(b.name for b in image.binaries)
        if inspection.installed_files != expected_files:
            problems.append(
                f"install directory holds {inspection.installed_files}, expected {expected_files}"
            )

        if problems:
            raise ImageAssemblyError(
                "Built image does not match the plan: " + "; ".join(problems)
            )

    def assemble(self, collected: CollectedArtifacts) -> AssembledImage:
        """Plan, build and verify the runtime image.

        Raises:
            ImageAssemblyError: If no backend is configured or any step fails.
        """
        if self.backend is None:
            raise ImageAssemblyError("No image backend configured")

        image = self.plan(collected)
        with span("shipwright.assemble", attributes={"tag": image.tag}):
            self.check_linkage(image)
            containerfile = render_containerfile(image)
            image_id = self.backend.build(
                containerfile,
                collected.dist_dir,
                image.tag,
                platform=image.platform,
            )
            inspection = self.backend.inspect(
                image.tag,
                user=image.user.name,
                install_dir=self.spec.runtime.install_dir,
            )
            self.verify(image, inspection)

        self._log.info("image_assembled", tag=image.tag, image_id=image_id)
        return AssembledImage(
            image=image,
            image_id=image_id,
            containerfile=containerfile,
            inspection=inspection,
        )
