"""Compiler/Linker stage.

Builds the selected release binaries through an injected Toolchain. Each
binary gets its own intermediate-artifact directory under the configured
target dir, so building one binary never compiles or invalidates another
and independent binaries can build concurrently. The stage is
all-or-nothing: if any binary fails, no Build Output Set is returned and
the executables of binaries that did build are removed from the target dir.
"""

from __future__ import annotations

import hashlib
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import structlog
from pydantic import BaseModel, ConfigDict, Field

from shipwright_core.build.graph import BuildGraph, BuildUnit
from shipwright_core.build.toolchain import BuildRequest, Toolchain
from shipwright_core.errors import CompilationError
from shipwright_core.observability import span
from shipwright_core.schemas.release_spec import BinaryTarget, BuildConfig

logger = structlog.get_logger(__name__)


def file_digest(path: Path) -> str:
    """SHA-256 of a file's contents."""
    digest = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            digest.update(chunk)
    return digest.hexdigest()


class BuildOutput(BaseModel):
    """One produced executable.

    Attributes:
        name: Logical binary name (the install name).
        package: Workspace package it was built from.
        artifact: Binary target name.
        path: Produced executable.
        sha256: Digest of the executable at build time.
        size: Size in bytes.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1)
    package: str = Field(..., min_length=1)
    artifact: str = Field(..., min_length=1)
    path: Path = Field(...)
    sha256: str = Field(..., min_length=64, max_length=64)
    size: int = Field(..., ge=0)


class BuildOutputSet(BaseModel):
    """Executables produced by one compiler invocation, keyed by logical name."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    outputs: dict[str, BuildOutput] = Field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.outputs)

    def __contains__(self, name: object) -> bool:
        return name in self.outputs

    def get(self, name: str) -> BuildOutput | None:
        return self.outputs.get(name)

    @property
    def names(self) -> list[str]:
        return sorted(self.outputs)


class CompilerStage:
    """Build selected workspace binaries.

    Attributes:
        graph: Workspace build graph.
        toolchain: Injected toolchain.
        config: Build configuration.
        workspace_dir: Workspace root.
        vendor_dir: Vendored dependencies (offline builds), if any.

    Example:
        >>> stage = CompilerStage(graph, CargoToolchain(), BuildConfig(), Path("."))
        >>> outputs = stage.build([BinaryTarget(package="backvonia")])
        >>> outputs.names
        ['backvonia']
    """

    def __init__(
        self,
        graph: BuildGraph,
        toolchain: Toolchain,
        config: BuildConfig,
        workspace_dir: Path,
        *,
        vendor_dir: Path | None = None,
    ) -> None:
        self.graph = graph
        self.toolchain = toolchain
        self.config = config
        self.workspace_dir = workspace_dir
        self.vendor_dir = vendor_dir
        self._log = logger.bind(component="compiler_stage", toolchain=toolchain.name)

    @property
    def target_root(self) -> Path:
        target = Path(self.config.target_dir)
        return target if target.is_absolute() else self.workspace_dir / target

    def request_for(self, unit: BuildUnit) -> BuildRequest:
        return BuildRequest(
            package=unit.target.package,
            artifact=unit.target.artifact_name,
            profile=self.config.profile,
            workspace_dir=self.workspace_dir,
            target_dir=self.target_root / unit.target.package,
            vendor_dir=self.vendor_dir,
        )

    def build(self, targets: list[BinaryTarget]) -> BuildOutputSet:
        """Build every target, in parallel when configured.

        Raises:
            ConfigurationError: If a target is not a buildable workspace binary.
            CompilationError: If any build fails.
        """
        units = self.graph.plan(targets)
        if not units:
            return BuildOutputSet()

        self._log.info(
            "compile_started",
            binaries=[u.target.installed_name for u in units],
            parallel=self.config.parallel,
        )

        results: list[BuildOutput | CompilationError] = []
        if self.config.parallel and len(units) > 1:
            with ThreadPoolExecutor(max_workers=len(units)) as executor:
                futures = [executor.submit(self._build_unit, u) for u in units]
                for future in futures:
                    try:
                        results.append(future.result())
                    except CompilationError as e:
                        results.append(e)
        else:
            for unit in units:
                try:
                    results.append(self._build_unit(unit))
                except CompilationError as e:
                    results.append(e)
                    break

        failures = [r for r in results if isinstance(r, CompilationError)]
        if failures:
            self._log.error("compile_failed", failed=[f.package for f in failures])
            self._discard([r for r in results if isinstance(r, BuildOutput)])
            if len(failures) == 1:
                raise failures[0]
            raise CompilationError(
                ", ".join(f.package for f in failures),
                "; ".join(f.user_message for f in failures),
                output_tail="\n".join(f.output_tail for f in failures if f.output_tail),
            )

        outputs = {r.name: r for r in results if isinstance(r, BuildOutput)}
        self._log.info("compile_completed", binaries=sorted(outputs))
        return BuildOutputSet(outputs=outputs)

    def _discard(self, outputs: list[BuildOutput]) -> None:
        """Remove executables of binaries that built while a sibling failed."""
        for output in outputs:
            output.path.unlink(missing_ok=True)
        if outputs:
            self._log.info("compile_outputs_discarded", binaries=[o.name for o in outputs])

    def _build_unit(self, unit: BuildUnit) -> BuildOutput:
        target = unit.target
        with span(
            "shipwright.compile",
            attributes={"package": target.package, "members": ",".join(unit.members)},
        ):
            executable = self.toolchain.build(self.request_for(unit))
            if not executable.is_file():
                raise CompilationError(target.package, f"{executable} is not a file")
            return BuildOutput(
                name=target.installed_name,
                package=target.package,
                artifact=target.artifact_name,
                path=executable,
                sha256=file_digest(executable),
                size=executable.stat().st_size,
            )
