"""Pipeline stages.

Each stage performs exactly one state transition. BaseStage handles
ordering, timing, logging and the conversion of failures into results;
subclasses only implement ``_execute``.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import Any

import structlog

from shipwright_core.build.collector import ArtifactCollector, CollectedArtifacts
from shipwright_core.build.compiler import BuildOutputSet, CompilerStage
from shipwright_core.build.graph import BuildGraph
from shipwright_core.build.toolchain import Toolchain
from shipwright_core.build.vendor import materialize_vendor_dir
from shipwright_core.cache.base import DependencyCache
from shipwright_core.errors import CompilationError, PipelineError, ShipwrightError
from shipwright_core.image.assembler import RuntimeImageAssembler
from shipwright_core.image.backend import ImageBackend
from shipwright_core.image.models import AssembledImage
from shipwright_core.manifest.loader import load_manifest_set
from shipwright_core.manifest.models import ManifestSet
from shipwright_core.observability import span
from shipwright_core.pipeline.models import PipelineState, StageResult, StageStatus
from shipwright_core.resolver.fetcher import PackageFetcher
from shipwright_core.resolver.resolver import DependencyResolver, ResolutionResult
from shipwright_core.schemas.release_spec import BinaryTarget, ReleaseSpec
from shipwright_core.schemas.service_env import BACKVONIA_ENVIRONMENT, ServiceEnvironment

logger = structlog.get_logger(__name__)


class PipelineContext:
    """Mutable state carried between stages of one run.

    Attributes:
        spec: Release configuration.
        targets: Binaries selected for this run.
        state: Current pipeline state.
    """

    def __init__(self, spec: ReleaseSpec, targets: list[BinaryTarget]) -> None:
        self.spec = spec
        self.targets = targets
        self.state = PipelineState.MANIFESTS_ONLY
        self.manifest_set: ManifestSet | None = None
        self.resolution: ResolutionResult | None = None
        self.outputs: BuildOutputSet | None = None
        self.collected: CollectedArtifacts | None = None
        self.image: AssembledImage | None = None

    def advance(self, to: PipelineState) -> None:
        """Move to the next state.

        Raises:
            PipelineError: If ``to`` is not the state right after the current one.
        """
        if self.state.next() != to:
            raise PipelineError(
                f"Cannot move from '{self.state.value}' to '{to.value}'"
            )
        self.state = to


class BaseStage(ABC):
    """Base class for pipeline stages.

    Attributes:
        name: Stage name for identification
        requires: State the pipeline must be in before the stage runs
        produces: State the pipeline reaches when the stage passes
    """

    name: str = "stage"
    requires: PipelineState = PipelineState.MANIFESTS_ONLY
    produces: PipelineState = PipelineState.DEPENDENCIES_RESOLVED

    def __init__(self) -> None:
        self._log = logger.bind(stage=self.name)

    def run(self, context: PipelineContext) -> StageResult:
        """Run the stage with ordering checks, timing and error handling.

        Returns:
            StageResult with status, message, and duration.
        """
        start_time = time.monotonic()
        timestamp = datetime.now(UTC)
        self._log.info("stage_started", state=context.state.value)

        try:
            if context.state != self.requires:
                raise PipelineError(
                    f"Stage '{self.name}' requires state '{self.requires.value}' "
                    f"but the pipeline is in '{context.state.value}'"
                )
            with span(f"shipwright.stage.{self.name}"):
                message, details = self._execute(context)
            context.advance(self.produces)
            status = StageStatus.PASSED

        except ShipwrightError as e:
            message = e.user_message
            details = {"error_type": type(e).__name__}
            if isinstance(e, CompilationError) and e.output_tail:
                details["output_tail"] = e.output_tail
            status = StageStatus.FAILED

        except Exception as e:
            message = f"Stage failed with error: {type(e).__name__}"
            details = {"error": str(e), "error_type": type(e).__name__}
            status = StageStatus.ERROR

        duration_ms = int((time.monotonic() - start_time) * 1000)
        if status == StageStatus.PASSED:
            self._log.info("stage_completed", state=self.produces.value, duration_ms=duration_ms)
        else:
            self._log.error(
                "stage_failed",
                status=status.value,
                error_type=details.get("error_type"),
                duration_ms=duration_ms,
            )

        return StageResult(
            name=self.name,
            status=status,
            state=self.produces,
            message=message,
            details=details,
            duration_ms=duration_ms,
            timestamp=timestamp,
        )

    @abstractmethod
    def _execute(self, context: PipelineContext) -> tuple[str, dict[str, Any]]:
        """Perform the transition.

        Returns:
            Tuple of (message, details) for the stage result.

        Raises:
            Any exception will be caught by run() and converted to a failed result.
        """

    def skipped(self, reason: str) -> StageResult:
        return StageResult(
            name=self.name,
            status=StageStatus.SKIPPED,
            state=self.produces,
            message=reason,
        )


class ResolveStage(BaseStage):
    """manifests-only -> dependencies-resolved."""

    name = "resolve"
    requires = PipelineState.MANIFESTS_ONLY
    produces = PipelineState.DEPENDENCIES_RESOLVED

    def __init__(self, cache: DependencyCache, fetcher: PackageFetcher) -> None:
        super().__init__()
        self.cache = cache
        self.fetcher = fetcher

    def _execute(self, context: PipelineContext) -> tuple[str, dict[str, Any]]:
        manifest_set = load_manifest_set(context.spec.workspace_dir)
        resolver = DependencyResolver(
            self.cache,
            self.fetcher,
            concurrency=context.spec.registry.concurrency,
        )
        resolution = resolver.resolve(manifest_set)
        context.manifest_set = manifest_set
        context.resolution = resolution

        if resolution.cache_hit:
            message = f"{len(resolution.packages)} packages, resolution cached"
        else:
            message = (
                f"{len(resolution.packages)} packages, {resolution.fetched_count} fetched"
            )
        return message, {
            "fingerprint": resolution.fingerprint,
            "packages": len(resolution.packages),
            "fetched": resolution.fetched_count,
            "cache_hit": resolution.cache_hit,
        }


class CompileStage(BaseStage):
    """dependencies-resolved -> binaries-built."""

    name = "compile"
    requires = PipelineState.DEPENDENCIES_RESOLVED
    produces = PipelineState.BINARIES_BUILT

    def __init__(self, cache: DependencyCache, toolchain: Toolchain) -> None:
        super().__init__()
        self.cache = cache
        self.toolchain = toolchain

    def _execute(self, context: PipelineContext) -> tuple[str, dict[str, Any]]:
        if context.manifest_set is None:
            raise PipelineError("Dependencies have not been resolved")

        spec = context.spec
        vendor_dir = materialize_vendor_dir(
            self.cache,
            context.manifest_set.lockfile,
            spec.workspace_path(spec.build.vendor_dir),
        )
        compiler = CompilerStage(
            BuildGraph.from_manifest_set(context.manifest_set),
            self.toolchain,
            spec.build,
            spec.workspace_dir,
            vendor_dir=vendor_dir,
        )
        outputs = compiler.build(context.targets)
        context.outputs = outputs
        return f"built {', '.join(outputs.names)}", {
            name: str(output.path) for name, output in outputs.outputs.items()
        }


class CollectStage(BaseStage):
    """binaries-built -> binaries-collected."""

    name = "collect"
    requires = PipelineState.BINARIES_BUILT
    produces = PipelineState.BINARIES_COLLECTED

    def _execute(self, context: PipelineContext) -> tuple[str, dict[str, Any]]:
        if context.outputs is None:
            raise PipelineError("No Build Output Set to collect")

        collector = ArtifactCollector(context.spec.workspace_path(context.spec.build.dist_dir))
        collected = collector.collect(context.outputs)
        context.collected = collected
        unchanged = [a.name for a in collected.artifacts if not a.written]
        message = f"collected into {collected.dist_dir}"
        if unchanged:
            message += f" ({len(unchanged)} unchanged)"
        return message, {a.name: a.sha256 for a in collected.artifacts}


class AssembleStage(BaseStage):
    """binaries-collected -> image-assembled."""

    name = "assemble"
    requires = PipelineState.BINARIES_COLLECTED
    produces = PipelineState.IMAGE_ASSEMBLED

    def __init__(
        self,
        backend: ImageBackend,
        environment: ServiceEnvironment = BACKVONIA_ENVIRONMENT,
    ) -> None:
        super().__init__()
        self.backend = backend
        self.environment = environment

    def _execute(self, context: PipelineContext) -> tuple[str, dict[str, Any]]:
        if context.collected is None:
            raise PipelineError("No collected artifacts to assemble")

        assembler = RuntimeImageAssembler(
            context.spec,
            backend=self.backend,
            environment=self.environment,
        )
        assembled = assembler.assemble(context.collected)
        context.image = assembled
        return f"built {assembled.image.tag}", {
            "tag": assembled.image.tag,
            "image_id": assembled.image_id,
            "entrypoint": assembled.image.entrypoint,
        }
