"""Pipeline runner.

Runs stages in order up to a target state. The first failure stops the
run; later stages are reported as skipped, and any Build Output Set or
collected artifact written by this run is removed so a failed run leaves
nothing behind that looks like a release.
"""

from __future__ import annotations

import time
from datetime import UTC, datetime

import structlog

from shipwright_core.build.collector import ArtifactCollector
from shipwright_core.build.toolchain import Toolchain
from shipwright_core.cache.base import DependencyCache
from shipwright_core.errors import ConfigurationError
from shipwright_core.image.backend import ImageBackend
from shipwright_core.pipeline.models import (
    PipelineResult,
    PipelineState,
    StageResult,
    StageStatus,
)
from shipwright_core.pipeline.stages import (
    AssembleStage,
    BaseStage,
    CollectStage,
    CompileStage,
    PipelineContext,
    ResolveStage,
)
from shipwright_core.resolver.fetcher import PackageFetcher
from shipwright_core.schemas.release_spec import BinaryTarget, ReleaseSpec
from shipwright_core.schemas.service_env import BACKVONIA_ENVIRONMENT, ServiceEnvironment

logger = structlog.get_logger(__name__)


def select_targets(spec: ReleaseSpec, selection: list[str] | None) -> list[BinaryTarget]:
    """Pick release binaries by package or install name (all when empty).

    Raises:
        ConfigurationError: If a name matches no configured binary.
    """
    if not selection:
        return list(spec.binaries)

    selected: list[BinaryTarget] = []
    for name in selection:
        match = next(
            (b for b in spec.binaries if name in (b.package, b.installed_name)),
            None,
        )
        if match is None:
            known = ", ".join(b.installed_name for b in spec.binaries)
            raise ConfigurationError(
                f"'{name}' is not a release binary (configured: {known})",
                field_path="binaries",
            )
        if match not in selected:
            selected.append(match)
    return selected


class PipelineRunner:
    """Orchestrates a pipeline run.

    Attributes:
        spec: Release configuration
        targets: Binaries built in this run
        until: State the run stops at

    Example:
        >>> runner = PipelineRunner(
        ...     spec,
        ...     cache=FileSystemDependencyCache(get_cache_dir()),
        ...     fetcher=RegistryFetcher(spec.registry),
        ...     toolchain=CargoToolchain(),
        ...     backend=DockerCliBackend(),
        ... )
        >>> result = runner.run()
        >>> result.state
        <PipelineState.IMAGE_ASSEMBLED: 'image-assembled'>
    """

    def __init__(
        self,
        spec: ReleaseSpec,
        *,
        cache: DependencyCache,
        fetcher: PackageFetcher,
        toolchain: Toolchain | None = None,
        backend: ImageBackend | None = None,
        targets: list[str] | None = None,
        until: PipelineState = PipelineState.IMAGE_ASSEMBLED,
        environment: ServiceEnvironment = BACKVONIA_ENVIRONMENT,
    ) -> None:
        """Initialize the runner.

        Raises:
            ConfigurationError: If the selection is unknown, a needed backend is
                missing, or a partial selection is asked to produce an image.
        """
        if until == PipelineState.MANIFESTS_ONLY:
            raise ConfigurationError("Nothing to do: target state is 'manifests-only'")

        self.spec = spec
        self.targets = select_targets(spec, targets)
        self.until = until

        if until.index >= PipelineState.BINARIES_BUILT.index and toolchain is None:
            raise ConfigurationError("A toolchain is required to build binaries")
        if until == PipelineState.IMAGE_ASSEMBLED:
            if backend is None:
                raise ConfigurationError("An image backend is required to assemble the image")
            if len(self.targets) != len(spec.binaries):
                raise ConfigurationError(
                    "The runtime image needs every release binary; "
                    "select all binaries or stop before assembly"
                )

        self._stages: list[BaseStage] = [ResolveStage(cache, fetcher)]
        if toolchain is not None:
            self._stages.append(CompileStage(cache, toolchain))
            self._stages.append(CollectStage())
        if backend is not None:
            self._stages.append(AssembleStage(backend, environment))
        self._stages = [s for s in self._stages if s.produces.index <= until.index]

        self._log = logger.bind(component="pipeline_runner", release=spec.name)

    @property
    def stages(self) -> list[BaseStage]:
        return list(self._stages)

    def run(self) -> PipelineResult:
        """Run every stage up to the target state.

        Returns:
            PipelineResult with all stage outcomes
        """
        start_time = time.monotonic()
        started_at = datetime.now(UTC)
        context = PipelineContext(self.spec, self.targets)
        results: list[StageResult] = []

        self._log.info(
            "pipeline_started",
            until=self.until.value,
            targets=[t.installed_name for t in self.targets],
        )

        failed = False
        for stage in self._stages:
            if failed:
                results.append(stage.skipped("not run: an earlier stage failed"))
                continue
            result = stage.run(context)
            results.append(result)
            failed = result.failed

        removed = self._clean_up(context) if failed else []

        finished_at = datetime.now(UTC)
        total_duration_ms = int((time.monotonic() - start_time) * 1000)
        overall_status = self._determine_overall_status(results)

        self._log.info(
            "pipeline_completed",
            overall_status=overall_status.value,
            state=context.state.value,
            total_duration_ms=total_duration_ms,
        )

        return PipelineResult(
            stages=results,
            state=context.state,
            target=self.until,
            overall_status=overall_status,
            started_at=started_at,
            finished_at=finished_at,
            total_duration_ms=total_duration_ms,
            removed=removed,
            image_tag=context.image.image.tag if context.image is not None else None,
        )

    def _clean_up(self, context: PipelineContext) -> list[str]:
        """Remove what this run produced after a failure."""
        removed: list[str] = []

        if context.collected is not None:
            collector = ArtifactCollector(context.collected.dist_dir)
            removed.extend(str(a.path) for a in context.collected.artifacts if a.written)
            collector.remove(context.collected)

        if context.outputs is not None:
            for output in context.outputs.outputs.values():
                if output.path.exists():
                    output.path.unlink()
                    removed.append(str(output.path))

        if removed:
            self._log.warning("pipeline_cleaned_up", removed=removed)
        return removed

    def _determine_overall_status(self, results: list[StageResult]) -> StageStatus:
        if any(r.status == StageStatus.ERROR for r in results):
            return StageStatus.ERROR

        if any(r.status == StageStatus.FAILED for r in results):
            return StageStatus.FAILED

        if not results:
            return StageStatus.SKIPPED

        return StageStatus.PASSED
