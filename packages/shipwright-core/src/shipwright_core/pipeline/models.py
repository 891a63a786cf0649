"""Pipeline result models.

A run walks the state machine

    manifests-only -> dependencies-resolved -> binaries-built
        -> binaries-collected -> image-assembled

one stage per transition. Transitions are one-directional and
all-or-nothing; a failed stage ends the run.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class PipelineState(str, Enum):
    """Pipeline states, in transition order."""

    MANIFESTS_ONLY = "manifests-only"
    DEPENDENCIES_RESOLVED = "dependencies-resolved"
    BINARIES_BUILT = "binaries-built"
    BINARIES_COLLECTED = "binaries-collected"
    IMAGE_ASSEMBLED = "image-assembled"

    @classmethod
    def ordered(cls) -> list[PipelineState]:
        return list(cls)

    @property
    def index(self) -> int:
        return PipelineState.ordered().index(self)

    def next(self) -> PipelineState | None:
        states = PipelineState.ordered()
        position = states.index(self)
        return states[position + 1] if position + 1 < len(states) else None


class StageStatus(str, Enum):
    """Status of a pipeline stage.

    Attributes:
        PASSED: Stage completed and the pipeline advanced
        FAILED: Stage failed on a pipeline or user error
        ERROR: Stage failed on an unexpected system error
        SKIPPED: Stage not run (earlier failure or out of scope)
    """

    PASSED = "passed"
    FAILED = "failed"
    ERROR = "error"
    SKIPPED = "skipped"


class StageResult(BaseModel):
    """Result of one pipeline stage.

    Attributes:
        name: Stage name (e.g., "resolve", "compile")
        status: Stage status
        state: State the pipeline reaches when the stage passes
        message: Human-readable result message
        details: Additional details (counts, paths, error context)
        duration_ms: Stage duration in milliseconds
        timestamp: When the stage started
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1, description="Stage name")
    status: StageStatus = Field(..., description="Stage status")
    state: PipelineState = Field(..., description="State reached on success")
    message: str = Field(default="", description="Result message")
    details: dict[str, Any] = Field(default_factory=dict, description="Additional details")
    duration_ms: int = Field(default=0, ge=0, description="Duration in milliseconds")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="Stage timestamp"
    )

    @property
    def passed(self) -> bool:
        return self.status == StageStatus.PASSED

    @property
    def failed(self) -> bool:
        return self.status in (StageStatus.FAILED, StageStatus.ERROR)


class PipelineResult(BaseModel):
    """Aggregated result of a pipeline run.

    Attributes:
        stages: Stage results in execution order
        state: Last state the pipeline reached
        target: State the run was asked to reach
        overall_status: Overall run status
        started_at: When the run started
        finished_at: When the run finished
        total_duration_ms: Total duration in milliseconds
        removed: Paths removed while cleaning up after a failure
        image_tag: Tag of the assembled image, if any
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    stages: list[StageResult] = Field(default_factory=list, description="Stage results")
    state: PipelineState = Field(default=PipelineState.MANIFESTS_ONLY, description="Reached")
    target: PipelineState = Field(default=PipelineState.IMAGE_ASSEMBLED, description="Target")
    overall_status: StageStatus = Field(default=StageStatus.PASSED, description="Overall")
    started_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="Start time"
    )
    finished_at: datetime | None = Field(default=None, description="End time")
    total_duration_ms: int = Field(default=0, ge=0, description="Total duration")
    removed: list[str] = Field(default_factory=list, description="Cleaned-up paths")
    image_tag: str | None = Field(default=None, description="Assembled image tag")

    @property
    def passed(self) -> bool:
        return self.overall_status == StageStatus.PASSED and self.state == self.target

    @property
    def failed(self) -> bool:
        return self.overall_status in (StageStatus.FAILED, StageStatus.ERROR)

    @property
    def failed_stage(self) -> StageResult | None:
        return next((s for s in self.stages if s.failed), None)

    @property
    def passed_count(self) -> int:
        return sum(1 for s in self.stages if s.passed)

    @property
    def failed_count(self) -> int:
        return sum(1 for s in self.stages if s.failed)
