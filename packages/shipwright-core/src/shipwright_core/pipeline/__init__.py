"""Release pipeline state machine.

This module exports:
- PipelineRunner: Run stages up to a target state
- PipelineState, StageStatus: State machine and stage statuses
- PipelineResult, StageResult: Run results
- print_result, format_result_json: Output formatting
"""

from __future__ import annotations

from shipwright_core.pipeline.models import (
    PipelineResult,
    PipelineState,
    StageResult,
    StageStatus,
)
from shipwright_core.pipeline.output import (
    format_result_json,
    format_result_table,
    print_result,
)
from shipwright_core.pipeline.runner import PipelineRunner, select_targets
from shipwright_core.pipeline.stages import (
    AssembleStage,
    BaseStage,
    CollectStage,
    CompileStage,
    PipelineContext,
    ResolveStage,
)

__all__: list[str] = [
    "AssembleStage",
    "BaseStage",
    "CollectStage",
    "CompileStage",
    "PipelineContext",
    "PipelineResult",
    "PipelineRunner",
    "PipelineState",
    "ResolveStage",
    "StageResult",
    "StageStatus",
    "format_result_json",
    "format_result_table",
    "print_result",
    "select_targets",
]
