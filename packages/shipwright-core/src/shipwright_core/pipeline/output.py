"""Pipeline result output formatters.

Rich table and JSON output for pipeline results.
"""

from __future__ import annotations

import json
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from shipwright_core.pipeline.models import PipelineResult, StageResult, StageStatus


def _status_label(status: StageStatus) -> str:
    labels = {
        StageStatus.PASSED: "ok",
        StageStatus.FAILED: "FAIL",
        StageStatus.ERROR: "ERR",
        StageStatus.SKIPPED: "skip",
    }
    return labels.get(status, "?")


def _status_color(status: StageStatus) -> str:
    colors = {
        StageStatus.PASSED: "green",
        StageStatus.FAILED: "red",
        StageStatus.ERROR: "red bold",
        StageStatus.SKIPPED: "dim",
    }
    return colors.get(status, "white")


def format_result_table(result: PipelineResult, console: Console | None = None) -> None:
    """Format a pipeline result as a Rich panel and table.

    Args:
        result: PipelineResult to display
        console: Optional Rich console (creates one if not provided)
    """
    if console is None:
        console = Console()

    color = _status_color(result.overall_status)
    header = Text()
    header.append("Status: ", style=color)
    header.append(result.overall_status.value.upper(), style=f"bold {color}")
    header.append(f"\nState: {result.state.value}")
    if result.state != result.target:
        header.append(f" (target {result.target.value})", style="dim")
    if result.image_tag:
        header.append(f"\nImage: {result.image_tag}")
    if result.total_duration_ms > 0:
        header.append(f"\nDuration: {result.total_duration_ms}ms")

    console.print(Panel(header, title="[bold]Pipeline[/bold]"))

    table = Table(show_header=True, header_style="bold")
    table.add_column("Status", width=6, justify="center")
    table.add_column("Stage", min_width=10)
    table.add_column("Message", min_width=30)
    table.add_column("Duration", justify="right", width=10)

    for stage in result.stages:
        stage_color = _status_color(stage.status)
        duration = f"{stage.duration_ms}ms" if stage.duration_ms > 0 else "-"
        table.add_row(
            Text(_status_label(stage.status), style=stage_color),
            Text(stage.name, style=stage_color),
            Text(stage.message or "-", style="dim" if not stage.message else ""),
            duration,
        )

    console.print(table)

    failed = result.failed_stage
    if failed is not None:
        console.print()
        console.print(f"[bold red]Stage '{failed.name}' failed:[/bold red]")
        console.print(f"  {failed.message}", markup=False)
        tail = failed.details.get("output_tail")
        if tail:
            console.print(tail, style="dim", markup=False)

    if result.removed:
        console.print()
        console.print("[yellow]Removed outputs of this run:[/yellow]")
        for path in result.removed:
            console.print(f"  {path}", markup=False)


def format_result_json(result: PipelineResult, pretty: bool = True) -> str:
    """Format a pipeline result as JSON."""
    data = _result_to_dict(result)
    if pretty:
        return json.dumps(data, indent=2, default=str)
    return json.dumps(data, default=str)


def _result_to_dict(result: PipelineResult) -> dict[str, Any]:
    return {
        "status": result.overall_status.value,
        "passed": result.passed,
        "state": result.state.value,
        "target": result.target.value,
        "image_tag": result.image_tag,
        "summary": {
            "total": len(result.stages),
            "passed": result.passed_count,
            "failed": result.failed_count,
        },
        "duration_ms": result.total_duration_ms,
        "started_at": result.started_at.isoformat() if result.started_at else None,
        "finished_at": result.finished_at.isoformat() if result.finished_at else None,
        "removed": result.removed,
        "stages": [_stage_to_dict(stage) for stage in result.stages],
    }


def _stage_to_dict(stage: StageResult) -> dict[str, Any]:
    return {
        "name": stage.name,
        "status": stage.status.value,
        "state": stage.state.value,
        "message": stage.message,
        "details": stage.details,
        "duration_ms": stage.duration_ms,
        "timestamp": stage.timestamp.isoformat() if stage.timestamp else None,
    }


def print_result(
    result: PipelineResult,
    output_format: str = "table",
    console: Console | None = None,
) -> None:
    """Print a pipeline result in the requested format.

    Args:
        result: PipelineResult to display
        output_format: Output format ("table" or "json")
        console: Optional Rich console
    """
    if console is None:
        console = Console()

    if output_format == "json":
        # Raw JSON, bypassing Rich formatting
        console.file.write(format_result_json(result, pretty=True) + "\n")
    else:
        format_result_table(result, console)
