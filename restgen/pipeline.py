# File: restgen/pipeline.py
"""
RestGen - Registration Pipeline
================================
An ordered list of stages, each gating the next.

A stage is an async callable returning a ``StageResult``:

- ``CONTINUE``  the stage completed normally;
- ``DEGRADED``  the stage hit a recoverable failure and the pipeline keeps
  going with reduced functionality;
- ``ABORT``     registration stops with ``RegistrationError``.

Exceptions raised by a stage propagate unchanged.  Every stage is timed and
recorded in a ``RegistrationReport``.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, List, Sequence

from restgen.exceptions import RegistrationError
from restgen.utils import Timer

logger: logging.Logger = logging.getLogger("restgen.pipeline")


class StageStatus(str, Enum):
    CONTINUE = "continue"
    DEGRADED = "degraded"
    ABORT = "abort"


@dataclass(frozen=True)
class StageResult:
    status: StageStatus = StageStatus.CONTINUE
    detail: str = ""

    @classmethod
    def ok(cls, detail: str = "") -> "StageResult":
        return cls(StageStatus.CONTINUE, detail)

    @classmethod
    def degraded(cls, detail: str) -> "StageResult":
        return cls(StageStatus.DEGRADED, detail)

    @classmethod
    def abort(cls, detail: str) -> "StageResult":
        return cls(StageStatus.ABORT, detail)


@dataclass(frozen=True)
class Stage:
    name: str
    run: Callable[[], Awaitable[StageResult]]


@dataclass(slots=True)
class StageMetric:
    """Timing and outcome for a single stage."""

    stage_name: str = ""
    status: StageStatus = StageStatus.CONTINUE
    elapsed_seconds: float = 0.0
    detail: str = ""


@dataclass(slots=True)
class RegistrationReport:
    stage_metrics: List[StageMetric] = field(default_factory=list)
    total_elapsed_seconds: float = 0.0

    @property
    def degraded(self) -> bool:
        return any(m.status == StageStatus.DEGRADED for m in self.stage_metrics)

    def stage_names(self) -> List[str]:
        return [m.stage_name for m in self.stage_metrics]

    def summary(self) -> str:
        lines: List[str] = [f"Registration: {len(self.stage_metrics)} stage(s) in {self.total_elapsed_seconds:.3f}s"]
        for metric in self.stage_metrics:
            icon: str = "⚠" if metric.status == StageStatus.DEGRADED else "✓"
            lines.append(
                f"  {icon} {metric.stage_name:<24s} {metric.elapsed_seconds:>7.3f}s  {metric.detail}"
            )
        return "\n".join(lines)


class RegistrationPipeline:
    """Runs stages strictly in order."""

    def __init__(self, stages: Sequence[Stage], log: Any = logger) -> None:
        self.stages: List[Stage] = list(stages)
        self.log = log

    async def run(self) -> RegistrationReport:
        """
        Raises:
            RegistrationError: When a stage returns ``ABORT``.
        """
        report: RegistrationReport = RegistrationReport()
        start: float = time.perf_counter()

        for stage in self.stages:
            with Timer(stage.name) as t:
                result: StageResult = await stage.run()
            report.stage_metrics.append(
                StageMetric(
                    stage_name=stage.name,
                    status=result.status,
                    elapsed_seconds=t.elapsed,
                    detail=result.detail,
                )
            )
            if result.status == StageStatus.ABORT:
                raise RegistrationError(f"Stage '{stage.name}' aborted: {result.detail}")
            if result.status == StageStatus.DEGRADED:
                self.log.warning("Stage '%s' degraded: %s", stage.name, result.detail)

        report.total_elapsed_seconds = time.perf_counter() - start
        self.log.debug("%s", report.summary())
        return report


__all__ = [
    "RegistrationPipeline",
    "RegistrationReport",
    "Stage",
    "StageMetric",
    "StageResult",
    "StageStatus",
]
