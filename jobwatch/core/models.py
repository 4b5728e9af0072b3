"""Canonical domain models for the watcher.

These are the only shapes that flow between the discovery loop, the capture pipeline
and the CLI. Cluster payloads themselves never appear here: the cluster query layer
renders them to text before they reach the pipeline.
"""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

StepStatus = Literal["ok", "skipped", "failed"]
PodWaitState = Literal["resolved", "timed_out"]


class BaseModelStrict(BaseModel):
    model_config = ConfigDict(extra="forbid")


class JobRecord(BaseModelStrict):
    name: str
    namespace: str


class DiagnosticsRun(BaseModelStrict):
    """Working state for one job's capture. Created on first detection, never reused."""

    job_name: str
    namespace: str
    output_dir: str
    pod_name: Optional[str] = None
    init_container: Optional[str] = None


class StepResult(BaseModelStrict):
    step: str
    status: StepStatus
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


def step_ok(step: str) -> StepResult:
    return StepResult(step=step, status="ok")


def step_skipped(step: str, reason: str) -> StepResult:
    return StepResult(step=step, status="skipped", reason=reason)


def step_failed(step: str, reason: str) -> StepResult:
    return StepResult(step=step, status="failed", reason=reason)


class CapturedFile(BaseModelStrict):
    remote_path: str
    remote_name: str
    local_name: str
    copied: bool = False


class PodWaitResult(BaseModelStrict):
    state: PodWaitState
    pod_name: Optional[str] = None
    waited_seconds: float = 0.0

    @property
    def resolved(self) -> bool:
        return self.state == "resolved" and bool(self.pod_name)


class CaptureReport(BaseModelStrict):
    job_name: str
    output_dir: str
    pod_name: Optional[str] = None
    init_container: Optional[str] = None
    steps: List[StepResult] = Field(default_factory=list)
    harvested: List[CapturedFile] = Field(default_factory=list)

    def outcome(self, step: str) -> Optional[StepResult]:
        """Return the first recorded result for `step` (None if the step never ran)."""
        for s in self.steps:
            if s.step == step:
                return s
        return None

    def counts(self) -> dict:
        out = {"ok": 0, "skipped": 0, "failed": 0}
        for s in self.steps:
            out[s.status] += 1
        return out


class WatchSummary(BaseModelStrict):
    namespace: str
    cycles: int = 0
    jobs_processed: List[str] = Field(default_factory=list)
    reports: List[CaptureReport] = Field(default_factory=list)
