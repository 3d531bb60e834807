# =============================================================================
# core/workflow.py  —  Linear Workflow Runner with Suspend / Resume
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Runs a fixed chain of named steps.  Each step receives the previous
#   step's output and returns a dict.  A step may SUSPEND the run to wait
#   for a human (approval, feedback); the run is then resumed later with
#   the human's answer, re-entering the suspended step with `resume_data`.
#
# RUN LIFECYCLE:
#   running ──▶ success
#      │   └──▶ failed     (a step raised; error message recorded)
#      └──▶ suspended ──resume()──▶ running ...
#
#   Runs are plain dataclasses kept in a RunStore, so a tool call can start
#   a run and a later tool call can resume it by id.
# =============================================================================

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class WorkflowError(ValueError):
    """Invalid workflow operation (unknown run, resuming a finished run...)."""


class WorkflowSuspended(Exception):
    """Raised by StepContext.suspend() to stop the run at the current step."""

    def __init__(self, payload: dict):
        super().__init__("workflow suspended")
        self.payload = payload


class RunStatus(str, Enum):
    RUNNING = "running"
    SUSPENDED = "suspended"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class StepContext:
    """What a step sees while it executes."""

    input_data: dict
    state: dict
    resume_data: Optional[dict] = None

    def suspend(self, payload: dict):
        raise WorkflowSuspended(payload)


@dataclass
class Step:
    id: str
    description: str
    execute: Callable[[StepContext], dict]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class WorkflowRun:
    """One execution of a workflow."""

    workflow_id: str
    input_data: dict
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: RunStatus = RunStatus.RUNNING
    step_results: dict[str, dict] = field(default_factory=dict)
    state: dict = field(default_factory=dict)
    suspended_step: Optional[str] = None
    suspend_payload: Optional[dict] = None
    output: Optional[dict] = None
    error: Optional[str] = None
    started_at: str = field(default_factory=_now)
    completed_at: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "workflow_id": self.workflow_id,
            "status": self.status.value,
            "step_results": self.step_results,
            "suspended_step": self.suspended_step,
            "suspend_payload": self.suspend_payload,
            "output": self.output,
            "error": self.error,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
        }


class Workflow:
    """A named, ordered chain of steps."""

    def __init__(self, id: str, description: str, steps: list[Step]):
        if not steps:
            raise ValueError("A workflow needs at least one step")
        ids = [s.id for s in steps]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Duplicate step ids in workflow '{id}': {ids}")
        self.id = id
        self.description = description
        self.steps = steps

    def start(self, input_data: dict) -> WorkflowRun:
        run = WorkflowRun(workflow_id=self.id, input_data=input_data)
        logger.info("Workflow %s run %s started", self.id, run.run_id)
        return self._advance(run, start_index=0, step_input=input_data, resume_data=None)

    def resume(self, run: WorkflowRun, resume_data: dict) -> WorkflowRun:
        if run.workflow_id != self.id:
            raise WorkflowError(f"Run {run.run_id} belongs to workflow '{run.workflow_id}', not '{self.id}'")
        if run.status != RunStatus.SUSPENDED:
            raise WorkflowError(f"Run {run.run_id} is {run.status.value}, only suspended runs can be resumed")

        index = self._index_of(run.suspended_step)
        step_input = run.input_data if index == 0 else run.step_results[self.steps[index - 1].id]

        logger.info("Workflow %s run %s resuming at %s", self.id, run.run_id, run.suspended_step)
        run.status = RunStatus.RUNNING
        run.suspended_step = None
        run.suspend_payload = None
        return self._advance(run, start_index=index, step_input=step_input, resume_data=resume_data)

    def _index_of(self, step_id: Optional[str]) -> int:
        for index, step in enumerate(self.steps):
            if step.id == step_id:
                return index
        raise WorkflowError(f"Workflow '{self.id}' has no step '{step_id}'")

    def _advance(
        self,
        run: WorkflowRun,
        start_index: int,
        step_input: dict,
        resume_data: Optional[dict],
    ) -> WorkflowRun:
        for step in self.steps[start_index:]:
            ctx = StepContext(input_data=step_input, state=run.state, resume_data=resume_data)
            try:
                output = step.execute(ctx)
            except WorkflowSuspended as suspended:
                run.status = RunStatus.SUSPENDED
                run.suspended_step = step.id
                run.suspend_payload = suspended.payload
                logger.info("Workflow %s run %s suspended at %s", self.id, run.run_id, step.id)
                return run
            except Exception as exc:
                logger.exception("Workflow %s run %s failed at %s", self.id, run.run_id, step.id)
                run.status = RunStatus.FAILED
                run.error = f"{step.id}: {exc}"
                run.completed_at = _now()
                return run

            run.step_results[step.id] = output
            step_input = output
            # resume_data belongs to the step that suspended, not the ones after it
            resume_data = None

        run.status = RunStatus.SUCCESS
        run.output = step_input
        run.completed_at = _now()
        logger.info("Workflow %s run %s completed", self.id, run.run_id)
        return run


class RunStore:
    """In-memory registry of workflow runs, keyed by run id.

    Running and suspended runs are always kept.  Once more than
    `max_finished_runs` runs have succeeded or failed, the oldest of them
    are dropped on the next save.
    """

    def __init__(self, max_finished_runs: int = 100):
        if max_finished_runs < 1:
            raise ValueError("max_finished_runs must be at least 1")
        self.max_finished_runs = max_finished_runs
        self._runs: dict[str, WorkflowRun] = {}

    def save(self, run: WorkflowRun) -> WorkflowRun:
        self._runs[run.run_id] = run
        self._prune()
        return run

    def _prune(self) -> None:
        finished = [
            run_id for run_id, r in self._runs.items()
            if r.status in (RunStatus.SUCCESS, RunStatus.FAILED)
        ]
        # Insertion order, so the oldest finished runs come first
        excess = len(finished) - self.max_finished_runs
        for run_id in finished[:max(excess, 0)]:
            logger.info("Evicting finished workflow run %s", run_id)
            del self._runs[run_id]

    def get(self, run_id: str) -> WorkflowRun:
        try:
            return self._runs[run_id]
        except KeyError:
            raise WorkflowError(f"Unknown workflow run '{run_id}'") from None

    def list(self, status: Optional[RunStatus] = None) -> list[WorkflowRun]:
        runs = list(self._runs.values())
        if status is not None:
            runs = [r for r in runs if r.status == status]
        return runs

    def __len__(self) -> int:
        return len(self._runs)


def run_summary(run: WorkflowRun) -> dict[str, Any]:
    """Compact view of a run for tool output (no intermediate step data)."""
    return {
        "run_id": run.run_id,
        "workflow_id": run.workflow_id,
        "status": run.status.value,
        "suspended_step": run.suspended_step,
        "suspend_payload": run.suspend_payload,
        "output": run.output,
        "error": run.error,
    }
