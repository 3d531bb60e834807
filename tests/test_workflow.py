"""
Unit tests for core.workflow and the data-ingestion workflow built on it.
"""
import json

import pytest

from core.ingestion import create_ingestion_workflow
from core.workflow import (
    RunStatus,
    RunStore,
    Step,
    Workflow,
    WorkflowError,
    run_summary,
)


# ============================================================
# Engine
# ============================================================

def _double(ctx):
    return {"value": ctx.input_data["value"] * 2}


def _approve(ctx):
    if ctx.resume_data is None:
        ctx.suspend({"question": f"Keep {ctx.input_data['value']}?"})
    return {"value": ctx.input_data["value"], "kept": ctx.resume_data["keep"]}


def _fail(ctx):
    raise RuntimeError("disk full")


@pytest.fixture
def approval_workflow():
    return Workflow(
        id="approval",
        description="double, ask, double",
        steps=[
            Step("first", "double the input", _double),
            Step("ask", "wait for a human", _approve),
            Step("last", "double again", lambda ctx: {**ctx.input_data, "value": ctx.input_data["value"] * 2}),
        ],
    )


class TestWorkflowEngine:

    def test_runs_to_completion(self):
        wf = Workflow("math", "two doublings", [Step("a", "", _double), Step("b", "", _double)])
        run = wf.start({"value": 3})

        assert run.status == RunStatus.SUCCESS
        assert run.output == {"value": 12}
        assert run.step_results == {"a": {"value": 6}, "b": {"value": 12}}
        assert run.completed_at is not None

    def test_suspend_and_resume(self, approval_workflow):
        run = approval_workflow.start({"value": 5})

        assert run.status == RunStatus.SUSPENDED
        assert run.suspended_step == "ask"
        assert run.suspend_payload == {"question": "Keep 10?"}
        assert "ask" not in run.step_results

        run = approval_workflow.resume(run, {"keep": True})

        assert run.status == RunStatus.SUCCESS
        assert run.output == {"value": 20, "kept": True}
        assert run.suspended_step is None
        assert run.suspend_payload is None

    def test_resume_data_not_passed_to_later_steps(self):
        seen = []

        def record(ctx):
            seen.append(ctx.resume_data)
            return {}

        wf = Workflow("w", "", [Step("ask", "", _approve), Step("after", "", record)])
        run = wf.start({"value": 1})
        wf.resume(run, {"keep": False})
        assert seen == [None]

    def test_only_suspended_runs_resume(self, approval_workflow):
        run = approval_workflow.start({"value": 1})
        approval_workflow.resume(run, {"keep": True})
        with pytest.raises(WorkflowError, match="only suspended runs"):
            approval_workflow.resume(run, {"keep": True})

    def test_resume_rejects_foreign_run(self, approval_workflow):
        other = Workflow("other", "", [Step("ask", "", _approve)])
        run = other.start({"value": 1})
        with pytest.raises(WorkflowError, match="belongs to workflow"):
            approval_workflow.resume(run, {"keep": True})

    def test_failing_step_marks_run_failed(self):
        wf = Workflow("w", "", [Step("a", "", _double), Step("boom", "", _fail), Step("c", "", _double)])
        run = wf.start({"value": 1})

        assert run.status == RunStatus.FAILED
        assert run.error == "boom: disk full"
        assert "c" not in run.step_results

    def test_state_is_shared_between_steps(self):
        def remember(ctx):
            ctx.state["seen"] = ctx.input_data["value"]
            return {}

        def recall(ctx):
            return {"seen": ctx.state["seen"]}

        run = Workflow("w", "", [Step("a", "", remember), Step("b", "", recall)]).start({"value": 7})
        assert run.output == {"seen": 7}

    def test_rejects_bad_definitions(self):
        with pytest.raises(ValueError):
            Workflow("empty", "", [])
        with pytest.raises(ValueError, match="Duplicate step ids"):
            Workflow("dup", "", [Step("a", "", _double), Step("a", "", _double)])

    def test_to_dict_is_json_serializable(self, approval_workflow):
        run = approval_workflow.start({"value": 2})
        data = json.loads(json.dumps(run.to_dict()))
        assert data["status"] == "suspended"
        assert data["workflow_id"] == "approval"


class TestRunStore:

    def test_save_get_list(self, approval_workflow):
        store = RunStore()
        suspended = store.save(approval_workflow.start({"value": 1}))
        finished = store.save(Workflow("w", "", [Step("a", "", _double)]).start({"value": 1}))

        assert len(store) == 2
        assert store.get(suspended.run_id) is suspended
        assert store.list(RunStatus.SUSPENDED) == [suspended]
        assert store.list(RunStatus.SUCCESS) == [finished]

    def test_unknown_run(self):
        with pytest.raises(WorkflowError, match="Unknown workflow run"):
            RunStore().get("missing")

    def test_evicts_oldest_finished_runs(self, approval_workflow):
        store = RunStore(max_finished_runs=2)
        quick = Workflow("w", "", [Step("a", "", _double)])

        suspended = store.save(approval_workflow.start({"value": 1}))
        finished = [store.save(quick.start({"value": i})) for i in range(4)]

        assert len(store) == 3
        assert store.get(suspended.run_id) is suspended
        assert store.list(RunStatus.SUCCESS) == finished[2:]
        with pytest.raises(WorkflowError):
            store.get(finished[0].run_id)

    def test_keeps_everything_below_the_cap(self):
        store = RunStore(max_finished_runs=100)
        quick = Workflow("w", "", [Step("a", "", _double)])
        for i in range(60):
            store.save(quick.start({"value": i}))
        assert len(store) == 60

    def test_cap_must_be_positive(self):
        with pytest.raises(ValueError):
            RunStore(max_finished_runs=0)

    def test_summary_omits_step_results(self, approval_workflow):
        summary = run_summary(approval_workflow.start({"value": 1}))
        assert "step_results" not in summary
        assert summary["status"] == "suspended"


# ============================================================
# Data-ingestion workflow
# ============================================================

CSV = "name,email\nAda,ada@example.com\nGrace,grace@example.com\nBob,not-an-email\nLin,lin@example.com\n"

ROW_SCHEMA = {
    "type": "object",
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "email": {"type": "string", "email": True},
    },
}


class TestIngestionWorkflow:

    def test_suspends_with_preview(self):
        run = create_ingestion_workflow().start({"csv_data": CSV, "schema": ROW_SCHEMA})

        assert run.status == RunStatus.SUSPENDED
        assert run.suspended_step == "human-approval"
        payload = run.suspend_payload
        assert payload["source"] == "inline"
        assert payload["valid_count"] == 3
        assert payload["invalid_count"] == 1
        assert payload["invalid_rows"][0]["row"] == 3
        assert payload["preview"][0] == {"name": "Ada", "email": "ada@example.com"}

    def test_approve_with_rejected_rows(self):
        wf = create_ingestion_workflow()
        run = wf.start({"csv_data": CSV, "schema": ROW_SCHEMA})
        run = wf.resume(run, {"approved": True, "approved_by": "sam", "rejected_rows": [1]})

        assert run.status == RunStatus.SUCCESS
        output = run.output
        assert output["approved"] is True
        assert output["accepted_count"] == 2
        assert output["rejected_count"] == 1
        assert output["invalid_count"] == 1
        assert [r["name"] for r in output["records"]] == ["Ada", "Lin"]
        assert json.loads(output["json"]) == output["records"]
        assert output["csv"] == "name,email\nAda,ada@example.com\nLin,lin@example.com"
        assert "# Data Ingestion Report" in output["report"]
        assert "- Accepted rows: 2" in output["report"]
        assert "(by sam)" in output["report"]

    def test_reject_keeps_nothing(self):
        wf = create_ingestion_workflow()
        run = wf.resume(wf.start({"csv_data": CSV}), {"approved": False, "feedback": "wrong file"})

        assert run.output["approved"] is False
        assert run.output["accepted_count"] == 0
        assert run.output["rejected_count"] == 4
        assert run.output["csv"] == ""
        assert "wrong file" in run.output["report"]

    def test_without_schema_every_row_is_valid(self):
        run = create_ingestion_workflow().start({"csv_data": CSV})
        assert run.suspend_payload["valid_count"] == 4
        assert run.suspend_payload["invalid_count"] == 0

    def test_reads_from_file(self, tmp_path):
        path = tmp_path / "people.csv"
        path.write_text(CSV, encoding="utf-8")
        run = create_ingestion_workflow().start({"file_path": str(path)})
        assert run.suspend_payload["source"] == str(path)

    def test_bad_csv_fails_the_run(self):
        run = create_ingestion_workflow().start({"csv_data": "a,b\n1,2,3"})
        assert run.status == RunStatus.FAILED
        assert run.error.startswith("ingest-csv: Invalid record length")

    def test_max_rows(self):
        run = create_ingestion_workflow().start({"csv_data": CSV, "max_rows": 2})
        assert run.status == RunStatus.FAILED
        assert "exceeds maximum allowed (2)" in run.error
