# =============================================================================
# core/ingestion.py  —  Data-Ingestion Workflow (CSV → validated JSON)
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Defines the human-in-the-loop ingestion pipeline:
#
#     ingest-csv ──▶ validate-records ──▶ human-approval ──▶ build-report
#                                          (suspends once)
#
#   1. ingest-csv        parse csv_data (or file_path) into records
#   2. validate-records  check every record against the optional row schema
#   3. human-approval    suspend with a preview; resume with the decision
#   4. build-report      accepted rows as JSON + CSV plus a markdown summary
#
# INPUT:
#   {"csv_data": str | None, "file_path": str | None, "schema": dict | None,
#    "delimiter": ",", "max_rows": int | None}
#
# RESUME DATA (human-approval):
#   {"approved": bool, "approved_by": str?, "feedback": str?,
#    "rejected_rows": [int]?}   # indices into the list of VALID rows
# =============================================================================

import json

from core.tabular import csv_to_records, read_csv_file, records_to_csv
from core.validation import validate_data
from core.workflow import Step, StepContext, Workflow

PREVIEW_ROWS = 5
MAX_INVALID_IN_PREVIEW = 10


def _ingest_csv(ctx: StepContext) -> dict:
    data = ctx.input_data
    options = {
        "delimiter": data.get("delimiter") or ",",
        "max_rows": data.get("max_rows"),
    }
    if data.get("file_path"):
        records = read_csv_file(data["file_path"], **options)
        source = data["file_path"]
    else:
        records = csv_to_records(data.get("csv_data"), **options)
        source = "inline"

    ctx.state["schema"] = data.get("schema")
    ctx.state["source"] = source
    return {"records": records, "source": source}


def _validate_records(ctx: StepContext) -> dict:
    records = ctx.input_data["records"]
    schema = ctx.state.get("schema")

    if not schema:
        return {"valid_rows": records, "invalid_rows": []}

    valid_rows = []
    invalid_rows = []
    # Row numbers are 1-based data rows (the header is row 0)
    for row_number, record in enumerate(records, start=1):
        result = validate_data(record, schema)
        if result.valid:
            valid_rows.append(result.cleaned_data)
        else:
            invalid_rows.append({"row": row_number, "errors": result.errors})

    return {"valid_rows": valid_rows, "invalid_rows": invalid_rows}


def _human_approval(ctx: StepContext) -> dict:
    valid_rows = ctx.input_data["valid_rows"]
    invalid_rows = ctx.input_data["invalid_rows"]

    if ctx.resume_data is None:
        ctx.suspend({
            "message": "Review the parsed rows and approve or reject the import.",
            "source": ctx.state.get("source"),
            "valid_count": len(valid_rows),
            "invalid_count": len(invalid_rows),
            "preview": valid_rows[:PREVIEW_ROWS],
            "invalid_rows": invalid_rows[:MAX_INVALID_IN_PREVIEW],
        })

    decision = ctx.resume_data
    approved = bool(decision.get("approved"))
    rejected = set(decision.get("rejected_rows") or [])

    if approved:
        accepted = [row for index, row in enumerate(valid_rows) if index not in rejected]
    else:
        accepted = []

    return {
        "accepted_rows": accepted,
        "invalid_rows": invalid_rows,
        "approved": approved,
        "approved_by": decision.get("approved_by"),
        "feedback": decision.get("feedback"),
        "rejected_count": len(valid_rows) - len(accepted),
    }


def _build_report(ctx: StepContext) -> dict:
    data = ctx.input_data
    accepted = data["accepted_rows"]
    invalid_rows = data["invalid_rows"]

    lines = [
        "# Data Ingestion Report",
        "",
        f"- Source: {ctx.state.get('source')}",
        f"- Approved: {'yes' if data['approved'] else 'no'}"
        + (f" (by {data['approved_by']})" if data.get("approved_by") else ""),
        f"- Accepted rows: {len(accepted)}",
        f"- Rejected by reviewer: {data['rejected_count']}",
        f"- Failed validation: {len(invalid_rows)}",
    ]
    if data.get("feedback"):
        lines += ["", "## Reviewer feedback", "", data["feedback"]]
    if invalid_rows:
        lines += ["", "## Validation failures", ""]
        for failure in invalid_rows[:MAX_INVALID_IN_PREVIEW]:
            lines.append(f"- Row {failure['row']}: {'; '.join(failure['errors'])}")
        if len(invalid_rows) > MAX_INVALID_IN_PREVIEW:
            lines.append(f"- ...and {len(invalid_rows) - MAX_INVALID_IN_PREVIEW} more")

    return {
        "approved": data["approved"],
        "accepted_count": len(accepted),
        "invalid_count": len(invalid_rows),
        "rejected_count": data["rejected_count"],
        "records": accepted,
        "json": json.dumps(accepted),
        "csv": records_to_csv(accepted),
        "report": "\n".join(lines),
    }


def create_ingestion_workflow() -> Workflow:
    return Workflow(
        id="data-ingestion",
        description="Parse CSV, validate rows, wait for human approval, then report",
        steps=[
            Step("ingest-csv", "Parse CSV text or file into records", _ingest_csv),
            Step("validate-records", "Validate each record against the row schema", _validate_records),
            Step("human-approval", "Suspend for a reviewer to approve the import", _human_approval),
            Step("build-report", "Render accepted rows and a markdown summary", _build_report),
        ],
    )
