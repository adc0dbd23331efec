# export.py
# Render a Workflow as a GitHub Actions workflow file, so the same pipeline
# definition drives both local runs and the hosted platform.

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import yaml

from .model import Job, Step, Workflow
from .step_workflows import archive

CHECKOUT_ACTION = "actions/checkout@v4"
RELEASE_ACTION = "softprops/action-gh-release@v2"


def _step_to_dict(step: Step) -> Dict[str, Any]:
    if step.kind == "checkout":
        return {"uses": CHECKOUT_ACTION}

    if step.kind == "archive":
        out: Dict[str, Any] = {"name": step.name, "run": archive.as_command(step)}
    elif step.kind == "upload":
        data = step.data or {}
        with_: Dict[str, Any] = {"files": data.get("files", "*.tar.gz")}
        if data.get("discussion_category"):
            with_["discussion_category_name"] = data["discussion_category"]
        out = {"name": step.name, "uses": RELEASE_ACTION, "with": with_}
    elif step.kind is None:
        out = {"name": step.name, "run": step.run}
    else:
        raise ValueError(f"Cannot export step {step.name!r} of kind {step.kind!r}")

    if step.cwd:
        out["working-directory"] = step.cwd
    return out


def _job_to_dict(job: Job) -> Dict[str, Any]:
    out: Dict[str, Any] = {"name": job.display_name}
    expr = job.condition.expression()
    if expr:
        out["if"] = expr
    if job.needs:
        out["needs"] = list(job.needs)
    out["runs-on"] = job.runs_on
    if job.permissions:
        out["permissions"] = dict(job.permissions)
    if job.env:
        out["env"] = dict(job.env)
    out["steps"] = [_step_to_dict(s) for s in job.steps]
    return out


def workflow_to_dict(workflow: Workflow) -> Dict[str, Any]:
    doc: Dict[str, Any] = {"name": workflow.name, "on": list(workflow.on)}
    if workflow.env:
        doc["env"] = dict(workflow.env)
    doc["jobs"] = {j.name: _job_to_dict(j) for j in workflow.jobs}
    return doc


def render_github_workflow(workflow: Workflow) -> str:
    return yaml.safe_dump(
        workflow_to_dict(workflow),
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
        width=120,
    )


def write_github_workflow(workflow: Workflow, path: str | Path) -> Path:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(render_github_workflow(workflow), encoding="utf-8")
    return out
