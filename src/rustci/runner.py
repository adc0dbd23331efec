# runner.py
from __future__ import annotations

import os
import runpy
import subprocess
import tempfile
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from . import git
from .dsl import wf
from .errors import TOOL_HINTS, CIError, StepFailure
from .github import DEFAULT_API_URL
from .model import Artifact, Event, Job, Step, Workflow
from .step_workflows import archive, checkout, release
from .triggers import eligible_jobs
from .ui.console import get_console


@dataclass
class RunContext:
    """Everything a step may read. One copy per job; jobs share nothing."""
    event: Event
    source: str
    workspace: Path = Path(".")
    env: Dict[str, str] = field(default_factory=dict)
    source_sha: Optional[str] = None
    github_token: Optional[str] = None
    repository: Optional[str] = None
    api_url: str = DEFAULT_API_URL
    artifacts: List[Artifact] = field(default_factory=list)


STEP_EXECUTORS: Dict[str, Callable[[Job, Step, RunContext], object]] = {
    "checkout": checkout.run_step,
    "archive": archive.run_step,
    "upload": release.run_step,
}


# ----------------------------------------------------------------------
# Workflow loading (local file)
# ----------------------------------------------------------------------

def load_workflow(path: str | Path) -> Workflow:
    """
    Load a workflow from a python file path.

    The file must define one of:
      - workflow() -> Workflow | List[Job]
      - WORKFLOW = Workflow(...)
      - JOBS = [Job, ...]
    """
    wf_path = Path(path).expanduser().resolve()
    if not wf_path.exists():
        raise FileNotFoundError(f"Workflow file not found: {wf_path}")
    if wf_path.suffix != ".py":
        raise ValueError(f"Workflow must be a .py file, got: {wf_path.name}")

    module_name = f"rustci_workflow_{wf_path.stem}"
    globals_dict = runpy.run_path(str(wf_path), run_name=module_name)

    loaded = None
    if "workflow" in globals_dict and callable(globals_dict["workflow"]):
        loaded = globals_dict["workflow"]()
    elif "WORKFLOW" in globals_dict:
        loaded = globals_dict["WORKFLOW"]
    elif "JOBS" in globals_dict:
        loaded = globals_dict["JOBS"]

    if isinstance(loaded, list) and all(isinstance(j, Job) for j in loaded):
        loaded = wf(*loaded)

    if not isinstance(loaded, Workflow):
        raise TypeError(
            "Workflow file must return/define a Workflow or List[Job]. "
            "Define workflow(), WORKFLOW = wf(...) or JOBS = [Job, ...]."
        )
    return loaded


# ----------------------------------------------------------------------
# Execution primitives
# ----------------------------------------------------------------------

def _run_shell(job: Job, step: Step, ctx: RunContext) -> None:
    cwd = (ctx.workspace / (step.cwd or ".")).resolve()
    if not cwd.exists():
        raise FileNotFoundError(f"[{job.name}] step '{step.name}' cwd not found: {cwd}")

    env = os.environ.copy()
    env.update(ctx.env)
    env.update(job.env)

    proc = subprocess.run(
        step.run,
        shell=True,
        cwd=str(cwd),
        env=env,
        text=True,
        capture_output=True,
    )

    if proc.returncode != 0:
        raise StepFailure(
            job=job.name,
            step=step.name,
            cmd=step.run,
            exit_code=proc.returncode,
            stdout=proc.stdout[-4000:],
            stderr=proc.stderr[-4000:],
        )


def _run_step(job: Job, step: Step, ctx: RunContext) -> None:
    if step.kind is None:
        _run_shell(job, step, ctx)
        return
    executor = STEP_EXECUTORS.get(step.kind)
    if executor is None:
        raise CIError(
            kind="unknown_step",
            job=job.name,
            step=step.name,
            message=f"no executor for step kind {step.kind!r}",
            details={"known": sorted(STEP_EXECUTORS)},
        )
    executor(job, step, ctx)


def run_job(job: Job, ctx: RunContext) -> Tuple[str, str]:
    """
    Run every step of `job` in order inside a fresh, private workspace.

    The first failing step raises and the remaining steps never start.
    Returns (job_name, "ok").
    """
    console = get_console()
    console.print_job_start(job.name)

    with tempfile.TemporaryDirectory(prefix=f"rustci-{job.name}-") as tmp:
        workspace = Path(tmp) / "work"
        workspace.mkdir()
        job_ctx = replace(ctx, workspace=workspace, artifacts=[])

        for step in job.steps:
            console.print_step(job.name, step.name)
            _run_step(job, step, job_ctx)

    console.print_job_success(job.name)
    return job.name, "ok"


def _report_failure(job_name: str, exc: Exception) -> None:
    console = get_console()
    if isinstance(exc, StepFailure):
        tool = exc.cmd.split()[0] if exc.cmd.split() else ""
        hint = TOOL_HINTS.get(tool) if exc.exit_code == 127 else None
        console.print_failure(
            job_name,
            str(exc),
            exit_code=exc.exit_code,
            hint=hint,
            output=(exc.stdout + exc.stderr)[-4000:],
        )
    elif isinstance(exc, CIError):
        console.print_failure(job_name, str(exc), hint=exc.details.get("hint"))
    else:
        console.print_failure(job_name, f"{type(exc).__name__}: {exc}")


# ----------------------------------------------------------------------
# Dependency graph
# ----------------------------------------------------------------------

def _build_graph(jobs: List[Job], known: Iterable[str]) -> Tuple[Dict[str, Set[str]], Dict[str, int]]:
    """
    Edges dep -> dependent among `jobs`.

    Dependencies that exist in the workflow but were filtered out of `jobs`
    are treated as satisfied; unknown names are an error.
    """
    known = set(known)
    names = [j.name for j in jobs]
    if len(set(names)) != len(names):
        dupes = sorted({n for n in names if names.count(n) > 1})
        raise ValueError(f"Duplicate job names found: {dupes}")

    adj: Dict[str, Set[str]] = {n: set() for n in names}
    indeg: Dict[str, int] = {n: 0 for n in names}

    for j in jobs:
        for d in j.needs:
            if d not in known:
                raise ValueError(f"Job '{j.name}' needs missing job '{d}'. Known jobs: {sorted(known)}")
            if d in adj and j.name not in adj[d]:
                adj[d].add(j.name)
                indeg[j.name] += 1

    # Kahn's algorithm, only to reject cycles up front
    remaining = dict(indeg)
    queue = [n for n, deg in remaining.items() if deg == 0]
    seen = 0
    while queue:
        node = queue.pop()
        seen += 1
        for child in adj[node]:
            remaining[child] -= 1
            if remaining[child] == 0:
                queue.append(child)
    if seen != len(names):
        stuck = sorted(n for n, deg in remaining.items() if deg > 0)
        raise ValueError(f"Job dependencies form a cycle. Stuck jobs: {stuck}")

    return adj, indeg


# ----------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------

def _source_sha(source: str) -> Optional[str]:
    try:
        return git.head_sha(cwd=source)
    except (subprocess.CalledProcessError, FileNotFoundError, NotADirectoryError):
        return None


def plan_workflow(workflow: Workflow, event: Event, only: Optional[List[str]] = None) -> Dict[str, str]:
    """
    Decide, before anything runs, which jobs are scheduled for `event`.

    Returns {job_name: "scheduled" | "skipped(trigger)"} in declaration order.
    """
    selected = _select(workflow, only)
    eligible = {j.name for j in eligible_jobs(workflow, event)}
    return {j.name: "scheduled" if j.name in eligible else "skipped(trigger)" for j in selected}


def _select(workflow: Workflow, only: Optional[List[str]]) -> List[Job]:
    if not only:
        return list(workflow.jobs)
    known = {j.name for j in workflow.jobs}
    unknown = sorted(set(only) - known)
    if unknown:
        raise ValueError(f"Unknown job(s) {unknown}. Known jobs: {sorted(known)}")
    return [j for j in workflow.jobs if j.name in only]


def run_workflow(
    workflow: Workflow,
    event: Event,
    *,
    source: str | Path = ".",
    max_workers: int | None = None,
    only: Optional[List[str]] = None,
    fail_fast: bool = False,
    dry_run: bool = False,
    github_token: Optional[str] = None,
    repository: Optional[str] = None,
    api_url: str = DEFAULT_API_URL,
) -> Dict[str, str]:
    """
    Run every job of `workflow` that `event` makes eligible.

    Triggers are evaluated for all jobs before any job starts. Eligible jobs
    run concurrently, each in its own workspace; only declared `needs`
    edges order them. A failing job never stops an independent one unless
    `fail_fast` is set, in which case nothing new is scheduled after it.

    Returns {job_name: status} with status one of "ok", "failed",
    "skipped(trigger)", "skipped(needs)", "skipped(fail-fast)", "planned".
    """
    console = get_console()
    selected = _select(workflow, only)
    plan = plan_workflow(workflow, event, only)

    results: Dict[str, str] = {}
    for name, decision in plan.items():
        if decision == "scheduled":
            console.print_plan_job(name, "scheduled")
        else:
            console.print_plan_job_skipped(name, "trigger condition not met")
            results[name] = decision

    adj, indeg = _build_graph(selected, known=[j.name for j in workflow.jobs])

    def skip_dependents(name: str) -> None:
        for nxt in sorted(adj[name]):
            if nxt not in results:
                results[nxt] = "skipped(needs)"
                skip_dependents(nxt)

    for name in list(results):
        skip_dependents(name)

    if dry_run:
        for j in selected:
            results.setdefault(j.name, "planned")
        return {j.name: results[j.name] for j in selected}

    source_str = str(Path(source).resolve()) if Path(source).exists() else str(source)
    ctx = RunContext(
        event=event,
        source=source_str,
        env=dict(workflow.env),
        source_sha=_source_sha(source_str),
        github_token=github_token,
        repository=repository,
        api_url=api_url,
    )

    by_name = {j.name: j for j in selected}
    ready: List[str] = [j.name for j in selected if indeg[j.name] == 0 and j.name not in results]
    stopped = False

    if max_workers is None:
        max_workers = max(1, len(by_name))

    in_flight: Dict = {}
    pool = ThreadPoolExecutor(max_workers=max_workers)
    try:
        while ready or in_flight:
            while ready and not stopped:
                name = ready.pop(0)
                if name in results:
                    continue
                fut = pool.submit(run_job, by_name[name], ctx)
                in_flight[fut] = name

            if not in_flight:
                break

            fut = next(as_completed(list(in_flight.keys())))
            name = in_flight.pop(fut)

            try:
                _, status = fut.result()
                results[name] = status
            except Exception as e:
                results[name] = "failed"
                _report_failure(name, e)
                if fail_fast:
                    stopped = True

            if results[name] == "ok":
                for nxt in sorted(adj[name]):
                    indeg[nxt] -= 1
                    if indeg[nxt] == 0 and nxt not in results:
                        ready.append(nxt)
            else:
                skip_dependents(name)
    except KeyboardInterrupt:
        pool.shutdown(wait=False, cancel_futures=True)
        raise
    else:
        pool.shutdown(wait=True)

    for j in selected:
        results.setdefault(j.name, "skipped(fail-fast)")
    return {j.name: results[j.name] for j in selected}
