# src/rustci/dsl.py
from __future__ import annotations

from dataclasses import replace
from typing import Dict, List, Optional

from .model import EVENT_KINDS, Job, Step, Workflow
from .step_workflows.archive import archive_step as archive
from .step_workflows.checkout import checkout_step as checkout
from .step_workflows.release import upload_step as upload
from .triggers import ALWAYS, Condition, tag_push


# ---------------------------------------------------------------------
# Step helpers
# ---------------------------------------------------------------------

def sh(name: str, cmd: str, *, cwd: str | None = None) -> Step:
    """Create a shell step."""
    return Step(name=name, run=cmd, cwd=cwd)


def on_tags(prefix: str = "refs/tags/") -> Condition:
    return tag_push(prefix)


# ---------------------------------------------------------------------
# Functional Job helper
# ---------------------------------------------------------------------

def job(
    name: str,
    *steps: Step,  # allow: job("x", sh(...), sh(...))
    steps_list: Optional[List[Step]] = None,  # allow: job("x", steps_list=[...])
    title: str | None = None,
    needs: Optional[List[str]] = None,
    env: Optional[Dict[str, str]] = None,
    permissions: Optional[Dict[str, str]] = None,
    condition: Condition = ALWAYS,
    runs_on: str = "ubuntu-latest",
    cwd: str | None = None,  # default cwd applied to steps missing cwd
) -> Job:
    steps_final: List[Step] = []
    if steps_list:
        steps_final.extend(list(steps_list))
    steps_final.extend(list(steps))

    if not steps_final:
        raise ValueError(f"job({name!r}) must have at least one step")

    if cwd is not None:
        steps_final = [s if s.cwd is not None or s.kind == "checkout" else replace(s, cwd=cwd) for s in steps_final]

    return Job(
        name=name,
        steps=steps_final,
        title=title,
        needs=needs or [],
        env=env or {},
        permissions=permissions or {},
        condition=condition,
        runs_on=runs_on,
    )


# ---------------------------------------------------------------------
# Builder API
# ---------------------------------------------------------------------

class JobBuilder:
    def __init__(self, name: str):
        self.name = name
        self._title: str | None = None
        self._needs: list[str] = []
        self._steps: list[Step] = []
        self._env: dict[str, str] = {}
        self._permissions: dict[str, str] = {}
        self._condition: Condition = ALWAYS
        self._runs_on = "ubuntu-latest"

    def titled(self, title: str):
        self._title = title
        return self

    def depends_on(self, *job_names: str):
        self._needs.extend(job_names)
        return self

    def define_step(self, name: str, run: str, cwd: str | None = None):
        self._steps.append(Step(name=name, run=run, cwd=cwd))
        return self

    def add_step(self, step: Step):
        self._steps.append(step)
        return self

    def with_env(self, **env):
        # force values to str, they end up in a process environment
        self._env.update({k: str(v) for k, v in env.items()})
        return self

    def with_permissions(self, **permissions: str):
        self._permissions.update(permissions)
        return self

    def when(self, condition: Condition):
        self._condition = condition
        return self

    def runs_on(self, runner: str):
        self._runs_on = runner
        return self

    def build(self) -> Job:
        if not self._steps:
            raise ValueError(f"Job '{self.name}' has no steps")

        return Job(
            name=self.name,
            steps=list(self._steps),
            title=self._title,
            needs=list(self._needs),
            env=dict(self._env),
            permissions=dict(self._permissions),
            condition=self._condition,
            runs_on=self._runs_on,
        )


def build(name: str) -> JobBuilder:
    """Convenience: build('lint').define_step(...).build()"""
    return JobBuilder(name)


# ---------------------------------------------------------------------
# Workflow helper (single-file story)
# ---------------------------------------------------------------------

def wf(
    *jobs: Job,
    name: str = "CI",
    on: Optional[List[str]] = None,
    env: Optional[Dict[str, str]] = None,
) -> Workflow:
    """
    Workflow definition helper.

    Users can write:
        from rustci import wf, job, sh

        def workflow():
            return wf(
                job(...),
                job(...),
            )

    Or use WORKFLOW directly:
        WORKFLOW = wf(job(...), job(...))
    """
    events = list(on) if on is not None else list(EVENT_KINDS)
    for kind in events:
        if kind not in EVENT_KINDS:
            raise ValueError(f"Unsupported trigger {kind!r}, expected one of {EVENT_KINDS}")
    return Workflow(name=name, jobs=list(jobs), on=events, env=dict(env or {}))


__all__ = ["sh", "checkout", "archive", "upload", "on_tags", "job", "JobBuilder", "build", "wf"]
