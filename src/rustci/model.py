# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .triggers import ALWAYS, Condition

EVENT_KINDS = ("push", "pull_request")
TAG_PREFIX = "refs/tags/"


@dataclass(frozen=True)
class Event:
    """A repository event that invokes the pipeline."""
    kind: str
    ref: str = ""

    def __post_init__(self) -> None:
        if self.kind not in EVENT_KINDS:
            raise ValueError(f"Unsupported event kind {self.kind!r}, expected one of {EVENT_KINDS}")

    @property
    def is_tag(self) -> bool:
        return isinstance(self.ref, str) and self.ref.startswith(TAG_PREFIX)

    @property
    def tag_name(self) -> Optional[str]:
        if not self.is_tag:
            return None
        return self.ref[len(TAG_PREFIX):] or None


@dataclass(frozen=True)
class Step:
    """
    A single action inside a CI job.

    Plain steps carry a shell command in `run`. Built-in steps set `kind`
    (checkout, archive, upload) and keep their parameters in `data`.
    """
    name: str
    run: str = ""
    cwd: str | None = None
    kind: str | None = None
    data: Optional[Dict[str, Any]] = None


@dataclass
class Job:
    """
    A CI job: ordered steps plus what the platform needs to schedule it.

    `condition` is evaluated against the triggering Event before any step runs.
    """
    name: str
    steps: list[Step]

    # Job names that must succeed first. The default pipeline declares none.
    needs: list[str] = field(default_factory=list)

    env: Dict[str, str] = field(default_factory=dict)
    permissions: Dict[str, str] = field(default_factory=dict)
    condition: Condition = ALWAYS
    runs_on: str = "ubuntu-latest"
    title: str | None = None

    @property
    def display_name(self) -> str:
        return self.title or self.name.capitalize()


@dataclass(frozen=True)
class Artifact:
    """The release tarball produced by the archive step."""
    source_path: str
    archive_name: str
    target: str


@dataclass
class Workflow:
    """A named set of independent jobs plus the events that invoke them."""
    name: str
    jobs: List[Job]
    on: List[str] = field(default_factory=lambda: list(EVENT_KINDS))
    env: Dict[str, str] = field(default_factory=dict)

    def job(self, name: str) -> Job:
        for j in self.jobs:
            if j.name == name:
                return j
        raise KeyError(f"No job named {name!r}. Known jobs: {[j.name for j in self.jobs]}")
