# triggers.py
# Trigger evaluation: which jobs of a workflow run for a given event.
# Conditions are pure predicates; nothing here touches the filesystem
# except the git fallback in event_from_git().

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, List, Mapping, Optional, Tuple

if TYPE_CHECKING:
    from .model import Event, Job, Workflow


class Condition:
    """Base predicate over an Event."""

    def __call__(self, event: "Event") -> bool:
        raise NotImplementedError

    def expression(self) -> Optional[str]:
        """GitHub Actions `if:` expression, or None when always true."""
        raise NotImplementedError


class _Always(Condition):
    def __call__(self, event: "Event") -> bool:
        return True

    def expression(self) -> Optional[str]:
        return None

    def __repr__(self) -> str:
        return "ALWAYS"


ALWAYS = _Always()


@dataclass(frozen=True)
class RefPrefix(Condition):
    """True iff the event ref starts with `prefix` (e.g. 'refs/tags/')."""
    prefix: str

    def __call__(self, event: "Event") -> bool:
        ref = getattr(event, "ref", None)
        if not isinstance(ref, str) or not ref:
            return False
        return ref.startswith(self.prefix)

    def expression(self) -> Optional[str]:
        return f"startsWith(github.ref, '{self.prefix}')"


@dataclass(frozen=True)
class EventKind(Condition):
    """True iff the event is of the given kind (push, pull_request)."""
    kind: str

    def __call__(self, event: "Event") -> bool:
        return getattr(event, "kind", None) == self.kind

    def expression(self) -> Optional[str]:
        return f"github.event_name == '{self.kind}'"


@dataclass(frozen=True)
class AllOf(Condition):
    """True iff every member condition holds."""
    conditions: Tuple[Condition, ...]

    def __call__(self, event: "Event") -> bool:
        return all(c(event) for c in self.conditions)

    def expression(self) -> Optional[str]:
        parts = [e for e in (c.expression() for c in self.conditions) if e]
        return " && ".join(parts) or None


def tag_push(prefix: str = "refs/tags/") -> Condition:
    """A push of a ref under `prefix`; pull requests never match."""
    return AllOf((EventKind("push"), RefPrefix(prefix)))


def eligible_jobs(workflow: "Workflow", event: "Event") -> List["Job"]:
    """Jobs whose condition holds for `event`, in declaration order."""
    if event.kind not in workflow.on:
        return []
    return [j for j in workflow.jobs if j.condition(event)]


def event_from_env(environ: Mapping[str, str] | None = None) -> Optional["Event"]:
    """
    Build an Event from the Actions-style environment.

    Returns None when GITHUB_EVENT_NAME is absent or not an event the
    pipeline listens to.
    """
    from .model import EVENT_KINDS, Event

    env = os.environ if environ is None else environ
    kind = env.get("GITHUB_EVENT_NAME")
    if kind not in EVENT_KINDS:
        return None
    return Event(kind=kind, ref=env.get("GITHUB_REF", ""))


def event_from_git(repo: str | Path = ".") -> "Event":
    """Describe the local checkout as a push: a tag at HEAD wins over the branch."""
    from .git import current_ref
    from .model import Event

    return Event(kind="push", ref=current_ref(cwd=str(repo)))
