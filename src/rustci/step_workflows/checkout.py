# step_workflows/checkout.py
from __future__ import annotations

import subprocess
from typing import TYPE_CHECKING

from .. import git
from ..errors import TOOL_HINTS, CIError, StepFailure
from ..model import Job, Step

if TYPE_CHECKING:
    from ..runner import RunContext


# ---------------------------------------------------------------------
# Checkout step helper
# ---------------------------------------------------------------------

def checkout_step(name: str = "Checkout") -> Step:
    """Fresh clone of the source repository at the event ref."""
    return Step(name=name, kind="checkout")


# ---------------------------------------------------------------------
# Checkout step execution
# ---------------------------------------------------------------------

def _resolve_ref(ctx: "RunContext") -> str:
    """
    Map the event ref onto something `git checkout` understands in a clone.

    Tags keep their name, branches become origin/<branch>, anything else
    (pull request merge refs, bare SHAs) falls back to the source HEAD.
    """
    ref = ctx.event.ref or ""
    if ref.startswith("refs/tags/"):
        return ref[len("refs/tags/"):]
    if ref.startswith("refs/heads/"):
        return "origin/" + ref[len("refs/heads/"):]
    return ctx.source_sha or "HEAD"


def run_step(job: Job, step: Step, ctx: "RunContext") -> None:
    """Clone ctx.source into the (empty) job workspace and check out the ref."""
    dest = ctx.workspace
    if dest.exists() and any(dest.iterdir()):
        raise CIError(
            kind="workspace_not_empty",
            job=job.name,
            step=step.name,
            message="checkout needs an empty workspace",
            details={"workspace": str(dest)},
        )

    ref = _resolve_ref(ctx)
    try:
        git.clone(ctx.source, dest)
        git.checkout(ref, cwd=str(dest))
    except FileNotFoundError:
        raise CIError(
            kind="tool_unavailable",
            job=job.name,
            step=step.name,
            message="git is not available",
            details={"hint": TOOL_HINTS["git"]},
        )
    except subprocess.CalledProcessError as e:
        raise StepFailure(
            job=job.name,
            step=step.name,
            cmd=" ".join(e.cmd) if isinstance(e.cmd, list) else str(e.cmd),
            exit_code=e.returncode,
            stderr=(e.stderr or "")[-4000:],
        )
