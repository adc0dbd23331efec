# step_workflows/archive.py
from __future__ import annotations

import tarfile
from typing import TYPE_CHECKING

from ..errors import StepFailure
from ..model import Artifact, Job, Step

if TYPE_CHECKING:
    from ..runner import RunContext


# ---------------------------------------------------------------------
# Archive step helper
# ---------------------------------------------------------------------

def archive_step(binary: str, target: str, *, profile: str = "release", name: str = "Archive") -> Step:
    """
    Package target/<target>/<profile>/<binary> as <target>.tar.gz.

    The tarball holds exactly one member, the binary, at its root.
    """
    return Step(
        name=name,
        kind="archive",
        data={"binary": binary, "target": target, "profile": profile},
    )


def binary_path(binary: str, target: str, profile: str = "release") -> str:
    return f"target/{target}/{profile}/{binary}"


def archive_name(target: str) -> str:
    return f"{target}.tar.gz"


def as_command(step: Step) -> str:
    """Equivalent shell command, used when exporting to Actions YAML."""
    data = step.data or {}
    src_dir = f"target/{data['target']}/{data.get('profile', 'release')}"
    return f"tar -czvf {archive_name(data['target'])} -C {src_dir} {data['binary']}"


# ---------------------------------------------------------------------
# Archive step execution
# ---------------------------------------------------------------------

def run_step(job: Job, step: Step, ctx: "RunContext") -> Artifact:
    data = step.data or {}
    binary = data["binary"]
    target = data["target"]
    profile = data.get("profile", "release")

    src = ctx.workspace / binary_path(binary, target, profile)
    out = ctx.workspace / (step.cwd or ".") / archive_name(target)

    if not src.is_file():
        raise StepFailure(
            job=job.name,
            step=step.name,
            cmd=as_command(step),
            exit_code=2,
            stderr=f"binary not found: {src}",
        )

    tmp = out.with_name(out.name + ".partial")
    try:
        with tarfile.open(tmp, "w:gz") as tf:
            tf.add(src, arcname=binary, recursive=False)
        tmp.replace(out)
    finally:
        if tmp.exists():
            tmp.unlink()

    artifact = Artifact(source_path=str(src), archive_name=out.name, target=target)
    ctx.artifacts.append(artifact)
    return artifact
