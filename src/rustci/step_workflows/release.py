# step_workflows/release.py
from __future__ import annotations

from typing import TYPE_CHECKING, List

from ..errors import CIError, StepFailure
from ..github import GitHubClient, GitHubError
from ..model import Job, Step

if TYPE_CHECKING:
    from ..runner import RunContext


# ---------------------------------------------------------------------
# Upload step helper
# ---------------------------------------------------------------------

def upload_step(
    files: str = "*.tar.gz",
    *,
    discussion_category: str | None = "Announcements",
    name: str = "Upload",
) -> Step:
    """Publish the tag's release and attach every workspace file matching `files`."""
    return Step(
        name=name,
        kind="upload",
        data={"files": files, "discussion_category": discussion_category},
    )


# ---------------------------------------------------------------------
# Upload step execution
# ---------------------------------------------------------------------

def run_step(job: Job, step: Step, ctx: "RunContext") -> List[str]:
    data = step.data or {}
    pattern = data.get("files", "*.tar.gz")
    cmd = f"upload {pattern}"

    tag = ctx.event.tag_name
    if not tag:
        raise StepFailure(job=job.name, step=step.name, cmd=cmd, exit_code=1,
                          stderr=f"event ref {ctx.event.ref!r} is not a tag")

    if not ctx.github_token or not ctx.repository:
        raise CIError(
            kind="missing_credentials",
            job=job.name,
            step=step.name,
            message="uploading a release needs a GitHub token and repository",
            details={"hint": "Set GITHUB_TOKEN and GITHUB_REPOSITORY or pass --github-token/--repository."},
        )

    files = sorted(p for p in (ctx.workspace / (step.cwd or ".")).glob(pattern) if p.is_file())
    if not files:
        raise StepFailure(job=job.name, step=step.name, cmd=cmd, exit_code=1,
                          stderr=f"no files match {pattern!r}")

    client = GitHubClient(ctx.github_token, ctx.repository, api_url=ctx.api_url)
    try:
        release = client.publish_release(tag, discussion_category=data.get("discussion_category"))
        for path in files:
            client.upload_asset(release, path)
    except GitHubError as e:
        raise StepFailure(job=job.name, step=step.name, cmd=cmd, exit_code=1, stderr=str(e))

    return [p.name for p in files]
