# git.py
# Small, focused wrapper around the Git CLI.
# Every git invocation in rustci goes through _git() so the rest of the
# codebase never builds `git ...` subprocess calls on its own.

from __future__ import annotations

import re
import subprocess
from pathlib import Path
from typing import List, Optional


def _git(args: list[str], cwd: Optional[str] = None) -> str:
    """
    Execute a git command and return its stdout as a clean string.

    Args:
        args: List of git arguments (e.g. ["status", "--porcelain"])
        cwd: Optional working directory in which to run the git command.

    Returns:
        Stdout from the git command with surrounding whitespace removed.

    Raises:
        subprocess.CalledProcessError: if git exits non-zero.
        FileNotFoundError: if git is not installed.
    """
    out = subprocess.check_output(
        ["git", *args],
        cwd=cwd,
        text=True,
        stderr=subprocess.PIPE,
    )
    return out.strip()


def head_sha(cwd: Optional[str] = None) -> str:
    """Full SHA of the HEAD commit."""
    return _git(["rev-parse", "HEAD"], cwd=cwd)


def tags_at_head(cwd: Optional[str] = None) -> List[str]:
    """Tags pointing at HEAD, sorted by name."""
    out = _git(["tag", "--points-at", "HEAD"], cwd=cwd)
    return sorted(out.splitlines()) if out else []


def current_branch(cwd: Optional[str] = None) -> Optional[str]:
    """Current branch name, or None on a detached HEAD."""
    try:
        return _git(["symbolic-ref", "--short", "-q", "HEAD"], cwd=cwd) or None
    except subprocess.CalledProcessError:
        return None


def current_ref(cwd: Optional[str] = None) -> str:
    """
    Fully qualified ref describing the checkout.

    A tag at HEAD is reported as refs/tags/<tag> (that is what a tag push
    looks like), otherwise refs/heads/<branch>, and the bare commit SHA on a
    detached HEAD.
    """
    tags = tags_at_head(cwd=cwd)
    if tags:
        return f"refs/tags/{tags[0]}"
    branch = current_branch(cwd=cwd)
    if branch:
        return f"refs/heads/{branch}"
    return head_sha(cwd=cwd)


def remote_url(remote: str = "origin", cwd: Optional[str] = None) -> str:
    return _git(["remote", "get-url", remote], cwd=cwd)


_SLUG_RE = re.compile(r"github\.com[:/](?P<slug>[^/]+/[^/]+?)(?:\.git)?/?$")


def repository_slug(cwd: Optional[str] = None) -> Optional[str]:
    """`owner/name` of the origin remote when it points at GitHub."""
    try:
        url = remote_url(cwd=cwd)
    except (subprocess.CalledProcessError, FileNotFoundError, NotADirectoryError):
        return None
    m = _SLUG_RE.search(url)
    return m.group("slug") if m else None


def clone(source: str, dest: Path) -> Path:
    """
    Clone `source` into `dest` (which must not exist or be empty).

    Local paths are cloned with --no-hardlinks so the job workspace never
    shares object files with the source repository.
    """
    _git(["clone", "--quiet", "--no-hardlinks", source, str(dest)])
    return dest


def checkout(ref: str, cwd: str) -> None:
    """Check out `ref` in detached mode."""
    _git(["checkout", "--quiet", "--detach", ref], cwd=cwd)
