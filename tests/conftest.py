from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import pytest

from rustci.ui.console import Console, set_console


def git(repo: Path, *args: str) -> str:
    return subprocess.check_output(
        ["git", "-c", "user.name=ci", "-c", "user.email=ci@example.com", *args],
        cwd=repo,
        text=True,
    ).strip()


@pytest.fixture(autouse=True)
def quiet_console():
    set_console(Console(debug=False))
    yield


@pytest.fixture
def git_repo(tmp_path) -> Path:
    """A repository on branch main with one commit and tag v1.2.3."""
    if shutil.which("git") is None:
        pytest.skip("git not installed")
    repo = tmp_path / "src-repo"
    repo.mkdir()
    git(repo, "init", "-q")
    git(repo, "symbolic-ref", "HEAD", "refs/heads/main")
    (repo / "Cargo.toml").write_text('[package]\nname = "seite"\nversion = "1.2.3"\n')
    git(repo, "add", "Cargo.toml")
    git(repo, "commit", "-q", "-m", "initial")
    git(repo, "tag", "v1.2.3")
    return repo
