# pipeline.py
# The CI and release pipeline of a single-binary Cargo project:
#
#   build    - `cargo build` in the default (debug) profile
#   lint     - rustfmt check, clippy, rustdoc (warnings are errors)
#   release  - tag pushes only: static musl build, tarball, GitHub release
#
# The three jobs are independent. Release does NOT wait for build/lint.

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict

from .dsl import archive, checkout, job, on_tags, sh, upload, wf
from .model import Job, Workflow

DEFAULT_ENV = {
    "CARGO_TERM_COLOR": "always",
    "RUSTFLAGS": "-Dwarnings",
    "RUSTDOCFLAGS": "-Dwarnings",
}


@dataclass(frozen=True)
class PipelineConfig:
    binary: str = "seite"
    target: str = "x86_64-unknown-linux-musl"
    tag_prefix: str = "refs/tags/"
    asset_glob: str = "*.tar.gz"
    discussion_category: str | None = "Announcements"
    runs_on: str = "ubuntu-latest"
    env: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_ENV))


def build_job(cfg: PipelineConfig) -> Job:
    return job(
        "build",
        checkout(),
        sh("Build", "cargo build"),
        runs_on=cfg.runs_on,
    )


def lint_job(cfg: PipelineConfig) -> Job:
    return job(
        "lint",
        checkout(),
        sh("Check Format", "cargo fmt --check --all"),
        sh("Clippy", "cargo clippy"),
        sh("Rustdoc", "cargo doc --no-deps"),
        runs_on=cfg.runs_on,
    )


def release_job(cfg: PipelineConfig) -> Job:
    return job(
        "release",
        checkout(),
        sh("Add target", f"rustup target add {cfg.target}"),
        sh("Build release", f"cargo build --release --target {cfg.target}"),
        archive(cfg.binary, cfg.target),
        upload(cfg.asset_glob, discussion_category=cfg.discussion_category),
        condition=on_tags(cfg.tag_prefix),
        permissions={"contents": "write", "discussions": "write"},
        runs_on=cfg.runs_on,
    )


def pipeline(cfg: PipelineConfig | None = None) -> Workflow:
    cfg = cfg or PipelineConfig()
    return wf(
        build_job(cfg),
        lint_job(cfg),
        release_job(cfg),
        name="CI",
        on=["push", "pull_request"],
        env=cfg.env,
    )
