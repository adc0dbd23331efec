from __future__ import annotations

import os

import pytest

from rustci.dsl import job, on_tags, sh, wf
from rustci.model import Event
from rustci.pipeline import pipeline
from rustci.runner import load_workflow, run_workflow

PUSH_MAIN = Event("push", "refs/heads/main")
PUSH_TAG = Event("push", "refs/tags/v1.2.3")


def test_failing_step_stops_the_job(tmp_path):
    marker = tmp_path / "clippy-ran"
    flow = wf(
        job(
            "lint",
            sh("Check Format", "exit 1"),
            sh("Clippy", f"touch {marker}"),
        )
    )
    results = run_workflow(flow, PUSH_MAIN, source=tmp_path)
    assert results == {"lint": "failed"}
    assert not marker.exists()


def test_failure_does_not_affect_independent_jobs(tmp_path):
    flow = wf(
        job("build", sh("Build", "true")),
        job("lint", sh("Check Format", "exit 3")),
        job("release", sh("Release", "true"), condition=on_tags()),
    )
    results = run_workflow(flow, PUSH_TAG, source=tmp_path)
    assert results == {"build": "ok", "lint": "failed", "release": "ok"}


def test_trigger_skip_happens_before_any_step(tmp_path):
    marker = tmp_path / "released"
    flow = wf(
        job("build", sh("Build", "true")),
        job("release", sh("Release", f"touch {marker}"), condition=on_tags()),
    )
    results = run_workflow(flow, PUSH_MAIN, source=tmp_path)
    assert results == {"build": "ok", "release": "skipped(trigger)"}
    assert not marker.exists()


def test_each_job_gets_a_fresh_workspace(tmp_path):
    flow = wf(
        job("first", sh("write", "echo x > leftover")),
        job("second", sh("check", "test ! -e leftover"), needs=["first"]),
    )
    assert run_workflow(flow, PUSH_MAIN, source=tmp_path) == {"first": "ok", "second": "ok"}


def test_rerun_gives_identical_results(tmp_path):
    flow = wf(
        job("build", sh("Build", "true")),
        job("lint", sh("Lint", "test ! -e state && touch state")),
    )
    first = run_workflow(flow, PUSH_MAIN, source=tmp_path)
    second = run_workflow(flow, PUSH_MAIN, source=tmp_path)
    assert first == second == {"build": "ok", "lint": "ok"}


def test_env_layers(tmp_path):
    flow = wf(
        job(
            "check",
            sh("env", 'test "$RUSTFLAGS" = "-Dwarnings" && test "$JOB_ONLY" = "1"'),
            env={"JOB_ONLY": "1"},
        ),
        env={"RUSTFLAGS": "-Dwarnings"},
    )
    assert run_workflow(flow, PUSH_MAIN, source=tmp_path) == {"check": "ok"}


def test_dependents_of_failed_or_skipped_jobs_are_skipped(tmp_path):
    flow = wf(
        job("a", sh("a", "exit 1")),
        job("b", sh("b", "true"), needs=["a"]),
        job("c", sh("c", "true"), needs=["b"]),
        job("gated", sh("g", "true"), condition=on_tags()),
        job("after-gated", sh("g2", "true"), needs=["gated"]),
    )
    results = run_workflow(flow, PUSH_MAIN, source=tmp_path)
    assert results == {
        "a": "failed",
        "b": "skipped(needs)",
        "c": "skipped(needs)",
        "gated": "skipped(trigger)",
        "after-gated": "skipped(needs)",
    }


def test_fail_fast_stops_scheduling(tmp_path):
    flow = wf(
        job("a", sh("a", "exit 1")),
        job("b", sh("b", "true"), needs=["a"]),
        job("c", sh("c", "true"), needs=["a"]),
    )
    results = run_workflow(flow, PUSH_MAIN, source=tmp_path, fail_fast=True, max_workers=1)
    assert results["a"] == "failed"
    assert results["b"] == "skipped(needs)"


def test_only_restricts_the_run(tmp_path):
    flow = wf(
        job("build", sh("Build", "true")),
        job("lint", sh("Lint", "exit 1")),
    )
    assert run_workflow(flow, PUSH_MAIN, source=tmp_path, only=["build"]) == {"build": "ok"}
    with pytest.raises(ValueError):
        run_workflow(flow, PUSH_MAIN, source=tmp_path, only=["nope"])


def test_dry_run_executes_nothing(tmp_path):
    marker = tmp_path / "ran"
    flow = wf(
        job("build", sh("Build", f"touch {marker}")),
        job("release", sh("Release", f"touch {marker}"), condition=on_tags()),
    )
    results = run_workflow(flow, PUSH_MAIN, source=tmp_path, dry_run=True)
    assert results == {"build": "planned", "release": "skipped(trigger)"}
    assert not marker.exists()


def test_graph_errors(tmp_path):
    missing = wf(job("a", sh("a", "true"), needs=["ghost"]))
    with pytest.raises(ValueError, match="missing job"):
        run_workflow(missing, PUSH_MAIN, source=tmp_path)

    cycle = wf(
        job("a", sh("a", "true"), needs=["b"]),
        job("b", sh("b", "true"), needs=["a"]),
    )
    with pytest.raises(ValueError, match="cycle"):
        run_workflow(cycle, PUSH_MAIN, source=tmp_path)

    dupes = wf(job("a", sh("a", "true")), job("a", sh("a", "true")))
    with pytest.raises(ValueError, match="Duplicate"):
        run_workflow(dupes, PUSH_MAIN, source=tmp_path)


def test_failure_output_is_reported(tmp_path, capsys):
    flow = wf(job("build", sh("Build", "echo 'error[E0425]: cannot find value' >&2; exit 101")))
    run_workflow(flow, PUSH_MAIN, source=tmp_path)
    out = capsys.readouterr().out
    assert "JOB FAILED: build" in out
    assert "Exit code: 101" in out
    assert "error[E0425]" in out


def test_load_workflow_variants(tmp_path):
    fn = tmp_path / "fn_workflow.py"
    fn.write_text(
        "from rustci import wf, job, sh\n"
        "def workflow():\n"
        "    return wf(job('a', sh('a', 'true')))\n"
    )
    assert [j.name for j in load_workflow(fn).jobs] == ["a"]

    jobs = tmp_path / "jobs_workflow.py"
    jobs.write_text("from rustci import job, sh\nJOBS = [job('b', sh('b', 'true'))]\n")
    loaded = load_workflow(jobs)
    assert [j.name for j in loaded.jobs] == ["b"]
    assert loaded.on == ["push", "pull_request"]

    bad = tmp_path / "bad_workflow.py"
    bad.write_text("WORKFLOW = 42\n")
    with pytest.raises(TypeError):
        load_workflow(bad)

    with pytest.raises(FileNotFoundError):
        load_workflow(tmp_path / "missing.py")


def _fake_cargo(tmp_path, fail_on):
    """A `cargo` on PATH that logs its arguments and fails for one subcommand."""
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    log = tmp_path / "cargo.log"
    cargo = bin_dir / "cargo"
    cargo.write_text(
        "#!/bin/sh\n"
        f'echo "$*" >> {log}\n'
        f'if [ "$1" = "{fail_on}" ]; then echo "Diff in src/main.rs" >&2; exit 1; fi\n'
        "exit 0\n"
    )
    cargo.chmod(0o755)
    return bin_dir, log


def test_lint_job_stops_at_format_check(git_repo, tmp_path, monkeypatch):
    bin_dir, log = _fake_cargo(tmp_path, fail_on="fmt")
    monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ['PATH']}")

    flow = pipeline()
    results = run_workflow(flow, PUSH_MAIN, source=git_repo, only=["lint"])

    assert results == {"lint": "failed"}
    assert log.read_text().splitlines() == ["fmt --check --all"]


def test_lint_job_runs_all_checks_when_clean(git_repo, tmp_path, monkeypatch):
    bin_dir, log = _fake_cargo(tmp_path, fail_on="nothing")
    monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ['PATH']}")

    results = run_workflow(pipeline(), PUSH_MAIN, source=git_repo, only=["lint"])

    assert results == {"lint": "ok"}
    assert log.read_text().splitlines() == ["fmt --check --all", "clippy", "doc --no-deps"]
