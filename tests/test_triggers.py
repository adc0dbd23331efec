from __future__ import annotations

import pytest

from rustci.dsl import job, sh, wf
from rustci.model import Event
from rustci.pipeline import pipeline
from rustci.runner import plan_workflow
from rustci.triggers import (
    ALWAYS,
    AllOf,
    EventKind,
    RefPrefix,
    eligible_jobs,
    event_from_env,
    event_from_git,
    tag_push,
)

from conftest import git


def names(jobs):
    return [j.name for j in jobs]


def test_branch_push_schedules_build_and_lint_only():
    event = Event("push", "refs/heads/main")
    assert names(eligible_jobs(pipeline(), event)) == ["build", "lint"]


def test_tag_push_schedules_all_three_jobs():
    event = Event("push", "refs/tags/v1.2.3")
    assert names(eligible_jobs(pipeline(), event)) == ["build", "lint", "release"]


def test_pull_request_never_schedules_release():
    event = Event("pull_request", "refs/pull/7/merge")
    plan = plan_workflow(pipeline(), event)
    assert plan == {"build": "scheduled", "lint": "scheduled", "release": "skipped(trigger)"}


@pytest.mark.parametrize("ref", ["", "refs/heads/refs/tags/x", "tags/v1", "REFS/TAGS/v1"])
def test_malformed_or_lookalike_refs_do_not_match(ref):
    assert RefPrefix("refs/tags/")(Event("push", ref)) is False


def test_ref_prefix_tolerates_non_string_ref():
    class Weird:
        ref = None

    assert RefPrefix("refs/tags/")(Weird()) is False


def test_always_matches_everything_and_has_no_expression():
    assert ALWAYS(Event("pull_request", "")) is True
    assert ALWAYS.expression() is None
    assert RefPrefix("refs/tags/").expression() == "startsWith(github.ref, 'refs/tags/')"


def test_unknown_event_kind_is_rejected():
    with pytest.raises(ValueError):
        Event("workflow_dispatch", "refs/heads/main")


def test_event_kinds_outside_workflow_triggers_schedule_nothing():
    push_only = wf(job("a", sh("a", "true")), on=["push"])
    assert eligible_jobs(push_only, Event("pull_request", "refs/pull/1/merge")) == []


def test_tag_name():
    assert Event("push", "refs/tags/v1.2.3").tag_name == "v1.2.3"
    assert Event("push", "refs/heads/main").tag_name is None
    assert Event("push", "refs/tags/").tag_name is None


def test_event_from_env():
    env = {"GITHUB_EVENT_NAME": "push", "GITHUB_REF": "refs/tags/v2.0.0"}
    assert event_from_env(env) == Event("push", "refs/tags/v2.0.0")
    assert event_from_env({"GITHUB_EVENT_NAME": "schedule"}) is None
    assert event_from_env({}) is None


def test_pull_request_with_tag_ref_never_schedules_release():
    event = Event("pull_request", "refs/tags/v1.2.3")
    assert names(eligible_jobs(pipeline(), event)) == ["build", "lint"]


def test_tag_push_requires_push_and_prefix():
    gate = tag_push()
    assert gate(Event("push", "refs/tags/v1.2.3")) is True
    assert gate(Event("pull_request", "refs/tags/v1.2.3")) is False
    assert gate(Event("push", "refs/heads/main")) is False
    assert gate.expression() == "github.event_name == 'push' && startsWith(github.ref, 'refs/tags/')"


def test_event_kind_and_all_of():
    assert EventKind("pull_request")(Event("pull_request", "")) is True
    assert EventKind("push")(Event("pull_request", "")) is False
    assert AllOf((ALWAYS,)).expression() is None
    assert AllOf((ALWAYS, EventKind("push"))).expression() == "github.event_name == 'push'"


def test_event_from_git_prefers_tag_at_head(git_repo):
    assert event_from_git(git_repo) == Event("push", "refs/tags/v1.2.3")


def test_event_from_git_uses_branch_without_tag(git_repo):
    git(git_repo, "commit", "-q", "--allow-empty", "-m", "next")
    assert event_from_git(git_repo) == Event("push", "refs/heads/main")


def test_event_from_git_detached_head_is_the_sha(git_repo):
    git(git_repo, "commit", "-q", "--allow-empty", "-m", "next")
    sha = git(git_repo, "rev-parse", "HEAD")
    git(git_repo, "checkout", "-q", "--detach", "HEAD")
    assert event_from_git(git_repo) == Event("push", sha)
