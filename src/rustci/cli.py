# cli.py
from __future__ import annotations

import subprocess
import sys
from pathlib import Path
from typing import Optional

import click

from rustci import git
from rustci.export import render_github_workflow, write_github_workflow
from rustci.github import DEFAULT_API_URL
from rustci.model import EVENT_KINDS, Event, Workflow
from rustci.pipeline import PipelineConfig, pipeline
from rustci.runner import load_workflow, plan_workflow, run_workflow
from rustci.triggers import event_from_env, event_from_git
from rustci.ui.console import Console, get_console, set_console

DEFAULT_WORKFLOW_FILE = "rustci_workflow.py"


def find_workflow_files(directory: Path = Path(".")) -> list[Path]:
    """rustci_workflow.py and any other *_workflow.py in `directory`."""
    return sorted(directory.glob("*_workflow.py"))


def discover_workflow(workflow_arg: str | None) -> Optional[Path]:
    """
    Resolve the workflow file to load.

    Returns None when no file is given and none is found, meaning the
    built-in pipeline is used.

    Raises:
        SystemExit: If the given file is missing or the choice is ambiguous
    """
    console = get_console()

    if workflow_arg:
        workflow_path = Path(workflow_arg)
        if not workflow_path.exists() and workflow_path.suffix != ".py":
            workflow_path = Path(str(workflow_path) + ".py")
        if not workflow_path.exists():
            console.print_error(
                "Workflow file not found",
                f"Could not find workflow file: {workflow_arg}",
                suggestion="Create a workflow file or specify a different path:\n  rustci run --workflow my_workflow.py",
            )
            sys.exit(1)
        return workflow_path

    workflow_files = find_workflow_files()
    if not workflow_files:
        return None

    default = Path(DEFAULT_WORKFLOW_FILE)
    if default in workflow_files:
        return default

    if len(workflow_files) > 1:
        console.print_error(
            "Multiple workflow files found",
            "Found multiple workflow files. Please specify which one to use:",
            details=[str(f) for f in workflow_files],
            suggestion=f"Specify a workflow explicitly:\n  rustci run --workflow {workflow_files[0]}",
        )
        sys.exit(1)

    return workflow_files[0]


def _load(workflow_arg: str | None, binary: str | None, target: str | None) -> tuple[Workflow, str]:
    path = discover_workflow(workflow_arg)
    if path is not None:
        return load_workflow(path), path.name

    overrides = {}
    if binary:
        overrides["binary"] = binary
    if target:
        overrides["target"] = target
    return pipeline(PipelineConfig(**overrides)), "built-in"


def _resolve_event(kind: str | None, ref: str | None, source: str) -> Event:
    """--event/--ref first, then the Actions environment, then git."""
    if kind:
        if ref is None:
            ref = git.current_ref(cwd=source)
        return Event(kind=kind, ref=ref)
    if ref is not None:
        return Event(kind="push", ref=ref)
    from_env = event_from_env()
    if from_env is not None:
        return from_env
    return event_from_git(source)


def _repo_name(source: str) -> str:
    try:
        url = git.remote_url(cwd=source)
        return url.rstrip("/").split("/")[-1].replace(".git", "")
    except (subprocess.CalledProcessError, FileNotFoundError, NotADirectoryError):
        return Path(source).resolve().name


def workflow_options(f):
    f = click.option("--target", default=None, help="Target triple for the built-in pipeline")(f)
    f = click.option("--binary", default=None, help="Executable name for the built-in pipeline")(f)
    f = click.option(
        "--workflow",
        default=None,
        help=f"Workflow file path (defaults to {DEFAULT_WORKFLOW_FILE} if present, else the built-in pipeline)",
    )(f)
    return f


def event_options(f):
    f = click.option("--ref", default=None, help="Git ref of the event, e.g. refs/tags/v1.2.3")(f)
    f = click.option(
        "--event",
        "event_kind",
        type=click.Choice(EVENT_KINDS),
        default=None,
        help="Event kind (defaults to $GITHUB_EVENT_NAME, else a push of the current checkout)",
    )(f)
    return f


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
@click.pass_context
def cli(ctx, debug):
    """rustci: build, lint and release a single-binary Cargo project."""
    set_console(Console(debug=debug))
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command()
@workflow_options
@event_options
@click.option("--source", default=".", show_default=True, help="Repository to check out")
@click.option("--only", multiple=True, help="Restrict to the named job (repeatable)")
def plan(workflow, binary, target, event_kind, ref, source, only):
    """Show which jobs an event would schedule."""
    console = get_console()
    try:
        wf, _ = _load(workflow, binary, target)
        event = _resolve_event(event_kind, ref, source)
        console.print_info(f"Event: {event.kind} {event.ref}")
        for name, decision in plan_workflow(wf, event, list(only) or None).items():
            if decision == "scheduled":
                console.print_plan_job(name, decision)
            else:
                console.print_plan_job_skipped(name, "trigger condition not met")
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)


@cli.command()
@workflow_options
@event_options
@click.option("--source", default=".", show_default=True, help="Repository to check out")
@click.option("--only", multiple=True, help="Run only the named job (repeatable)")
@click.option("--workers", default=None, type=int, help="Number of parallel jobs")
@click.option("--fail-fast/--no-fail-fast", default=False, help="Stop scheduling new jobs after first failure")
@click.option("--dry-run", is_flag=True, default=False, help="Evaluate triggers without running anything")
@click.option("--github-token", envvar="GITHUB_TOKEN", default=None, help="Token used by the release upload")
@click.option("--repository", envvar="GITHUB_REPOSITORY", default=None, help="owner/name of the GitHub repository")
@click.option("--api-url", envvar="GITHUB_API_URL", default=DEFAULT_API_URL, show_default=True)
def run(workflow, binary, target, event_kind, ref, source, only, workers, fail_fast, dry_run,
        github_token, repository, api_url):
    """Run the pipeline for an event."""
    console = get_console()

    try:
        wf, wf_label = _load(workflow, binary, target)
        event = _resolve_event(event_kind, ref, source)
        repository = repository or git.repository_slug(cwd=source)
        console.print_debug(f"source={source} repository={repository} api={api_url}")

        console.print_run_started(
            repository=_repo_name(source),
            workflow=wf_label,
            event=f"{event.kind} {event.ref}",
            job_count=len(wf.jobs),
        )

        results = run_workflow(
            wf,
            event,
            source=source,
            max_workers=workers,
            only=list(only) or None,
            fail_fast=fail_fast,
            dry_run=dry_run,
            github_token=github_token,
            repository=repository,
            api_url=api_url,
        )

        console.print_results(results)

        if any(v == "failed" for v in results.values()):
            sys.exit(1)

    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)


@cli.command()
@workflow_options
@click.option("-o", "--output", default=None, help="Write to this path instead of stdout")
def export(workflow, binary, target, output):
    """Export the pipeline as a GitHub Actions workflow."""
    console = get_console()
    try:
        wf, _ = _load(workflow, binary, target)
        if output:
            path = write_github_workflow(wf, output)
            console.print_info(f"Wrote {path}")
        else:
            click.echo(render_github_workflow(wf), nl=False)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
