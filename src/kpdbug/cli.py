"""Typer CLI for kpdbug."""

from __future__ import annotations

import logging
from typing import Annotated

import typer

from kpdbug import __version__
from kpdbug.cluster import KubectlClient, KubectlConfig
from kpdbug.config import (
    DEFAULT_IMAGE,
    DEFAULT_NAMESPACE,
    DEFAULT_PROFILE,
    DEFAULT_SHELL,
    CleanConfig,
    DebugConfig,
    ListConfig,
)
from kpdbug.errors import KpdbugError, ValidationError
from kpdbug.lifecycle import LifecycleController
from kpdbug.output import OUTPUT_FORMATS, render
from kpdbug.reclaim import reclaim_sessions
from kpdbug.security import PROFILES
from kpdbug.session_discovery import find_sessions

app = typer.Typer(
    name="kpdbug",
    help="Attach throwaway debug pods to running Kubernetes workloads.",
    no_args_is_help=True,
)

COMMON_IMAGES = [
    "busybox:latest",
    "alpine:latest",
    "ubuntu:latest",
    "nicolaka/netshoot:latest",
]


def version_callback(value: bool) -> None:
    """Print version information and exit."""
    if value:
        typer.echo(f"kpdbug {__version__}")
        raise typer.Exit()


def complete_profile(incomplete: str) -> list[str]:
    return [p for p in PROFILES if p.startswith(incomplete)]


def complete_image(incomplete: str) -> list[str]:
    return [i for i in COMMON_IMAGES if i.startswith(incomplete)]


def complete_output(incomplete: str) -> list[str]:
    return [o for o in OUTPUT_FORMATS if o.startswith(incomplete)]


def _completion_client(ctx: typer.Context) -> KubectlClient:
    # The app callback does not run during completion, so ctx.obj is unset.
    context = ctx.find_root().params.get("context")
    return KubectlClient(KubectlConfig(context=context))


def complete_namespace(ctx: typer.Context, incomplete: str) -> list[str]:
    try:
        names = _completion_client(ctx).namespace_names()
    except KpdbugError:
        names = []
    if not names:
        names = [DEFAULT_NAMESPACE]
    return [n for n in names if n.startswith(incomplete)]


def complete_pod(ctx: typer.Context, incomplete: str) -> list[str]:
    namespace = ctx.params.get("namespace") or DEFAULT_NAMESPACE
    try:
        names = _completion_client(ctx).pod_names(namespace)
    except KpdbugError:
        return []
    return [n for n in names if n.startswith(incomplete)]


def _client(ctx: typer.Context) -> KubectlClient:
    obj = ctx.ensure_object(dict)
    return KubectlClient(KubectlConfig(context=obj.get("context")))


def _fail(err: KpdbugError) -> typer.Exit:
    typer.echo(err.render(), err=True)
    return typer.Exit(1)


@app.callback()
def main(
    ctx: typer.Context,
    context: Annotated[
        str | None,
        typer.Option(
            "--context",
            envvar="KPDBUG_CONTEXT",
            help="Kubeconfig context to use.",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose output."),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show kpdbug version and exit.",
        ),
    ] = False,
) -> None:
    """Attach throwaway debug pods to running Kubernetes workloads."""
    ctx.ensure_object(dict)
    ctx.obj["context"] = context
    ctx.obj["verbose"] = verbose

    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


@app.command("debug")
def debug_cmd(
    ctx: typer.Context,
    pod: Annotated[
        str,
        typer.Option(
            "--pod",
            "-p",
            autocompletion=complete_pod,
            help="Target pod. Without it a standalone debug pod is created.",
        ),
    ] = "",
    namespace: Annotated[
        str,
        typer.Option(
            "--namespace",
            "-n",
            envvar="KPDBUG_NAMESPACE",
            autocompletion=complete_namespace,
            help="Namespace of the target pod and the debug session.",
        ),
    ] = DEFAULT_NAMESPACE,
    image: Annotated[
        str,
        typer.Option(
            "--image",
            envvar="KPDBUG_IMAGE",
            autocompletion=complete_image,
            help="Debug container image.",
        ),
    ] = DEFAULT_IMAGE,
    interactive: Annotated[
        bool,
        typer.Option("--interactive", "-i", help="Keep stdin open."),
    ] = False,
    tty: Annotated[
        bool,
        typer.Option("--tty", "-t", help="Allocate a TTY."),
    ] = False,
    remove_after: Annotated[
        bool,
        typer.Option("--rm", help="Delete the debug pod when the session ends."),
    ] = False,
    copy: Annotated[
        bool,
        typer.Option(
            "--copy",
            help="Debug a copy of the target pod instead of adding a container.",
        ),
    ] = False,
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            "-f",
            help="Always create a new debug session, never reuse one.",
        ),
    ] = False,
    yes: Annotated[
        bool,
        typer.Option(
            "--yes",
            "-y",
            help="Do not prompt; reuse an existing debug session if one exists.",
        ),
    ] = False,
    profile: Annotated[
        str,
        typer.Option(
            "--profile",
            envvar="KPDBUG_PROFILE",
            autocompletion=complete_profile,
            help="Security profile: general, restricted, baseline or privileged.",
        ),
    ] = DEFAULT_PROFILE,
    cpu_request: Annotated[
        str,
        typer.Option("--cpu-request", help="CPU request of the debug container."),
    ] = "100m",
    memory_request: Annotated[
        str,
        typer.Option("--memory-request", help="Memory request of the debug container."),
    ] = "128Mi",
    memory_limit: Annotated[
        str,
        typer.Option("--memory-limit", help="Memory limit of the debug container."),
    ] = "512Mi",
    shell: Annotated[
        str,
        typer.Option("--shell", help="Shell started in interactive sessions."),
    ] = DEFAULT_SHELL,
) -> None:
    """Create a debug session, or re-enter an existing one."""
    if profile not in PROFILES:
        typer.echo(
            f"Warning: unknown profile '{profile}', using 'general'", err=True
        )

    config = DebugConfig(
        namespace=namespace,
        pod_name=pod,
        image=image,
        interactive=interactive,
        tty=tty,
        remove_after=remove_after,
        force=force,
        copy=copy,
        assume_yes=yes,
        profile=profile,
        cpu_request=cpu_request,
        memory_request=memory_request,
        memory_limit=memory_limit,
        shell=shell,
    )

    try:
        exit_code = LifecycleController(_client(ctx), config).run()
    except KpdbugError as e:
        raise _fail(e) from None

    raise typer.Exit(exit_code)


@app.command("list")
def list_cmd(
    ctx: typer.Context,
    namespace: Annotated[
        str,
        typer.Option(
            "--namespace",
            "-n",
            envvar="KPDBUG_NAMESPACE",
            autocompletion=complete_namespace,
            help="Namespace to list.",
        ),
    ] = DEFAULT_NAMESPACE,
    all_namespaces: Annotated[
        bool,
        typer.Option(
            "--all-namespaces",
            "-A",
            help="List debug pods across all namespaces.",
        ),
    ] = False,
    output: Annotated[
        str,
        typer.Option(
            "--output",
            "-o",
            autocompletion=complete_output,
            help="Output format: table, json or yaml.",
        ),
    ] = "table",
) -> None:
    """List active debug pods."""
    config = ListConfig(
        namespace=namespace, all_namespaces=all_namespaces, output=output
    )
    try:
        if config.output not in OUTPUT_FORMATS:
            raise ValidationError(
                "output format", config.output, "expected table, json or yaml"
            )
        records = find_sessions(
            _client(ctx), config.namespace, all_namespaces=config.all_namespaces
        )
    except KpdbugError as e:
        raise _fail(e) from None

    if not records:
        typer.echo("No debug pods found")
        return

    typer.echo(render(records, config.output, config.all_namespaces))


@app.command("clean")
def clean_cmd(
    ctx: typer.Context,
    namespace: Annotated[
        str,
        typer.Option(
            "--namespace",
            "-n",
            envvar="KPDBUG_NAMESPACE",
            autocompletion=complete_namespace,
            help="Namespace to clean.",
        ),
    ] = DEFAULT_NAMESPACE,
    all_namespaces: Annotated[
        bool,
        typer.Option(
            "--all-namespaces",
            "-A",
            help="Clean debug pods across all namespaces.",
        ),
    ] = False,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Clean up without confirmation."),
    ] = False,
    older_than: Annotated[
        str | None,
        typer.Option(
            "--older-than",
            help="Only clean pods older than this duration (e.g. 1h, 30m).",
        ),
    ] = None,
) -> None:
    """Clean up debug pods."""
    config = CleanConfig(
        namespace=namespace,
        all_namespaces=all_namespaces,
        older_than=older_than,
        force=force,
    )
    try:
        reclaim_sessions(_client(ctx), config)
    except KpdbugError as e:
        raise _fail(e) from None
