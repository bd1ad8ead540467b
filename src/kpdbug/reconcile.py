"""Reuse-or-recreate decision for sessions against the same target."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

import typer

from kpdbug.cluster import KubectlClient
from kpdbug.config import DebugConfig
from kpdbug.session_discovery import find_sessions

logger = logging.getLogger(__name__)

USE_EXISTING = "1"
CREATE_NEW = "2"


@dataclass(frozen=True)
class Decision:
    """Outcome of collision reconciliation.

    Attributes:
        existing: Name of the prior session to reuse, or None to create
            a new session.
    """

    existing: str | None = None

    @property
    def create_new(self) -> bool:
        return self.existing is None


def ask_existing_or_new(existing: str, namespace: str) -> str:
    """Ask whether to reuse `existing` or create a new session."""
    typer.echo(
        f"Debug pod '{existing}' already exists in namespace '{namespace}'. "
        "Do you want to:"
    )
    typer.echo("[1] Use existing pod")
    typer.echo("[2] Create new pod")
    return typer.prompt("Choose (1/2)", default=USE_EXISTING)


def reconcile_collision(
    client: KubectlClient,
    config: DebugConfig,
    choose: Callable[[str, str], str] = ask_existing_or_new,
) -> Decision:
    """Decide whether to reuse a prior session for the target pod.

    Args:
        client: Cluster client.
        config: Debug configuration; `pod_name` is the target.
        choose: Prompt returning "1" (reuse) or "2" (create new).

    Returns:
        Decision to reuse the first prior session found or to create one.
    """
    if config.force:
        return Decision()

    prior = find_sessions(client, config.namespace, target=config.pod_name)
    if not prior:
        return Decision()

    if len(prior) > 1:
        logger.warning(
            "%d debug pods already exist for %s/%s; offering %s",
            len(prior), config.namespace, config.pod_name, prior[0].name,
        )

    existing = prior[0].name
    if config.assume_yes:
        return Decision(existing=existing)

    answer = choose(existing, config.namespace).strip()
    if answer == CREATE_NEW:
        return Decision()
    return Decision(existing=existing)
