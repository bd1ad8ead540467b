"""Bulk cleanup of debug sessions by namespace and age."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import typer

from kpdbug.cluster import KubectlClient
from kpdbug.config import CleanConfig
from kpdbug.errors import KpdbugError, ValidationError
from kpdbug.output import format_age
from kpdbug.session_discovery import DiscoveryRecord, find_sessions

logger = logging.getLogger(__name__)

# Unit sizes in nanoseconds; sub-microsecond remainders are truncated.
_UNITS = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}

_PART_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as "1h", "30m", "1h30m" or "1.5h".

    Raises:
        ValidationError: If the text is not a valid non-negative duration.
    """
    value = text.strip()
    if value.startswith("+"):
        value = value[1:]
    if value == "0":
        return timedelta(0)

    pos = 0
    total_ns = 0.0
    while pos < len(value):
        match = _PART_RE.match(value, pos)
        if match is None:
            raise ValidationError(
                "duration for --older-than",
                text,
                "expected a duration like 30m, 1h or 1h30m",
            )
        total_ns += float(match.group(1)) * _UNITS[match.group(2)]
        pos = match.end()

    if pos == 0:
        raise ValidationError(
            "duration for --older-than", text, "duration must not be empty"
        )
    return timedelta(microseconds=round(total_ns) // 1000)


def select_sessions(
    records: list[DiscoveryRecord],
    older_than: timedelta | None = None,
    now: datetime | None = None,
) -> list[DiscoveryRecord]:
    """Select the records eligible for deletion.

    Without a threshold every record is selected. With one, only records
    created strictly before `now - older_than` are.
    """
    if older_than is None:
        return list(records)

    cutoff = (now or datetime.now(UTC)) - older_than
    return [record for record in records if record.created_at < cutoff]


@dataclass(frozen=True)
class ReclaimReport:
    """Outcome of one cleanup run."""

    found: int
    attempted: int
    deleted: int
    cancelled: bool = False


def _confirm(prompt: str) -> bool:
    return typer.confirm(prompt, default=False)


def reclaim_sessions(
    client: KubectlClient,
    config: CleanConfig,
    confirm: Callable[[str], bool] = _confirm,
    now: datetime | None = None,
) -> ReclaimReport:
    """Find, select and delete debug sessions.

    A single confirmation gates the whole batch unless `config.force` is
    set. Deletion continues past per-pod failures.

    Raises:
        ValidationError: If `config.older_than` is malformed.
    """
    # Validate before touching the cluster.
    threshold = parse_duration(config.older_than) if config.older_than else None

    records = find_sessions(
        client, config.namespace, all_namespaces=config.all_namespaces
    )
    if not records:
        typer.echo("No debug pods found to clean")
        return ReclaimReport(found=0, attempted=0, deleted=0)

    candidates = select_sessions(records, threshold, now=now)
    if not candidates:
        typer.echo("No debug pods match the cleanup criteria")
        return ReclaimReport(found=len(records), attempted=0, deleted=0)

    if not config.force:
        current = now or datetime.now(UTC)
        typer.echo("The following debug pods will be deleted:")
        for record in candidates:
            typer.echo(
                f"  {record.namespace}/{record.name} "
                f"(target: {record.target or '<standalone>'}, "
                f"age: {format_age(record.created_at, current)})"
            )
        if not confirm("Do you want to continue?"):
            typer.echo("Cleanup cancelled")
            return ReclaimReport(
                found=len(records), attempted=0, deleted=0, cancelled=True
            )

    deleted = 0
    for record in candidates:
        try:
            client.delete_pod(record.name, record.namespace)
        except KpdbugError as e:
            logger.warning(
                "Failed to delete pod %s/%s: %s",
                record.namespace, record.name, e.message,
            )
            typer.echo(
                f"Warning: Failed to delete pod {record.namespace}/{record.name}: "
                f"{e.message}",
                err=True,
            )
            continue
        typer.echo(f"Deleted debug pod {record.namespace}/{record.name}")
        deleted += 1

    typer.echo(
        f"Successfully deleted {deleted} of {len(candidates)} debug pods"
    )
    return ReclaimReport(
        found=len(records), attempted=len(candidates), deleted=deleted
    )
