"""Rendering of discovered debug sessions."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

import yaml

from kpdbug.session_discovery import DiscoveryRecord

OUTPUT_FORMATS = ("table", "json", "yaml")

STANDALONE = "<standalone>"


def format_age(created_at: datetime, now: datetime | None = None) -> str:
    """Format the age of an object the way kubectl does (5s, 3m, 2h, 4d)."""
    seconds = int(((now or datetime.now(UTC)) - created_at).total_seconds())
    seconds = max(seconds, 0)
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m"
    if seconds < 86400:
        return f"{seconds // 3600}h"
    return f"{seconds // 86400}d"


def truncate(value: str, max_len: int) -> str:
    if len(value) <= max_len:
        return value
    return value[: max_len - 3] + "..."


def record_to_dict(record: DiscoveryRecord, now: datetime | None = None) -> dict[str, Any]:
    data: dict[str, Any] = {
        "name": record.name,
        "namespace": record.namespace,
    }
    if record.target:
        data["target_pod"] = record.target
    data["status"] = record.phase
    data["age"] = format_age(record.created_at, now)
    data["image"] = record.image
    if record.node:
        data["node"] = record.node
    return data


def render_table(
    records: list[DiscoveryRecord],
    all_namespaces: bool = False,
    now: datetime | None = None,
) -> str:
    """Render records as a fixed-width table."""
    if all_namespaces:
        row = "{:<30} {:<15} {:<20} {:<12} {:<8} {:<25}"
        header = ("NAME", "NAMESPACE", "TARGET", "STATUS", "AGE", "IMAGE")
    else:
        row = "{:<30} {:<20} {:<12} {:<8} {:<25}"
        header = ("NAME", "TARGET", "STATUS", "AGE", "IMAGE")

    lines = [
        row.format(*header).rstrip(),
        row.format(*("-" * len(h) for h in header)).rstrip(),
    ]
    for record in records:
        cells = [truncate(record.name, 30)]
        if all_namespaces:
            cells.append(record.namespace)
        cells.extend([
            truncate(record.target or STANDALONE, 20),
            record.phase,
            format_age(record.created_at, now),
            truncate(record.image, 25),
        ])
        lines.append(row.format(*cells).rstrip())
    return "\n".join(lines)


def render_json(records: list[DiscoveryRecord], now: datetime | None = None) -> str:
    return json.dumps([record_to_dict(r, now) for r in records], indent=2)


def render_yaml(records: list[DiscoveryRecord], now: datetime | None = None) -> str:
    return yaml.safe_dump(
        [record_to_dict(r, now) for r in records], sort_keys=False
    )


def render(
    records: list[DiscoveryRecord],
    output: str = "table",
    all_namespaces: bool = False,
    now: datetime | None = None,
) -> str:
    """Render records in the requested output format."""
    if output == "json":
        return render_json(records, now)
    if output == "yaml":
        return render_yaml(records, now).rstrip("\n")
    return render_table(records, all_namespaces, now)
