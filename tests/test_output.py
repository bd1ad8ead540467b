"""Tests for session rendering."""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta

import yaml

from kpdbug.output import format_age, render, truncate
from kpdbug.session_discovery import DiscoveryRecord

NOW = datetime(2024, 1, 15, 12, 0, tzinfo=UTC)

RECORDS = [
    DiscoveryRecord(
        name="debug-web-101010-0001",
        namespace="dev",
        target="web",
        phase="Running",
        created_at=NOW - timedelta(minutes=5),
        image="busybox:latest",
        node="node-1",
    ),
    DiscoveryRecord(
        name="debug-101010-0002",
        namespace="ops",
        target=None,
        phase="Pending",
        created_at=NOW - timedelta(days=2),
        image="nicolaka/netshoot:latest",
        node="",
    ),
]


class TestFormatAge:
    """Tests for format_age."""

    def test_units(self) -> None:
        assert format_age(NOW - timedelta(seconds=5), NOW) == "5s"
        assert format_age(NOW - timedelta(minutes=3), NOW) == "3m"
        assert format_age(NOW - timedelta(hours=2), NOW) == "2h"
        assert format_age(NOW - timedelta(days=4), NOW) == "4d"

    def test_future_is_zero(self) -> None:
        assert format_age(NOW + timedelta(minutes=1), NOW) == "0s"


def test_truncate() -> None:
    assert truncate("short", 10) == "short"
    assert truncate("a" * 30, 10) == "aaaaaaa..."


class TestRender:
    """Tests for render."""

    def test_table(self) -> None:
        lines = render(RECORDS, now=NOW).splitlines()

        assert lines[0].split() == ["NAME", "TARGET", "STATUS", "AGE", "IMAGE"]
        assert lines[2].split() == [
            "debug-web-101010-0001", "web", "Running", "5m", "busybox:latest",
        ]
        assert "<standalone>" in lines[3]
        assert "ops" not in lines[3]

    def test_table_all_namespaces(self) -> None:
        lines = render(RECORDS, all_namespaces=True, now=NOW).splitlines()

        assert lines[0].split()[:2] == ["NAME", "NAMESPACE"]
        assert lines[3].split()[1] == "ops"

    def test_json(self) -> None:
        data = json.loads(render(RECORDS, "json", now=NOW))

        assert data[0] == {
            "name": "debug-web-101010-0001",
            "namespace": "dev",
            "target_pod": "web",
            "status": "Running",
            "age": "5m",
            "image": "busybox:latest",
            "node": "node-1",
        }
        assert "target_pod" not in data[1]
        assert "node" not in data[1]

    def test_yaml(self) -> None:
        data = yaml.safe_load(render(RECORDS, "yaml", now=NOW))

        assert data[1]["name"] == "debug-101010-0002"
        assert data[1]["age"] == "2d"
