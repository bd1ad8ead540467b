"""Tests for collision reconciliation."""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import MagicMock, patch

import pytest

from kpdbug.config import DebugConfig
from kpdbug.reconcile import ask_existing_or_new, reconcile_collision
from kpdbug.session_discovery import DiscoveryRecord


def _record(name: str) -> DiscoveryRecord:
    return DiscoveryRecord(
        name=name,
        namespace="dev",
        target="web",
        phase="Running",
        created_at=datetime(2024, 1, 15, tzinfo=UTC),
        image="busybox:latest",
        node="",
    )


def _never(existing: str, namespace: str) -> str:
    raise AssertionError("prompt should not be shown")


class TestReconcileCollision:
    """Tests for reconcile_collision."""

    @patch("kpdbug.reconcile.find_sessions")
    def test_force_skips_lookup(self, mock_find: MagicMock) -> None:
        config = DebugConfig(namespace="dev", pod_name="web", force=True)

        decision = reconcile_collision(MagicMock(), config, _never)

        assert decision.create_new
        mock_find.assert_not_called()

    @patch("kpdbug.reconcile.find_sessions", return_value=[])
    def test_no_prior_sessions(self, mock_find: MagicMock) -> None:
        config = DebugConfig(namespace="dev", pod_name="web")

        decision = reconcile_collision(MagicMock(), config, _never)

        assert decision.create_new
        assert mock_find.call_args[1]["target"] == "web"

    @patch("kpdbug.reconcile.find_sessions")
    def test_assume_yes_reuses_first(self, mock_find: MagicMock) -> None:
        mock_find.return_value = [_record("debug-web-1"), _record("debug-web-2")]
        config = DebugConfig(namespace="dev", pod_name="web", assume_yes=True)

        decision = reconcile_collision(MagicMock(), config, _never)

        assert decision.existing == "debug-web-1"

    @patch("kpdbug.reconcile.find_sessions")
    def test_prompt_use_existing(self, mock_find: MagicMock) -> None:
        mock_find.return_value = [_record("debug-web-1")]
        asked: list[tuple[str, str]] = []

        def choose(existing: str, namespace: str) -> str:
            asked.append((existing, namespace))
            return "1"

        decision = reconcile_collision(
            MagicMock(), DebugConfig(namespace="dev", pod_name="web"), choose
        )

        assert decision.existing == "debug-web-1"
        assert asked == [("debug-web-1", "dev")]

    @patch("kpdbug.reconcile.find_sessions")
    def test_prompt_create_new(self, mock_find: MagicMock) -> None:
        mock_find.return_value = [_record("debug-web-1")]

        decision = reconcile_collision(
            MagicMock(),
            DebugConfig(namespace="dev", pod_name="web"),
            lambda existing, namespace: " 2 ",
        )

        assert decision.create_new

    @patch("kpdbug.reconcile.find_sessions")
    def test_unexpected_answer_reuses(self, mock_find: MagicMock) -> None:
        """Anything other than "2" keeps the existing session."""
        mock_find.return_value = [_record("debug-web-1")]

        decision = reconcile_collision(
            MagicMock(),
            DebugConfig(namespace="dev", pod_name="web"),
            lambda existing, namespace: "maybe",
        )

        assert decision.existing == "debug-web-1"

    @patch("kpdbug.reconcile.find_sessions")
    def test_warns_on_multiple(
        self, mock_find: MagicMock, caplog: pytest.LogCaptureFixture
    ) -> None:
        mock_find.return_value = [_record("debug-web-1"), _record("debug-web-2")]
        config = DebugConfig(namespace="dev", pod_name="web", assume_yes=True)

        with caplog.at_level("WARNING", logger="kpdbug.reconcile"):
            reconcile_collision(MagicMock(), config, _never)

        assert "2 debug pods already exist" in caplog.text


class TestAskExistingOrNew:
    """Tests for the interactive prompt."""

    @patch("kpdbug.reconcile.typer.prompt", return_value="2")
    @patch("kpdbug.reconcile.typer.echo")
    def test_shows_options(self, mock_echo: MagicMock, mock_prompt: MagicMock) -> None:
        answer = ask_existing_or_new("debug-web-1", "dev")

        assert answer == "2"
        lines = [c[0][0] for c in mock_echo.call_args_list]
        assert "[1] Use existing pod" in lines
        assert "[2] Create new pod" in lines
        assert mock_prompt.call_args[1]["default"] == "1"
