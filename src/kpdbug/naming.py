"""Debug session naming."""

from __future__ import annotations

import random
from collections.abc import Callable
from datetime import datetime


def generate_session_name(
    target: str | None = None,
    now: datetime | None = None,
    randint: Callable[[int, int], int] = random.randint,
) -> str:
    """Generate a session name.

    Names look like "debug-HHMMSS-NNNN", or "debug-<target>-HHMMSS-NNNN"
    when a target pod is given. Collisions are possible but rare; they
    surface as a create failure.

    Args:
        target: Target pod name, if any.
        now: Clock reading (defaults to the current local time).
        randint: Random source, called as randint(0, 9999).

    Returns:
        Session name valid as a Kubernetes object name when the target is.
    """
    timestamp = (now or datetime.now()).strftime("%H%M%S")
    suffix = f"{randint(0, 9999):04d}"

    if not target:
        return f"debug-{timestamp}-{suffix}"
    return f"debug-{target}-{timestamp}-{suffix}"
