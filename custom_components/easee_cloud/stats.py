"""Invocation and error counters for calls made to the Easee cloud."""
from __future__ import annotations

from collections import Counter, defaultdict
from datetime import datetime, timezone
from typing import Any

COMMANDS_PATH = "/api/commands/"


def endpoint_key(method: str, path: str) -> str:
    """Collapse per-call unique path parts so counters stay bounded."""
    if path.startswith(COMMANDS_PATH):
        device = path[len(COMMANDS_PATH):].split("/", 1)[0]
        path = f"{COMMANDS_PATH}{device}/..."
    elif "?" in path:
        path = path.split("?", 1)[0] + "?..."
    return f"{method.lower()}:{path}"


class ApiStats:
    def __init__(self) -> None:
        self.started_at = datetime.now(timezone.utc)
        self.reset()

    def reset(self) -> None:
        self.total_invocations = 0
        self.invocations: Counter[str] = Counter()
        self.errors: Counter[str] = Counter()
        self.error_log: dict[str, list[tuple[str, str]]] = defaultdict(list)

    def count_invocation(self, endpoint: str) -> None:
        self.total_invocations += 1
        self.invocations[endpoint] += 1

    def count_error(self, endpoint: str, error: str) -> None:
        self.errors[endpoint] += 1
        log = self.error_log[error]
        log.append((datetime.now(timezone.utc).isoformat(), endpoint))
        # keep the most recent occurrences only
        del log[:-20]

    def as_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "total_invocations": self.total_invocations,
            "invocations": dict(self.invocations),
            "errors": dict(self.errors),
            "error_log": {key: list(value) for key, value in self.error_log.items()},
        }
