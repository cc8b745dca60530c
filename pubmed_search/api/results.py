"""Result envelopes printed by the search CLI.

Every command ends in exactly one envelope. Failures are values, not
exceptions, so callers can branch on ``success`` and on ``setup_required``.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

SIGNUP_URL = "https://platform.valyu.ai"
SETUP_REQUIRED_MESSAGE = (
    f"Valyu API key not configured. Get your free API key ($10 credits) at {SIGNUP_URL}"
)
QUERY_USAGE = "Query required. Usage: search <query> [maxResults]"
API_KEY_USAGE = "API key required. Usage: search setup <api-key>"

__all__ = [
    "API_KEY_USAGE",
    "CommandFailure",
    "Envelope",
    "QUERY_USAGE",
    "SETUP_REQUIRED_MESSAGE",
    "SearchFailure",
    "SearchOutcome",
    "SearchSuccess",
    "SetupRequired",
    "SetupSuccess",
]


@dataclass(frozen=True, slots=True)
class SearchSuccess:
    query: str
    results: Sequence[Any] = field(default_factory=list)
    cost: float = 0

    success = True
    type = "pubmed_search"

    @property
    def result_count(self) -> int:
        return len(self.results)

    def to_payload(self) -> dict[str, Any]:
        return {
            "success": True,
            "type": self.type,
            "query": self.query,
            "result_count": self.result_count,
            "results": list(self.results),
            "cost": self.cost,
        }


@dataclass(frozen=True, slots=True)
class SearchFailure:
    """Transport, decoding or remote API failure."""

    error: Any  # server-provided `detail` may be structured
    status: int | None = None

    success = False

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": False, "error": self.error}
        if self.status is not None:
            payload["status"] = self.status
        return payload


@dataclass(frozen=True, slots=True)
class SetupRequired:
    """No API key could be found in any source."""

    message: str = SETUP_REQUIRED_MESSAGE

    success = False
    setup_required = True

    def to_payload(self) -> dict[str, Any]:
        return {"success": False, "setup_required": True, "message": self.message}


@dataclass(frozen=True, slots=True)
class SetupSuccess:
    location: str

    success = True
    type = "setup"

    @property
    def message(self) -> str:
        return f"API key saved to {self.location}"

    def to_payload(self) -> dict[str, Any]:
        return {"success": True, "type": self.type, "message": self.message}


@dataclass(frozen=True, slots=True)
class CommandFailure:
    """Invalid input or a local failure before any request was made."""

    error: str

    success = False

    def to_payload(self) -> dict[str, Any]:
        return {"success": False, "error": self.error}


SearchOutcome = SearchSuccess | SearchFailure | SetupRequired
Envelope = SearchOutcome | SetupSuccess | CommandFailure
