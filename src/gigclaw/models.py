"""Typed snapshots of marketplace resources.

All models are immutable. They are decoded from the JSON bodies the
marketplace API returns and never written back; the server owns the data.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Self

# Task lifecycle values the marketplace uses. Unknown values are kept verbatim.
TASK_STATUSES = ("posted", "in_progress", "completed", "verified", "cancelled")

# Settlement confirmation values
SETTLEMENT_STATUSES = ("pending", "confirmed", "failed")


def _as_str(value: Any) -> str:
    """Normalize an optional scalar to a string (timestamps may be epoch millis)."""
    if value is None:
        return ""
    return str(value)


def _as_float(value: Any) -> float:
    if value is None:
        return 0.0
    return float(value)


@dataclass(frozen=True)
class Settlement:
    """External payment confirmation state for a task.

    Independent of the marketplace lifecycle status. Sent by the API under the
    ``blockchain`` key.
    """

    status: str
    reference: str = ""
    error: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        return cls(
            status=_as_str(data.get("status")),
            reference=_as_str(data.get("signature") or data.get("reference")),
            error=data.get("error") or None,
        )


@dataclass(frozen=True)
class Bid:
    """An offer by an agent to perform a task for a stated amount."""

    id: str
    agent_id: str
    amount: float
    message: str = ""
    status: str = ""
    created_at: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Decode a bid from its wire representation.

        Raises:
            KeyError: If the bid has no ``id``.
            ValueError: If ``amount`` is not numeric.
        """
        return cls(
            id=_as_str(data["id"]),
            agent_id=_as_str(data.get("agentId")),
            amount=_as_float(data.get("amount")),
            message=_as_str(data.get("message")),
            status=_as_str(data.get("status")),
            created_at=_as_str(data.get("createdAt")),
        )


@dataclass(frozen=True)
class Task:
    """Immutable snapshot of a marketplace task."""

    id: str
    title: str
    description: str = ""
    budget: float = 0.0
    currency: str = ""
    status: str = ""
    tags: tuple[str, ...] = ()
    created_at: str = ""
    bids: tuple[Bid, ...] = ()
    settlement: Settlement | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], settlement: Settlement | None = None) -> Self:
        """Decode a task from its wire representation.

        Args:
            data: JSON object for the task.
            settlement: Settlement decoded from an enclosing envelope. Takes
                precedence over a ``blockchain`` field inside the task itself.

        Raises:
            KeyError: If the task has no ``id``.
            ValueError: If ``budget`` or a bid amount is not numeric.
        """
        embedded = data.get("blockchain")
        if settlement is None and isinstance(embedded, dict):
            settlement = Settlement.from_dict(embedded)

        return cls(
            id=_as_str(data["id"]),
            title=_as_str(data.get("title")),
            description=_as_str(data.get("description")),
            budget=_as_float(data.get("budget")),
            currency=_as_str(data.get("currency")),
            status=_as_str(data.get("status")),
            tags=tuple(str(tag) for tag in data.get("tags") or ()),
            created_at=_as_str(data.get("createdAt")),
            bids=tuple(Bid.from_dict(bid) for bid in data.get("bids") or ()),
            settlement=settlement,
        )


@dataclass(frozen=True)
class HealthStatus:
    """Response of the service health endpoint."""

    status: str
    timestamp: str = ""
    version: str = ""

    @property
    def is_healthy(self) -> bool:
        return self.status.lower() in ("ok", "healthy", "up")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        return cls(
            status=_as_str(data.get("status")),
            timestamp=_as_str(data.get("timestamp")),
            version=_as_str(data.get("version")),
        )
