"""Activity events and aggregate snapshot models."""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ActivityKind(str, Enum):
    """Kind of logged activity. Each kind lives in its own relation."""

    PITCH = "pitch"
    SALE = "sale"

    @property
    def relation(self) -> str:
        return "pitches" if self is ActivityKind.PITCH else "sales"


ACTIVITY_RELATIONS: tuple[str, ...] = tuple(k.relation for k in ActivityKind)


class ActivityEvent(BaseModel):
    """Immutable pitch or sale logged by one actor."""

    model_config = ConfigDict(frozen=True)

    actor_id: str = Field(..., min_length=1)
    kind: ActivityKind
    occurred_at: datetime
    value: Optional[Decimal] = None

    @field_validator("occurred_at")
    @classmethod
    def _assume_utc(cls, v: datetime) -> datetime:
        return v if v.tzinfo else v.replace(tzinfo=timezone.utc)

    @classmethod
    def from_row(cls, kind: ActivityKind, row: dict[str, Any]) -> "ActivityEvent":
        """Build from a store row (user_id, occurred_at, value)."""
        occurred = row.get("occurred_at") or row.get("created_at")
        if isinstance(occurred, str):
            occurred = datetime.fromisoformat(occurred.replace("Z", "+00:00"))
        return cls(
            actor_id=str(row["user_id"]),
            kind=kind,
            occurred_at=occurred,
            value=row.get("value"),
        )

    def to_row(self) -> dict[str, Any]:
        """Store row for the kind's relation."""
        return {
            "user_id": self.actor_id,
            "occurred_at": self.occurred_at.isoformat(),
            "value": str(self.value) if self.value is not None else None,
        }


class RecordedEvent(ActivityEvent):
    """ActivityEvent after the store accepted it."""

    id: str


class LeaderboardEntry(BaseModel):
    """Per-seller performance row."""

    model_config = ConfigDict(frozen=True)

    member_id: str
    name: str
    pitches: int = 0
    sales: int = 0
    hit_rate: int = 0


class SeriesBucket(BaseModel):
    """One calendar day of activity."""

    model_config = ConfigDict(frozen=True)

    bucket: date
    pitches: int = 0
    sales: int = 0
    sales_value: Decimal = Decimal("0")
    hit_rate: int = 0


class AggregateSnapshot(BaseModel):
    """Dashboard statistics for one scope. Recomputed, never patched."""

    model_config = ConfigDict(frozen=True)

    scope_id: Optional[str] = None
    total_pitches: int = 0
    total_sales: int = 0
    hit_rate: int = 0
    leaderboard: tuple[LeaderboardEntry, ...] = ()
    series: tuple[SeriesBucket, ...] = ()
    computed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
