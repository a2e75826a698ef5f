"""Abstract queryable store used by the resolver, recorder and dashboard."""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def check_identifier(name: str) -> str:
    """Relation and column names are interpolated into queries; allow plain identifiers only."""
    if not _IDENTIFIER.match(name or ""):
        raise ValueError(f"Invalid identifier: {name!r}")
    return name


def normalize_value(value: Any) -> Any:
    """Datetimes go to the store as UTC ISO strings so range reads compare correctly."""
    if isinstance(value, datetime):
        aware = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        return aware.astimezone(timezone.utc).isoformat()
    return value


@dataclass(frozen=True)
class Filter:
    """
    One scoped predicate. Only the shapes the core needs exist:
    equality, membership, null check and half-open range bounds.
    """

    column: str
    op: str  # eq | in | is_null | gte | lt
    value: Any = None

    @classmethod
    def eq(cls, column: str, value: Any) -> "Filter":
        return cls(check_identifier(column), "eq", value)

    @classmethod
    def in_(cls, column: str, values: Sequence[Any]) -> "Filter":
        return cls(check_identifier(column), "in", tuple(values))

    @classmethod
    def is_null(cls, column: str) -> "Filter":
        return cls(check_identifier(column), "is_null")

    @classmethod
    def gte(cls, column: str, value: Any) -> "Filter":
        return cls(check_identifier(column), "gte", value)

    @classmethod
    def lt(cls, column: str, value: Any) -> "Filter":
        return cls(check_identifier(column), "lt", value)

    @property
    def matches_nothing(self) -> bool:
        """An empty membership set can never match; stores skip the round trip."""
        return self.op == "in" and not self.value


class BaseStore(ABC):
    """
    Generic relational store. All calls are coroutines.
    Implementations map backend failures onto the error taxonomy:
    StructuralSchemaMismatch, TransientQueryFailure, ForeignKeyViolation.
    """

    name: str = ""

    @abstractmethod
    async def select(
        self,
        relation: str,
        filters: Sequence[Filter] = (),
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """Return rows of relation matching every filter."""
        pass

    @abstractmethod
    async def insert(self, relation: str, row: dict[str, Any]) -> dict[str, Any]:
        """Append one row and return it as stored (including generated id)."""
        pass

    async def select_one(self, relation: str, filters: Sequence[Filter] = ()) -> Optional[dict[str, Any]]:
        """First matching row or None."""
        rows = await self.select(relation, filters, limit=1)
        return rows[0] if rows else None

    async def aclose(self) -> None:
        """Release client resources. Default: nothing to release."""
        return None
