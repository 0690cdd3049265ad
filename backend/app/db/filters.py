"""
Structured query predicates.

Callers describe what to match; each predicate renders itself into a
SQLAlchemy clause for a given model. Field names are checked against the
model's columns so request input can never reach raw SQL.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Sequence

from sqlalchemy import inspect
from sqlalchemy.sql.expression import ClauseElement

from backend.app.core.exceptions import ValidationFailedError


def column_for(model, field: str):
    """Return the mapped column attribute, or raise ValidationFailedError."""
    if field not in inspect(model).columns:
        raise ValidationFailedError(f"Unknown filter field '{field}'", field=field)
    return getattr(model, field)


def escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@dataclass(frozen=True)
class Eq:
    field: str
    value: Any
    
    def to_clause(self, model) -> ClauseElement:
        column = column_for(model, self.field)
        if self.value is None:
            return column.is_(None)
        return column == self.value


@dataclass(frozen=True)
class In:
    field: str
    values: Sequence[Any]
    
    def to_clause(self, model) -> ClauseElement:
        return column_for(model, self.field).in_(list(self.values))


@dataclass(frozen=True)
class Range:
    """Inclusive numeric range; either bound may be open."""
    field: str
    min: Optional[float] = None
    max: Optional[float] = None
    
    def to_clause(self, model) -> ClauseElement:
        column = column_for(model, self.field)
        clauses = []
        if self.min is not None:
            clauses.append(column >= self.min)
        if self.max is not None:
            clauses.append(column <= self.max)
        if not clauses:
            raise ValidationFailedError(f"Range on '{self.field}' needs a bound", field=self.field)
        return clauses[0] if len(clauses) == 1 else clauses[0] & clauses[1]


@dataclass(frozen=True)
class DateRange:
    field: str
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    
    def to_clause(self, model) -> ClauseElement:
        column = column_for(model, self.field)
        clauses = []
        if self.start is not None:
            clauses.append(column >= self.start)
        if self.end is not None:
            clauses.append(column <= self.end)
        if not clauses:
            raise ValidationFailedError(f"Date range on '{self.field}' needs a bound", field=self.field)
        return clauses[0] if len(clauses) == 1 else clauses[0] & clauses[1]


@dataclass(frozen=True)
class Contains:
    """Case-insensitive substring match; any of the fields may match."""
    fields: Sequence[str]
    text: str
    
    def to_clause(self, model) -> ClauseElement:
        pattern = f"%{escape_like(self.text)}%"
        clauses = [column_for(model, f).ilike(pattern, escape="\\") for f in self.fields]
        clause = clauses[0]
        for other in clauses[1:]:
            clause = clause | other
        return clause


@dataclass(frozen=True)
class Sort:
    field: str = "created_at"
    descending: bool = True
    
    def to_clause(self, model) -> ClauseElement:
        column = column_for(model, self.field)
        return column.desc() if self.descending else column.asc()
    
    @classmethod
    def parse(cls, value: Optional[str]) -> "Sort":
        """'-created_at' sorts descending, 'created_at' ascending."""
        if not value:
            return cls()
        if value.startswith("-"):
            return cls(field=value[1:], descending=True)
        return cls(field=value, descending=False)
