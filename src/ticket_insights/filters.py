"""Filter evaluation ahead of aggregation.

A record must satisfy every active dimension (AND). Within a multi-value
dimension any selected value matches (OR). An empty selection is the same
as no selection.
"""

from collections.abc import Iterable
from datetime import date

from pydantic import BaseModel, ConfigDict, Field

from ticket_insights.records import TicketRecord

# Filter dimension -> record attribute
MULTI_VALUE_DIMENSIONS: dict[str, str] = {
    "companies": "company",
    "statuses": "status",
    "priorities": "priority",
    "categories": "category",
    "subcategories": "subcategory",
    "teams": "team",
    "agents": "agent",
    "service_types": "service_type",
}


class ActiveFilters(BaseModel):
    """Immutable filter selection supplied by the caller."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    companies: frozenset[str] = Field(default_factory=frozenset)
    statuses: frozenset[str] = Field(default_factory=frozenset)
    priorities: frozenset[str] = Field(default_factory=frozenset)
    categories: frozenset[str] = Field(default_factory=frozenset)
    subcategories: frozenset[str] = Field(default_factory=frozenset)
    teams: frozenset[str] = Field(default_factory=frozenset)
    agents: frozenset[str] = Field(default_factory=frozenset)
    service_types: frozenset[str] = Field(default_factory=frozenset)
    start_date: date | None = None
    end_date: date | None = None

    def is_empty(self) -> bool:
        if self.start_date or self.end_date:
            return False
        return not any(getattr(self, dim) for dim in MULTI_VALUE_DIMENSIONS)

    def describe(self) -> dict:
        """Return only the active dimensions, as plain JSON-friendly values."""
        active: dict = {
            dim: sorted(getattr(self, dim))
            for dim in MULTI_VALUE_DIMENSIONS
            if getattr(self, dim)
        }
        if self.start_date:
            active["start_date"] = self.start_date.isoformat()
        if self.end_date:
            active["end_date"] = self.end_date.isoformat()
        return active


def matches_filters(record: TicketRecord, filters: ActiveFilters) -> bool:
    """Decide whether one record passes every active filter dimension."""
    for dimension, attribute in MULTI_VALUE_DIMENSIONS.items():
        selected = getattr(filters, dimension)
        if selected and getattr(record, attribute) not in selected:
            return False

    if filters.start_date or filters.end_date:
        request_date = record.request_date
        # Undated records cannot satisfy a date bound
        if request_date is None:
            return False
        if filters.start_date and request_date < filters.start_date:
            return False
        if filters.end_date and request_date > filters.end_date:
            return False

    return True


def apply_filters(records: Iterable[TicketRecord], filters: ActiveFilters | None) -> list[TicketRecord]:
    """Return the records that pass ``filters``, preserving input order."""
    records = list(records)
    if filters is None or filters.is_empty():
        return records
    return [r for r in records if matches_filters(r, filters)]
