"""Request volume over time, bucketed by calendar day or clock hour."""

import logging
from collections import Counter
from collections.abc import Iterable
from enum import Enum

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ticket_insights.records import TicketRecord

logger = logging.getLogger(__name__)


class ViewMode(str, Enum):
    DAY = "day"
    HOUR = "hour"


# (bucket key format, display label format)
_FORMATS = {
    ViewMode.DAY: ("%Y-%m-%d", "%d/%m"),
    ViewMode.HOUR: ("%Y-%m-%d %H:00", "%d/%m %H:00"),
}


class VolumeBucket(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    bucket_key: str
    count: int
    display_label: str


class VolumeSeries(BaseModel):
    """Ordered buckets plus summary statistics for a trend chart."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    mode: ViewMode
    buckets: list[VolumeBucket] = []
    max_count: int = 0
    mean_count: float = 0.0
    total: int = 0
    skipped: int = 0

    def to_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


def bucket_requests(tickets: Iterable[TicketRecord], mode: ViewMode | str = ViewMode.DAY) -> VolumeSeries:
    """Group tickets by the start of their request day or hour.

    Buckets are sorted by key; the zero-padded key format makes lexical
    order chronological. Tickets without a usable request date are counted
    in ``skipped`` and left out of every bucket.

    Args:
        tickets: Filtered records.
        mode: ``"day"`` or ``"hour"``.

    Returns:
        The full bucket sequence. Narrowing to a zoom window is up to the caller.
    """
    mode = ViewMode(mode)
    key_format, label_format = _FORMATS[mode]

    counts: Counter = Counter()
    labels: dict[str, str] = {}
    skipped = 0
    for ticket in tickets:
        if ticket.requested_at is None:
            skipped += 1
            continue
        key = ticket.requested_at.strftime(key_format)
        counts[key] += 1
        labels.setdefault(key, ticket.requested_at.strftime(label_format))

    if skipped:
        logger.debug("action=bucket_requests mode=%s skipped=%s", mode.value, skipped)

    buckets = [
        VolumeBucket(bucket_key=key, count=counts[key], display_label=labels[key])
        for key in sorted(counts)
    ]
    total = sum(counts.values())
    return VolumeSeries(
        mode=mode,
        buckets=buckets,
        max_count=max(counts.values(), default=0),
        mean_count=total / len(buckets) if buckets else 0.0,
        total=total,
        skipped=skipped,
    )
