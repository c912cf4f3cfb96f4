"""Parsing and formatting for ticket timestamps and "HH:MM" durations.

Ticket exports write instants as ``DD-MM-YYYY HH:MM[:SS]`` (day first) and
elapsed times as ``HH:MM`` where the hour part is not wrapped at 24.
All arithmetic is naive local time.
"""

import logging
import re
from datetime import datetime

logger = logging.getLogger(__name__)

DEFAULT_TIME = "00:00:00"

_DURATION_PATTERN = re.compile(r"^(\d+):([0-5]?\d)$")

# Local wall-clock time only; offsets and fractions are not part of the format
_TIME_PATTERN = re.compile(r"^\d{2}:\d{2}(:\d{2})?$")


def parse_timestamp(value: str) -> datetime:
    """Parse a ``DD-MM-YYYY HH:MM[:SS]`` string into a naive datetime.

    The date part is reordered into ISO order (``YYYY-MM-DDTHH:MM[:SS]``)
    before conversion. A missing time part defaults to midnight.

    Args:
        value: Timestamp text as found in the export.

    Returns:
        The parsed instant.

    Raises:
        ValueError: If the text is not a valid timestamp.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Empty or non-text timestamp: {value!r}")

    date_part, _, time_part = value.strip().partition(" ")
    pieces = date_part.split("-")
    if len(pieces) != 3:
        raise ValueError(f"Expected DD-MM-YYYY date, got {date_part!r}")
    day, month, year = pieces
    if len(day) != 2 or len(month) != 2 or len(year) != 4:
        raise ValueError(f"Expected DD-MM-YYYY date, got {date_part!r}")

    time_part = time_part.strip() or DEFAULT_TIME
    if not _TIME_PATTERN.match(time_part):
        raise ValueError(f"Expected HH:MM[:SS] time, got {time_part!r}")
    return datetime.fromisoformat(f"{year}-{month}-{day}T{time_part}")


def try_parse_timestamp(value: object, field: str = "timestamp") -> datetime | None:
    """Parse a timestamp, returning None for absent or malformed values.

    Malformed values are logged; absent ones (None, blank) are not.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        return parse_timestamp(value)  # type: ignore[arg-type]
    except ValueError as e:
        logger.warning("action=parse_timestamp level=warning field=%s value=%r error=%s", field, value, e)
        return None


def format_timestamp(moment: datetime) -> str:
    """Render an instant back into the export's ``DD-MM-YYYY HH:MM:SS`` form."""
    return moment.strftime("%d-%m-%Y %H:%M:%S")


def parse_duration(value: str | None) -> int:
    """Convert an ``HH:MM`` duration into total minutes.

    Empty values and ``"00:00"`` are exactly zero minutes.

    Raises:
        ValueError: If the text is not ``HH:MM``.
    """
    if value is None:
        return 0
    text = str(value).strip()
    if not text or text == "00:00":
        return 0
    match = _DURATION_PATTERN.match(text)
    if not match:
        raise ValueError(f"Expected HH:MM duration, got {value!r}")
    return int(match.group(1)) * 60 + int(match.group(2))


def format_duration(minutes: int | float) -> str:
    """Format total minutes as zero-padded ``HH:MM`` (hours unbounded).

    >>> format_duration(125)
    '02:05'
    """
    total = max(int(minutes), 0)
    hours, mins = divmod(total, 60)
    return f"{hours:02d}:{mins:02d}"
