"""Aggregation engine: derives the full metrics report from a record set.

The engine is a pure function of (records, as_of, settings). It holds no
state; callers recompute the whole report whenever the records or the
filter selection change.

Ordering rules:
    - Grouped counts sort by count descending, then name ascending.
    - Priorities sort by the fixed rank table, then count, then name.
    - The busiest weekday breaks ties by weekday order (Monday first).
"""

import logging
import re
from collections import Counter, defaultdict
from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ticket_insights.config import (
    PLACEHOLDER_NA,
    PLACEHOLDER_NOT_INFORMED,
    PLACEHOLDER_UNASSIGNED,
    PLACEHOLDER_UNDEFINED,
    Settings,
)
from ticket_insights.records import TicketRecord, fold_key
from ticket_insights.timeparse import format_duration, format_timestamp

logger = logging.getLogger(__name__)

UNKNOWN_PRIORITY_RANK = 999

PRIORITY_RANKS: dict[str, int] = {
    "critico": 1, "critica": 1, "critical": 1, "p1": 1,
    "alto": 2, "alta": 2, "high": 2, "p2": 2,
    "medio": 3, "media": 3, "medium": 3, "p3": 3,
    "baixo": 4, "baixa": 4, "low": 4, "p4": 4,
    "planejado": 5, "planejada": 5, "planned": 5, "p5": 5,
}

_PRIORITY_TOKEN = re.compile(r"\bP([1-5])\b", re.IGNORECASE)

NO_DATA = "N/A"
ZERO_DURATION = "00:00"


class _ReportModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class NamedCount(_ReportModel):
    name: str
    count: int


class AgentCount(NamedCount):
    percentage: float


class TeamResolution(_ReportModel):
    team: str
    resolved: int
    resolution_rate: float


class TeamTime(_ReportModel):
    team: str
    avg_time: str


class DayCount(_ReportModel):
    date: str
    count: int


class NearSlaTicket(_ReportModel):
    id: int | None
    title: str | None
    company: str
    priority: str
    status: str
    team: str
    agent: str
    sla_deadline: str
    minutes_remaining: int


class FilterOptions(_ReportModel):
    companies: list[str] = []
    statuses: list[str] = []
    priorities: list[str] = []
    categories: list[str] = []
    subcategories: list[str] = []
    teams: list[str] = []
    agents: list[str] = []
    service_types: list[str] = []


class MetricsReport(_ReportModel):
    """Every derived metric for one filtered record set."""

    as_of: datetime
    total_tickets: int = 0
    avg_requests_per_day: int = 0
    top_day_of_week: str = NO_DATA
    reports_per_company: list[NamedCount] = []
    tickets_per_agent: list[AgentCount] = []
    tickets_per_team: list[NamedCount] = []
    team_resolution_rate: list[TeamResolution] = []
    tickets_by_category: list[NamedCount] = []
    tickets_by_status: list[NamedCount] = []
    tickets_by_service_type: list[NamedCount] = []
    tickets_by_priority: list[NamedCount] = []
    avg_response_time: str = ZERO_DURATION
    avg_solution_time: str = ZERO_DURATION
    avg_waiting_client: str = ZERO_DURATION
    avg_waiting_vendor: str = ZERO_DURATION
    response_time_by_team: list[TeamTime] = []
    solution_time_by_team: list[TeamTime] = []
    reopened_tickets: int = 0
    reopened_percentage: int = 0
    sla_breach_count: int = 0
    sla_breach_percentage: int = 0
    requests_by_day: list[DayCount] = []
    unparsed_request_dates: int = 0
    tickets_near_sla: list[NearSlaTicket] = []
    near_sla_count: int = 0
    filter_options: FilterOptions = FilterOptions()

    def to_dict(self) -> dict:
        """JSON-ready dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


def round_half_up(value: float, digits: int = 0) -> float:
    """Round with halves away from zero (2.5 -> 3), unlike built-in round()."""
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def _percent(part: int, total: int) -> int:
    return int(round_half_up(part / total * 100)) if total else 0


def priority_rank(label: str | None) -> int:
    """Rank a priority label: 1 (critical) .. 5 (planned), 999 if unknown.

    Exact labels are matched first ("Alto", "P2", "high"), then an embedded
    ``P<n>`` token ("Baixa (P4)").
    """
    if not label:
        return UNKNOWN_PRIORITY_RANK
    rank = PRIORITY_RANKS.get(fold_key(label))
    if rank is not None:
        return rank
    match = _PRIORITY_TOKEN.search(label)
    if match:
        return int(match.group(1))
    return UNKNOWN_PRIORITY_RANK


def _label(value: str | None, placeholder: str) -> str:
    return value if value else placeholder


def _sorted_counts(counter: Counter) -> list[NamedCount]:
    items = sorted(counter.items(), key=lambda item: (-item[1], item[0]))
    return [NamedCount(name=name, count=count) for name, count in items]


def group_counts(values: Iterable[str]) -> list[NamedCount]:
    """Count occurrences and order them by count desc, then name."""
    return _sorted_counts(Counter(values))


def average_duration(minutes: Iterable[int | None]) -> str:
    """Mean of known durations as ``HH:MM``; unparseable entries are skipped."""
    known = [m for m in minutes if m is not None]
    if not known:
        return ZERO_DURATION
    return format_duration(int(round_half_up(sum(known) / len(known))))


def _team_times(tickets: Sequence[TicketRecord], attribute: str) -> list[TeamTime]:
    per_team: dict[str, list[int | None]] = defaultdict(list)
    for ticket in tickets:
        per_team[_label(ticket.team, PLACEHOLDER_UNDEFINED)].append(getattr(ticket, attribute))
    return [
        TeamTime(team=team, avg_time=average_duration(values))
        for team, values in sorted(per_team.items())
    ]


def _top_day_of_week(tickets: Sequence[TicketRecord], weekday_names: Sequence[str]) -> str:
    weekdays = Counter(t.requested_at.weekday() for t in tickets if t.requested_at)
    if not weekdays:
        return NO_DATA
    best = max(weekdays.items(), key=lambda item: (item[1], -item[0]))
    return weekday_names[best[0]]


def _is_resolved(ticket: TicketRecord, settings: Settings) -> bool:
    return ticket.status is not None and ticket.status in settings.resolved_statuses


def _is_sla_breached(ticket: TicketRecord) -> bool:
    if ticket.closed_at is None or ticket.sla_deadline is None:
        return False
    return ticket.closed_at > ticket.sla_deadline


def find_near_sla(
    tickets: Iterable[TicketRecord],
    as_of: datetime,
    settings: Settings,
) -> list[NearSlaTicket]:
    """Open tickets whose SLA deadline falls within the next window.

    The window is ``(as_of, as_of + near_sla_window_minutes]``; the result
    depends on ``as_of`` and changes as time passes.
    """
    window = timedelta(minutes=settings.near_sla_window_minutes)
    near: list[tuple[datetime, TicketRecord]] = []
    for ticket in tickets:
        if ticket.sla_deadline is None or _is_resolved(ticket, settings):
            continue
        remaining = ticket.sla_deadline - as_of
        if timedelta(0) < remaining <= window:
            near.append((ticket.sla_deadline, ticket))

    near.sort(key=lambda item: (item[0], item[1].id if item[1].id is not None else -1))
    return [
        NearSlaTicket(
            id=ticket.id,
            title=ticket.title,
            company=_label(ticket.company, PLACEHOLDER_NOT_INFORMED),
            priority=_label(ticket.priority, PLACEHOLDER_UNDEFINED),
            status=_label(ticket.status, PLACEHOLDER_UNDEFINED),
            team=_label(ticket.team, PLACEHOLDER_UNDEFINED),
            agent=_label(ticket.agent, PLACEHOLDER_UNASSIGNED),
            sla_deadline=format_timestamp(deadline),
            minutes_remaining=int((deadline - as_of).total_seconds() // 60),
        )
        for deadline, ticket in near
    ]


def collect_filter_options(tickets: Sequence[TicketRecord]) -> FilterOptions:
    """Distinct non-empty values per filter dimension."""

    def distinct(attribute: str) -> list[str]:
        return sorted({getattr(t, attribute) for t in tickets if getattr(t, attribute)})

    priorities = {t.priority for t in tickets if t.priority}
    return FilterOptions(
        companies=distinct("company"),
        statuses=distinct("status"),
        priorities=sorted(priorities, key=lambda p: (priority_rank(p), p)),
        categories=distinct("category"),
        subcategories=distinct("subcategory"),
        teams=distinct("team"),
        agents=distinct("agent"),
        service_types=distinct("service_type"),
    )


def compute_metrics(
    tickets: Sequence[TicketRecord],
    *,
    as_of: datetime | None = None,
    settings: Settings | None = None,
) -> MetricsReport:
    """Compute the metrics report for an already filtered record set.

    Args:
        tickets: Records with merged tickets already removed.
        as_of: Reference instant for the near-SLA view (defaults to now).
        settings: Engine rules (resolved statuses, near-SLA window, weekday names).

    Returns:
        The full report. An empty input yields zeros, "00:00" and "N/A".
    """
    settings = settings or Settings()
    as_of = as_of or datetime.now()
    tickets = list(tickets)
    total = len(tickets)

    if not total:
        return MetricsReport(as_of=as_of)

    requests_by_day = Counter(t.request_date for t in tickets if t.request_date)
    avg_per_day = int(round_half_up(total / len(requests_by_day))) if requests_by_day else 0

    agents = group_counts(_label(t.agent, PLACEHOLDER_UNASSIGNED) for t in tickets)
    teams = group_counts(_label(t.team, PLACEHOLDER_UNDEFINED) for t in tickets)

    resolved_by_team: Counter = Counter({entry.name: 0 for entry in teams})
    for ticket in tickets:
        if _is_resolved(ticket, settings):
            resolved_by_team[_label(ticket.team, PLACEHOLDER_UNDEFINED)] += 1
    team_resolution = sorted(
        (
            TeamResolution(
                team=team,
                resolved=resolved,
                # Denominator is the whole filtered set, not the team's share
                resolution_rate=round_half_up(resolved / total * 100, 1),
            )
            for team, resolved in resolved_by_team.items()
        ),
        key=lambda entry: (-entry.resolution_rate, entry.team),
    )

    priority_counts = Counter(_label(t.priority, PLACEHOLDER_UNDEFINED) for t in tickets)
    by_priority = [
        NamedCount(name=name, count=count)
        for name, count in sorted(
            priority_counts.items(),
            key=lambda item: (priority_rank(item[0]), -item[1], item[0]),
        )
    ]

    reopened = sum(1 for t in tickets if t.is_reopened)
    breached = sum(1 for t in tickets if _is_sla_breached(t))
    near_sla = find_near_sla(tickets, as_of, settings)
    unparsed = sum(1 for t in tickets if t.has_unparsed_request_date)
    if unparsed:
        logger.info("action=compute_metrics unparsed_request_dates=%s total=%s", unparsed, total)

    report = MetricsReport(
        as_of=as_of,
        total_tickets=total,
        avg_requests_per_day=avg_per_day,
        top_day_of_week=_top_day_of_week(tickets, settings.weekday_names),
        reports_per_company=group_counts(_label(t.company, PLACEHOLDER_NOT_INFORMED) for t in tickets),
        tickets_per_agent=[
            AgentCount(
                name=entry.name,
                count=entry.count,
                percentage=round_half_up(entry.count / total * 100, 1),
            )
            for entry in agents
        ],
        tickets_per_team=teams,
        team_resolution_rate=team_resolution,
        tickets_by_category=group_counts(
            f"{_label(t.category, PLACEHOLDER_NA)} > {_label(t.subcategory, PLACEHOLDER_NA)}"
            for t in tickets
        ),
        tickets_by_status=group_counts(_label(t.status, PLACEHOLDER_UNDEFINED) for t in tickets),
        tickets_by_service_type=group_counts(
            _label(t.service_type, PLACEHOLDER_UNDEFINED) for t in tickets
        ),
        tickets_by_priority=by_priority,
        avg_response_time=average_duration(t.response_minutes for t in tickets),
        avg_solution_time=average_duration(t.solution_minutes for t in tickets),
        avg_waiting_client=average_duration(t.waiting_client_minutes for t in tickets),
        avg_waiting_vendor=average_duration(t.waiting_vendor_minutes for t in tickets),
        response_time_by_team=_team_times(tickets, "response_minutes"),
        solution_time_by_team=_team_times(tickets, "solution_minutes"),
        reopened_tickets=reopened,
        reopened_percentage=_percent(reopened, total),
        sla_breach_count=breached,
        sla_breach_percentage=_percent(breached, total),
        requests_by_day=[
            DayCount(date=day.isoformat(), count=count)
            for day, count in sorted(requests_by_day.items())
        ],
        unparsed_request_dates=unparsed,
        tickets_near_sla=near_sla,
        near_sla_count=len(near_sla),
        filter_options=collect_filter_options(tickets),
    )

    logger.info(
        "action=compute_metrics total=%s days=%s near_sla=%s sla_breached=%s",
        total,
        len(requests_by_day),
        len(near_sla),
        breached,
    )
    return report
