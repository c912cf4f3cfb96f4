"""Normalization of decoded ticket rows into typed records.

Rows arrive as plain mappings from CSV or JSON decoding, keyed by the
export's own column labels. Normalization never raises on a bad field:
unparseable values become ``None`` and are logged, so each metric can skip
only the records it cannot use.
"""

import logging
import math
import unicodedata
from collections.abc import Iterable, Mapping
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict

from ticket_insights.config import Settings
from ticket_insights.timeparse import parse_duration, try_parse_timestamp

logger = logging.getLogger(__name__)


def fold_key(key: object) -> str:
    """Fold a column label for comparison (no accents, case or separators)."""
    text = unicodedata.normalize("NFD", str(key))
    text = "".join(c for c in text if unicodedata.category(c) != "Mn")
    return text.lower().replace(" ", "").replace("_", "").replace("-", "").strip()


# Column labels accepted for each canonical field. Keys are folded with
# fold_key before lookup, so spelling variants only need listing once.
_FIELD_LABELS: dict[str, list[str]] = {
    "id": ["#", "id", "ticket id"],
    "service_type": ["Tipo de Registro de Serviço", "serviceType", "service type"],
    "requestor": ["Usuário solicitante", "requestor", "requester"],
    "requested_at": ["Data de requisição", "requestedAt"],
    "closed_at": ["Data de encerramento", "closedAt"],
    "sla_deadline": ["Prazo de SLA", "slaDeadline"],
    "status": ["Status"],
    "company": ["Empresa", "company"],
    "category": ["Categoria", "category"],
    "subcategory": ["Subcategoria", "subcategory"],
    "team": ["Equipe de atendimento", "team"],
    "agent": ["Atendente atribuído", "agent"],
    "title": ["Título", "title"],
    "priority": ["Prioridade", "priority"],
    "response_minutes": ["Tempo de Resposta", "responseDuration"],
    "solution_minutes": ["Tempo de Solução", "solutionDuration"],
    "waiting_client_minutes": ["Tempo Aguardando Cliente", "waitingClientDuration"],
    "waiting_vendor_minutes": ["Tempo Aguardando Fabricante", "waitingVendorDuration"],
    "reopen_count": ["contador de Reabertura", "reopenCount"],
}

FIELD_ALIASES: dict[str, str] = {
    fold_key(label): field
    for field, labels in _FIELD_LABELS.items()
    for label in [field, *labels]
}

TEXT_FIELDS = (
    "service_type", "requestor", "status", "company", "category",
    "subcategory", "team", "agent", "title", "priority",
)
TIMESTAMP_FIELDS = ("requested_at", "closed_at", "sla_deadline")
DURATION_FIELDS = (
    "response_minutes", "solution_minutes",
    "waiting_client_minutes", "waiting_vendor_minutes",
)


class TicketRecord(BaseModel):
    """One imported support ticket with typed, optional fields.

    ``None`` means absent or unparseable. Durations are whole minutes; an
    absent duration is 0, a malformed one is None.
    """

    model_config = ConfigDict(frozen=True)

    id: int | None = None
    service_type: str | None = None
    requestor: str | None = None
    requested_at: datetime | None = None
    closed_at: datetime | None = None
    sla_deadline: datetime | None = None
    status: str | None = None
    company: str | None = None
    category: str | None = None
    subcategory: str | None = None
    team: str | None = None
    agent: str | None = None
    title: str | None = None
    priority: str | None = None
    response_minutes: int | None = 0
    solution_minutes: int | None = 0
    waiting_client_minutes: int | None = 0
    waiting_vendor_minutes: int | None = 0
    reopen_count: int | None = None

    # Raw timestamp text, kept to tell "absent" from "unparseable"
    requested_at_raw: str | None = None
    closed_at_raw: str | None = None
    sla_deadline_raw: str | None = None

    @property
    def request_date(self) -> date | None:
        return self.requested_at.date() if self.requested_at else None

    @property
    def is_reopened(self) -> bool:
        return bool(self.reopen_count and self.reopen_count > 0)

    @property
    def has_unparsed_request_date(self) -> bool:
        return self.requested_at is None and self.requested_at_raw is not None


class PreparedBatch(BaseModel):
    """Records ready for filtering and aggregation, plus load counters."""

    tickets: list[TicketRecord]
    merged_count: int = 0
    invalid_count: int = 0


def _clean_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    text = str(value).strip()
    return text or None


def coerce_int(value: Any) -> int | None:
    """Coerce a numeric-looking value to int; anything else becomes None.

    CSV imports deliver numbers as text, JSON imports as numbers.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    text = str(value).strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text.replace(",", "."))
    except ValueError:
        return None
    return int(number) if math.isfinite(number) else None


def _coerce_duration(value: Any, field: str) -> int | None:
    try:
        return parse_duration(None if value is None else str(value))
    except ValueError as e:
        logger.warning("action=parse_duration level=warning field=%s value=%r error=%s", field, value, e)
        return None


def normalize_record(raw: object) -> TicketRecord | None:
    """Turn one decoded row into a TicketRecord.

    Args:
        raw: A mapping of column label to value.

    Returns:
        The normalized record, or None when the row is not a mapping.
    """
    if not isinstance(raw, Mapping):
        logger.warning("action=normalize_record level=warning reason=not_a_mapping type=%s", type(raw).__name__)
        return None

    canonical: dict[str, Any] = {}
    for key, value in raw.items():
        field = FIELD_ALIASES.get(fold_key(key))
        # First matching column wins when a row carries several spellings
        if field and field not in canonical:
            canonical[field] = value

    values: dict[str, Any] = {
        "id": coerce_int(canonical.get("id")),
        "reopen_count": coerce_int(canonical.get("reopen_count")),
    }
    for field in TEXT_FIELDS:
        values[field] = _clean_text(canonical.get(field))
    for field in TIMESTAMP_FIELDS:
        raw_text = _clean_text(canonical.get(field))
        values[f"{field}_raw"] = raw_text
        values[field] = try_parse_timestamp(raw_text, field)
    for field in DURATION_FIELDS:
        values[field] = _coerce_duration(canonical.get(field), field)

    return TicketRecord(**values)


def is_merged(record: TicketRecord, settings: Settings) -> bool:
    return record.status is not None and record.status in settings.merged_statuses


def prepare_records(raw_records: Iterable[object], settings: Settings | None = None) -> PreparedBatch:
    """Normalize a batch and drop merged tickets.

    Merged tickets are removed here so that nothing downstream ever counts
    them.
    """
    settings = settings or Settings()
    tickets: list[TicketRecord] = []
    merged = 0
    invalid = 0

    for raw in raw_records:
        record = normalize_record(raw)
        if record is None:
            invalid += 1
            continue
        if is_merged(record, settings):
            merged += 1
            continue
        tickets.append(record)

    logger.info(
        "action=prepare_records tickets=%s merged=%s invalid=%s",
        len(tickets),
        merged,
        invalid,
    )
    return PreparedBatch(tickets=tickets, merged_count=merged, invalid_count=invalid)
