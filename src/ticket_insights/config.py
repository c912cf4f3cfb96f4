"""Settings for the analytics engine and the Slack exporter.

Values come from environment variables first, then from the JSON config
file, then from built-in defaults.
"""

import json
import logging
import os
from pathlib import Path

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# Engine settings file, never written by the tool
CONFIG_PATH = Path.home() / ".ticket-insights" / "config.json"

# Statuses that mark a ticket as duplicated into another one
DEFAULT_MERGED_STATUSES = ["Mesclado", "Merged"]

DEFAULT_RESOLVED_STATUSES = [
    "Resolvido",
    "Fechado",
    "Encerrado",
    "Resolved",
    "Closed",
    "Closed-out",
]

DEFAULT_NEAR_SLA_WINDOW_MINUTES = 120

# Monday..Sunday, matching datetime.weekday()
DEFAULT_WEEKDAY_NAMES = [
    "segunda-feira",
    "terça-feira",
    "quarta-feira",
    "quinta-feira",
    "sexta-feira",
    "sábado",
    "domingo",
]

# Labels used when a descriptive field is missing
PLACEHOLDER_NOT_INFORMED = "Não informado"
PLACEHOLDER_UNASSIGNED = "Não atribuído"
PLACEHOLDER_UNDEFINED = "Não definido"
PLACEHOLDER_NA = "N/A"


class Settings(BaseModel):
    """Tunable rules for the aggregation engine."""

    resolved_statuses: list[str] = Field(default_factory=lambda: list(DEFAULT_RESOLVED_STATUSES))
    merged_statuses: list[str] = Field(default_factory=lambda: list(DEFAULT_MERGED_STATUSES))
    near_sla_window_minutes: int = Field(default=DEFAULT_NEAR_SLA_WINDOW_MINUTES, ge=1)
    weekday_names: list[str] = Field(
        default_factory=lambda: list(DEFAULT_WEEKDAY_NAMES), min_length=7, max_length=7
    )


def _load_config_from_file() -> dict:
    """Load configuration from config file."""
    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                return json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("action=load_config level=warning path=%s error=%s", CONFIG_PATH, e)
    return {}


def _split_env_list(name: str) -> list[str] | None:
    raw = os.environ.get(name)
    if raw is None:
        return None
    items = [item.strip() for item in raw.split(",")]
    return [item for item in items if item]


def load_settings() -> Settings:
    """Build engine settings from env vars, config file and defaults.

    Env vars:
        TICKET_INSIGHTS_RESOLVED_STATUSES: comma-separated status labels
        TICKET_INSIGHTS_MERGED_STATUSES: comma-separated status labels
        TICKET_INSIGHTS_NEAR_SLA_MINUTES: near-SLA window in minutes
    """
    config = _load_config_from_file()
    values: dict = {}

    for key in ("resolved_statuses", "merged_statuses", "near_sla_window_minutes", "weekday_names"):
        if key in config:
            values[key] = config[key]

    resolved = _split_env_list("TICKET_INSIGHTS_RESOLVED_STATUSES")
    if resolved is not None:
        values["resolved_statuses"] = resolved
    merged = _split_env_list("TICKET_INSIGHTS_MERGED_STATUSES")
    if merged is not None:
        values["merged_statuses"] = merged
    window = os.environ.get("TICKET_INSIGHTS_NEAR_SLA_MINUTES")
    if window:
        values["near_sla_window_minutes"] = window

    return Settings.model_validate(values)


def get_slack_target() -> tuple[str | None, str | None]:
    """Read the Slack webhook URL and channel from the environment.

    Env vars:
        SLACK_WEBHOOK_URL: Slack incoming webhook URL
        SLACK_CHANNEL: channel override (the webhook's own channel if unset)
    """
    webhook_url = os.environ.get("SLACK_WEBHOOK_URL") or None
    channel = os.environ.get("SLACK_CHANNEL") or None
    return webhook_url, channel
