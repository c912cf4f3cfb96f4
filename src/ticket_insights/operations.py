"""Shared business logic for ticket analytics.

This module holds the workflows used by both the CLI and the MCP server:
load an export, filter it, compute reports, and export them. Analysis
functions are synchronous; the Slack functions are async because they talk
to the network. All of them return dicts.
"""

import logging
from datetime import date, datetime
from pathlib import Path

import httpx

from ticket_insights.config import Settings, get_slack_target, load_settings
from ticket_insights.errors import SlackError
from ticket_insights.filters import ActiveFilters, apply_filters
from ticket_insights.importer import load_raw_records
from ticket_insights.metrics import collect_filter_options, compute_metrics
from ticket_insights.records import PreparedBatch, prepare_records
from ticket_insights.storage import save_report
from ticket_insights.timeseries import ViewMode, bucket_requests

logger = logging.getLogger(__name__)

SLACK_TIMEOUT = 30.0


def build_filters(
    companies: list[str] | None = None,
    statuses: list[str] | None = None,
    priorities: list[str] | None = None,
    categories: list[str] | None = None,
    subcategories: list[str] | None = None,
    teams: list[str] | None = None,
    agents: list[str] | None = None,
    service_types: list[str] | None = None,
    start_date: str | date | None = None,
    end_date: str | date | None = None,
) -> ActiveFilters:
    """Build an ActiveFilters value from optional lists and ISO date strings.

    Raises:
        ValueError: If a date is not ``YYYY-MM-DD`` or the range is inverted.
    """
    filters = ActiveFilters.model_validate({
        "companies": companies or [],
        "statuses": statuses or [],
        "priorities": priorities or [],
        "categories": categories or [],
        "subcategories": subcategories or [],
        "teams": teams or [],
        "agents": agents or [],
        "service_types": service_types or [],
        "start_date": start_date or None,
        "end_date": end_date or None,
    })
    if filters.start_date and filters.end_date and filters.start_date > filters.end_date:
        raise ValueError(
            f"Start date {filters.start_date} is after end date {filters.end_date}"
        )
    return filters


def load_tickets(file_path: str | Path, settings: Settings | None = None) -> PreparedBatch:
    """Read, normalize and merge-filter an export file."""
    rows = load_raw_records(file_path)
    return prepare_records(rows, settings or load_settings())


def _batch_info(batch: PreparedBatch) -> dict:
    return {
        "tickets": len(batch.tickets),
        "merged": batch.merged_count,
        "invalid": batch.invalid_count,
    }


def analyze_file(
    file_path: str | Path,
    filters: ActiveFilters | None = None,
    as_of: datetime | None = None,
    output_path: str | None = None,
) -> dict:
    """Compute the metrics report for an export file and store it.

    Args:
        file_path: JSON or CSV ticket export
        filters: Active filter selection (None = everything)
        as_of: Reference instant for the near-SLA view (defaults to now)
        output_path: Custom path for the stored report

    Returns:
        Dict with source, filters, batch counters, the report and the
        path of the stored copy
    """
    settings = load_settings()
    filters = filters or ActiveFilters()
    batch = load_tickets(file_path, settings)
    selected = apply_filters(batch.tickets, filters)
    report = compute_metrics(selected, as_of=as_of, settings=settings)

    analysis = {
        "source": str(file_path),
        "filters": filters.describe(),
        "batch": _batch_info(batch),
        "report": report.to_dict(),
    }
    stored_path, _ = save_report(
        "metrics",
        {"source": str(file_path), "filters": analysis["filters"], "as_of": report.as_of},
        analysis,
        output_path=output_path,
    )
    analysis["file_path"] = stored_path
    return analysis


def volume_series(
    file_path: str | Path,
    mode: ViewMode | str = ViewMode.DAY,
    filters: ActiveFilters | None = None,
) -> dict:
    """Bucket the (filtered) requests of an export by day or hour."""
    filters = filters or ActiveFilters()
    batch = load_tickets(file_path)
    series = bucket_requests(apply_filters(batch.tickets, filters), mode)
    return {
        "source": str(file_path),
        "filters": filters.describe(),
        "series": series.to_dict(),
    }


def filter_options(file_path: str | Path) -> dict:
    """List selectable filter values present in an export (merged tickets excluded)."""
    batch = load_tickets(file_path)
    return {
        "source": str(file_path),
        "batch": _batch_info(batch),
        "options": collect_filter_options(batch.tickets).model_dump(by_alias=True),
    }


def _analysis_from(report_data: dict) -> dict:
    # Accept both a stored report file and a bare analysis dict
    if "data" in report_data and "metadata" in report_data:
        return report_data["data"]
    return report_data


# =============================================================================
# Markdown Report
# =============================================================================


def _table(headers: list[str], rows: list[list]) -> list[str]:
    lines = [
        "| " + " | ".join(headers) + " |",
        "|" + "|".join("-" * (len(h) + 2) for h in headers) + "|",
    ]
    for row in rows:
        lines.append("| " + " | ".join(str(cell).replace("|", "\\|") for cell in row) + " |")
    lines.append("")
    return lines


def generate_markdown_report(report_data: dict, top: int = 10) -> str:
    """Generate a markdown ticket metrics report.

    Args:
        report_data: Analysis dict from analyze_file, or a stored report file
        top: Maximum rows per ranking table

    Returns:
        Markdown formatted report string
    """
    analysis = _analysis_from(report_data)
    report = analysis.get("report", {})
    filters = analysis.get("filters", {})
    batch = analysis.get("batch", {})

    lines = ["# Ticket Metrics Report", ""]
    if analysis.get("source"):
        lines.append(f"**Source:** `{analysis['source']}`")
    if report.get("asOf"):
        lines.append(f"**As of:** {report['asOf']}")
    if filters:
        active = "; ".join(
            f"{name}: {', '.join(value) if isinstance(value, list) else value}"
            for name, value in filters.items()
        )
        lines.append(f"**Filters:** {active}")
    if batch.get("merged"):
        lines.append(f"*{batch['merged']} merged tickets excluded from all metrics.*")
    lines.extend(["", "---", "", "## Summary", ""])

    lines.extend(_table(["Metric", "Value"], [
        ["Total Tickets", report.get("totalTickets", 0)],
        ["Avg Requests per Day", report.get("avgRequestsPerDay", 0)],
        ["Busiest Weekday", report.get("topDayOfWeek", "N/A")],
        ["Avg Response Time", report.get("avgResponseTime", "00:00")],
        ["Avg Solution Time", report.get("avgSolutionTime", "00:00")],
        ["Avg Waiting on Client", report.get("avgWaitingClient", "00:00")],
        ["Avg Waiting on Vendor", report.get("avgWaitingVendor", "00:00")],
        ["Reopened", f"{report.get('reopenedTickets', 0)} ({report.get('reopenedPercentage', 0)}%)"],
        ["SLA Breaches", f"{report.get('slaBreachCount', 0)} ({report.get('slaBreachPercentage', 0)}%)"],
        ["Near SLA (open)", report.get("nearSlaCount", 0)],
    ]))

    near = report.get("ticketsNearSla", [])
    if near:
        lines.extend(["## Tickets Near SLA", ""])
        lines.extend(_table(
            ["Ticket", "Deadline", "Minutes Left", "Priority", "Team", "Title"],
            [
                [f"#{t.get('id')}", t.get("slaDeadline"), t.get("minutesRemaining"),
                 t.get("priority"), t.get("team"), (t.get("title") or "")[:40]]
                for t in near
            ],
        ))

    if report.get("ticketsByPriority"):
        lines.extend(["## Tickets by Priority", ""])
        lines.extend(_table(
            ["Priority", "Tickets"],
            [[p["name"], p["count"]] for p in report["ticketsByPriority"]],
        ))

    if report.get("ticketsByStatus"):
        lines.extend(["## Tickets by Status", ""])
        lines.extend(_table(
            ["Status", "Tickets"],
            [[s["name"], s["count"]] for s in report["ticketsByStatus"]],
        ))

    if report.get("reportsPerCompany"):
        lines.extend(["## Top Companies", ""])
        lines.extend(_table(
            ["Company", "Tickets"],
            [[c["name"], c["count"]] for c in report["reportsPerCompany"][:top]],
        ))

    if report.get("ticketsPerAgent"):
        lines.extend(["## Top Agents", ""])
        lines.extend(_table(
            ["Agent", "Tickets", "Share"],
            [[a["name"], a["count"], f"{a['percentage']:.1f}%"] for a in report["ticketsPerAgent"][:top]],
        ))

    if report.get("ticketsPerTeam"):
        response_by_team = {t["team"]: t["avgTime"] for t in report.get("responseTimeByTeam", [])}
        solution_by_team = {t["team"]: t["avgTime"] for t in report.get("solutionTimeByTeam", [])}
        resolution_by_team = {t["team"]: t["resolutionRate"] for t in report.get("teamResolutionRate", [])}
        lines.extend(["## Teams", ""])
        lines.append("*Resolution rate uses the total ticket count as denominator.*")
        lines.append("")
        lines.extend(_table(
            ["Team", "Tickets", "Resolution Rate", "Avg Response", "Avg Solution"],
            [
                [
                    t["name"],
                    t["count"],
                    f"{resolution_by_team.get(t['name'], 0):.1f}%",
                    response_by_team.get(t["name"], "00:00"),
                    solution_by_team.get(t["name"], "00:00"),
                ]
                for t in report["ticketsPerTeam"]
            ],
        ))

    if report.get("ticketsByCategory"):
        lines.extend(["## Top Categories", ""])
        lines.extend(_table(
            ["Category > Subcategory", "Tickets"],
            [[c["name"], c["count"]] for c in report["ticketsByCategory"][:top]],
        ))

    if report.get("unparsedRequestDates"):
        lines.append(
            f"*{report['unparsedRequestDates']} tickets had an unreadable request date "
            "and are missing from day-based metrics.*"
        )
        lines.append("")

    return "\n".join(lines).rstrip() + "\n"


# =============================================================================
# Slack Integration
# =============================================================================


def build_slack_blocks(report_data: dict, top: int = 5) -> list[dict]:
    """Build Slack Block Kit blocks summarizing a metrics report."""
    analysis = _analysis_from(report_data)
    report = analysis.get("report", {})
    filters = analysis.get("filters", {})

    total = report.get("totalTickets", 0)
    blocks: list[dict] = [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": "Ticket Metrics Report"},
        },
    ]

    context = [f"As of {report.get('asOf', 'now')}"]
    if filters:
        context.append("filtered: " + ", ".join(sorted(filters)))
    blocks.append({
        "type": "context",
        "elements": [{"type": "mrkdwn", "text": " · ".join(context)}],
    })

    blocks.append({
        "type": "section",
        "fields": [
            {"type": "mrkdwn", "text": f"*Tickets*\n{total}"},
            {"type": "mrkdwn", "text": f"*Per Day*\n{report.get('avgRequestsPerDay', 0)}"},
            {"type": "mrkdwn", "text": f"*Avg Response*\n{report.get('avgResponseTime', '00:00')}"},
            {"type": "mrkdwn", "text": f"*Avg Solution*\n{report.get('avgSolutionTime', '00:00')}"},
            {"type": "mrkdwn", "text": f"*SLA Breaches*\n{report.get('slaBreachPercentage', 0)}%"},
            {"type": "mrkdwn", "text": f"*Reopened*\n{report.get('reopenedPercentage', 0)}%"},
        ],
    })

    near = report.get("ticketsNearSla", [])
    if near:
        near_lines = [
            f"• *#{t.get('id')}* – {t.get('minutesRemaining')} min left – _{(t.get('title') or '')[:35]}_"
            for t in near[:top]
        ]
        blocks.append({"type": "divider"})
        blocks.append({
            "type": "section",
            "text": {
                "type": "mrkdwn",
                "text": f"*Near SLA ({len(near)})*\n" + "\n".join(near_lines),
            },
        })

    priorities = report.get("ticketsByPriority", [])
    if priorities:
        blocks.append({"type": "divider"})
        blocks.append({
            "type": "section",
            "text": {
                "type": "mrkdwn",
                "text": "*By Priority*\n" + "\n".join(f"• {p['name']}: {p['count']}" for p in priorities),
            },
        })

    companies = report.get("reportsPerCompany", [])[:top]
    if companies:
        blocks.append({
            "type": "section",
            "fields": [
                {"type": "mrkdwn", "text": f"*{c['name']}*\n{c['count']} tickets"}
                for c in companies
            ],
        })

    return blocks


async def _post_to_slack(webhook_url: str, payload: dict) -> None:
    try:
        async with httpx.AsyncClient() as client:
            response = await client.post(
                webhook_url,
                json=payload,
                headers={"Content-Type": "application/json"},
                timeout=SLACK_TIMEOUT,
            )
    except httpx.RequestError as e:
        raise SlackError(f"Failed to connect to Slack: {e}") from e

    if response.text != "ok":
        raise SlackError(f"Slack API error: {response.text}")


async def send_slack_report(
    report_data: dict,
    channel: str | None = None,
    webhook_url: str | None = None,
) -> dict:
    """Send a metrics report summary to Slack.

    Args:
        report_data: Analysis dict or stored report file
        channel: Channel override (SLACK_CHANNEL, else the webhook default)
        webhook_url: Incoming webhook URL (SLACK_WEBHOOK_URL if not provided)

    Returns:
        Dict with success status
    """
    env_webhook, env_channel = get_slack_target()
    webhook_url = webhook_url or env_webhook
    channel = channel or env_channel
    if not webhook_url:
        return {
            "success": False,
            "error": "No Slack webhook. Pass --webhook or set SLACK_WEBHOOK_URL.",
        }

    total = _analysis_from(report_data).get("report", {}).get("totalTickets", 0)
    payload = {
        "text": f"Ticket metrics report: {total} tickets",
        "blocks": build_slack_blocks(report_data),
    }
    if channel:
        if not channel.startswith("#"):
            channel = f"#{channel}"
        payload["channel"] = channel

    try:
        await _post_to_slack(webhook_url, payload)
    except SlackError as e:
        logger.warning("action=send_slack_report level=warning channel=%s error=%s", channel, e)
        return {"success": False, "error": str(e)}

    return {
        "success": True,
        "message": f"Report sent to {channel or 'the webhook channel'}",
        "channel": channel,
    }
