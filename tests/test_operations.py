"""Tests for the shared analysis and export workflows."""

import asyncio
import json
from datetime import datetime

import pytest


@pytest.fixture
def export_file(tmp_path, sample_rows):
    path = tmp_path / "tickets.json"
    path.write_text(json.dumps(sample_rows, ensure_ascii=False), encoding="utf-8")
    return path


def test_build_filters_validates_dates():
    """Test filter construction from CLI-style values."""
    from ticket_insights.operations import build_filters

    filters = build_filters(companies=["ACME"], start_date="2024-03-01")
    assert filters.companies == frozenset({"ACME"})
    assert filters.start_date.isoformat() == "2024-03-01"

    with pytest.raises(ValueError):
        build_filters(start_date="2024-03-10", end_date="2024-03-01")
    with pytest.raises(ValueError):
        build_filters(start_date="03/01/2024")


def test_analyze_file(export_file, tmp_path):
    """Test the full analysis workflow and stored copy."""
    from ticket_insights.operations import analyze_file
    from ticket_insights.storage import load_report

    output = tmp_path / "report.json"
    result = analyze_file(export_file, as_of=datetime(2024, 3, 5, 17, 0), output_path=str(output))

    assert result["file_path"] == str(output)
    assert result["batch"] == {"tickets": 2, "merged": 1, "invalid": 0}

    report = result["report"]
    assert report["totalTickets"] == 2
    assert report["slaBreachCount"] == 1
    assert report["nearSlaCount"] == 1
    assert report["ticketsNearSla"][0]["id"] == 102
    assert [p["name"] for p in report["ticketsByPriority"]] == ["Crítico", "Alta"]

    stored = load_report(output)
    assert stored["metadata"]["kind"] == "metrics"
    assert stored["data"]["report"]["totalTickets"] == 2


def test_analyze_file_with_filters(export_file, tmp_path):
    """Test that filters narrow the analyzed set."""
    from ticket_insights.operations import analyze_file, build_filters

    result = analyze_file(
        export_file,
        build_filters(companies=["ACME"]),
        as_of=datetime(2024, 3, 5, 17, 0),
        output_path=str(tmp_path / "r.json"),
    )

    assert result["filters"] == {"companies": ["ACME"]}
    assert result["report"]["totalTickets"] == 1
    assert result["report"]["reportsPerCompany"] == [{"name": "ACME", "count": 1}]


def test_volume_series(export_file):
    """Test volume bucketing from a file."""
    from ticket_insights.operations import volume_series

    result = volume_series(export_file, "day")

    keys = [b["bucketKey"] for b in result["series"]["buckets"]]
    assert keys == ["2024-03-04", "2024-03-05"]
    assert result["series"]["total"] == 2


def test_filter_options(export_file):
    """Test that options exclude merged tickets."""
    from ticket_insights.operations import filter_options

    result = filter_options(export_file)

    assert result["options"]["companies"] == ["ACME", "Beta"]
    assert result["options"]["priorities"] == ["Crítico", "Alta"]
    assert result["batch"]["merged"] == 1


def test_generate_markdown_report(export_file, tmp_path):
    """Test Markdown report sections from an analysis result."""
    from ticket_insights.operations import analyze_file, generate_markdown_report
    from ticket_insights.storage import load_report

    output = tmp_path / "report.json"
    analysis = analyze_file(export_file, as_of=datetime(2024, 3, 5, 17, 0), output_path=str(output))

    markdown = generate_markdown_report(analysis)
    assert markdown.startswith("# Ticket Metrics Report")
    assert "## Summary" in markdown
    assert "| Total Tickets | 2 |" in markdown
    assert "## Tickets Near SLA" in markdown
    assert "#102" in markdown
    assert "1 merged tickets excluded" in markdown

    # A stored report file renders the same content
    assert generate_markdown_report(load_report(output)) == markdown


def test_generate_markdown_report_empty():
    """Test that an empty report still renders."""
    from ticket_insights.operations import generate_markdown_report

    markdown = generate_markdown_report({"report": {}})
    assert "| Total Tickets | 0 |" in markdown
    assert "Near SLA" in markdown
    assert "## Top Agents" not in markdown


def test_build_slack_blocks():
    """Test Slack block structure for a report."""
    from ticket_insights.operations import build_slack_blocks

    blocks = build_slack_blocks({
        "filters": {"companies": ["ACME"]},
        "report": {
            "asOf": "2024-03-05T12:00:00",
            "totalTickets": 4,
            "ticketsNearSla": [{"id": 9, "minutesRemaining": 30, "title": "Down"}],
            "ticketsByPriority": [{"name": "P1", "count": 4}],
            "reportsPerCompany": [{"name": "ACME", "count": 4}],
        },
    })

    assert blocks[0]["type"] == "header"
    assert "companies" in blocks[1]["elements"][0]["text"]
    assert blocks[2]["fields"][0]["text"] == "*Tickets*\n4"
    assert any("Near SLA (1)" in b.get("text", {}).get("text", "") for b in blocks)


def test_send_slack_report_without_webhook():
    """Test the error result when no webhook is given or set."""
    from ticket_insights.operations import send_slack_report

    result = asyncio.run(send_slack_report({"report": {}}))
    assert result["success"] is False
    assert "SLACK_WEBHOOK_URL" in result["error"]


def test_send_slack_report_posts_payload(monkeypatch):
    """Test the payload sent to the webhook named in the environment."""
    from ticket_insights import operations

    monkeypatch.setenv("SLACK_WEBHOOK_URL", "https://hooks.slack.test/abc")
    sent = []

    async def fake_post(webhook_url, payload):
        sent.append((webhook_url, payload))

    monkeypatch.setattr(operations, "_post_to_slack", fake_post)

    result = asyncio.run(operations.send_slack_report({"report": {"totalTickets": 5}}, channel="ops"))

    assert result == {"success": True, "message": "Report sent to #ops", "channel": "#ops"}
    webhook_url, payload = sent[0]
    assert webhook_url == "https://hooks.slack.test/abc"
    assert payload["channel"] == "#ops"
    assert payload["text"] == "Ticket metrics report: 5 tickets"


def test_send_slack_report_uses_webhook_channel(monkeypatch):
    """Test that without a channel the payload leaves routing to the webhook."""
    from ticket_insights import operations

    sent = []

    async def fake_post(webhook_url, payload):
        sent.append(payload)

    monkeypatch.setattr(operations, "_post_to_slack", fake_post)

    result = asyncio.run(
        operations.send_slack_report({"report": {}}, webhook_url="https://hooks.slack.test/x")
    )

    assert result["success"] is True
    assert result["channel"] is None
    assert "channel" not in sent[0]


def test_send_slack_report_failure(monkeypatch):
    """Test that Slack errors become an unsuccessful result."""
    from ticket_insights import operations
    from ticket_insights.errors import SlackError

    async def failing_post(webhook_url, payload):
        raise SlackError("Slack API error: invalid_token")

    monkeypatch.setattr(operations, "_post_to_slack", failing_post)

    result = asyncio.run(
        operations.send_slack_report({"report": {}}, channel="#ops", webhook_url="https://hooks.slack.test/x")
    )
    assert result == {"success": False, "error": "Slack API error: invalid_token"}
