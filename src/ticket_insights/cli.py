"""Ticket Insights CLI - Thin wrapper around operations module."""

import asyncio
import json
import logging
import sys
from functools import wraps
from pathlib import Path
from typing import Annotated, Callable

import typer

from ticket_insights import __version__
from ticket_insights import operations
from ticket_insights.errors import TicketInsightsError
from ticket_insights.formatting import render_html_document
from ticket_insights.storage import find_latest_report, load_report
from ticket_insights.timeparse import parse_timestamp
from ticket_insights.timeseries import ViewMode

# Main app
app = typer.Typer(
    name="ticket-insights",
    help="Ticket Insights CLI - Analyze help-desk ticket exports and share the metrics.",
    no_args_is_help=True,
    add_completion=False,
)


def output_json(data: dict) -> None:
    """Output JSON to stdout."""
    print(json.dumps(data, indent=2, default=str, ensure_ascii=False))


def output_error(message: str, exit_code: int = 1) -> None:
    """Output error and exit."""
    print(json.dumps({"error": message}, ensure_ascii=False), file=sys.stderr)
    raise typer.Exit(exit_code)


def run_async(coro):
    """Run async coroutine synchronously."""
    return asyncio.run(coro)


def insights_command(func: Callable) -> Callable:
    """Decorator to handle common error patterns for CLI commands."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (TicketInsightsError, ValueError) as e:
            output_error(str(e))
    return wrapper


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        output_json({"version": __version__})
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version", "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Log progress to stderr."),
    ] = False,
) -> None:
    """Ticket Insights CLI - Metrics, trends and reports from ticket exports."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


# Shared filter options
CompanyOpt = Annotated[list[str] | None, typer.Option("--company", help="Keep only this company (repeatable)")]
StatusOpt = Annotated[list[str] | None, typer.Option("--status", help="Keep only this status (repeatable)")]
PriorityOpt = Annotated[list[str] | None, typer.Option("--priority", help="Keep only this priority (repeatable)")]
CategoryOpt = Annotated[list[str] | None, typer.Option("--category", help="Keep only this category (repeatable)")]
SubcategoryOpt = Annotated[
    list[str] | None, typer.Option("--subcategory", help="Keep only this subcategory (repeatable)")
]
TeamOpt = Annotated[list[str] | None, typer.Option("--team", help="Keep only this team (repeatable)")]
AgentOpt = Annotated[list[str] | None, typer.Option("--agent", help="Keep only this agent (repeatable)")]
ServiceTypeOpt = Annotated[
    list[str] | None, typer.Option("--service-type", help="Keep only this service type (repeatable)")
]
StartDateOpt = Annotated[str | None, typer.Option("--start-date", help="First request day, YYYY-MM-DD (inclusive)")]
EndDateOpt = Annotated[str | None, typer.Option("--end-date", help="Last request day, YYYY-MM-DD (inclusive)")]


def _resolve_report_path(report_file: str | None) -> Path:
    if report_file:
        path = Path(report_file)
    else:
        path = find_latest_report("metrics")
        if path is None:
            output_error(
                "No stored report found. Run the analysis first or provide a file path.\n"
                "Example: ticket-insights analyze tickets.json"
            )

    if not path.exists():
        output_error(f"File not found: {path}")
    return path


# =============================================================================
# Analysis Commands
# =============================================================================


@app.command("analyze")
@insights_command
def analyze_cmd(
    input_file: Annotated[str, typer.Argument(help="Ticket export (.json or .csv)")],
    company: CompanyOpt = None,
    status: StatusOpt = None,
    priority: PriorityOpt = None,
    category: CategoryOpt = None,
    subcategory: SubcategoryOpt = None,
    team: TeamOpt = None,
    agent: AgentOpt = None,
    service_type: ServiceTypeOpt = None,
    start_date: StartDateOpt = None,
    end_date: EndDateOpt = None,
    as_of: Annotated[
        str | None,
        typer.Option("--as-of", help="Reference time for near-SLA tickets, DD-MM-YYYY HH:MM:SS (default: now)"),
    ] = None,
    output: Annotated[
        str | None,
        typer.Option("--output", "-o", help="Where to store the report (default: temp directory)"),
    ] = None,
) -> None:
    """Compute the full metrics report for a ticket export.

    Merged tickets are excluded before anything is counted. The report is
    stored so markdown-report and slack-report can reuse it.
    """
    filters = operations.build_filters(
        companies=company,
        statuses=status,
        priorities=priority,
        categories=category,
        subcategories=subcategory,
        teams=team,
        agents=agent,
        service_types=service_type,
        start_date=start_date,
        end_date=end_date,
    )
    reference = parse_timestamp(as_of) if as_of else None
    output_json(operations.analyze_file(input_file, filters, as_of=reference, output_path=output))


@app.command("volume")
@insights_command
def volume_cmd(
    input_file: Annotated[str, typer.Argument(help="Ticket export (.json or .csv)")],
    mode: Annotated[
        ViewMode,
        typer.Option("--mode", "-m", help="Bucket by calendar day or clock hour"),
    ] = ViewMode.DAY,
    company: CompanyOpt = None,
    status: StatusOpt = None,
    priority: PriorityOpt = None,
    category: CategoryOpt = None,
    subcategory: SubcategoryOpt = None,
    team: TeamOpt = None,
    agent: AgentOpt = None,
    service_type: ServiceTypeOpt = None,
    start_date: StartDateOpt = None,
    end_date: EndDateOpt = None,
) -> None:
    """Show request volume over time."""
    filters = operations.build_filters(
        companies=company,
        statuses=status,
        priorities=priority,
        categories=category,
        subcategories=subcategory,
        teams=team,
        agents=agent,
        service_types=service_type,
        start_date=start_date,
        end_date=end_date,
    )
    output_json(operations.volume_series(input_file, mode, filters))


@app.command("filter-options")
@insights_command
def filter_options_cmd(
    input_file: Annotated[str, typer.Argument(help="Ticket export (.json or .csv)")],
) -> None:
    """List the values available for each filter in an export."""
    output_json(operations.filter_options(input_file))


# =============================================================================
# Report Commands
# =============================================================================


@app.command("slack-report")
@insights_command
def slack_report_cmd(
    report_file: Annotated[
        str | None,
        typer.Argument(help="Stored report from 'analyze' (default: most recent)"),
    ] = None,
    channel: Annotated[
        str | None,
        typer.Option("--channel", "-c", help="Override Slack channel (default: SLACK_CHANNEL)"),
    ] = None,
    webhook_url: Annotated[
        str | None,
        typer.Option("--webhook", "-w", help="Slack incoming webhook URL (default: SLACK_WEBHOOK_URL)"),
    ] = None,
) -> None:
    """Send a metrics report summary to a Slack incoming webhook."""
    path = _resolve_report_path(report_file)
    report_data = load_report(path)

    result = run_async(operations.send_slack_report(report_data, channel=channel, webhook_url=webhook_url))

    if result["success"]:
        output_json({
            "success": True,
            "message": result["message"],
            "source_file": str(path),
        })
    else:
        output_error(f"Failed to send report: {result['error']}")


@app.command("markdown-report")
@insights_command
def markdown_report_cmd(
    report_file: Annotated[
        str | None,
        typer.Argument(help="Stored report from 'analyze' (default: most recent)"),
    ] = None,
    output_file: Annotated[
        str | None,
        typer.Option("--output", "-o", help="Output file path (prints to stdout if not specified)"),
    ] = None,
    as_html: Annotated[
        bool,
        typer.Option("--html", help="Render a standalone HTML page instead of Markdown"),
    ] = False,
) -> None:
    """Generate a detailed markdown metrics report.

    Output is written to stdout by default, or to a file if --output is specified.
    """
    path = _resolve_report_path(report_file)
    report_data = load_report(path)

    content = operations.generate_markdown_report(report_data)
    if as_html:
        content = render_html_document(content)

    if output_file:
        output_path = Path(output_file)
        output_path.write_text(content, encoding="utf-8")
        output_json({
            "success": True,
            "message": f"Report written to {output_path}",
            "output_file": str(output_path),
            "source_file": str(path),
        })
    else:
        print(content)


def main_cli() -> None:
    """Entry point for CLI."""
    app()


if __name__ == "__main__":
    main_cli()
