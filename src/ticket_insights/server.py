"""Ticket Insights MCP Server - Thin wrapper around operations module."""

import json
from typing import Optional

from mcp.server.fastmcp import FastMCP
from pydantic import BaseModel, ConfigDict, Field

from ticket_insights import operations
from ticket_insights.errors import ImportFailure
from ticket_insights.timeparse import parse_timestamp
from ticket_insights.timeseries import ViewMode

# Initialize the MCP server
mcp = FastMCP("ticket_insights")


# =============================================================================
# Pydantic Input Models
# =============================================================================

# Shared model config
_MODEL_CONFIG = ConfigDict(str_strip_whitespace=True)


class FileInput(BaseModel):
    """Input naming a ticket export."""
    model_config = _MODEL_CONFIG
    file_path: str = Field(..., description="Path to a .json or .csv ticket export", min_length=1)


class FilteredFileInput(FileInput):
    """Ticket export plus an optional filter selection."""
    companies: Optional[list[str]] = Field(default=None, description="Companies to keep")
    statuses: Optional[list[str]] = Field(default=None, description="Statuses to keep")
    priorities: Optional[list[str]] = Field(default=None, description="Priorities to keep")
    categories: Optional[list[str]] = Field(default=None, description="Categories to keep")
    subcategories: Optional[list[str]] = Field(default=None, description="Subcategories to keep")
    teams: Optional[list[str]] = Field(default=None, description="Teams to keep")
    agents: Optional[list[str]] = Field(default=None, description="Agents to keep")
    service_types: Optional[list[str]] = Field(default=None, description="Service types to keep")
    start_date: Optional[str] = Field(default=None, description="First request day (YYYY-MM-DD)")
    end_date: Optional[str] = Field(default=None, description="Last request day (YYYY-MM-DD)")

    def to_filters(self):
        return operations.build_filters(
            companies=self.companies,
            statuses=self.statuses,
            priorities=self.priorities,
            categories=self.categories,
            subcategories=self.subcategories,
            teams=self.teams,
            agents=self.agents,
            service_types=self.service_types,
            start_date=self.start_date,
            end_date=self.end_date,
        )


class MetricsInput(FilteredFileInput):
    """Input for the metrics report."""
    as_of: Optional[str] = Field(
        default=None, description="Reference time for near-SLA tickets (DD-MM-YYYY HH:MM:SS)"
    )
    output_path: Optional[str] = Field(default=None, description="Custom output path")


class VolumeInput(FilteredFileInput):
    """Input for the request volume series."""
    mode: ViewMode = Field(default=ViewMode.DAY, description="Bucket by 'day' or 'hour'")


# =============================================================================
# Helper Functions
# =============================================================================


def _format_result(result: dict) -> str:
    """Format operation result as JSON string."""
    return json.dumps(result, indent=2, default=str, ensure_ascii=False)


def _handle_error(e: Exception) -> str:
    """Format errors consistently."""
    if isinstance(e, ImportFailure):
        return f"**Import Error:** {e}"
    elif isinstance(e, ValueError):
        return f"**Invalid Input:** {e}"
    else:
        return f"**Error:** {type(e).__name__}: {e}"


# =============================================================================
# Analysis Tools
# =============================================================================


@mcp.tool(name="ticket_metrics")
async def ticket_metrics(params: MetricsInput) -> str:
    """Compute the full metrics report for a ticket export, honoring filters."""
    try:
        as_of = parse_timestamp(params.as_of) if params.as_of else None
        result = operations.analyze_file(
            params.file_path, params.to_filters(), as_of=as_of, output_path=params.output_path
        )
        return _format_result(result)
    except Exception as e:
        return _handle_error(e)


@mcp.tool(name="ticket_volume")
async def ticket_volume(params: VolumeInput) -> str:
    """Bucket ticket requests by day or hour for trend charts."""
    try:
        result = operations.volume_series(params.file_path, params.mode, params.to_filters())
        return _format_result(result)
    except Exception as e:
        return _handle_error(e)


@mcp.tool(name="ticket_filter_options")
async def ticket_filter_options(params: FileInput) -> str:
    """List the selectable values for every filter dimension of an export."""
    try:
        result = operations.filter_options(params.file_path)
        return _format_result(result)
    except Exception as e:
        return _handle_error(e)


# =============================================================================
# Server Entry Point
# =============================================================================


def main():
    """Run the MCP server."""
    mcp.run()


if __name__ == "__main__":
    main()
