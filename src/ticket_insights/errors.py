"""Exception types shared by the importer, exporters and CLI."""


class TicketInsightsError(Exception):
    """Base exception for ticket-insights errors."""


class ImportFailure(TicketInsightsError):
    """A whole batch could not be decoded into ticket records."""

    def __init__(self, message: str, source: str | None = None):
        super().__init__(message)
        self.source = source


class SlackError(TicketInsightsError):
    """Sending a report to Slack failed."""
