"""Ticket analytics: metrics, filters and volume series for support-ticket exports."""

__version__ = "0.1.0"
