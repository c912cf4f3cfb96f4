"""Tests for request volume bucketing."""

from datetime import datetime


def _tickets():
    from ticket_insights.records import TicketRecord

    return [
        TicketRecord(id=1, requested_at=datetime(2024, 3, 6, 9, 0)),
        TicketRecord(id=2, requested_at=datetime(2024, 3, 5, 10, 15)),
        TicketRecord(id=3, requested_at=datetime(2024, 3, 5, 10, 45)),
        TicketRecord(id=4, requested_at=None),
    ]


def test_bucket_by_day():
    """Test daily buckets, labels and summary values."""
    from ticket_insights.timeseries import bucket_requests

    series = bucket_requests(_tickets(), "day")

    assert [(b.bucket_key, b.count, b.display_label) for b in series.buckets] == [
        ("2024-03-05", 2, "05/03"),
        ("2024-03-06", 1, "06/03"),
    ]
    assert series.max_count == 2
    assert series.mean_count == 1.5
    assert series.total == 3
    assert series.skipped == 1


def test_bucket_by_hour():
    """Test hourly buckets keyed by the start of the hour."""
    from ticket_insights.timeseries import ViewMode, bucket_requests

    series = bucket_requests(_tickets(), ViewMode.HOUR)

    assert [b.bucket_key for b in series.buckets] == ["2024-03-05 10:00", "2024-03-06 09:00"]
    assert series.buckets[0].count == 2
    assert series.buckets[0].display_label == "05/03 10:00"


def test_bucket_empty():
    """Test an empty input."""
    from ticket_insights.timeseries import bucket_requests

    series = bucket_requests([], "day")
    assert series.buckets == []
    assert series.max_count == 0
    assert series.mean_count == 0.0


def test_series_dict_shape():
    """Test the camelCase JSON shape of a series."""
    from ticket_insights.timeseries import bucket_requests

    data = bucket_requests(_tickets(), "hour").to_dict()

    assert data["mode"] == "hour"
    assert data["maxCount"] == 2
    assert data["buckets"][0] == {"bucketKey": "2024-03-05 10:00", "count": 2, "displayLabel": "05/03 10:00"}
