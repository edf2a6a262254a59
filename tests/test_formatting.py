"""Tests for formatting utilities."""

import time
from datetime import datetime, timedelta, timezone

from lodgelock.formatting import format_request, format_time_ago
from lodgelock.relay.protocol import ImportAccountPayload, Request, RequestType


def _iso(delta: timedelta) -> str:
    return (datetime.now(timezone.utc) - delta).isoformat().replace("+00:00", "Z")


class TestFormatTimeAgo:
    """Tests for format_time_ago."""

    def test_none(self):
        assert format_time_ago(None) == "Never"

    def test_just_now(self):
        assert format_time_ago(_iso(timedelta(seconds=5))) == "Just now"

    def test_minutes(self):
        assert format_time_ago(_iso(timedelta(minutes=1, seconds=5))) == "1 minute ago"

    def test_hours(self):
        assert format_time_ago(_iso(timedelta(hours=3, minutes=1))) == "3 hours ago"

    def test_days(self):
        assert format_time_ago(_iso(timedelta(days=2, hours=1))) == "2 days ago"

    def test_epoch_milliseconds(self):
        ten_minutes_ago = int((time.time() - 600) * 1000)
        assert format_time_ago(ten_minutes_ago) == "10 minutes ago"


class TestFormatRequest:
    """Tests for format_request."""

    def test_includes_title_id_status_origin_and_room(self):
        request = Request(
            id="0123456789abcdef",
            type=RequestType.IMPORT_ACCOUNT,
            payload=ImportAccountPayload(origin="dapp.example"),
            last_updated=int(time.time() * 1000),
        )

        line = format_request(request, "Laptop")

        assert line.startswith("Account request | 01234567 | pending")
        assert "from dapp.example" in line
        assert "[Laptop]" in line
        assert line.endswith("Just now")
