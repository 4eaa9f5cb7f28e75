"""Tests for device presentation helpers."""
from datetime import datetime, timedelta

import pytest

from mentorpush.utils.device_info import DeviceInfo, device_label, format_last_seen, parse_device_info

CHROME_MAC = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
EDGE_WINDOWS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36 Edg/120.0.0.0"
)
SAFARI_IPHONE = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)
FIREFOX_LINUX = "Mozilla/5.0 (X11; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0"


class TestParseDeviceInfo:
    """Tests for user agent parsing."""

    def test_chrome_on_mac(self):
        assert parse_device_info(CHROME_MAC) == DeviceInfo(browser="Chrome", os="macOS", device="Desktop")

    def test_edge_is_not_chrome(self):
        info = parse_device_info(EDGE_WINDOWS)
        assert info.browser == "Edge"
        assert info.os == "Windows"

    def test_iphone_safari_is_mobile(self):
        info = parse_device_info(SAFARI_IPHONE)
        assert info.browser == "Safari"
        assert info.device == "Mobile"

    def test_firefox_on_linux(self):
        info = parse_device_info(FIREFOX_LINUX)
        assert (info.browser, info.os, info.device) == ("Firefox", "Linux", "Desktop")

    @pytest.mark.parametrize("user_agent", [None, ""])
    def test_missing_user_agent(self, user_agent):
        assert parse_device_info(user_agent) == DeviceInfo()


class TestDeviceLabel:
    """Tests for the displayed device name."""

    def test_custom_name_wins(self):
        assert device_label("Work laptop", CHROME_MAC) == "Work laptop"

    def test_derived_label(self):
        assert device_label(None, CHROME_MAC) == "macOS - Chrome (Desktop)"

    def test_unknown_device(self):
        assert device_label("", None) == "Unknown - Unknown (Unknown)"


class TestFormatLastSeen:
    """Tests for relative last-seen text."""

    NOW = datetime(2024, 3, 10, 12, 0, 0)

    @pytest.mark.parametrize("delta,expected", [
        (timedelta(seconds=30), "Just now"),
        (timedelta(minutes=1), "1 minute ago"),
        (timedelta(minutes=45), "45 minutes ago"),
        (timedelta(hours=1), "1 hour ago"),
        (timedelta(hours=5), "5 hours ago"),
        (timedelta(days=1), "1 day ago"),
        (timedelta(days=6), "6 days ago"),
    ])
    def test_relative(self, delta, expected):
        assert format_last_seen(self.NOW - delta, now=self.NOW) == expected

    def test_older_shows_date(self):
        assert format_last_seen(datetime(2024, 2, 1, 8, 30), now=self.NOW) == "2024-02-01"

    def test_never_seen(self):
        assert format_last_seen(None) == "Unknown"
