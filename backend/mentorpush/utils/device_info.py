"""Helpers for presenting devices from their raw environment strings."""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

UNKNOWN = "Unknown"


@dataclass(frozen=True)
class DeviceInfo:
    browser: str = UNKNOWN
    os: str = UNKNOWN
    device: str = UNKNOWN


def parse_device_info(user_agent: Optional[str]) -> DeviceInfo:
    """Best-effort browser/OS/form factor detection from a user agent string."""
    if not user_agent:
        return DeviceInfo()

    # Order matters: Edge and Opera also advertise Chrome, Chrome advertises Safari
    browser = UNKNOWN
    if "Chrome" in user_agent and "Edg" not in user_agent:
        browser = "Chrome"
    elif "Firefox" in user_agent:
        browser = "Firefox"
    elif "Safari" in user_agent and "Chrome" not in user_agent:
        browser = "Safari"
    elif "Edg" in user_agent:
        browser = "Edge"
    elif "Opera" in user_agent or "OPR" in user_agent:
        browser = "Opera"

    os_name = UNKNOWN
    if "Windows" in user_agent:
        os_name = "Windows"
    elif "Mac OS" in user_agent:
        os_name = "macOS"
    elif "Linux" in user_agent:
        os_name = "Linux"
    elif "Android" in user_agent:
        os_name = "Android"
    elif "iOS" in user_agent or "iPhone" in user_agent or "iPad" in user_agent:
        os_name = "iOS"

    device = "Desktop"
    if "Mobile" in user_agent:
        device = "Mobile"
    elif "Tablet" in user_agent or "iPad" in user_agent:
        device = "Tablet"

    return DeviceInfo(browser=browser, os=os_name, device=device)


def device_label(name: Optional[str], user_agent: Optional[str]) -> str:
    """Custom name if set, otherwise a label derived from the user agent."""
    if name:
        return name
    info = parse_device_info(user_agent)
    return f"{info.os} - {info.browser} ({info.device})"


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'s' if count > 1 else ''} ago"


def format_last_seen(timestamp: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Relative time for recent timestamps, the date for older ones."""
    if timestamp is None:
        return UNKNOWN

    now = now or datetime.utcnow()
    seconds = (now - timestamp).total_seconds()
    minutes = int(seconds // 60)
    hours = int(seconds // 3600)
    days = int(seconds // 86400)

    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return _plural(minutes, "minute")
    if hours < 24:
        return _plural(hours, "hour")
    if days < 7:
        return _plural(days, "day")
    return timestamp.strftime("%Y-%m-%d")
