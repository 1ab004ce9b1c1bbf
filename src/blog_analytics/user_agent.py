"""
User-Agent parsing for device class, browser and OS detection.

User-Agents are notoriously messy (Chrome claims to be Mozilla, Safari and
Chrome all at once), so detection is a set of ordered pattern tables
evaluated top-to-bottom where the first match wins.

Key Design Decisions:
- Check newer/specific browsers first (Edge before Chrome, Chrome before Safari)
- Check tablet patterns before mobile patterns (an iPad UA also says "Mobile")
- Return "Other" rather than guessing when nothing matches

Only the browser family, OS family and device class are stored on a visit.
"""

import re
from dataclasses import dataclass
from enum import Enum


class DeviceClass(str, Enum):
    """Device category stored on every visit."""
    DESKTOP = "desktop"
    MOBILE = "mobile"
    TABLET = "tablet"
    UNKNOWN = "unknown"


UNKNOWN = "Unknown"
OTHER = "Other"


@dataclass(frozen=True)
class UserAgentInfo:
    """
    Parsed user-agent information.

    Attributes:
        browser: Browser family name (Chrome, Firefox, Safari, etc.)
        os: Operating system family (Windows, macOS, iOS, Android, Linux)
        device_class: Device category (desktop, mobile, tablet, unknown)
    """
    browser: str = UNKNOWN
    os: str = UNKNOWN
    device_class: DeviceClass = DeviceClass.UNKNOWN


# =============================================================================
# BROWSER DETECTION PATTERNS
# =============================================================================
# Order matters! Specific browsers before generic ones.
# Each tuple: (regex, browser_name)

BROWSER_PATTERNS = [
    # Chromium-based browsers (check before Chrome)
    (r"Edg(?:e|A|iOS)?/\d+", "Edge"),
    (r"OPR/\d+", "Opera"),
    (r"Opera.*Version/\d+", "Opera"),
    (r"Opera Mini/\d+", "Opera"),
    (r"Vivaldi/\d+", "Vivaldi"),
    (r"Brave/\d+", "Brave"),
    (r"SamsungBrowser/\d+", "Samsung Internet"),
    (r"YaBrowser/\d+", "Yandex"),

    # Firefox variants
    (r"Firefox/\d+", "Firefox"),
    (r"FxiOS/\d+", "Firefox"),

    # Chrome variants (after other Chromium browsers)
    (r"CriOS/\d+", "Chrome"),
    (r"Chrome/\d+", "Chrome"),
    (r"Chromium/\d+", "Chromium"),

    # Safari (must come after Chrome which also contains Safari)
    (r"Version/\d+.*Safari", "Safari"),
    (r"Safari/\d+", "Safari"),

    # Legacy
    (r"MSIE \d+", "Internet Explorer"),
    (r"Trident.*rv:\d+", "Internet Explorer"),
]

# =============================================================================
# OS DETECTION PATTERNS
# =============================================================================
# Each tuple: (pattern, os_name)

OS_PATTERNS = [
    # Apple mobile before macOS (iOS UAs say "like Mac OS X")
    (r"iPhone|iPod", "iOS"),
    (r"iPad", "iPadOS"),
    (r"Macintosh|Mac OS X", "macOS"),

    # Android before Linux since Android contains Linux
    (r"Android", "Android"),

    (r"Windows Phone", "Windows Phone"),
    (r"Windows", "Windows"),

    (r"CrOS", "Chrome OS"),
    (r"Linux", "Linux"),
]

# =============================================================================
# DEVICE CLASS DETECTION
# =============================================================================

TABLET_INDICATORS = [
    r"iPad",
    r"Tablet",
    r"PlayBook",
    r"Kindle",
    r"Silk",
    r"Android(?!.*Mobile)",  # Android without Mobile = tablet
]

MOBILE_INDICATORS = [
    r"Mobile",
    r"iPhone",
    r"iPod",
    r"Android",
    r"BlackBerry",
    r"IEMobile",
    r"Opera Mini",
    r"Windows Phone",
]

DESKTOP_INDICATORS = [
    r"Windows NT",
    r"Macintosh",
    r"X11",
    r"CrOS",
    r"Linux",
]


def _detect_device_class(ua: str) -> DeviceClass:
    """Detect device class from user-agent string."""
    # Tablet first: iPads and Android tablets also match mobile patterns
    for pattern in TABLET_INDICATORS:
        if re.search(pattern, ua, re.IGNORECASE):
            return DeviceClass.TABLET

    for pattern in MOBILE_INDICATORS:
        if re.search(pattern, ua, re.IGNORECASE):
            return DeviceClass.MOBILE

    for pattern in DESKTOP_INDICATORS:
        if re.search(pattern, ua, re.IGNORECASE):
            return DeviceClass.DESKTOP

    return DeviceClass.UNKNOWN


def _detect_browser(ua: str) -> str:
    """Detect browser family from user-agent."""
    for pattern, browser_name in BROWSER_PATTERNS:
        if re.search(pattern, ua, re.IGNORECASE):
            return browser_name
    return OTHER


def _detect_os(ua: str) -> str:
    """Detect OS family from user-agent."""
    for pattern, os_name in OS_PATTERNS:
        if re.search(pattern, ua, re.IGNORECASE):
            return os_name
    return OTHER


def parse_user_agent(user_agent: str | None) -> UserAgentInfo:
    """
    Parse a user-agent string into structured information.

    Args:
        user_agent: The User-Agent header value

    Returns:
        UserAgentInfo with browser, OS, and device class

    Examples:
        >>> parse_user_agent("Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) Version/17.0 Mobile/15E148 Safari/604.1")
        UserAgentInfo(browser='Safari', os='iOS', device_class=<DeviceClass.MOBILE: 'mobile'>)
    """
    if not user_agent or not user_agent.strip():
        return UserAgentInfo()

    return UserAgentInfo(
        browser=_detect_browser(user_agent),
        os=_detect_os(user_agent),
        device_class=_detect_device_class(user_agent),
    )
