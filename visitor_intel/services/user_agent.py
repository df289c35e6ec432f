"""
Coarse user-agent classification for visitor listings
"""

from typing import Dict


def parse_browser(user_agent: str = "") -> str:
    # Edge and Opera also advertise Chrome, check them first
    if "Edg" in user_agent:
        return "Edge"
    if "OPR" in user_agent or "Opera" in user_agent:
        return "Opera"
    if "Chrome" in user_agent:
        return "Chrome"
    if "Firefox" in user_agent:
        return "Firefox"
    if "Safari" in user_agent:
        return "Safari"
    return "Unknown"


def parse_device(user_agent: str = "") -> str:
    if "iPad" in user_agent or "Tablet" in user_agent:
        return "Tablet"
    if "Mobile" in user_agent or "Android" in user_agent:
        return "Mobile"
    return "Desktop"


def parse_os(user_agent: str = "") -> str:
    if "Windows" in user_agent:
        return "Windows"
    if "Android" in user_agent:
        return "Android"
    if "iPhone" in user_agent or "iPad" in user_agent:
        return "iOS"
    if "Mac OS" in user_agent:
        return "macOS"
    if "Linux" in user_agent:
        return "Linux"
    return "Unknown"


def classify_user_agent(user_agent: str = "") -> Dict[str, str]:
    user_agent = user_agent or ""
    return {
        "browser": parse_browser(user_agent),
        "device": parse_device(user_agent),
        "os": parse_os(user_agent),
    }
