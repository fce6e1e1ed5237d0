"""
Well-known probe targets and quick-test presets.
"""

from dataclasses import dataclass
from typing import Dict, List

from .errors import InvalidArgument


@dataclass(frozen=True)
class KnownTarget:
    """Display metadata for a target."""
    address: str
    name: str
    location: str
    provider: str


KNOWN_TARGETS: Dict[str, KnownTarget] = {t.address: t for t in [
    KnownTarget("8.8.8.8",         "Google DNS Primary",   "USA",         "Google"),
    KnownTarget("8.8.4.4",         "Google DNS Secondary", "USA",         "Google"),
    KnownTarget("1.1.1.1",         "Cloudflare Primary",   "Global",      "Cloudflare"),
    KnownTarget("1.0.0.1",         "Cloudflare Secondary", "Global",      "Cloudflare"),
    KnownTarget("208.67.222.222",  "OpenDNS Primary",      "USA",         "Cisco"),
    KnownTarget("208.67.220.220",  "OpenDNS Secondary",    "USA",         "Cisco"),
    KnownTarget("9.9.9.9",         "Quad9",                "Switzerland", "Quad9"),
    KnownTarget("94.140.14.14",    "AdGuard DNS",          "Cyprus",      "AdGuard"),
    KnownTarget("76.76.19.19",     "Alternate DNS",        "USA",         "Alternate DNS"),
    KnownTarget("185.228.168.9",   "CleanBrowsing",        "USA",         "CleanBrowsing"),
    KnownTarget("google.com",      "Google",               "USA",         "Google"),
    KnownTarget("facebook.com",    "Facebook",             "USA",         "Meta"),
    KnownTarget("youtube.com",     "YouTube",              "USA",         "Google"),
    KnownTarget("twitter.com",     "Twitter/X",            "USA",         "X Corp"),
]}

DNS_SERVERS: List[str] = [
    "8.8.8.8",
    "1.1.1.1",
    "9.9.9.9",
    "208.67.222.222",
    "94.140.14.14",
    "76.76.19.19",
    "185.228.168.9",
]


def describe(target: str) -> KnownTarget:
    """Metadata for a target, falling back to the raw address."""
    known = KNOWN_TARGETS.get(target)
    if known:
        return known
    return KnownTarget(target, target, "Unknown", "")


@dataclass(frozen=True)
class Preset:
    count: int
    interval_ms: int
    gaming: bool = False


PRESETS: Dict[str, Preset] = {
    "fast":     Preset(count=5,  interval_ms=500),
    "normal":   Preset(count=10, interval_ms=1000),
    "thorough": Preset(count=25, interval_ms=1500),
    "gaming":   Preset(count=50, interval_ms=200, gaming=True),
}


def get_preset(name: str) -> Preset:
    try:
        return PRESETS[name]
    except KeyError:
        raise InvalidArgument(
            f"Unknown preset '{name}' (expected one of {', '.join(PRESETS)})"
        ) from None
