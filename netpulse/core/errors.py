"""
Engine exceptions.
Per-probe failures are data (failed Samples), not exceptions; only bad
configuration and unknown handles surface to callers.
"""


class NetPulseError(Exception):
    """Base class for engine errors."""


class InvalidArgument(NetPulseError, ValueError):
    """Rejected configuration: empty target, non-positive count, interval too short."""


class UnknownRun(NetPulseError, KeyError):
    """No run is registered under the given handle."""


class TransportError(NetPulseError):
    """A transport could not complete a round trip for a reason other than timeout."""
