from .engine import NetPulseEngine, RunHandle
from .settings import Settings
from .sampler import Sampler
from .prober import Prober, Transport
from .comparator import Comparator, resort
from .sessions import SessionManager
from .latency_window import LatencyWindow
from .errors import NetPulseError, InvalidArgument, UnknownRun, TransportError
from .models import (
    FailureKind, RunMode, RunStatus, ProbeResult, Sample, StatsSnapshot, QualityScore,
    RunSummary, ComparisonResult, ComparisonReport, MonitoringSession, SessionUpdate,
    SessionSummary,
)

__all__ = [
    'NetPulseEngine',
    'RunHandle',
    'Settings',
    'Sampler',
    'Prober',
    'Transport',
    'Comparator',
    'resort',
    'SessionManager',
    'LatencyWindow',
    'NetPulseError',
    'InvalidArgument',
    'UnknownRun',
    'TransportError',
    'FailureKind',
    'RunMode',
    'RunStatus',
    'ProbeResult',
    'Sample',
    'StatsSnapshot',
    'QualityScore',
    'RunSummary',
    'ComparisonResult',
    'ComparisonReport',
    'MonitoringSession',
    'SessionUpdate',
    'SessionSummary',
]
