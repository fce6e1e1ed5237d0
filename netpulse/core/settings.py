"""
Settings Manager
JSON-based engine configuration with defaults
"""

import json
from pathlib import Path
from typing import Any, Optional

from loguru import logger


class Settings:
    """Engine settings: defaults, then settings.json, then keyword overrides."""

    DEFAULTS = {
        'timeout_ms': 2000,
        'interval_ms': 1000,
        'min_interval_ms': 100,     # floor against runaway loops
        'window_size': 50,          # display window K
        'max_concurrent': 5,        # comparator fan-out
        'tests_per_target': 10,
        'transports': ['icmp', 'http'],
        'tcp_port': 443,
        'http_method': 'HEAD',
        'gaming_mode': False,
        'server_host': '0.0.0.0',
        'server_port': 3001,
        'log_level': 'INFO',
        'log_dir': 'data/logs',
    }

    def __init__(self, data_dir: Optional[Path] = None, **overrides: Any):
        """Initialize settings."""
        self.data_dir = Path(data_dir) if data_dir is not None else None
        self.file = self.data_dir / "settings.json" if self.data_dir else None
        self.data = dict(self.DEFAULTS)

        self._load()

        unknown = set(overrides) - set(self.DEFAULTS)
        if unknown:
            raise KeyError(f"Unknown settings: {', '.join(sorted(unknown))}")
        self.data.update(overrides)

    def get(self, key: str, default: Any = None) -> Any:
        """Get setting value."""
        return self.data.get(key, default)

    def set(self, key: str, value: Any):
        """Set setting value for this process."""
        self.data[key] = value

    def __getitem__(self, key: str) -> Any:
        return self.data[key]

    def _load(self):
        """Load from file."""
        if self.file is None or not self.file.exists():
            return
        try:
            with open(self.file, 'r') as f:
                loaded = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable settings file {self.file}: {e}")
            return

        if not isinstance(loaded, dict):
            logger.warning(f"Ignoring settings file {self.file}: expected an object")
            return

        for key in set(loaded) - set(self.DEFAULTS):
            logger.warning(f"Unknown setting '{key}' in {self.file}")
            loaded.pop(key)
        self.data.update(loaded)
        logger.debug(f"Settings loaded from {self.file}")
