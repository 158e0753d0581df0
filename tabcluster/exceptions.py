"""Exceptions raised by tabcluster.

Data-shape problems (bad URLs, malformed tree nodes, degenerate geometry)
never raise; they degrade to fallback values. Only programming and
configuration errors surface to the caller.
"""


class TabClusterError(Exception):
    """Base class for all tabcluster errors"""


class InvalidModeError(TabClusterError, ValueError):
    """Raised when a view mode name is not recognized"""

    def __init__(self, mode, available):
        self.mode = mode
        self.available = list(available)
        super().__init__(
            f"Unknown visualization mode: {mode!r} "
            f"(available: {', '.join(self.available)})"
        )


class ConfigError(TabClusterError, ValueError):
    """Raised for unknown configuration keys or out-of-range values"""
