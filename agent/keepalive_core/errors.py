"""
Exception taxonomy.

Startup precondition failures (config, elevation, singleton) escalate to
process exit with a visible notice. Session-level failures never leave
the worker.
"""


class KeepAliveError(Exception):
    """Base class for all agent errors."""


class ConfigError(KeepAliveError):
    """Configuration file is unreadable or holds invalid values."""


class ConvergenceError(KeepAliveError):
    """Required registry settings could not be established."""


class ConvergenceTimeout(ConvergenceError):
    def __init__(self, max_wait):
        super().__init__(
            f"Registry settings did not converge within {max_wait:.0f}s"
        )
        self.max_wait = max_wait


class SingletonBusyError(KeepAliveError):
    def __init__(self, name):
        super().__init__(f"Another instance holds {name}")
        self.name = name


class SessionSimulationError(KeepAliveError):
    """A keystroke could not be delivered to one session."""

    def __init__(self, session_id, cause):
        super().__init__(f"Session {session_id}: {cause}")
        self.session_id = session_id
        self.cause = cause


class WorkerFatalError(KeepAliveError):
    """Session enumeration itself failed; the worker loop stops."""
