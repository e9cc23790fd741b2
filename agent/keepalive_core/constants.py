"""
Constants: version, registry locations, timing defaults, exit codes.
"""

AGENT_VERSION = "1.2.0"
APP_NAME = "ICA Keep-Alive"

# ─── Timing ──────────────────────────────────────────────────────
DEFAULT_INTERVAL_MS = 15000    # One keystroke pass every 15s
DEFAULT_KEYSTROKE = 126        # VK_F15, no visible effect in most apps
PAUSE_POLL_SEC = 1.0           # Re-check cadence while paused
KEY_SETTLE_SEC = 0.1           # Between key-down and key-up
WORKER_JOIN_SLACK_SEC = 5.0    # Added to the interval when joining the worker

CONVERGENCE_MAX_WAIT_SEC = 60.0
CONVERGENCE_POLL_SEC = 5.0

# ─── Registry ────────────────────────────────────────────────────
# The ICA client honours its simulation API only when both values are set.
# Both the 32-bit view and the native view carry a copy.
CCM_CONTAINER = "CCM"
CCM_BASE_PATHS = (
    r"SOFTWARE\WOW6432Node\Citrix\ICA Client",
    r"SOFTWARE\Citrix\ICA Client",
)
CCM_VALUES = {
    "AllowSimulationAPI": 1,
    "AllowLiveMonitoring": 1,
}

# ─── Process ─────────────────────────────────────────────────────
MUTEX_NAME = "Global\\ICAKeepAlive"
ELEVATED_FLAG = "--set-registry"
ICA_CLIENT_PROGID = "Citrix.ICAClient"

EXIT_OK = 0
EXIT_ALREADY_RUNNING = 1
EXIT_CONFIG_ERROR = 2
EXIT_CONVERGENCE_TIMEOUT = 3
EXIT_UNSUPPORTED_PLATFORM = 4

LOG_LEVELS = ("Verbose", "Info", "Warning", "Error")
