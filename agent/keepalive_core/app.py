"""
KeepAliveApp — startup gates, the two concurrent units, and teardown.

Startup (sequential, main thread):
  1. Singleton lease (non-blocking)       → busy: notice, exit, nothing touched
  2. Registry convergence / elevation     → timeout: notice, exit, no worker
Run:
  3. Tray event loop on the main thread; worker started once the tray is up
Teardown (always, in this order):
  signal worker → tray loop ended → join worker → dispose tray
  → release lease → final log line
"""

from .config import log, LOG_FILE
from .constants import (
    AGENT_VERSION, EXIT_ALREADY_RUNNING, EXIT_CONVERGENCE_TIMEOUT, EXIT_OK,
    WORKER_JOIN_SLACK_SEC,
)
from .elevation import ensure_converged
from .errors import ConvergenceTimeout, SingletonBusyError
from .popup import show_notice
from .registry import CCM_KEY_SET, is_converged
from .state import ControlState
from .tray import ControlSurface, TrayIcon
from .worker import KeepAliveWorker


class KeepAliveApp:
    def __init__(self, config, *, guard, registry, sessions, launch_helper,
                 tray_factory=TrayIcon, notice=show_notice, clock=None,
                 key_set=CCM_KEY_SET, log_file=LOG_FILE,
                 max_wait=None, poll_interval=None):
        self._config = config
        self._guard = guard
        self._registry = registry
        self._sessions = sessions
        self._launch_helper = launch_helper
        self._tray_factory = tray_factory
        self._notice = notice
        self._clock = clock
        self._key_set = key_set
        self._log_file = log_file
        self._wait_kwargs = {}
        if max_wait is not None:
            self._wait_kwargs["max_wait"] = max_wait
        if poll_interval is not None:
            self._wait_kwargs["poll_interval"] = poll_interval

        self.state = None
        self.worker = None
        self._surface = None
        self._tray = None

    def run(self) -> int:
        """Run the agent to completion. Returns a process exit code."""
        if not self._guard.try_acquire():
            log.warning("Another instance is already running. Exiting.")
            self._notice("ICA Keep-Alive is already running.")
            return EXIT_ALREADY_RUNNING

        try:
            return self._run_with_lease()
        finally:
            self._guard.release()
            log.info("Agent shut down.")

    def _run_with_lease(self) -> int:
        try:
            ensure_converged(
                lambda: is_converged(self._registry, self._key_set),
                self._elevate,
                clock=self._clock,
                **self._wait_kwargs,
            )
        except ConvergenceTimeout as e:
            self._notice(
                f"{e}.\n\nThe Citrix simulation settings (AllowSimulationAPI, "
                "AllowLiveMonitoring) must be enabled by an administrator.",
                error=True,
            )
            return EXIT_CONVERGENCE_TIMEOUT
        except SingletonBusyError as e:
            log.warning("Lease lost during elevation: %s", e)
            self._notice("ICA Keep-Alive was started again while elevating. Exiting.")
            return EXIT_ALREADY_RUNNING

        self.state = ControlState()
        self._surface = ControlSurface(self.state, log_file=self._log_file)
        self._tray = self._tray_factory(self._surface, self._config.icon_path)
        self.worker = KeepAliveWorker(
            self._config, self.state.view(), self._sessions,
            on_fatal=self._on_worker_fatal,
        )

        log.info("v%s started (interval=%dms, key=%d)",
                 AGENT_VERSION, self._config.interval_ms, self._config.keystroke)
        try:
            self._tray.run(on_ready=self.worker.start)
        finally:
            self.state.request_stop()
            if not self.worker.join(self._config.interval_sec + WORKER_JOIN_SLACK_SEC):
                log.warning("Worker did not stop in time — abandoning it")
            self._tray.dispose()
        return EXIT_OK

    def _elevate(self):
        """Run the helper without holding the lease, then take it back."""
        self._guard.release()
        try:
            self._launch_helper()
        finally:
            if not self._guard.try_acquire():
                raise SingletonBusyError(self._guard.name)

    def _on_worker_fatal(self, error):
        # Called on the worker thread; the tray stays up so Exit still works.
        self._surface.notify(f"Keep-alive stopped: {error}")
