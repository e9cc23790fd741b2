"""
KeepAliveWorker — background thread that taps a key in every ICA session.

Each pass: enumerate sessions, then for each one key-down, settle,
key-up. One session failing is logged and skipped. Enumeration failing
stops the worker and is reported through on_fatal.

The worker never writes the run state. All its sleeps go through
RunStateView.wait_for_stop, so Exit is observed within one interval.
"""

import time
import threading

from .config import log
from .constants import KEY_SETTLE_SEC, PAUSE_POLL_SEC
from .errors import SessionSimulationError, WorkerFatalError


class KeepAliveWorker:
    def __init__(self, config, run_state, sessions, on_fatal=None,
                 settle_sec=KEY_SETTLE_SEC, pause_poll_sec=PAUSE_POLL_SEC,
                 sleep=time.sleep):
        self._config = config
        self._state = run_state
        self._sessions = sessions
        self._on_fatal = on_fatal
        self._settle_sec = settle_sec
        self._pause_poll_sec = pause_poll_sec
        self._sleep = sleep
        self._thread = None
        self.fatal_error = None
        self.passes = 0

    # ─── Thread lifecycle ────────────────────────────────────

    def start(self):
        self._thread = threading.Thread(target=self.run, name="keepalive-worker", daemon=True)
        self._thread.start()

    def join(self, timeout=None):
        """Wait for the worker. Returns True if it finished."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    # ─── Loop ────────────────────────────────────────────────

    def run(self):
        log.info("Worker started (interval=%dms, key=%d)",
                 self._config.interval_ms, self._config.keystroke)
        try:
            with self._sessions as client:
                self._loop(client)
        except WorkerFatalError as e:
            self._fail(e)
        except Exception as e:
            self._fail(WorkerFatalError(f"ICA client unavailable or worker failed: {e}"))
        log.info("Worker stopped after %d pass(es)", self.passes)

    def _fail(self, error):
        self.fatal_error = error
        log.error("Keep-alive worker stopped: %s", error)
        if self._on_fatal is not None:
            self._on_fatal(error)

    def _loop(self, client):
        while not self._state.is_stopping:
            if self._state.is_paused:
                self._state.wait_for_stop(self._pause_poll_sec)
                continue
            self.run_once(client)
            self._state.wait_for_stop(self._config.interval_sec)

    def run_once(self, client=None):
        """One pass over all active sessions. Returns the session count."""
        client = client or self._sessions
        # _simulate never raises, so anything escaping here is enumeration
        try:
            with client.enumerate_sessions() as session_ids:
                log.info("Active sessions: %d", len(session_ids))
                for session_id in session_ids:
                    # Pause or Exit mid-pass skips the remaining sessions
                    if self._state.is_paused or self._state.is_stopping:
                        log.debug("Pass interrupted (%s)", self._state.current.value)
                        break
                    self._simulate(client, session_id)
        except Exception as e:
            raise WorkerFatalError(f"Session enumeration failed: {e}") from e

        self.passes += 1
        return len(session_ids)

    def _simulate(self, client, session_id):
        """Key-down, settle, key-up for one session. Failures stay local."""
        keycode = self._config.keystroke
        log.debug("Session %s: key %d", session_id, keycode)
        try:
            with client.monitored(session_id):
                client.send_key_down(session_id, keycode)
                self._sleep(self._settle_sec)
                client.send_key_up(session_id, keycode)
        except Exception as e:
            log.warning("Keystroke skipped: %s", SessionSimulationError(session_id, e))
