"""
Elevation handshake: make sure the ICA client's simulation settings are
in place before the agent starts.

The privileged helper is fire-and-forget: it writes the registry and
exits, with no IPC back to us. Convergence is observed by polling the
registry on a bounded schedule.
"""

import time

from .config import log
from .constants import CONVERGENCE_MAX_WAIT_SEC, CONVERGENCE_POLL_SEC
from .errors import ConvergenceTimeout
from .registry import CCM_KEY_SET, apply_key_set


class SystemClock:
    def monotonic(self):
        return time.monotonic()

    def sleep(self, seconds):
        time.sleep(seconds)


def ensure_converged(check, launch_helper,
                     max_wait=CONVERGENCE_MAX_WAIT_SEC,
                     poll_interval=CONVERGENCE_POLL_SEC,
                     clock=None):
    """
    Args:
        check:          zero-arg predicate, True when the registry is converged.
        launch_helper:  zero-arg callable that runs the elevated helper and
                        returns once it exited, was declined or timed out.
        max_wait:       total seconds allowed, helper run included. At least
                        one check follows the helper even if it used it all.
        poll_interval:  seconds between polls.
        clock:          object with monotonic() and sleep(); SystemClock by default.

    Raises:
        ConvergenceTimeout if the settings never appear within max_wait.
    """
    clock = clock or SystemClock()

    if check():
        log.info("Registry settings already in place")
        return

    log.info("Registry settings missing, requesting elevation")
    # The helper wait counts against max_wait
    deadline = clock.monotonic() + max_wait
    try:
        launch_helper()
    except OSError as e:
        # Polling still runs; another admin may have applied the settings.
        log.error("Elevated helper could not be launched: %s", e)

    polls = 0
    while True:
        polls += 1
        if check():
            log.info("Registry settings converged after %d poll(s)", polls)
            return
        remaining = deadline - clock.monotonic()
        if remaining <= 0:
            break
        clock.sleep(min(poll_interval, remaining))

    log.error("Registry settings did not converge within %.0fs", max_wait)
    raise ConvergenceTimeout(max_wait)


# ─── Elevated registry-setting mode ──────────────────────────────

def run_elevated_mode(registry, key_set=CCM_KEY_SET):
    """Body of the privileged helper run. Returns a process exit code."""
    log.info("Elevated mode: applying %d value(s) under %d location(s)",
             len(key_set.values), len(key_set.base_paths))
    failures = apply_key_set(registry, key_set)
    if failures:
        log.error("Elevated mode finished with %d failed write(s)", failures)
        return 1
    log.info("Elevated mode finished")
    return 0
