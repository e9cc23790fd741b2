"""
ControlState — the one value shared between the tray thread and the worker.

The tray (control surface) is the only writer; the worker reads it
through RunStateView. Stopping is terminal and also sets an Event so the
worker's sleeps end as soon as exit is requested.
"""

import enum
import threading


class RunState(enum.Enum):
    RUNNING = "Running"
    PAUSED = "Paused"
    STOPPING = "Stopping"


class ControlEvent(enum.Enum):
    PAUSE = "pause"
    RESUME = "resume"
    EXIT = "exit"


_TRANSITIONS = {
    (RunState.RUNNING, ControlEvent.PAUSE): RunState.PAUSED,
    (RunState.PAUSED, ControlEvent.RESUME): RunState.RUNNING,
    (RunState.RUNNING, ControlEvent.EXIT): RunState.STOPPING,
    (RunState.PAUSED, ControlEvent.EXIT): RunState.STOPPING,
}


class ControlState:
    def __init__(self):
        self._lock = threading.Lock()
        self._state = RunState.RUNNING
        self._stopping = threading.Event()

    @property
    def current(self) -> RunState:
        with self._lock:
            return self._state

    def apply(self, event: ControlEvent) -> bool:
        """Apply an operator event. Returns False if it is not valid now."""
        with self._lock:
            nxt = _TRANSITIONS.get((self._state, event))
            if nxt is None:
                return False
            self._state = nxt
        if nxt is RunState.STOPPING:
            self._stopping.set()
        return True

    def pause(self) -> bool:
        return self.apply(ControlEvent.PAUSE)

    def resume(self) -> bool:
        return self.apply(ControlEvent.RESUME)

    def request_stop(self) -> bool:
        return self.apply(ControlEvent.EXIT)

    def wait_for_stop(self, timeout) -> bool:
        """Sleep up to timeout seconds; returns True as soon as Stopping is set."""
        return self._stopping.wait(timeout)

    def view(self):
        return RunStateView(self)


class RunStateView:
    """Read-only access for the worker."""

    def __init__(self, state: ControlState):
        self._state = state

    @property
    def current(self) -> RunState:
        return self._state.current

    @property
    def is_paused(self) -> bool:
        return self._state.current is RunState.PAUSED

    @property
    def is_stopping(self) -> bool:
        return self._state.current is RunState.STOPPING

    def wait_for_stop(self, timeout) -> bool:
        return self._state.wait_for_stop(timeout)
