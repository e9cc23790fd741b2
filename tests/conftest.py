import logging
from contextlib import contextmanager

import pytest

from keepalive_core import config as config_module
from keepalive_core.platform_win import LOCK_ABANDONED, LOCK_ACQUIRED, LOCK_BUSY
from keepalive_core.singleton import SingletonGuard
from keepalive_core.state import RunState


# ─── Registry ────────────────────────────────────────────────────

class FakeRegistry:
    """In-memory HKLM: {path: {name: value}}."""

    def __init__(self, keys=None):
        self.keys = {path: dict(values) for path, values in (keys or {}).items()}
        self.writes = []
        self.fail_writes = set()

    def path_exists(self, path):
        return path in self.keys

    def read_value(self, path, name):
        return self.keys.get(path, {}).get(name)

    def write_value(self, path, name, value):
        if path not in self.keys:
            raise FileNotFoundError(path)
        if name in self.fail_writes:
            raise PermissionError(f"access denied: {name}")
        self.keys[path][name] = value
        self.writes.append((path, name, value))

    def create_path(self, path):
        self.keys.setdefault(path, {})


# ─── Named mutex ─────────────────────────────────────────────────

class FakeMutexWorld:
    """Machine-wide mutex table shared by several FakeMutexApi 'processes'."""

    def __init__(self):
        self.owners = {}
        self.abandoned = set()

    def crash(self, name):
        """Holder died without releasing."""
        self.owners.pop(name, None)
        self.abandoned.add(name)


class FakeMutexApi:
    def __init__(self, world=None):
        self.world = world or FakeMutexWorld()
        self.opened = 0
        self.closed = 0
        self.unlocked = 0

    def open(self, name):
        self.opened += 1
        return name

    def try_lock(self, handle):
        owner = self.world.owners.get(handle)
        if owner is not None and owner is not self:
            return LOCK_BUSY
        self.world.owners[handle] = self
        if handle in self.world.abandoned:
            self.world.abandoned.discard(handle)
            return LOCK_ABANDONED
        return LOCK_ACQUIRED

    def unlock(self, handle):
        self.unlocked += 1
        if self.world.owners.get(handle) is self:
            del self.world.owners[handle]

    def close(self, handle):
        self.closed += 1


# ─── Sessions ────────────────────────────────────────────────────

class RecordingSessions:
    def __init__(self, sessions=(), fail_on=(), enumerate_error=None,
                 enter_error=None, on_enumerate=None, on_key_down=None):
        self.sessions = list(sessions)
        self.fail_on = set(fail_on)
        self.enumerate_error = enumerate_error
        self.enter_error = enter_error
        self.on_enumerate = on_enumerate
        self.on_key_down = on_key_down
        self.calls = []
        self.enumerations = 0
        self.enum_closed = 0
        self.entered = False
        self.exited = False

    def __enter__(self):
        if self.enter_error is not None:
            raise self.enter_error
        self.entered = True
        return self

    def __exit__(self, exc_type, exc, tb):
        self.exited = True
        return False

    @contextmanager
    def enumerate_sessions(self):
        self.enumerations += 1
        if self.on_enumerate is not None:
            self.on_enumerate(self.enumerations)
        if self.enumerate_error is not None:
            raise self.enumerate_error
        try:
            yield list(self.sessions)
        finally:
            self.enum_closed += 1

    @contextmanager
    def monitored(self, session_id):
        self.calls.append(("start", session_id))
        try:
            yield
        finally:
            self.calls.append(("stop", session_id))

    def send_key_down(self, session_id, keycode):
        if session_id in self.fail_on:
            raise RuntimeError("session was torn down")
        self.calls.append(("down", session_id, keycode))
        if self.on_key_down is not None:
            self.on_key_down(session_id)

    def send_key_up(self, session_id, keycode):
        self.calls.append(("up", session_id, keycode))

    def keys_for(self, session_id):
        return [c[0] for c in self.calls if c[1] == session_id and c[0] in ("down", "up")]


# ─── Clock / run state ───────────────────────────────────────────

class FakeClock:
    def __init__(self, on_sleep=None):
        self.now = 0.0
        self.sleeps = []
        self.on_sleep = on_sleep

    def monotonic(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds
        if self.on_sleep is not None:
            self.on_sleep(self)


class ScriptedRunState:
    """RunStateView stand-in: flips to Stopping after N waits."""

    def __init__(self, stop_after_waits=1, paused=False):
        self.waits = []
        self.stop_after_waits = stop_after_waits
        self.paused = paused

    @property
    def is_stopping(self):
        return len(self.waits) >= self.stop_after_waits

    @property
    def is_paused(self):
        return self.paused and not self.is_stopping

    @property
    def current(self):
        if self.is_stopping:
            return RunState.STOPPING
        return RunState.PAUSED if self.paused else RunState.RUNNING

    def wait_for_stop(self, timeout):
        self.waits.append(timeout)
        return self.is_stopping


# ─── Tray ────────────────────────────────────────────────────────

class FakeTray:
    """Presenter double. run() calls on_ready, then the test's script."""

    script = None

    def __init__(self, surface, icon_path=""):
        self.surface = surface
        self.icon_path = icon_path
        self.events = []
        self.notices = []
        surface.attach(self)
        FakeTray.last = self

    def run(self, on_ready=None):
        self.events.append("run")
        if on_ready is not None:
            on_ready()
        if FakeTray.script is not None:
            FakeTray.script(self)

    def refresh(self):
        self.events.append("refresh")

    def hide(self):
        self.events.append("hide")

    def stop(self):
        self.events.append("stop")

    def notify(self, message):
        self.notices.append(message)

    def dispose(self):
        self.events.append("dispose")


class NoticeRecorder:
    def __init__(self):
        self.calls = []

    def __call__(self, message, error=False, **kwargs):
        self.calls.append((message, error))


# ─── Fixtures ────────────────────────────────────────────────────

@pytest.fixture(autouse=True)
def _isolate_process_state():
    SingletonGuard._held_names.clear()
    FakeTray.script = None
    yield
    SingletonGuard._held_names.clear()
    for handler in list(config_module._installed_handlers):
        config_module.log.removeHandler(handler)
        handler.close()
    config_module._installed_handlers.clear()
    config_module.log.setLevel(logging.NOTSET)


@pytest.fixture
def keepalive_caplog(caplog):
    caplog.set_level(logging.DEBUG, logger="keepalive")
    return caplog
