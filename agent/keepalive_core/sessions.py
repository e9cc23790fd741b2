"""
Citrix ICA Client session capability (COM, pywin32).

Requires AllowSimulationAPI / AllowLiveMonitoring under the client's CCM
registry key; without them the enumeration calls fail.

COM objects are apartment-bound, so the client is entered on the thread
that uses it (the worker) and left there too.
"""

from contextlib import contextmanager

from .constants import ICA_CLIENT_PROGID
from .config import log


class CitrixSessionClient:
    def __init__(self, progid=ICA_CLIENT_PROGID):
        self._progid = progid
        self._ico = None
        self._pythoncom = None

    def __enter__(self):
        import pythoncom
        import win32com.client

        pythoncom.CoInitialize()
        self._pythoncom = pythoncom
        try:
            self._ico = win32com.client.Dispatch(self._progid)
            self._ico.OutputMode = 1    # Normal (no window output from the object)
        except Exception:
            pythoncom.CoUninitialize()
            self._pythoncom = None
            raise
        log.debug("ICA client object created (%s)", self._progid)
        return self

    def __exit__(self, exc_type, exc, tb):
        self._ico = None
        if self._pythoncom is not None:
            self._pythoncom.CoUninitialize()
            self._pythoncom = None
        return False

    @contextmanager
    def enumerate_sessions(self):
        """Yield the active session ids; the enum handle is always closed."""
        handle = self._ico.EnumerateCCMSessions()
        try:
            count = self._ico.GetEnumNameCount(handle)
            yield [self._ico.GetEnumNameByIndex(handle, i) for i in range(count)]
        finally:
            self._ico.CloseEnumHandle(handle)

    @contextmanager
    def monitored(self, session_id):
        """Attach to one session for input simulation."""
        self._ico.StartMonitoringCCMSession(session_id, True)
        try:
            yield
        finally:
            self._ico.StopMonitoringCCMSession(session_id)

    def send_key_down(self, session_id, keycode):
        self._ico.Session.Keyboard.SendKeyDown(keycode)

    def send_key_up(self, session_id, keycode):
        self._ico.Session.Keyboard.SendKeyUp(keycode)
