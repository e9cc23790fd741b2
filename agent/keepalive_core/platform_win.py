"""
Windows-specific functionality:
  - Named mutex primitive (single instance across sessions)
  - Elevated helper launch (UAC "runas" + wait for exit)
  - Admin check
"""

import os
import sys
import ctypes
import subprocess

from .constants import ELEVATED_FLAG
from .config import log

# WaitForSingleObject results
_WAIT_OBJECT_0 = 0x00000000
_WAIT_ABANDONED = 0x00000080
_WAIT_TIMEOUT = 0x00000102
_INFINITE = 0xFFFFFFFF

_ERROR_CANCELLED = 1223          # User declined the UAC prompt
_SEE_MASK_NOCLOSEPROCESS = 0x00000040
_SEE_MASK_NOASYNC = 0x00000100
_SW_HIDE = 0

LOCK_ACQUIRED = "acquired"
LOCK_ABANDONED = "abandoned"
LOCK_BUSY = "busy"


def _kernel32():
    k32 = ctypes.WinDLL("kernel32", use_last_error=True)
    k32.CreateMutexW.argtypes = [ctypes.c_void_p, ctypes.c_int, ctypes.c_wchar_p]
    k32.CreateMutexW.restype = ctypes.c_void_p
    k32.WaitForSingleObject.argtypes = [ctypes.c_void_p, ctypes.c_ulong]
    k32.WaitForSingleObject.restype = ctypes.c_ulong
    k32.ReleaseMutex.argtypes = [ctypes.c_void_p]
    k32.CloseHandle.argtypes = [ctypes.c_void_p]
    k32.GetExitCodeProcess.argtypes = [ctypes.c_void_p, ctypes.POINTER(ctypes.c_ulong)]
    return k32


# ─── Named mutex ─────────────────────────────────────────────────

class Win32MutexApi:
    """Thin wrapper over CreateMutexW / WaitForSingleObject / ReleaseMutex."""

    def __init__(self):
        self._k32 = _kernel32()

    def open(self, name):
        handle = self._k32.CreateMutexW(None, False, name)
        if not handle:
            raise ctypes.WinError(ctypes.get_last_error())
        return handle

    def try_lock(self, handle):
        """Zero-timeout wait. Returns LOCK_ACQUIRED, LOCK_ABANDONED or LOCK_BUSY."""
        rc = self._k32.WaitForSingleObject(handle, 0)
        if rc == _WAIT_OBJECT_0:
            return LOCK_ACQUIRED
        if rc == _WAIT_ABANDONED:
            return LOCK_ABANDONED
        if rc == _WAIT_TIMEOUT:
            return LOCK_BUSY
        raise ctypes.WinError(ctypes.get_last_error())

    def unlock(self, handle):
        if not self._k32.ReleaseMutex(handle):
            raise ctypes.WinError(ctypes.get_last_error())

    def close(self, handle):
        self._k32.CloseHandle(handle)


# ─── Elevated helper ─────────────────────────────────────────────

class _SHELLEXECUTEINFOW(ctypes.Structure):
    _fields_ = [
        ("cbSize",         ctypes.c_ulong),
        ("fMask",          ctypes.c_ulong),
        ("hwnd",           ctypes.c_void_p),
        ("lpVerb",         ctypes.c_wchar_p),
        ("lpFile",         ctypes.c_wchar_p),
        ("lpParameters",   ctypes.c_wchar_p),
        ("lpDirectory",    ctypes.c_wchar_p),
        ("nShow",          ctypes.c_int),
        ("hInstApp",       ctypes.c_void_p),
        ("lpIDList",       ctypes.c_void_p),
        ("lpClass",        ctypes.c_wchar_p),
        ("hkeyClass",      ctypes.c_void_p),
        ("dwHotKey",       ctypes.c_ulong),
        ("hIconOrMonitor", ctypes.c_void_p),
        ("hProcess",       ctypes.c_void_p),
    ]


def helper_command(argv=None, frozen=None, executable=None):
    """Return (file, parameters) that re-run this agent in registry mode."""
    argv = sys.argv if argv is None else argv
    frozen = getattr(sys, 'frozen', False) if frozen is None else frozen
    executable = executable or sys.executable

    if frozen:
        return executable, ELEVATED_FLAG
    script = os.path.abspath(argv[0]) if argv and argv[0] else ""
    # A module of this package (python -m ...) cannot run as a plain script
    in_package = os.path.dirname(script) == os.path.dirname(os.path.abspath(__file__))
    if script.endswith(".py") and not in_package:
        return executable, subprocess.list2cmdline([script, ELEVATED_FLAG])
    return executable, subprocess.list2cmdline(["-m", "keepalive_core.runner", ELEVATED_FLAG])


def wait_timeout_ms(timeout_sec):
    """WaitForSingleObject timeout for a helper wait of timeout_sec (None = forever)."""
    if timeout_sec is None:
        return _INFINITE
    return max(0, int(timeout_sec * 1000))


def launch_elevated_helper(file=None, parameters=None, timeout_sec=None):
    """
    Run the helper under the UAC consent prompt and wait for it to exit.

    Returns the helper's exit code, or None if the prompt was declined or
    the helper is still running after timeout_sec. There is no channel
    back from the helper; the caller polls the registry afterwards.
    """
    if file is None:
        file, parameters = helper_command()

    shell32 = ctypes.WinDLL("shell32", use_last_error=True)
    k32 = _kernel32()

    sei = _SHELLEXECUTEINFOW()
    sei.cbSize = ctypes.sizeof(sei)
    sei.fMask = _SEE_MASK_NOCLOSEPROCESS | _SEE_MASK_NOASYNC
    sei.lpVerb = "runas"
    sei.lpFile = file
    sei.lpParameters = parameters
    sei.nShow = _SW_HIDE

    log.info("Launching elevated helper: %s %s", file, parameters)
    if not shell32.ShellExecuteExW(ctypes.byref(sei)):
        err = ctypes.get_last_error()
        if err == _ERROR_CANCELLED:
            log.warning("Elevation prompt was declined")
            return None
        raise ctypes.WinError(err)

    if not sei.hProcess:
        return None
    try:
        rc = k32.WaitForSingleObject(sei.hProcess, wait_timeout_ms(timeout_sec))
        if rc == _WAIT_TIMEOUT:
            log.warning("Elevated helper still running after %.0fs, not waiting further", timeout_sec)
            return None
        code = ctypes.c_ulong(0)
        k32.GetExitCodeProcess(sei.hProcess, ctypes.byref(code))
        log.info("Elevated helper exited with code %d", code.value)
        return code.value
    finally:
        k32.CloseHandle(sei.hProcess)


def is_admin():
    try:
        return ctypes.windll.shell32.IsUserAnAdmin() != 0
    except Exception:
        return False
