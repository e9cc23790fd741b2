"""
Registry key set, winreg-backed registry access, convergence predicate.

The predicate is pure with respect to the registry object it is given,
so tests pass an in-memory registry with the same four methods.
"""

from dataclasses import dataclass, field
from typing import Mapping, Tuple

from .constants import CCM_BASE_PATHS, CCM_CONTAINER, CCM_VALUES
from .config import log


@dataclass(frozen=True)
class RegistryKeySet:
    """Expected DWORD values, applied under every base location."""

    values: Mapping[str, int] = field(default_factory=lambda: dict(CCM_VALUES))
    container: str = CCM_CONTAINER
    base_paths: Tuple[str, ...] = CCM_BASE_PATHS

    def container_path(self, base):
        return base + "\\" + self.container


CCM_KEY_SET = RegistryKeySet()


# ─── winreg backend ──────────────────────────────────────────────

class WinRegistry:
    """HKLM access through the 64-bit view so WOW6432Node paths are literal."""

    def __init__(self, hive=None):
        import winreg
        self._winreg = winreg
        self._hive = winreg.HKEY_LOCAL_MACHINE if hive is None else hive
        self._view = winreg.KEY_WOW64_64KEY

    def path_exists(self, path):
        winreg = self._winreg
        try:
            key = winreg.OpenKey(self._hive, path, 0, winreg.KEY_READ | self._view)
        except FileNotFoundError:
            return False
        winreg.CloseKey(key)
        return True

    def read_value(self, path, name):
        """Return the value, or None when the key or value is absent."""
        winreg = self._winreg
        try:
            key = winreg.OpenKey(self._hive, path, 0, winreg.KEY_READ | self._view)
        except FileNotFoundError:
            return None
        try:
            value, _ = winreg.QueryValueEx(key, name)
            return value
        except FileNotFoundError:
            return None
        finally:
            winreg.CloseKey(key)

    def write_value(self, path, name, value):
        winreg = self._winreg
        key = winreg.OpenKey(self._hive, path, 0, winreg.KEY_SET_VALUE | self._view)
        try:
            winreg.SetValueEx(key, name, 0, winreg.REG_DWORD, int(value))
        finally:
            winreg.CloseKey(key)

    def create_path(self, path):
        winreg = self._winreg
        key = winreg.CreateKeyEx(self._hive, path, 0, winreg.KEY_WRITE | self._view)
        winreg.CloseKey(key)


# ─── Convergence ─────────────────────────────────────────────────

def is_converged(registry, key_set=CCM_KEY_SET):
    """
    True iff every existing base location has its container with every
    expected value. Base locations that do not exist are skipped, so the
    result is vacuously True when none exist.
    """
    for base in key_set.base_paths:
        if not registry.path_exists(base):
            log.debug("Registry base %s not present — skipped", base)
            continue

        container = key_set.container_path(base)
        if not registry.path_exists(container):
            log.debug("Registry container %s missing", container)
            return False

        for name, expected in key_set.values.items():
            actual = registry.read_value(container, name)
            if actual != expected:
                log.debug("%s\\%s = %r (expected %r)", container, name, actual, expected)
                return False
    return True


def apply_key_set(registry, key_set=CCM_KEY_SET):
    """
    Write the key set under every existing base location.
    Returns the number of values that could not be written; a failed
    write is logged and the remaining writes continue.
    """
    failures = 0
    for base in key_set.base_paths:
        if not registry.path_exists(base):
            log.info("Registry base %s not present — skipped", base)
            continue

        container = key_set.container_path(base)
        try:
            registry.create_path(container)
        except OSError as e:
            log.error("Cannot create %s: %s", container, e)
            failures += len(key_set.values)
            continue

        for name, value in key_set.values.items():
            try:
                registry.write_value(container, name, value)
                log.info("Set %s\\%s = %d", container, name, value)
            except OSError as e:
                log.error("Cannot set %s\\%s: %s", container, name, e)
                failures += 1
    return failures
