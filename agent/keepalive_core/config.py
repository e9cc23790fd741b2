"""
Paths, logging setup, config load/save, safe_print, resource_path.
"""

import os
import sys
import json
import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path

from .constants import DEFAULT_INTERVAL_MS, DEFAULT_KEYSTROKE, LOG_LEVELS
from .errors import ConfigError


# ─── Paths ───────────────────────────────────────────────────────
# Config is per user; the log lives in the per-user temp folder so
# operators can find it without knowing the install location.
_FOLDER_NAME = "ICAKeepAlive"

if sys.platform == "win32":
    BASE_DIR = Path(os.environ.get("LOCALAPPDATA", Path.home() / "AppData" / "Local")) / _FOLDER_NAME
else:
    BASE_DIR = Path(__file__).parent.parent

CONFIG_FILE = BASE_DIR / "config.json"
LOG_FILE = Path(tempfile.gettempdir()) / "ICAKeepAlive.log"


def resource_path(relative_path):
    """Get path to bundled resource (works for both dev and PyInstaller)."""
    if getattr(sys, 'frozen', False):
        base = Path(sys._MEIPASS)
    else:
        base = Path(__file__).parent.parent
    return str(base / relative_path)


# ─── Safe print (no crash when --noconsole) ──────────────────────

def safe_print(*args, **kwargs):
    try:
        print(*args, **kwargs)
    except Exception:
        pass


# ─── Logging ─────────────────────────────────────────────────────

_LEVEL_NAMES = {
    logging.DEBUG: "Verbose",
    logging.INFO: "Info",
    logging.WARNING: "Warning",
    logging.ERROR: "Error",
    logging.CRITICAL: "Error",
}

_LEVELS_BY_NAME = {
    "Verbose": logging.DEBUG,
    "Info": logging.INFO,
    "Warning": logging.WARNING,
    "Error": logging.ERROR,
}

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


class LevelFormatter(logging.Formatter):
    """Renders level names as Verbose/Info/Warning/Error."""

    def format(self, record):
        original = record.levelname
        record.levelname = _LEVEL_NAMES.get(record.levelno, original.capitalize())
        try:
            return super().format(record)
        finally:
            record.levelname = original


log = logging.getLogger("keepalive")
_installed_handlers = []


def setup_logging(level_name="Info", log_file=None):
    """Attach the file (and console) handler. Safe to call more than once."""
    for handler in _installed_handlers:
        log.removeHandler(handler)
        handler.close()
    _installed_handlers.clear()

    level = _LEVELS_BY_NAME.get(level_name, logging.INFO)
    formatter = LevelFormatter(LOG_FORMAT, datefmt=LOG_DATEFMT)

    file_handler = logging.FileHandler(
        str(log_file or LOG_FILE), mode="a", encoding="utf-8"
    )
    file_handler.setFormatter(formatter)
    _installed_handlers.append(file_handler)

    # pythonw.exe has no stdout
    if sys.stdout is not None:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        _installed_handlers.append(console_handler)

    for handler in _installed_handlers:
        handler.setLevel(level)
        log.addHandler(handler)
    log.setLevel(level)
    return file_handler


# ─── Config Management ──────────────────────────────────────────

@dataclass(frozen=True)
class AgentConfig:
    interval_ms: int = DEFAULT_INTERVAL_MS
    keystroke: int = DEFAULT_KEYSTROKE
    log_level: str = "Info"
    icon_path: str = ""

    @property
    def interval_sec(self) -> float:
        return self.interval_ms / 1000.0

    @classmethod
    def from_dict(cls, data):
        """Validate a decoded config document. Raises ConfigError."""
        if not isinstance(data, dict):
            raise ConfigError("Config must be a JSON object")

        interval = data.get("Interval", DEFAULT_INTERVAL_MS)
        if isinstance(interval, bool) or not isinstance(interval, int) or interval <= 0:
            raise ConfigError(f"Interval must be a positive integer (ms), got {interval!r}")

        keystroke = data.get("Keystroke", DEFAULT_KEYSTROKE)
        if isinstance(keystroke, bool) or not isinstance(keystroke, int) or not 1 <= keystroke <= 254:
            raise ConfigError(f"Keystroke must be a virtual key code 1-254, got {keystroke!r}")

        level = data.get("LogLevel", "Info")
        if level not in LOG_LEVELS:
            raise ConfigError(
                f"LogLevel must be one of {', '.join(LOG_LEVELS)}, got {level!r}"
            )

        icon_path = data.get("IconPath", "")
        if not isinstance(icon_path, str):
            raise ConfigError(f"IconPath must be a string, got {icon_path!r}")

        return cls(
            interval_ms=interval,
            keystroke=keystroke,
            log_level=level,
            icon_path=icon_path,
        )

    def to_dict(self):
        return {
            "Interval": self.interval_ms,
            "Keystroke": self.keystroke,
            "LogLevel": self.log_level,
            "IconPath": self.icon_path,
        }


def load_config(path=None):
    """Load config from disk, writing defaults on first run.

    Raises ConfigError if the file exists but cannot be used.
    """
    path = Path(path) if path else CONFIG_FILE
    if not path.exists():
        config = AgentConfig()
        try:
            save_config(config, path)
        except OSError as e:
            log.warning("Could not write default config to %s: %s", path, e)
        return config

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e
    return AgentConfig.from_dict(data)


def save_config(config, path=None):
    """Save an AgentConfig to disk."""
    path = Path(path) if path else CONFIG_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(config.to_dict(), f, indent=2)
    log.info("Config saved to %s", path)
