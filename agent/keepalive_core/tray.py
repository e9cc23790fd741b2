"""
Tray presence and the operator state machine.

ControlSurface holds the side effects of each operator action and is the
only writer of ControlState. TrayIcon is the pystray front end: its menu
enables Pause/Resume from the current state and its run() is the event
loop that keeps the process alive until Exit.
"""

import os
from pathlib import Path

from PIL import Image, ImageDraw

from .constants import AGENT_VERSION, APP_NAME
from .config import log, LOG_FILE, resource_path
from .state import RunState


def _open_with_shell(path):
    os.startfile(str(path))


class ControlSurface:
    """
    Operator actions:
      pause()     Running → Paused
      resume()    Paused  → Running
      exit()      Running/Paused → Stopping, hides tray, ends event loop
      open_log()  no state change
    Invalid actions are ignored and return False.
    """

    def __init__(self, state, log_file=LOG_FILE, open_file=None):
        self._state = state
        self._log_file = Path(log_file)
        self._open_file = open_file or _open_with_shell
        self._presenter = None

    def attach(self, presenter):
        """presenter: object with refresh(), hide(), stop(), notify(message)."""
        self._presenter = presenter

    @property
    def current(self) -> RunState:
        return self._state.current

    @property
    def pause_enabled(self) -> bool:
        return self._state.current is RunState.RUNNING

    @property
    def resume_enabled(self) -> bool:
        return self._state.current is RunState.PAUSED

    def pause(self) -> bool:
        if not self._state.pause():
            return False
        log.info("Paused by operator")
        self._refresh()
        return True

    def resume(self) -> bool:
        if not self._state.resume():
            return False
        log.info("Resumed by operator")
        self._refresh()
        return True

    def exit(self) -> bool:
        if not self._state.request_stop():
            return False
        log.info("Exit requested by operator")
        if self._presenter is not None:
            self._presenter.hide()
            self._presenter.stop()
        return True

    def open_log(self):
        if self._log_file.exists():
            try:
                self._open_file(self._log_file)
            except OSError as e:
                log.warning("Could not open log %s: %s", self._log_file, e)
                self.notify(f"Could not open log: {e}")
        else:
            log.warning("Log file not found: %s", self._log_file)
            self.notify(f"Log file not found: {self._log_file}")

    def notify(self, message):
        if self._presenter is not None:
            self._presenter.notify(message)

    def _refresh(self):
        if self._presenter is not None:
            self._presenter.refresh()


# ─── Icon image ──────────────────────────────────────────────────

def _find_icon(icon_path):
    """Resolve icon_path as given, then relative to the bundle."""
    if not icon_path:
        return None
    if Path(icon_path).is_file():
        return icon_path
    if not Path(icon_path).is_absolute():
        bundled = resource_path(icon_path)
        if Path(bundled).is_file():
            return bundled
    log.warning("Icon %s not found, using default", icon_path)
    return None


def load_icon_image(icon_path=""):
    """Use the configured icon file if present, else draw one."""
    icon_path = _find_icon(icon_path)
    if icon_path:
        try:
            return Image.open(icon_path)
        except OSError as e:
            log.warning("Cannot load icon %s: %s, using default", icon_path, e)

    img = Image.new("RGBA", (64, 64), (0, 0, 0, 0))
    draw = ImageDraw.Draw(img)
    draw.rounded_rectangle((6, 12, 58, 48), radius=8, fill=(15, 23, 42, 255),
                           outline=(59, 130, 246, 255), width=3)
    for x in range(14, 50, 9):
        draw.rectangle((x, 20, x + 5, 25), fill=(203, 213, 225, 255))
        draw.rectangle((x, 31, x + 5, 36), fill=(203, 213, 225, 255))
    draw.rectangle((20, 52, 44, 56), fill=(34, 197, 94, 255))
    return img


# ─── pystray front end ───────────────────────────────────────────

class TrayIcon:
    def __init__(self, surface, icon_path=""):
        self._surface = surface
        self._icon_path = icon_path
        self._icon = None
        surface.attach(self)

    def _tooltip(self):
        return f"{APP_NAME} ({self._surface.current.value})"

    def _build(self):
        import pystray
        from pystray import Menu, MenuItem as Item

        s = self._surface
        menu = Menu(
            Item(f"{APP_NAME} v{AGENT_VERSION}", lambda icon, item: None, enabled=False),
            Menu.SEPARATOR,
            Item("Pause", lambda icon, item: s.pause(), enabled=lambda item: s.pause_enabled),
            Item("Resume", lambda icon, item: s.resume(), enabled=lambda item: s.resume_enabled),
            Item("Open log", lambda icon, item: s.open_log()),
            Menu.SEPARATOR,
            Item("Exit", lambda icon, item: s.exit()),
        )
        return pystray.Icon(
            "ica_keepalive",
            icon=load_icon_image(self._icon_path),
            title=self._tooltip(),
            menu=menu,
        )

    def run(self, on_ready=None):
        """Blocks in the tray event loop until stop(). Call from main thread."""
        self._icon = self._build()

        def setup(icon):
            icon.visible = True
            if on_ready is not None:
                on_ready()

        self._icon.run(setup=setup)

    def refresh(self):
        if self._icon is None:
            return
        self._icon.title = self._tooltip()
        self._icon.update_menu()

    def hide(self):
        if self._icon is None:
            return
        try:
            self._icon.visible = False
        except Exception as e:
            log.debug("Tray already hidden: %s", e)

    def stop(self):
        if self._icon is not None:
            self._icon.stop()

    def notify(self, message):
        if self._icon is None:
            log.info("Notice (no tray): %s", message)
            return
        try:
            self._icon.notify(message, APP_NAME)
        except Exception as e:
            log.warning("Tray notification failed: %s — %s", e, message)

    def dispose(self):
        self.hide()
        self._icon = None
