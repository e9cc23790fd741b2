"""
Operator notices shown before (or without) a tray icon.

Each call creates and destroys its own hidden Tk root, so it is safe to
use on the startup path before any event loop exists.
"""

from .constants import APP_NAME
from .config import log, safe_print


def show_notice(message, error=False, title=APP_NAME):
    """Blocking message box. Falls back to stdout when Tk is unavailable."""
    try:
        import tkinter as tk
        from tkinter import messagebox

        root = tk.Tk()
        root.withdraw()
        root.attributes("-topmost", True)
        try:
            if error:
                messagebox.showerror(title, message, parent=root)
            else:
                messagebox.showinfo(title, message, parent=root)
        finally:
            root.destroy()
    except Exception as e:
        log.warning("Notice dialog unavailable (%s); message: %s", e, message)
        safe_print(f"{title}: {message}")
