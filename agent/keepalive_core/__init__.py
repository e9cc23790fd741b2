"""
keepalive_core — ICA Keep-Alive agent
=====================================
Architecture: pystray event loop on the main thread, one worker thread.
The only state crossing threads is ControlState.

  constants.py    → Version, registry locations, timing, exit codes
  errors.py       → Exception taxonomy
  config.py       → Paths, logging, config load/save, helpers
  registry.py     → RegistryKeySet, winreg access, convergence check
  elevation.py    → Bounded elevate-and-poll handshake, registry mode
  platform_win.py → Windows: named mutex, UAC helper launch, admin check
  singleton.py    → SingletonGuard (one agent per machine)
  state.py        → RunState / ControlState (tray writes, worker reads)
  sessions.py     → Citrix ICA Client COM session access
  worker.py       → KeepAliveWorker (keystroke pass per interval)
  tray.py         → ControlSurface state machine + pystray TrayIcon
  popup.py        → Startup notices (Tk message boxes)
  app.py          → KeepAliveApp (startup gates, teardown order)
  runner.py       → main() + argument parsing
"""
