"""
ICA Keep-Alive — Desktop Agent
==============================
Keeps Citrix ICA sessions from disconnecting on idle by tapping a
harmless key (F15 by default) in every active session on a fixed
interval. Controlled from the tray: Pause, Resume, Open log, Exit.

The Citrix client only accepts simulated input when its CCM simulation
settings are enabled; on first run the agent asks for elevation once to
set them.

Usage:
    python keepalive.py [--config PATH]
"""

import sys

from keepalive_core.runner import main

if __name__ == "__main__":
    sys.exit(main())
