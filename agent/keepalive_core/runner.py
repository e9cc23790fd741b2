"""
Entry point: argument parsing, mode selection, exit codes.
"""

import sys
import argparse
import functools

from .constants import (
    AGENT_VERSION, APP_NAME, CONVERGENCE_MAX_WAIT_SEC, ELEVATED_FLAG,
    EXIT_CONFIG_ERROR, EXIT_UNSUPPORTED_PLATFORM, MUTEX_NAME,
)
from .config import log, safe_print, load_config, setup_logging
from .errors import ConfigError
from .popup import show_notice


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="keepalive",
        description="Keeps Citrix ICA sessions from idling out.",
    )
    parser.add_argument("--config", metavar="PATH", help="configuration file (JSON)")
    parser.add_argument("--version", action="version", version=f"{APP_NAME} {AGENT_VERSION}")
    # Used only by the agent itself when it re-launches elevated
    parser.add_argument(ELEVATED_FLAG, dest="set_registry", action="store_true",
                        help=argparse.SUPPRESS)
    return parser.parse_args(argv)


def run_registry_mode():
    """Privileged helper: write the CCM settings and exit."""
    from .elevation import run_elevated_mode
    from .platform_win import is_admin
    from .registry import WinRegistry

    setup_logging("Info")
    if not is_admin():
        log.warning("Registry mode is running without administrator rights")
    try:
        return run_elevated_mode(WinRegistry())
    except OSError as e:
        log.error("Registry mode failed: %s", e)
        return 1


def main(argv=None):
    """Primary agent entry point. Returns the process exit code."""
    args = parse_args(argv)

    if sys.platform != "win32":
        message = f"{APP_NAME} requires Windows with the Citrix Workspace client."
        log.error(message)
        show_notice(message, error=True)
        return EXIT_UNSUPPORTED_PLATFORM

    if args.set_registry:
        return run_registry_mode()

    try:
        config = load_config(args.config)
    except ConfigError as e:
        setup_logging("Info")
        log.error("Configuration error: %s", e)
        show_notice(f"Configuration error:\n{e}", error=True)
        return EXIT_CONFIG_ERROR

    setup_logging(config.log_level)
    safe_print(f"{APP_NAME} v{AGENT_VERSION}")

    from .app import KeepAliveApp
    from .platform_win import launch_elevated_helper
    from .registry import WinRegistry
    from .sessions import CitrixSessionClient
    from .singleton import SingletonGuard

    app = KeepAliveApp(
        config,
        guard=SingletonGuard(MUTEX_NAME),
        registry=WinRegistry(),
        sessions=CitrixSessionClient(),
        # Never wait on the helper longer than the convergence budget
        launch_helper=functools.partial(launch_elevated_helper,
                                        timeout_sec=CONVERGENCE_MAX_WAIT_SEC),
    )
    try:
        return app.run()
    except Exception as e:
        log.error("Agent crashed: %s", e, exc_info=True)
        show_notice(f"{APP_NAME} stopped unexpectedly:\n{e}", error=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
