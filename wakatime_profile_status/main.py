"""Main entry point for wakatime-profile-status.

This module handles the command-line interface (CLI), configuration loading,
logging setup, and the main loop. It builds the StatusOrchestrator and keeps
it running until a signal arrives.

Key Responsibilities:
    - CLI Argument Parsing: Handles --update-interval, --retry-attempts, --once, --serve, etc.
    - Signal Handling: Registers handlers for SIGINT/SIGTERM to ensure graceful shutdown.
    - Logging: Configures logging to stdout with optional rotating log file (10MB).
    - Startup/Shutdown Invariants: A missing secret aborts startup; on exit the
      orchestrator is stopped and its statistics are logged (via atexit and finally blocks).
"""

from __future__ import annotations

import argparse
import atexit
import logging
import os
import signal
import sys
import threading
from logging.handlers import RotatingFileHandler
from types import FrameType
from typing import List, Optional

from wakatime_profile_status import __version__
from wakatime_profile_status.config import ConfigurationError, load_config
from wakatime_profile_status.orchestrator import (
    EventKind,
    OrchestratorEvent,
    StatusOrchestrator,
    build_orchestrator,
)

# Logging configuration constants
LOG_FORMAT = '[%(asctime)s] [%(levelname)s] %(name)s: %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%dT%H:%M:%S'

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


def setup_logging(log_level: str, log_file: Optional[str]) -> None:
    """Configure the logging system.

    Sets up console logging (stdout) and optional file logging with rotation.

    Logging Practices:
        - **Levels**:
            - ``INFO``: Normal operations (startup, published statuses).
            - ``WARNING``: Recoverable issues (rate limits, unavailable activity data).
            - ``ERROR``: Failed publishes and unexpected exceptions.
            - ``DEBUG``: Detailed diagnostics (snapshots, payloads).
        - **Format**: ``[asctime] [levelname] name: message``
        - **Rotation**: Log files are rotated at 10MB (keeping 5 backups).
        - **Privacy**: API keys and tokens are never logged.

    Args:
        log_level (str): The logging level (e.g., "DEBUG", "INFO", "WARNING", "ERROR").
        log_file (Optional[str]): Optional path to a log file. Missing parent
            directories are created.

    Raises:
        ValueError: If the provided log_level is not a valid logging level.
    """
    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {log_level}")

    handlers: List[logging.Handler] = []
    formatter = logging.Formatter(
        LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT  # ISO 8601 format
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    handlers.append(console_handler)

    if log_file:
        try:
            log_dir = os.path.dirname(os.path.abspath(log_file))
            os.makedirs(log_dir, exist_ok=True)
            # Rotate at 10MB, keep 5 backups
            file_handler = RotatingFileHandler(log_file, maxBytes=10 * 1024 * 1024, backupCount=5)
            file_handler.setFormatter(formatter)
            handlers.append(file_handler)
        except Exception as e:
            # Logging isn't set up yet, so warn on stderr
            sys.stderr.write(f"Warning: Failed to setup log file '{log_file}': {e}\n")

    logging.basicConfig(level=numeric_level, handlers=handlers, force=True)


def log_statistics(orchestrator: Optional[StatusOrchestrator]) -> None:
    """Log the orchestrator's cycle counters and uptime."""
    if orchestrator is None:
        return
    stats = orchestrator.get_statistics()
    m, s = divmod(int(stats.get("uptime", 0.0)), 60)
    h, m = divmod(m, 60)
    logger.info(
        f"Cycles={stats['cycles_run']}, Succeeded={stats['cycles_succeeded']}, "
        f"Failed={stats['cycles_failed']}, Skipped={stats['cycles_skipped']}, "
        f"Uptime={h:02d}:{m:02d}:{s:02d}"
    )


def _log_event(event: OrchestratorEvent) -> None:
    if event.kind is EventKind.CYCLE_FAILED:
        logger.warning(f"Update cycle failed: {event.error}")
    elif event.kind is EventKind.CYCLE_SUCCEEDED and event.status is not None:
        logger.debug(f"Update cycle succeeded: {event.status.emoji} {event.status.text}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Publish today's WakaTime coding activity as a profile status."
    )
    parser.add_argument(
        "--update-interval", type=float, default=None, help="Seconds between update cycles (default: 300)."
    )
    parser.add_argument(
        "--max-status-length", type=int, default=None, help="Maximum status text length (default: 80)."
    )
    parser.add_argument(
        "--progress-bar-length", type=int, default=None, help="Progress bar width in glyphs (default: 10)."
    )
    parser.add_argument(
        "--retry-attempts", type=int, default=None, help="Total tries when WakaTime rate-limits (default: 3)."
    )
    parser.add_argument(
        "--daily-goal-seconds", type=int, default=None, help="Daily coding goal in seconds (default: 28800)."
    )
    parser.add_argument(
        "--activity-window",
        type=float,
        default=None,
        help="Seconds since the last heartbeat that still count as active (default: 60).",
    )
    parser.add_argument(
        "--animation",
        type=str,
        default=None,
        help="Animate the time icon while coding: none, pulse, wave, rotate (default: none).",
    )
    parser.add_argument(
        "--testing", action="store_const", const=True, default=None,
        help="Run in testing mode (log statuses instead of publishing them).",
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging (overrides --log-level)."
    )
    parser.add_argument(
        "--log-file", type=str, default=None, help="Path to the log file."
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Logging level (DEBUG, INFO, WARNING, ERROR). Default: INFO",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--once", action="store_true", help="Run a single update cycle and exit."
    )
    mode.add_argument(
        "--serve", action="store_true", help="Serve the HTTP trigger endpoint instead of looping."
    )
    parser.add_argument(
        "--host", type=str, default="127.0.0.1", help="Host for --serve (default: 127.0.0.1)."
    )
    parser.add_argument(
        "--http-port", type=int, default=8080, help="Port for --serve (default: 8080)."
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    return parser


def serve(host: str, port: int, log_level: str) -> None:
    """Run the HTTP trigger application under uvicorn."""
    import uvicorn

    from wakatime_profile_status.handler import create_app

    uvicorn.run(create_app(), host=host, port=port, log_level=log_level.lower())


def main(argv: Optional[List[str]] = None) -> None:
    """Execute the main application logic.

    Parse command-line arguments, load configuration, set up logging, and run
    the status updater until SIGINT/SIGTERM. With ``--once`` a single cycle
    runs and the exit status reports its outcome; with ``--serve`` the HTTP
    trigger endpoint is served instead.

    Raises:
        SystemExit: If configuration is invalid, a single cycle failed (code 1),
            or a fatal error occurs during startup (code 1).

    Example:
        $ WAKATIME_API_KEY=... GITHUB_TOKEN=... wakatime-profile-status --update-interval 600
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    # Bootstrap logging to capture config loading events
    bootstrap_formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    bootstrap_handler = logging.StreamHandler(sys.stdout)
    bootstrap_handler.setFormatter(bootstrap_formatter)
    bootstrap_level = logging.DEBUG if args.debug else logging.INFO
    logging.basicConfig(level=bootstrap_level, handlers=[bootstrap_handler], force=True)

    try:
        config = load_config(vars(args))
        logger.debug(f"Configuration loaded: {config}")
        setup_logging(config.log_level, config.log_file)
    except ConfigurationError as e:
        sys.exit(f"Configuration Error: {e}")
    except Exception as e:
        sys.exit(f"Startup Error: {e}")

    logger.info(f"Starting wakatime-profile-status v{__version__} (PID: {os.getpid()})...")
    if config.testing:
        logger.info("Testing mode: statuses are logged, not published.")

    if args.serve:
        serve(args.host, args.http_port, config.log_level)
        return

    orchestrator: Optional[StatusOrchestrator] = None

    def cleanup() -> None:
        """Stop the orchestrator, log its statistics and release the clients.

        Registered via `atexit` and also called from the `finally` block;
        exceptions are logged so the process can exit cleanly.
        """
        nonlocal orchestrator
        if orchestrator is None:
            return
        current, orchestrator = orchestrator, None
        log_statistics(current)
        try:
            current.close()
        except Exception as e:
            logger.error(f"Error closing orchestrator: {e}")

    atexit.register(cleanup)

    try:
        orchestrator = build_orchestrator(config)
        orchestrator.subscribe(_log_event)

        if args.once:
            success = orchestrator.run_cycle()
            cleanup()
            if not success:
                sys.exit(1)
            return

        def signal_handler(sig: int, frame: Optional[FrameType]) -> None:
            """Handle SIGINT/SIGTERM by stopping the orchestrator."""
            sig_name = signal.Signals(sig).name
            logger.info(f"Received signal {sig_name}, shutting down...")
            if orchestrator is not None:
                orchestrator.stop()

        if threading.current_thread() is threading.main_thread():
            signal.signal(signal.SIGINT, signal_handler)
            signal.signal(signal.SIGTERM, signal_handler)

        orchestrator.start()

        # Main loop: block until a signal stops the orchestrator
        orchestrator.wait()

    except KeyboardInterrupt:
        logger.info("KeyboardInterrupt received, stopping...")
    except Exception as e:
        logger.critical(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)
    finally:
        cleanup()
        atexit.unregister(cleanup)


if __name__ == "__main__":
    main()
