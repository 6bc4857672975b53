#!/usr/bin/env python3
"""SleepGuard - Main Entry Point.

Initializes all components, serves the HTTP API and runs the auto-tracking
scheduler.

Usage:
    python -m sleepguard.main [--config CONFIG] [--debug] [--mock] [--track]

The service records breathing audio from the microphone, classifies short
windows as normal or apnea-like events, and keeps per-session statistics.
Without a usable microphone it falls back to simulated events.
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

import uvicorn

from sleepguard.api.server import create_app
from sleepguard.config import Settings, load_settings
from sleepguard.errors import SessionAlreadyActiveError
from sleepguard.persistence.database import Database
from sleepguard.scheduler import AutoScheduler
from sleepguard.tracking import TrackingController, build_controller

logger = logging.getLogger(__name__)


def setup_logging(settings: Settings, debug: bool = False) -> None:
    """Configure logging based on settings.

    Args:
        settings: Root settings object
        debug: Enable debug mode
    """
    # Determine log level
    level = logging.DEBUG if debug else getattr(
        logging, settings.logging.level.upper(), logging.INFO
    )

    # Create formatter
    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # File handler (if configured)
    if settings.logging.file:
        log_dir = os.path.dirname(settings.logging.file)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir)

        file_handler = RotatingFileHandler(
            settings.logging.file,
            maxBytes=settings.logging.max_size_mb * 1024 * 1024,
            backupCount=settings.logging.backup_count,
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Reduce verbosity of some noisy libraries
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    logger.info(f"Logging configured (level: {logging.getLevelName(level)})")


class SleepGuardApp:
    """Main application class for SleepGuard.

    Coordinates all components and manages the application lifecycle.
    """

    def __init__(
        self,
        config_path: Optional[str] = None,
        debug: bool = False,
        mock: bool = False,
        track: bool = False,
        host: Optional[str] = None,
        port: Optional[int] = None,
    ):
        """Initialize the application.

        Args:
            config_path: Path to configuration file (None searches defaults)
            debug: Enable debug logging
            mock: Force mock microphone regardless of config
            track: Start a tracking session immediately
            host: Override server host
            port: Override server port
        """
        self.config_path = config_path
        self.debug = debug
        self.force_mock = mock
        self.track_on_start = track
        self.host = host
        self.port = port

        # Components (initialized in start())
        self.settings: Optional[Settings] = None
        self.database: Optional[Database] = None
        self.controller: Optional[TrackingController] = None
        self.scheduler: Optional[AutoScheduler] = None
        self.server: Optional[uvicorn.Server] = None

        # Control
        self._running = False

    async def start(self) -> None:
        """Start the service and run until stopped."""
        self.settings = load_settings(self.config_path)

        # Override mock mode if requested
        if self.force_mock:
            self.settings.mock_mode = True

        # Set up logging
        setup_logging(self.settings, self.debug)

        logger.info("=" * 50)
        logger.info("SleepGuard Starting")
        logger.info("=" * 50)
        logger.info(f"Mock mode: {self.settings.mock_mode}")

        await self._initialize_components()

        self._running = True
        try:
            await self._run()
        finally:
            await self._shutdown()

    async def _initialize_components(self) -> None:
        """Initialize all system components."""
        logger.info("Initializing components...")
        settings = self.settings
        settings.ensure_directories()

        # Database
        logger.info("  - Database")
        self.database = Database(str(settings.database_path), str(settings.recordings_dir))
        await self.database.initialize()

        # Tracking controller
        logger.info("  - Tracking Controller")
        self.controller = build_controller(settings, self.database)

        retention = self.controller.user_settings.settings.data_retention_days
        await self.database.cleanup_old_data(sessions_days=retention)

        # Scheduler
        logger.info("  - Auto Scheduler")
        self.scheduler = AutoScheduler(
            self.controller,
            self.controller.user_settings,
            check_interval_seconds=settings.tracking.schedule_check_seconds,
        )

        # Web Server
        logger.info("  - Web Server")
        web_app = create_app(controller=self.controller, database=self.database)
        self.server = uvicorn.Server(uvicorn.Config(
            web_app,
            host=self.host or settings.server.host,
            port=self.port or settings.server.port,
            log_level=settings.server.log_level,
        ))

        await self.database.log_event(
            "system_start",
            "SleepGuard starting",
            {"mock_mode": settings.mock_mode},
        )
        logger.info("All components initialized")

    async def _run(self) -> None:
        """Resume or start tracking, then serve until the server exits."""
        if await self.controller.resume():
            logger.info("Resumed interrupted tracking session")
        elif self.track_on_start:
            try:
                await self.controller.start_tracking()
            except SessionAlreadyActiveError:
                pass

        scheduler_task = asyncio.create_task(self.scheduler.run())
        try:
            await self.server.serve()
        except asyncio.CancelledError:
            logger.info("Server cancelled")
        finally:
            self.scheduler.stop()
            await scheduler_task

    async def _shutdown(self) -> None:
        """Clean shutdown of all components."""
        logger.info("Shutting down...")
        self._running = False

        if self.controller:
            await self.controller.shutdown()

        if self.database:
            await self.database.log_event("system_stop", "SleepGuard stopped")
            await self.database.close()

        logger.info("Shutdown complete")

    def stop(self) -> None:
        """Request application stop."""
        self._running = False
        if self.server:
            self.server.should_exit = True
        if self.scheduler:
            self.scheduler.stop()


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="SleepGuard breathing monitor",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run with default config
    python -m sleepguard.main

    # Run in debug mode with the simulated microphone, tracking right away
    python -m sleepguard.main --debug --mock --track

    # Use custom config file
    python -m sleepguard.main --config /path/to/config.yaml
        """
    )
    parser.add_argument(
        "--config", "-c",
        default=None,
        help="Path to configuration file (default: config.local.yaml or config.yaml if present)"
    )
    parser.add_argument(
        "--debug", "-d",
        action="store_true",
        help="Enable debug logging"
    )
    parser.add_argument(
        "--mock", "-m",
        action="store_true",
        help="Use the simulated microphone (for testing)"
    )
    parser.add_argument(
        "--track", "-t",
        action="store_true",
        help="Start a tracking session immediately"
    )
    parser.add_argument("--host", default=None, help="Server host override")
    parser.add_argument("--port", type=int, default=None, help="Server port override")
    args = parser.parse_args()

    # Check config file exists
    if args.config and not os.path.exists(args.config):
        print(f"Error: Config file not found: {args.config}")
        sys.exit(1)

    # Create and run application
    app = SleepGuardApp(
        config_path=args.config,
        debug=args.debug,
        mock=args.mock,
        track=args.track,
        host=args.host,
        port=args.port,
    )

    # Set up signal handlers (uvicorn installs its own while serving)
    def handle_signal(sig, frame):
        logger.info(f"Received signal {sig}")
        app.stop()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    try:
        asyncio.run(app.start())
    except KeyboardInterrupt:
        print("\nInterrupted")
    except Exception as e:
        print(f"Error: {e}")
        if args.debug:
            import traceback
            traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
