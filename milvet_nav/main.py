#!/usr/bin/env python3
"""
Main entry point for the milvet-nav offline service.

Loads the settings, installs and activates the offline service on its own
thread, then serves until interrupted.
"""

import sys
import os
import logging
import signal
import threading
from pathlib import Path
from typing import Optional


_shutdown = threading.Event()


def setup_logging(log_level: str = "INFO", log_dir: Optional[Path] = None):
    """Set up application logging."""
    handlers = [logging.StreamHandler()]
    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_dir / 'milvet_nav.log'))

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )


def signal_handler(signum, frame):
    """Handle interrupt signals gracefully."""
    logger = logging.getLogger(__name__)
    logger.info(f"Received signal {signum}, shutting down gracefully...")
    _shutdown.set()


def main():
    """Main application entry point."""
    from milvet_nav.config import ConfigManager

    settings = ConfigManager().load_settings()
    setup_logging(settings.log_level, settings.log_dir)
    logger = logging.getLogger(__name__)

    signal.signal(signal.SIGINT, signal_handler)
    if hasattr(signal, 'SIGTERM'):
        signal.signal(signal.SIGTERM, signal_handler)

    logger.info("Starting milvet-nav offline service...")
    logger.info(f"Python version: {sys.version}")
    logger.info(f"Working directory: {os.getcwd()}")
    logger.info(f"Environment: {settings.environment}, data directory: {settings.data_dir}")

    host = None
    service = None

    try:
        from milvet_nav.error_handling import ErrorManager, ErrorReporter, set_error_manager
        from milvet_nav.worker import InstallError, OfflineCacheService, ServiceHost

        error_manager = ErrorManager(environment=settings.environment, current_url=settings.app_origin)
        if settings.is_production:
            error_manager.add_sink(ErrorReporter(settings.log_dir / "errors"))
        set_error_manager(error_manager)

        service = OfflineCacheService.from_settings(settings)
        host = ServiceHost(service)
        host.start()

        try:
            host.register(timeout=settings.request_timeout * (len(settings.static_assets) + 1))
            logger.info(f"Offline service activated with partitions "
                        f"{settings.static_cache_name}, {settings.dynamic_cache_name}")
        except InstallError as e:
            logger.error(f"Install failed, serving without a static cache: {e}")

        logger.info("Serving until interrupted...")
        _shutdown.wait()
        return 0

    except KeyboardInterrupt:
        logger.info("Service interrupted by user")
        return 0
    except Exception as e:
        logger.error(f"Failed to start offline service: {e}")
        import traceback
        logger.error(f"Traceback: {traceback.format_exc()}")
        return 1

    finally:
        logger.info("Service shutdown initiated")

        if host:
            try:
                host.stop()
            except Exception as e:
                logger.error(f"Error during service host shutdown: {e}")

        if service:
            try:
                service.transport.close()
            except Exception as e:
                logger.error(f"Error closing transport: {e}")

        logger.info("milvet-nav shutdown complete")


if __name__ == "__main__":
    sys.exit(main())
