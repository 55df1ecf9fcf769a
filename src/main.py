"""
First/Last - Application Entry Point
====================================

Bootstrap:
- Logging
- ApplicationContext (config, database, services, bot)
- Bot run loop
- Graceful shutdown on SIGTERM / Ctrl+C

Run with ``python -m src.main``.
"""

import asyncio
import signal
import sys

from src.core.infra.application_context import ApplicationContext
from src.core.logging.logger import get_logger, setup_logging, shutdown_logging

logger = get_logger(__name__)


# ============================================================================
# Application Entrypoint
# ============================================================================

async def main() -> None:
    """
    Lifecycle:
        1. Initialize infrastructure (Config, ConfigManager, DB, services, bot)
        2. Start bot
        3. Shut down in reverse order
    """
    context = ApplicationContext()

    try:
        await context.initialize()
        await context.run_bot()

    except asyncio.CancelledError:
        logger.warning("Asyncio task cancellation received; shutting down gracefully.")
        raise

    except KeyboardInterrupt:
        logger.info("Manual shutdown via keyboard interrupt.")

    except Exception as exc:
        logger.critical(f"Fatal startup error: {exc}", exc_info=True)
        sys.exit(1)

    finally:
        await context.shutdown()


# ============================================================================
# Process Startup
# ============================================================================

def _install_signal_handlers(loop: asyncio.AbstractEventLoop, task: asyncio.Task) -> None:
    """Cancel the main task on SIGTERM so the finally block can shut down cleanly."""
    try:
        loop.add_signal_handler(signal.SIGTERM, task.cancel)
        logger.debug("SIGTERM handler installed")
    except NotImplementedError:
        logger.debug("SIGTERM not supported on this platform (likely Windows)")


def run() -> None:
    setup_logging()
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    task = loop.create_task(main())
    _install_signal_handlers(loop, task)

    try:
        loop.run_until_complete(task)
    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.info("Bot stopped.")
    finally:
        loop.close()
        logger.info("Event loop closed.")
        shutdown_logging()


if __name__ == "__main__":
    run()
