import asyncio
import os
import signal

from loguru import logger

from listing_monitor.db.config.loader import AppConfig
from listing_monitor.orchestrator import Orchestrator
from listing_monitor.utils.logger import setup_logging


async def main():
    """Main entry point"""
    config = AppConfig.load(os.getenv("CONFIG_DIR", "config/"))
    setup_logging(config.general.log_dir)
    logger.info("🚀 Starting Upbit/Bithumb listing monitor")

    orchestrator = Orchestrator(config)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, orchestrator.stop)
        except NotImplementedError:  # Windows
            pass

    try:
        await orchestrator.run()
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    finally:
        await orchestrator.cleanup()
        logger.info("✅ Shutdown complete")


if __name__ == "__main__":
    asyncio.run(main())
