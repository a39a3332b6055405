"""Auto-refresh scheduler for live option chain snapshots."""
import logging
import asyncio
from typing import List, Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from app.core.config import settings
from app.core.redis import close_redis
from app.services.analyzer_session import AnalyzerSession, create_session
from app.utils.formatting import format_analysis_message

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


class RefreshScheduler:
    """Scheduler refreshing and recording the configured indices."""

    def __init__(self, session: AnalyzerSession, symbols: Optional[List[str]] = None):
        logger.info("Initializing RefreshScheduler...")
        self.session = session
        self.symbols = symbols or settings.default_symbols_list
        self.scheduler = AsyncIOScheduler()

    async def refresh_symbol(self, symbol: str):
        """
        Refresh one index, skipping while a backfill is running.

        Args:
            symbol: Index symbol
        """
        if self.session.backfill_running:
            logger.info(f"Backfill in progress, skipping refresh of {symbol}")
            return

        try:
            view = await self.session.refresh(symbol)
            if view is not None:
                logger.info(f"[{view.source}] {format_analysis_message(symbol, view.snapshot, view.analysis)}")
        except Exception as e:
            logger.error(f"Error refreshing {symbol}: {e}", exc_info=True)

    async def refresh_all(self):
        """Refresh every configured index in turn."""
        for symbol in self.symbols:
            await self.refresh_symbol(symbol)

    def start(self):
        """Start the scheduler."""
        logger.info("="*60)
        logger.info("Starting refresh scheduler...")
        logger.info(f"Log level: {settings.log_level}")
        logger.info(f"Indices: {', '.join(self.symbols)}")
        logger.info(f"Refresh cadence: every {settings.refresh_interval_seconds} seconds")
        logger.info("="*60)

        self.scheduler.add_job(
            self.refresh_all,
            trigger=IntervalTrigger(seconds=settings.refresh_interval_seconds),
            id="refresh_option_chains",
            replace_existing=True,
            max_instances=1
        )

        self.scheduler.start()
        logger.info("Scheduler started successfully")

    def stop(self):
        """Stop the scheduler without waiting for a running refresh."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

    async def run(self):
        """Run scheduler indefinitely."""
        self.start()
        await self.refresh_all()

        try:
            # Keep running
            while True:
                await asyncio.sleep(1)
        except (KeyboardInterrupt, SystemExit, asyncio.CancelledError):
            logger.info("Shutting down scheduler...")
            self.scheduler.shutdown()
        finally:
            await self.session.provider.close()
            await close_redis()


async def main():
    """Main entry point for scheduler."""
    scheduler = RefreshScheduler(create_session())
    await scheduler.run()


if __name__ == "__main__":
    asyncio.run(main())
