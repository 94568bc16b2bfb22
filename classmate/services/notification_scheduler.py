import asyncio
import logging
from datetime import date
from typing import Optional

from classmate.core.config import settings
from classmate.core.timeutils import today
from classmate.database import SessionLocal
from classmate.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


class NotificationScheduler:
    def __init__(self):
        self.running = False
        self.task = None
        self.last_run_date: Optional[date] = None

    async def start(self):
        """Start the notification scheduler"""
        if self.running:
            logger.warning("Notification scheduler is already running")
            return

        self.running = True
        self.task = asyncio.create_task(self._run_scheduler())
        logger.info("Notification scheduler started")

    async def stop(self):
        """Stop the notification scheduler"""
        if not self.running:
            return

        self.running = False
        if self.task:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass

        logger.info("Notification scheduler stopped")

    async def _run_scheduler(self):
        """Main scheduler loop"""
        # Initial delay to avoid sends on server boot
        initial_delay = max(0, settings.SCHEDULER_INITIAL_DELAY_SECONDS)
        if initial_delay:
            logger.info(f"Scheduler initial delay: {initial_delay}s")
            await asyncio.sleep(initial_delay)

        loop_interval = max(1, settings.SCHEDULER_LOOP_INTERVAL_SECONDS)
        while self.running:
            try:
                self.run_if_due()
            except Exception as e:
                logger.error(f"Error in notification scheduler: {e}")
            await asyncio.sleep(loop_interval)

    def run_if_due(self, on_date: Optional[date] = None) -> Optional[dict]:
        """Run the daily checks at most once per calendar day"""
        on_date = on_date or today()
        if self.last_run_date == on_date:
            return None
        results = self.run_daily_checks(on_date)
        self.last_run_date = on_date
        return results

    def run_daily_checks(self, on_date: Optional[date] = None) -> dict:
        db = SessionLocal()
        try:
            results = NotificationService(db).run_daily_checks(on_date)
        finally:
            db.close()
        logger.info(
            f"Daily checks completed: {results['expired']} expired, "
            f"{results['debt_reminders']} debt reminders, "
            f"{results['subscription_reminders']} subscription reminders"
        )
        return results


# Global scheduler instance
notification_scheduler = NotificationScheduler()


async def start_notification_scheduler():
    """Start the notification scheduler (call this when the app starts)"""
    await notification_scheduler.start()


async def stop_notification_scheduler():
    """Stop the notification scheduler (call this when the app shuts down)"""
    await notification_scheduler.stop()
