import logging
from datetime import timedelta

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy import select
from sqlalchemy.orm import Session

from config import get_settings
from database import session_scope
from models import User
from services import FinancialReportsService, get_current_user_id
from temporal import TemporalContext, local_today


logging.basicConfig(level=get_settings().log_level)
logger = logging.getLogger(__name__)


def snapshot_contexts(session: Session) -> list[TemporalContext]:
    users = session.scalars(select(User).order_by(User.id)).all()
    if not users:
        return [TemporalContext.resolve(get_current_user_id(), None)]
    return [TemporalContext.resolve(user.id, user.timezone) for user in users]


def snapshot_previous_day(session: Session) -> int:
    """Snapshot each user's local yesterday, which is complete by now."""
    count = 0
    for ctx in snapshot_contexts(session):
        day = local_today(ctx.timezone) - timedelta(days=1)
        FinancialReportsService(session, ctx.user_id, ctx).create_financial_snapshot(day)
        count += 1
    return count


class SchedulerManager:
    def __init__(self) -> None:
        settings = get_settings()
        self.settings = settings
        self.scheduler = BackgroundScheduler(timezone=settings.default_timezone)

    def _run_job(self, source: str = "manual") -> None:
        logger.info(f"snapshot_run: source={source}")
        with session_scope() as session:
            count = snapshot_previous_day(session)
            logger.info(f"snapshot_run: source={source} snapshots_written={count}")

    def start(self) -> None:
        hour = self.settings.snapshot_hour
        minute = self.settings.snapshot_minute
        trigger = CronTrigger(hour=hour, minute=minute)
        self.scheduler.add_job(
            self._run_job,
            trigger,
            args=[f"daily_{hour:02d}:{minute:02d}"],
            id="financial_snapshot_daily",
            replace_existing=True,
            misfire_grace_time=3600,
        )

        self.scheduler.start()
        logger.info(f"Scheduler started with daily snapshot at {hour:02d}:{minute:02d}")

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
