import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional
from zoneinfo import ZoneInfo

from hrms.config import settings
from hrms.models.base import utcnow
from hrms.models.config import SystemConfig
from hrms.services.absence_marker import absence_marker, AbsenceMarker
from hrms.services.config_provider import config_provider, SystemConfigProvider
from hrms.services.sla_monitor import sla_monitor, SLAMonitor

logger = logging.getLogger(__name__)


def next_daily_run(now: datetime, hhmm: str, tz: str) -> datetime:
    """
    Next occurrence of local wall-clock time `hhmm` in `tz`, strictly after
    `now`. Both `now` and the result are naive UTC.
    """
    hour, minute = (int(p) for p in hhmm.split(":"))
    zone = ZoneInfo(tz)
    local_now = now.replace(tzinfo=timezone.utc).astimezone(zone)
    candidate = local_now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if candidate <= local_now:
        candidate = (candidate + timedelta(days=1)).replace(hour=hour, minute=minute)
    return candidate.astimezone(timezone.utc).replace(tzinfo=None)


class JobScheduler:
    """
    Owns the two background jobs of the process: the SLA sweep on a fixed
    interval and the absence marker once a day at the configured local time.
    At most one task exists per job.
    """

    def __init__(self,
                 monitor: SLAMonitor = sla_monitor,
                 marker: AbsenceMarker = absence_marker,
                 config: SystemConfigProvider = config_provider,
                 clock: Callable[[], datetime] = utcnow,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
                 interval_minutes: Optional[int] = None,
                 tz: Optional[str] = None):
        self.monitor = monitor
        self.marker = marker
        self.config = config
        self.clock = clock
        self.sleep = sleep
        self.interval_minutes = interval_minutes or settings.SLA_CHECK_INTERVAL_MINUTES
        self.tz = tz or settings.TIMEZONE

        self.is_running = False
        self._interval_task: Optional[asyncio.Task] = None
        self._daily_task: Optional[asyncio.Task] = None
        self.daily_time: Optional[str] = None
        self.next_daily_at: Optional[datetime] = None

    async def start(self):
        if self.is_running:
            logger.warning("Scheduler already running")
            return
        self.is_running = True
        self.config.subscribe(self.on_config_changed)
        self._interval_task = asyncio.create_task(self._interval_loop())
        await self.reschedule_daily()
        logger.info(f"Scheduler started: SLA sweep every {self.interval_minutes} min, absence job at {self.daily_time}")

    async def stop(self):
        self.is_running = False
        self.config.unsubscribe(self.on_config_changed)
        await self._cancel(self._interval_task)
        await self._cancel(self._daily_task)
        self._interval_task = None
        self._daily_task = None
        self.daily_time = None
        logger.info("Scheduler stopped")

    async def on_config_changed(self, config: SystemConfig):
        await self.reschedule_daily(config)

    async def reschedule_daily(self, config: Optional[SystemConfig] = None):
        """Replace the daily task if the configured time or enable flag changed."""
        if not self.is_running:
            return
        config = config or await self.config.get()
        auto = config.auto_actions
        wanted = auto.auto_mark_absent_time if auto.enable_auto_mark_absent else None

        if wanted == self.daily_time and (wanted is None or self._daily_task is not None):
            return

        await self._cancel(self._daily_task)
        self._daily_task = None
        self.daily_time = wanted
        self.next_daily_at = None

        if wanted is None:
            logger.info("Auto mark absent disabled, daily job not scheduled")
            return
        self._daily_task = asyncio.create_task(self._daily_loop(wanted))
        logger.info(f"Absence job scheduled daily at {wanted} ({self.tz})")

    async def _cancel(self, task: Optional[asyncio.Task]):
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _interval_loop(self):
        while self.is_running:
            try:
                await self.monitor.sweep(self.clock())
            except Exception as e:
                logger.error(f"Error in SLA sweep: {e}")
            await self.sleep(self.interval_minutes * 60)

    async def _daily_loop(self, hhmm: str):
        while self.is_running:
            now = self.clock()
            # An early wake-up must not land on the slot that just fired.
            after = max(now, self.next_daily_at) if self.next_daily_at else now
            self.next_daily_at = next_daily_run(after, hhmm, self.tz)
            await self.sleep((self.next_daily_at - now).total_seconds())
            try:
                await self.marker.run(self.clock())
            except Exception as e:
                logger.error(f"Error in absence job: {e}")


scheduler = JobScheduler()
