import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional
from zoneinfo import ZoneInfo

from hrms.config import settings
from hrms.database import db
from hrms.models.attendance import Attendance, AttendanceStatus
from hrms.models.base import utcnow
from hrms.models.notification import NotificationType
from hrms.models.user import Role
from hrms.services.config_provider import config_provider, SystemConfigProvider
from hrms.tools.notification_dispatcher import notification_dispatcher, NotificationDispatcher

logger = logging.getLogger(__name__)

ABSENT_REMARK = "Automatically marked absent by system (no check-in)"


def local_day(now: datetime, tz: str) -> datetime:
    """Midnight of the local working day containing `now` (naive UTC in, naive local out)."""
    local = now.replace(tzinfo=timezone.utc).astimezone(ZoneInfo(tz))
    return datetime(local.year, local.month, local.day)


class AbsenceMarker:
    """
    Daily job: every Active employee or manager without an attendance record
    for today gets an Absent record. Safe to re-run on the same day.
    """

    def __init__(self,
                 clock: Callable[[], datetime] = utcnow,
                 dispatcher: NotificationDispatcher = notification_dispatcher,
                 config: SystemConfigProvider = config_provider,
                 tz: Optional[str] = None):
        self.clock = clock
        self.dispatcher = dispatcher
        self.config = config
        self.tz = tz or settings.TIMEZONE

    async def run(self, now: Optional[datetime] = None, force: bool = False) -> List[str]:
        system_config = await self.config.get()
        if not system_config.auto_actions.enable_auto_mark_absent and not force:
            logger.info("Auto mark absent is disabled, skipping")
            return []

        now = now or self.clock()
        day = local_day(now, self.tz)
        users = await db.users.find_active([Role.EMPLOYEE, Role.MANAGER])
        if not users:
            logger.info("No active employees to check for absence")
            return []

        recorded = await db.attendance.users_with_record(day, [u.user_id for u in users])
        marked = []
        for user in users:
            if user.user_id in recorded:
                continue
            try:
                await db.attendance.create(Attendance(
                    user_id=user.user_id,
                    date=day,
                    status=AttendanceStatus.ABSENT,
                    remarks=ABSENT_REMARK,
                ))
                marked.append(user)
            except Exception as e:
                logger.error(f"Failed to mark {user.user_id} absent for {day.date()}: {e}")

        logger.info(f"Auto mark absent for {day.date()}: {len(marked)} of {len(users)} users marked")
        if marked:
            await self._notify(marked, day)
        return [u.user_id for u in marked]

    async def _notify(self, marked, day: datetime) -> None:
        date_str = day.strftime("%d/%m/%Y")
        try:
            await self.dispatcher.notify_users(
                [u.user_id for u in marked],
                f"You have been marked absent for {date_str} because no check-in was recorded.",
                NotificationType.ATTENDANCE_UPDATE,
                metadata={"date": day.date().isoformat(), "status": AttendanceStatus.ABSENT.value},
            )
        except Exception as e:
            logger.error(f"Failed to notify users marked absent: {e}")

        try:
            admins = await db.users.find_admins()
            names = ", ".join(u.full_name for u in marked)
            await self.dispatcher.notify_users(
                [a.user_id for a in admins],
                f"{len(marked)} employee(s) automatically marked absent on {date_str}: {names}",
                NotificationType.GENERAL,
                metadata={"date": day.date().isoformat(), "user_ids": [u.user_id for u in marked]},
            )
        except Exception as e:
            logger.error(f"Failed to notify admins about absences: {e}")


absence_marker = AbsenceMarker()
