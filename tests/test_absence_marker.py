import sys
import os
sys.path.append(os.getcwd())
import pytest
from datetime import datetime
from unittest.mock import AsyncMock, patch

from hrms.models.attendance import Attendance, AttendanceStatus
from hrms.models.config import SystemConfig, AutoActions
from hrms.models.notification import NotificationType
from hrms.services.absence_marker import AbsenceMarker, local_day

# 09:30 in Asia/Ho_Chi_Minh
RUN_AT = datetime(2024, 3, 4, 2, 30)


@pytest.fixture
def attendance_store():
    return []


@pytest.fixture
def mock_db(org, attendance_store):
    users, _ = org

    async def create(record):
        attendance_store.append(record)
        return record

    async def users_with_record(day, user_ids):
        return {r.user_id for r in attendance_store if r.date == day and r.user_id in user_ids}

    with patch("hrms.services.absence_marker.db") as mock:
        mock.users.find_active = AsyncMock(return_value=[users["u_emp"], users["u_mgr"]])
        mock.users.find_admins = AsyncMock(return_value=[users["u_admin"]])
        mock.attendance.create = AsyncMock(side_effect=create)
        mock.attendance.users_with_record = AsyncMock(side_effect=users_with_record)
        yield mock


@pytest.fixture
def marker(mock_dispatcher, mock_config):
    return AbsenceMarker(dispatcher=mock_dispatcher, config=mock_config, tz="Asia/Ho_Chi_Minh")


def test_local_day_uses_configured_timezone():
    # 20:00 UTC is already the next morning in Vietnam.
    assert local_day(datetime(2024, 3, 10, 20, 0), "Asia/Ho_Chi_Minh") == datetime(2024, 3, 11)
    assert local_day(datetime(2024, 3, 10, 16, 59), "Asia/Ho_Chi_Minh") == datetime(2024, 3, 10)


@pytest.mark.asyncio
async def test_marks_users_without_record_and_notifies(marker, mock_db, mock_dispatcher, attendance_store):
    marked = await marker.run(RUN_AT)

    assert marked == ["u_emp", "u_mgr"]
    assert len(attendance_store) == 2
    record = attendance_store[0]
    assert record.status == AttendanceStatus.ABSENT
    assert record.date == datetime(2024, 3, 4)
    assert record.remarks

    assert mock_dispatcher.notify_users.await_count == 2
    personal, aggregate = mock_dispatcher.notify_users.call_args_list
    assert personal.args[0] == ["u_emp", "u_mgr"]
    assert personal.args[2] == NotificationType.ATTENDANCE_UPDATE
    assert aggregate.args[0] == ["u_admin"]
    assert aggregate.args[2] == NotificationType.GENERAL
    assert "Emp" in aggregate.args[1] and "Mgr" in aggregate.args[1]


@pytest.mark.asyncio
async def test_second_run_same_day_is_a_no_op(marker, mock_db, mock_dispatcher, attendance_store):
    await marker.run(RUN_AT)
    marked = await marker.run(datetime(2024, 3, 4, 5, 0))

    assert marked == []
    assert len(attendance_store) == 2
    assert mock_dispatcher.notify_users.await_count == 2


@pytest.mark.asyncio
async def test_user_who_checked_in_is_untouched(marker, mock_db, attendance_store, org):
    attendance_store.append(Attendance(user_id="u_emp", date=datetime(2024, 3, 4), status=AttendanceStatus.PRESENT))

    marked = await marker.run(RUN_AT)
    assert marked == ["u_mgr"]
    assert [r.status for r in attendance_store] == [AttendanceStatus.PRESENT, AttendanceStatus.ABSENT]


@pytest.mark.asyncio
async def test_disabled_in_config(marker, mock_db, mock_config, attendance_store):
    mock_config.get = AsyncMock(return_value=SystemConfig(auto_actions=AutoActions(enable_auto_mark_absent=False)))

    assert await marker.run(RUN_AT) == []
    mock_db.users.find_active.assert_not_called()

    # Manual trigger can still force a run.
    assert await marker.run(RUN_AT, force=True) == ["u_emp", "u_mgr"]


@pytest.mark.asyncio
async def test_one_failed_insert_does_not_stop_others(marker, mock_db, mock_dispatcher):
    mock_db.attendance.users_with_record = AsyncMock(return_value=set())
    mock_db.attendance.create = AsyncMock(side_effect=[Exception("duplicate key"), None])

    marked = await marker.run(RUN_AT)
    assert marked == ["u_mgr"]
    assert mock_dispatcher.notify_users.call_args_list[0].args[0] == ["u_mgr"]
