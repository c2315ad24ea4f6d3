"""
Integration tests for DashboardService on an in-memory store.
"""

import json
import pytest
import tempfile
from datetime import date, datetime, timedelta
from itertools import count
from pathlib import Path
from unittest.mock import MagicMock

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from application.dashboard_service import (
    BUSY_MESSAGE, SAVE_DATA_FAILED, SAVE_EMPLOYEE_FAILED, DashboardService
)
from application.session import SyncSession
from domain.entities import AttendanceStatus, Employee
from infrastructure.debouncer import Debouncer
from infrastructure.notifications import LoggingNotifier, Notifier, WARNING_TONES
from infrastructure.persistence import (
    DOC_EMPLOYEES, DOC_ORDERS, DOC_SHIFT_SCHEDULE, DOC_YEARLY_ATTENDANCE,
    InMemoryDocumentStore, PersistenceError, PersistenceGateway, TransactionConflictError
)

COLLECTION = "attendance"
MONDAY = date(2025, 3, 3)


class Clock:
    """Settable clock for the service."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def set(self, hour, minute=0, day=MONDAY):
        self.now = datetime(day.year, day.month, day.day, hour, minute)


class FailingStore(InMemoryDocumentStore):
    """Store whose writes can be switched off."""

    def __init__(self):
        super().__init__()
        self.failing = False

    def set_document(self, collection, doc_id, data):
        if self.failing:
            raise PersistenceError("jaringan putus")
        super().set_document(collection, doc_id, data)

    def run_transaction(self, collection, doc_id, fn):
        if self.failing:
            raise PersistenceError("jaringan putus")
        return super().run_transaction(collection, doc_id, fn)


@pytest.fixture
def clock():
    return Clock(datetime(2025, 3, 3, 9, 0))


@pytest.fixture
def store():
    return FailingStore()


@pytest.fixture
def notifier():
    return LoggingNotifier()


@pytest.fixture
def service(clock, store, notifier):
    ids = count(1)
    svc = DashboardService(
        gateway=store,
        notifier=notifier,
        clock=clock,
        session=SyncSession(settle_ms=0),
        debouncer=Debouncer(delay_ms=0),
        id_factory=lambda: f"id{next(ids)}"
    )
    svc.load()
    yield svc
    svc.close()


def stored_employee(store, emp_id):
    for item in store.get_document(COLLECTION, DOC_EMPLOYEES):
        if item["id"] == emp_id:
            return item
    return None


class TestLoad:
    """Tests for load()."""

    def test_seeds_default_roster(self, service, store):
        assert [e.name for e in service.employees] == ["Desta", "Ariel", "Robert"]
        assert len(store.get_document(COLLECTION, DOC_EMPLOYEES)) == 3

    def test_existing_roster_is_used(self, clock, notifier):
        store = InMemoryDocumentStore()
        store.set_document(COLLECTION, DOC_EMPLOYEES, [Employee(id=7, name="Sinta").to_dict()])
        svc = DashboardService(gateway=store, notifier=notifier, clock=clock,
                               session=SyncSession(settle_ms=0), debouncer=Debouncer(0))

        svc.load(subscribe=False)

        assert [e.name for e in svc.employees] == ["Sinta"]


class TestAttendanceFlow:
    """End-to-end attendance and task operations."""

    def test_on_time_check_in_and_task(self, service, store, clock):
        clock.set(9, 15)
        result = service.check_in(2)

        assert result.success is True
        assert result.saved is True
        ariel = service.get_employee(2)
        assert ariel.checked_in is True
        assert ariel.status == AttendanceStatus.HADIR
        assert ariel.late_hours == 0
        assert service.calendar.day_of(2, MONDAY).status == AttendanceStatus.HADIR

        task = service.add_task(2, "Restock rak").data
        clock.set(9, 20)
        service.start_task(2, task.id)
        clock.set(10, 5)
        ended = service.end_task(2, task.id)

        assert ended.data.duration == "45m"
        ariel = service.get_employee(2)
        assert ariel.work_tasks == []
        assert [t.id for t in ariel.completed_tasks_history] == [task.id]
        assert stored_employee(store, 2)["completedTasksHistory"][0]["duration"] == "45m"
        assert service.productivity[0].count == 1
        assert service.leaderboard("today")[0].name == "Ariel"

    def test_late_check_in(self, service, clock):
        clock.set(10, 1)
        service.check_in(3)

        robert = service.get_employee(3)
        assert robert.status == AttendanceStatus.TELAT
        assert robert.late_hours == 1

    def test_check_in_twice_rejected(self, service, clock):
        clock.set(9, 15)
        service.check_in(2)

        result = service.check_in(2)

        assert result.success is False
        assert result.rejected is True

    def test_unknown_employee(self, service):
        result = service.check_in(99)

        assert result.success is False
        assert result.rejected is True

    def test_late_break_return(self, service, clock, notifier):
        clock.set(9, 0)
        service.check_in(2)
        clock.set(12, 0)
        service.start_break(2)
        clock.set(13, 30)

        result = service.end_break(2)

        assert result.data.is_late is True
        assert service.get_employee(2).late_hours == 1
        assert any("terlambat kembali" in m for m in notifier.messages("warning"))
        assert notifier.tones[-2:] == list(WARNING_TONES)

    def test_izin_requires_reason(self, service, clock, notifier):
        clock.set(9, 0)
        service.check_in(2)

        result = service.start_izin(2, "  ")

        assert result.success is False
        assert result.rejected is False
        assert notifier.messages("error")

    def test_check_out_archives_tasks(self, service, store, clock):
        clock.set(9, 0)
        service.check_in(2)
        service.add_task(2, "Bersihkan etalase")
        clock.set(17, 0)

        result = service.check_out(2)

        assert result.data == 1
        ariel = service.get_employee(2)
        assert ariel.checked_in is False
        assert ariel.work_tasks == []
        assert service.calendar.day_of(2, MONDAY).end_shift == "17:00"
        stored = store.get_document(COLLECTION, DOC_YEARLY_ATTENDANCE)
        assert stored["2"]["2"]["3"]["endShift"] == "17:00"


class TestFailures:
    """Save failures keep local state and notify."""

    def test_failed_employee_save(self, service, store, clock, notifier):
        clock.set(9, 15)
        store.failing = True

        result = service.check_in(2)

        assert result.success is True
        assert result.saved is False
        assert service.get_employee(2).checked_in is True
        assert SAVE_EMPLOYEE_FAILED in notifier.messages("error")

    def test_failed_document_save(self, service, store, notifier):
        store.failing = True

        result = service.add_order({"customer": "Bu Ani"})

        assert result.success is True
        assert result.saved is False
        assert len(service.orders.items) == 1
        assert SAVE_DATA_FAILED in notifier.messages("error")

    def test_transaction_conflict_with_mocks(self, clock):
        """A gateway that keeps conflicting is reported through the notifier."""
        gateway = MagicMock(spec=PersistenceGateway)
        gateway.get_document.return_value = None
        gateway.run_transaction.side_effect = TransactionConflictError(COLLECTION, DOC_EMPLOYEES, 5)
        notifier = MagicMock(spec=Notifier)
        svc = DashboardService(gateway=gateway, notifier=notifier, clock=clock,
                               session=SyncSession(settle_ms=0), debouncer=Debouncer(0))
        svc.load(subscribe=False)
        clock.set(9, 15)

        result = svc.check_in(2)

        assert result.saved is False
        assert svc.get_employee(2).checked_in is True
        notifier.notify.assert_any_call(SAVE_EMPLOYEE_FAILED, "error")
        gateway.subscribe.assert_not_called()

    def test_unexpected_error_becomes_failed_result(self, service, clock, notifier):
        clock.set(9, 15)
        service.check_in(2)
        service.machine.start_break = MagicMock(side_effect=RuntimeError("rusak"))

        result = service.start_break(2)

        assert result.success is False
        assert result.rejected is False
        assert any("rusak" in m for m in notifier.messages("error"))
        # Sesi tidak tertahan setelah error
        assert service.add_order({"customer": "Bu Ani"}).success is True

    def test_unknown_leaderboard_period(self, service):
        assert service.leaderboard("tahun") == []


class TestSync:
    """Action guard and deferred remote snapshots."""

    def test_double_click_rejected(self, service, clock):
        clock.set(9, 15)
        service.session.begin_action("check-in")

        result = service.check_in(2)

        assert result.rejected is True
        assert result.message == BUSY_MESSAGE
        assert service.get_employee(2).checked_in is False

    def test_remote_snapshot_deferred_during_action(self, service, store, clock):
        clock.set(10, 0)
        roster = store.get_document(COLLECTION, DOC_EMPLOYEES)
        roster.append(Employee(id=4, name="Sinta").to_dict())

        service.session.begin_action("check-in")
        store.set_document(COLLECTION, DOC_EMPLOYEES, roster)

        assert [e.id for e in service.employees] == [1, 2, 3]

        service.session.end_action()
        summary = service.tick()

        assert summary["snapshots"] == 1
        assert [e.id for e in service.employees] == [1, 2, 3, 4]

    def test_remote_check_out_wins(self, service, store, clock):
        clock.set(9, 0)
        service.check_in(2)
        remote = stored_employee(store, 2)
        remote["checkedIn"] = False
        remote["shiftEndTime"] = "16:00"
        roster = [remote if e["id"] == 2 else e for e in store.get_document(COLLECTION, DOC_EMPLOYEES)]

        store.set_document(COLLECTION, DOC_EMPLOYEES, roster)

        ariel = service.get_employee(2)
        assert ariel.checked_in is False
        assert ariel.shift_end_time == "16:00"


class TestTick:
    """Tests for tick()."""

    def test_no_show_marked_libur(self, service, clock):
        clock.set(9, 30)
        service.check_in(2)

        summary = service.tick(datetime(2025, 3, 3, 12, 30))

        assert summary["absent"] == 2
        assert service.get_employee(3).status == AttendanceStatus.LIBUR
        assert service.calendar.day_of(3, MONDAY).status == AttendanceStatus.LIBUR
        assert service.get_employee(2).checked_in is True

    def test_no_show_waits_three_hours(self, service):
        summary = service.tick(datetime(2025, 3, 3, 11, 59))

        assert summary["absent"] == 0

    def test_break_overdue_notified_once(self, service, clock, notifier):
        clock.set(9, 0)
        service.check_in(2)
        clock.set(12, 0)
        service.start_break(2)

        service.tick(datetime(2025, 3, 3, 12, 30))
        assert notifier.messages("warning") == []

        service.tick(datetime(2025, 3, 3, 13, 5))
        service.tick(datetime(2025, 3, 3, 13, 6))

        warnings = [m for m in notifier.messages("warning") if "sudah istirahat" in m]
        assert len(warnings) == 1
        assert service.active_reminders()[0].elapsed_minutes == 66

    def test_order_backup_interval(self, service, store, clock):
        service.add_order({"customer": "Bu Ani"})
        start = datetime(2025, 3, 3, 10, 0)

        assert service.tick(start)["orders_saved"] == 1
        assert service.tick(start + timedelta(seconds=60))["orders_saved"] == 0
        assert service.tick(start + timedelta(seconds=301))["orders_saved"] == 1

    def test_long_running_task_alert(self, service, clock, notifier):
        clock.set(9, 0)
        service.check_in(2)
        task = service.add_task(2, "Stok opname").data
        service.start_task(2, task.id)

        summary = service.tick(datetime(2025, 3, 3, 10, 0))

        assert summary["task_alerts"] == 1


class TestSchedule:
    """Schedule generation and libur edits."""

    def test_generate(self, service, store):
        result = service.generate_schedule(2025, 2)

        assert result.success is True
        assert len(service.schedule.days) == 31
        stored = store.get_document(COLLECTION, DOC_SHIFT_SCHEDULE)
        assert stored["month"] == 2
        assert stored["year"] == 2025
        assert len(stored["data"]) == 31

    def test_stored_schedule_is_loaded(self, service, store, clock, notifier):
        service.generate_schedule(2025, 2)
        other = DashboardService(gateway=store, notifier=notifier, clock=clock,
                                 session=SyncSession(settle_ms=0), debouncer=Debouncer(0))

        other.load(subscribe=False)

        assert other.schedule_month == 2
        assert [d.pagi for d in other.schedule.days] == [d.pagi for d in service.schedule.days]

    def test_invalid_month(self, service):
        assert service.generate_schedule(2025, 12).success is False

    def test_update_libur(self, service):
        service.generate_schedule(2025, 2)

        result = service.update_libur(3, "Robert")

        assert result.success is True
        assert service.schedule.days[3].libur == "Robert"
        assert service.calendar.get_day(3, 2, 4).status == AttendanceStatus.LIBUR

    def test_update_libur_bad_index(self, service):
        service.generate_schedule(2025, 2)

        assert service.update_libur(40, "Robert").success is False

    def test_update_libur_without_schedule(self, service):
        result = service.update_libur(0, "Robert")

        assert result.rejected is True

    def test_scheduled_crew_limits_no_show(self, service):
        service.generate_schedule(2025, 2)

        summary = service.tick(datetime(2025, 3, 3, 12, 30))

        # hanya kru pagi yang dijadwalkan
        assert summary["absent"] == len(service.schedule.days[2].pagi)


class TestAdministration:
    """Roster edits, reset, backup and reports."""

    def test_add_employee(self, service, store):
        result = service.add_employee(4, "Sinta")

        assert result.success is True
        assert stored_employee(store, 4)["name"] == "Sinta"

    def test_add_duplicate_rejected(self, service):
        assert service.add_employee(2, "Lain").success is False
        assert service.add_employee(9, "Ariel").success is False
        assert service.add_employee(9, " ").success is False

    def test_delete_employee_removes_calendar(self, service, clock):
        clock.set(9, 0)
        service.check_in(3)

        service.delete_employee(3)

        assert [e.id for e in service.employees] == [1, 2]
        assert service.calendar.day_of(3, MONDAY) is None

    def test_clear_all_data_keeps_orders(self, service, store, clock):
        clock.set(9, 0)
        service.check_in(2)
        service.add_order({"customer": "Bu Ani"})
        service.add_attention("Stok opname", "Desta")

        service.clear_all_data()

        assert service.get_employee(2).checked_in is False
        assert list(service.calendar.employee_ids()) == []
        assert service.attentions.items == []
        assert len(service.orders.items) == 1
        assert len(store.get_document(COLLECTION, DOC_ORDERS)) == 1

    def test_export_then_import(self, service, clock):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "backup.json"
            exported = service.export_backup(path)
            assert exported.success is True

            clock.set(9, 0)
            service.check_in(2)
            service.set_period(5, 2024)

            result = service.import_backup(path)

        assert result.success is True
        assert service.get_employee(2).checked_in is False
        assert service.current_month == 2
        assert service.current_year == 2025

    def test_import_corrupt_file(self, service, notifier):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "rusak.json"
            path.write_text("{rusak", encoding="utf-8")

            result = service.import_backup(path)

        assert result.success is False
        assert any("Import gagal" in m for m in notifier.messages("error"))

    def test_import_invalid_utf8(self, service, notifier):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "biner.json"
            path.write_bytes(b"\xff\xfe")

            result = service.import_backup(path)

        assert result.success is False
        assert any("Import gagal" in m for m in notifier.messages("error"))

    def test_import_employee_without_id(self, service):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "backup.json"
            path.write_text(json.dumps({"employees": [{"name": "X"}]}), encoding="utf-8")

            result = service.import_backup(path)

        assert result.success is False
        assert [e.name for e in service.employees] == ["Desta", "Ariel", "Robert"]

    def test_failed_import_leaves_state_untouched(self, service, store):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "backup.json"
            path.write_text(json.dumps({"employees": [{"id": 9, "name": "Z"}], "currentMonth": "x"}),
                            encoding="utf-8")

            result = service.import_backup(path)

        assert result.success is False
        assert [e.name for e in service.employees] == ["Desta", "Ariel", "Robert"]
        assert service.current_month == 2
        assert len(store.get_document(COLLECTION, DOC_EMPLOYEES)) == 3

    def test_export_payload(self, service):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "backup.json"
            service.export_backup(path)
            payload = json.loads(path.read_text(encoding="utf-8"))

        assert payload["version"] == "1.0"
        assert [e["name"] for e in payload["employees"]] == ["Desta", "Ariel", "Robert"]

    def test_export_reports(self, service):
        service.generate_schedule(2025, 2)

        with tempfile.TemporaryDirectory() as tmpdir:
            result = service.export_reports(2025, 2, Path(tmpdir))

            assert result.success is True
            assert result.data["excel"].name == "Kehadiran_2025_03.xlsx"
            assert result.data["pdf"].name == "Jadwal_Shift_2025_03.pdf"
            assert result.data["excel"].exists()
            assert result.data["pdf"].exists()


class TestBoards:
    """Board operations through the service."""

    def test_order_status(self, service, store):
        order = service.add_order({"customer": "Bu Ani"}).data

        service.update_order_status(order["id"], "process", note="Dikerjakan", author="Ariel")

        stored = store.get_document(COLLECTION, DOC_ORDERS)
        assert stored[0]["status"] == "process"
        assert stored[0]["notes"][0]["text"] == "Dikerjakan"

    def test_unknown_order_rejected(self, service):
        assert service.delete_order("nope").rejected is True

    def test_mbak_toggle(self, service):
        item = service.add_mbak_task("Pel lantai").data

        service.toggle_mbak_task(item["id"])

        assert service.mbak.items[0]["completed"] is True


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
