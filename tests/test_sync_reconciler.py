"""
Unit tests for merging remote employee snapshots into local state.
"""

import pytest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from domain.entities import AttendanceStatus, Employee, ShiftType, Task
from domain.sync_reconciler import (
    merge_employee, merge_task, migrate_history, reconcile_roster, union_history
)


def done(task_id, shift_date="2025-03-03", completed_at="2025-03-03T10:00:00"):
    return Task(id=task_id, text=task_id, completed=True, progress=100,
                completed_at=completed_at, shift_date=shift_date)


def employee(checked_in, work=None, history=None, **kwargs):
    return Employee(
        id=2, name="Ariel", checked_in=checked_in,
        work_tasks=list(work or []),
        completed_tasks_history=list(history or []),
        **kwargs
    )


CASES = [(True, True), (True, False), (False, True), (False, False)]


class TestHistoryImmutability:
    """A task already in history never returns to the active list."""

    @pytest.mark.parametrize("local_in,incoming_in", CASES)
    def test_history_id_excluded_from_incoming(self, local_in, incoming_in):
        local = employee(local_in, history=[done("t1")])
        incoming = employee(incoming_in, work=[Task(id="t1", text="Restock")])

        merged = merge_employee(local, incoming)

        assert "t1" not in [t.id for t in merged.work_tasks]
        assert "t1" in merged.history_ids()

    @pytest.mark.parametrize("local_in,incoming_in", CASES)
    def test_history_id_excluded_from_local(self, local_in, incoming_in):
        local = employee(local_in, work=[Task(id="t1", text="Restock")])
        incoming = employee(incoming_in, history=[done("t1")])

        merged = merge_employee(local, incoming)

        assert "t1" not in [t.id for t in merged.work_tasks]

    @pytest.mark.parametrize("local_in,incoming_in", CASES)
    def test_local_history_never_lost(self, local_in, incoming_in):
        local = employee(local_in, history=[done("t1"), done("t2")])
        incoming = employee(incoming_in, history=[done("t3")])

        merged = merge_employee(local, incoming)

        assert merged.history_ids() == {"t1", "t2", "t3"}


class TestMergeCases:
    """Tests for the four checked-in combinations."""

    def test_both_active_keeps_local_with_admin_fields(self):
        local = employee(True, work=[Task(id="a", text="A")], break_time="12:00",
                         late_hours=0, shift=ShiftType.PAGI)
        incoming = employee(False, late_hours=2, status=AttendanceStatus.TELAT,
                            shift=ShiftType.PAGI, base_salary=7500000)
        incoming.checked_in = True

        merged = merge_employee(local, incoming)

        assert merged.break_time == "12:00"
        assert merged.late_hours == 2
        assert merged.status == AttendanceStatus.TELAT
        assert merged.base_salary == 7500000
        assert [t.id for t in merged.work_tasks] == ["a"]

    def test_both_active_unions_tasks(self):
        local = employee(True, work=[Task(id="a", text="A", progress=30)])
        incoming = employee(True, work=[Task(id="a", text="A", progress=50), Task(id="b", text="B")])

        merged = merge_employee(local, incoming)

        assert [t.id for t in merged.work_tasks] == ["a", "b"]
        assert merged.work_tasks[0].progress == 50

    def test_both_active_history_dedup_by_completed_at(self):
        local = employee(True, history=[done("t1", completed_at="2025-03-03T10:00:00")])
        incoming = employee(True, history=[
            done("t1", completed_at="2025-03-03T10:00:00"),
            done("t1", completed_at="2025-03-04T10:00:00", shift_date="2025-03-04"),
        ])

        merged = merge_employee(local, incoming)

        assert len(merged.completed_tasks_history) == 2

    def test_ended_elsewhere_takes_incoming(self):
        local = employee(True, work=[Task(id="a", text="A")], break_time="12:00")
        incoming = employee(False, history=[done("a")], shift_end_time="17:00")

        merged = merge_employee(local, incoming)

        assert merged.checked_in is False
        assert merged.shift_end_time == "17:00"
        assert merged.break_time is None
        assert merged.work_tasks == []

    def test_started_elsewhere_takes_incoming(self):
        local = employee(False, work=[Task(id="old", text="Lama")])
        incoming = employee(True, work=[Task(id="new", text="Baru")], check_in_time="09:00")

        merged = merge_employee(local, incoming)

        assert merged.checked_in is True
        assert [t.id for t in merged.work_tasks] == ["new"]

    def test_both_idle_unions_tasks(self):
        local = employee(False, work=[Task(id="a", text="A")])
        incoming = employee(False, work=[Task(id="b", text="B")])

        merged = merge_employee(local, incoming)

        assert sorted(t.id for t in merged.work_tasks) == ["a", "b"]

    def test_new_employee(self):
        incoming = employee(False, history=[done("t1", shift_date=None)])

        merged = merge_employee(None, incoming)

        assert merged.completed_tasks_history[0].shift_date == "2025-03-03"

    def test_new_employee_tasks_taken_as_is(self):
        incoming = employee(True, work=[Task(id="a", text="A")], history=[done("a")])

        merged = merge_employee(None, incoming)

        assert [t.id for t in merged.work_tasks] == ["a"]

    def test_arguments_not_modified(self):
        local = employee(True, work=[Task(id="a", text="A")])
        incoming = employee(True, history=[done("a")])

        merge_employee(local, incoming)

        assert [t.id for t in local.work_tasks] == ["a"]
        assert local.completed_tasks_history == []


class TestHelpers:
    """Tests for task merge, history union and migration."""

    def test_merge_task_completed_wins(self):
        local = Task(id="a", text="A", progress=80)
        incoming = Task(id="a", text="A", completed=True, completed_at="2025-03-03T11:00:00")

        merged = merge_task(local, incoming)

        assert merged.completed is True
        assert merged.progress == 100
        assert merged.completed_at == "2025-03-03T11:00:00"

    def test_merge_task_pause_wins(self):
        local = Task(id="a", text="A", start_time="09:00:00")
        incoming = Task(id="a", text="A", start_time="09:00:00", paused=True, pause_start_time="09:30:00")

        merged = merge_task(local, incoming)

        assert merged.paused is True
        assert merged.pause_start_time == "09:30:00"

    def test_union_history_keeps_same_task_on_other_day(self):
        merged = union_history([done("t1", "2025-03-03")], [done("t1", "2025-03-04"), done("t1", "2025-03-03")])

        assert [t.shift_date for t in merged] == ["2025-03-03", "2025-03-04"]

    def test_migrate_history(self):
        emp = employee(False, history=[done("t1", shift_date=None), done("t2")])

        assert migrate_history(emp) == 1
        assert emp.completed_tasks_history[0].shift_date == "2025-03-03"
        assert migrate_history(emp) == 0


class TestReconcileRoster:
    """Tests for reconcile_roster()."""

    def test_membership_and_order_follow_incoming(self):
        local = [Employee(id=1, name="Desta"), Employee(id=2, name="Ariel", checked_in=True)]
        incoming = [Employee(id=3, name="Robert"), Employee(id=2, name="Ariel", checked_in=True)]

        merged = reconcile_roster(local, incoming)

        assert [e.id for e in merged] == [3, 2]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
