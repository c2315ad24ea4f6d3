"""
Unit tests for the task ledger.
"""

import pytest
from datetime import datetime
from itertools import count
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from domain.entities import Employee, GuardRejection, ShiftEntry, ShiftType, TaskPriority, ValidationError
from domain.task_ledger import TaskLedger, pause_minutes


def at(hour, minute=0, second=0):
    return datetime(2025, 3, 3, hour, minute, second)


@pytest.fixture
def ledger():
    ids = count(1)
    return TaskLedger(id_factory=lambda: f"t{next(ids)}")


@pytest.fixture
def ariel():
    return Employee(id=2, name="Ariel")


class TestLifecycle:
    """Tests for add / start / end."""

    def test_add(self, ledger, ariel):
        task = ledger.add_task(ariel, "  Restock  ", at(9))

        assert task.id == "t1"
        assert task.text == "Restock"
        assert task.priority == TaskPriority.NORMAL
        assert ariel.work_tasks == [task]

    def test_add_empty_rejected(self, ledger, ariel):
        with pytest.raises(ValidationError):
            ledger.add_task(ariel, "   ", at(9))

    def test_start_and_end(self, ledger, ariel):
        task = ledger.add_task(ariel, "Restock", at(9))
        ledger.start_task(ariel, task.id, at(9, 20))

        assert task.start_time == "09:20:00"
        assert task.completed is False

        ended = ledger.end_task(ariel, task.id, at(10, 5))

        assert ended.duration == "45m"
        assert ended.completed is True
        assert ended.progress == 100
        assert ariel.work_tasks == []
        assert ariel.completed_tasks_history == [ended]
        assert ended.shift_date == "2025-03-03"

    def test_shift_date_from_current_shift(self, ledger, ariel):
        """A night shift task ended after midnight belongs to the shift's day."""
        ariel.checked_in = True
        ariel.shifts = [ShiftEntry(shift=ShiftType.MALAM, check_in_time="17:00", date="2025-03-02")]
        task = ledger.add_task(ariel, "Tutup toko", at(0))
        ledger.start_task(ariel, task.id, at(0, 10))

        ended = ledger.end_task(ariel, task.id, at(0, 40))

        assert ended.shift_date == "2025-03-02"

    def test_start_twice_rejected(self, ledger, ariel):
        task = ledger.add_task(ariel, "Restock", at(9))
        ledger.start_task(ariel, task.id, at(9, 1))
        with pytest.raises(GuardRejection):
            ledger.start_task(ariel, task.id, at(9, 2))

    def test_end_unstarted_rejected(self, ledger, ariel):
        task = ledger.add_task(ariel, "Restock", at(9))
        with pytest.raises(GuardRejection):
            ledger.end_task(ariel, task.id, at(10))
        assert ariel.work_tasks == [task]

    def test_unknown_task(self, ledger, ariel):
        with pytest.raises(GuardRejection):
            ledger.start_task(ariel, "nope", at(9))


class TestPause:
    """Tests for pause / break / resume."""

    def test_pause_requires_reason(self, ledger, ariel):
        task = ledger.add_task(ariel, "Restock", at(9))
        ledger.start_task(ariel, task.id, at(9))
        with pytest.raises(ValidationError):
            ledger.pause_task(ariel, task.id, "", at(9, 30))
        assert task.paused is False

    def test_pause_resume_history(self, ledger, ariel):
        task = ledger.add_task(ariel, "Restock", at(9))
        ledger.start_task(ariel, task.id, at(9))
        ledger.pause_task(ariel, task.id, "Angkat barang", at(9, 30))

        assert task.paused is True
        assert task.is_running is False

        ledger.resume_task(ariel, task.id, at(9, 50))

        assert task.paused is False
        assert task.pause_history[0].reason == "Angkat barang"
        assert task.pause_history[0].end_time == "09:50:00"
        assert pause_minutes(task) == 20

    def test_start_paused_rejected(self, ledger, ariel):
        task = ledger.add_task(ariel, "Restock", at(9))
        ledger.start_task(ariel, task.id, at(9))
        ledger.pause_task(ariel, task.id, "Tunggu", at(9, 10))

        with pytest.raises(GuardRejection):
            ledger.start_task(ariel, task.id, at(9, 20))

    def test_break_records_progress(self, ledger, ariel):
        task = ledger.add_task(ariel, "Restock", at(9))
        ledger.start_task(ariel, task.id, at(9))
        ledger.break_task(ariel, task.id, "40", at(10))

        assert task.progress == 40
        assert task.paused is True
        assert task.pause_history[-1].reason == "Break - Progress 40%"

    def test_break_zero_progress_rejected(self, ledger, ariel):
        task = ledger.add_task(ariel, "Restock", at(9))
        ledger.start_task(ariel, task.id, at(9))
        with pytest.raises(ValidationError):
            ledger.break_task(ariel, task.id, 0, at(10))

    def test_end_while_paused_closes_pause(self, ledger, ariel):
        task = ledger.add_task(ariel, "Restock", at(9))
        ledger.start_task(ariel, task.id, at(9))
        ledger.pause_task(ariel, task.id, "Tunggu", at(9, 30))
        ended = ledger.end_task(ariel, task.id, at(10))

        assert ended.pause_history[0].end_time == "10:00:00"
        assert ended.paused is False


class TestBulk:
    """Tests for pause_all / resume_all."""

    def test_pause_all_only_running(self, ledger, ariel):
        running = ledger.add_task(ariel, "A", at(9))
        idle = ledger.add_task(ariel, "B", at(9))
        ledger.start_task(ariel, running.id, at(9))

        paused = ledger.pause_all(ariel, "Rapat", at(10))

        assert paused == [running]
        assert idle.paused is False

    def test_pause_all_nothing_running(self, ledger, ariel):
        ledger.add_task(ariel, "A", at(9))
        with pytest.raises(GuardRejection, match="Tidak ada task yang sedang berjalan"):
            ledger.pause_all(ariel, "Rapat", at(10))

    def test_resume_all(self, ledger, ariel):
        a = ledger.add_task(ariel, "A", at(9))
        b = ledger.add_task(ariel, "B", at(9))
        for task in (a, b):
            ledger.start_task(ariel, task.id, at(9))
        ledger.pause_all(ariel, "Rapat", at(10))

        resumed = ledger.resume_all(ariel, at(10, 30))

        assert resumed == [a, b]
        with pytest.raises(GuardRejection, match="Tidak ada task yang di-pause"):
            ledger.resume_all(ariel, at(11))


class TestEditing:
    """Tests for toggle / progress / priority / delete."""

    def test_toggle_stays_in_work_tasks(self, ledger, ariel):
        task = ledger.add_task(ariel, "A", at(9))
        ledger.toggle_completion(ariel, task.id, at(9, 5))

        assert task.completed is True
        assert ariel.work_tasks == [task]
        assert ariel.completed_tasks_history == []

        ledger.toggle_completion(ariel, task.id, at(9, 6))
        assert task.completed is False
        assert task.completed_at is None

    def test_progress_clamped(self, ledger, ariel):
        task = ledger.add_task(ariel, "A", at(9))
        assert ledger.update_progress(ariel, task.id, 150).progress == 100
        with pytest.raises(ValidationError):
            ledger.update_progress(ariel, task.id, "banyak")

    def test_priority(self, ledger, ariel):
        task = ledger.add_task(ariel, "A", at(9))
        assert ledger.update_priority(ariel, task.id, "urgent").priority == TaskPriority.URGENT
        with pytest.raises(ValidationError):
            ledger.update_priority(ariel, task.id, "segera")

    def test_delete(self, ledger, ariel):
        task = ledger.add_task(ariel, "A", at(9))
        ledger.delete_task(ariel, task.id)

        assert ariel.work_tasks == []


class TestLongRunning:
    """Tests for long_running_tasks()."""

    def test_hourly_alert(self, ledger, ariel):
        task = ledger.add_task(ariel, "A", at(9))
        ledger.start_task(ariel, task.id, at(9))

        assert ledger.long_running_tasks(ariel, at(9, 59)) == []
        assert ledger.long_running_tasks(ariel, at(10, 0)) == [(task, 60)]
        assert ledger.long_running_tasks(ariel, at(10, 1)) == []
        assert ledger.long_running_tasks(ariel, at(11, 0)) == [(task, 120)]

    def test_paused_not_alerted(self, ledger, ariel):
        task = ledger.add_task(ariel, "A", at(9))
        ledger.start_task(ariel, task.id, at(9))
        ledger.pause_task(ariel, task.id, "Tunggu", at(9, 30))

        assert ledger.long_running_tasks(ariel, at(10, 0)) == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
