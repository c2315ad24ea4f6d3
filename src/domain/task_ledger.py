"""
Task Ledger Module

Lifecycle of an employee's work tasks:
pending -> running -> paused/break -> running -> ended (moved to history).

A task only moves to `completed_tasks_history` through end_task();
toggle_completion() is a checklist flag that leaves the task where it is.
"""

import uuid
from datetime import datetime
from typing import Callable, List, Optional, Tuple, Union

from .entities import (
    Employee, GuardRejection, PauseRecord, Task, TaskPriority, ValidationError
)
from .time_arithmetic import (
    date_key, format_clock, format_duration, minutes_between, seconds_between
)


def _new_task_id() -> str:
    return uuid.uuid4().hex[:12]


def pause_minutes(task: Task) -> int:
    """Total paused minutes of a task; an open pause counts up to the task end time."""
    total = 0
    for pause in task.pause_history:
        end = pause.end_time or task.end_time
        if pause.start_time and end:
            total += minutes_between(pause.start_time, end)
    return total


class TaskLedger:
    """
    Task operations on one employee's task lists.

    Every method validates first and then mutates the employee in place.
    """

    def __init__(self, id_factory: Optional[Callable[[], str]] = None):
        self._id_factory = id_factory or _new_task_id

    @staticmethod
    def _get(employee: Employee, task_id: str) -> Task:
        task = employee.find_task(task_id)
        if task is None:
            raise GuardRejection(f"Task {task_id} tidak ditemukan")
        return task

    @staticmethod
    def _open_pause(task: Task, reason: str, now: datetime) -> None:
        clock = format_clock(now, with_seconds=True)
        task.paused = True
        task.pause_start_time = clock
        task.pause_history.append(PauseRecord(start_time=clock, reason=reason))

    @staticmethod
    def _close_pause(task: Task, now: datetime) -> None:
        clock = format_clock(now, with_seconds=True)
        if task.pause_history and task.pause_history[-1].end_time is None:
            task.pause_history[-1].end_time = clock
        task.paused = False
        task.pause_start_time = None

    @staticmethod
    def _shift_date(employee: Employee, now: datetime) -> str:
        if employee.checked_in and employee.shifts:
            return employee.shifts[-1].date
        return date_key(now)

    def add_task(
        self,
        employee: Employee,
        text: str,
        now: datetime,
        priority: TaskPriority = TaskPriority.NORMAL
    ) -> Task:
        if not text or not text.strip():
            raise ValidationError("Deskripsi task tidak boleh kosong")
        task = Task(
            id=self._id_factory(),
            text=text.strip(),
            priority=priority,
            created_at=now.isoformat()
        )
        employee.work_tasks.append(task)
        return task

    def start_task(self, employee: Employee, task_id: str, now: datetime) -> Task:
        task = self._get(employee, task_id)
        if task.completed:
            raise GuardRejection(f"Task '{task.text}' sudah selesai")
        if task.paused:
            raise GuardRejection(f"Task '{task.text}' sedang di-pause, lanjutkan dengan resume")
        if task.start_time is not None:
            raise GuardRejection(f"Task '{task.text}' sudah berjalan")

        task.start_time = format_clock(now, with_seconds=True)
        task.end_time = None
        task.duration = None
        task.paused = False
        task.pause_start_time = None
        task.pause_history = []
        return task

    def pause_task(self, employee: Employee, task_id: str, reason: str, now: datetime) -> Task:
        if not reason or not reason.strip():
            raise ValidationError("Harap berikan alasan pause!")
        task = self._get(employee, task_id)
        if not task.is_running:
            raise GuardRejection(f"Task '{task.text}' tidak sedang berjalan")
        self._open_pause(task, reason.strip(), now)
        return task

    def break_task(self, employee: Employee, task_id: str, progress: Union[int, str], now: datetime) -> Task:
        """Pause a running task and record how far it got."""
        value = self._parse_progress(progress)
        if value <= 0:
            raise ValidationError("Progress harus lebih dari 0%")
        task = self._get(employee, task_id)
        if not task.is_running:
            raise GuardRejection(f"Task '{task.text}' tidak sedang berjalan")
        task.progress = value
        self._open_pause(task, f"Break - Progress {value}%", now)
        return task

    def resume_task(self, employee: Employee, task_id: str, now: datetime) -> Task:
        task = self._get(employee, task_id)
        if not task.paused or task.completed:
            raise GuardRejection(f"Task '{task.text}' tidak sedang di-pause")
        self._close_pause(task, now)
        return task

    def end_task(self, employee: Employee, task_id: str, now: datetime) -> Task:
        """
        Finish a started task and move it into the history.

        Raises:
            GuardRejection: Unknown task or task never started
        """
        task = self._get(employee, task_id)
        if task.start_time is None:
            raise GuardRejection(f"Task '{task.text}' belum dimulai")

        if task.paused:
            self._close_pause(task, now)

        task.end_time = format_clock(now, with_seconds=True)
        elapsed_seconds = seconds_between(task.start_time, task.end_time)
        task.duration = format_duration(elapsed_seconds // 60)
        task.completed = True
        task.progress = 100
        task.completed_at = now.isoformat()
        task.task_type = "work"
        task.shift_date = self._shift_date(employee, now)

        employee.work_tasks = [t for t in employee.work_tasks if t.id != task.id]
        if not any(
            t.id == task.id and t.shift_date == task.shift_date
            for t in employee.completed_tasks_history
        ):
            employee.completed_tasks_history.append(task)
        return task

    def pause_all(self, employee: Employee, reason: str, now: datetime) -> List[Task]:
        if not reason or not reason.strip():
            raise ValidationError("Harap berikan alasan pause!")
        running = [t for t in employee.work_tasks if t.is_running]
        if not running:
            raise GuardRejection("Tidak ada task yang sedang berjalan untuk di-pause.")
        for task in running:
            self._open_pause(task, reason.strip(), now)
        return running

    def resume_all(self, employee: Employee, now: datetime) -> List[Task]:
        paused = [t for t in employee.work_tasks if t.paused and not t.completed]
        if not paused:
            raise GuardRejection("Tidak ada task yang di-pause untuk di-resume.")
        for task in paused:
            self._close_pause(task, now)
        return paused

    def toggle_completion(self, employee: Employee, task_id: str, now: datetime) -> Task:
        """Checklist toggle; the task stays in `work_tasks`."""
        task = self._get(employee, task_id)
        task.completed = not task.completed
        if task.completed:
            task.progress = 100
            task.completed_at = now.isoformat()
            task.paused = False
            task.pause_start_time = None
        else:
            task.completed_at = None
        return task

    def update_progress(self, employee: Employee, task_id: str, progress: Union[int, str]) -> Task:
        task = self._get(employee, task_id)
        if task.completed:
            raise GuardRejection(f"Task '{task.text}' sudah selesai")
        task.progress = self._parse_progress(progress)
        return task

    def update_priority(self, employee: Employee, task_id: str, priority: Union[TaskPriority, str]) -> Task:
        task = self._get(employee, task_id)
        try:
            task.priority = TaskPriority(priority)
        except ValueError:
            raise ValidationError(f"Prioritas tidak dikenal: {priority}")
        return task

    def delete_task(self, employee: Employee, task_id: str) -> Task:
        task = self._get(employee, task_id)
        employee.work_tasks = [t for t in employee.work_tasks if t.id != task_id]
        return task

    def long_running_tasks(
        self,
        employee: Employee,
        now: datetime,
        interval_minutes: int = 60
    ) -> List[Tuple[Task, int]]:
        """Running tasks that just passed a full interval (60, 120, ... minutes)."""
        due = []
        clock = format_clock(now, with_seconds=True)
        for task in employee.work_tasks:
            if not task.is_running:
                continue
            elapsed = minutes_between(task.start_time, clock)
            if elapsed >= interval_minutes and elapsed % interval_minutes == 0:
                due.append((task, elapsed))
        return due

    @staticmethod
    def _parse_progress(progress: Union[int, str]) -> int:
        try:
            value = int(progress)
        except (TypeError, ValueError):
            raise ValidationError(f"Progress tidak valid: {progress}")
        return max(0, min(100, value))
