"""
Leaderboard Module

Completed-task ranking per period and the hourly productivity counter.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional

from .entities import Employee, ProductivityEntry, Task
from .task_ledger import pause_minutes
from .time_arithmetic import date_key, parse_duration


PERIODS = ("today", "week", "month", "total")

PERIOD_LABELS = {
    "today": "Hari Ini",
    "week": "Minggu Ini",
    "month": "Bulan Ini",
    "total": "Total",
}


@dataclass
class LeaderboardRow:
    """Ranking line of one employee."""
    employee_id: int
    name: str
    count: int = 0
    avg_minutes: int = 0
    tasks: List[Task] = field(default_factory=list)


def _period_start(period: str, today: date) -> Optional[date]:
    if period == "today":
        return today
    if period == "week":
        # Minggu dianggap awal minggu
        return today - timedelta(days=(today.weekday() + 1) % 7)
    if period == "month":
        return today.replace(day=1)
    return None


def _completed_on(task: Task) -> Optional[date]:
    if not task.completed_at:
        return None
    try:
        return datetime.fromisoformat(task.completed_at).date()
    except ValueError:
        return None


def net_minutes(task: Task) -> int:
    """Task duration without paused time."""
    return max(0, parse_duration(task.duration) - pause_minutes(task))


def build_leaderboard(employees: Iterable[Employee], period: str, now: datetime) -> List[LeaderboardRow]:
    """
    Rank employees by completed tasks in a period.

    Active and archived tasks both count. Ties on count go to the lower
    average duration.

    Raises:
        ValueError: Unknown period
    """
    if period not in PERIODS:
        raise ValueError(f"Periode tidak dikenal: {period}")

    start = _period_start(period, now.date())
    rows = []
    for employee in employees:
        completed = []
        for task in employee.work_tasks + employee.completed_tasks_history:
            if not task.completed:
                continue
            if start is not None:
                done = _completed_on(task)
                if done is None or done < start:
                    continue
                if period == "today" and done != start:
                    continue
            completed.append(task)

        with_duration = [t for t in completed if t.duration]
        avg = 0
        if with_duration:
            avg = round(sum(net_minutes(t) for t in with_duration) / len(with_duration))

        completed.sort(key=lambda t: t.completed_at or "", reverse=True)
        rows.append(LeaderboardRow(
            employee_id=employee.id,
            name=employee.name,
            count=len(completed),
            avg_minutes=avg,
            tasks=completed
        ))

    rows.sort(key=lambda r: (-r.count, r.avg_minutes))
    return rows


def track_productivity(
    entries: List[ProductivityEntry],
    emp_id: int,
    now: datetime,
    task_type: str = "work"
) -> ProductivityEntry:
    """Count one completed task in the (employee, hour, date) bucket."""
    day = date_key(now)
    for entry in entries:
        if entry.emp_id == emp_id and entry.hour == now.hour and entry.date == day and entry.type == task_type:
            entry.count += 1
            return entry
    entry = ProductivityEntry(emp_id=emp_id, hour=now.hour, date=day, count=1, type=task_type)
    entries.append(entry)
    return entry
