"""
Domain Entities Module

Core domain entities using dataclasses for the shift attendance system.
These entities represent the core business concepts independent of infrastructure.

Persisted documents use camelCase keys; every entity converts itself with
`to_dict()` / `from_dict()`. `from_dict()` tolerates missing keys so records
written by older clients still load.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


NO_LEAVE = "Tidak Ada"


class ShiftType(Enum):
    """Shift of the day. Values are the persisted names."""
    PAGI = "pagi"    # 09:00 - 17:00
    MALAM = "malam"  # 17:00 - 01:00 (lewat tengah malam)


class AttendanceStatus(Enum):
    """Status of attendance for a given day."""
    BELUM = "belum"    # belum ada data
    HADIR = "hadir"    # tepat waktu
    TELAT = "telat"    # terlambat
    LEMBUR = "lembur"  # shift kedua di hari yang sama
    IZIN = "izin"
    LIBUR = "libur"    # hari libur terjadwal
    SAKIT = "sakit"
    ALPHA = "alpha"


class TaskPriority(Enum):
    """Priority of a work task."""
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class AttendanceError(Exception):
    """Base exception for attendance domain errors."""
    pass


class ValidationError(AttendanceError):
    """Input rejected before anything was changed (missing reason, duplicate id...)."""
    pass


class GuardRejection(AttendanceError):
    """Action not applicable in the current state (break already taken, nothing to pause...)."""
    pass


def _status(value: Any, default: AttendanceStatus = AttendanceStatus.BELUM) -> AttendanceStatus:
    """Parse a persisted status string, falling back to `default` for unknown values."""
    if isinstance(value, AttendanceStatus):
        return value
    try:
        return AttendanceStatus(value)
    except ValueError:
        return default


def _optional_status(value: Any) -> Optional[AttendanceStatus]:
    if value is None:
        return None
    return _status(value)


def _shift(value: Any) -> Optional[ShiftType]:
    if isinstance(value, ShiftType):
        return value
    try:
        return ShiftType(value)
    except ValueError:
        return None


def _priority(value: Any) -> TaskPriority:
    if isinstance(value, TaskPriority):
        return value
    try:
        return TaskPriority(value)
    except ValueError:
        return TaskPriority.NORMAL


@dataclass
class ShiftEntry:
    """One check-in event. A second same-day entry for another shift is overtime."""
    shift: ShiftType
    check_in_time: str
    date: str
    status: AttendanceStatus = AttendanceStatus.HADIR
    late_hours: int = 0
    is_overtime: bool = False
    end_time: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "shift": self.shift.value,
            "checkInTime": self.check_in_time,
            "date": self.date,
            "status": self.status.value,
            "lateHours": self.late_hours,
            "isOvertime": self.is_overtime,
            "endTime": self.end_time,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ShiftEntry":
        return cls(
            shift=_shift(data.get("shift")) or ShiftType.PAGI,
            check_in_time=data.get("checkInTime") or "",
            date=data.get("date") or "",
            status=_status(data.get("status"), AttendanceStatus.HADIR),
            late_hours=int(data.get("lateHours") or 0),
            is_overtime=bool(data.get("isOvertime", False)),
            end_time=data.get("endTime"),
        )


@dataclass
class BreakRecord:
    """A finished break. `duration` is in minutes."""
    start_time: str
    end_time: str
    duration: int
    is_late: bool
    late_duration: int
    date: str
    shift: Optional[ShiftType] = None

    def to_dict(self) -> dict:
        return {
            "startTime": self.start_time,
            "endTime": self.end_time,
            "duration": self.duration,
            "isLate": self.is_late,
            "lateDuration": self.late_duration,
            "date": self.date,
            "shift": self.shift.value if self.shift else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BreakRecord":
        return cls(
            start_time=data.get("startTime") or "",
            end_time=data.get("endTime") or "",
            duration=int(data.get("duration") or 0),
            is_late=bool(data.get("isLate", False)),
            late_duration=int(data.get("lateDuration") or 0),
            date=data.get("date") or "",
            shift=_shift(data.get("shift")),
        )


@dataclass
class IzinRecord:
    """A finished leave request (izin) inside a shift."""
    start_time: str
    end_time: str
    duration: int
    reason: str
    date: str
    shift: Optional[ShiftType] = None

    def to_dict(self) -> dict:
        return {
            "startTime": self.start_time,
            "endTime": self.end_time,
            "duration": self.duration,
            "reason": self.reason,
            "date": self.date,
            "shift": self.shift.value if self.shift else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "IzinRecord":
        return cls(
            start_time=data.get("startTime") or "",
            end_time=data.get("endTime") or "",
            duration=int(data.get("duration") or 0),
            reason=data.get("reason") or "",
            date=data.get("date") or "",
            shift=_shift(data.get("shift")),
        )


@dataclass
class PauseRecord:
    """A pause of a running task; `end_time` stays None while paused."""
    start_time: str
    reason: str
    end_time: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "startTime": self.start_time,
            "endTime": self.end_time,
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PauseRecord":
        return cls(
            start_time=data.get("startTime") or "",
            reason=data.get("reason") or "",
            end_time=data.get("endTime"),
        )


@dataclass
class Task:
    """
    A work task of one employee.

    Lives either in `Employee.work_tasks` or in `Employee.completed_tasks_history`,
    never in both. History entries carry `shift_date` / `end_shift_time`.
    """
    id: str
    text: str
    completed: bool = False
    priority: TaskPriority = TaskPriority.NORMAL
    progress: int = 0
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    duration: Optional[str] = None
    created_at: Optional[str] = None
    completed_at: Optional[str] = None
    paused: bool = False
    pause_start_time: Optional[str] = None
    pause_history: List[PauseRecord] = field(default_factory=list)
    task_type: str = "work"
    end_shift_time: Optional[str] = None
    shift_date: Optional[str] = None

    @property
    def is_running(self) -> bool:
        return self.start_time is not None and not self.completed and not self.paused

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "task": self.text,
            "completed": self.completed,
            "priority": self.priority.value,
            "progress": self.progress,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "duration": self.duration,
            "createdAt": self.created_at,
            "completedAt": self.completed_at,
            "paused": self.paused,
            "pauseStartTime": self.pause_start_time,
            "pauseHistory": [p.to_dict() for p in self.pause_history],
            "taskType": self.task_type,
            "endShiftTime": self.end_shift_time,
            "shiftDate": self.shift_date,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Task":
        progress = data.get("progress") or 0
        try:
            progress = max(0, min(100, int(progress)))
        except (TypeError, ValueError):
            progress = 0
        return cls(
            id=str(data.get("id", "")),
            text=data.get("task") or data.get("text") or "",
            completed=bool(data.get("completed", False)),
            priority=_priority(data.get("priority")),
            progress=progress,
            start_time=data.get("startTime"),
            end_time=data.get("endTime"),
            duration=data.get("duration"),
            created_at=data.get("createdAt"),
            completed_at=data.get("completedAt"),
            paused=bool(data.get("paused", False)),
            pause_start_time=data.get("pauseStartTime"),
            pause_history=[PauseRecord.from_dict(p) for p in data.get("pauseHistory") or []],
            task_type=data.get("taskType") or "work",
            end_shift_time=data.get("endShiftTime"),
            shift_date=data.get("shiftDate"),
        )


@dataclass
class Employee:
    """
    Represents a roster member and their live shift state.

    Attributes:
        id: Stable roster id, never reused
        name: Display name, unique within the roster
        is_backup: Floater outside the rotation pool, exempt from lateness
        shifts: Append-only check-in log
        work_tasks: Active tasks of the current shift
        completed_tasks_history: Permanent log of finished tasks
    """
    id: int
    name: str
    is_backup: bool = False
    is_admin: bool = False
    base_salary: int = 0
    status: AttendanceStatus = AttendanceStatus.BELUM
    late_hours: int = 0
    check_in_time: Optional[str] = None
    shift: Optional[ShiftType] = None
    checked_in: bool = False
    break_time: Optional[str] = None
    break_duration: int = 0
    shift_end_adjustment: int = 0
    overtime: bool = False
    shifts: List[ShiftEntry] = field(default_factory=list)
    break_history: List[BreakRecord] = field(default_factory=list)
    has_break_today: bool = False
    shift_end_time: Optional[str] = None
    izin_time: Optional[str] = None
    izin_reason: Optional[str] = None
    izin_history: List[IzinRecord] = field(default_factory=list)
    work_tasks: List[Task] = field(default_factory=list)
    completed_tasks_history: List[Task] = field(default_factory=list)

    def find_task(self, task_id: str) -> Optional[Task]:
        for task in self.work_tasks:
            if task.id == task_id:
                return task
        return None

    def history_ids(self) -> set:
        return {task.id for task in self.completed_tasks_history}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "isBackup": self.is_backup,
            "isAdmin": self.is_admin,
            "baseSalary": self.base_salary,
            "status": self.status.value,
            "lateHours": self.late_hours,
            "checkInTime": self.check_in_time,
            "shift": self.shift.value if self.shift else None,
            "checkedIn": self.checked_in,
            "breakTime": self.break_time,
            "breakDuration": self.break_duration,
            "shiftEndAdjustment": self.shift_end_adjustment,
            "overtime": self.overtime,
            "shifts": [s.to_dict() for s in self.shifts],
            "breakHistory": [b.to_dict() for b in self.break_history],
            "hasBreakToday": self.has_break_today,
            "shiftEndTime": self.shift_end_time,
            "izinTime": self.izin_time,
            "izinReason": self.izin_reason,
            "izinHistory": [i.to_dict() for i in self.izin_history],
            "workTasks": [t.to_dict() for t in self.work_tasks],
            "completedTasksHistory": [t.to_dict() for t in self.completed_tasks_history],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Employee":
        return cls(
            id=int(data["id"]),
            name=data.get("name") or "",
            is_backup=bool(data.get("isBackup", False)),
            is_admin=bool(data.get("isAdmin", False)),
            base_salary=int(data.get("baseSalary") or 0),
            status=_status(data.get("status")),
            late_hours=int(data.get("lateHours") or 0),
            check_in_time=data.get("checkInTime"),
            shift=_shift(data.get("shift")),
            checked_in=bool(data.get("checkedIn", False)),
            break_time=data.get("breakTime"),
            break_duration=int(data.get("breakDuration") or 0),
            shift_end_adjustment=int(data.get("shiftEndAdjustment") or 0),
            overtime=bool(data.get("overtime", False)),
            shifts=[ShiftEntry.from_dict(s) for s in data.get("shifts") or []],
            break_history=[BreakRecord.from_dict(b) for b in data.get("breakHistory") or []],
            has_break_today=bool(data.get("hasBreakToday", False)),
            shift_end_time=data.get("shiftEndTime"),
            izin_time=data.get("izinTime"),
            izin_reason=data.get("izinReason"),
            izin_history=[IzinRecord.from_dict(i) for i in data.get("izinHistory") or []],
            work_tasks=[Task.from_dict(t) for t in data.get("workTasks") or []],
            completed_tasks_history=[
                Task.from_dict(t) for t in data.get("completedTasksHistory") or []
            ],
        )


@dataclass
class DayActivity:
    """Break / izin marker on a calendar day."""
    type: str
    timestamp: str

    def to_dict(self) -> dict:
        return {"type": self.type, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: dict) -> "DayActivity":
        return cls(type=data.get("type") or "", timestamp=data.get("timestamp") or "")


@dataclass
class DayRecord:
    """
    One employee's attendance on one calendar day.

    When `status` is LEMBUR, `overtime_base_status` keeps the status of the
    first shift of the day.
    """
    status: AttendanceStatus = AttendanceStatus.BELUM
    late_hours: int = 0
    shift: Optional[ShiftType] = None
    start_shift: Optional[str] = None
    end_shift: Optional[str] = None
    overtime_base_status: Optional[AttendanceStatus] = None
    overtime_shift: Optional[ShiftType] = None
    overtime_check_in: Optional[str] = None
    activities: List[DayActivity] = field(default_factory=list)

    def to_dict(self) -> dict:
        data: Dict[str, Any] = {
            "status": self.status.value,
            "lateHours": self.late_hours,
        }
        # Optional keys are omitted rather than written as null
        if self.shift is not None:
            data["shift"] = self.shift.value
        if self.start_shift is not None:
            data["startShift"] = self.start_shift
        if self.end_shift is not None:
            data["endShift"] = self.end_shift
        if self.overtime_base_status is not None:
            data["overtimeBaseStatus"] = self.overtime_base_status.value
        if self.overtime_shift is not None:
            data["overtimeShift"] = self.overtime_shift.value
        if self.overtime_check_in is not None:
            data["overtimeCheckIn"] = self.overtime_check_in
        if self.activities:
            data["activities"] = [a.to_dict() for a in self.activities]
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "DayRecord":
        return cls(
            status=_status(data.get("status")),
            late_hours=int(data.get("lateHours") or 0),
            shift=_shift(data.get("shift")),
            start_shift=data.get("startShift"),
            end_shift=data.get("endShift"),
            overtime_base_status=_optional_status(data.get("overtimeBaseStatus")),
            overtime_shift=_shift(data.get("overtimeShift")),
            overtime_check_in=data.get("overtimeCheckIn"),
            activities=[DayActivity.from_dict(a) for a in data.get("activities") or []],
        )


@dataclass
class ShiftScheduleDay:
    """One row of the monthly shift schedule. Crew lists hold employee names."""
    day: int
    date: str
    day_name: str
    libur: str = NO_LEAVE
    pagi: List[str] = field(default_factory=list)
    malam: List[str] = field(default_factory=list)
    keterangan: str = ""

    def to_dict(self) -> dict:
        return {
            "day": self.day,
            "date": self.date,
            "dayName": self.day_name,
            "libur": self.libur,
            "pagi": list(self.pagi),
            "malam": list(self.malam),
            "keterangan": self.keterangan,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ShiftScheduleDay":
        return cls(
            day=int(data.get("day") or 0),
            date=data.get("date") or "",
            day_name=data.get("dayName") or "",
            libur=data.get("libur") or NO_LEAVE,
            pagi=list(data.get("pagi") or []),
            malam=list(data.get("malam") or []),
            keterangan=data.get("keterangan") or "",
        )


@dataclass
class FairnessCounters:
    """Per-employee tallies rebuilt on every schedule calculation."""
    libur_days: int = 0
    pagi_days: int = 0
    malam_days: int = 0
    double_days: int = 0
    weeks_as_pagi: int = 0
    weeks_as_malam: int = 0
    weeks_as_double: int = 0
    solo_weeks_pagi: int = 0
    solo_weeks_malam: int = 0

    @property
    def solo_weeks(self) -> int:
        return self.solo_weeks_pagi + self.solo_weeks_malam


@dataclass
class Reminder:
    """Running break / izin / task reminder shown while a pause is open."""
    employee_id: int
    kind: str
    message: str
    started_at: str
    task_id: Optional[str] = None
    elapsed_minutes: int = 0
    overdue_notified: bool = False


@dataclass
class ProductivityEntry:
    """Completed-task counter per employee per hour of a day."""
    emp_id: int
    hour: int
    date: str
    count: int = 0
    type: str = "work"

    def to_dict(self) -> dict:
        return {
            "empId": self.emp_id,
            "hour": self.hour,
            "date": self.date,
            "count": self.count,
            "type": self.type,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ProductivityEntry":
        return cls(
            emp_id=int(data.get("empId") or 0),
            hour=int(data.get("hour") or 0),
            date=data.get("date") or "",
            count=int(data.get("count") or 0),
            type=data.get("type") or "work",
        )
