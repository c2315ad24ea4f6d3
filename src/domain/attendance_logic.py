"""
Attendance Logic Module

Implements Strategy pattern for lateness by employee type, and the
per-employee shift state machine: check-in, break, izin, check-out and
the no-show sweep.
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional

from .attendance_calendar import AttendanceCalendar
from .entities import (
    AttendanceStatus, BreakRecord, Employee, GuardRejection, IzinRecord,
    ShiftEntry, ShiftType, ValidationError
)
from .time_arithmetic import (
    ClockTime, date_key, format_clock, minutes_between, parse_time
)
from config.config_manager import AttendanceRules, ShiftRule, ShiftRules


@dataclass
class LatenessResult:
    """Outcome of a lateness evaluation."""
    is_late: bool = False
    late_hours: int = 0
    late_minutes: int = 0


def crosses_midnight(rule: ShiftRule) -> bool:
    return rule.end < rule.start


def in_shift_window(hour: int, rule: ShiftRule) -> bool:
    """Check whether an hour falls within [start, end) of a shift."""
    if crosses_midnight(rule):
        return hour >= rule.start or hour < rule.end
    return rule.start <= hour < rule.end


def detect_current_shift(now: datetime, shift_rules: ShiftRules) -> Optional[ShiftType]:
    """
    Shift whose window contains `now`.

    Returns:
        ShiftType.PAGI for [09:00, 17:00), ShiftType.MALAM for [17:00, 01:00),
        None outside both windows (with the default rules).
    """
    for rule in (shift_rules.pagi, shift_rules.malam):
        if in_shift_window(now.hour, rule):
            return ShiftType(rule.name)
    return None


def shift_day(now: datetime, rule: ShiftRule) -> date:
    """Calendar day a shift belongs to; night hours after midnight count for the day before."""
    if crosses_midnight(rule) and now.hour < rule.end:
        return now.date() - timedelta(days=1)
    return now.date()


def minutes_since_shift_start(now: datetime, rule: ShiftRule) -> int:
    """Elapsed minutes since the shift started, wrapping past midnight."""
    return minutes_between(ClockTime(rule.start, 0), parse_time(now))


def calculate_late_hours(
    clock: ClockTime,
    rule: ShiftRule,
    rules: AttendanceRules,
    had_break: bool = False
) -> LatenessResult:
    """
    Lateness of a check-in at `clock`.

    The last on-time hour is `rule.max_check_in`, one hour later when the
    employee already took a break today. Night-shift check-ins after midnight
    count the full evening as late. Seconds are ignored.
    """
    max_hour = rule.max_check_in + (rules.break_tolerance_hours if had_break else 0)

    if crosses_midnight(rule) and clock.hour < rule.end:
        late_minutes = (24 - max_hour) * 60 + clock.hour * 60 + clock.minute
    else:
        late_minutes = max(0, (clock.hour - max_hour) * 60 + clock.minute)

    if late_minutes >= rules.late_after_minutes and late_minutes > 0:
        return LatenessResult(
            is_late=True,
            late_hours=math.ceil(late_minutes / 60),
            late_minutes=late_minutes
        )
    return LatenessResult(late_minutes=late_minutes)


class LatenessStrategy(ABC):
    """Abstract base class for lateness determination strategies."""

    @abstractmethod
    def evaluate(
        self,
        clock: ClockTime,
        rule: ShiftRule,
        rules: AttendanceRules,
        had_break: bool
    ) -> LatenessResult:
        """
        Determine lateness of a check-in.

        Args:
            clock: Check-in time of day
            rule: Shift being checked into
            rules: Attendance thresholds
            had_break: Whether a break was already taken today

        Returns:
            LatenessResult
        """
        pass


class RegularLatenessStrategy(LatenessStrategy):
    """Rotation members: late after the shift's max check-in hour."""

    def evaluate(self, clock, rule, rules, had_break):
        return calculate_late_hours(clock, rule, rules, had_break)


class BackupLatenessStrategy(LatenessStrategy):
    """Backup employee: always present, never late."""

    def evaluate(self, clock, rule, rules, had_break):
        return LatenessResult()


class LatenessStrategyFactory:
    """Factory for creating the appropriate lateness strategy."""

    _regular = RegularLatenessStrategy()
    _backup = BackupLatenessStrategy()

    @classmethod
    def get_strategy(cls, employee: Employee) -> LatenessStrategy:
        return cls._backup if employee.is_backup else cls._regular


class AttendanceStateMachine:
    """
    Shift state of one employee per shift-day:
    NotCheckedIn -> CheckedIn -> OnBreak -> CheckedIn (-> OnIzin -> CheckedIn) -> ShiftEnded.

    Operations mutate the given Employee and AttendanceCalendar in place.
    All checks run before the first mutation, so a rejected call changes nothing.
    """

    def __init__(self, shift_rules: ShiftRules = None, rules: AttendanceRules = None):
        self.shift_rules = shift_rules or ShiftRules()
        self.rules = rules or AttendanceRules()

    def _rule(self, shift: ShiftType) -> ShiftRule:
        return self.shift_rules.get(shift.value)

    def _current_day(self, employee: Employee, now: datetime) -> date:
        if employee.shift is not None:
            return shift_day(now, self._rule(employee.shift))
        return now.date()

    def check_in(self, employee: Employee, calendar: AttendanceCalendar, now: datetime) -> ShiftEntry:
        """
        Start a shift.

        A check-in on a day that already has a different shift is overtime,
        also while the first shift is still open: the open entry is closed
        and tasks and break state carry over into the overtime shift.
        Checking into the same shift again after check-out reopens it.

        Returns:
            The appended ShiftEntry

        Raises:
            GuardRejection: Already checked in for this shift, or outside both shift windows
        """
        shift = detect_current_shift(now, self.shift_rules)
        if shift is None:
            raise GuardRejection("Di luar jam shift")
        if employee.checked_in and employee.shift == shift:
            raise GuardRejection(f"{employee.name} sudah check-in untuk shift ini")

        rule = self._rule(shift)
        day = shift_day(now, rule)
        day_str = date_key(day)
        clock = parse_time(now)
        check_in_time = format_clock(now)

        shifts_today = [s for s in employee.shifts if s.date == day_str]
        same_shift = [s for s in shifts_today if s.shift == shift]
        reopen = bool(same_shift)
        if reopen:
            is_overtime = any(s.is_overtime for s in same_shift)
        else:
            is_overtime = bool(shifts_today)

        # Toleransi +1 jam hanya untuk shift kedua setelah istirahat
        had_break = is_overtime and any(b.date == day_str for b in employee.break_history)

        strategy = LatenessStrategyFactory.get_strategy(employee)
        lateness = strategy.evaluate(clock, rule, self.rules, had_break)

        if is_overtime:
            status = AttendanceStatus.LEMBUR
        elif lateness.is_late:
            status = AttendanceStatus.TELAT
        else:
            status = AttendanceStatus.HADIR

        entry = ShiftEntry(
            shift=shift,
            check_in_time=check_in_time,
            date=day_str,
            status=status,
            late_hours=lateness.late_hours,
            is_overtime=is_overtime
        )

        # Lembur langsung dari shift pertama yang masih terbuka
        carry_over = employee.checked_in and is_overtime
        if employee.checked_in and employee.shifts and employee.shifts[-1].end_time is None:
            employee.shifts[-1].end_time = check_in_time

        employee.checked_in = True
        employee.shift = shift
        employee.check_in_time = check_in_time
        employee.status = status
        employee.late_hours = lateness.late_hours
        employee.overtime = is_overtime
        employee.shift_end_time = None
        employee.shifts.append(entry)

        if carry_over:
            calendar.record_check_in(employee.id, day, entry, reopen=reopen)
            return entry

        employee.break_time = None
        employee.has_break_today = False
        employee.shift_end_adjustment = 0

        # Daftar task tetap, hanya progres yang direset
        for task in employee.work_tasks:
            task.start_time = None
            task.end_time = None
            task.duration = None
            task.completed = False
            task.completed_at = None
            task.progress = 0
            task.paused = False
            task.pause_start_time = None
            task.pause_history = []

        calendar.record_check_in(employee.id, day, entry, reopen=reopen)
        return entry

    def start_break(self, employee: Employee, now: datetime) -> str:
        """
        Start the one break of the shift.

        Raises:
            GuardRejection: Not checked in, a break is running, or already taken
        """
        if not employee.checked_in:
            raise GuardRejection(f"{employee.name} belum check-in")
        if employee.break_time is not None:
            raise GuardRejection(f"{employee.name} sedang istirahat")
        if employee.has_break_today:
            raise GuardRejection(f"{employee.name} sudah istirahat hari ini")

        employee.break_time = format_clock(now)
        employee.break_duration = 1
        return employee.break_time

    def end_break(self, employee: Employee, calendar: AttendanceCalendar, now: datetime) -> BreakRecord:
        """
        Close the running break.

        Returning after more than the break limit adds the rounded-up excess
        hours to `late_hours`, sets status TELAT and bumps `shift_end_adjustment`.
        """
        if employee.break_time is None:
            raise GuardRejection(f"{employee.name} tidak sedang istirahat")

        end_time = format_clock(now)
        elapsed = minutes_between(employee.break_time, end_time)
        limit = self.rules.break_limit_minutes
        is_late = elapsed > limit
        late_duration = math.ceil((elapsed - limit) / 60) if is_late else 0
        day = self._current_day(employee, now)

        record = BreakRecord(
            start_time=employee.break_time,
            end_time=end_time,
            duration=elapsed,
            is_late=is_late,
            late_duration=late_duration,
            date=date_key(day),
            shift=employee.shift
        )

        if is_late:
            employee.late_hours += late_duration
            employee.status = AttendanceStatus.TELAT
            employee.shift_end_adjustment += 1

        employee.break_time = None
        employee.has_break_today = True
        employee.break_history.append(record)

        calendar.add_activity(employee.id, day, "break", now.isoformat())
        return record

    def start_izin(self, employee: Employee, reason: str, now: datetime) -> str:
        """
        Start a leave request inside the shift.

        Raises:
            ValidationError: Empty reason
            GuardRejection: Not checked in or izin already running
        """
        if not reason or not reason.strip():
            raise ValidationError("Harap berikan alasan izin!")
        if not employee.checked_in:
            raise GuardRejection(f"{employee.name} belum check-in")
        if employee.izin_time is not None:
            raise GuardRejection(f"{employee.name} sedang izin")

        employee.izin_time = format_clock(now)
        employee.izin_reason = reason.strip()
        return employee.izin_time

    def end_izin(self, employee: Employee, calendar: AttendanceCalendar, now: datetime) -> IzinRecord:
        """Close the running izin. The calendar day status is left untouched."""
        if employee.izin_time is None:
            raise GuardRejection(f"{employee.name} tidak sedang izin")

        end_time = format_clock(now)
        day = self._current_day(employee, now)
        record = IzinRecord(
            start_time=employee.izin_time,
            end_time=end_time,
            duration=minutes_between(employee.izin_time, end_time),
            reason=employee.izin_reason or "",
            date=date_key(day),
            shift=employee.shift
        )
        employee.izin_history.append(record)
        employee.izin_time = None
        employee.izin_reason = None

        calendar.add_activity(employee.id, day, "izin", now.isoformat())
        return record

    def check_out(self, employee: Employee, calendar: AttendanceCalendar, now: datetime) -> int:
        """
        End the shift.

        Every work task is archived into the history, deduplicated by
        (id, shift_date). Returns the number of archived tasks.
        """
        if not employee.checked_in:
            raise GuardRejection(f"{employee.name} belum check-in")

        end_time = format_clock(now)
        last_entry = employee.shifts[-1] if employee.shifts else None
        if last_entry is not None and last_entry.date:
            day = date.fromisoformat(last_entry.date)
        else:
            day = self._current_day(employee, now)
        day_str = date_key(day)

        existing = {(t.id, t.shift_date) for t in employee.completed_tasks_history}
        archived = 0
        for task in employee.work_tasks:
            key = (task.id, day_str)
            if key in existing:
                continue
            task.task_type = "work"
            task.end_shift_time = end_time
            task.shift_date = day_str
            employee.completed_tasks_history.append(task)
            existing.add(key)
            archived += 1

        if last_entry is not None:
            last_entry.end_time = end_time

        employee.work_tasks = []
        employee.checked_in = False
        employee.shift = None
        employee.shift_end_time = end_time
        employee.break_time = None
        employee.izin_time = None
        employee.izin_reason = None

        calendar.record_check_out(employee.id, day, end_time)
        return archived

    def mark_absent_if_no_show(
        self,
        employees: Iterable[Employee],
        calendar: AttendanceCalendar,
        now: datetime,
        expected_names: Optional[Iterable[str]] = None
    ) -> List[Employee]:
        """
        Mark as libur everyone who has not shown up 3 hours into the current shift.

        Args:
            employees: Roster to sweep
            calendar: Calendar to write the libur day into
            now: Current time
            expected_names: Crew scheduled for the current shift; None sweeps everyone

        Returns:
            Employees that were changed
        """
        shift = detect_current_shift(now, self.shift_rules)
        if shift is None:
            return []
        rule = self._rule(shift)
        if minutes_since_shift_start(now, rule) < self.rules.no_show_hours * 60:
            return []

        day = shift_day(now, rule)
        day_str = date_key(day)
        expected = set(expected_names) if expected_names is not None else None

        changed = []
        for employee in employees:
            if employee.checked_in:
                continue
            if expected is not None and employee.name not in expected:
                continue
            if any(s.date == day_str for s in employee.shifts):
                continue
            record = calendar.day_of(employee.id, day)
            if record is not None and record.status != AttendanceStatus.BELUM:
                continue

            employee.status = AttendanceStatus.LIBUR
            record = calendar.ensure_date(employee.id, day)
            record.status = AttendanceStatus.LIBUR
            record.late_hours = 0
            record.shift = shift
            changed.append(employee)
        return changed
