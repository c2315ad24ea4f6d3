"""
Attendance Calendar Module

Per-employee day records: employee id -> month (0-11) -> day (1-31) -> DayRecord.
Employee names are display attributes only, so renaming never orphans history.
"""

from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, Optional

from .entities import (
    AttendanceStatus, DayActivity, DayRecord, Employee, ShiftEntry
)


@dataclass
class MonthlyStats:
    """Status counts of one employee for one month."""
    hadir: int = 0
    telat: int = 0
    lembur: int = 0
    izin: int = 0
    libur: int = 0
    sakit: int = 0
    alpha: int = 0
    total_late_hours: int = 0

    @property
    def work_days(self) -> int:
        return self.hadir + self.telat + self.lembur


class AttendanceCalendar:
    """
    Attendance calendar of the current year.

    Months and days are created lazily on first write and only removed by
    clear() or remove_employee().
    """

    def __init__(self, data: Optional[Dict[int, Dict[int, Dict[int, DayRecord]]]] = None):
        self._data: Dict[int, Dict[int, Dict[int, DayRecord]]] = data or {}

    def get_day(self, emp_id: int, month: int, day: int) -> Optional[DayRecord]:
        return self._data.get(emp_id, {}).get(month, {}).get(day)

    def ensure_day(self, emp_id: int, month: int, day: int) -> DayRecord:
        months = self._data.setdefault(emp_id, {})
        days = months.setdefault(month, {})
        if day not in days:
            days[day] = DayRecord()
        return days[day]

    def day_of(self, emp_id: int, day: date) -> Optional[DayRecord]:
        return self.get_day(emp_id, day.month - 1, day.day)

    def ensure_date(self, emp_id: int, day: date) -> DayRecord:
        return self.ensure_day(emp_id, day.month - 1, day.day)

    def month_records(self, emp_id: int, month: int) -> Dict[int, DayRecord]:
        return dict(self._data.get(emp_id, {}).get(month, {}))

    def employee_ids(self) -> Iterable[int]:
        return list(self._data.keys())

    def set_status(
        self,
        emp_id: int,
        month: int,
        day: int,
        status: AttendanceStatus,
        late_hours: int = 0
    ) -> DayRecord:
        """Overwrite a day's status, keeping the other fields of the record."""
        record = self.ensure_day(emp_id, month, day)
        record.status = status
        record.late_hours = late_hours
        return record

    def record_check_in(self, emp_id: int, day: date, entry: ShiftEntry, reopen: bool = False) -> DayRecord:
        """
        Write a check-in onto the day record.

        First shift: status, late hours, start time and shift are written directly.
        Overtime shift: status becomes LEMBUR, the first shift's status moves to
        `overtime_base_status` and late hours of both shifts are summed.
        Reopened shift (same shift again after check-out): only the end time is cleared
        unless the day has no status yet.
        """
        record = self.ensure_date(emp_id, day)

        if reopen and record.status != AttendanceStatus.BELUM:
            record.end_shift = None
            return record

        if entry.is_overtime:
            if record.status == AttendanceStatus.LEMBUR:
                base = record.overtime_base_status or AttendanceStatus.HADIR
            elif record.status in (AttendanceStatus.HADIR, AttendanceStatus.TELAT):
                base = record.status
            else:
                base = AttendanceStatus.HADIR
            record.overtime_base_status = base
            record.status = AttendanceStatus.LEMBUR
            record.late_hours = record.late_hours + entry.late_hours
            record.overtime_shift = entry.shift
            record.overtime_check_in = entry.check_in_time
            record.end_shift = None
        else:
            record.status = entry.status
            record.late_hours = entry.late_hours
            record.start_shift = entry.check_in_time
            record.shift = entry.shift
            record.end_shift = None
        return record

    def record_check_out(self, emp_id: int, day: date, clock: str) -> DayRecord:
        record = self.ensure_date(emp_id, day)
        record.end_shift = clock
        return record

    def add_activity(self, emp_id: int, day: date, activity_type: str, timestamp: str) -> DayRecord:
        record = self.ensure_date(emp_id, day)
        record.activities.append(DayActivity(type=activity_type, timestamp=timestamp))
        return record

    def monthly_stats(self, emp_id: int, month: int) -> MonthlyStats:
        """Count statuses of a month; late hours come from telat and lembur days."""
        stats = MonthlyStats()
        for record in self._data.get(emp_id, {}).get(month, {}).values():
            if record.status == AttendanceStatus.BELUM:
                continue
            current = getattr(stats, record.status.value)
            setattr(stats, record.status.value, current + 1)
            if record.status in (AttendanceStatus.TELAT, AttendanceStatus.LEMBUR):
                stats.total_late_hours += record.late_hours
        return stats

    def remove_employee(self, emp_id: int) -> None:
        self._data.pop(emp_id, None)

    def clear(self) -> None:
        self._data.clear()

    def to_dict(self) -> dict:
        """JSON shape: string keys at every level."""
        return {
            str(emp_id): {
                str(month): {
                    str(day): record.to_dict()
                    for day, record in sorted(days.items())
                }
                for month, days in sorted(months.items())
            }
            for emp_id, months in sorted(self._data.items())
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "AttendanceCalendar":
        """Load an id-keyed document. Non-numeric keys are skipped."""
        calendar = cls()
        for emp_key, months in (data or {}).items():
            if not str(emp_key).isdigit():
                continue
            calendar._load_months(int(emp_key), months)
        return calendar

    @classmethod
    def from_legacy(cls, data: Optional[dict], roster: Iterable[Employee]) -> "AttendanceCalendar":
        """
        Load a calendar that may still be keyed by employee name.

        Name keys are reindexed to the matching roster id; names that are not
        in the roster are dropped.
        """
        ids_by_name = {emp.name: emp.id for emp in roster}
        calendar = cls()
        for emp_key, months in (data or {}).items():
            key = str(emp_key)
            if key.isdigit():
                emp_id = int(key)
            elif key in ids_by_name:
                emp_id = ids_by_name[key]
            else:
                continue
            calendar._load_months(emp_id, months)
        return calendar

    def _load_months(self, emp_id: int, months: dict) -> None:
        for month_key, days in (months or {}).items():
            try:
                month = int(month_key)
            except (TypeError, ValueError):
                continue
            for day_key, record in (days or {}).items():
                try:
                    day = int(day_key)
                except (TypeError, ValueError):
                    continue
                if isinstance(record, dict):
                    self._data.setdefault(emp_id, {}).setdefault(month, {})[day] = DayRecord.from_dict(record)
