"""
Rotation Scheduler Module

Builds the monthly shift schedule (pagi / malam crews per day) with a weekly
solo rotation and fairness counters. Pure functions, no I/O.

Rules:
- Days are split into 7-day weeks starting on day 1 (the last week may be shorter)
- A regular with 4 or more libur days in a week sits out that week's rotation
- 3 regulars: 2 pagi + 1 malam on even weeks, 1 pagi + 2 malam on odd weeks;
  the solo slot goes to whoever had the fewest solo weeks so far
- 2 regulars: pagi/malam pair flips every week
- 1 regular: regular on pagi, backup on malam
- 0 regulars: backup works both shifts
- A regular on libur is replaced by the backup for that day only
"""

from calendar import monthrange
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional

from .attendance_calendar import AttendanceCalendar
from .entities import (
    AttendanceStatus, Employee, FairnessCounters, NO_LEAVE, ShiftScheduleDay
)
from .time_arithmetic import day_name, format_id_date


ROLE_PAGI = "pagi"
ROLE_MALAM = "malam"
ROLE_DOUBLE = "double"

DAYS_PER_WEEK = 7
DEFAULT_EXCLUSION_DAYS = 4


@dataclass
class ScheduleResult:
    """Output of one full schedule calculation."""
    days: List[ShiftScheduleDay] = field(default_factory=list)
    weekly_roles: List[Dict[str, str]] = field(default_factory=list)
    stats: Dict[str, FairnessCounters] = field(default_factory=dict)


def split_weeks(days: List[ShiftScheduleDay]) -> List[List[ShiftScheduleDay]]:
    """Partition days into consecutive 7-day slices."""
    return [days[i:i + DAYS_PER_WEEK] for i in range(0, len(days), DAYS_PER_WEEK)]


def available_regulars(
    week: List[ShiftScheduleDay],
    regular: List[str],
    exclusion_days: int = DEFAULT_EXCLUSION_DAYS
) -> List[str]:
    """Regulars with fewer than `exclusion_days` libur days in the week, in roster order."""
    libur_count = {name: 0 for name in regular}
    for day in week:
        if day.libur in libur_count:
            libur_count[day.libur] += 1
    return [name for name in regular if libur_count[name] < exclusion_days]


def _choose_solo(pool: List[str], stats: Dict[str, FairnessCounters], week_idx: int) -> str:
    """Fewest combined solo weeks wins; ties rotate alphabetically by week index."""
    fewest = min(stats[name].solo_weeks for name in pool)
    candidates = sorted(name for name in pool if stats[name].solo_weeks == fewest)
    if len(candidates) > 1:
        return candidates[week_idx % len(candidates)]
    return candidates[0]


def assign_week_roles(
    pool: List[str],
    backup: List[str],
    stats: Dict[str, FairnessCounters],
    week_idx: int
) -> Dict[str, str]:
    """
    Role of each person for one week.

    Args:
        pool: Available regulars in roster order
        backup: Backup names, first one is used
        stats: Fairness counters, updated in place
        week_idx: Zero-based week index within the month

    Returns:
        Mapping name -> 'pagi' | 'malam' | 'double'
    """
    roles: Dict[str, str] = {}

    if len(pool) >= 3:
        # Hanya 3 orang pertama yang ikut rotasi
        pool = pool[:3]
        solo = _choose_solo(pool, stats, week_idx)
        others = [name for name in pool if name != solo]
        if week_idx % 2 == 0:
            # 2P1M: solo di malam
            roles[solo] = ROLE_MALAM
            stats[solo].solo_weeks_malam += 1
            for name in others:
                roles[name] = ROLE_PAGI
        else:
            # 1P2M: solo di pagi
            roles[solo] = ROLE_PAGI
            stats[solo].solo_weeks_pagi += 1
            for name in others:
                roles[name] = ROLE_MALAM

    elif len(pool) == 2:
        first, second = pool
        if week_idx % 2 == 0:
            roles[first], roles[second] = ROLE_PAGI, ROLE_MALAM
        else:
            roles[first], roles[second] = ROLE_MALAM, ROLE_PAGI

    elif len(pool) == 1:
        roles[pool[0]] = ROLE_PAGI
        if backup:
            roles[backup[0]] = ROLE_MALAM

    elif backup:
        roles[backup[0]] = ROLE_DOUBLE

    for name, role in roles.items():
        counters = stats[name]
        if role == ROLE_PAGI:
            counters.weeks_as_pagi += 1
        elif role == ROLE_MALAM:
            counters.weeks_as_malam += 1
        else:
            counters.weeks_as_double += 1
    return roles


def _place(role: Optional[str], name: str, pagi: List[str], malam: List[str]) -> None:
    if role == ROLE_PAGI:
        pagi.append(name)
    elif role == ROLE_MALAM:
        malam.append(name)
    elif role == ROLE_DOUBLE:
        pagi.append(name)
        malam.append(name)


def calculate_shift_schedule(
    days: List[ShiftScheduleDay],
    regular: List[str],
    backup: List[str],
    exclusion_days: int = DEFAULT_EXCLUSION_DAYS
) -> ScheduleResult:
    """
    Assign pagi/malam crews for every day.

    Only the `libur` field of the input days is read; crews and counters
    are rebuilt from scratch. The input list is not modified.
    """
    everyone = list(regular) + [name for name in backup if name not in regular]
    stats = {name: FairnessCounters() for name in everyone}

    weekly_roles: List[Dict[str, str]] = []
    for week_idx, week in enumerate(split_weeks(days)):
        pool = available_regulars(week, regular, exclusion_days)
        weekly_roles.append(assign_week_roles(pool, backup, stats, week_idx))

    result_days: List[ShiftScheduleDay] = []
    for idx, row in enumerate(days):
        roles = weekly_roles[idx // DAYS_PER_WEEK]
        libur = row.libur or NO_LEAVE
        if libur != NO_LEAVE and libur in stats:
            stats[libur].libur_days += 1

        pagi: List[str] = []
        malam: List[str] = []
        for name in everyone:
            if name == libur:
                continue
            _place(roles.get(name), name, pagi, malam)

        # Backup menggantikan peran karyawan reguler yang libur
        if libur in regular and backup:
            substitute = backup[0]
            if substitute != libur:
                substitute_pagi: List[str] = []
                substitute_malam: List[str] = []
                _place(roles.get(libur), substitute, substitute_pagi, substitute_malam)
                pagi.extend(n for n in substitute_pagi if n not in pagi)
                malam.extend(n for n in substitute_malam if n not in malam)

        for name in pagi:
            stats[name].pagi_days += 1
        for name in malam:
            stats[name].malam_days += 1
        for name in set(pagi) & set(malam):
            stats[name].double_days += 1

        result_days.append(ShiftScheduleDay(
            day=row.day,
            date=row.date,
            day_name=row.day_name,
            libur=libur,
            pagi=pagi,
            malam=malam,
            keterangan=row.keterangan
        ))

    return ScheduleResult(days=result_days, weekly_roles=weekly_roles, stats=stats)


def build_month_template(
    year: int,
    month_index: int,
    roster: Iterable[Employee],
    calendar: AttendanceCalendar
) -> List[ShiftScheduleDay]:
    """
    Empty schedule rows for a month, with `libur` taken from the calendar.

    Args:
        year: Calendar year
        month_index: Month 0-11
        roster: Employees in roster order
        calendar: Attendance calendar to read libur days from
    """
    _, num_days = monthrange(year, month_index + 1)
    roster = list(roster)
    rows = []
    for day in range(1, num_days + 1):
        current = date(year, month_index + 1, day)
        libur = NO_LEAVE
        for employee in roster:
            record = calendar.get_day(employee.id, month_index, day)
            if record is not None and record.status == AttendanceStatus.LIBUR:
                libur = employee.name
        rows.append(ShiftScheduleDay(
            day=day,
            date=format_id_date(current),
            day_name=day_name(current),
            libur=libur
        ))
    return rows


def split_roster(roster: Iterable[Employee]):
    """Names of regulars and backups, in roster order."""
    roster = list(roster)
    regular = [e.name for e in roster if not e.is_backup]
    backup = [e.name for e in roster if e.is_backup]
    return regular, backup


def generate_schedule(
    year: int,
    month_index: int,
    roster: Iterable[Employee],
    calendar: AttendanceCalendar,
    exclusion_days: int = DEFAULT_EXCLUSION_DAYS
) -> ScheduleResult:
    """Build the month template from the calendar and calculate crews."""
    roster = list(roster)
    regular, backup = split_roster(roster)
    template = build_month_template(year, month_index, roster, calendar)
    return calculate_shift_schedule(template, regular, backup, exclusion_days)


def update_libur(
    days: List[ShiftScheduleDay],
    index: int,
    value: str,
    month_index: int,
    roster: Iterable[Employee],
    calendar: AttendanceCalendar,
    exclusion_days: int = DEFAULT_EXCLUSION_DAYS
) -> ScheduleResult:
    """
    Change who is on libur for one day and recalculate the whole month.

    The new person's calendar day becomes LIBUR and the previous person's day
    goes back to BELUM.

    Raises:
        IndexError: `index` is outside the schedule
    """
    if not 0 <= index < len(days):
        raise IndexError(f"Hari ke-{index} tidak ada di jadwal")

    roster = list(roster)
    ids_by_name = {e.name: e.id for e in roster}
    row = days[index]
    old_libur = row.libur
    new_libur = value or NO_LEAVE

    if old_libur != NO_LEAVE and old_libur != new_libur and old_libur in ids_by_name:
        calendar.set_status(ids_by_name[old_libur], month_index, row.day, AttendanceStatus.BELUM, 0)
    if new_libur != NO_LEAVE and new_libur in ids_by_name:
        calendar.set_status(ids_by_name[new_libur], month_index, row.day, AttendanceStatus.LIBUR, 0)

    updated = [
        ShiftScheduleDay(
            day=d.day, date=d.date, day_name=d.day_name,
            libur=new_libur if i == index else d.libur,
            keterangan=d.keterangan
        )
        for i, d in enumerate(days)
    ]
    regular, backup = split_roster(roster)
    return calculate_shift_schedule(updated, regular, backup, exclusion_days)
