"""
Excel Writer Module

Generates the monthly attendance workbook with styling.
Sheet "Kehadiran": one row per employee, one column per day, status codes
with color fills and a summary block. Sheet "Jadwal Shift": the shift schedule.
"""

from calendar import monthrange
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from domain.attendance_calendar import AttendanceCalendar
from domain.entities import AttendanceStatus, DayRecord, Employee, ShiftScheduleDay, NO_LEAVE
from domain.time_arithmetic import MONTH_NAMES, day_name
from infrastructure.logger import get_logger

logger = get_logger("ExcelWriter")


class ExcelWriter:
    """
    Generates formatted Excel attendance reports.

    Output format:
    - Row 1: Name | day numbers | summary headers
    - Row 2: weekday names
    - Row 3+: one row per employee
    """

    STATUS_CODES: Dict[AttendanceStatus, str] = {
        AttendanceStatus.BELUM: "",
        AttendanceStatus.HADIR: "H",
        AttendanceStatus.TELAT: "T",
        AttendanceStatus.LEMBUR: "L",
        AttendanceStatus.LIBUR: "LB",
        AttendanceStatus.IZIN: "I",
        AttendanceStatus.SAKIT: "S",
        AttendanceStatus.ALPHA: "A",
    }

    COLORS = {
        'green': PatternFill(start_color='90EE90', end_color='90EE90', fill_type='solid'),
        'red': PatternFill(start_color='FF6B6B', end_color='FF6B6B', fill_type='solid'),
        'yellow': PatternFill(start_color='FFD700', end_color='FFD700', fill_type='solid'),
        'orange': PatternFill(start_color='FFA500', end_color='FFA500', fill_type='solid'),
        'blue': PatternFill(start_color='6B8CFF', end_color='6B8CFF', fill_type='solid'),
        'black': PatternFill(start_color='333333', end_color='333333', fill_type='solid'),
        'gray': PatternFill(start_color='D3D3D3', end_color='D3D3D3', fill_type='solid'),
        'header': PatternFill(start_color='4472C4', end_color='4472C4', fill_type='solid'),
    }

    STATUS_COLORS: Dict[AttendanceStatus, Optional[str]] = {
        AttendanceStatus.BELUM: None,
        AttendanceStatus.HADIR: 'green',
        AttendanceStatus.TELAT: 'red',
        AttendanceStatus.LEMBUR: 'blue',
        AttendanceStatus.LIBUR: 'gray',
        AttendanceStatus.IZIN: 'yellow',
        AttendanceStatus.SAKIT: 'orange',
        AttendanceStatus.ALPHA: 'black',
    }

    SUMMARY_HEADERS = ["Hadir", "Telat", "Lembur", "Libur", "Izin", "Sakit", "Alpha", "Jam Telat"]

    BORDER = Border(
        left=Side(style='thin'),
        right=Side(style='thin'),
        top=Side(style='thin'),
        bottom=Side(style='thin')
    )

    def __init__(self):
        self.wb: Optional[Workbook] = None

    def _is_dark_color(self, color_name: Optional[str]) -> bool:
        return color_name in ('black', 'blue', 'header')

    def cell_text(self, record: Optional[DayRecord]) -> str:
        """Status code of a day, with late hours appended for telat/lembur days."""
        if record is None:
            return ""
        code = self.STATUS_CODES.get(record.status, "")
        if record.status in (AttendanceStatus.TELAT, AttendanceStatus.LEMBUR) and record.late_hours > 0:
            return f"{code}{record.late_hours}"
        return code

    def create_report(
        self,
        employees: List[Employee],
        calendar: AttendanceCalendar,
        year: int,
        month_index: int,
        output_path: Path,
        schedule_days: Optional[List[ShiftScheduleDay]] = None
    ) -> Path:
        """
        Create the workbook.

        Args:
            employees: Roster in display order
            calendar: Attendance calendar
            year: Report year
            month_index: Month 0-11
            output_path: Path to save the Excel file
            schedule_days: Optional schedule for the second sheet

        Returns:
            Path to the created file
        """
        self.wb = Workbook()
        default_sheet = self.wb.active
        self.wb.remove(default_sheet)

        attendance_ws = self.wb.create_sheet("Kehadiran")
        self._write_attendance_sheet(attendance_ws, employees, calendar, year, month_index)

        if schedule_days:
            schedule_ws = self.wb.create_sheet("Jadwal Shift")
            self._write_schedule_sheet(schedule_ws, schedule_days)

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        self.wb.save(output_path)
        logger.info(f"Excel disimpan: {output_path}")
        return output_path

    def _style_header(self, cell) -> None:
        cell.fill = self.COLORS['header']
        cell.font = Font(bold=True, color='FFFFFF')
        cell.alignment = Alignment(horizontal='center', vertical='center')
        cell.border = self.BORDER

    def _write_attendance_sheet(
        self,
        ws,
        employees: List[Employee],
        calendar: AttendanceCalendar,
        year: int,
        month_index: int
    ) -> None:
        _, num_days = monthrange(year, month_index + 1)

        title = f"Kehadiran {MONTH_NAMES[month_index]} {year}"
        ws.title = "Kehadiran"
        ws.sheet_properties.tabColor = "4472C4"

        # Row 1: headers
        name_cell = ws.cell(row=1, column=1, value="Nama")
        self._style_header(name_cell)
        ws.cell(row=2, column=1, value=title).font = Font(italic=True, size=8)

        for day in range(1, num_days + 1):
            col = day + 1
            self._style_header(ws.cell(row=1, column=col, value=day))
            weekday = ws.cell(row=2, column=col, value=day_name(date(year, month_index + 1, day))[:3])
            weekday.alignment = Alignment(horizontal='center')
            weekday.font = Font(size=8)
            ws.column_dimensions[get_column_letter(col)].width = 5

        summary_start = num_days + 2
        for offset, header in enumerate(self.SUMMARY_HEADERS):
            col = summary_start + offset
            self._style_header(ws.cell(row=1, column=col, value=header))
            ws.column_dimensions[get_column_letter(col)].width = 10

        ws.column_dimensions['A'].width = 16

        # Data rows
        for idx, employee in enumerate(employees):
            row = idx + 3
            label = f"{employee.name} (backup)" if employee.is_backup else employee.name
            name = ws.cell(row=row, column=1, value=label)
            name.border = self.BORDER
            name.font = Font(bold=True)

            records = calendar.month_records(employee.id, month_index)
            for day in range(1, num_days + 1):
                record = records.get(day)
                cell = ws.cell(row=row, column=day + 1, value=self.cell_text(record))
                cell.border = self.BORDER
                cell.alignment = Alignment(horizontal='center', vertical='center')
                if record is None:
                    continue
                color = self.STATUS_COLORS.get(record.status)
                if color:
                    cell.fill = self.COLORS[color]
                    if self._is_dark_color(color):
                        cell.font = Font(color='FFFFFF')

            stats = calendar.monthly_stats(employee.id, month_index)
            values = [
                stats.hadir, stats.telat, stats.lembur, stats.libur,
                stats.izin, stats.sakit, stats.alpha, stats.total_late_hours,
            ]
            for offset, value in enumerate(values):
                cell = ws.cell(row=row, column=summary_start + offset, value=value)
                cell.border = self.BORDER
                cell.alignment = Alignment(horizontal='center')

        ws.freeze_panes = "B3"

    def _write_schedule_sheet(self, ws, schedule_days: List[ShiftScheduleDay]) -> None:
        headers = ["Tanggal", "Hari", "Libur", "Pagi", "Malam", "Keterangan"]
        widths = [12, 10, 14, 28, 28, 24]
        for col, (header, width) in enumerate(zip(headers, widths), start=1):
            self._style_header(ws.cell(row=1, column=col, value=header))
            ws.column_dimensions[get_column_letter(col)].width = width

        for idx, day in enumerate(schedule_days):
            row = idx + 2
            values = [
                day.date,
                day.day_name,
                "" if day.libur == NO_LEAVE else day.libur,
                ", ".join(day.pagi),
                ", ".join(day.malam),
                day.keterangan,
            ]
            for col, value in enumerate(values, start=1):
                cell = ws.cell(row=row, column=col, value=value)
                cell.border = self.BORDER
                if day.libur != NO_LEAVE:
                    cell.fill = self.COLORS['gray']

        ws.freeze_panes = "A2"
