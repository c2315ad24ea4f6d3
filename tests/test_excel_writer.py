"""
Unit tests for the attendance ExcelWriter.
"""

import pytest
import tempfile
from datetime import date
from pathlib import Path

from openpyxl import load_workbook

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from domain.attendance_calendar import AttendanceCalendar
from domain.entities import AttendanceStatus, DayRecord, Employee
from domain.rotation_scheduler import generate_schedule
from infrastructure.excel_writer import ExcelWriter


@pytest.fixture
def roster():
    return [
        Employee(id=1, name="Desta", is_backup=True),
        Employee(id=2, name="Ariel"),
        Employee(id=3, name="Robert"),
    ]


@pytest.fixture
def calendar():
    calendar = AttendanceCalendar()
    calendar.set_status(2, 2, 3, AttendanceStatus.HADIR)
    calendar.set_status(2, 2, 4, AttendanceStatus.TELAT, 2)
    calendar.set_status(3, 2, 3, AttendanceStatus.LIBUR)
    return calendar


class TestCellText:
    """Tests for cell_text()."""

    def test_codes(self):
        writer = ExcelWriter()

        assert writer.cell_text(None) == ""
        assert writer.cell_text(DayRecord(status=AttendanceStatus.HADIR)) == "H"
        assert writer.cell_text(DayRecord(status=AttendanceStatus.TELAT, late_hours=2)) == "T2"
        assert writer.cell_text(DayRecord(status=AttendanceStatus.LEMBUR)) == "L"
        assert writer.cell_text(DayRecord(status=AttendanceStatus.LIBUR)) == "LB"


class TestCreateReport:
    """Tests for create_report()."""

    def test_attendance_sheet(self, roster, calendar):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = ExcelWriter().create_report(roster, calendar, 2025, 2, Path(tmpdir) / "k.xlsx")
            wb = load_workbook(path)

        assert wb.sheetnames == ["Kehadiran"]
        ws = wb["Kehadiran"]
        assert ws.cell(row=1, column=1).value == "Nama"
        assert ws.cell(row=1, column=2).value == 1
        assert ws.cell(row=3, column=1).value == "Desta (backup)"
        assert ws.cell(row=4, column=1).value == "Ariel"
        assert ws.cell(row=4, column=4).value == "H"
        assert ws.cell(row=4, column=5).value == "T2"
        assert ws.cell(row=5, column=4).value == "LB"
        assert ws.freeze_panes == "B3"

    def test_summary_columns(self, roster, calendar):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = ExcelWriter().create_report(roster, calendar, 2025, 2, Path(tmpdir) / "k.xlsx")
            wb = load_workbook(path)

        ws = wb["Kehadiran"]
        # 31 hari + kolom nama
        summary_start = 33
        headers = [ws.cell(row=1, column=summary_start + i).value for i in range(8)]
        values = [ws.cell(row=4, column=summary_start + i).value for i in range(8)]
        assert headers == ExcelWriter.SUMMARY_HEADERS
        stats = calendar.monthly_stats(2, 2)
        assert values[0] == stats.hadir == 1
        assert values[1] == stats.telat == 1
        assert values[7] == stats.total_late_hours == 2

    def test_schedule_sheet(self, roster, calendar):
        schedule = generate_schedule(2025, 2, roster, calendar)

        with tempfile.TemporaryDirectory() as tmpdir:
            path = ExcelWriter().create_report(
                roster, calendar, 2025, 2, Path(tmpdir) / "k.xlsx", schedule.days
            )
            wb = load_workbook(path)

        assert wb.sheetnames == ["Kehadiran", "Jadwal Shift"]
        ws = wb["Jadwal Shift"]
        assert ws.cell(row=1, column=1).value == "Tanggal"
        assert ws.cell(row=2, column=1).value == "1/3/2025"
        assert ws.max_row == 32
        # Robert libur tanggal 3
        assert ws.cell(row=4, column=3).value == "Robert"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
