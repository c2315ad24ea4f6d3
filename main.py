"""
Shift Attendance Dashboard

Command-line entry point for the attendance core: roster status, shift
actions, the monthly schedule, reports and JSON backups.
"""

import argparse
import sys
from pathlib import Path

# Add src directory to path for imports
sys.path.insert(0, str(Path(__file__).parent / "src"))

from application.dashboard_service import DashboardService
from config.config_manager import ConfigManager
from domain.time_arithmetic import MONTH_NAMES
from infrastructure.persistence import JsonFileDocumentStore

DEFAULT_DATA_DIR = Path(__file__).parent / "data"

EMPLOYEE_ACTIONS = {
    "check-in": "check_in",
    "check-out": "check_out",
    "break-start": "start_break",
    "break-end": "end_break",
    "izin-end": "end_izin",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Dashboard kehadiran shift")
    parser.add_argument("--config", type=Path, help="Path config.json")
    parser.add_argument("--data-dir", type=Path, help="Folder penyimpanan dokumen")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("status", help="Tampilkan status karyawan")

    for action in EMPLOYEE_ACTIONS:
        p = sub.add_parser(action, help=f"Aksi {action} untuk satu karyawan")
        p.add_argument("employee_id", type=int)

    p = sub.add_parser("izin-start", help="Mulai izin")
    p.add_argument("employee_id", type=int)
    p.add_argument("reason")

    p = sub.add_parser("schedule", help="Buat jadwal shift bulanan")
    p.add_argument("--year", type=int)
    p.add_argument("--month", type=int, help="Bulan 1-12")

    p = sub.add_parser("report", help="Buat laporan Excel (dan PDF jadwal)")
    p.add_argument("--year", type=int)
    p.add_argument("--month", type=int, help="Bulan 1-12")
    p.add_argument("--output-dir", type=Path)

    p = sub.add_parser("export", help="Export data ke file JSON")
    p.add_argument("--output", type=Path)

    p = sub.add_parser("import", help="Import data dari file JSON")
    p.add_argument("path", type=Path)

    p = sub.add_parser("leaderboard", help="Peringkat task selesai")
    p.add_argument("--period", default="today", choices=["today", "week", "month", "total"])

    sub.add_parser("tick", help="Jalankan satu tick (cek tidak hadir, pengingat)")
    return parser


def _month_index(month):
    return None if month is None else month - 1


def print_status(service: DashboardService) -> None:
    for employee in service.employees:
        flags = []
        if employee.checked_in:
            flags.append(f"shift {employee.shift.value} sejak {employee.check_in_time}")
        if employee.break_time:
            flags.append(f"istirahat sejak {employee.break_time}")
        if employee.izin_time:
            flags.append(f"izin sejak {employee.izin_time}")
        role = " (backup)" if employee.is_backup else ""
        print(f"[{employee.id}] {employee.name}{role}: {employee.status.value} "
              f"telat {employee.late_hours} jam, {len(employee.work_tasks)} task aktif"
              + (f" | {', '.join(flags)}" if flags else ""))


def print_schedule(service: DashboardService) -> None:
    schedule = service.schedule
    print(f"Jadwal {MONTH_NAMES[service.schedule_month]} {service.schedule_year}")
    for day in schedule.days:
        print(f"{day.date:>10} {day.day_name:<7} libur: {day.libur:<10} "
              f"pagi: {', '.join(day.pagi):<20} malam: {', '.join(day.malam):<20} {day.keterangan}")


def run(argv=None) -> int:
    args = build_parser().parse_args(argv)

    config_manager = ConfigManager(args.config) if args.config else ConfigManager()
    config = config_manager.load()
    data_dir = args.data_dir or Path(config.storage.data_dir or DEFAULT_DATA_DIR)

    gateway = JsonFileDocumentStore(data_dir, max_attempts=config.sync.transaction_attempts)
    service = DashboardService(config, gateway)
    service.load(subscribe=False)

    try:
        if args.command == "status":
            print_status(service)
            return 0

        if args.command in EMPLOYEE_ACTIONS:
            result = getattr(service, EMPLOYEE_ACTIONS[args.command])(args.employee_id)
        elif args.command == "izin-start":
            result = service.start_izin(args.employee_id, args.reason)
        elif args.command == "schedule":
            result = service.generate_schedule(args.year, _month_index(args.month))
            if result.success:
                print_schedule(service)
        elif args.command == "report":
            if service.schedule is None:
                service.generate_schedule(args.year, _month_index(args.month))
            result = service.export_reports(args.year, _month_index(args.month), args.output_dir)
        elif args.command == "export":
            result = service.export_backup(args.output)
        elif args.command == "import":
            result = service.import_backup(args.path)
        elif args.command == "leaderboard":
            for rank, row in enumerate(service.leaderboard(args.period), start=1):
                print(f"{rank}. {row.name}: {row.count} task, rata-rata {row.avg_minutes} menit")
            return 0
        else:
            print(service.tick())
            return 0
    finally:
        service.close()

    print(result.message)
    return 0 if result.success else 1


def main():
    """Application entry point."""
    sys.exit(run())


if __name__ == "__main__":
    main()
