"""
Dashboard Service Module

Application layer service that orchestrates the attendance dashboard:
local state, user actions, persistence, remote snapshots and the periodic tick.

Every public operation returns an ActionResult and never raises.
"""

import copy
import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from config.config_manager import AppConfig
from domain.attendance_calendar import AttendanceCalendar, MonthlyStats
from domain.attendance_logic import AttendanceStateMachine, detect_current_shift, shift_day
from domain.entities import (
    Employee, GuardRejection, ProductivityEntry, Reminder, ShiftScheduleDay,
    ShiftType, TaskPriority, ValidationError
)
from domain.leaderboard import PERIODS, LeaderboardRow, build_leaderboard, track_productivity
from domain.rotation_scheduler import ScheduleResult, generate_schedule, update_libur
from domain.sync_reconciler import migrate_history, reconcile_roster
from domain.task_ledger import TaskLedger
from domain.time_arithmetic import MONTH_NAMES, format_duration
from application.boards import AttentionBoard, MbakBoard, OrderBoard
from application.session import SyncSession
from infrastructure.backup_io import (
    BackupFormatError, apply_backup, backup_filename, build_backup, read_backup, write_backup
)
from infrastructure.debouncer import Debouncer
from infrastructure.excel_writer import ExcelWriter
from infrastructure.logger import get_logger
from infrastructure.notifications import LoggingNotifier, Notifier
from infrastructure.pdf_writer import PdfWriter, format_filename
from infrastructure.persistence import (
    ALL_DOCUMENTS,
    DOC_ATTENTIONS,
    DOC_CURRENT_PERIOD,
    DOC_EMPLOYEES,
    DOC_MBAK,
    DOC_ORDERS,
    DOC_PRODUCTIVITY,
    DOC_SHIFT_SCHEDULE,
    DOC_YEARLY_ATTENDANCE,
    InMemoryDocumentStore,
    PersistenceGateway,
)

logger = get_logger("DashboardService")

SAVE_EMPLOYEE_FAILED = "⚠️ Gagal menyimpan data karyawan. Coba lagi."
SAVE_DATA_FAILED = "⚠️ Gagal menyimpan data. Coba lagi."
BUSY_MESSAGE = "Aksi lain masih diproses"


@dataclass
class ActionResult:
    """Result of a dashboard operation."""
    success: bool
    message: str = ""
    employee: Optional[Employee] = None
    data: Any = None
    saved: bool = True
    rejected: bool = False


class DashboardService:
    """
    Orchestrates attendance, tasks, schedule and boards for one session.

    Local state is updated optimistically; saves run afterwards and a failed
    save is reported but never rolled back.

    Args:
        config: Application configuration
        gateway: Document store; defaults to an in-memory store
        notifier: Notification collaborator
        clock: Returns the current local time
        session: Sync state machine; one is built from the config if omitted
        debouncer: Bulk-save debouncer; one is built from the config if omitted
        id_factory: Id generator for tasks and board items
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        gateway: Optional[PersistenceGateway] = None,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], datetime] = datetime.now,
        session: Optional[SyncSession] = None,
        debouncer: Optional[Debouncer] = None,
        id_factory: Optional[Callable[[], str]] = None
    ):
        self.config = config or AppConfig()
        self.gateway = gateway or InMemoryDocumentStore(self.config.sync.transaction_attempts)
        self.notifier = notifier or LoggingNotifier()
        self.collection = self.config.storage.collection
        self._clock = clock

        self.debouncer = debouncer or Debouncer(self.config.sync.debounce_ms)
        self.session = session or SyncSession(self.config.sync.settle_ms)
        self.session.set_busy_check(lambda: bool(self.debouncer.pending_keys))

        self.machine = AttendanceStateMachine(self.config.shift_rules, self.config.attendance_rules)
        self.ledger = TaskLedger(id_factory)

        now = clock()
        self.employees: List[Employee] = []
        self.calendar = AttendanceCalendar()
        self.productivity: List[ProductivityEntry] = []
        self.current_month = now.month - 1
        self.current_year = now.year
        self.schedule: Optional[ScheduleResult] = None
        self.schedule_month: Optional[int] = None
        self.schedule_year: Optional[int] = None
        self.orders = OrderBoard(id_factory=id_factory)
        self.attentions = AttentionBoard(id_factory=id_factory)
        self.mbak = MbakBoard(id_factory=id_factory)
        self.reminders: Dict[Tuple[int, str, Optional[str]], Reminder] = {}

        self._last_order_backup: Optional[datetime] = None
        self._unsubscribers: List[Callable[[], None]] = []
        self._lock = threading.RLock()
        self._stop_event = threading.Event()
        self._ticker: Optional[threading.Thread] = None

        self._payloads: Dict[str, Callable[[], Any]] = {
            DOC_EMPLOYEES: lambda: [e.to_dict() for e in self.employees],
            DOC_YEARLY_ATTENDANCE: self.calendar_payload,
            DOC_PRODUCTIVITY: lambda: [p.to_dict() for p in self.productivity],
            DOC_CURRENT_PERIOD: lambda: {"month": self.current_month, "year": self.current_year},
            DOC_SHIFT_SCHEDULE: self._schedule_payload,
            DOC_ORDERS: self.orders.to_list,
            DOC_ATTENTIONS: self.attentions.to_list,
            DOC_MBAK: self.mbak.to_list,
        }
        self._handlers: Dict[str, Callable[[Any], None]] = {
            DOC_EMPLOYEES: self._apply_employees,
            DOC_YEARLY_ATTENDANCE: self._apply_calendar,
            DOC_PRODUCTIVITY: self._apply_productivity,
            DOC_CURRENT_PERIOD: self._apply_period,
            DOC_SHIFT_SCHEDULE: self._apply_schedule,
            DOC_ORDERS: self._apply_orders,
            DOC_ATTENTIONS: self._apply_attentions,
            DOC_MBAK: self._apply_mbak,
        }

    # ==========================================================================
    # Loading & remote snapshots
    # ==========================================================================

    def load(self, subscribe: bool = True) -> None:
        """
        Read every document once, seed the roster if the store is empty, then
        subscribe to remote changes.
        """
        with self._lock:
            roster = self.gateway.get_document(self.collection, DOC_EMPLOYEES)
            if roster:
                self.employees = [Employee.from_dict(d) for d in roster]
            else:
                logger.info("Data karyawan kosong, memakai roster bawaan")
                self.employees = self._default_employees()
                self._save_doc(DOC_EMPLOYEES)

            migrated = sum(migrate_history(e) for e in self.employees)
            if migrated:
                logger.info(f"Migrasi riwayat task: {migrated} entri diberi shiftDate")

            for doc_id in ALL_DOCUMENTS:
                if doc_id == DOC_EMPLOYEES:
                    continue
                data = self.gateway.get_document(self.collection, doc_id)
                if data is not None:
                    self._handlers[doc_id](data)

        logger.info(f"Dashboard dimuat: {len(self.employees)} karyawan")
        if subscribe:
            self._subscribe_all()

    def _default_employees(self) -> List[Employee]:
        return [
            Employee(
                id=entry.id,
                name=entry.name,
                is_backup=entry.is_backup,
                is_admin=entry.is_admin,
                base_salary=entry.base_salary
            )
            for entry in self.config.roster
        ]

    def _subscribe_all(self) -> None:
        for doc_id in ALL_DOCUMENTS:
            handler = self._handlers[doc_id]

            def on_snapshot(data, doc_id=doc_id, handler=handler):
                if data is None:
                    return
                self.session.offer_snapshot(doc_id, data, handler)

            self._unsubscribers.append(self.gateway.subscribe(self.collection, doc_id, on_snapshot))

    def _apply_employees(self, data: Any) -> None:
        incoming = [Employee.from_dict(d) for d in data or []]
        with self._lock:
            self.employees = reconcile_roster(self.employees, incoming)
        logger.debug(f"Snapshot karyawan diterapkan ({len(incoming)})")

    def _apply_calendar(self, data: Any) -> None:
        with self._lock:
            self.calendar = AttendanceCalendar.from_legacy(data, self.employees)

    def _apply_productivity(self, data: Any) -> None:
        with self._lock:
            self.productivity = [ProductivityEntry.from_dict(d) for d in data or []]

    def _apply_period(self, data: Any) -> None:
        with self._lock:
            self.current_month = int(data.get("month", self.current_month))
            self.current_year = int(data.get("year", self.current_year))

    def _apply_schedule(self, data: Any) -> None:
        with self._lock:
            self.schedule = ScheduleResult(
                days=[ShiftScheduleDay.from_dict(d) for d in data.get("data") or data.get("days") or []],
                weekly_roles=list(data.get("weeklyRoles") or [])
            )
            self.schedule_month = data.get("month")
            self.schedule_year = data.get("year")

    def _apply_orders(self, data: Any) -> None:
        with self._lock:
            self.orders.items = list(data or [])

    def _apply_attentions(self, data: Any) -> None:
        with self._lock:
            self.attentions.items = list(data or [])

    def _apply_mbak(self, data: Any) -> None:
        with self._lock:
            self.mbak.items = list(data or [])

    # ==========================================================================
    # Saving
    # ==========================================================================

    def calendar_payload(self) -> dict:
        return self.calendar.to_dict()

    def _schedule_payload(self) -> Optional[dict]:
        if self.schedule is None:
            return None
        return {
            "year": self.schedule_year,
            "month": self.schedule_month,
            "data": [d.to_dict() for d in self.schedule.days],
            "weeklyRoles": self.schedule.weekly_roles,
        }

    def _save_employee(self, employee: Employee) -> bool:
        """Splice one employee into the roster document inside a transaction."""
        payload = employee.to_dict()

        def splice(current):
            roster = list(current or [])
            for idx, item in enumerate(roster):
                if isinstance(item, dict) and item.get("id") == employee.id:
                    roster[idx] = payload
                    return roster
            roster.append(payload)
            return roster

        try:
            self.gateway.run_transaction(self.collection, DOC_EMPLOYEES, splice)
            return True
        except Exception as e:
            logger.error(f"Gagal menyimpan karyawan {employee.name}: {e}")
            self.notifier.notify(SAVE_EMPLOYEE_FAILED, "error")
            return False

    def _save_doc(self, doc_id: str) -> bool:
        """Overwrite one document with the current local state."""
        try:
            with self._lock:
                payload = self._payloads[doc_id]()
            self.gateway.set_document(self.collection, doc_id, payload)
            return True
        except Exception as e:
            logger.error(f"Gagal menyimpan {doc_id}: {e}")
            self.notifier.notify(SAVE_DATA_FAILED, "error")
            return False

    def _schedule_save(self, doc_id: str, immediate: bool = False) -> bool:
        if immediate:
            return self._save_doc(doc_id)
        self.debouncer.call(doc_id, lambda: self._save_doc(doc_id))
        return True

    def flush(self) -> None:
        """Write every debounced save now."""
        self.debouncer.flush()

    # ==========================================================================
    # Guarded actions
    # ==========================================================================

    def _guarded(self, label: str, fn: Callable[[], ActionResult]) -> ActionResult:
        if not self.session.begin_action(label):
            return ActionResult(False, BUSY_MESSAGE, rejected=True)
        try:
            return fn()
        except ValidationError as e:
            self.notifier.notify(str(e), "error")
            return ActionResult(False, str(e))
        except GuardRejection as e:
            logger.info(f"{label} ditolak: {e}")
            return ActionResult(False, str(e), rejected=True)
        except Exception as e:
            logger.error(f"{label} gagal: {e}", exc_info=True)
            self.notifier.notify(f"❌ {label} gagal: {e}", "error")
            return ActionResult(False, str(e), saved=False)
        finally:
            self.session.end_action()
            self.session.drain()

    def get_employee(self, emp_id: int) -> Employee:
        for employee in self.employees:
            if employee.id == emp_id:
                return employee
        raise GuardRejection(f"Karyawan {emp_id} tidak ditemukan")

    def _replace_employee(self, updated: Employee) -> None:
        self.employees = [updated if e.id == updated.id else e for e in self.employees]

    def _employee_action(
        self,
        label: str,
        emp_id: int,
        apply: Callable[[Employee, datetime], Tuple[str, Any]],
        calendar_save: Optional[str] = None,
        extra_docs: Tuple[str, ...] = ()
    ) -> ActionResult:
        """
        Run `apply` on a copy of the employee, swap it in, then persist.

        Args:
            label: Action name for logs and the double-click guard
            emp_id: Target employee
            apply: Mutates the employee copy; returns (message, data)
            calendar_save: "immediate", "debounced" or None
            extra_docs: Further documents to save debounced
        """
        def run() -> ActionResult:
            with self._lock:
                working = copy.deepcopy(self.get_employee(emp_id))
                message, data = apply(working, self._clock())
                self._replace_employee(working)

            saved = self._save_employee(working)
            if calendar_save == "immediate":
                saved = self._save_doc(DOC_YEARLY_ATTENDANCE) and saved
            elif calendar_save == "debounced":
                self._schedule_save(DOC_YEARLY_ATTENDANCE)
            for doc_id in extra_docs:
                self._schedule_save(doc_id)

            if message:
                self.notifier.notify(message, "success")
            logger.info(f"{label}: {working.name}")
            return ActionResult(True, message, employee=working, data=data, saved=saved)

        return self._guarded(label, run)

    # ==========================================================================
    # Attendance
    # ==========================================================================

    def check_in(self, emp_id: int) -> ActionResult:
        def apply(emp: Employee, now: datetime):
            entry = self.machine.check_in(emp, self.calendar, now)
            self._dismiss_reminders(emp.id)
            if entry.is_overtime:
                message = f"🔁 {emp.name} check-in lembur {entry.check_in_time}"
            elif entry.late_hours:
                message = f"⚠️ {emp.name} check-in {entry.check_in_time}, telat {entry.late_hours} jam"
            else:
                message = f"✅ {emp.name} check-in {entry.check_in_time}"
            return message, entry

        return self._employee_action("check-in", emp_id, apply, calendar_save="immediate")

    def start_break(self, emp_id: int) -> ActionResult:
        def apply(emp: Employee, now: datetime):
            started = self.machine.start_break(emp, now)
            self._add_reminder(emp, "break", f"{emp.name} sedang istirahat", now)
            return f"☕ {emp.name} mulai istirahat {started}", started

        return self._employee_action("mulai istirahat", emp_id, apply)

    def end_break(self, emp_id: int) -> ActionResult:
        def apply(emp: Employee, now: datetime):
            record = self.machine.end_break(emp, self.calendar, now)
            self._dismiss_reminder(emp.id, "break")
            if record.is_late:
                self.notifier.notify(
                    f"⏰ {emp.name} terlambat kembali dari istirahat "
                    f"({format_duration(record.duration)}), +{record.late_duration} jam telat",
                    "warning"
                )
                self.notifier.play_warning()
            return f"💪 {emp.name} selesai istirahat ({format_duration(record.duration)})", record

        return self._employee_action("selesai istirahat", emp_id, apply, calendar_save="debounced")

    def start_izin(self, emp_id: int, reason: str) -> ActionResult:
        def apply(emp: Employee, now: datetime):
            started = self.machine.start_izin(emp, reason, now)
            self._add_reminder(emp, "izin", f"{emp.name} izin: {emp.izin_reason}", now)
            return f"🚪 {emp.name} izin: {emp.izin_reason}", started

        return self._employee_action("mulai izin", emp_id, apply)

    def end_izin(self, emp_id: int) -> ActionResult:
        def apply(emp: Employee, now: datetime):
            record = self.machine.end_izin(emp, self.calendar, now)
            self._dismiss_reminder(emp.id, "izin")
            return f"↩️ {emp.name} kembali dari izin ({format_duration(record.duration)})", record

        return self._employee_action("selesai izin", emp_id, apply, calendar_save="debounced")

    def check_out(self, emp_id: int) -> ActionResult:
        def apply(emp: Employee, now: datetime):
            archived = self.machine.check_out(emp, self.calendar, now)
            self._dismiss_reminders(emp.id)
            return f"👋 {emp.name} check-out {emp.shift_end_time}", archived

        return self._employee_action("check-out", emp_id, apply, calendar_save="debounced")

    # ==========================================================================
    # Tasks
    # ==========================================================================

    def add_task(self, emp_id: int, text: str, priority: str = "normal") -> ActionResult:
        def apply(emp: Employee, now: datetime):
            try:
                level = TaskPriority(priority)
            except ValueError:
                raise ValidationError(f"Prioritas tidak dikenal: {priority}")
            task = self.ledger.add_task(emp, text, now, level)
            return f"📝 Task '{task.text}' ditambahkan", task

        return self._employee_action("tambah task", emp_id, apply)

    def start_task(self, emp_id: int, task_id: str) -> ActionResult:
        def apply(emp: Employee, now: datetime):
            task = self.ledger.start_task(emp, task_id, now)
            return f"▶️ Task '{task.text}' dimulai", task

        return self._employee_action("mulai task", emp_id, apply)

    def pause_task(self, emp_id: int, task_id: str, reason: str) -> ActionResult:
        def apply(emp: Employee, now: datetime):
            task = self.ledger.pause_task(emp, task_id, reason, now)
            self._add_reminder(emp, "task", f"Task '{task.text}' di-pause: {reason.strip()}", now, task.id)
            return f"⏸️ Task '{task.text}' di-pause", task

        return self._employee_action("pause task", emp_id, apply)

    def break_task(self, emp_id: int, task_id: str, progress) -> ActionResult:
        def apply(emp: Employee, now: datetime):
            task = self.ledger.break_task(emp, task_id, progress, now)
            self._add_reminder(emp, "task", f"Task '{task.text}' break di {task.progress}%", now, task.id)
            return f"⏸️ Task '{task.text}' break di {task.progress}%", task

        return self._employee_action("break task", emp_id, apply)

    def resume_task(self, emp_id: int, task_id: str) -> ActionResult:
        def apply(emp: Employee, now: datetime):
            task = self.ledger.resume_task(emp, task_id, now)
            self._dismiss_reminder(emp.id, "task", task.id)
            return f"▶️ Task '{task.text}' dilanjutkan", task

        return self._employee_action("resume task", emp_id, apply)

    def end_task(self, emp_id: int, task_id: str) -> ActionResult:
        def apply(emp: Employee, now: datetime):
            task = self.ledger.end_task(emp, task_id, now)
            self._dismiss_reminder(emp.id, "task", task.id)
            track_productivity(self.productivity, emp.id, now, task.task_type)
            self.notifier.play_success()
            return f"🎉 Task '{task.text}' selesai ({task.duration})", task

        return self._employee_action("selesai task", emp_id, apply, extra_docs=(DOC_PRODUCTIVITY,))

    def pause_all_tasks(self, emp_id: int, reason: str) -> ActionResult:
        def apply(emp: Employee, now: datetime):
            tasks = self.ledger.pause_all(emp, reason, now)
            for task in tasks:
                self._add_reminder(emp, "task", f"Task '{task.text}' di-pause: {reason.strip()}", now, task.id)
            return f"⏸️ {len(tasks)} task di-pause", tasks

        return self._employee_action("pause semua task", emp_id, apply)

    def resume_all_tasks(self, emp_id: int) -> ActionResult:
        def apply(emp: Employee, now: datetime):
            tasks = self.ledger.resume_all(emp, now)
            for task in tasks:
                self._dismiss_reminder(emp.id, "task", task.id)
            return f"▶️ {len(tasks)} task dilanjutkan", tasks

        return self._employee_action("resume semua task", emp_id, apply)

    def toggle_task(self, emp_id: int, task_id: str) -> ActionResult:
        def apply(emp: Employee, now: datetime):
            task = self.ledger.toggle_completion(emp, task_id, now)
            return "", task

        return self._employee_action("centang task", emp_id, apply)

    def update_task_progress(self, emp_id: int, task_id: str, progress) -> ActionResult:
        def apply(emp: Employee, now: datetime):
            return "", self.ledger.update_progress(emp, task_id, progress)

        return self._employee_action("progress task", emp_id, apply)

    def update_task_priority(self, emp_id: int, task_id: str, priority: str) -> ActionResult:
        def apply(emp: Employee, now: datetime):
            return "", self.ledger.update_priority(emp, task_id, priority)

        return self._employee_action("prioritas task", emp_id, apply)

    def delete_task(self, emp_id: int, task_id: str) -> ActionResult:
        def apply(emp: Employee, now: datetime):
            task = self.ledger.delete_task(emp, task_id)
            self._dismiss_reminder(emp.id, "task", task.id)
            return f"🗑️ Task '{task.text}' dihapus", task

        return self._employee_action("hapus task", emp_id, apply)

    # ==========================================================================
    # Reminders
    # ==========================================================================

    def _add_reminder(self, emp: Employee, kind: str, message: str, now: datetime,
                      task_id: Optional[str] = None) -> None:
        self.reminders[(emp.id, kind, task_id)] = Reminder(
            employee_id=emp.id,
            kind=kind,
            message=message,
            started_at=now.isoformat(),
            task_id=task_id
        )

    def _dismiss_reminder(self, emp_id: int, kind: str, task_id: Optional[str] = None) -> None:
        self.reminders.pop((emp_id, kind, task_id), None)

    def _dismiss_reminders(self, emp_id: int) -> None:
        for key in [k for k in self.reminders if k[0] == emp_id]:
            del self.reminders[key]

    def active_reminders(self) -> List[Reminder]:
        with self._lock:
            return sorted(self.reminders.values(), key=lambda r: r.started_at)

    def _refresh_reminders(self, now: datetime) -> int:
        limit = self.config.attendance_rules.break_limit_minutes
        with self._lock:
            names = {e.id: e.name for e in self.employees}
            reminders = list(self.reminders.values())
        for reminder in reminders:
            started = datetime.fromisoformat(reminder.started_at)
            reminder.elapsed_minutes = max(0, int((now - started).total_seconds() // 60))
            if reminder.kind == "break" and reminder.elapsed_minutes > limit and not reminder.overdue_notified:
                reminder.overdue_notified = True
                name = names.get(reminder.employee_id, str(reminder.employee_id))
                message = f"⏰ {name} sudah istirahat {format_duration(reminder.elapsed_minutes)}"
                self.notifier.notify(message, "warning")
                self.notifier.notify_browser("Istirahat terlalu lama", message)
                self.notifier.play_warning()
        return len(reminders)

    # ==========================================================================
    # Periodic tick
    # ==========================================================================

    def tick(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """
        Minute tick: apply deferred snapshots, no-show sweep, reminder refresh,
        long-running task alerts and the order backup. Failures are logged only.
        """
        now = now or self._clock()
        summary = {"snapshots": 0, "absent": 0, "reminders": 0, "task_alerts": 0, "orders_saved": 0}

        try:
            summary["snapshots"] = self.session.drain()
        except Exception as e:
            logger.error(f"Tick: gagal menerapkan snapshot: {e}")
        try:
            summary["absent"] = self._sweep_no_shows(now)
        except Exception as e:
            logger.error(f"Tick: gagal cek karyawan tidak hadir: {e}")
        try:
            summary["reminders"] = self._refresh_reminders(now)
        except Exception as e:
            logger.error(f"Tick: gagal memperbarui pengingat: {e}")
        try:
            summary["task_alerts"] = self._alert_long_running_tasks(now)
        except Exception as e:
            logger.error(f"Tick: gagal cek task lama: {e}")
        try:
            summary["orders_saved"] = int(self._backup_orders(now))
        except Exception as e:
            logger.error(f"Tick: gagal backup order: {e}")

        logger.debug(f"Tick {now.isoformat()}: {summary}")
        return summary

    def _expected_names(self, now: datetime) -> Optional[List[str]]:
        """Crew scheduled for the shift running at `now`, or None without a schedule."""
        shift = detect_current_shift(now, self.config.shift_rules)
        if shift is None or self.schedule is None:
            return None
        day = shift_day(now, self.config.shift_rules.get(shift.value))
        if self.schedule_year != day.year or self.schedule_month != day.month - 1:
            return None
        for row in self.schedule.days:
            if row.day == day.day:
                return list(row.pagi if shift == ShiftType.PAGI else row.malam)
        return None

    def _sweep_no_shows(self, now: datetime) -> int:
        with self._lock:
            expected = self._expected_names(now)
            changed = self.machine.mark_absent_if_no_show(self.employees, self.calendar, now, expected)
        for employee in changed:
            logger.info(f"{employee.name} tidak hadir, ditandai libur")
            self._save_employee(employee)
        if changed:
            self._schedule_save(DOC_YEARLY_ATTENDANCE)
        return len(changed)

    def _alert_long_running_tasks(self, now: datetime) -> int:
        interval = self.config.attendance_rules.task_reminder_minutes
        alerts = 0
        with self._lock:
            due = [
                (employee.name, task, elapsed)
                for employee in self.employees
                for task, elapsed in self.ledger.long_running_tasks(employee, now, interval)
            ]
        for name, task, elapsed in due:
            message = f"{name}: '{task.text}' sudah berjalan {format_duration(elapsed)}"
            self.notifier.notify_browser("Task masih berjalan", message)
            self.notifier.notify(f"⏳ {message}", "info")
            alerts += 1
        return alerts

    def _backup_orders(self, now: datetime) -> bool:
        interval = self.config.sync.order_backup_seconds
        if not self.orders.items:
            return False
        if self._last_order_backup is not None and (now - self._last_order_backup).total_seconds() < interval:
            return False
        self._last_order_backup = now
        return self._save_doc(DOC_ORDERS)

    def start_ticker(self) -> None:
        """Run tick() every `tick_seconds` on a daemon thread."""
        if self._ticker is not None and self._ticker.is_alive():
            return
        self._stop_event.clear()
        self._ticker = threading.Thread(target=self._tick_loop, name="dashboard-tick", daemon=True)
        self._ticker.start()

    def _tick_loop(self) -> None:
        while not self._stop_event.wait(self.config.sync.tick_seconds):
            self.tick()

    def stop_ticker(self) -> None:
        self._stop_event.set()
        if self._ticker is not None:
            self._ticker.join(timeout=5)
            self._ticker = None

    def close(self) -> None:
        """Stop the ticker, write pending saves and drop subscriptions."""
        self.stop_ticker()
        self.flush()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    # ==========================================================================
    # Schedule & period
    # ==========================================================================

    def generate_schedule(self, year: Optional[int] = None, month_index: Optional[int] = None) -> ActionResult:
        year = self.current_year if year is None else year
        month_index = self.current_month if month_index is None else month_index

        def run() -> ActionResult:
            if not 0 <= month_index <= 11:
                raise ValidationError(f"Bulan tidak valid: {month_index}")
            with self._lock:
                self.schedule = generate_schedule(
                    year, month_index, self.employees, self.calendar,
                    self.config.attendance_rules.leave_exclusion_days
                )
                self.schedule_year = year
                self.schedule_month = month_index
            saved = self._save_doc(DOC_SHIFT_SCHEDULE)
            message = f"📅 Jadwal {MONTH_NAMES[month_index]} {year} dibuat"
            logger.info(message)
            return ActionResult(True, message, data=self.schedule, saved=saved)

        return self._guarded("buat jadwal", run)

    def update_libur(self, index: int, value: str) -> ActionResult:
        """Change who is off on one schedule day and recalculate the month."""
        def run() -> ActionResult:
            if self.schedule is None:
                raise GuardRejection("Jadwal belum dibuat")
            with self._lock:
                try:
                    self.schedule = update_libur(
                        self.schedule.days, index, value, self.schedule_month,
                        self.employees, self.calendar,
                        self.config.attendance_rules.leave_exclusion_days
                    )
                except IndexError as e:
                    raise ValidationError(str(e))
            saved = self._save_doc(DOC_SHIFT_SCHEDULE)
            saved = self._save_doc(DOC_YEARLY_ATTENDANCE) and saved
            return ActionResult(True, f"Libur hari ke-{index + 1}: {value}", data=self.schedule, saved=saved)

        return self._guarded("ubah libur", run)

    def set_period(self, month_index: int, year: int) -> ActionResult:
        def run() -> ActionResult:
            if not 0 <= month_index <= 11:
                raise ValidationError(f"Bulan tidak valid: {month_index}")
            with self._lock:
                self.current_month = month_index
                self.current_year = year
            self._schedule_save(DOC_CURRENT_PERIOD)
            return ActionResult(True, f"Periode {MONTH_NAMES[month_index]} {year}")

        return self._guarded("ganti periode", run)

    # ==========================================================================
    # Roster administration
    # ==========================================================================

    def add_employee(self, emp_id: int, name: str, is_backup: bool = False,
                     is_admin: bool = False, base_salary: int = 0) -> ActionResult:
        def run() -> ActionResult:
            clean_name = (name or "").strip()
            if not clean_name:
                raise ValidationError("Nama karyawan tidak boleh kosong")
            with self._lock:
                if any(e.id == emp_id for e in self.employees):
                    raise ValidationError(f"ID {emp_id} sudah dipakai")
                if any(e.name == clean_name for e in self.employees):
                    raise ValidationError(f"Nama {clean_name} sudah ada")
                employee = Employee(
                    id=emp_id, name=clean_name, is_backup=is_backup,
                    is_admin=is_admin, base_salary=base_salary
                )
                self.employees.append(employee)
            saved = self._save_doc(DOC_EMPLOYEES)
            message = f"👤 {clean_name} ditambahkan"
            self.notifier.notify(message, "success")
            return ActionResult(True, message, employee=employee, saved=saved)

        return self._guarded("tambah karyawan", run)

    def delete_employee(self, emp_id: int) -> ActionResult:
        def run() -> ActionResult:
            with self._lock:
                employee = self.get_employee(emp_id)
                self.employees = [e for e in self.employees if e.id != emp_id]
                self.calendar.remove_employee(emp_id)
                self._dismiss_reminders(emp_id)
            saved = self._save_doc(DOC_EMPLOYEES)
            self._schedule_save(DOC_YEARLY_ATTENDANCE)
            message = f"🗑️ {employee.name} dihapus"
            self.notifier.notify(message, "success")
            return ActionResult(True, message, employee=employee, saved=saved)

        return self._guarded("hapus karyawan", run)

    def clear_all_data(self) -> ActionResult:
        """Reset roster, calendar, productivity, period, attentions and mbak tasks."""
        def run() -> ActionResult:
            now = self._clock()
            with self._lock:
                self.employees = self._default_employees()
                self.calendar.clear()
                self.productivity = []
                self.current_month = now.month - 1
                self.current_year = now.year
                self.attentions.items = []
                self.mbak.items = []
                self.reminders.clear()
            self.debouncer.cancel_all()
            docs = (
                DOC_EMPLOYEES, DOC_YEARLY_ATTENDANCE, DOC_PRODUCTIVITY,
                DOC_CURRENT_PERIOD, DOC_ATTENTIONS, DOC_MBAK,
            )
            saved = all([self._save_doc(doc_id) for doc_id in docs])
            logger.warning("Semua data dihapus")
            self.notifier.notify("🧹 Semua data dihapus", "success")
            return ActionResult(True, "Semua data dihapus", saved=saved)

        return self._guarded("hapus semua data", run)

    # ==========================================================================
    # Export / import / reports
    # ==========================================================================

    def _state(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "employees": [e.to_dict() for e in self.employees],
                "attentions": self.attentions.to_list(),
                "yearlyAttendance": self.calendar.to_dict(),
                "productivityData": [p.to_dict() for p in self.productivity],
                "mbakTasks": self.mbak.to_list(),
                "currentMonth": self.current_month,
                "currentYear": self.current_year,
            }

    def state(self) -> Dict[str, Any]:
        """JSON-shaped copy of the exportable state."""
        return copy.deepcopy(self._state())

    def _output_dir(self, output_dir: Optional[Path]) -> Path:
        if output_dir is not None:
            return Path(output_dir)
        return Path(self.config.output_settings.output_dir or ".")

    def export_backup(self, output_path: Optional[Path] = None) -> ActionResult:
        now = self._clock()
        if output_path is None:
            name = backup_filename(self.config.output_settings.backup_filename_pattern, now)
            output_path = self._output_dir(None) / name
        try:
            path = write_backup(build_backup(self._state(), now), Path(output_path))
        except (OSError, TypeError) as e:
            logger.error(f"Export gagal: {e}")
            self.notifier.notify(f"❌ Export gagal: {e}", "error")
            return ActionResult(False, str(e), saved=False)
        self.notifier.notify("💾 Data berhasil diexport", "success")
        return ActionResult(True, f"Backup disimpan: {path}", data=path)

    def import_backup(self, path: Path) -> ActionResult:
        def run() -> ActionResult:
            try:
                payload = read_backup(Path(path))
            except (BackupFormatError, OSError) as e:
                raise ValidationError(f"❌ Import gagal: {e}")

            with self._lock:
                state = apply_backup(self._state(), payload)
                # Konversi dulu semuanya, state lokal baru diganti kalau semua valid
                try:
                    employees = [Employee.from_dict(d) for d in state["employees"] or []]
                    for employee in employees:
                        migrate_history(employee)
                    calendar = AttendanceCalendar.from_legacy(state["yearlyAttendance"], employees)
                    productivity = [ProductivityEntry.from_dict(d) for d in state["productivityData"] or []]
                    attentions = list(state["attentions"] or [])
                    mbak = list(state["mbakTasks"] or [])
                    current_month = int(state["currentMonth"])
                    current_year = int(state["currentYear"])
                except (KeyError, TypeError, ValueError, AttributeError) as e:
                    logger.error(f"Isi backup tidak valid ({path}): {e!r}")
                    raise ValidationError(f"❌ Import gagal: isi backup tidak valid ({e!r})") from e
                if not 0 <= current_month <= 11:
                    raise ValidationError(f"❌ Import gagal: bulan {current_month} tidak valid")

                self.employees = employees
                self.calendar = calendar
                self.productivity = productivity
                self.attentions.items = attentions
                self.mbak.items = mbak
                self.current_month = current_month
                self.current_year = current_year
                self.reminders.clear()

            self.debouncer.cancel_all()
            docs = (
                DOC_EMPLOYEES, DOC_YEARLY_ATTENDANCE, DOC_PRODUCTIVITY,
                DOC_CURRENT_PERIOD, DOC_ATTENTIONS, DOC_MBAK,
            )
            saved = all([self._save_doc(doc_id) for doc_id in docs])
            self.notifier.notify("📥 Data berhasil diimport", "success")
            return ActionResult(True, "Data berhasil diimport", saved=saved)

        return self._guarded("import data", run)

    def export_reports(self, year: Optional[int] = None, month_index: Optional[int] = None,
                       output_dir: Optional[Path] = None) -> ActionResult:
        """Write the Excel workbook and, when enabled and a schedule exists, the schedule PDF."""
        year = self.current_year if year is None else year
        month_index = self.current_month if month_index is None else month_index
        settings = self.config.output_settings
        target_dir = self._output_dir(output_dir)

        with self._lock:
            employees = copy.deepcopy(self.employees)
            calendar = AttendanceCalendar.from_dict(self.calendar.to_dict())
            schedule = None
            if self.schedule is not None and self.schedule_year == year and self.schedule_month == month_index:
                schedule = copy.deepcopy(self.schedule)

        outputs: Dict[str, Path] = {}
        try:
            excel_name = format_filename(settings.excel_filename_pattern, year, month_index + 1)
            outputs["excel"] = ExcelWriter().create_report(
                employees, calendar, year, month_index, target_dir / excel_name,
                schedule.days if schedule else None
            )
            if settings.generate_pdf and schedule is not None:
                pdf_name = format_filename(settings.schedule_pdf_pattern, year, month_index + 1)
                pdf_path = PdfWriter().create_schedule_report(
                    schedule.days, year, month_index, target_dir / pdf_name, schedule.weekly_roles
                )
                if pdf_path is not None:
                    outputs["pdf"] = pdf_path
        except Exception as e:
            logger.error(f"Gagal membuat laporan: {e}")
            self.notifier.notify(f"❌ Gagal membuat laporan: {e}", "error")
            return ActionResult(False, str(e), data=outputs, saved=False)

        return ActionResult(True, f"Laporan {MONTH_NAMES[month_index]} {year} dibuat", data=outputs)

    def monthly_stats(self, emp_id: int, month_index: Optional[int] = None) -> MonthlyStats:
        month_index = self.current_month if month_index is None else month_index
        with self._lock:
            return self.calendar.monthly_stats(emp_id, month_index)

    def leaderboard(self, period: str = "today") -> List[LeaderboardRow]:
        """Ranked rows for `period`; an unknown period gives an empty list."""
        if period not in PERIODS:
            logger.warning(f"Periode leaderboard tidak dikenal: {period}")
            return []
        with self._lock:
            return build_leaderboard(self.employees, period, self._clock())

    # ==========================================================================
    # Boards
    # ==========================================================================

    def _board_action(self, label: str, doc_id: str, fn: Callable[[datetime], Any],
                      immediate: bool = True) -> ActionResult:
        def run() -> ActionResult:
            with self._lock:
                item = fn(self._clock())
            saved = self._schedule_save(doc_id, immediate=immediate)
            return ActionResult(True, label, data=item, saved=saved)

        return self._guarded(label, run)

    def add_order(self, fields: Dict[str, Any]) -> ActionResult:
        return self._board_action("tambah order", DOC_ORDERS, lambda now: self.orders.add(fields, now))

    def update_order(self, order_id: str, updates: Dict[str, Any]) -> ActionResult:
        return self._board_action(
            "ubah order", DOC_ORDERS, lambda now: self.orders.update(order_id, updates, now)
        )

    def update_order_status(self, order_id: str, status: str, note: str = "", author: str = "") -> ActionResult:
        return self._board_action(
            "status order", DOC_ORDERS,
            lambda now: self.orders.update_status(order_id, status, now, note, author)
        )

    def delete_order(self, order_id: str) -> ActionResult:
        return self._board_action("hapus order", DOC_ORDERS, lambda now: self.orders.delete(order_id))

    def add_attention(self, text: str, author: str = "") -> ActionResult:
        return self._board_action(
            "tambah pengumuman", DOC_ATTENTIONS,
            lambda now: self.attentions.add({"text": text, "author": author}, now)
        )

    def mark_attention_read(self, item_id: str, reader: str) -> ActionResult:
        return self._board_action(
            "baca pengumuman", DOC_ATTENTIONS, lambda now: self.attentions.mark_read(item_id, reader)
        )

    def delete_attention(self, item_id: str) -> ActionResult:
        return self._board_action("hapus pengumuman", DOC_ATTENTIONS, lambda now: self.attentions.delete(item_id))

    def add_mbak_task(self, text: str) -> ActionResult:
        return self._board_action(
            "tambah tugas mbak", DOC_MBAK, lambda now: self.mbak.add({"text": text}, now), immediate=False
        )

    def toggle_mbak_task(self, item_id: str) -> ActionResult:
        return self._board_action(
            "centang tugas mbak", DOC_MBAK, lambda now: self.mbak.toggle(item_id, now), immediate=False
        )

    def delete_mbak_task(self, item_id: str) -> ActionResult:
        return self._board_action(
            "hapus tugas mbak", DOC_MBAK, lambda now: self.mbak.delete(item_id), immediate=False
        )
