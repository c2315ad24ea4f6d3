"""
Configuration Manager Module

Handles loading, saving, and managing application configuration.
Provides bi-directional mapping between dataclass settings and JSON persistence.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional


@dataclass
class ShiftRule:
    """Clock window of a single shift (hours, 24h clock).

    `end` may be smaller than `start` when the shift crosses midnight.
    `max_check_in` is the last on-time check-in hour.
    """
    name: str = "pagi"
    start: int = 9
    end: int = 17
    max_check_in: int = 10
    label: str = "Shift Pagi"


@dataclass
class ShiftRules:
    """Morning and night shift windows."""
    pagi: ShiftRule = field(default_factory=ShiftRule)
    malam: ShiftRule = field(default_factory=lambda: ShiftRule(
        name="malam",
        start=17,
        end=1,
        max_check_in=18,
        label="Shift Malam"
    ))

    def get(self, shift_name: str) -> Optional[ShiftRule]:
        """Look up a rule by shift name ('pagi' / 'malam')."""
        if shift_name == self.pagi.name:
            return self.pagi
        if shift_name == self.malam.name:
            return self.malam
        return None


@dataclass
class AttendanceRules:
    """Thresholds used by the attendance state machine."""
    late_after_minutes: int = 1        # telat jika lewat batas check-in >= N menit
    break_tolerance_hours: int = 1     # toleransi tambahan jika sudah istirahat hari ini
    break_limit_minutes: int = 60      # durasi istirahat maksimal
    no_show_hours: int = 3             # otomatis libur jika belum check-in
    leave_exclusion_days: int = 4      # libur >= N hari seminggu keluar dari rotasi
    task_reminder_minutes: int = 60    # pengingat task berjalan lama


@dataclass
class SyncSettings:
    """Timing of the realtime sync and background ticks."""
    settle_ms: int = 500
    debounce_ms: int = 500
    transaction_attempts: int = 5
    tick_seconds: int = 60
    order_backup_seconds: int = 300


@dataclass
class StorageSettings:
    """Document store location."""
    data_dir: str = ""  # Default empty = <project root>/data
    collection: str = "attendance"


@dataclass
class OutputSettings:
    """Output settings for generated reports and backups."""
    output_dir: str = ""  # Default empty = project root
    excel_filename_pattern: str = "Kehadiran_{year}_{month}.xlsx"
    generate_pdf: bool = True
    schedule_pdf_pattern: str = "Jadwal_Shift_{year}_{month}.pdf"
    backup_filename_pattern: str = "attendance-backup-{date}.json"


@dataclass
class RosterEntry:
    """Initial roster member, used to seed an empty store."""
    id: int
    name: str
    is_backup: bool = False
    is_admin: bool = False
    base_salary: int = 0


def _default_roster() -> List[RosterEntry]:
    return [
        RosterEntry(id=1, name="Desta", is_backup=True, is_admin=True, base_salary=8000000),
        RosterEntry(id=2, name="Ariel", base_salary=7000000),
        RosterEntry(id=3, name="Robert", base_salary=6500000),
    ]


@dataclass
class AppConfig:
    """Main application configuration container."""
    shift_rules: ShiftRules = field(default_factory=ShiftRules)
    attendance_rules: AttendanceRules = field(default_factory=AttendanceRules)
    sync: SyncSettings = field(default_factory=SyncSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)
    output_settings: OutputSettings = field(default_factory=OutputSettings)
    roster: List[RosterEntry] = field(default_factory=_default_roster)


class ConfigManager:
    """
    Manages application configuration with JSON persistence.

    Responsibilities:
    - Load configuration from JSON file
    - Save configuration to JSON file
    - Provide default configuration
    - Convert between dataclass and dict representations
    """

    DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config.json"

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = config_path or self.DEFAULT_CONFIG_PATH
        self._config: AppConfig = AppConfig()

    @property
    def config(self) -> AppConfig:
        """Get current configuration."""
        return self._config

    def load(self) -> AppConfig:
        """Load configuration from JSON file."""
        if self.config_path.exists():
            try:
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
                self._config = self._dict_to_config(data)
            except (json.JSONDecodeError, KeyError, TypeError) as e:
                print(f"Peringatan: gagal memuat config, memakai nilai bawaan. Error: {e}")
                self._config = AppConfig()
        else:
            self._config = AppConfig()
        return self._config

    def save(self) -> None:
        """Save current configuration to JSON file."""
        data = self._config_to_dict(self._config)
        with open(self.config_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

    def update(self, **kwargs) -> None:
        """Update specific configuration values."""
        for key, value in kwargs.items():
            if hasattr(self._config, key):
                setattr(self._config, key, value)
        self.save()

    @staticmethod
    def _rule_to_dict(rule: ShiftRule) -> dict:
        return {
            "name": rule.name,
            "start": rule.start,
            "end": rule.end,
            "max_check_in": rule.max_check_in,
            "label": rule.label
        }

    @staticmethod
    def _dict_to_rule(data: dict, default: ShiftRule) -> ShiftRule:
        return ShiftRule(
            name=data.get("name", default.name),
            start=data.get("start", default.start),
            end=data.get("end", default.end),
            max_check_in=data.get("max_check_in", default.max_check_in),
            label=data.get("label", default.label)
        )

    def _config_to_dict(self, config: AppConfig) -> dict:
        """Convert AppConfig dataclass to dictionary."""
        return {
            "shift_rules": {
                "pagi": self._rule_to_dict(config.shift_rules.pagi),
                "malam": self._rule_to_dict(config.shift_rules.malam)
            },
            "attendance_rules": {
                "late_after_minutes": config.attendance_rules.late_after_minutes,
                "break_tolerance_hours": config.attendance_rules.break_tolerance_hours,
                "break_limit_minutes": config.attendance_rules.break_limit_minutes,
                "no_show_hours": config.attendance_rules.no_show_hours,
                "leave_exclusion_days": config.attendance_rules.leave_exclusion_days,
                "task_reminder_minutes": config.attendance_rules.task_reminder_minutes
            },
            "sync": {
                "settle_ms": config.sync.settle_ms,
                "debounce_ms": config.sync.debounce_ms,
                "transaction_attempts": config.sync.transaction_attempts,
                "tick_seconds": config.sync.tick_seconds,
                "order_backup_seconds": config.sync.order_backup_seconds
            },
            "storage": {
                "data_dir": config.storage.data_dir,
                "collection": config.storage.collection
            },
            "output_settings": {
                "output_dir": config.output_settings.output_dir,
                "excel_filename_pattern": config.output_settings.excel_filename_pattern,
                "generate_pdf": config.output_settings.generate_pdf,
                "schedule_pdf_pattern": config.output_settings.schedule_pdf_pattern,
                "backup_filename_pattern": config.output_settings.backup_filename_pattern
            },
            "roster": [
                {
                    "id": entry.id,
                    "name": entry.name,
                    "is_backup": entry.is_backup,
                    "is_admin": entry.is_admin,
                    "base_salary": entry.base_salary
                }
                for entry in config.roster
            ]
        }

    def _dict_to_config(self, data: dict) -> AppConfig:
        """Convert dictionary to AppConfig dataclass."""
        shift_data = data.get("shift_rules", {})
        rules_data = data.get("attendance_rules", {})
        sync_data = data.get("sync", {})
        storage_data = data.get("storage", {})
        output_data = data.get("output_settings", {})

        # Build ShiftRules
        defaults = ShiftRules()
        shift_rules = ShiftRules(
            pagi=self._dict_to_rule(shift_data.get("pagi", {}), defaults.pagi),
            malam=self._dict_to_rule(shift_data.get("malam", {}), defaults.malam)
        )

        # Build AttendanceRules
        attendance_rules = AttendanceRules(
            late_after_minutes=rules_data.get("late_after_minutes", 1),
            break_tolerance_hours=rules_data.get("break_tolerance_hours", 1),
            break_limit_minutes=rules_data.get("break_limit_minutes", 60),
            no_show_hours=rules_data.get("no_show_hours", 3),
            leave_exclusion_days=rules_data.get("leave_exclusion_days", 4),
            task_reminder_minutes=rules_data.get("task_reminder_minutes", 60)
        )

        # Build SyncSettings
        sync = SyncSettings(
            settle_ms=sync_data.get("settle_ms", 500),
            debounce_ms=sync_data.get("debounce_ms", 500),
            transaction_attempts=sync_data.get("transaction_attempts", 5),
            tick_seconds=sync_data.get("tick_seconds", 60),
            order_backup_seconds=sync_data.get("order_backup_seconds", 300)
        )

        storage = StorageSettings(
            data_dir=storage_data.get("data_dir", ""),
            collection=storage_data.get("collection", "attendance")
        )

        output_settings = OutputSettings(
            output_dir=output_data.get("output_dir", ""),
            excel_filename_pattern=output_data.get("excel_filename_pattern", "Kehadiran_{year}_{month}.xlsx"),
            generate_pdf=output_data.get("generate_pdf", True),
            schedule_pdf_pattern=output_data.get("schedule_pdf_pattern", "Jadwal_Shift_{year}_{month}.pdf"),
            backup_filename_pattern=output_data.get("backup_filename_pattern", "attendance-backup-{date}.json")
        )

        # Roster: missing key keeps the built-in roster
        if "roster" in data:
            roster = [
                RosterEntry(
                    id=int(item["id"]),
                    name=item["name"],
                    is_backup=item.get("is_backup", False),
                    is_admin=item.get("is_admin", False),
                    base_salary=item.get("base_salary", 0)
                )
                for item in data["roster"]
            ]
        else:
            roster = _default_roster()

        return AppConfig(
            shift_rules=shift_rules,
            attendance_rules=attendance_rules,
            sync=sync,
            storage=storage,
            output_settings=output_settings,
            roster=roster
        )
