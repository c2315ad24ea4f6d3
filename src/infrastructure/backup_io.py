"""
Backup IO Module

JSON export/import of the whole dashboard state.

File layout:
    {employees, attentions, yearlyAttendance, productivityData, mbakTasks,
     currentMonth, currentYear, exportedAt, version}

Import replaces each key that is present in the file; there is no merge.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict

from infrastructure.logger import get_logger
from infrastructure.persistence import sanitize_for_store

logger = get_logger("BackupIO")

BACKUP_VERSION = "1.0"

STATE_KEYS = (
    "employees",
    "attentions",
    "yearlyAttendance",
    "productivityData",
    "mbakTasks",
    "currentMonth",
    "currentYear",
)


class BackupFormatError(Exception):
    """Raised when a backup file is not a JSON object."""

    def __init__(self, path: Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"File backup tidak valid ({path}): {reason}")


def build_backup(state: Dict[str, Any], now: datetime) -> Dict[str, Any]:
    """Backup payload from the current state; missing keys are written as null."""
    payload = {key: sanitize_for_store(state.get(key)) for key in STATE_KEYS}
    payload["exportedAt"] = now.isoformat()
    payload["version"] = BACKUP_VERSION
    return payload


def backup_filename(pattern: str, now: datetime) -> str:
    """e.g. attendance-backup-2025-03-03.json"""
    return pattern.format(date=now.strftime("%Y-%m-%d"))


def write_backup(payload: Dict[str, Any], output_path: Path) -> Path:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)
    logger.info(f"Backup disimpan: {output_path}")
    return output_path


def read_backup(path: Path) -> Dict[str, Any]:
    """
    Load a backup file.

    Raises:
        BackupFormatError: Unreadable JSON or not an object
    """
    path = Path(path)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except ValueError as e:
        # JSONDecodeError dan UnicodeDecodeError
        raise BackupFormatError(path, f"JSON rusak: {e}") from e
    if not isinstance(data, dict):
        raise BackupFormatError(path, "isi bukan objek JSON")
    return data


def apply_backup(state: Dict[str, Any], payload: Dict[str, Any]) -> Dict[str, Any]:
    """Return a new state where every state key present in `payload` is replaced."""
    updated = dict(state)
    for key in STATE_KEYS:
        if key in payload and payload[key] is not None:
            updated[key] = payload[key]
    return updated
