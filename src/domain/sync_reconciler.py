"""
Sync Reconciler Module

Merges an employee record arriving from the shared store with the local copy.

The merge depends on who thinks a shift is running, (local.checked_in, incoming.checked_in):
- (True, True): keep local, union tasks, take whitelisted admin fields from incoming
- (True, False): shift ended elsewhere, take incoming, keep local history
- (False, True): shift started elsewhere, take incoming, keep local history
- (False, False): take incoming, union tasks and history

Whenever a local record exists, a task id found in the merged history is
removed from the active task list, so a finished task never comes back.
Without a local record the incoming employee is taken as is.
"""

import copy
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .entities import Employee, Task
from infrastructure.logger import get_logger

logger = get_logger("SyncReconciler")

# Kolom yang boleh diubah admin dari perangkat lain walau shift lokal aktif
ADMIN_FIELDS = (
    "late_hours",
    "check_in_time",
    "shift",
    "shift_end_time",
    "status",
    "overtime",
    "base_salary",
    "izin_time",
    "shift_end_adjustment",
    "is_admin",
)


def migrate_history(employee: Employee) -> int:
    """
    Fill `shift_date` of old history entries from `completed_at`.

    Returns:
        Number of entries migrated
    """
    migrated = 0
    for task in employee.completed_tasks_history:
        if not task.shift_date and task.completed_at:
            task.shift_date = task.completed_at[:10]
            migrated += 1
    return migrated


def _by_completed_at(task: Task) -> Tuple[str, Optional[str]]:
    return (task.id, task.completed_at)


def _by_shift_date(task: Task) -> Tuple[str, Optional[str]]:
    return (task.id, task.shift_date)


def union_history(
    first: Iterable[Task],
    second: Iterable[Task],
    key: Callable[[Task], tuple] = _by_shift_date
) -> List[Task]:
    """Concatenate two histories, dropping entries whose key was already seen."""
    seen = set()
    merged = []
    for task in list(first) + list(second):
        k = key(task)
        if k in seen:
            continue
        seen.add(k)
        merged.append(copy.deepcopy(task))
    return merged


def merge_task(local: Task, incoming: Task) -> Task:
    """
    Combine two copies of the same task.

    Completed on either side wins, progress takes the max, and an active
    pause wins over no pause.
    """
    merged = copy.deepcopy(local)
    merged.progress = max(local.progress, incoming.progress)
    merged.start_time = local.start_time or incoming.start_time

    if incoming.paused and not local.paused:
        merged.paused = True
        merged.pause_start_time = incoming.pause_start_time
        merged.pause_history = copy.deepcopy(incoming.pause_history)

    if local.completed or incoming.completed:
        merged.completed = True
        merged.progress = 100
        merged.completed_at = local.completed_at or incoming.completed_at
        merged.end_time = local.end_time or incoming.end_time
        merged.duration = local.duration or incoming.duration
    return merged


def union_tasks(local: Iterable[Task], incoming: Iterable[Task], history_ids: set) -> List[Task]:
    """Union active tasks by id (local order first), skipping ids already in history."""
    incoming_by_id: Dict[str, Task] = {t.id: t for t in incoming}
    merged: List[Task] = []
    seen = set()
    for task in local:
        if task.id in history_ids or task.id in seen:
            continue
        other = incoming_by_id.get(task.id)
        merged.append(merge_task(task, other) if other else copy.deepcopy(task))
        seen.add(task.id)
    for task in incoming_by_id.values():
        if task.id in history_ids or task.id in seen:
            continue
        merged.append(copy.deepcopy(task))
        seen.add(task.id)
    return merged


def merge_employee(local: Optional[Employee], incoming: Employee) -> Employee:
    """
    Merge one incoming employee record into the local one.

    Neither argument is modified.
    """
    incoming = copy.deepcopy(incoming)
    migrate_history(incoming)

    if local is None:
        return incoming

    local = copy.deepcopy(local)
    migrate_history(local)

    if local.checked_in and incoming.checked_in:
        merged = local
        for name in ADMIN_FIELDS:
            value = getattr(incoming, name)
            if value is not None:
                setattr(merged, name, value)
        merged.completed_tasks_history = union_history(
            local.completed_tasks_history,
            incoming.completed_tasks_history,
            key=_by_completed_at
        )
        history_ids = merged.history_ids()
        merged.work_tasks = union_tasks(local.work_tasks, incoming.work_tasks, history_ids)
        logger.debug(f"merge {merged.name}: shift aktif di kedua sisi")
        return merged

    merged = incoming
    merged.completed_tasks_history = union_history(
        incoming.completed_tasks_history,
        local.completed_tasks_history
    )
    history_ids = merged.history_ids()

    if not local.checked_in and not incoming.checked_in:
        merged.work_tasks = union_tasks(local.work_tasks, incoming.work_tasks, history_ids)
    else:
        merged.work_tasks = [
            t for t in incoming.work_tasks if t.id not in history_ids
        ]
    logger.debug(
        f"merge {merged.name}: lokal={'aktif' if local.checked_in else 'selesai'}, "
        f"remote={'aktif' if incoming.checked_in else 'selesai'}"
    )
    return merged


def reconcile_roster(local: Iterable[Employee], incoming: Iterable[Employee]) -> List[Employee]:
    """
    Merge a whole incoming roster snapshot.

    Membership and order follow the incoming snapshot; employees that only
    exist locally are dropped.
    """
    local_by_id = {e.id: e for e in local}
    return [merge_employee(local_by_id.get(emp.id), emp) for emp in incoming]
