"""
Boards Module

Simple shared lists: orders, attentions (announcements) and mbak tasks.
Items are plain JSON dicts so they round-trip through the store unchanged.
"""

import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from domain.entities import GuardRejection, ValidationError


ORDER_STATUSES = ("pending", "process", "completed")
ORDER_PRIORITIES = ("low", "medium", "high", "urgent")


def _new_id() -> str:
    return uuid.uuid4().hex[:12]


class Board:
    """List of dict items with add / update / delete."""

    # Field that must not be empty when adding
    required_field = "text"

    def __init__(self, items: Optional[List[Dict[str, Any]]] = None,
                 id_factory: Optional[Callable[[], str]] = None):
        self.items: List[Dict[str, Any]] = list(items or [])
        self._id_factory = id_factory or _new_id

    def get(self, item_id: str) -> Dict[str, Any]:
        for item in self.items:
            if item.get("id") == item_id:
                return item
        raise GuardRejection(f"Item {item_id} tidak ditemukan")

    def add(self, fields: Dict[str, Any], now: datetime) -> Dict[str, Any]:
        value = fields.get(self.required_field)
        if not value or not str(value).strip():
            raise ValidationError(f"'{self.required_field}' tidak boleh kosong")
        item = dict(fields)
        item["id"] = self._id_factory()
        item["createdAt"] = now.isoformat()
        self.items.insert(0, item)
        return item

    def update(self, item_id: str, updates: Dict[str, Any], now: datetime) -> Dict[str, Any]:
        item = self.get(item_id)
        item.update({k: v for k, v in updates.items() if k != "id"})
        item["updatedAt"] = now.isoformat()
        return item

    def delete(self, item_id: str) -> Dict[str, Any]:
        item = self.get(item_id)
        self.items = [i for i in self.items if i.get("id") != item_id]
        return item

    def to_list(self) -> List[Dict[str, Any]]:
        return [dict(item) for item in self.items]


class OrderBoard(Board):
    """Customer orders with a pending -> process -> completed status and notes."""

    required_field = "customer"

    def add(self, fields: Dict[str, Any], now: datetime) -> Dict[str, Any]:
        fields = dict(fields)
        fields.setdefault("status", "pending")
        fields.setdefault("priority", "medium")
        fields.setdefault("notes", [])
        if fields["status"] not in ORDER_STATUSES:
            raise ValidationError(f"Status order tidak dikenal: {fields['status']}")
        if fields["priority"] not in ORDER_PRIORITIES:
            raise ValidationError(f"Prioritas order tidak dikenal: {fields['priority']}")
        return super().add(fields, now)

    def update_status(self, item_id: str, status: str, now: datetime,
                      note: str = "", author: str = "") -> Dict[str, Any]:
        if status not in ORDER_STATUSES:
            raise ValidationError(f"Status order tidak dikenal: {status}")
        order = self.get(item_id)
        order["status"] = status
        order["updatedAt"] = now.isoformat()
        if status == "completed":
            order["completedAt"] = now.isoformat()
        if note and note.strip():
            order.setdefault("notes", []).append({
                "id": self._id_factory(),
                "text": note.strip(),
                "author": author,
                "timestamp": now.isoformat(),
            })
        return order


class AttentionBoard(Board):
    """Announcements that track who has read them."""

    def add(self, fields: Dict[str, Any], now: datetime) -> Dict[str, Any]:
        fields = dict(fields)
        fields.setdefault("readBy", [])
        return super().add(fields, now)

    def mark_read(self, item_id: str, reader: str) -> Dict[str, Any]:
        item = self.get(item_id)
        read_by = item.setdefault("readBy", [])
        if reader not in read_by:
            read_by.append(reader)
        return item

    def unread_for(self, reader: str) -> List[Dict[str, Any]]:
        return [i for i in self.items if reader not in i.get("readBy", [])]


class MbakBoard(Board):
    """Checklist for the housekeeping staff."""

    def add(self, fields: Dict[str, Any], now: datetime) -> Dict[str, Any]:
        fields = dict(fields)
        fields.setdefault("completed", False)
        fields.setdefault("completedAt", None)
        return super().add(fields, now)

    def toggle(self, item_id: str, now: datetime) -> Dict[str, Any]:
        item = self.get(item_id)
        item["completed"] = not item.get("completed", False)
        item["completedAt"] = now.isoformat() if item["completed"] else None
        return item
