"""
Persistence Module

Document store gateway: get / set / optimistic transaction / subscribe.

Documents are stored as `{"data": ..., "lastUpdated": ISO timestamp}` and
every write is converted to plain JSON-shaped values first.
Two implementations are provided:
- InMemoryDocumentStore: process-local, used for tests and single-process runs
- JsonFileDocumentStore: one JSON file per document under a data directory
"""

import copy
import dataclasses
import json
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from infrastructure.logger import get_logger

logger = get_logger("Persistence")


# Dokumen di koleksi "attendance"
DOC_EMPLOYEES = "employees"
DOC_ATTENTIONS = "attentions"
DOC_YEARLY_ATTENDANCE = "yearlyAttendance"
DOC_PRODUCTIVITY = "productivityData"
DOC_CURRENT_PERIOD = "currentPeriod"
DOC_SHIFT_SCHEDULE = "shiftSchedule"
DOC_ORDERS = "orders"
DOC_MBAK = "mbakData"

ALL_DOCUMENTS = (
    DOC_EMPLOYEES, DOC_ATTENTIONS, DOC_YEARLY_ATTENDANCE, DOC_PRODUCTIVITY,
    DOC_CURRENT_PERIOD, DOC_SHIFT_SCHEDULE, DOC_ORDERS, DOC_MBAK,
)

Callback = Callable[[Any], None]
Unsubscribe = Callable[[], None]


class PersistenceError(Exception):
    """Raised when a document cannot be read or written."""
    pass


class TransactionConflictError(PersistenceError):
    """Raised when a transaction keeps losing to concurrent writers."""

    def __init__(self, collection: str, doc_id: str, attempts: int):
        self.collection = collection
        self.doc_id = doc_id
        self.attempts = attempts
        super().__init__(f"Transaksi {collection}/{doc_id} gagal setelah {attempts} percobaan")


def sanitize_for_store(value: Any) -> Any:
    """
    Convert a value into JSON-shaped data.

    Enums become their values, dates ISO strings, tuples and sets lists,
    dataclasses dicts, and mapping keys strings.

    Raises:
        TypeError: A value with no JSON representation
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Enum):
        return sanitize_for_store(value.value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): sanitize_for_store(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [sanitize_for_store(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return [sanitize_for_store(v) for v in sorted(value, key=str)]
    if hasattr(value, "to_dict"):
        return sanitize_for_store(value.to_dict())
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return sanitize_for_store(dataclasses.asdict(value))
    raise TypeError(f"Nilai tidak bisa disimpan: {type(value).__name__}")


@dataclass
class StoredDocument:
    """A document with its write version."""
    data: Any
    last_updated: str
    version: int = 0

    def to_dict(self) -> dict:
        return {"data": self.data, "lastUpdated": self.last_updated, "version": self.version}

    @classmethod
    def from_dict(cls, raw: dict) -> "StoredDocument":
        return cls(
            data=raw.get("data"),
            last_updated=raw.get("lastUpdated") or "",
            version=int(raw.get("version") or 0),
        )


class PersistenceGateway(ABC):
    """Abstract document store."""

    @abstractmethod
    def get_document(self, collection: str, doc_id: str) -> Optional[Any]:
        """Return the `data` of a document, or None when it does not exist."""
        pass

    @abstractmethod
    def set_document(self, collection: str, doc_id: str, data: Any) -> None:
        """Overwrite a document."""
        pass

    @abstractmethod
    def run_transaction(self, collection: str, doc_id: str, fn: Callable[[Any], Any]) -> Any:
        """
        Optimistic read-modify-write.

        `fn` receives the current data (None if missing) and returns the new
        data. It is re-run on conflict, so it must not have side effects.

        Returns:
            The data that was written
        """
        pass

    @abstractmethod
    def subscribe(self, collection: str, doc_id: str, callback: Callback) -> Unsubscribe:
        """
        Call `callback(data)` on every change, including the subscriber's own writes.

        Returns:
            A function that cancels the subscription
        """
        pass


class InMemoryDocumentStore(PersistenceGateway):
    """
    Versioned in-process store.

    A transaction commits only if the document version did not change while
    `fn` was running; otherwise it retries up to `max_attempts` times.
    """

    def __init__(self, max_attempts: int = 5, clock: Callable[[], datetime] = datetime.now):
        self.max_attempts = max_attempts
        self._clock = clock
        self._docs: Dict[Tuple[str, str], StoredDocument] = {}
        self._subscribers: Dict[Tuple[str, str], List[Callback]] = {}
        self._lock = threading.RLock()

    # Storage hooks, overridden by file-backed stores
    def _load(self, key: Tuple[str, str]) -> Optional[StoredDocument]:
        return self._docs.get(key)

    def _store(self, key: Tuple[str, str], document: StoredDocument) -> None:
        self._docs[key] = document

    def get_document(self, collection: str, doc_id: str) -> Optional[Any]:
        with self._lock:
            document = self._load((collection, doc_id))
            return copy.deepcopy(document.data) if document else None

    def get_last_updated(self, collection: str, doc_id: str) -> Optional[str]:
        with self._lock:
            document = self._load((collection, doc_id))
            return document.last_updated if document else None

    def _commit(self, key: Tuple[str, str], data: Any, expected_version: Optional[int]) -> bool:
        with self._lock:
            current = self._load(key)
            current_version = current.version if current else 0
            if expected_version is not None and current_version != expected_version:
                return False
            self._store(key, StoredDocument(
                data=data,
                last_updated=self._clock().isoformat(),
                version=current_version + 1
            ))
        self._notify(key, data)
        return True

    def set_document(self, collection: str, doc_id: str, data: Any) -> None:
        clean = sanitize_for_store(data)
        self._commit((collection, doc_id), clean, expected_version=None)
        logger.debug(f"set {collection}/{doc_id}")

    def run_transaction(self, collection: str, doc_id: str, fn: Callable[[Any], Any]) -> Any:
        key = (collection, doc_id)
        for attempt in range(1, self.max_attempts + 1):
            with self._lock:
                current = self._load(key)
                version = current.version if current else 0
                snapshot = copy.deepcopy(current.data) if current else None
            new_data = sanitize_for_store(fn(snapshot))
            if self._commit(key, new_data, expected_version=version):
                logger.debug(f"transaksi {collection}/{doc_id} berhasil (percobaan {attempt})")
                return new_data
            logger.debug(f"transaksi {collection}/{doc_id} konflik, ulangi (percobaan {attempt})")
        raise TransactionConflictError(collection, doc_id, self.max_attempts)

    def subscribe(self, collection: str, doc_id: str, callback: Callback) -> Unsubscribe:
        key = (collection, doc_id)
        with self._lock:
            self._subscribers.setdefault(key, []).append(callback)
            document = self._load(key)
            initial = copy.deepcopy(document.data) if document else None

        if document is not None:
            callback(initial)

        def unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(key, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return unsubscribe

    def _notify(self, key: Tuple[str, str], data: Any) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get(key, []))
        for callback in callbacks:
            try:
                callback(copy.deepcopy(data))
            except Exception as e:
                logger.error(f"Subscriber {key[0]}/{key[1]} gagal: {e}")


class JsonFileDocumentStore(InMemoryDocumentStore):
    """
    File-backed store: `<data_dir>/<collection>/<doc_id>.json`.

    Files are replaced atomically through a temp file in the same directory.
    """

    def __init__(
        self,
        data_dir: Path,
        max_attempts: int = 5,
        clock: Callable[[], datetime] = datetime.now
    ):
        super().__init__(max_attempts=max_attempts, clock=clock)
        self.data_dir = Path(data_dir)

    def _path(self, key: Tuple[str, str]) -> Path:
        collection, doc_id = key
        return self.data_dir / collection / f"{doc_id}.json"

    def _load(self, key: Tuple[str, str]) -> Optional[StoredDocument]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            with open(path, 'r', encoding='utf-8') as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Gagal membaca {path}: {e}") from e
        return StoredDocument.from_dict(raw)

    def _store(self, key: Tuple[str, str], document: StoredDocument) -> None:
        path = self._path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
        except OSError as e:
            raise PersistenceError(f"Gagal menulis {path}: {e}") from e
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(document.to_dict(), f, ensure_ascii=False, indent=2)
            os.replace(tmp_name, path)
        except (OSError, TypeError, ValueError) as e:
            # File sementara tidak boleh tertinggal di folder data
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise PersistenceError(f"Gagal menulis {path}: {e}") from e
