"""Record stores for the storefront.

Users, orders and products are each kept as a homogeneous collection of JSON
documents. ``RecordStore`` is the contract every backend honours:

- reads reload the backing data first, so writes made by other handlers or
  processes are picked up (last writer wins, there is no locking);
- ``update`` shallow-merges a patch, keeps ``id`` and ``created_at`` and
  stamps a strictly increasing ``updated_at``;
- file persistence failures never reach the caller. ``FileRecordStore`` drops
  to ``PersistenceMode.VOLATILE_FALLBACK`` and keeps serving from memory;
- database failures in ``TortoiseRecordStore`` are logged and raised as
  ``StoreError``, never as ORM exceptions.

Records are plain dicts; the feature services convert them to and from their
pydantic models."""

import copy
import json
import logging
import os
from abc import ABC, abstractmethod
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional, Union

from tortoise.exceptions import BaseORMException, IntegrityError, OperationalError
from tortoise.transactions import in_transaction

from ..core import config
from .models import StoredRecord, next_timestamp, utc_now_iso

logger = logging.getLogger(__name__)

Record = dict[str, Any]
Predicate = Callable[[Record], bool]

PERSISTENCE_HINT = "Point DATABASE_PATH at a writable directory or set STORE_BACKEND=sqlite"


class PersistenceMode(str, Enum):
    DURABLE = "durable"
    VOLATILE_FALLBACK = "volatile_fallback"
    VOLATILE = "volatile"


class StoreError(Exception):
    pass


class RecordConflictError(StoreError):
    def __init__(self, collection: str, message: str = "Record already exists"):
        super().__init__(message)
        self.collection = collection
        self.message = message


def merge_patch(existing: Record, patch: Record) -> Record:
    merged = {**existing, **patch}
    merged["id"] = existing["id"]
    merged["created_at"] = existing.get("created_at")
    merged["updated_at"] = next_timestamp(existing.get("updated_at"))
    return merged


def _stamped(record: Record) -> Record:
    stored = copy.deepcopy(record)
    if not stored.get("id"):
        raise StoreError("Records must carry an id before they are stored")
    stored.setdefault("created_at", utc_now_iso())
    stored.setdefault("updated_at", stored["created_at"])
    return stored


class RecordStore(ABC):
    """Create/find/update/delete over one collection of records."""

    def __init__(self, collection: str):
        self.collection = collection

    @property
    @abstractmethod
    def mode(self) -> PersistenceMode: ...

    @abstractmethod
    async def all(self) -> list[Record]: ...

    @abstractmethod
    async def get(self, record_id: str) -> Optional[Record]: ...

    @abstractmethod
    async def find(self, predicate: Predicate) -> list[Record]: ...

    @abstractmethod
    async def insert(self, record: Record, conflicts_with: Optional[Predicate] = None) -> Record:
        """Append ``record``.

        Raises RecordConflictError when the id is taken or any existing record
        satisfies ``conflicts_with``.
        """

    @abstractmethod
    async def update(self, record_id: str, patch: Record) -> Optional[Record]: ...

    @abstractmethod
    async def delete(self, record_id: str) -> bool: ...

    async def find_one(self, predicate: Predicate) -> Optional[Record]:
        matches = await self.find(predicate)
        return matches[0] if matches else None

    def describe(self) -> dict[str, str]:
        return {"collection": self.collection, "mode": self.mode.value}


class InMemoryRecordStore(RecordStore):
    """Keeps the collection in a list. Also the base of ``FileRecordStore``."""

    def __init__(self, collection: str, records: Optional[list[Record]] = None):
        super().__init__(collection)
        self._records: list[Record] = [copy.deepcopy(r) for r in records or []]

    @property
    def mode(self) -> PersistenceMode:
        return PersistenceMode.VOLATILE

    def _reload(self) -> None:
        pass

    def _persist(self) -> None:
        pass

    def _index_of(self, record_id: str) -> Optional[int]:
        for index, record in enumerate(self._records):
            if record.get("id") == record_id:
                return index
        return None

    async def all(self) -> list[Record]:
        self._reload()
        return copy.deepcopy(self._records)

    async def get(self, record_id: str) -> Optional[Record]:
        self._reload()
        index = self._index_of(record_id)
        return copy.deepcopy(self._records[index]) if index is not None else None

    async def find(self, predicate: Predicate) -> list[Record]:
        self._reload()
        return [copy.deepcopy(r) for r in self._records if predicate(r)]

    async def insert(self, record: Record, conflicts_with: Optional[Predicate] = None) -> Record:
        stored = _stamped(record)
        self._reload()
        if self._index_of(stored["id"]) is not None:
            raise RecordConflictError(self.collection, f"Record {stored['id']} already exists")
        if conflicts_with is not None and any(conflicts_with(r) for r in self._records):
            raise RecordConflictError(self.collection)
        self._records.append(stored)
        self._persist()
        return copy.deepcopy(stored)

    async def update(self, record_id: str, patch: Record) -> Optional[Record]:
        self._reload()
        index = self._index_of(record_id)
        if index is None:
            return None
        self._records[index] = merge_patch(self._records[index], patch)
        self._persist()
        return copy.deepcopy(self._records[index])

    async def delete(self, record_id: str) -> bool:
        self._reload()
        index = self._index_of(record_id)
        if index is None:
            return False
        del self._records[index]
        self._persist()
        return True


class FileRecordStore(InMemoryRecordStore):
    """Collection persisted as a JSON array in a single file.

    Saves go to ``<file>.tmp`` first and are then renamed over the real file,
    so readers only ever see a complete old or a complete new array. If the
    directory cannot be created, read or written, the store logs a warning
    once and serves from memory for the rest of the process lifetime.
    """

    def __init__(self, collection: str, path: Union[str, Path]):
        super().__init__(collection)
        self.path = Path(path)
        self._tmp_path = self.path.with_name(self.path.name + ".tmp")
        self._filesystem_available = True
        self._prepare()
        self._reload()

    @property
    def mode(self) -> PersistenceMode:
        if self._filesystem_available:
            return PersistenceMode.DURABLE
        return PersistenceMode.VOLATILE_FALLBACK

    def describe(self) -> dict[str, str]:
        return {**super().describe(), "file": str(self.path)}

    def _context(self, **extra: Any) -> dict[str, Any]:
        return {"collection": self.collection, "file": str(self.path), **extra}

    def _prepare(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            if not self.path.exists():
                self._write_atomically([])
        except OSError as exc:
            self._degrade("File system not writable - using in-memory storage", exc)

    def _degrade(self, message: str, exc: BaseException) -> None:
        if not self._filesystem_available:
            return
        self._filesystem_available = False
        logger.warning(
            message,
            extra={"context": self._context(error=str(exc), hint=PERSISTENCE_HINT)},
        )

    def _reload(self) -> None:
        if not self._filesystem_available:
            return
        try:
            if self.path.exists():
                with self.path.open(encoding="utf-8") as fh:
                    data = json.load(fh)
                if not isinstance(data, list):
                    raise ValueError("expected a JSON array of records")
                if not all(isinstance(r, dict) for r in data):
                    raise ValueError("expected JSON objects in the records array")
                self._records = data
            else:
                self._records = []
        except (OSError, ValueError) as exc:
            logger.error(
                f"Error loading {self.collection} from file",
                exc_info=True,
                extra={"context": self._context()},
            )
            self._degrade("File read failed - switching to in-memory storage only", exc)

    def _persist(self) -> None:
        if not self._filesystem_available:
            logger.debug(
                f"Skipping save of {self.collection}; file system unavailable",
                extra={"context": self._context()},
            )
            return
        try:
            self._write_atomically(self._records)
        except (OSError, TypeError, ValueError) as exc:
            logger.error(
                f"Error saving {self.collection} to file",
                exc_info=True,
                extra={"context": self._context()},
            )
            self._discard_tmp()
            self._degrade("File save failed - switching to in-memory storage only", exc)

    def _write_atomically(self, records: list[Record]) -> None:
        with self._tmp_path.open("w", encoding="utf-8") as fh:
            json.dump(records, fh, indent=2)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(self._tmp_path, self.path)

    def _discard_tmp(self) -> None:
        try:
            self._tmp_path.unlink(missing_ok=True)
        except OSError:
            logger.debug("Could not remove temp file", extra={"context": self._context()})


class TortoiseRecordStore(RecordStore):
    """Collection stored as rows of the ``stored_records`` table.

    Tortoise must already be initialised with ``storefront.common.models``.
    Inserts and updates run inside a transaction, so this backend does not
    lose updates the way the file store can. A database that cannot be
    reached or queried surfaces as ``StoreError``; there is no in-memory
    fallback here.
    """

    @property
    def mode(self) -> PersistenceMode:
        return PersistenceMode.DURABLE

    def _rows(self):
        return StoredRecord.filter(collection=self.collection)

    @contextmanager
    def _database_errors(self, operation: str, record_id: Optional[str] = None):
        try:
            yield
        except (BaseORMException, OperationalError) as exc:
            logger.error(
                f"Database error during {operation} on {self.collection}",
                exc_info=True,
                extra={"context": {"collection": self.collection, "record_id": record_id}},
            )
            raise StoreError(f"{self.collection} store unavailable") from exc

    async def all(self) -> list[Record]:
        with self._database_errors("all"):
            rows = await self._rows().order_by("id")
        return [copy.deepcopy(row.data) for row in rows]

    async def get(self, record_id: str) -> Optional[Record]:
        with self._database_errors("get", record_id):
            row = await StoredRecord.get_or_none(collection=self.collection, record_id=record_id)
        return copy.deepcopy(row.data) if row else None

    async def find(self, predicate: Predicate) -> list[Record]:
        return [record for record in await self.all() if predicate(record)]

    async def insert(self, record: Record, conflicts_with: Optional[Predicate] = None) -> Record:
        stored = _stamped(record)
        with self._database_errors("insert", stored["id"]):
            async with in_transaction() as conn:
                if conflicts_with is not None:
                    existing = await self._rows().using_db(conn)
                    if any(conflicts_with(row.data) for row in existing):
                        raise RecordConflictError(self.collection)
                try:
                    await StoredRecord.create(
                        collection=self.collection,
                        record_id=stored["id"],
                        data=stored,
                        using_db=conn,
                    )
                except IntegrityError as exc:
                    raise RecordConflictError(
                        self.collection, f"Record {stored['id']} already exists"
                    ) from exc
        return copy.deepcopy(stored)

    async def update(self, record_id: str, patch: Record) -> Optional[Record]:
        with self._database_errors("update", record_id):
            async with in_transaction() as conn:
                row = await self._rows().filter(record_id=record_id).using_db(conn).first()
                if row is None:
                    return None
                row.data = merge_patch(row.data, patch)
                await row.save(using_db=conn)
        return copy.deepcopy(row.data)

    async def delete(self, record_id: str) -> bool:
        with self._database_errors("delete", record_id):
            deleted = await self._rows().filter(record_id=record_id).delete()
        return deleted > 0


def build_store(
    collection: str,
    backend: Optional[str] = None,
    data_dir: Optional[Union[str, Path]] = None,
) -> RecordStore:
    """Construct the store for ``collection`` according to STORE_BACKEND."""
    backend = (backend or config.STORE_BACKEND).lower()
    if backend == "memory":
        return InMemoryRecordStore(collection)
    if backend == "sqlite":
        return TortoiseRecordStore(collection)
    if backend != "file":
        logger.warning(f"Unknown STORE_BACKEND '{backend}', using JSON files")
    directory = Path(data_dir) if data_dir is not None else config.resolve_data_dir()
    return FileRecordStore(collection, directory / f"{collection}.json")
