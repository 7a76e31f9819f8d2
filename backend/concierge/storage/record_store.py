"""
Record Store - Append-only JSON collections (orders, bookings, complaints).
"""

import asyncio
import json
import logging
from typing import Any, Dict, List

from .interface import StorageInterface

logger = logging.getLogger(__name__)


def _decode(raw: bytes) -> List[Dict[str, Any]]:
    records = json.loads(raw.decode('utf-8'))
    if not isinstance(records, list):
        raise ValueError(f"expected a JSON list, found {type(records).__name__}")
    return records


class RecordStore:
    """
    An append-only list of JSON records kept in a single file.

    Appends are read-modify-write and are serialized with a lock, so
    concurrent turns never lose each other's records. A file that cannot be
    decoded is never written over.
    """

    def __init__(self, storage: StorageInterface, path: str):
        self.storage = storage
        self.path = path
        self._lock = asyncio.Lock()

    async def load_all(self) -> List[Dict[str, Any]]:
        """Load every record; a missing or corrupt file reads as empty."""
        raw = await self.storage.load(self.path)
        if not raw:
            return []
        try:
            return _decode(raw)
        except ValueError:
            logger.warning(f"Record file {self.path} is not a valid JSON list, treating as empty")
            return []

    async def append(self, record: Dict[str, Any]) -> bool:
        """
        Append one record. Returns False if the write failed or the existing
        file is corrupt, in which case the file is left untouched.
        """
        extra = {"extra_fields": {"store": self.path, "record_id": record.get("id")}}
        async with self._lock:
            raw = await self.storage.load(self.path)
            try:
                records = _decode(raw) if raw else []
            except ValueError:
                logger.exception(
                    f"Record file {self.path} is corrupt, refusing to append {record.get('id')}",
                    extra=extra
                )
                return False
            records.append(record)
            saved = await self.storage.save(
                self.path, json.dumps(records, indent=2, ensure_ascii=False)
            )

        if saved:
            logger.debug(f"Appended record {record.get('id')} to {self.path}")
        else:
            logger.error(f"Failed to persist record {record.get('id')} to {self.path}", extra=extra)
        return saved
