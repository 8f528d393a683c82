import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any, List, Optional, Set

from pydantic import ValidationError

from .config import settings
from .models import FieldRecord, Language, SyncStatus, now_ms
from .storage import KeyValueStorage

if TYPE_CHECKING:
    from .engine import SyncEngine

logger = logging.getLogger(__name__)

RECORDS_KEY = "records"
LANGUAGE_KEY = "language"
SELFIE_KEY = "selfie"
VOICE_KEY = "voice"


def _raw_id(item: Any) -> Optional[str]:
    return item.get("id") if isinstance(item, dict) else None


class RecordStore:
    """
    Local-first persistence of survey records and app preferences.

    The whole record collection is stored as one JSON list under RECORDS_KEY
    and is always rewritten in full. Saving a record kicks off a detached sync
    pass when a sync engine is attached.
    """

    def __init__(self, storage: KeyValueStorage, sync_on_save: Optional[bool] = None):
        self.storage = storage
        self.sync_engine: Optional["SyncEngine"] = None
        self.sync_on_save = settings.SYNC_ON_SAVE if sync_on_save is None else sync_on_save
        self._background: Set[asyncio.Task] = set()

    # Records

    async def _read_raw(self) -> List[Any]:
        """The stored list as plain JSON values, unreadable entries included."""
        try:
            raw = await self.storage.get_item(RECORDS_KEY)
            if not raw:
                return []
            data = json.loads(raw)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to read records, treating as empty: {e}", exc_info=True)
            return []

        if not isinstance(data, list):
            logger.error("Stored records are not a list, treating as empty")
            return []
        return data

    async def get_all(self) -> List[FieldRecord]:
        records = []
        for item in await self._read_raw():
            try:
                records.append(FieldRecord.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Skipping unreadable record {_raw_id(item)!r}: {e}")
        return records

    async def get(self, record_id: str) -> Optional[FieldRecord]:
        for record in await self.get_all():
            if record.id == record_id:
                return record
        return None

    async def save(self, record: FieldRecord) -> FieldRecord:
        """
        Upsert by id. updatedAt and syncStatus are always overwritten; any
        caller-supplied values are ignored. Entries that fail validation are
        written back untouched.
        """
        items = await self._read_raw()
        idx = next((i for i, item in enumerate(items) if _raw_id(item) == record.id), None)

        # Strictly increasing per id, so the sync engine can tell a re-save
        # from the snapshot it uploaded even within the same millisecond
        floor = record.created_at
        if idx is not None:
            previous = items[idx].get("updatedAt")
            if isinstance(previous, int):
                floor = max(floor, previous + 1)
        record.updated_at = max(now_ms(), floor)
        record.sync_status = SyncStatus.PENDING

        if idx is None:
            items.append(record.to_wire())
        else:
            items[idx] = record.to_wire()

        await self._write(items)
        logger.debug(f"Saved record {record.id}")

        if self.sync_on_save and self.sync_engine is not None:
            self.spawn_sync()
        return record

    async def delete(self, record_id: str) -> None:
        items = await self._read_raw()
        remaining = [item for item in items if _raw_id(item) != record_id]
        if len(remaining) == len(items):
            return
        await self._write(remaining)
        logger.info(f"Deleted record {record_id}")

    async def pending_count(self) -> int:
        return sum(1 for r in await self.get_all() if r.sync_status != SyncStatus.SYNCED)

    async def mark_synced(self, record_id: str, updated_at: Optional[int] = None) -> bool:
        """
        Re-reads the collection and flips only this record's status to synced.
        When updated_at is given and the stored record has moved on since that
        snapshot, it is left pending. Returns True if the status was written.
        """
        items = await self._read_raw()
        for item in items:
            if _raw_id(item) != record_id:
                continue
            try:
                record = FieldRecord.model_validate(item)
            except ValidationError:
                return False
            if updated_at is not None and record.updated_at != updated_at:
                logger.info(f"Record {record_id} changed during upload, keeping it pending")
                return False
            item["syncStatus"] = SyncStatus.SYNCED.value
            await self._write(items)
            return True
        return False

    async def _write(self, items: List[Any]):
        await self.storage.set_item(RECORDS_KEY, json.dumps(items))

    # Background sync

    def spawn_sync(self) -> Optional[asyncio.Task]:
        """Starts a detached sync pass. Its errors are logged, never raised."""
        if self.sync_engine is None:
            return None
        task = asyncio.create_task(self.sync_engine.sync_all())
        self._background.add(task)
        task.add_done_callback(self._on_sync_done)
        return task

    def _on_sync_done(self, task: asyncio.Task):
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Background sync failed: {exc}", exc_info=exc)

    async def join_background_tasks(self):
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # Preferences

    async def get_language(self) -> Optional[Language]:
        value = await self._get_pref(LANGUAGE_KEY)
        try:
            return Language(value) if value else None
        except ValueError:
            logger.warning(f"Ignoring unknown stored language {value!r}")
            return None

    async def set_language(self, language: Language):
        await self.storage.set_item(LANGUAGE_KEY, Language(language).value)

    async def get_selfie(self) -> Optional[str]:
        return await self._get_pref(SELFIE_KEY)

    async def save_selfie(self, uri: str):
        await self.storage.set_item(SELFIE_KEY, uri)

    async def get_voice_preference(self) -> Optional[bool]:
        """None until the user has chosen; otherwise whether voice is on."""
        value = await self._get_pref(VOICE_KEY)
        if value is None:
            return None
        return value == "yes"

    async def set_voice_preference(self, enabled: bool):
        await self.storage.set_item(VOICE_KEY, "yes" if enabled else "no")

    async def _get_pref(self, key: str) -> Optional[str]:
        try:
            return await self.storage.get_item(key)
        except OSError as e:
            logger.error(f"Failed to read preference {key}: {e}")
            return None
