import logging
import httpx
from .clients.records_client import RecordsClient
from .models import SyncReport, SyncStatus
from .storage import StorageError
from .store import RecordStore

logger = logging.getLogger(__name__)

class SyncEngine:
    def __init__(self, store: RecordStore, client: RecordsClient):
        self.store = store
        self.client = client

    async def sync_all(self) -> SyncReport:
        """
        Pushes every record that is not yet synced, one at a time.

        Each record succeeds or fails on its own: a failed push is logged and
        leaves the record's status untouched for the next pass to retry.
        Nothing is raised to the caller.
        """
        report = SyncReport()
        records = await self.store.get_all()
        pending = [r for r in records if r.sync_status != SyncStatus.SYNCED]

        if not pending:
            logger.debug("No pending records to sync.")
            return report

        logger.info(f"Syncing {len(pending)} pending records...")
        for record in pending:
            report.attempted += 1
            try:
                await self.client.push_record(record)
            except httpx.HTTPError as e:
                logger.warning(f"Failed to sync record {record.id}: {e}")
                report.failed.append(record.id)
                continue

            # Re-read before writing so concurrent local edits are not clobbered
            try:
                marked = await self.store.mark_synced(record.id, record.updated_at)
            except StorageError as e:
                logger.error(f"Pushed record {record.id} but could not mark it synced: {e}")
                report.failed.append(record.id)
                continue
            if marked:
                report.synced.append(record.id)

        logger.info(f"Sync pass done: {len(report.synced)} synced, {len(report.failed)} failed")
        return report
