import logging
import httpx
from typing import List, Optional
from ..config import settings
from ..models import FieldRecord

logger = logging.getLogger(__name__)

class RecordsClient:
    """Talks to the remote record endpoint (upsert-by-id and listing)."""

    def __init__(self, base_url: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.client = httpx.AsyncClient(
            base_url=(base_url or settings.API_BASE_URL).rstrip('/'),
            headers={"Content-Type": "application/json"},
            timeout=settings.REQUEST_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def push_record(self, record: FieldRecord) -> None:
        """
        Upserts the full record snapshot. Raises httpx.HTTPError on transport
        failures and on any non-success status.
        """
        resp = await self.client.post("/api/records", json=record.to_wire())
        resp.raise_for_status()
        logger.debug(f"Pushed record {record.id} ({resp.status_code})")

    async def list_records(self) -> List[dict]:
        resp = await self.client.get("/api/records")
        resp.raise_for_status()
        data = resp.json()
        return data if isinstance(data, list) else []

    async def aclose(self):
        await self.client.aclose()
