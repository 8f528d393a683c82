import json
import logging
import httpx
from fastapi import FastAPI, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from typing import Dict, List, Optional
from .config import settings
from .storage import KeyValueStorage

logger = logging.getLogger(__name__)

SERVER_RECORDS_KEY = "server_records"

# App languages -> TTS vendor language codes
TTS_LANGUAGE_CODES = {
    "en": "en-IN",
    "hi": "hi-IN",
    "od": "or-IN",
}


class ServerRecordRepository:
    """Upsert-by-id store for records pushed by clients, kept as raw payloads."""

    def __init__(self, storage: KeyValueStorage):
        self.storage = storage

    async def _load(self) -> Dict[str, dict]:
        raw = await self.storage.get_item(SERVER_RECORDS_KEY)
        return json.loads(raw) if raw else {}

    async def get_all(self) -> List[dict]:
        return list((await self._load()).values())

    async def upsert(self, record: dict) -> dict:
        records = await self._load()
        # JSON object keys are strings, so int ids are keyed by their text
        records[str(record["id"])] = record
        await self.storage.set_item(SERVER_RECORDS_KEY, json.dumps(records))
        return record


def _valid_id(value) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, str):
        return bool(value)
    return isinstance(value, int)


app = FastAPI(title="Field Survey Sync")
repository: Optional[ServerRecordRepository] = None
tts_transport: Optional[httpx.AsyncBaseTransport] = None

def get_repository() -> ServerRecordRepository:
    global repository
    if repository is None:
        repository = ServerRecordRepository(
            KeyValueStorage(settings.SERVER_DATA_DIR, settings.STORAGE_NAMESPACE)
        )
    return repository

@app.get("/healthz")
def healthz():
    return {"status": "ok"}

@app.get("/api/records")
async def list_records(repo: ServerRecordRepository = Depends(get_repository)):
    return await repo.get_all()

@app.post("/api/records")
async def upsert_record(request: Request, repo: ServerRecordRepository = Depends(get_repository)):
    try:
        record = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid record data")
    if not isinstance(record, dict) or not _valid_id(record.get("id")):
        raise HTTPException(status_code=400, detail="Invalid record data")

    saved = await repo.upsert(record)
    logger.info(f"Upserted record {record['id']}")
    return saved

@app.get("/api/tts")
async def tts(text: Optional[str] = None, language: Optional[str] = None):
    if not text or not language:
        raise HTTPException(status_code=400, detail="Missing text or language")
    if not settings.SARVAM_API_KEY:
        raise HTTPException(status_code=503, detail="TTS is not configured")

    payload = {
        "text": text,
        "target_language_code": TTS_LANGUAGE_CODES.get(language, "en-IN"),
        "speaker": settings.TTS_SPEAKER,
        "model": settings.TTS_MODEL,
        "pace": settings.TTS_PACE,
        "speech_sample_rate": settings.TTS_SAMPLE_RATE,
        "output_audio_codec": "mp3",
        "enable_preprocessing": True,
    }

    client = httpx.AsyncClient(timeout=settings.REQUEST_TIMEOUT_SECONDS, transport=tts_transport)
    req = client.build_request(
        "POST",
        settings.SARVAM_TTS_URL,
        json=payload,
        headers={"api-subscription-key": settings.SARVAM_API_KEY},
    )
    try:
        resp = await client.send(req, stream=True)
    except httpx.HTTPError as e:
        await client.aclose()
        logger.error(f"TTS proxy error: {e}")
        raise HTTPException(status_code=502, detail="TTS vendor unreachable")

    if not resp.is_success:
        body = await resp.aread()
        await resp.aclose()
        await client.aclose()
        logger.error(f"TTS vendor error: {resp.status_code} - {body[:200]!r}")
        raise HTTPException(status_code=502, detail="TTS vendor error")

    async def stream_audio():
        try:
            async for chunk in resp.aiter_bytes():
                yield chunk
        finally:
            await resp.aclose()
            await client.aclose()

    return StreamingResponse(
        stream_audio(),
        media_type="audio/mpeg",
        headers={"Cache-Control": "no-store, max-age=0"},
    )
