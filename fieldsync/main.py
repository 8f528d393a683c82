import asyncio
import logging
import signal
import sys
import uvicorn
import time
from typing import Optional

from .config import settings
from .storage import KeyValueStorage
from .store import RecordStore
from .clients.records_client import RecordsClient
from .clients.audio_client import HttpAudioBackend
from .engine import SyncEngine
from .playback import PlaybackManager
from . import server

# Setup logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
# Silence noisy libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

logger = logging.getLogger("main")

class FieldSyncService:
    def __init__(self, records_client: Optional[RecordsClient] = None, audio=None):
        self.running = True
        self.storage = KeyValueStorage(
            settings.DATA_DIR,
            settings.STORAGE_NAMESPACE,
            persist=settings.PERSIST_ENABLED,
        )
        self.store = RecordStore(self.storage)
        self.records_client = records_client or RecordsClient()
        self.engine = SyncEngine(self.store, self.records_client)
        self.store.sync_engine = self.engine
        self.audio = audio or HttpAudioBackend()
        self.playback = PlaybackManager(self.audio)

    def on_foreground(self):
        """App came back to the foreground: retry whatever is still pending."""
        return self.store.spawn_sync()

    async def sync_loop(self):
        # First pass doubles as the app-start trigger
        while self.running:
            start_time = time.time()
            try:
                pending = await self.store.pending_count()
                if pending:
                    logger.info(f"{pending} records pending sync")
                    await self.engine.sync_all()
                else:
                    logger.debug("Nothing pending.")
            except Exception as e:
                logger.error(f"Error in sync loop: {e}", exc_info=True)

            if settings.SYNC_INTERVAL_SECONDS <= 0:
                return

            # Wait for remainder of interval
            elapsed = time.time() - start_time
            sleep_time = max(1, settings.SYNC_INTERVAL_SECONDS - elapsed)
            await asyncio.sleep(sleep_time)

    async def start(self):
        tasks = [asyncio.create_task(self.sync_loop())]

        if settings.HTTP_SERVER_ENABLED:
            config = uvicorn.Config(
                server.app,
                host=settings.HTTP_SERVER_HOST,
                port=settings.HTTP_SERVER_PORT,
                log_level="warning",
            )
            tasks.append(asyncio.create_task(uvicorn.Server(config).serve()))

        try:
            await asyncio.gather(*tasks)
        except asyncio.CancelledError:
            pass
        finally:
            await self.shutdown()

    async def shutdown(self):
        self.running = False
        await self.playback.stop()
        await self.store.join_background_tasks()
        await self.records_client.aclose()
        await self.audio.aclose()

def handle_sigterm(sig, frame):
    logger.info("Received SIGTERM, shutting down...")
    sys.exit(0)

if __name__ == "__main__":
    signal.signal(signal.SIGTERM, handle_sigterm)
    service = FieldSyncService()
    try:
        asyncio.run(service.start())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
