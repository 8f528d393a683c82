import asyncio
import logging
from collections import OrderedDict
from typing import Optional, Set, Tuple

import httpx

from .clients.audio_client import AudioLoadError
from .config import settings
from .models import Language

logger = logging.getLogger(__name__)


class PlaybackManager:
    """
    Plays spoken instructions one at a time.

    Every play() call takes a new request id; only the newest request may
    ever start playing. Starting a request stops whatever is playing right
    away, and results of superseded requests are released unplayed.

    The backend must provide ``async load(url) -> handle``; handles provide
    ``async play()``, ``async stop()``, ``async unload()`` and
    ``set_on_finish(callback)``.
    """

    def __init__(self, backend, base_url: Optional[str] = None, cache_max_entries: Optional[int] = None):
        self.backend = backend
        self.base_url = (base_url or settings.API_BASE_URL).rstrip('/')
        self.cache_max_entries = settings.TTS_CACHE_MAX_ENTRIES if cache_max_entries is None else cache_max_entries
        self.cache: "OrderedDict[Tuple[str, str], str]" = OrderedDict()
        self.active_handle = None
        self.last_request_id = 0
        self._releasing: Set[asyncio.Task] = set()

    @property
    def is_playing(self) -> bool:
        return self.active_handle is not None

    def build_url(self, text: str, language: str) -> str:
        return str(httpx.URL(f"{self.base_url}/api/tts", params={"text": text, "language": language}))

    def resolve_url(self, text: str, language: str) -> str:
        key = (language, text)
        url = self.cache.get(key)
        if url is not None:
            if self.cache_max_entries:
                self.cache.move_to_end(key)
            return url

        url = self.build_url(text, language)
        self.cache[key] = url
        # LRU eviction only when a cap is configured; unbounded otherwise
        if self.cache_max_entries and len(self.cache) > self.cache_max_entries:
            self.cache.popitem(last=False)
        return url

    async def play(self, text: str, language):
        """Returns the playing handle, or None if superseded or failed."""
        if isinstance(language, Language):
            language = language.value

        self.last_request_id += 1
        request_id = self.last_request_id

        await self._release_active()

        url = self.resolve_url(text, language)
        if request_id != self.last_request_id:
            logger.debug(f"TTS request {request_id} superseded before load")
            return None

        try:
            handle = await self.backend.load(url)
        except (AudioLoadError, OSError) as e:
            logger.error(f"Error playing TTS: {e}")
            return None

        if request_id != self.last_request_id:
            logger.debug(f"TTS request {request_id} superseded during load, discarding")
            await self._release(handle)
            return None

        self.active_handle = handle
        handle.set_on_finish(self._on_finish)
        try:
            await handle.play()
        except OSError as e:
            logger.error(f"Error starting TTS playback: {e}")
            if self.active_handle is handle:
                self.active_handle = None
            await self._release(handle)
            return None

        if request_id != self.last_request_id:
            # Superseded while the player was starting; the newer call has
            # already stopped and released this handle
            logger.debug(f"TTS request {request_id} superseded while starting")
            return None
        return handle

    async def stop(self):
        """Invalidates any in-flight request and silences the active one."""
        self.last_request_id += 1
        await self._release_active()

    def _on_finish(self, handle):
        if self.active_handle is handle:
            self.active_handle = None
        task = asyncio.create_task(self._release(handle))
        self._releasing.add(task)
        task.add_done_callback(self._releasing.discard)

    async def _release_active(self):
        handle = self.active_handle
        if handle is None:
            return
        self.active_handle = None
        await self._release(handle)

    async def _release(self, handle):
        try:
            await handle.stop()
            await handle.unload()
        except OSError as e:
            logger.warning(f"Error cleaning up previous sound: {e}")
