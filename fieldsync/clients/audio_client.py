import asyncio
import logging
import os
import shutil
import tempfile
import httpx
from typing import Callable, List, Optional
from ..config import settings

logger = logging.getLogger(__name__)

# Players that can decode mp3 from a file, in order of preference
PLAYER_ARGS = {
    "mpv": ["--no-video", "--really-quiet"],
    "ffplay": ["-nodisp", "-autoexit", "-loglevel", "quiet"],
    "mpg123": ["-q"],
    "afplay": [],
}


class AudioLoadError(Exception):
    pass


def find_player() -> Optional[str]:
    for name in PLAYER_ARGS:
        if shutil.which(name):
            return name
    return None


class AudioHandle:
    """
    One loaded utterance: an mp3 file on disk played by an external player
    process. stop() kills the process; unload() also deletes the file.
    """

    def __init__(self, path: str, player: str):
        self.path = path
        self.player = player
        self.proc: Optional[asyncio.subprocess.Process] = None
        self._watcher: Optional[asyncio.Task] = None
        self._stopped = False
        self._on_finish: Optional[Callable[["AudioHandle"], None]] = None

    def set_on_finish(self, callback: Callable[["AudioHandle"], None]):
        self._on_finish = callback

    @property
    def is_playing(self) -> bool:
        return self.proc is not None and self.proc.returncode is None

    def _command(self) -> List[str]:
        name = os.path.basename(self.player)
        return [self.player, *PLAYER_ARGS.get(name, []), self.path]

    async def play(self):
        if self._stopped:
            return
        self.proc = await asyncio.create_subprocess_exec(
            *self._command(),
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
        if self._stopped:
            # stop() ran while the process was being spawned
            self.proc.kill()
            await self.proc.wait()
            return
        self._watcher = asyncio.create_task(self._wait())

    async def _wait(self):
        returncode = await self.proc.wait()
        # Negative return code = killed by signal (stop() was called)
        if self._stopped or returncode < 0:
            return
        if returncode != 0:
            logger.warning(f"Audio player exited with {returncode} for {self.path}")
        if self._on_finish:
            self._on_finish(self)

    async def stop(self):
        self._stopped = True
        if self.is_playing:
            self.proc.terminate()
            try:
                await asyncio.wait_for(self.proc.wait(), timeout=2)
            except asyncio.TimeoutError:
                self.proc.kill()
                await self.proc.wait()

    async def unload(self):
        await self.stop()
        try:
            os.unlink(self.path)
        except FileNotFoundError:
            pass


class HttpAudioBackend:
    """Fetches TTS audio over HTTP and hands back playable AudioHandles."""

    def __init__(self, player: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.client = httpx.AsyncClient(
            timeout=settings.REQUEST_TIMEOUT_SECONDS,
            transport=transport,
        )
        self.player = player or settings.AUDIO_PLAYER or find_player()

    async def load(self, url: str) -> AudioHandle:
        if not self.player:
            raise AudioLoadError("No audio player found (install mpv, ffplay or mpg123, or set AUDIO_PLAYER)")

        try:
            resp = await self.client.get(url)
        except httpx.HTTPError as e:
            raise AudioLoadError(f"Failed to fetch audio: {e}") from e

        if not resp.is_success:
            raise AudioLoadError(f"TTS request failed with status {resp.status_code}")
        content_type = resp.headers.get("content-type", "")
        if not content_type.startswith("audio/"):
            raise AudioLoadError(f"Expected audio, got {content_type or 'no content type'}")

        fd, path = tempfile.mkstemp(prefix="fieldsync-tts-", suffix=".mp3")
        with os.fdopen(fd, "wb") as f:
            f.write(resp.content)
        return AudioHandle(path, self.player)

    async def aclose(self):
        await self.client.aclose()
