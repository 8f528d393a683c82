from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # Remote server (records endpoint + TTS proxy)
    API_BASE_URL: str = "http://localhost:5000"
    REQUEST_TIMEOUT_SECONDS: int = 30

    # Local persistence
    DATA_DIR: str = "./data"
    STORAGE_NAMESPACE: str = "fieldsync"
    PERSIST_ENABLED: bool = True

    # Sync Logic
    SYNC_INTERVAL_SECONDS: int = 300  # 0 disables the periodic loop
    SYNC_ON_SAVE: bool = True

    # Voice instructions
    TTS_CACHE_MAX_ENTRIES: int = 0  # 0 = unbounded
    AUDIO_PLAYER: Optional[str] = None

    # Server side
    HTTP_SERVER_ENABLED: bool = False
    HTTP_SERVER_HOST: str = "0.0.0.0"
    HTTP_SERVER_PORT: int = 5000
    SERVER_DATA_DIR: str = "./server-data"
    SARVAM_API_KEY: Optional[str] = None
    SARVAM_TTS_URL: str = "https://api.sarvam.ai/text-to-speech/stream"
    TTS_SPEAKER: str = "tanya"
    TTS_MODEL: str = "bulbul:v3"
    TTS_SAMPLE_RATE: int = 22050
    TTS_PACE: float = 1.0

    # System
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

settings = Settings()
