# config.py
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # MongoDB
    MONGODB_URI: str = "mongodb://localhost:27017"
    DB_NAME: str = "cortex"
    MONGODB_TIMEOUT_MS: int = 5000

    # App
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    HOST: str = "0.0.0.0"
    PORT: int = 5001
    CORS_ORIGINS: List[str] = ["http://localhost:5173"]
    SEED_DEFAULT_POLICIES: bool = True

    # Behavioral baselines
    VOLUME_WINDOW_SECONDS: int = 60
    VOLUME_BOOTSTRAP_THRESHOLD: int = 20
    VOLUME_EMA_WEIGHT: float = 0.05
    VOLUME_THRESHOLD_MULTIPLIER: int = 4

    # Incident correlation
    CORRELATION_WINDOW: int = 5  # minutes

settings = Settings()
