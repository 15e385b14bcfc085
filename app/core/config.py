from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    ENVIRONMENT: str = "development"  # "development" or "production"

    GOOGLE_MAPS_API_KEY: Optional[str] = None

    # Dispatch tuning
    DEFAULT_WORK_RADIUS_MILES: float = 10.0
    TRASH_QUEUE_UNIT_MINUTES: int = 15
    CLEANING_QUEUE_UNIT_MINUTES: int = 60

    # Synthetic coordinates used when geocoding yields nothing
    FALLBACK_LATITUDE: float = 37.789
    FALLBACK_LONGITUDE: float = -122.43
    FALLBACK_JITTER: float = 0.005

    @property
    def is_production(self):
        return self.ENVIRONMENT == "production"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

settings = Settings()
