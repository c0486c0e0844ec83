from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Gemini API
    google_api_key: str = ""
    transport_provider: str = "gemini"  # "gemini"
    gemini_model: str = "gemini-flash-latest"
    temperature: float = 0.5
    max_objects: int = 25

    # Image
    max_size: int = 1024  # 요청 전 축소 기준 (px)
    display_max_size: int = 2048  # 시각화 전 축소 기준 (px)

    # Mask decoding
    mask_workers: int = 1


@lru_cache
def get_settings() -> Settings:
    return Settings()
