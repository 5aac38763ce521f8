from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(value: str | List[str]) -> List[str]:
    if isinstance(value, list):
        return value
    return [v.strip() for v in str(value).split(",") if v and v.strip()]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="LINKSHARE_",
        extra="ignore",
    )

    app_name: str = "LinkShare API"
    database_url: str = "sqlite:///./linkshare.db"
    db_echo: bool = False
    sqlite_busy_timeout_seconds: int = 30

    # values must come from environment/.env to avoid hardcoding secrets
    jwt_secret: str = ""
    jwt_issuer: str = ""
    access_token_exp_minutes: int = 60

    storage_dir: str = "./storage"

    # attempts for the compare-and-commit step of a link consumption
    consume_max_attempts: int = 3

    cors_origins_raw: str = "http://localhost:5173"
    enable_docs: bool = True
    seed_demo_data: bool = False

    @property
    def cors_origins(self) -> List[str]:
        parsed = _split_csv(self.cors_origins_raw)
        return parsed or ["http://localhost:5173"]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
