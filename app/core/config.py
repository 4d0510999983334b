from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Catalog Sync"
    env: str = "dev"
    admin_token: str = "dev-admin-token"
    shopify_webhook_secret: str = ""
    logs_tail_max_lines: int = 2000

    model_config = SettingsConfigDict(env_file=".env", env_prefix="CATALOG_SYNC_", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
