from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CATEGORIES_PATH = Path(__file__).resolve().parent / "fixtures" / "categories.json"


class WorkerSettings(BaseSettings):
    database_url: str = "sqlite:///./catalog_sync.db"
    redis_url: str = Field(default="redis://localhost:6379/0")
    cache_enabled: bool = True
    cache_ttl_seconds: int = 60 * 60 * 24 * 30

    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    openai_timeout_seconds: float = 45.0
    target_language: str = "Arabic"

    shopify_store_url: str = "https://example.myshopify.com"
    shopify_access_token: str = ""
    shopify_api_version: str = "2024-10"
    shopify_timeout_seconds: float = 30.0
    shopify_page_size: int = 250

    social_enabled: bool = False
    meta_graph_url: str = "https://graph.facebook.com/v19.0"
    meta_access_token: str = ""
    meta_ig_business_id: str = ""
    meta_page_id: str = ""
    sync_to_facebook: bool = False
    meta_timeout_seconds: float = 30.0

    processing_marker_tag: str = "AI-Optimized"
    retry_marker_tag: str = "AI-Pending"
    coalesce_window_seconds: float = 120.0
    reprocess_tagged_on_change: bool = False
    sweep_item_delay_seconds: float = 1.5

    max_title_length: int = Field(default=70, ge=60, le=80)
    categories_path: Path = DEFAULT_CATEGORIES_PATH
    category_min_confidence: int = 5

    log_file: Path | None = Path("logs/actions.log")
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", env_prefix="CATALOG_SYNC_", extra="ignore")


@lru_cache
def get_settings() -> WorkerSettings:
    return WorkerSettings()
