import logging
from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Video understanding service
    memories_api_key: str | None = Field(None, alias="MEMORIES_API_KEY")
    memories_base_url: str = Field(
        "https://api.memories.ai/serve/api/v1", alias="MEMORIES_BASE_URL"
    )
    memories_quality: int = Field(720, alias="MEMORIES_QUALITY")
    memories_unique_id: str = Field("default", alias="MEMORIES_UNIQUE_ID")
    video_request_timeout_seconds: float = Field(90.0, alias="VIDEO_REQUEST_TIMEOUT_SECONDS")
    video_status_timeout_seconds: float = Field(60.0, alias="VIDEO_STATUS_TIMEOUT_SECONDS")
    video_poll_interval_seconds: float = Field(10.0, alias="VIDEO_POLL_INTERVAL_SECONDS")
    video_poll_retry_interval_seconds: float = Field(
        5.0, alias="VIDEO_POLL_RETRY_INTERVAL_SECONDS"
    )
    video_poll_ceiling_seconds: float = Field(600.0, alias="VIDEO_POLL_CEILING_SECONDS")

    # Platform metadata
    youtube_api_key: str | None = Field(None, alias="YOUTUBE_API_KEY")
    youtube_api_base_url: str = Field(
        "https://www.googleapis.com/youtube/v3", alias="YOUTUBE_API_BASE_URL"
    )
    metadata_timeout_seconds: float = Field(10.0, alias="METADATA_TIMEOUT_SECONDS")

    # Preflight gate
    preflight_min_duration_seconds: int = Field(10, alias="PREFLIGHT_MIN_DURATION_SECONDS")
    preflight_max_duration_seconds: int = Field(1200, alias="PREFLIGHT_MAX_DURATION_SECONDS")
    preflight_warning_duration_seconds: int = Field(
        600, alias="PREFLIGHT_WARNING_DURATION_SECONDS"
    )
    preflight_moderate_duration_seconds: int = Field(
        300, alias="PREFLIGHT_MODERATE_DURATION_SECONDS"
    )
    preflight_food_category_ids: List[str] = Field(
        default_factory=lambda: ["26", "27"], alias="PREFLIGHT_FOOD_CATEGORY_IDS"
    )
    preflight_negative_category_ids: List[str] = Field(
        default_factory=lambda: ["17", "20"], alias="PREFLIGHT_NEGATIVE_CATEGORY_IDS"
    )
    preflight_category_weight: int = Field(1, alias="PREFLIGHT_CATEGORY_WEIGHT")
    preflight_caption_weight: int = Field(1, alias="PREFLIGHT_CAPTION_WEIGHT")
    preflight_topic_weight: int = Field(1, alias="PREFLIGHT_TOPIC_WEIGHT")
    preflight_topic_cap: int = Field(3, alias="PREFLIGHT_TOPIC_CAP")
    preflight_pattern_cap: int = Field(6, alias="PREFLIGHT_PATTERN_CAP")
    preflight_pass_threshold: int = Field(4, alias="PREFLIGHT_PASS_THRESHOLD")
    preflight_borderline_threshold: int = Field(1, alias="PREFLIGHT_BORDERLINE_THRESHOLD")
    # TikTok/Instagram carry no platform metadata, only URL hints
    preflight_short_form_pass_threshold: int = Field(
        0, alias="PREFLIGHT_SHORT_FORM_PASS_THRESHOLD"
    )
    preflight_short_form_borderline_threshold: int = Field(
        -1, alias="PREFLIGHT_SHORT_FORM_BORDERLINE_THRESHOLD"
    )
    preflight_transcript_sniff_enabled: bool = Field(
        False, alias="PREFLIGHT_TRANSCRIPT_SNIFF_ENABLED"
    )
    preflight_transcript_timeout_seconds: float = Field(
        2.0, alias="PREFLIGHT_TRANSCRIPT_TIMEOUT_SECONDS"
    )
    preflight_transcript_bucket_bonus: int = Field(1, alias="PREFLIGHT_TRANSCRIPT_BUCKET_BONUS")
    preflight_tiny_classifier_enabled: bool = Field(
        True, alias="PREFLIGHT_TINY_CLASSIFIER_ENABLED"
    )
    preflight_tiny_classifier_timeout_seconds: float = Field(
        1.0, alias="PREFLIGHT_TINY_CLASSIFIER_TIMEOUT_SECONDS"
    )
    preflight_tiny_classifier_weight: int = Field(2, alias="PREFLIGHT_TINY_CLASSIFIER_WEIGHT")

    # Web fetch
    scraper_user_agent: str = Field(
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 13_6) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0 Safari/537.36",
        alias="SCRAPER_USER_AGENT",
    )
    scraper_cookies: str | None = Field(None, alias="SCRAPER_COOKIES")
    web_fetch_timeout_seconds: float = Field(15.0, alias="WEB_FETCH_TIMEOUT_SECONDS")
    web_fetch_connect_timeout_seconds: float = Field(
        5.0, alias="WEB_FETCH_CONNECT_TIMEOUT_SECONDS"
    )

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True
    )


logger = logging.getLogger(__name__)


@lru_cache
def get_settings() -> Settings:
    try:
        settings = Settings()
    except PermissionError:
        logger.warning("Unable to read .env; continuing with environment variables only")
        settings = Settings(_env_file=None)
    return settings
