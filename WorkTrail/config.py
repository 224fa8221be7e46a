import logging
from datetime import timezone, tzinfo

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from pydantic_settings import BaseSettings, SettingsConfigDict

from WorkTrail.enrichment.heuristics import (
    COMMIT_LEAD_MINUTES,
    DOCUMENT_LEAD_MINUTES,
    MIN_SPAN_MINUTES,
    TRAILING_MINUTES,
    TimePolicy,
)
from WorkTrail.timeline.layout import HOUR_HEIGHT, MIN_BLOCK_HEIGHT

log = logging.getLogger(__name__)


class Settings(BaseSettings):
    # --- Calendar days ---
    local_tz: str = "UTC" # Local midnight boundaries for grouping and day views

    # --- Time heuristics (minutes) ---
    commit_lead_minutes: int = COMMIT_LEAD_MINUTES # Work assumed before a commit
    document_lead_minutes: int = DOCUMENT_LEAD_MINUTES # Reading before a doc edit
    trailing_minutes: int = TRAILING_MINUTES # Engagement after the last event
    min_span_minutes: int = MIN_SPAN_MINUTES # Floor for any aggregate span

    # --- Day layout ---
    hour_height: float = HOUR_HEIGHT # Pixels per hour in the day grid
    min_block_height: float = MIN_BLOCK_HEIGHT

    # --- Ingestion ---
    title_truncate_limit: int = 80 # URL-derived titles are cut to this length

    model_config = SettingsConfigDict(
        env_prefix="WORKTRAIL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra='ignore'
    )

    def get_local_timezone(self) -> tzinfo:
        try:
            return ZoneInfo(self.local_tz)
        except (ZoneInfoNotFoundError, ValueError) as e:
            log.warning(f"Timezone '{self.local_tz}' not usable ({e}). Defaulting to UTC.")
            return timezone.utc

    def time_policy(self) -> TimePolicy:
        return TimePolicy.from_minutes(
            commit_lead=self.commit_lead_minutes,
            document_lead=self.document_lead_minutes,
            trailing=self.trailing_minutes,
            min_span=self.min_span_minutes,
        )
