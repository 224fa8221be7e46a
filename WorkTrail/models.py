from __future__ import annotations

import json
import logging
from datetime import date, datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from WorkTrail.enrichment.repository_paths import extract_domain

log = logging.getLogger(__name__)


class SourceKind(str, Enum):
    CALENDAR = "calendar"
    VERSION_CONTROL = "version_control"
    BROWSING = "browsing"


# Names used by the storage layer for the same kinds
SOURCE_KIND_ALIASES: Dict[str, SourceKind] = {
    "git": SourceKind.VERSION_CONTROL,
    "vcs": SourceKind.VERSION_CONTROL,
    "browser_history": SourceKind.BROWSING,
    "browser": SourceKind.BROWSING,
}


def resolve_source_kind(value: Any) -> Optional[SourceKind]:
    """Map a stored kind name onto a SourceKind, or None when it is not one we know."""
    if isinstance(value, SourceKind):
        return value
    if not isinstance(value, str):
        return None
    name = value.strip().lower()
    try:
        return SourceKind(name)
    except ValueError:
        return SOURCE_KIND_ALIASES.get(name)


def to_utc(value: Any) -> datetime:
    """Accept datetimes, ISO-8601 strings or epoch seconds; naive values are taken as UTC."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        dt = datetime.fromtimestamp(value, tz=timezone.utc)
    elif isinstance(value, str):
        dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    else:
        raise TypeError(f"Unsupported timestamp value: {value!r}")
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt.astimezone(timezone.utc)


# --- Per-kind payloads ---

class CalendarPayload(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    location: Optional[str] = None
    notes: Optional[str] = None
    organizer: Optional[str] = None
    attendees: List[str] = Field(default_factory=list)
    is_all_day: bool = False


class VersionControlPayload(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    repository_id: Optional[str] = None
    repository_name: Optional[str] = None
    activity_type: Optional[str] = Field(None, description="commit, checkout, merge, rebase, pull, ...")
    ref_name: Optional[str] = None
    commit_hash: Optional[str] = None
    repository_path: Optional[str] = Field(None, description="Canonical org/repo path, e.g. 'facebook/react'")
    origin_url: Optional[str] = None

    @field_validator("repository_id", mode="before")
    @classmethod
    def stringify_id(cls, v):
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("activity_type", mode="before")
    @classmethod
    def normalise_activity(cls, v):
        if isinstance(v, str):
            return v.strip().lower() or None
        return v


class BrowsingPayload(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    url: Optional[str] = None
    domain: Optional[str] = None
    page_title: Optional[str] = None
    visit_count: int = 0
    repository_path: Optional[str] = Field(None, description="Canonical org/repo path if this is a code repo visit")


Payload = Union[CalendarPayload, VersionControlPayload, BrowsingPayload]

PAYLOAD_MODELS = {
    SourceKind.CALENDAR: CalendarPayload,
    SourceKind.VERSION_CONTROL: VersionControlPayload,
    SourceKind.BROWSING: BrowsingPayload,
}


def parse_payload(kind: SourceKind, raw: Any) -> Optional[Payload]:
    """
    Parse a stored payload into the typed payload for its kind.

    JSON strings and mappings are accepted. Fields that fail validation are
    dropped and the rest kept; if the payload cannot be read at all, or a
    required field is unusable, None is returned.
    """
    model = PAYLOAD_MODELS[kind]
    if raw is None or isinstance(raw, model):
        return raw
    if isinstance(raw, BaseModel):
        raw = raw.model_dump()
    if isinstance(raw, (str, bytes, bytearray)):
        if not raw:
            return None
        try:
            raw = json.loads(raw)
        except ValueError as e:
            log.debug(f"Unparseable {kind.value} payload ignored: {e}")
            return None
    if not isinstance(raw, dict):
        log.debug(f"{kind.value} payload of type {type(raw).__name__} ignored.")
        return None

    data = dict(raw)
    try:
        return model.model_validate(data)
    except ValidationError as e:
        bad_fields = {err["loc"][0] for err in e.errors() if err["loc"]}

    required = {name for name, field in model.model_fields.items() if field.is_required()}
    if bad_fields & required:
        log.debug(f"{kind.value} payload missing usable {sorted(bad_fields & required)}; ignored.")
        return None
    for name in bad_fields:
        data.pop(name, None)
    log.debug(f"Dropped malformed {kind.value} payload fields: {sorted(bad_fields)}")
    try:
        return model.model_validate(data)
    except ValidationError:
        return None


# --- Raw records ---

class RawActivityRecord(BaseModel):
    """
    An immutable activity fact handed over by the ingestion layer.
    The payload has already been parsed into the type matching source_kind.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    source_kind: SourceKind
    title: str = ""
    start_at: datetime = Field(..., description="UTC start timestamp")
    end_at: datetime = Field(..., description="UTC end timestamp")
    external_link: Optional[str] = None
    payload: Optional[Payload] = None
    project_id: Optional[int] = None

    @model_validator(mode="before")
    @classmethod
    def normalise(cls, data):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        kind = resolve_source_kind(data.get("source_kind"))
        if kind is not None:
            data["source_kind"] = kind
            data["payload"] = parse_payload(kind, data.get("payload"))
        start, end = data.get("start_at"), data.get("end_at")
        if start is not None and end is not None:
            try:
                start, end = to_utc(start), to_utc(end)
            except (TypeError, ValueError, OverflowError, OSError):
                return data
            if end < start:
                log.warning(f"Record {data.get('id')}: start {start} is after end {end}. Swapping.")
                start, end = end, start
            data["start_at"], data["end_at"] = start, end
        return data

    @field_validator("id", mode="before")
    @classmethod
    def stringify_id(cls, v):
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("start_at", "end_at", mode="before")
    @classmethod
    def ensure_utc(cls, v):
        try:
            return to_utc(v)
        except (TypeError, OverflowError, OSError) as e:
            raise ValueError(str(e))

    @property
    def repository_path(self) -> Optional[str]:
        if isinstance(self.payload, (VersionControlPayload, BrowsingPayload)):
            return self.payload.repository_path or None
        return None

    @property
    def url(self) -> Optional[str]:
        if isinstance(self.payload, BrowsingPayload) and self.payload.url:
            return self.payload.url
        return self.external_link

    @property
    def domain(self) -> Optional[str]:
        if isinstance(self.payload, BrowsingPayload) and self.payload.domain:
            return self.payload.domain
        # Missing or unparsed payload: fall back to the top-level link
        return extract_domain(self.url)

    @property
    def activity_type(self) -> Optional[str]:
        if isinstance(self.payload, VersionControlPayload):
            return self.payload.activity_type
        return None

    @property
    def is_all_day(self) -> bool:
        return isinstance(self.payload, CalendarPayload) and self.payload.is_all_day


def member_sort_key(record: RawActivityRecord):
    return (record.start_at, record.id)


# --- Classification ---

class Bucket(str, Enum):
    REPOSITORY = "repository"
    COLLABORATIVE_DOC = "collaborative_doc"
    PROJECT_TOOL = "project_tool"
    RESEARCH = "research"


class ClassificationResult(BaseModel):
    """
    Outcome of a rule match. bucket is None when the rule recognised the
    domain but filtered the page out (root, search, home, folder listing).
    """
    model_config = ConfigDict(frozen=True)

    bucket: Optional[Bucket] = None
    grouping_key: Optional[str] = None
    rule: str
    title: Optional[str] = None

    @property
    def is_grouped(self) -> bool:
        return self.bucket is not None and bool(self.grouping_key)


# --- Aggregates ---

class AggregateOrigin(str, Enum):
    REPOSITORY = "repository" # version-control and browsing records sharing a canonical path
    VERSION_CONTROL = "version_control"
    BROWSING = "browsing"


class AggregateActivity(BaseModel):
    aggregate_id: str
    origin: AggregateOrigin
    bucket: Bucket
    grouping_key: str
    title: str
    day: date
    domain: Optional[str] = None
    start: datetime
    end: datetime
    members: List[RawActivityRecord] = Field(..., min_length=1)
    project_id: Optional[int] = None
    origin_url: Optional[str] = None
    adjusted: bool = False

    @property
    def member_ids(self) -> List[str]:
        return [m.id for m in self.members]


# --- Unified timeline ---

class _TimelineEventBase(BaseModel):
    id: str
    title: str
    start: datetime
    end: datetime
    project_id: Optional[int] = None
    is_all_day: bool = False
    members: List[RawActivityRecord] = Field(..., min_length=1)

    @property
    def member_ids(self) -> List[str]:
        return [m.id for m in self.members]


class CalendarEvent(_TimelineEventBase):
    kind: Literal["calendar"] = "calendar"
    location: Optional[str] = None


class _AggregateEventBase(_TimelineEventBase):
    aggregate_id: str
    grouping_key: str
    domain: Optional[str] = None
    origin_url: Optional[str] = None


class RepositoryEvent(_AggregateEventBase):
    kind: Literal["repository"] = "repository"


class DocumentEvent(_AggregateEventBase):
    kind: Literal["document"] = "document"
    bucket: Bucket = Bucket.COLLABORATIVE_DOC


class ResearchEvent(_AggregateEventBase):
    kind: Literal["research"] = "research"


UnifiedTimelineEvent = Annotated[
    Union[CalendarEvent, RepositoryEvent, DocumentEvent, ResearchEvent],
    Field(discriminator="kind"),
]

TIMELINE_EVENT_TYPES = (CalendarEvent, RepositoryEvent, DocumentEvent, ResearchEvent)


class DayPartition(BaseModel):
    day: date
    all_day: List[UnifiedTimelineEvent] = Field(default_factory=list)
    timed: List[UnifiedTimelineEvent] = Field(default_factory=list)


class LayoutBlock(BaseModel):
    """Geometry for one event in one rendered day column grid."""
    event: UnifiedTimelineEvent
    column: int
    total_columns: int
    top_offset: float
    height: float
    left_percent: float
    width_percent: float

    @property
    def event_id(self) -> str:
        return self.event.id
