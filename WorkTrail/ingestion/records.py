"""WorkTrail – stored rows to RawActivityRecord (payloads parsed once, here)"""

import logging
from typing import Any, Iterable, List, Mapping, Optional

from pydantic import ValidationError

from WorkTrail.config import Settings
from WorkTrail.enrichment.repository_paths import (
    extract_domain,
    extract_repository_path_from_url,
    is_tracked_repository,
    parse_repository_path,
)
from WorkTrail.models import (
    BrowsingPayload,
    RawActivityRecord,
    SourceKind,
    VersionControlPayload,
    parse_payload,
    resolve_source_kind,
)

# ────────────────────────────────────────────────────────────────────────────
# Logging
# ────────────────────────────────────────────────────────────────────────────
log = logging.getLogger(__name__)
log.addHandler(logging.NullHandler())

# ────────────────────────────────────────────────────────────────────────────
# Row shape
# ────────────────────────────────────────────────────────────────────────────
# Storage column names first, record field names second
FIELD_ALIASES = {
    "source_kind": ("event_type", "source_kind"),
    "start_at": ("start_date", "start_at"),
    "end_at": ("end_date", "end_at"),
    "payload": ("type_specific_data", "payload"),
}
ELLIPSIS_SUFFIX = "..."


def _pick(row: Mapping[str, Any], field: str) -> Any:
    for name in FIELD_ALIASES.get(field, (field,)):
        if row.get(name) is not None:
            return row[name]
    return None


def fallback_title(url: Optional[str], limit: int = 80) -> str:
    if not url:
        return ""
    if len(url) <= limit:
        return url
    return url[:limit] + ELLIPSIS_SUFFIX


# ────────────────────────────────────────────────────────────────────────────
# Loader
# ────────────────────────────────────────────────────────────────────────────
class RecordLoader:
    """
    Converts storage rows into RawActivityRecord objects.

    Bad input degrades instead of raising: unknown kinds and rows without a
    usable id or timestamps are omitted, unreadable payloads become None and
    malformed payload fields are dropped.
    """

    def __init__(self, settings: Settings, trusted_orgs: Iterable[str] = (), known_repository_paths: Iterable[str] = ()):
        self.settings = settings
        self.trusted_orgs = tuple(trusted_orgs or ())
        self.known_repository_paths = frozenset(known_repository_paths or ())

    def _version_control_payload(self, payload: VersionControlPayload) -> VersionControlPayload:
        if payload.repository_path:
            return payload
        path = parse_repository_path(payload.origin_url)
        if not path:
            return payload
        return payload.model_copy(update={"repository_path": path})

    def _browsing_payload(self, payload: BrowsingPayload, external_link: Optional[str]) -> BrowsingPayload:
        url = payload.url or external_link
        update = {}
        if not payload.domain:
            domain = extract_domain(url)
            if domain:
                update["domain"] = domain
        if not payload.repository_path:
            path = extract_repository_path_from_url(url)
            # Untracked repositories stay pathless so they do not fragment the timeline
            if path and is_tracked_repository(path, self.trusted_orgs, self.known_repository_paths):
                update["repository_path"] = path
        return payload.model_copy(update=update) if update else payload

    def load_row(self, row: Mapping[str, Any]) -> Optional[RawActivityRecord]:
        row_id = row.get("id")
        kind = resolve_source_kind(_pick(row, "source_kind"))
        if kind is None:
            log.warning(f"Row {row_id}: unknown source kind {_pick(row, 'source_kind')!r}. Omitted.")
            return None

        payload = parse_payload(kind, _pick(row, "payload"))
        external_link = row.get("external_link") or None
        if isinstance(payload, VersionControlPayload):
            payload = self._version_control_payload(payload)
        elif isinstance(payload, BrowsingPayload):
            payload = self._browsing_payload(payload, external_link)

        title = row.get("title")
        if not isinstance(title, str) or not title.strip():
            url = payload.url if isinstance(payload, BrowsingPayload) and payload.url else external_link
            title = fallback_title(url, self.settings.title_truncate_limit)

        project_id = row.get("project_id")
        if isinstance(project_id, bool) or not isinstance(project_id, int):
            project_id = None

        try:
            return RawActivityRecord(
                id=row_id,
                source_kind=kind,
                title=title,
                start_at=_pick(row, "start_at"),
                end_at=_pick(row, "end_at"),
                external_link=external_link,
                payload=payload,
                project_id=project_id,
            )
        except ValidationError as e:
            fields = sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]})
            log.warning(f"Row {row_id}: unusable {fields}. Omitted.")
            return None

    def load(self, rows: Iterable[Mapping[str, Any]]) -> List[RawActivityRecord]:
        records, omitted = [], 0
        for row in rows:
            record = self.load_row(row)
            if record is None:
                omitted += 1
                continue
            records.append(record)
        log.info(f"Loaded {len(records)} records ({omitted} omitted).")
        return records


def load_records(
    rows: Iterable[Mapping[str, Any]],
    settings: Optional[Settings] = None,
    trusted_orgs: Iterable[str] = (),
    known_repository_paths: Iterable[str] = (),
) -> List[RawActivityRecord]:
    return RecordLoader(settings or Settings(), trusted_orgs, known_repository_paths).load(rows)
