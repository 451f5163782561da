"""
Presentation Contracts

Responsibility:
Define ViewModel contracts for pure UI components and build them from
engine state. No rendering, no markup.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from engine.contracts.records import (
    ArtifactDetail, EventDetail, LiteratureDetail, PersonDetail, Record, SiteDetail,
)
from engine.observability import Notice

UNKNOWN = "unknown"

ALT_NAME_LABELS = {
    "courtesy": "Courtesy name",
    "pseudonym": "Art name",
    "posthumous": "Posthumous name",
}

EXTRA_FIELD_LABELS = {
    "main_participants": "Main participants",
    "historical_significance": "Historical significance",
    "location_name": "Location",
    "outcome": "Outcome",
    "start_date": "Start date",
    "end_date": "End date",
    "year_range": "Year range",
    "date_display": "Date",
    "event_type": "Event type",
}


@dataclass(frozen=True)
class DetailField:
    label: str
    value: str
    is_long_text: bool = False


@dataclass(frozen=True)
class DetailOverlayViewModel:
    """ViewModel for the record detail panel opened on NodeFocus."""
    record_id: str
    title: str
    cluster_label: str
    category: Optional[str]
    description: Optional[str]
    fields: Tuple[DetailField, ...]
    tags: Tuple[str, ...]

    def field(self, label: str) -> Optional[DetailField]:
        for item in self.fields:
            if item.label == label:
                return item
        return None


@dataclass(frozen=True)
class NoticeViewModel:
    """Transient toast."""
    text: str
    kind: str
    remaining: float


# =============================================================================
# VALUE FORMATTING
# =============================================================================

def format_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(format_value(v) for v in value if v is not None)
    if isinstance(value, dict):
        if "lat" in value and "lng" in value:
            return f"{value['lat']} N, {value['lng']} E"
        if "latitude" in value and "longitude" in value:
            return f"{value['latitude']} N, {value['longitude']} E"
        return ", ".join(f"{k}: {v}" for k, v in value.items() if v)
    return str(value)


def format_year(year: int) -> str:
    if year < 0:
        return f"{abs(year)} BCE"
    return str(year)


def _date_year(value: Optional[str]) -> str:
    if not value:
        return UNKNOWN
    return value[:4]


# =============================================================================
# PER-CATEGORY FORMATTERS
# =============================================================================

def person_fields(detail: PersonDetail) -> List[DetailField]:
    fields = []
    if detail.alternative_names:
        names = ", ".join(
            f"{ALT_NAME_LABELS[kind]}: {name}" if kind in ALT_NAME_LABELS else name
            for kind, name in detail.alternative_names
        )
        fields.append(DetailField("Alternative names", names))
    if detail.gender:
        fields.append(DetailField("Gender", detail.gender))
    if detail.birth_year is not None or detail.death_year is not None:
        birth = format_year(detail.birth_year) if detail.birth_year is not None else UNKNOWN
        death = format_year(detail.death_year) if detail.death_year is not None else UNKNOWN
        fields.append(DetailField("Life span", f"{birth} - {death}"))
    if detail.birth_place_name:
        fields.append(DetailField("Birthplace", detail.birth_place_name))
    if detail.titles:
        fields.append(DetailField("Titles", ", ".join(detail.titles)))
    if detail.ethnicity:
        fields.append(DetailField("Ethnicity", detail.ethnicity))
    if detail.biography:
        fields.append(DetailField("Biography", detail.biography, is_long_text=True))
    return fields


def event_fields(detail: EventDetail) -> List[DetailField]:
    fields = []
    if detail.title:
        fields.append(DetailField("Title", detail.title))
    if detail.event_type:
        fields.append(DetailField("Event type", detail.event_type))
    if detail.start_date or detail.end_date:
        start, end = _date_year(detail.start_date), _date_year(detail.end_date)
        fields.append(DetailField("Time", start if start == end else f"{start} - {end}"))
    if detail.year_range:
        fields.append(DetailField("Year range", detail.year_range))
    if detail.date_display:
        fields.append(DetailField("Date", detail.date_display))
    if detail.location_name:
        fields.append(DetailField("Location", detail.location_name))
    if detail.outcome:
        fields.append(DetailField("Outcome", detail.outcome, is_long_text=True))
    return fields


def site_fields(detail: SiteDetail) -> List[DetailField]:
    fields = []
    if detail.site_type:
        fields.append(DetailField("Site type", detail.site_type))
    if detail.address_modern:
        fields.append(DetailField("Modern address", detail.address_modern))
    if detail.exist_status:
        fields.append(DetailField("Status", detail.exist_status))
    if detail.construction_year is not None:
        fields.append(DetailField("Construction year", format_year(detail.construction_year)))
    if detail.lat is not None and detail.lng is not None:
        fields.append(DetailField("Coordinates", f"{detail.lat:.4f} N, {detail.lng:.4f} E"))
    return fields


def artifact_fields(detail: ArtifactDetail) -> List[DetailField]:
    pairs = (
        ("Material", detail.material),
        ("Craft", detail.craft),
        ("Discovered at", detail.discovered_at),
        ("Preserved at", detail.preserved_at),
    )
    return [DetailField(label, value) for label, value in pairs if value]


def literature_fields(detail: LiteratureDetail) -> List[DetailField]:
    fields = []
    if detail.title:
        fields.append(DetailField("Title", detail.title))
    if detail.genre:
        fields.append(DetailField("Genre", detail.genre))
    if detail.author_name:
        fields.append(DetailField("Author", detail.author_name))
    if detail.year is not None:
        fields.append(DetailField("Year", format_year(detail.year)))
    if detail.content_summary:
        fields.append(DetailField("Summary", detail.content_summary, is_long_text=True))
    return fields


def extra_fields(extra: Dict[str, Any]) -> List[DetailField]:
    return [
        DetailField(EXTRA_FIELD_LABELS.get(key, key), format_value(value))
        for key, value in extra.items()
        if value is not None and format_value(value)
    ]


FORMATTERS: Dict[type, Callable[[Any], List[DetailField]]] = {
    PersonDetail: person_fields,
    EventDetail: event_fields,
    SiteDetail: site_fields,
    ArtifactDetail: artifact_fields,
    LiteratureDetail: literature_fields,
}


# =============================================================================
# BUILDERS
# =============================================================================

def detail_overlay(record: Record, cluster_label: str) -> DetailOverlayViewModel:
    """Typed detail fields when the record has them, else every non-empty extra field."""
    formatter = FORMATTERS.get(type(record.detail)) if record.detail is not None else None
    if formatter is not None:
        fields = formatter(record.detail)
    else:
        fields = extra_fields(record.extra_fields)

    return DetailOverlayViewModel(
        record_id=record.record_id,
        title=record.display_name,
        cluster_label=cluster_label,
        category=record.category,
        description=record.description,
        fields=tuple(fields),
        tags=record.tags,
    )


def notice_views(notices: Sequence[Notice], now: float) -> Tuple[NoticeViewModel, ...]:
    return tuple(
        NoticeViewModel(text=n.text, kind=n.kind, remaining=max(0.0, n.created_at + n.ttl - now))
        for n in notices
    )
