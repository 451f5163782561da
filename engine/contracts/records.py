"""
Record Contracts

Immutable input entities supplied by the data-fetch collaborator.
The engine only reads them.

TYPED DETAIL:
=============
Free-form per-record fields are split into a typed detail record per
category plus an explicit extra-fields mapping (string -> value).
Nothing is kept in an untyped bag.
"""

from __future__ import annotations
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from .base import canonical_id, optional_canonical_id


# =============================================================================
# CATEGORY DETAIL RECORDS
# =============================================================================

@dataclass(frozen=True)
class PersonDetail:
    alternative_names: Tuple[Tuple[str, str], ...] = ()
    gender: Optional[str] = None
    birth_year: Optional[int] = None
    death_year: Optional[int] = None
    birth_place_name: Optional[str] = None
    titles: Tuple[str, ...] = ()
    ethnicity: Optional[str] = None
    biography: Optional[str] = None


@dataclass(frozen=True)
class EventDetail:
    title: Optional[str] = None
    event_type: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    year_range: Optional[str] = None
    date_display: Optional[str] = None
    location_name: Optional[str] = None
    outcome: Optional[str] = None


@dataclass(frozen=True)
class SiteDetail:
    site_type: Optional[str] = None
    address_modern: Optional[str] = None
    exist_status: Optional[str] = None
    construction_year: Optional[int] = None
    lat: Optional[float] = None
    lng: Optional[float] = None


@dataclass(frozen=True)
class ArtifactDetail:
    material: Optional[str] = None
    craft: Optional[str] = None
    discovered_at: Optional[str] = None
    preserved_at: Optional[str] = None


@dataclass(frozen=True)
class LiteratureDetail:
    title: Optional[str] = None
    genre: Optional[str] = None
    author_name: Optional[str] = None
    year: Optional[int] = None
    content_summary: Optional[str] = None


CategoryDetail = Union[PersonDetail, EventDetail, SiteDetail, ArtifactDetail, LiteratureDetail]

DETAIL_TYPES: Dict[str, type] = {
    "person": PersonDetail,
    "event": EventDetail,
    "site": SiteDetail,
    "artifact": ArtifactDetail,
    "literature": LiteratureDetail,
}

_INT_FIELDS = {"birth_year", "death_year", "construction_year", "year"}
_FLOAT_FIELDS = {"lat", "lng"}


# =============================================================================
# RECORD
# =============================================================================

@dataclass(frozen=True)
class Record:
    """
    Immutable input entity.

    A record without a display name is "uninformative": it is still
    placed, but carries no label of its own.
    """
    record_id: str
    name: Optional[str]
    category: Optional[str]
    era: Optional[str]
    external_graph_id: Optional[str] = None
    description: Optional[str] = None
    tags: Tuple[str, ...] = ()
    detail: Optional[CategoryDetail] = None
    extra: Tuple[Tuple[str, Any], ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, 'record_id', canonical_id(self.record_id))
        object.__setattr__(
            self, 'external_graph_id', optional_canonical_id(self.external_graph_id)
        )

    @property
    def is_uninformative(self) -> bool:
        return self.name is None or not self.name.strip()

    @property
    def display_name(self) -> str:
        if self.is_uninformative:
            return f"Unnamed record {self.record_id}"
        return self.name.strip()

    @property
    def extra_fields(self) -> Dict[str, Any]:
        return dict(self.extra)

    # -------------------------------------------------------------------------
    # PAYLOAD PARSING
    # -------------------------------------------------------------------------

    @staticmethod
    def from_payload(payload: Mapping[str, Any]) -> Record:
        """
        Build a Record from a data-API payload.

        Accepts both the engine field names and the data API's names
        (type/dynasty/dynasty_name/kg_node_id/desc). Keys the engine does
        not model land in `extra`.
        """
        consumed = {
            "id", "record_id", "name", "type", "category", "dynasty",
            "dynasty_name", "era", "kg_node_id", "external_graph_id",
            "description", "desc", "tags", "detail",
        }

        category = _first_text(payload, "category", "type")
        category = category.lower() if category else None

        raw_detail = payload.get("detail") or {}
        detail, detail_extra = _parse_detail(category, raw_detail)

        extra = {k: v for k, v in payload.items() if k not in consumed and v is not None}
        extra.update(detail_extra)

        tags = payload.get("tags") or ()
        if isinstance(tags, str):
            tags = tuple(t.strip() for t in tags.split(",") if t.strip())

        return Record(
            record_id=payload.get("id", payload.get("record_id")),
            name=_first_text(payload, "name"),
            category=category,
            era=_first_text(payload, "era", "dynasty", "dynasty_name"),
            external_graph_id=payload.get("external_graph_id", payload.get("kg_node_id")),
            description=_first_text(payload, "description", "desc"),
            tags=tuple(str(t) for t in tags),
            detail=detail,
            extra=tuple(sorted(extra.items())),
        )


def _first_text(payload: Mapping[str, Any], *keys: str) -> Optional[str]:
    for key in keys:
        value = payload.get(key)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return None


def _parse_detail(
    category: Optional[str],
    raw: Mapping[str, Any]
) -> Tuple[Optional[CategoryDetail], Dict[str, Any]]:
    """Split a raw detail mapping into a typed detail and leftover fields."""
    if not isinstance(raw, Mapping) or not raw:
        return None, {}

    detail_type = DETAIL_TYPES.get(category or "")
    if detail_type is None:
        return None, {k: v for k, v in raw.items() if v is not None}

    known = {f.name for f in fields(detail_type)}
    kwargs: Dict[str, Any] = {}
    leftover: Dict[str, Any] = {}

    for key, value in raw.items():
        if value is None:
            continue
        if key not in known:
            leftover[key] = value
            continue
        kwargs[key] = _coerce_detail_value(key, value)

    return detail_type(**kwargs), leftover


def _coerce_detail_value(key: str, value: Any) -> Any:
    if key == "alternative_names":
        if isinstance(value, Mapping):
            return tuple((str(k), str(v)) for k, v in value.items() if v)
        if isinstance(value, (list, tuple)):
            return tuple(("alias", str(v)) for v in value if v)
        return (("alias", str(value)),)
    if key == "titles":
        if isinstance(value, (list, tuple)):
            return tuple(str(v) for v in value)
        return (str(value),)
    if key in _INT_FIELDS:
        try:
            return int(value)
        except (TypeError, ValueError):
            return None
    if key in _FLOAT_FIELDS:
        try:
            return float(value)
        except (TypeError, ValueError):
            return None
    return str(value)
