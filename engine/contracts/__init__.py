"""
Engine Contracts

Immutable data shared by every engine layer. Nothing in here has behavior
beyond construction, parsing and small value helpers.
"""

from .base import (
    ErrorCode, Error, Result, IndexNotReadyError,
    canonical_id, optional_canonical_id, GroupingMode, UNCLASSIFIED,
)
from .records import (
    Record, PersonDetail, EventDetail, SiteDetail, ArtifactDetail,
    LiteratureDetail, CategoryDetail, DETAIL_TYPES,
)
from .layout import (
    Vec3, Color, as_vec3, NodeAppearance, Cluster, VisualNode, DustField,
)

__all__ = [
    'ErrorCode', 'Error', 'Result', 'IndexNotReadyError',
    'canonical_id', 'optional_canonical_id', 'GroupingMode', 'UNCLASSIFIED',
    'Record', 'PersonDetail', 'EventDetail', 'SiteDetail', 'ArtifactDetail',
    'LiteratureDetail', 'CategoryDetail', 'DETAIL_TYPES',
    'Vec3', 'Color', 'as_vec3', 'NodeAppearance', 'Cluster', 'VisualNode', 'DustField',
]
