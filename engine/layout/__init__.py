"""
Layout Layer

RESPONSIBILITY: records -> clusters -> placed VisualNodes
All computation here is synchronous CPU work executed within one tick.
"""

from .classifier import (
    EntityClassifier, Classification, GroupAssignment, group_label, era_label, category_label,
)
from .sizer import ClusterSizer, ClusterSize
from .placement import PlacementSolver, PlacementInput, PlacementResult, fibonacci_direction
from .points import PointPlacer, random_distribution
from .builder import LayoutBuilder, Layout, cluster_color, brighten, hex_color

__all__ = [
    'EntityClassifier', 'Classification', 'GroupAssignment',
    'group_label', 'era_label', 'category_label',
    'ClusterSizer', 'ClusterSize',
    'PlacementSolver', 'PlacementInput', 'PlacementResult', 'fibonacci_direction',
    'PointPlacer', 'random_distribution',
    'LayoutBuilder', 'Layout', 'cluster_color', 'brighten', 'hex_color',
]
