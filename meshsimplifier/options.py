"""
Simplification Options
======================

Configuration for a simplification run.
"""

import sys
from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from .exceptions import SimplificationOptionsError

# Smallest positive double: with smart link enabled, only exactly coincident
# border vertices are linked by default.
DEFAULT_VERTEX_LINK_DISTANCE = sys.float_info.min * sys.float_info.epsilon


@dataclass
class SimplificationOptions:
    """
    Options controlling the quadric edge-collapse simplification.

    Attributes:
        preserve_border_edges: Never collapse vertices on an open border
        preserve_uv_seam_edges: Never collapse vertices on a UV seam
        preserve_uv_foldover_edges: Never collapse vertices on a UV foldover
        preserve_surface_curvature: Add a discrete curvature term to the
            collapse error. Better results on curved surfaces, slower.
        enable_smart_link: Link coincident border vertices before simplifying
            so that the mesh can be simplified across seams
        vertex_link_distance: Maximum distance between two vertices for
            them to be linked
        max_iteration_count: Maximum number of threshold passes
        aggressiveness: Exponent of the per-pass threshold schedule. Higher
            means slower growth, better quality and more passes.
        boundary_weight: Weight of the boundary constraint quadrics that
            penalize moving border vertices off the border (0 disables)
        normal_flip_threshold: Minimum cosine between a triangle normal
            before and after a collapse for the collapse to be accepted
        max_error: Optional absolute error bound. Simplification stops as
            soon as the cheapest candidate exceeds it.
        manual_uv_component_count: Force all UV channels to
            ``uv_component_count`` components instead of keeping their
            declared dimensionality
        uv_component_count: Component count used with manual UV handling
        locked_vertices: Vertex indices that are never collapsed
        locked_submeshes: Submesh indices whose vertices are never collapsed
    """
    preserve_border_edges: bool = False
    preserve_uv_seam_edges: bool = False
    preserve_uv_foldover_edges: bool = False
    preserve_surface_curvature: bool = False
    enable_smart_link: bool = True
    vertex_link_distance: float = DEFAULT_VERTEX_LINK_DISTANCE
    max_iteration_count: int = 100
    aggressiveness: float = 7.0
    boundary_weight: float = 10.0
    normal_flip_threshold: float = 0.2
    max_error: Optional[float] = None
    manual_uv_component_count: bool = False
    uv_component_count: int = 2
    locked_vertices: FrozenSet[int] = field(default_factory=frozenset)
    locked_submeshes: FrozenSet[int] = field(default_factory=frozenset)

    def __post_init__(self):
        self.locked_vertices = frozenset(int(i) for i in self.locked_vertices)
        self.locked_submeshes = frozenset(int(i) for i in self.locked_submeshes)

    def validate(self):
        """
        Check every option.

        Raises:
            SimplificationOptionsError: naming the first invalid option
        """
        if self.enable_smart_link and self.vertex_link_distance < 0.0:
            raise SimplificationOptionsError(
                "vertex_link_distance",
                "The vertex link distance cannot be negative when smart linking is enabled.")
        if self.max_iteration_count <= 0:
            raise SimplificationOptionsError(
                "max_iteration_count",
                "The max iteration count cannot be zero or negative, "
                "since there would be nothing for the algorithm to do.")
        if self.aggressiveness <= 0.0:
            raise SimplificationOptionsError(
                "aggressiveness",
                "The aggressiveness has to be above zero to make sense. Recommended is around 7.")
        if self.boundary_weight < 0.0:
            raise SimplificationOptionsError(
                "boundary_weight", "The boundary weight cannot be negative.")
        if not -1.0 <= self.normal_flip_threshold <= 1.0:
            raise SimplificationOptionsError(
                "normal_flip_threshold",
                "The normal flip threshold is a cosine and must lie within [-1, 1].")
        if self.max_error is not None and self.max_error < 0.0:
            raise SimplificationOptionsError(
                "max_error", "The max error cannot be negative.")
        if self.manual_uv_component_count and not 0 <= self.uv_component_count <= 4:
            raise SimplificationOptionsError(
                "uv_component_count",
                "The UV component count cannot be below 0 or above 4 "
                "when manual UV component count is enabled.")
        if any(i < 0 for i in self.locked_vertices):
            raise SimplificationOptionsError(
                "locked_vertices", "Locked vertex indices cannot be negative.")
        if any(i < 0 for i in self.locked_submeshes):
            raise SimplificationOptionsError(
                "locked_submeshes", "Locked submesh indices cannot be negative.")
