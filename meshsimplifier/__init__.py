"""
Mesh Simplification using Quadric Error Metrics (QEM)
======================================================

Edge-collapse simplification of multi-submesh triangle meshes that keeps
normals, tangents, colors, UV channels, skinning data and blend shapes
consistent with the reduced topology.

Based on "Surface Simplification Using Quadric Error Metrics"
by Michael Garland and Paul S. Heckbert (SIGGRAPH 1997).
"""

from .exceptions import (MeshSimplifierError, MeshValidationError,
                         SimplificationCancelled, SimplificationOptionsError)
from .options import SimplificationOptions
from .mesh_data import BlendShape, BlendShapeFrame, MeshData
from .qem import QuadricErrorMetrics
from .mesh_simplifier import MeshSimplifier, simplify
from .combiner import combine_meshes
from .lod import generate_lods
from .visualization import MeshVisualizer
from .evaluation import MeshEvaluator

__version__ = "1.0.0"
__author__ = "Mesh Simplification Project"
__all__ = [
    "BlendShape",
    "BlendShapeFrame",
    "MeshData",
    "MeshEvaluator",
    "MeshSimplifier",
    "MeshSimplifierError",
    "MeshValidationError",
    "MeshVisualizer",
    "QuadricErrorMetrics",
    "SimplificationCancelled",
    "SimplificationOptions",
    "SimplificationOptionsError",
    "combine_meshes",
    "generate_lods",
    "simplify",
]
