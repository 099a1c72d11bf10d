"""
Mesh Evaluation Module
======================

Provides quantitative evaluation metrics for mesh simplification:
- Hausdorff distance
- Chamfer distance
- Vertex/Face count statistics
- Boundary preservation metrics
"""

import numpy as np
from typing import Dict, Optional, Tuple
import trimesh
from scipy.spatial import cKDTree

from .mesh_data import MeshData
from .utils import to_trimesh


class MeshEvaluator:
    """
    Evaluation tools for assessing mesh simplification quality.

    Provides both geometric distance metrics and topological statistics.
    """

    def __init__(self, sample_points: int = 10000, seed: Optional[int] = 0):
        """
        Initialize evaluator.

        Args:
            sample_points: Number of points to sample for distance metrics
            seed: Seed for surface sampling, so reports are reproducible
        """
        self.sample_points = sample_points
        self.seed = seed

    def compute_all_metrics(self, original: MeshData,
                            simplified: MeshData) -> Dict[str, float]:
        """
        Compute all available metrics.

        Args:
            original: Original high-resolution mesh
            simplified: Simplified mesh

        Returns:
            Dictionary of metric names to values
        """
        original_tm = to_trimesh(original)
        simplified_tm = to_trimesh(simplified)
        metrics = {}

        # Count statistics
        metrics['original_faces'] = original.triangle_count
        metrics['simplified_faces'] = simplified.triangle_count
        metrics['original_vertices'] = original.vertex_count
        metrics['simplified_vertices'] = simplified.vertex_count
        metrics['face_reduction_ratio'] = simplified.triangle_count / original.triangle_count
        metrics['vertex_reduction_ratio'] = simplified.vertex_count / original.vertex_count

        # Geometric metrics
        points1 = self._sample_surface(original_tm)
        points2 = self._sample_surface(simplified_tm)
        forward, backward = self._nearest_distances(points1, points2)

        metrics['hausdorff_forward'] = float(np.max(forward))
        metrics['hausdorff_backward'] = float(np.max(backward))
        metrics['hausdorff_distance'] = max(metrics['hausdorff_forward'], metrics['hausdorff_backward'])
        metrics['chamfer_distance'] = float(np.mean(forward ** 2) + np.mean(backward ** 2))
        metrics['mean_distance'] = float(np.mean(forward))

        # Surface area
        metrics['simplified_area'] = float(simplified_tm.area)
        metrics['original_area'] = float(original_tm.area)
        metrics['area_error'] = abs(metrics['simplified_area'] - metrics['original_area']) / \
                                max(metrics['original_area'], 1e-10)

        # Boundary metrics
        boundary_metrics = self.boundary_preservation_metrics(original, simplified)
        metrics.update(boundary_metrics)

        return metrics

    def _sample_surface(self, mesh: trimesh.Trimesh) -> np.ndarray:
        """Sample points on the surface, or use the vertices of a zero-area mesh."""
        if mesh.area <= 0:
            return np.asarray(mesh.vertices)
        points, _ = trimesh.sample.sample_surface(mesh, self.sample_points, seed=self.seed)
        return points

    def _nearest_distances(self, points1: np.ndarray,
                           points2: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Nearest-neighbor distances from points1 to points2 and back."""
        tree1 = cKDTree(points1)
        tree2 = cKDTree(points2)
        forward, _ = tree2.query(points1)
        backward, _ = tree1.query(points2)
        return forward, backward

    def hausdorff_distance(self, mesh1: MeshData,
                           mesh2: MeshData) -> Tuple[float, float, float]:
        """
        Compute symmetric Hausdorff distance between two meshes.

        Uses point sampling on the mesh surfaces.

        Args:
            mesh1: First mesh
            mesh2: Second mesh

        Returns:
            Tuple of (symmetric_hausdorff, forward, backward) distances
        """
        forward, backward = self._nearest_distances(
            self._sample_surface(to_trimesh(mesh1)), self._sample_surface(to_trimesh(mesh2)))
        hausdorff_forward = float(np.max(forward))
        hausdorff_backward = float(np.max(backward))
        return max(hausdorff_forward, hausdorff_backward), hausdorff_forward, hausdorff_backward

    def chamfer_distance(self, mesh1: MeshData, mesh2: MeshData) -> float:
        """
        Compute symmetric Chamfer distance between two meshes.

        Chamfer distance is the sum of the mean squared nearest-neighbor
        distances in both directions.

        Args:
            mesh1: First mesh
            mesh2: Second mesh

        Returns:
            Chamfer distance value
        """
        forward, backward = self._nearest_distances(
            self._sample_surface(to_trimesh(mesh1)), self._sample_surface(to_trimesh(mesh2)))
        return float(np.mean(forward ** 2) + np.mean(backward ** 2))

    def boundary_preservation_metrics(self, original: MeshData,
                                      simplified: MeshData) -> Dict[str, float]:
        """
        Compute metrics for boundary preservation.

        Vertices are merged by position first so that UV seams do not count
        as boundaries.

        Args:
            original: Original mesh
            simplified: Simplified mesh

        Returns:
            Dictionary of boundary metrics
        """
        metrics = {}

        orig_tm = self._merged(original)
        simp_tm = self._merged(simplified)
        orig_boundaries = self._get_boundary_edges(orig_tm)
        simp_boundaries = self._get_boundary_edges(simp_tm)

        metrics['original_boundary_edges'] = len(orig_boundaries)
        metrics['simplified_boundary_edges'] = len(simp_boundaries)

        # Compute total boundary length
        orig_length = self._compute_boundary_length(orig_tm, orig_boundaries)
        simp_length = self._compute_boundary_length(simp_tm, simp_boundaries)

        metrics['original_boundary_length'] = orig_length
        metrics['simplified_boundary_length'] = simp_length

        if orig_length > 0:
            metrics['boundary_length_change'] = abs(simp_length - orig_length) / orig_length
        else:
            metrics['boundary_length_change'] = 0.0

        # Check if meshes are closed
        metrics['original_is_watertight'] = int(orig_tm.is_watertight)
        metrics['simplified_is_watertight'] = int(simp_tm.is_watertight)

        return metrics

    def _merged(self, mesh: MeshData) -> trimesh.Trimesh:
        tm = to_trimesh(mesh)
        tm.merge_vertices(merge_tex=True, merge_norm=True)
        return tm

    def _get_boundary_edges(self, mesh: trimesh.Trimesh) -> np.ndarray:
        """Find boundary edges of a mesh."""
        edges = mesh.edges_sorted
        return edges[trimesh.grouping.group_rows(edges, require_count=1)]

    def _compute_boundary_length(self, mesh: trimesh.Trimesh,
                                 boundary_edges: np.ndarray) -> float:
        """Compute total length of boundary edges."""
        if len(boundary_edges) == 0:
            return 0.0
        v1 = mesh.vertices[boundary_edges[:, 0]]
        v2 = mesh.vertices[boundary_edges[:, 1]]
        return float(np.linalg.norm(v2 - v1, axis=1).sum())

    def generate_report(self, metrics: Dict[str, float],
                        method_name: str = "QEM") -> str:
        """
        Generate a human-readable evaluation report.

        Args:
            metrics: Dictionary of metric values
            method_name: Name of the simplification method

        Returns:
            Formatted report string
        """
        lines = [
            "=" * 60,
            f"Mesh Simplification Report - {method_name}",
            "=" * 60,
            "",
            "MESH STATISTICS",
            "-" * 40,
            f"  Original:    {metrics.get('original_faces', 'N/A'):>8} faces, "
            f"{metrics.get('original_vertices', 'N/A'):>8} vertices",
            f"  Simplified:  {metrics.get('simplified_faces', 'N/A'):>8} faces, "
            f"{metrics.get('simplified_vertices', 'N/A'):>8} vertices",
            f"  Reduction:   {metrics.get('face_reduction_ratio', 0)*100:>7.2f}% of original faces",
            "",
            "GEOMETRIC ACCURACY",
            "-" * 40,
            f"  Hausdorff Distance:    {metrics.get('hausdorff_distance', np.nan):>12.6f}",
            f"    Forward:             {metrics.get('hausdorff_forward', np.nan):>12.6f}",
            f"    Backward:            {metrics.get('hausdorff_backward', np.nan):>12.6f}",
            f"  Chamfer Distance:      {metrics.get('chamfer_distance', np.nan):>12.6f}",
            f"  Area Error:            {metrics.get('area_error', 0)*100:>11.4f}%",
            "",
            "BOUNDARY PRESERVATION",
            "-" * 40,
            f"  Original Boundaries:   {metrics.get('original_boundary_edges', 0):>8} edges",
            f"  Simplified Boundaries: {metrics.get('simplified_boundary_edges', 0):>8} edges",
            f"  Length Change:         {metrics.get('boundary_length_change', 0)*100:>11.4f}%",
            "",
            "TOPOLOGY",
            "-" * 40,
            f"  Original Watertight:   {'Yes' if metrics.get('original_is_watertight') else 'No'}",
            f"  Simplified Watertight: {'Yes' if metrics.get('simplified_is_watertight') else 'No'}",
            "",
            "=" * 60,
        ]

        if 'runtime' in metrics:
            lines.insert(-1, f"  Runtime:               {metrics['runtime']:>11.4f} seconds")

        return "\n".join(lines)

    def print_report(self, metrics: Dict[str, float], method_name: str = "QEM"):
        """Print the evaluation report to console."""
        print(self.generate_report(metrics, method_name))
