"""
Mesh Visualization Module
=========================

Provides matplotlib figures for comparing meshes before and after
simplification.
"""

import numpy as np
import matplotlib.pyplot as plt
from mpl_toolkits.mplot3d.art3d import Poly3DCollection
from typing import List, Optional, Tuple

from .mesh_data import MeshData
from .qem import normalize_rows


class MeshVisualizer:
    """
    Visualization tools for mesh simplification results.

    Provides:
    - Side-by-side mesh comparison
    - Wireframe and shaded views
    - Multi-resolution comparison
    - Statistics over several target ratios
    """

    def __init__(self, figsize: Tuple[int, int] = (14, 7)):
        """
        Initialize visualizer.

        Args:
            figsize: Default figure size for plots
        """
        self.figsize = figsize

    def plot_mesh_comparison(self, original: MeshData,
                             simplified: MeshData,
                             title: str = "Mesh Comparison",
                             show_wireframe: bool = True,
                             save_path: Optional[str] = None) -> plt.Figure:
        """
        Create side-by-side comparison of original and simplified meshes.

        Args:
            original: Original high-resolution mesh
            simplified: Simplified mesh
            title: Plot title
            show_wireframe: Whether to show wireframe overlay
            save_path: Optional path to save the figure

        Returns:
            Matplotlib figure object
        """
        fig, axes = plt.subplots(1, 2, figsize=self.figsize,
                                 subplot_kw={'projection': '3d'})

        self._plot_single_mesh(axes[0], original,
                               f"Original\n({original.triangle_count} faces, {original.vertex_count} vertices)",
                               show_wireframe)
        self._plot_single_mesh(axes[1], simplified,
                               f"Simplified\n({simplified.triangle_count} faces, {simplified.vertex_count} vertices)",
                               show_wireframe)

        fig.suptitle(title, fontsize=14, fontweight='bold')
        plt.tight_layout()

        if save_path:
            plt.savefig(save_path, dpi=150, bbox_inches='tight')
            print(f"Saved comparison to {save_path}")

        return fig

    def _plot_single_mesh(self, ax, mesh: MeshData, title: str, show_wireframe: bool):
        """Plot a single mesh on a 3D axis."""
        vertices = np.asarray(mesh.vertices, dtype=np.float64)
        faces = mesh.get_triangles()

        # Normalize to unit cube centered at origin
        center = vertices.mean(axis=0)
        scale = max(np.max(np.abs(vertices - center)), 1e-12)
        vertices_normalized = (vertices - center) / scale

        triangles = vertices_normalized[faces]
        face_colors = self._compute_face_colors(triangles)

        # Convert to Z-up
        triangles_rotated = triangles[..., [2, 0, 1]]

        poly = Poly3DCollection(triangles_rotated, facecolors=face_colors,
                                edgecolors='black' if show_wireframe else 'none',
                                linewidths=0.1 if show_wireframe else 0,
                                alpha=0.9)
        ax.add_collection3d(poly)

        ax.set_xlim(-1, 1)
        ax.set_ylim(-1, 1)
        ax.set_zlim(-1, 1)
        ax.set_box_aspect([1, 1, 1])

        ax.set_title(title, fontsize=10)
        ax.set_xlabel('X')
        ax.set_ylabel('Y')
        ax.set_zlabel('Z')

    def _compute_face_colors(self, triangles: np.ndarray) -> np.ndarray:
        """Compute face colors based on normals for shading."""
        light_dir = np.array([1, 1, 2]) / np.sqrt(6.0)

        normals = normalize_rows(np.cross(triangles[:, 1] - triangles[:, 0],
                                          triangles[:, 2] - triangles[:, 0]))

        # Diffuse lighting
        intensity = np.clip(normals @ light_dir, 0.2, 1.0)

        # Grayscale colors with blue tint
        colors = np.zeros((len(triangles), 4))
        colors[:, 0] = 0.3 + 0.4 * intensity
        colors[:, 1] = 0.4 + 0.4 * intensity
        colors[:, 2] = 0.6 + 0.3 * intensity
        colors[:, 3] = 1.0

        return colors

    def plot_multi_resolution(self, meshes: List[MeshData],
                              labels: Optional[List[str]] = None,
                              title: str = "Multi-Resolution Comparison",
                              save_path: Optional[str] = None) -> plt.Figure:
        """
        Plot multiple meshes at different resolutions.

        Args:
            meshes: List of meshes at different resolutions
            labels: Optional labels for each mesh
            title: Plot title
            save_path: Optional path to save the figure

        Returns:
            Matplotlib figure object
        """
        n = len(meshes)
        cols = min(4, n)
        rows = (n + cols - 1) // cols

        fig = plt.figure(figsize=(5 * cols, 5 * rows))

        for i, mesh in enumerate(meshes):
            ax = fig.add_subplot(rows, cols, i + 1, projection='3d')

            if labels and i < len(labels):
                label = labels[i]
            else:
                ratio = mesh.triangle_count / meshes[0].triangle_count
                label = f"{mesh.triangle_count} faces ({ratio*100:.1f}%)"

            self._plot_single_mesh(ax, mesh, label, show_wireframe=True)

        fig.suptitle(title, fontsize=14, fontweight='bold')
        plt.tight_layout()

        if save_path:
            plt.savefig(save_path, dpi=150, bbox_inches='tight')
            print(f"Saved multi-resolution plot to {save_path}")

        return fig

    def plot_statistics(self, original: MeshData,
                        simplified_meshes: List[MeshData],
                        ratios: List[float],
                        hausdorff_distances: Optional[List[float]] = None,
                        runtimes: Optional[List[float]] = None,
                        save_path: Optional[str] = None) -> plt.Figure:
        """
        Plot simplification statistics.

        Args:
            original: Original mesh
            simplified_meshes: List of simplified meshes
            ratios: Target quality ratios
            hausdorff_distances: Optional Hausdorff distances
            runtimes: Optional runtimes in seconds
            save_path: Optional path to save the figure

        Returns:
            Matplotlib figure object
        """
        n_plots = 2 + (1 if hausdorff_distances else 0) + (1 if runtimes else 0)
        fig, axes = plt.subplots(1, n_plots, figsize=(5 * n_plots, 4))

        plot_idx = 0
        tick_labels = [f'{r*100:.0f}%' for r in ratios]

        # Face count
        face_counts = [m.triangle_count for m in simplified_meshes]
        axes[plot_idx].bar(range(len(ratios)), face_counts, color='steelblue')
        axes[plot_idx].axhline(y=original.triangle_count, color='red', linestyle='--',
                               label=f'Original ({original.triangle_count})')
        axes[plot_idx].set_xticks(range(len(ratios)))
        axes[plot_idx].set_xticklabels(tick_labels)
        axes[plot_idx].set_xlabel('Target Ratio')
        axes[plot_idx].set_ylabel('Face Count')
        axes[plot_idx].set_title('Face Count vs Target')
        axes[plot_idx].legend()
        plot_idx += 1

        # Vertex count
        vertex_counts = [m.vertex_count for m in simplified_meshes]
        axes[plot_idx].bar(range(len(ratios)), vertex_counts, color='forestgreen')
        axes[plot_idx].axhline(y=original.vertex_count, color='red', linestyle='--',
                               label=f'Original ({original.vertex_count})')
        axes[plot_idx].set_xticks(range(len(ratios)))
        axes[plot_idx].set_xticklabels(tick_labels)
        axes[plot_idx].set_xlabel('Target Ratio')
        axes[plot_idx].set_ylabel('Vertex Count')
        axes[plot_idx].set_title('Vertex Count vs Target')
        axes[plot_idx].legend()
        plot_idx += 1

        if hausdorff_distances:
            axes[plot_idx].plot(ratios, hausdorff_distances, 'o-', color='crimson')
            axes[plot_idx].set_xlabel('Target Ratio')
            axes[plot_idx].set_ylabel('Hausdorff Distance')
            axes[plot_idx].set_title('Geometric Error vs Reduction')
            plot_idx += 1

        if runtimes:
            axes[plot_idx].plot(ratios, runtimes, 's-', color='purple')
            axes[plot_idx].set_xlabel('Target Ratio')
            axes[plot_idx].set_ylabel('Runtime (seconds)')
            axes[plot_idx].set_title('Runtime vs Target Ratio')

        plt.suptitle('Simplification Statistics', fontsize=14, fontweight='bold')
        plt.tight_layout()

        if save_path:
            plt.savefig(save_path, dpi=150, bbox_inches='tight')
            print(f"Saved statistics to {save_path}")

        return fig
