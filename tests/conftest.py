"""Shared fixtures for the mesh simplification tests."""

import matplotlib
matplotlib.use("Agg")

import numpy as np
import pytest
import trimesh

from meshsimplifier.mesh_data import BlendShape, BlendShapeFrame, MeshData
from meshsimplifier.utils import (create_mesh_with_boundary, create_quad_strip,
                                  create_textured_cube, from_trimesh)


@pytest.fixture
def flat_grid():
    """Flat 8x8 vertex grid in z=0 with normals and UVs equal to (xy + 1) / 2."""
    return create_mesh_with_boundary(rows=8, cols=8, amplitude=0.0)


@pytest.fixture
def wavy_grid():
    return create_mesh_with_boundary(rows=10, cols=10, amplitude=0.2)


@pytest.fixture
def quad_strip():
    return create_quad_strip(quads=10)


@pytest.fixture
def icosphere():
    return from_trimesh(trimesh.creation.icosphere(subdivisions=2, radius=1.0))


@pytest.fixture
def single_triangle():
    return MeshData(
        vertices=np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0]]),
        submeshes=[np.array([0, 1, 2])],
    )


@pytest.fixture
def textured_cube():
    return create_textured_cube(subdivisions=2)


@pytest.fixture
def skinned_grid():
    """
    Flat grid with two bones and one blend shape whose position delta
    along z equals the vertex x coordinate.
    """
    mesh = create_mesh_with_boundary(rows=8, cols=8, amplitude=0.0)
    n = mesh.vertex_count

    bone_indices = np.zeros((n, 4), dtype=np.int32)
    bone_indices[mesh.vertices[:, 0] >= 0, 0] = 1
    bone_weights = np.zeros((n, 4))
    bone_weights[:, 0] = 1.0

    delta_vertices = np.zeros((n, 3))
    delta_vertices[:, 2] = mesh.vertices[:, 0]
    frame = BlendShapeFrame(frame_weight=100.0, delta_vertices=delta_vertices,
                            delta_normals=np.zeros((n, 3)))

    mesh.bone_indices = bone_indices
    mesh.bone_weights = bone_weights
    mesh.bindposes = np.stack([np.eye(4), np.eye(4)])
    mesh.blend_shapes = [BlendShape("lift", [frame])]
    return mesh


@pytest.fixture
def two_submesh_grid():
    """Flat grid whose lower and upper halves are separate submeshes."""
    mesh = create_mesh_with_boundary(rows=8, cols=8, amplitude=0.0)
    triangles = mesh.get_triangles()
    centers_y = mesh.vertices[triangles].mean(axis=1)[:, 1]
    lower = triangles[centers_y < 0].reshape(-1)
    upper = triangles[centers_y >= 0].reshape(-1)
    mesh.submeshes = [lower, upper]
    return mesh
