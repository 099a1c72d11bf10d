"""Tests for the per-vertex attribute streams."""

import numpy as np
import pytest

from meshsimplifier.attributes import VertexAttributes
from meshsimplifier.mesh_data import BlendShape, BlendShapeFrame, MeshData


@pytest.fixture
def attributed_triangle():
    n = 3
    frame = BlendShapeFrame(
        frame_weight=50.0,
        delta_vertices=np.array([[0.0, 0, 0], [0, 0, 3], [0, 0, 6]]),
        delta_normals=np.zeros((n, 3)),
        delta_tangents=np.zeros((n, 3)),
    )
    return MeshData(
        vertices=np.array([[0.0, 0, 0], [1, 0, 0], [0, 1, 0]]),
        submeshes=[np.array([0, 1, 2])],
        normals=np.array([[1.0, 0, 0], [0, 1, 0], [0, 0, 1]]),
        tangents=np.array([[1.0, 0, 0, -1], [0, 1, 0, 1], [0, 0, 1, 1]]),
        colors=np.array([[255, 0, 0, 255], [0, 255, 0, 255], [0, 0, 255, 255]], dtype=np.uint8),
        uvs=[np.array([[0.0, 0], [1, 0], [0, 1]]), None,
             np.array([[0.0, 0, 1], [1, 0, 1], [0, 1, 1]]), None],
        bone_indices=np.array([[0, 0, 0, 0], [1, 0, 0, 0], [2, 0, 0, 0]], dtype=np.int32),
        bone_weights=np.tile([1.0, 0, 0, 0], (n, 1)),
        bindposes=np.stack([np.eye(4)] * 3),
        blend_shapes=[BlendShape("bend", [frame])],
    )


class TestVertexAttributes:
    """Tests for vertex attributes."""

    def test_streams_are_copied(self, attributed_triangle):
        attributes = VertexAttributes(attributed_triangle)
        attributes.normals[0] = 0.0
        assert attributed_triangle.normals[0, 0] == 1.0

    def test_missing_streams_stay_missing(self, single_triangle):
        attributes = VertexAttributes(single_triangle)
        assert attributes.normals is None
        assert attributes.colors is None
        assert attributes.bone_indices is None
        assert attributes.uvs == [None, None, None, None]

    def test_interpolate_normalizes_normals(self, attributed_triangle):
        attributes = VertexAttributes(attributed_triangle)
        attributes.interpolate(0, 0, 1, 2, np.array([1 / 3, 1 / 3, 1 / 3]))
        assert np.allclose(attributes.normals[0], np.ones(3) / np.sqrt(3))

    def test_interpolate_keeps_tangent_handedness(self, attributed_triangle):
        attributes = VertexAttributes(attributed_triangle)
        attributes.interpolate(0, 0, 1, 2, np.array([0.5, 0.5, 0.0]))
        assert np.allclose(attributes.tangents[0, :3], [np.sqrt(0.5), np.sqrt(0.5), 0])
        assert attributes.tangents[0, 3] == -1.0

    def test_interpolate_uvs_and_colors_linearly(self, attributed_triangle):
        attributes = VertexAttributes(attributed_triangle)
        attributes.interpolate(0, 0, 1, 2, np.array([0.5, 0.25, 0.25]))
        assert np.allclose(attributes.uvs[0][0], [0.25, 0.25])
        assert np.allclose(attributes.uvs[2][0], [0.25, 0.25, 1.0])
        assert np.allclose(attributes.colors[0], [127.5, 63.75, 63.75, 255])

    def test_interpolate_blend_shapes(self, attributed_triangle):
        attributes = VertexAttributes(attributed_triangle)
        attributes.interpolate(0, 0, 1, 2, np.array([0.0, 0.5, 0.5]))
        frame = attributes.blend_shapes[0].frames[0]
        assert np.allclose(frame.delta_vertices[0], [0, 0, 4.5])

    def test_bone_data_is_not_interpolated(self, attributed_triangle):
        attributes = VertexAttributes(attributed_triangle)
        attributes.interpolate(0, 0, 1, 2, np.array([0.0, 0.5, 0.5]))
        assert np.array_equal(attributes.bone_indices[0], [0, 0, 0, 0])
        attributes.copy_bone_data(0, 2)
        assert np.array_equal(attributes.bone_indices[0], [2, 0, 0, 0])

    def test_are_uvs_the_same(self, attributed_triangle):
        attributes = VertexAttributes(attributed_triangle)
        assert attributes.are_uvs_the_same(0, 1, 1)
        assert not attributes.are_uvs_the_same(0, 0, 1)
        assert not attributes.are_uvs_the_same(1, 0, 0)

    def test_manual_uv_component_count(self, attributed_triangle):
        attributes = VertexAttributes(attributed_triangle, manual_uv_component_count=True,
                                      uv_component_count=4)
        assert attributes.uvs[0].shape == (3, 4)
        assert attributes.uvs[1] is None
        assert attributes.uvs[2].shape == (3, 4)

    def test_manual_zero_components_drops_uvs(self, attributed_triangle):
        attributes = VertexAttributes(attributed_triangle, manual_uv_component_count=True,
                                      uv_component_count=0)
        assert all(uv is None for uv in attributes.uvs)

    def test_compact(self, attributed_triangle):
        attributes = VertexAttributes(attributed_triangle)
        attributes.compact(np.array([2, 0]))
        assert attributes.vertex_count == 2
        assert np.array_equal(attributes.normals, [[0, 0, 1], [1, 0, 0]])
        assert attributes.uvs[2].shape == (2, 3)
        assert len(attributes.blend_shapes[0].frames[0].delta_vertices) == 2
        assert np.array_equal(attributes.bone_indices[:, 0], [2, 0])


class TestExport:
    """Tests for export."""

    def test_to_mesh_data(self, attributed_triangle):
        attributes = VertexAttributes(attributed_triangle)
        mesh = attributes.to_mesh_data(attributed_triangle.vertices, attributed_triangle.submeshes)
        mesh.validate()
        assert mesh.vertices.dtype == np.float32
        assert mesh.normals.dtype == np.float32
        assert mesh.bone_indices.dtype == np.int32
        assert mesh.bindposes.shape == (3, 4, 4)
        assert mesh.blend_shapes[0].shape_name == "bend"
        assert mesh.blend_shapes[0].frames[0].frame_weight == 50.0

    def test_integer_colors_keep_their_dtype(self, attributed_triangle):
        attributes = VertexAttributes(attributed_triangle)
        attributes.interpolate(0, 0, 1, 2, np.array([0.5, 0.25, 0.25]))
        colors = attributes.export_colors()
        assert colors.dtype == np.uint8
        assert np.array_equal(colors[0], [128, 64, 64, 255])

    def test_float_colors(self, single_triangle):
        single_triangle.colors = np.array([[0.5, 0.5, 0.5]] * 3)
        colors = VertexAttributes(single_triangle).export_colors()
        assert colors.dtype == np.float32
        assert colors.shape == (3, 3)
