"""Tests for the mesh data contract and its helpers."""

import numpy as np
import pytest

from meshsimplifier.exceptions import MeshValidationError
from meshsimplifier.mesh_data import (BlendShape, BlendShapeFrame, MeshData, convert_uvs,
                                      get_index_dtype, get_submesh_index_min_max,
                                      get_used_uv_components)


class TestMeshDataConstruction:
    """Tests for mesh data construction."""

    def test_uv_channels_are_padded(self, single_triangle):
        assert len(single_triangle.uvs) == 4
        assert all(uv is None for uv in single_triangle.uvs)

    def test_too_many_uv_channels(self):
        with pytest.raises(MeshValidationError):
            MeshData(vertices=np.zeros((3, 3)), submeshes=[[0, 1, 2]], uvs=[None] * 5)

    def test_submeshes_are_flattened(self):
        mesh = MeshData(vertices=np.zeros((4, 3)), submeshes=[[[0, 1, 2], [1, 2, 3]]])
        assert mesh.submeshes[0].shape == (6,)
        assert mesh.triangle_count == 2

    def test_counts(self, two_submesh_grid):
        assert two_submesh_grid.vertex_count == 64
        assert two_submesh_grid.submesh_count == 2
        assert two_submesh_grid.triangle_count == 2 * 7 * 7

    def test_get_triangles_concatenates_submeshes(self):
        mesh = MeshData(vertices=np.zeros((4, 3)), submeshes=[[0, 1, 2], [1, 3, 2]])
        assert np.array_equal(mesh.get_triangles(), [[0, 1, 2], [1, 3, 2]])

    def test_copy_is_deep(self, skinned_grid):
        copy = skinned_grid.copy()
        copy.vertices[0] = 42.0
        copy.blend_shapes[0].frames[0].delta_vertices[0] = 42.0
        copy.submeshes[0][0] = 5
        assert not np.any(skinned_grid.vertices[0] == 42.0)
        assert not np.any(skinned_grid.blend_shapes[0].frames[0].delta_vertices[0] == 42.0)
        assert skinned_grid.submeshes[0][0] != 5


class TestValidation:
    """Tests for validation."""

    def test_valid_meshes(self, flat_grid, skinned_grid, textured_cube):
        flat_grid.validate()
        skinned_grid.validate()
        textured_cube.validate()

    def test_bad_vertex_shape(self):
        mesh = MeshData(vertices=np.zeros((3, 2)), submeshes=[[0, 1, 2]])
        with pytest.raises(MeshValidationError) as exc_info:
            mesh.validate()
        assert exc_info.value.field == "vertices"

    def test_non_finite_vertices(self, single_triangle):
        single_triangle.vertices[0, 0] = np.nan
        with pytest.raises(MeshValidationError):
            single_triangle.validate()

    def test_index_count_not_multiple_of_three(self):
        mesh = MeshData(vertices=np.zeros((3, 3)), submeshes=[[0, 1]])
        with pytest.raises(MeshValidationError, match="multiple of 3"):
            mesh.validate()

    def test_index_out_of_range(self):
        mesh = MeshData(vertices=np.zeros((3, 3)), submeshes=[[0, 1, 3]])
        with pytest.raises(MeshValidationError, match="outside"):
            mesh.validate()

    def test_negative_index(self):
        mesh = MeshData(vertices=np.zeros((3, 3)), submeshes=[[0, 1, -1]])
        with pytest.raises(MeshValidationError):
            mesh.validate()

    def test_float_indices(self):
        mesh = MeshData(vertices=np.zeros((3, 3)), submeshes=[np.array([0.0, 1.0, 2.0])])
        with pytest.raises(MeshValidationError, match="integers"):
            mesh.validate()

    def test_no_triangles(self):
        mesh = MeshData(vertices=np.zeros((3, 3)), submeshes=[np.zeros(0, dtype=np.int64)])
        with pytest.raises(MeshValidationError, match="no triangles"):
            mesh.validate()

    def test_empty_submesh_next_to_full_one_is_valid(self, single_triangle):
        single_triangle.submeshes.append(np.zeros(0, dtype=np.int64))
        single_triangle.validate()

    def test_attribute_count_mismatch(self, single_triangle):
        single_triangle.normals = np.zeros((2, 3))
        with pytest.raises(MeshValidationError) as exc_info:
            single_triangle.validate()
        assert exc_info.value.field == "normals"

    def test_uv_width(self, single_triangle):
        single_triangle.uvs[1] = np.zeros((3, 5))
        with pytest.raises(MeshValidationError):
            single_triangle.validate()

    def test_bones_need_weights(self, single_triangle):
        single_triangle.bone_indices = np.zeros((3, 4), dtype=np.int32)
        with pytest.raises(MeshValidationError, match="together"):
            single_triangle.validate()

    def test_bindpose_shape(self, skinned_grid):
        skinned_grid.bindposes = np.zeros((2, 3, 4))
        with pytest.raises(MeshValidationError):
            skinned_grid.validate()

    def test_blend_shape_frame_length(self, single_triangle):
        frame = BlendShapeFrame(frame_weight=1.0, delta_vertices=np.zeros((2, 3)))
        single_triangle.blend_shapes = [BlendShape("bad", [frame])]
        with pytest.raises(MeshValidationError, match="bad"):
            single_triangle.validate()

    def test_blend_shape_without_frames(self, single_triangle):
        single_triangle.blend_shapes = [BlendShape("empty", [])]
        with pytest.raises(MeshValidationError):
            single_triangle.validate()


class TestIndexFormat:
    """Tests for index format."""

    @pytest.mark.parametrize("max_index, dtype", [
        (0, np.uint16),
        (60000, np.uint16),
        (65535, np.uint16),
        (65536, np.uint32),
        (70000, np.uint32),
    ])
    def test_get_index_dtype(self, max_index, dtype):
        assert get_index_dtype(max_index) == np.dtype(dtype)

    def test_submesh_min_max(self):
        mins, maxs, dtype = get_submesh_index_min_max(
            [np.array([3, 4, 5]), np.zeros(0, dtype=np.int64), np.array([0, 70000, 2])])
        assert mins == [3, 0, 0]
        assert maxs == [5, 0, 70000]
        assert dtype == np.dtype(np.uint32)

    def test_mesh_index_format(self, flat_grid):
        assert flat_grid.index_format == np.dtype(np.uint16)


class TestUVHelpers:
    """Tests for uv helpers."""

    def test_used_components(self):
        assert get_used_uv_components(None) == 0
        assert get_used_uv_components(np.zeros((4, 4))) == 0
        assert get_used_uv_components(np.array([[0.5, 0, 0, 0], [0, 0, 0, 0]])) == 1
        assert get_used_uv_components(np.array([[0, 0, 0.2, 0], [0.1, 0, 0, 0]])) == 3

    def test_convert_truncates(self):
        uvs = np.array([[0.1, 0.2, 0.3, 0.4]])
        assert np.array_equal(convert_uvs(uvs, 2), [[0.1, 0.2]])

    def test_convert_pads_with_zeros(self):
        uvs = np.array([[0.1, 0.2]])
        assert np.array_equal(convert_uvs(uvs, 4), [[0.1, 0.2, 0.0, 0.0]])

    def test_convert_to_zero_components_drops_channel(self):
        assert convert_uvs(np.ones((2, 2)), 0) is None
        assert convert_uvs(None, 2) is None
