"""
Vertex Attributes
=================

Structure-of-arrays storage for every per-vertex attribute stream the
engine carries through a simplification: normals, tangents, colors, UV
channels, bone skinning data and blend-shape frames. All streams are
addressed by attribute-vertex index.
"""

import numpy as np
from typing import List, Optional

from .mesh_data import (BlendShape, BlendShapeFrame, MeshData, UV_CHANNEL_COUNT,
                        convert_uvs)
from .qem import normalize


def _as_float(values: Optional[np.ndarray]) -> Optional[np.ndarray]:
    if values is None:
        return None
    return np.array(values, dtype=np.float64, copy=True)


def _blend(values: np.ndarray, i0: int, i1: int, i2: int, bary: np.ndarray) -> np.ndarray:
    return values[i0] * bary[0] + values[i1] * bary[1] + values[i2] * bary[2]


class BlendShapeFrameContainer:
    """Working copy of one blend-shape frame."""

    def __init__(self, frame: BlendShapeFrame):
        self.frame_weight = float(frame.frame_weight)
        self.delta_vertices = _as_float(frame.delta_vertices)
        self.delta_normals = _as_float(frame.delta_normals)
        self.delta_tangents = _as_float(frame.delta_tangents)

    def interpolate(self, dst: int, i0: int, i1: int, i2: int, bary: np.ndarray):
        self.delta_vertices[dst] = _blend(self.delta_vertices, i0, i1, i2, bary)
        if self.delta_normals is not None:
            self.delta_normals[dst] = _blend(self.delta_normals, i0, i1, i2, bary)
        if self.delta_tangents is not None:
            self.delta_tangents[dst] = _blend(self.delta_tangents, i0, i1, i2, bary)

    def compact(self, indices: np.ndarray):
        self.delta_vertices = self.delta_vertices[indices]
        if self.delta_normals is not None:
            self.delta_normals = self.delta_normals[indices]
        if self.delta_tangents is not None:
            self.delta_tangents = self.delta_tangents[indices]

    def to_frame(self) -> BlendShapeFrame:
        return BlendShapeFrame(
            frame_weight=self.frame_weight,
            delta_vertices=self.delta_vertices.astype(np.float32),
            delta_normals=None if self.delta_normals is None else self.delta_normals.astype(np.float32),
            delta_tangents=None if self.delta_tangents is None else self.delta_tangents.astype(np.float32),
        )


class BlendShapeContainer:
    """Working copy of one blend shape and all of its frames."""

    def __init__(self, shape: BlendShape):
        self.shape_name = shape.shape_name
        self.frames = [BlendShapeFrameContainer(frame) for frame in shape.frames]

    def interpolate(self, dst: int, i0: int, i1: int, i2: int, bary: np.ndarray):
        for frame in self.frames:
            frame.interpolate(dst, i0, i1, i2, bary)

    def compact(self, indices: np.ndarray):
        for frame in self.frames:
            frame.compact(indices)

    def to_blend_shape(self) -> BlendShape:
        return BlendShape(self.shape_name, [frame.to_frame() for frame in self.frames])


class VertexAttributes:
    """
    Attribute streams of the mesh being simplified.

    Streams that are absent from the input stay None throughout and are
    absent from the output.
    """

    def __init__(self, mesh: MeshData, manual_uv_component_count: bool = False,
                 uv_component_count: int = 2):
        """
        Copy the attribute streams of a mesh into working buffers.

        Args:
            mesh: The source mesh
            manual_uv_component_count: Convert every UV channel to
                uv_component_count components instead of keeping the
                dimensionality of the input channel
            uv_component_count: Component count for manual UV handling
        """
        self.vertex_count = mesh.vertex_count
        self.normals = _as_float(mesh.normals)
        self.tangents = _as_float(mesh.tangents)

        self._color_dtype = None
        self.colors = None
        if mesh.colors is not None:
            colors = np.asarray(mesh.colors)
            self._color_dtype = colors.dtype
            self.colors = colors.astype(np.float64)

        self.uvs: List[Optional[np.ndarray]] = []
        for uv in mesh.uvs:
            if manual_uv_component_count:
                uv = convert_uvs(uv, uv_component_count)
            self.uvs.append(_as_float(uv))

        self.bone_indices = None
        self.bone_weights = None
        if mesh.bone_indices is not None:
            self.bone_indices = np.array(mesh.bone_indices, dtype=np.int32, copy=True)
            self.bone_weights = _as_float(mesh.bone_weights)
        self.bindposes = None if mesh.bindposes is None else np.array(mesh.bindposes, copy=True)

        self.blend_shapes = [BlendShapeContainer(shape) for shape in mesh.blend_shapes]

    def interpolate(self, dst: int, i0: int, i1: int, i2: int, bary: np.ndarray):
        """
        Write the barycentric blend of attribute vertices (i0, i1, i2) to dst.

        Normals and tangent directions are renormalized, the tangent
        handedness (w) of dst is kept. Bone weights are not interpolated.
        """
        if self.normals is not None:
            self.normals[dst] = normalize(_blend(self.normals, i0, i1, i2, bary))
        if self.tangents is not None:
            tangent = _blend(self.tangents[:, :3], i0, i1, i2, bary)
            self.tangents[dst, :3] = normalize(tangent)
        for uv in self.uvs:
            if uv is not None:
                uv[dst] = _blend(uv, i0, i1, i2, bary)
        if self.colors is not None:
            self.colors[dst] = _blend(self.colors, i0, i1, i2, bary)
        for shape in self.blend_shapes:
            shape.interpolate(dst, i0, i1, i2, bary)

    def are_uvs_the_same(self, channel: int, a: int, b: int) -> bool:
        """Whether two vertices share exactly the same UV in a channel."""
        uv = self.uvs[channel]
        if uv is None:
            return False
        return bool(np.array_equal(uv[a], uv[b]))

    def copy_bone_data(self, dst: int, src: int):
        if self.bone_indices is not None:
            self.bone_indices[dst] = self.bone_indices[src]
            self.bone_weights[dst] = self.bone_weights[src]

    def compact(self, indices: np.ndarray):
        """Keep only the given vertices, in the given order."""
        if self.normals is not None:
            self.normals = self.normals[indices]
        if self.tangents is not None:
            self.tangents = self.tangents[indices]
        if self.colors is not None:
            self.colors = self.colors[indices]
        self.uvs = [None if uv is None else uv[indices] for uv in self.uvs]
        if self.bone_indices is not None:
            self.bone_indices = self.bone_indices[indices]
            self.bone_weights = self.bone_weights[indices]
        for shape in self.blend_shapes:
            shape.compact(indices)
        self.vertex_count = len(indices)

    def export_colors(self) -> Optional[np.ndarray]:
        """Colors in the dtype they were given in."""
        if self.colors is None:
            return None
        if np.issubdtype(self._color_dtype, np.integer):
            info = np.iinfo(self._color_dtype)
            return np.clip(np.round(self.colors), info.min, info.max).astype(self._color_dtype)
        return self.colors.astype(np.float32)

    def to_mesh_data(self, vertices: np.ndarray, submeshes: List[np.ndarray]) -> MeshData:
        """Assemble output buffers around the given positions and index arrays."""
        def _f32(values):
            return None if values is None else values.astype(np.float32)

        return MeshData(
            vertices=vertices.astype(np.float32),
            submeshes=submeshes,
            normals=_f32(self.normals),
            tangents=_f32(self.tangents),
            colors=self.export_colors(),
            uvs=[_f32(uv) for uv in self.uvs] + [None] * (UV_CHANNEL_COUNT - len(self.uvs)),
            bone_indices=None if self.bone_indices is None else self.bone_indices.copy(),
            bone_weights=_f32(self.bone_weights),
            bindposes=None if self.bindposes is None else self.bindposes.copy(),
            blend_shapes=[shape.to_blend_shape() for shape in self.blend_shapes],
        )

