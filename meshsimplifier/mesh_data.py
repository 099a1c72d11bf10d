"""
Mesh Data
=========

Plain-array mesh description exchanged with the simplification engine:
positions, submesh index arrays and optional per-vertex attribute streams
(normals, tangents, colors, up to four UV channels of 2-4 components,
bone skinning data and blend shapes).
"""

import numpy as np
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .exceptions import MeshValidationError


UV_CHANNEL_COUNT = 4
MAX_UINT16_INDEX = 65535


@dataclass
class BlendShapeFrame:
    """A single frame of a blend shape: a weight and per-vertex deltas."""
    frame_weight: float
    delta_vertices: np.ndarray
    delta_normals: Optional[np.ndarray] = None
    delta_tangents: Optional[np.ndarray] = None


@dataclass
class BlendShape:
    """A named morph target made of one or more frames."""
    shape_name: str
    frames: List[BlendShapeFrame] = field(default_factory=list)


def _empty_uvs() -> List[Optional[np.ndarray]]:
    return [None] * UV_CHANNEL_COUNT


@dataclass
class MeshData:
    """
    Mesh buffers in the engine's closed input/output contract.

    Attributes:
        vertices: (N, 3) vertex positions
        submeshes: List of flat index arrays, one per submesh; each length
            is a multiple of 3
        normals: Optional (N, 3) normals
        tangents: Optional (N, 4) tangents, w holds the handedness
        colors: Optional (N, 3) or (N, 4) colors
        uvs: Four optional UV channels of shape (N, 2), (N, 3) or (N, 4)
        bone_indices: Optional (N, 4) bone indices
        bone_weights: Optional (N, 4) bone weights
        bindposes: Optional (B, 4, 4) bind pose matrices
        blend_shapes: Blend shapes whose frames match the vertex count
    """
    vertices: np.ndarray
    submeshes: List[np.ndarray]
    normals: Optional[np.ndarray] = None
    tangents: Optional[np.ndarray] = None
    colors: Optional[np.ndarray] = None
    uvs: List[Optional[np.ndarray]] = field(default_factory=_empty_uvs)
    bone_indices: Optional[np.ndarray] = None
    bone_weights: Optional[np.ndarray] = None
    bindposes: Optional[np.ndarray] = None
    blend_shapes: List[BlendShape] = field(default_factory=list)

    def __post_init__(self):
        self.vertices = np.asarray(self.vertices)
        self.submeshes = [np.asarray(indices).reshape(-1) for indices in self.submeshes]
        uvs = list(self.uvs) if self.uvs is not None else []
        if len(uvs) > UV_CHANNEL_COUNT:
            raise MeshValidationError(
                f"At most {UV_CHANNEL_COUNT} UV channels are supported, got {len(uvs)}", "uvs")
        self.uvs = uvs + [None] * (UV_CHANNEL_COUNT - len(uvs))

    @property
    def vertex_count(self) -> int:
        return len(self.vertices)

    @property
    def triangle_count(self) -> int:
        return sum(len(indices) // 3 for indices in self.submeshes)

    @property
    def submesh_count(self) -> int:
        return len(self.submeshes)

    @property
    def index_format(self) -> np.dtype:
        """The index width needed to address every vertex of every submesh."""
        _, _, dtype = get_submesh_index_min_max(self.submeshes)
        return dtype

    def get_triangles(self) -> np.ndarray:
        """All triangles of all submeshes as one (M, 3) array."""
        if not self.submeshes:
            return np.zeros((0, 3), dtype=np.int64)
        return np.concatenate([np.asarray(s, dtype=np.int64).reshape(-1, 3)
                               for s in self.submeshes])

    def validate(self):
        """
        Check that all buffers are consistent with each other.

        Raises:
            MeshValidationError: on the first inconsistency found
        """
        vertices = self.vertices
        if vertices.ndim != 2 or vertices.shape[1] != 3:
            raise MeshValidationError(
                f"Vertices must have shape (N, 3), got {vertices.shape}", "vertices")
        n = len(vertices)
        if n == 0:
            raise MeshValidationError("The mesh has no vertices", "vertices")
        if not np.all(np.isfinite(vertices)):
            raise MeshValidationError("Vertex positions must be finite", "vertices")

        if not self.submeshes:
            raise MeshValidationError("The mesh has no submeshes", "submeshes")
        for i, indices in enumerate(self.submeshes):
            if indices.size > 0 and not np.issubdtype(indices.dtype, np.integer):
                raise MeshValidationError(
                    f"Submesh {i} indices must be integers, got {indices.dtype}", "submeshes")
            if len(indices) % 3 != 0:
                raise MeshValidationError(
                    f"Submesh {i} index count {len(indices)} is not a multiple of 3", "submeshes")
            if indices.size > 0 and (indices.min() < 0 or indices.max() >= n):
                raise MeshValidationError(
                    f"Submesh {i} references vertices outside [0, {n})", "submeshes")
        if self.triangle_count == 0:
            raise MeshValidationError("The mesh has no triangles", "submeshes")

        _check_stream(self.normals, "normals", n, (3,))
        _check_stream(self.tangents, "tangents", n, (4,))
        _check_stream(self.colors, "colors", n, (3, 4))
        for channel, uv in enumerate(self.uvs):
            _check_stream(uv, f"uvs[{channel}]", n, (2, 3, 4))

        if (self.bone_indices is None) != (self.bone_weights is None):
            raise MeshValidationError(
                "Bone indices and bone weights must be given together", "bone_weights")
        _check_stream(self.bone_indices, "bone_indices", n, (4,))
        _check_stream(self.bone_weights, "bone_weights", n, (4,))
        if self.bindposes is not None:
            bindposes = np.asarray(self.bindposes)
            if bindposes.ndim != 3 or bindposes.shape[1:] != (4, 4):
                raise MeshValidationError(
                    f"Bind poses must have shape (B, 4, 4), got {bindposes.shape}", "bindposes")

        for shape in self.blend_shapes:
            if not shape.frames:
                raise MeshValidationError(
                    f"Blend shape '{shape.shape_name}' has no frames", "blend_shapes")
            for frame in shape.frames:
                _check_stream(frame.delta_vertices, f"blend shape '{shape.shape_name}' delta vertices",
                              n, (3,), required=True)
                _check_stream(frame.delta_normals, f"blend shape '{shape.shape_name}' delta normals",
                              n, (3,))
                _check_stream(frame.delta_tangents, f"blend shape '{shape.shape_name}' delta tangents",
                              n, (3,))

    def copy(self) -> 'MeshData':
        """Deep copy of every buffer."""
        def _copy(a):
            return None if a is None else np.array(a, copy=True)

        return MeshData(
            vertices=_copy(self.vertices),
            submeshes=[_copy(s) for s in self.submeshes],
            normals=_copy(self.normals),
            tangents=_copy(self.tangents),
            colors=_copy(self.colors),
            uvs=[_copy(uv) for uv in self.uvs],
            bone_indices=_copy(self.bone_indices),
            bone_weights=_copy(self.bone_weights),
            bindposes=_copy(self.bindposes),
            blend_shapes=[
                BlendShape(shape.shape_name, [
                    BlendShapeFrame(frame.frame_weight, _copy(frame.delta_vertices),
                                    _copy(frame.delta_normals), _copy(frame.delta_tangents))
                    for frame in shape.frames])
                for shape in self.blend_shapes
            ],
        )


def _check_stream(values, name: str, vertex_count: int, widths: Tuple[int, ...],
                  required: bool = False):
    if values is None:
        if required:
            raise MeshValidationError(f"Missing {name}", name)
        return
    values = np.asarray(values)
    if values.ndim != 2 or values.shape[1] not in widths:
        raise MeshValidationError(
            f"{name} must have shape (N, {'|'.join(str(w) for w in widths)}), got {values.shape}", name)
    if len(values) != vertex_count:
        raise MeshValidationError(
            f"{name} has {len(values)} entries but the mesh has {vertex_count} vertices", name)
    if np.issubdtype(values.dtype, np.floating) and not np.all(np.isfinite(values)):
        raise MeshValidationError(f"{name} must be finite", name)


def get_index_dtype(max_index: int) -> np.dtype:
    """16-bit indices when every index fits, otherwise 32-bit."""
    if max_index <= MAX_UINT16_INDEX:
        return np.dtype(np.uint16)
    return np.dtype(np.uint32)


def get_submesh_index_min_max(submeshes: List[np.ndarray]) -> Tuple[List[int], List[int], np.dtype]:
    """
    Minimum and maximum index of every submesh, plus the index format
    needed for the whole mesh. Empty submeshes report (0, 0).
    """
    mins = []
    maxs = []
    for indices in submeshes:
        indices = np.asarray(indices)
        if indices.size == 0:
            mins.append(0)
            maxs.append(0)
        else:
            mins.append(int(indices.min()))
            maxs.append(int(indices.max()))
    return mins, maxs, get_index_dtype(max(maxs, default=0))


def get_used_uv_components(uvs: Optional[np.ndarray]) -> int:
    """
    Number of UV components actually in use: the position of the highest
    component that is non-zero for any vertex (0 for a missing or all-zero
    channel).
    """
    if uvs is None:
        return 0
    uvs = np.asarray(uvs)
    if uvs.size == 0:
        return 0
    used = np.flatnonzero(np.any(uvs != 0, axis=0))
    return int(used[-1]) + 1 if len(used) else 0


def convert_uvs(uvs: Optional[np.ndarray], component_count: int) -> Optional[np.ndarray]:
    """
    Truncate or zero-pad a UV channel to component_count components.
    A component count of 0 drops the channel.
    """
    if uvs is None or component_count == 0:
        return None
    uvs = np.asarray(uvs)
    width = uvs.shape[1]
    if width >= component_count:
        return uvs[:, :component_count].copy()
    out = np.zeros((len(uvs), component_count), dtype=uvs.dtype)
    out[:, :width] = uvs
    return out
