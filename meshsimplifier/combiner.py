"""
Mesh Combiner
=============

Merges several meshes into a single multi-submesh mesh so they can be
simplified together. Submeshes that share a material are merged into one.
"""

import numpy as np
from typing import Hashable, List, Optional, Sequence, Tuple

from .mesh_data import MeshData, UV_CHANNEL_COUNT


DEFAULT_NORMAL = (1.0, 0.0, 0.0)
DEFAULT_TANGENT = (0.0, 0.0, 1.0, 1.0)
DEFAULT_COLOR = (1.0, 1.0, 1.0, 1.0)


def _to_float_colors(colors: np.ndarray) -> np.ndarray:
    """RGBA float colors in [0, 1]; integer colors are rescaled."""
    colors = np.asarray(colors)
    if np.issubdtype(colors.dtype, np.integer):
        colors = colors / float(np.iinfo(colors.dtype).max)
    colors = colors.astype(np.float64)
    if colors.shape[1] == 3:
        colors = np.column_stack([colors, np.ones(len(colors))])
    return colors


def _combine_stream(streams: List[Optional[np.ndarray]], counts: List[int],
                    default) -> Optional[np.ndarray]:
    """
    Concatenate one attribute stream of several meshes, filling meshes that
    lack it with a default value. Returns None if no mesh has the stream.
    """
    present = [s for s in streams if s is not None]
    if not present:
        return None

    width = max(s.shape[1] for s in present)
    parts = []
    for stream, count in zip(streams, counts):
        part = np.zeros((count, width))
        if stream is None:
            fill = np.asarray(default, dtype=np.float64)
            part[:] = fill[:width] if len(fill) >= width else np.pad(fill, (0, width - len(fill)))
        else:
            part[:, :stream.shape[1]] = stream
        parts.append(part)
    return np.concatenate(parts)


def _transform_points(points: np.ndarray, transform: np.ndarray) -> np.ndarray:
    return points @ transform[:3, :3].T + transform[:3, 3]


def _transform_vectors(vectors: np.ndarray, transform: np.ndarray) -> np.ndarray:
    return vectors @ transform[:3, :3].T


def combine_meshes(meshes: Sequence[MeshData],
                   transforms: Optional[Sequence[np.ndarray]] = None,
                   materials: Optional[Sequence[Sequence[Hashable]]] = None,
                   bones: Optional[Sequence[Optional[Sequence[Hashable]]]] = None
                   ) -> Tuple[MeshData, List[Hashable]]:
    """
    Combine several meshes into one.

    Positions are transformed as points, normals and tangent directions as
    vectors. Attribute streams missing from some meshes are filled with
    defaults (normal (1, 0, 0), tangent (0, 0, 1, 1), white, zero UVs and
    zero bone weights). Blend shapes are not carried over.

    Args:
        meshes: The meshes to combine
        transforms: Optional 4x4 transform per mesh (identity if None)
        materials: Optional material key per submesh of every mesh.
            Submeshes with equal keys are merged. Without materials every
            submesh stays separate.
        bones: Optional bone identifiers per mesh. When given, bones that
            share identifier and bind pose are merged and bone indices are
            remapped; the combined mesh then carries the merged bind poses.

    Returns:
        Tuple of (combined mesh, material key of every combined submesh)

    Raises:
        ValueError: if the argument lengths do not match
    """
    if len(meshes) == 0:
        raise ValueError("No meshes to combine")
    if transforms is not None and len(transforms) != len(meshes):
        raise ValueError("The number of transforms doesn't match the number of meshes")
    if materials is not None and len(materials) != len(meshes):
        raise ValueError("The number of material lists doesn't match the number of meshes")
    if bones is not None and len(bones) != len(meshes):
        raise ValueError("The number of bone lists doesn't match the number of meshes")

    for mesh_index, mesh in enumerate(meshes):
        mesh.validate()
        if materials is not None and len(materials[mesh_index]) != mesh.submesh_count:
            raise ValueError(
                f"The materials for mesh at index {mesh_index} don't match its submesh count "
                f"({len(materials[mesh_index])} != {mesh.submesh_count})")

    counts = [mesh.vertex_count for mesh in meshes]
    positions = []
    normals = []
    tangents = []
    bone_indices = []
    used_bones: List[Hashable] = []
    used_bindposes: List[np.ndarray] = []

    for mesh_index, mesh in enumerate(meshes):
        transform = np.eye(4) if transforms is None else np.asarray(transforms[mesh_index], dtype=np.float64)
        positions.append(_transform_points(np.asarray(mesh.vertices, dtype=np.float64), transform))

        normals.append(None if mesh.normals is None else
                       _transform_vectors(np.asarray(mesh.normals, dtype=np.float64), transform))
        if mesh.tangents is None:
            tangents.append(None)
        else:
            tangent = np.array(mesh.tangents, dtype=np.float64)
            tangent[:, :3] = _transform_vectors(tangent[:, :3], transform)
            tangents.append(tangent)

        indices = None if mesh.bone_indices is None else np.array(mesh.bone_indices, dtype=np.int64)
        mesh_bones = None if bones is None else bones[mesh_index]
        if (indices is not None and mesh_bones is not None and mesh.bindposes is not None
                and len(mesh_bones) == len(mesh.bindposes) > 0):
            bone_map = np.zeros(len(mesh_bones), dtype=np.int64)
            for i, (bone, bindpose) in enumerate(zip(mesh_bones, mesh.bindposes)):
                used_index = next((j for j, (b, p) in enumerate(zip(used_bones, used_bindposes))
                                   if b == bone and np.array_equal(p, bindpose)), -1)
                if used_index == -1:
                    used_index = len(used_bones)
                    used_bones.append(bone)
                    used_bindposes.append(np.asarray(bindpose, dtype=np.float64))
                bone_map[i] = used_index

            weighted = np.asarray(mesh.bone_weights) > 0
            indices[weighted] = bone_map[indices[weighted]]
        bone_indices.append(indices)

    combined_positions = np.concatenate(positions)
    combined_normals = _combine_stream(normals, counts, DEFAULT_NORMAL)
    combined_tangents = _combine_stream(tangents, counts, DEFAULT_TANGENT)
    combined_colors = _combine_stream(
        [None if mesh.colors is None else _to_float_colors(mesh.colors) for mesh in meshes],
        counts, DEFAULT_COLOR)
    combined_uvs = [
        _combine_stream([None if mesh.uvs[channel] is None else
                         np.asarray(mesh.uvs[channel], dtype=np.float64) for mesh in meshes],
                        counts, (0.0, 0.0, 0.0, 0.0))
        for channel in range(UV_CHANNEL_COUNT)
    ]
    combined_bone_indices = _combine_stream(bone_indices, counts, (0, 0, 0, 0))
    combined_bone_weights = _combine_stream(
        [None if mesh.bone_weights is None else np.asarray(mesh.bone_weights, dtype=np.float64)
         for mesh in meshes],
        counts, (0.0, 0.0, 0.0, 0.0))

    # Merge submeshes by material
    combined_submeshes: List[np.ndarray] = []
    result_materials: List[Hashable] = []
    material_map = {}
    vertex_offset = 0
    for mesh_index, mesh in enumerate(meshes):
        for submesh_index, indices in enumerate(mesh.submeshes):
            material = ((mesh_index, submesh_index) if materials is None
                        else materials[mesh_index][submesh_index])
            indices = np.asarray(indices, dtype=np.int64) + vertex_offset
            if material in material_map:
                existing = material_map[material]
                combined_submeshes[existing] = np.concatenate([combined_submeshes[existing], indices])
            else:
                material_map[material] = len(combined_submeshes)
                result_materials.append(material)
                combined_submeshes.append(indices)
        vertex_offset += mesh.vertex_count

    combined = MeshData(
        vertices=combined_positions,
        submeshes=combined_submeshes,
        normals=combined_normals,
        tangents=combined_tangents,
        colors=combined_colors,
        uvs=combined_uvs,
        bone_indices=None if combined_bone_indices is None else combined_bone_indices.astype(np.int32),
        bone_weights=combined_bone_weights,
        bindposes=np.array(used_bindposes) if used_bindposes else None,
    )
    return combined, result_materials
