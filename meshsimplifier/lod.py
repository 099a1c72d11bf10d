"""
LOD Generation
==============

Builds a chain of level-of-detail meshes from one source mesh. Every level
is an independent simplification of the source, so levels can run in
separate worker processes.
"""

import time
from concurrent.futures import ProcessPoolExecutor
from typing import List, Optional, Sequence

from .mesh_data import MeshData
from .mesh_simplifier import simplify
from .options import SimplificationOptions


def _simplify_worker(mesh: MeshData, quality: float,
                     options: Optional[SimplificationOptions]) -> MeshData:
    return simplify(mesh, quality, options)


def generate_lods(mesh: MeshData, qualities: Sequence[float],
                  options: Optional[SimplificationOptions] = None,
                  max_workers: Optional[int] = None,
                  verbose: bool = False) -> List[MeshData]:
    """
    Simplify a mesh once per quality level.

    Args:
        mesh: Source mesh
        qualities: Fraction of triangles to keep for each level
        options: Simplification options shared by every level
        max_workers: Run levels in this many worker processes (sequential
            when None or 1)
        verbose: Print a line per finished level

    Returns:
        Simplified meshes, in the order of qualities
    """
    mesh.validate()
    if options is not None:
        options.validate()

    start_time = time.time()
    qualities = list(qualities)

    if max_workers is None or max_workers <= 1:
        results = [_simplify_worker(mesh, quality, options) for quality in qualities]
    else:
        with ProcessPoolExecutor(max_workers=max_workers) as executor:
            results = list(executor.map(
                _simplify_worker,
                [mesh] * len(qualities),
                qualities,
                [options] * len(qualities),
            ))

    if verbose:
        for quality, result in zip(qualities, results):
            print(f"  LOD quality {quality:.2f}: {result.triangle_count} triangles, "
                  f"{result.vertex_count} vertices")
        print(f"Generated {len(results)} LODs in {time.time() - start_time:.2f}s")

    return results
