"""
Utility Functions
=================

Conversion between MeshData and trimesh, mesh loading/saving, and sample
mesh creation utilities.
"""

from typing import List, Optional
import numpy as np
import trimesh

from .combiner import combine_meshes
from .mesh_data import MeshData, get_used_uv_components


def from_trimesh(mesh: trimesh.Trimesh, include_normals: bool = True) -> MeshData:
    """
    Convert a trimesh object into MeshData with a single submesh.

    Vertex normals are always taken; texture coordinates and per-vertex
    colors are taken when the mesh visual carries them.

    Args:
        mesh: Input trimesh object
        include_normals: Whether to copy the vertex normals

    Returns:
        Mesh data copy of the trimesh buffers
    """
    uvs: List[Optional[np.ndarray]] = [None, None, None, None]
    colors = None

    visual = mesh.visual
    if visual is not None:
        if visual.kind == 'texture' and getattr(visual, 'uv', None) is not None \
                and len(visual.uv) == len(mesh.vertices):
            uvs[0] = np.array(visual.uv, dtype=np.float64)
        elif visual.kind == 'vertex':
            colors = np.array(visual.vertex_colors, copy=True)

    return MeshData(
        vertices=np.array(mesh.vertices, dtype=np.float64),
        submeshes=[np.array(mesh.faces, dtype=np.int64).reshape(-1)],
        normals=np.array(mesh.vertex_normals, dtype=np.float64) if include_normals else None,
        colors=colors,
        uvs=uvs,
    )


def to_trimesh(mesh: MeshData) -> trimesh.Trimesh:
    """
    Convert MeshData into a trimesh object. All submeshes are merged into
    one face array; the first UV channel (or the vertex colors) become the
    visual.

    Args:
        mesh: Mesh data

    Returns:
        Unprocessed trimesh object sharing the vertex order of mesh
    """
    result = trimesh.Trimesh(
        vertices=np.asarray(mesh.vertices, dtype=np.float64),
        faces=mesh.get_triangles(),
        vertex_normals=None if mesh.normals is None else np.asarray(mesh.normals, dtype=np.float64),
        process=False,
    )

    if mesh.uvs[0] is not None:
        result.visual = trimesh.visual.TextureVisuals(uv=np.asarray(mesh.uvs[0])[:, :2])
    elif mesh.colors is not None:
        result.visual = trimesh.visual.ColorVisuals(result, vertex_colors=np.asarray(mesh.colors))

    return result


def load_mesh(path: str) -> MeshData:
    """
    Load a mesh from file.

    Supports: OBJ, PLY, STL, OFF, GLB and other formats supported by trimesh.
    Scenes are flattened: every geometry instance is transformed into world
    space and becomes its own submesh.

    Args:
        path: Path to mesh file

    Returns:
        Loaded mesh data
    """
    loaded = trimesh.load(path)

    if isinstance(loaded, trimesh.Scene):
        meshes = []
        transforms = []
        materials = []
        for node_name in loaded.graph.nodes_geometry:
            transform, geometry_name = loaded.graph[node_name]
            geometry = loaded.geometry[geometry_name]
            if isinstance(geometry, trimesh.Trimesh) and len(geometry.faces) > 0:
                meshes.append(from_trimesh(geometry))
                transforms.append(transform)
                materials.append([geometry_name])
        if not meshes:
            raise ValueError("No valid meshes found in file")
        combined, _ = combine_meshes(meshes, transforms, materials)
        return combined

    return from_trimesh(loaded)


def save_mesh(mesh: MeshData, path: str):
    """
    Save a mesh to file.

    Args:
        mesh: Mesh to save
        path: Output path
    """
    to_trimesh(mesh).export(path)
    print(f"Saved mesh to: {path}")


def create_sample_mesh(mesh_type: str = "sphere", subdivisions: int = 3) -> MeshData:
    """
    Create a sample mesh for testing.

    Args:
        mesh_type: Type of mesh to create:
            - "sphere": Icosphere
            - "torus": Torus
            - "cube": Subdivided cube
            - "cylinder": Cylinder
            - "grid": Wavy open grid
        subdivisions: Icosphere subdivision level

    Returns:
        Generated mesh data
    """
    if mesh_type == "grid":
        return create_mesh_with_boundary()

    if mesh_type == "sphere":
        mesh = trimesh.creation.icosphere(subdivisions=subdivisions, radius=1.0)
    elif mesh_type == "torus":
        mesh = trimesh.creation.torus(major_radius=1.0, minor_radius=0.3,
                                      major_sections=48, minor_sections=24)
    elif mesh_type == "cube":
        mesh = trimesh.creation.box(extents=[1, 1, 1])
        # Subdivide for more faces
        for _ in range(3):
            mesh = mesh.subdivide()
    elif mesh_type == "cylinder":
        mesh = trimesh.creation.cylinder(radius=0.5, height=2.0, sections=48)
    else:
        raise ValueError(f"Unknown sample mesh type: {mesh_type}")

    return from_trimesh(mesh)


def create_mesh_with_boundary(rows: int = 20, cols: int = 20,
                              amplitude: float = 0.2,
                              noise: float = 0.0,
                              seed: Optional[int] = None) -> MeshData:
    """
    Create a mesh with boundaries (open surface) for testing boundary preservation.

    Creates a wavy surface grid with two triangles per cell and UVs
    spanning [0, 1].

    Args:
        rows: Number of vertex rows in the grid
        cols: Number of vertex columns in the grid
        amplitude: Height of the waves (0 gives a flat grid)
        noise: Standard deviation of random vertex jitter
        seed: Seed for the jitter

    Returns:
        Open surface mesh data
    """
    x = np.linspace(-1, 1, cols)
    y = np.linspace(-1, 1, rows)
    X, Y = np.meshgrid(x, y)

    Z = amplitude * np.sin(3 * X) * np.cos(3 * Y)

    vertices = np.column_stack([X.flatten(), Y.flatten(), Z.flatten()])
    if noise > 0:
        rng = np.random.default_rng(seed)
        vertices += rng.normal(scale=noise, size=vertices.shape)

    # Two triangles per grid cell
    faces = []
    for i in range(rows - 1):
        for j in range(cols - 1):
            idx = i * cols + j
            faces.append([idx, idx + 1, idx + cols])
            faces.append([idx + 1, idx + cols + 1, idx + cols])

    uvs = np.column_stack([(X.flatten() + 1) / 2, (Y.flatten() + 1) / 2])
    normals = np.array(trimesh.Trimesh(vertices=vertices, faces=np.array(faces),
                                       process=False).vertex_normals)

    return MeshData(
        vertices=vertices,
        submeshes=[np.array(faces, dtype=np.int64).reshape(-1)],
        normals=normals,
        uvs=[uvs, None, None, None],
    )


def create_quad_strip(quads: int = 10, width: float = 1.0) -> MeshData:
    """
    Create a flat strip of quads along X; every vertex lies on the border.

    Args:
        quads: Number of quads
        width: Width of the strip along Y

    Returns:
        Flat strip mesh data
    """
    xs = np.arange(quads + 1, dtype=np.float64)
    bottom = np.column_stack([xs, np.zeros_like(xs), np.zeros_like(xs)])
    top = np.column_stack([xs, np.full_like(xs, width), np.zeros_like(xs)])
    vertices = np.concatenate([bottom, top])

    n = quads + 1
    faces = []
    for i in range(quads):
        faces.append([i, i + 1, n + i])
        faces.append([i + 1, n + i + 1, n + i])

    return MeshData(
        vertices=vertices,
        submeshes=[np.array(faces, dtype=np.int64).reshape(-1)],
        normals=np.tile([0.0, 0.0, 1.0], (len(vertices), 1)),
    )


def create_textured_cube(subdivisions: int = 2) -> MeshData:
    """
    Create a cube whose faces have separate vertices and UVs, so every cube
    edge is a UV seam. Each face becomes a grid of (subdivisions + 1)^2
    vertices.

    Args:
        subdivisions: Number of grid cells along each face edge

    Returns:
        Cube mesh data with normals, tangents and UVs
    """
    # (normal, u axis, v axis) per face; u x v == normal keeps outward winding
    frames = [
        ((1, 0, 0), (0, 1, 0), (0, 0, 1)),
        ((-1, 0, 0), (0, 0, 1), (0, 1, 0)),
        ((0, 1, 0), (0, 0, 1), (1, 0, 0)),
        ((0, -1, 0), (1, 0, 0), (0, 0, 1)),
        ((0, 0, 1), (1, 0, 0), (0, 1, 0)),
        ((0, 0, -1), (0, 1, 0), (1, 0, 0)),
    ]
    steps = np.linspace(-0.5, 0.5, subdivisions + 1)
    n = subdivisions + 1

    vertices = []
    normals = []
    tangents = []
    uvs = []
    faces = []
    for normal, u_axis, v_axis in frames:
        normal = np.array(normal, dtype=np.float64)
        u_axis = np.array(u_axis, dtype=np.float64)
        v_axis = np.array(v_axis, dtype=np.float64)
        base = len(vertices)
        for j, v in enumerate(steps):
            for i, u in enumerate(steps):
                vertices.append(normal * 0.5 + u_axis * u + v_axis * v)
                normals.append(normal)
                tangents.append([u_axis[0], u_axis[1], u_axis[2], 1.0])
                uvs.append([i / subdivisions, j / subdivisions])
        for j in range(subdivisions):
            for i in range(subdivisions):
                a = base + j * n + i
                faces.append([a, a + 1, a + n])
                faces.append([a + 1, a + n + 1, a + n])

    return MeshData(
        vertices=np.array(vertices),
        submeshes=[np.array(faces, dtype=np.int64).reshape(-1)],
        normals=np.array(normals),
        tangents=np.array(tangents),
        uvs=[np.array(uvs), None, None, None],
    )


def get_mesh_info(mesh: MeshData) -> dict:
    """
    Get comprehensive information about a mesh.

    Args:
        mesh: Input mesh

    Returns:
        Dictionary of mesh properties
    """
    tm = to_trimesh(mesh)
    boundary = trimesh.grouping.group_rows(tm.edges_sorted, require_count=1)

    info = {
        'vertices': mesh.vertex_count,
        'faces': mesh.triangle_count,
        'submeshes': mesh.submesh_count,
        'index_format': mesh.index_format.name,
        'uv_channels': sum(1 for uv in mesh.uvs if uv is not None),
        'uv_components': [get_used_uv_components(uv) for uv in mesh.uvs],
        'blend_shapes': len(mesh.blend_shapes),
        'is_watertight': tm.is_watertight,
        'euler_number': tm.euler_number,
        'bounds': tm.bounds.tolist(),
        'area': float(tm.area),
        'boundary_edges': len(boundary),
    }

    # Volume (only for watertight meshes)
    if tm.is_watertight:
        info['volume'] = float(tm.volume)
    else:
        info['volume'] = 'N/A (not watertight)'

    return info


def print_mesh_info(mesh: MeshData, name: str = "Mesh"):
    """
    Print mesh information to console.

    Args:
        mesh: Input mesh
        name: Name to display
    """
    info = get_mesh_info(mesh)

    print(f"\n{name} Information:")
    print("-" * 40)
    print(f"  Vertices:        {info['vertices']}")
    print(f"  Faces:           {info['faces']}")
    print(f"  Submeshes:       {info['submeshes']}")
    print(f"  Index Format:    {info['index_format']}")
    print(f"  UV Channels:     {info['uv_channels']}")
    print(f"  UV Components:   {info['uv_components']}")
    print(f"  Blend Shapes:    {info['blend_shapes']}")
    print(f"  Boundary Edges:  {info['boundary_edges']}")
    print(f"  Watertight:      {info['is_watertight']}")
    print(f"  Euler Number:    {info['euler_number']}")
    print(f"  Surface Area:    {info['area']:.4f}")
    print(f"  Volume:          {info['volume']}")
