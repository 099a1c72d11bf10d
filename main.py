"""
Mesh Simplification - Main Demo
===============================

Demonstrates mesh simplification using Quadric Error Metrics (QEM).

This script:
1. Loads a mesh or creates a sample mesh
2. Simplifies it at several quality levels
3. Computes quantitative metrics
4. Exports the results and optionally plots comparisons
"""

import argparse
import time
from pathlib import Path

import matplotlib.pyplot as plt

from meshsimplifier import (MeshEvaluator, MeshSimplifier, MeshVisualizer,
                            SimplificationOptions)
from meshsimplifier.mesh_data import MeshData
from meshsimplifier.utils import create_sample_mesh, load_mesh, print_mesh_info, save_mesh


def run_single_simplification(mesh: MeshData, quality: float,
                              options: SimplificationOptions,
                              lossless: bool = False,
                              verbose: bool = False) -> tuple:
    """
    Run a single simplification and return the simplified mesh with its runtime.
    """
    simplifier = MeshSimplifier(options, verbose=verbose)
    simplifier.initialize(mesh)

    start_time = time.time()
    if lossless:
        simplifier.simplify_mesh_lossless()
    else:
        simplifier.simplify_mesh(quality)
    runtime = time.time() - start_time

    return simplifier.to_mesh(), runtime


def demo_simplification(mesh: MeshData, ratios: list, options: SimplificationOptions,
                        output_dir: Path, mesh_name: str, plot: bool = False,
                        verbose: bool = False):
    """
    Simplify at every ratio, print a summary per level and export the results.
    """
    print("\n" + "=" * 60)
    print("SIMPLIFICATION")
    print("=" * 60)

    evaluator = MeshEvaluator()
    simplified_meshes = []
    metrics_list = []
    runtimes = []

    for ratio in ratios:
        print(f"\n--- Simplifying to {ratio*100:.0f}% ---")

        simplified, runtime = run_single_simplification(mesh, ratio, options, verbose=verbose)
        simplified_meshes.append(simplified)
        runtimes.append(runtime)

        metrics = evaluator.compute_all_metrics(mesh, simplified)
        metrics['runtime'] = runtime
        metrics_list.append(metrics)

        print(f"  Faces: {mesh.triangle_count} -> {simplified.triangle_count} "
              f"({simplified.triangle_count/mesh.triangle_count*100:.1f}%)")
        print(f"  Vertices: {mesh.vertex_count} -> {simplified.vertex_count}")
        print(f"  Hausdorff: {metrics['hausdorff_distance']:.6f}")
        print(f"  Runtime: {runtime:.3f}s")

    evaluator.print_report(metrics_list[-1], f"QEM ({ratios[-1]*100:.0f}% target)")

    for ratio, simplified in zip(ratios, simplified_meshes):
        save_mesh(simplified, str(output_dir / f"{mesh_name}_simplified_{int(ratio*100)}pct.ply"))

    if plot:
        print("\nGenerating visualizations...")
        visualizer = MeshVisualizer()

        fig = visualizer.plot_mesh_comparison(
            mesh, simplified_meshes[-1],
            title=f"{mesh_name} - Original vs {ratios[-1]*100:.0f}% Simplified",
            save_path=str(output_dir / f"{mesh_name}_comparison.png")
        )
        plt.close(fig)

        labels = ["Original (100%)"] + [f"{r*100:.0f}%" for r in ratios]
        fig = visualizer.plot_multi_resolution(
            [mesh] + simplified_meshes, labels,
            title=f"{mesh_name} - Multi-Resolution",
            save_path=str(output_dir / f"{mesh_name}_multi_resolution.png")
        )
        plt.close(fig)

        fig = visualizer.plot_statistics(
            mesh, simplified_meshes, ratios,
            hausdorff_distances=[m['hausdorff_distance'] for m in metrics_list],
            runtimes=runtimes,
            save_path=str(output_dir / f"{mesh_name}_statistics.png")
        )
        plt.close(fig)

    return simplified_meshes, metrics_list


def main():
    """Main demo entry point."""
    parser = argparse.ArgumentParser(
        description="Mesh Simplification Demo using QEM"
    )
    parser.add_argument(
        "--mesh", "-m", type=str, default=None,
        help="Path to input mesh file. If not provided, uses a sample mesh."
    )
    parser.add_argument(
        "--sample", "-s", type=str, default="sphere",
        choices=["sphere", "torus", "cube", "cylinder", "grid"],
        help="Sample mesh to create when no mesh is given (default: sphere)"
    )
    parser.add_argument(
        "--output", "-o", type=str, default="output",
        help="Output directory for results"
    )
    parser.add_argument(
        "--ratios", "-r", type=float, nargs="+", default=[0.5, 0.25, 0.1],
        help="Target quality ratios (default: 0.5 0.25 0.1)"
    )
    parser.add_argument(
        "--preserve-borders", action="store_true",
        help="Never collapse vertices on open borders"
    )
    parser.add_argument(
        "--preserve-seams", action="store_true",
        help="Never collapse vertices on UV seams"
    )
    parser.add_argument(
        "--no-smart-link", action="store_true",
        help="Disable linking of coincident border vertices"
    )
    parser.add_argument(
        "--link-distance", type=float, default=None,
        help="Maximum distance for smart linking"
    )
    parser.add_argument(
        "--max-iterations", type=int, default=100,
        help="Maximum number of simplification passes (default: 100)"
    )
    parser.add_argument(
        "--aggressiveness", "-a", type=float, default=7.0,
        help="Threshold growth exponent (default: 7.0)"
    )
    parser.add_argument(
        "--boundary-weight", "-b", type=float, default=10.0,
        help="Boundary preservation weight (default: 10.0)"
    )
    parser.add_argument(
        "--lossless", action="store_true",
        help="Only perform collapses that introduce almost no error"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Print progress for every pass"
    )
    parser.add_argument(
        "--plot", "-p", action="store_true",
        help="Save comparison plots"
    )

    args = parser.parse_args()

    output_dir = Path(args.output)
    output_dir.mkdir(parents=True, exist_ok=True)

    options = SimplificationOptions(
        preserve_border_edges=args.preserve_borders,
        preserve_uv_seam_edges=args.preserve_seams,
        enable_smart_link=not args.no_smart_link,
        max_iteration_count=args.max_iterations,
        aggressiveness=args.aggressiveness,
        boundary_weight=args.boundary_weight,
    )
    if args.link_distance is not None:
        options.vertex_link_distance = args.link_distance
    options.validate()

    print("=" * 60)
    print("MESH SIMPLIFICATION")
    print("Using Quadric Error Metrics (QEM)")
    print("=" * 60)

    if args.mesh:
        print(f"\nLoading mesh from: {args.mesh}")
        mesh = load_mesh(args.mesh)
        mesh_name = Path(args.mesh).stem
    else:
        print(f"\nNo mesh specified, creating sample mesh: {args.sample}")
        mesh = create_sample_mesh(args.sample)
        mesh_name = f"sample_{args.sample}"

    print_mesh_info(mesh, mesh_name)

    if args.lossless:
        print("\n--- Lossless simplification ---")
        simplified, runtime = run_single_simplification(
            mesh, 1.0, options, lossless=True, verbose=args.verbose)
        print(f"  Faces: {mesh.triangle_count} -> {simplified.triangle_count}")
        print(f"  Runtime: {runtime:.3f}s")
        save_mesh(simplified, str(output_dir / f"{mesh_name}_lossless.ply"))
    else:
        demo_simplification(mesh, sorted(args.ratios, reverse=True), options,
                            output_dir, mesh_name, plot=args.plot, verbose=args.verbose)

    print("\n" + "=" * 60)
    print("DEMO COMPLETE")
    print(f"Results saved to: {output_dir.absolute()}")
    print("=" * 60)


if __name__ == "__main__":
    main()
