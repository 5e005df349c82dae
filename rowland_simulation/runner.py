"""
Rowland Monochromator Simulation Runner Module

This module provides the main simulation runner function that can be called
from scripts or imported directly.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from . import config
from .core.array_builder import build_monochromator
from .core.constants import DEG2RAD, print_clamp_stats, reset_clamp_stats
from .core.data_classes import NeutronRecord, RowlandMonochromator
from .core.io_utils import export_neutron_records_to_csv
from .core.simulation import run_simulation
from .plotting import plot_array_layout, print_statistics, visualize_results
from .testing.reference_setups import bragg_wavelength, create_symmetric_setup


def build_default_monochromator(
    focusing: Optional[str] = None,
    verbose: bool = True,
) -> RowlandMonochromator:
    """Build the array described by the defaults in :mod:`config`."""
    source, sink = create_symmetric_setup(
        config.BRAGG_ANGLE_DEG,
        config.SOURCE_DISTANCE_M,
        config.SINK_DISTANCE_M,
    )
    return build_monochromator(
        source,
        sink,
        n_slabs=config.N_SLABS,
        slab_width=config.SLAB_WIDTH_M,
        slab_height=config.SLAB_HEIGHT_M,
        gap=config.SLAB_GAP_M,
        angle_h=config.ANGLE_H_DEG,
        angle_v=config.ANGLE_V_DEG,
        focus_radius=config.FOCUS_RADIUS_M,
        focusing=focusing or config.FOCUSING_MODE,
        mosaic=config.MOSAIC_ARCMIN,
        mosaic_h=config.MOSAIC_H_ARCMIN,
        mosaic_v=config.MOSAIC_V_ARCMIN,
        d_spacing=config.D_SPACING_AA,
        r0=config.PEAK_REFLECTIVITY,
        t0=config.TRANSMISSION,
        order=config.REFLECTION_ORDER,
        reflectivity_file=config.REFLECTIVITY_FILE,
        transmission_file=config.TRANSMISSION_FILE,
        verbose=verbose,
    )


def run_full_simulation(
    output_dir: Optional[Path] = None,
    n_neutrons: Optional[int] = None,
    focusing: Optional[str] = None,
    seed: Optional[int] = None,
    max_workers: Optional[int] = None,
    save_results: bool = True,
    generate_plots: bool = True,
) -> List[NeutronRecord]:
    """Run the complete monochromator simulation.

    This is the main entry point for running simulations. It handles:
    1. Building the slab array from the config defaults
    2. Running the Monte Carlo simulation
    3. Exporting results
    4. Generating visualization plots

    Parameters
    ----------
    output_dir : Path, optional
        Directory for output files (Data/, Figures/). If None, uses current working directory.
    n_neutrons : int, optional
        Number of neutrons to simulate. If None, uses config default.
    focusing : str, optional
        Focusing mode overriding the config default.
    seed : int, optional
        Root random seed. If None, uses config default.
    max_workers : int, optional
        Worker processes. If None, uses config default.
    save_results : bool
        Whether to save results to CSV files.
    generate_plots : bool
        Whether to generate visualization plots.

    Returns
    -------
    List[NeutronRecord]
        List of neutron records from simulation.
    """
    output_dir = Path.cwd() if output_dir is None else Path(output_dir)
    if n_neutrons is None:
        n_neutrons = config.DEFAULT_N_NEUTRONS
    if seed is None:
        seed = config.RANDOM_SEED
    if max_workers is None:
        max_workers = config.MAX_WORKERS

    monochromator = build_default_monochromator(focusing)
    geometry = monochromator.geometry

    nominal = bragg_wavelength(config.D_SPACING_AA, config.BRAGG_ANGLE_DEG)
    band = (nominal * (1.0 - config.WAVELENGTH_SPREAD), nominal * (1.0 + config.WAVELENGTH_SPREAD))

    print("\n" + "="*70)
    print("SOURCE / FOCUS CONFIGURATION")
    print("="*70)
    print(f"Bragg angle (central slab): {config.BRAGG_ANGLE_DEG:.3f}°")
    print(f"Source distance L1: {config.SOURCE_DISTANCE_M:.4f} m")
    print(f"Focus distance L2:  {config.SINK_DISTANCE_M:.4f} m")
    print(f"Nominal wavelength: {nominal:.4f} Å, band [{band[0]:.4f}, {band[1]:.4f}] Å")
    print(f"Array coverage: {geometry.coverage / DEG2RAD:.4f}°")
    print("="*70 + "\n")

    print(f"[info] Starting simulation with {n_neutrons} neutrons...")
    reset_clamp_stats()
    records = run_simulation(
        monochromator,
        n_neutrons,
        band,
        seed=seed,
        batch_size=config.BATCH_SIZE,
        max_workers=max_workers,
        source_width=config.SOURCE_WIDTH_M,
        source_height=config.SOURCE_HEIGHT_M,
    )

    print_statistics(records, n_neutrons)
    print_clamp_stats()

    if save_results and records:
        csv_filename = str(output_dir / config.DATA_OUTPUT_DIR / config.RECORDS_CSV)
        export_neutron_records_to_csv(records, filename=csv_filename)

    if generate_plots and records:
        print("[info] Generating visualizations...")
        figures_dir = output_dir / config.FIGURES_OUTPUT_DIR
        figures_dir.mkdir(parents=True, exist_ok=True)
        plot_array_layout(geometry, save_path=str(figures_dir / config.LAYOUT_FIGURE))
        visualize_results(records, geometry.n_slabs,
                          save_path=str(figures_dir / config.RESULTS_FIGURE_BASE))
        print("[info] Visualization complete!")

    monochromator.release()
    return records


def main():
    """Command-line entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Run Rowland monochromator simulation")
    parser.add_argument("-n", "--neutrons", type=int, default=None,
                        help="Number of neutrons to simulate")
    parser.add_argument("--focusing", choices=["none", "parallel", "point", "exact"], default=None,
                        help="Slab focusing mode")
    parser.add_argument("--seed", type=int, default=None,
                        help="Root random seed")
    parser.add_argument("-j", "--workers", type=int, default=None,
                        help="Number of worker processes")
    parser.add_argument("--no-save", action="store_true",
                        help="Don't save results to CSV")
    parser.add_argument("--no-plot", action="store_true",
                        help="Don't generate visualization plots")
    parser.add_argument("--output-dir", type=Path, default=None,
                        help="Output directory for results and figures")

    args = parser.parse_args()

    run_full_simulation(
        output_dir=args.output_dir,
        n_neutrons=args.neutrons,
        focusing=args.focusing,
        seed=args.seed,
        max_workers=args.workers,
        save_results=not args.no_save,
        generate_plots=not args.no_plot,
    )


if __name__ == "__main__":
    main()
