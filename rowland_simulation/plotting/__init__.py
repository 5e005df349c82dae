"""
Plotting subpackage for Rowland monochromator visualization.

This subpackage provides:
- Top-view plots of the slab array and its aperture
- Simulation result analysis plots

Example usage:
    from rowland_simulation.plotting import plot_array_layout, visualize_results

    plot_array_layout(monochromator.geometry, save_path='Figures/layout.png')
    visualize_results(records, n_slabs=7, save_path='Figures/results')
"""

from .layout import (
    plot_array_layout,
    slab_segments,
)

from .results import (
    visualize_results,
    print_statistics,
)

__all__ = [
    # Array layout
    "plot_array_layout",
    "slab_segments",
    # Simulation results
    "visualize_results",
    "print_statistics",
]
