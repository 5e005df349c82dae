"""
Simulation results visualization.

This module provides visualization functions for monochromator simulation
results: outcome fractions, per-slab load, reflected wavelength band and
focusing quality, plus a statistical summary.
"""

from __future__ import annotations

from typing import List, Optional

import numpy as np
import matplotlib.pyplot as plt

from ..config import PLOT_DPI, RESULTS_FIGSIZE
from ..core.constants import V2K
from ..core.data_classes import NeutronRecord, Outcome


def _final_wavelengths(records: List[NeutronRecord]) -> np.ndarray:
    speeds = np.array([np.linalg.norm(r.final_velocity) for r in records])
    return 2.0 * np.pi / (V2K * speeds)


def visualize_results(
    records: List[NeutronRecord],
    n_slabs: int,
    save_path: Optional[str] = None,
    show: bool = True,
):
    """Create overview plots of a simulation run.

    Parameters
    ----------
    records : List[NeutronRecord]
        List of ALL neutron records from simulation.
    n_slabs : int
        Number of slabs in the array.
    save_path : str, optional
        Base path for saving figures.
    show : bool
        Whether to open the figure window.
    """
    if not records:
        print("[warning] No neutron records to visualize.")
        return

    scattered = [r for r in records if r.outcome == Outcome.SCATTERED.value]
    initial_wavelengths = np.array([r.initial_wavelength for r in records])

    fig, axes = plt.subplots(2, 2, figsize=RESULTS_FIGSIZE)

    # 1. Outcome fractions (top-left)
    ax1 = axes[0, 0]
    labels = [o.value for o in Outcome]
    counts = [sum(1 for r in records if r.outcome == label) for label in labels]
    ax1.bar(labels, np.array(counts) / len(records), color=['tab:green', 'tab:blue', 'tab:red', 'gray'])
    ax1.set_ylabel('Fraction')
    ax1.set_title('Neutron Outcomes')
    ax1.grid(True, alpha=0.3, axis='y')

    # 2. Weighted scattering per slab (top-right)
    ax2 = axes[0, 1]
    slab_weight = np.zeros(n_slabs)
    for r in scattered:
        slab_weight[r.slab_index] += r.weight
    ax2.bar(np.arange(n_slabs), slab_weight, color='teal', alpha=0.7)
    ax2.set_xlabel('Slab index')
    ax2.set_ylabel('Scattered weight')
    ax2.set_title('Reflected Intensity per Slab')
    ax2.grid(True, alpha=0.3, axis='y')

    # 3. Wavelength band (bottom-left)
    ax3 = axes[1, 0]
    ax3.hist(initial_wavelengths, bins=50, alpha=0.5, label='Incident', color='blue')
    if scattered:
        ax3.hist(_final_wavelengths(scattered), bins=50, alpha=0.7, label='Reflected (weighted)',
                 weights=[r.weight for r in scattered], color='red')
    ax3.set_xlabel('Wavelength (Å)')
    ax3.set_ylabel('Count')
    ax3.set_title('Wavelength Distribution')
    ax3.legend()
    ax3.grid(True, alpha=0.3)

    # 4. Focus miss distance (bottom-right)
    ax4 = axes[1, 1]
    misses = np.array([r.focus_miss_distance for r in scattered if r.focus_miss_distance is not None])
    if misses.size:
        ax4.hist(misses * 1e3, bins=50, color='purple', alpha=0.7)
        ax4.axvline(np.median(misses) * 1e3, color='red', linestyle='--', linewidth=2,
                    label=f'Median: {np.median(misses) * 1e3:.2f} mm')
        ax4.legend()
    ax4.set_xlabel('Miss distance at focus (mm)')
    ax4.set_ylabel('Count')
    ax4.set_title('Focusing Quality')
    ax4.grid(True, alpha=0.3)

    plt.tight_layout()

    if save_path:
        plt.savefig(f"{save_path}_overview.png", dpi=PLOT_DPI, bbox_inches='tight')
        print(f"[info] Saved overview visualization to {save_path}_overview.png")

    if show:
        plt.show()
    else:
        plt.close(fig)


def print_statistics(records: List[NeutronRecord], n_total: int):
    """Print statistical summary of simulation results.

    Parameters
    ----------
    records : List[NeutronRecord]
        List of ALL neutron records from simulation.
    n_total : int
        Total number of neutrons simulated.
    """
    if not records:
        print(f"\n[Statistics] No neutron records to display.")
        return

    scattered = [r for r in records if r.outcome == Outcome.SCATTERED.value]

    print("\n" + "="*60)
    print("MONOCHROMATOR STATISTICS")
    print("="*60)
    print(f"Total neutrons simulated: {n_total}")
    for outcome in Outcome:
        count = sum(1 for r in records if r.outcome == outcome.value)
        print(f"{outcome.value.replace('_', ' ').capitalize():<16} {count:>8} ({100 * count / n_total:.2f}%)")

    if scattered:
        weights = np.array([r.weight for r in scattered])
        wavelengths = _final_wavelengths(scattered)
        mean = np.average(wavelengths, weights=weights) if weights.sum() > 0 else np.mean(wavelengths)
        print("-"*60)
        print(f"Total reflected weight:      {weights.sum():.4f}")
        print(f"Mean reflected wavelength:   {mean:.4f} Å")
        print(f"Reflected wavelength spread: {np.std(wavelengths):.4f} Å")
        angles = np.degrees([r.scattering_angle for r in scattered])
        print(f"Mean scattering angle:       {np.mean(angles):.3f}°")
        misses = [r.focus_miss_distance for r in scattered if r.focus_miss_distance is not None]
        if misses:
            print(f"Median focus miss distance:  {np.median(misses) * 1e3:.3f} mm")
    print("="*60)
