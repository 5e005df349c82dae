"""
Top view of the slab array on its Rowland circle.
"""

from __future__ import annotations

from typing import Optional

import numpy as np
import matplotlib.pyplot as plt
from matplotlib.patches import Circle

from ..config import LAYOUT_FIGSIZE, PLOT_DPI, RAY_COLOR, SLAB_COLOR
from ..core.data_classes import RowlandGeometry
from ..core.geometry import aperture_limit_point, rotate_about_y, to_planar


def slab_segments(geometry: RowlandGeometry) -> np.ndarray:
    """End points of every slab in the horizontal plane, shape (N, 2, 2) as (z, x)."""
    segments = np.empty((geometry.n_slabs, 2, 2))
    for h in range(geometry.n_slabs):
        centre = to_planar(geometry.positions[h])
        along = to_planar(rotate_about_y(np.array([0.0, 0.0, 1.0]), geometry.tilts[h]))
        segments[h, 0] = centre - 0.5 * geometry.slab_width * along
        segments[h, 1] = centre + 0.5 * geometry.slab_width * along
    return segments


def plot_array_layout(
    geometry: RowlandGeometry,
    save_path: Optional[str] = None,
    show: bool = True,
    zoom: bool = False,
):
    """Plot the Rowland circle, slabs and the rays bounding the aperture.

    Parameters
    ----------
    geometry : RowlandGeometry
        Built array.
    save_path : str, optional
        File name of the saved figure.
    zoom : bool
        Restrict the view to the array itself.
    """
    fig, ax = plt.subplots(figsize=LAYOUT_FIGSIZE)

    ax.add_patch(Circle(tuple(geometry.center), geometry.radius, fill=False,
                        linestyle=':', edgecolor='gray', label='Rowland circle'))

    for side in (-1, 1):
        limit = aperture_limit_point(side, np.zeros(2), 0.5 * geometry.coverage,
                                     geometry.center, geometry.radius)
        path = np.array([geometry.source, limit, geometry.sink])
        ax.plot(path[:, 0], path[:, 1], color=RAY_COLOR, linewidth=1, alpha=0.7,
                label='Aperture limit' if side < 0 else None)

    for h, (start, end) in enumerate(slab_segments(geometry)):
        ax.plot([start[0], end[0]], [start[1], end[1]], color=SLAB_COLOR, linewidth=3,
                label='Slabs' if h == 0 else None)

    ax.plot(*geometry.source, 'o', color='green', label='Source')
    ax.plot(*geometry.sink, 's', color='red', label='Focus')
    ax.plot(*geometry.center, '+', color='black')

    if zoom:
        half = 0.75 * geometry.n_slabs * geometry.slab_width
        ax.set_xlim(-half, half)
        ax.set_ylim(-half, half)

    ax.set_xlabel('z (m)')
    ax.set_ylabel('x (m)')
    ax.set_title(f'Rowland Array ({geometry.n_slabs} slabs, {geometry.focusing.value} focusing)')
    ax.set_aspect('equal')
    ax.grid(True, alpha=0.3)
    ax.legend(loc='best')

    if save_path:
        plt.savefig(save_path, dpi=PLOT_DPI, bbox_inches='tight')
        print(f"[info] Saved array layout to {save_path}")

    if show:
        plt.show()
    else:
        plt.close(fig)
