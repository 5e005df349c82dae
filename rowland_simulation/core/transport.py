"""
Particle transport through the slab array.

This module finds the slab struck by a neutron, moves the neutron into that
slab's frame, hands it to the crystal interaction engine and brings the
result back into the array frame.
"""

from __future__ import annotations

import math
from typing import Optional, Tuple

import numpy as np

from . import constants
from .constants import K2V, V2K
from .crystal import crystal_interaction
from .data_classes import NeutronState, Outcome, RowlandGeometry, RowlandMonochromator
from .geometry import intersect_cylinder, planar_angle, rotate_about_y, to_planar


def find_slab_index(azimuth: float, geometry: RowlandGeometry) -> Optional[int]:
    """Return the first slab whose acceptance window encloses ``azimuth``."""
    om = geometry.reference_angle
    # bring the azimuth into the branch centred on the reference angle
    azimuth = om + math.remainder(azimuth - om, 2.0 * math.pi)
    edges = geometry.edges
    for h in range(geometry.n_slabs):
        if edges[h] <= azimuth < edges[h + 1]:
            return h
    return None


def locate_slab(state: NeutronState, geometry: RowlandGeometry) -> Optional[int]:
    """Find the slab window crossed by the neutron's trajectory.

    The trajectory is intersected with the cylinder of the Rowland circle;
    the array is only reachable through the curved side, at the exit point.
    """
    hit = intersect_cylinder(
        state.position,
        state.velocity,
        geometry.center,
        geometry.radius,
        geometry.slab_height,
    )
    if hit is None:
        return None

    _, t_out, through_side = hit
    if t_out < 0.0:
        # cylinder entirely behind the particle
        return None
    if not through_side:
        return None

    exit_point = state.position + state.velocity * t_out
    if abs(exit_point[1]) > 0.5 * geometry.slab_height:
        return None
    azimuth = planar_angle(to_planar(exit_point), geometry.center)
    return find_slab_index(azimuth, geometry)


def to_slab_frame(
    vectors: Tuple[np.ndarray, np.ndarray, np.ndarray],
    geometry: RowlandGeometry,
    index: int,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Translate then un-tilt position, velocity and spin into slab ``index``."""
    position, velocity, spin = vectors
    tilt = geometry.tilts[index]
    return (
        rotate_about_y(position - geometry.positions[index], -tilt),
        rotate_about_y(velocity, -tilt),
        rotate_about_y(spin, -tilt),
    )


def from_slab_frame(
    vectors: Tuple[np.ndarray, np.ndarray, np.ndarray],
    geometry: RowlandGeometry,
    index: int,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Inverse of :func:`to_slab_frame`."""
    position, velocity, spin = vectors
    tilt = geometry.tilts[index]
    return (
        rotate_about_y(position, tilt) + geometry.positions[index],
        rotate_about_y(velocity, tilt),
        rotate_about_y(spin, tilt),
    )


def interact_with_array(
    state: NeutronState,
    monochromator: RowlandMonochromator,
    rng: np.random.Generator,
) -> Tuple[Outcome, Optional[int]]:
    """Let one neutron encounter the slab array.

    The neutron is left untouched unless it hits a slab; on a hit it is
    moved to the slab surface and its velocity, weight and absorbed flag
    are updated from the interaction outcome.

    Returns
    -------
    tuple : (outcome, slab_index)
        ``slab_index`` is None when no slab was reached.
    """
    geometry = monochromator.geometry
    index = locate_slab(state, geometry)
    if index is None:
        return Outcome.NO_INTERACTION, None

    position, velocity, spin = to_slab_frame((state.position, state.velocity, state.spin), geometry, index)
    if velocity[0] == 0.0:
        return Outcome.NO_INTERACTION, None
    dt = -position[0] / velocity[0]
    if dt < 0.0:
        return Outcome.NO_INTERACTION, None
    position = position + velocity * dt
    if abs(position[2]) > 0.5 * geometry.slab_width or abs(position[1]) > 0.5 * geometry.slab_height:
        return Outcome.NO_INTERACTION, None

    outcome, kf, factor = crystal_interaction(
        V2K * velocity,
        monochromator.crystal,
        rng,
        reflectivity_table=monochromator.reflectivity_table,
        transmission_table=monochromator.transmission_table,
    )
    if outcome is Outcome.SCATTERED:
        velocity = K2V * kf

    state.position, state.velocity, state.spin = from_slab_frame((position, velocity, spin), geometry, index)
    state.t += dt
    if outcome is Outcome.ABSORBED:
        state.absorbed = True
    else:
        state.weight *= factor

    if constants.DEBUG:
        print(f"[debug] slab {index}: {outcome.value}, weight={state.weight:.4g}")
    return outcome, index
