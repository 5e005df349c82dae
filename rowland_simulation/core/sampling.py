"""
Random sampling utilities for neutron generation.
"""

from __future__ import annotations

import math
from typing import Tuple

import numpy as np

from .constants import K2V
from .data_classes import NeutronState, RowlandGeometry
from .geometry import from_planar


def sample_wavelength(
    rng: np.random.Generator,
    wavelength_min: float,
    wavelength_max: float,
) -> float:
    """Sample a wavelength uniformly in ``[wavelength_min, wavelength_max]`` (Angstrom)."""
    if wavelength_min <= 0.0 or wavelength_max < wavelength_min:
        raise ValueError(f"Invalid wavelength band [{wavelength_min}, {wavelength_max}]")
    return float(rng.uniform(wavelength_min, wavelength_max))


def wavelength_to_speed(wavelength: float) -> float:
    """Neutron speed (m/s) for a wavelength in Angstrom."""
    return K2V * 2.0 * math.pi / wavelength


def sample_source_point(
    rng: np.random.Generator,
    source: np.ndarray,
    source_width: float = 0.0,
    source_height: float = 0.0,
) -> np.ndarray:
    """Sample an emission point on a rectangular source centred on ``source``.

    The rectangle is perpendicular to the line joining the source and the
    array origin; a zero size gives a point source.
    """
    point = from_planar(source, 0.0)
    if source_width <= 0.0 and source_height <= 0.0:
        return point
    axis = -point / np.linalg.norm(point)
    up = np.array([0.0, 1.0, 0.0])
    side = np.cross(up, axis)
    side /= np.linalg.norm(side)
    point = point + side * source_width * (rng.random() - 0.5)
    point[1] += source_height * (rng.random() - 0.5)
    return point


def sample_aim_point(rng: np.random.Generator, geometry: RowlandGeometry) -> np.ndarray:
    """Pick a target point on the arc covered by the array.

    The azimuth is uniform over the coverage and the height uniform over the
    slab height, so that every acceptance window is illuminated.
    """
    angle = rng.uniform(geometry.edges[0], geometry.edges[-1])
    planar = geometry.center + geometry.radius * np.array([math.cos(angle), math.sin(angle)])
    y = geometry.slab_height * (rng.random() - 0.5)
    return from_planar(planar, y)


def sample_incident_neutron(
    rng: np.random.Generator,
    geometry: RowlandGeometry,
    wavelength_range: Tuple[float, float],
    source_width: float = 0.0,
    source_height: float = 0.0,
) -> Tuple[float, NeutronState]:
    """Create a neutron leaving the source towards the array.

    Returns
    -------
    tuple : (wavelength, NeutronState)
        Wavelength in Angstrom and the state in the array frame.
    """
    wavelength = sample_wavelength(rng, *wavelength_range)
    start = sample_source_point(rng, geometry.source, source_width, source_height)
    direction = sample_aim_point(rng, geometry) - start
    direction /= np.linalg.norm(direction)
    state = NeutronState(
        position=start,
        velocity=wavelength_to_speed(wavelength) * direction,
    )
    return wavelength, state
