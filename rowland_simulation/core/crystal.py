"""
Mosaic crystal interaction for a single slab.

All vectors are expressed in the slab frame: the reflecting planes are
normal to ``x``, the slab width runs along ``z`` and its height along ``y``.
Wavevectors are in 1/Angstrom. The functions here never mutate their inputs
and draw random numbers only from the generator they are given, so they can
be evaluated for many particles in parallel. Their only side effect is the
clamp counters in ``constants.CLAMP_STATS``: these are process-local
diagnostics that do not feed back into the physics. Worker processes return
their counts and ``run_simulation`` sums them into the parent.
"""

from __future__ import annotations

import math
from typing import Optional, Tuple

import numpy as np

from . import constants
from .constants import (
    ANGLE_TOLERANCE,
    CLAMP_STATS,
    GAUSS_LEGENDRE_POINTS,
    MAX_WIDTH_ADAPTATIONS,
    MOSAIC_FLOOR,
    REFLECTIVITY_CEILING,
    REFLECTIVITY_WARN_LIMIT,
    SAMPLING_EXTENT_SIGMAS,
    TAIL_FLOOR,
    TRANSMISSION_CEILING,
    WIDTH_SHRINK_FACTOR,
)
from .data_classes import CrystalProperties, LookupTable, Outcome
from .geometry import build_orthonormal_frame

# Fixed Gauss-Legendre rule on [-1, 1]
GAUSS_X, GAUSS_W = np.polynomial.legendre.leggauss(GAUSS_LEGENDRE_POINTS)


def gauss(x: float, sigma: float) -> float:
    """Normalised Gaussian density with zero mean."""
    if sigma <= 0.0:
        return 1.0 if x == 0.0 else 0.0
    return math.exp(-0.5 * (x / sigma) ** 2) / (math.sqrt(2.0 * math.pi) * sigma)


def clamp_reflectivity(value: float) -> float:
    """Clamp a reflectivity to [0, 0.999]."""
    if value > REFLECTIVITY_WARN_LIMIT or value < 0.0:
        CLAMP_STATS['reflectivity_clamped'] += 1
        if constants.DEBUG:
            print(f"[warning] Reflectivity {value:.4g} outside [0, 1], clamped")
    return min(max(value, 0.0), REFLECTIVITY_CEILING)


def clamp_transmission(value: float) -> float:
    """Clamp a transmission above 1 to 0.999."""
    if value > 1.0:
        CLAMP_STATS['transmission_clamped'] += 1
        if constants.DEBUG:
            print(f"[warning] Transmission {value:.4g} above 1, clamped")
        return TRANSMISSION_CEILING
    return value


def find_bragg_order(
    ki: np.ndarray,
    tau: float,
    fixed_order: int = 0,
) -> Optional[Tuple[int, float]]:
    """Pick the reflection order closest to the Bragg condition.

    Returns
    -------
    tuple or None
        ``(order, q0x)`` with ``q0x`` the signed nominal scattering vector
        along the slab normal, or None when no order can scatter.
    """
    k = float(np.linalg.norm(ki))
    if k == 0.0:
        return None
    ratio = -2.0 * ki[0] / tau
    order = math.floor(ratio + 0.5)
    if order == 0:
        order = -1 if ratio < 0 else 1
    # negative when the neutron enters from the back, the direction of q0 flips
    order = abs(order)
    if order > 2.0 * k / tau:
        order -= 1
    if order <= 0:
        return None
    if fixed_order and order != fixed_order:
        return None
    q0x = -order * tau if ratio < 0 else order * tau
    return order, q0x


def _tilt_factor(delta: float, sigma: float, weight: float) -> float:
    if weight == 0.0:
        return 1.0
    if sigma <= 0.0:
        return 1.0 if abs(delta) <= ANGLE_TOLERANCE else 0.0
    return math.exp(-weight * delta * delta / (2.0 * sigma * sigma))


def acceptance_probability(
    ki: np.ndarray,
    q0: float,
    reflectivity: float,
    crystal: CrystalProperties,
) -> Tuple[float, float]:
    """Small-mosaic probability that the slab reflects ``ki``.

    The deviation ``delta`` of the glancing angle from the Bragg angle is
    split over the two mosaic axes according to the in-plane components of
    ``ki``: a deviation in the x-z plane is a rotation about y.

    Returns
    -------
    tuple : (theta, probability)
        Bragg angle (rad) and reflection probability.
    """
    k = float(np.linalg.norm(ki))
    theta = math.asin(q0 / (2.0 * k))
    delta = math.asin(min(1.0, abs(ki[0]) / k)) - theta

    in_plane = ki[1] * ki[1] + ki[2] * ki[2]
    if in_plane > 0.0:
        weight_y = ki[2] * ki[2] / in_plane
        weight_z = ki[1] * ki[1] / in_plane
    else:
        weight_y = weight_z = 0.5

    probability = (
        reflectivity
        * _tilt_factor(delta, crystal.rms_y, weight_y)
        * _tilt_factor(delta, crystal.rms_z, weight_z)
    )
    return theta, probability


def debye_scherrer_basis(
    ki: np.ndarray,
    q0x: float,
    theta: float,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Vectors spanning the cone of scattering vectors for a fixed Bragg angle.

    The scattering vector at cone angle ``phi`` is
    ``q = c + a*cos(phi) + b*sin(phi)``. ``b`` is normal to the plane holding
    ``ki`` and the nominal q0, ``a`` lies in that plane perpendicular to
    ``ki``; both have length ``k*sin(2*theta)`` so that ``|ki + q| = |ki|``
    and a unit step in ``phi`` moves q by its physical amount.
    """
    k = float(np.linalg.norm(ki))
    ku = ki / k
    cos_2theta = math.cos(2.0 * theta)
    k_sin_2theta = k * math.sin(2.0 * theta)

    b = np.cross(ki, np.array([q0x, 0.0, 0.0]))
    norm_b = np.linalg.norm(b)
    if norm_b <= 1e-12 * k * abs(q0x):
        # normal incidence: any direction perpendicular to ki spans the cone
        _, b, _ = build_orthonormal_frame(ku)
    else:
        b = b / norm_b
    b = b * k_sin_2theta
    a = np.cross(b, ku)
    c = ki * (cos_2theta - 1.0)
    return c, a, b


def cone_point(c: np.ndarray, a: np.ndarray, b: np.ndarray, phi: float) -> np.ndarray:
    return c + a * math.cos(phi) + b * math.sin(phi)


def mosaic_density(q: np.ndarray, q0x: float, crystal: CrystalProperties) -> float:
    """Anisotropic Gaussian density of crystallite orientations producing ``q``.

    Tilts of q towards y are rotations about z and vice versa. A q whose
    normal component does not point along q0 carries no weight.
    """
    if q[0] * q0x <= 0.0:
        return 0.0
    return (
        gauss(q[1] / q[0], max(crystal.rms_z, MOSAIC_FLOOR))
        * gauss(q[2] / q[0], max(crystal.rms_y, MOSAIC_FLOOR))
    )


def adapt_sampling_width(
    c: np.ndarray,
    a: np.ndarray,
    b: np.ndarray,
    q0x: float,
    theta: float,
    crystal: CrystalProperties,
) -> float:
    """Shrink the cone sampling width until its 5-sigma extent is well conditioned.

    The width starts at the largest mosaic spread projected on the cone and
    is reduced by a factor 2/3 while the points at +/-5 sigma either flip the
    normal component of q or lie deep in the negligible tails of the mosaic
    distribution, i.e. beyond ``TAIL_MARGIN`` times its own 5-sigma point.
    A width matched to the mosaic spread is never reduced, so the proposal
    is not narrower than the density it samples.
    """
    cos_theta = math.cos(theta)
    if cos_theta <= 0.0:
        width = math.pi / SAMPLING_EXTENT_SIGMAS
    else:
        width = min(crystal.rms_max / cos_theta, math.pi / SAMPLING_EXTENT_SIGMAS)

    peak = mosaic_density(c + a, q0x, crystal)
    for _ in range(MAX_WIDTH_ADAPTATIONS):
        extent = SAMPLING_EXTENT_SIGMAS * width
        q_plus = cone_point(c, a, b, extent)
        q_minus = cone_point(c, a, b, -extent)
        conditioned = q_plus[0] * q0x > 0.0 and q_minus[0] * q0x > 0.0
        if conditioned:
            if peak <= 0.0:
                break
            tail = max(mosaic_density(q_plus, q0x, crystal), mosaic_density(q_minus, q0x, crystal))
            if tail >= peak * TAIL_FLOOR:
                break
        width *= WIDTH_SHRINK_FACTOR
    return width


def cone_normalisation(
    c: np.ndarray,
    a: np.ndarray,
    b: np.ndarray,
    q0x: float,
    width: float,
    crystal: CrystalProperties,
) -> float:
    """Integral of the mosaic density over +/-5 sampling widths of the cone."""
    extent = SAMPLING_EXTENT_SIGMAS * width
    total = 0.0
    for x, w in zip(GAUSS_X, GAUSS_W):
        total += w * mosaic_density(cone_point(c, a, b, extent * x), q0x, crystal)
    return total * extent


def sample_scattering_vector(
    ki: np.ndarray,
    q0x: float,
    theta: float,
    crystal: CrystalProperties,
    rng: np.random.Generator,
) -> Tuple[np.ndarray, float]:
    """Sample q on the Debye-Scherrer cone with importance correction.

    Returns
    -------
    tuple : (q, probability)
        Scattering vector and the corrected acceptance probability in [0, 1].
    """
    c, a, b = debye_scherrer_basis(ki, q0x, theta)
    if crystal.rms_max <= 0.0:
        # perfect crystal: only the nominal reflection
        return c + a, 1.0

    width = adapt_sampling_width(c, a, b, q0x, theta, crystal)
    total = cone_normalisation(c, a, b, q0x, width, crystal)

    phi = width * rng.standard_normal()
    q = cone_point(c, a, b, phi)
    proposal = gauss(phi, width)
    if total <= 0.0 or proposal <= 0.0:
        CLAMP_STATS['degenerate_cone'] += 1
        return q, 0.0
    probability = mosaic_density(q, q0x, crystal) / (total * proposal)
    return q, min(probability, 1.0)


def crystal_interaction(
    ki: np.ndarray,
    crystal: CrystalProperties,
    rng: np.random.Generator,
    reflectivity_table: Optional[LookupTable] = None,
    transmission_table: Optional[LookupTable] = None,
) -> Tuple[Outcome, np.ndarray, float]:
    """Decide whether a slab scatters, transmits or absorbs an incident wavevector.

    Parameters
    ----------
    ki : np.ndarray, shape (3,)
        Incident wavevector in the slab frame (1/Angstrom).
    crystal : CrystalProperties
        Slab properties.
    rng : np.random.Generator
        Random stream private to this particle.
    reflectivity_table, transmission_table : LookupTable, optional
        Wavenumber-dependent values replacing ``r0`` and ``t0``.

    Returns
    -------
    tuple : (outcome, kf, weight_factor)
        ``kf`` equals ``ki`` unless the neutron was scattered; the particle
        weight must be multiplied by ``weight_factor``.
    """
    ki = np.asarray(ki, dtype=float)
    k = float(np.linalg.norm(ki))

    if crystal.r0 > 0.0:
        bragg = find_bragg_order(ki, crystal.tau, crystal.order)
        if bragg is not None:
            order, q0x = bragg
            raw = reflectivity_table.value(k) if reflectivity_table is not None else crystal.r0
            reflectivity = clamp_reflectivity(raw)
            theta, p_reflect = acceptance_probability(ki, abs(q0x), reflectivity, crystal)

            if rng.random() < p_reflect:
                q, probability = sample_scattering_vector(ki, q0x, theta, crystal, rng)
                if probability > 0.0:
                    # outgoing wavevector is ki + q
                    return Outcome.SCATTERED, ki + q, probability
                return Outcome.ABSORBED, ki.copy(), 0.0

    raw = transmission_table.value(k) if transmission_table is not None else crystal.t0
    transmission = clamp_transmission(raw)
    if transmission > 0.0:
        return Outcome.TRANSMITTED, ki.copy(), transmission
    return Outcome.ABSORBED, ki.copy(), 0.0
