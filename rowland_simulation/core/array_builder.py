"""
Construction of the slab array on a Rowland circle.

The builder runs once per component instance; its result is a read-only
:class:`RowlandGeometry` shared by every particle.
"""

from __future__ import annotations

import math
from typing import Optional, Tuple, Union

import numpy as np

from .constants import DEG2RAD
from .data_classes import CrystalProperties, FocusingMode, RowlandGeometry, RowlandMonochromator
from .geometry import (
    fit_circle,
    from_planar,
    planar_angle,
    to_local_frame,
    to_planar,
)
from .lookup import load_lookup_table


def locate_reference_points(
    source_absolute: np.ndarray,
    sink_absolute: np.ndarray,
    array_origin: np.ndarray,
    array_rotation: Optional[np.ndarray] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """Express absolute source/sink positions in the array frame."""
    rotation = np.eye(3) if array_rotation is None else np.asarray(array_rotation, dtype=float)
    origin = np.asarray(array_origin, dtype=float)
    return (
        to_local_frame(source_absolute, origin, rotation),
        to_local_frame(sink_absolute, origin, rotation),
    )


def chord_angle(length: float, radius: float) -> float:
    """Central angle subtended by a chord of ``length`` on a circle."""
    ratio = min(1.0, 0.5 * length / radius)
    return 2.0 * math.asin(ratio)


def glancing_angle(source: np.ndarray, sink: np.ndarray) -> float:
    """Glancing angle on the central slab from the half-angle between source and sink."""
    cos_between = float(np.dot(source, sink) / (np.linalg.norm(source) * np.linalg.norm(sink)))
    half_between = 0.5 * math.acos(max(-1.0, min(1.0, cos_between)))
    return 0.5 * math.pi - half_between


def derive_focus_radius(mode: FocusingMode, source: np.ndarray, sink: np.ndarray) -> float:
    """Effective horizontal focusing radius for the approximate focusing modes.

    PARALLEL treats the incoming beam as parallel (``L1`` at infinity),
    POINT uses the lens equation ``1/L1 + 1/L2 = 2 / (RH sin(theta))``.
    """
    l1 = float(np.linalg.norm(source))
    l2 = float(np.linalg.norm(sink))
    sin_theta = math.sin(glancing_angle(source, sink))
    if mode is FocusingMode.PARALLEL:
        return 2.0 * l2 / sin_theta
    return 2.0 * l1 * l2 / ((l1 + l2) * sin_theta)


def angular_step(
    n_slabs: int,
    slab_width: float,
    gap: float,
    coverage: float,
    radius: float,
) -> Tuple[float, float]:
    """Return ``(angular_width, angular_gap)`` of the slabs.

    With ``gap <= 0`` each slab spans the angle of its chord and the gap is
    whatever is left of the coverage; otherwise the linear gap is converted
    to an angle and the slab width takes the rest.
    """
    if gap <= 0.0:
        width = chord_angle(slab_width, radius)
        spacing = (coverage - n_slabs * width) / (n_slabs - 1) if n_slabs > 1 else 0.0
        if spacing < 0.0:
            print(f"[warning] Derived angular gap is negative ({spacing / DEG2RAD:.4f} deg): "
                  f"slabs overlap for this aperture/width/gap combination.")
    else:
        spacing = chord_angle(gap, radius)
        width = (coverage - (n_slabs - 1) * spacing) / n_slabs
        if width < chord_angle(slab_width, radius) - 1e-12:
            print(f"[warning] Angular slab width {width / DEG2RAD:.4f} deg is smaller than "
                  f"the slab chord: slabs overlap for this aperture/width/gap combination.")
    return width, spacing


def slab_edges(reference_angle: float, coverage: float, step: float, n_slabs: int) -> np.ndarray:
    """Acceptance window boundaries, ``n_slabs + 1`` values.

    The outer edges bound the coverage; interior edges sit in the middle of
    the gap between neighbouring slabs.
    """
    edges = np.empty(n_slabs + 1)
    edges[0] = reference_angle - 0.5 * coverage
    edges[-1] = reference_angle + 0.5 * coverage
    for k in range(1, n_slabs):
        edges[k] = reference_angle + (k - 0.5 * n_slabs) * step
    return edges


def build_rowland_geometry(
    source: np.ndarray,
    sink: np.ndarray,
    n_slabs: int,
    slab_width: float,
    slab_height: float,
    gap: float = 0.0,
    angle_h: float = 0.0,
    angle_v: float = 0.0,
    focus_radius: float = 0.0,
    focusing: Union[str, FocusingMode, None] = None,
    verbose: bool = False,
) -> RowlandGeometry:
    """Place ``n_slabs`` slabs on the circle through source, origin and sink.

    Parameters
    ----------
    source, sink : np.ndarray
        Virtual source and focus positions in the array frame (m).
    n_slabs : int
        Number of slabs along the arc.
    slab_width, slab_height : float
        Physical slab size (m). A zero height is derived from ``angle_v``.
    gap : float
        Linear gap between slabs (m); ``<= 0`` derives a uniform gap.
    angle_h, angle_v : float
        Horizontal/vertical half-aperture seen from the source (deg), 0 to
        derive the coverage from the slab size.
    focus_radius : float
        Explicit horizontal focusing radius (m), used when no focusing mode
        is given.
    focusing : str or FocusingMode
        'none', 'parallel', 'point' or 'exact'.

    Returns
    -------
    RowlandGeometry
    """
    if n_slabs is None or int(n_slabs) <= 0:
        raise ValueError(f"Number of slabs must be positive, got {n_slabs}")
    n_slabs = int(n_slabs)
    if not slab_width > 0.0:
        raise ValueError(f"Slab width must be positive, got {slab_width}")

    mode = FocusingMode.from_tag(focusing)
    source = np.asarray(source, dtype=float)
    sink = np.asarray(sink, dtype=float)

    if slab_height <= 0.0:
        if angle_v <= 0.0:
            raise ValueError("Slab height must be positive when no vertical aperture is given")
        slab_height = 2.0 * float(np.linalg.norm(source)) * math.tan(angle_v * DEG2RAD)

    # 1. Rowland circle through source, origin and sink
    source_planar = to_planar(source)
    sink_planar = to_planar(sink)
    circle = fit_circle(source_planar, sink_planar)
    if circle is None:
        raise ValueError(
            f"Source {source_planar} and sink {sink_planar} are collinear with the array origin: "
            f"no Rowland circle can be fitted"
        )
    center, radius = circle
    reference_angle = planar_angle(np.zeros(2), center)

    # 2. Angular coverage
    if angle_h > 0.0:
        # aperture seen from the source is an inscribed angle
        coverage = 2.0 * angle_h * DEG2RAD
    else:
        coverage = n_slabs * chord_angle(slab_width, radius)
        if gap > 0.0:
            coverage += (n_slabs - 1) * chord_angle(gap, radius)

    # 3. Slab step
    width, spacing = angular_step(n_slabs, slab_width, gap, coverage, radius)
    step = width + spacing
    if n_slabs > 1 and not step > 0.0:
        raise ValueError(f"Degenerate slab step {step:.4g} rad: aperture too small for {n_slabs} slabs")
    if not width > 0.0:
        raise ValueError(f"Degenerate angular slab width {width:.4g} rad")

    # 4. Slab placement
    positions = np.empty((n_slabs, 3))
    angles = np.empty(n_slabs)
    for h in range(n_slabs):
        angles[h] = reference_angle + (h - 0.5 * (n_slabs - 1)) * step
        point = center + radius * np.array([math.cos(angles[h]), math.sin(angles[h])])
        positions[h] = from_planar(point, 0.0)

    edges = slab_edges(reference_angle, coverage, step, n_slabs)

    # 5. Focusing
    if mode in (FocusingMode.PARALLEL, FocusingMode.POINT):
        if focus_radius:
            print(f"[warning] Focus radius {focus_radius} m ignored, derived from '{mode.value}' mode.")
        focus_radius = derive_focus_radius(mode, source_planar, sink_planar)

    if mode is FocusingMode.EXACT:
        tilts = 0.5 * (angles - reference_angle)
    elif focus_radius:
        ratios = positions[:, 2] / focus_radius
        if np.any(np.abs(ratios) > 1.0):
            raise ValueError(f"Focus radius {focus_radius} m is smaller than the array half-width")
        tilts = np.arcsin(ratios)
    else:
        tilts = np.zeros(n_slabs)

    geometry = RowlandGeometry(
        center=center,
        radius=radius,
        source=source_planar,
        sink=sink_planar,
        reference_angle=reference_angle,
        positions=positions,
        tilts=tilts,
        edges=edges,
        angular_width=width,
        angular_gap=spacing,
        coverage=coverage,
        slab_width=slab_width,
        slab_height=slab_height,
        focus_radius=float(focus_radius or 0.0),
        focusing=mode,
    )

    if verbose:
        print_geometry_summary(geometry)
    return geometry


def print_geometry_summary(geometry: RowlandGeometry):
    """Print slab positions and tilts of a finished array."""
    print("\n" + "="*70)
    print("ROWLAND ARRAY GEOMETRY")
    print("="*70)
    print(f"Circle center (z, x): ({geometry.center[0]:.4f}, {geometry.center[1]:.4f}) m")
    print(f"Circle radius:        {geometry.radius:.4f} m")
    print(f"Coverage:             {geometry.coverage / DEG2RAD:.4f} deg")
    print(f"Slab angular width:   {geometry.angular_width / DEG2RAD:.4f} deg")
    print(f"Slab angular gap:     {geometry.angular_gap / DEG2RAD:.4f} deg")
    print(f"Focusing:             {geometry.focusing.value} (RH = {geometry.focus_radius:.4f} m)")
    for h in range(geometry.n_slabs):
        x, y, z = geometry.positions[h]
        print(f"  slab {h:2d}: x={x:+.5f} z={z:+.5f} m  tilt={geometry.tilts[h] / DEG2RAD:+.4f} deg")
    print("="*70 + "\n")


def build_monochromator(
    source: np.ndarray,
    sink: np.ndarray,
    n_slabs: int,
    slab_width: float,
    slab_height: float,
    gap: float = 0.0,
    angle_h: float = 0.0,
    angle_v: float = 0.0,
    focus_radius: float = 0.0,
    focusing: Union[str, FocusingMode, None] = None,
    mosaic: float = 0.0,
    mosaic_h: float = 0.0,
    mosaic_v: float = 0.0,
    d_spacing: float = 0.0,
    q: float = 0.0,
    r0: float = 1.0,
    t0: float = 1.0,
    order: int = 0,
    reflectivity_file: Optional[str] = None,
    transmission_file: Optional[str] = None,
    verbose: bool = False,
) -> RowlandMonochromator:
    """Validate the crystal, build the array geometry and load the lookup tables."""
    crystal = CrystalProperties.from_parameters(
        mosaic=mosaic,
        mosaic_h=mosaic_h,
        mosaic_v=mosaic_v,
        d_spacing=d_spacing,
        q=q,
        r0=r0,
        t0=t0,
        order=order,
    )
    geometry = build_rowland_geometry(
        source,
        sink,
        n_slabs,
        slab_width,
        slab_height,
        gap=gap,
        angle_h=angle_h,
        angle_v=angle_v,
        focus_radius=focus_radius,
        focusing=focusing,
        verbose=verbose,
    )
    if crystal.r0 == 0.0 and verbose:
        print("[info] Peak reflectivity is zero: scattering disabled, slabs only transmit/absorb.")

    return RowlandMonochromator(
        geometry=geometry,
        crystal=crystal,
        reflectivity_table=load_lookup_table(reflectivity_file),
        transmission_table=load_lookup_table(transmission_file),
        verbose=verbose,
    )
