"""
Geometry primitives for the Rowland circle array.

Planar points live in the horizontal plane of the array frame and are
ordered ``(z, x)``; with this ordering a right-handed rotation about the
vertical ``y`` axis increases the planar angle ``atan2(x, z)``.
"""

from __future__ import annotations

import math
from typing import Optional, Tuple

import numpy as np


def to_planar(vector: np.ndarray) -> np.ndarray:
    """Project a 3D array-frame vector onto the horizontal ``(z, x)`` plane."""
    return np.array([vector[2], vector[0]], dtype=float)


def from_planar(point: np.ndarray, y: float = 0.0) -> np.ndarray:
    """Lift a planar ``(z, x)`` point back to 3D at height ``y``."""
    return np.array([point[1], y, point[0]], dtype=float)


def planar_angle(point: np.ndarray, center: np.ndarray) -> float:
    """Azimuth of ``point`` seen from ``center``."""
    return math.atan2(point[1] - center[1], point[0] - center[0])


def _cross2(u: np.ndarray, v: np.ndarray) -> float:
    return float(u[0] * v[1] - u[1] * v[0])


def fit_circle(
    p0: np.ndarray,
    p1: np.ndarray,
    tolerance: float = 1e-12,
) -> Optional[Tuple[np.ndarray, float]]:
    """Return the circle through ``p0``, ``p1`` and the origin.

    The centre ``c`` satisfies ``p . c = |p|^2 / 2`` for both points. The
    system is solved by elimination on the equation with the larger leading
    coefficient. Returns None when the three points are collinear (equal
    chord slopes) or when the result is not a finite positive radius.
    """
    p0 = np.asarray(p0, dtype=float)
    p1 = np.asarray(p1, dtype=float)
    scale = np.linalg.norm(p0) * np.linalg.norm(p1)
    if scale == 0.0 or abs(_cross2(p0, p1)) <= tolerance * scale:
        return None

    h0 = 0.5 * float(np.dot(p0, p0))
    h1 = 0.5 * float(np.dot(p1, p1))
    if abs(p0[0]) >= abs(p1[0]):
        a, b, ha, hb = p0, p1, h0, h1
    else:
        a, b, ha, hb = p1, p0, h1, h0

    factor = b[0] / a[0]
    cx = (hb - factor * ha) / (b[1] - factor * a[1])
    cz = (ha - a[1] * cx) / a[0]
    center = np.array([cz, cx], dtype=float)
    radius = float(np.hypot(cz, cx))
    if not math.isfinite(radius) or radius <= 0.0:
        return None
    return center, radius


def aperture_limit_point(
    side: int,
    point: np.ndarray,
    half_angle: float,
    center: np.ndarray,
    radius: float,
) -> np.ndarray:
    """Move around the circle from ``point`` by ``half_angle``.

    ``side`` selects the direction (+1 towards increasing azimuth, -1 the
    other way); the two results bound a viewing cone of the array.
    """
    angle = planar_angle(point, center) + math.copysign(half_angle, side)
    return np.array([
        center[0] + radius * math.cos(angle),
        center[1] + radius * math.sin(angle),
    ], dtype=float)


def exact_focus_angle(a: np.ndarray, b: np.ndarray, point: np.ndarray) -> float:
    """Signed tilt that turns the origin bisector of ``a``/``b`` into the one at ``point``.

    Both bisectors are built from unit vectors towards ``a`` and ``b``; the
    sign follows the 2D cross product so that positive values are
    right-handed rotations about ``y``.
    """
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    point = np.asarray(point, dtype=float)

    n0 = a / np.linalg.norm(a) + b / np.linalg.norm(b)
    da = a - point
    db = b - point
    n1 = da / np.linalg.norm(da) + db / np.linalg.norm(db)
    return math.atan2(_cross2(n0, n1), float(np.dot(n0, n1)))


def rotate_about_y(vector: np.ndarray, angle: float) -> np.ndarray:
    """Right-handed rotation of a 3D vector about the vertical axis."""
    c = math.cos(angle)
    s = math.sin(angle)
    x, y, z = vector
    return np.array([x * c + z * s, y, -x * s + z * c], dtype=float)


def transform_between_frames(
    point: np.ndarray,
    from_origin: np.ndarray,
    from_rotation: np.ndarray,
    to_origin: np.ndarray,
    to_rotation: np.ndarray,
) -> np.ndarray:
    """Express a point given in one oriented frame in another one.

    Rotation matrices hold the frame axes as columns in absolute coordinates.
    """
    absolute = np.asarray(from_rotation, dtype=float) @ np.asarray(point, dtype=float) + from_origin
    return np.asarray(to_rotation, dtype=float).T @ (absolute - np.asarray(to_origin, dtype=float))


def to_local_frame(point: np.ndarray, origin: np.ndarray, rotation: np.ndarray) -> np.ndarray:
    """Convert an absolute position into the frame ``(origin, rotation)``."""
    return transform_between_frames(point, np.zeros(3), np.eye(3), origin, rotation)


def build_orthonormal_frame(axis: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Build an orthonormal coordinate frame from a given axis."""
    axis = np.array(axis, dtype=float)
    norm = np.linalg.norm(axis)
    if norm == 0.0:
        raise ValueError("Axis vector must be non-zero")
    axis /= norm
    up = np.array([0.0, 1.0, 0.0])
    if abs(np.dot(axis, up)) > 0.99:
        up = np.array([1.0, 0.0, 0.0])
    u = np.cross(up, axis)
    u /= np.linalg.norm(u)
    v = np.cross(axis, u)
    return axis, u, v


def intersect_cylinder(
    position: np.ndarray,
    velocity: np.ndarray,
    center: np.ndarray,
    radius: float,
    height: float,
) -> Optional[Tuple[float, float, bool]]:
    """Intersect a straight trajectory with a vertical cylinder of finite height.

    The cylinder axis is the ``y`` axis through the planar ``center``; it
    extends ``height / 2`` above and below ``y = 0``.

    Returns
    -------
    tuple or None
        ``(t_in, t_out, through_side)`` where ``through_side`` tells whether the
        exit happens on the curved surface rather than on a flat end. None if
        the trajectory misses the cylinder.
    """
    d = to_planar(position) - center
    v = to_planar(velocity)
    a = float(np.dot(v, v))
    if a == 0.0:
        return None
    b = float(np.dot(d, v))
    c = float(np.dot(d, d)) - radius * radius
    disc = b * b - a * c
    if disc < 0.0:
        return None
    root = math.sqrt(disc)
    t_in = (-b - root) / a
    t_out = (-b + root) / a
    through_side = True

    half = 0.5 * height
    y = position[1]
    vy = velocity[1]
    if vy != 0.0:
        t_lo, t_hi = sorted(((-half - y) / vy, (half - y) / vy))
        t_in = max(t_in, t_lo)
        if t_hi < t_out:
            t_out = t_hi
            through_side = False
    elif abs(y) > half:
        return None

    if t_in > t_out:
        return None
    return t_in, t_out, through_side
