"""
Data classes for the Rowland monochromator simulation.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

import math

import numpy as np

from .constants import FWHM_TO_RMS, MIN2RAD


class FocusingMode(Enum):
    """Strategy used to tilt the slabs of the array."""

    NONE = "none"
    PARALLEL = "parallel"
    POINT = "point"
    EXACT = "exact"

    @classmethod
    def from_tag(cls, tag: Optional[str]) -> "FocusingMode":
        """Resolve a configuration tag, falling back to NONE for unknown values."""
        if isinstance(tag, cls):
            return tag
        if tag is None or str(tag).strip() == "":
            return cls.NONE
        try:
            return cls(str(tag).strip().lower())
        except ValueError:
            print(f"[warning] Unknown focusing mode '{tag}', array will not be focused.")
            return cls.NONE


class Outcome(Enum):
    """Result of one particle encounter with the array."""

    SCATTERED = "scattered"
    TRANSMITTED = "transmitted"
    ABSORBED = "absorbed"
    NO_INTERACTION = "no_interaction"


@dataclass(frozen=True)
class CrystalProperties:
    """Physical properties shared by all slabs of one array.

    Attributes
    ----------
    tau : float
        Scattering vector magnitude (1/Angstrom).
    order : int
        Fixed diffraction order, 0 allows any order.
    r0 : float
        Peak reflectivity.
    t0 : float
        Transmission efficiency.
    rms_y, rms_z : float
        RMS mosaic spread about the y and z axes (radians).
    """

    tau: float
    order: int = 0
    r0: float = 1.0
    t0: float = 1.0
    rms_y: float = 0.0
    rms_z: float = 0.0
    rms_max: float = field(init=False)

    def __post_init__(self):
        if not self.tau > 0.0:
            raise ValueError(f"Scattering vector must be positive, got tau={self.tau}")
        if self.r0 < 0.0:
            raise ValueError(f"Peak reflectivity must be non-negative, got r0={self.r0}")
        if self.rms_y < 0.0 or self.rms_z < 0.0:
            raise ValueError("Mosaic spread must be non-negative")
        object.__setattr__(self, "order", abs(int(self.order)))
        object.__setattr__(self, "rms_max", max(self.rms_y, self.rms_z))

    @classmethod
    def from_parameters(
        cls,
        mosaic: float = 0.0,
        mosaic_h: float = 0.0,
        mosaic_v: float = 0.0,
        d_spacing: float = 0.0,
        q: float = 0.0,
        r0: float = 1.0,
        t0: float = 1.0,
        order: int = 0,
    ) -> "CrystalProperties":
        """Build properties from instrument-style parameters.

        Parameters
        ----------
        mosaic : float
            Isotropic mosaic FWHM (arc minutes). Overrides the per-axis values.
        mosaic_h, mosaic_v : float
            Horizontal/vertical mosaic FWHM (arc minutes).
        d_spacing : float
            Lattice spacing (Angstrom), used when ``q`` is not given.
        q : float
            Scattering vector magnitude (1/Angstrom).
        """
        if mosaic:
            mosaic_h = mosaic_v = mosaic
        if not q and d_spacing:
            q = 2.0 * math.pi / d_spacing
        # horizontal mosaic is a rotation about the vertical (y) axis
        rms_y = mosaic_h * MIN2RAD * FWHM_TO_RMS
        rms_z = mosaic_v * MIN2RAD * FWHM_TO_RMS
        return cls(tau=q, order=order, r0=r0, t0=t0, rms_y=rms_y, rms_z=rms_z)


@dataclass(frozen=True)
class RowlandGeometry:
    """Read-only construction of a slab array on a Rowland circle.

    Planar quantities (``center``, ``source``, ``sink``) are ``(z, x)`` pairs
    in the horizontal plane of the array frame; angles are ``atan2(x, z)``
    about ``center``.
    """

    center: np.ndarray
    radius: float
    source: np.ndarray
    sink: np.ndarray
    reference_angle: float
    positions: np.ndarray  # (n_slabs, 3)
    tilts: np.ndarray  # (n_slabs,) rotation about y (rad)
    edges: np.ndarray  # (n_slabs + 1,) acceptance window boundaries (rad)
    angular_width: float
    angular_gap: float
    coverage: float
    slab_width: float
    slab_height: float
    focus_radius: float = 0.0
    focusing: FocusingMode = FocusingMode.NONE

    def __post_init__(self):
        for name in ("center", "source", "sink", "positions", "tilts", "edges"):
            arr = np.array(getattr(self, name), dtype=float)
            arr.setflags(write=False)
            object.__setattr__(self, name, arr)

    @property
    def n_slabs(self) -> int:
        return int(self.tilts.shape[0])


@dataclass
class NeutronState:
    """Mutable state of one neutron, expressed in the array frame."""

    position: np.ndarray
    velocity: np.ndarray
    spin: np.ndarray = field(default_factory=lambda: np.zeros(3))
    weight: float = 1.0
    t: float = 0.0
    absorbed: bool = False
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.position = np.array(self.position, dtype=float)
        self.velocity = np.array(self.velocity, dtype=float)
        self.spin = np.array(self.spin, dtype=float)

    def copy(self) -> "NeutronState":
        return NeutronState(
            position=self.position.copy(),
            velocity=self.velocity.copy(),
            spin=self.spin.copy(),
            weight=self.weight,
            t=self.t,
            absorbed=self.absorbed,
            extra=dict(self.extra),
        )


@dataclass
class NeutronRecord:
    """Record of one neutron history through the array.

    Attributes
    ----------
    initial_wavelength : float
        Wavelength at the source (Angstrom).
    outcome : str
        One of 'scattered', 'transmitted', 'absorbed', 'no_interaction'.
    weight : float
        Statistical weight after the encounter.
    slab_index : int or None
        Index of the slab that was struck, None if the array was missed.
    scattering_angle : float
        Angle between incoming and outgoing velocity (rad), 0 if not scattered.
    final_position : np.ndarray
        Position after the encounter (m, array frame).
    final_velocity : np.ndarray
        Velocity after the encounter (m/s, array frame).
    focus_miss_distance : float or None
        Closest approach of the outgoing ray to the sink (m), scattered only.
    """

    initial_wavelength: float
    outcome: str
    weight: float
    slab_index: Optional[int]
    scattering_angle: float
    final_position: np.ndarray
    final_velocity: np.ndarray
    time: float = 0.0
    focus_miss_distance: Optional[float] = None


@dataclass(frozen=True)
class LookupTable:
    """Monotonic wavenumber -> value table (reflectivity or transmission)."""

    k: np.ndarray  # wavenumber grid (1/Angstrom), strictly increasing
    values: np.ndarray
    source: str = ""

    def __post_init__(self):
        for name in ("k", "values"):
            arr = np.array(getattr(self, name), dtype=float)
            arr.setflags(write=False)
            object.__setattr__(self, name, arr)

    def value(self, k: float) -> float:
        """Interpolate linearly; values beyond the grid are held at the end points."""
        return float(np.interp(k, self.k, self.values))


@dataclass
class RowlandMonochromator:
    """One component instance: array geometry, crystal data and lookup tables."""

    geometry: RowlandGeometry
    crystal: CrystalProperties
    reflectivity_table: Optional[LookupTable] = None
    transmission_table: Optional[LookupTable] = None
    verbose: bool = False

    def release(self):
        """Drop the lookup tables at teardown."""
        self.reflectivity_table = None
        self.transmission_table = None
