"""
Rowland Monochromator Simulation Package
========================================

This package provides a Monte-Carlo model of a neutron monochromator made of
flat mosaic crystal slabs placed along a Rowland circle, so that neutrons
from a virtual source are Bragg-reflected towards a common focus.

Modules:
--------
- core.constants: Physical constants and numerical settings
- config: Configurable simulation parameters
- core.data_classes: Data structures (CrystalProperties, RowlandGeometry, NeutronRecord)
- core.geometry: Planar geometry, frame transforms and cylinder intersection
- core.array_builder: Rowland circle construction and slab placement
- core.lookup: Reflectivity/transmission tables
- core.crystal: Mosaic crystal scattering engine
- core.transport: Slab dispatch and frame handling
- core.sampling: Random sampling utilities
- core.simulation: High-level simulation driver
- core.io_utils: Data import/export utilities
- plotting: Layout and result plots
- testing: Reference setups and geometry validation
"""

from . import config
from .core import *
from .core import __all__ as _core_all
from .plotting import plot_array_layout, visualize_results, print_statistics
from .testing import create_symmetric_setup, create_reference_monochromator, validate_rowland_geometry

__version__ = "1.0.0"
__all__ = [
    # Config module
    "config",
    # Plotting
    "plot_array_layout",
    "visualize_results",
    "print_statistics",
    # Testing
    "create_symmetric_setup",
    "create_reference_monochromator",
    "validate_rowland_geometry",
] + list(_core_all)
