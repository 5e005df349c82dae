"""
Testing subpackage for Rowland monochromator simulation.

This subpackage provides tools for testing and debugging the simulation:
- Reference source/focus arrangements with known geometry
- Validation of built arrays against the Rowland construction

Example usage:
    from rowland_simulation.testing import create_reference_monochromator, validate_rowland_geometry

    monochromator = create_reference_monochromator('standard')
    valid, message = validate_rowland_geometry(monochromator.geometry)
"""

from .reference_setups import (
    create_symmetric_setup,
    create_reference_monochromator,
    bragg_wavelength,
)

from .validation import (
    validate_rowland_geometry,
    validate_geometry_module,
    run_quick_test,
)

__all__ = [
    # Reference setups
    "create_symmetric_setup",
    "create_reference_monochromator",
    "bragg_wavelength",
    # Validation
    "validate_rowland_geometry",
    "validate_geometry_module",
    "run_quick_test",
]
