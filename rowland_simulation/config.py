"""
Configuration settings for the Rowland monochromator simulation.

All defaults used by the runner live here. Users can modify these values to
customize the simulation without changing the core code.
"""

from __future__ import annotations

# =============================================================================
# Array Layout (阵列布局)
# =============================================================================

# Number of slabs along the arc
N_SLABS = 7

# Slab size (m)
SLAB_WIDTH_M = 0.02
SLAB_HEIGHT_M = 0.02

# Linear gap between slabs (m), 0 derives a uniform gap from the aperture
SLAB_GAP_M = 0.0

# Horizontal / vertical half-aperture seen from the source (deg), 0 = from slab size
ANGLE_H_DEG = 0.0
ANGLE_V_DEG = 0.0

# =============================================================================
# Crystal (PG(002) defaults)
# =============================================================================

D_SPACING_AA = 3.355
MOSAIC_ARCMIN = 30.0
MOSAIC_H_ARCMIN = 0.0
MOSAIC_V_ARCMIN = 0.0
PEAK_REFLECTIVITY = 0.8
TRANSMISSION = 1.0
REFLECTION_ORDER = 0

# Lookup tables ("NULL" disables a table)
REFLECTIVITY_FILE = "NULL"
TRANSMISSION_FILE = "NULL"

# =============================================================================
# Focusing
# =============================================================================

# 'none', 'parallel', 'point' or 'exact'
FOCUSING_MODE = "exact"

# Explicit horizontal focusing radius (m), used with 'none'
FOCUS_RADIUS_M = 0.0

# =============================================================================
# Source / Sink Placement
# =============================================================================

# Distances from the array to the virtual source and focus (m)
SOURCE_DISTANCE_M = 1.5
SINK_DISTANCE_M = 1.5

# Bragg angle at the central slab (deg)
BRAGG_ANGLE_DEG = 37.0

# Source size (m), 0 for a point source
SOURCE_WIDTH_M = 0.0
SOURCE_HEIGHT_M = 0.0

# Relative half-width of the wavelength band around the nominal wavelength
WAVELENGTH_SPREAD = 0.05

# =============================================================================
# Simulation Parameters
# =============================================================================

DEFAULT_N_NEUTRONS = 100000
BATCH_SIZE = 10000
MAX_WORKERS = 1
RANDOM_SEED = 12345

# =============================================================================
# Output
# =============================================================================

DATA_OUTPUT_DIR = "Data"
FIGURES_OUTPUT_DIR = "Figures"

RECORDS_CSV = "rowland_records.csv"
RESULTS_FIGURE_BASE = "rowland_analysis"
LAYOUT_FIGURE = "rowland_layout.png"

# =============================================================================
# Visualization Settings
# =============================================================================

PLOT_DPI = 300
QUICK_PLOT_DPI = 150
RESULTS_FIGSIZE = (14, 10)
LAYOUT_FIGSIZE = (10, 8)

# Colors of the layout plot
SLAB_COLOR = "tab:blue"
RAY_COLOR = "tab:orange"
