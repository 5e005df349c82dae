"""
Physical constants and numerical settings.
"""

import math

# Unit conversions
V2K = 1.58825361e-3  # (m/s) -> 1/Angstrom
K2V = 1.0 / V2K  # 1/Angstrom -> m/s
MIN2RAD = math.pi / (180.0 * 60.0)  # arc minutes -> radians
DEG2RAD = math.pi / 180.0
FWHM_TO_RMS = 1.0 / math.sqrt(8.0 * math.log(2.0))

# Probability clamps
REFLECTIVITY_CEILING = 0.999
REFLECTIVITY_WARN_LIMIT = 1.01
TRANSMISSION_CEILING = 0.999

# Debye-Scherrer cone sampling
SAMPLING_EXTENT_SIGMAS = 5.0
WIDTH_SHRINK_FACTOR = 2.0 / 3.0
MAX_WIDTH_ADAPTATIONS = 100
# tails below the density at 1.5x the sampling extent count as negligible
TAIL_MARGIN = 1.5
TAIL_FLOOR = math.exp(-0.5 * (SAMPLING_EXTENT_SIGMAS * TAIL_MARGIN) ** 2)
GAUSS_LEGENDRE_POINTS = 15

# Narrowest mosaic width used on the cone when one axis is perfect (rad)
MOSAIC_FLOOR = 1e-6

# Bragg deviation treated as exact for a perfect (zero mosaic) crystal
ANGLE_TOLERANCE = 1e-9

# Debug flag
DEBUG = False

# Global statistics for runtime probability clamps
CLAMP_STATS = {
    'reflectivity_clamped': 0,
    'transmission_clamped': 0,
    'degenerate_cone': 0,
}


def reset_clamp_stats():
    """Reset clamp statistics counters."""
    for key in CLAMP_STATS:
        CLAMP_STATS[key] = 0


def print_clamp_stats():
    """Print statistics about clamped reflectivity/transmission values.

    Clamps are resolved locally in the interaction engine; these counters
    only show how often the lookup data left the physical range.
    """
    stats = CLAMP_STATS
    total = sum(stats.values())

    print("\n" + "="*60)
    print("PROBABILITY CLAMP STATISTICS")
    print("="*60)
    print(f"Reflectivity clamped:      {stats['reflectivity_clamped']:,}")
    print(f"Transmission clamped:      {stats['transmission_clamped']:,}")
    print(f"Degenerate cone samples:   {stats['degenerate_cone']:,}")
    print("="*60)

    if total == 0:
        print("✓ All lookup values inside [0, 1]")
    else:
        print("⚠️  WARNING: Lookup values outside [0, 1] were clamped")
        print("   Check the reflectivity/transmission tables")
    print()
