"""
Reflectivity and transmission lookup tables.
"""

from __future__ import annotations

import os
from typing import Optional

import numpy as np

from .data_classes import LookupTable

# File names that explicitly disable a table
DISABLED_TABLE_NAMES = ("", "NULL", "0", "none")

# Upper bound on the number of bins after rebinning
MAX_TABLE_BINS = 10000


def _read_two_columns(file_path: str) -> np.ndarray:
    """Read a two-column numeric file, whitespace or ';' separated."""
    delimiter = None
    with open(file_path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.split("#", 1)[0].strip()
            if line:
                delimiter = ";" if ";" in line else None
                break
    return np.loadtxt(file_path, comments="#", delimiter=delimiter, usecols=(0, 1), dtype=float, ndmin=2)


def rebin_table(k: np.ndarray, values: np.ndarray) -> np.ndarray:
    """Rebin an ordered table onto a uniform wavenumber grid.

    The grid step is the smallest spacing found in the input so that no
    tabulated point is skipped (bounded by ``MAX_TABLE_BINS``).

    Returns
    -------
    np.ndarray, shape (N, 2)
        Uniformly spaced [k, value] pairs.
    """
    if k.size < 2:
        return np.column_stack([k, values])
    span = k[-1] - k[0]
    step = float(np.min(np.diff(k)))
    n_bins = int(min(MAX_TABLE_BINS, max(k.size, round(span / step) + 1)))
    grid = np.linspace(k[0], k[-1], n_bins)
    return np.column_stack([grid, np.interp(grid, k, values)])


def load_lookup_table(file_path: Optional[str]) -> Optional[LookupTable]:
    """
    Load a wavenumber -> value table from a two-column text file.

    The first column is the wavenumber (1/Angstrom), the second the
    reflectivity or transmission. Rows are sorted, duplicate wavenumbers are
    dropped and the result is rebinned onto a uniform grid.

    Parameters
    ----------
    file_path : str or None
        Path to the table. ``None``, ``""``, ``"NULL"`` or ``"0"`` disable the
        table.

    Returns
    -------
    LookupTable or None
        None when the table is disabled, missing or empty; the caller then
        uses its constant value.
    """
    if file_path is None or str(file_path).strip() in DISABLED_TABLE_NAMES:
        return None

    file_path = str(file_path)
    if not os.path.isfile(file_path):
        print(f"[warning] Lookup table '{file_path}' not found, using constant value.")
        return None

    try:
        data = _read_two_columns(file_path)
    except Exception as e:
        raise ValueError(f"Could not load lookup table '{file_path}': {e}") from e

    if data.size == 0:
        print(f"[warning] Lookup table '{file_path}' is empty, using constant value.")
        return None

    data = data[data[:, 0].argsort()]
    k, index = np.unique(data[:, 0], return_index=True)
    rebinned = rebin_table(k, data[index, 1])
    print(f"[info] Loaded lookup table {os.path.basename(file_path)} "
          f"({rebinned.shape[0]} bins, k=[{k[0]:.4g}, {k[-1]:.4g}] 1/AA)")
    return LookupTable(k=rebinned[:, 0], values=rebinned[:, 1], source=file_path)
