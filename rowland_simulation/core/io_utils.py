"""
Data import/export utilities for monochromator simulation results.
"""

from __future__ import annotations

import csv
import math
from pathlib import Path
from typing import List

import numpy as np
import pandas as pd

from .constants import V2K
from .data_classes import NeutronRecord

RECORD_COLUMNS = [
    'neutron_id',
    'outcome',
    'slab_index',
    'weight',
    'initial_wavelength_AA',
    'final_wavelength_AA',
    'scattering_angle_deg',
    'focus_miss_distance_m',
    'final_position_x_m',
    'final_position_y_m',
    'final_position_z_m',
    'velocity_x_m_s',
    'velocity_y_m_s',
    'velocity_z_m_s',
    'time_s',
]


def _record_row(idx: int, record: NeutronRecord) -> list:
    speed = float(np.linalg.norm(record.final_velocity))
    final_wavelength = 2.0 * math.pi / (V2K * speed) if speed > 0 else None
    x, y, z = record.final_position
    vx, vy, vz = record.final_velocity
    return [
        idx,
        record.outcome,
        record.slab_index if record.slab_index is not None else -1,
        record.weight,
        record.initial_wavelength,
        final_wavelength,
        math.degrees(record.scattering_angle),
        record.focus_miss_distance,
        x, y, z,
        vx, vy, vz,
        record.time,
    ]


def export_neutron_records_to_csv(records: List[NeutronRecord], filename: str = "rowland_records.csv"):
    """Export neutron records to a CSV file.

    Parameters
    ----------
    records : List[NeutronRecord]
        List of neutron records from simulation.
    filename : str
        Output CSV filename.
    """
    if not records:
        print("[warning] No neutron records to export.")
        return

    output_path = Path(filename)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w', newline='', encoding='utf-8') as csvfile:
        writer = csv.writer(csvfile)
        writer.writerow(RECORD_COLUMNS)
        for idx, record in enumerate(records, start=1):
            writer.writerow(_record_row(idx, record))

    print(f"[info] Exported {len(records)} neutron records to {output_path}")


def records_to_dataframe(records: List[NeutronRecord]) -> pd.DataFrame:
    """Tabulate neutron records with the same columns as the CSV export."""
    rows = [_record_row(idx, record) for idx, record in enumerate(records, start=1)]
    return pd.DataFrame(rows, columns=RECORD_COLUMNS)


def load_records_csv(filename: str) -> pd.DataFrame:
    """Load a CSV written by :func:`export_neutron_records_to_csv`."""
    df = pd.read_csv(filename)
    missing = [c for c in RECORD_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"File '{filename}' is missing columns: {missing}")
    return df
