"""
High-level simulation driver functions.
"""

from __future__ import annotations

import math
from concurrent.futures import ProcessPoolExecutor, as_completed
from typing import Dict, List, Optional, Tuple

import numpy as np
from tqdm import tqdm

from . import constants
from .constants import CLAMP_STATS
from .data_classes import NeutronRecord, Outcome, RowlandMonochromator
from .geometry import from_planar
from .sampling import sample_incident_neutron
from .transport import interact_with_array


def focus_miss_distance(position: np.ndarray, velocity: np.ndarray, target: np.ndarray) -> float:
    """Closest approach of the forward ray ``position + t*velocity`` to ``target``."""
    offset = target - position
    speed_sq = float(np.dot(velocity, velocity))
    if speed_sq == 0.0:
        return float(np.linalg.norm(offset))
    t = max(0.0, float(np.dot(offset, velocity)) / speed_sq)
    return float(np.linalg.norm(offset - t * velocity))


def scattering_angle(v_in: np.ndarray, v_out: np.ndarray) -> float:
    """Angle between incoming and outgoing velocity (rad)."""
    cos_angle = float(np.dot(v_in, v_out) / (np.linalg.norm(v_in) * np.linalg.norm(v_out)))
    return math.acos(max(-1.0, min(1.0, cos_angle)))


def simulate_neutron_history(
    monochromator: RowlandMonochromator,
    rng: np.random.Generator,
    wavelength_range: Tuple[float, float],
    source_width: float = 0.0,
    source_height: float = 0.0,
) -> NeutronRecord:
    """Simulate one neutron from the source through the slab array.

    Returns
    -------
    NeutronRecord
        Outcome, weight and final state of the neutron.
    """
    geometry = monochromator.geometry
    wavelength, state = sample_incident_neutron(
        rng, geometry, wavelength_range, source_width, source_height
    )
    v_in = state.velocity.copy()
    outcome, index = interact_with_array(state, monochromator, rng)

    angle = 0.0
    miss = None
    if outcome is Outcome.SCATTERED:
        angle = scattering_angle(v_in, state.velocity)
        miss = focus_miss_distance(state.position, state.velocity, from_planar(geometry.sink, 0.0))

    return NeutronRecord(
        initial_wavelength=wavelength,
        outcome=outcome.value,
        weight=0.0 if state.absorbed else state.weight,
        slab_index=index,
        scattering_angle=angle,
        final_position=state.position.copy(),
        final_velocity=state.velocity.copy(),
        time=state.t,
        focus_miss_distance=miss,
    )


def _run_batch(
    monochromator: RowlandMonochromator,
    n_neutrons: int,
    seed: np.random.SeedSequence,
    wavelength_range: Tuple[float, float],
    source_width: float,
    source_height: float,
) -> Tuple[List[NeutronRecord], Dict[str, int]]:
    """Simulate one batch with its own random stream.

    Also returns the clamp counters accumulated while running the batch, so
    that worker processes can report them back to the parent.
    """
    rng = np.random.default_rng(seed)
    before = dict(CLAMP_STATS)
    records = [
        simulate_neutron_history(monochromator, rng, wavelength_range, source_width, source_height)
        for _ in range(n_neutrons)
    ]
    counts = {key: CLAMP_STATS[key] - before[key] for key in CLAMP_STATS}
    return records, counts


def _batch_sizes(n_neutrons: int, batch_size: int) -> List[int]:
    sizes = [batch_size] * (n_neutrons // batch_size)
    if n_neutrons % batch_size:
        sizes.append(n_neutrons % batch_size)
    return sizes


def run_simulation(
    monochromator: RowlandMonochromator,
    n_neutrons: int,
    wavelength_range: Tuple[float, float],
    seed: Optional[int] = None,
    batch_size: int = 10000,
    max_workers: int = 1,
    source_width: float = 0.0,
    source_height: float = 0.0,
    show_progress: bool = True,
) -> List[NeutronRecord]:
    """Simulate many neutrons and return their records.

    Each batch draws from an independent stream spawned from ``seed``, so
    results do not depend on ``max_workers``. Records come back in batch order.

    Parameters
    ----------
    monochromator : RowlandMonochromator
        Array built by :func:`build_monochromator`.
    n_neutrons : int
        Number of neutron histories.
    wavelength_range : tuple of float
        Source band (Angstrom).
    seed : int, optional
        Root seed; None draws fresh entropy.
    max_workers : int
        Number of worker processes, 1 runs in the current process.

    Returns
    -------
    list of NeutronRecord
    """
    if n_neutrons <= 0:
        return []
    if batch_size <= 0:
        raise ValueError(f"Batch size must be positive, got {batch_size}")

    sizes = _batch_sizes(n_neutrons, batch_size)
    seeds = np.random.SeedSequence(seed).spawn(len(sizes))
    batches: List[Optional[List[NeutronRecord]]] = [None] * len(sizes)
    pbar = tqdm(total=n_neutrons, desc="Simulating neutrons", disable=not show_progress)

    if max_workers is None or max_workers > 1:
        print(f"[info] Running {len(sizes)} batches on {max_workers or 'all'} worker processes")
        with ProcessPoolExecutor(max_workers=max_workers) as executor:
            futures = {
                executor.submit(
                    _run_batch, monochromator, size, batch_seed,
                    wavelength_range, source_width, source_height,
                ): i
                for i, (size, batch_seed) in enumerate(zip(sizes, seeds))
            }
            for future in as_completed(futures):
                i = futures[future]
                records, counts = future.result()
                batches[i] = records
                for key, value in counts.items():
                    CLAMP_STATS[key] += value
                pbar.update(sizes[i])
    else:
        for i, (size, batch_seed) in enumerate(zip(sizes, seeds)):
            batches[i], _ = _run_batch(
                monochromator, size, batch_seed,
                wavelength_range, source_width, source_height,
            )
            pbar.update(size)
    pbar.close()

    records = [record for batch in batches for record in batch]
    print_fate_statistics(records)
    if constants.DEBUG:
        constants.print_clamp_stats()
    return records


def print_fate_statistics(records: List[NeutronRecord]):
    """Print how many neutrons ended in each outcome."""
    total = len(records)
    if total == 0:
        return
    print("[info] Neutron fate statistics:")
    for outcome in Outcome:
        count = sum(1 for r in records if r.outcome == outcome.value)
        print(f"  - {outcome.value.replace('_', ' ').capitalize()}: {count} ({count / total * 100:.2f}%)")
