"""Charge state estimation by isotope abundance voting.

When the instrument does not report a charge, it is guessed from the peaks
around the isolation m/z: for every candidate charge the isotope positions
``isolation_mz ± j * 1.00335 / z`` are checked, and the intensity of every
matching peak is credited to that charge. The charge collecting the most
intensity wins.

A peak at the isolation m/z itself matches every charge. If nothing but that
peak matched, all charges tie on the isolation-only abundance and the
estimate is reported as 0 (unknown) instead of a spurious charge 1.

Examples
--------
>>> from precursorqc.interference import estimate_charge
>>> spacing = 1.0033548378 / 2
>>> mz = np.array([500.0 - spacing, 500.0, 500.0 + spacing])
>>> intensity = np.array([3e5, 1e6, 6e5])
>>> estimate_charge(500.0, mz, intensity)
2
"""

from typing import Iterable, Tuple

import numpy as np
from numba import njit

from ..constants import (
    C12_C13_MASS_DIFFERENCE,
    DEFAULT_CHARGE_GUESS_ISOTOPES,
    DEFAULT_CHARGE_GUESS_TOLERANCE,
    DEFAULT_MAX_CHARGE,
    DEFAULT_MIN_CHARGE,
)
from ..precursor import Peak, peaks_to_arrays


# =============================================================================
# Candidate Isotope Positions
# =============================================================================

@njit(cache=True)
def build_charge_candidates(
    isolation_mz: float,
    min_charge: int,
    max_charge: int,
    n_isotopes: int,
) -> Tuple[np.ndarray, np.ndarray]:
    """List every (m/z, charge) position checked by the charge guess, sorted by m/z.

    Parameters
    ----------
    isolation_mz : float
        Isolation (precursor) m/z
    min_charge, max_charge : int
        Inclusive charge range
    n_isotopes : int
        Isotopes checked on each side of the isolation m/z

    Returns
    -------
    candidate_mz : np.ndarray (float64)
        Candidate m/z values, ascending (duplicates allowed)
    candidate_charge : np.ndarray (int64)
        Charge of each candidate

    Notes
    -----
    Each charge contributes ``2 * n_isotopes + 1`` candidates: the isolation
    m/z plus ``n_isotopes`` isotope positions below and above it.
    """
    per_charge = 2 * n_isotopes + 1
    n_candidates = (max_charge - min_charge + 1) * per_charge

    candidate_mz = np.empty(n_candidates, dtype=np.float64)
    candidate_charge = np.empty(n_candidates, dtype=np.int64)

    k = 0
    for charge in range(min_charge, max_charge + 1):
        spacing = C12_C13_MASS_DIFFERENCE / charge

        candidate_mz[k] = isolation_mz
        candidate_charge[k] = charge
        k += 1

        for j in range(1, n_isotopes + 1):
            candidate_mz[k] = isolation_mz - j * spacing
            candidate_charge[k] = charge
            k += 1
            candidate_mz[k] = isolation_mz + j * spacing
            candidate_charge[k] = charge
            k += 1

    order = np.argsort(candidate_mz, kind="mergesort")
    return candidate_mz[order], candidate_charge[order]


# =============================================================================
# Abundance Voting
# =============================================================================

@njit(cache=True)
def accumulate_charge_abundances(
    isolation_mz: float,
    spectrum_mz: np.ndarray,
    spectrum_intensity: np.ndarray,
    mz_tolerance: float,
    min_charge: int,
    max_charge: int,
    n_isotopes: int,
) -> Tuple[np.ndarray, float]:
    """Sum matching peak intensities per candidate charge.

    Parameters
    ----------
    isolation_mz : float
        Isolation (precursor) m/z
    spectrum_mz : np.ndarray (float64)
        Peak m/z values. MUST be sorted ascending.
    spectrum_intensity : np.ndarray (float64)
        Peak intensities
    mz_tolerance : float
        Absolute m/z tolerance for a peak to match a candidate
    min_charge, max_charge : int
        Inclusive charge range
    n_isotopes : int
        Isotopes checked on each side

    Returns
    -------
    abundances : np.ndarray (float64)
        ``abundances[i]`` is the summed intensity for charge ``min_charge + i``
    isolation_abundance : float
        Intensity of peaks matching the isolation m/z alone
    """
    candidate_mz, candidate_charge = build_charge_candidates(
        isolation_mz, min_charge, max_charge, n_isotopes
    )
    n_candidates = len(candidate_mz)

    abundances = np.zeros(max_charge - min_charge + 1, dtype=np.float64)
    isolation_abundance = 0.0

    range_min = candidate_mz[0] - mz_tolerance
    range_max = candidate_mz[n_candidates - 1] + mz_tolerance

    for i in range(len(spectrum_mz)):
        mz = spectrum_mz[i]

        # Not in range yet
        if mz < range_min:
            continue
        # Past the range (input is sorted)
        if mz > range_max:
            break

        intensity = spectrum_intensity[i]

        if mz >= isolation_mz - mz_tolerance and mz <= isolation_mz + mz_tolerance:
            isolation_abundance += intensity

        match_min = mz - mz_tolerance
        match_max = mz + mz_tolerance
        for k in range(n_candidates):
            if candidate_mz[k] > match_max:
                break
            if candidate_mz[k] >= match_min:
                abundances[candidate_charge[k] - min_charge] += intensity

    return abundances, isolation_abundance


@njit(cache=True)
def estimate_charge_sorted(
    isolation_mz: float,
    spectrum_mz: np.ndarray,
    spectrum_intensity: np.ndarray,
    mz_tolerance: float = DEFAULT_CHARGE_GUESS_TOLERANCE,
    min_charge: int = DEFAULT_MIN_CHARGE,
    max_charge: int = DEFAULT_MAX_CHARGE,
    n_isotopes: int = DEFAULT_CHARGE_GUESS_ISOTOPES,
) -> int:
    """Estimate the charge from m/z-sorted peaks (Numba kernel).

    Returns 0 when no isotope peak matched beyond the isolation m/z itself.
    Ties between charges go to the lowest charge.
    """
    abundances, isolation_abundance = accumulate_charge_abundances(
        isolation_mz,
        spectrum_mz,
        spectrum_intensity,
        mz_tolerance,
        min_charge,
        max_charge,
        n_isotopes,
    )

    best = 0
    for i in range(1, len(abundances)):
        if abundances[i] > abundances[best]:
            best = i

    # Only the isolation m/z matched: no evidence for any charge
    if abundances[best] == isolation_abundance:
        return 0

    return min_charge + best


def estimate_charge(
    isolation_mz: float,
    spectrum_mz: np.ndarray,
    spectrum_intensity: np.ndarray,
    mz_tolerance: float = DEFAULT_CHARGE_GUESS_TOLERANCE,
    min_charge: int = DEFAULT_MIN_CHARGE,
    max_charge: int = DEFAULT_MAX_CHARGE,
    n_isotopes: int = DEFAULT_CHARGE_GUESS_ISOTOPES,
) -> int:
    """Estimate the charge state of a precursor from its isotope envelope.

    Parameters
    ----------
    isolation_mz : float
        Isolation (precursor) m/z
    spectrum_mz : np.ndarray
        Peak m/z values (any order)
    spectrum_intensity : np.ndarray
        Peak intensities; entries <= 0 are ignored
    mz_tolerance : float
        Absolute m/z tolerance (default: 0.01)
    min_charge, max_charge : int
        Inclusive charge range (default: 1-4)
    n_isotopes : int
        Isotopes checked above and below (default: 2)

    Returns
    -------
    int
        Estimated charge, or 0 if inconclusive
    """
    mz = np.asarray(spectrum_mz, dtype=np.float64)
    intensity = np.asarray(spectrum_intensity, dtype=np.float64)

    keep = intensity > 0
    mz = mz[keep]
    intensity = intensity[keep]

    order = np.argsort(mz, kind="stable")
    return int(estimate_charge_sorted(
        float(isolation_mz),
        np.ascontiguousarray(mz[order]),
        np.ascontiguousarray(intensity[order]),
        float(mz_tolerance),
        int(min_charge),
        int(max_charge),
        int(n_isotopes),
    ))


def estimate_charge_from_peaks(
    isolation_mz: float,
    peaks: Iterable[Peak],
    **kwargs,
) -> int:
    """Same as :func:`estimate_charge` for a list of :class:`Peak`."""
    mz, intensity = peaks_to_arrays(peaks)
    return estimate_charge(isolation_mz, mz, intensity, **kwargs)
