"""Isolation-window extraction from centroided spectra.

Full scans can hold tens of thousands of peaks while an isolation window holds
a few dozen. When the caller hands over a complete m/z-sorted scan, both
window edges are located with an approximate binary search before any peak is
touched; small pre-filtered peak lists are filtered directly.

Two windows are used per precursor:

1. Charge-guess window: ``isolation_mz ± isolation_width``, widened to cover
   ``n_isotopes + 1`` charge 1 isotope spacings when the charge is unknown.
2. Scoring window: ``isolation_mz ± isolation_width / 2``.

Both are strict: peaks exactly on a bound are excluded.

Performance
-----------
- Window location: O(log n) per edge (Numba-compiled)
- Filtering: O(k) for k peaks near the window
"""

from typing import Tuple

import numpy as np
from numba import njit

from ..constants import DEFAULT_SEARCH_TOLERANCE, charge_guess_buffer


# =============================================================================
# Approximate Binary Search
# =============================================================================

@njit(cache=True)
def binary_search_approx(
    mz_array: np.ndarray,
    target_mz: float,
    min_idx: int,
    max_idx: int,
    tolerance: float = DEFAULT_SEARCH_TOLERANCE,
) -> int:
    """Find an index near ``target_mz`` in a sorted m/z array.

    Spectral m/z values are continuous, so the search does not look for an
    exact key. It halves the bracket ``[min_idx, max_idx)`` and stops as soon
    as the probed m/z is within ``tolerance`` of the target, or when the
    bracket midpoint stops moving.

    Parameters
    ----------
    mz_array : np.ndarray (float64)
        m/z values, sorted ascending. Not validated.
    target_mz : float
        m/z to look for
    min_idx, max_idx : int
        Search bracket (``max_idx`` exclusive, usually ``len(mz_array)``)
    tolerance : float
        Absolute m/z tolerance for early termination (default: 0.1)

    Returns
    -------
    index : int
        Index whose m/z is within tolerance of the target, or the midpoint
        where the bracket collapsed. 0 for an empty array.

    Notes
    -----
    The returned index may sit on either side of the target. Callers that
    need an exact edge step outward from it (see :func:`extract_window`).

    Examples
    --------
    >>> mz = np.array([100.0, 200.0, 300.0, 400.0])
    >>> binary_search_approx(mz, 300.05, 0, 4)
    2
    """
    n = len(mz_array)
    if n == 0:
        return 0

    if max_idx > n:
        max_idx = n
    if min_idx >= max_idx:
        return max(0, min(min_idx, n - 1))

    mid = min_idx
    while True:
        if abs(mz_array[mid] - target_mz) < tolerance or mid == (max_idx + min_idx) // 2:
            break

        mid = (max_idx + min_idx) // 2

        if mz_array[mid] < target_mz:
            min_idx = mid
        if mz_array[mid] > target_mz:
            max_idx = mid

    return mid


@njit(cache=True)
def locate_window(
    mz_array: np.ndarray,
    low_mz: float,
    high_mz: float,
    tolerance: float = DEFAULT_SEARCH_TOLERANCE,
) -> Tuple[int, int]:
    """Return ``(start, end)`` so that ``mz_array[start:end]`` covers ``(low_mz, high_mz)``.

    Both edges come from :func:`binary_search_approx`; each is then moved
    outward until no point strictly inside the window is left out. The slice
    may still contain a few points on or outside the bounds.
    """
    n = len(mz_array)
    if n == 0:
        return 0, 0

    low_idx = binary_search_approx(mz_array, low_mz, 0, n, tolerance)
    high_idx = binary_search_approx(mz_array, high_mz, low_idx, n, tolerance)

    while low_idx > 0 and mz_array[low_idx - 1] > low_mz:
        low_idx -= 1
    while high_idx < n - 1 and mz_array[high_idx + 1] < high_mz:
        high_idx += 1

    return low_idx, high_idx + 1


# =============================================================================
# Window Filtering
# =============================================================================

def extract_window(
    mz_array: np.ndarray,
    intensity_array: np.ndarray,
    low_mz: float,
    high_mz: float,
    tolerance: float = DEFAULT_SEARCH_TOLERANCE,
) -> Tuple[np.ndarray, np.ndarray]:
    """Extract peaks with ``low_mz < mz < high_mz`` from a full sorted scan.

    Parameters
    ----------
    mz_array : np.ndarray
        Scan m/z values, sorted ascending
    intensity_array : np.ndarray
        Intensities parallel to ``mz_array`` (zeros allowed, they are dropped)
    low_mz, high_mz : float
        Exclusive window bounds
    tolerance : float
        Approximate-match tolerance of the edge search

    Returns
    -------
    mz, intensity : np.ndarray (float64)
        Window peaks in original m/z order
    """
    mz_array = np.ascontiguousarray(mz_array, dtype=np.float64)
    intensity_array = np.ascontiguousarray(intensity_array, dtype=np.float64)

    start, end = locate_window(mz_array, low_mz, high_mz, tolerance)
    mz_slice = mz_array[start:end]
    intensity_slice = intensity_array[start:end]

    mask = (mz_slice > low_mz) & (mz_slice < high_mz) & (intensity_slice > 0)
    return mz_slice[mask].copy(), intensity_slice[mask].copy()


def filter_peaks_by_mz(
    mz_array: np.ndarray,
    intensity_array: np.ndarray,
    low_mz: float,
    high_mz: float,
) -> Tuple[np.ndarray, np.ndarray]:
    """Keep peaks strictly between ``low_mz`` and ``high_mz``, sorted by m/z.

    Linear version of :func:`extract_window` for short, possibly unsorted
    peak lists.
    """
    mz_array = np.asarray(mz_array, dtype=np.float64)
    intensity_array = np.asarray(intensity_array, dtype=np.float64)

    mask = (mz_array > low_mz) & (mz_array < high_mz) & (intensity_array > 0)
    mz_window = mz_array[mask]
    intensity_window = intensity_array[mask]

    order = np.argsort(mz_window, kind="stable")
    return mz_window[order], intensity_window[order]


# =============================================================================
# Window Bounds
# =============================================================================

def scoring_bounds(isolation_mz: float, isolation_width: float) -> Tuple[float, float]:
    """Scoring window: isolation m/z ± half the isolation width."""
    half_width = isolation_width / 2.0
    return isolation_mz - half_width, isolation_mz + half_width


def charge_guess_bounds(
    isolation_mz: float,
    isolation_width: float,
    charge_state: int,
    n_isotopes: int,
) -> Tuple[float, float]:
    """Window to extract from a full scan before scoring.

    Uses the full isolation width on each side. If the charge is unknown the
    window is widened so that every isotope the charge estimator checks is
    included.
    """
    low_mz = isolation_mz - isolation_width
    high_mz = isolation_mz + isolation_width

    if charge_state <= 0:
        buffer = charge_guess_buffer(n_isotopes)
        low_mz = min(low_mz, isolation_mz - buffer)
        high_mz = max(high_mz, isolation_mz + buffer)

    return low_mz, high_mz
