"""Precursor interference scoring for MS/MS scans.

This module provides:
- Charge state estimation by isotope abundance voting
- Isolation-window extraction with approximate binary search
- Interference fraction calculation (isotope-series intensity / total intensity)

Key Features
------------
- Numba-accelerated kernels for window search, voting and scoring
- Explicit ``InterferenceParams`` instead of global tolerances
- Ambiguous spectra yield a 0.0 score plus a warning, never an exception

Examples
--------
>>> from precursorqc.interference import InterferenceCalculator, InterferenceParams
>>>
>>> calculator = InterferenceCalculator(InterferenceParams(precursor_tolerance_ppm=15.0))
>>> score = calculator.compute_interference_from_spectrum(precursor, scan_mz, scan_intensity)
"""

from .calculator import (
    InterferenceCalculator,
    InterferenceParams,
    calculate_interference_sums,
    calculate_isotope_ppm_error,
    find_closest_peak,
)
from .charge_estimation import (
    accumulate_charge_abundances,
    build_charge_candidates,
    estimate_charge,
    estimate_charge_from_peaks,
)
from .window import (
    binary_search_approx,
    charge_guess_bounds,
    extract_window,
    filter_peaks_by_mz,
    locate_window,
    scoring_bounds,
)

__all__ = [
    # Calculator
    "InterferenceCalculator",
    "InterferenceParams",
    "calculate_interference_sums",
    "calculate_isotope_ppm_error",
    "find_closest_peak",
    # Charge estimation
    "accumulate_charge_abundances",
    "build_charge_candidates",
    "estimate_charge",
    "estimate_charge_from_peaks",
    # Window extraction
    "binary_search_approx",
    "charge_guess_bounds",
    "extract_window",
    "filter_peaks_by_mz",
    "locate_window",
    "scoring_bounds",
]
