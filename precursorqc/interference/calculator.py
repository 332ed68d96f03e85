"""Precursor interference calculation.

The interference score of an MS2 scan is the fraction of intensity inside the
isolation window that belongs to the selected precursor's isotope series:

    score = sum(intensity of isotope-series peaks) / sum(intensity of all peaks)

A window peak belongs to the series when its distance to the precursor peak,
multiplied by the charge, is within ``precursor_tolerance_ppm`` of an integer
number of C12/C13 mass differences. The precursor peak itself is the observed
peak closest to the isolation m/z.

Unknown charges are estimated first (see :mod:`.charge_estimation`). When the
charge cannot be resolved, or the window holds no peaks, the score is 0.0 and
a warning is logged; batch processing is never interrupted by ambiguous
spectra. The descriptor's ``status`` tells these cases apart from a measured
score of 0.

Examples
--------
>>> import numpy as np
>>> from precursorqc import PrecursorDescriptor
>>> from precursorqc.interference import InterferenceCalculator
>>>
>>> calculator = InterferenceCalculator()
>>> precursor = PrecursorDescriptor(isolation_mz=641.68, isolation_width=2.0, charge_state=3)
>>> window_mz = np.array([641.68, 642.0144516, 642.2])  # precursor, +1 isotope, other ion
>>> window_intensity = np.array([1e6, 5e5, 5e5])
>>> score = calculator.compute_interference(precursor, window_mz, window_intensity)
>>> print(f"Interference: {precursor.interference_score:.4f}")
Interference: 0.7500
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

import numpy as np
from numba import njit

from ..constants import (
    C12_C13_MASS_DIFFERENCE,
    DEFAULT_CHARGE_GUESS_ISOTOPES,
    DEFAULT_CHARGE_GUESS_TOLERANCE,
    DEFAULT_MAX_CHARGE,
    DEFAULT_MIN_CHARGE,
    DEFAULT_PRECURSOR_TOLERANCE_PPM,
    DEFAULT_SEARCH_TOLERANCE,
)
from ..precursor import InterferenceStatus, Peak, PrecursorDescriptor, peaks_to_arrays
from .charge_estimation import estimate_charge
from .window import charge_guess_bounds, extract_window, filter_peaks_by_mz, scoring_bounds

logger = logging.getLogger(__name__)


@dataclass
class InterferenceParams:
    """Tolerances used by the interference calculator.

    Passed explicitly to every calculator; there is no process-wide state.
    """

    # Charge estimation
    charge_guess_mz_tolerance: float = DEFAULT_CHARGE_GUESS_TOLERANCE  # Da
    n_isotopes_charge_guess: int = DEFAULT_CHARGE_GUESS_ISOTOPES
    min_charge: int = DEFAULT_MIN_CHARGE
    max_charge: int = DEFAULT_MAX_CHARGE

    # Isotope-series membership
    precursor_tolerance_ppm: float = DEFAULT_PRECURSOR_TOLERANCE_PPM

    # Window location in full scans
    search_tolerance_mz: float = DEFAULT_SEARCH_TOLERANCE  # Da

    def __post_init__(self) -> None:
        if self.charge_guess_mz_tolerance <= 0:
            raise ValueError(
                f"charge_guess_mz_tolerance must be > 0, got {self.charge_guess_mz_tolerance}"
            )
        if self.precursor_tolerance_ppm <= 0:
            raise ValueError(
                f"precursor_tolerance_ppm must be > 0, got {self.precursor_tolerance_ppm}"
            )
        if self.search_tolerance_mz <= 0:
            raise ValueError(f"search_tolerance_mz must be > 0, got {self.search_tolerance_mz}")
        if self.n_isotopes_charge_guess < 1:
            raise ValueError(
                f"n_isotopes_charge_guess must be >= 1, got {self.n_isotopes_charge_guess}"
            )
        if not 1 <= self.min_charge <= self.max_charge:
            raise ValueError(
                f"Invalid charge range {self.min_charge}-{self.max_charge}"
            )


# =============================================================================
# Numba Kernels
# =============================================================================

@njit(cache=True)
def find_closest_peak(mz_array: np.ndarray, target_mz: float) -> int:
    """Index of the peak closest to ``target_mz``, or -1 for an empty array.

    The first of several equidistant peaks wins.
    """
    closest_idx = -1
    closest_error = np.inf

    for i in range(len(mz_array)):
        error = abs(mz_array[i] - target_mz)
        if error < closest_error:
            closest_error = error
            closest_idx = i

    return closest_idx


@njit(cache=True)
def calculate_isotope_ppm_error(
    peak_mz: float,
    reference_mz: float,
    isolation_mz: float,
    charge: int,
) -> float:
    """Deviation (ppm) of a peak from the nearest isotope position of the reference.

    The m/z offset is converted to a mass offset (times charge), rounded to a
    whole number of isotope spacings, and the residual is expressed relative
    to the isolation mass ``isolation_mz * charge``.

    Rounding is half-to-even.
    """
    difference = (peak_mz - reference_mz) * charge
    difference_rounded = np.rint(difference)
    expected_difference = difference_rounded * C12_C13_MASS_DIFFERENCE
    return abs((expected_difference - difference) / (isolation_mz * charge)) * 1e6


@njit(cache=True)
def calculate_interference_sums(
    mz_array: np.ndarray,
    intensity_array: np.ndarray,
    reference_mz: float,
    isolation_mz: float,
    charge: int,
    tolerance_ppm: float = DEFAULT_PRECURSOR_TOLERANCE_PPM,
) -> Tuple[float, float]:
    """Sum isotope-series and total intensity over a scoring window.

    Parameters
    ----------
    mz_array : np.ndarray (float64)
        Scoring-window m/z values
    intensity_array : np.ndarray (float64)
        Scoring-window intensities
    reference_mz : float
        Observed precursor peak m/z (``actual_mz``)
    isolation_mz : float
        Isolation m/z, used in the ppm denominator
    charge : int
        Precursor charge (> 0)
    tolerance_ppm : float
        Isotope-series membership tolerance (default: 15.0)

    Returns
    -------
    precursor_sum : float
        Intensity of peaks on the precursor's isotope series
    total_sum : float
        Intensity of all peaks
    """
    precursor_sum = 0.0
    total_sum = 0.0

    for i in range(len(mz_array)):
        ppm_error = calculate_isotope_ppm_error(
            mz_array[i], reference_mz, isolation_mz, charge
        )
        if ppm_error < tolerance_ppm:
            precursor_sum += intensity_array[i]
        total_sum += intensity_array[i]

    return precursor_sum, total_sum


# =============================================================================
# Calculator
# =============================================================================

class InterferenceCalculator:
    """Score precursor interference for MS2 scans.

    Stateless apart from its parameters; a single instance may score any
    number of precursors, in any order.

    Examples
    --------
    >>> import numpy as np
    >>> from precursorqc import Peak, PrecursorDescriptor
    >>>
    >>> calculator = InterferenceCalculator(InterferenceParams(precursor_tolerance_ppm=10.0))
    >>> precursor = PrecursorDescriptor(isolation_mz=500.0, isolation_width=2.0, charge_state=2)
    >>>
    >>> # Already-extracted peak list
    >>> peaks = [Peak(500.0, 1e6), Peak(500.5016774, 5e5), Peak(500.8, 5e5)]
    >>> calculator.compute_interference_from_peaks(precursor, peaks)
    0.75
    >>>
    >>> # Full centroided scan, m/z sorted
    >>> scan_mz = np.array([498.0, 500.0, 500.5016774, 500.8, 503.0])
    >>> scan_intensity = np.array([2e5, 1e6, 5e5, 5e5, 4e5])
    >>> calculator.compute_interference_from_spectrum(precursor, scan_mz, scan_intensity)
    0.75
    """

    def __init__(self, params: Optional[InterferenceParams] = None):
        self.params = params if params is not None else InterferenceParams()

    def estimate_charge(
        self,
        isolation_mz: float,
        spectrum_mz: np.ndarray,
        spectrum_intensity: np.ndarray,
    ) -> int:
        """Estimate the charge with this calculator's tolerances (0 if inconclusive)."""
        p = self.params
        return estimate_charge(
            isolation_mz,
            spectrum_mz,
            spectrum_intensity,
            mz_tolerance=p.charge_guess_mz_tolerance,
            min_charge=p.min_charge,
            max_charge=p.max_charge,
            n_isotopes=p.n_isotopes_charge_guess,
        )

    def compute_interference(
        self,
        precursor: PrecursorDescriptor,
        spectrum_mz: np.ndarray,
        spectrum_intensity: np.ndarray,
    ) -> float:
        """Score one precursor from the peaks around its isolation window.

        Parameters
        ----------
        precursor : PrecursorDescriptor
            Updated in place: ``charge_state`` (if estimated), ``actual_mz``,
            ``precursor_intensity``, ``interference_score`` and ``status``
        spectrum_mz : np.ndarray
            Peak m/z values in any order. When the charge is unknown these
            must also cover the isotopes used for charge estimation.
        spectrum_intensity : np.ndarray
            Peak intensities; entries <= 0 are ignored

        Returns
        -------
        float
            The interference score (also stored on ``precursor``)
        """
        if precursor.charge_state <= 0:
            precursor.update_charge(
                self.estimate_charge(precursor.isolation_mz, spectrum_mz, spectrum_intensity)
            )

            if precursor.charge_state <= 0:
                logger.warning(
                    f"Charge undetermined for precursor at {precursor.isolation_mz:.2f} m/z "
                    f"in scan {precursor.scan_number}; giving score 0"
                )
                precursor.interference_score = 0.0
                precursor.status = InterferenceStatus.CHARGE_UNRESOLVED
                return precursor.interference_score

        low_mz, high_mz = scoring_bounds(precursor.isolation_mz, precursor.isolation_width)
        window_mz, window_intensity = filter_peaks_by_mz(
            spectrum_mz, spectrum_intensity, low_mz, high_mz
        )

        closest_idx = find_closest_peak(window_mz, precursor.isolation_mz)
        if closest_idx < 0:
            logger.warning(
                f"Did not find the precursor for {precursor.isolation_mz:.2f} m/z "
                f"in scan {precursor.scan_number}; giving score 0"
            )
            precursor.interference_score = 0.0
            precursor.status = InterferenceStatus.NO_PEAKS
            return precursor.interference_score

        precursor.actual_mz = float(window_mz[closest_idx])
        precursor.precursor_intensity = float(window_intensity[closest_idx])

        precursor_sum, total_sum = calculate_interference_sums(
            window_mz,
            window_intensity,
            precursor.actual_mz,
            precursor.isolation_mz,
            precursor.charge_state,
            self.params.precursor_tolerance_ppm,
        )

        precursor.interference_score = float(precursor_sum / total_sum)
        precursor.status = InterferenceStatus.SCORED
        return precursor.interference_score

    def compute_interference_from_peaks(
        self,
        precursor: PrecursorDescriptor,
        peaks: Iterable[Peak],
    ) -> float:
        """Same as :meth:`compute_interference` for a list of :class:`Peak`."""
        mz, intensity = peaks_to_arrays(peaks)
        return self.compute_interference(precursor, mz, intensity)

    def compute_interference_from_spectrum(
        self,
        precursor: PrecursorDescriptor,
        spectrum_mz: np.ndarray,
        spectrum_intensity: np.ndarray,
    ) -> float:
        """Score one precursor against a complete, m/z-sorted centroided scan.

        Only the peaks near the isolation window are extracted (binary search),
        widened for charge estimation when the charge is unknown.
        """
        low_mz, high_mz = charge_guess_bounds(
            precursor.isolation_mz,
            precursor.isolation_width,
            precursor.charge_state,
            self.params.n_isotopes_charge_guess,
        )
        window_mz, window_intensity = extract_window(
            spectrum_mz,
            spectrum_intensity,
            low_mz,
            high_mz,
            self.params.search_tolerance_mz,
        )
        return self.compute_interference(precursor, window_mz, window_intensity)
