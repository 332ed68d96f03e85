"""Precursor and peak records shared by the scoring engine and the I/O layer.

A :class:`PrecursorDescriptor` is created for every MS2 scan of a dataset pass.
It carries the isolation settings reported by the instrument, is updated in
place by :class:`~precursorqc.interference.InterferenceCalculator`, and is
discarded once its row has been exported.

Peaks are exchanged as :class:`Peak` tuples at the API boundary and as two
parallel float64 arrays (m/z, intensity) everywhere else.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, NamedTuple, Tuple

import numpy as np


class Peak(NamedTuple):
    """Single centroided peak."""

    mz: float
    intensity: float


class InterferenceStatus(Enum):
    """How the interference score of a precursor was obtained."""

    NOT_SCORED = "not_scored"
    SCORED = "scored"
    CHARGE_UNRESOLVED = "charge_unresolved"  # score forced to 0
    NO_PEAKS = "no_peaks"                    # score forced to 0


_IMMUTABLE_FIELDS = ("isolation_mz", "isolation_width")


@dataclass
class PrecursorDescriptor:
    """Isolation settings of one MS2 scan plus its interference results.

    Attributes
    ----------
    isolation_mz : float
        Instrument-reported (or corrected) precursor m/z. Read-only.
    isolation_width : float
        Full isolation window width in m/z. Read-only.
    charge_state : int
        Charge state; 0 or negative means unknown (estimated on scoring).
    scan_number : int
        Product (MS2) scan number, used for output only.
    precursor_scan_number : int
        Scan whose peaks are used to score this precursor.
    actual_mz : float
        Observed peak closest to ``isolation_mz`` (0.0 until scored).
    interference_score : float
        Fraction of in-window intensity explained by the precursor's
        isotope series. 1.0 is clean, 0.0 is fully interfered or unscorable.
    precursor_intensity : float
        Intensity of the peak at ``actual_mz``.
    ion_collection_time : float
        Ion injection time in ms, passed through to the output.
    status : InterferenceStatus
        Distinguishes a genuine score from the 0.0 sentinel.
    """

    isolation_mz: float
    isolation_width: float
    charge_state: int = 0
    scan_number: int = 0
    precursor_scan_number: int = 0
    actual_mz: float = 0.0
    interference_score: float = 0.0
    precursor_intensity: float = 0.0
    ion_collection_time: float = 0.0
    status: InterferenceStatus = InterferenceStatus.NOT_SCORED

    def __setattr__(self, name, value):
        if name in _IMMUTABLE_FIELDS and name in self.__dict__:
            raise AttributeError(f"{name} cannot be changed once set")
        super().__setattr__(name, value)

    @property
    def has_charge(self) -> bool:
        return self.charge_state > 0

    @property
    def is_scored(self) -> bool:
        """True when the score is a real measurement, not the 0.0 sentinel."""
        return self.status == InterferenceStatus.SCORED

    def update_charge(self, new_charge_state: int) -> None:
        self.charge_state = int(new_charge_state)

    def __str__(self) -> str:
        text = (
            f"MS2 scan {self.scan_number} @ {self.isolation_mz:.2f} m/z, "
            f"charge {self.charge_state}"
        )
        if self.precursor_scan_number:
            return f"Precursor scan {self.precursor_scan_number} for {text}"
        return text


# =============================================================================
# Peak Conversion
# =============================================================================

def peaks_to_arrays(peaks: Iterable[Peak]) -> Tuple[np.ndarray, np.ndarray]:
    """Convert peaks to (mz, intensity) float64 arrays, dropping zero intensities.

    Parameters
    ----------
    peaks : Iterable[Peak]
        Peaks or plain ``(mz, intensity)`` pairs, any order

    Returns
    -------
    mz : np.ndarray (float64)
    intensity : np.ndarray (float64)
        Parallel arrays in input order, only entries with intensity > 0

    Examples
    --------
    >>> mz, intensity = peaks_to_arrays([Peak(500.0, 10.0), Peak(500.5, 0.0)])
    >>> mz
    array([500.])
    """
    data = np.asarray([tuple(p) for p in peaks], dtype=np.float64)
    if data.size == 0:
        return np.zeros(0, dtype=np.float64), np.zeros(0, dtype=np.float64)

    keep = data[:, 1] > 0
    return data[keep, 0].copy(), data[keep, 1].copy()


def arrays_to_peaks(mz: np.ndarray, intensity: np.ndarray) -> List[Peak]:
    """Inverse of :func:`peaks_to_arrays` (zero intensities are dropped too)."""
    return [
        Peak(float(m), float(i))
        for m, i in zip(mz, intensity)
        if i > 0
    ]


def spectrum_2d_to_arrays(spectrum_2d: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Split a ``[2, n]`` array (row 0 m/z, row 1 intensity) into two arrays.

    Entries are kept as-is (zero intensities included) so that indices keep
    matching the source scan; window extraction filters them later.
    """
    data = np.asarray(spectrum_2d, dtype=np.float64)
    if data.ndim != 2 or data.shape[0] != 2:
        raise ValueError(f"Expected array of shape (2, n), got {data.shape}")
    return np.ascontiguousarray(data[0]), np.ascontiguousarray(data[1])
