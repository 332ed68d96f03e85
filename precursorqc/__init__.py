"""PrecursorQC - Precursor interference scores for MS/MS data.

For every MS2 scan, measures which fraction of the ion current inside the
isolation window belongs to the selected precursor's isotope series. Low
scores flag co-isolated ions that contaminate fragment spectra (and reporter
ion quantification).

Charge states missing from the instrument metadata are taken from
deisotoping results when available, and otherwise estimated from the
isotope spacing in the survey scan.
"""

__version__ = "0.1.0"

from precursorqc import interference
from precursorqc import io
from precursorqc.detector import DatasetProcessingError, InterferenceDetector
from precursorqc.interference import InterferenceCalculator, InterferenceParams
from precursorqc.precursor import InterferenceStatus, Peak, PrecursorDescriptor

__all__ = [
    "interference",
    "io",
    "DatasetProcessingError",
    "InterferenceDetector",
    "InterferenceCalculator",
    "InterferenceParams",
    "InterferenceStatus",
    "Peak",
    "PrecursorDescriptor",
]
