"""Pytest configuration for PrecursorQC tests.

This module provides common fixtures for all tests: reference peak lists
recorded on Orbitrap instruments, and a small in-memory dataset served by
an in-memory spectrum source so that the detector can be tested without
mzML files.
"""

from pathlib import Path

import numpy as np
import pytest

from precursorqc.constants import C12_C13_MASS_DIFFERENCE
from precursorqc.io.spectrum_source import ScanMetadata, SpectrumSource

DATA_DIR = Path(__file__).parent / "data"


def parse_peak_string(peaks: str):
    """Parse ``"mz,intensity|mz,intensity|..."`` into two float64 arrays."""
    pairs = [p.split(',') for p in peaks.split('|') if ',' in p]
    mz = np.array([float(m) for m, _ in pairs], dtype=np.float64)
    intensity = np.array([float(i) for _, i in pairs], dtype=np.float64)
    return mz, intensity


# =============================================================================
# Reference Spectra
# =============================================================================

@pytest.fixture
def charge_guess_scan():
    """Centroided survey scan (424 peaks, 425-1110 m/z) as (mz, intensity).

    Used to check charge estimation against instrument-reported charges.
    """
    data = np.loadtxt(DATA_DIR / "charge_guess_scan.tsv", delimiter='\t', skiprows=1)
    return np.ascontiguousarray(data[:, 0]), np.ascontiguousarray(data[:, 1])


@pytest.fixture
def known_charge_states():
    """Isolation m/z and instrument-reported charge for precursors of ``charge_guess_scan``."""
    return [
        (428.9168, 3),
        (436.5596, 3),
        (443.7350, 2),
        (450.8925, 3),
        (454.7563, 2),
        (457.2725, 4),
        (474.7589, 2),
        (534.3016, 3),
        (642.3702, 2),
        (720.3926, 1),
        (800.9453, 2),
        (857.4833, 1),
        (880.3828, 1),
        (989.4995, 1),
        (1108.5516, 1),
    ]


@pytest.fixture
def clean_window():
    """Isolation window around 641.68 m/z (charge 3) with little interference.

    Expected interference score: 0.9498
    """
    return parse_peak_string(
        "639.7077,167199|640.0714,169516|640.3343,156139|640.3762,123602|"
        "640.6768,194863|640.7348,103064|640.8257,133304|641.0148,2440679|"
        "641.3479,2129230|641.6791,883178|641.8780,86945|642.0114,459777|"
        "642.3540,207854|642.8660,169017|643.3537,222952|643.6028,221999"
    )


@pytest.fixture
def interfered_window():
    """Isolation window around 583.66 m/z (charge 3) with strong interference.

    Expected interference score: 0.3605
    """
    return parse_peak_string(
        "581.6601,172507|581.8665,452705|581.9954,151606|582.3293,4048004|"
        "582.6630,3479459|582.9980,2128995|583.3313,1151475|583.6556,1625434|"
        "583.8265,102997|583.9895,1482809|584.0642,65116|584.3242,796772|"
        "584.6605,456975|584.7721,153606|584.8549,100397|584.9973,1992716|"
        "585.2829,71041|585.3314,1901800|585.5741,65218|585.6661,770890"
    )


# =============================================================================
# In-Memory Dataset
# =============================================================================

class InMemorySpectrumSource(SpectrumSource):
    """Spectrum source serving scans from dictionaries; counts peak decodes."""

    def __init__(self, metadata, peaks):
        self.metadata = {m.scan_number: m for m in metadata}
        self.peaks = peaks
        self.peak_requests = []
        self.is_open = False

    def __enter__(self):
        self.is_open = True
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.is_open = False

    def scan_numbers(self):
        return sorted(self.metadata)

    def get_scan_metadata(self, scan_number):
        return self.metadata[scan_number]

    def get_scan_peaks(self, scan_number):
        self.peak_requests.append(scan_number)
        mz, intensity = self.peaks.get(scan_number, ([], []))
        return np.asarray(mz, dtype=np.float64), np.asarray(intensity, dtype=np.float64)


HALF_SPACING = C12_C13_MASS_DIFFERENCE / 2


def build_dataset():
    """Six scans: two survey scans, each followed by MS2 scans.

    - Scan 1 (MS1): charge 2 envelope at 500.0 m/z plus an interferer at 500.3
    - Scan 2 (MS2): 500.0 m/z, charge 2 reported, score 1.5e6 / 1.6e6
    - Scan 3 (MS2): 500.0 m/z, no charge reported (estimated as 2)
    - Scan 4 (MS2): no isolation width reported (skipped)
    - Scan 5 (MS1): single peak at 700.0 m/z plus an interferer at 700.2
    - Scan 6 (MS2): 700.0 m/z, charge 0 (only resolvable through a charge hint)
    """
    metadata = [
        ScanMetadata(scan_number=1, ms_level=1),
        ScanMetadata(scan_number=2, ms_level=2, parent_mz=500.0, isolation_width=2.0,
                     charge_state_hint=2, injection_time=35.5),
        ScanMetadata(scan_number=3, ms_level=2, parent_mz=500.0, isolation_width=2.0),
        ScanMetadata(scan_number=4, ms_level=2, parent_mz=500.0),
        ScanMetadata(scan_number=5, ms_level=1),
        ScanMetadata(scan_number=6, ms_level=2, parent_mz=700.0, isolation_width=2.0,
                     charge_state_hint=0, injection_time=12.0),
    ]
    peaks = {
        1: (
            [500.0, 500.3, 500.0 + HALF_SPACING, 500.0 + 2 * HALF_SPACING],
            [1e6, 1e5, 5e5, 2e5],
        ),
        5: (
            [700.0, 700.2],
            [1e6, 3e5],
        ),
    }
    return metadata, peaks


@pytest.fixture
def in_memory_source():
    """Unopened :class:`InMemorySpectrumSource` over :func:`build_dataset`."""
    metadata, peaks = build_dataset()
    return InMemorySpectrumSource(metadata, peaks)


@pytest.fixture
def source_factory():
    """Factory returning a fresh in-memory source whatever path it is given.

    The created sources are collected in ``factory.sources``.
    """
    def factory(path):
        metadata, peaks = build_dataset()
        source = InMemorySpectrumSource(metadata, peaks)
        factory.sources.append((path, source))
        return source

    factory.sources = []
    return factory


@pytest.fixture
def charge_hint_file(tmp_path):
    """Deisotoping results giving charge 3 for 700.0 m/z in scan 5."""
    path = tmp_path / "sample_isos.csv"
    path.write_text(
        "scan_num,charge,abundance,mz,fit,monoisotopic_mw\n"
        "1,2,1000000,500.0000,0.01,998.0\n"
        "5,3,1000000,700.0010,0.02,2097.0\n"
        "5,1,300000,700.2000,0.10,699.2\n"
    )
    return path


@pytest.fixture
def two_scan_mzml():
    """Centroided mzML file: survey scan 1 and MS2 scan 2 (500.0 m/z, 2+).

    Scan 1 is stored unsorted with one zero-intensity peak at 500.9.
    """
    return DATA_DIR / "two_scans.mzML"
