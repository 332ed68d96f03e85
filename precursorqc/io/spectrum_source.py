"""Spectrum sources: scan metadata and centroided peaks by scan number.

The interference pass needs two things from a spectrum file: the metadata of
every scan (MS level, parent m/z, isolation width, charge, injection time) and
the centroided peaks of the MS1 scans that precursors were selected from.
:class:`SpectrumSource` states that contract; :class:`MzMLSpectrumSource`
implements it for mzML/mzXML files using pyteomics.

Sources are context managers; the caller opens and closes them.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import numpy as np

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanMetadata:
    """Metadata of one scan, as needed by the interference pass.

    Attributes
    ----------
    scan_number : int
        Scan number (1-based)
    ms_level : int
        1 for survey scans, 2+ for fragmentation scans
    parent_mz : float
        Precursor m/z (0.0 for MS1 scans or when not reported)
    isolation_width : float, optional
        Full isolation window width; None if the scan does not report it
    charge_state_hint : int, optional
        Instrument-reported charge; None or 0 if unknown
    injection_time : float, optional
        Ion injection time in ms
    monoisotopic_mz : float, optional
        Instrument-corrected monoisotopic m/z, if reported
    """

    scan_number: int
    ms_level: int
    parent_mz: float = 0.0
    isolation_width: Optional[float] = None
    charge_state_hint: Optional[int] = None
    injection_time: Optional[float] = None
    monoisotopic_mz: Optional[float] = None

    @property
    def is_ms1(self) -> bool:
        return self.ms_level <= 1


class SpectrumSource(ABC):
    """Scan-level access to a spectrum file."""

    @abstractmethod
    def __enter__(self) -> "SpectrumSource":
        ...

    @abstractmethod
    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        ...

    @abstractmethod
    def scan_numbers(self) -> List[int]:
        """All scan numbers, ascending."""
        ...

    @abstractmethod
    def get_scan_metadata(self, scan_number: int) -> ScanMetadata:
        ...

    @abstractmethod
    def get_scan_peaks(self, scan_number: int) -> Tuple[np.ndarray, np.ndarray]:
        """Centroided peaks as ``(mz, intensity)``, ascending m/z, intensity > 0."""
        ...


class ScanPeakCache:
    """Single-slot cache of decoded scan peaks, keyed by scan number.

    Consecutive MS2 scans usually share the same precursor scan, and scans
    are visited in increasing order, so one slot is enough.
    """

    def __init__(self, source: SpectrumSource):
        self.source = source
        self.scan_number: Optional[int] = None
        self._peaks: Optional[Tuple[np.ndarray, np.ndarray]] = None
        self.n_loads = 0

    def get(self, scan_number: int) -> Tuple[np.ndarray, np.ndarray]:
        if self._peaks is None or self.scan_number != scan_number:
            self._peaks = self.source.get_scan_peaks(scan_number)
            self.scan_number = scan_number
            self.n_loads += 1
        return self._peaks

    def clear(self) -> None:
        self.scan_number = None
        self._peaks = None


# =============================================================================
# mzML / mzXML
# =============================================================================

_SCAN_NUMBER_PATTERNS = (
    r'scan=(\d+)',
    r'spectrum=(\d+)',
    r'index=(\d+)',
    r'^(\d+)$',
)


def extract_scan_number(native_id: str, index: int) -> int:
    """Scan number from a native ID, falling back to ``index + 1``.

    Examples
    --------
    >>> extract_scan_number("controllerType=0 controllerNumber=1 scan=123", 0)
    123
    >>> extract_scan_number("", 9)
    10
    """
    if native_id:
        for pattern in _SCAN_NUMBER_PATTERNS:
            match = re.search(pattern, native_id)
            if match:
                return int(match.group(1))
    return index + 1


def _first(container, key: str) -> dict:
    """First element of a pyteomics list-or-dict child, or an empty dict."""
    items = container.get(key, [])
    if isinstance(items, list):
        return items[0] if items else {}
    return items or {}


def _optional_float(value) -> Optional[float]:
    if value is None or value == '':
        return None
    return float(value)


def parse_scan_metadata(spectrum_data: dict, scan_number: int) -> ScanMetadata:
    """Build :class:`ScanMetadata` from a pyteomics mzML/mzXML spectrum dict."""
    ms_level = int(spectrum_data.get('ms level', spectrum_data.get('msLevel', 1)))

    scan_info = _first(spectrum_data.get('scanList', {}), 'scan')
    injection_time = _optional_float(
        scan_info.get('ion injection time', spectrum_data.get('ion injection time'))
    )

    if ms_level <= 1:
        return ScanMetadata(
            scan_number=scan_number,
            ms_level=ms_level,
            injection_time=injection_time,
        )

    # mzML layout
    precursor = _first(spectrum_data.get('precursorList', {}), 'precursor')
    if precursor:
        ion = _first(precursor.get('selectedIonList', {}), 'selectedIon')
        isolation = precursor.get('isolationWindow', {})

        parent_mz = _optional_float(ion.get('selected ion m/z')) or 0.0
        charge = ion.get('charge state')
        lower = _optional_float(isolation.get('isolation window lower offset'))
        upper = _optional_float(isolation.get('isolation window upper offset'))
        target = _optional_float(isolation.get('isolation window target m/z'))
    else:
        # mzXML layout
        mzxml_precursor = _first(spectrum_data, 'precursorMz')
        parent_mz = _optional_float(mzxml_precursor.get('precursorMz')) or 0.0
        charge = mzxml_precursor.get('precursorCharge')
        width = _optional_float(mzxml_precursor.get('windowWideness'))
        lower = upper = None if width is None else width / 2.0
        target = None

    isolation_width = None
    if lower is not None and upper is not None:
        isolation_width = lower + upper

    monoisotopic_mz = target if target and abs(target - parent_mz) > 1e-6 else None
    if abs(parent_mz) < 1e-6 and monoisotopic_mz is not None:
        parent_mz = monoisotopic_mz

    return ScanMetadata(
        scan_number=scan_number,
        ms_level=ms_level,
        parent_mz=parent_mz,
        isolation_width=isolation_width,
        charge_state_hint=int(charge) if charge else None,
        injection_time=injection_time,
        monoisotopic_mz=monoisotopic_mz,
    )


class MzMLSpectrumSource(SpectrumSource):
    """Spectrum source for mzML and mzXML files (pyteomics).

    Peaks are taken as stored; files must contain centroided spectra.

    Examples
    --------
    >>> with MzMLSpectrumSource("sample.mzML") as source:
    ...     for scan in source.scan_numbers():
    ...         meta = source.get_scan_metadata(scan)
    """

    supported_extensions = ('.mzml', '.mzxml')

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        if not self.path.exists():
            raise FileNotFoundError(f"Spectrum file not found: {self.path}")
        if self.path.suffix.lower() not in self.supported_extensions:
            raise ValueError(
                f"Unsupported extension {self.path.suffix} for {self.path.name}. "
                f"Expected: {self.supported_extensions}"
            )

        self._is_mzxml = self.path.suffix.lower() == '.mzxml'
        self._reader = None
        self._native_ids: Dict[int, str] = {}
        self._metadata: Dict[int, ScanMetadata] = {}

    def __enter__(self) -> "MzMLSpectrumSource":
        if self._is_mzxml:
            from pyteomics import mzxml
            self._reader = mzxml.MzXML(str(self.path), use_index=True)
        else:
            from pyteomics import mzml
            self._reader = mzml.MzML(str(self.path), use_index=True)

        self._build_index()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._reader is not None:
            self._reader.close()
            self._reader = None

    def _require_open(self):
        if self._reader is None:
            raise RuntimeError("Spectrum source not opened. Use 'with' context manager.")
        return self._reader

    def _build_index(self) -> None:
        """Map scan numbers to native IDs and collect all scan metadata.

        Peak arrays are left encoded during this pass; only the precursor
        scans are decoded later, by :meth:`get_scan_peaks`.
        """
        reader = self._require_open()
        self._native_ids = {}
        self._metadata = {}

        reader.decode_binary = False
        try:
            reader.reset()
            for index, spectrum_data in enumerate(reader):
                native_id = str(spectrum_data.get('id', spectrum_data.get('num', '')))
                scan_number = extract_scan_number(native_id, index)
                self._native_ids[scan_number] = native_id
                self._metadata[scan_number] = parse_scan_metadata(spectrum_data, scan_number)
        finally:
            reader.decode_binary = True

        logger.info(f"Indexed {len(self._native_ids):,} scans from {self.path.name}")

    def scan_numbers(self) -> List[int]:
        self._require_open()
        return sorted(self._native_ids)

    def get_scan_metadata(self, scan_number: int) -> ScanMetadata:
        self._require_open()
        try:
            return self._metadata[scan_number]
        except KeyError:
            raise KeyError(f"Scan {scan_number} not found in {self.path.name}") from None

    def get_scan_peaks(self, scan_number: int) -> Tuple[np.ndarray, np.ndarray]:
        reader = self._require_open()
        if scan_number not in self._native_ids:
            raise KeyError(f"Scan {scan_number} not found in {self.path.name}")

        spectrum_data = reader.get_by_id(self._native_ids[scan_number])
        mz = np.asarray(spectrum_data.get('m/z array', []), dtype=np.float64)
        intensity = np.asarray(spectrum_data.get('intensity array', []), dtype=np.float64)

        keep = intensity > 0
        mz = mz[keep]
        intensity = intensity[keep]

        order = np.argsort(mz, kind="stable")
        return mz[order], intensity[order]
