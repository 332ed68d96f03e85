"""Charge hints from deisotoping results (``_isos.csv`` style files).

Some MS2 scans come without a charge state. If the survey scans were
deisotoped beforehand, the feature table of the precursor scan usually knows
the charge of the selected ion. This module loads such a table and answers
``(precursor scan, m/z) -> charge``.

Expected format: comma- or tab-delimited text with a header naming (case
insensitive) ``scan_num``, ``charge``, ``mz`` and ``abundance``. Other
columns are ignored, unparsable cells read as 0.
"""

import csv
import logging
from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from ..constants import CHARGE_HINT_MZ_TOLERANCE

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("abundance", "mz", "scan_num", "charge")


class ChargeHintFormatError(ValueError):
    """The charge-hint file is empty or misses a required column."""


@dataclass(frozen=True)
class ChargeHint:
    """One deisotoped feature of a survey scan."""

    scan_number: int
    mz: float
    abundance: float
    charge: int


def _parse_float(value: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _parse_int(value: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


class ChargeHintTable:
    """Deisotoped features grouped by survey scan number.

    Examples
    --------
    >>> hints = ChargeHintTable.from_file("dataset_isos.csv")
    >>> hints.lookup_charge_hint(1203, 641.68)
    3
    """

    def __init__(
        self,
        hints: Iterable[ChargeHint],
        mz_tolerance: float = CHARGE_HINT_MZ_TOLERANCE,
    ):
        self.mz_tolerance = mz_tolerance
        self._by_scan: Dict[int, List[ChargeHint]] = defaultdict(list)
        for hint in hints:
            self._by_scan[hint.scan_number].append(hint)

    @classmethod
    def from_file(
        cls,
        path: Union[str, Path],
        mz_tolerance: float = CHARGE_HINT_MZ_TOLERANCE,
    ) -> "ChargeHintTable":
        """Load a charge-hint file.

        Raises
        ------
        FileNotFoundError
            If the file does not exist
        ChargeHintFormatError
            If the file is empty or lacks a required column
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Charge hint file not found: {path}")

        logger.info(f"Reading charge hints: {path.name}")

        with open(path, newline='') as f:
            header_line = f.readline()
            if not header_line.strip():
                raise ChargeHintFormatError(f"Charge hint file is empty: {path}")

            delimiter = '\t' if '\t' in header_line else ','
            header = [name.strip().lower() for name in header_line.rstrip('\r\n').split(delimiter)]

            columns = {}
            for name in REQUIRED_COLUMNS:
                if name not in header:
                    raise ChargeHintFormatError(
                        f"Charge hint file {path.name} does not have column: {name}"
                    )
                columns[name] = header.index(name)

            hints = []
            for row in csv.reader(f, delimiter=delimiter):
                if not row:
                    continue
                values = row + [''] * (len(header) - len(row))
                hints.append(ChargeHint(
                    scan_number=_parse_int(values[columns["scan_num"]]),
                    mz=_parse_float(values[columns["mz"]]),
                    abundance=_parse_float(values[columns["abundance"]]),
                    charge=_parse_int(values[columns["charge"]]),
                ))

        table = cls(hints, mz_tolerance=mz_tolerance)
        logger.info(f"✓ Read {len(hints):,} features from {len(table):,} scans")
        return table

    def __len__(self) -> int:
        """Number of survey scans with at least one feature."""
        return len(self._by_scan)

    def has_scan(self, scan_number: int) -> bool:
        return scan_number in self._by_scan

    def lookup_charge_hint(self, scan_number: int, mz: float) -> Optional[int]:
        """Charge of the first feature of ``scan_number`` within tolerance of ``mz``.

        Returns None if the scan is unknown, nothing matches, or the
        matching feature has charge 0.
        """
        for hint in self._by_scan.get(scan_number, ()):
            if mz - self.mz_tolerance < hint.mz < mz + self.mz_tolerance:
                return hint.charge if hint.charge != 0 else None
        return None
