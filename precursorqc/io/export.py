"""Tab-delimited export of interference scores.

One row per MS2 scan. Files are appended to, so several datasets can share
one output file; the header is written only when the file is created.
Numbers are written with a fixed maximum number of decimals and trailing
zeros removed (``641.68000`` -> ``641.68``).
"""

import csv
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Union

from ..precursor import PrecursorDescriptor

logger = logging.getLogger(__name__)

COLUMNS = [
    "DatasetID",
    "ScanNumber",
    "PrecursorScanNumber",
    "ParentMZ",
    "ChargeState",
    "IsoWidth",
    "Interference",
    "PrecursorIntensity",
    "IonCollectionTime",
]

# Max decimals per numeric column
PARENT_MZ_DIGITS = 5
ISO_WIDTH_DIGITS = 3
INTERFERENCE_DIGITS = 4
INTENSITY_DIGITS = 2
ION_COLLECTION_TIME_DIGITS = 2


def format_number(value: float, digits: int) -> str:
    """Format with at most ``digits`` decimals, trailing zeros stripped.

    Examples
    --------
    >>> format_number(641.68, 5)
    '641.68'
    >>> format_number(0.949827, 4)
    '0.9498'
    >>> format_number(1.0, 4)
    '1'
    """
    if digits < 1:
        text = f"{value:.0f}"
    else:
        text = f"{value:.{digits}f}".rstrip('0').rstrip('.')

    if text in ("-0", "", "-"):
        return "0"
    return text


def format_record(precursor: PrecursorDescriptor, dataset_id: str) -> List[str]:
    """Output columns for one precursor."""
    return [
        str(dataset_id),
        str(precursor.scan_number),
        str(precursor.precursor_scan_number),
        format_number(precursor.isolation_mz, PARENT_MZ_DIGITS),
        str(precursor.charge_state),
        format_number(precursor.isolation_width, ISO_WIDTH_DIGITS),
        format_number(precursor.interference_score, INTERFERENCE_DIGITS),
        format_number(precursor.precursor_intensity, INTENSITY_DIGITS),
        format_number(precursor.ion_collection_time, ION_COLLECTION_TIME_DIGITS),
    ]


def write_interference_scores(
    precursors: Iterable[PrecursorDescriptor],
    dataset_id: str,
    path: Union[str, Path],
) -> int:
    """Append interference scores to a tab-delimited file.

    Parameters
    ----------
    precursors : Iterable[PrecursorDescriptor]
        Scored precursors of one dataset
    dataset_id : str
        Written to the first column of every row
    path : str or Path
        Output file; created with a header if missing

    Returns
    -------
    int
        Number of rows written
    """
    path = Path(path)
    file_exists = path.exists()

    n_rows = 0
    with open(path, 'a', newline='') as f:
        writer = csv.writer(f, delimiter='\t', lineterminator='\n')
        if not file_exists:
            writer.writerow(COLUMNS)
        for precursor in precursors:
            writer.writerow(format_record(precursor, dataset_id))
            n_rows += 1

    logger.info(f"Wrote {n_rows:,} interference scores for dataset {dataset_id} to {path.name}")
    return n_rows


@dataclass(frozen=True)
class InterferenceRecord:
    """One row of an interference score file."""

    dataset_id: str
    scan_number: int
    precursor_scan_number: int
    parent_mz: float
    charge_state: int
    isolation_width: float
    interference: float
    precursor_intensity: float
    ion_collection_time: float


def read_interference_scores(path: Union[str, Path]) -> List[InterferenceRecord]:
    """Parse a file written by :func:`write_interference_scores`.

    Raises
    ------
    FileNotFoundError
        If the file does not exist
    ValueError
        If the header misses a column
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Interference score file not found: {path}")

    records = []
    with open(path, newline='') as f:
        reader = csv.DictReader(f, delimiter='\t')
        missing = [c for c in COLUMNS if c not in (reader.fieldnames or [])]
        if missing:
            raise ValueError(f"{path.name} is missing columns: {', '.join(missing)}")

        for row in reader:
            records.append(InterferenceRecord(
                dataset_id=row["DatasetID"],
                scan_number=int(row["ScanNumber"]),
                precursor_scan_number=int(row["PrecursorScanNumber"]),
                parent_mz=float(row["ParentMZ"]),
                charge_state=int(row["ChargeState"]),
                isolation_width=float(row["IsoWidth"]),
                interference=float(row["Interference"]),
                precursor_intensity=float(row["PrecursorIntensity"]),
                ion_collection_time=float(row["IonCollectionTime"]),
            ))

    return records
