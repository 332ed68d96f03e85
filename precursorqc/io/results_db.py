"""SQLite results database: dataset lookup and score import.

The batch driver works from a results database that lists the datasets to
process:

- ``t_msms_raw_files`` (``Dataset_ID``, ``Dataset``, ``Folder``): one row per
  spectrum file
- ``T_Results_Metadata_Typed`` or ``t_results_metadata`` (``Dataset_ID``,
  ``Dataset``, ``Folder``, ``Tool``): analysis results; rows of deisotoping
  tools (``Tool LIKE 'Decon%'``) point at ``<Dataset>_isos.csv`` charge hints

Scores are written back into ``t_precursor_interference``.
"""

import logging
import sqlite3
from pathlib import Path
from typing import Dict, Union

from .export import COLUMNS, read_interference_scores

logger = logging.getLogger(__name__)

MSMS_FILES_TABLE = "t_msms_raw_files"
RESULTS_METADATA_TABLES = ("T_Results_Metadata_Typed", "t_results_metadata")
INTERFERENCE_TABLE = "t_precursor_interference"
CHARGE_HINT_SUFFIX = "_isos.csv"

_COLUMN_TYPES = {
    "DatasetID": "TEXT",
    "ScanNumber": "INTEGER",
    "PrecursorScanNumber": "INTEGER",
    "ParentMZ": "REAL",
    "ChargeState": "INTEGER",
    "IsoWidth": "REAL",
    "Interference": "REAL",
    "PrecursorIntensity": "REAL",
    "IonCollectionTime": "REAL",
}


class ResultsDatabaseError(Exception):
    """The results database lacks a required table or lists no datasets."""


def _connect(db_path: Union[str, Path]) -> sqlite3.Connection:
    db_path = Path(db_path)
    if not db_path.exists():
        raise FileNotFoundError(f"Results database not found: {db_path}")
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    return conn


def lookup_msms_files(
    db_path: Union[str, Path],
    extension: str = ".mzML",
) -> Dict[str, Path]:
    """Spectrum file of every dataset, keyed by dataset ID.

    A dataset folder can hold more than one spectrum file; the first row of
    a dataset wins.

    Raises
    ------
    ResultsDatabaseError
        If the table is missing or empty
    """
    conn = _connect(db_path)
    try:
        try:
            rows = conn.execute(
                f"SELECT Dataset_ID, Dataset, Folder FROM {MSMS_FILES_TABLE}"
            ).fetchall()
        except sqlite3.OperationalError as e:
            raise ResultsDatabaseError(
                f"Cannot read {MSMS_FILES_TABLE} from {Path(db_path).name}: {e}"
            ) from e
    finally:
        conn.close()

    file_paths: Dict[str, Path] = {}
    for row in rows:
        dataset_id = str(row["Dataset_ID"])
        if dataset_id not in file_paths:
            file_paths[dataset_id] = Path(row["Folder"]) / f"{row['Dataset']}{extension}"

    if not file_paths:
        raise ResultsDatabaseError(f"No datasets found in {MSMS_FILES_TABLE}")

    logger.info(f"Found {len(file_paths):,} datasets in {MSMS_FILES_TABLE}")
    return file_paths


def lookup_charge_hint_files(db_path: Union[str, Path]) -> Dict[str, Path]:
    """Charge-hint file of every deisotoped dataset, keyed by dataset ID.

    Only rows whose folder exists and holds files are returned. Charge hints
    are optional, so an empty result is not an error.

    Raises
    ------
    ResultsDatabaseError
        If neither results metadata table exists
    """
    conn = _connect(db_path)
    try:
        rows = None
        for table in RESULTS_METADATA_TABLES:
            try:
                rows = conn.execute(
                    f"SELECT Dataset_ID, Dataset, Folder FROM {table} WHERE Tool LIKE 'Decon%'"
                ).fetchall()
                break
            except sqlite3.OperationalError:
                logger.info(f"Table {table} not found")
    finally:
        conn.close()

    if rows is None:
        raise ResultsDatabaseError(
            f"None of {', '.join(RESULTS_METADATA_TABLES)} found in {Path(db_path).name}"
        )

    hint_paths: Dict[str, Path] = {}
    for row in rows:
        folder = Path(row["Folder"])
        if folder.is_dir() and any(folder.iterdir()):
            hint_paths[str(row["Dataset_ID"])] = folder / f"{row['Dataset']}{CHARGE_HINT_SUFFIX}"

    logger.info(f"Found charge hints for {len(hint_paths):,} datasets")
    return hint_paths


def import_interference_table(
    db_path: Union[str, Path],
    scores_path: Union[str, Path],
    table: str = INTERFERENCE_TABLE,
) -> int:
    """Replace ``table`` with the rows of an interference score file.

    Returns
    -------
    int
        Number of imported rows
    """
    records = read_interference_scores(scores_path)

    column_defs = ", ".join(f"{name} {_COLUMN_TYPES[name]}" for name in COLUMNS)
    placeholders = ", ".join("?" for _ in COLUMNS)

    conn = _connect(db_path)
    try:
        with conn:
            conn.execute(f"DROP TABLE IF EXISTS {table}")
            conn.execute(f"CREATE TABLE {table} ({column_defs})")
            conn.executemany(
                f"INSERT INTO {table} ({', '.join(COLUMNS)}) VALUES ({placeholders})",
                [
                    (
                        r.dataset_id,
                        r.scan_number,
                        r.precursor_scan_number,
                        r.parent_mz,
                        r.charge_state,
                        r.isolation_width,
                        r.interference,
                        r.precursor_intensity,
                        r.ion_collection_time,
                    )
                    for r in records
                ],
            )
    finally:
        conn.close()

    logger.info(f"✓ Imported {len(records):,} rows into {table}")
    return len(records)
