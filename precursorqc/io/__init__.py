"""Input and output for interference scoring.

- Spectrum sources (mzML / mzXML via pyteomics) and the scan peak cache
- Charge hints from deisotoping results
- Tab-delimited score export
- SQLite results database glue
"""

from .charge_hints import ChargeHint, ChargeHintFormatError, ChargeHintTable
from .export import (
    COLUMNS,
    InterferenceRecord,
    format_number,
    read_interference_scores,
    write_interference_scores,
)
from .results_db import (
    ResultsDatabaseError,
    import_interference_table,
    lookup_charge_hint_files,
    lookup_msms_files,
)
from .spectrum_source import (
    MzMLSpectrumSource,
    ScanMetadata,
    ScanPeakCache,
    SpectrumSource,
    extract_scan_number,
    parse_scan_metadata,
)

__all__ = [
    "ChargeHint",
    "ChargeHintFormatError",
    "ChargeHintTable",
    "COLUMNS",
    "InterferenceRecord",
    "format_number",
    "read_interference_scores",
    "write_interference_scores",
    "ResultsDatabaseError",
    "import_interference_table",
    "lookup_charge_hint_files",
    "lookup_msms_files",
    "MzMLSpectrumSource",
    "ScanMetadata",
    "ScanPeakCache",
    "SpectrumSource",
    "extract_scan_number",
    "parse_scan_metadata",
]
