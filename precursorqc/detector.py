"""Dataset-level interference detection.

For every MS2 scan of a spectrum file:

1. The most recent MS1 scan is taken as its precursor scan
2. The charge comes from the scan metadata, then from the charge hints of
   the precursor scan, and is otherwise estimated from the peaks
3. The precursor is scored against the centroided peaks of its precursor
   scan (decoded once per precursor scan)

:meth:`InterferenceDetector.run` repeats this for every dataset listed in a
results database and imports the scores back into it.

Examples
--------
>>> detector = InterferenceDetector(keep_temp=True)
>>> detector.process_dataset("sample.mzML", "1001", "scores.txt")
>>> detector.run("Results.db3")
"""

import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from .interference import InterferenceCalculator, InterferenceParams
from .io.charge_hints import ChargeHintTable
from .io.export import write_interference_scores
from .io.results_db import (
    ResultsDatabaseError,
    import_interference_table,
    lookup_charge_hint_files,
    lookup_msms_files,
)
from .io.spectrum_source import MzMLSpectrumSource, ScanMetadata, ScanPeakCache, SpectrumSource
from .precursor import PrecursorDescriptor

logger = logging.getLogger(__name__)

TEMP_SCORES_FILE_NAME = "prec_info_temp.txt"
PROGRESS_STEP = 0.05

ProgressCallback = Callable[[float, float], None]


class DatasetProcessingError(Exception):
    """Datasets of a batch run could not be processed.

    Raised after the remaining datasets were scored and imported.
    ``failures`` maps each failed dataset ID to its exception.
    """

    def __init__(self, failures: Dict[str, Exception], n_rows_imported: int = 0):
        details = "; ".join(f"{dataset_id}: {error}" for dataset_id, error in failures.items())
        super().__init__(f"{len(failures)} dataset(s) failed ({details})")
        self.failures = failures
        self.n_rows_imported = n_rows_imported

    @property
    def dataset_ids(self) -> List[str]:
        return list(self.failures)


def _precursor_mz(meta: ScanMetadata) -> float:
    if abs(meta.parent_mz) < 1e-6 and meta.monoisotopic_mz is not None:
        return meta.monoisotopic_mz
    return meta.parent_mz


class InterferenceDetector:
    """Score precursor interference for whole datasets.

    Parameters
    ----------
    params : InterferenceParams, optional
        Scoring tolerances (default: InterferenceParams())
    progress_callback : callable, optional
        Called as ``callback(percent_overall, percent_current_file)`` every
        5% of the scans of a file
    keep_temp : bool
        Keep the intermediate score file written by :meth:`run`
    spectrum_extension : str
        Extension of the spectrum files listed in a results database
    source_factory : callable
        Opens a spectrum file as a :class:`SpectrumSource`
    """

    def __init__(
        self,
        params: Optional[InterferenceParams] = None,
        progress_callback: Optional[ProgressCallback] = None,
        keep_temp: bool = False,
        spectrum_extension: str = ".mzML",
        source_factory: Callable[[Path], SpectrumSource] = MzMLSpectrumSource,
    ):
        self.calculator = InterferenceCalculator(params)
        self.progress_callback = progress_callback
        self.keep_temp = keep_temp
        self.spectrum_extension = spectrum_extension
        self.source_factory = source_factory

    @property
    def params(self) -> InterferenceParams:
        return self.calculator.params

    def _report_progress(self, fraction: float, file_index: int, file_count: int) -> None:
        if fraction > 0:
            logger.info(f"  {fraction * 100:.0f}% completed")

        if self.progress_callback is not None:
            percent_current_file = fraction * 100
            percent_overall = ((file_index - 1) / file_count + fraction / file_count) * 100
            self.progress_callback(percent_overall, percent_current_file)

    # =========================================================================
    # Single dataset
    # =========================================================================

    def collect_precursors(
        self,
        source: SpectrumSource,
        charge_hints: Optional[ChargeHintTable] = None,
        scan_start: int = 0,
        scan_end: int = 0,
        file_index: int = 1,
        file_count: int = 1,
    ) -> List[PrecursorDescriptor]:
        """Build and score a descriptor for every MS2 scan of an open source.

        Parameters
        ----------
        source : SpectrumSource
            Opened spectrum source
        charge_hints : ChargeHintTable, optional
            Consulted when a scan reports no charge
        scan_start, scan_end : int
            Inclusive scan range; 0 means the first / last scan
        file_index, file_count : int
            Position of this file in a batch, for overall progress

        Returns
        -------
        list of PrecursorDescriptor
            Scored precursors in scan order
        """
        scans = source.scan_numbers()
        if not scans:
            logger.warning("Spectrum source holds no scans")
            return []

        if scan_start < 1:
            scan_start = scans[0]
        if scan_end == 0 or scan_end > scans[-1]:
            scan_end = scans[-1]

        cache = ScanPeakCache(source)
        precursors = []
        current_precursor_scan = 0
        progress_threshold = 0.0

        for scan_number in scans:
            if scan_number < scan_start or scan_number > scan_end:
                continue

            if scan_end > scan_start:
                fraction = (scan_number - scan_start) / (scan_end - scan_start)
                if fraction > progress_threshold:
                    self._report_progress(progress_threshold, file_index, file_count)
                    progress_threshold += PROGRESS_STEP

            meta = source.get_scan_metadata(scan_number)
            if meta.is_ms1:
                current_precursor_scan = scan_number
                continue

            if meta.isolation_width is None:
                logger.warning(f"Skipping scan {scan_number}: no isolation width reported")
                continue

            if current_precursor_scan == 0:
                logger.warning(f"Skipping scan {scan_number}: no preceding MS1 scan")
                continue

            mz = _precursor_mz(meta)
            charge = meta.charge_state_hint or 0
            if charge <= 0 and charge_hints is not None:
                charge = charge_hints.lookup_charge_hint(current_precursor_scan, mz) or 0

            precursor = PrecursorDescriptor(
                isolation_mz=mz,
                isolation_width=meta.isolation_width,
                charge_state=charge,
                scan_number=scan_number,
                precursor_scan_number=current_precursor_scan,
                ion_collection_time=meta.injection_time or 0.0,
            )

            spectrum_mz, spectrum_intensity = cache.get(current_precursor_scan)
            self.calculator.compute_interference_from_spectrum(
                precursor, spectrum_mz, spectrum_intensity
            )
            precursors.append(precursor)

        logger.info(
            f"✓ Scored {len(precursors):,} precursors "
            f"({cache.n_loads:,} precursor scans decoded)"
        )
        return precursors

    def _load_charge_hints(self, charge_hint_path) -> Optional[ChargeHintTable]:
        if charge_hint_path is None:
            return None

        charge_hint_path = Path(charge_hint_path)
        if not charge_hint_path.exists():
            logger.warning(
                f"Charge hint file not found: {charge_hint_path}; "
                f"unknown charges will be estimated from the spectra"
            )
            return None

        return ChargeHintTable.from_file(charge_hint_path)

    def process_dataset(
        self,
        spectrum_path: Union[str, Path],
        dataset_id: str,
        output_path: Union[str, Path],
        charge_hint_path: Optional[Union[str, Path]] = None,
        scan_start: int = 0,
        scan_end: int = 0,
        file_index: int = 1,
        file_count: int = 1,
    ) -> List[PrecursorDescriptor]:
        """Score one spectrum file and append its rows to ``output_path``.

        Raises
        ------
        FileNotFoundError
            If the spectrum file does not exist
        ChargeHintFormatError
            If the charge hint file exists but cannot be parsed
        """
        spectrum_path = Path(spectrum_path)
        charge_hints = self._load_charge_hints(charge_hint_path)

        with self.source_factory(spectrum_path) as source:
            precursors = self.collect_precursors(
                source,
                charge_hints=charge_hints,
                scan_start=scan_start,
                scan_end=scan_end,
                file_index=file_index,
                file_count=file_count,
            )

        write_interference_scores(precursors, dataset_id, output_path)
        return precursors

    # =========================================================================
    # Batch
    # =========================================================================

    def run(self, database_path: Union[str, Path]) -> int:
        """Score every dataset of a results database and import the scores.

        Scores are collected in a temporary file beside the database and
        imported into ``t_precursor_interference``.

        A dataset that fails is logged and skipped; the other datasets are
        still scored and imported.

        Returns
        -------
        int
            Number of rows imported

        Raises
        ------
        DatasetProcessingError
            After the import, if any dataset failed
        """
        database_path = Path(database_path)
        if not database_path.exists():
            raise FileNotFoundError(f"Results database not found: {database_path}")

        spectrum_files = lookup_msms_files(database_path, extension=self.spectrum_extension)

        charge_hint_files: Dict[str, Path]
        try:
            charge_hint_files = lookup_charge_hint_files(database_path)
        except ResultsDatabaseError as e:
            logger.warning(f"{e}; unknown charges will be estimated from the spectra")
            charge_hint_files = {}

        temp_path = database_path.parent / TEMP_SCORES_FILE_NAME
        if temp_path.exists():
            temp_path.unlink()

        failures: Dict[str, Exception] = {}
        file_count = len(spectrum_files)
        for file_index, (dataset_id, spectrum_path) in enumerate(spectrum_files.items(), start=1):
            logger.info(f"Processing file {file_index} / {file_count}: {spectrum_path.name}")
            try:
                self.process_dataset(
                    spectrum_path,
                    dataset_id,
                    temp_path,
                    charge_hint_path=charge_hint_files.get(dataset_id),
                    file_index=file_index,
                    file_count=file_count,
                )
            except Exception as e:
                logger.error(f"Failed to process dataset {dataset_id} ({spectrum_path.name}): {e}")
                failures[dataset_id] = e

        n_rows = 0
        if temp_path.exists():
            try:
                n_rows = import_interference_table(database_path, temp_path)
            except Exception:
                logger.error(f"Import failed; results are in {temp_path}")
                raise

            if not self.keep_temp:
                temp_path.unlink()

        if failures:
            raise DatasetProcessingError(failures, n_rows_imported=n_rows)

        return n_rows
