"""Command line entry point.

Score a single spectrum file::

    precursorqc sample.mzML --output sample_interference.txt --charge-hints sample_isos.csv

Score every dataset of a results database and import the scores::

    precursorqc Results.db3 --keep-temp
"""

import argparse
import logging
import sys
from pathlib import Path

from . import __version__
from .constants import (
    DEFAULT_CHARGE_GUESS_ISOTOPES,
    DEFAULT_CHARGE_GUESS_TOLERANCE,
    DEFAULT_MAX_CHARGE,
    DEFAULT_MIN_CHARGE,
    DEFAULT_PRECURSOR_TOLERANCE_PPM,
)
from .detector import DatasetProcessingError, InterferenceDetector
from .interference import InterferenceParams
from .io.charge_hints import ChargeHintFormatError
from .io.results_db import ResultsDatabaseError

logger = logging.getLogger("precursorqc")

DATABASE_EXTENSIONS = ('.db', '.db3', '.sqlite', '.sqlite3')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='precursorqc',
        description='Precursor interference scores for MS/MS scans',
    )
    parser.add_argument('input', type=str,
                        help='Spectrum file (.mzML / .mzXML) or SQLite results database')
    parser.add_argument('--output', type=str, default=None,
                        help='Output score file (single file mode; default: <input>_interference.txt)')
    parser.add_argument('--charge-hints', type=str, default=None,
                        help='Deisotoping results (_isos.csv) with charge states (single file mode)')
    parser.add_argument('--dataset-id', type=str, default=None,
                        help='Dataset ID written to the output (single file mode; default: file stem)')
    parser.add_argument('--scan-start', type=int, default=0,
                        help='First scan to process (0: first scan)')
    parser.add_argument('--scan-end', type=int, default=0,
                        help='Last scan to process (0: last scan)')
    parser.add_argument('--cs-tol', type=float, default=DEFAULT_CHARGE_GUESS_TOLERANCE,
                        help='Charge estimation m/z tolerance in Da')
    parser.add_argument('--tol', type=float, default=DEFAULT_PRECURSOR_TOLERANCE_PPM,
                        help='Isotope-series tolerance in ppm')
    parser.add_argument('--isotopes', type=int, default=DEFAULT_CHARGE_GUESS_ISOTOPES,
                        help='Isotopes per side used for charge estimation')
    parser.add_argument('--min-charge', type=int, default=DEFAULT_MIN_CHARGE,
                        help='Lowest charge considered when estimating')
    parser.add_argument('--max-charge', type=int, default=DEFAULT_MAX_CHARGE,
                        help='Highest charge considered when estimating')
    parser.add_argument('--keep-temp', action='store_true',
                        help='Keep the intermediate score file (database mode)')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Debug logging')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser


def _log_progress(percent_overall: float, percent_current_file: float) -> None:
    logger.debug(f"Progress: {percent_overall:.1f}% overall, {percent_current_file:.1f}% of file")


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    try:
        params = InterferenceParams(
            charge_guess_mz_tolerance=args.cs_tol,
            precursor_tolerance_ppm=args.tol,
            n_isotopes_charge_guess=args.isotopes,
            min_charge=args.min_charge,
            max_charge=args.max_charge,
        )
    except ValueError as e:
        logger.error(f"Invalid settings: {e}")
        return 2

    detector = InterferenceDetector(
        params=params,
        progress_callback=_log_progress,
        keep_temp=args.keep_temp,
    )

    input_path = Path(args.input).expanduser()

    try:
        if input_path.suffix.lower() in DATABASE_EXTENSIONS:
            logger.info(f"Database: {input_path}")
            n_rows = detector.run(input_path)
            logger.info(f"✓ Done: {n_rows:,} interference scores")
        else:
            output_path = (
                Path(args.output).expanduser() if args.output
                else input_path.with_name(f"{input_path.stem}_interference.txt")
            )
            logger.info(f"Input: {input_path}")
            logger.info(f"Output: {output_path}")
            precursors = detector.process_dataset(
                input_path,
                args.dataset_id or input_path.stem,
                output_path,
                charge_hint_path=args.charge_hints,
                scan_start=args.scan_start,
                scan_end=args.scan_end,
            )
            logger.info(f"✓ Done: {len(precursors):,} interference scores")
    except (FileNotFoundError, ValueError, ChargeHintFormatError,
            ResultsDatabaseError, DatasetProcessingError) as e:
        logger.error(str(e))
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
