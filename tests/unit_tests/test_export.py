"""Tests for the tab-delimited score export."""

import pytest

from precursorqc.io.export import (
    COLUMNS,
    format_number,
    read_interference_scores,
    write_interference_scores,
)
from precursorqc.precursor import PrecursorDescriptor


def scored_precursor(scan_number, score, charge=3):
    precursor = PrecursorDescriptor(
        isolation_mz=641.68,
        isolation_width=2.0,
        charge_state=charge,
        scan_number=scan_number,
        precursor_scan_number=scan_number - 1,
        ion_collection_time=35.123,
    )
    precursor.interference_score = score
    precursor.precursor_intensity = 883178.25
    return precursor


@pytest.mark.parametrize("value, digits, expected", [
    (641.68, 5, "641.68"),
    (641.680004, 5, "641.68"),
    (0.9498275, 4, "0.9498"),
    (1.0, 4, "1"),
    (0.0, 4, "0"),
    (2.0, 3, "2"),
    (883178.25, 2, "883178.25"),
    (35.123, 2, "35.12"),
    (12.0, 0, "12"),
    (-0.00001, 2, "0"),
])
def test_format_number(value, digits, expected):
    assert format_number(value, digits) == expected


def test_write_creates_header(tmp_path):
    path = tmp_path / "scores.txt"
    n_rows = write_interference_scores([scored_precursor(10, 0.9498275)], "1001", path)

    lines = path.read_text().splitlines()
    assert n_rows == 1
    assert lines[0].split('\t') == COLUMNS
    assert lines[1].split('\t') == [
        "1001", "10", "9", "641.68", "3", "2", "0.9498", "883178.25", "35.12"
    ]


def test_write_appends_without_second_header(tmp_path):
    path = tmp_path / "scores.txt"
    write_interference_scores([scored_precursor(10, 0.5)], "1001", path)
    write_interference_scores([scored_precursor(20, 0.75), scored_precursor(21, 1.0)], "1002", path)

    lines = path.read_text().splitlines()
    assert len(lines) == 4
    assert sum(1 for line in lines if line.startswith("DatasetID")) == 1
    assert lines[-1].startswith("1002\t21\t")


def test_write_empty_dataset_still_creates_file(tmp_path):
    path = tmp_path / "scores.txt"
    assert write_interference_scores([], "1001", path) == 0
    assert path.read_text().splitlines() == ['\t'.join(COLUMNS)]


def test_read_back(tmp_path):
    path = tmp_path / "scores.txt"
    precursors = [scored_precursor(10, 0.94982), scored_precursor(11, 0.0, charge=0)]
    write_interference_scores(precursors, "1001", path)

    records = read_interference_scores(path)

    assert len(records) == 2
    assert records[0].dataset_id == "1001"
    assert records[0].scan_number == 10
    assert records[0].precursor_scan_number == 9
    assert records[0].charge_state == 3
    assert records[0].interference == pytest.approx(0.9498, abs=1e-4)
    assert records[0].parent_mz == pytest.approx(641.68)
    assert records[1].charge_state == 0
    assert records[1].interference == 0.0


def test_read_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_interference_scores(tmp_path / "missing.txt")


def test_read_missing_column(tmp_path):
    path = tmp_path / "scores.txt"
    path.write_text("DatasetID\tScanNumber\n1001\t10\n")

    with pytest.raises(ValueError, match="Interference"):
        read_interference_scores(path)
