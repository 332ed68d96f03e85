"""Tests for precursor descriptors and peak conversion."""

import numpy as np
import pytest

from precursorqc.precursor import (
    InterferenceStatus,
    Peak,
    PrecursorDescriptor,
    arrays_to_peaks,
    peaks_to_arrays,
    spectrum_2d_to_arrays,
)


class TestPrecursorDescriptor:
    """Descriptor defaults, immutability and formatting."""

    def test_defaults(self):
        precursor = PrecursorDescriptor(isolation_mz=641.68, isolation_width=2.0)

        assert precursor.charge_state == 0
        assert precursor.interference_score == 0.0
        assert precursor.actual_mz == 0.0
        assert precursor.status == InterferenceStatus.NOT_SCORED
        assert not precursor.has_charge
        assert not precursor.is_scored

    def test_isolation_settings_are_read_only(self):
        precursor = PrecursorDescriptor(isolation_mz=641.68, isolation_width=2.0)

        with pytest.raises(AttributeError):
            precursor.isolation_mz = 642.0
        with pytest.raises(AttributeError):
            precursor.isolation_width = 3.0

        assert precursor.isolation_mz == 641.68
        assert precursor.isolation_width == 2.0

    def test_results_are_mutable(self):
        precursor = PrecursorDescriptor(isolation_mz=641.68, isolation_width=2.0)

        precursor.update_charge(3)
        precursor.interference_score = 0.5
        precursor.actual_mz = 641.6791

        assert precursor.charge_state == 3
        assert precursor.has_charge
        assert precursor.interference_score == 0.5

    def test_str(self):
        precursor = PrecursorDescriptor(
            isolation_mz=641.68, isolation_width=2.0, charge_state=3, scan_number=1205
        )
        assert str(precursor) == "MS2 scan 1205 @ 641.68 m/z, charge 3"

        precursor.precursor_scan_number = 1203
        assert str(precursor) == "Precursor scan 1203 for MS2 scan 1205 @ 641.68 m/z, charge 3"


class TestPeakConversion:
    """Conversion between peak lists and parallel arrays."""

    def test_peaks_to_arrays_drops_zero_intensity(self):
        mz, intensity = peaks_to_arrays([Peak(500.0, 10.0), Peak(500.5, 0.0), Peak(501.0, 3.0)])

        np.testing.assert_array_equal(mz, [500.0, 501.0])
        np.testing.assert_array_equal(intensity, [10.0, 3.0])
        assert mz.dtype == np.float64

    def test_peaks_to_arrays_accepts_tuples(self):
        mz, intensity = peaks_to_arrays([(500.0, 10.0), (499.0, 2.0)])
        np.testing.assert_array_equal(mz, [500.0, 499.0])

    def test_peaks_to_arrays_empty(self):
        mz, intensity = peaks_to_arrays([])
        assert len(mz) == 0
        assert len(intensity) == 0

    def test_arrays_to_peaks(self):
        peaks = arrays_to_peaks(np.array([500.0, 501.0]), np.array([10.0, 0.0]))
        assert peaks == [Peak(500.0, 10.0)]

    def test_spectrum_2d(self):
        data = np.array([[500.0, 501.0, 502.0], [1.0, 0.0, 2.0]])
        mz, intensity = spectrum_2d_to_arrays(data)

        np.testing.assert_array_equal(mz, [500.0, 501.0, 502.0])
        np.testing.assert_array_equal(intensity, [1.0, 0.0, 2.0])

    def test_spectrum_2d_wrong_shape(self):
        with pytest.raises(ValueError):
            spectrum_2d_to_arrays(np.zeros((3, 4)))
