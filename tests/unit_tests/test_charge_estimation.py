"""Tests for charge state estimation by isotope abundance voting."""

import numpy as np
import pytest

from precursorqc.constants import C12_C13_MASS_DIFFERENCE
from precursorqc.interference import (
    accumulate_charge_abundances,
    build_charge_candidates,
    estimate_charge,
    estimate_charge_from_peaks,
)
from precursorqc.precursor import Peak


def isotope_envelope(mz, charge, intensities=(3e5, 1e6, 6e5, 2e5)):
    """Envelope starting one isotope below ``mz``."""
    spacing = C12_C13_MASS_DIFFERENCE / charge
    peaks_mz = np.array([mz + (i - 1) * spacing for i in range(len(intensities))])
    return peaks_mz, np.array(intensities, dtype=np.float64)


# =============================================================================
# Candidate Positions
# =============================================================================


def test_candidates_count_and_order():
    candidate_mz, candidate_charge = build_charge_candidates(500.0, 1, 4, 2)

    assert len(candidate_mz) == 4 * 5
    assert np.all(np.diff(candidate_mz) >= 0)
    assert set(candidate_charge.tolist()) == {1, 2, 3, 4}


def test_candidates_positions_for_one_charge():
    candidate_mz, _ = build_charge_candidates(500.0, 2, 2, 2)
    spacing = C12_C13_MASS_DIFFERENCE / 2

    expected = [500.0 + j * spacing for j in (-2, -1, 0, 1, 2)]
    np.testing.assert_allclose(candidate_mz, expected)


def test_accumulate_isolation_abundance():
    mz = np.array([499.0, 500.0, 500.5])
    intensity = np.array([1.0, 7.0, 2.0])

    abundances, isolation_abundance = accumulate_charge_abundances(
        500.0, mz, intensity, 0.01, 1, 4, 2
    )

    assert isolation_abundance == pytest.approx(7.0)
    assert len(abundances) == 4
    # The isolation peak counts for every charge
    assert np.all(abundances >= 7.0)


# =============================================================================
# Synthetic Envelopes
# =============================================================================


@pytest.mark.parametrize("charge", [1, 2, 3, 4])
def test_estimate_charge_synthetic_envelope(charge):
    mz, intensity = isotope_envelope(650.0, charge)
    assert estimate_charge(650.0, mz, intensity) == charge


@pytest.mark.parametrize("charge", [3, 4])
def test_single_isotope_peak_identifies_high_charges(charge):
    """A +1 isotope alone is enough for charges without aliases."""
    spacing = C12_C13_MASS_DIFFERENCE / charge
    mz = np.array([650.0, 650.0 + spacing])
    intensity = np.array([1e6, 4e5])

    assert estimate_charge(650.0, mz, intensity) == charge


@pytest.mark.parametrize("charge", [3, 4])
def test_single_lower_isotope_peak_identifies_high_charges(charge):
    """A -1 isotope alone is matched below the isolation m/z too."""
    spacing = C12_C13_MASS_DIFFERENCE / charge
    mz = np.array([650.0 - spacing, 650.0])
    intensity = np.array([4e5, 1e6])

    assert estimate_charge(650.0, mz, intensity) == charge


def test_ties_go_to_lowest_charge():
    """+1/2 spacing matches charge 2 (j=1) and charge 4 (j=2) equally."""
    spacing = C12_C13_MASS_DIFFERENCE / 2
    mz = np.array([650.0, 650.0 + spacing])
    intensity = np.array([1e6, 4e5])

    assert estimate_charge(650.0, mz, intensity) == 2


def test_charge_one_wins_tie_with_charge_two():
    """A full spacing matches charge 1 (j=1) and charge 2 (j=2) equally."""
    mz = np.array([650.0, 650.0 + C12_C13_MASS_DIFFERENCE])
    intensity = np.array([1e6, 4e5])

    assert estimate_charge(650.0, mz, intensity) == 1


def test_only_isolation_peak_is_inconclusive():
    mz = np.array([650.0])
    intensity = np.array([1e6])

    assert estimate_charge(650.0, mz, intensity) == 0


def test_no_peaks_is_inconclusive():
    assert estimate_charge(650.0, np.zeros(0), np.zeros(0)) == 0


def test_unrelated_peaks_are_inconclusive():
    mz = np.array([648.1, 650.0, 650.21, 651.77])
    intensity = np.array([5e5, 1e6, 2e5, 3e5])

    assert estimate_charge(650.0, mz, intensity) == 0


def test_zero_intensities_ignored():
    mz, intensity = isotope_envelope(650.0, 2)
    extra_mz = np.append(mz, 650.0 + C12_C13_MASS_DIFFERENCE / 3)
    extra_intensity = np.append(intensity, 0.0)

    assert estimate_charge(650.0, extra_mz, extra_intensity) == 2


def test_unsorted_input():
    mz, intensity = isotope_envelope(650.0, 3)
    order = np.array([2, 0, 3, 1])

    assert estimate_charge(650.0, mz[order], intensity[order]) == 3


def test_custom_charge_range():
    mz, intensity = isotope_envelope(650.0, 5)

    assert estimate_charge(650.0, mz, intensity) != 5
    assert estimate_charge(650.0, mz, intensity, min_charge=1, max_charge=6) == 5


def test_estimate_from_peaks():
    mz, intensity = isotope_envelope(650.0, 2)
    peaks = [Peak(m, i) for m, i in zip(mz, intensity)]

    assert estimate_charge_from_peaks(650.0, peaks) == 2


# =============================================================================
# Reference Survey Scan
# =============================================================================


def test_reference_scan_matches_instrument_charges(charge_guess_scan, known_charge_states):
    """Estimates agree with instrument-reported charges on a real survey scan."""
    mz, intensity = charge_guess_scan
    assert len(mz) == 424

    for isolation_mz, reported_charge in known_charge_states:
        guess = estimate_charge(isolation_mz, mz, intensity)
        assert guess == reported_charge, f"{isolation_mz:.4f} m/z: expected {reported_charge}, got {guess}"


def test_reference_scan_unreported_charges(charge_guess_scan):
    """Precursors without an instrument charge still get a plausible estimate."""
    mz, intensity = charge_guess_scan

    assert estimate_charge(447.7539, mz, intensity) == 2
    assert estimate_charge(449.2640, mz, intensity) == 3


def test_estimate_is_deterministic(charge_guess_scan):
    mz, intensity = charge_guess_scan
    results = {estimate_charge(642.3702, mz, intensity) for _ in range(5)}
    assert results == {2}
