"""Physical constants and default tolerances for precursor interference scoring.

All tunable values used by the charge estimator, the window search and the
interference calculator live here so that the parameter objects, the CLI and
the tests share a single source of truth.

Key Features
------------
- C12/C13 mass difference used for isotope spacing (spacing = diff / charge)
- Charge-guess tolerance, isotope count and charge range
- Precursor ion ppm tolerance for isotope-series membership
- Approximate binary search tolerance for large sorted scans

Sources
-------
- 13C - 12C mass difference: https://physics.nist.gov/cgi-bin/cuu/Value
"""

# =============================================================================
# Isotope Masses
# =============================================================================

# Mass difference between C12 and C13 (Da)
# Isotope spacing in m/z for charge z is C12_C13_MASS_DIFFERENCE / z
C12_C13_MASS_DIFFERENCE = 1.0033548378

# =============================================================================
# Charge State Estimation
# =============================================================================

# m/z tolerance when matching peaks to candidate isotope positions (Da, not ppm)
DEFAULT_CHARGE_GUESS_TOLERANCE = 0.01

# Isotopes checked above and below the isolation m/z
DEFAULT_CHARGE_GUESS_ISOTOPES = 2

# Charge range searched (inclusive)
DEFAULT_MIN_CHARGE = 1
DEFAULT_MAX_CHARGE = 4

# =============================================================================
# Interference Calculation
# =============================================================================

# Max deviation from an integer number of isotope spacings (ppm)
DEFAULT_PRECURSOR_TOLERANCE_PPM = 15.0

# Approximate-match tolerance of the binary search over full scans (Da)
DEFAULT_SEARCH_TOLERANCE = 0.1

# =============================================================================
# Companion Charge-Hint Files
# =============================================================================

# Max m/z distance between an MS2 parent m/z and a deisotoped feature (Da)
CHARGE_HINT_MZ_TOLERANCE = 0.005


def charge_guess_buffer(n_isotopes: int = DEFAULT_CHARGE_GUESS_ISOTOPES) -> float:
    """Half-width (Da) that covers every isotope the charge guess may look at.

    Uses the charge 1 spacing, the widest of all candidate charges.
    """
    return C12_C13_MASS_DIFFERENCE * (n_isotopes + 1)
