"""Federal tax and contribution-limit reference data."""

from __future__ import annotations

from typing import Final

BASE_TAX_YEAR: Final[int] = 2025

SINGLE: Final[str] = "single"
MARRIED_FILING_JOINTLY: Final[str] = "married_filing_jointly"

FILING_STATUSES: Final[set[str]] = {SINGLE, MARRIED_FILING_JOINTLY}

# Brackets are (upper_bound, marginal_rate). Upper bound None means infinity.
FEDERAL_BRACKETS: Final[dict[str, tuple[tuple[float | None, float], ...]]] = {
    SINGLE: (
        (11_600.0, 0.10),
        (47_150.0, 0.12),
        (100_525.0, 0.22),
        (191_950.0, 0.24),
        (243_725.0, 0.32),
        (609_350.0, 0.35),
        (None, 0.37),
    ),
    MARRIED_FILING_JOINTLY: (
        (23_200.0, 0.10),
        (94_300.0, 0.12),
        (201_050.0, 0.22),
        (383_900.0, 0.24),
        (487_450.0, 0.32),
        (731_200.0, 0.35),
        (None, 0.37),
    ),
}

STANDARD_DEDUCTIONS: Final[dict[str, float]] = {
    SINGLE: 14_600.0,
    MARRIED_FILING_JOINTLY: 29_200.0,
}

# Provisional-income thresholds for Social Security benefit taxation. Not indexed.
SOCIAL_SECURITY_THRESHOLDS: Final[dict[str, tuple[float, float]]] = {
    SINGLE: (25_000.0, 34_000.0),
    MARRIED_FILING_JOINTLY: (32_000.0, 44_000.0),
}

SOCIAL_SECURITY_TIER1_RATE: Final[float] = 0.5
SOCIAL_SECURITY_TIER2_RATE: Final[float] = 0.85
SOCIAL_SECURITY_MAX_TAXABLE_FRACTION: Final[float] = 0.85

ELECTIVE_DEFERRAL_LIMIT: Final[float] = 23_000.0
CATCH_UP_CONTRIBUTION: Final[float] = 7_500.0
CATCH_UP_AGE: Final[int] = 50

RMD_START_AGE: Final[int] = 73
