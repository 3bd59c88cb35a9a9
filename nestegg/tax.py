"""Federal income tax and Social Security benefit taxation."""

from __future__ import annotations

from dataclasses import dataclass, field
import math

from .tax_data import (
    BASE_TAX_YEAR,
    FEDERAL_BRACKETS,
    SOCIAL_SECURITY_MAX_TAXABLE_FRACTION,
    SOCIAL_SECURITY_THRESHOLDS,
    SOCIAL_SECURITY_TIER1_RATE,
    SOCIAL_SECURITY_TIER2_RATE,
    STANDARD_DEDUCTIONS,
)

Brackets = tuple[tuple[float | None, float], ...]


class InvalidInputError(ValueError):
    """Raised when a computation receives a NaN or infinite number."""


def require_finite(value: float, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise InvalidInputError(f"{name}: expected a finite number, got {value!r}")
    return float(value)


@dataclass(frozen=True, slots=True)
class SocialSecurityTaxation:
    total_benefits: float
    other_taxable_income: float
    provisional_income: float
    tier1_threshold: float
    tier2_threshold: float
    taxable: float
    subject_taxable: float
    partner_taxable: float
    subject_benefits: float
    partner_benefits: float

    @property
    def non_taxable(self) -> float:
        return self.total_benefits - self.taxable

    @property
    def subject_non_taxable(self) -> float:
        return self.subject_benefits - self.subject_taxable

    @property
    def partner_non_taxable(self) -> float:
        return self.partner_benefits - self.partner_taxable


@dataclass(frozen=True, slots=True)
class TaxEngine:
    """Federal tax tables plus the computations that read them.

    One instance is passed to the income projector, the resolver and the
    orchestrator so each can be exercised with alternative tables.
    """

    brackets: dict[str, Brackets] = field(default_factory=lambda: dict(FEDERAL_BRACKETS))
    standard_deductions: dict[str, float] = field(default_factory=lambda: dict(STANDARD_DEDUCTIONS))
    ss_thresholds: dict[str, tuple[float, float]] = field(default_factory=lambda: dict(SOCIAL_SECURITY_THRESHOLDS))
    base_year: int = BASE_TAX_YEAR

    def _check_status(self, filing_status: str) -> str:
        if filing_status not in self.brackets:
            raise ValueError(f"unknown filing status: {filing_status!r}")
        return filing_status

    def year_factor(self, tax_year: int, inflation_rate: float) -> float:
        require_finite(inflation_rate, "inflation_rate")
        return (1.0 + inflation_rate) ** (tax_year - self.base_year)

    def standard_deduction(self, filing_status: str, tax_year: int, inflation_rate: float) -> float:
        fs = self._check_status(filing_status)
        return self.standard_deductions[fs] * self.year_factor(tax_year, inflation_rate)

    def adjusted_brackets(self, filing_status: str, tax_year: int, inflation_rate: float) -> list[tuple[float | None, float]]:
        fs = self._check_status(filing_status)
        factor = self.year_factor(tax_year, inflation_rate)
        return [(None if upper is None else upper * factor, rate) for upper, rate in self.brackets[fs]]

    def federal_income_tax(
        self,
        taxable_income: float,
        filing_status: str,
        tax_year: int,
        inflation_rate: float,
    ) -> float:
        income = require_finite(taxable_income, "taxable_income")
        brackets = self.adjusted_brackets(filing_status, tax_year, inflation_rate)
        if income <= 0:
            return 0.0

        tax = 0.0
        previous = 0.0
        for ceiling, rate in brackets:
            upper = income if ceiling is None else min(income, ceiling)
            tax += (upper - previous) * rate
            if ceiling is None or income <= ceiling:
                break
            previous = ceiling
        return round(tax, 2)

    def social_security_taxable_amount(
        self,
        total_benefits: float,
        other_taxable_income: float,
        filing_status: str,
    ) -> float:
        benefits = require_finite(total_benefits, "total_benefits")
        other = require_finite(other_taxable_income, "other_taxable_income")
        tier1, tier2 = self.ss_thresholds[self._check_status(filing_status)]
        if benefits <= 0:
            return 0.0

        provisional = other + SOCIAL_SECURITY_TIER1_RATE * benefits
        if provisional <= tier1:
            taxable = 0.0
        elif provisional <= tier2:
            taxable = min(SOCIAL_SECURITY_TIER1_RATE * benefits, SOCIAL_SECURITY_TIER1_RATE * (provisional - tier1))
        else:
            taxable = min(
                SOCIAL_SECURITY_TIER2_RATE * benefits,
                SOCIAL_SECURITY_TIER1_RATE * (tier2 - tier1) + SOCIAL_SECURITY_TIER2_RATE * (provisional - tier2),
            )
        return max(0.0, min(taxable, SOCIAL_SECURITY_MAX_TAXABLE_FRACTION * benefits))

    def social_security_taxation(
        self,
        subject_benefits: float,
        partner_benefits: float,
        other_taxable_income: float,
        filing_status: str,
    ) -> SocialSecurityTaxation:
        subject = require_finite(subject_benefits, "subject_benefits")
        partner = require_finite(partner_benefits, "partner_benefits")
        if subject < 0 or partner < 0:
            raise InvalidInputError("social security benefits must be >= 0")
        total = subject + partner
        taxable = self.social_security_taxable_amount(total, other_taxable_income, filing_status)
        tier1, tier2 = self.ss_thresholds[filing_status]

        subject_taxable = taxable * subject / total if total > 0 else 0.0
        return SocialSecurityTaxation(
            total_benefits=total,
            other_taxable_income=float(other_taxable_income),
            provisional_income=other_taxable_income + SOCIAL_SECURITY_TIER1_RATE * total,
            tier1_threshold=tier1,
            tier2_threshold=tier2,
            taxable=taxable,
            subject_taxable=subject_taxable,
            partner_taxable=taxable - subject_taxable,
            subject_benefits=subject,
            partner_benefits=partner,
        )


DEFAULT_TAX_ENGINE = TaxEngine()


def standard_deduction(filing_status: str, tax_year: int, inflation_rate: float) -> float:
    return DEFAULT_TAX_ENGINE.standard_deduction(filing_status, tax_year, inflation_rate)


def federal_income_tax(taxable_income: float, filing_status: str, tax_year: int, inflation_rate: float) -> float:
    return DEFAULT_TAX_ENGINE.federal_income_tax(taxable_income, filing_status, tax_year, inflation_rate)


def social_security_taxable_amount(total_benefits: float, other_taxable_income: float, filing_status: str) -> float:
    return DEFAULT_TAX_ENGINE.social_security_taxable_amount(total_benefits, other_taxable_income, filing_status)


def social_security_taxation(
    subject_benefits: float,
    partner_benefits: float,
    other_taxable_income: float,
    filing_status: str,
) -> SocialSecurityTaxation:
    return DEFAULT_TAX_ENGINE.social_security_taxation(
        subject_benefits, partner_benefits, other_taxable_income, filing_status
    )
