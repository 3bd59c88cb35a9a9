"""Per-year household snapshots: who is alive and retired, and the year's fiscal parameters."""

from __future__ import annotations

from dataclasses import dataclass

from .schema import Person, Plan
from .tax import require_finite
from .tax_data import SINGLE


def _retirement_year(plan: Plan, person: Person) -> int:
    return plan.starting_year + (person.retire_age - person.age)


def household_retirement_year(plan: Plan) -> int:
    """First calendar year in which everyone in the household has retired."""
    years = [_retirement_year(plan, plan.subject)]
    if plan.partner is not None:
        years.append(_retirement_year(plan, plan.partner))
    return max(years)


def projection_years(plan: Plan) -> int:
    """Number of years until the last surviving person passes their lifespan."""
    years = plan.subject.lifespan - plan.subject.age + 1
    if plan.partner is not None:
        years = max(years, plan.partner.lifespan - plan.partner.age + 1)
    return max(0, years)


@dataclass(frozen=True, slots=True)
class Demographics:
    year: int
    year_index: int
    subject_age: int
    partner_age: int
    has_partner: bool
    subject_living: bool
    partner_living: bool
    subject_retired: bool
    partner_retired: bool
    filing_status: str

    @classmethod
    def for_year(cls, plan: Plan, year_index: int) -> "Demographics":
        subject = plan.subject
        partner = plan.partner
        subject_age = subject.age + year_index
        partner_age = partner.age + year_index if partner is not None else 0
        return cls(
            year=plan.starting_year + year_index,
            year_index=year_index,
            subject_age=subject_age,
            partner_age=partner_age,
            has_partner=partner is not None,
            subject_living=subject_age <= subject.lifespan,
            partner_living=partner is not None and partner_age <= partner.lifespan,
            subject_retired=subject_age >= subject.retire_age,
            partner_retired=partner is None or partner_age >= partner.retire_age,
            filing_status=plan.filing_status,
        )

    def next_year(self, plan: Plan) -> "Demographics":
        return Demographics.for_year(plan, self.year_index + 1)

    @property
    def is_alive(self) -> bool:
        return self.subject_living or self.partner_living

    @property
    def is_widowed(self) -> bool:
        return self.has_partner and self.subject_living != self.partner_living

    @property
    def effective_filing_status(self) -> str:
        if self.is_widowed:
            return SINGLE
        return self.filing_status

    @property
    def is_retired(self) -> bool:
        subject_done = self.subject_retired or not self.subject_living
        partner_done = self.partner_retired or not self.partner_living
        return subject_done and partner_done

    @property
    def subject_working(self) -> bool:
        return self.subject_living and not self.subject_retired

    @property
    def partner_working(self) -> bool:
        return self.partner_living and not self.partner_retired


def spend_target(plan: Plan, demographics: Demographics) -> float:
    """Nominal spending for the year: working or retirement budget, or a per-year override."""
    override = plan.spending.override_for(demographics.year)
    if override is not None:
        return require_finite(override, f"spending.overrides[{demographics.year}]")

    inflation = (1.0 + plan.fiscal.inflation_rate) ** demographics.year_index
    if not demographics.is_retired:
        return plan.spending.working * inflation

    years_retired = max(0, demographics.year - household_retirement_year(plan))
    return plan.spending.retirement * inflation * (1.0 - plan.spending.decline_rate) ** years_retired


@dataclass(frozen=True, slots=True)
class FiscalData:
    tax_year: int
    inflation_rate: float
    ss_cola: float
    savings_rate: float
    spend: float
    use_rmd: bool
    wage_withholding_rate: float
    pension_withholding_rate: float
    ss_withholding_rate: float
    tax_deferred_withholding_rate: float
    misc_taxable_income: float = 0.0
    tax_free_income: float = 0.0
    withdrawal_cap: float | None = None

    def __post_init__(self) -> None:
        for name in (
            "inflation_rate",
            "ss_cola",
            "savings_rate",
            "spend",
            "wage_withholding_rate",
            "pension_withholding_rate",
            "ss_withholding_rate",
            "tax_deferred_withholding_rate",
            "misc_taxable_income",
            "tax_free_income",
        ):
            require_finite(getattr(self, name), name)
        if self.withdrawal_cap is not None:
            require_finite(self.withdrawal_cap, "withdrawal_cap")

    @classmethod
    def for_year(cls, plan: Plan, demographics: Demographics, *, withdrawal_cap: float | None = None) -> "FiscalData":
        year = demographics.year
        return cls(
            tax_year=year,
            inflation_rate=plan.fiscal.inflation_rate,
            ss_cola=plan.fiscal.ss_cola,
            savings_rate=plan.savings.interest_rate,
            spend=spend_target(plan, demographics),
            use_rmd=plan.fiscal.use_rmd,
            wage_withholding_rate=plan.withholding.wages,
            pension_withholding_rate=plan.withholding.pension,
            ss_withholding_rate=plan.withholding.social_security,
            tax_deferred_withholding_rate=plan.withholding.tax_deferred,
            misc_taxable_income=plan.income_adjustments.taxable_for(year),
            tax_free_income=plan.income_adjustments.tax_free_for(year),
            withdrawal_cap=withdrawal_cap,
        )
