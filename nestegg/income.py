"""Fixed income streams for a year and the after-tax breakdown for a candidate withdrawal."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Final

from .household import Demographics, FiscalData
from .ledger import AccountType, AccountYear
from .rmd import compute_rmd_amount
from .schema import Person, Plan
from .social_security import household_benefits, household_pensions
from .tax import InvalidInputError, SocialSecurityTaxation, TaxEngine, require_finite
from .tax_data import BASE_TAX_YEAR, CATCH_UP_AGE, CATCH_UP_CONTRIBUTION, ELECTIVE_DEFERRAL_LIMIT


@dataclass(frozen=True, slots=True)
class OwnerAccounts:
    tax_deferred: AccountType
    roth: AccountType
    wages: AccountType
    pension: AccountType
    social_security: AccountType


SUBJECT: Final[str] = "subject"
PARTNER: Final[str] = "partner"

OWNER_ACCOUNTS: Final[dict[str, OwnerAccounts]] = {
    SUBJECT: OwnerAccounts(
        tax_deferred=AccountType.SUBJECT_401K,
        roth=AccountType.SUBJECT_ROTH_IRA,
        wages=AccountType.SUBJECT_WAGES,
        pension=AccountType.SUBJECT_PENSION,
        social_security=AccountType.SUBJECT_SOCIAL_SECURITY,
    ),
    PARTNER: OwnerAccounts(
        tax_deferred=AccountType.PARTNER_401K,
        roth=AccountType.PARTNER_ROTH_IRA,
        wages=AccountType.PARTNER_WAGES,
        pension=AccountType.PARTNER_PENSION,
        social_security=AccountType.PARTNER_SOCIAL_SECURITY,
    ),
}


@dataclass(frozen=True, slots=True)
class FixedIncomeStreams:
    """Income the household receives regardless of discretionary withdrawals.

    Every field is required to be finite and non-negative; the check runs at
    construction so downstream arithmetic never sees a missing or NaN value.
    """

    wages_subject: float = 0.0
    wages_partner: float = 0.0
    pretax_401k_subject: float = 0.0
    pretax_401k_partner: float = 0.0
    roth_401k_subject: float = 0.0
    roth_401k_partner: float = 0.0
    employer_match_subject: float = 0.0
    employer_match_partner: float = 0.0
    pension_subject: float = 0.0
    pension_partner: float = 0.0
    ss_subject: float = 0.0
    ss_partner: float = 0.0
    rmd_subject: float = 0.0
    rmd_partner: float = 0.0
    interest: float = 0.0
    misc_taxable: float = 0.0
    tax_free: float = 0.0

    def __post_init__(self) -> None:
        for f in fields(self):
            value = require_finite(getattr(self, f.name), f.name)
            if value < 0:
                raise InvalidInputError(f"{f.name}: must be >= 0, got {value}")

    @property
    def wages(self) -> float:
        return self.wages_subject + self.wages_partner

    @property
    def pretax_401k(self) -> float:
        return self.pretax_401k_subject + self.pretax_401k_partner

    @property
    def roth_401k(self) -> float:
        return self.roth_401k_subject + self.roth_401k_partner

    @property
    def pensions(self) -> float:
        return self.pension_subject + self.pension_partner

    @property
    def social_security(self) -> float:
        return self.ss_subject + self.ss_partner

    @property
    def rmd(self) -> float:
        return self.rmd_subject + self.rmd_partner


@dataclass(frozen=True, slots=True)
class IncomeBreakdown:
    streams: FixedIncomeStreams
    trad_withdrawal: float
    taxable_non_ss: float
    social_security: SocialSecurityTaxation
    gross_income: float
    standard_deduction: float
    taxable_income: float
    federal_tax: float
    net_income: float

    @classmethod
    def compute(
        cls,
        streams: FixedIncomeStreams,
        trad_withdrawal: float,
        demographics: Demographics,
        fiscal: FiscalData,
        tax_engine: TaxEngine,
    ) -> "IncomeBreakdown":
        withdrawal = require_finite(trad_withdrawal, "trad_withdrawal")
        filing_status = demographics.effective_filing_status
        taxable_non_ss = (
            streams.wages
            - streams.pretax_401k
            + streams.pensions
            + streams.rmd
            + withdrawal
            + streams.interest
            + streams.misc_taxable
        )
        ss = tax_engine.social_security_taxation(streams.ss_subject, streams.ss_partner, taxable_non_ss, filing_status)
        gross_income = taxable_non_ss + ss.taxable
        deduction = tax_engine.standard_deduction(filing_status, fiscal.tax_year, fiscal.inflation_rate)
        taxable_income = max(0.0, gross_income - deduction)
        federal_tax = tax_engine.federal_income_tax(taxable_income, filing_status, fiscal.tax_year, fiscal.inflation_rate)
        # Interest is taxed but stays in savings, so it is not spendable here.
        net_income = (
            streams.wages
            - streams.pretax_401k
            - streams.roth_401k
            + streams.pensions
            + streams.social_security
            + streams.rmd
            + withdrawal
            + streams.misc_taxable
            + streams.tax_free
            - federal_tax
        )
        return cls(
            streams=streams,
            trad_withdrawal=withdrawal,
            taxable_non_ss=taxable_non_ss,
            social_security=ss,
            gross_income=gross_income,
            standard_deduction=deduction,
            taxable_income=taxable_income,
            federal_tax=federal_tax,
            net_income=net_income,
        )

    @property
    def effective_tax_rate(self) -> float:
        if self.gross_income <= 0:
            return 0.0
        return self.federal_tax / self.gross_income


def elective_deferral_limit(age: int, tax_year: int, inflation_rate: float) -> float:
    limit = ELECTIVE_DEFERRAL_LIMIT
    if age >= CATCH_UP_AGE:
        limit += CATCH_UP_CONTRIBUTION
    return limit * (1.0 + inflation_rate) ** max(0, tax_year - BASE_TAX_YEAR)


def elective_deferrals(person: Person, wage: float, age: int, fiscal: FiscalData) -> tuple[float, float]:
    """Return (pretax, roth) 401(k) deferrals, scaled down together to fit the annual limit."""
    pretax = wage * person.pretax_401k_rate
    roth = wage * person.roth_401k_rate
    desired = pretax + roth
    if desired <= 0:
        return 0.0, 0.0
    limit = elective_deferral_limit(age, fiscal.tax_year, fiscal.inflation_rate)
    scale = min(1.0, limit / desired)
    return pretax * scale, roth * scale


def _wage(person: Person, year_index: int, working: bool) -> float:
    if not working:
        return 0.0
    return person.salary * (1.0 + person.salary_growth_rate) ** year_index


def _rmd(view: AccountYear, owner: str, age: int, fiscal: FiscalData) -> float:
    # A survivor inherits the account, so the RMD continues at the owner's age.
    account_type = OWNER_ACCOUNTS[owner].tax_deferred
    if not view.has_account(account_type):
        return 0.0
    return compute_rmd_amount(view.starting_balance(account_type), age, use_rmd=fiscal.use_rmd)


def project_fixed_income(
    plan: Plan,
    demographics: Demographics,
    fiscal: FiscalData,
    view: AccountYear,
) -> FixedIncomeStreams:
    subject = plan.subject
    partner = plan.partner
    idx = demographics.year_index

    wages_subject = _wage(subject, idx, demographics.subject_working)
    pretax_subject, roth_subject = elective_deferrals(subject, wages_subject, demographics.subject_age, fiscal)
    wages_partner = 0.0
    pretax_partner = roth_partner = match_partner = 0.0
    if partner is not None:
        wages_partner = _wage(partner, idx, demographics.partner_working)
        pretax_partner, roth_partner = elective_deferrals(partner, wages_partner, demographics.partner_age, fiscal)
        match_partner = wages_partner * partner.employer_match_rate

    pension_subject, pension_partner = household_pensions(
        subject=subject.pension,
        partner=None if partner is None else partner.pension,
        subject_age=demographics.subject_age,
        partner_age=demographics.partner_age,
        subject_living=demographics.subject_living,
        partner_living=demographics.partner_living,
    )
    ss_subject, ss_partner = household_benefits(
        subject=subject.social_security,
        partner=None if partner is None else partner.social_security,
        subject_age=demographics.subject_age,
        partner_age=demographics.partner_age,
        subject_living=demographics.subject_living,
        partner_living=demographics.partner_living,
        cola=fiscal.ss_cola,
    )

    savings_start = view.starting_balance(AccountType.SAVINGS) if view.has_account(AccountType.SAVINGS) else 0.0
    return FixedIncomeStreams(
        wages_subject=wages_subject,
        wages_partner=wages_partner,
        pretax_401k_subject=pretax_subject,
        pretax_401k_partner=pretax_partner,
        roth_401k_subject=roth_subject,
        roth_401k_partner=roth_partner,
        employer_match_subject=wages_subject * subject.employer_match_rate,
        employer_match_partner=match_partner,
        pension_subject=pension_subject,
        pension_partner=pension_partner,
        ss_subject=ss_subject,
        ss_partner=ss_partner,
        rmd_subject=_rmd(view, SUBJECT, demographics.subject_age, fiscal),
        rmd_partner=_rmd(view, PARTNER, demographics.partner_age, fiscal),
        interest=max(0.0, savings_start) * fiscal.savings_rate,
        misc_taxable=fiscal.misc_taxable_income,
        tax_free=fiscal.tax_free_income,
    )
