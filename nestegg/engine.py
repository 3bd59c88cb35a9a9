"""Year-by-year projection engine."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
import logging
from typing import Any

from .household import Demographics, FiscalData, projection_years
from .income import OWNER_ACCOUNTS, PARTNER, SUBJECT, FixedIncomeStreams, IncomeBreakdown, project_fixed_income
from .ledger import (
    AccountType,
    AccountYear,
    Frequency,
    InterestConvention,
    Ledger,
    TransactionCategory,
    as_currency,
)
from .limits import WithdrawalLimits
from .schema import Plan
from .tax import DEFAULT_TAX_ENGINE, TaxEngine
from .withdrawals import WithdrawalBreakdown, cover_shortfall

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class YearResult:
    year: int
    demographics_subject_age: int
    demographics_partner_age: int
    demographics_subject_living: bool
    demographics_partner_living: bool
    demographics_filing_status: str
    demographics_retired: bool
    spend_target: float = 0.0
    spend_paid: float = 0.0
    unmet_shortfall: float = 0.0

    income_wages_gross: float = 0.0
    income_pretax_401k: float = 0.0
    income_roth_401k: float = 0.0
    income_employer_match: float = 0.0
    income_pension_gross: float = 0.0
    income_social_security_gross: float = 0.0
    income_rmd: float = 0.0
    income_tax_deferred_withdrawal: float = 0.0
    income_savings_interest: float = 0.0
    income_misc_taxable: float = 0.0
    income_tax_free: float = 0.0
    income_fixed_net: float = 0.0
    income_gross: float = 0.0
    income_taxable: float = 0.0
    income_net: float = 0.0

    taxes_standard_deduction: float = 0.0
    taxes_federal: float = 0.0
    taxes_withheld: float = 0.0
    taxes_payment: float = 0.0
    taxes_refund: float = 0.0
    taxes_unpaid: float = 0.0
    taxes_effective_rate: float = 0.0

    ss_subject_gross: float = 0.0
    ss_partner_gross: float = 0.0
    ss_provisional_income: float = 0.0
    ss_taxable: float = 0.0
    ss_non_taxable: float = 0.0
    ss_subject_taxable: float = 0.0
    ss_partner_taxable: float = 0.0

    retirement_acct_401k_start: float = 0.0
    retirement_acct_401k_contributions: float = 0.0
    retirement_acct_401k_withdrawals: float = 0.0
    retirement_acct_401k_interest: float = 0.0
    retirement_acct_401k_end: float = 0.0
    retirement_acct_roth_start: float = 0.0
    retirement_acct_roth_contributions: float = 0.0
    retirement_acct_roth_withdrawals: float = 0.0
    retirement_acct_roth_interest: float = 0.0
    retirement_acct_roth_end: float = 0.0

    savings_start: float = 0.0
    savings_deposits: float = 0.0
    savings_withdrawals: float = 0.0
    savings_interest: float = 0.0
    savings_end: float = 0.0

    withdrawal_savings: float = 0.0
    withdrawal_roth: float = 0.0
    withdrawal_tax_deferred_net: float = 0.0
    withdrawal_savings_fallback: float = 0.0

    warnings: list[str] = field(default_factory=list)

    def as_record(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class ProjectionResult:
    years: list[YearResult]
    ledger: Ledger
    shortfall_years: list[int]


@dataclass(slots=True)
class _Settlement:
    withheld: float = 0.0
    payment: float = 0.0
    refund: float = 0.0
    unpaid: float = 0.0


def _convention(name: str) -> InterestConvention:
    return InterestConvention(name)


def open_ledger(plan: Plan) -> Ledger:
    """Open every account the household uses, seeded with the plan's balances."""
    year = plan.starting_year
    ledger = Ledger()
    ledger.open_account(AccountType.CASH, year=year)
    ledger.open_account(AccountType.TAXES, year=year)
    ledger.open_account(AccountType.OTHER_INCOME, year=year)
    ledger.open_account(
        AccountType.SAVINGS,
        year=year,
        opening_balance=plan.savings.balance,
        interest_rate=plan.savings.interest_rate,
        convention=_convention(plan.interest.savings),
    )

    people = [(SUBJECT, plan.subject)]
    if plan.partner is not None:
        people.append((PARTNER, plan.partner))
    for owner, person in people:
        accounts = OWNER_ACCOUNTS[owner]
        ledger.open_account(
            accounts.tax_deferred,
            year=year,
            opening_balance=person.traditional_401k.balance,
            interest_rate=person.traditional_401k.interest_rate,
            convention=_convention(plan.interest.tax_deferred),
        )
        ledger.open_account(
            accounts.roth,
            year=year,
            opening_balance=person.roth_ira.balance,
            interest_rate=person.roth_ira.interest_rate,
            convention=_convention(plan.interest.roth),
        )
        ledger.open_account(accounts.wages, year=year)
        ledger.open_account(accounts.pension, year=year)
        ledger.open_account(accounts.social_security, year=year)
    return ledger


def _route_income(
    view: AccountYear,
    conduit: AccountType,
    gross: float,
    withholding_rate: float,
    category: TransactionCategory = TransactionCategory.INCOME_GROSS,
) -> float:
    """Pass gross income through its conduit: withholding to TAXES, the rest to CASH."""
    gross = as_currency(gross)
    if gross <= 0:
        return 0.0
    withholding = as_currency(gross * withholding_rate)
    view.deposit(conduit, category, gross)
    view.withdraw(conduit, TransactionCategory.WITHHOLDINGS, withholding)
    view.deposit(AccountType.TAXES, TransactionCategory.WITHHOLDINGS, withholding)
    view.transfer(conduit, AccountType.CASH, gross - withholding, category=TransactionCategory.INCOME_NET)
    return withholding


def _post_payroll(view: AccountYear, streams: FixedIncomeStreams, fiscal: FiscalData) -> None:
    payroll = (
        (SUBJECT, streams.wages_subject, streams.pretax_401k_subject, streams.roth_401k_subject, streams.employer_match_subject),
        (PARTNER, streams.wages_partner, streams.pretax_401k_partner, streams.roth_401k_partner, streams.employer_match_partner),
    )
    for owner, wages, pretax, roth, match in payroll:
        if wages <= 0:
            continue
        accounts = OWNER_ACCOUNTS[owner]
        wages = as_currency(wages)
        pretax = as_currency(pretax)
        roth = as_currency(roth)
        withholding = as_currency((wages - pretax) * fiscal.wage_withholding_rate)

        view.deposit(accounts.wages, TransactionCategory.INCOME_GROSS, wages)
        for destination, amount in ((accounts.tax_deferred, pretax), (accounts.roth, roth)):
            view.withdraw(accounts.wages, TransactionCategory.CONTRIBUTION, amount)
            view.ledger.post_periodic(destination, TransactionCategory.CONTRIBUTION, amount, view.year, Frequency.MONTHLY)
        view.ledger.post_periodic(
            accounts.tax_deferred, TransactionCategory.EMPLOYER_MATCH, as_currency(match), view.year, Frequency.MONTHLY
        )
        view.withdraw(accounts.wages, TransactionCategory.WITHHOLDINGS, withholding)
        view.deposit(AccountType.TAXES, TransactionCategory.WITHHOLDINGS, withholding)
        view.transfer(
            accounts.wages,
            AccountType.CASH,
            as_currency(wages - pretax - roth - withholding),
            category=TransactionCategory.INCOME_NET,
        )


def _post_fixed_income(view: AccountYear, streams: FixedIncomeStreams, fiscal: FiscalData) -> None:
    for owner, pension, ss in (
        (SUBJECT, streams.pension_subject, streams.ss_subject),
        (PARTNER, streams.pension_partner, streams.ss_partner),
    ):
        accounts = OWNER_ACCOUNTS[owner]
        if pension > 0:
            _route_income(view, accounts.pension, pension, fiscal.pension_withholding_rate)
        if ss > 0:
            _route_income(view, accounts.social_security, ss, fiscal.ss_withholding_rate)
    if streams.misc_taxable > 0:
        _route_income(view, AccountType.OTHER_INCOME, streams.misc_taxable, 0.0, TransactionCategory.OTHER_TAXABLE_INCOME)
    if streams.tax_free > 0:
        view.deposit(AccountType.CASH, TransactionCategory.OTHER_NON_TAXABLE, streams.tax_free)


def _interest_bearing(ledger: Ledger) -> list[AccountType]:
    return [account.account_type for account in ledger.accounts if account.interest_rate != 0]


def _pay_from(view: AccountYear, account_type: AccountType, amount: float, category: TransactionCategory) -> float:
    paid = as_currency(min(amount, view.available_funds(account_type)))
    if paid > 0:
        view.withdraw(account_type, category, paid)
    return paid


def _settle_taxes(view: AccountYear, federal_tax: float) -> _Settlement:
    """Reconcile withholding against the year's liability and empty the TAXES account."""
    settlement = _Settlement(withheld=view.deposits(AccountType.TAXES, TransactionCategory.WITHHOLDINGS))
    view.withdraw(AccountType.TAXES, TransactionCategory.TAXES, view.available_funds(AccountType.TAXES))

    due = as_currency(federal_tax - settlement.withheld)
    if due > 0:
        settlement.payment = _pay_from(view, AccountType.CASH, due, TransactionCategory.TAX_PAYMENT)
        settlement.payment += _pay_from(view, AccountType.SAVINGS, due - settlement.payment, TransactionCategory.TAX_PAYMENT)
        settlement.unpaid = as_currency(due - settlement.payment)
    elif due < 0:
        settlement.refund = -due
        view.deposit(AccountType.CASH, TransactionCategory.TAX_REFUND, settlement.refund)
    return settlement


def _spend(view: AccountYear, fiscal: FiscalData, withdrawals: WithdrawalBreakdown) -> tuple[float, float]:
    """Pay the year's spending from CASH, topping up from savings. Returns (paid, unmet)."""
    target = as_currency(fiscal.spend)
    paid = _pay_from(view, AccountType.CASH, target, TransactionCategory.SPEND)
    deficit = as_currency(target - paid)
    if deficit > 0:
        allowance = deficit
        if fiscal.withdrawal_cap is not None:
            allowance = max(0.0, min(deficit, fiscal.withdrawal_cap - withdrawals.covered))
        paid += _pay_from(view, AccountType.SAVINGS, allowance, TransactionCategory.INCOME_SHORTFALL)
    return as_currency(paid), as_currency(target - paid)


def _sum_accounts(view: AccountYear, types: list[AccountType], metric: str, *args: Any) -> float:
    return as_currency(sum(getattr(view, metric)(t, *args) for t in types if view.has_account(t)))


def run_year(
    plan: Plan,
    ledger: Ledger,
    demographics: Demographics,
    *,
    tax_engine: TaxEngine,
    limits: WithdrawalLimits,
) -> YearResult:
    year = demographics.year
    view = ledger.year(year)
    fiscal = FiscalData.for_year(plan, demographics, withdrawal_cap=limits.cap_for(year))

    streams = project_fixed_income(plan, demographics, fiscal, view)
    _post_payroll(view, streams, fiscal)
    _post_fixed_income(view, streams, fiscal)

    fixed = IncomeBreakdown.compute(streams, 0.0, demographics, fiscal, tax_engine)
    shortfall = max(0.0, fiscal.spend - fixed.net_income)
    withdrawals = cover_shortfall(
        shortfall=shortfall,
        fixed_income_net=fixed.net_income,
        streams=streams,
        view=view,
        demographics=demographics,
        fiscal=fiscal,
        tax_engine=tax_engine,
        order=plan.withdrawals.order,
    )

    interest = ledger.record_interest(year, _interest_bearing(ledger))
    actual = replace(
        streams,
        interest=max(0.0, interest.get(AccountType.SAVINGS, 0.0)),
        rmd_subject=withdrawals.rmd_subject,
        rmd_partner=withdrawals.rmd_partner,
    )
    final = IncomeBreakdown.compute(actual, withdrawals.tax_deferred, demographics, fiscal, tax_engine)
    settlement = _settle_taxes(view, final.federal_tax)

    spend_paid, unmet = _spend(view, fiscal, withdrawals)
    unmet = as_currency(unmet + settlement.unpaid)
    leftover = view.available_funds(AccountType.CASH)
    if leftover > 0:
        view.transfer(AccountType.CASH, AccountType.SAVINGS, leftover, category=TransactionCategory.SURPLUS_INCOME)

    warnings = list(withdrawals.warnings)
    if settlement.unpaid > 0:
        warnings.append(f"unable to pay {settlement.unpaid:.2f} of federal tax in {year}")
    if unmet > 0:
        message = f"unmet spending of {unmet:.2f} in {year}"
        logger.warning(message)
        warnings.append(message)

    trad_types = [OWNER_ACCOUNTS[o].tax_deferred for o in (SUBJECT, PARTNER)]
    roth_types = [OWNER_ACCOUNTS[o].roth for o in (SUBJECT, PARTNER)]
    ss = final.social_security
    return YearResult(
        year=year,
        demographics_subject_age=demographics.subject_age,
        demographics_partner_age=demographics.partner_age,
        demographics_subject_living=demographics.subject_living,
        demographics_partner_living=demographics.partner_living,
        demographics_filing_status=demographics.effective_filing_status,
        demographics_retired=demographics.is_retired,
        spend_target=as_currency(fiscal.spend),
        spend_paid=spend_paid,
        unmet_shortfall=unmet,
        income_wages_gross=as_currency(actual.wages),
        income_pretax_401k=as_currency(actual.pretax_401k),
        income_roth_401k=as_currency(actual.roth_401k),
        income_employer_match=as_currency(actual.employer_match_subject + actual.employer_match_partner),
        income_pension_gross=as_currency(actual.pensions),
        income_social_security_gross=as_currency(actual.social_security),
        income_rmd=as_currency(actual.rmd),
        income_tax_deferred_withdrawal=as_currency(withdrawals.tax_deferred),
        income_savings_interest=as_currency(actual.interest),
        income_misc_taxable=as_currency(actual.misc_taxable),
        income_tax_free=as_currency(actual.tax_free),
        income_fixed_net=as_currency(fixed.net_income),
        income_gross=as_currency(final.gross_income),
        income_taxable=as_currency(final.taxable_income),
        income_net=as_currency(final.net_income),
        taxes_standard_deduction=as_currency(final.standard_deduction),
        taxes_federal=final.federal_tax,
        taxes_withheld=settlement.withheld,
        taxes_payment=settlement.payment,
        taxes_refund=settlement.refund,
        taxes_unpaid=settlement.unpaid,
        taxes_effective_rate=round(final.effective_tax_rate, 4),
        ss_subject_gross=as_currency(ss.subject_benefits),
        ss_partner_gross=as_currency(ss.partner_benefits),
        ss_provisional_income=as_currency(ss.provisional_income),
        ss_taxable=as_currency(ss.taxable),
        ss_non_taxable=as_currency(ss.non_taxable),
        ss_subject_taxable=as_currency(ss.subject_taxable),
        ss_partner_taxable=as_currency(ss.partner_taxable),
        retirement_acct_401k_start=_sum_accounts(view, trad_types, "starting_balance"),
        retirement_acct_401k_contributions=_sum_accounts(view, trad_types, "deposits", TransactionCategory.CONTRIBUTION)
        + _sum_accounts(view, trad_types, "deposits", TransactionCategory.EMPLOYER_MATCH),
        retirement_acct_401k_withdrawals=_sum_accounts(view, trad_types, "withdrawals"),
        retirement_acct_401k_interest=_sum_accounts(view, trad_types, "deposits", TransactionCategory.INTEREST),
        retirement_acct_401k_end=_sum_accounts(view, trad_types, "ending_balance"),
        retirement_acct_roth_start=_sum_accounts(view, roth_types, "starting_balance"),
        retirement_acct_roth_contributions=_sum_accounts(view, roth_types, "deposits", TransactionCategory.CONTRIBUTION),
        retirement_acct_roth_withdrawals=_sum_accounts(view, roth_types, "withdrawals"),
        retirement_acct_roth_interest=_sum_accounts(view, roth_types, "deposits", TransactionCategory.INTEREST),
        retirement_acct_roth_end=_sum_accounts(view, roth_types, "ending_balance"),
        savings_start=view.starting_balance(AccountType.SAVINGS),
        savings_deposits=view.deposits(AccountType.SAVINGS),
        savings_withdrawals=view.withdrawals(AccountType.SAVINGS),
        savings_interest=view.deposits(AccountType.SAVINGS, TransactionCategory.INTEREST),
        savings_end=view.ending_balance(AccountType.SAVINGS),
        withdrawal_savings=as_currency(withdrawals.savings),
        withdrawal_roth=as_currency(withdrawals.roth),
        withdrawal_tax_deferred_net=as_currency(withdrawals.tax_deferred_net),
        withdrawal_savings_fallback=as_currency(withdrawals.savings_fallback),
        warnings=warnings,
    )


def run_projection(
    plan: Plan,
    *,
    tax_engine: TaxEngine | None = None,
    limits: WithdrawalLimits | None = None,
) -> ProjectionResult:
    """Simulate every year from the plan's starting year while anyone in the household is alive."""
    engine = tax_engine or DEFAULT_TAX_ENGINE
    caps = limits if limits is not None else WithdrawalLimits.from_plan(plan)
    ledger = open_ledger(plan)

    years: list[YearResult] = []
    demographics = Demographics.for_year(plan, 0)
    for _ in range(projection_years(plan)):
        years.append(run_year(plan, ledger, demographics, tax_engine=engine, limits=caps))
        demographics = demographics.next_year(plan)

    return ProjectionResult(
        years=years,
        ledger=ledger,
        shortfall_years=[result.year for result in years if result.unmet_shortfall > 0],
    )
