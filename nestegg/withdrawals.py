"""Withdrawal ordering policy: RMD floor, then savings, Roth and tax-deferred in configured order."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Final, Iterable

from .household import Demographics, FiscalData
from .income import OWNER_ACCOUNTS, PARTNER, SUBJECT, FixedIncomeStreams, IncomeBreakdown
from .ledger import AccountType, AccountYear, TransactionCategory, as_currency
from .resolver import resolve_gross_withdrawal_for_net_target
from .tax import TaxEngine, require_finite

logger = logging.getLogger(__name__)

SAVINGS: Final[str] = "savings"
ROTH: Final[str] = "roth"
TAX_DEFERRED: Final[str] = "tax_deferred"

DEFAULT_ORDER: Final[tuple[str, ...]] = (SAVINGS, ROTH, TAX_DEFERRED)
WITHDRAWAL_SOURCES: Final[set[str]] = set(DEFAULT_ORDER)


@dataclass(slots=True)
class WithdrawalBreakdown:
    shortfall: float = 0.0
    coverage_limit: float | None = None
    savings: float = 0.0
    roth_subject: float = 0.0
    roth_partner: float = 0.0
    tax_deferred_subject: float = 0.0
    tax_deferred_partner: float = 0.0
    tax_deferred_withholding: float = 0.0
    tax_deferred_net: float = 0.0
    rmd_subject: float = 0.0
    rmd_partner: float = 0.0
    rmd_withholding: float = 0.0
    savings_fallback: float = 0.0
    unmet_shortfall: float = 0.0
    warnings: list[str] = field(default_factory=list)

    @property
    def roth(self) -> float:
        return self.roth_subject + self.roth_partner

    @property
    def tax_deferred(self) -> float:
        return self.tax_deferred_subject + self.tax_deferred_partner

    @property
    def rmd(self) -> float:
        return self.rmd_subject + self.rmd_partner

    @property
    def covered(self) -> float:
        """Net spending need met by discretionary withdrawals."""
        return self.savings + self.roth + self.tax_deferred_net + self.savings_fallback


def _warn(breakdown: WithdrawalBreakdown, message: str, *args: object) -> None:
    text = message % args
    logger.warning(text)
    breakdown.warnings.append(text)


def _split_by_availability(amount: float, available: dict[AccountType, float]) -> dict[AccountType, float]:
    """Split ``amount`` across accounts in proportion to their available funds."""
    total = sum(available.values())
    if amount <= 0 or total <= 0:
        return {account_type: 0.0 for account_type in available}

    shares: dict[AccountType, float] = {}
    remaining = as_currency(amount)
    items = list(available.items())
    for account_type, funds in items[:-1]:
        share = min(funds, as_currency(amount * funds / total))
        shares[account_type] = share
        remaining -= share
    last_type, last_funds = items[-1]
    shares[last_type] = min(last_funds, as_currency(remaining))
    return shares


def _owners(demographics: Demographics) -> list[str]:
    # A survivor keeps drawing on the deceased spouse's accounts.
    return [SUBJECT, PARTNER] if demographics.has_partner else [SUBJECT]


def _existing(view: AccountYear, types: Iterable[AccountType]) -> list[AccountType]:
    return [t for t in types if view.has_account(t)]


def _post_taxable_withdrawal(
    view: AccountYear,
    account_type: AccountType,
    amount: float,
    rate: float,
    category: TransactionCategory,
) -> tuple[float, float]:
    """Withdraw ``amount`` from a tax-deferred account, routing withholding to TAXES and the rest to CASH."""
    gross = as_currency(amount)
    if gross <= 0:
        return 0.0, 0.0
    withholding = as_currency(gross * rate)
    view.withdraw(account_type, category, gross)
    view.deposit(AccountType.TAXES, TransactionCategory.WITHHOLDINGS, withholding)
    view.deposit(AccountType.CASH, TransactionCategory.INCOME_NET, gross - withholding)
    return gross, withholding


def withdraw_rmds(
    *,
    streams: FixedIncomeStreams,
    view: AccountYear,
    fiscal: FiscalData,
    breakdown: WithdrawalBreakdown,
) -> None:
    """Take each owner's RMD regardless of spending need."""
    for owner, requested in ((SUBJECT, streams.rmd_subject), (PARTNER, streams.rmd_partner)):
        if requested <= 0:
            continue
        account_type = OWNER_ACCOUNTS[owner].tax_deferred
        available = view.available_funds(account_type)
        amount = min(requested, available)
        if amount < requested:
            _warn(breakdown, "%s: RMD %.2f clamped to available %.2f", account_type.value, requested, available)
        gross, withholding = _post_taxable_withdrawal(
            view, account_type, amount, fiscal.tax_deferred_withholding_rate, TransactionCategory.RMD
        )
        breakdown.rmd_withholding += withholding
        if owner == SUBJECT:
            breakdown.rmd_subject = gross
        else:
            breakdown.rmd_partner = gross


def _draw_savings(view: AccountYear, need: float, breakdown: WithdrawalBreakdown) -> float:
    if need <= 0 or not view.has_account(AccountType.SAVINGS):
        return 0.0
    available = view.available_funds(AccountType.SAVINGS)
    amount = as_currency(min(need, available))
    if 0 < amount < as_currency(need):
        _warn(breakdown, "savings: withdrawal %.2f clamped to available %.2f", need, available)
    if amount > 0:
        view.transfer(AccountType.SAVINGS, AccountType.CASH, amount, category=TransactionCategory.DISBURSEMENT)
    return amount


def _draw_roth(view: AccountYear, need: float, owners: list[str], breakdown: WithdrawalBreakdown) -> float:
    types = _existing(view, [OWNER_ACCOUNTS[o].roth for o in owners])
    if need <= 0 or not types:
        return 0.0
    available = {t: view.available_funds(t) for t in types}
    total = sum(available.values())
    if 0 < total < need:
        _warn(breakdown, "roth: withdrawal %.2f clamped to available %.2f", need, total)
    shares = _split_by_availability(min(need, total), available)
    for account_type, amount in shares.items():
        if amount > 0:
            view.transfer(account_type, AccountType.CASH, amount, category=TransactionCategory.DISBURSEMENT)
    breakdown.roth_subject += shares.get(AccountType.SUBJECT_ROTH_IRA, 0.0)
    breakdown.roth_partner += shares.get(AccountType.PARTNER_ROTH_IRA, 0.0)
    return as_currency(sum(shares.values()))


def _draw_tax_deferred(
    *,
    need: float,
    fixed_income_net: float,
    streams: FixedIncomeStreams,
    view: AccountYear,
    owners: list[str],
    available_before_rmd: dict[AccountType, float],
    demographics: Demographics,
    fiscal: FiscalData,
    tax_engine: TaxEngine,
    breakdown: WithdrawalBreakdown,
) -> float:
    types = [t for t in (OWNER_ACCOUNTS[o].tax_deferred for o in owners) if t in available_before_rmd]
    if need <= 0 or not types:
        return 0.0

    target = fixed_income_net + need
    wanted = resolve_gross_withdrawal_for_net_target(target, streams, demographics, fiscal, tax_engine=tax_engine)
    headroom = max(sum(available_before_rmd[t] for t in types) - streams.rmd, 0.0)
    gross = min(wanted, headroom)
    if 0 < gross < wanted:
        _warn(breakdown, "tax_deferred: withdrawal %.2f clamped to available %.2f", wanted, headroom)
    if gross <= 0:
        return 0.0

    available_now = {t: view.available_funds(t) for t in types}
    shares = _split_by_availability(gross, available_now)
    posted = 0.0
    for account_type, amount in shares.items():
        taken, withholding = _post_taxable_withdrawal(
            view, account_type, amount, fiscal.tax_deferred_withholding_rate, TransactionCategory.DISBURSEMENT
        )
        posted += taken
        breakdown.tax_deferred_withholding += withholding
        if account_type is AccountType.SUBJECT_401K:
            breakdown.tax_deferred_subject += taken
        else:
            breakdown.tax_deferred_partner += taken

    # An exhausted account cannot produce negative spending money; the gap stays uncovered.
    net = IncomeBreakdown.compute(streams, posted, demographics, fiscal, tax_engine).net_income
    contribution = max(0.0, net - fixed_income_net)
    breakdown.tax_deferred_net += contribution
    return contribution


def cover_shortfall(
    *,
    shortfall: float,
    fixed_income_net: float,
    streams: FixedIncomeStreams,
    view: AccountYear,
    demographics: Demographics,
    fiscal: FiscalData,
    tax_engine: TaxEngine,
    order: Iterable[str] = DEFAULT_ORDER,
) -> WithdrawalBreakdown:
    """Cover the year's spending shortfall and report what each account supplied.

    RMDs are withdrawn first whatever the shortfall. Savings may always be
    drawn; Roth and tax-deferred accounts only once the household is retired.
    Any shortfall left after the savings fallback is reported, not retried.
    """
    need = max(0.0, require_finite(shortfall, "shortfall"))
    require_finite(fixed_income_net, "fixed_income_net")
    breakdown = WithdrawalBreakdown(shortfall=as_currency(need), coverage_limit=fiscal.withdrawal_cap)

    owners = _owners(demographics)
    trad_types = _existing(view, [OWNER_ACCOUNTS[o].tax_deferred for o in owners])
    available_before_rmd = {t: view.available_funds(t) for t in trad_types}
    withdraw_rmds(streams=streams, view=view, fiscal=fiscal, breakdown=breakdown)

    remaining = need
    if fiscal.withdrawal_cap is not None and fiscal.withdrawal_cap < need:
        _warn(breakdown, "withdrawal limit %.2f for %d is below shortfall %.2f", fiscal.withdrawal_cap, fiscal.tax_year, need)
        remaining = fiscal.withdrawal_cap
    uncovered_by_cap = need - remaining

    for source in order:
        if as_currency(remaining) <= 0:
            break
        if source == SAVINGS:
            taken = _draw_savings(view, remaining, breakdown)
            breakdown.savings += taken
        elif source == ROTH:
            if not demographics.is_retired:
                continue
            taken = _draw_roth(view, remaining, owners, breakdown)
        elif source == TAX_DEFERRED:
            if not demographics.is_retired:
                continue
            taken = _draw_tax_deferred(
                need=remaining,
                fixed_income_net=fixed_income_net,
                streams=streams,
                view=view,
                owners=owners,
                available_before_rmd=available_before_rmd,
                demographics=demographics,
                fiscal=fiscal,
                tax_engine=tax_engine,
                breakdown=breakdown,
            )
        else:
            raise ValueError(f"unknown withdrawal source: {source!r}")
        remaining = max(0.0, remaining - taken)

    if as_currency(remaining) > 0:
        breakdown.savings_fallback = _draw_savings(view, remaining, breakdown)
        remaining = max(0.0, remaining - breakdown.savings_fallback)

    breakdown.unmet_shortfall = as_currency(remaining + uncovered_by_cap)
    if breakdown.unmet_shortfall > 0:
        _warn(breakdown, "unable to cover %.2f of %.2f shortfall in %d", breakdown.unmet_shortfall, need, fiscal.tax_year)
    return breakdown
