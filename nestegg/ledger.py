"""Typed account ledger with per-year, category-filtered queries."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import logging
import math
from typing import Final, Iterable

logger = logging.getLogger(__name__)

MONTHS_PER_YEAR: Final[int] = 12


class UnknownAccountError(LookupError):
    """Raised when the ledger is asked about an account type it never opened."""


class AccountType(str, Enum):
    CASH = "cash"
    SAVINGS = "savings"
    SUBJECT_401K = "subject_401k"
    PARTNER_401K = "partner_401k"
    SUBJECT_ROTH_IRA = "subject_roth_ira"
    PARTNER_ROTH_IRA = "partner_roth_ira"
    SUBJECT_PENSION = "subject_pension"
    PARTNER_PENSION = "partner_pension"
    SUBJECT_SOCIAL_SECURITY = "subject_social_security"
    PARTNER_SOCIAL_SECURITY = "partner_social_security"
    SUBJECT_WAGES = "subject_wages"
    PARTNER_WAGES = "partner_wages"
    OTHER_INCOME = "other_income"
    TAXES = "taxes"


class TransactionCategory(str, Enum):
    OPENING_BALANCE = "opening_balance"
    CONTRIBUTION = "contribution"
    EMPLOYER_MATCH = "employer_match"
    INTEREST = "interest"
    DISBURSEMENT = "disbursement"
    WITHHOLDINGS = "withholdings"
    INCOME_GROSS = "income_gross"
    INCOME_NET = "income_net"
    TRANSFER = "transfer"
    RMD = "rmd"
    TAXES = "taxes"
    TAX_PAYMENT = "tax_payment"
    TAX_REFUND = "tax_refund"
    SPEND = "spend"
    SURPLUS_INCOME = "surplus_income"
    INCOME_SHORTFALL = "income_shortfall"
    OTHER_TAXABLE_INCOME = "other_taxable_income"
    OTHER_NON_TAXABLE = "other_non_taxable"


class InterestConvention(str, Enum):
    STARTING_BALANCE = "starting_balance"
    IGNORE_DEPOSITS = "ignore_deposits"
    IGNORE_WITHDRAWALS = "ignore_withdrawals"
    AVERAGE_BALANCE = "average_balance"
    ENDING_BALANCE = "ending_balance"
    ROLLING = "rolling"


class Frequency(str, Enum):
    MONTHLY = "monthly"
    ANNUAL_LEADING = "annual_leading"
    ANNUAL_TRAILING = "annual_trailing"


def as_currency(value: float) -> float:
    return round(value, 2)


def _check_amount(amount: float) -> None:
    if not math.isfinite(amount):
        raise ValueError(f"amount must be finite, got {amount!r}")
    if amount < 0:
        raise ValueError(f"amount must be >= 0, got {amount!r}")


@dataclass(frozen=True, slots=True)
class Transaction:
    account_type: AccountType
    amount: float
    category: TransactionCategory
    year: int
    month: int | None = None
    memo: str | None = None


@dataclass(slots=True)
class Account:
    account_type: AccountType
    interest_rate: float = 0.0
    convention: InterestConvention = InterestConvention.AVERAGE_BALANCE
    transactions: list[Transaction] = field(default_factory=list)

    def _post(
        self,
        signed_amount: float,
        category: TransactionCategory,
        year: int,
        month: int | None,
        memo: str | None,
    ) -> Transaction | None:
        if month is not None and not 1 <= month <= MONTHS_PER_YEAR:
            raise ValueError(f"month must be in 1..12, got {month}")
        amount = as_currency(signed_amount)
        if amount == 0:
            return None
        txn = Transaction(self.account_type, amount, category, year, month, memo)
        self.transactions.append(txn)
        return txn

    def deposit(
        self,
        amount: float,
        category: TransactionCategory,
        year: int,
        *,
        month: int | None = None,
        memo: str | None = None,
    ) -> Transaction | None:
        _check_amount(amount)
        return self._post(amount, category, year, month, memo)

    def withdraw(
        self,
        amount: float,
        category: TransactionCategory,
        year: int,
        *,
        month: int | None = None,
        memo: str | None = None,
    ) -> Transaction | None:
        _check_amount(amount)
        return self._post(-amount, category, year, month, memo)

    def transactions_for(self, year: int, category: TransactionCategory | None = None) -> list[Transaction]:
        return [
            t for t in self.transactions if t.year == year and (category is None or t.category is category)
        ]

    def starting_balance(self, year: int) -> float:
        # The opening deposit of the first year counts as balance carried in.
        total = sum(
            t.amount
            for t in self.transactions
            if t.year < year or (t.year == year and t.category is TransactionCategory.OPENING_BALANCE)
        )
        return as_currency(total)

    def ending_balance(self, year: int) -> float:
        return as_currency(sum(t.amount for t in self.transactions if t.year <= year))

    def deposits(self, year: int, category: TransactionCategory | None = None) -> float:
        return as_currency(
            sum(
                t.amount
                for t in self.transactions_for(year, category)
                if t.amount > 0 and t.category is not TransactionCategory.OPENING_BALANCE
            )
        )

    def withdrawals(self, year: int, category: TransactionCategory | None = None) -> float:
        """Total withdrawn in ``year`` as a positive magnitude."""
        return as_currency(-sum(t.amount for t in self.transactions_for(year, category) if t.amount < 0))

    def available_funds(self, year: int) -> float:
        return max(0.0, self.ending_balance(year))

    def has_interest(self, year: int) -> bool:
        return bool(self.transactions_for(year, TransactionCategory.INTEREST))

    def _monthly_flows(self, year: int) -> list[float]:
        flows = [0.0] * MONTHS_PER_YEAR
        for t in self.transactions_for(year):
            if t.category is TransactionCategory.OPENING_BALANCE:
                continue
            # Postings without a month settle at the start of the year.
            flows[(t.month or 1) - 1] += t.amount
        return flows

    def rolling_interest(self, year: int) -> list[float]:
        monthly_rate = self.interest_rate / MONTHS_PER_YEAR
        balance = self.starting_balance(year)
        earned: list[float] = []
        for flow in self._monthly_flows(year):
            balance += flow
            interest = balance * monthly_rate if balance > 0 else 0.0
            balance += interest
            earned.append(interest)
        return earned

    def calculate_interest(self, year: int) -> float:
        if self.interest_rate == 0:
            return 0.0
        if self.convention is InterestConvention.ROLLING:
            return as_currency(sum(self.rolling_interest(year)))

        start = self.starting_balance(year)
        if self.convention is InterestConvention.STARTING_BALANCE:
            basis = start
        elif self.convention is InterestConvention.IGNORE_DEPOSITS:
            basis = start - self.withdrawals(year)
        elif self.convention is InterestConvention.IGNORE_WITHDRAWALS:
            basis = start + self.deposits(year)
        elif self.convention is InterestConvention.AVERAGE_BALANCE:
            basis = (start + self.ending_balance(year)) / 2.0
        else:
            basis = self.ending_balance(year)
        if basis <= 0:
            return 0.0
        return as_currency(basis * self.interest_rate)

    def record_interest(self, year: int) -> float:
        if self.has_interest(year):
            raise ValueError(f"{self.account_type.value}: interest already recorded for {year}")

        if self.convention is InterestConvention.ROLLING and self.interest_rate != 0:
            total = 0.0
            for month, earned in enumerate(self.rolling_interest(year), start=1):
                total += self._post_interest(earned, year, month)
        else:
            total = self._post_interest(self.calculate_interest(year), year, MONTHS_PER_YEAR)

        ending = self.ending_balance(year)
        if ending < 0:
            logger.warning(
                "%s: negative balance %.2f after recording %d interest",
                self.account_type.value,
                ending,
                year,
            )
        return as_currency(total)

    def _post_interest(self, amount: float, year: int, month: int) -> float:
        amount = as_currency(amount)
        if amount > 0:
            self.deposit(amount, TransactionCategory.INTEREST, year, month=month)
        elif amount < 0:
            self.withdraw(-amount, TransactionCategory.INTEREST, year, month=month)
        return amount


class Ledger:
    """All accounts of one simulation run, keyed by account type."""

    def __init__(self) -> None:
        self._accounts: dict[AccountType, Account] = {}

    def open_account(
        self,
        account_type: AccountType,
        *,
        year: int,
        opening_balance: float = 0.0,
        interest_rate: float = 0.0,
        convention: InterestConvention = InterestConvention.AVERAGE_BALANCE,
    ) -> Account:
        if account_type in self._accounts:
            raise ValueError(f"account already open: {account_type.value}")
        account = Account(account_type=account_type, interest_rate=interest_rate, convention=convention)
        account.deposit(opening_balance, TransactionCategory.OPENING_BALANCE, year)
        self._accounts[account_type] = account
        return account

    def has_account(self, account_type: AccountType) -> bool:
        return account_type in self._accounts

    def account(self, account_type: AccountType) -> Account:
        try:
            return self._accounts[account_type]
        except KeyError:
            raise UnknownAccountError(f"unknown account type: {account_type.value}") from None

    @property
    def accounts(self) -> list[Account]:
        return list(self._accounts.values())

    def deposit(
        self,
        account_type: AccountType,
        category: TransactionCategory,
        amount: float,
        year: int,
        *,
        month: int | None = None,
        memo: str | None = None,
    ) -> Transaction | None:
        return self.account(account_type).deposit(amount, category, year, month=month, memo=memo)

    def withdraw(
        self,
        account_type: AccountType,
        category: TransactionCategory,
        amount: float,
        year: int,
        *,
        month: int | None = None,
        memo: str | None = None,
    ) -> Transaction | None:
        return self.account(account_type).withdraw(amount, category, year, month=month, memo=memo)

    def transfer(
        self,
        source: AccountType,
        destination: AccountType,
        amount: float,
        year: int,
        *,
        category: TransactionCategory = TransactionCategory.TRANSFER,
        memo: str | None = None,
    ) -> float:
        src = self.account(source)
        dst = self.account(destination)
        src.withdraw(amount, category, year, memo=memo)
        dst.deposit(amount, category, year, memo=memo)
        return as_currency(amount)

    def post_periodic(
        self,
        account_type: AccountType,
        category: TransactionCategory,
        amount: float,
        year: int,
        frequency: Frequency = Frequency.MONTHLY,
        *,
        withdraw: bool = False,
        memo: str | None = None,
    ) -> list[Transaction]:
        """Post an annual amount as monthly installments or a single leading/trailing entry."""
        _check_amount(amount)
        account = self.account(account_type)
        post = account.withdraw if withdraw else account.deposit

        if frequency is Frequency.ANNUAL_LEADING:
            schedule = [(1, amount)]
        elif frequency is Frequency.ANNUAL_TRAILING:
            schedule = [(MONTHS_PER_YEAR, amount)]
        else:
            installment = math.floor(amount * 100 / MONTHS_PER_YEAR) / 100
            last = as_currency(amount - installment * (MONTHS_PER_YEAR - 1))
            schedule = [(m, installment) for m in range(1, MONTHS_PER_YEAR)]
            schedule.append((MONTHS_PER_YEAR, last))

        posted: list[Transaction] = []
        for month, value in schedule:
            txn = post(value, category, year, month=month, memo=memo)
            if txn is not None:
                posted.append(txn)
        return posted

    def starting_balance(self, account_type: AccountType, year: int) -> float:
        return self.account(account_type).starting_balance(year)

    def ending_balance(self, account_type: AccountType, year: int) -> float:
        return self.account(account_type).ending_balance(year)

    def deposits(
        self,
        account_type: AccountType,
        year: int,
        category: TransactionCategory | None = None,
    ) -> float:
        return self.account(account_type).deposits(year, category)

    def withdrawals(
        self,
        account_type: AccountType,
        year: int,
        category: TransactionCategory | None = None,
    ) -> float:
        return self.account(account_type).withdrawals(year, category)

    def available_funds(self, account_types: Iterable[AccountType], year: int) -> float:
        return as_currency(sum(self.account(t).available_funds(year) for t in account_types))

    def record_interest(self, year: int, account_types: Iterable[AccountType] | None = None) -> dict[AccountType, float]:
        types = list(self._accounts) if account_types is None else list(account_types)
        return {t: self.account(t).record_interest(year) for t in types}

    def year(self, year: int) -> AccountYear:
        return AccountYear(ledger=self, year=year)


@dataclass(frozen=True, slots=True)
class AccountYear:
    """The ledger seen through one tax year. Holds no data of its own."""

    ledger: Ledger
    year: int

    def has_account(self, account_type: AccountType) -> bool:
        return self.ledger.has_account(account_type)

    def starting_balance(self, account_type: AccountType) -> float:
        return self.ledger.starting_balance(account_type, self.year)

    def ending_balance(self, account_type: AccountType) -> float:
        return self.ledger.ending_balance(account_type, self.year)

    def deposits(self, account_type: AccountType, category: TransactionCategory | None = None) -> float:
        return self.ledger.deposits(account_type, self.year, category)

    def withdrawals(self, account_type: AccountType, category: TransactionCategory | None = None) -> float:
        return self.ledger.withdrawals(account_type, self.year, category)

    def available_funds(self, *account_types: AccountType) -> float:
        return self.ledger.available_funds(account_types, self.year)

    def deposit(self, account_type: AccountType, category: TransactionCategory, amount: float, **kwargs) -> Transaction | None:
        return self.ledger.deposit(account_type, category, amount, self.year, **kwargs)

    def withdraw(self, account_type: AccountType, category: TransactionCategory, amount: float, **kwargs) -> Transaction | None:
        return self.ledger.withdraw(account_type, category, amount, self.year, **kwargs)

    def transfer(self, source: AccountType, destination: AccountType, amount: float, **kwargs) -> float:
        return self.ledger.transfer(source, destination, amount, self.year, **kwargs)

    def next(self) -> AccountYear:
        return AccountYear(ledger=self.ledger, year=self.year + 1)
