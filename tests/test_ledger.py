import logging

import pytest

from nestegg.ledger import (
    AccountType,
    Frequency,
    InterestConvention,
    Ledger,
    TransactionCategory,
    UnknownAccountError,
)

SAVINGS = AccountType.SAVINGS
CASH = AccountType.CASH


def _ledger(balance: float = 1000.0, rate: float = 0.0, convention=InterestConvention.AVERAGE_BALANCE) -> Ledger:
    ledger = Ledger()
    ledger.open_account(SAVINGS, year=2026, opening_balance=balance, interest_rate=rate, convention=convention)
    ledger.open_account(CASH, year=2026)
    return ledger


def test_opening_balance_is_first_year_starting_balance():
    ledger = _ledger(1000.0)

    assert ledger.starting_balance(SAVINGS, 2026) == 1000.0
    assert ledger.deposits(SAVINGS, 2026) == 0.0
    assert ledger.ending_balance(SAVINGS, 2026) == 1000.0


def test_queries_are_filtered_by_year_and_category():
    ledger = _ledger(1000.0)
    ledger.deposit(SAVINGS, TransactionCategory.CONTRIBUTION, 200, 2026)
    ledger.deposit(SAVINGS, TransactionCategory.SURPLUS_INCOME, 50, 2026)
    ledger.withdraw(SAVINGS, TransactionCategory.DISBURSEMENT, 300, 2026)
    ledger.deposit(SAVINGS, TransactionCategory.CONTRIBUTION, 75, 2027)

    assert ledger.deposits(SAVINGS, 2026) == 250.0
    assert ledger.deposits(SAVINGS, 2026, TransactionCategory.CONTRIBUTION) == 200.0
    assert ledger.withdrawals(SAVINGS, 2026) == 300.0
    assert ledger.withdrawals(SAVINGS, 2026, TransactionCategory.SPEND) == 0.0
    assert ledger.ending_balance(SAVINGS, 2026) == 950.0
    assert ledger.starting_balance(SAVINGS, 2027) == 950.0
    assert ledger.deposits(SAVINGS, 2027) == 75.0


def test_unknown_account_type_raises_lookup_error_naming_it():
    ledger = Ledger()

    with pytest.raises(UnknownAccountError, match="subject_401k"):
        ledger.ending_balance(AccountType.SUBJECT_401K, 2026)
    assert issubclass(UnknownAccountError, LookupError)


def test_negative_amounts_are_rejected():
    ledger = _ledger()

    with pytest.raises(ValueError, match=">= 0"):
        ledger.deposit(SAVINGS, TransactionCategory.CONTRIBUTION, -5, 2026)
    with pytest.raises(ValueError, match=">= 0"):
        ledger.withdraw(SAVINGS, TransactionCategory.DISBURSEMENT, -5, 2026)


def test_posted_amounts_are_rounded_to_cents():
    ledger = _ledger(1000.0)
    txn = ledger.deposit(SAVINGS, TransactionCategory.CONTRIBUTION, 10.123, 2026)

    assert txn is not None
    assert txn.amount == 10.12
    assert ledger.ending_balance(SAVINGS, 2026) == 1010.12


def test_available_funds_skips_negative_balances():
    ledger = _ledger(100.0)
    ledger.withdraw(CASH, TransactionCategory.SPEND, 50, 2026)

    assert ledger.ending_balance(CASH, 2026) == -50.0
    assert ledger.available_funds([SAVINGS, CASH], 2026) == 100.0


def test_transfer_posts_paired_transactions():
    ledger = _ledger(1000.0)
    ledger.transfer(SAVINGS, CASH, 400, 2026)

    assert ledger.ending_balance(SAVINGS, 2026) == 600.0
    assert ledger.ending_balance(CASH, 2026) == 400.0
    assert ledger.withdrawals(SAVINGS, 2026, TransactionCategory.TRANSFER) == 400.0
    assert ledger.deposits(CASH, 2026, TransactionCategory.TRANSFER) == 400.0


@pytest.mark.parametrize(
    ("convention", "expected"),
    [
        (InterestConvention.STARTING_BALANCE, 100.0),
        (InterestConvention.IGNORE_DEPOSITS, 90.0),
        (InterestConvention.IGNORE_WITHDRAWALS, 120.0),
        (InterestConvention.AVERAGE_BALANCE, 105.0),
        (InterestConvention.ENDING_BALANCE, 110.0),
    ],
)
def test_interest_convention_selects_balance_basis(convention, expected):
    ledger = _ledger(1000.0, rate=0.10, convention=convention)
    ledger.deposit(SAVINGS, TransactionCategory.CONTRIBUTION, 200, 2026)
    ledger.withdraw(SAVINGS, TransactionCategory.DISBURSEMENT, 100, 2026)

    interest = ledger.record_interest(2026, [SAVINGS])

    assert interest[SAVINGS] == pytest.approx(expected)
    assert ledger.deposits(SAVINGS, 2026, TransactionCategory.INTEREST) == pytest.approx(expected)


def test_rolling_interest_compounds_monthly():
    ledger = _ledger(1200.0, rate=0.12, convention=InterestConvention.ROLLING)

    total = ledger.account(SAVINGS).record_interest(2026)

    postings = ledger.account(SAVINGS).transactions_for(2026, TransactionCategory.INTEREST)
    assert [t.month for t in postings] == list(range(1, 13))
    assert total == pytest.approx(1200.0 * (1.01**12 - 1), abs=0.05)


def test_rolling_interest_accounts_for_monthly_postings():
    ledger = _ledger(0.0, rate=0.12, convention=InterestConvention.ROLLING)
    ledger.post_periodic(SAVINGS, TransactionCategory.CONTRIBUTION, 1200, 2026, Frequency.ANNUAL_TRAILING)

    # Money arriving in December earns one month of interest.
    assert ledger.account(SAVINGS).calculate_interest(2026) == pytest.approx(12.0)


def test_non_positive_basis_earns_nothing_and_negative_balance_is_logged(caplog):
    ledger = _ledger(0.0, rate=0.05, convention=InterestConvention.ENDING_BALANCE)
    ledger.withdraw(SAVINGS, TransactionCategory.DISBURSEMENT, 100, 2026)

    with caplog.at_level(logging.WARNING):
        interest = ledger.record_interest(2026, [SAVINGS])

    assert interest[SAVINGS] == 0.0
    assert "negative balance" in caplog.text


def test_interest_cannot_be_recorded_twice():
    ledger = _ledger(1000.0, rate=0.05)
    ledger.record_interest(2026, [SAVINGS])

    with pytest.raises(ValueError, match="already recorded"):
        ledger.record_interest(2026, [SAVINGS])


def test_starting_balance_matches_prior_ending_balance_each_year():
    ledger = _ledger(5000.0, rate=0.04, convention=InterestConvention.AVERAGE_BALANCE)
    for year in range(2026, 2031):
        ledger.deposit(SAVINGS, TransactionCategory.CONTRIBUTION, 1234.56, year)
        ledger.withdraw(SAVINGS, TransactionCategory.DISBURSEMENT, 789.01, year)
        ledger.record_interest(year, [SAVINGS])

    for year in range(2026, 2030):
        for account_type in (SAVINGS, CASH):
            assert ledger.starting_balance(account_type, year + 1) == ledger.ending_balance(account_type, year)


def test_monthly_posting_puts_remainder_in_last_month():
    ledger = _ledger(0.0)
    posted = ledger.post_periodic(SAVINGS, TransactionCategory.CONTRIBUTION, 1000, 2026)

    assert len(posted) == 12
    assert all(t.amount == 83.33 for t in posted[:11])
    assert posted[-1].amount == 83.37
    assert posted[-1].month == 12
    assert ledger.deposits(SAVINGS, 2026) == 1000.0


def test_annual_postings_land_in_first_or_last_month():
    ledger = _ledger(0.0)
    leading = ledger.post_periodic(SAVINGS, TransactionCategory.CONTRIBUTION, 500, 2026, Frequency.ANNUAL_LEADING)
    trailing = ledger.post_periodic(CASH, TransactionCategory.SPEND, 200, 2026, Frequency.ANNUAL_TRAILING, withdraw=True)

    assert [t.month for t in leading] == [1]
    assert [t.month for t in trailing] == [12]
    assert trailing[0].amount == -200.0


def test_account_year_view_scopes_reads_and_writes():
    ledger = _ledger(1000.0)
    view = ledger.year(2027)
    view.deposit(SAVINGS, TransactionCategory.CONTRIBUTION, 10)

    assert ledger.deposits(SAVINGS, 2027) == 10.0
    assert ledger.deposits(SAVINGS, 2026) == 0.0
    assert view.starting_balance(SAVINGS) == 1000.0
    assert view.available_funds(SAVINGS, CASH) == 1010.0
    assert view.next().year == 2028


def test_opening_same_account_twice_is_rejected():
    ledger = _ledger()

    with pytest.raises(ValueError, match="already open"):
        ledger.open_account(SAVINGS, year=2026)
