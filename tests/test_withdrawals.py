import pytest

from nestegg.income import FixedIncomeStreams, IncomeBreakdown
from nestegg.ledger import AccountType, Ledger, TransactionCategory
from nestegg.rmd import compute_rmd_amount
from nestegg.withdrawals import ROTH, SAVINGS, TAX_DEFERRED, cover_shortfall
from tests.helpers import make_demographics, make_fiscal

YEAR = 2025


def _view(*, savings=0.0, roth=0.0, tax_deferred=0.0, partner_roth=None, partner_tax_deferred=None):
    ledger = Ledger()
    ledger.open_account(AccountType.CASH, year=YEAR)
    ledger.open_account(AccountType.TAXES, year=YEAR)
    ledger.open_account(AccountType.SAVINGS, year=YEAR, opening_balance=savings)
    ledger.open_account(AccountType.SUBJECT_ROTH_IRA, year=YEAR, opening_balance=roth)
    ledger.open_account(AccountType.SUBJECT_401K, year=YEAR, opening_balance=tax_deferred)
    if partner_roth is not None:
        ledger.open_account(AccountType.PARTNER_ROTH_IRA, year=YEAR, opening_balance=partner_roth)
    if partner_tax_deferred is not None:
        ledger.open_account(AccountType.PARTNER_401K, year=YEAR, opening_balance=partner_tax_deferred)
    return ledger.year(YEAR)


def _cover(view, streams, shortfall, *, demo=None, fiscal=None, tax_engine, order=(SAVINGS, ROTH, TAX_DEFERRED)):
    demo = demo or make_demographics()
    fiscal = fiscal or make_fiscal()
    fixed_net = IncomeBreakdown.compute(streams, 0.0, demo, fiscal, tax_engine).net_income
    return cover_shortfall(
        shortfall=shortfall,
        fixed_income_net=fixed_net,
        streams=streams,
        view=view,
        demographics=demo,
        fiscal=fiscal,
        tax_engine=tax_engine,
        order=order,
    )


def test_savings_then_roth_cover_the_gap(tax_engine):
    view = _view(savings=20_000, roth=10_000)
    streams = FixedIncomeStreams(tax_free=52_000)

    result = _cover(view, streams, 80_000 - 52_000, tax_engine=tax_engine)

    assert result.savings == 20_000
    assert result.roth == 8_000
    assert result.tax_deferred == 0
    assert result.unmet_shortfall == 0
    assert result.covered == pytest.approx(28_000)
    assert view.ending_balance(AccountType.CASH) == 28_000
    assert view.ending_balance(AccountType.SUBJECT_ROTH_IRA) == 2_000
    assert not any("unable to cover" in w for w in result.warnings)


def test_exhausted_accounts_leave_unmet_shortfall(tax_engine):
    view = _view(savings=10_000, roth=5_000)

    result = _cover(view, FixedIncomeStreams(tax_free=52_000), 28_000, tax_engine=tax_engine)

    assert result.savings == 10_000
    assert result.roth == 5_000
    assert result.savings_fallback == 0
    assert result.unmet_shortfall == 13_000
    assert any("unable to cover" in w for w in result.warnings)
    assert any("roth" in w for w in result.warnings)


def test_tax_deferred_withdrawal_is_grossed_up_for_tax(tax_engine):
    view = _view(tax_deferred=200_000)
    streams = FixedIncomeStreams(pension_subject=40_000)

    result = _cover(view, streams, 20_000, tax_engine=tax_engine)

    assert result.tax_deferred > 20_000
    assert result.tax_deferred_net == pytest.approx(20_000, abs=0.05)
    assert result.unmet_shortfall <= 0.01
    assert result.tax_deferred_withholding == round(result.tax_deferred * 0.20, 2)
    assert view.ending_balance(AccountType.TAXES) == result.tax_deferred_withholding
    assert view.ending_balance(AccountType.CASH) == pytest.approx(result.tax_deferred - result.tax_deferred_withholding)
    assert view.withdrawals(AccountType.SUBJECT_401K, TransactionCategory.DISBURSEMENT) == result.tax_deferred


def test_rmd_is_taken_without_a_shortfall(tax_engine):
    view = _view(tax_deferred=265_000)
    demo = make_demographics(subject_age=73)
    streams = FixedIncomeStreams(rmd_subject=compute_rmd_amount(265_000, 73))

    result = _cover(view, streams, 0.0, demo=demo, tax_engine=tax_engine)

    assert result.rmd == 10_000
    assert result.rmd_withholding == 2_000
    assert result.tax_deferred == 0
    assert view.ending_balance(AccountType.SUBJECT_401K) == 255_000
    assert view.ending_balance(AccountType.CASH) == 8_000
    assert view.ending_balance(AccountType.TAXES) == 2_000
    assert view.withdrawals(AccountType.SUBJECT_401K, TransactionCategory.RMD) == 10_000


def test_discretionary_draw_leaves_room_for_the_rmd(tax_engine):
    view = _view(tax_deferred=100_000)
    demo = make_demographics(subject_age=80)
    streams = FixedIncomeStreams(rmd_subject=compute_rmd_amount(100_000, 80))

    result = _cover(view, streams, 500_000, demo=demo, tax_engine=tax_engine)

    assert result.rmd == 4_950.50
    assert result.tax_deferred == pytest.approx(95_049.50)
    assert view.ending_balance(AccountType.SUBJECT_401K) == 0.0
    assert result.unmet_shortfall > 0
    assert any("tax_deferred" in w for w in result.warnings)


def test_withdrawal_cap_limits_coverage(tax_engine):
    view = _view(savings=100_000)
    fiscal = make_fiscal(withdrawal_cap=5_000)

    result = _cover(view, FixedIncomeStreams(), 20_000, fiscal=fiscal, tax_engine=tax_engine)

    assert result.coverage_limit == 5_000
    assert result.savings == 5_000
    assert result.unmet_shortfall == 15_000
    assert view.ending_balance(AccountType.SAVINGS) == 95_000
    assert any("withdrawal limit" in w for w in result.warnings)


def test_working_household_only_draws_savings(tax_engine):
    view = _view(roth=50_000, tax_deferred=50_000)
    demo = make_demographics(subject_age=55, retired=False)

    result = _cover(view, FixedIncomeStreams(), 10_000, demo=demo, tax_engine=tax_engine)

    assert result.roth == 0
    assert result.tax_deferred == 0
    assert result.unmet_shortfall == 10_000
    assert view.ending_balance(AccountType.SUBJECT_ROTH_IRA) == 50_000


def test_configured_order_is_followed(tax_engine):
    view = _view(savings=50_000, roth=50_000)

    result = _cover(view, FixedIncomeStreams(), 10_000, order=(ROTH, SAVINGS, TAX_DEFERRED), tax_engine=tax_engine)

    assert result.roth == 10_000
    assert result.savings == 0


def test_unknown_source_is_rejected(tax_engine):
    view = _view(savings=0)

    with pytest.raises(ValueError, match="unknown withdrawal source"):
        _cover(view, FixedIncomeStreams(), 1_000, order=("brokerage",), tax_engine=tax_engine)


def test_roth_draw_splits_across_spouses_by_balance(tax_engine):
    view = _view(roth=30_000, partner_roth=10_000, partner_tax_deferred=0)
    demo = make_demographics(has_partner=True, partner_age=68)

    result = _cover(view, FixedIncomeStreams(), 8_000, demo=demo, tax_engine=tax_engine)

    assert result.roth_subject == 6_000
    assert result.roth_partner == 2_000
    assert view.ending_balance(AccountType.PARTNER_ROTH_IRA) == 8_000


# A 56,836.36 pension leaves 52,000.00 after federal tax for a single filer.
TAXED_PENSION = 56_836.36


@pytest.mark.parametrize("order", [(SAVINGS, ROTH, TAX_DEFERRED), (TAX_DEFERRED, SAVINGS, ROTH)])
def test_depleted_tax_deferred_with_taxed_fixed_income(tax_engine, order):
    view = _view(savings=20_000, roth=10_000, tax_deferred=0)
    streams = FixedIncomeStreams(pension_subject=TAXED_PENSION)
    fixed_net = IncomeBreakdown.compute(streams, 0.0, make_demographics(), make_fiscal(), tax_engine).net_income
    assert fixed_net == pytest.approx(52_000.0)

    result = _cover(view, streams, 80_000 - fixed_net, order=order, tax_engine=tax_engine)

    assert result.savings == 20_000
    assert result.roth == pytest.approx(8_000)
    assert result.tax_deferred == 0
    assert result.tax_deferred_net == 0
    assert result.unmet_shortfall == 0
    assert view.ending_balance(AccountType.SUBJECT_401K) == 0


def test_depleted_tax_deferred_with_nothing_else_leaves_shortfall_unmet(tax_engine):
    view = _view(tax_deferred=0)
    streams = FixedIncomeStreams(pension_subject=TAXED_PENSION)

    result = _cover(view, streams, 28_000, tax_engine=tax_engine)

    assert result.tax_deferred_net == 0
    assert result.covered == 0
    assert result.unmet_shortfall == 28_000


def test_empty_accounts_only_warn_about_the_unmet_shortfall(tax_engine):
    view = _view()

    result = _cover(view, FixedIncomeStreams(pension_subject=TAXED_PENSION), 5_000, tax_engine=tax_engine)

    assert result.unmet_shortfall == 5_000
    assert len(result.warnings) == 1
    assert "unable to cover" in result.warnings[0]
