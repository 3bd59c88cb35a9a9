import copy
import json
from pathlib import Path

from nestegg.household import Demographics, FiscalData
from nestegg.tax_data import MARRIED_FILING_JOINTLY, SINGLE


def write_plan(tmp_path: Path, data: dict, filename: str = "plan.json") -> Path:
    path = tmp_path / filename
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def clone_plan(data: dict) -> dict:
    return copy.deepcopy(data)


def retiree_plan(*, age: int = 70, lifespan: int = 72, savings: float = 0.0, spending: float = 0.0) -> dict:
    """A single retiree with no accounts or income beyond what the caller adds."""
    return {
        "starting_year": 2025,
        "filing_status": SINGLE,
        "subject": {
            "name": "Pat",
            "age": age,
            "retire_age": 65,
            "lifespan": lifespan,
            "accounts": {
                "traditional_401k": {"balance": 0, "interest_rate": 0.0},
                "roth_ira": {"balance": 0, "interest_rate": 0.0},
            },
        },
        "savings": {"balance": savings, "interest_rate": 0.0},
        "spending": {"working": spending, "retirement": spending},
        "fiscal": {"inflation_rate": 0.0, "ss_cola": 0.0, "use_rmd": True},
    }


def make_demographics(
    *,
    year: int = 2025,
    subject_age: int = 70,
    partner_age: int = 0,
    has_partner: bool = False,
    retired: bool = True,
) -> Demographics:
    return Demographics(
        year=year,
        year_index=0,
        subject_age=subject_age,
        partner_age=partner_age,
        has_partner=has_partner,
        subject_living=True,
        partner_living=has_partner,
        subject_retired=retired,
        partner_retired=retired or not has_partner,
        filing_status=MARRIED_FILING_JOINTLY if has_partner else SINGLE,
    )


def make_fiscal(*, tax_year: int = 2025, spend: float = 0.0, withdrawal_cap: float | None = None, **overrides) -> FiscalData:
    values = {
        "tax_year": tax_year,
        "inflation_rate": 0.0,
        "ss_cola": 0.0,
        "savings_rate": 0.0,
        "spend": spend,
        "use_rmd": True,
        "wage_withholding_rate": 0.15,
        "pension_withholding_rate": 0.20,
        "ss_withholding_rate": 0.07,
        "tax_deferred_withholding_rate": 0.20,
        "withdrawal_cap": withdrawal_cap,
    }
    values.update(overrides)
    return FiscalData(**values)
