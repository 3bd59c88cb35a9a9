import json
from pathlib import Path

import pytest

from nestegg.schema import Plan
from nestegg.tax import TaxEngine

SAMPLE_PLAN_PATH = Path(__file__).resolve().parent.parent / "sample_plan.json"


@pytest.fixture
def sample_plan_dict() -> dict:
    return json.loads(SAMPLE_PLAN_PATH.read_text(encoding="utf-8"))


@pytest.fixture
def sample_plan(sample_plan_dict) -> Plan:
    return Plan.from_dict(sample_plan_dict)


@pytest.fixture
def tax_engine() -> TaxEngine:
    return TaxEngine()
