"""Plan schema dataclasses and JSON loading."""

from __future__ import annotations

from dataclasses import dataclass, field
import json
from pathlib import Path
from typing import Any

DEFAULT_WITHDRAWAL_ORDER: tuple[str, ...] = ("savings", "roth", "tax_deferred")


class SchemaError(ValueError):
    """Raised when raw JSON cannot be parsed into schema objects."""


def _expect_dict(value: Any, path: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise SchemaError(f"{path}: expected object")
    return value


def _expect_list(value: Any, path: str) -> list[Any]:
    if not isinstance(value, list):
        raise SchemaError(f"{path}: expected array")
    return value


def _expect_number(value: Any, path: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SchemaError(f"{path}: expected number")
    return float(value)


def _expect_str(value: Any, path: str) -> str:
    if not isinstance(value, str):
        raise SchemaError(f"{path}: expected string")
    return value


def _expect_int(value: Any, path: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise SchemaError(f"{path}: expected integer")
    return value


def _require(data: dict[str, Any], key: str, path: str) -> Any:
    if key not in data:
        raise SchemaError(f"{path}.{key}: missing required field")
    return data[key]


def _optional(data: dict[str, Any], key: str, default: Any = None) -> Any:
    return data.get(key, default)


def _number(data: dict[str, Any], key: str, path: str, default: float | None = None) -> float:
    if default is None:
        return _expect_number(_require(data, key, path), f"{path}.{key}")
    return _expect_number(_optional(data, key, default), f"{path}.{key}")


@dataclass(slots=True)
class YearAmount:
    year: int
    amount: float

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "YearAmount":
        return cls(
            year=_expect_int(_require(data, "year", path), f"{path}.year"),
            amount=_number(data, "amount", path),
        )


def _year_amounts(data: dict[str, Any], key: str, path: str) -> list[YearAmount]:
    items = _expect_list(_optional(data, key, []), f"{path}.{key}")
    return [YearAmount.from_dict(_expect_dict(item, f"{path}.{key}[{i}]"), f"{path}.{key}[{i}]") for i, item in enumerate(items)]


@dataclass(slots=True)
class AccountSettings:
    balance: float = 0.0
    interest_rate: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "AccountSettings":
        return cls(
            balance=_number(data, "balance", path),
            interest_rate=_number(data, "interest_rate", path, 0.0),
        )


def _account(data: dict[str, Any], key: str, path: str | None = None) -> AccountSettings:
    raw = _optional(data, key)
    if raw is None:
        return AccountSettings()
    full_path = key if path is None else f"{path}.{key}"
    return AccountSettings.from_dict(_expect_dict(raw, full_path), full_path)


@dataclass(slots=True)
class SocialSecurity:
    monthly: float
    start_age: int

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "SocialSecurity":
        return cls(
            monthly=_number(data, "monthly", path),
            start_age=_expect_int(_require(data, "start_age", path), f"{path}.start_age"),
        )


@dataclass(slots=True)
class Pension:
    monthly: float
    start_age: int
    survivorship: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "Pension":
        return cls(
            monthly=_number(data, "monthly", path),
            start_age=_expect_int(_require(data, "start_age", path), f"{path}.start_age"),
            survivorship=_number(data, "survivorship", path, 0.0),
        )


@dataclass(slots=True)
class Person:
    name: str
    age: int
    retire_age: int
    lifespan: int
    salary: float = 0.0
    salary_growth_rate: float = 0.0
    pretax_401k_rate: float = 0.0
    roth_401k_rate: float = 0.0
    employer_match_rate: float = 0.0
    social_security: SocialSecurity | None = None
    pension: Pension | None = None
    traditional_401k: AccountSettings = field(default_factory=AccountSettings)
    roth_ira: AccountSettings = field(default_factory=AccountSettings)

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "Person":
        ss_raw = _optional(data, "social_security")
        pension_raw = _optional(data, "pension")
        accounts = _expect_dict(_optional(data, "accounts", {}), f"{path}.accounts")
        return cls(
            name=_expect_str(_require(data, "name", path), f"{path}.name"),
            age=_expect_int(_require(data, "age", path), f"{path}.age"),
            retire_age=_expect_int(_require(data, "retire_age", path), f"{path}.retire_age"),
            lifespan=_expect_int(_require(data, "lifespan", path), f"{path}.lifespan"),
            salary=_number(data, "salary", path, 0.0),
            salary_growth_rate=_number(data, "salary_growth_rate", path, 0.0),
            pretax_401k_rate=_number(data, "pretax_401k_rate", path, 0.0),
            roth_401k_rate=_number(data, "roth_401k_rate", path, 0.0),
            employer_match_rate=_number(data, "employer_match_rate", path, 0.0),
            social_security=None
            if ss_raw is None
            else SocialSecurity.from_dict(_expect_dict(ss_raw, f"{path}.social_security"), f"{path}.social_security"),
            pension=None
            if pension_raw is None
            else Pension.from_dict(_expect_dict(pension_raw, f"{path}.pension"), f"{path}.pension"),
            traditional_401k=_account(accounts, "traditional_401k", f"{path}.accounts"),
            roth_ira=_account(accounts, "roth_ira", f"{path}.accounts"),
        )


@dataclass(slots=True)
class Spending:
    working: float
    retirement: float
    decline_rate: float = 0.0
    overrides: list[YearAmount] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "spending") -> "Spending":
        return cls(
            working=_number(data, "working", path),
            retirement=_number(data, "retirement", path),
            decline_rate=_number(data, "decline_rate", path, 0.0),
            overrides=_year_amounts(data, "overrides", path),
        )

    def override_for(self, year: int) -> float | None:
        for item in self.overrides:
            if item.year == year:
                return item.amount
        return None


@dataclass(slots=True)
class FiscalSettings:
    inflation_rate: float = 0.0
    ss_cola: float = 0.0
    use_rmd: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "fiscal") -> "FiscalSettings":
        use_rmd = _optional(data, "use_rmd", True)
        if not isinstance(use_rmd, bool):
            raise SchemaError(f"{path}.use_rmd: expected boolean")
        return cls(
            inflation_rate=_number(data, "inflation_rate", path, 0.0),
            ss_cola=_number(data, "ss_cola", path, 0.0),
            use_rmd=use_rmd,
        )


@dataclass(slots=True)
class Withholding:
    wages: float = 0.15
    pension: float = 0.20
    social_security: float = 0.07
    tax_deferred: float = 0.20

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "withholding") -> "Withholding":
        defaults = cls()
        return cls(
            wages=_number(data, "wages", path, defaults.wages),
            pension=_number(data, "pension", path, defaults.pension),
            social_security=_number(data, "social_security", path, defaults.social_security),
            tax_deferred=_number(data, "tax_deferred", path, defaults.tax_deferred),
        )


@dataclass(slots=True)
class WithdrawalSettings:
    order: list[str] = field(default_factory=lambda: list(DEFAULT_WITHDRAWAL_ORDER))
    limits: list[YearAmount] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "withdrawals") -> "WithdrawalSettings":
        order = _expect_list(_optional(data, "order", list(DEFAULT_WITHDRAWAL_ORDER)), f"{path}.order")
        return cls(order=[str(item) for item in order], limits=_year_amounts(data, "limits", path))


@dataclass(slots=True)
class IncomeAdjustments:
    taxable: list[YearAmount] = field(default_factory=list)
    tax_free: list[YearAmount] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "income_adjustments") -> "IncomeAdjustments":
        return cls(taxable=_year_amounts(data, "taxable", path), tax_free=_year_amounts(data, "tax_free", path))

    def taxable_for(self, year: int) -> float:
        return sum(item.amount for item in self.taxable if item.year == year)

    def tax_free_for(self, year: int) -> float:
        return sum(item.amount for item in self.tax_free if item.year == year)


@dataclass(slots=True)
class InterestSettings:
    savings: str = "average_balance"
    tax_deferred: str = "average_balance"
    roth: str = "average_balance"

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "interest") -> "InterestSettings":
        defaults = cls()
        return cls(
            savings=str(_optional(data, "savings", defaults.savings)),
            tax_deferred=str(_optional(data, "tax_deferred", defaults.tax_deferred)),
            roth=str(_optional(data, "roth", defaults.roth)),
        )


@dataclass(slots=True)
class Plan:
    starting_year: int
    filing_status: str
    subject: Person
    spending: Spending
    partner: Person | None = None
    savings: AccountSettings = field(default_factory=AccountSettings)
    fiscal: FiscalSettings = field(default_factory=FiscalSettings)
    withholding: Withholding = field(default_factory=Withholding)
    withdrawals: WithdrawalSettings = field(default_factory=WithdrawalSettings)
    income_adjustments: IncomeAdjustments = field(default_factory=IncomeAdjustments)
    interest: InterestSettings = field(default_factory=InterestSettings)

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "plan") -> "Plan":
        partner_raw = _optional(data, "partner")

        def _section(key: str, parser: Any) -> Any:
            raw = _optional(data, key)
            if raw is None:
                return parser({}, key)
            return parser(_expect_dict(raw, key), key)

        return cls(
            starting_year=_expect_int(_require(data, "starting_year", path), "starting_year"),
            filing_status=_expect_str(_require(data, "filing_status", path), "filing_status"),
            subject=Person.from_dict(_expect_dict(_require(data, "subject", path), "subject"), "subject"),
            partner=None if partner_raw is None else Person.from_dict(_expect_dict(partner_raw, "partner"), "partner"),
            savings=_account(data, "savings"),
            spending=Spending.from_dict(_expect_dict(_require(data, "spending", path), "spending")),
            fiscal=_section("fiscal", FiscalSettings.from_dict),
            withholding=_section("withholding", Withholding.from_dict),
            withdrawals=_section("withdrawals", WithdrawalSettings.from_dict),
            income_adjustments=_section("income_adjustments", IncomeAdjustments.from_dict),
            interest=_section("interest", InterestSettings.from_dict),
        )


def load_plan(path: str | Path) -> Plan:
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise SchemaError("plan: root must be a JSON object")
    return Plan.from_dict(raw)
