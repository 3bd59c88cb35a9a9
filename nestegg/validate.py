"""Semantic validation for plans."""

from __future__ import annotations

from dataclasses import dataclass, field
import math
from typing import Iterable

from .ledger import InterestConvention
from .schema import Person, Plan, YearAmount
from .tax_data import FILING_STATUSES, MARRIED_FILING_JOINTLY, SINGLE
from .withdrawals import WITHDRAWAL_SOURCES

INTEREST_CONVENTIONS = {c.value for c in InterestConvention}
SS_EARLIEST_AGE = 62
SS_LATEST_AGE = 70


@dataclass(slots=True)
class ValidationResult:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def _check_enum(result: ValidationResult, path: str, value: str, allowed: Iterable[str]) -> None:
    allowed_set = set(allowed)
    if value not in allowed_set:
        expected = ", ".join(sorted(allowed_set))
        result.errors.append(f"{path}: '{value}' is not valid; expected one of [{expected}]")


def _check_finite(result: ValidationResult, path: str, value: float) -> bool:
    if not math.isfinite(value):
        result.errors.append(f"{path}: must be a finite number")
        return False
    return True


def _check_rate(result: ValidationResult, path: str, value: float) -> None:
    if not _check_finite(result, path, value):
        return
    if value < 0:
        result.errors.append(f"{path}: must be >= 0")
    elif value > 1:
        result.errors.append(f"{path}: must be <= 1")


def _check_non_negative(result: ValidationResult, path: str, value: float) -> None:
    if _check_finite(result, path, value) and value < 0:
        result.errors.append(f"{path}: must be >= 0")


def _check_year_amounts(result: ValidationResult, path: str, items: list[YearAmount]) -> None:
    seen: set[int] = set()
    for idx, item in enumerate(items):
        _check_non_negative(result, f"{path}[{idx}].amount", item.amount)
        if item.year in seen:
            result.errors.append(f"{path}[{idx}].year: duplicate year {item.year}")
        seen.add(item.year)


def _check_person(result: ValidationResult, base: str, person: Person) -> None:
    if person.age < 0:
        result.errors.append(f"{base}.age: must be >= 0")
    if person.retire_age < person.age:
        result.warnings.append(f"{base}.retire_age: already retired at age {person.age}")
    if person.lifespan < person.age:
        result.errors.append(f"{base}.lifespan: must be >= age")

    _check_non_negative(result, f"{base}.salary", person.salary)
    _check_rate(result, f"{base}.salary_growth_rate", person.salary_growth_rate)
    _check_rate(result, f"{base}.pretax_401k_rate", person.pretax_401k_rate)
    _check_rate(result, f"{base}.roth_401k_rate", person.roth_401k_rate)
    _check_rate(result, f"{base}.employer_match_rate", person.employer_match_rate)
    if person.pretax_401k_rate + person.roth_401k_rate > 1:
        result.errors.append(f"{base}.pretax_401k_rate/{base}.roth_401k_rate: combined deferral must be <= 1")

    if person.social_security is not None:
        ss = person.social_security
        _check_non_negative(result, f"{base}.social_security.monthly", ss.monthly)
        if not SS_EARLIEST_AGE <= ss.start_age <= SS_LATEST_AGE:
            result.warnings.append(
                f"{base}.social_security.start_age: {ss.start_age} is outside {SS_EARLIEST_AGE}-{SS_LATEST_AGE}"
            )
    if person.pension is not None:
        _check_non_negative(result, f"{base}.pension.monthly", person.pension.monthly)
        _check_rate(result, f"{base}.pension.survivorship", person.pension.survivorship)

    for key, account in (("traditional_401k", person.traditional_401k), ("roth_ira", person.roth_ira)):
        _check_non_negative(result, f"{base}.accounts.{key}.balance", account.balance)
        _check_rate(result, f"{base}.accounts.{key}.interest_rate", account.interest_rate)


def validate_plan(plan: Plan) -> ValidationResult:
    result = ValidationResult()
    partner_exists = plan.partner is not None

    _check_enum(result, "filing_status", plan.filing_status, FILING_STATUSES)
    if plan.filing_status == MARRIED_FILING_JOINTLY and not partner_exists:
        result.errors.append(f"filing_status: '{plan.filing_status}' requires partner")
    if plan.filing_status == SINGLE and partner_exists:
        result.warnings.append(f"filing_status: '{plan.filing_status}' with partner present is unusual but allowed")

    _check_person(result, "subject", plan.subject)
    if plan.partner is not None:
        _check_person(result, "partner", plan.partner)

    _check_non_negative(result, "savings.balance", plan.savings.balance)
    _check_rate(result, "savings.interest_rate", plan.savings.interest_rate)

    _check_non_negative(result, "spending.working", plan.spending.working)
    _check_non_negative(result, "spending.retirement", plan.spending.retirement)
    _check_rate(result, "spending.decline_rate", plan.spending.decline_rate)
    _check_year_amounts(result, "spending.overrides", plan.spending.overrides)

    _check_rate(result, "fiscal.inflation_rate", plan.fiscal.inflation_rate)
    _check_rate(result, "fiscal.ss_cola", plan.fiscal.ss_cola)

    for key in ("wages", "pension", "social_security", "tax_deferred"):
        _check_rate(result, f"withholding.{key}", getattr(plan.withholding, key))

    if not plan.withdrawals.order:
        result.errors.append("withdrawals.order: at least one source is required")
    seen: set[str] = set()
    for idx, source in enumerate(plan.withdrawals.order):
        _check_enum(result, f"withdrawals.order[{idx}]", source, WITHDRAWAL_SOURCES)
        if source in seen:
            result.errors.append(f"withdrawals.order[{idx}]: duplicate source '{source}'")
        seen.add(source)
    _check_year_amounts(result, "withdrawals.limits", plan.withdrawals.limits)

    _check_year_amounts(result, "income_adjustments.taxable", plan.income_adjustments.taxable)
    _check_year_amounts(result, "income_adjustments.tax_free", plan.income_adjustments.tax_free)

    for key in ("savings", "tax_deferred", "roth"):
        _check_enum(result, f"interest.{key}", getattr(plan.interest, key), INTEREST_CONVENTIONS)

    return result
