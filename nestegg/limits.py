"""Optional per-year caps on discretionary withdrawals."""

from __future__ import annotations

from dataclasses import dataclass, field

from .schema import Plan
from .tax import InvalidInputError, require_finite


@dataclass(slots=True)
class WithdrawalLimits:
    caps: dict[int, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for year, amount in self.caps.items():
            value = require_finite(amount, f"withdrawal limit for {year}")
            if value < 0:
                raise InvalidInputError(f"withdrawal limit for {year}: must be >= 0, got {value}")

    @classmethod
    def from_plan(cls, plan: Plan) -> "WithdrawalLimits":
        return cls(caps={item.year: item.amount for item in plan.withdrawals.limits})

    def cap_for(self, year: int) -> float | None:
        return self.caps.get(year)

    def set_cap(self, year: int, amount: float) -> None:
        value = require_finite(amount, f"withdrawal limit for {year}")
        if value < 0:
            raise InvalidInputError(f"withdrawal limit for {year}: must be >= 0, got {value}")
        self.caps[year] = value

    def clear_cap(self, year: int) -> None:
        self.caps.pop(year, None)
