"""Social Security and pension benefit amounts, including survivor benefits."""

from __future__ import annotations

from .schema import Pension, SocialSecurity
from .tax import InvalidInputError, require_finite


def annual_benefit(benefit: SocialSecurity | None, age: int, cola: float) -> float:
    """Annual benefit at ``age``, grown by COLA for each year since the start age."""
    if benefit is None:
        return 0.0
    monthly = require_finite(benefit.monthly, "social_security.monthly")
    require_finite(cola, "ss_cola")
    if monthly < 0:
        raise InvalidInputError(f"social_security.monthly: must be >= 0, got {monthly}")
    if age < benefit.start_age:
        return 0.0
    return monthly * 12.0 * (1.0 + cola) ** (age - benefit.start_age)


def household_benefits(
    *,
    subject: SocialSecurity | None,
    partner: SocialSecurity | None,
    subject_age: int,
    partner_age: int,
    subject_living: bool,
    partner_living: bool,
    cola: float,
) -> tuple[float, float]:
    """Return (subject, partner) annual benefits.

    A surviving spouse receives the larger of their own benefit and the
    benefit the deceased would be receiving at their current age.
    """
    own_subject = annual_benefit(subject, subject_age, cola)
    own_partner = annual_benefit(partner, partner_age, cola)

    subject_total = own_subject if subject_living else 0.0
    partner_total = own_partner if partner_living else 0.0
    if subject_living and not partner_living and partner is not None:
        subject_total = max(own_subject, own_partner)
    elif partner_living and not subject_living and subject is not None:
        partner_total = max(own_partner, own_subject)
    return subject_total, partner_total


def annual_pension(pension: Pension | None, age: int) -> float:
    if pension is None:
        return 0.0
    monthly = require_finite(pension.monthly, "pension.monthly")
    if age < pension.start_age or monthly <= 0:
        return 0.0
    return monthly * 12.0


def household_pensions(
    *,
    subject: Pension | None,
    partner: Pension | None,
    subject_age: int,
    partner_age: int,
    subject_living: bool,
    partner_living: bool,
) -> tuple[float, float]:
    """Return (subject, partner) pension income, paying survivorship to a surviving spouse."""
    subject_total = annual_pension(subject, subject_age) if subject_living else 0.0
    partner_total = annual_pension(partner, partner_age) if partner_living else 0.0
    if subject_living and not partner_living and partner is not None:
        subject_total += annual_pension(partner, partner_age) * partner.survivorship
    elif partner_living and not subject_living and subject is not None:
        partner_total += annual_pension(subject, subject_age) * subject.survivorship
    return subject_total, partner_total
