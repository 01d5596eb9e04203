"""Input validation for retirement and savings inputs.

Problems are collected, not raised, so the dashboard can show every
violation at once and decide whether to run the simulation.
"""

import math
from dataclasses import dataclass, field
from typing import List

from .config import ValidationLimits


@dataclass
class ValidationResult:
    errors: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def _finite(errors: List[str], label: str, value) -> bool:
    try:
        ok = math.isfinite(float(value))
    except (TypeError, ValueError):
        ok = False
    if not ok:
        errors.append(f"{label} must be a finite number")
    return ok


def validate_retirement_inputs(
    bitcoin_amount: float,
    cash_amount: float,
    annual_withdrawal: float,
    limits: ValidationLimits = None,
) -> ValidationResult:
    limits = limits or ValidationLimits()
    result = ValidationResult()
    errors = result.errors

    checks = [
        _finite(errors, "Bitcoin amount", bitcoin_amount),
        _finite(errors, "Cash amount", cash_amount),
        _finite(errors, "Annual withdrawal", annual_withdrawal),
    ]
    if not all(checks):
        return result

    if bitcoin_amount < 0:
        errors.append("Bitcoin amount cannot be negative")
    if cash_amount < 0:
        errors.append("Cash amount cannot be negative")
    if annual_withdrawal <= 0:
        errors.append("Annual withdrawal must be greater than zero")
    if bitcoin_amount == 0 and cash_amount == 0:
        errors.append("Must have either Bitcoin or cash holdings")

    if bitcoin_amount > limits.max_bitcoin:
        errors.append(
            f"Bitcoin amount seems unrealistically high (>{limits.max_bitcoin:g} BTC)"
        )
    if annual_withdrawal > limits.max_annual_withdrawal:
        errors.append(
            "Annual withdrawal seems unrealistically high "
            f"(>${limits.max_annual_withdrawal / 1e6:g}M)"
        )
    return result


def validate_savings_plan(monthly_amount: float, years: int) -> ValidationResult:
    result = ValidationResult()
    errors = result.errors
    if not (_finite(errors, "Monthly savings", monthly_amount)
            and _finite(errors, "Years to retirement", years)):
        return result

    if monthly_amount < 0:
        errors.append("Monthly savings cannot be negative")
    if years < 0:
        errors.append("Years to retirement cannot be negative")
    elif years != int(years):
        errors.append("Years to retirement must be a whole number")
    return result
