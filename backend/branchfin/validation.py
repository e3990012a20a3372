from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from branchfin.time_utils import parse_iso_date


# Largest amount a single daily figure may carry (NUMERIC(14, 2))
MAX_AMOUNT = Decimal("999999999999.99")
CENT = Decimal("0.01")


class ServiceError(Exception):
    """Base class for errors a route can translate into a JSON response."""
    status_code = 500


class ValidationError(ServiceError, ValueError):
    """400-level input problem."""
    status_code = 400


class AuthenticationError(ServiceError):
    """401-level: no usable session or bad credentials."""
    status_code = 401


class AccessDeniedError(ServiceError):
    """403-level: session present, capability or branch scope missing."""
    status_code = 403


class NotFoundError(ServiceError, LookupError):
    """404-level: an id did not resolve."""
    status_code = 404


class ConflictError(ServiceError, ValueError):
    """409-level business rule conflict (e.g., duplicate branch name)."""
    status_code = 409


class WorkflowError(ServiceError):
    """A step of a multi-step workflow failed; the unit was rolled back."""
    status_code = 500

    def __init__(self, workflow: str, step: str):
        super().__init__(f"{workflow} failed at step '{step}'")
        self.workflow = workflow
        self.step = step


@dataclass(frozen=True)
class FinancialInput:
    """Validated earnings/expenses/summary for one branch on one date."""
    date: date
    earnings: Decimal
    expenses: Decimal
    summary: str

    def snapshot(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "earnings": float(self.earnings),
            "expenses": float(self.expenses),
            "summary": self.summary,
        }


def parse_amount(field: str, value: Any) -> Decimal:
    """
    Coerce a JSON value into a non-negative two-place Decimal.

    Accepts ints, floats and numeric strings. Rejects booleans, blanks,
    NaN/Infinity and negatives.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} is required")
    if isinstance(value, float) and not math.isfinite(value):
        raise ValidationError(f"{field} must be a finite number")
    if isinstance(value, str):
        value = value.strip()
        if not value:
            raise ValidationError(f"{field} is required")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    if amount < 0:
        raise ValidationError(f"{field} must be >= 0")
    # Bound before quantize; huge exponents overflow the decimal context
    if amount > MAX_AMOUNT:
        raise ValidationError(f"{field} exceeds maximum {MAX_AMOUNT}")
    amount = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    if amount > MAX_AMOUNT:
        raise ValidationError(f"{field} exceeds maximum {MAX_AMOUNT}")
    return amount


def parse_date_field(field: str, value: Any, *, required: bool = True) -> date | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{field} is required")
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a YYYY-MM-DD string")
    try:
        return parse_iso_date(value)
    except ValueError:
        raise ValidationError(f"{field} must be a YYYY-MM-DD date")


def require_text(field: str, value: Any, *, max_length: int | None = None) -> str:
    if value is None or not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required")
    text = value.strip()
    if max_length is not None and len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return text


def optional_text(field: str, value: Any, *, max_length: int | None = None) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    text = value.strip()
    if not text:
        return None
    if max_length is not None and len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return text


def json_object(payload: Any) -> dict:
    """Request body as a dict; a missing body is empty, anything else is rejected."""
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def validate_financial_payload(payload: Any, *, today: date) -> FinancialInput:
    """
    Validate a daily financial submission.

    Rules:
    - date is YYYY-MM-DD and not after today
    - earnings and expenses are present, numeric and >= 0
    - summary is present and non-blank
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    record_date = parse_date_field("date", payload.get("date"))
    if record_date > today:
        raise ValidationError("Financial data cannot be recorded for a future date")

    return FinancialInput(
        date=record_date,
        earnings=parse_amount("earnings", payload.get("earnings")),
        expenses=parse_amount("expenses", payload.get("expenses")),
        summary=require_text("summary", payload.get("summary")),
    )


def financial_input_from_snapshot(data: dict) -> FinancialInput:
    """Rebuild a FinancialInput from a stored change-request snapshot."""
    return FinancialInput(
        date=parse_iso_date(data["date"]),
        earnings=parse_amount("earnings", data.get("earnings")),
        expenses=parse_amount("expenses", data.get("expenses")),
        summary=require_text("summary", data.get("summary")),
    )
