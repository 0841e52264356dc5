"""
Input contracts.

Every operation turns its raw input into a typed record before touching
storage. Parsing is strict: booleans are not numbers, NaN/inf are not
decimals, dates are ISO calendar dates. Failures raise ValidationError
naming the field.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from sqlalchemy import Boolean, Date, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError
from .time_utils import parse_iso_date


READING_TYPES = ("opening", "closing")
ESTIMATION_METHODS = ("transaction_based", "historical_average", "manual")

# Meter values are stored with one decimal place (tenths of a litre).
METER_QUANT = Decimal("0.1")
MONEY_QUANT = Decimal("0.01")
PERCENT_QUANT = Decimal("0.01")


def quantize(value: Decimal, quant: Decimal) -> Decimal:
    return value.quantize(quant, rounding=ROUND_HALF_UP)


def parse_decimal(
    value: Any,
    field: str,
    *,
    minimum: Decimal | None = None,
    exclusive_minimum: bool = False,
    quant: Decimal | None = METER_QUANT,
) -> Decimal:
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", field=field)
    if isinstance(value, Decimal):
        dec = value
    elif isinstance(value, (int, float, str)):
        # str() keeps JSON floats exact to their shortest repr
        try:
            dec = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number", field=field)
    else:
        raise ValidationError(f"{field} must be a number", field=field)

    if not dec.is_finite():
        raise ValidationError(f"{field} must be a finite number", field=field)

    if quant is not None:
        dec = quantize(dec, quant)

    if minimum is not None:
        if exclusive_minimum and dec <= minimum:
            raise ValidationError(f"{field} must be greater than {minimum}", field=field)
        if not exclusive_minimum and dec < minimum:
            raise ValidationError(f"{field} must be >= {minimum}", field=field)
    return dec


def parse_date(value: Any, field: str) -> date:
    try:
        parsed = parse_iso_date(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a date in YYYY-MM-DD format", field=field)
    if parsed is None:
        raise ValidationError(f"{field} is required", field=field)
    return parsed


def parse_id(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer id", field=field)
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str) and value.strip().isdigit():
        parsed = int(value.strip())
    else:
        raise ValidationError(f"{field} must be an integer id", field=field)
    if parsed <= 0:
        raise ValidationError(f"{field} must be a positive id", field=field)
    return parsed


def parse_choice(value: Any, field: str, choices: tuple[str, ...]) -> str:
    if value not in choices:
        raise ValidationError(
            f"{field} must be one of: {', '.join(choices)}",
            field=field,
        )
    return value


def parse_bool(value: Any, field: str) -> bool:
    if not isinstance(value, bool):
        raise ValidationError(f"{field} must be a boolean", field=field)
    return value


def parse_notes(value: Any, field: str = "notes") -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", field=field)
    value = value.strip()
    return value or None


def require_fields(payload: Any, fields: list[str]) -> dict:
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    missing = [f for f in fields if payload.get(f) is None]
    if missing:
        raise ValidationError(
            f"Missing required fields: {', '.join(missing)}",
            field=missing[0],
        )
    return payload


# =============================================================================
# Typed input records
# =============================================================================

@dataclass(frozen=True)
class ReadingInput:
    pump_id: int
    reading_date: date
    reading_type: str
    meter_value: Decimal
    notes: str | None = None
    is_estimated: bool = False
    estimation_method: str | None = None

    @classmethod
    def build(
        cls,
        pump_id,
        reading_date,
        reading_type,
        meter_value,
        notes=None,
        is_estimated=False,
        estimation_method=None,
    ) -> "ReadingInput":
        is_estimated = parse_bool(is_estimated, "is_estimated")
        if estimation_method is not None:
            estimation_method = parse_choice(estimation_method, "estimation_method", ESTIMATION_METHODS)
        elif is_estimated:
            estimation_method = "manual"
        return cls(
            pump_id=parse_id(pump_id, "pump_id"),
            reading_date=parse_date(reading_date, "reading_date"),
            reading_type=parse_choice(reading_type, "reading_type", READING_TYPES),
            meter_value=parse_decimal(meter_value, "meter_value", minimum=Decimal("0")),
            notes=parse_notes(notes),
            is_estimated=is_estimated,
            estimation_method=estimation_method,
        )


@dataclass(frozen=True)
class RolloverInput:
    pump_id: int
    calculation_date: date
    rollover_value: Decimal
    new_reading: Decimal

    @classmethod
    def build(cls, pump_id, calculation_date, rollover_value, new_reading) -> "RolloverInput":
        return cls(
            pump_id=parse_id(pump_id, "pump_id"),
            calculation_date=parse_date(calculation_date, "calculation_date"),
            rollover_value=parse_decimal(
                rollover_value, "rollover_value", minimum=Decimal("0"), exclusive_minimum=True
            ),
            new_reading=parse_decimal(new_reading, "new_reading", minimum=Decimal("0")),
        )


# =============================================================================
# Column-driven payload validation (pump configuration)
# =============================================================================

@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    - writable_fields: what clients are allowed to set
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return parse_id(value, col.key)

    if isinstance(coltype, Numeric):
        quant = Decimal(1).scaleb(-coltype.scale) if coltype.scale is not None else None
        return parse_decimal(value, col.key, quant=quant)

    if isinstance(coltype, Boolean):
        return parse_bool(value, col.key)

    if isinstance(coltype, Date):
        return parse_date(value, col.key)

    if isinstance(coltype, (String, Text)):
        if not isinstance(value, (str, int)) or isinstance(value, bool):
            raise ValidationError(f"{col.key} must be a string", field=col.key)
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if payload.get(f) is None)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", field=missing[0])

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields or k not in cols:
            raise ValidationError(f"Field not allowed: {k}", field=k)

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null", field=k)
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank", field=k)

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}", field=k)

        patch[k] = val

    return patch
