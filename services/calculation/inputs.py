from __future__ import annotations
from dataclasses import dataclass, asdict, replace
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping

from services.errors import ValidationError

MAX_NAME_LENGTH = 255
# Fractional digits kept by the fixed-point input columns
DECIMAL_PLACES = 4

# Upper bounds keep every derived amount inside the engine's exact precision
MAX_VALUES = {
    "monthly_invoice_volume": 1_000_000_000,
    "num_ap_staff": 100_000,
    "avg_hours_per_invoice": 1_000,
    "hourly_wage": 1_000_000,
    "error_cost": 1_000_000_000,
    "time_horizon_months": 1_200,
    "one_time_implementation_cost": 1_000_000_000_000_000,
}

INTEGER_FIELDS = ("monthly_invoice_volume", "num_ap_staff", "time_horizon_months")
DECIMAL_FIELDS = (
    "avg_hours_per_invoice",
    "hourly_wage",
    "error_rate_manual",
    "error_cost",
    "one_time_implementation_cost",
)
REQUIRED_FIELDS = (
    "scenario_name",
    "monthly_invoice_volume",
    "num_ap_staff",
    "avg_hours_per_invoice",
    "hourly_wage",
    "error_rate_manual",
    "error_cost",
    "time_horizon_months",
)


@dataclass(frozen=True)
class ScenarioInput:
    scenario_name: str
    monthly_invoice_volume: int
    num_ap_staff: int
    avg_hours_per_invoice: Decimal
    hourly_wage: Decimal
    error_rate_manual: Decimal  # percent, 0..100
    error_cost: Decimal         # cost per erroneous invoice
    time_horizon_months: int
    one_time_implementation_cost: Decimal = Decimal("0")

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        for k in DECIMAL_FIELDS:
            out[k] = float(out[k])
        return out


def _to_decimal(field: str, value: Any) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number", field=field)
    if isinstance(value, Decimal):
        d = value
    elif isinstance(value, (int, float, str)):
        try:
            d = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number", field=field) from None
    else:
        raise ValidationError(f"{field} must be a number", field=field)
    if not d.is_finite():
        raise ValidationError(f"{field} must be a finite number", field=field)
    return d


def _to_int(field: str, value: Any) -> int:
    d = _to_decimal(field, value)
    # bound the magnitude before int() materialises it
    if d.adjusted() > 30:
        raise ValidationError(f"{field} must be at most {MAX_VALUES[field]:,}", field=field)
    if d != d.to_integral_value():
        raise ValidationError(f"{field} must be a whole number", field=field)
    return int(d)


def _check_places(field: str, d: Decimal) -> Decimal:
    exp = d.normalize().as_tuple().exponent
    if isinstance(exp, int) and exp < -DECIMAL_PLACES:
        raise ValidationError(f"{field} allows at most {DECIMAL_PLACES} decimal places", field=field)
    return d


def _coerce(i: ScenarioInput) -> ScenarioInput:
    if not isinstance(i.scenario_name, str):
        raise ValidationError("scenario_name must be text", field="scenario_name")
    values = {name: _to_int(name, getattr(i, name)) for name in INTEGER_FIELDS}
    values.update({name: _to_decimal(name, getattr(i, name)) for name in DECIMAL_FIELDS})
    return replace(i, **values)


def validate_inputs(i: ScenarioInput) -> ScenarioInput:
    """Check ranges and return the inputs with ints and Decimals in every numeric field."""
    i = _coerce(i)
    if not i.scenario_name.strip():
        raise ValidationError("scenario_name must not be empty", field="scenario_name")
    if len(i.scenario_name) > MAX_NAME_LENGTH:
        raise ValidationError(f"scenario_name must be at most {MAX_NAME_LENGTH} characters", field="scenario_name")
    for name in ("monthly_invoice_volume", "num_ap_staff", "time_horizon_months",
                 "avg_hours_per_invoice", "hourly_wage"):
        if getattr(i, name) <= 0:
            raise ValidationError(f"{name} must be greater than 0", field=name)
    if not (0 <= i.error_rate_manual <= 100):
        raise ValidationError("error_rate_manual must be between 0 and 100", field="error_rate_manual")
    if i.error_cost < 0:
        raise ValidationError("error_cost must not be negative", field="error_cost")
    if i.one_time_implementation_cost < 0:
        raise ValidationError("one_time_implementation_cost must not be negative",
                              field="one_time_implementation_cost")
    for name, limit in MAX_VALUES.items():
        if getattr(i, name) > limit:
            raise ValidationError(f"{name} must be at most {limit:,}", field=name)
    for name in DECIMAL_FIELDS:
        _check_places(name, getattr(i, name))
    return i


def parse_inputs(payload: Mapping[str, Any] | None) -> ScenarioInput:
    """Build a validated ScenarioInput from a JSON-like mapping.

    - Required fields must be present and non-null
    - one_time_implementation_cost defaults to 0 when missing or null
    - Numeric strings are accepted; booleans, NaN and infinities are not
    """
    if not isinstance(payload, Mapping):
        raise ValidationError("request body must be a JSON object", reason="invalid_body")
    for name in REQUIRED_FIELDS:
        if payload.get(name) is None:
            raise ValidationError(f"Missing required field: {name}", field=name, reason="missing_field")

    name = payload["scenario_name"]
    if not isinstance(name, str):
        raise ValidationError("scenario_name must be text", field="scenario_name")

    impl = payload.get("one_time_implementation_cost")
    inputs = ScenarioInput(
        scenario_name=name.strip(),
        monthly_invoice_volume=_to_int("monthly_invoice_volume", payload["monthly_invoice_volume"]),
        num_ap_staff=_to_int("num_ap_staff", payload["num_ap_staff"]),
        avg_hours_per_invoice=_to_decimal("avg_hours_per_invoice", payload["avg_hours_per_invoice"]),
        hourly_wage=_to_decimal("hourly_wage", payload["hourly_wage"]),
        error_rate_manual=_to_decimal("error_rate_manual", payload["error_rate_manual"]),
        error_cost=_to_decimal("error_cost", payload["error_cost"]),
        time_horizon_months=_to_int("time_horizon_months", payload["time_horizon_months"]),
        one_time_implementation_cost=Decimal("0") if impl is None else _to_decimal("one_time_implementation_cost", impl),
    )
    return validate_inputs(inputs)
