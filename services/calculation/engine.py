from __future__ import annotations
from dataclasses import dataclass, fields
from decimal import Decimal, ROUND_HALF_UP, localcontext
from enum import Enum
from typing import Any, Dict, Union

from services.calculation.inputs import ScenarioInput

CENT = Decimal("0.01")
TENTH = Decimal("0.1")
HUNDRED = Decimal("100")
# Significant digits for the calculation; capped inputs never need more
PRECISION = 60


@dataclass(frozen=True)
class PolicyConstants:
    automated_cost_per_invoice: Decimal = Decimal("0.20")
    automated_error_rate: Decimal = Decimal("0.001")  # 0.1%, as a fraction
    # Flat uplift on monthly savings; see DESIGN.md open questions
    savings_adjustment: Decimal = Decimal("1.1")


DEFAULT_POLICY = PolicyConstants()


class RatioMarker(str, Enum):
    """Outcomes for payback/ROI that ordinary division cannot express."""
    UNDEFINED = "undefined"  # monthly savings are exactly zero
    UNBOUNDED = "unbounded"  # no implementation cost, positive savings
    NEGATIVE_UNBOUNDED = "negative_unbounded"  # no implementation cost, negative savings


Ratio = Union[Decimal, RatioMarker]


@dataclass(frozen=True)
class ScenarioResult:
    monthly_labor_cost_manual: Decimal
    monthly_automation_cost: Decimal
    monthly_error_savings: Decimal
    monthly_savings: Decimal
    cumulative_savings: Decimal
    net_savings: Decimal
    payback_months: Ratio
    roi_percentage: Ratio


CURRENCY_FIELDS = (
    "monthly_labor_cost_manual",
    "monthly_automation_cost",
    "monthly_error_savings",
    "monthly_savings",
    "cumulative_savings",
    "net_savings",
)
RATIO_FIELDS = ("payback_months", "roi_percentage")


def _round(value: Decimal, step: Decimal) -> Decimal:
    q = value.quantize(step, rounding=ROUND_HALF_UP)
    # -0.00 -> 0.00
    return q.copy_abs() if q.is_zero() else q


def _dec(value: Any) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def compute(i: ScenarioInput, policy: PolicyConstants = DEFAULT_POLICY) -> ScenarioResult:
    """Derive the savings model for one input set.

    Every step uses the unrounded value of the previous steps; only the
    returned fields are rounded (currency to cents, payback/ROI to 0.1).

    Ratio policy:
    - monthly_savings == 0            -> payback and ROI are UNDEFINED
    - implementation cost == 0        -> payback 0, ROI UNBOUNDED or
                                         NEGATIVE_UNBOUNDED by the sign of savings
    - negative savings propagate into negative payback/ROI unchanged
    """
    volume = Decimal(i.monthly_invoice_volume)
    staff = Decimal(i.num_ap_staff)
    horizon = Decimal(i.time_horizon_months)
    impl_cost = _dec(i.one_time_implementation_cost)

    with localcontext() as ctx:
        ctx.prec = PRECISION
        labor = staff * _dec(i.hourly_wage) * _dec(i.avg_hours_per_invoice) * volume
        automation = volume * _dec(policy.automated_cost_per_invoice)
        error_savings = (_dec(i.error_rate_manual) / HUNDRED - _dec(policy.automated_error_rate)) * volume * _dec(i.error_cost)
        raw_savings = labor + error_savings - automation
        monthly = raw_savings * _dec(policy.savings_adjustment)
        cumulative = monthly * horizon
        net = cumulative - impl_cost

        payback: Ratio
        roi: Ratio
        if monthly.is_zero():
            payback = roi = RatioMarker.UNDEFINED
        elif impl_cost.is_zero():
            payback = Decimal("0.0")
            roi = RatioMarker.UNBOUNDED if monthly > 0 else RatioMarker.NEGATIVE_UNBOUNDED
        else:
            payback = _round(impl_cost / monthly, TENTH)
            roi = _round(net / impl_cost * HUNDRED, TENTH)

        return ScenarioResult(
            monthly_labor_cost_manual=_round(labor, CENT),
            monthly_automation_cost=_round(automation, CENT),
            monthly_error_savings=_round(error_savings, CENT),
            monthly_savings=_round(monthly, CENT),
            cumulative_savings=_round(cumulative, CENT),
            net_savings=_round(net, CENT),
            payback_months=payback,
            roi_percentage=roi,
        )


def ratio_to_json(value: Ratio) -> float | str:
    if isinstance(value, RatioMarker):
        return value.value
    return float(value)


def result_to_dict(r: ScenarioResult) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for f in fields(r):
        v = getattr(r, f.name)
        out[f.name] = ratio_to_json(v) if f.name in RATIO_FIELDS else float(v)
    return out
