from __future__ import annotations
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from services.calculation.engine import (
    DEFAULT_POLICY,
    PolicyConstants,
    Ratio,
    RatioMarker,
    ScenarioResult,
    compute,
    result_to_dict,
)
from services.calculation.inputs import ScenarioInput, validate_inputs
from services.errors import NotFoundError, PersistenceFailure
from services.storage.database import utc_now
from services.storage.models import ScenarioRow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Scenario:
    id: str
    created_at: datetime
    inputs: ScenarioInput
    results: ScenarioResult

    def to_dict(self) -> Dict[str, Any]:
        # Flat row shape: identity + every input + every result
        return {
            "id": self.id,
            "created_at": self.created_at.isoformat(),
            **self.inputs.to_dict(),
            **result_to_dict(self.results),
        }


def _ratio_columns(value: Ratio) -> tuple[Optional[Decimal], Optional[str]]:
    if isinstance(value, RatioMarker):
        return None, value.value
    return value, None


def _ratio_from_columns(value: Optional[Decimal], marker: Optional[str]) -> Ratio:
    if marker:
        return RatioMarker(marker)
    return Decimal(value)


def _as_utc(ts: datetime) -> datetime:
    return ts.replace(tzinfo=timezone.utc) if ts.tzinfo is None else ts


def _to_scenario(row: ScenarioRow) -> Scenario:
    inputs = ScenarioInput(
        scenario_name=row.scenario_name,
        monthly_invoice_volume=int(row.monthly_invoice_volume),
        num_ap_staff=int(row.num_ap_staff),
        avg_hours_per_invoice=Decimal(row.avg_hours_per_invoice),
        hourly_wage=Decimal(row.hourly_wage),
        error_rate_manual=Decimal(row.error_rate_manual),
        error_cost=Decimal(row.error_cost),
        time_horizon_months=int(row.time_horizon_months),
        one_time_implementation_cost=Decimal(row.one_time_implementation_cost),
    )
    results = ScenarioResult(
        monthly_labor_cost_manual=Decimal(row.monthly_labor_cost_manual),
        monthly_automation_cost=Decimal(row.monthly_automation_cost),
        monthly_error_savings=Decimal(row.monthly_error_savings),
        monthly_savings=Decimal(row.monthly_savings),
        cumulative_savings=Decimal(row.cumulative_savings),
        net_savings=Decimal(row.net_savings),
        payback_months=_ratio_from_columns(row.payback_months, row.payback_months_marker),
        roi_percentage=_ratio_from_columns(row.roi_percentage, row.roi_percentage_marker),
    )
    return Scenario(id=row.id, created_at=_as_utc(row.created_at), inputs=inputs, results=results)


class ScenarioStore:
    """CRUD over the `scenarios` table.

    `create` takes inputs only and always derives results with the engine, so
    a stored scenario can never carry results that disagree with its inputs.
    There is no update: scenarios are immutable once written.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        policy: PolicyConstants = DEFAULT_POLICY,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._sessions = session_factory
        self._policy = policy
        self._clock = clock

    def create(self, inputs: ScenarioInput) -> Scenario:
        inputs = validate_inputs(inputs)
        results = compute(inputs, self._policy)
        payback, payback_marker = _ratio_columns(results.payback_months)
        roi, roi_marker = _ratio_columns(results.roi_percentage)
        row = ScenarioRow(
            id=str(uuid.uuid4()),
            created_at=self._clock(),
            scenario_name=inputs.scenario_name,
            monthly_invoice_volume=inputs.monthly_invoice_volume,
            num_ap_staff=inputs.num_ap_staff,
            avg_hours_per_invoice=inputs.avg_hours_per_invoice,
            hourly_wage=inputs.hourly_wage,
            error_rate_manual=inputs.error_rate_manual,
            error_cost=inputs.error_cost,
            time_horizon_months=inputs.time_horizon_months,
            one_time_implementation_cost=inputs.one_time_implementation_cost,
            monthly_labor_cost_manual=results.monthly_labor_cost_manual,
            monthly_automation_cost=results.monthly_automation_cost,
            monthly_error_savings=results.monthly_error_savings,
            monthly_savings=results.monthly_savings,
            cumulative_savings=results.cumulative_savings,
            net_savings=results.net_savings,
            payback_months=payback,
            payback_months_marker=payback_marker,
            roi_percentage=roi,
            roi_percentage_marker=roi_marker,
        )
        try:
            with self._sessions() as session, session.begin():
                session.add(row)
        except SQLAlchemyError as exc:
            logger.exception("Failed to save scenario '%s'", inputs.scenario_name)
            raise PersistenceFailure("Failed to save scenario") from exc
        logger.info("Saved scenario %s (%s)", row.id, inputs.scenario_name)
        return Scenario(id=row.id, created_at=_as_utc(row.created_at), inputs=inputs, results=results)

    def get(self, scenario_id: str) -> Scenario:
        try:
            with self._sessions() as session:
                row = session.get(ScenarioRow, str(scenario_id))
                scenario = _to_scenario(row) if row is not None else None
        except SQLAlchemyError as exc:
            logger.exception("Failed to fetch scenario %s", scenario_id)
            raise PersistenceFailure("Failed to fetch scenario") from exc
        if scenario is None:
            raise NotFoundError("Scenario not found", reason="scenario_not_found")
        return scenario

    def list(self) -> List[Scenario]:
        stmt = select(ScenarioRow).order_by(ScenarioRow.created_at.desc(), ScenarioRow.id.desc())
        try:
            with self._sessions() as session:
                return [_to_scenario(r) for r in session.scalars(stmt)]
        except SQLAlchemyError as exc:
            logger.exception("Failed to list scenarios")
            raise PersistenceFailure("Failed to fetch scenarios") from exc

    def delete(self, scenario_id: str) -> None:
        try:
            with self._sessions() as session, session.begin():
                row = session.get(ScenarioRow, str(scenario_id))
                if row is not None:
                    session.delete(row)
        except SQLAlchemyError as exc:
            logger.exception("Failed to delete scenario %s", scenario_id)
            raise PersistenceFailure("Failed to delete scenario") from exc
        if row is None:
            raise NotFoundError("Scenario not found", reason="scenario_not_found")
        logger.info("Deleted scenario %s", scenario_id)
