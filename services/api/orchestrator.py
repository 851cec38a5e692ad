from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime
import logging
import time
from typing import Any, Callable, Dict, List, Optional

from services.errors import NotFoundError, PersistenceFailure, ValidationError
from services.leads.recorder import LeadRecorder, validate_email
from services.reports.pdf import render, report_filename
from services.scenarios.store import Scenario, ScenarioStore
from services.storage.database import utc_now

logger = logging.getLogger(__name__)

# requested -> validating_email -> fetching_scenario -> recording_lead -> rendering -> delivered
# any validation or lookup failure -> rejected (before rendering starts)
REQUESTED = "requested"
VALIDATING_EMAIL = "validating_email"
FETCHING_SCENARIO = "fetching_scenario"
RECORDING_LEAD = "recording_lead"
RENDERING = "rendering"
DELIVERED = "delivered"
REJECTED = "rejected"


@dataclass
class ReportRun:
    scenario_id: Optional[str]
    email: Optional[str]
    status: str = REQUESTED
    events: List[Dict[str, Any]] = field(default_factory=list)
    reason: Optional[str] = None
    message: Optional[str] = None
    filename: Optional[str] = None
    content: Optional[bytes] = None
    lead_recorded: bool = False

    @property
    def delivered(self) -> bool:
        return self.status == DELIVERED


def _event(run: ReportRun, stage: str, message: str):
    run.events.append({"stage": stage, "message": message, "ts": time.time()})


def _reject(run: ReportRun, reason: str, message: str) -> ReportRun:
    run.status = REJECTED
    run.reason = reason
    run.message = message
    _event(run, REJECTED, message)
    logger.info("Report request rejected (%s): %s", reason, message)
    return run


class ReportService:
    """Runs one report request through the delivery states.

    Validation and lookup failures end in `rejected`; a store outage while
    fetching raises PersistenceFailure; a failed lead write is logged and
    skipped; a rendering fault raises and nothing is delivered.
    """

    def __init__(
        self,
        store: ScenarioStore,
        recorder: LeadRecorder,
        renderer: Callable[[Scenario, Optional[date]], bytes] = render,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.recorder = recorder
        self.renderer = renderer
        self.clock = clock

    def generate(self, scenario_id: Any, email: Any) -> ReportRun:
        run = ReportRun(scenario_id=scenario_id, email=email)
        _event(run, REQUESTED, f"Report requested for scenario {scenario_id!r}")

        if not scenario_id or not email:
            return _reject(run, "missing_fields", "Missing scenario_id or email")

        run.status = VALIDATING_EMAIL
        _event(run, VALIDATING_EMAIL, "Validating email")
        try:
            validate_email(email)
        except ValidationError as e:
            return _reject(run, e.reason, e.message)

        run.status = FETCHING_SCENARIO
        _event(run, FETCHING_SCENARIO, "Fetching scenario")
        try:
            scenario = self.store.get(str(scenario_id))
        except NotFoundError as e:
            return _reject(run, "scenario_not_found", e.message)

        run.status = RECORDING_LEAD
        _event(run, RECORDING_LEAD, "Recording report request")
        try:
            self.recorder.record(scenario.id, email)
            run.lead_recorded = True
        except PersistenceFailure as e:
            # lead capture is a side channel; the report still goes out
            logger.warning("Lead capture skipped for scenario %s: %s", scenario.id, e.message)
            _event(run, RECORDING_LEAD, "Lead capture failed; continuing")

        run.status = RENDERING
        _event(run, RENDERING, "Rendering PDF")
        content = self.renderer(scenario, self.clock().date())

        run.filename = report_filename(scenario.inputs.scenario_name)
        run.content = content
        run.status = DELIVERED
        _event(run, DELIVERED, f"Delivered {run.filename}")
        return run
