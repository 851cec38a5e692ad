from __future__ import annotations
import logging
import re
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from services.errors import PersistenceFailure, ValidationError
from services.storage.database import utc_now
from services.storage.models import ReportRequestRow

logger = logging.getLogger(__name__)

# local@domain.tld, deliberately loose
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass(frozen=True)
class ReportRequest:
    id: str
    scenario_id: str
    email: str
    requested_at: datetime


def validate_email(email: Any) -> str:
    if not isinstance(email, str) or not EMAIL_RE.fullmatch(email):
        raise ValidationError("Invalid email format", field="email", reason="invalid_email")
    return email


class LeadRecorder:
    def __init__(self, session_factory: sessionmaker, clock: Callable[[], datetime] = utc_now):
        self._sessions = session_factory
        self._clock = clock

    def record(self, scenario_id: str, email: str) -> ReportRequest:
        """Append one report request. Never updates or deletes earlier rows."""
        validate_email(email)
        req = ReportRequest(id=str(uuid.uuid4()), scenario_id=str(scenario_id), email=email, requested_at=self._clock())
        try:
            with self._sessions() as session, session.begin():
                session.add(ReportRequestRow(
                    id=req.id,
                    scenario_id=req.scenario_id,
                    email=req.email,
                    requested_at=req.requested_at,
                ))
        except SQLAlchemyError as exc:
            logger.exception("Failed to record report request for scenario %s", scenario_id)
            raise PersistenceFailure("Failed to record report request") from exc
        logger.info("Recorded report request %s for scenario %s", req.id, req.scenario_id)
        return req
