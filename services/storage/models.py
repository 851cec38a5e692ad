"""Persisted row shapes.

Fixed-point scales: decimal inputs keep 4 fractional digits, currency results
2, payback/ROI 1. Payback/ROI values that are not numbers (undefined,
unbounded or negative_unbounded) live in the *_marker columns with the numeric
column left NULL. Amounts are stored as decimal text so they read back exactly.
"""

from sqlalchemy import Column, DateTime, Index, Integer, String

from services.storage.database import Base, ExactDecimal


class ScenarioRow(Base):
    __tablename__ = "scenarios"

    id = Column(String(36), primary_key=True)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)

    # Inputs
    scenario_name = Column(String(255), nullable=False)
    monthly_invoice_volume = Column(Integer, nullable=False)
    num_ap_staff = Column(Integer, nullable=False)
    avg_hours_per_invoice = Column(ExactDecimal(4), nullable=False)
    hourly_wage = Column(ExactDecimal(4), nullable=False)
    error_rate_manual = Column(ExactDecimal(4), nullable=False)
    error_cost = Column(ExactDecimal(4), nullable=False)
    time_horizon_months = Column(Integer, nullable=False)
    one_time_implementation_cost = Column(ExactDecimal(4), nullable=False, default=0)

    # Results
    monthly_labor_cost_manual = Column(ExactDecimal(2), nullable=False)
    monthly_automation_cost = Column(ExactDecimal(2), nullable=False)
    monthly_error_savings = Column(ExactDecimal(2), nullable=False)
    monthly_savings = Column(ExactDecimal(2), nullable=False)
    cumulative_savings = Column(ExactDecimal(2), nullable=False)
    net_savings = Column(ExactDecimal(2), nullable=False)
    payback_months = Column(ExactDecimal(1), nullable=True)
    payback_months_marker = Column(String(24), nullable=True)
    roi_percentage = Column(ExactDecimal(1), nullable=True)
    roi_percentage_marker = Column(String(24), nullable=True)

    def __repr__(self):
        return f"<ScenarioRow(id='{self.id}', name='{self.scenario_name}')>"


class ReportRequestRow(Base):
    __tablename__ = "reports"

    id = Column(String(36), primary_key=True)
    # Weak reference: no foreign key, rows outlive a deleted scenario
    scenario_id = Column(String(36), nullable=False)
    email = Column(String(255), nullable=False)
    requested_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("ix_reports_scenario_id", "scenario_id"),)
