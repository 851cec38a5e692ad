from __future__ import annotations
import io
import logging
import re
import textwrap
from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Tuple

from matplotlib.backends.backend_pdf import PdfPages
from matplotlib.figure import Figure

from services.calculation.engine import RatioMarker
from services.reports.formatting import (
    format_count,
    format_currency,
    format_hours,
    format_months,
    format_payback,
    format_rate,
    format_roi,
)
from services.scenarios.store import Scenario
from services.storage.database import utc_now

logger = logging.getLogger(__name__)

TITLE = "ROI Analysis Report"
INPUTS_HEADING = "Input Parameters"
RESULTS_HEADING = "ROI Analysis Results"
SUMMARY_HEADING = "Executive Summary"

A4_INCHES = (8.27, 11.69)
LEFT = 0.09
VALUE_X = 0.45
TOP = 0.94
WRAP_WIDTH = 80  # body-size characters across the printable width
NAME_WRAP_WIDTH = 55
NAME_MAX_LINES = 2
ROW_VALUE_MAX = 48
SECTION_GAP = 0.015

# kind -> (font size, weight, vertical advance in figure fraction)
STYLES = {
    "title": (20, "bold", 0.06),
    "subtitle": (15, "normal", 0.03),
    "meta": (11, "normal", 0.05),
    "heading": (14, "bold", 0.045),
    "row": (11, "normal", 0.026),
    "text": (11, "normal", 0.025),
}


@dataclass(frozen=True)
class ReportLine:
    kind: str
    text: str
    value: Optional[str] = None


def report_filename(scenario_name: str) -> str:
    return f"roi-report-{re.sub(r'[^a-zA-Z0-9]', '-', scenario_name)}.pdf"


def input_rows(s: Scenario) -> List[Tuple[str, str]]:
    i = s.inputs
    return [
        ("Scenario Name:", textwrap.shorten(i.scenario_name, ROW_VALUE_MAX, placeholder="...")),
        ("Monthly Invoice Volume:", format_count(i.monthly_invoice_volume)),
        ("AP Staff Count:", format_count(i.num_ap_staff)),
        ("Hours per Invoice:", format_hours(i.avg_hours_per_invoice)),
        ("Hourly Wage:", format_currency(i.hourly_wage)),
        ("Manual Error Rate:", format_rate(i.error_rate_manual)),
        ("Cost per Error:", format_currency(i.error_cost)),
        ("Time Horizon:", format_months(i.time_horizon_months)),
        ("Implementation Cost:", format_currency(i.one_time_implementation_cost)),
    ]


def result_rows(s: Scenario) -> List[Tuple[str, str]]:
    r = s.results
    return [
        ("Manual Labor Cost (Monthly):", format_currency(r.monthly_labor_cost_manual)),
        ("Automation Cost (Monthly):", format_currency(r.monthly_automation_cost)),
        ("Error Savings (Monthly):", format_currency(r.monthly_error_savings)),
        ("Monthly Savings:", format_currency(r.monthly_savings)),
        ("Cumulative Savings:", format_currency(r.cumulative_savings)),
        ("Net Savings:", format_currency(r.net_savings)),
        ("Payback Period:", format_payback(r.payback_months)),
        ("ROI Percentage:", format_roi(r.roi_percentage)),
    ]


def summary_sentence(s: Scenario) -> str:
    r = s.results
    if r.payback_months is RatioMarker.UNDEFINED:
        payback = "no defined payback period"
    else:
        payback = f"a payback period of {format_payback(r.payback_months)}"
    if r.roi_percentage is RatioMarker.UNBOUNDED:
        roi = "an unbounded ROI (no implementation cost)"
    elif r.roi_percentage is RatioMarker.NEGATIVE_UNBOUNDED:
        roi = "an unbounded negative ROI (no implementation cost)"
    elif r.roi_percentage is RatioMarker.UNDEFINED:
        roi = "no defined ROI"
    else:
        roi = f"an ROI of {format_roi(r.roi_percentage)}"
    return (
        "This analysis shows that automating your invoicing process will generate monthly savings of "
        f"{format_currency(r.monthly_savings)}, with {payback} and {roi} "
        f"over {format_months(s.inputs.time_horizon_months)}."
    )


def build_layout(s: Scenario, generated_on: date) -> List[ReportLine]:
    """Fixed page contract: title, scenario, date, inputs, results, summary."""
    lines = [ReportLine("title", TITLE)]
    name_lines = textwrap.TextWrapper(width=NAME_WRAP_WIDTH, max_lines=NAME_MAX_LINES, placeholder=" ...")
    lines += [ReportLine("subtitle", t) for t in name_lines.wrap(f"Scenario: {s.inputs.scenario_name}")]
    lines.append(ReportLine("meta", f"Generated: {generated_on.isoformat()}"))
    lines.append(ReportLine("heading", INPUTS_HEADING))
    lines += [ReportLine("row", label, value) for label, value in input_rows(s)]
    lines.append(ReportLine("heading", RESULTS_HEADING))
    lines += [ReportLine("row", label, value) for label, value in result_rows(s)]
    lines.append(ReportLine("heading", SUMMARY_HEADING))
    lines += [ReportLine("text", t) for t in textwrap.wrap(summary_sentence(s), WRAP_WIDTH)]
    return lines


def _draw(fig: Figure, lines: List[ReportLine]) -> None:
    y = TOP
    seen_heading = False
    for ln in lines:
        size, weight, advance = STYLES[ln.kind]
        if ln.kind == "heading":
            if seen_heading:
                y -= SECTION_GAP
            seen_heading = True
        # parse_math off: "$" in amounts and names is literal
        style = dict(va="top", fontsize=size, fontweight=weight, parse_math=False)
        if ln.kind == "title":
            fig.text(0.5, y, ln.text, ha="center", **style)
        else:
            fig.text(LEFT, y, ln.text, ha="left", **style)
        if ln.value is not None:
            fig.text(VALUE_X, y, ln.value, ha="left", **style)
        y -= advance
    if y < 0.03:
        raise ValueError("report layout overflows a single page")


def render(s: Scenario, generated_on: Optional[date] = None) -> bytes:
    """Render the one-page PDF report for a scenario.

    Creation-date metadata is omitted, so the bytes depend only on the
    scenario and `generated_on` (today, UTC, when not given).
    """
    generated_on = generated_on or utc_now().date()
    lines = build_layout(s, generated_on)
    fig = Figure(figsize=A4_INCHES)
    _draw(fig, lines)
    buf = io.BytesIO()
    with PdfPages(buf, metadata={"Title": TITLE, "CreationDate": None}) as pdf:
        pdf.savefig(fig)
    body = buf.getvalue()
    logger.info("Rendered report for scenario %s (%d bytes)", s.id, len(body))
    return body
