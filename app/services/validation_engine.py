"""
Validation Engine
=================
Business rules applied to a completed extraction record.

Every rule runs on every record and findings accumulate. Unparsable input
degrades to a neutral value (0 or no date) so that one bad field never hides
findings about another, and no rule ever raises.
"""

import math
import re
from datetime import date
from typing import Any, Dict, List, Optional

from app.models.document_model import Severity, ValidationFinding
from app.models.field_schema import (
    BASIC_PREMIUM,
    FINAL_PREMIUM,
    POLICY_END_DATE,
    POLICY_START_DATE,
    REQUIRED_FIELDS,
    TAXES,
    TENURE_MONTHS,
)

PREMIUM_TOLERANCE = 2.0
TENURE_TOLERANCE_MONTHS = 1
AVERAGE_DAYS_PER_MONTH = 30.44

_NUMBER_PREFIX = re.compile(r'^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?')
_INTEGER_PREFIX = re.compile(r'^[+-]?\d+')


def _text(record: Dict[str, Any], field: str) -> str:
    value = record.get(field) if isinstance(record, dict) else None
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def parse_amount(value: str) -> float:
    """
    Read the leading number of an amount string; 0.0 when there is none.

    Thousands separators are dropped first, so "1,250.50" reads as 1250.5.
    """
    cleaned = value.strip().replace(',', '')
    match = _NUMBER_PREFIX.match(cleaned)
    if not match:
        return 0.0
    try:
        number = float(match.group(0))
    except (ValueError, OverflowError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def parse_months(value: str) -> int:
    match = _INTEGER_PREFIX.match(value.strip())
    return int(match.group(0)) if match else 0


def parse_policy_date(value: str) -> Optional[date]:
    """
    Parse a DD-MM-YYYY date.

    Anything that is not three hyphen-separated integers forming a real
    calendar date is treated as no date.
    """
    parts = value.strip().split('-')
    if len(parts) != 3:
        return None
    try:
        day, month, year = (int(part.strip()) for part in parts)
        return date(year, month, day)
    except (ValueError, OverflowError):
        return None


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _format_number(value: float) -> str:
    if value.is_integer():
        return str(int(value))
    return repr(value)


# ============================================================================
# RULES
# ============================================================================

def check_required_fields(record: Dict[str, Any]) -> List[ValidationFinding]:
    findings = []
    for field in REQUIRED_FIELDS:
        if not _text(record, field).strip():
            findings.append(ValidationFinding(
                field=field,
                message=f"{field} is missing",
                severity=Severity.ERROR,
            ))
    return findings


def check_premium_arithmetic(record: Dict[str, Any]) -> List[ValidationFinding]:
    basic = parse_amount(_text(record, BASIC_PREMIUM))
    taxes = parse_amount(_text(record, TAXES))
    final = parse_amount(_text(record, FINAL_PREMIUM))

    if final > 0 and abs((basic + taxes) - final) > PREMIUM_TOLERANCE:
        return [ValidationFinding(
            message=(
                f"Premium Math Error: {_format_number(basic)} + "
                f"{_format_number(taxes)} != {_format_number(final)}"
            ),
            severity=Severity.ERROR,
        )]
    return []


def check_date_order(start: Optional[date], end: Optional[date]) -> List[ValidationFinding]:
    if start and end and start >= end:
        return [ValidationFinding(
            message="Start date must be before end date",
            severity=Severity.ERROR,
        )]
    return []


def check_tenure(
    record: Dict[str, Any],
    start: Optional[date],
    end: Optional[date],
) -> List[ValidationFinding]:
    # Advisory only: the average month length makes this approximate.
    declared = parse_months(_text(record, TENURE_MONTHS))
    if not (start and end and declared > 0):
        return []

    elapsed_days = abs((end - start).days)
    computed = _round_half_up(elapsed_days / AVERAGE_DAYS_PER_MONTH)
    if abs(computed - declared) > TENURE_TOLERANCE_MONTHS:
        return [ValidationFinding(
            field=TENURE_MONTHS,
            message=f"Tenure mismatch: Calculated {computed}m vs Extracted {declared}m",
            severity=Severity.WARNING,
        )]
    return []


def validate_record(record: Dict[str, Any]) -> List[ValidationFinding]:
    """
    Run every rule against an extraction record.

    Args:
        record: Field name to extracted string value

    Returns:
        Findings in rule order: required fields, premium arithmetic,
        date ordering, tenure. An empty list means fully validated.
    """
    start = parse_policy_date(_text(record, POLICY_START_DATE))
    end = parse_policy_date(_text(record, POLICY_END_DATE))

    findings: List[ValidationFinding] = []
    findings.extend(check_required_fields(record))
    findings.extend(check_premium_arithmetic(record))
    findings.extend(check_date_order(start, end))
    findings.extend(check_tenure(record, start, end))
    return findings
