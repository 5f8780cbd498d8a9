"""
Policy field schema.

The 29 extracted fields in their canonical order. This order drives the
structured-output schema sent to the model, the grid view and the export
columns, so it must never be sorted or rebuilt from a dict.
"""

from typing import Dict, Tuple

PROPOSAL_RECEIVED_DATE = "Proposal Received Date"
PROPOSAL_NO = "Proposal No"
PROPOSER_NAME = "Proposer Name"
PIN_CODE = "Pin Code"
TOTAL_NO_OF_LIVES = "Total No of Lives"
BUSINESS_TYPE = "Business Type"
INSURANCE_COMPANY = "Insurance Company"
TPA = "TPA"
PRODUCT_TYPE = "Product Type"
PRODUCT_NAME = "Product Name"
COVER_TYPE = "Cover Type"
TENURE_MONTHS = "Tenure (In Months)"
PAYMENT_MODE = "Payment Mode"
RECEIVED_AMOUNT = "Received Amount"
BASIC_PREMIUM = "Basic Premium"
TAXES = "Taxes"
FINAL_PREMIUM = "Final Premium"
SHORT_EXCESS = "Short / Excess"
EMAIL = "Email"
MOBILE_NO = "Mobile No"
POLICY_NO = "Policy No"
POLICY_START_DATE = "Policy Start Date"
POLICY_END_DATE = "Policy End Date"
AGENT_BROKER_CODE = "Agent / Broker Code"
AGENT_BROKER_NAME = "Agent / Broker Name"
OD_PREMIUM = "OD Premium"
LIABILITY_PREMIUM = "Liability Premium"
VEHICLE_REG_NO = "Vehicle Reg. No"
VEHICLE_MAKE = "Vehicle Make"

FIELD_ORDER: Tuple[str, ...] = (
    PROPOSAL_RECEIVED_DATE,
    PROPOSAL_NO,
    PROPOSER_NAME,
    PIN_CODE,
    TOTAL_NO_OF_LIVES,
    BUSINESS_TYPE,
    INSURANCE_COMPANY,
    TPA,
    PRODUCT_TYPE,
    PRODUCT_NAME,
    COVER_TYPE,
    TENURE_MONTHS,
    PAYMENT_MODE,
    RECEIVED_AMOUNT,
    BASIC_PREMIUM,
    TAXES,
    FINAL_PREMIUM,
    SHORT_EXCESS,
    EMAIL,
    MOBILE_NO,
    POLICY_NO,
    POLICY_START_DATE,
    POLICY_END_DATE,
    AGENT_BROKER_CODE,
    AGENT_BROKER_NAME,
    OD_PREMIUM,
    LIABILITY_PREMIUM,
    VEHICLE_REG_NO,
    VEHICLE_MAKE,
)

FIELD_COUNT = len(FIELD_ORDER)

REQUIRED_FIELDS: Tuple[str, ...] = (
    PROPOSER_NAME,
    POLICY_NO,
    FINAL_PREMIUM,
    POLICY_START_DATE,
)

DATE_FIELDS = frozenset({PROPOSAL_RECEIVED_DATE, POLICY_START_DATE, POLICY_END_DATE})

AMOUNT_FIELDS = frozenset({
    RECEIVED_AMOUNT,
    BASIC_PREMIUM,
    TAXES,
    FINAL_PREMIUM,
    SHORT_EXCESS,
    OD_PREMIUM,
    LIABILITY_PREMIUM,
})

_FIELD_SET = frozenset(FIELD_ORDER)


def field_description(field: str) -> str:
    """Per-field hint embedded in the structured-output schema."""
    if field in DATE_FIELDS:
        return f"Extract {field}. Normalize the date to DD-MM-YYYY."
    if field in AMOUNT_FIELDS:
        return f"Extract {field}. Return digits only, no currency symbols or separators."
    return f"Extract {field}. Normalize dates to DD-MM-YYYY, amounts to numeric strings."


def empty_record() -> Dict[str, str]:
    """A record holding every schema key with an empty value."""
    return {field: "" for field in FIELD_ORDER}


def is_field(name: str) -> bool:
    return name in _FIELD_SET


def is_complete_record(record: Dict[str, str]) -> bool:
    """True when the keys are exactly the schema, no more and no fewer."""
    return isinstance(record, dict) and set(record.keys()) == _FIELD_SET


def ordered_values(record: Dict[str, str]) -> Tuple[str, ...]:
    return tuple(record.get(field, "") for field in FIELD_ORDER)
