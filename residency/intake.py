# residency/intake.py

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from .dates import parse_iso_date
from .issues import Issue
from .models import AddressInput, AddressUpdate


ALLOWED_UPLOAD_TYPES = frozenset({"application/pdf", "image/png", "image/jpeg"})

# (model field, payload key in the persisted/web form, human label)
_ADDRESS_FIELDS = [
    ("line1", "line1", "address line 1"),
    ("line2", "line2", "address line 2"),
    ("town", "town", "town"),
    ("county", "county", "county"),
    ("postcode", "postcode", "postcode"),
    ("country", "country", "country"),
    ("start_date", "startDate", "start date"),
    ("end_date", "endDate", "end date"),
]

_REQUIRED = {"line1", "town", "postcode", "country", "start_date"}


# ======================================================
# Raw value helpers
# ======================================================

def _lookup(raw: Dict[str, Any], name: str, key: str) -> Tuple[bool, Any]:
    """Accept either the camelCase form key or the snake_case field name."""
    if key in raw:
        return True, raw[key]
    if name in raw:
        return True, raw[name]
    return False, None


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def _check_date(label: str, value: Optional[str]) -> List[Issue]:
    if value is None or parse_iso_date(value) is not None:
        return []
    return [
        Issue(
            severity="high",
            category="address_history",
            message=f"Invalid or unrecognized date for {label}: {value!r}.",
            suggested_question=f"Please provide the {label} as YYYY-MM-DD.",
        )
    ]


def _check_order(start: Optional[str], end: Optional[str]) -> List[Issue]:
    start_value = parse_iso_date(start)
    end_value = parse_iso_date(end)
    if start_value is None or end_value is None or end_value >= start_value:
        return []
    return [
        Issue(
            severity="high",
            category="address_history",
            message=f"End date {end} is before start date {start}.",
            suggested_question="Please confirm when you moved in and out of this address.",
        )
    ]


# ======================================================
# Address payloads
# ======================================================

def parse_address_payload(raw: Dict[str, Any]) -> Tuple[Optional[AddressInput], List[Issue]]:
    """
    Build AddressInput from a submitted form/JSON body.
    Never raises: missing required fields and bad dates come back as issues.
    A blank end date means the residence is ongoing.
    """
    issues: List[Issue] = []
    values: Dict[str, Optional[str]] = {}

    for name, key, label in _ADDRESS_FIELDS:
        _found, value = _lookup(raw, name, key)
        values[name] = _clean(value)
        if name in _REQUIRED and values[name] is None:
            issues.append(
                Issue(
                    severity="high",
                    category="address_history",
                    message=f"Missing required field: {label}.",
                    suggested_question=f"Please provide the {label}.",
                )
            )

    issues.extend(_check_date("start date", values["start_date"]))
    issues.extend(_check_date("end date", values["end_date"]))
    issues.extend(_check_order(values["start_date"], values["end_date"]))

    if issues:
        return None, issues

    try:
        return AddressInput(**values), issues
    except ValidationError as e:
        issues.append(
            Issue(
                severity="high",
                category="address_history",
                message=f"Address could not be parsed due to validation error: {e}",
                suggested_question="Please confirm the address fields and dates.",
            )
        )
        return None, issues


def parse_address_update(raw: Dict[str, Any]) -> Tuple[Optional[AddressUpdate], List[Issue]]:
    """
    Build a partial AddressUpdate. Only keys present in the payload are set.
    Required fields may be omitted but not blanked; a blank end date clears it.
    """
    issues: List[Issue] = []
    values: Dict[str, Optional[str]] = {}

    for name, key, label in _ADDRESS_FIELDS:
        found, value = _lookup(raw, name, key)
        if not found:
            continue
        values[name] = _clean(value)
        if name in _REQUIRED and values[name] is None:
            issues.append(
                Issue(
                    severity="high",
                    category="address_history",
                    message=f"{label.capitalize()} cannot be blank.",
                    suggested_question=f"Please provide the {label}.",
                )
            )

    issues.extend(_check_date("start date", values.get("start_date")))
    issues.extend(_check_date("end date", values.get("end_date")))
    issues.extend(_check_order(values.get("start_date"), values.get("end_date")))

    if issues:
        return None, issues
    return AddressUpdate(**values), issues


# ======================================================
# Uploads
# ======================================================

def check_upload(mime_type: Optional[str]) -> List[Issue]:
    if mime_type in ALLOWED_UPLOAD_TYPES:
        return []
    return [
        Issue(
            severity="high",
            category="documents",
            message=f"Unsupported file type {mime_type!r}; only PDF, PNG, and JPG files are allowed.",
            suggested_question="Please upload the proof document as a PDF, PNG, or JPG file.",
        )
    ]
