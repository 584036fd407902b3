# residency/issues.py

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import List, Literal, Optional

from .gaps import Gap

Severity = Literal["high", "medium", "low"]


@dataclass(frozen=True)
class Issue:
    severity: Severity
    category: str
    message: str
    suggested_question: Optional[str] = None
    ref_id: Optional[str] = None


def tag_issues(issues: List[Issue], ref_id: str) -> List[Issue]:
    """
    Return a new list of Issues with ref_id populated when missing.
    (Issue is frozen/immutable, so we construct new Issue objects.)
    """
    return [i if i.ref_id is not None else replace(i, ref_id=ref_id) for i in issues]


def gap_to_issue(gap: Gap) -> Issue:
    if gap.is_leading and gap.is_trailing:
        message = f"No address covers the period {gap.start} to {gap.end}."
    elif gap.is_leading:
        message = f"Address gap at the start of the period: {gap.start} to {gap.end}."
    elif gap.is_trailing:
        message = f"Address gap at the end of the period: {gap.start} to {gap.end}."
    else:
        message = f"Unexplained address gap of {gap.days} day(s): {gap.start} to {gap.end}."

    return Issue(
        severity="high",
        category="address_history",
        message=message,
        suggested_question=f"Where did you live from {gap.start} to {gap.end}?",
    )


def gaps_to_issues(gaps: List[Gap]) -> List[Issue]:
    return [gap_to_issue(g) for g in gaps]
