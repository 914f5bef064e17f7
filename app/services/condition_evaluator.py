"""Condition evaluation for email rules.

Pure functions: no I/O and no side effects.  Evaluation fails closed, so
an absent email field or an invalid pattern makes the condition false
instead of raising.
"""

import logging
import re
from typing import Any, List, Optional

from app.schemas.email_rule import (
    BodyContainsCondition,
    Condition,
    ConditionOutcome,
    DirectionCondition,
    FromContainsCondition,
    HasCategoryCondition,
    HasContactCondition,
    InFolderCondition,
    IsFlaggedCondition,
    Rule,
    RuleTestResponse,
    SubjectContainsCondition,
    SubjectMatchesCondition,
    TextOperator,
    ToContainsCondition,
)

logger = logging.getLogger(__name__)

# Text condition type -> email attribute it reads
_TEXT_FIELDS = {
    SubjectContainsCondition: "subject",
    FromContainsCondition: "from_address",
    ToContainsCondition: "to_address",
    BodyContainsCondition: "body",
}


def _text_match(haystack: Optional[str], condition: Any) -> bool:
    if haystack is None:
        return False
    needle = condition.value
    if not condition.case_sensitive:
        haystack = haystack.lower()
        needle = needle.lower()

    op = condition.operator
    if op == TextOperator.contains:
        return needle in haystack
    elif op == TextOperator.equals:
        return haystack.strip() == needle.strip()
    elif op == TextOperator.starts_with:
        return haystack.startswith(needle)
    elif op == TextOperator.ends_with:
        return haystack.endswith(needle)
    return False


def _pattern_match(subject: Optional[str], pattern: str) -> bool:
    if subject is None:
        return False
    try:
        return re.search(pattern, subject, re.IGNORECASE) is not None
    except re.error as exc:
        logger.warning("Invalid subject pattern %r: %s", pattern, exc)
        return False


def evaluate_condition(condition: Condition, email: Any) -> bool:
    """Return whether *email* satisfies *condition*.

    *email* is any object exposing the :class:`~app.schemas.email.EmailRecord`
    attributes.
    """
    field = _TEXT_FIELDS.get(type(condition))
    if field is not None:
        return _text_match(getattr(email, field, None), condition)

    if isinstance(condition, SubjectMatchesCondition):
        return _pattern_match(getattr(email, "subject", None), condition.value)
    elif isinstance(condition, HasCategoryCondition):
        # Controlled vocabulary: exact, case-sensitive membership
        return condition.value in (getattr(email, "categories", None) or [])
    elif isinstance(condition, IsFlaggedCondition):
        return bool(getattr(email, "is_flagged", False))
    elif isinstance(condition, InFolderCondition):
        return getattr(email, "folder_id", None) == condition.value
    elif isinstance(condition, DirectionCondition):
        direction = getattr(email, "direction", None) or "inbound"
        return getattr(direction, "value", direction) == condition.value.value
    elif isinstance(condition, HasContactCondition):
        has_contact = getattr(email, "contact_id", None) is not None
        return has_contact == condition.value

    logger.warning("Unsupported condition type %r", getattr(condition, "type", None))
    return False


def rule_matches(rule: Rule, email: Any) -> bool:
    """All conditions must hold; a rule without conditions always matches."""
    return all(evaluate_condition(c, email) for c in rule.conditions)


def dry_run_rule(conditions: List[Condition], email: Any) -> RuleTestResponse:
    """Dry run: evaluate every condition and report each outcome."""
    outcomes = [
        ConditionOutcome(condition=c, result=evaluate_condition(c, email))
        for c in conditions
    ]
    return RuleTestResponse(
        matches=all(o.result for o in outcomes),
        evaluated_conditions=outcomes,
    )

