"""Mapping between stored rule blobs and typed conditions/actions.

Rules are persisted as two JSON arrays on the ``email_rules`` row::

    conditions: [{"type": "subject_contains", "value": "...", "operator": "contains"}]
    actions:    [{"type": "create_opportunity", "params": {"source": "webform"}}]

Nothing outside this module knows about that layout.  A few stored
parameter names differ from the typed field names (``params.type`` on
activities and follow-ups would shadow the action discriminator).
"""

import logging
from typing import Any, Dict, List

from pydantic import TypeAdapter, ValidationError

from app.core.exceptions import ConfigurationError
from app.schemas.email_rule import (
    Action,
    Condition,
    InvalidAction,
    Rule,
    RuleAction,
)

logger = logging.getLogger(__name__)

_condition_adapter: TypeAdapter = TypeAdapter(Condition)
_action_adapter: TypeAdapter = TypeAdapter(Action)

# stored param name -> typed field name, per action type
_PARAM_ALIASES: Dict[str, Dict[str, str]] = {
    "create_activity": {"type": "activity_type"},
    "create_followup": {"type": "followup_type"},
    "update_opportunity_stage": {"stage_name": "stage"},
}


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}" if loc else err.get("msg", ""))
    return "; ".join(parts)


# ---------------------------------------------------------------------------
# Conditions
# ---------------------------------------------------------------------------


def condition_from_blob(raw: Any) -> Condition:
    """Parse one stored condition.

    Raises:
        ConfigurationError: if the type is unknown or a required value
            is missing.
    """
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Condition must be an object, got {raw!r}")
    try:
        return _condition_adapter.validate_python(raw)
    except ValidationError as exc:
        raise ConfigurationError(
            f"Invalid condition {raw.get('type')!r}: {_describe(exc)}"
        ) from exc


def conditions_from_blob(raw: Any) -> List[Condition]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ConfigurationError("Rule conditions must be a list")
    return [condition_from_blob(item) for item in raw]


def condition_to_blob(condition: Condition) -> Dict[str, Any]:
    return condition.model_dump(mode="json", exclude_none=True)


def conditions_to_blob(conditions: List[Condition]) -> List[Dict[str, Any]]:
    return [condition_to_blob(c) for c in conditions]


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


def _flatten_action(raw: Dict[str, Any]) -> Dict[str, Any]:
    action_type = raw.get("type")
    params = dict(raw.get("params") or {})
    aliases = _PARAM_ALIASES.get(action_type, {})
    flat: Dict[str, Any] = {}
    for key, value in params.items():
        flat[aliases.get(key, key)] = value
    flat["type"] = action_type
    return flat


def action_from_blob(raw: Any) -> Action:
    """Parse one stored action.

    Raises:
        ConfigurationError: if the type is unknown or its parameters do
            not satisfy the action's required-field set.
    """
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Action must be an object, got {raw!r}")
    try:
        return _action_adapter.validate_python(_flatten_action(raw))
    except ValidationError as exc:
        raise ConfigurationError(
            f"Invalid action {raw.get('type')!r}: {_describe(exc)}"
        ) from exc


def actions_from_blob(raw: Any) -> List[RuleAction]:
    """Parse stored actions, keeping bad entries as :class:`InvalidAction`.

    A single malformed action must fail on its own without taking the
    rest of the rule down with it.
    """
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ConfigurationError("Rule actions must be a list")

    actions: List[RuleAction] = []
    for item in raw:
        try:
            actions.append(action_from_blob(item))
        except ConfigurationError as exc:
            declared = item.get("type") if isinstance(item, dict) else None
            actions.append(
                InvalidAction(declared_type=str(declared), error=exc.detail)
            )
    return actions


def action_to_blob(action: Action) -> Dict[str, Any]:
    data = action.model_dump(mode="json", exclude_none=True)
    action_type = data.pop("type")
    reverse = {v: k for k, v in _PARAM_ALIASES.get(action_type, {}).items()}
    params = {reverse.get(key, key): value for key, value in data.items()}
    return {"type": action_type, "params": params}


def actions_to_blob(actions: List[Action]) -> List[Dict[str, Any]]:
    return [action_to_blob(a) for a in actions]


# ---------------------------------------------------------------------------
# Whole rules
# ---------------------------------------------------------------------------


def rule_from_row(row: Any) -> Rule:
    """Build a typed :class:`Rule` from an ``EmailRule`` ORM row.

    Raises:
        ConfigurationError: if any condition is malformed.  The caller
            skips the rule.
    """
    conditions = conditions_from_blob(row.conditions)
    actions = actions_from_blob(row.actions)
    if not conditions:
        logger.warning(
            "Rule %s (%r) has no conditions and will match every email",
            row.id,
            row.name,
        )
    return Rule(
        id=row.id,
        name=row.name,
        priority=row.priority or 0,
        enabled=bool(row.enabled),
        conditions=conditions,
        actions=actions,
    )


def sort_rules(rules: List[Rule]) -> List[Rule]:
    """Evaluation order: priority descending, then id ascending."""
    return sorted(rules, key=lambda r: (-r.priority, r.id))
