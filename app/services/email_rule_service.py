import logging
from typing import List

from app.core.exceptions import ConfigurationError, EmailRuleNotFoundError
from app.models.email_rule import EmailRule
from app.repositories.email_rule_repository import EmailRuleRepository
from app.schemas.email import EmailRecord, SampleEmail
from app.schemas.email_rule import (
    EmailRuleCreate,
    EmailRuleOut,
    EmailRuleUpdate,
    RuleTestResponse,
)
from app.schemas.rule_codec import (
    actions_from_blob,
    actions_to_blob,
    conditions_from_blob,
    conditions_to_blob,
)
from app.services.condition_evaluator import dry_run_rule

logger = logging.getLogger(__name__)


def rule_to_out(row: EmailRule) -> EmailRuleOut:
    """Convert a stored rule row into its API shape."""
    error = None
    try:
        conditions = conditions_from_blob(row.conditions)
    except ConfigurationError as exc:
        conditions = []
        error = exc.detail
    try:
        actions = actions_from_blob(row.actions)
    except ConfigurationError as exc:
        actions = []
        error = error or exc.detail

    return EmailRuleOut(
        id=row.id,
        name=row.name,
        description=row.description,
        priority=row.priority or 0,
        enabled=bool(row.enabled),
        conditions=conditions,
        actions=actions,
        error=error,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class EmailRuleService:
    """CRUD for email rules plus the dry-run tester."""

    def __init__(self, rule_repo: EmailRuleRepository) -> None:
        self._rules = rule_repo

    async def _get_row(self, rule_id: int) -> EmailRule:
        row = await self._rules.get(rule_id)
        if row is None:
            raise EmailRuleNotFoundError(f"Rule {rule_id} not found")
        return row

    async def list_rules(self) -> List[EmailRuleOut]:
        return [rule_to_out(row) for row in await self._rules.list_rules()]

    async def get_rule(self, rule_id: int) -> EmailRuleOut:
        return rule_to_out(await self._get_row(rule_id))

    async def create_rule(self, data: EmailRuleCreate) -> EmailRuleOut:
        row = await self._rules.create(
            name=data.name,
            description=data.description,
            priority=data.priority,
            enabled=data.enabled,
            conditions=conditions_to_blob(data.conditions),
            actions=actions_to_blob(data.actions),
        )
        await self._rules.commit()
        logger.info("Created email rule %s (%r, priority %s)", row.id, row.name, row.priority)
        return rule_to_out(row)

    async def update_rule(self, rule_id: int, data: EmailRuleUpdate) -> EmailRuleOut:
        row = await self._get_row(rule_id)
        row = await self._rules.update(
            row,
            name=data.name,
            description=data.description,
            priority=data.priority,
            enabled=data.enabled,
            conditions=conditions_to_blob(data.conditions),
            actions=actions_to_blob(data.actions),
        )
        await self._rules.commit()
        logger.info("Updated email rule %s", rule_id)
        return rule_to_out(await self._get_row(rule_id))

    async def delete_rule(self, rule_id: int) -> None:
        row = await self._get_row(rule_id)
        await self._rules.delete(row)
        await self._rules.commit()
        logger.info("Deleted email rule %s", rule_id)

    async def test_rule(self, rule_id: int, sample: SampleEmail) -> RuleTestResponse:
        """Evaluate a stored rule's conditions against *sample*; writes nothing.

        Raises:
            EmailRuleNotFoundError: no such rule.
            ConfigurationError: the stored conditions do not parse.
        """
        row = await self._get_row(rule_id)
        conditions = conditions_from_blob(row.conditions)
        email = EmailRecord.model_validate(sample.model_dump())
        return dry_run_rule(conditions, email)
