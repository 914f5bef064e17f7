import logging
from typing import Any, List, Optional

from sqlalchemy import func, select

from app.core.exceptions import ConfigurationError
from app.models.email_rule import EmailRule
from app.repositories.base import BaseRepository
from app.schemas.processing import LoadedRules, SkippedRule
from app.schemas.rule_codec import rule_from_row, sort_rules

logger = logging.getLogger(__name__)


class EmailRuleRepository(BaseRepository):
    """Encapsulates queries against the ``email_rules`` table.

    Also serves as the rule engine's rule loader.
    """

    async def list_rules(self) -> List[EmailRule]:
        """Return every rule, highest priority first, ties by id."""
        result = await self._db.execute(
            select(EmailRule).order_by(EmailRule.priority.desc(), EmailRule.id.asc())
        )
        return list(result.scalars().all())

    async def get(self, rule_id: int) -> Optional[EmailRule]:
        result = await self._db.execute(
            select(EmailRule)
            .where(EmailRule.id == rule_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def create(self, **kwargs: Any) -> EmailRule:
        rule = EmailRule(**kwargs)
        self._db.add(rule)
        await self._db.flush()
        return rule

    async def update(self, rule: EmailRule, **fields: Any) -> EmailRule:
        for key, value in fields.items():
            setattr(rule, key, value)
        await self._db.flush()
        return rule

    async def delete(self, rule: EmailRule) -> None:
        await self._db.delete(rule)
        await self._db.flush()

    async def load_enabled_rules(self) -> LoadedRules:
        """Load and parse every enabled rule in evaluation order.

        Rows whose conditions cannot be parsed are returned as skipped
        rules rather than raised, so one bad rule cannot stop a run.
        """
        result = await self._db.execute(
            select(EmailRule).where(EmailRule.enabled.is_(True))
        )
        rules = []
        skipped = []
        for row in result.scalars().all():
            try:
                rules.append(rule_from_row(row))
            except ConfigurationError as exc:
                logger.warning("Skipping rule %s (%r): %s", row.id, row.name, exc.detail)
                skipped.append(
                    SkippedRule(rule_id=row.id, rule_name=row.name, error=exc.detail)
                )
        return LoadedRules(rules=sort_rules(rules), skipped=skipped)

    async def seed_if_empty(self) -> None:
        """Insert the default rules when the table is empty.

        The canonical definitions live in
        ``app.core.default_rules.DEFAULT_EMAIL_RULES``.
        """
        from app.core.default_rules import DEFAULT_EMAIL_RULES

        count_result = await self._db.execute(
            select(func.count()).select_from(EmailRule)
        )
        if count_result.scalar():
            return

        logger.info("email_rules table is empty, seeding defaults")
        for rule_data in DEFAULT_EMAIL_RULES:
            self._db.add(EmailRule(**rule_data))
        await self._db.flush()
        logger.info("Seeded %d default email rules", len(DEFAULT_EMAIL_RULES))
