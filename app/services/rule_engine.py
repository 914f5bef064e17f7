import logging
from typing import List

from typing_extensions import Protocol

from app.repositories.communication_repository import CommunicationRepository
from app.schemas.email import EmailRecord
from app.schemas.processing import (
    ActionResult,
    LoadedRules,
    MatchedRule,
    RuleEngineResult,
)
from app.services.action_executor import ActionContext, ActionExecutor
from app.services.condition_evaluator import rule_matches

logger = logging.getLogger(__name__)


class RuleLoader(Protocol):
    """Source of enabled rules, already in evaluation order."""

    async def load_enabled_rules(self) -> LoadedRules: ...


class RuleEngine:
    """Evaluates every enabled rule against one email.

    Rules run highest priority first (ties by ascending id).  A matching
    rule executes all of its actions in declared order; a failed action
    or rule never stops the rules after it.  Conditions are evaluated
    against the email as it was before the first rule ran, and each rule
    starts from a fresh :class:`ActionContext`.
    """

    def __init__(
        self,
        rule_loader: RuleLoader,
        executor: ActionExecutor,
        communication_repo: CommunicationRepository,
    ) -> None:
        self._rule_loader = rule_loader
        self._executor = executor
        self._communications = communication_repo

    async def process_email(self, email: EmailRecord) -> RuleEngineResult:
        """Run all rules, then mark the email processed exactly once.

        Raises:
            DataStoreUnavailableError: propagated from the executor; the
                email is left unprocessed.
        """
        loaded = await self._rule_loader.load_enabled_rules()
        if not loaded.rules:
            logger.debug("No enabled rules; email %s only marked processed", email.id)

        matched: List[MatchedRule] = []
        results: List[ActionResult] = []
        for rule in loaded.rules:
            if not rule_matches(rule, email):
                continue

            logger.info("Rule %s (%r) matched email %s", rule.id, rule.name, email.id)
            matched.append(
                MatchedRule(rule_id=rule.id, rule_name=rule.name, priority=rule.priority)
            )
            context = ActionContext.for_rule(rule.id, rule.name, email)
            for action in rule.actions:
                results.append(await self._executor.execute(action, email, context))

        await self._communications.mark_processed(email.id)

        failed = sum(1 for r in results if not r.success)
        if failed:
            logger.warning(
                "Email %s: %d of %d actions failed", email.id, failed, len(results)
            )
        return RuleEngineResult(
            matched_rules=matched,
            action_results=results,
            skipped_rules=loaded.skipped,
        )
