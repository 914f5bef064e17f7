"""Execution of individual rule actions.

Every action runs in its own SAVEPOINT: a failing action rolls back its
own writes and nothing else, and the remaining actions of the rule still
run.  Expected failures come back as unsuccessful :class:`ActionResult`
objects.  Only a lost database connection escapes, as
:class:`DataStoreUnavailableError`, so the caller can abandon the email.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError

from app.core.config import settings
from app.core.constants import (
    DEFAULT_LEAD_SOURCE,
    DEFAULT_OPPORTUNITY_SOURCE,
    DEFAULT_OPPORTUNITY_STAGE,
    DEFAULT_OPPORTUNITY_SUB_SOURCE,
    OPPORTUNITY_SOURCES,
    PIPELINE_STAGES,
)
from app.core.exceptions import (
    CRMError,
    ContactNotFoundError,
    DataStoreUnavailableError,
    OpportunityNotFoundError,
    TransientError,
)
from app.repositories.activity_repository import ActivityRepository
from app.repositories.communication_repository import CommunicationRepository
from app.repositories.follow_up_repository import FollowUpRepository
from app.repositories.lead_repository import LeadRepository
from app.repositories.opportunity_repository import OpportunityRepository
from app.schemas.email import EmailRecord
from app.schemas.email_rule import (
    AssignCategoryAction,
    CreateActivityAction,
    CreateCommissionSnapshotAction,
    CreateContactAction,
    CreateFollowupAction,
    CreateLeadAction,
    CreateOpportunityAction,
    InvalidAction,
    LinkToOpportunityAction,
    MarkOpportunityWonAction,
    RuleAction,
    UpdateOpportunityStageAction,
)
from app.schemas.processing import ActionResult
from app.services.category_mapper import CategoryMapper
from app.services.commission_service import CommissionService
from app.services.contact_store import (
    ContactStore,
    default_contact_name,
    is_valid_address,
)
from app.services.opportunity_service import OpportunityService

logger = logging.getLogger(__name__)

_DESCRIPTION_PREVIEW_CHARS = 500

# (created_entity_id, created)
Outcome = Tuple[Optional[int], bool]


@dataclass
class ActionContext:
    """State shared by the actions of one matched rule.

    Seeded from the email before the first rule runs; ids resolved by one
    action (a new contact, a new opportunity) are visible to the later
    actions of the same rule only.
    """

    rule_id: int
    rule_name: str
    communication_id: int
    contact_id: Optional[int] = None
    opportunity_id: Optional[int] = None
    categories: List[str] = field(default_factory=list)
    # CRM field values from assign_category awaiting an opportunity
    staged_fields: Dict[str, str] = field(default_factory=dict)
    changed_by: str = "email_rules"

    @classmethod
    def for_rule(cls, rule_id: int, rule_name: str, email: EmailRecord) -> "ActionContext":
        return cls(
            rule_id=rule_id,
            rule_name=rule_name,
            communication_id=email.id,
            contact_id=email.contact_id,
            opportunity_id=email.opportunity_id,
            categories=list(email.categories),
            changed_by=f"rule:{rule_name}",
        )


def render(template: Optional[str], email: EmailRecord) -> Optional[str]:
    """Substitute ``{{subject}}`` and ``{{from_email}}`` in *template*."""
    if template is None:
        return None
    return template.replace("{{subject}}", email.subject or "").replace(
        "{{from_email}}", email.from_address or ""
    )


def counterpart_address(email: EmailRecord) -> Optional[str]:
    """The other party's address: the sender inbound, first recipient outbound."""
    if email.direction.value == "outbound":
        recipients = (email.to_address or "").replace(";", ",").split(",")
        return recipients[0].strip() or None
    return email.from_address


def inbound_name(email: EmailRecord) -> Optional[str]:
    """Sender display name; only meaningful for inbound mail."""
    return email.from_name if email.direction.value == "inbound" else None


class ActionExecutor:
    """Runs one typed rule action against one email."""

    def __init__(
        self,
        communication_repo: CommunicationRepository,
        opportunity_repo: OpportunityRepository,
        activity_repo: ActivityRepository,
        follow_up_repo: FollowUpRepository,
        lead_repo: LeadRepository,
        contact_store: ContactStore,
        category_mapper: CategoryMapper,
        opportunity_service: OpportunityService,
        commission_service: CommissionService,
    ) -> None:
        self._communications = communication_repo
        self._opportunities = opportunity_repo
        self._activities = activity_repo
        self._follow_ups = follow_up_repo
        self._leads = lead_repo
        self._contacts = contact_store
        self._categories = category_mapper
        self._opportunity_service = opportunity_service
        self._commission = commission_service

        self._handlers: Dict[str, Callable[[Any, EmailRecord, ActionContext], Awaitable[Outcome]]] = {
            "assign_category": self._assign_category,
            "create_contact": self._create_contact,
            "create_opportunity": self._create_opportunity,
            "create_lead": self._create_lead,
            "create_activity": self._create_activity,
            "create_followup": self._create_followup,
            "update_opportunity_stage": self._update_opportunity_stage,
            "link_to_opportunity": self._link_to_opportunity,
            "mark_opportunity_won": self._mark_opportunity_won,
            "create_commission_snapshot": self._create_commission_snapshot,
        }

    async def execute(
        self, action: RuleAction, email: EmailRecord, context: ActionContext
    ) -> ActionResult:
        """Execute *action*, never raising for an expected failure.

        Raises:
            DataStoreUnavailableError: the database connection failed.
        """
        action_type = (
            action.declared_type if isinstance(action, InvalidAction) else action.type
        )

        def failed(error: str, error_type: str) -> ActionResult:
            return ActionResult(
                rule_id=context.rule_id,
                rule_name=context.rule_name,
                action_type=action_type,
                success=False,
                error=error,
                error_type=error_type,
            )

        if isinstance(action, InvalidAction):
            logger.warning(
                "Rule %s action %s is misconfigured: %s",
                context.rule_id,
                action.declared_type,
                action.error,
            )
            return failed(action.error, "configuration")

        handler = self._handlers[action_type]
        try:
            async with self._communications.savepoint():
                entity_id, created = await handler(action, email, context)
        except TransientError:
            raise
        except CRMError as exc:
            logger.warning(
                "Rule %s action %s failed on email %s: %s",
                context.rule_id,
                action_type,
                context.communication_id,
                exc.detail,
            )
            return failed(exc.detail, exc.kind)
        except (OperationalError, InterfaceError) as exc:
            logger.error(
                "Database unavailable while running %s on email %s",
                action_type,
                context.communication_id,
            )
            raise DataStoreUnavailableError(str(exc.orig or exc)) from exc
        except SQLAlchemyError as exc:
            logger.error(
                "Rule %s action %s hit a database error on email %s",
                context.rule_id,
                action_type,
                context.communication_id,
                exc_info=True,
            )
            return failed(str(getattr(exc, "orig", None) or exc), "database")

        return ActionResult(
            rule_id=context.rule_id,
            rule_name=context.rule_name,
            action_type=action_type,
            success=True,
            created_entity_id=entity_id,
            created=created,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_contact(self, context: ActionContext, action_type: str) -> int:
        if context.contact_id is None:
            raise ContactNotFoundError(
                f"{action_type} needs a resolved contact; the sender is unknown"
            )
        return context.contact_id

    async def _resolve_opportunity(
        self,
        explicit_id: Optional[int],
        context: ActionContext,
        fallback_to_latest: bool = False,
    ) -> int:
        """Pick the target opportunity: explicit id, then rule context,
        then (optionally) the contact's most recent open opportunity."""
        if explicit_id is not None:
            if await self._opportunities.get(explicit_id) is None:
                raise OpportunityNotFoundError(f"Opportunity {explicit_id} not found")
            return explicit_id
        if context.opportunity_id is not None:
            return context.opportunity_id
        if fallback_to_latest and context.contact_id is not None:
            latest = await self._opportunities.latest_open_for_contact(context.contact_id)
            if latest is not None:
                return latest.id
        raise OpportunityNotFoundError("No opportunity resolved for this email")

    async def _link_email(self, context: ActionContext, **links: Any) -> None:
        await self._communications.update_fields(context.communication_id, **links)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _assign_category(
        self, action: AssignCategoryAction, email: EmailRecord, context: ActionContext
    ) -> Outcome:
        categories = await self._communications.add_category(
            context.communication_id, action.category
        )
        mapping = await self._categories.map_category_to_field(action.category)
        if mapping is None:
            context.categories = categories
            return None, False

        field_name = mapping.crm_field_type.value
        target = None
        if context.opportunity_id is not None:
            current = await self._opportunities.get(context.opportunity_id)
            if current is not None and current.status == "open":
                target = current.id
        elif context.contact_id is not None:
            latest = await self._opportunities.latest_open_for_contact(context.contact_id)
            target = latest.id if latest is not None else None

        if target is None:
            context.categories = categories
            context.staged_fields[field_name] = mapping.crm_field_value
            return None, False

        await self._opportunity_service.apply_field(
            target, field_name, mapping.crm_field_value, context.changed_by
        )
        context.categories = categories
        context.opportunity_id = target
        return target, False

    async def _create_contact(
        self, action: CreateContactAction, email: EmailRecord, context: ActionContext
    ) -> Outcome:
        address = counterpart_address(email)
        if not is_valid_address(address):
            raise ContactNotFoundError(f"No usable email address on email {email.id}")

        contact = await self._contacts.find_by_email(address)
        created = False
        if contact is None:
            contact = await self._contacts.create(
                {
                    "email": address,
                    "name": render(action.name, email)
                    or default_contact_name(address.strip(), inbound_name(email)),
                    "contact_type": action.contact_type.value,
                }
            )
            created = True

        if context.contact_id is None:
            await self._link_email(context, contact_id=contact.id)
        context.contact_id = contact.id
        return contact.id, created

    async def _create_opportunity(
        self, action: CreateOpportunityAction, email: EmailRecord, context: ActionContext
    ) -> Outcome:
        contact_id = self._require_contact(context, action.type)

        mapped = await self._categories.map_categories_to_crm_fields(context.categories)
        derived = {**mapped, **context.staged_fields}

        source = action.source.value if action.source else derived.get("source")
        if source not in OPPORTUNITY_SOURCES:
            if source is not None:
                logger.warning("Ignoring unknown mapped source %r", source)
            source = DEFAULT_OPPORTUNITY_SOURCE
        stage = derived.get("stage")
        if stage not in PIPELINE_STAGES:
            stage = DEFAULT_OPPORTUNITY_STAGE

        title = render(action.title, email) or email.subject
        if not title or not title.strip():
            title = f"Email from {email.from_address or 'unknown sender'}"

        description = render(action.description, email)
        if description is None and email.body:
            description = email.body[:_DESCRIPTION_PREVIEW_CHARS]

        opportunity = await self._opportunities.create(
            contact_id=contact_id,
            title=title.strip(),
            source=source,
            sub_source=action.sub_source or derived.get("sub_source") or DEFAULT_OPPORTUNITY_SUB_SOURCE,
            stage=stage,
            status="open",
            assigned_to=action.assigned_to or settings.DEFAULT_OPPORTUNITY_OWNER,
            value=action.value,
            currency=settings.DEFAULT_CURRENCY,
            description=description,
            conversation_id=email.conversation_id,
        )
        await self._link_email(context, opportunity_id=opportunity.id)
        context.opportunity_id = opportunity.id
        context.staged_fields.clear()
        logger.info(
            "Rule %s opened opportunity %s (source=%s) from email %s",
            context.rule_id,
            opportunity.id,
            source,
            context.communication_id,
        )
        return opportunity.id, True

    async def _create_lead(
        self, action: CreateLeadAction, email: EmailRecord, context: ActionContext
    ) -> Outcome:
        """Raise a lead for the sender, creating the contact when needed.

        A thread already carrying a lead for the contact reuses it.  Mail
        outside a thread reuses a lead with the same contact and source
        raised within ``LEAD_DUPLICATE_WINDOW_DAYS``.
        """
        if context.contact_id is None:
            await self._create_contact(
                CreateContactAction(contact_type=action.contact_type), email, context
            )
        contact_id = context.contact_id
        source = action.source.value if action.source else DEFAULT_LEAD_SOURCE

        if email.conversation_id:
            existing = await self._leads.find_for_conversation(
                contact_id, email.conversation_id
            )
        else:
            since = datetime.now(timezone.utc) - timedelta(
                days=settings.LEAD_DUPLICATE_WINDOW_DAYS
            )
            existing = await self._leads.find_duplicate(contact_id, source, since)
        if existing is not None:
            logger.info(
                "Lead %s already covers contact %s; email %s adds none",
                existing.id,
                contact_id,
                context.communication_id,
            )
            return existing.id, False

        lead = await self._leads.create(
            contact_id=contact_id,
            communication_id=context.communication_id,
            source=source,
            status=action.status.value,
            assigned_to=action.assigned_to or settings.DEFAULT_OPPORTUNITY_OWNER,
            notes=render(action.notes, email)
            or f"Lead created from email: {email.subject or '(No Subject)'}",
            value=action.value,
            conversation_id=email.conversation_id,
        )
        logger.info(
            "Rule %s raised lead %s (source=%s) from email %s",
            context.rule_id,
            lead.id,
            source,
            context.communication_id,
        )
        return lead.id, True

    async def _create_activity(
        self, action: CreateActivityAction, email: EmailRecord, context: ActionContext
    ) -> Outcome:
        contact_id = self._require_contact(context, action.type)
        direction = email.direction.value
        if action.activity_type is not None:
            activity_type = action.activity_type.value
        else:
            activity_type = "email_sent" if direction == "outbound" else "email_received"

        existing = await self._activities.find_for_communication(
            context.communication_id, activity_type
        )
        if existing is not None:
            return existing.id, False

        activity = await self._activities.create(
            contact_id=contact_id,
            opportunity_id=context.opportunity_id,
            communication_id=context.communication_id,
            type=activity_type,
            description=render(action.description, email) or email.subject,
            direction=direction,
            user=action.user,
            conversation_id=email.conversation_id,
            message_id=email.message_id,
            occurred_at=email.occurred_at or datetime.now(timezone.utc),
        )
        return activity.id, True

    async def _create_followup(
        self, action: CreateFollowupAction, email: EmailRecord, context: ActionContext
    ) -> Outcome:
        contact_id = self._require_contact(context, action.type)
        existing = await self._follow_ups.find_open_for_communication(
            context.communication_id
        )
        if existing is not None:
            return existing.id, False

        now = datetime.now(timezone.utc)
        if action.due_date is not None:
            scheduled = action.due_date
        elif action.days_offset is not None:
            scheduled = now + timedelta(days=action.days_offset)
        elif email.flag_due_date is not None:
            scheduled = email.flag_due_date
        else:
            scheduled = now + timedelta(days=settings.FOLLOW_UP_DEFAULT_DAYS)

        lead = await self._leads.latest_for_contact(contact_id)

        follow_up = await self._follow_ups.create(
            contact_id=contact_id,
            opportunity_id=context.opportunity_id,
            lead_id=lead.id if lead is not None else None,
            communication_id=context.communication_id,
            scheduled_date=scheduled,
            type=action.followup_type,
            notes=render(action.notes, email),
        )
        return follow_up.id, True

    async def _update_opportunity_stage(
        self,
        action: UpdateOpportunityStageAction,
        email: EmailRecord,
        context: ActionContext,
    ) -> Outcome:
        opportunity_id = await self._resolve_opportunity(action.opportunity_id, context)
        await self._opportunity_service.update_stage(
            opportunity_id, action.stage.value, context.changed_by
        )
        context.opportunity_id = opportunity_id
        return opportunity_id, False

    async def _link_to_opportunity(
        self, action: LinkToOpportunityAction, email: EmailRecord, context: ActionContext
    ) -> Outcome:
        opportunity_id = await self._resolve_opportunity(
            action.opportunity_id, context, fallback_to_latest=True
        )
        if await self._opportunities.get(opportunity_id) is None:
            raise OpportunityNotFoundError(f"Opportunity {opportunity_id} not found")
        await self._link_email(context, opportunity_id=opportunity_id)
        context.opportunity_id = opportunity_id
        return opportunity_id, False

    async def _mark_opportunity_won(
        self, action: MarkOpportunityWonAction, email: EmailRecord, context: ActionContext
    ) -> Outcome:
        opportunity_id = await self._resolve_opportunity(action.opportunity_id, context)
        change = await self._opportunity_service.mark_won(
            opportunity_id, action.changed_by or context.changed_by
        )
        context.opportunity_id = opportunity_id
        return change.snapshot.id if change.snapshot else opportunity_id, True

    async def _create_commission_snapshot(
        self,
        action: CreateCommissionSnapshotAction,
        email: EmailRecord,
        context: ActionContext,
    ) -> Outcome:
        opportunity_id = await self._resolve_opportunity(action.opportunity_id, context)
        snapshot = await self._commission.create_snapshot(
            opportunity_id,
            locked_by=context.changed_by,
            final_value=action.final_value,
            commissionable_amount=action.commissionable_amount,
            products=action.products,
            owner=action.owner,
        )
        return snapshot.id, True

