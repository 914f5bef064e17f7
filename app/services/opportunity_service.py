import logging
from dataclasses import dataclass, field
from typing import List, Optional

from app.core.constants import (
    ALLOWED_TRANSITIONS,
    OPPORTUNITY_SOURCES,
    PIPELINE_STAGES,
)
from app.core.exceptions import (
    ConfigurationError,
    InvalidStatusTransitionError,
    OpportunityNotFoundError,
)
from app.core.locks import opportunity_lock
from app.models.audit_trail import AuditTrailEntry
from app.models.base import utcnow
from app.models.commission_snapshot import CommissionSnapshot
from app.models.opportunity import Opportunity
from app.repositories.audit_trail_repository import AuditTrailRepository
from app.repositories.opportunity_repository import OpportunityRepository
from app.services.commission_service import CommissionService

logger = logging.getLogger(__name__)


@dataclass
class StatusChange:
    opportunity: Opportunity
    snapshot: Optional[CommissionSnapshot] = None
    audit_entries: List[AuditTrailEntry] = field(default_factory=list)


class OpportunityService:
    """Guarded opportunity mutations, each recorded in the audit trail.

    Status moves only along ``ALLOWED_TRANSITIONS``.  Winning an
    opportunity and locking its commission snapshot happen together or
    not at all.  A rejected change writes nothing, audit trail included.

    Methods here never commit; callers own the transaction.
    """

    def __init__(
        self,
        opportunity_repo: OpportunityRepository,
        audit_repo: AuditTrailRepository,
        commission_service: CommissionService,
    ) -> None:
        self._opportunities = opportunity_repo
        self._audit = audit_repo
        self._commission = commission_service

    async def get(self, opportunity_id: int) -> Opportunity:
        opportunity = await self._opportunities.get(opportunity_id)
        if opportunity is None:
            raise OpportunityNotFoundError(f"Opportunity {opportunity_id} not found")
        return opportunity

    async def update_stage(
        self, opportunity_id: int, stage: str, changed_by: Optional[str]
    ) -> Opportunity:
        """Move an open opportunity to *stage*; a no-op if already there."""
        if stage not in PIPELINE_STAGES:
            raise ConfigurationError(f"Unknown pipeline stage {stage!r}")

        opportunity = await self.get(opportunity_id)
        if opportunity.status != "open":
            raise InvalidStatusTransitionError(
                f"Opportunity {opportunity_id} is {opportunity.status}; "
                "only open opportunities can change stage"
            )
        old_stage = opportunity.stage
        if old_stage == stage:
            return opportunity

        if not await self._opportunities.update_if_status(
            opportunity_id, "open", stage=stage
        ):
            raise InvalidStatusTransitionError(
                f"Opportunity {opportunity_id} was closed concurrently"
            )
        await self._audit.append(opportunity_id, "stage", old_stage, stage, changed_by)
        logger.info(
            "Opportunity %s stage %s -> %s (%s)", opportunity_id, old_stage, stage, changed_by
        )
        return await self.get(opportunity_id)

    async def apply_field(
        self, opportunity_id: int, field_name: str, value: str, changed_by: Optional[str]
    ) -> Opportunity:
        """Set a category-derived field (source, sub_source or stage)."""
        if field_name == "stage":
            return await self.update_stage(opportunity_id, value, changed_by)
        if field_name == "source" and value not in OPPORTUNITY_SOURCES:
            raise ConfigurationError(f"Unknown opportunity source {value!r}")
        if field_name not in ("source", "sub_source"):
            raise ConfigurationError(f"Cannot map a category onto {field_name!r}")

        opportunity = await self.get(opportunity_id)
        if opportunity.status != "open":
            raise InvalidStatusTransitionError(
                f"Opportunity {opportunity_id} is {opportunity.status}; "
                "only open opportunities can be re-categorised"
            )
        old_value = getattr(opportunity, field_name)
        if old_value == value:
            return opportunity

        await self._opportunities.update_fields(opportunity_id, **{field_name: value})
        await self._audit.append(opportunity_id, field_name, old_value, value, changed_by)
        return await self.get(opportunity_id)

    async def transition(
        self,
        opportunity_id: int,
        new_status: str,
        changed_by: Optional[str],
        reason: Optional[str] = None,
        final_value: Optional[float] = None,
        commissionable_amount: Optional[float] = None,
        products: Optional[str] = None,
        owner: Optional[str] = None,
    ) -> StatusChange:
        """Apply a status transition.

        Steps:
        1. Take the per-opportunity lock and validate the transition.
        2. Conditional UPDATE on the expected current status.
        3. Audit the status (and reversal reason).
        4. On ``won``, lock the commission snapshot.

        Steps 2-4 share a SAVEPOINT, so a failed snapshot undoes the
        status change.

        Raises:
            OpportunityNotFoundError: unknown opportunity.
            InvalidStatusTransitionError: the transition is not allowed
                from the current status.
            DuplicateCommissionSnapshotError: the opportunity already has
                a snapshot.
        """
        async with opportunity_lock(opportunity_id):
            opportunity = await self.get(opportunity_id)
            old_status = opportunity.status
            if new_status not in ALLOWED_TRANSITIONS.get(old_status, []):
                raise InvalidStatusTransitionError(
                    f"Cannot transition opportunity {opportunity_id} "
                    f"from {old_status} to {new_status}"
                )

            values = {"status": new_status}
            if new_status in ("won", "lost"):
                values["closed_at"] = utcnow()
            if new_status == "reversed":
                values["reversed_reason"] = reason

            entries: List[AuditTrailEntry] = []
            snapshot = None
            async with self._opportunities.savepoint():
                if not await self._opportunities.update_if_status(
                    opportunity_id, old_status, **values
                ):
                    raise InvalidStatusTransitionError(
                        f"Opportunity {opportunity_id} changed status concurrently"
                    )
                entries.append(
                    await self._audit.append(
                        opportunity_id, "status", old_status, new_status, changed_by
                    )
                )
                if new_status == "reversed" and reason:
                    entries.append(
                        await self._audit.append(
                            opportunity_id, "reversed_reason", None, reason, changed_by
                        )
                    )
                if new_status == "won":
                    snapshot = await self._commission.create_snapshot(
                        opportunity_id,
                        locked_by=changed_by,
                        final_value=final_value,
                        commissionable_amount=commissionable_amount,
                        products=products,
                        owner=owner,
                    )

            logger.info(
                "Opportunity %s status %s -> %s (%s)",
                opportunity_id,
                old_status,
                new_status,
                changed_by,
            )
            return StatusChange(
                opportunity=await self.get(opportunity_id),
                snapshot=snapshot,
                audit_entries=entries,
            )

    async def mark_won(
        self, opportunity_id: int, changed_by: Optional[str], **snapshot_fields
    ) -> StatusChange:
        return await self.transition(
            opportunity_id, "won", changed_by, **snapshot_fields
        )

    async def change_status(self, opportunity_id: int, new_status: str, **kwargs) -> StatusChange:
        """Transition and commit; the entry point for API callers."""
        try:
            change = await self.transition(opportunity_id, new_status, **kwargs)
        except Exception:
            await self._opportunities.rollback()
            raise
        await self._opportunities.commit()
        return change

    async def audit_trail(
        self, opportunity_id: int, field_name: Optional[str] = None
    ) -> List[AuditTrailEntry]:
        await self.get(opportunity_id)
        return await self._audit.list_for_opportunity(opportunity_id, field_name=field_name)
