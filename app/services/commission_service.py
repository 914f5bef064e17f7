import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.exc import IntegrityError

from app.core.config import settings
from app.core.constants import EVIDENCE_AUDIT_FIELDS
from app.core.exceptions import (
    ConflictError,
    DuplicateCommissionSnapshotError,
    NotFoundError,
    OpportunityNotFoundError,
)
from app.models.commission_snapshot import CommissionSnapshot
from app.repositories.activity_repository import ActivityRepository
from app.repositories.audit_trail_repository import AuditTrailRepository
from app.repositories.commission_snapshot_repository import (
    CommissionSnapshotRepository,
)
from app.repositories.communication_repository import CommunicationRepository
from app.repositories.dispute_repository import DisputeRepository
from app.repositories.opportunity_repository import OpportunityRepository
from app.schemas.commission import (
    ActivityOut,
    CommissionSnapshotOut,
    CommunicationSummary,
    EvidenceReport,
    OriginSummary,
)
from app.schemas.dispute import DisputeOut
from app.schemas.opportunity import AuditTrailEntryOut, OpportunityOut

logger = logging.getLogger(__name__)


class CommissionService:
    """Commission snapshots and the evidence report built around them."""

    def __init__(
        self,
        snapshot_repo: CommissionSnapshotRepository,
        opportunity_repo: OpportunityRepository,
        activity_repo: ActivityRepository,
        audit_repo: AuditTrailRepository,
        communication_repo: CommunicationRepository,
        dispute_repo: DisputeRepository,
    ) -> None:
        self._snapshots = snapshot_repo
        self._opportunities = opportunity_repo
        self._activities = activity_repo
        self._audit = audit_repo
        self._communications = communication_repo
        self._disputes = dispute_repo

    async def create_snapshot(
        self,
        opportunity_id: int,
        locked_by: Optional[str] = None,
        final_value: Optional[float] = None,
        commissionable_amount: Optional[float] = None,
        products: Optional[str] = None,
        owner: Optional[str] = None,
    ) -> CommissionSnapshot:
        """Freeze the commission-relevant state of a won opportunity.

        The first touch is the contact's earliest recorded activity.

        Raises:
            OpportunityNotFoundError: unknown opportunity.
            ConflictError: the opportunity is not won.
            DuplicateCommissionSnapshotError: a snapshot already exists;
                it is left as it is.
        """
        opportunity = await self._opportunities.get(opportunity_id)
        if opportunity is None:
            raise OpportunityNotFoundError(f"Opportunity {opportunity_id} not found")
        if opportunity.status != "won":
            raise ConflictError(
                f"Opportunity {opportunity_id} is {opportunity.status}; "
                "a commission snapshot requires a won opportunity"
            )
        if await self._snapshots.get_for_opportunity(opportunity_id) is not None:
            raise DuplicateCommissionSnapshotError(
                f"Opportunity {opportunity_id} already has a commission snapshot"
            )

        first_touch = await self._activities.find_first_touch(opportunity.contact_id)
        value = final_value if final_value is not None else opportunity.value

        try:
            async with self._snapshots.savepoint():
                snapshot = await self._snapshots.create(
                    opportunity_id=opportunity_id,
                    final_value=value,
                    commissionable_amount=(
                        commissionable_amount if commissionable_amount is not None else value
                    ),
                    currency=opportunity.currency or settings.DEFAULT_CURRENCY,
                    products=products,
                    owner=owner or opportunity.assigned_to or settings.DEFAULT_OPPORTUNITY_OWNER,
                    source=opportunity.source,
                    sub_source=opportunity.sub_source,
                    first_touch_date=first_touch.occurred_at if first_touch else None,
                    first_touch_type=first_touch.type if first_touch else None,
                    closed_at=opportunity.closed_at or datetime.now(timezone.utc),
                    locked_by=locked_by,
                )
        except IntegrityError as exc:
            # Another writer inserted first
            raise DuplicateCommissionSnapshotError(
                f"Opportunity {opportunity_id} already has a commission snapshot"
            ) from exc

        logger.info(
            "Commission snapshot %s locked for opportunity %s",
            snapshot.id,
            opportunity_id,
        )
        return snapshot

    async def get_snapshot(self, opportunity_id: int) -> CommissionSnapshot:
        snapshot = await self._snapshots.get_for_opportunity(opportunity_id)
        if snapshot is None:
            raise NotFoundError(
                f"No commission snapshot for opportunity {opportunity_id}"
            )
        return snapshot

    async def list_snapshots(
        self,
        owner: Optional[str] = None,
        closed_from: Optional[datetime] = None,
        closed_to: Optional[datetime] = None,
    ) -> List[CommissionSnapshot]:
        return await self._snapshots.list_snapshots(
            owner=owner, closed_from=closed_from, closed_to=closed_to
        )

    async def evidence_report(self, opportunity_id: int) -> EvidenceReport:
        """Assemble the commission evidence for one opportunity.

        Covers the opportunity itself, its snapshot (if won), where it
        came from, every activity and email tied to it, the audit trail
        of the commission-relevant fields and any disputes raised.
        """
        opportunity = await self._opportunities.get(opportunity_id)
        if opportunity is None:
            raise OpportunityNotFoundError(f"Opportunity {opportunity_id} not found")

        snapshot = await self._snapshots.get_for_opportunity(opportunity_id)
        activities = await self._activities.list_for_opportunity(
            opportunity_id, contact_id=opportunity.contact_id
        )
        communications = await self._communications.list_for_opportunity(opportunity_id)
        audit_entries = await self._audit.list_for_opportunity(
            opportunity_id, field_names=EVIDENCE_AUDIT_FIELDS
        )
        disputes = await self._disputes.list_disputes(opportunity_id=opportunity_id)

        if snapshot is not None:
            origin = OriginSummary(
                source=snapshot.source,
                sub_source=snapshot.sub_source,
                first_touch_date=snapshot.first_touch_date,
                first_touch_type=snapshot.first_touch_type,
            )
        else:
            first_touch = await self._activities.find_first_touch(opportunity.contact_id)
            origin = OriginSummary(
                source=opportunity.source,
                sub_source=opportunity.sub_source,
                first_touch_date=first_touch.occurred_at if first_touch else None,
                first_touch_type=first_touch.type if first_touch else None,
            )

        return EvidenceReport(
            opportunity=OpportunityOut.model_validate(opportunity),
            snapshot=CommissionSnapshotOut.model_validate(snapshot) if snapshot else None,
            origin=origin,
            activities=[ActivityOut.model_validate(a) for a in activities],
            communications=[CommunicationSummary.model_validate(c) for c in communications],
            audit_trail=[AuditTrailEntryOut.model_validate(e) for e in audit_entries],
            disputes=[DisputeOut.model_validate(d) for d in disputes],
            generated_at=datetime.now(timezone.utc),
        )
