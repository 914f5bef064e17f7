import logging
from datetime import datetime, timezone
from typing import List, Optional

from app.core.constants import DISPUTE_TRANSITIONS
from app.core.exceptions import (
    DisputeNotFoundError,
    InvalidStatusTransitionError,
    NotFoundError,
    OpportunityNotFoundError,
)
from app.models.dispute import Dispute
from app.repositories.commission_snapshot_repository import (
    CommissionSnapshotRepository,
)
from app.repositories.dispute_repository import DisputeRepository
from app.repositories.opportunity_repository import OpportunityRepository
from app.schemas.dispute import DisputeCreate, DisputeResolve

logger = logging.getLogger(__name__)


class DisputeService:
    """Raise and settle commission disputes (open -> resolved | rejected)."""

    def __init__(
        self,
        dispute_repo: DisputeRepository,
        opportunity_repo: OpportunityRepository,
        snapshot_repo: CommissionSnapshotRepository,
    ) -> None:
        self._disputes = dispute_repo
        self._opportunities = opportunity_repo
        self._snapshots = snapshot_repo

    async def create(self, data: DisputeCreate) -> Dispute:
        if await self._opportunities.get(data.opportunity_id) is None:
            raise OpportunityNotFoundError(
                f"Opportunity {data.opportunity_id} not found"
            )

        snapshot_id = data.commission_snapshot_id
        if snapshot_id is not None:
            snapshot = await self._snapshots.get(snapshot_id)
            if snapshot is None or snapshot.opportunity_id != data.opportunity_id:
                raise NotFoundError(
                    f"Commission snapshot {snapshot_id} not found "
                    f"for opportunity {data.opportunity_id}"
                )
        else:
            snapshot = await self._snapshots.get_for_opportunity(data.opportunity_id)
            snapshot_id = snapshot.id if snapshot else None

        dispute = await self._disputes.create(
            opportunity_id=data.opportunity_id,
            commission_snapshot_id=snapshot_id,
            nature=data.nature,
            description=data.description,
            supporting_evidence=data.supporting_evidence,
            created_by=data.created_by,
        )
        await self._disputes.commit()
        logger.info(
            "Dispute %s raised on opportunity %s by %s",
            dispute.id,
            data.opportunity_id,
            data.created_by,
        )
        return dispute

    async def list_disputes(
        self, status: Optional[str] = None, opportunity_id: Optional[int] = None
    ) -> List[Dispute]:
        return await self._disputes.list_disputes(
            status=status, opportunity_id=opportunity_id
        )

    async def resolve(self, dispute_id: int, data: DisputeResolve) -> Dispute:
        dispute = await self._disputes.get(dispute_id)
        if dispute is None:
            raise DisputeNotFoundError(f"Dispute {dispute_id} not found")

        target = data.status.value
        if target not in DISPUTE_TRANSITIONS.get(dispute.status, []):
            raise InvalidStatusTransitionError(
                f"Cannot move dispute {dispute_id} from {dispute.status} to {target}"
            )

        dispute = await self._disputes.update(
            dispute,
            status=target,
            resolution=data.resolution,
            resolved_by=data.resolved_by,
            resolved_at=datetime.now(timezone.utc),
        )
        await self._disputes.commit()
        logger.info("Dispute %s %s by %s", dispute_id, target, data.resolved_by)
        return dispute
