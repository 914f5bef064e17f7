import pytest
from sqlalchemy import func, select

from app.core.exceptions import (
    ConflictError,
    DuplicateCommissionSnapshotError,
    InvalidStatusTransitionError,
    OpportunityNotFoundError,
)
from app.models.audit_trail import AuditTrailEntry
from app.models.commission_snapshot import CommissionSnapshot
from app.schemas.common import DisputeStatus
from app.schemas.dispute import DisputeCreate, DisputeResolve


async def _opportunity(stack, **fields):
    contact = await stack.contacts.create(email="client@example.com", name="Client")
    data = {
        "contact_id": contact.id,
        "title": "Summer villa",
        "source": "webform",
        "sub_source": "Website Form",
        "assigned_to": "sam",
        "value": 4500.0,
        "currency": "EUR",
    }
    data.update(fields)
    return await stack.opportunities.create(**data)


async def _audit_count(stack) -> int:
    return await stack.session.scalar(select(func.count()).select_from(AuditTrailEntry))


class TestStatusTransitions:
    @pytest.mark.asyncio
    async def test_won_locks_snapshot_and_audits(self, stack):
        opportunity = await _opportunity(stack)
        await stack.activities.create(
            contact_id=opportunity.contact_id, type="webform_submission", direction="inbound"
        )

        change = await stack.opportunity_service.change_status(
            opportunity.id, "won", changed_by="sam", products="Villa x7 nights"
        )

        assert change.opportunity.status == "won"
        assert change.opportunity.closed_at is not None
        snapshot = change.snapshot
        assert snapshot.final_value == 4500.0
        assert snapshot.commissionable_amount == 4500.0
        assert snapshot.currency == "EUR"
        assert snapshot.owner == "sam"
        assert snapshot.source == "webform"
        assert snapshot.first_touch_type == "webform_submission"
        assert [(e.field_name, e.old_value, e.new_value) for e in change.audit_entries] == [
            ("status", "open", "won")
        ]

    @pytest.mark.asyncio
    async def test_lost_writes_no_snapshot(self, stack):
        opportunity = await _opportunity(stack)
        change = await stack.opportunity_service.change_status(
            opportunity.id, "lost", changed_by="sam"
        )
        assert change.opportunity.status == "lost"
        assert change.snapshot is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", ["won", "lost"])
    async def test_closed_opportunity_cannot_be_won_again(self, stack, status):
        opportunity = await _opportunity(stack, status=status)

        with pytest.raises(InvalidStatusTransitionError):
            await stack.opportunity_service.mark_won(opportunity.id, "sam")

        assert (await stack.opportunities.get(opportunity.id)).status == status
        assert await stack.snapshots.get_for_opportunity(opportunity.id) is None
        assert await _audit_count(stack) == 0

    @pytest.mark.asyncio
    async def test_reversal_keeps_snapshot_and_records_reason(self, stack):
        opportunity = await _opportunity(stack)
        await stack.opportunity_service.change_status(opportunity.id, "won", changed_by="sam")

        change = await stack.opportunity_service.change_status(
            opportunity.id, "reversed", changed_by="finance", reason="Client cancelled"
        )

        assert change.opportunity.status == "reversed"
        assert change.opportunity.reversed_reason == "Client cancelled"
        assert await stack.snapshots.get_for_opportunity(opportunity.id) is not None
        trail = await stack.opportunity_service.audit_trail(opportunity.id)
        assert [(e.field_name, e.new_value) for e in trail] == [
            ("status", "won"),
            ("status", "reversed"),
            ("reversed_reason", "Client cancelled"),
        ]

    @pytest.mark.asyncio
    async def test_audit_trail_field_filter(self, stack):
        opportunity = await _opportunity(stack)
        await stack.opportunity_service.update_stage(opportunity.id, "proposal", "sam")
        await stack.opportunity_service.change_status(opportunity.id, "lost", changed_by="sam")

        stages = await stack.opportunity_service.audit_trail(opportunity.id, field_name="stage")
        assert [(e.old_value, e.new_value) for e in stages] == [("new", "proposal")]

    @pytest.mark.asyncio
    async def test_unknown_opportunity(self, stack):
        with pytest.raises(OpportunityNotFoundError):
            await stack.opportunity_service.change_status(404, "won", changed_by="sam")


class TestCommissionSnapshots:
    @pytest.mark.asyncio
    async def test_at_most_one_snapshot_per_opportunity(self, stack):
        opportunity = await _opportunity(stack, status="won")

        await stack.commission.create_snapshot(opportunity.id, locked_by="sam")
        with pytest.raises(DuplicateCommissionSnapshotError):
            await stack.commission.create_snapshot(opportunity.id, locked_by="sam")

        count = await stack.session.scalar(
            select(func.count()).select_from(CommissionSnapshot)
        )
        assert count == 1

    @pytest.mark.asyncio
    async def test_snapshot_requires_won_opportunity(self, stack):
        opportunity = await _opportunity(stack)
        with pytest.raises(ConflictError):
            await stack.commission.create_snapshot(opportunity.id)

    @pytest.mark.asyncio
    async def test_snapshots_are_immutable(self, stack):
        opportunity = await _opportunity(stack, status="won")
        snapshot = await stack.commission.create_snapshot(opportunity.id)

        snapshot.final_value = 1.0
        with pytest.raises(ConflictError):
            await stack.session.flush()

    @pytest.mark.asyncio
    async def test_list_snapshots_by_owner(self, stack):
        first = await _opportunity(stack, status="won")
        other_contact = await stack.contacts.create(email="other@example.com")
        second = await stack.opportunities.create(
            contact_id=other_contact.id, title="Other", status="won", assigned_to="alex"
        )
        await stack.commission.create_snapshot(first.id)
        await stack.commission.create_snapshot(second.id)

        owned = await stack.commission.list_snapshots(owner="alex")
        assert [s.opportunity_id for s in owned] == [second.id]

    @pytest.mark.asyncio
    async def test_evidence_report(self, stack):
        opportunity = await _opportunity(stack)
        communication = await stack.communications.create(
            external_id="ev-1",
            subject="Booking confirmed",
            contact_id=opportunity.contact_id,
            opportunity_id=opportunity.id,
        )
        await stack.activities.create(
            contact_id=opportunity.contact_id,
            opportunity_id=opportunity.id,
            communication_id=communication.id,
            type="email_received",
        )
        await stack.opportunity_service.update_stage(opportunity.id, "booking", "sam")
        await stack.opportunity_service.change_status(opportunity.id, "won", changed_by="sam")

        report = await stack.commission.evidence_report(opportunity.id)

        assert report.snapshot is not None
        assert report.origin.source == "webform"
        assert [c.id for c in report.communications] == [communication.id]
        assert len(report.activities) == 1
        # stage changes are not commission evidence
        assert [e.field_name for e in report.audit_trail] == ["status"]


class TestDisputes:
    @pytest.mark.asyncio
    async def test_dispute_defaults_to_opportunity_snapshot(self, stack):
        opportunity = await _opportunity(stack)
        change = await stack.opportunity_service.change_status(
            opportunity.id, "won", changed_by="sam"
        )

        dispute = await stack.dispute_service.create(
            DisputeCreate(
                opportunity_id=opportunity.id,
                nature="value",
                description="Commission should include the transfer fee",
            )
        )

        assert dispute.status == "open"
        assert dispute.commission_snapshot_id == change.snapshot.id

    @pytest.mark.asyncio
    async def test_resolve_once_only(self, stack):
        opportunity = await _opportunity(stack)
        dispute = await stack.dispute_service.create(
            DisputeCreate(opportunity_id=opportunity.id, nature="owner", description="Wrong owner")
        )

        resolved = await stack.dispute_service.resolve(
            dispute.id,
            DisputeResolve(status=DisputeStatus.resolved, resolution="Owner fixed", resolved_by="finance"),
        )
        assert resolved.status == "resolved"
        assert resolved.resolved_at is not None

        with pytest.raises(InvalidStatusTransitionError):
            await stack.dispute_service.resolve(
                dispute.id, DisputeResolve(status=DisputeStatus.rejected)
            )

    @pytest.mark.asyncio
    async def test_unknown_opportunity(self, stack):
        with pytest.raises(OpportunityNotFoundError):
            await stack.dispute_service.create(
                DisputeCreate(opportunity_id=77, nature="value", description="?")
            )
