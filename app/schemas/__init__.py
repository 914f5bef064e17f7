"""Pydantic schemas package – re-exports for convenience."""

# Common enums
from app.schemas.common import (
    ContactType as ContactType,
    OpportunitySource as OpportunitySource,
    OpportunityStatus as OpportunityStatus,
    PipelineStage as PipelineStage,
    ActivityType as ActivityType,
    Direction as Direction,
    CrmFieldType as CrmFieldType,
    DisputeStatus as DisputeStatus,
    SuccessResponse as SuccessResponse,
)

# Rule schemas
from app.schemas.email_rule import (
    Rule as Rule,
    EmailRuleCreate as EmailRuleCreate,
    EmailRuleUpdate as EmailRuleUpdate,
    EmailRuleOut as EmailRuleOut,
    RuleTestResponse as RuleTestResponse,
)

# Email schemas
from app.schemas.email import (
    EmailRecordIn as EmailRecordIn,
    EmailRecord as EmailRecord,
    SampleEmail as SampleEmail,
)

# Processing results
from app.schemas.processing import (
    ActionResult as ActionResult,
    RuleEngineResult as RuleEngineResult,
    ProcessingResult as ProcessingResult,
    BatchProcessingResult as BatchProcessingResult,
    EmailSyncRequest as EmailSyncRequest,
)

# Category mapping schemas
from app.schemas.category import (
    CategoryFieldMapping as CategoryFieldMapping,
    CategoryMappingOut as CategoryMappingOut,
)

# Opportunity / commission / dispute schemas
from app.schemas.opportunity import (
    OpportunityOut as OpportunityOut,
    StatusUpdateRequest as StatusUpdateRequest,
    StatusChangeResponse as StatusChangeResponse,
    AuditTrailEntryOut as AuditTrailEntryOut,
)
from app.schemas.dispute import (
    DisputeCreate as DisputeCreate,
    DisputeResolve as DisputeResolve,
    DisputeOut as DisputeOut,
)
from app.schemas.commission import (
    CommissionSnapshotOut as CommissionSnapshotOut,
    EvidenceReport as EvidenceReport,
)
