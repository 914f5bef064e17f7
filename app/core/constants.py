from typing import Dict, FrozenSet, List

from app.schemas.common import (
    ActivityType,
    ContactType,
    CrmFieldType,
    DisputeStatus,
    LeadStatus,
    OpportunitySource,
    OpportunityStatus,
    PipelineStage,
)

CONTACT_TYPES: FrozenSet[str] = frozenset(t.value for t in ContactType)
DEFAULT_CONTACT_TYPE: str = ContactType.OTHER.value

OPPORTUNITY_SOURCES: FrozenSet[str] = frozenset(s.value for s in OpportunitySource)
OPPORTUNITY_STATUSES: FrozenSet[str] = frozenset(s.value for s in OpportunityStatus)
PIPELINE_STAGES: FrozenSet[str] = frozenset(s.value for s in PipelineStage)

# Fallbacks when neither the rule nor the email categories name a source
DEFAULT_OPPORTUNITY_SOURCE: str = OpportunitySource.FORWARDED.value
DEFAULT_OPPORTUNITY_SUB_SOURCE: str = "Email"
DEFAULT_OPPORTUNITY_STAGE: str = PipelineStage.NEW.value

LEAD_STATUSES: FrozenSet[str] = frozenset(s.value for s in LeadStatus)
DEFAULT_LEAD_SOURCE: str = OpportunitySource.WEBFORM.value

ALLOWED_TRANSITIONS: Dict[str, List[str]] = {
    "open": ["won", "lost"],
    "won": ["reversed"],
    "lost": [],  # terminal
    "reversed": [],  # terminal
}

ACTIVITY_TYPES: FrozenSet[str] = frozenset(t.value for t in ActivityType)
DIRECTIONS: FrozenSet[str] = frozenset({"inbound", "outbound"})

CRM_FIELD_TYPES: FrozenSet[str] = frozenset(t.value for t in CrmFieldType)

DISPUTE_STATUSES: FrozenSet[str] = frozenset(s.value for s in DisputeStatus)
DISPUTE_TRANSITIONS: Dict[str, List[str]] = {
    "open": ["resolved", "rejected"],
    "resolved": [],
    "rejected": [],
}

# Opportunity fields whose changes appear in the commission evidence report
EVIDENCE_AUDIT_FIELDS: FrozenSet[str] = frozenset(
    {"status", "assigned_to", "value", "source", "sub_source"}
)

SQL_CHECK_TEMPLATE: str = "{col} IN ({values})"


def check_clause(column: str, values: FrozenSet[str]) -> str:
    """Build a SQL ``IN`` CHECK clause from a constant set."""
    return SQL_CHECK_TEMPLATE.format(
        col=column, values=", ".join(repr(v) for v in sorted(values))
    )
