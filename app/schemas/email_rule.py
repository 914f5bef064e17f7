"""Typed email-rule schemas: conditions, actions, rules.

Conditions and actions are closed tagged unions keyed on ``type``.  Each
member carries only the fields its type needs, so a missing required
value is rejected while the rule is parsed instead of while it runs.
The JSON blob layout stored in ``email_rules`` is handled separately by
:mod:`app.schemas.rule_codec`.
"""

import re
from datetime import datetime
from enum import Enum
from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing_extensions import Annotated

from app.schemas.common import (
    ActivityType,
    ContactType,
    Direction,
    LeadStatus,
    OpportunitySource,
    PipelineStage,
)


class TextOperator(str, Enum):
    contains = "contains"
    equals = "equals"
    starts_with = "starts_with"
    ends_with = "ends_with"


# ---------------------------------------------------------------------------
# Conditions
# ---------------------------------------------------------------------------


class _TextCondition(BaseModel):
    """Shared shape of the substring conditions."""

    model_config = ConfigDict(extra="ignore")

    value: str = Field(..., min_length=1)
    operator: TextOperator = TextOperator.contains
    case_sensitive: bool = False


class SubjectContainsCondition(_TextCondition):
    type: Literal["subject_contains"] = "subject_contains"


class FromContainsCondition(_TextCondition):
    type: Literal["from_contains"] = "from_contains"


class ToContainsCondition(_TextCondition):
    type: Literal["to_contains"] = "to_contains"


class BodyContainsCondition(_TextCondition):
    type: Literal["body_contains"] = "body_contains"


class SubjectMatchesCondition(BaseModel):
    """Case-insensitive regular-expression match against the subject.

    The pattern is deliberately not compiled here: an invalid pattern
    makes the condition evaluate false at run time.
    """

    model_config = ConfigDict(extra="ignore")

    type: Literal["subject_matches"] = "subject_matches"
    value: str = Field(..., min_length=1)


class HasCategoryCondition(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: Literal["has_category"] = "has_category"
    value: str = Field(..., min_length=1)


class IsFlaggedCondition(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: Literal["is_flagged"] = "is_flagged"
    value: Optional[Any] = None  # ignored


class InFolderCondition(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: Literal["in_folder"] = "in_folder"
    value: str = Field(..., min_length=1)


class DirectionCondition(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: Literal["direction"] = "direction"
    value: Direction


class HasContactCondition(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: Literal["has_contact"] = "has_contact"
    value: bool


Condition = Annotated[
    Union[
        SubjectContainsCondition,
        SubjectMatchesCondition,
        FromContainsCondition,
        ToContainsCondition,
        BodyContainsCondition,
        HasCategoryCondition,
        IsFlaggedCondition,
        InFolderCondition,
        DirectionCondition,
        HasContactCondition,
    ],
    Field(discriminator="type"),
]


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


class _ActionBase(BaseModel):
    model_config = ConfigDict(extra="ignore")


class AssignCategoryAction(_ActionBase):
    type: Literal["assign_category"] = "assign_category"
    category: str = Field(..., min_length=1)


class CreateContactAction(_ActionBase):
    type: Literal["create_contact"] = "create_contact"
    contact_type: ContactType = ContactType.OTHER
    name: Optional[str] = None


class CreateOpportunityAction(_ActionBase):
    type: Literal["create_opportunity"] = "create_opportunity"
    source: Optional[OpportunitySource] = None
    sub_source: Optional[str] = None
    title: Optional[str] = None
    assigned_to: Optional[str] = None
    value: Optional[float] = Field(default=None, ge=0)
    description: Optional[str] = None


class CreateLeadAction(_ActionBase):
    type: Literal["create_lead"] = "create_lead"
    source: Optional[OpportunitySource] = None
    status: LeadStatus = LeadStatus.new
    assigned_to: Optional[str] = None
    notes: Optional[str] = None
    value: Optional[float] = Field(default=None, ge=0)
    contact_type: ContactType = ContactType.OTHER


class CreateActivityAction(_ActionBase):
    type: Literal["create_activity"] = "create_activity"
    activity_type: Optional[ActivityType] = None
    description: Optional[str] = None
    user: str = "system"


class CreateFollowupAction(_ActionBase):
    type: Literal["create_followup"] = "create_followup"
    followup_type: str = Field(default="email", min_length=1)
    due_date: Optional[datetime] = None
    days_offset: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = None


class UpdateOpportunityStageAction(_ActionBase):
    type: Literal["update_opportunity_stage"] = "update_opportunity_stage"
    stage: PipelineStage
    opportunity_id: Optional[int] = None

    @field_validator("stage", mode="before")
    @classmethod
    def normalise_stage_name(cls, value: Any) -> Any:
        """Accept display names such as ``"Follow-up"`` or ``"Proposal"``."""
        if isinstance(value, str):
            return re.sub(r"[\s\-/]+", "_", value.strip()).lower()
        return value


class LinkToOpportunityAction(_ActionBase):
    type: Literal["link_to_opportunity"] = "link_to_opportunity"
    opportunity_id: Optional[int] = None


class MarkOpportunityWonAction(_ActionBase):
    type: Literal["mark_opportunity_won"] = "mark_opportunity_won"
    opportunity_id: Optional[int] = None
    changed_by: Optional[str] = None


class CreateCommissionSnapshotAction(_ActionBase):
    type: Literal["create_commission_snapshot"] = "create_commission_snapshot"
    opportunity_id: Optional[int] = None
    final_value: Optional[float] = Field(default=None, ge=0)
    commissionable_amount: Optional[float] = Field(default=None, ge=0)
    owner: Optional[str] = None
    products: Optional[str] = None


class InvalidAction(_ActionBase):
    """Placeholder for a stored action whose parameters failed validation.

    The executor reports it as a failed action without touching the
    database; the remaining actions of the rule still run.
    """

    type: Literal["invalid_action"] = "invalid_action"
    declared_type: str
    error: str


_ACTION_MEMBERS = (
    AssignCategoryAction,
    CreateContactAction,
    CreateOpportunityAction,
    CreateLeadAction,
    CreateActivityAction,
    CreateFollowupAction,
    UpdateOpportunityStageAction,
    LinkToOpportunityAction,
    MarkOpportunityWonAction,
    CreateCommissionSnapshotAction,
)

Action = Annotated[Union[_ACTION_MEMBERS], Field(discriminator="type")]

# Actions as held by a loaded rule (may include unparseable entries)
RuleAction = Annotated[
    Union[_ACTION_MEMBERS + (InvalidAction,)], Field(discriminator="type")
]

ACTION_TYPES = frozenset(m.model_fields["type"].default for m in _ACTION_MEMBERS)


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


class Rule(BaseModel):
    """A loaded, enabled rule ready for evaluation."""

    id: int
    name: str
    priority: int = 0
    enabled: bool = True
    conditions: List[Condition] = Field(default_factory=list)
    actions: List[RuleAction] = Field(default_factory=list)


class EmailRuleBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    priority: int = 0
    enabled: bool = True
    conditions: List[Condition] = Field(default_factory=list)
    actions: List[Action] = Field(..., min_length=1)


class EmailRuleCreate(EmailRuleBase):
    """Request body for POST /api/v1/email-rules."""


class EmailRuleUpdate(EmailRuleBase):
    """Request body for PUT /api/v1/email-rules/{rule_id}."""


class EmailRuleOut(BaseModel):
    """Rule as returned by the API.

    Stored rules edited outside the API may no longer parse; they are
    still listed, with the parse error in ``error`` and the offending
    actions shown as ``invalid_action`` entries.
    """

    id: int
    name: str
    description: Optional[str] = None
    priority: int = 0
    enabled: bool = True
    conditions: List[Condition] = Field(default_factory=list)
    actions: List[RuleAction] = Field(default_factory=list)
    error: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ConditionOutcome(BaseModel):
    condition: Condition
    result: bool


class RuleTestResponse(BaseModel):
    """Dry-run outcome of a rule against a sample email."""

    matches: bool
    evaluated_conditions: List[ConditionOutcome]
