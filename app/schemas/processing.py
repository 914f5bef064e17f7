"""Result objects produced by the rule engine and the email processor."""

from typing import List, Optional

from pydantic import BaseModel, Field

from app.schemas.email import EmailRecordIn
from app.schemas.email_rule import Rule


class ActionResult(BaseModel):
    """Outcome of one action of one matched rule."""

    rule_id: int
    rule_name: str
    action_type: str
    success: bool
    created_entity_id: Optional[int] = None
    created: bool = False  # False when an existing entity was reused
    error: Optional[str] = None
    error_type: Optional[str] = None


class MatchedRule(BaseModel):
    rule_id: int
    rule_name: str
    priority: int


class SkippedRule(BaseModel):
    """A stored rule that could not be loaded and was left out of the run."""

    rule_id: int
    rule_name: str
    error: str


class LoadedRules(BaseModel):
    rules: List[Rule] = Field(default_factory=list)
    skipped: List[SkippedRule] = Field(default_factory=list)


class RuleEngineResult(BaseModel):
    matched_rules: List[MatchedRule] = Field(default_factory=list)
    action_results: List[ActionResult] = Field(default_factory=list)
    skipped_rules: List[SkippedRule] = Field(default_factory=list)


class ProcessingResult(BaseModel):
    """Outcome of processing a single email.

    ``skipped`` is set when the email had already been processed and
    reprocessing was not forced; nothing is written in that case.
    """

    success: bool
    skipped: bool = False
    communication_id: Optional[int] = None
    external_id: Optional[str] = None
    contact_id: Optional[int] = None
    rule_results: Optional[RuleEngineResult] = None
    error: Optional[str] = None
    error_type: Optional[str] = None


class BatchProcessingResult(BaseModel):
    processed: int = 0
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0
    message: str = ""
    results: List[ProcessingResult] = Field(default_factory=list)


class EmailSyncRequest(BaseModel):
    """Request body for POST /api/v1/emails/sync."""

    emails: List[EmailRecordIn] = Field(..., min_length=1)
    access_token: Optional[str] = None
    force_reprocess: bool = False
