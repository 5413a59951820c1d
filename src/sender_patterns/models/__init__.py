"""Data models for Sender Pattern Learner.

This module contains Pydantic models for data validation and serialization.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from sender_patterns.models.thread import EmailForLLM, SenderThread, ThreadMessage


class GroupItemType(str, Enum):
    """Kinds of grouping criteria.

    Only ``FROM`` (sender address match) is written by the pattern learner.
    """

    FROM = "FROM"
    SUBJECT = "SUBJECT"
    BODY = "BODY"


class AnalysisOutcome(str, Enum):
    """How a single sender analysis run ended."""

    INVALID_SENDER = "invalid_sender"
    ACCOUNT_NOT_FOUND = "account_not_found"
    ALREADY_ANALYZED = "already_analyzed"
    NO_CREDENTIALS = "no_credentials"
    NO_THREADS = "no_threads"
    CONVERSATION_DETECTED = "conversation_detected"
    INSUFFICIENT_EMAILS = "insufficient_emails"
    MATCHED = "matched"
    NO_MATCH = "no_match"
    FAILED = "failed"


class Rule(BaseModel):
    """A named classification rule owned by an account."""

    id: str = Field(description="Rule ID")
    email_account_id: str = Field(description="Owning account ID")
    name: str = Field(description="Rule name, unique within the account")
    instructions: Optional[str] = Field(default=None, description="Free-text rule instructions")
    enabled: bool = Field(default=True, description="Whether the rule is active")


class RuleCandidate(BaseModel):
    """A rule offered to the LLM as a possible match."""

    name: str
    instructions: str


class AccountTokens(BaseModel):
    """Stored OAuth tokens for an account's mailbox."""

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None


class EmailAccountWithRules(BaseModel):
    """An account together with everything the pattern learner needs from it."""

    id: str
    email: str
    about: Optional[str] = Field(default=None, description="What the user told us about themselves")
    ai_model: Optional[str] = Field(default=None, description="Per-account LLM model override")
    tokens: Optional[AccountTokens] = None
    rules: list[RuleCandidate] = Field(default_factory=list)


class SenderCheck(BaseModel):
    """Ledger row recording whether a sender has been analysed for an account."""

    email_account_id: str
    email: str
    pattern_analyzed: bool = False
    last_analyzed_at: Optional[datetime] = None


class RuleGroup(BaseModel):
    """Grouping container feeding a single rule."""

    id: str
    email_account_id: str
    name: str
    rule_id: Optional[str] = None


class GroupItem(BaseModel):
    """One concrete match condition inside a grouping container."""

    id: str
    group_id: str
    type: GroupItemType
    value: str
    exclude: bool = False


class LearnedPattern(BaseModel):
    """A criterion to assert in bulk through ``save_learned_patterns``."""

    type: GroupItemType
    value: str
    exclude: bool = False


class PatternResult(BaseModel):
    """The LLM's verdict for a sender."""

    matched_rule: Optional[str] = Field(default=None, description="Matched rule name, if any")
    reasoning: Optional[str] = Field(default=None, description="Short explanation from the model")


class AnalyzeSenderPatternBody(BaseModel):
    """Trigger payload accepted by the analysis endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    email_account_id: str = Field(alias="emailAccountId", min_length=1)
    sender: str = Field(alias="from", min_length=1)


__all__ = [
    "AccountTokens",
    "AnalysisOutcome",
    "AnalyzeSenderPatternBody",
    "EmailAccountWithRules",
    "EmailForLLM",
    "GroupItem",
    "GroupItemType",
    "LearnedPattern",
    "PatternResult",
    "Rule",
    "RuleCandidate",
    "RuleGroup",
    "SenderCheck",
    "SenderThread",
    "ThreadMessage",
]
