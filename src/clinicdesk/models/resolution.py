"""
Resolution Models

Search state for binding a record block to a stored entity, and the
advisory notices raised when a lookup or submission fails.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from clinicdesk.models.core import EntityId


class ResolutionMode(str, Enum):
    DRAFT = "draft"  # No stored entity selected; fields editable
    BOUND = "bound"  # Stored entity selected; inherited fields locked


class CandidateEntity(BaseModel):
    """
    A stored entity returned by an entity index search.

    `fields` uses block field names (given_name, phone, ...). Subject
    candidates may also carry companion values prefixed with `guardian_`.
    """

    id: EntityId
    kind: str = Field(..., description="facility or subject")
    label: str = Field(default="", description="Display text for the candidate list")
    fields: dict[str, Any] = Field(default_factory=dict)


class ResolutionState(BaseModel):
    """Replaced wholesale on every transition."""

    mode: ResolutionMode = ResolutionMode.DRAFT
    query: str = ""
    candidates: list[CandidateEntity] = Field(default_factory=list)
    selected: CandidateEntity | None = None


class NoticeKind(str, Enum):
    LOOKUP_FAILED = "lookup_failed"
    SUBMISSION_FAILED = "submission_failed"
    SUBMITTED = "submitted"


class Notice(BaseModel):
    """Non-fatal, user-visible condition."""

    kind: NoticeKind
    message: str
    detail: dict[str, Any] | None = Field(default=None, description="Server field errors, when present")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
