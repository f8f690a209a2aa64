"""
ClinicDesk Domain Models
"""

from clinicdesk.models.clinical import FertilityAssessment
from clinicdesk.models.core import Block, Companion, EntityId, Facility, IntakeBlock, Subject
from clinicdesk.models.financial import DiscountMode, LineItem, PathologyBilling
from clinicdesk.models.resolution import (
    CandidateEntity,
    Notice,
    NoticeKind,
    ResolutionMode,
    ResolutionState,
)

__all__ = [
    # Core
    "Block",
    "EntityId",
    "IntakeBlock",
    "Facility",
    "Subject",
    "Companion",
    # Clinical / financial
    "FertilityAssessment",
    "DiscountMode",
    "LineItem",
    "PathologyBilling",
    # Resolution
    "CandidateEntity",
    "Notice",
    "NoticeKind",
    "ResolutionMode",
    "ResolutionState",
]
