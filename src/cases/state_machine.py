"""Case status machine.

The transition table is the single source of truth; persistence code calls
``apply`` and stores whatever it returns.
"""
from enum import Enum
from typing import Dict

from src.shared.exceptions import InvalidTransition


class CaseStatus(str, Enum):
    DRAFT = "draft"
    ANALYZING = "analyzing"
    REVIEW = "review"
    RESPONDED = "responded"
    ARCHIVED = "archived"


class CaseAction(str, Enum):
    START_ANALYSIS = "start_analysis"
    COMPLETE_ANALYSIS = "complete_analysis"
    MARK_RESPONDED = "mark_responded"
    ARCHIVE = "archive"
    REOPEN = "reopen"


TRANSITIONS: Dict[CaseStatus, Dict[CaseAction, CaseStatus]] = {
    CaseStatus.DRAFT: {
        CaseAction.START_ANALYSIS: CaseStatus.ANALYZING,
        CaseAction.ARCHIVE: CaseStatus.ARCHIVED,
    },
    CaseStatus.ANALYZING: {
        CaseAction.COMPLETE_ANALYSIS: CaseStatus.REVIEW,
    },
    CaseStatus.REVIEW: {
        CaseAction.MARK_RESPONDED: CaseStatus.RESPONDED,
        CaseAction.ARCHIVE: CaseStatus.ARCHIVED,
    },
    CaseStatus.RESPONDED: {
        CaseAction.ARCHIVE: CaseStatus.ARCHIVED,
    },
    CaseStatus.ARCHIVED: {
        CaseAction.REOPEN: CaseStatus.DRAFT,
    },
}


def can_apply(state: CaseStatus, action: CaseAction) -> bool:
    return CaseAction(action) in TRANSITIONS.get(CaseStatus(state), {})


def apply(state: CaseStatus, action: CaseAction) -> CaseStatus:
    """Return the next status or raise ``InvalidTransition``."""
    state = CaseStatus(state)
    action = CaseAction(action)
    try:
        return TRANSITIONS[state][action]
    except KeyError:
        raise InvalidTransition(state, action) from None
