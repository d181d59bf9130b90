import pytest

from src.cases import state_machine
from src.cases.state_machine import CaseAction, CaseStatus
from src.shared.exceptions import InvalidTransition


class TestApply:
    @pytest.mark.parametrize("state,action,expected", [
        (CaseStatus.DRAFT, CaseAction.START_ANALYSIS, CaseStatus.ANALYZING),
        (CaseStatus.DRAFT, CaseAction.ARCHIVE, CaseStatus.ARCHIVED),
        (CaseStatus.ANALYZING, CaseAction.COMPLETE_ANALYSIS, CaseStatus.REVIEW),
        (CaseStatus.REVIEW, CaseAction.MARK_RESPONDED, CaseStatus.RESPONDED),
        (CaseStatus.REVIEW, CaseAction.ARCHIVE, CaseStatus.ARCHIVED),
        (CaseStatus.RESPONDED, CaseAction.ARCHIVE, CaseStatus.ARCHIVED),
        (CaseStatus.ARCHIVED, CaseAction.REOPEN, CaseStatus.DRAFT),
    ])
    def test_allowed_transitions(self, state, action, expected):
        assert state_machine.apply(state, action) == expected

    def test_accepts_raw_values(self):
        assert state_machine.apply("draft", "start_analysis") == CaseStatus.ANALYZING

    @pytest.mark.parametrize("state,action", [
        (CaseStatus.ANALYZING, CaseAction.ARCHIVE),
        (CaseStatus.DRAFT, CaseAction.COMPLETE_ANALYSIS),
        (CaseStatus.RESPONDED, CaseAction.REOPEN),
        (CaseStatus.REVIEW, CaseAction.START_ANALYSIS),
    ])
    def test_disallowed_transition_raises(self, state, action):
        with pytest.raises(InvalidTransition) as exc:
            state_machine.apply(state, action)
        assert exc.value.state == state
        assert exc.value.action == action
        assert action.value in str(exc.value)

    def test_unknown_action_is_rejected(self):
        with pytest.raises(ValueError):
            state_machine.apply(CaseStatus.DRAFT, "delete")


class TestCanApply:
    def test_can_apply_matches_table(self):
        for state in CaseStatus:
            for action in CaseAction:
                allowed = action in state_machine.TRANSITIONS[state]
                assert state_machine.can_apply(state, action) is allowed

    def test_analyzing_can_only_complete(self):
        assert list(state_machine.TRANSITIONS[CaseStatus.ANALYZING]) == [CaseAction.COMPLETE_ANALYSIS]
