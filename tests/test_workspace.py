"""Tests for the workspace facade over registry, linkage and questionnaire."""

import logging

from threat_assurance.errors import NotFoundError, WritePermissionError
from threat_assurance.mitigation import ActorType, Verdict
from threat_assurance.schemas import OutcomeStatus, ThreatStage

from tests.conftest import make_control, make_threat


class TestWorkspaceChains:

    def test_resolve_chain_returns_members(self, chained_store, workspace):
        assert {t.id for t in workspace.resolve_chain('F1')} == {'I1', 'M1', 'M2', 'F1'}
        assert workspace.resolve_chain('NOPE') == []

    def test_toggle_link_and_read_back(self, chained_store, workspace):
        chained_store.add_control(make_control('C1', 3))
        assert workspace.toggle_link('I1', 'C1').ok
        assert workspace.is_control_linked('F1', 'C1')
        assert [s.control.id for s in workspace.control_link_states('F1') if s.inherited] == ['C1']

    def test_rejected_write_is_logged(self, chained_store, readonly_workspace, caplog):
        chained_store.add_control(make_control('C1', 3))
        with caplog.at_level(logging.INFO, logger='threat_assurance.workspace'):
            result = readonly_workspace.toggle_link('I1', 'C1')
        assert isinstance(result.error, WritePermissionError)
        assert 'toggle_link rejected (permission)' in caplog.text


class TestWorkspaceMitigation:

    def test_evaluate_threat_uses_chain_controls(self, store, workspace):
        store.add_threat(make_threat('I1', ThreatStage.INITIAL, text='A malicious user could copy data'))
        store.add_threat(make_threat('M1', ThreatStage.INTERMEDIATE, parent_id='I1',
                                     text='Using stolen credentials, a malicious user could copy data'))
        for n in range(8):
            store.add_control(make_control(f'C{n}', 3 if n < 4 else -1, 'A'))
            store.add_link('I1' if n % 2 else 'M1', f'C{n}')
        result = workspace.evaluate_threat('M1').value
        assert result.actor_type == ActorType.MALICIOUS_INSIDER
        assert result.verdict == Verdict.MITIGATED

    def test_evaluate_unknown_threat(self, workspace):
        assert isinstance(workspace.evaluate_threat('NOPE').error, NotFoundError)

    def test_evaluate_mitigation_is_deterministic(self, workspace):
        text = 'A hacker could deface the website'
        controls = [make_control('C1', 3, 'C'), make_control('C2', 3, 'B'), make_control('C3', -1, 'E')]
        first = workspace.evaluate_mitigation(text, controls)
        second = workspace.evaluate_mitigation(text, list(controls))
        assert first == second
        assert first.verdict == Verdict.UNMITIGATED
        assert [c.id for c in controls] == ['C1', 'C2', 'C3']


class TestWorkspaceQuestionnaire:

    def test_record_and_status(self, workspace):
        assert workspace.record_response('X1.b-neg-1', 'X1.b', False).ok
        assert workspace.get_outcome_status('X1.b') == OutcomeStatus.PARTIAL

    def test_evidence_then_answer(self, workspace):
        assert not workspace.record_response('X1.a-par-1', 'X1.a', True).ok
        assert workspace.toggle_question_evidence('X1.a-par-1', 'X1.a', 'Board minutes').ok
        assert workspace.record_response('X1.a-par-1', 'X1.a', True).ok
        assert workspace.overall_progress().answered == 1

    def test_read_only_questionnaire(self, readonly_workspace):
        result = readonly_workspace.record_response('X1.b-neg-1', 'X1.b', False)
        assert isinstance(result.error, WritePermissionError)
