"""Tests for the threat-assurance command line interface."""

import pytest
from click.testing import CliRunner

from threat_assurance.cli import cli
from threat_assurance.parser import load_workspace


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def workspace_path(runner, tmp_path):
    path = str(tmp_path / 'payroll')
    result = runner.invoke(cli, [
        'init', path, '--title', 'Payroll Service', '--project-id', 'PRJ-001', '--profile', 'enhanced',
    ])
    assert result.exit_code == 0, result.output
    return path


class TestInitAndValidate:

    def test_init(self, workspace_path):
        assert load_workspace(workspace_path).profile.value == 'enhanced'

    def test_init_existing_directory_fails(self, runner, workspace_path):
        result = runner.invoke(cli, ['init', workspace_path, '--title', 'Again', '--project-id', 'PRJ-002'])
        assert result.exit_code == 1
        assert 'already exists' in result.output

    def test_validate(self, runner, workspace_path):
        result = runner.invoke(cli, ['validate', workspace_path])
        assert result.exit_code == 0
        assert 'Validation successful!' in result.output
        assert 'Profile: enhanced' in result.output

    def test_validate_broken_workspace(self, runner, tmp_path):
        result = runner.invoke(cli, ['validate', str(tmp_path)])
        assert result.exit_code == 1
        assert 'Failed to load workspace' in result.output


class TestThreatCommands:

    def test_add_link_and_evaluate(self, runner, workspace_path):
        result = runner.invoke(cli, ['add-threat', workspace_path, '--text', 'A nation state could steal data'])
        assert 'THR_001 added' in result.output
        runner.invoke(cli, [
            'add-threat', workspace_path, '--stage', 'intermediate', '--parent', 'THR_001',
            '--text', 'Using phishing, a nation state could steal data',
        ])
        result = runner.invoke(cli, ['add-control', workspace_path, '--name', 'Mail filtering',
                                     '--layer=-2', '--rating', 'B'])
        assert result.exit_code == 0, result.output
        result = runner.invoke(cli, ['link', workspace_path, 'THR_001', 'CTL_001'])
        assert 'linked to threat THR_001' in result.output

        workspace = load_workspace(workspace_path)
        assert workspace.is_control_linked('THR_002', 'CTL_001')

        result = runner.invoke(cli, ['mitigation', workspace_path])
        assert result.exit_code == 0
        assert 'THR_002' in result.output
        assert 'Nation State: 3 controls at B+ per layer' in result.output
        assert 'unmitigated' in result.output

    def test_invalid_parent_stage(self, runner, workspace_path):
        runner.invoke(cli, ['add-threat', workspace_path, '--text', 'A hacker could deface the site'])
        result = runner.invoke(cli, ['add-threat', workspace_path, '--stage', 'final',
                                     '--parent', 'THR_001', '--text', 'text'])
        assert result.exit_code == 1
        assert 'Adding threat failed' in result.output

    def test_chains(self, runner, workspace_path):
        runner.invoke(cli, ['add-threat', workspace_path, '--text', 'A hacker could deface the site'])
        runner.invoke(cli, ['add-threat', workspace_path, '--stage', 'intermediate',
                            '--parent', 'THR_001', '--text', 'Using XSS, a hacker could deface the site'])
        result = runner.invoke(cli, ['chains', workspace_path])
        assert result.exit_code == 0
        assert 'THR_002 [intermediate] (linked)' in result.output
        assert '- THR_001 [initial]' in result.output

    def test_mitigation_unknown_threat(self, runner, workspace_path):
        result = runner.invoke(cli, ['mitigation', workspace_path, '--threat', 'THR_404'])
        assert result.exit_code == 1

    def test_read_only_from_environment(self, runner, workspace_path):
        result = runner.invoke(cli, ['add-threat', workspace_path, '--text', 'A hacker could deface the site'],
                               env={'THREAT_ASSURANCE_READ_ONLY': '1'})
        assert result.exit_code == 1
        assert 'Write access is required' in result.output
        assert load_workspace(workspace_path).registry.list_threats() == []


class TestQuestionnaireCommands:

    def test_answer_requires_evidence(self, runner, workspace_path):
        result = runner.invoke(cli, ['answer', workspace_path, 'A1.a-ach-1', 'yes'])
        assert result.exit_code == 1
        assert 'supporting evidence' in result.output

        result = runner.invoke(cli, ['evidence', workspace_path, 'A1.a-ach-1', 'Information security policy'])
        assert result.exit_code == 0, result.output
        result = runner.invoke(cli, ['answer', workspace_path, 'A1.a-ach-1', 'yes'])
        assert result.exit_code == 0, result.output
        assert 'A1.a is now partial' in result.output

    def test_answer_unknown_question(self, runner, workspace_path):
        result = runner.invoke(cli, ['answer', workspace_path, 'Z9.z-ach-1', 'no'])
        assert result.exit_code == 1
        assert 'Question not found' in result.output

    def test_negative_answer_fails_outcome(self, runner, workspace_path):
        runner.invoke(cli, ['answer', workspace_path, 'C2.a-neg-1', 'yes'])
        result = runner.invoke(cli, ['status', workspace_path])
        assert result.exit_code == 0
        assert 'failed   C2.a Threat Intelligence' in result.output

    def test_progress(self, runner, workspace_path):
        runner.invoke(cli, ['answer', workspace_path, 'C2.a-ach-1', 'yes'])
        result = runner.invoke(cli, ['progress', workspace_path])
        assert result.exit_code == 0
        assert result.output.startswith('Answered 0 of ')

    def test_custom_evidence(self, runner, workspace_path):
        result = runner.invoke(cli, ['select-evidence', workspace_path, 'C2.a', 'Hunting log', '--custom'])
        assert result.exit_code == 0, result.output
        result = runner.invoke(cli, ['select-evidence', workspace_path, 'C2.a', 'Hunting log'])
        assert 'deselected' in result.output
        assert load_workspace(workspace_path).questionnaire.custom_evidence('C2.a') == ['Hunting log']
