"""Threat Assurance - Command Line Interface."""

import logging
import sys
from typing import Optional
import click

from . import __version__
from .errors import Result
from .mitigation import Verdict, LayerBand
from .parser import load_workspace, save_workspace, init_workspace, WorkspaceParseError
from .progress import overall_progress
from .schemas import GovAssureProfile, OutcomeStatus, ThreatStage, EffectivenessRating
from .workspace import AssuranceWorkspace


STATUS_COLOURS = {
    OutcomeStatus.COMPLETE: 'green',
    OutcomeStatus.PARTIAL: 'yellow',
    OutcomeStatus.FAILED: 'red',
    OutcomeStatus.NONE: None,
}

VERDICT_COLOURS = {
    Verdict.MITIGATED: 'green',
    Verdict.UNMITIGATED: 'red',
    Verdict.UNDETERMINED: 'yellow',
}

BAND_MARKERS = {
    LayerBand.MET: '✓',
    LayerBand.NO_USABLE_CONTROLS: '✗',
    LayerBand.NOT_APPLICABLE: '-',
}


def _load(ctx: click.Context, workspace_path: str) -> AssuranceWorkspace:
    try:
        return load_workspace(workspace_path, can_write=not ctx.obj['read_only'])
    except WorkspaceParseError as e:
        click.echo(click.style(f'Failed to load workspace: {e}', fg='red'), err=True)
        sys.exit(1)


def _check(result: Result, action: str) -> None:
    if not result.ok:
        click.echo(click.style(f'{action} failed: {result.error}', fg='red'), err=True)
        sys.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option('--read-only', is_flag=True, envvar='THREAT_ASSURANCE_READ_ONLY',
              help='Reject every mutating command')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.pass_context
def cli(ctx: click.Context, read_only: bool, verbose: bool):
    """Threat Assurance - threat chains, control mitigation and CAF compliance."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
    )
    ctx.ensure_object(dict)
    ctx.obj['read_only'] = read_only


@cli.command()
@click.argument('workspace_path', type=click.Path(exists=False))
@click.option('--title', '-t', prompt='Project title', help='Title for the project')
@click.option('--project-id', '-i', prompt='Project ID', help='Unique identifier')
@click.option('--profile', '-p', type=click.Choice([p.value for p in GovAssureProfile]),
              default=GovAssureProfile.BASELINE.value, help='Gov Assure profile')
@click.option('--owner', '-w', default='', help='Owner of the project')
def init(workspace_path: str, title: str, project_id: str, profile: str, owner: str):
    """Initialize a new project workspace folder."""
    try:
        model_dir = init_workspace(workspace_path, title, project_id, GovAssureProfile(profile), owner)
    except WorkspaceParseError as e:
        click.echo(click.style(str(e), fg='red'), err=True)
        sys.exit(1)
    click.echo(click.style('Workspace initialized successfully!', fg='green'))
    click.echo(f'  Location: {model_dir}')
    click.echo(f'  Profile: {profile}')


@cli.command()
@click.argument('workspace_path', type=click.Path(exists=True, file_okay=False, dir_okay=True))
@click.pass_context
def validate(ctx: click.Context, workspace_path: str):
    """Validate a workspace folder."""
    workspace = _load(ctx, workspace_path)
    store = workspace.store
    click.echo(click.style('Validation successful!', fg='green'))
    click.echo(f'  Project: {workspace.meta.title}')
    click.echo(f'  ID: {workspace.project_id}')
    click.echo(f'  Profile: {workspace.profile.value}')
    click.echo(f'  Threats: {len(store.list_threats(workspace.project_id))}')
    click.echo(f'  Controls: {len(store.list_controls(workspace.project_id))}')
    click.echo(f'  Answered questions: '
               f'{sum(1 for r in store.list_responses(workspace.project_id) if r.response is not None)}')


@cli.command('add-threat')
@click.argument('workspace_path', type=click.Path(exists=True, file_okay=False, dir_okay=True))
@click.option('--stage', '-s', type=click.Choice([s.value for s in ThreatStage]), default='initial')
@click.option('--text', '-t', prompt='Threat statement', help='Threat statement text')
@click.option('--parent', '-p', default=None, help='Parent threat id from the preceding stage')
@click.pass_context
def add_threat(ctx: click.Context, workspace_path: str, stage: str, text: str, parent: Optional[str]):
    """Add a threat statement at a given stage."""
    workspace = _load(ctx, workspace_path)
    result = workspace.registry.add_threat(ThreatStage(stage), text, parent)
    _check(result, 'Adding threat')
    save_workspace(workspace, workspace_path)
    click.echo(click.style(f'Threat {result.value.id} added ({stage})', fg='green'))


@cli.command('add-control')
@click.argument('workspace_path', type=click.Path(exists=True, file_okay=False, dir_okay=True))
@click.option('--name', '-n', prompt='Control name', help='Control name')
@click.option('--layer', '-l', type=click.Choice(['3', '2', '1', '-1', '-2', '-3']), required=True)
@click.option('--rating', '-r', type=click.Choice([r.value for r in EffectivenessRating]), default=None)
@click.pass_context
def add_control(ctx: click.Context, workspace_path: str, name: str, layer: str, rating: Optional[str]):
    """Add a security control on a defence layer."""
    workspace = _load(ctx, workspace_path)
    result = workspace.controls.add_control(name, int(layer), rating)
    _check(result, 'Adding control')
    save_workspace(workspace, workspace_path)
    click.echo(click.style(f'Control {result.value.id} added on layer {layer}', fg='green'))


@cli.command()
@click.argument('workspace_path', type=click.Path(exists=True, file_okay=False, dir_okay=True))
@click.argument('threat_id')
@click.argument('control_id')
@click.pass_context
def link(ctx: click.Context, workspace_path: str, threat_id: str, control_id: str):
    """Toggle a control link on one threat statement."""
    workspace = _load(ctx, workspace_path)
    result = workspace.toggle_link(threat_id, control_id)
    _check(result, 'Linking control')
    save_workspace(workspace, workspace_path)
    state = 'linked to' if result.value else 'unlinked from'
    click.echo(click.style(f'Control {control_id} {state} threat {threat_id}', fg='green'))


@cli.command()
@click.argument('workspace_path', type=click.Path(exists=True, file_okay=False, dir_okay=True))
@click.pass_context
def chains(ctx: click.Context, workspace_path: str):
    """List threat chains and their most mature statement."""
    workspace = _load(ctx, workspace_path)
    resolver = workspace.registry.resolver()
    chain_list = resolver.chains()
    if not chain_list:
        click.echo(click.style('No threats defined in this workspace.', fg='yellow'))
        return
    for chain in chain_list:
        lead = max(chain.members, key=lambda t: t.stage.rank)
        click.echo(click.style(f'{lead.id} [{lead.stage.value}] ({chain.strategy})', bold=True))
        click.echo(f'  {lead.text}')
        for member in chain.members:
            if member.id != lead.id:
                click.echo(f'    - {member.id} [{member.stage.value}]')


@cli.command()
@click.argument('workspace_path', type=click.Path(exists=True, file_okay=False, dir_okay=True))
@click.option('--threat', '-t', 'threat_id', default=None, help='Evaluate a single threat')
@click.pass_context
def mitigation(ctx: click.Context, workspace_path: str, threat_id: Optional[str]):
    """Evaluate control adequacy for each chain's most mature threat."""
    workspace = _load(ctx, workspace_path)
    if threat_id:
        threats = [workspace.registry.get_threat(threat_id)]
        if threats[0] is None:
            click.echo(click.style(f'Threat not found: {threat_id}', fg='red'), err=True)
            sys.exit(1)
    else:
        threats = workspace.registry.maturest_threats()

    if not threats:
        click.echo(click.style('No threats defined in this workspace.', fg='yellow'))
        return

    for threat in threats:
        result = workspace.evaluate_threat(threat.id).value
        click.echo(click.style(f'{threat.id} [{threat.stage.value}]', bold=True))
        click.echo(f'  {threat.text}')
        click.echo(f'  Actor: {result.actor_type.value} - {result.requirement_label}')
        for layer in result.layers:
            marker = BAND_MARKERS.get(layer.band, '~')
            click.echo(f'    {marker} {layer.label:<36} {layer.count_at_b_or_higher} at B+ / '
                       f'{layer.count_at_c_or_higher} at C+')
        click.echo('  Verdict: ' + click.style(result.verdict.value, fg=VERDICT_COLOURS[result.verdict]))


@cli.command()
@click.argument('workspace_path', type=click.Path(exists=True, file_okay=False, dir_okay=True))
@click.option('--profile', '-p', type=click.Choice([p.value for p in GovAssureProfile]), default=None,
              help='Override the workspace Gov Assure profile')
@click.pass_context
def status(ctx: click.Context, workspace_path: str, profile: Optional[str]):
    """Show CAF outcome completion status."""
    workspace = _load(ctx, workspace_path)
    questionnaire = workspace.questionnaire
    selected = GovAssureProfile(profile) if profile else workspace.profile
    click.echo(f'Gov Assure profile: {selected.value}')
    for objective in workspace.catalog.objectives:
        click.echo(click.style(f'\n{objective.objective}: {objective.title}', fg='cyan', bold=True))
        for principle in objective.principles:
            summary = questionnaire.principle_compliance(principle.id, selected)
            suffix = f' ({summary.percentage}% compliant)' if summary else ''
            click.echo(f'  {principle.id} {principle.name}{suffix}')
            for outcome in principle.outcomes:
                outcome_status = workspace.get_outcome_status(outcome.id, selected)
                label = click.style(f'{outcome_status.value:<8}', fg=STATUS_COLOURS[outcome_status])
                click.echo(f'    {label} {outcome.id} {outcome.name}')


@cli.command()
@click.argument('workspace_path', type=click.Path(exists=True, file_okay=False, dir_okay=True))
@click.pass_context
def progress(ctx: click.Context, workspace_path: str):
    """Show overall questionnaire progress for the workspace profile."""
    workspace = _load(ctx, workspace_path)
    result = overall_progress(workspace.questionnaire)
    click.echo(f'Answered {result.answered} of {result.total} questions ({result.percentage}%)')


@cli.command()
@click.argument('workspace_path', type=click.Path(exists=True, file_okay=False, dir_okay=True))
@click.argument('question_id')
@click.argument('answer', type=click.Choice(['yes', 'no', 'clear']))
@click.pass_context
def answer(ctx: click.Context, workspace_path: str, question_id: str, answer: str):
    """Answer a CAF assessment question."""
    workspace = _load(ctx, workspace_path)
    question = workspace.catalog.get_question(question_id)
    if question is None:
        click.echo(click.style(f'Question not found: {question_id}', fg='red'), err=True)
        sys.exit(1)
    value = {'yes': True, 'no': False, 'clear': None}[answer]
    _check(workspace.record_response(question_id, question.outcomeId, value), 'Recording answer')
    save_workspace(workspace, workspace_path)
    outcome_status = workspace.get_outcome_status(question.outcomeId)
    click.echo(click.style(f'Recorded {answer} for {question_id}', fg='green'))
    click.echo(f'  {question.outcomeId} is now {outcome_status.value}')


@cli.command()
@click.argument('workspace_path', type=click.Path(exists=True, file_okay=False, dir_okay=True))
@click.argument('question_id')
@click.argument('evidence_text')
@click.pass_context
def evidence(ctx: click.Context, workspace_path: str, question_id: str, evidence_text: str):
    """Toggle a piece of supporting evidence on a question."""
    workspace = _load(ctx, workspace_path)
    question = workspace.catalog.get_question(question_id)
    if question is None:
        click.echo(click.style(f'Question not found: {question_id}', fg='red'), err=True)
        sys.exit(1)
    was_linked = workspace.questionnaire.is_evidence_linked(question_id, evidence_text)
    _check(workspace.toggle_question_evidence(question_id, question.outcomeId, evidence_text),
           'Updating evidence')
    save_workspace(workspace, workspace_path)
    state = 'removed from' if was_linked else 'linked to'
    click.echo(click.style(f'Evidence {state} {question_id}', fg='green'))


@cli.command('select-evidence')
@click.argument('workspace_path', type=click.Path(exists=True, file_okay=False, dir_okay=True))
@click.argument('outcome_id')
@click.argument('evidence_text')
@click.option('--custom', is_flag=True, help='Add free-text evidence for the outcome')
@click.pass_context
def select_evidence(ctx: click.Context, workspace_path: str, outcome_id: str, evidence_text: str, custom: bool):
    """Toggle outcome-level evidence, or add custom evidence."""
    workspace = _load(ctx, workspace_path)
    questionnaire = workspace.questionnaire
    if custom:
        _check(questionnaire.add_custom_evidence(outcome_id, evidence_text), 'Adding evidence')
        message = f'Custom evidence added to {outcome_id}'
    else:
        result = questionnaire.toggle_evidence_selection(outcome_id, evidence_text)
        _check(result, 'Selecting evidence')
        message = f'Evidence {"selected" if result.value else "deselected"} for {outcome_id}'
    save_workspace(workspace, workspace_path)
    click.echo(click.style(message, fg='green'))


def main():
    """Entry point for the CLI."""
    cli(obj={})


if __name__ == '__main__':
    main()
