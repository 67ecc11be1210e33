"""Shared fixtures: in-memory stores, a small CAF catalog and workspace folders."""

import pytest

from threat_assurance.catalog import parse_catalog
from threat_assurance.controls import ControlLinkage, ControlRegister
from threat_assurance.questionnaire import ComplianceQuestionnaire
from threat_assurance.registry import ThreatRegistry
from threat_assurance.schemas import (
    GovAssureProfile, SecurityControl, ThreatStage, ThreatStatement, WorkspaceMeta,
)
from threat_assurance.store import RecordStore
from threat_assurance.workspace import AssuranceWorkspace


PROJECT_ID = 'PRJ-001'

CATALOG_DATA = {
    'objectives': [
        {
            'objective': 'X',
            'title': 'Test Objective',
            'principles': [
                {
                    'id': 'X1',
                    'name': 'Governance',
                    'description': 'Governance principle',
                    'outcomes': [
                        {
                            'id': 'X1.a',
                            'name': 'Board Direction',
                            'description': 'Board-level security direction',
                            'evidence': ['Security policy', 'Board minutes'],
                        },
                        {
                            'id': 'X1.b',
                            'name': 'Roles',
                            'description': 'Defined security roles',
                        },
                    ],
                },
                {
                    'id': 'X2',
                    'name': 'Detection',
                    'description': 'Detection principle',
                    'outcomes': [
                        {'id': 'X2.a', 'name': 'Threat Hunting', 'description': 'Proactive hunting'},
                        {'id': 'X2.b', 'name': 'Unprofiled', 'description': 'No profile entry'},
                    ],
                },
            ],
        },
    ],
    'profiles': [
        {'outcome': 'X1.a', 'baseline': 'Partially Achieved', 'enhanced': 'Achieved'},
        {'outcome': 'X1.b', 'baseline': 'Achieved', 'enhanced': 'Achieved'},
        {'outcome': 'X2.a', 'baseline': 'Not Achieved', 'enhanced': 'Not Achieved'},
    ],
    'questions': {
        'X1.a': {
            'negative': ['Is security never discussed by the board?'],
            'partial': ['Is security discussed occasionally?', 'Are risks understood?'],
            'achieved': ['Does the board set direction?'],
        },
        'X1.b': {
            'negative': ['Are key roles vacant?'],
            'partial': ['Are roles identified?'],
            'achieved': ['Are roles assigned?', 'Are roles reviewed?'],
        },
        'X2.a': {
            'negative': ['Is discovery reactive?', 'Are findings ignored?'],
            'partial': ['Is some hunting done?'],
            'achieved': ['Is hunting routine?'],
        },
        'X2.b': {
            'negative': ['Is nothing done?'],
            'achieved': ['Is everything done?'],
        },
    },
}


def make_threat(threat_id, stage, text='A hacker could deface the website', parent_id=None,
                project_id=PROJECT_ID):
    return ThreatStatement(
        id=threat_id, projectId=project_id, text=text, stage=stage, parentId=parent_id,
    )


def make_control(control_id, layer, rating='B', project_id=PROJECT_ID):
    return SecurityControl(
        id=control_id, projectId=project_id, name=f'Control {control_id}',
        layer=layer, effectivenessRating=rating,
    )


@pytest.fixture
def catalog():
    return parse_catalog(CATALOG_DATA)


@pytest.fixture
def store():
    return RecordStore()


@pytest.fixture
def registry(store):
    return ThreatRegistry(store, PROJECT_ID)


@pytest.fixture
def control_register(store):
    return ControlRegister(store, PROJECT_ID)


@pytest.fixture
def linkage(store, registry):
    return ControlLinkage(store, registry)


@pytest.fixture
def chained_store(store):
    """Two linked chains, I1 <- M1 <- F1 (with sibling M2) and I2 <- M3, plus an unrelated initial I3."""
    store.add_threat(make_threat('I1', ThreatStage.INITIAL))
    store.add_threat(make_threat('M1', ThreatStage.INTERMEDIATE, parent_id='I1'))
    store.add_threat(make_threat('M2', ThreatStage.INTERMEDIATE, parent_id='I1'))
    store.add_threat(make_threat('F1', ThreatStage.FINAL, parent_id='M1'))
    store.add_threat(make_threat('I2', ThreatStage.INITIAL))
    store.add_threat(make_threat('M3', ThreatStage.INTERMEDIATE, parent_id='I2'))
    store.add_threat(make_threat('I3', ThreatStage.INITIAL))
    return store


@pytest.fixture
def questionnaire(store, catalog):
    return ComplianceQuestionnaire(store, PROJECT_ID, GovAssureProfile.BASELINE, catalog)


@pytest.fixture
def workspace(store, catalog):
    meta = WorkspaceMeta(projectId=PROJECT_ID, title='Payroll Service')
    return AssuranceWorkspace(meta, store, catalog=catalog)


@pytest.fixture
def readonly_workspace(store, catalog):
    meta = WorkspaceMeta(projectId=PROJECT_ID, title='Payroll Service')
    return AssuranceWorkspace(meta, store, catalog=catalog, can_write=False)
