"""YAML loader and writer for project workspace folders."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional
import yaml
from pydantic import ValidationError

from .catalog import CAFCatalog, default_catalog
from .schemas import (
    WorkspaceMeta, ThreatStatement, SecurityControl, GovAssureProfile,
)
from .store import RecordStore
from .workspace import AssuranceWorkspace


logger = logging.getLogger(__name__)


class WorkspaceParseError(Exception):
    """Raised when workspace parsing or validation fails."""
    pass


class WorkspaceParser:
    """Parser for workspace folders. Only ``_meta.yaml`` is required."""

    META_FILE = '_meta.yaml'
    THREATS_FILE = 'threats.yaml'
    CONTROLS_FILE = 'controls.yaml'
    LINKS_FILE = 'threat-controls.yaml'
    RESPONSES_FILE = 'caf-responses.yaml'
    EVIDENCE_FILE = 'caf-evidence.yaml'
    REQUIRED_FILES = [META_FILE]
    OPTIONAL_FILES = [THREATS_FILE, CONTROLS_FILE, LINKS_FILE, RESPONSES_FILE, EVIDENCE_FILE]

    def __init__(self, workspace_path: Path, catalog: Optional[CAFCatalog] = None):
        self.workspace_path = Path(workspace_path)
        self.catalog = catalog or default_catalog()
        self._validate_structure()

    def _validate_structure(self) -> None:
        if not self.workspace_path.exists():
            raise WorkspaceParseError(f"Workspace path does not exist: {self.workspace_path}")
        if not self.workspace_path.is_dir():
            raise WorkspaceParseError(f"Workspace path is not a directory: {self.workspace_path}")
        for required_file in self.REQUIRED_FILES:
            if not (self.workspace_path / required_file).exists():
                raise WorkspaceParseError(f"Required file missing: {required_file}")

    def _load_yaml(self, filename: str) -> Optional[dict]:
        file_path = self.workspace_path / filename
        if not file_path.exists():
            return None
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                content = yaml.safe_load(f)
                return content if content else {}
        except yaml.YAMLError as e:
            raise WorkspaceParseError(f"YAML parse error in {filename}: {e}")

    def _parse_meta(self) -> WorkspaceMeta:
        meta_data = self._load_yaml(self.META_FILE)
        if not meta_data:
            raise WorkspaceParseError(f"{self.META_FILE} is empty or invalid")
        try:
            return WorkspaceMeta(**meta_data)
        except ValidationError as e:
            raise WorkspaceParseError(f"{self.META_FILE} validation error: {e}")

    def _parse_threats(self, store: RecordStore, project_id: str) -> None:
        data = self._load_yaml(self.THREATS_FILE) or {}
        for threat_data in data.get('threats', []):
            threat_id = threat_data.get('id', 'UNKNOWN')
            try:
                store.add_threat(ThreatStatement(**{**threat_data, 'projectId': project_id}))
            except ValidationError as e:
                raise WorkspaceParseError(f"Threat '{threat_id}' validation error: {e}")

        for threat in store.list_threats(project_id):
            parent = store.get_threat(threat.parentId) if threat.parentId else None
            if parent is not None and parent.stage != threat.stage.previous:
                raise WorkspaceParseError(
                    f"Threat '{threat.id}' parent {parent.id} is {parent.stage.value}, "
                    f"expected {threat.stage.previous.value}"
                )

    def _parse_controls(self, store: RecordStore, project_id: str) -> None:
        data = self._load_yaml(self.CONTROLS_FILE) or {}
        for control_data in data.get('controls', []):
            control_id = control_data.get('id', 'UNKNOWN')
            try:
                store.add_control(SecurityControl(**{**control_data, 'projectId': project_id}))
            except ValidationError as e:
                raise WorkspaceParseError(f"Control '{control_id}' validation error: {e}")

    def _parse_links(self, store: RecordStore) -> None:
        data = self._load_yaml(self.LINKS_FILE) or {}
        for link in data.get('links', []):
            threat_id, control_id = link.get('threatId'), link.get('controlId')
            if store.get_threat(threat_id) is None:
                raise WorkspaceParseError(f"Link references undefined threat: {threat_id}")
            if store.get_control(control_id) is None:
                raise WorkspaceParseError(f"Link references undefined control: {control_id}")
            store.add_link(threat_id, control_id)

    def _validate_question(self, question_id: str, outcome_id: Optional[str] = None) -> None:
        question = self.catalog.get_question(question_id)
        if question is None:
            raise WorkspaceParseError(f"Response references undefined question: {question_id}")
        if outcome_id is not None and question.outcomeId != outcome_id:
            raise WorkspaceParseError(
                f"Question '{question_id}' does not belong to outcome {outcome_id}"
            )

    def _parse_responses(self, store: RecordStore, project_id: str) -> None:
        data = self._load_yaml(self.RESPONSES_FILE) or {}
        for entry in data.get('responses', []):
            question_id = entry.get('questionId')
            self._validate_question(question_id)
            response = entry.get('response')
            if response is not None and not isinstance(response, bool):
                raise WorkspaceParseError(f"Response for '{question_id}' must be true, false or null")
            store.set_response(project_id, question_id, response)

    def _parse_evidence(self, store: RecordStore, project_id: str) -> None:
        data = self._load_yaml(self.EVIDENCE_FILE) or {}
        try:
            for entry in data.get('selections', []):
                if self.catalog.get_outcome(entry.get('outcomeId')) is None:
                    raise WorkspaceParseError(f"Evidence references undefined outcome: {entry.get('outcomeId')}")
                store.upsert_selection(
                    project_id, entry['outcomeId'], entry['evidenceText'], entry.get('selected', True)
                )
            for entry in data.get('questionEvidence', []):
                self._validate_question(entry.get('questionId'), entry.get('outcomeId'))
                if entry.get('selected', True):
                    store.add_question_evidence(
                        project_id, entry['questionId'], entry['outcomeId'], entry['evidenceText']
                    )
        except (KeyError, ValidationError) as e:
            raise WorkspaceParseError(f"{self.EVIDENCE_FILE} validation error: {e}")

    def _validate_answer_evidence(self, store: RecordStore, project_id: str) -> None:
        """Answered non-negative questions on outcomes with predefined evidence need a linked item."""
        for record in store.list_responses(project_id):
            if record.response is None:
                continue
            question = self.catalog.get_question(record.questionId)
            if question.isNegative or not self.catalog.predefined_evidence(question.outcomeId):
                continue
            if not store.list_question_evidence(project_id, question.id):
                raise WorkspaceParseError(
                    f"Response to '{question.id}' has no supporting evidence in {self.EVIDENCE_FILE}"
                )

    def parse(self, can_write: bool = True) -> AssuranceWorkspace:
        meta = self._parse_meta()
        store = RecordStore()
        self._parse_threats(store, meta.projectId)
        self._parse_controls(store, meta.projectId)
        self._parse_links(store)
        self._parse_responses(store, meta.projectId)
        self._parse_evidence(store, meta.projectId)
        self._validate_answer_evidence(store, meta.projectId)
        logger.debug("Loaded workspace %s from %s", meta.projectId, self.workspace_path)
        return AssuranceWorkspace(meta, store, catalog=self.catalog, can_write=can_write)


def load_workspace(workspace_path: str | Path, can_write: bool = True,
                   catalog: Optional[CAFCatalog] = None) -> AssuranceWorkspace:
    """Load and validate a workspace from a folder path."""
    parser = WorkspaceParser(Path(workspace_path), catalog)
    return parser.parse(can_write)


def _dump(path: Path, data: dict) -> None:
    with open(path, 'w', encoding='utf-8') as f:
        yaml.dump(data, f, default_flow_style=False, allow_unicode=True, sort_keys=False)


def save_workspace(workspace: AssuranceWorkspace, workspace_path: str | Path) -> Path:
    """Write every record of the workspace back to its folder."""
    output_dir = Path(workspace_path)
    output_dir.mkdir(parents=True, exist_ok=True)
    store, project_id = workspace.store, workspace.project_id

    meta = workspace.meta.model_dump(mode='json', exclude_none=True)
    meta['lastUpdated'] = datetime.now().strftime('%Y-%m-%d')
    _dump(output_dir / WorkspaceParser.META_FILE, meta)

    threats = [
        t.model_dump(mode='json', exclude={'projectId'}, exclude_none=True)
        for t in store.list_threats(project_id)
    ]
    _dump(output_dir / WorkspaceParser.THREATS_FILE, {'threats': threats})

    controls = [
        c.model_dump(mode='json', exclude={'projectId'})
        for c in store.list_controls(project_id)
    ]
    _dump(output_dir / WorkspaceParser.CONTROLS_FILE, {'controls': controls})

    threat_ids = {t.id for t in store.list_threats(project_id)}
    links = [l.model_dump() for l in store.list_links() if l.threatId in threat_ids]
    _dump(output_dir / WorkspaceParser.LINKS_FILE, {'links': links})

    responses = [
        {'questionId': r.questionId, 'response': r.response}
        for r in store.list_responses(project_id)
    ]
    _dump(output_dir / WorkspaceParser.RESPONSES_FILE, {'responses': responses})

    _dump(output_dir / WorkspaceParser.EVIDENCE_FILE, {
        'selections': [
            s.model_dump(exclude={'projectId'}) for s in store.list_selections(project_id)
        ],
        'questionEvidence': [
            qe.model_dump(exclude={'projectId'}) for qe in store.list_question_evidence(project_id)
        ],
    })
    return output_dir


def init_workspace(workspace_path: str | Path, title: str, project_id: str,
                   profile: GovAssureProfile = GovAssureProfile.BASELINE,
                   owner: Optional[str] = None) -> Path:
    """Create a new workspace folder with empty record files."""
    model_dir = Path(workspace_path)
    if model_dir.exists():
        raise WorkspaceParseError(f"Directory already exists: {workspace_path}")
    try:
        meta = WorkspaceMeta(
            projectId=project_id, title=title, govAssureProfile=profile, owner=owner or None,
        )
    except ValidationError as e:
        raise WorkspaceParseError(f"Invalid workspace metadata: {e}")
    return save_workspace(AssuranceWorkspace(meta), model_dir)
