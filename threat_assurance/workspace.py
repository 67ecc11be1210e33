"""Project workspace: the operations exposed to presentation and report layers."""

import logging
from typing import Optional

from .catalog import CAFCatalog, default_catalog
from .controls import ControlLinkage, ControlRegister, ControlLinkState
from .errors import Result, NotFoundError
from .mitigation import MitigationEvaluator, MitigationResult
from .progress import Progress, overall_progress
from .questionnaire import ComplianceQuestionnaire
from .registry import ThreatRegistry
from .schemas import (
    GovAssureProfile, OutcomeStatus, SecurityControl, ThreatStatement, WorkspaceMeta,
)
from .store import RecordStore


logger = logging.getLogger(__name__)


def _logged(action: str, result: Result) -> Result:
    if not result.ok:
        logger.info("%s rejected (%s): %s", action, result.error.kind, result.error)
    return result


class AssuranceWorkspace:
    """Binds one project's records to the registry, linkage, evaluator and questionnaire.

    Every mutating call is checked against ``can_write`` by the component that
    performs it; callers are not trusted to have checked.
    """

    def __init__(self, meta: WorkspaceMeta, store: Optional[RecordStore] = None,
                 catalog: Optional[CAFCatalog] = None,
                 evaluator: Optional[MitigationEvaluator] = None,
                 can_write: bool = True):
        self.meta = meta
        self.store = store if store is not None else RecordStore()
        self.catalog = catalog or default_catalog()
        self.evaluator = evaluator or MitigationEvaluator()
        self.can_write = can_write

        project_id = meta.projectId
        self.registry = ThreatRegistry(self.store, project_id, can_write)
        self.controls = ControlRegister(self.store, project_id, can_write)
        self.linkage = ControlLinkage(self.store, self.registry, can_write)
        self.questionnaire = ComplianceQuestionnaire(
            self.store, project_id, meta.govAssureProfile, self.catalog, can_write
        )

    @property
    def project_id(self) -> str:
        return self.meta.projectId

    @property
    def profile(self) -> GovAssureProfile:
        return self.meta.govAssureProfile

    # Threat chains and controls

    def resolve_chain(self, threat_id: str) -> list[ThreatStatement]:
        result = self.registry.resolve_chain(threat_id)
        return list(result.value.members) if result.ok else []

    def is_control_linked(self, threat_id: str, control_id: str) -> bool:
        return self.linkage.is_linked(threat_id, control_id)

    def control_link_states(self, threat_id: str) -> list[ControlLinkState]:
        return self.linkage.link_states(threat_id)

    def toggle_link(self, threat_id: str, control_id: str) -> Result:
        return _logged('toggle_link', self.linkage.toggle_link(threat_id, control_id))

    def linked_controls(self, threat_id: str) -> list[SecurityControl]:
        return self.linkage.linked_controls(threat_id)

    def evaluate_mitigation(self, threat_text: str, linked_controls: list[SecurityControl]) -> MitigationResult:
        return self.evaluator.evaluate(threat_text, linked_controls)

    def evaluate_threat(self, threat_id: str) -> Result:
        """Evaluate a stored threat against the controls effective across its chain."""
        threat = self.registry.get_threat(threat_id)
        if threat is None:
            return Result.failure(NotFoundError(f'Threat not found: {threat_id}'))
        return Result.success(self.evaluate_mitigation(threat.text, self.linked_controls(threat_id)))

    # Questionnaire

    def get_outcome_status(self, outcome_id: str,
                           profile: Optional[GovAssureProfile] = None) -> OutcomeStatus:
        return self.questionnaire.get_outcome_status(outcome_id, profile)

    def record_response(self, question_id: str, outcome_id: str, value: Optional[bool]) -> Result:
        return _logged('record_response', self.questionnaire.record_response(question_id, outcome_id, value))

    def toggle_question_evidence(self, question_id: str, outcome_id: str, evidence_text: str) -> Result:
        return _logged(
            'toggle_question_evidence',
            self.questionnaire.toggle_question_evidence(question_id, outcome_id, evidence_text),
        )

    def overall_progress(self) -> Progress:
        return overall_progress(self.questionnaire)
