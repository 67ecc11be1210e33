"""In-memory record store for threats, controls, links and questionnaire state.

The store is the persistence collaborator the core logic runs against. It offers
plain create/read/update/delete plus equality and "in-list" queries; it holds no
business rules. Reads always reflect the caller's preceding writes.
"""

from typing import Iterable, Optional

from .schemas import (
    ThreatStatement, ThreatStage, SecurityControl, ThreatControlLink,
    QuestionResponse, EvidenceSelection, QuestionEvidenceLink,
)


class RecordStore:
    """Keeps every record keyed the way the backing tables are keyed."""

    def __init__(self):
        self._threats: dict[str, ThreatStatement] = {}
        self._controls: dict[str, SecurityControl] = {}
        self._links: dict[tuple[str, str], ThreatControlLink] = {}
        self._responses: dict[tuple[str, str], QuestionResponse] = {}
        self._selections: dict[tuple[str, str, str], EvidenceSelection] = {}
        self._question_evidence: dict[tuple[str, str, str], QuestionEvidenceLink] = {}

    # Threat statements

    def add_threat(self, threat: ThreatStatement) -> ThreatStatement:
        self._threats[threat.id] = threat
        return threat

    def get_threat(self, threat_id: str) -> Optional[ThreatStatement]:
        return self._threats.get(threat_id)

    def list_threats(self, project_id: Optional[str] = None,
                     stage: Optional[ThreatStage] = None) -> list[ThreatStatement]:
        return [
            t for t in self._threats.values()
            if (project_id is None or t.projectId == project_id)
            and (stage is None or t.stage == stage)
        ]

    def update_threat(self, threat: ThreatStatement) -> ThreatStatement:
        self._threats[threat.id] = threat
        return threat

    def delete_threat(self, threat_id: str) -> bool:
        return self._threats.pop(threat_id, None) is not None

    # Security controls

    def add_control(self, control: SecurityControl) -> SecurityControl:
        self._controls[control.id] = control
        return control

    def get_control(self, control_id: str) -> Optional[SecurityControl]:
        return self._controls.get(control_id)

    def list_controls(self, project_id: Optional[str] = None) -> list[SecurityControl]:
        return [c for c in self._controls.values() if project_id is None or c.projectId == project_id]

    def get_controls(self, control_ids: Iterable[str]) -> list[SecurityControl]:
        wanted = set(control_ids)
        return [c for c in self._controls.values() if c.id in wanted]

    def update_control(self, control: SecurityControl) -> SecurityControl:
        self._controls[control.id] = control
        return control

    def delete_control(self, control_id: str) -> bool:
        return self._controls.pop(control_id, None) is not None

    # Threat/control links

    def add_link(self, threat_id: str, control_id: str) -> ThreatControlLink:
        link = ThreatControlLink(threatId=threat_id, controlId=control_id)
        self._links[(threat_id, control_id)] = link
        return link

    def remove_link(self, threat_id: str, control_id: str) -> bool:
        return self._links.pop((threat_id, control_id), None) is not None

    def has_link(self, threat_id: str, control_id: str) -> bool:
        return (threat_id, control_id) in self._links

    def links_for_threats(self, threat_ids: Iterable[str]) -> list[ThreatControlLink]:
        wanted = set(threat_ids)
        return [link for link in self._links.values() if link.threatId in wanted]

    def links_for_control(self, control_id: str) -> list[ThreatControlLink]:
        return [link for link in self._links.values() if link.controlId == control_id]

    def list_links(self) -> list[ThreatControlLink]:
        return list(self._links.values())

    # Questionnaire responses

    def get_response(self, project_id: str, question_id: str) -> Optional[bool]:
        record = self._responses.get((project_id, question_id))
        return record.response if record else None

    def set_response(self, project_id: str, question_id: str, response: Optional[bool]) -> QuestionResponse:
        record = QuestionResponse(projectId=project_id, questionId=question_id, response=response)
        self._responses[(project_id, question_id)] = record
        return record

    def list_responses(self, project_id: str) -> list[QuestionResponse]:
        return [r for r in self._responses.values() if r.projectId == project_id]

    # Outcome-level evidence selections

    def upsert_selection(self, project_id: str, outcome_id: str, evidence_text: str,
                         selected: bool) -> EvidenceSelection:
        record = EvidenceSelection(
            projectId=project_id, outcomeId=outcome_id,
            evidenceText=evidence_text, selected=selected,
        )
        self._selections[(project_id, outcome_id, evidence_text)] = record
        return record

    def get_selection(self, project_id: str, outcome_id: str,
                      evidence_text: str) -> Optional[EvidenceSelection]:
        return self._selections.get((project_id, outcome_id, evidence_text))

    def list_selections(self, project_id: str, outcome_id: Optional[str] = None) -> list[EvidenceSelection]:
        return [
            s for s in self._selections.values()
            if s.projectId == project_id and (outcome_id is None or s.outcomeId == outcome_id)
        ]

    # Question-level evidence links

    def add_question_evidence(self, project_id: str, question_id: str, outcome_id: str,
                              evidence_text: str) -> QuestionEvidenceLink:
        record = QuestionEvidenceLink(
            projectId=project_id, questionId=question_id,
            outcomeId=outcome_id, evidenceText=evidence_text,
        )
        self._question_evidence[(project_id, question_id, evidence_text)] = record
        return record

    def remove_question_evidence(self, project_id: str, question_id: str, evidence_text: str) -> bool:
        return self._question_evidence.pop((project_id, question_id, evidence_text), None) is not None

    def list_question_evidence(self, project_id: str,
                               question_id: Optional[str] = None) -> list[QuestionEvidenceLink]:
        return [
            qe for qe in self._question_evidence.values()
            if qe.projectId == project_id and (question_id is None or qe.questionId == question_id)
        ]
