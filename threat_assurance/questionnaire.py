"""CAF compliance questionnaire: responses, evidence gating and outcome status.

Two evidence relations are kept apart. Outcome-level selections record
which evidence the project relies on for an outcome; question-level links record
which evidence a specific answer relies on. Neither is synchronised with the other.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .catalog import CAFCatalog, default_catalog
from .errors import Result, ValidationError, NotFoundError, permission_denied
from .schemas import (
    CAFQuestion, GovAssureProfile, OutcomeStatus, QuestionSection, AchievementLevel,
    CUSTOM_EVIDENCE_MAX_LENGTH,
)
from .store import RecordStore


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComplianceSummary:
    """Answered and compliant question counts for an outcome, principle or objective."""
    total: int
    answered: int
    compliant: int
    percentage: int
    failed: bool
    required_level: Optional[AchievementLevel] = None


def _percentage(compliant: int, total: int) -> int:
    return round(compliant / total * 100) if total else 0


class ComplianceQuestionnaire:
    """Per-project questionnaire state over the static CAF catalog."""

    def __init__(self, store: RecordStore, project_id: str,
                 profile: GovAssureProfile = GovAssureProfile.BASELINE,
                 catalog: Optional[CAFCatalog] = None, can_write: bool = True):
        self.store = store
        self.project_id = project_id
        self.profile = GovAssureProfile(profile)
        self.catalog = catalog or default_catalog()
        self.can_write = can_write

    # Reads

    def get_response(self, question_id: str) -> Optional[bool]:
        return self.store.get_response(self.project_id, question_id)

    def question_evidence(self, question_id: str) -> list[str]:
        return [qe.evidenceText for qe in self.store.list_question_evidence(self.project_id, question_id)]

    def is_evidence_linked(self, question_id: str, evidence_text: str) -> bool:
        return evidence_text in self.question_evidence(question_id)

    def is_evidence_selected(self, outcome_id: str, evidence_text: str) -> bool:
        selection = self.store.get_selection(self.project_id, outcome_id, evidence_text)
        return selection.selected if selection else False

    def custom_evidence(self, outcome_id: str) -> list[str]:
        """Free-text evidence ever added for the outcome, whether or not still selected."""
        predefined = set(self.catalog.predefined_evidence(outcome_id))
        return [
            s.evidenceText for s in self.store.list_selections(self.project_id, outcome_id)
            if s.evidenceText not in predefined
        ]

    def evidence_universe(self, outcome_id: str) -> list[str]:
        return list(self.catalog.predefined_evidence(outcome_id)) + self.custom_evidence(outcome_id)

    def selected_evidence_count(self, outcome_id: str) -> int:
        return sum(1 for s in self.store.list_selections(self.project_id, outcome_id) if s.selected)

    def _resolve_profile(self, profile: Optional[GovAssureProfile]) -> GovAssureProfile:
        return GovAssureProfile(profile) if profile is not None else self.profile

    def relevant_questions(self, outcome_id: str,
                           profile: Optional[GovAssureProfile] = None) -> list[CAFQuestion]:
        """Negative indicators plus the primary section for the required level."""
        section = self.catalog.primary_section(outcome_id, self._resolve_profile(profile))
        questions = self.catalog.questions_for(outcome_id, QuestionSection.NEGATIVE)
        if section is not None:
            questions += self.catalog.questions_for(outcome_id, section)
        return questions

    def get_outcome_status(self, outcome_id: str,
                           profile: Optional[GovAssureProfile] = None) -> OutcomeStatus:
        profile = self._resolve_profile(profile)
        if self.catalog.profile_requirement(outcome_id) is None:
            return OutcomeStatus.NONE

        negatives = self.catalog.questions_for(outcome_id, QuestionSection.NEGATIVE)
        if any(self.get_response(q.id) is True for q in negatives):
            return OutcomeStatus.FAILED

        relevant = self.relevant_questions(outcome_id, profile)
        if not relevant:
            return OutcomeStatus.NONE
        answered = sum(1 for q in relevant if self.get_response(q.id) is not None)
        if answered == len(relevant):
            return OutcomeStatus.COMPLETE
        if answered > 0:
            return OutcomeStatus.PARTIAL
        return OutcomeStatus.NONE

    def outcome_compliance(self, outcome_id: str,
                           profile: Optional[GovAssureProfile] = None) -> Optional[ComplianceSummary]:
        """Compliance score for outcomes required at Achieved or Partially Achieved.

        A negative indicator is compliant when answered No; others when answered Yes.
        Any negative indicator answered Yes scores the outcome at zero.
        """
        profile = self._resolve_profile(profile)
        level = self.catalog.required_level(outcome_id, profile)
        if level is None or self.catalog.primary_section(outcome_id, profile) is None:
            return None
        questions = self.relevant_questions(outcome_id, profile)
        if not questions:
            return None

        answered = compliant = 0
        failed = False
        for question in questions:
            response = self.get_response(question.id)
            if response is None:
                continue
            answered += 1
            if question.isNegative:
                failed = failed or response
                compliant += 0 if response else 1
            elif response:
                compliant += 1

        if failed:
            compliant = 0
        return ComplianceSummary(
            total=len(questions), answered=answered, compliant=compliant,
            percentage=_percentage(compliant, len(questions)), failed=failed,
            required_level=level,
        )

    def _rollup(self, outcome_ids: list[str], profile: Optional[GovAssureProfile]) -> Optional[ComplianceSummary]:
        stats = [s for s in (self.outcome_compliance(o, profile) for o in outcome_ids) if s is not None]
        if not stats:
            return None
        total = sum(s.total for s in stats)
        compliant = sum(s.compliant for s in stats)
        return ComplianceSummary(
            total=total,
            answered=sum(s.answered for s in stats),
            compliant=compliant,
            percentage=_percentage(compliant, total),
            failed=any(s.failed for s in stats),
        )

    def principle_compliance(self, principle_id: str,
                             profile: Optional[GovAssureProfile] = None) -> Optional[ComplianceSummary]:
        principle = self.catalog.get_principle(principle_id)
        if principle is None:
            return None
        return self._rollup([o.id for o in principle.outcomes], profile)

    def objective_compliance(self, objective_id: str,
                             profile: Optional[GovAssureProfile] = None) -> Optional[ComplianceSummary]:
        objective = self.catalog.get_objective(objective_id)
        if objective is None:
            return None
        return self._rollup([o.id for p in objective.principles for o in p.outcomes], profile)

    # Writes

    def _lookup(self, question_id: str, outcome_id: str) -> Result:
        if self.catalog.get_outcome(outcome_id) is None:
            return Result.failure(NotFoundError(f'CAF outcome not found: {outcome_id}'))
        question = self.catalog.get_question(question_id)
        if question is None or question.outcomeId != outcome_id:
            return Result.failure(NotFoundError(f'Question {question_id} not found for outcome {outcome_id}'))
        return Result.success(question)

    def record_response(self, question_id: str, outcome_id: str, value: Optional[bool]) -> Result:
        """Record a Yes/No answer, or clear it with None.

        Answers to non-negative questions on outcomes with predefined evidence must
        already have at least one evidence item linked to the question.
        """
        if not self.can_write:
            return permission_denied('answer assessment questions')
        if value is not None and not isinstance(value, bool):
            return Result.failure(ValidationError(f'Response must be true, false or cleared, got {value!r}'))
        lookup = self._lookup(question_id, outcome_id)
        if not lookup.ok:
            return lookup
        question = lookup.value

        if value is not None and not question.isNegative:
            if self.catalog.predefined_evidence(outcome_id) and not self.question_evidence(question_id):
                return Result.failure(ValidationError(
                    'Select at least one piece of supporting evidence before answering this question'
                ))

        self.store.set_response(self.project_id, question_id, value)
        logger.debug("Recorded response %s for %s", value, question_id)
        return Result.success()

    def link_question_evidence(self, question_id: str, outcome_id: str, evidence_text: str) -> Result:
        if not self.can_write:
            return permission_denied('link question evidence')
        lookup = self._lookup(question_id, outcome_id)
        if not lookup.ok:
            return lookup
        if evidence_text not in self.evidence_universe(outcome_id):
            return Result.failure(ValidationError(
                f'Evidence is not available for outcome {outcome_id}: {evidence_text}'
            ))
        self.store.add_question_evidence(self.project_id, question_id, outcome_id, evidence_text)
        return Result.success()

    def unlink_question_evidence(self, question_id: str, outcome_id: str, evidence_text: str) -> Result:
        """Remove one evidence link. The last link of an answered question is kept."""
        if not self.can_write:
            return permission_denied('unlink question evidence')
        lookup = self._lookup(question_id, outcome_id)
        if not lookup.ok:
            return lookup
        linked = self.question_evidence(question_id)
        if evidence_text not in linked:
            return Result.failure(NotFoundError(f'Evidence is not linked to {question_id}: {evidence_text}'))
        if self.get_response(question_id) is not None and len(linked) == 1:
            return Result.failure(ValidationError(
                'Cannot remove the last piece of evidence from an answered question; clear the answer first'
            ))
        self.store.remove_question_evidence(self.project_id, question_id, evidence_text)
        return Result.success()

    def toggle_question_evidence(self, question_id: str, outcome_id: str, evidence_text: str) -> Result:
        if self.is_evidence_linked(question_id, evidence_text):
            return self.unlink_question_evidence(question_id, outcome_id, evidence_text)
        return self.link_question_evidence(question_id, outcome_id, evidence_text)

    def toggle_evidence_selection(self, outcome_id: str, evidence_text: str) -> Result:
        if not self.can_write:
            return permission_denied('select outcome evidence')
        if self.catalog.get_outcome(outcome_id) is None:
            return Result.failure(NotFoundError(f'CAF outcome not found: {outcome_id}'))
        if evidence_text not in self.evidence_universe(outcome_id):
            return Result.failure(ValidationError(
                f'Evidence is not available for outcome {outcome_id}: {evidence_text}'
            ))
        selected = not self.is_evidence_selected(outcome_id, evidence_text)
        self.store.upsert_selection(self.project_id, outcome_id, evidence_text, selected)
        return Result.success(selected)

    def add_custom_evidence(self, outcome_id: str, evidence_text: str) -> Result:
        if not self.can_write:
            return permission_denied('add custom evidence')
        if self.catalog.get_outcome(outcome_id) is None:
            return Result.failure(NotFoundError(f'CAF outcome not found: {outcome_id}'))
        text = (evidence_text or '').strip()
        if not text:
            return Result.failure(ValidationError('Evidence text cannot be empty'))
        if len(text) > CUSTOM_EVIDENCE_MAX_LENGTH:
            return Result.failure(ValidationError(
                f'Evidence text must be at most {CUSTOM_EVIDENCE_MAX_LENGTH} characters'
            ))
        self.store.upsert_selection(self.project_id, outcome_id, text, True)
        return Result.success(text)
