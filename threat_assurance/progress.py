"""Project-wide questionnaire progress."""

from dataclasses import dataclass
from typing import Optional

from .questionnaire import ComplianceQuestionnaire
from .schemas import GovAssureProfile


@dataclass(frozen=True)
class Progress:
    answered: int
    total: int

    @property
    def percentage(self) -> int:
        return round(self.answered / self.total * 100) if self.total else 0


def overall_progress(questionnaire: ComplianceQuestionnaire,
                     profile: Optional[GovAssureProfile] = None) -> Progress:
    """Count answered primary-section questions across the catalog.

    Outcomes without a profile entry, or required only at Not Achieved, are
    skipped entirely even though their negative indicators can still fail them.
    """
    profile = GovAssureProfile(profile) if profile is not None else questionnaire.profile
    catalog = questionnaire.catalog
    answered = total = 0
    for outcome in catalog.outcomes():
        section = catalog.primary_section(outcome.id, profile)
        if section is None:
            continue
        for question in catalog.questions_for(outcome.id, section):
            total += 1
            if questionnaire.get_response(question.id) is not None:
                answered += 1
    return Progress(answered=answered, total=total)
