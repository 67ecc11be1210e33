"""Static CAF catalog: objectives, principles, outcomes, questions and Gov Assure profiles."""

from functools import lru_cache
from pathlib import Path
from typing import Optional
import yaml
from pydantic import ValidationError

from .schemas import (
    CAFObjective, CAFPrinciple, CAFOutcome, CAFQuestion, ProfileRequirement,
    QuestionSection, AchievementLevel, GovAssureProfile,
)


DEFAULT_CATALOG_PATH = Path(__file__).parent / 'data' / 'caf_catalog.yaml'

SECTION_ID_PREFIX = {
    QuestionSection.NEGATIVE: 'neg',
    QuestionSection.PARTIAL: 'par',
    QuestionSection.ACHIEVED: 'ach',
}

# Not Achieved has no primary section; only negative indicators apply.
PRIMARY_SECTIONS = {
    AchievementLevel.ACHIEVED: QuestionSection.ACHIEVED,
    AchievementLevel.PARTIALLY_ACHIEVED: QuestionSection.PARTIAL,
    AchievementLevel.NOT_ACHIEVED: None,
}


class CatalogLoadError(Exception):
    """Raised when the CAF catalog file is missing or invalid."""
    pass


def question_id(outcome_id: str, section: QuestionSection, position: int) -> str:
    return f'{outcome_id}-{SECTION_ID_PREFIX[section]}-{position}'


def primary_section(level: Optional[AchievementLevel]) -> Optional[QuestionSection]:
    if level is None:
        return None
    return PRIMARY_SECTIONS[AchievementLevel(level)]


class CAFCatalog:
    """Read-only lookups over the framework, its questions and profile requirements."""

    def __init__(self, objectives: list[CAFObjective], questions: list[CAFQuestion],
                 profiles: list[ProfileRequirement]):
        self.objectives = tuple(objectives)
        self.questions = tuple(questions)
        self.profiles = tuple(profiles)

        self._outcomes: dict[str, CAFOutcome] = {}
        self._principle_of: dict[str, CAFPrinciple] = {}
        self._principles: dict[str, CAFPrinciple] = {}
        for objective in self.objectives:
            for principle in objective.principles:
                self._principles[principle.id] = principle
                for outcome in principle.outcomes:
                    self._outcomes[outcome.id] = outcome
                    self._principle_of[outcome.id] = principle
        self._questions = {q.id: q for q in self.questions}
        self._profiles = {p.outcome: p for p in self.profiles}

    def outcomes(self) -> list[CAFOutcome]:
        return list(self._outcomes.values())

    def get_outcome(self, outcome_id: str) -> Optional[CAFOutcome]:
        return self._outcomes.get(outcome_id)

    def get_principle(self, principle_id: str) -> Optional[CAFPrinciple]:
        return self._principles.get(principle_id)

    def get_objective(self, objective_id: str) -> Optional[CAFObjective]:
        for objective in self.objectives:
            if objective.objective == objective_id:
                return objective
        return None

    def principle_of(self, outcome_id: str) -> Optional[CAFPrinciple]:
        return self._principle_of.get(outcome_id)

    def get_question(self, question_id: str) -> Optional[CAFQuestion]:
        return self._questions.get(question_id)

    def questions_for(self, outcome_id: str, section: Optional[QuestionSection] = None) -> list[CAFQuestion]:
        return [
            q for q in self.questions
            if q.outcomeId == outcome_id and (section is None or q.section == section)
        ]

    def profile_requirement(self, outcome_id: str) -> Optional[ProfileRequirement]:
        return self._profiles.get(outcome_id)

    def required_level(self, outcome_id: str, profile: GovAssureProfile) -> Optional[AchievementLevel]:
        requirement = self._profiles.get(outcome_id)
        return requirement.level_for(GovAssureProfile(profile)) if requirement else None

    def primary_section(self, outcome_id: str, profile: GovAssureProfile) -> Optional[QuestionSection]:
        return primary_section(self.required_level(outcome_id, profile))

    def predefined_evidence(self, outcome_id: str) -> tuple[str, ...]:
        outcome = self._outcomes.get(outcome_id)
        return outcome.evidence if outcome else ()


def parse_catalog(data: dict) -> CAFCatalog:
    """Build a catalog from the decoded YAML document."""
    if not data:
        raise CatalogLoadError('CAF catalog is empty or invalid')
    try:
        objectives = [CAFObjective(**o) for o in data.get('objectives', [])]
        profiles = [ProfileRequirement(**p) for p in data.get('profiles', [])]
    except ValidationError as e:
        raise CatalogLoadError(f'CAF catalog validation error: {e}')

    known_outcomes = {o.id for obj in objectives for p in obj.principles for o in p.outcomes}
    questions = []
    for outcome_id, sections in (data.get('questions') or {}).items():
        if outcome_id not in known_outcomes:
            raise CatalogLoadError(f'Questions reference undefined outcome: {outcome_id}')
        for section in QuestionSection:
            for position, text in enumerate(sections.get(section.value, []) or [], start=1):
                questions.append(CAFQuestion(
                    id=question_id(outcome_id, section, position),
                    outcomeId=outcome_id,
                    section=section,
                    text=text,
                ))

    for profile in profiles:
        if profile.outcome not in known_outcomes:
            raise CatalogLoadError(f'Profile references undefined outcome: {profile.outcome}')

    return CAFCatalog(objectives, questions, profiles)


def load_catalog(path: str | Path) -> CAFCatalog:
    path = Path(path)
    if not path.exists():
        raise CatalogLoadError(f'CAF catalog not found: {path}')
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise CatalogLoadError(f'YAML parse error in {path.name}: {e}')
    return parse_catalog(data)


@lru_cache(maxsize=1)
def default_catalog() -> CAFCatalog:
    """The packaged NCSC CAF catalog, loaded once."""
    return load_catalog(DEFAULT_CATALOG_PATH)
