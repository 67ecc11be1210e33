"""Pydantic models for threat chains, security controls and the CAF questionnaire."""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


CUSTOM_EVIDENCE_MAX_LENGTH = 500


class ThreatStage(str, Enum):
    INITIAL = 'initial'
    INTERMEDIATE = 'intermediate'
    FINAL = 'final'

    @property
    def rank(self) -> int:
        return STAGE_ORDER.index(self) + 1

    @property
    def previous(self) -> Optional['ThreatStage']:
        index = STAGE_ORDER.index(self)
        return STAGE_ORDER[index - 1] if index > 0 else None


STAGE_ORDER = (ThreatStage.INITIAL, ThreatStage.INTERMEDIATE, ThreatStage.FINAL)


class EffectivenessRating(str, Enum):
    A = 'A'
    B = 'B'
    C = 'C'
    D = 'D'
    E = 'E'


class QuestionSection(str, Enum):
    NEGATIVE = 'negative'
    PARTIAL = 'partial'
    ACHIEVED = 'achieved'


class AchievementLevel(str, Enum):
    ACHIEVED = 'Achieved'
    PARTIALLY_ACHIEVED = 'Partially Achieved'
    NOT_ACHIEVED = 'Not Achieved'


class GovAssureProfile(str, Enum):
    BASELINE = 'baseline'
    ENHANCED = 'enhanced'

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            for member in cls:
                if member.value == value.strip().lower():
                    return member
        return None


class OutcomeStatus(str, Enum):
    NONE = 'none'
    PARTIAL = 'partial'
    COMPLETE = 'complete'
    FAILED = 'failed'


class ThreatStatement(BaseModel):
    """A threat statement captured by one of the three stage builders."""
    id: str
    projectId: str
    text: str
    stage: ThreatStage
    parentId: Optional[str] = None

    @field_validator('text')
    @classmethod
    def validate_text(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError('Threat statement text cannot be empty')
        return v.strip()

    @model_validator(mode='after')
    def validate_initial_has_no_parent(self) -> 'ThreatStatement':
        if self.stage == ThreatStage.INITIAL and self.parentId:
            raise ValueError('Initial threat statements cannot have a parent')
        return self


class SecurityControl(BaseModel):
    """A security control placed on one of the six defence layers."""
    id: str
    projectId: str
    name: str
    layer: int
    effectivenessRating: Optional[EffectivenessRating] = None

    @field_validator('layer')
    @classmethod
    def validate_layer(cls, v: int) -> int:
        if v not in (3, 2, 1, -1, -2, -3):
            raise ValueError(f'Control layer must be one of +3, +2, +1, -1, -2, -3, got {v}')
        return v

    @field_validator('effectivenessRating', mode='before')
    @classmethod
    def normalise_rating(cls, v):
        if isinstance(v, str):
            v = v.strip().upper()
            return v or None
        return v


class ThreatControlLink(BaseModel):
    """A control linked directly to the threat statement it was selected on."""
    threatId: str
    controlId: str


class CAFOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str
    evidence: tuple[str, ...] = ()


class CAFPrinciple(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str
    outcomes: tuple[CAFOutcome, ...] = ()


class CAFObjective(BaseModel):
    model_config = ConfigDict(frozen=True)

    objective: str
    title: str
    principles: tuple[CAFPrinciple, ...] = ()


class CAFQuestion(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    outcomeId: str
    section: QuestionSection
    text: str

    @property
    def isNegative(self) -> bool:
        return self.section == QuestionSection.NEGATIVE


class ProfileRequirement(BaseModel):
    """Achievement level an outcome must reach under each Gov Assure profile."""
    model_config = ConfigDict(frozen=True)

    outcome: str
    baseline: AchievementLevel
    enhanced: AchievementLevel

    def level_for(self, profile: GovAssureProfile) -> AchievementLevel:
        return self.enhanced if profile == GovAssureProfile.ENHANCED else self.baseline


class QuestionResponse(BaseModel):
    projectId: str
    questionId: str
    response: Optional[bool] = None


class EvidenceSelection(BaseModel):
    """Outcome-level record of evidence the project relies on."""
    projectId: str
    outcomeId: str
    evidenceText: str = Field(..., min_length=1)
    selected: bool = True


class QuestionEvidenceLink(BaseModel):
    """Evidence a specific question's answer relies on."""
    projectId: str
    questionId: str
    outcomeId: str
    evidenceText: str = Field(..., min_length=1)
    selected: bool = True


class WorkspaceMeta(BaseModel):
    """Metadata for a project workspace."""
    projectId: str
    title: str
    govAssureProfile: GovAssureProfile = GovAssureProfile.BASELINE
    owner: Optional[str] = None
    lastUpdated: Optional[str] = None

    @field_validator('projectId')
    @classmethod
    def validate_project_id(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError('Project ID cannot be empty')
        return v.strip()
