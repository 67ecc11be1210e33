"""Actor-driven, layered mitigation adequacy evaluation.

The evaluator is a pure function of a threat statement's text and the controls
linked to its chain. The layer table, actor pattern table and requirement table
are immutable constants injected through the constructor.
"""

import re
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from .schemas import SecurityControl


@dataclass(frozen=True)
class LayerDefinition:
    value: int
    label: str

    @property
    def display(self) -> str:
        return f'+{self.value}' if self.value > 0 else str(self.value)


CONTROL_LAYERS: tuple[LayerDefinition, ...] = (
    LayerDefinition(3, 'Policies & standards'),
    LayerDefinition(2, 'Process & procedures'),
    LayerDefinition(1, 'Physical & location controls'),
    LayerDefinition(-1, 'Authorisation controls'),
    LayerDefinition(-2, 'Network & authentication controls'),
    LayerDefinition(-3, 'Detection controls'),
)


class ActorType(str, Enum):
    NATION_STATE = 'nation_state'
    ORGANISED_CRIME = 'organised_crime'
    MALICIOUS_INSIDER = 'malicious_insider'
    ACCIDENTAL_INSIDER = 'accidental_insider'
    HACKTIVIST_TERRORIST_HACKER = 'hacktivist_terrorist_hacker'
    UNKNOWN = 'unknown'


# First match wins.
ACTOR_PATTERNS: tuple[tuple[re.Pattern, ActorType], ...] = (
    (re.compile(r'nation state', re.IGNORECASE), ActorType.NATION_STATE),
    (re.compile(r'organised crime', re.IGNORECASE), ActorType.ORGANISED_CRIME),
    (re.compile(r'malicious user', re.IGNORECASE), ActorType.MALICIOUS_INSIDER),
    (re.compile(r'malicious admin', re.IGNORECASE), ActorType.MALICIOUS_INSIDER),
    (re.compile(r'accidental user', re.IGNORECASE), ActorType.ACCIDENTAL_INSIDER),
    (re.compile(r'accidental admin', re.IGNORECASE), ActorType.ACCIDENTAL_INSIDER),
    (re.compile(r'hacktivist|hactavist', re.IGNORECASE), ActorType.HACKTIVIST_TERRORIST_HACKER),
    (re.compile(r'terrorist', re.IGNORECASE), ActorType.HACKTIVIST_TERRORIST_HACKER),
    (re.compile(r'hacker', re.IGNORECASE), ActorType.HACKTIVIST_TERRORIST_HACKER),
)


class RequirementScope(str, Enum):
    PER_LAYER = 'per_layer'
    TOTAL = 'total'


B_OR_HIGHER = frozenset({'A', 'B'})
C_OR_HIGHER = frozenset({'A', 'B', 'C'})


@dataclass(frozen=True)
class MitigationRequirement:
    minimum: int
    ratings: frozenset
    scope: RequirementScope
    label: str


MITIGATION_REQUIREMENTS: Mapping[ActorType, MitigationRequirement] = MappingProxyType({
    ActorType.NATION_STATE: MitigationRequirement(
        3, B_OR_HIGHER, RequirementScope.PER_LAYER, 'Nation State: 3 controls at B+ per layer'),
    ActorType.ORGANISED_CRIME: MitigationRequirement(
        2, B_OR_HIGHER, RequirementScope.PER_LAYER, 'Organised Crime: 2 controls at B+ per layer'),
    ActorType.MALICIOUS_INSIDER: MitigationRequirement(
        8, B_OR_HIGHER, RequirementScope.TOTAL, 'Malicious Insider: 8 controls at B+ total'),
    ActorType.ACCIDENTAL_INSIDER: MitigationRequirement(
        6, C_OR_HIGHER, RequirementScope.TOTAL, 'Accidental Insider: 6 controls at C+ total'),
    ActorType.HACKTIVIST_TERRORIST_HACKER: MitigationRequirement(
        2, C_OR_HIGHER, RequirementScope.PER_LAYER, 'Hacktivist/Terrorist/Hacker: 2 controls at C+ per layer'),
})


class Verdict(str, Enum):
    MITIGATED = 'mitigated'
    UNMITIGATED = 'unmitigated'
    UNDETERMINED = 'undetermined'


class LayerBand(str, Enum):
    MET = 'met'
    NO_USABLE_CONTROLS = 'no_usable_controls'
    HIGH = 'high'
    MEDIUM = 'medium'
    LOW = 'low'
    MINIMAL = 'minimal'
    NOT_APPLICABLE = 'not_applicable'


@dataclass(frozen=True)
class LayerAssessment:
    """Linked controls and requirement progress for one defence layer."""
    layer: int
    label: str
    controls: tuple[SecurityControl, ...]
    count_at_b_or_higher: int
    count_at_c_or_higher: int
    met: bool
    no_usable_controls: bool
    progress: float
    band: LayerBand


@dataclass(frozen=True)
class MitigationResult:
    actor_type: ActorType
    layers: tuple[LayerAssessment, ...]
    total_at_b_or_higher: int
    total_at_c_or_higher: int
    verdict: Verdict
    requirement: Optional[MitigationRequirement] = None

    @property
    def per_layer_counts(self) -> dict[int, tuple[int, int]]:
        return {l.layer: (l.count_at_b_or_higher, l.count_at_c_or_higher) for l in self.layers}

    @property
    def requirement_label(self) -> str:
        return self.requirement.label if self.requirement else 'Unknown actor type'

    @property
    def failing_layers(self) -> list[LayerAssessment]:
        return [l for l in self.layers if not l.met]


def _rating_of(control: SecurityControl) -> Optional[str]:
    rating = control.effectivenessRating
    return getattr(rating, 'value', rating)


def _progress(usable: int, minimum: int) -> float:
    return min(usable / minimum, 1.0) if minimum > 0 else 1.0


def _band_for(progress: float) -> LayerBand:
    if progress >= 0.75:
        return LayerBand.HIGH
    if progress >= 0.5:
        return LayerBand.MEDIUM
    if progress >= 0.25:
        return LayerBand.LOW
    return LayerBand.MINIMAL


class MitigationEvaluator:
    """Classifies the threat actor and checks linked controls against its requirement."""

    def __init__(self, layers: tuple[LayerDefinition, ...] = CONTROL_LAYERS,
                 actor_patterns: tuple[tuple[re.Pattern, ActorType], ...] = ACTOR_PATTERNS,
                 requirements: Mapping[ActorType, MitigationRequirement] = MITIGATION_REQUIREMENTS):
        self.layers = layers
        self.actor_patterns = actor_patterns
        self.requirements = requirements

    def classify_actor(self, threat_text: str) -> ActorType:
        for pattern, actor_type in self.actor_patterns:
            if pattern.search(threat_text or ''):
                return actor_type
        return ActorType.UNKNOWN

    def evaluate(self, threat_text: str, linked_controls: Iterable[SecurityControl]) -> MitigationResult:
        actor_type = self.classify_actor(threat_text)
        requirement = self.requirements.get(actor_type)
        controls = list(linked_controls)

        allowed = requirement.ratings if requirement is not None else frozenset()
        counts = []
        for layer in self.layers:
            at_layer = tuple(c for c in controls if c.layer == layer.value)
            ratings = [_rating_of(c) for c in at_layer]
            counts.append((
                layer, at_layer,
                sum(1 for r in ratings if r in B_OR_HIGHER),
                sum(1 for r in ratings if r in C_OR_HIGHER),
                sum(1 for r in ratings if r in allowed),
            ))

        total_b = sum(b for _, _, b, _, _ in counts)
        total_c = sum(c for _, _, _, c, _ in counts)
        if requirement is not None:
            total_usable = sum(u for _, _, _, _, u in counts)
            total_met = total_usable >= requirement.minimum

        assessments = []
        for layer, at_layer, count_b, count_c, usable in counts:
            if requirement is None:
                assessments.append(LayerAssessment(
                    layer.value, layer.label, at_layer, count_b, count_c,
                    met=False, no_usable_controls=False, progress=0.0,
                    band=LayerBand.NOT_APPLICABLE,
                ))
                continue

            if requirement.scope == RequirementScope.PER_LAYER:
                met = usable >= requirement.minimum
                progress = _progress(usable, requirement.minimum)
            else:
                met = total_met
                progress = _progress(total_usable, requirement.minimum)
            no_usable = not met and usable == 0
            if met:
                band = LayerBand.MET
            elif no_usable:
                band = LayerBand.NO_USABLE_CONTROLS
            else:
                band = _band_for(progress)
            assessments.append(LayerAssessment(
                layer.value, layer.label, at_layer, count_b, count_c,
                met=met, no_usable_controls=no_usable, progress=progress, band=band,
            ))

        if requirement is None:
            verdict = Verdict.UNDETERMINED
        elif all(a.met for a in assessments):
            verdict = Verdict.MITIGATED
        else:
            verdict = Verdict.UNMITIGATED

        return MitigationResult(
            actor_type=actor_type,
            layers=tuple(assessments),
            total_at_b_or_higher=total_b,
            total_at_c_or_higher=total_c,
            verdict=verdict,
            requirement=requirement,
        )


def evaluate_mitigation(threat_text: str, linked_controls: Iterable[SecurityControl]) -> MitigationResult:
    """Evaluate with the standard layer, actor and requirement tables."""
    return MitigationEvaluator().evaluate(threat_text, linked_controls)
