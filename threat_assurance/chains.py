"""Threat chain resolution.

A chain is the family of threat statements that share mitigating controls. When
a project records parent links between stages, the chain is every statement whose
upward walk reaches the same root. Legacy projects without any parent links are
grouped by a content signature instead, which is a best-effort approximation.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional, Union

from .schemas import ThreatStatement, STAGE_ORDER


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LinkedChain:
    """Chain resolved by following parent links to a shared root."""
    root_id: str
    members: tuple[ThreatStatement, ...]

    strategy = 'linked'

    @property
    def member_ids(self) -> list[str]:
        return [t.id for t in self.members]


@dataclass(frozen=True)
class HeuristicChain:
    """Chain guessed from matching actor and asset phrases in legacy data."""
    signature: str
    members: tuple[ThreatStatement, ...]

    strategy = 'heuristic'

    @property
    def member_ids(self) -> list[str]:
        return [t.id for t in self.members]


@dataclass(frozen=True)
class SingleThreat:
    """Degraded resolution used when the parent links are malformed."""
    reason: str
    members: tuple[ThreatStatement, ...]

    strategy = 'single'

    @property
    def member_ids(self) -> list[str]:
        return [t.id for t in self.members]


Chain = Union[LinkedChain, HeuristicChain, SingleThreat]


class ThreatSignature:
    """Extracts the actor and asset phrases used to group unlinked statements."""

    ACTOR_PATTERN = re.compile(
        r'^(?:using [^,]+,\s*)?(?:an?\s+)(.+?)(?:\s+with\b|\s+could\b|,|$)', re.IGNORECASE
    )
    ASSET_PATTERN = re.compile(
        r'(?:\bof|\btarget(?:ing)?)\s+(?:the\s+)?([a-z0-9\s]+?)(?:\s+to\b|\s+in order\b|\s*$)',
        re.IGNORECASE,
    )

    @classmethod
    def actor(cls, text: str) -> str:
        match = cls.ACTOR_PATTERN.search(text.strip())
        return match.group(1).strip().lower() if match else ''

    @classmethod
    def asset(cls, text: str) -> str:
        match = cls.ASSET_PATTERN.search(text.strip())
        return match.group(1).strip().lower() if match else ''

    @classmethod
    def key(cls, text: str) -> str:
        return f'{cls.actor(text)}::{cls.asset(text)}'


class ChainResolver:
    """Resolves chains over a snapshot of one project's threat statements."""

    def __init__(self, threats: list[ThreatStatement], max_depth: int = len(STAGE_ORDER)):
        self.threats = list(threats)
        self.max_depth = max_depth
        self._by_id = {t.id: t for t in self.threats}

    @property
    def uses_parent_links(self) -> bool:
        return any(t.parentId for t in self.threats)

    def find_root(self, threat: ThreatStatement) -> Optional[ThreatStatement]:
        """Walk parent links upwards. Returns None when the walk loops or runs too deep.

        A parentId pointing at a deleted statement ends the walk at the orphan.
        """
        current = threat
        visited = {threat.id}
        while current.parentId and current.parentId in self._by_id:
            if current.parentId in visited or len(visited) >= self.max_depth:
                return None
            current = self._by_id[current.parentId]
            visited.add(current.id)
        return current

    def resolve(self, threat_id: str) -> Optional[Chain]:
        threat = self._by_id.get(threat_id)
        if threat is None:
            return None
        if not self.uses_parent_links:
            return self._resolve_heuristic(threat)

        root = self.find_root(threat)
        if root is None:
            logger.warning("Malformed parent chain at threat %s, resolving it on its own", threat_id)
            return SingleThreat(reason='parent chain loops or exceeds stage depth', members=(threat,))

        members = []
        for candidate in self.threats:
            candidate_root = self.find_root(candidate)
            if candidate_root is not None and candidate_root.id == root.id:
                members.append(candidate)
        return LinkedChain(root_id=root.id, members=tuple(members))

    def _resolve_heuristic(self, threat: ThreatStatement) -> HeuristicChain:
        signature = ThreatSignature.key(threat.text)
        if not ThreatSignature.actor(threat.text):
            return HeuristicChain(signature=signature, members=(threat,))
        members = tuple(t for t in self.threats if ThreatSignature.key(t.text) == signature)
        return HeuristicChain(signature=signature, members=members)

    def related_ids(self, threat_id: str) -> list[str]:
        chain = self.resolve(threat_id)
        return chain.member_ids if chain else []

    def chains(self) -> list[Chain]:
        """Every distinct chain in the snapshot, in order of first appearance."""
        seen: set[str] = set()
        result = []
        for threat in self.threats:
            if threat.id in seen:
                continue
            chain = self.resolve(threat.id)
            seen.update(chain.member_ids)
            result.append(chain)
        return result

    def maturest_threats(self) -> list[ThreatStatement]:
        """The most mature member of each chain, most mature stages first."""
        maturest = []
        for chain in self.chains():
            best = max(chain.members, key=lambda t: t.stage.rank)
            maturest.append(best)
        return sorted(maturest, key=lambda t: t.stage.rank, reverse=True)
