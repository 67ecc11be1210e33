"""Threat registry: stage builders, text edits, deletion and chain lookups."""

import logging
from typing import Optional

from .chains import Chain, ChainResolver
from .errors import Result, ValidationError, NotFoundError, permission_denied
from .schemas import ThreatStatement, ThreatStage
from .store import RecordStore


logger = logging.getLogger(__name__)


def next_record_id(prefix: str, existing: set[str]) -> str:
    counter = len(existing) + 1
    while f'{prefix}_{counter:03d}' in existing:
        counter += 1
    return f'{prefix}_{counter:03d}'


class ThreatRegistry:
    """Stores one project's threat statements and resolves their chains."""

    def __init__(self, store: RecordStore, project_id: str, can_write: bool = True):
        self.store = store
        self.project_id = project_id
        self.can_write = can_write

    def list_threats(self, stage: Optional[ThreatStage] = None) -> list[ThreatStatement]:
        return self.store.list_threats(self.project_id, stage)

    def get_threat(self, threat_id: str) -> Optional[ThreatStatement]:
        threat = self.store.get_threat(threat_id)
        if threat is None or threat.projectId != self.project_id:
            return None
        return threat

    def resolver(self) -> ChainResolver:
        return ChainResolver(self.list_threats())

    def resolve_chain(self, threat_id: str) -> Result:
        chain: Optional[Chain] = self.resolver().resolve(threat_id)
        if chain is None:
            return Result.failure(NotFoundError(f'Threat not found: {threat_id}'))
        return Result.success(chain)

    def maturest_threats(self) -> list[ThreatStatement]:
        return self.resolver().maturest_threats()

    def add_threat(self, stage: ThreatStage, text: str, parent_id: Optional[str] = None,
                   threat_id: Optional[str] = None) -> Result:
        """Record a threat statement from the builder for ``stage``.

        The parent, when given, must be an existing statement of this project in
        the immediately preceding stage. Initial statements never have a parent.
        """
        if not self.can_write:
            return permission_denied('add threat statements')
        try:
            stage = ThreatStage(stage)
        except ValueError:
            return Result.failure(ValidationError(f'Unknown threat stage: {stage}'))
        if not text or not text.strip():
            return Result.failure(ValidationError('Threat statement text cannot be empty'))

        if parent_id:
            expected = stage.previous
            if expected is None:
                return Result.failure(ValidationError('Initial threat statements cannot have a parent'))
            parent = self.get_threat(parent_id)
            if parent is None:
                return Result.failure(NotFoundError(f'Parent threat not found: {parent_id}'))
            if parent.stage != expected:
                return Result.failure(ValidationError(
                    f'Parent of a {stage.value} threat must be {expected.value}, '
                    f'got {parent.stage.value}'
                ))

        existing = {t.id for t in self.store.list_threats()}
        if threat_id and threat_id in existing:
            return Result.failure(ValidationError(f'Threat id already exists: {threat_id}'))
        threat = ThreatStatement(
            id=threat_id or next_record_id('THR', existing),
            projectId=self.project_id,
            text=text,
            stage=stage,
            parentId=parent_id or None,
        )
        self.store.add_threat(threat)
        logger.debug("Added %s threat %s (parent %s)", stage.value, threat.id, parent_id)
        return Result.success(threat)

    def update_threat_text(self, threat_id: str, text: str) -> Result:
        if not self.can_write:
            return permission_denied('edit threat statements')
        threat = self.get_threat(threat_id)
        if threat is None:
            return Result.failure(NotFoundError(f'Threat not found: {threat_id}'))
        if not text or not text.strip():
            return Result.failure(ValidationError('Threat statement text cannot be empty'))
        updated = threat.model_copy(update={'text': text.strip()})
        self.store.update_threat(updated)
        return Result.success(updated)

    def delete_threat(self, threat_id: str) -> Result:
        """Delete one statement and its direct links. Children keep their now-stale parentId."""
        if not self.can_write:
            return permission_denied('delete threat statements')
        if self.get_threat(threat_id) is None:
            return Result.failure(NotFoundError(f'Threat not found: {threat_id}'))
        for link in self.store.links_for_threats([threat_id]):
            self.store.remove_link(link.threatId, link.controlId)
        self.store.delete_threat(threat_id)
        logger.debug("Deleted threat %s", threat_id)
        return Result.success()
