"""Security control register and threat/control linkage.

Links are written against the exact threat statement the user selected, but read
across the whole chain: a control linked to any chain member is effective for
every member.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from pydantic import ValidationError as SchemaValidationError

from .errors import Result, ValidationError, NotFoundError, permission_denied
from .registry import ThreatRegistry, next_record_id
from .schemas import SecurityControl
from .store import RecordStore


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ControlLinkState:
    """Link state of one control as seen from one threat statement.

    ``direct`` is true when a link row exists for this exact threat; ``effective``
    is true when any member of the threat's chain carries one.
    """
    control: SecurityControl
    direct: bool
    effective: bool

    @property
    def inherited(self) -> bool:
        return self.effective and not self.direct


class ControlRegister:
    """Create, edit and delete a project's security controls."""

    def __init__(self, store: RecordStore, project_id: str, can_write: bool = True):
        self.store = store
        self.project_id = project_id
        self.can_write = can_write

    def list_controls(self) -> list[SecurityControl]:
        return self.store.list_controls(self.project_id)

    def get_control(self, control_id: str) -> Optional[SecurityControl]:
        control = self.store.get_control(control_id)
        if control is None or control.projectId != self.project_id:
            return None
        return control

    def add_control(self, name: str, layer: int, rating: Optional[str] = None,
                    control_id: Optional[str] = None) -> Result:
        if not self.can_write:
            return permission_denied('add security controls')
        if not name or not name.strip():
            return Result.failure(ValidationError('Control name cannot be empty'))
        existing = {c.id for c in self.store.list_controls()}
        if control_id and control_id in existing:
            return Result.failure(ValidationError(f'Control id already exists: {control_id}'))
        try:
            control = SecurityControl(
                id=control_id or next_record_id('CTL', existing),
                projectId=self.project_id,
                name=name.strip(),
                layer=layer,
                effectivenessRating=rating,
            )
        except SchemaValidationError as e:
            return Result.failure(ValidationError(f'Invalid control: {e.errors()[0]["msg"]}'))
        self.store.add_control(control)
        logger.debug("Added control %s on layer %s", control.id, control.layer)
        return Result.success(control)

    def update_control(self, control_id: str, **changes) -> Result:
        """Apply field changes (``name``, ``layer``, ``effectivenessRating``)."""
        if not self.can_write:
            return permission_denied('edit security controls')
        control = self.get_control(control_id)
        if control is None:
            return Result.failure(NotFoundError(f'Control not found: {control_id}'))
        unknown = set(changes) - {'name', 'layer', 'effectivenessRating'}
        if unknown:
            return Result.failure(ValidationError(f'Cannot change control fields: {sorted(unknown)}'))
        try:
            updated = SecurityControl(**{**control.model_dump(), **changes})
        except SchemaValidationError as e:
            return Result.failure(ValidationError(f'Invalid control: {e.errors()[0]["msg"]}'))
        self.store.update_control(updated)
        return Result.success(updated)

    def delete_control(self, control_id: str) -> Result:
        if not self.can_write:
            return permission_denied('delete security controls')
        if self.get_control(control_id) is None:
            return Result.failure(NotFoundError(f'Control not found: {control_id}'))
        for link in self.store.links_for_control(control_id):
            self.store.remove_link(link.threatId, link.controlId)
        self.store.delete_control(control_id)
        logger.debug("Deleted control %s", control_id)
        return Result.success()


class ControlLinkage:
    """Chain-aware view over threat/control link rows."""

    def __init__(self, store: RecordStore, registry: ThreatRegistry, can_write: bool = True):
        self.store = store
        self.registry = registry
        self.can_write = can_write

    def _chain_ids(self, threat_id: str) -> Optional[list[str]]:
        chain = self.registry.resolve_chain(threat_id)
        return chain.value.member_ids if chain.ok else None

    def effective_control_ids(self, threat_id: str) -> set[str]:
        chain_ids = self._chain_ids(threat_id)
        if chain_ids is None:
            return set()
        return {link.controlId for link in self.store.links_for_threats(chain_ids)}

    def is_linked(self, threat_id: str, control_id: str) -> bool:
        return control_id in self.effective_control_ids(threat_id)

    def is_directly_linked(self, threat_id: str, control_id: str) -> bool:
        return self.store.has_link(threat_id, control_id)

    def linked_controls(self, threat_id: str) -> list[SecurityControl]:
        return self.store.get_controls(self.effective_control_ids(threat_id))

    def link_states(self, threat_id: str) -> list[ControlLinkState]:
        effective = self.effective_control_ids(threat_id)
        return [
            ControlLinkState(
                control=control,
                direct=self.store.has_link(threat_id, control.id),
                effective=control.id in effective,
            )
            for control in self.store.list_controls(self.registry.project_id)
        ]

    def toggle_link(self, threat_id: str, control_id: str) -> Result:
        """Create or delete the one link row for exactly this threat and control."""
        if not self.can_write:
            return permission_denied('link controls to threats')
        if self.registry.get_threat(threat_id) is None:
            return Result.failure(NotFoundError(f'Threat not found: {threat_id}'))
        control = self.store.get_control(control_id)
        if control is None or control.projectId != self.registry.project_id:
            return Result.failure(NotFoundError(f'Control not found: {control_id}'))

        if self.store.has_link(threat_id, control_id):
            self.store.remove_link(threat_id, control_id)
            logger.debug("Unlinked control %s from threat %s", control_id, threat_id)
            return Result.success(False)
        self.store.add_link(threat_id, control_id)
        logger.debug("Linked control %s to threat %s", control_id, threat_id)
        return Result.success(True)
