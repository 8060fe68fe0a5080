"""Record lifecycle manager.

Glues generation to persistence and exposes the edit / delete operations.
Collaborator failures propagate unchanged; nothing is retried. Batch
operations skip ids that do not exist (or belong to someone else) and report
how many records they actually touched.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from .backends import Backend
from .errors import Unauthorized
from .generator import RandomSource, SystemRandomSource, generate_password, resolve_username
from .models import CredentialRecord, GenerateConfig, RecordPatch
from .session import SessionContext

logger = logging.getLogger(__name__)


class RecordManager:
    """Owner-scoped operations over a :class:`Backend`.

    In multi-user mode every operation needs an active session; in
    single-user mode records carry no owner.
    """

    def __init__(
        self,
        backend: Backend,
        session: Optional[SessionContext] = None,
        multi_user: bool = True,
        rng: Optional[RandomSource] = None,
    ) -> None:
        self.backend = backend
        self.session = session or SessionContext(backend)
        self.multi_user = multi_user
        self.rng = rng or SystemRandomSource()

    def owner_id(self) -> Optional[str]:
        if not self.multi_user:
            return None
        return self.session.require_owner()

    # ------------------------------------------------------------------
    # Create / read
    # ------------------------------------------------------------------

    def build(self, config: GenerateConfig) -> CredentialRecord:
        """Generate a record without persisting it."""
        return CredentialRecord(
            username=resolve_username(config, self.rng),
            password=generate_password(config, self.rng),
            remark=config.remark or None,
            group=config.group or None,
        )

    def generate(self, config: GenerateConfig) -> CredentialRecord:
        owner = self.owner_id()
        record = self.backend.create_record(owner, self.build(config))
        logger.info("Generated record %s", record.id)
        return record

    def history(self) -> list[CredentialRecord]:
        return self.backend.list_records(self.owner_id())

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def update(self, record_id: str, group: Optional[str] = None, remark: Optional[str] = None) -> None:
        """Partial update; only the fields given are changed.

        An empty string clears the field. Raises
        :class:`~securegen.errors.NotFound` for an unknown id.
        """
        fields = {k: v for k, v in (("group", group), ("remark", remark)) if v is not None}
        patch = RecordPatch(**fields)
        self.backend.patch_record(self.owner_id(), record_id, patch)
        logger.info("Updated record %s", record_id)

    def batch_update(self, ids: Iterable[str], group: Optional[str]) -> int:
        count = self.backend.batch_patch(self.owner_id(), ids, RecordPatch(group=group))
        logger.info("Regrouped %d record(s)", count)
        return count

    def delete(self, record_id: str) -> int:
        return self.batch_delete([record_id])

    def batch_delete(self, ids: Iterable[str]) -> int:
        count = self.backend.batch_delete(self.owner_id(), ids)
        logger.info("Deleted %d record(s)", count)
        return count

    def clear(self, owner_id: Optional[str] = None) -> int:
        """Remove every record of the current owner.

        *owner_id*, when given, must match the session owner; one user can
        never clear another's history.
        """
        owner = self.owner_id()
        if owner_id is not None and owner_id != owner:
            raise Unauthorized("Cannot clear another user's history.")
        count = self.backend.delete_all_for_owner(owner)
        logger.info("Cleared %d record(s)", count)
        return count
