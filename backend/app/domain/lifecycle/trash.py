"""
Soft-delete / trash operations.

Trash state is independent of status: soft_delete never changes status
and writes no timeline entry, restore appends one "restored" entry.
Permanent deletion is admin-only, needs an explicit confirm flag and is
audited before the rows disappear.
"""

import logging
from typing import Optional, Type

from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import (
    InsufficientPermissionsError,
    NotDeletedError,
    ResourceNotFoundError,
    ValidationFailedError,
)
from backend.app.db.repository import LifecycleRepository, commit_or_conflict
from backend.app.domain.lifecycle.policy import Operation, authorize
from backend.app.domain.lifecycle.timeline import TimelineEvent, append_entry, build_entry
from backend.app.models.enums import UserRole
from backend.app.models.lifecycle import utcnow
from backend.app.services.audit import AuditAction, log_event, record_event

logger = logging.getLogger(__name__)


def _require_confirm(confirm: bool) -> None:
    if confirm is not True:
        raise ValidationFailedError("Permanent deletion must be confirmed", field="confirm")


class TrashService:
    
    @staticmethod
    async def soft_delete(db: AsyncSession, entity, actor, reason: Optional[str] = None):
        """
        Move an entity to the trash.
        
        Only early statuses (before warehouse receipt) can be trashed unless
        the actor is an admin. Customers may trash only their own documents.
        """
        authorize(actor, Operation.SOFT_DELETE)
        if entity.is_deleted:
            raise ResourceNotFoundError(entity.label, entity.id)
        
        if actor.role == UserRole.CUSTOMER and entity.customer_id != actor.user_id:
            raise InsufficientPermissionsError(f"You can only delete your own {entity.label.lower()}s")
        
        if not actor.is_admin and not entity.lifecycle.is_deletable(entity.status):
            raise InsufficientPermissionsError(
                f"{entity.label} in status '{entity.status.value}' can only be deleted by an admin",
                details={"status": entity.status.value}
            )
        
        entity.is_deleted = True
        entity.deleted_at = utcnow()
        entity.deleted_by = actor.user_id
        entity.deletion_reason = reason
        entity.updated_by = actor.user_id
        
        record_event(
            db,
            AuditAction.for_entity(entity.label, AuditAction.SOFT_DELETED),
            actor_id=actor.user_id,
            actor_username=actor.username,
            entity=entity,
            metadata={"reason": reason, "status": entity.status.value},
        )
        await commit_or_conflict(db, entity)
        logger.info("%s %s moved to trash by user %s", entity.label, entity.number, actor.user_id)
        return entity
    
    @staticmethod
    async def restore(db: AsyncSession, entity, actor):
        authorize(actor, Operation.RESTORE)
        if not entity.is_deleted:
            raise NotDeletedError(entity.label, entity.id)
        
        now = utcnow()
        entity.is_deleted = False
        entity.deleted_at = None
        entity.deleted_by = None
        entity.deletion_reason = None
        entity.restored_at = now
        entity.restored_by = actor.user_id
        entity.updated_by = actor.user_id
        append_entry(entity, build_entry(
            TimelineEvent.RESTORED,
            entity.status,
            actor.user_id,
            description=f"{entity.label} restored from trash",
            timestamp=now,
        ))
        
        record_event(
            db,
            AuditAction.for_entity(entity.label, AuditAction.RESTORED),
            actor_id=actor.user_id,
            actor_username=actor.username,
            entity=entity,
        )
        await commit_or_conflict(db, entity)
        logger.info("%s %s restored by user %s", entity.label, entity.number, actor.user_id)
        return entity
    
    @staticmethod
    async def hard_delete(db: AsyncSession, entity, actor, confirm: bool = False) -> None:
        """Permanently remove one entity. Irreversible."""
        authorize(actor, Operation.HARD_DELETE)
        _require_confirm(confirm)
        
        label, entity_id, number = entity.label, entity.id, entity.number
        await log_event(
            db,
            AuditAction.for_entity(label, AuditAction.HARD_DELETED),
            actor_id=actor.user_id,
            actor_username=actor.username,
            entity=entity,
            metadata={"status": entity.status.value, "was_in_trash": entity.is_deleted},
        )
        await db.delete(entity)
        await commit_or_conflict(db, entity)
        logger.warning("%s %s (id=%s) permanently deleted by user %s", label, number, entity_id, actor.user_id)
    
    @staticmethod
    async def empty_trash(db: AsyncSession, model: Type, actor, confirm: bool = False) -> int:
        """Permanently remove every trashed entity of a model; returns the count."""
        authorize(actor, Operation.EMPTY_TRASH)
        _require_confirm(confirm)
        
        repository = LifecycleRepository(model, db)
        trashed = await repository.find_many(deleted=True, limit=None)
        if not trashed:
            return 0
        
        await log_event(
            db,
            AuditAction.TRASH_EMPTIED,
            actor_id=actor.user_id,
            actor_username=actor.username,
            metadata={
                "entity_type": model.label,
                "numbers": [e.number for e in trashed],
            },
        )
        removed = await repository.delete_many(deleted=True)
        await db.commit()
        logger.warning("Trash emptied for %s: %d removed by user %s", model.label, removed, actor.user_id)
        return removed
