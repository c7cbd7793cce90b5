"""
Soft delete / restore / permanent delete

    active --delete--> deleted --restore--> active
                       deleted --permanently_delete--> (row removed)

Works on any model with an `is_deleted` column.
"""
import logging
from datetime import datetime
from enum import Enum
from typing import Optional, Type

from sqlalchemy.orm import Query, Session

from .exceptions import InvalidTransition, RecordNotFound

logger = logging.getLogger(__name__)

SOFT_DELETE_MESSAGE = "{label} moved to deleted records. It can be restored later."
PERMANENT_DELETE_MESSAGE = "{label} permanently deleted. This action cannot be undone."
RESTORE_MESSAGE = "{label} restored successfully"


class RecordState(str, Enum):
    ACTIVE = "active"
    DELETED = "deleted"


def state_of(record) -> RecordState:
    return RecordState.DELETED if record.is_deleted else RecordState.ACTIVE


def soft_delete(record, label: str = "Record") -> str:
    if state_of(record) is not RecordState.ACTIVE:
        raise InvalidTransition(f"{label} is already deleted")
    record.is_deleted = True
    _touch(record)
    return SOFT_DELETE_MESSAGE.format(label=label)


def restore(record, label: str = "Record") -> str:
    if state_of(record) is not RecordState.DELETED:
        raise InvalidTransition(f"{label} is not deleted")
    record.is_deleted = False
    _touch(record)
    return RESTORE_MESSAGE.format(label=label)


def permanently_delete(db: Session, record, label: str = "Record") -> str:
    """Only a soft-deleted record can be removed for good"""
    if state_of(record) is not RecordState.DELETED:
        raise InvalidTransition(f"{label} must be deleted before it can be permanently deleted")
    db.delete(record)
    logger.info("Permanently deleted %s %s", record.__class__.__name__, record.id)
    return PERMANENT_DELETE_MESSAGE.format(label=label)


def get_or_404(query: Query, model: Type, record_id: str, label: Optional[str] = None):
    record = query.filter(model.id == record_id).first()
    if record is None:
        raise RecordNotFound(f"{label or model.__name__} not found")
    return record


def visible(query: Query, model: Type, show_deleted: bool = False) -> Query:
    if show_deleted:
        return query
    return query.filter(model.is_deleted.is_(False))


def _touch(record):
    if hasattr(record, "updated_at"):
        record.updated_at = datetime.now()
