"""
Versioning & Activation
Shared by agents, RAG configs and voice configs

Each parent owns a sequence of immutable numbered versions. Activation
flips the active flag for every sibling in one UPDATE so no reader ever
sees zero or two active versions for a parent.
"""

from typing import Callable, Optional, Type, TypeVar
from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from agent_console.core.exceptions import Conflict
from agent_console.core.logging import get_logger
from .context import QueryContext

logger = get_logger(__name__)

V = TypeVar("V")

MAX_ALLOCATION_ATTEMPTS = 3


def next_version_number(db: Session, version_model, parent_column, parent_id: str) -> int:
    """Highest existing version for the parent plus one"""
    current = db.query(func.max(version_model.version)).filter(
        parent_column == parent_id
    ).scalar()
    return (current or 0) + 1


def latest_version(db: Session, version_model, parent_column, parent_id: str):
    return db.query(version_model).filter(
        parent_column == parent_id
    ).order_by(version_model.version.desc()).first()


def active_version(db: Session, version_model, parent_column, parent_id: str):
    return db.query(version_model).filter(
        parent_column == parent_id,
        version_model.is_active == True
    ).first()


def count_versions(db: Session, version_model, parent_column, parent_id: str) -> int:
    return db.query(func.count(version_model.id)).filter(
        parent_column == parent_id
    ).scalar() or 0


def insert_version(
    db: Session,
    version_model: Type[V],
    parent_column,
    parent_id: str,
    build: Callable[[int], V]
) -> V:
    """
    Insert a new version with the next number for its parent

    The (parent, version) unique constraint rejects a number taken by a
    concurrent writer; the number is then re-read and the insert retried.

    Args:
        build: Factory taking the allocated version number

    Returns:
        The committed version row
    """
    for attempt in range(1, MAX_ALLOCATION_ATTEMPTS + 1):
        number = next_version_number(db, version_model, parent_column, parent_id)
        version = build(number)
        db.add(version)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.warning(
                "Version number already taken, retrying",
                parent_id=parent_id,
                version=number,
                attempt=attempt
            )
            continue

        db.refresh(version)
        return version

    raise Conflict("Could not allocate a version number. Please retry.")


def activate_version(
    db: Session,
    parent_model,
    version_model: Type[V],
    parent_column,
    parent_id: str,
    version_id: str,
    ctx: QueryContext
) -> Optional[V]:
    """
    Make one version the only active version of its parent

    Nothing is changed when the parent is missing, soft-deleted or outside
    the caller's tenant, or when the version belongs to another parent.

    Returns:
        The activated version, or None if not found
    """
    try:
        parent_query = db.query(parent_model).filter(
            parent_model.id == parent_id,
            parent_model.is_active == True
        )
        parent = ctx.scope(parent_query, parent_model.tenant_id).with_for_update().first()
        if parent is None:
            db.rollback()
            return None

        target = db.query(version_model).filter(
            version_model.id == version_id,
            parent_column == parent_id
        ).first()
        if target is None:
            db.rollback()
            return None

        db.query(version_model).filter(parent_column == parent_id).update(
            {version_model.is_active: case((version_model.id == version_id, True), else_=False)},
            synchronize_session=False
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(target)
    logger.info(
        f"Activated {version_model.__tablename__} v{target.version}",
        parent_id=parent_id,
        version_id=version_id
    )
    return target
