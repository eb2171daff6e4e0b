"""
Upsert helpers over the ORM, modelled on document-store semantics:
a ``patch`` applied on every write plus fields written only on insert.
"""

from typing import Any, Dict, Mapping, Optional, Tuple, Type

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shared.app_logging.logger import get_logger

logger = get_logger("shared.database.store")


def apply_update(
    existing: Optional[Mapping[str, Any]],
    patch: Mapping[str, Any],
    fields_only_on_insert: Mapping[str, Any],
) -> Dict[str, Any]:
    """Merge a write into a document.

    With no ``existing`` document the result is the insert-only fields
    overlaid with ``patch``; otherwise ``patch`` is overlaid on ``existing``
    and the insert-only fields are ignored.
    """
    if existing is None:
        merged = dict(fields_only_on_insert)
    else:
        merged = dict(existing)
    merged.update(patch)
    return merged


def find_one(db: Session, model: Type, lookup: Mapping[str, Any]):
    return db.execute(select(model).filter_by(**lookup)).scalar_one_or_none()


def _assign_changed(row, values: Mapping[str, Any]) -> bool:
    changed = False
    for key, value in values.items():
        if getattr(row, key) != value:
            setattr(row, key, value)
            changed = True
    return changed


def upsert(
    db: Session,
    model: Type,
    lookup: Mapping[str, Any],
    patch: Mapping[str, Any],
    on_insert: Optional[Mapping[str, Any]] = None,
) -> Tuple[Any, bool]:
    """Insert-or-update the row matching ``lookup``; returns ``(row, created)``.

    The insert runs in a SAVEPOINT. Losing a race on the unique index rolls
    back only that savepoint, re-reads the winner's row and applies
    ``patch`` to it. Nothing is committed here.
    """
    row = find_one(db, model, lookup)
    if row is None:
        values = apply_update(None, patch, {**(on_insert or {}), **lookup})
        row = model(**values)
        try:
            with db.begin_nested():
                db.add(row)
            return row, True
        except IntegrityError:
            logger.info(f"Concurrent insert on {model.__tablename__} {dict(lookup)}; using existing row")
            row = find_one(db, model, lookup)
            if row is None:
                raise

    current = {key: getattr(row, key) for key in patch}
    _assign_changed(row, apply_update(current, patch, on_insert or {}))
    return row, False
