"""
CRUD operations for the SportMonks type table
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.models import SportMonksType


def get_all_types(db: Session) -> List[SportMonksType]:
    """
    Get every stored type, ordered by id
    """
    return db.query(SportMonksType).order_by(SportMonksType.id).all()


def type_row_from_api(
    api_type: Dict[str, Any],
    known_ids: set,
    synced_at: datetime,
) -> Dict[str, Any]:
    """
    Map a raw SportMonks type to column values.

    A parent_id that is not in ``known_ids`` (the full fetched batch) is
    nulled so the self-reference never dangles.
    """
    parent_id = api_type.get("parent_id") or None
    if parent_id is not None and parent_id not in known_ids:
        parent_id = None

    return {
        "name": api_type.get("name") or "",
        "code": api_type.get("code") or None,
        "developer_name": api_type.get("developer_name") or "",
        "model_type": api_type.get("model_type") or "",
        "group": api_type.get("group") or None,
        "stat_group": api_type.get("stat_group") or None,
        "parent_id": parent_id,
        "last_synced_at": synced_at,
    }


def upsert_types(
    db: Session,
    api_types: List[Dict[str, Any]],
    synced_at: Optional[datetime] = None,
) -> Tuple[int, int]:
    """
    Insert new types and update existing ones, keyed by SportMonks id.

    Does not commit; the caller owns the transaction.

    Returns:
        (inserted, updated)
    """
    synced_at = synced_at or datetime.now(timezone.utc)
    # Pages can overlap; the last occurrence of an id wins
    by_id = {t["id"]: t for t in api_types}
    known_ids = set(by_id)
    existing = {
        row.id: row
        for row in db.query(SportMonksType).filter(SportMonksType.id.in_(known_ids))
    } if known_ids else {}

    inserted = 0
    updated = 0
    parents: Dict[int, Any] = {}
    for type_id, api_type in by_id.items():
        values = type_row_from_api(api_type, known_ids, synced_at)
        parents[type_id] = values.pop("parent_id")
        row = existing.get(type_id)
        if row is None:
            db.add(SportMonksType(id=type_id, parent_id=None, **values))
            inserted += 1
        else:
            for column, value in values.items():
                setattr(row, column, value)
            updated += 1

    # Parents are linked once every row of the batch exists
    db.flush()
    for type_id, parent_id in parents.items():
        db.get(SportMonksType, type_id).parent_id = parent_id
    db.flush()
    return inserted, updated
