"""
In-memory cache of the SportMonks type taxonomy.

Types are static reference data (statistic, event and injury/suspension
codes). They are loaded from the database once, indexed three ways, and used
to label raw ``type_id`` fields with a human-readable ``typeName`` without an
extra API include on every request.

The snapshot is immutable and replaced as a whole: a resync that fails at any
point leaves the previous snapshot in place.
"""
import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from app import crud
from app.cache.coalescer import RequestCoalescer
from app.errors import ResyncError, UpstreamError
from app.models import SportMonksType
from config.settings import settings

logger = logging.getLogger("reference_types")

_LOAD_KEY = "reference_types:load"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ReferenceType:
    """Detached, read-only copy of one taxonomy row."""
    id: int
    name: str
    code: Optional[str]
    developer_name: str
    model_type: str
    group: Optional[str] = None
    stat_group: Optional[str] = None
    parent_id: Optional[int] = None
    last_synced_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: SportMonksType) -> "ReferenceType":
        return cls(
            id=row.id,
            name=row.name,
            code=row.code,
            developer_name=row.developer_name,
            model_type=row.model_type,
            group=row.group,
            stat_group=row.stat_group,
            parent_id=row.parent_id,
            last_synced_at=row.last_synced_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "developerName": self.developer_name,
            "modelType": self.model_type,
            "group": self.group,
            "statGroup": self.stat_group,
            "parentId": self.parent_id,
            "lastSyncedAt": self.last_synced_at.isoformat() if self.last_synced_at else None,
        }


@dataclass(frozen=True)
class TypeSnapshot:
    """The three lookup indexes built from one full load."""
    by_id: Dict[int, ReferenceType]
    by_code: Dict[str, ReferenceType]
    by_category: Dict[str, Tuple[ReferenceType, ...]]
    loaded_at: datetime

    @classmethod
    def build(cls, types: Iterable[ReferenceType], loaded_at: datetime) -> "TypeSnapshot":
        by_id: Dict[int, ReferenceType] = {}
        by_code: Dict[str, ReferenceType] = {}
        by_category: Dict[str, List[ReferenceType]] = {}
        for ref in types:
            by_id[ref.id] = ref
            if ref.code:
                by_code[ref.code] = ref
            by_category.setdefault(ref.model_type, []).append(ref)
        return cls(
            by_id=by_id,
            by_code=by_code,
            by_category={k: tuple(v) for k, v in by_category.items()},
            loaded_at=loaded_at,
        )


def fallback_name(type_id: Any) -> str:
    return f"Unknown ({type_id})"


def type_label(ref: Optional[ReferenceType], type_id: Any) -> str:
    """The type's name, or the fallback when the type is unknown or unnamed."""
    if ref is not None and ref.name:
        return ref.name
    return fallback_name(type_id)


class ReferenceTypeCache:
    """
    Lazily-loaded lookup service for SportMonks types.

    Lookups never raise for unknown ids or codes; absence is returned as
    None, an empty collection, or the ``Unknown (<id>)`` label.
    """

    def __init__(
        self,
        session_factory: Callable[[], Any],
        client: Any = None,
        clock: Callable[[], datetime] = utcnow,
        load_timeout: float = settings.coalesce_timeout,
    ):
        """
        Args:
            session_factory: Returns a new SQLAlchemy session
            client: Object with ``fetch_types()``; required only for resync
            clock: Source of "now" for load and sync timestamps
            load_timeout: Max seconds a concurrent caller waits on a cold load
        """
        self._session_factory = session_factory
        self._client = client
        self._clock = clock
        self._snapshot: Optional[TypeSnapshot] = None
        self._loader = RequestCoalescer(timeout=load_timeout)
        self._resync_lock = threading.Lock()
        self._load_count = 0

    # =========================================================================
    # CACHE MANAGEMENT
    # =========================================================================

    @property
    def is_loaded(self) -> bool:
        return self._snapshot is not None

    @property
    def load_count(self) -> int:
        """How many full loads from storage have run."""
        return self._load_count

    def ensure_loaded(self) -> TypeSnapshot:
        """
        Return the current snapshot, loading it from storage if there is none.

        Concurrent callers on a cold cache share a single load.
        """
        snapshot = self._snapshot
        if snapshot is not None:
            return snapshot
        return self._loader.get_or_fetch(_LOAD_KEY, self._load_if_cold)

    def refresh(self) -> int:
        """Reload the snapshot from storage. Returns the number of types."""
        snapshot = self._loader.get_or_fetch(_LOAD_KEY, self._load_snapshot)
        self._snapshot = snapshot
        return len(snapshot.by_id)

    def status(self) -> Dict[str, Any]:
        """Cache status for monitoring."""
        snapshot = self.ensure_loaded()
        return {
            "loaded": True,
            "loadedAt": snapshot.loaded_at.isoformat(),
            "totalTypes": len(snapshot.by_id),
            "modelTypes": sorted(snapshot.by_category),
        }

    def _load_if_cold(self) -> TypeSnapshot:
        if self._snapshot is None:
            self._snapshot = self._load_snapshot()
        return self._snapshot

    def _load_snapshot(self) -> TypeSnapshot:
        logger.info("Loading types cache from database...")
        db = self._session_factory()
        try:
            types = [ReferenceType.from_row(row) for row in crud.get_all_types(db)]
        finally:
            db.close()

        snapshot = TypeSnapshot.build(types, loaded_at=self._clock())
        self._load_count += 1
        logger.info(f"Types cache loaded: {len(snapshot.by_id)} types at {snapshot.loaded_at.isoformat()}")
        return snapshot

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    def get_by_id(self, type_id: int) -> Optional[ReferenceType]:
        return self.ensure_loaded().by_id.get(type_id)

    def get_by_code(self, code: str) -> Optional[ReferenceType]:
        return self.ensure_loaded().by_code.get(code)

    def get_by_category(self, model_type: str) -> List[ReferenceType]:
        """All types of one category (e.g. "statistic", "event")."""
        return list(self.ensure_loaded().by_category.get(model_type, ()))

    def get_many_by_ids(self, type_ids: Iterable[int]) -> Dict[int, ReferenceType]:
        """Batch lookup. Ids that are not known are left out of the result."""
        by_id = self.ensure_loaded().by_id
        return {type_id: by_id[type_id] for type_id in type_ids if type_id in by_id}

    def get_name(self, type_id: int) -> str:
        """Display name for a type id, or ``Unknown (<id>)``."""
        ref = self.get_by_id(type_id)
        return type_label(ref, type_id)

    # =========================================================================
    # ENRICHMENT
    # =========================================================================

    def enrich(self, records: Any, id_field: str = "type_id") -> Any:
        """
        Add ``typeName`` to every record carrying ``id_field``.

        Mutates the records in place and returns the same collection.
        Anything that is not a list is returned untouched.
        """
        if not isinstance(records, list):
            return records

        by_id = self.ensure_loaded().by_id
        for record in records:
            if not isinstance(record, dict):
                continue
            type_id = record.get(id_field)
            if type_id is None:
                continue
            record["typeName"] = type_label(by_id.get(type_id), type_id)
        return records

    def enrich_fixture(self, fixture: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        """
        Label the statistics, events and sidelined entries of a fixture.

        e.g. statistics type_id 34 -> "Corners", events type_id 14 -> "Goal",
        sidelined type_id 535 -> "Hamstring Injury".
        """
        if not fixture:
            return fixture
        for collection in ("statistics", "events", "sidelined"):
            self.enrich(fixture.get(collection))
        return fixture

    # =========================================================================
    # RESYNC
    # =========================================================================

    def resync(self) -> Dict[str, Any]:
        """
        Pull the full taxonomy from SportMonks, upsert it, and swap in a
        freshly built snapshot.

        Storage is written in one transaction; if fetching, persisting or
        reloading fails the previous snapshot stays authoritative.
        """
        if self._client is None:
            raise ResyncError("fetch", RuntimeError("no SportMonks client configured"))

        with self._resync_lock:
            started = time.monotonic()

            try:
                api_types = self._client.fetch_types()
            except UpstreamError as e:
                logger.error(f"Type resync aborted while fetching: {e}")
                raise ResyncError("fetch", e) from e
            logger.info(f"Fetched {len(api_types)} types from SportMonks")

            synced_at = self._clock()
            db = self._session_factory()
            try:
                inserted, updated = crud.upsert_types(db, api_types, synced_at)
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Type resync aborted while persisting: {e}")
                raise ResyncError("persist", e) from e
            finally:
                db.close()

            try:
                snapshot = self._load_snapshot()
            except SQLAlchemyError as e:
                logger.error(f"Type resync stored rows but reload failed: {e}")
                raise ResyncError("reload", e) from e
            self._snapshot = snapshot

            duration_ms = int((time.monotonic() - started) * 1000)
            logger.info(f"Type sync complete: {inserted} inserted, {updated} updated in {duration_ms}ms")

            return {
                "totalFromApi": len(api_types),
                "inserted": inserted,
                "updated": updated,
                "durationMs": duration_ms,
                "syncedAt": synced_at.isoformat(),
            }


# Global type cache instance
_type_cache: Optional[ReferenceTypeCache] = None


def get_type_cache() -> ReferenceTypeCache:
    """Get or create the process-wide type cache."""
    global _type_cache
    if _type_cache is None:
        # Import here so the engine is only created when the cache is used
        from app.db import SessionLocal
        from app.sportmonks_client import get_sportmonks_client
        _type_cache = ReferenceTypeCache(SessionLocal, client=get_sportmonks_client())
    return _type_cache
