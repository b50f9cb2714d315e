"""TinyDB document store for members, events and posts"""

import logging
import math
import uuid
from datetime import datetime, timezone
from functools import wraps
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from tinydb import Query, TinyDB
from tinydb.queries import QueryLike

from ..errors import StoreUnavailableError

logger = logging.getLogger(__name__)

COLLECTIONS = ("members", "events", "posts")


def _store_operation(func):
    """Translate storage failures into StoreUnavailableError"""

    @wraps(func)
    def wrapper(self, *args, **kwargs):
        try:
            return func(self, *args, **kwargs)
        except StoreUnavailableError:
            raise
        except (OSError, ValueError) as e:
            logger.error(f"Store operation {func.__name__} failed: {e}")
            raise StoreUnavailableError(str(e)) from e

    return wrapper


class Database:
    """Database service using TinyDB

    The connection is opened lazily on first use and closed at shutdown.
    Documents are returned as plain dict copies so callers can mutate them
    freely before writing back.
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.db: Optional[TinyDB] = None

    def initialize(self):
        """Initialize database connection"""
        if self.db is None:
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                self.db = TinyDB(str(self.db_path))
            except (OSError, ValueError) as e:
                logger.error(f"Cannot open database at {self.db_path}: {e}")
                raise StoreUnavailableError(str(e)) from e
            logger.info(f"Database connected: {self.db_path}")

    def close(self):
        if self.db is not None:
            self.db.close()
            self.db = None
            logger.info("Database closed")

    def table(self, collection: str):
        if collection not in COLLECTIONS:
            raise KeyError(f"Unknown collection: {collection}")
        self.initialize()
        return self.db.table(collection)

    @property
    def members(self):
        return self.table("members")

    @property
    def events(self):
        return self.table("events")

    @property
    def posts(self):
        return self.table("posts")

    def generate_id(self) -> str:
        return uuid.uuid4().hex[:12]

    def timestamp(self) -> str:
        return datetime.now(timezone.utc).isoformat()

    # =========================================================================
    # Document operations
    # =========================================================================

    @_store_operation
    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        """Find a document by its id"""
        doc = self.table(collection).get(Q.id == doc_id)
        return dict(doc) if doc else None

    @_store_operation
    def find_one(self, collection: str, cond: QueryLike) -> Optional[dict]:
        doc = self.table(collection).get(cond)
        return dict(doc) if doc else None

    @_store_operation
    def find(self, collection: str, cond: Optional[QueryLike] = None) -> List[dict]:
        table = self.table(collection)
        docs = table.search(cond) if cond is not None else table.all()
        return [dict(doc) for doc in docs]

    @_store_operation
    def page(
        self,
        collection: str,
        page: int,
        limit: int,
        cond: Optional[QueryLike] = None,
        sort_key: Optional[Callable[[dict], object]] = None,
        reverse: bool = False,
    ) -> Tuple[List[dict], int, int]:
        """Return (items, total, total_pages) for a 1-based page"""
        docs = self.find(collection, cond)
        if sort_key is not None:
            docs.sort(key=sort_key, reverse=reverse)

        total = len(docs)
        total_pages = math.ceil(total / limit) if limit else 0
        start = (page - 1) * limit
        return docs[start:start + limit], total, total_pages

    @_store_operation
    def insert(self, collection: str, doc: dict) -> dict:
        self.table(collection).insert(doc)
        return doc

    @_store_operation
    def update(self, collection: str, doc_id: str, fields: dict) -> Optional[dict]:
        """Overwrite fields of a document, returning the stored result"""
        updated = self.table(collection).update(fields, Q.id == doc_id)
        if not updated:
            return None
        return self.get(collection, doc_id)

    def ping(self) -> bool:
        """Check the backing file can be read"""
        try:
            self.table("members").count(Q.id.exists())
            return True
        except (OSError, ValueError, StoreUnavailableError) as e:
            logger.error(f"Store ping failed: {e}")
            return False


# Query helper
Q = Query()
