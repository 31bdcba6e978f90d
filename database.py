"""
MongoDB access helpers

`db` is None when DATABASE_URL is not configured; the /test endpoint reports on
that and request handlers answer 503 through the get_db dependency.
"""
import logging
import random
import threading
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from pydantic import BaseModel
from pymongo import MongoClient

import config
from errors import NotFound, StaleWrite

logger = logging.getLogger(__name__)

db = None
if config.DATABASE_URL:
    _client = MongoClient(config.DATABASE_URL)
    db = _client[config.DATABASE_NAME]


def now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """MongoDB hands back naive UTC datetimes; make them comparable with now()."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def new_id() -> str:
    return str(ObjectId())


_ref_lock = threading.Lock()
_last_ref_ms = 0


def generate_reference(prefix: str, random_digits: int = 3) -> str:
    """
    Human readable reference: prefix + millisecond timestamp + zero padded random
    suffix. The timestamp part never repeats within a process.
    """
    global _last_ref_ms
    with _ref_lock:
        ms = int(time.time() * 1000)
        if ms <= _last_ref_ms:
            ms = _last_ref_ms + 1
        _last_ref_ms = ms
    return f"{prefix}{ms}{random.randint(0, 10 ** random_digits - 1):0{random_digits}d}"


def create_document(collection_name: str, data: Union[BaseModel, dict], database=None) -> str:
    """Insert a document with string id, timestamps and version 1; returns the id."""
    database = database if database is not None else db
    if isinstance(data, BaseModel):
        doc = data.model_dump()
    else:
        doc = dict(data)
    doc.setdefault("_id", new_id())
    doc["created_at"] = now()
    doc["updated_at"] = now()
    doc["version"] = 1
    database[collection_name].insert_one(doc)
    return doc["_id"]


def get_documents(collection_name: str, filter_dict: Optional[dict] = None, limit: Optional[int] = None,
                  database=None) -> List[dict]:
    database = database if database is not None else db
    cursor = database[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def get_or_404(database, collection_name: str, doc_id: str, what: str = "Document") -> dict:
    doc = database[collection_name].find_one({"_id": doc_id})
    if not doc:
        raise NotFound(what)
    return doc


def versioned_update(database, collection_name: str, doc_id: str, expected_version: Optional[int],
                     changes: Dict[str, Any], what: str = "Document") -> dict:
    """
    Apply `changes` only if the stored version still equals `expected_version`.

    Documents written before versioning existed have no version field; they
    match an expected version of None. Returns the updated document.
    """
    query = {"_id": doc_id, "version": expected_version}
    if expected_version is None:
        update = {"$set": {**changes, "updated_at": now(), "version": 1}}
    else:
        update = {"$set": {**changes, "updated_at": now()}, "$inc": {"version": 1}}
    result = database[collection_name].update_one(query, update)
    if result.matched_count == 0:
        if database[collection_name].find_one({"_id": doc_id}) is None:
            raise NotFound(what)
        logger.info("Stale write rejected on %s/%s (expected version %s)", collection_name, doc_id, expected_version)
        raise StaleWrite(what)
    return database[collection_name].find_one({"_id": doc_id})


def serialize_doc(doc: Dict[str, Any]):
    if not doc:
        return doc
    doc = dict(doc)
    if "_id" in doc:
        doc["id"] = str(doc.pop("_id"))
    for k, v in list(doc.items()):
        if isinstance(v, datetime):
            doc[k] = v.isoformat()
        elif isinstance(v, dict):
            doc[k] = serialize_doc(v)
        elif isinstance(v, list):
            doc[k] = [serialize_doc(i) if isinstance(i, dict) else i for i in v]
    return doc
