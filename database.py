from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pymongo import MongoClient, DESCENDING

from config import DATABASE_URL, DATABASE_NAME
from schemas import new_id

_client = MongoClient(DATABASE_URL)
db = _client[DATABASE_NAME]


def get_db():
    """FastAPI dependency; tests override it with an in-memory database."""
    return db


def ensure_indexes(database) -> None:
    database["prompt"].create_index([("created_at", DESCENDING)])
    database["prompt"].create_index("tags")
    database["sandbox_run"].create_index([("created_at", DESCENDING)])


def serialize_doc(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if doc is None:
        return doc
    d = dict(doc)
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    return d


def create_document(database, collection_name: str, data: Dict[str, Any], doc_id: Optional[str] = None) -> Dict[str, Any]:
    now = datetime.now(timezone.utc)
    payload = {"created_at": now, "updated_at": now, **data, "_id": doc_id or new_id()}
    col = database[collection_name]
    res = col.insert_one(payload)
    saved = col.find_one({"_id": res.inserted_id})
    return serialize_doc(saved)


def get_documents(database, collection_name: str, filter_dict: Optional[Dict[str, Any]] = None, limit: Optional[int] = None) -> List[Dict[str, Any]]:
    col = database[collection_name]
    cursor = col.find(filter_dict or {}).sort("created_at", DESCENDING)
    if limit:
        cursor = cursor.limit(limit)
    return [serialize_doc(d) for d in cursor]
