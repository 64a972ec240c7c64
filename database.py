"""
Database helpers

Thin wrappers around a pymongo ``Database`` handle. Every helper receives the
handle explicitly; nothing in here keeps a global connection.

created_at / updated_at are always stamped by these helpers, never by the
caller.
"""

import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.database import Database

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")


def connect(url: Optional[str] = None, name: Optional[str] = None) -> Optional[Database]:
    """Open a client and return the named database, or None when unconfigured."""
    url = url or DATABASE_URL
    name = name or DATABASE_NAME
    if not url or not name:
        return None
    client = MongoClient(url)
    return client[name]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(doc_id: Any) -> Optional[ObjectId]:
    if isinstance(doc_id, ObjectId):
        return doc_id
    if not isinstance(doc_id, str) or not ObjectId.is_valid(doc_id):
        return None
    return ObjectId(doc_id)


def to_public(doc: Optional[dict]) -> Optional[dict]:
    if not doc:
        return doc
    d = doc.copy()
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    for k, v in list(d.items()):
        if isinstance(v, ObjectId):
            d[k] = str(v)
        elif isinstance(v, datetime):
            d[k] = v.isoformat()
    return d


def create_document(db: Database, collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert a document with fresh timestamps and return its id as a string."""
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = data.copy()
    now = _now()
    data_dict["created_at"] = now
    data_dict["updated_at"] = now
    result = db[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_document(db: Database, collection_name: str, doc_id: Any) -> Optional[dict]:
    oid = to_object_id(doc_id)
    if oid is None:
        return None
    return db[collection_name].find_one({"_id": oid})


def get_documents(db: Database, collection_name: str, filter_dict: Optional[Dict[str, Any]] = None, limit: Optional[int] = None) -> List[dict]:
    cursor = db[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def document_exists(db: Database, collection_name: str, filter_dict: Dict[str, Any]) -> bool:
    return db[collection_name].find_one(filter_dict) is not None


def update_document(db: Database, collection_name: str, doc_id: Any, fields: Dict[str, Any]) -> bool:
    """Partial update; returns False when no document matched."""
    oid = to_object_id(doc_id)
    if oid is None:
        return False
    changes = {**fields, "updated_at": _now()}
    result = db[collection_name].update_one({"_id": oid}, {"$set": changes})
    return result.matched_count > 0


def delete_document(db: Database, collection_name: str, doc_id: Any) -> bool:
    oid = to_object_id(doc_id)
    if oid is None:
        return False
    result = db[collection_name].delete_one({"_id": oid})
    return result.deleted_count > 0
