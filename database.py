"""
MongoDB access helpers.

The database handle is created by the application entry point and passed
around explicitly; nothing here holds a module-level connection.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

logger = logging.getLogger(__name__)


def connect(database_url: str, database_name: str) -> Database:
    client = MongoClient(database_url)
    logger.info("Connecting to MongoDB database %s", database_name)
    return client[database_name]


def ensure_indexes(db: Database) -> None:
    db["activity"].create_index([("user_id", ASCENDING), ("date", ASCENDING)])
    db["habit"].create_index([("user_id", ASCENDING)])
    db["habitlog"].create_index([("habit_id", ASCENDING)])
    db["journalentry"].create_index([("user_id", ASCENDING), ("date", ASCENDING)])
    # One claim per user and date guards template seeding
    db["scheduleseed"].create_index([("user_id", ASCENDING), ("date", ASCENDING)], unique=True)


def now() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(value: Union[str, ObjectId, None]) -> Optional[ObjectId]:
    """Parse an id from a URL; anything malformed is treated as absent."""
    if isinstance(value, ObjectId):
        return value
    if value and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def create_document(db: Database, collection_name: str, data: Dict[str, Any]) -> Dict[str, Any]:
    doc = dict(data)
    res = db[collection_name].insert_one(doc)
    doc["_id"] = res.inserted_id
    return doc


def get_documents(db: Database, collection_name: str, filter_dict: Optional[Dict[str, Any]] = None,
                  sort: Optional[List[tuple]] = None) -> List[Dict[str, Any]]:
    cursor = db[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    return list(cursor)
