"""
MongoDB access helpers

The client is created once from Settings and shared by the repositories.
Documents keep naive UTC datetimes at millisecond precision, which is what
pymongo returns on read.
"""
import logging
from typing import Optional, Any, Dict, List

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import MongoClient, ASCENDING
from pymongo.database import Database

from config import Settings
from schemas import utcnow

logger = logging.getLogger(__name__)

ACCOUNT_COLLECTION = "account"
POST_COLLECTION = "post"


def connect(settings: Settings) -> Database:
    client = MongoClient(settings.database_url, serverSelectionTimeoutMS=5000)
    logger.info(f"MongoDB client configured for database {settings.database_name!r}")
    return client[settings.database_name]


def ensure_indexes(db: Database) -> None:
    db[ACCOUNT_COLLECTION].create_index([("email", ASCENDING)], unique=True)
    db[POST_COLLECTION].create_index([("status", ASCENDING), ("ready_by", ASCENDING)])
    db[POST_COLLECTION].create_index([("canteen_id", ASCENDING)])


def oid(id_str: str) -> Optional[ObjectId]:
    """Parse a document id, None when it is not a valid ObjectId."""
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        return None


def create_document(db: Database, collection_name: str, data: Dict[str, Any]) -> str:
    doc = dict(data)
    now = utcnow()
    doc.setdefault("created_at", now)
    doc.setdefault("updated_at", now)
    result = db[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(
    db: Database,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    sort: Optional[List[tuple]] = None,
) -> List[Dict[str, Any]]:
    cursor = db[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    return list(cursor)
