
# Example usage:
# from database import create_document, get_collection, populate
# from schemas import Thread
#
# # Create a thread using Pydantic model (schemas are strictly enforced)
# thread = Thread(text="Hello", author=user["_id"])
# thread_id = create_document("thread", thread)
#
# # Get top-level threads and resolve their authors
# threads = list(get_collection("thread").find({"parent_id": None}))
# populate(threads, "author", "user", select=["name", "image"])
#
# # Upsert a user by external id
# update_document("user", {"id": "user_123"}, {"name": "Jane"}, upsert=True)


import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Union

from bson import ObjectId
from dotenv import load_dotenv
from pydantic import BaseModel
from pymongo import MongoClient

from exceptions import DatabaseUnavailableError
from schemas import USER_COLLECTION

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)

_client = None
db = None


def connect_to_database():
    """Return the cached database handle, connecting on first use.

    Raises:
        DatabaseUnavailableError: DATABASE_URL or DATABASE_NAME is not set.
    """
    global _client, db

    if db is not None:
        logger.debug("Already connected to database")
        return db

    database_url = os.getenv("DATABASE_URL")
    database_name = os.getenv("DATABASE_NAME")
    if not database_url or not database_name:
        raise DatabaseUnavailableError(
            "Database not available. Check DATABASE_URL and DATABASE_NAME environment variables."
        )

    _client = MongoClient(database_url)
    database = _client[database_name]
    ensure_indexes(database)
    db = database
    logger.info("Connected to database %s", database_name)
    return db


def ensure_indexes(database) -> None:
    """Create the indexes the actions rely on. Safe to call repeatedly."""
    database[USER_COLLECTION].create_index("id", unique=True)


def get_collection(collection_name: str):
    return connect_to_database()[collection_name]


def to_object_id(value: Union[str, ObjectId]) -> ObjectId:
    """Convert a string id to ObjectId. Raises bson.errors.InvalidId when malformed."""
    if isinstance(value, ObjectId):
        return value
    return ObjectId(value)


# Helper functions for common database operations
def create_document(collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert a single document with timestamp

    Args:
        collection_name: Name of the MongoDB collection
        data: Pydantic model instance or dict. Pydantic models are recommended for schema validation.

    Returns:
        str: The inserted document's ID
    """
    # Convert Pydantic model to dict if needed
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = data.copy()

    now = datetime.now(timezone.utc)
    data_dict['created_at'] = now
    data_dict['updated_at'] = now

    result = get_collection(collection_name).insert_one(data_dict)
    return str(result.inserted_id)


def update_document(
    collection_name: str,
    filter_dict: dict,
    update_data: Union[BaseModel, dict],
    upsert: bool = False,
    insert_defaults: Optional[dict] = None,
) -> bool:
    """Update a document with timestamp

    Args:
        collection_name: Name of the MongoDB collection
        filter_dict: MongoDB filter to find the document to update
        update_data: Pydantic model instance or dict with fields to update
        upsert: Insert the document when the filter matches nothing
        insert_defaults: Extra fields written only when the upsert inserts

    Returns:
        bool: True if document was modified or inserted, False otherwise
    """
    # Convert Pydantic model to dict if needed
    if isinstance(update_data, BaseModel):
        update_dict = update_data.model_dump(exclude_unset=True)
    else:
        update_dict = update_data.copy()

    now = datetime.now(timezone.utc)
    update_dict['updated_at'] = now

    update = {"$set": update_dict}
    if upsert:
        update["$setOnInsert"] = {"created_at": now, **(insert_defaults or {})}

    result = get_collection(collection_name).update_one(filter_dict, update, upsert=upsert)
    return result.modified_count > 0 or result.upserted_id is not None


def populate(
    documents: Union[dict, List[dict], None],
    field: str,
    collection_name: str,
    select: Optional[Iterable[str]] = None,
):
    """Replace the reference id(s) stored under ``field`` with the referenced documents.

    ``documents`` may be a single document, a list of documents, or None.
    All references are resolved with one ``$in`` query. A single reference
    that no longer resolves becomes None; unresolved entries of a reference
    list are dropped and the remaining order is kept. ``select`` limits the
    fields loaded from the referenced documents (``_id`` is always included).

    Returns the same object that was passed in, populated in place.
    """
    if documents is None:
        return None

    docs = documents if isinstance(documents, list) else [documents]

    ids = []
    for doc in docs:
        value = doc.get(field)
        if isinstance(value, list):
            ids.extend(value)
        elif value is not None:
            ids.append(value)

    if not ids:
        return documents

    projection = {name: 1 for name in select} if select else None
    found = {
        ref["_id"]: ref
        for ref in get_collection(collection_name).find({"_id": {"$in": ids}}, projection)
    }

    for doc in docs:
        value = doc.get(field)
        if isinstance(value, list):
            doc[field] = [dict(found[ref_id]) for ref_id in value if ref_id in found]
        elif value is not None:
            ref = found.get(value)
            doc[field] = dict(ref) if ref is not None else None

    return documents


def serialize_document(value: Any) -> Any:
    """Make a document JSON-safe: ObjectId becomes str, datetime becomes ISO 8601."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: serialize_document(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize_document(item) for item in value]
    return value


def list_collections() -> List[Dict[str, Any]]:
    """Collection names with their document counts"""
    database = connect_to_database()
    return [
        {"name": name, "count": database[name].count_documents({})}
        for name in database.list_collection_names()
    ]
