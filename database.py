"""
Database connection and document helpers

One AsyncMongoClient is opened at startup and shared by every request.
Handlers get the database handle through the get_db() dependency, never by
reading the module globals directly.
"""

import os
from typing import Any, Dict, List, Optional

import structlog
from bson import ObjectId
from bson.errors import InvalidId
from pymongo import AsyncMongoClient, DESCENDING, ReturnDocument

logger = structlog.get_logger()

DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "financials")

TASKS = "tasks"
REVENUES = "revenues"
EXPENSES = "expenses"

client: Optional[AsyncMongoClient] = None
db = None


async def connect() -> None:
    """Open the shared connection. A failure here is fatal to the process."""
    global client, db

    logger.info("database_connecting", database_name=DATABASE_NAME)
    try:
        client = AsyncMongoClient(DATABASE_URL, tz_aware=True)
        await client.admin.command("ping")
    except Exception:
        logger.exception("database_connection_failed")
        raise SystemExit(1)

    db = client[DATABASE_NAME]
    logger.info("database_connected", database_name=db.name)


async def disconnect() -> None:
    global client, db
    if client is not None:
        await client.close()
        logger.info("database_disconnected")
    client = None
    db = None


def get_db():
    """FastAPI dependency returning the shared database handle."""
    if db is None:
        raise RuntimeError("Database is not connected")
    return db


def to_object_id(id: str) -> Optional[ObjectId]:
    try:
        return ObjectId(id)
    except (InvalidId, TypeError):
        return None


# Helper to convert ObjectId to str in responses

def serialize_doc(doc: Dict[str, Any]):
    if not doc:
        return doc
    if isinstance(doc.get("_id"), ObjectId):
        doc["_id"] = str(doc["_id"])
    return doc


async def create_document(db, collection: str, data: Dict[str, Any]) -> Dict[str, Any]:
    document = dict(data)
    result = await db[collection].insert_one(document)
    document["_id"] = result.inserted_id
    return document


async def get_documents(db, collection: str, filter: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
    """All matching documents, newest createdAt first."""
    cursor = db[collection].find(filter or {}).sort("createdAt", DESCENDING)
    return await cursor.to_list(None)


async def update_document(db, collection: str, id: str, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Set the given fields on one document and return it post-update.

    Returns None when no document has this id. An invalid ObjectId can
    never match, so it is treated the same way.
    """
    oid = to_object_id(id)
    if oid is None:
        return None
    fields = {k: v for k, v in data.items() if k != "_id"}
    if not fields:
        return await db[collection].find_one({"_id": oid})
    return await db[collection].find_one_and_update(
        {"_id": oid},
        {"$set": fields},
        return_document=ReturnDocument.AFTER,
    )


async def delete_document(db, collection: str, id: str) -> Optional[Dict[str, Any]]:
    oid = to_object_id(id)
    if oid is None:
        return None
    return await db[collection].find_one_and_delete({"_id": oid})
