# relaynode/db/mongo.py
import uuid
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection
from pymongo import ASCENDING
from pymongo.errors import DuplicateKeyError, PyMongoError

from relaynode.core.config import Settings
from relaynode.core.logger import logger
from relaynode.db.errors import DocumentNotFound, PersistenceError, RevisionConflict, StartupFailure
from relaynode.utils.sorting import build_sort


def next_revision(previous: Optional[str] = None) -> str:
    """Revisions look like ``"3-<hex>"``; the prefix counts successful writes."""
    generation = 0
    if previous:
        try:
            generation = int(previous.split("-", 1)[0])
        except ValueError:
            generation = 0
    return f"{generation + 1}-{uuid.uuid4().hex}"


class MongoDocumentStore:
    """Document store with revision-based optimistic concurrency on top of MongoDB.

    Every document carries ``_id`` and ``_rev``. Writes and deletes are
    conditional on the caller's ``_rev`` matching the stored one.
    """

    def __init__(self, client: AsyncIOMotorClient, collection: AsyncIOMotorCollection):
        self.client = client
        self.collection = collection

    @classmethod
    async def connect(cls, settings: Settings) -> "MongoDocumentStore":
        client = None
        try:
            client = AsyncIOMotorClient(
                settings.STORE_URL,
                serverSelectionTimeoutMS=int(settings.STORE_TIMEOUT_SECONDS * 1000),
            )
            await client.admin.command("ping")

            db = client[settings.STORE_DB]
            if settings.STORE_COLLECTION not in await db.list_collection_names():
                await db.create_collection(settings.STORE_COLLECTION)
                logger.info(f"Created collection {settings.STORE_DB}.{settings.STORE_COLLECTION}")

            collection = db.get_collection(settings.STORE_COLLECTION)
            await collection.create_index([("recipientId", ASCENDING), ("timestamp", ASCENDING)])
        except PyMongoError as e:
            if client is not None:
                client.close()
            logger.error(f"❌ Document store connection failed: {e}")
            raise StartupFailure(f"Document store unavailable: {e}") from e

        logger.info("✅ Connected to document store")
        return cls(client, collection)

    async def put(self, doc_id: str, document: Mapping[str, Any]) -> str:
        body = dict(document)
        body.pop("_id", None)
        current_rev = body.pop("_rev", None)
        new_rev = next_revision(current_rev)
        body = {"_id": doc_id, "_rev": new_rev, **body}

        try:
            if current_rev is None:
                await self.collection.insert_one(body)
            else:
                replaced = await self.collection.find_one_and_replace(
                    {"_id": doc_id, "_rev": current_rev}, body
                )
                if replaced is None:
                    raise RevisionConflict(f"Document {doc_id} update conflict")
        except DuplicateKeyError as e:
            raise RevisionConflict(f"Document {doc_id} already exists") from e
        except PyMongoError as e:
            logger.error(f"Error storing document {doc_id}: {e}")
            raise PersistenceError(f"Failed to store document {doc_id}") from e
        return new_rev

    async def get(self, doc_id: str) -> Dict[str, Any]:
        try:
            doc = await self.collection.find_one({"_id": doc_id})
        except PyMongoError as e:
            logger.error(f"Error fetching document {doc_id}: {e}")
            raise PersistenceError(f"Failed to fetch document {doc_id}") from e
        if doc is None:
            raise DocumentNotFound(f"Document {doc_id} not found")
        return doc

    async def find(
        self, selector: Mapping[str, Any], sort: Optional[List[Mapping[str, str]]] = None
    ) -> AsyncIterator[Dict[str, Any]]:
        cursor = self.collection.find(dict(selector))
        if sort:
            cursor = cursor.sort(build_sort(sort))
        try:
            async for doc in cursor:
                yield doc
        except PyMongoError as e:
            logger.error(f"Error querying documents {dict(selector)}: {e}")
            raise PersistenceError("Failed to query documents") from e
        finally:
            await cursor.close()

    async def delete(self, doc_id: str, revision: str) -> None:
        try:
            result = await self.collection.delete_one({"_id": doc_id, "_rev": revision})
            if result.deleted_count:
                return
            existing = await self.collection.find_one({"_id": doc_id}, projection={"_id": 1})
        except PyMongoError as e:
            logger.error(f"Error deleting document {doc_id}: {e}")
            raise PersistenceError(f"Failed to delete document {doc_id}") from e

        if existing is None:
            raise DocumentNotFound(f"Document {doc_id} not found")
        raise RevisionConflict(f"Document {doc_id} revision {revision} is stale")

    def close(self) -> None:
        self.client.close()
