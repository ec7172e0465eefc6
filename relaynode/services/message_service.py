# relaynode/services/message_service.py

import asyncio
import time
from contextlib import aclosing
from datetime import timedelta
from typing import Awaitable, Callable, List, Optional, Set, Tuple, TypeVar

from fastapi import BackgroundTasks
from pydantic import ValidationError

from relaynode.core.logger import logger
from relaynode.db.errors import MalformedDocument, StoreTimeout
from relaynode.models.message import Message

MESSAGE_TTL = timedelta(days=30)

T = TypeVar("T")


class MessageService:
    """Message lifecycle on top of a document store.

    ``store`` is anything exposing the coroutines ``put``, ``get``, ``find``
    and ``delete`` of :class:`relaynode.db.mongo.MongoDocumentStore`.
    """

    def __init__(self, store, timeout: float = 10.0, clock: Callable[[], float] = time.time):
        self.store = store
        self.timeout = timeout
        self.clock = clock
        self._pending: Set[asyncio.Task] = set()

    async def _call(self, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.error(f"Document store call timed out after {self.timeout}s")
            raise StoreTimeout("Document store did not answer in time") from e

    async def store_message(self, message: Message) -> Message:
        stored = message.model_copy()
        if stored.expires_at == 0:
            stored.expires_at = int(self.clock() + MESSAGE_TTL.total_seconds())

        stored.revision = await self._call(self.store.put(stored.id, stored.to_document()))
        logger.info(f"Stored message {stored.id} for {stored.recipient_id}")
        return stored

    async def get_message(self, message_id: str) -> Message:
        doc = await self._call(self.store.get(message_id))
        try:
            return Message.from_document(doc)
        except ValidationError as e:
            raise MalformedDocument(f"Message {message_id} is malformed") from e

    async def list_messages(
        self,
        recipient_id: str,
        since: Optional[int] = None,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> Tuple[List[Message], int]:
        """Live messages for ``recipient_id`` in ascending timestamp order.

        Expired messages are left out and their deletion is scheduled without
        waiting on it. Inside a request the deletion runs as a response
        background task, otherwise as a detached task owned by the service.
        """
        live, expired = await self._call(self._collect(recipient_id, since))

        for message in expired:
            if background_tasks is not None:
                background_tasks.add_task(self.purge_expired, message)
            else:
                task = asyncio.create_task(self.purge_expired(message))
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)

        return live, len(live)

    async def _collect(self, recipient_id: str, since: Optional[int]) -> Tuple[List[Message], List[Message]]:
        selector = {"recipientId": recipient_id}
        if since is not None:
            selector["timestamp"] = {"$gt": since}

        now = self.clock()
        live: List[Message] = []
        expired: List[Message] = []
        async with aclosing(self.store.find(selector, [{"timestamp": "asc"}])) as docs:
            async for doc in docs:
                try:
                    message = Message.from_document(doc)
                except ValidationError as e:
                    logger.warning(f"Skipping malformed message {doc.get('_id')}: {e}")
                    continue

                if message.is_live(now):
                    live.append(message)
                else:
                    expired.append(message)
        return live, expired

    async def purge_expired(self, message: Message) -> None:
        try:
            await self._call(self.store.delete(message.id, message.revision))
            logger.info(f"Deleted expired message {message.id}")
        except Exception as e:
            logger.warning(f"Error deleting expired message {message.id}: {e}")

    async def delete_message(self, message_id: str, revision: Optional[str] = None) -> None:
        # Without a revision the current one is fetched first. This is not
        # atomic: a write in between turns the delete into a conflict.
        if revision is None:
            revision = (await self._call(self.store.get(message_id))).get("_rev")
        await self._call(self.store.delete(message_id, revision))
        logger.info(f"Deleted message {message_id}")

    async def mark_delivered(
        self,
        message_id: str,
        delivered_at: Optional[int] = None,
        revision: Optional[str] = None,
    ) -> Message:
        message = await self.get_message(message_id)
        if revision is not None:
            message.revision = revision
        message.delivered = True
        message.delivered_at = delivered_at if delivered_at is not None else int(self.clock())

        message.revision = await self._call(self.store.put(message.id, message.to_document()))
        return message

    async def shutdown(self) -> None:
        pending = list(self._pending)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
