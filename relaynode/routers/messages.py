# relaynode/routers/messages.py

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends, HTTPException, Query

from relaynode.db.errors import DocumentNotFound, MalformedDocument, RevisionConflict, StoreError, StoreTimeout
from relaynode.models.message import DeliveryReceipt, Message, MessageList
from relaynode.routers.deps import get_message_service
from relaynode.services.message_service import MessageService
from relaynode.utils.errors import (
    ConflictError,
    GatewayTimeoutError,
    InternalServerError,
    NotFoundError,
    UnprocessableEntityError,
)

router = APIRouter(tags=["messages"])


def to_http_error(exc: StoreError, action: str) -> HTTPException:
    if isinstance(exc, DocumentNotFound):
        return NotFoundError("Message not found")
    if isinstance(exc, RevisionConflict):
        return ConflictError(str(exc))
    if isinstance(exc, MalformedDocument):
        return UnprocessableEntityError(str(exc))
    if isinstance(exc, StoreTimeout):
        return GatewayTimeoutError(f"Timed out trying to {action}")
    return InternalServerError(f"Failed to {action}")


@router.post("", status_code=201, response_model=Message, summary="Store an encrypted message")
async def store_message(
    message: Message,
    service: MessageService = Depends(get_message_service),
):
    try:
        return await service.store_message(message)
    except StoreError as e:
        raise to_http_error(e, "store message") from e


@router.get("/{user_id}", response_model=MessageList, summary="List live messages for a recipient")
async def list_messages(
    user_id: str,
    background_tasks: BackgroundTasks,
    since: Optional[int] = Query(None, description="Only messages with a later timestamp"),
    service: MessageService = Depends(get_message_service),
):
    try:
        messages, count = await service.list_messages(user_id, since=since, background_tasks=background_tasks)
    except StoreError as e:
        raise to_http_error(e, "query messages") from e
    return {"messages": messages, "count": count}


@router.delete("/{message_id}", summary="Delete a message")
async def delete_message(
    message_id: str,
    rev: Optional[str] = Query(None, description="Current revision; fetched when omitted"),
    service: MessageService = Depends(get_message_service),
):
    try:
        await service.delete_message(message_id, rev)
    except StoreError as e:
        raise to_http_error(e, "delete message") from e
    return {"message": "Message deleted"}


@router.patch("/{message_id}/delivered", response_model=Message, summary="Mark a message as delivered")
async def mark_delivered(
    message_id: str,
    receipt: Optional[DeliveryReceipt] = Body(None),
    rev: Optional[str] = Query(None),
    service: MessageService = Depends(get_message_service),
):
    delivered_at = receipt.delivered_at if receipt else None
    try:
        return await service.mark_delivered(message_id, delivered_at=delivered_at, revision=rev)
    except StoreError as e:
        raise to_http_error(e, "mark message delivered") from e
