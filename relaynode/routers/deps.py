# relaynode/routers/deps.py

from fastapi import HTTPException, Request

from relaynode.services.message_service import MessageService


def get_message_service(request: Request) -> MessageService:
    service = getattr(request.app.state, "message_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Document store not ready")
    return service
