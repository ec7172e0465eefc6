# relaynode/main.py
from datetime import datetime, timezone

from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from relaynode.core.config import settings
from relaynode.core.logger import logger
from relaynode.db.mongo import MongoDocumentStore
from relaynode.routers import messages
from relaynode.services.message_service import MessageService
from relaynode.utils.responses import format_error_response

app = FastAPI(
    title="Relay Node",
    version="0.1.0",
    description="Store-and-forward relay for end-to-end encrypted messages",
)


# ✅ Startup/shutdown
@app.on_event("startup")
async def startup():
    # StartupFailure propagates and aborts the server start.
    store = await MongoDocumentStore.connect(settings)
    app.state.store = store
    app.state.message_service = MessageService(store, timeout=settings.STORE_TIMEOUT_SECONDS)
    logger.info(f"🚀 Relay node {settings.NODE_ID} ready")

@app.on_event("shutdown")
async def shutdown():
    service = getattr(app.state, "message_service", None)
    if service is not None:
        await service.shutdown()
    store = getattr(app.state, "store", None)
    if store is not None:
        store.close()
    logger.info(f"Relay node {settings.NODE_ID} stopped")

# ✅ Health check
@app.get("/health", tags=["health"], summary="Health check")
async def health():
    return {
        "status": "ok",
        "node_id": settings.NODE_ID,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

# ✅ Error handlers
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=format_error_response(exc, status_code=exc.status_code, detail=exc.detail),
    )

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content=format_error_response(exc, status_code=400, detail="Invalid request format"),
    )

@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content=format_error_response(exc),
    )

# ✅ Routes
app.include_router(messages.router, prefix="/messages")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("relaynode.main:app", host="0.0.0.0", port=settings.PORT)
