import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from messaging.config import get_settings
from messaging.database.connection import close_mongo_connection, connect_to_mongo, get_database
from messaging.errors import (
    AccessDeniedError,
    ContentValidationError,
    ConversationNotFoundError,
    MessageDeletedError,
    MessageNotFoundError,
    MessagingError,
)
from messaging.repositories.conversation_repository import ConversationRepository
from messaging.repositories.device_repository import DeviceRepository
from messaging.repositories.message_repository import MessageRepository
from messaging.routers.conversations import router as conversations_router
from messaging.routers.devices import router as devices_router
from messaging.routers.messages import router as messages_router


logger = logging.getLogger(__name__)


def error_status(exc: MessagingError) -> int:
    if isinstance(exc, (ConversationNotFoundError, MessageNotFoundError)):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, AccessDeniedError):
        return status.HTTP_403_FORBIDDEN
    if isinstance(exc, MessageDeletedError):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, ContentValidationError):
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    return status.HTTP_502_BAD_GATEWAY


@asynccontextmanager
async def lifespan(app: FastAPI):

    logging.basicConfig(level=get_settings().log_level)
    await connect_to_mongo()
    try:
        db = get_database()
        await ConversationRepository(db).ensure_indexes()
        await MessageRepository(db).ensure_indexes()
        await DeviceRepository(db).ensure_indexes()
    except Exception:
        logger.exception("Index creation failed; continuing without it.")
    try:
        yield
    finally:
        await close_mongo_connection()


app = FastAPI(title=get_settings().app_name, lifespan=lifespan)


@app.exception_handler(MessagingError)
async def messaging_error_handler(request: Request, exc: MessagingError):
    code = error_status(exc)
    if code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=code, content={"detail": str(exc) or exc.__class__.__name__})


app.include_router(conversations_router)
app.include_router(messages_router)
app.include_router(devices_router)


@app.get("/")
async def health():
    """Liveness plus a round trip to MongoDB."""
    db = get_database()
    await db.command("ping")
    return {"status": "ok", "service": get_settings().app_name, "database": db.name}
