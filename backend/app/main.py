import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.database.connection import close_mongo_connection, connect_to_mongo, get_database
from app.repositories.message_repository import MessageRepository
from app.routers.chat import router as chat_router
from app.routers.presence import router as presence_router
from app.utils.errors import ChatError
from app.utils.responses import format_error_response


logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
for _noisy in ("pymongo", "botocore", "boto3", "urllib3", "httpx", "httpcore"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):

    await connect_to_mongo()
    try:
        await MessageRepository(get_database()).ensure_indexes()
        yield
    finally:
        await close_mongo_connection()


app = FastAPI(title="Direct Message Chat", lifespan=lifespan)


app.include_router(chat_router)
app.include_router(presence_router)


@app.exception_handler(ChatError)
async def chat_error_handler(request: Request, exc: ChatError):
    logger.warning("%s %s failed: %s: %s", request.method, request.url.path, type(exc).__name__, exc.message)
    return JSONResponse(status_code=exc.status_code, content=format_error_response(exc.message))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content=format_error_response(str(exc.detail)), headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=422, content=format_error_response("Invalid request"))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=format_error_response("Internal server error"))


@app.get("/")
async def root():
    return {"status": "ok"}
