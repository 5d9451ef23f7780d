import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from oauthgate.core.config import require_remote_credentials, settings
from oauthgate.routes.oauth import router as oauth_router
from oauthgate.routes.sessions import router as sessions_router
from oauthgate.services.remote_api import build_remote_api_client

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

require_remote_credentials()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # One signed HTTP client per process, shared by every request.
    client = build_remote_api_client(settings)
    app.state.remote_api = client
    logger.info(
        "Startup config: ENV=%s REMOTE_API_BASE_URL=%s SESSION_TTL_DAYS=%s",
        settings.ENV,
        settings.REMOTE_API_BASE_URL,
        settings.SESSION_TTL_DAYS,
    )
    try:
        yield
    finally:
        client.close()


app = FastAPI(title="OAuth Gateway", lifespan=lifespan)

_ERROR_CODE_BY_STATUS: dict[int, str] = {
    400: "VALIDATION_ERROR",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    422: "VALIDATION_ERROR",
    500: "INTERNAL_ERROR",
    502: "UPSTREAM_ERROR",
}


def _error_code(status_code: int) -> str:
    return _ERROR_CODE_BY_STATUS.get(int(status_code), "HTTP_ERROR")


@app.exception_handler(HTTPException)
def http_exception_handler(request: Request, exc: HTTPException):  # noqa: ARG001
    detail = exc.detail
    if isinstance(detail, str):
        message = detail
    else:
        message = str(detail) if detail is not None else "Request failed"

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": _error_code(exc.status_code), "message": message},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
def validation_exception_handler(request: Request, exc: RequestValidationError):  # noqa: ARG001
    return JSONResponse(
        status_code=422,
        content={
            "error": "VALIDATION_ERROR",
            "message": "Invalid request payload",
            "details": {"errors": jsonable_encoder(exc.errors())},
        },
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(oauth_router)
app.include_router(sessions_router)


@app.get("/health")
def health_check():
    return {"status": "ok"}
