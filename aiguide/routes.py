import uuid
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles

from .api.session_routes import router as session_router
from .errors import AIGuideError, ErrorResponse
from .logging_config import logger
from .schemas import HealthResponse
from .settings import PACKAGE_DIR, settings
from .storage import InMemorySessionStore, SessionStore

STATIC_DIR = PACKAGE_DIR / "static"


async def handle_domain_error(request: Request, exc: AIGuideError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "%s %s failed: %s (%s)",
            request.method,
            request.url.path,
            exc.message,
            exc.error_type,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response().model_dump(exclude_none=True),
    )


async def handle_request_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    payload = ErrorResponse(
        error="bad_request",
        message="请求体格式错误",
        code=400,
        details={
            "errors": [
                {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", "")}
                for err in exc.errors()
            ]
        },
    )
    return JSONResponse(status_code=400, content=payload.model_dump(exclude_none=True))


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    """
    全局异常处理器，统一返回结构化错误响应并打印日志。
    """
    error_id = uuid.uuid4().hex
    logger.exception(
        "Unhandled error %s %s (error_id=%s)",
        request.method,
        request.url.path,
        error_id,
    )
    payload = ErrorResponse(
        error="internal_error",
        message="服务器内部错误",
        code=500,
        details={"error_id": error_id},
    )
    return JSONResponse(status_code=500, content=payload.model_dump())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    - startup: open the shared upstream HTTP client
    - shutdown: close it and tear down the session store
    """
    if not settings.upstream_api_key:
        logger.warning("DEEPSEEK_API_KEY is not configured; upstream calls will fail")
    app.state.http_client = httpx.AsyncClient(timeout=settings.upstream_timeout)
    try:
        yield
    finally:
        await app.state.http_client.aclose()
        await app.state.session_store.close()


def create_app(session_store: Optional[SessionStore] = None) -> FastAPI:
    app = FastAPI(title="AIGuide", version="0.1.0", lifespan=lifespan)
    app.state.session_store = session_store or InMemorySessionStore()

    app.add_exception_handler(AIGuideError, handle_domain_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins(),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        client_host = request.client.host if request.client else "-"
        logger.info("HTTP %s %s from %s", request.method, request.url.path, client_host)
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "Unhandled error while processing %s %s",
                request.method,
                request.url.path,
            )
            raise
        logger.info(
            "HTTP %s %s -> %s", request.method, request.url.path, response.status_code
        )
        return response

    app.include_router(session_router)

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse()

    # Browser client.
    app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

    @app.get("/", include_in_schema=False)
    async def index() -> FileResponse:
        return FileResponse(STATIC_DIR / "index.html")

    return app


__all__ = ["create_app"]
