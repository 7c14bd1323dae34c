import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from starlette.middleware.cors import CORSMiddleware

from kitconsole import __version__
from kitconsole.api import api_router
from kitconsole.config import settings
from kitconsole.errors import ConsoleError
from kitconsole.logger import setup_global_logger
from kitconsole.plugins.watcher import KitRestartDetector
from kitconsole.utils.health import router as health_router
from kitconsole.utils.request_id import RequestIDMiddleware

setup_global_logger(settings.LOG_LEVEL)

logger = logging.getLogger(__name__)


def custom_generate_unique_id(route: APIRoute) -> str:
    if route.tags:
        return f"{route.tags[0]}-{route.name}"
    return route.name


@asynccontextmanager
async def lifespan(app: FastAPI):
    detector = None
    if settings.KIT_WATCH_ENABLED:
        detector = KitRestartDetector(
            settings.manifest_path,
            settings.KIT_URL,
            interval=settings.KIT_WATCH_INTERVAL,
        )
        detector.start()
    app.state.restart_detector = detector
    logger.info(f"Managing prototype at {settings.PROJECT_DIR}")
    try:
        yield
    finally:
        if detector is not None:
            detector.stop()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=__version__,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    generate_unique_id_function=custom_generate_unique_id,
    lifespan=lifespan,
)


@app.exception_handler(ConsoleError)
async def console_error_handler(request: Request, exc: ConsoleError):
    logger.warning(f"{request.method} {request.url.path} rejected: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Log validation errors for debugging
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    logger.error(f"Validation error for {request.url}: {errors}")
    return JSONResponse(status_code=422, content={"detail": errors})


cors_origins = [str(origin).strip("/") for origin in settings.BACKEND_CORS_ORIGINS]
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestIDMiddleware)

app.include_router(health_router)

app.include_router(api_router, prefix=settings.API_V1_STR)
