"""LiveForge -- FastAPI application entry point."""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from liveforge.api.rate_limit import RateLimiter
from liveforge.api.routers.builds import router as builds_router
from liveforge.api.routers.health import router as health_router
from liveforge.clients import ledger_client, llm_client
from liveforge.clients.content_generator import get_content_generator
from liveforge.config import VERSION, settings
from liveforge.middleware import RequestIDMiddleware
from liveforge.middleware.access_log import AccessLogMiddleware
from liveforge.middleware.exception_handler import setup_exception_handlers
from liveforge.repos.build_store import BuildStore
from liveforge.repos.demo_builds import demo_builds
from liveforge.services.build.stream import shutdown_active_builds

logger = logging.getLogger(__name__)


class LogFormatter(logging.Formatter):
    """``time LEVEL [logger] message``, ANSI-coloured by level when *color* is set."""

    _COLORS = {
        logging.DEBUG: "\033[36m",       # cyan
        logging.INFO: "\033[32m",        # green
        logging.WARNING: "\033[33m",     # yellow
        logging.ERROR: "\033[31m",       # red
        logging.CRITICAL: "\033[1;31m",  # bold red
    }
    _RESET = "\033[0m"
    _DIM = "\033[2m"

    def __init__(self, *, color: bool, datefmt: str) -> None:
        super().__init__(datefmt=datefmt)
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        stamp = self.formatTime(record, self.datefmt)
        level = f"{record.levelname:<8s}"
        origin = f"[{record.name.rsplit('.', 1)[-1][:20]:>20s}]"
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        if not self.color:
            return f"{stamp} {level} {origin} {message}"
        tint = self._COLORS.get(record.levelno, "")
        dim, reset = self._DIM, self._RESET
        return f"{dim}{stamp}{reset} {tint}{level}{reset} {dim}{origin}{reset} {tint}{message}{reset}"


def configure_logging() -> None:
    """Colored stderr output plus an optional rotating file log (``LOG_FILE``)."""
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(LogFormatter(color=sys.stderr.isatty(), datefmt="%H:%M:%S"))
    handlers: list[logging.Handler] = [handler]

    if settings.LOG_FILE:
        from logging.handlers import RotatingFileHandler
        from pathlib import Path

        log_path = Path(settings.LOG_FILE)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            str(log_path),
            maxBytes=10 * 1024 * 1024,  # 10 MB per file
            backupCount=3,
            encoding="utf-8",
        )
        file_handler.setFormatter(LogFormatter(color=False, datefmt="%Y-%m-%d %H:%M:%S"))
        handlers.append(file_handler)

    logging.basicConfig(level=log_level, handlers=handlers)

    # Quiet noisy loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(application: FastAPI):
    """Application lifespan: startup and shutdown hooks."""
    configure_logging()

    if settings.SEED_DEMO_BUILDS:
        seeded = await application.state.build_store.seed(demo_builds())
        logger.info("Seeded %d demo build(s).", seeded)
    logger.info(
        "LiveForge %s ready (ledger=%s, pacing=%gx)",
        VERSION, settings.LEDGER_MODE, settings.BUILD_PACING,
    )
    yield
    # Builds must stop before the HTTP clients they use are closed.
    await shutdown_active_builds()
    await llm_client.close_client()
    await ledger_client.close_client()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="LiveForge",
        version=VERSION,
        description="Live agent builds streamed step by step, anchored on a verification ledger",
        lifespan=lifespan,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )

    application.state.build_store = BuildStore()
    application.state.content_generator = get_content_generator()
    application.state.ledger_client = ledger_client.get_ledger_client()
    application.state.build_limiter = (
        RateLimiter(max_requests=settings.BUILD_RATE_LIMIT_PER_HOUR, window_seconds=3600)
        if settings.BUILD_RATE_LIMIT_PER_HOUR
        else None
    )

    setup_exception_handlers(application)

    application.add_middleware(AccessLogMiddleware)
    application.add_middleware(RequestIDMiddleware)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.FRONTEND_URL],
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID"],
    )

    application.include_router(health_router)
    application.include_router(builds_router)
    return application


app = create_app()
