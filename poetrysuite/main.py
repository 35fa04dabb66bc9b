import logging
import os
import time
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

# Load env from the project .env before settings are read
project_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv(dotenv_path=os.path.join(project_dir, ".env"))

from poetrysuite.api import health, statistics, streaks  # noqa: E402
from poetrysuite.core.config import settings, validate_config  # noqa: E402
from poetrysuite.core.database import dispose_engine  # noqa: E402
from poetrysuite.core.errors import (  # noqa: E402
    AppError,
    app_error_handler,
    http_error_handler,
    request_validation_handler,
    unhandled_exception_handler,
)
from poetrysuite.core.logging import LOGGER_NAME, configure_logging  # noqa: E402
from poetrysuite.core.middleware.request_id import RequestIdMiddleware  # noqa: E402
from poetrysuite.core.validation import validate_env  # noqa: E402

configure_logging(settings.ENV)
validate_env()
validate_config(strict=settings.CONFIG_STRICT)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger(LOGGER_NAME)
    logger.info("Starting poetrysuite backend...")
    app.state.startup_time = time.time()
    try:
        yield
    finally:
        dispose_engine()
        logger.info("Stopping poetrysuite backend...")


app = FastAPI(title="poetrysuite - writing analytics", lifespan=lifespan)

app.add_middleware(RequestIdMiddleware)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(StarletteHTTPException, http_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.include_router(statistics.router)
app.include_router(streaks.router)
app.include_router(health.router)
