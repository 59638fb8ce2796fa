import contextvars
import logging
import logging.handlers
from pathlib import Path
from typing import Dict, List, Optional

from core.config import settings
from core.errors import AppError
from core.security import ACCESS, get_token_issuer
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

LOG_FORMAT = "%(levelname)s - %(asctime)s - %(user_id)s - %(api)s - %(name)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Which handlers each logger writes to; None stands for the application logger
LOGGER_ROUTES: Dict[Optional[str], List[str]] = {
    "": ["app", "error", "console"],
    None: ["app", "error", "console"],
    "uvicorn": ["app", "error", "console"],
    "uvicorn.error": ["app", "error", "console"],
    "fastapi": ["app", "error", "console"],
    "uvicorn.access": ["access", "console"],
}

user_id_var = contextvars.ContextVar("user_id", default="-")
api_var = contextvars.ContextVar("api", default="-")


def map_log_level(level_name: str) -> int:
    level = logging.getLevelName((level_name or "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


class ContextFilter(logging.Filter):
    """Stamp every record with the caller's user id and route."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.user_id = user_id_var.get()
        record.api = api_var.get()
        return True


def _daily_file(log_dir: Path, filename: str, level: int) -> logging.Handler:
    handler = logging.handlers.TimedRotatingFileHandler(
        filename=str(log_dir / filename),
        when="midnight",
        backupCount=max(int(settings.LOG_TTL_DAYS), 0),
        encoding="utf-8",
        utc=True,
    )
    handler.suffix = "%Y-%m-%d"
    handler.setLevel(level)
    return handler


def _handlers(level: int, log_dir: Path) -> Dict[str, logging.Handler]:
    console = logging.StreamHandler()
    console.setLevel(level)
    handlers = {
        "app": _daily_file(log_dir, "app.log", level),
        "access": _daily_file(log_dir, "access.log", level),
        "error": _daily_file(log_dir, "error.log", logging.WARNING),
        "console": console,
    }
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    context = ContextFilter()
    for handler in handlers.values():
        handler.setFormatter(formatter)
        handler.addFilter(context)
    return handlers


def configure_logging(app_logger_name: Optional[str] = None) -> logging.Logger:
    """Route root, application and uvicorn loggers to daily-rotated files.

    Files rotate at midnight UTC and LOG_TTL_DAYS of them are kept. Warnings
    and above are duplicated into error.log.
    """
    log_dir = Path(settings.LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)
    level = map_log_level(settings.LOG_LEVEL)
    handlers = _handlers(level, log_dir)

    app_name = app_logger_name or "blogsphere"
    for name, targets in LOGGER_ROUTES.items():
        target = logging.getLogger(app_name if name is None else name)
        if name != "":
            target.propagate = False
        for existing in list(target.handlers):
            target.removeHandler(existing)
        for key in targets:
            target.addHandler(handlers[key])
        target.setLevel(level)
    return logging.getLogger(app_name)


def bind_user(user_id: str) -> None:
    """Tag the rest of the current request's log lines with an authenticated user id."""
    user_id_var.set(user_id or "-")


def _access_token(request: Request) -> Optional[str]:
    token = request.cookies.get("accessToken")
    auth_header = request.headers.get("authorization") or ""
    if not token and auth_header.startswith("Bearer "):
        token = auth_header.split(" ", 1)[1].strip()
    return token or None


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        user_id = "-"
        token = _access_token(request)
        if token:
            try:
                user_id = get_token_issuer().verify(token, ACCESS).get("sub") or "-"
            except AppError:
                # The access guard rejects the request; log lines stay anonymous
                user_id = "-"
        user_token = user_id_var.set(user_id)
        api_token = api_var.set(f"{request.method} {request.url.path}")
        try:
            return await call_next(request)
        finally:
            user_id_var.reset(user_token)
            api_var.reset(api_token)
