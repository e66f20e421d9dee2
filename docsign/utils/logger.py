# docsign/utils/logger.py

import re
import sys
import time
import uuid
import logging
from typing import Any, Dict, List, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

# Signing tokens authenticate the recipient and are never logged in full
SIGNING_PATH_PATTERN = re.compile(r"^(?P<prefix>/(?:audit-trail/)?sign/)(?P<token>[^/]+)(?P<rest>.*)$")
TOKEN_HINT_LENGTH = 4


def mask_signing_path(path: str) -> str:
    """
    Replace the token segment of a signing URL with its last characters.

    >>> mask_signing_path("/sign/abcdef123456/fields/7")
    '/sign/***3456/fields/7'
    """
    match = SIGNING_PATH_PATTERN.match(path)
    if not match:
        return path
    token = match.group("token")
    return f"{match.group('prefix')}***{token[-TOKEN_HINT_LENGTH:]}{match.group('rest')}"


def _handler(stream_or_file: Any, processors: List[Any], renderer: Any, level: int) -> logging.Handler:
    if isinstance(stream_or_file, str):
        handler: logging.Handler = logging.FileHandler(stream_or_file)
    else:
        handler = logging.StreamHandler(stream_or_file)
    handler.setLevel(level)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
            foreign_pre_chain=processors,
        )
    )
    return handler


def setup_logging(
    log_level: str = "INFO",
    use_json: bool = True,
    log_file: Optional[str] = None,
    app_name: str = "docsign",
    environment: str = "development",
) -> None:
    """
    Configure structlog on top of the standard library root logger.

    Console output is JSON or plain text; the optional log file is always JSON.
    """
    level = getattr(logging, log_level.upper())

    def add_app_context(logger: logging.Logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        event_dict.setdefault("app", app_name)
        event_dict.setdefault("environment", environment)
        return event_dict

    shared_processors: List[Any] = [
        structlog.contextvars.merge_contextvars,
        add_app_context,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    console_renderer = (
        structlog.processors.JSONRenderer() if use_json
        else structlog.dev.ConsoleRenderer(colors=False, exception_formatter=structlog.dev.plain_traceback)
    )

    logging.root.handlers = [_handler(sys.stdout, shared_processors, console_renderer, level)]
    if log_file:
        logging.root.addHandler(_handler(log_file, shared_processors, structlog.processors.JSONRenderer(), level))
    logging.root.setLevel(level)

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: Optional[str] = None) -> structlog.BoundLogger:
    return structlog.get_logger(name)


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Binds a request id and the masked signing path to every log line of the
    request, and turns unhandled errors into a structured 500.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        path = mask_signing_path(request.url.path)
        structlog.contextvars.bind_contextvars(request_id=request_id, method=request.method, path=path)

        logger = get_logger("docsign.access")
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request_failed",
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
                error=str(e),
                exc_info=True,
            )
            # Internal errors never leak details to the signer
            return JSONResponse(
                status_code=500,
                content={
                    "detail": {"code": "INTERNAL_ERROR", "message": "Something went wrong. Please try again."},
                    "request_id": request_id,
                },
                headers={"X-Request-ID": request_id},
            )
        else:
            logger.info(
                "request_completed",
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            structlog.contextvars.clear_contextvars()


def setup_app_logging(app: FastAPI, settings: Any) -> None:
    """
    Configure logging from the application settings and install the request
    logging middleware. Production always logs JSON.
    """
    production = settings.environment.lower() == "production"
    setup_logging(
        log_level=settings.log_level,
        use_json=production,
        log_file=settings.log_file or ("/var/log/docsign_app.log" if production else None),
        app_name=app.title or "Document Signing Service",
        environment=settings.environment,
    )
    app.add_middleware(LoggingMiddleware)
