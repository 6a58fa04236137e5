"""
Structured logging configuration
"""
import functools
import logging
import sys
import time

import structlog

from mediquiz import settings


def configure_logging(level: str = settings.LOG_LEVEL):
    """Configure structlog on top of the standard library logger"""

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level, logging.INFO),
    )

    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)


def log_performance(func_name: str):
    """Decorator to log how long a (slow) service call took"""
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            logger = structlog.get_logger("performance")
            start_time = time.perf_counter()

            try:
                result = func(*args, **kwargs)
                logger.info(
                    "function_completed",
                    function=func_name,
                    duration_seconds=round(time.perf_counter() - start_time, 3),
                    status="success"
                )
                return result
            except Exception as e:
                logger.error(
                    "function_failed",
                    function=func_name,
                    duration_seconds=round(time.perf_counter() - start_time, 3),
                    error=str(e),
                    status="error"
                )
                raise
        return wrapper
    return decorator


def log_api_request(request, response=None, error=None):
    """Log API requests and responses"""
    logger = structlog.get_logger("api")

    log_data = {
        "method": request.method,
        "path": request.url.path,
        "client_ip": request.client.host if request.client else "unknown",
    }

    if response:
        log_data.update({
            "status_code": response.status_code,
            "response_time": getattr(response, "response_time", None)
        })
        logger.info("api_request_completed", **log_data)
    elif error:
        log_data.update({
            "error": str(error),
            "status_code": getattr(error, "status_code", 500)
        })
        logger.error("api_request_failed", **log_data)
    else:
        logger.info("api_request_started", **log_data)
