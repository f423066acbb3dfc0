import logging.config


def setup_logging(level: str = "INFO") -> None:
    """
    Configure the root logger once at application start.

    Every module logs through ``logging.getLogger(__name__)``; records carry the
    request correlation id when one has been bound by the request logging middleware.
    """

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "correlation_id": {
                "()": "app.middleware.request_logging.CorrelationIdFilter",
            },
        },
        "formatters": {
            "standard": {
                "format": "%(asctime)s %(levelname)s [%(name)s] [%(correlation_id)s] %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
                "filters": ["correlation_id"],
            },
        },
        "root": {
            "handlers": ["console"],
            "level": level.upper(),
        },
        "loggers": {
            "sqlalchemy.engine": {"level": "WARNING"},
            "uvicorn.access": {"level": "WARNING"},
        },
    })
