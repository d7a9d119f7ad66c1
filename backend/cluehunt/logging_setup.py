from __future__ import annotations
import logging, sys
import structlog
import structlog.stdlib
from cluehunt.config import settings

def configure_logging(level: int | None = None):
    if level is None:
        level = logging.getLevelName(settings.log_level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    timestamper = structlog.processors.TimeStamper(fmt="iso")
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            timestamper,
            structlog.processors.add_log_level,
            structlog.processors.EventRenamer("message"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(processors=[
        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
        structlog.processors.JSONRenderer(),
    ]))
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)
    # minio retries log every attempt through urllib3; the pipeline logs its own
    logging.getLogger("urllib3").setLevel(max(level, logging.WARNING))
