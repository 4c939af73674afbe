import logging
import sys
from typing import Any, Optional

import structlog

from sportiq.config import get_settings

# 학습/추론 중 로그가 과도하게 많은 서드파티 로거
NOISY_LOGGERS = ("httpx", "httpcore", "multipart")


def configure_logging(settings: Optional[Any] = None) -> None:
    settings = settings or get_settings()
    log_level = logging.DEBUG if settings.debug else logging.INFO

    # uvicorn 등이 먼저 핸들러를 붙였더라도 한 번에 교체
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stdout,
        level=log_level,
        force=True,
    )
    logging.getLogger("sportiq").setLevel(log_level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if settings.debug:
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors += [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
