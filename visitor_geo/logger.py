import os
from logging import config, getLevelName, getLogger

LOGGER_NAME = "visitor_geo"
PROVIDER_LOGGER_NAME = f"{LOGGER_NAME}.providers"

LOG_LEVEL = getLevelName(os.getenv("LOG_LEVEL", "INFO"))  # DEBUG, WARNING, ERROR
# Per-provider call logs are noisy: seven lines per resolution at DEBUG.
PROVIDER_LOG_LEVEL = getLevelName(os.getenv("GEO_PROVIDER_LOG_LEVEL", "INFO"))
# Hosted platforms capture stderr as plain text; ANSI colors only help in a terminal.
LOG_COLORS = os.getenv("LOG_COLORS", "1").strip().lower() not in ("0", "false", "no")

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def build_log_config(level: int | str, provider_level: int | str, use_colors: bool) -> dict:
    quiet = {"handlers": ["default"], "level": "WARNING", "propagate": False}
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "access": {
                "()": "uvicorn.logging.AccessFormatter",
                "fmt": '%(levelprefix)s %(asctime)s - %(client_addr)s - "%(request_line)s" %(status_code)s',
                "datefmt": DATE_FORMAT,
                "use_colors": use_colors,
            },
            "default": {
                "()": "uvicorn.logging.DefaultFormatter",
                "fmt": "%(levelprefix)s %(asctime)s - %(name)s - %(message)s",
                "datefmt": DATE_FORMAT,
                "use_colors": use_colors,
            },
        },
        "handlers": {
            "access": {"class": "logging.StreamHandler", "formatter": "access", "stream": "ext://sys.stdout"},
            "default": {"class": "logging.StreamHandler", "formatter": "default", "stream": "ext://sys.stderr"},
        },
        "loggers": {
            LOGGER_NAME: {"handlers": ["default"], "level": level, "propagate": False},
            PROVIDER_LOGGER_NAME: {"level": provider_level},
            "uvicorn": {"handlers": ["default"], "level": level, "propagate": True},
            "uvicorn.access": {"handlers": ["access"], "level": level, "propagate": False},
            "uvicorn.error": {"level": level, "propagate": False},
            # httpx logs every outbound request at INFO; pymongo logs heartbeats at DEBUG.
            "httpx": quiet,
            "pymongo": quiet,
        },
    }


config.dictConfig(build_log_config(LOG_LEVEL, PROVIDER_LOG_LEVEL, LOG_COLORS))

# Shared application logger
logger = getLogger(LOGGER_NAME)
provider_logger = getLogger(PROVIDER_LOGGER_NAME)
