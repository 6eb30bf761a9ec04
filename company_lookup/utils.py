import secrets
import string
import sys
import time

from loguru import logger

from company_lookup.settings import Settings

_ID_ALPHABET = string.ascii_lowercase + string.digits

LOG_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


def configure_logging(settings: Settings) -> None:
    """
    Route loguru output to stderr at a level chosen by the debug flag.

    Debug mode turns on the per-request and cache diagnostics.
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG" if settings.debug else "INFO",
        format=LOG_FORMAT,
        backtrace=settings.debug,
        diagnose=settings.debug,
    )
    logger.debug(f"Logging configured (environment={settings.environment})")


def generate_request_id() -> str:
    """Unique per-request trace id, e.g. ``req_1718000000000_k3j9x0a2b``."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"req_{int(time.time() * 1000)}_{suffix}"
