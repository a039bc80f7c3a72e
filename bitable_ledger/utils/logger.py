import logging
import re
import sys

from bitable_ledger import config

# Configure logging
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)

# httpx logs full request URLs at INFO, sheet token included
logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get logger instance for module"""
    return logging.getLogger(name)


APP_TOKEN_SEGMENT = re.compile(r"(/apps/)[^/?]+")


def log_request(logger: logging.Logger, method: str, url: str, secret: str = None):
    """Standard access line; neither the server secret nor any app token reaches the log."""
    if secret:
        url = url.replace(secret, "***")
    url = APP_TOKEN_SEGMENT.sub(r"\1***", url)
    logger.info(f"[{method}] {url}")


def log_error(logger: logging.Logger, context: str, error: Exception):
    """Standard error logging"""
    logger.error(f"{context}: {type(error).__name__}: {error}", exc_info=True)
