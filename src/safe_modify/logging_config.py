import os
import sys

from loguru import logger

# Flag to track if logging has been configured
_logging_configured = False


def setup_logging(level=None, log_file=None, force=False):
    """
    Configure the global loguru logger.

    Console output goes to stderr at ``SAFE_MODIFY_LOG_LEVEL`` (default
    WARNING). File logging is opt-in via ``SAFE_MODIFY_LOG_FILE`` or
    ``log_file``.
    """
    global _logging_configured

    if _logging_configured and not force:
        return
    _logging_configured = True

    logger.remove()

    if level is None:
        level = os.getenv("SAFE_MODIFY_LOG_LEVEL", "WARNING").upper()

    logger.add(
        sys.stderr,
        level=level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
        colorize=True,
    )

    if log_file is None:
        log_file = os.getenv("SAFE_MODIFY_LOG_FILE")

    if log_file:
        logger.add(
            log_file,
            level="INFO",
            rotation="10 MB",
            retention="7 days",
            catch=True,
        )


setup_logging()

__all__ = ["logger", "setup_logging"]
