import sys
from loguru import logger

LOG_FORMAT = "{time} | {level} | {module}:{function}:{line} | {extra} | {message}"


def setup_logging(level: str, log_path: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level, format=LOG_FORMAT)
    logger.add(
        log_path,
        level="DEBUG",
        format=LOG_FORMAT,
        rotation="1 MB",
        retention=5,
        compression="zip",
    )
