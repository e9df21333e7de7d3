"""
Client logging module
Uses loguru for levelled logs, file rotation and coloured console output
"""
import sys
from pathlib import Path

from loguru import logger


#Default log directory
DEFAULT_LOG_DIR = "./logs"
#Default file log level
DEFAULT_LOG_LEVEL = "INFO"
#Default console log level
DEFAULT_CONSOLE_LEVEL = "INFO"
#Default size of a single file
DEFAULT_ROTATION = "10 MB"
#Default number of files kept
DEFAULT_RETENTION = 10


def setup_logger(
    log_dir: str = DEFAULT_LOG_DIR,
    log_level: str = DEFAULT_LOG_LEVEL,
    rotation: str = DEFAULT_ROTATION,
    retention: int = DEFAULT_RETENTION,
    console_level: str = DEFAULT_CONSOLE_LEVEL,
    app_name: str = "sip2client"
) -> "logger":
    """
    Configure the logging system

    Args:
        log_dir: log file directory
        log_level: file log level (DEBUG/INFO/WARNING/ERROR)
        rotation: maximum size of one file (e.g. "10 MB")
        retention: number of files kept
        console_level: console log level
        app_name: application name, used as the log file prefix

    Returns:
        the configured logger
    """
    #Remove the default handler
    logger.remove()

    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    #Coloured console output
    logger.add(
        sys.stderr,
        level=console_level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
               "<level>{level: <8}</level> | "
               "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
               "<level>{message}</level>",
        colorize=True
    )

    #Daily file output with rotation
    logger.add(
        f"{log_dir}/{app_name}_{{time:YYYY-MM-DD}}.log",
        level=log_level,
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}",
        rotation=rotation,
        retention=retention,
        encoding="utf-8",
        enqueue=True
    )

    #Errors in their own file
    logger.add(
        f"{log_dir}/{app_name}_error_{{time:YYYY-MM-DD}}.log",
        level="ERROR",
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}",
        rotation=rotation,
        retention=retention,
        encoding="utf-8",
        enqueue=True
    )

    logger.info(f"Logging initialised - dir: {log_path.absolute()}, level: {log_level}")

    return logger


__all__ = [
    'logger',
    'setup_logger',
]
