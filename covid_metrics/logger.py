import os
import logging
from typing import Optional, Union

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logger(
    logger_name: str = "covid_metrics",
    level: Union[int, str] = logging.INFO,
    log_dir: Optional[str] = None,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """
    Set up and return a logger with a console handler and an optional file handler.

    Every module logs through a child of ``covid_metrics`` (e.g.
    ``covid_metrics.metrics``), so configuring the root project logger once is
    enough for the whole package.

    Args:
        logger_name: Name of the logger
        level: Logging level, as an int or a level name such as "DEBUG"
        log_dir: Directory for log files; no file handler when None
        log_file: Optional log filename (default: {logger_name}.log)

    Returns:
        Configured logger instance
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level: {level}")

    logger = logging.getLogger(logger_name)
    logger.setLevel(level)

    # Clear existing handlers to avoid duplicates if logger already exists
    if logger.handlers:
        logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        if log_file is None:
            log_file = f"{logger_name.lower().replace(' ', '_').replace('.', '_')}.log"
        log_path = os.path.join(log_dir, log_file)

        file_handler = logging.FileHandler(log_path)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

        logger.info(f"Log file is being saved to: {os.path.abspath(log_path)}")

    return logger
