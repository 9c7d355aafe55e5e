import logging
import sys
from config.settings import SYSTEM_CONFIG, LOG_DIR

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logger(name: str, log_file: str = "backtest.log") -> logging.Logger:
    """
    Configure and return a logger instance.
    Child loggers ("backtesting.engine", "data.storage.database"...) propagate to it.
    """
    logger = logging.getLogger(name)

    # Prevent duplicate handlers
    if logger.handlers:
        return logger

    level = getattr(logging, SYSTEM_CONFIG["LOG_LEVEL"].upper(), logging.INFO)
    logger.setLevel(level)

    formatter = logging.Formatter(LOG_FORMAT)

    # Console Handler on stderr; stdout is reserved for report output
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # File Handler
    if SYSTEM_CONFIG["LOG_TO_FILE"]:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(LOG_DIR / log_file, encoding='utf-8')
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
