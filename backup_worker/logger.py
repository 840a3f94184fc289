import logging
import logging.handlers
import os
import sys

DEFAULT_LOG_FILE_PATH = "data/backup_worker.log"

def setup_logging():
    """Configure the logging for the application."""
    log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
    log_file_path = os.environ.get("LOG_FILE", DEFAULT_LOG_FILE_PATH)

    # Get the root logger
    logger = logging.getLogger()
    logger.setLevel(log_level)

    # Remove existing handlers to avoid duplicates
    if logger.hasHandlers():
        logger.handlers.clear()

    # Create formatter
    formatter = logging.Formatter(
        "[%(asctime)s] [%(levelname)s] [%(name)s] - %(message)s",
        "%Y-%m-%d %H:%M:%S"
    )

    # Console Handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # Rotating File Handler
    if log_file_path:
        try:
            log_dir = os.path.dirname(log_file_path)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                log_file_path, maxBytes=10 * 1024 * 1024, backupCount=5  # 10 MB
            )
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        except Exception as e:
            logger.error(f"Failed to create log file handler: {e}")

    # boto3 is chatty at DEBUG
    logging.getLogger("botocore").setLevel(max(logging.INFO, logger.level))

    # Set the logger for the application
    app_logger = logging.getLogger("backup_worker")
    app_logger.setLevel(log_level)

    logging.info(f"Logging configured with level {log_level}")

def get_logger(name: str) -> logging.Logger:
    """Get a logger instance."""
    return logging.getLogger(name)
