"""Logging configuration for the field client."""
import logging
import sys
import os
from logging.handlers import RotatingFileHandler


class ColorFormatter(logging.Formatter):
    """Color-coded formatter for console output."""

    COLORS = {
        'DEBUG': '\033[36m',    # Cyan
        'INFO': '\033[32m',     # Green
        'WARNING': '\033[33m',  # Yellow
        'ERROR': '\033[31m',    # Red
        'CRITICAL': '\033[35m', # Magenta
        'RESET': '\033[0m'
    }

    def format(self, record):
        # Work on a copy so other handlers still see the plain level name
        record = logging.makeLogRecord(record.__dict__)
        if record.levelname in self.COLORS:
            record.levelname = f"{self.COLORS[record.levelname]}{record.levelname}{self.COLORS['RESET']}"
        return super().format(record)


def setup_logging(log_file=None, max_bytes=1024 * 1024, backup_count=3):
    """Setup console logging for the field client.

    Level comes from ``LOG_LEVEL``; colors are used on a TTY unless
    ``LOG_COLORS`` is false. With ``log_file`` the same records also go to a
    small rotating file.
    """
    log_level_str = os.getenv('LOG_LEVEL', 'INFO').upper()
    log_level = getattr(logging, log_level_str, logging.INFO)

    logger = logging.getLogger()
    logger.setLevel(log_level)

    color_formatter = ColorFormatter(
        '%(asctime)s %(levelname)s %(name)-25s %(message)s'
    )
    plain_formatter = logging.Formatter(
        '%(asctime)s %(levelname)-8s %(name)-25s %(message)s'
    )

    use_colors = os.getenv('LOG_COLORS', 'true').lower() in ('true', '1', 'yes')

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    if use_colors and sys.stdout.isatty():
        console_handler.setFormatter(color_formatter)
    else:
        console_handler.setFormatter(plain_formatter)

    logger.handlers.clear()
    logger.addHandler(console_handler)

    if log_file:
        file_handler = RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backup_count,
                                           encoding='utf-8')
        file_handler.setLevel(log_level)
        file_handler.setFormatter(plain_formatter)
        logger.addHandler(file_handler)

    for noisy in ('PIL', 'fpdf', 'urllib3', 'sqlalchemy.engine'):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logger.info(f"Client logging initialized (level: {log_level_str})")

    return logger
