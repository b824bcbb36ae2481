import logging
import sys
from logging.handlers import RotatingFileHandler

from utils.constants import LOGS_DIR


class Logger:
    """Thread-aware logger with console and rotating file output."""

    _configured = False

    @classmethod
    def setup(cls, settings: dict):
        """
        Global configuration for all Logger instances.

        Args:
            settings: Dictionary containing 'level', 'file', 'rotation', 'backup_count'
        """
        if cls._configured:
            return

        level_name = str(settings.get('level', 'INFO')).upper()
        level = getattr(logging, level_name, logging.INFO)

        root = logging.getLogger()
        root.setLevel(level)

        if not root.handlers:
            # Stage threads log concurrently, so the thread name is part of every line
            formatter = logging.Formatter(
                '[%(asctime)s] [%(levelname)s] [%(threadName)s] [%(name)s] %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )

            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setFormatter(formatter)
            root.addHandler(console_handler)

            if settings.get('to_file', True):
                try:
                    LOGS_DIR.mkdir(exist_ok=True)
                    log_file = LOGS_DIR / settings.get('file', 'hermes.log')

                    file_handler = RotatingFileHandler(
                        log_file,
                        maxBytes=cls._parse_size(settings.get('rotation', '5MB')),
                        backupCount=settings.get('backup_count', 5)
                    )
                    file_handler.setFormatter(formatter)
                    root.addHandler(file_handler)
                except OSError as e:
                    print(f"Failed to initialize file logger: {e}")

        cls._configured = True

    @staticmethod
    def _parse_size(value) -> int:
        """Parse a rotation size such as "5MB" or "512KB" into bytes."""
        text = str(value).strip().upper()
        default = 5 * 1024 * 1024
        for suffix, factor in (('MB', 1024 * 1024), ('KB', 1024)):
            if text.endswith(suffix):
                try:
                    return int(text[:-len(suffix)]) * factor
                except ValueError:
                    return default
        try:
            return int(text)
        except ValueError:
            return default

    def __init__(self, name: str = "Hermes"):
        self.logger = logging.getLogger(name)

    def info(self, message: str):
        self.logger.info(message)

    def warning(self, message: str):
        self.logger.warning(message)

    def error(self, message: str):
        self.logger.error(message)

    def debug(self, message: str):
        self.logger.debug(message)

    def critical(self, message: str):
        self.logger.critical(message)
