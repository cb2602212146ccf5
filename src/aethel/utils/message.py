import logging
import os
import sys
from datetime import datetime
from logging import Logger, Handler
from colorama import init, Fore, Style
init(autoreset=True)

# File logging is opt-in so that library consumers and tests do not write
# into the user data directory.
FILE_LOGGING_ENV = "AETHEL_FILE_LOGGING"
LOG_LEVEL_ENV = "AETHEL_LOG_LEVEL"

LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


class GUIConsoleHandler(Handler):
    """
    Logging handler that forwards records to a console widget.

    The widget only needs an ``add_output(level, message)`` method.
    """
    def __init__(self, console_widget=None):
        super().__init__()
        self.console_widget = console_widget
        self.level_map = {
            logging.DEBUG: "DEBUG",
            logging.INFO: "INFO",
            logging.WARNING: "WARNING",
            logging.ERROR: "ERROR",
            logging.CRITICAL: "ERROR"
        }

    def set_console_widget(self, console_widget):
        self.console_widget = console_widget

    def emit(self, record):
        if self.console_widget is None or not hasattr(self.console_widget, 'add_output'):
            return
        try:
            level = self.level_map.get(record.levelno, "INFO")
            self.console_widget.add_output(level, self.format(record))
        except Exception:
            self.handleError(record)


def create_log_directory(log_folder: str = None) -> str:
    """
    Ensures that the log directory exists. If not, it creates it.

    Args:
        log_folder: Optional path to log folder. If None, uses platform-specific location.
    """
    if log_folder is None:
        from aethel.utils.paths import get_logs_dir
        log_folder = str(get_logs_dir())

    os.makedirs(log_folder, exist_ok=True)
    return log_folder


def get_log_file_path(log_folder: str) -> str:
    """
    Returns a log file path with a timestamp in the name.
    Format: <log_folder>/aethel_YYYY-mm-dd_HHMMSS.log
    """
    timestamp = datetime.now().strftime("%Y-%m-%d_%H%M%S")
    return os.path.join(log_folder, f"aethel_{timestamp}.log")


def purge_old_logs(log_folder: str, keep: int = 10):
    """
    Removes older log files, keeping only the most recent 'keep' files.
    The timestamped naming makes lexicographical order chronological.
    """
    all_logs = sorted(
        f for f in os.listdir(log_folder)
        if f.startswith("aethel_") and f.endswith(".log")
    )
    for old_file in all_logs[:-keep]:
        os.remove(os.path.join(log_folder, old_file))


class ColorFormatter(logging.Formatter):
    """
    A formatter that colorizes log level names using colorama.
    """
    color_map = {
        logging.DEBUG: Fore.BLUE,
        logging.INFO: Fore.GREEN,
        logging.WARNING: Fore.YELLOW,
        logging.ERROR: Fore.RED,
        logging.CRITICAL: Fore.LIGHTRED_EX,
    }

    def format(self, record):
        color = self.color_map.get(record.levelno, Fore.WHITE)
        # Copy so other handlers see the plain level name
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{color}{record.levelname}{Style.RESET_ALL}"
        return super().format(record)


def init_logger(
    name: str = "aethel",
    log_folder: str = None,
    console_logging: bool = True,
    file_logging: bool = False,
    level: int = logging.DEBUG
) -> Logger:
    """
    Initializes and configures the logger with the specified settings.
    :param name: The logger's name.
    :param log_folder: The folder where log files should go. If None, uses platform-specific location.
    :param console_logging: Whether to log to the console.
    :param file_logging: Whether to log to a file.
    :param level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    :return: A configured logger instance.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Calling init_logger twice must not duplicate handlers
    if not logger.handlers:
        if file_logging:
            log_folder = create_log_directory(log_folder)
            purge_old_logs(log_folder, keep=10)
            file_handler = logging.FileHandler(get_log_file_path(log_folder), encoding="utf-8")
            file_handler.setLevel(level)
            file_handler.setFormatter(logging.Formatter(
                fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S"
            ))
            logger.addHandler(file_handler)

        if console_logging:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(level)
            console_handler.setFormatter(ColorFormatter(
                fmt="%(asctime)s | %(levelname)s | %(message)s",
                datefmt="%H:%M:%S"
            ))
            logger.addHandler(console_handler)

    return logger


def _level_from_env() -> int:
    return LEVEL_MAP.get(os.getenv(LOG_LEVEL_ENV, "INFO").upper(), logging.INFO)


class Log:
    """
    Class-level logging facade (``Log.info(...)``) backed by Python's logging.

    Messages are conventionally prefixed with the emitting component,
    e.g. ``Log.debug("CommandHistory: pushed 'Move placement'")``.
    """
    _logger: Logger = init_logger(
        name="aethel",
        console_logging=True,
        file_logging=os.getenv(FILE_LOGGING_ENV, "").lower() in ("1", "true", "yes"),
        level=_level_from_env(),
    )
    _gui_handler: GUIConsoleHandler | None = None

    @classmethod
    def set_logger(cls, logger: Logger):
        """Replace the logger at runtime."""
        cls._logger = logger

    @classmethod
    def get_logger(cls) -> Logger:
        return cls._logger

    @classmethod
    def set_level(cls, level: str | int):
        """
        Set the logging level dynamically.

        Args:
            level: Log level as string ("DEBUG", "INFO", "WARNING", "ERROR") or int
        """
        if isinstance(level, str):
            level = LEVEL_MAP.get(level.upper(), logging.INFO)

        cls._logger.setLevel(level)
        for handler in cls._logger.handlers:
            handler.setLevel(level)

    @classmethod
    def debug(cls, text: str):
        cls._logger.debug(text)

    @classmethod
    def info(cls, text: str):
        cls._logger.info(text)

    @classmethod
    def command(cls, text: str):
        cls._logger.info(f"[COMMAND] {text}")

    @classmethod
    def warning(cls, text: str, exc_info: bool = False):
        cls._logger.warning(text, exc_info=exc_info)

    @classmethod
    def error(cls, text: str, exc_info: bool = False):
        cls._logger.error(text, exc_info=exc_info)

    @classmethod
    def set_gui_console(cls, console_widget):
        """Route all log records to a console widget as well."""
        if cls._gui_handler is None:
            cls._gui_handler = GUIConsoleHandler(console_widget)
            cls._logger.addHandler(cls._gui_handler)
        else:
            cls._gui_handler.set_console_widget(console_widget)

    @classmethod
    def remove_gui_console(cls):
        if cls._gui_handler is not None:
            cls._logger.removeHandler(cls._gui_handler)
            cls._gui_handler = None
