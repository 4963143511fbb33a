"""
Structured Logging System for the Order Duplicate Guard
Provides rotating file logs with immediate flush for real-time monitoring
"""
import logging
from pathlib import Path
from logging.handlers import RotatingFileHandler


class GuardLogger:
    """Centralized logging with rotation and formatting.

    Handlers are attached to the ``duplicate_guard`` logger so that the
    engine modules (which log through ``logging.getLogger(__name__)``) end
    up in the same files.
    """

    def __init__(self, name="duplicate_guard", log_dir="logs", log_level="INFO",
                 max_mb=10, backup_count=5):
        """
        Initialize logger with rotating file handlers

        Args:
            name: Logger name
            log_dir: Directory for log files
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            max_mb: Size of the main log file before it rotates
            backup_count: Number of rotated main log files to keep
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

        # Clear any existing handlers
        self.logger.handlers.clear()

        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        log_format = logging.Formatter(
            '[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        # 1. Main rotating file handler
        main_handler = RotatingFileHandler(
            log_path / 'duplicate_guard.log',
            maxBytes=max_mb * 1024 * 1024,
            backupCount=backup_count,
            encoding='utf-8'
        )
        main_handler.setLevel(logging.DEBUG)
        main_handler.setFormatter(log_format)
        self.logger.addHandler(main_handler)

        # 2. Error-only log file (5MB per file, keep 3 files)
        error_handler = RotatingFileHandler(
            log_path / 'errors.log',
            maxBytes=5*1024*1024,
            backupCount=3,
            encoding='utf-8'
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(log_format)
        self.logger.addHandler(error_handler)

        # 3. Console handler
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(log_format)
        self.logger.addHandler(console_handler)

    def debug(self, message, component=""):
        """Log debug message"""
        self._log(logging.DEBUG, message, component)

    def info(self, message, component=""):
        """Log info message"""
        self._log(logging.INFO, message, component)

    def warning(self, message, component=""):
        """Log warning message"""
        self._log(logging.WARNING, message, component)

    def error(self, message, component="", exc_info=False):
        """Log error message"""
        self._log(logging.ERROR, message, component, exc_info=exc_info)

    def critical(self, message, component="", exc_info=False):
        """Log critical message"""
        self._log(logging.CRITICAL, message, component, exc_info=exc_info)

    def _log(self, level, message, component="", exc_info=False):
        """Internal logging method with component prefix"""
        if component:
            message = f"[{component}] {message}"

        self.logger.log(level, message, exc_info=exc_info)

        # Force immediate flush
        for handler in self.logger.handlers:
            handler.flush()

    def log_scan_summary(self, scan_result):
        """Log the outcome of a batch or webhook scan"""
        summary = scan_result.to_dict()["summary"]
        self.info(
            f"{scan_result.trigger} - {summary['groups_found']} group(s), "
            f"{summary['duplicates_found']} duplicate(s) in {summary['orders_in_window']} "
            f"order(s) over {summary['search_days']} day(s)"
            + (" [dry run]" if scan_result.dry_run else ""),
            component="Scan"
        )
        for name in scan_result.failed_orders:
            self.warning(f"Order {name} was not fully remediated", component="Scan")

# Global logger instance
_global_logger = None

def get_logger(log_level="INFO", log_dir="logs", max_mb=10, backup_count=5):
    """Get or create global logger instance"""
    global _global_logger
    if _global_logger is None:
        _global_logger = GuardLogger(
            log_level=log_level,
            log_dir=log_dir,
            max_mb=max_mb,
            backup_count=backup_count,
        )
    return _global_logger
