import logging
import logging.handlers
import os
from typing import Optional


def get_log_dir() -> str:
    return os.getenv('LOG_DIR', os.path.join(os.getcwd(), 'logs'))


class ScraperLogger:
    """Custom logger for scrape runs and their attempts"""

    def __init__(self, name: str = "seoulmate_scraper"):
        self.logger = logging.getLogger(name)
        self._setup_logger()

    def _setup_logger(self):
        """Setup logger with appropriate handlers and formatters"""
        if self.logger.handlers:
            return  # Already configured

        self.logger.setLevel(logging.DEBUG)

        log_dir = get_log_dir()
        os.makedirs(log_dir, exist_ok=True)

        # Console handler
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
        self.logger.addHandler(console_handler)

        # File handler for general logs
        file_handler = logging.handlers.RotatingFileHandler(
            os.path.join(log_dir, 'scraper.log'),
            maxBytes=10*1024*1024,  # 10MB
            backupCount=5,
            encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
        ))
        self.logger.addHandler(file_handler)

        # Separate handler for run-scoped messages
        run_handler = logging.handlers.RotatingFileHandler(
            os.path.join(log_dir, 'scrape_runs.log'),
            maxBytes=50*1024*1024,  # 50MB
            backupCount=10,
            encoding='utf-8'
        )
        run_handler.setLevel(logging.INFO)
        run_handler.setFormatter(logging.Formatter(
            '%(asctime)s - RUN_%(run_id)s - STAGE_%(stage)s - %(levelname)s - %(message)s'
        ))
        run_handler.addFilter(lambda record: hasattr(record, 'run_id'))
        self.logger.addHandler(run_handler)

        # Error handler for critical issues
        error_handler = logging.handlers.RotatingFileHandler(
            os.path.join(log_dir, 'errors.log'),
            maxBytes=10*1024*1024,  # 10MB
            backupCount=5,
            encoding='utf-8'
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
        ))
        self.logger.addHandler(error_handler)

    @staticmethod
    def _extra(run_id: Optional[str], stage: Optional[str]) -> dict:
        extra = {}
        if run_id is not None:
            extra['run_id'] = run_id
            # stage must accompany run_id to satisfy the run formatter
            extra['stage'] = stage or 'SYSTEM'
        elif stage is not None:
            extra['stage'] = stage
        return extra

    def log_run_start(self, run_id: str, trigger: str):
        """Log the start of a scrape run"""
        self.logger.info(f"Starting scrape run (trigger: {trigger})", extra=self._extra(run_id, 'SYSTEM'))

    def log_run_complete(self, run_id: str, status: str, record_count: int, duration: float,
                         new_count: Optional[int] = None):
        """Log the completion of a scrape run"""
        message = f"Scrape run finished with status {status}: {record_count} records in {duration:.2f} seconds"
        if new_count is not None:
            message += f", {new_count} new"
        self.logger.info(message, extra=self._extra(run_id, 'SYSTEM'))

    def log_run_failed(self, run_id: str, error: str, duration: Optional[float] = None):
        """Log the failure of a scrape run"""
        message = f"Scrape run failed: {error}"
        if duration is not None:
            message += f" (failed after {duration:.2f} seconds)"
        self.logger.error(message, extra=self._extra(run_id, 'SYSTEM'))

    def log_attempt_start(self, run_id: Optional[str], attempt: int, max_attempts: int):
        self.logger.info(f"Scrape attempt {attempt}/{max_attempts}", extra=self._extra(run_id, 'ATTEMPT'))

    def log_attempt_failed(self, run_id: Optional[str], attempt: int, error: str, category: str):
        """Log an attempt that ended in an error; timeouts get their own message"""
        extra = self._extra(run_id, 'ATTEMPT')
        if category == 'timeout':
            self.logger.error(f"Timeout during scrape attempt {attempt}: {error}", extra=extra)
        else:
            self.logger.error(f"Scrape attempt {attempt} failed ({category}): {error}", extra=extra)

    def log_retry(self, run_id: Optional[str], next_attempt: int, delay_seconds: float, reason: str):
        self.logger.warning(
            f"Retrying scrape (attempt #{next_attempt}) in {delay_seconds:.1f}s: {reason}",
            extra=self._extra(run_id, 'ATTEMPT')
        )

    def log_session_event(self, event: str, error: Optional[str] = None):
        if error:
            self.logger.warning(f"Browser session {event} failed: {error}", extra={'stage': 'SESSION'})
        else:
            self.logger.debug(f"Browser session {event}", extra={'stage': 'SESSION'})

    def debug(self, message: str, run_id: Optional[str] = None, stage: Optional[str] = None):
        self.logger.debug(message, extra=self._extra(run_id, stage))

    def info(self, message: str, run_id: Optional[str] = None, stage: Optional[str] = None):
        self.logger.info(message, extra=self._extra(run_id, stage))

    def warning(self, message: str, run_id: Optional[str] = None, stage: Optional[str] = None):
        self.logger.warning(message, extra=self._extra(run_id, stage))

    def error(self, message: str, run_id: Optional[str] = None, stage: Optional[str] = None, exc_info=None):
        self.logger.error(message, extra=self._extra(run_id, stage), exc_info=exc_info)


# Global logger instance
scraper_logger = ScraperLogger()


def get_logger() -> ScraperLogger:
    """Get the global scraper logger instance"""
    return scraper_logger


def setup_flask_logging(app):
    """Setup Flask application logging"""
    if not app.debug and not app.testing:
        log_dir = get_log_dir()
        os.makedirs(log_dir, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            os.path.join(log_dir, 'flask_app.log'),
            maxBytes=10*1024*1024,  # 10MB
            backupCount=5,
            encoding='utf-8'
        )
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(logging.INFO)
        app.logger.addHandler(file_handler)
        app.logger.setLevel(logging.INFO)
        app.logger.info('SeoulMate scraper startup')
