"""
Background trigger for periodic scrapes.

Runs `scrape_and_save` on a fixed interval in a daemon thread and can kick
off an asynchronous scrape at startup when the place store is still empty.
"""

import threading
from concurrent.futures import Future
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from seoulmate_scraper.orchestration.scraper_service import ScrapeInProgressError, ScraperService
from seoulmate_scraper.storage.memory_store import RunTrigger
from seoulmate_scraper.utils.config import SchedulerConfig, get_config
from seoulmate_scraper.utils.logging_config import get_logger

logger = get_logger()


class ScraperScheduler:
    """Interval scheduler around a ScraperService"""

    def __init__(self, service: ScraperService, config: Optional[SchedulerConfig] = None):
        self.service = service
        self.config = config or get_config().scheduler
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.last_run_time: Optional[datetime] = None
        self.last_new_count: Optional[int] = None
        self.last_error: Optional[str] = None

    @property
    def interval_seconds(self) -> float:
        return self.config.interval_hours * 3600

    def start(self) -> bool:
        """Start the periodic thread if scheduling is enabled"""
        if not self.config.enabled:
            logger.info("Scheduled scraping is disabled")
            return False
        if self._thread is not None and self._thread.is_alive():
            return True

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name='scraper-scheduler', daemon=True)
        self._thread.start()
        logger.info(f"Scheduled scraping every {self.config.interval_hours} hours")
        return True

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _loop(self) -> None:
        while not self._stop_event.wait(self.interval_seconds):
            self.run_scheduled_scrape()

    def run_scheduled_scrape(self) -> Optional[int]:
        """One scheduled run; failures are logged so the schedule keeps going"""
        logger.info("Starting scheduled scraping task")
        self.last_run_time = datetime.now()
        try:
            new_count = self.service.scrape_and_save(trigger=RunTrigger.SCHEDULER)
        except ScrapeInProgressError as e:
            logger.warning(f"Skipping scheduled scrape: {e}")
            return None
        except Exception as e:
            self.last_error = str(e)
            logger.error(f"Scheduled scraping failed: {e}", exc_info=True)
            return None
        self.last_new_count = new_count
        self.last_error = None
        logger.info(f"Scheduled scraping completed. Saved {new_count} new places")
        return new_count

    def run_initial_if_empty(self) -> Optional[Future]:
        """Queue a startup scrape when scheduling and the initial run are both enabled and the store is empty"""
        if not (self.config.enabled and self.config.initial_run_enabled):
            return None
        count = self.service.get_place_count()
        if count > 0:
            logger.info(f"{count} places already stored, skipping initial scrape")
            return None

        logger.info("No places stored, starting initial scrape")
        run, future = self.service.scrape_and_save_async(trigger=RunTrigger.STARTUP)
        logger.info(f"Initial scrape queued as run {run.id}")
        return future

    def status(self) -> Dict[str, Any]:
        next_run = None
        if self._thread is not None and self._thread.is_alive() and self.last_run_time:
            next_run = (self.last_run_time + timedelta(seconds=self.interval_seconds)).isoformat()
        return {
            'enabled': self.config.enabled,
            'running': self._thread is not None and self._thread.is_alive(),
            'interval_hours': self.config.interval_hours,
            'scrape_in_progress': self.service.is_running(),
            'last_run_time': self.last_run_time.isoformat() if self.last_run_time else None,
            'last_new_count': self.last_new_count,
            'last_error': self.last_error,
            'next_run_time': next_run,
        }
