"""
Scraper service: triggers orchestrated scrapes, persists the results and
keeps a ledger of runs. Only one scrape runs at a time.
"""

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Dict, Optional, Tuple

import requests

from seoulmate_scraper.extraction.data_quality import log_data_statistics
from seoulmate_scraper.orchestration.scrape_orchestrator import PlaceScraper
from seoulmate_scraper.storage.memory_store import MemoryStore, RunTrigger, ScrapeRun, get_memory_store
from seoulmate_scraper.utils.config import ScraperConfig, get_config
from seoulmate_scraper.utils.logging_config import get_logger
from seoulmate_scraper.utils.validation import require_url

logger = get_logger()

CONNECTION_TIMEOUT_SECONDS = 10


class ScrapeInProgressError(Exception):
    """Raised when a scrape is requested while another one is running"""
    pass


class ScraperService:
    """Runs scrapes on behalf of the HTTP layer and the scheduler"""

    def __init__(self, scraper: Optional[PlaceScraper] = None,
                 store: Optional[MemoryStore] = None,
                 config: Optional[ScraperConfig] = None):
        self.config = config or get_config().scraper
        require_url(self.config.base_url)
        self.store = store or get_memory_store()
        self.scraper = scraper or PlaceScraper(config=self.config)
        self._run_lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='scrape-run')

    def start_run(self, trigger: RunTrigger = RunTrigger.MANUAL) -> ScrapeRun:
        run = self.store.create_run(trigger)
        self.store.add_progress_event(run.id, 'run_created', f"Scrape run created ({trigger.value})")
        return run

    def scrape_and_save(self, trigger: RunTrigger = RunTrigger.MANUAL,
                        run_id: Optional[str] = None) -> int:
        """Scrape synchronously and save; returns the number of newly stored places"""
        if not self._run_lock.acquire(blocking=False):
            raise ScrapeInProgressError("A scrape run is already in progress")
        try:
            run = self.store.get_run(run_id) if run_id else None
            if run is None:
                run = self.start_run(trigger)
            return self._execute_run(run)
        finally:
            self._run_lock.release()

    def scrape_and_save_async(self, trigger: RunTrigger = RunTrigger.API) -> Tuple[ScrapeRun, Future]:
        """Queue a scrape on the service worker; returns the run and a future of the new count"""
        run = self.start_run(trigger)
        future = self._executor.submit(self.scrape_and_save, trigger, run.id)
        future.add_done_callback(lambda f: self._log_async_outcome(run.id, f))
        return run, future

    def _log_async_outcome(self, run_id: str, future: Future) -> None:
        error = future.exception()
        if error is not None:
            logger.error(f"Asynchronous scrape failed: {error}", run_id=run_id)
            if isinstance(error, ScrapeInProgressError):
                self.store.mark_run_failed(run_id, str(error))
        else:
            logger.info(f"Asynchronous scrape completed with {future.result()} new places", run_id=run_id)

    def _execute_run(self, run: ScrapeRun) -> int:
        start = time.time()
        self.store.mark_run_running(run.id)
        logger.log_run_start(run.id, run.trigger.value)
        self.store.add_progress_event(run.id, 'run_started', "Scrape run started")

        previous_callback = self.scraper.progress_callback
        self.scraper.progress_callback = self._record_progress
        try:
            result = self.scraper.scrape_with_result(run_id=run.id)
            report = log_data_statistics(result.records, run_id=run.id)
            new_count = self.store.save_places(result.records)
        except Exception as e:
            self.store.mark_run_failed(run.id, str(e))
            logger.log_run_failed(run.id, str(e), time.time() - start)
            raise
        finally:
            self.scraper.progress_callback = previous_callback

        self.store.mark_run_completed(
            run.id,
            scrape_status=result.status.value,
            record_count=len(result.records),
            new_count=new_count,
            attempts=len(result.attempts),
            errors=result.errors,
            quality=report.to_dict(),
        )
        self.store.add_progress_event(run.id, 'run_completed',
                                      f"Saved {new_count} new places out of {len(result.records)}")
        logger.log_run_complete(run.id, result.status.value, len(result.records),
                                time.time() - start, new_count)
        logger.info(f"Total places stored: {self.store.count_places()}", run_id=run.id)
        return new_count

    def _record_progress(self, run_id: Optional[str], event: Dict[str, Any]) -> None:
        if run_id:
            self.store.add_progress_event(run_id, event['event_type'], event['message'],
                                          metadata=event.get('metadata'))

    def is_running(self) -> bool:
        return self._run_lock.locked()

    def get_place_count(self) -> int:
        return self.store.count_places()

    def test_connection(self) -> Dict[str, Any]:
        """Check that the source site answers an HTTP GET"""
        url = self.config.base_url
        start = time.time()
        try:
            response = requests.get(url, timeout=CONNECTION_TIMEOUT_SECONDS,
                                    headers={'User-Agent': self.config.user_agent})
            return {
                'success': response.ok,
                'url': url,
                'status_code': response.status_code,
                'elapsed': round(time.time() - start, 3),
            }
        except requests.exceptions.RequestException as e:
            logger.warning(f"Connection test against {url} failed: {e}")
            return {
                'success': False,
                'url': url,
                'status_code': None,
                'error': str(e),
                'elapsed': round(time.time() - start, 3),
            }

    def shutdown(self, wait: bool = False) -> None:
        self._executor.shutdown(wait=wait)
        self.scraper.shutdown(wait=wait)


# Global service instance
_scraper_service = None
_service_lock = threading.Lock()


def get_scraper_service() -> ScraperService:
    """Get the global scraper service instance"""
    global _scraper_service
    with _service_lock:
        if _scraper_service is None:
            _scraper_service = ScraperService()
        return _scraper_service


def reset_scraper_service() -> None:
    global _scraper_service
    with _service_lock:
        if _scraper_service is not None:
            _scraper_service.shutdown(wait=False)
        _scraper_service = None
