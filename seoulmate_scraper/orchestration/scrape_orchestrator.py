"""
Scrape orchestration: retry/backoff around whole-session scrape attempts.

The retry loop is an explicit state machine. `next_state` is a pure
transition function; `PlaceScraper._run_attempt` is the only effectful step
and always releases the browser session it acquired. Nothing raises past
`PlaceScraper.scrape`: callers get a (possibly empty) list of records.
"""

import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from playwright.sync_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from seoulmate_scraper.extraction.session import SessionError, acquire_session, release_session
from seoulmate_scraper.extraction.strategy import VisitSeoulStrategy
from seoulmate_scraper.models.place import PlaceRecord
from seoulmate_scraper.utils.config import ScraperConfig, get_config
from seoulmate_scraper.utils.logging_config import get_logger

logger = get_logger()


class ScrapeState(Enum):
    IDLE = "idle"
    ATTEMPTING = "attempting"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


class AttemptOutcome(Enum):
    RECORDS = "records"
    EMPTY = "empty"
    FAILED = "failed"


class ScrapeStatus(Enum):
    SUCCEEDED = "succeeded"   # non-empty result
    EMPTY = "empty"           # clean run, nothing found
    EXHAUSTED = "exhausted"   # last attempt ended in an error


TERMINAL_STATES = {ScrapeState.SUCCEEDED, ScrapeState.EXHAUSTED}


def next_state(state: ScrapeState, outcome: Optional[AttemptOutcome] = None,
               attempt: int = 0, max_attempts: int = 2) -> ScrapeState:
    """Pure transition function of the retry state machine"""
    if state == ScrapeState.IDLE:
        return ScrapeState.ATTEMPTING
    if state == ScrapeState.RETRYING:
        return ScrapeState.ATTEMPTING
    if state == ScrapeState.ATTEMPTING:
        if outcome is None:
            raise ValueError("an attempt outcome is required to leave the attempting state")
        if outcome == AttemptOutcome.RECORDS:
            return ScrapeState.SUCCEEDED
        if attempt >= max_attempts:
            return ScrapeState.EXHAUSTED
        return ScrapeState.RETRYING
    return state


def categorize_error(error: BaseException) -> str:
    if isinstance(error, SessionError):
        return 'session'
    if isinstance(error, PlaywrightTimeoutError) or 'timeout' in str(error).lower():
        return 'timeout'
    if isinstance(error, PlaywrightError):
        return 'navigation'
    return 'unexpected'


@dataclass
class AttemptResult:
    attempt: int
    outcome: AttemptOutcome
    records: List[PlaceRecord] = field(default_factory=list)
    error: Optional[str] = None
    error_category: Optional[str] = None
    duration: float = 0.0


@dataclass
class ScrapeResult:
    """Final outcome of one orchestrated scrape"""
    status: ScrapeStatus
    records: List[PlaceRecord]
    attempts: List[AttemptResult]
    started_at: datetime
    finished_at: datetime

    @property
    def errors(self) -> List[str]:
        return [a.error for a in self.attempts if a.error]

    @property
    def duration(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status.value,
            'record_count': len(self.records),
            'attempts': [
                {
                    'attempt': a.attempt,
                    'outcome': a.outcome.value,
                    'record_count': len(a.records),
                    'error': a.error,
                    'error_category': a.error_category,
                    'duration': round(a.duration, 3),
                }
                for a in self.attempts
            ],
            'errors': self.errors,
            'started_at': self.started_at.isoformat(),
            'finished_at': self.finished_at.isoformat(),
            'duration': round(self.duration, 3),
        }


class PlaceScraper:
    """Runs the scraping strategy inside fresh browser sessions until it yields records"""

    def __init__(self, strategy: Optional[VisitSeoulStrategy] = None,
                 config: Optional[ScraperConfig] = None,
                 acquire: Callable[[ScraperConfig], Any] = acquire_session,
                 release: Callable[[Any], None] = release_session,
                 sleep: Callable[[float], None] = time.sleep,
                 progress_callback: Optional[Callable[[Optional[str], Dict[str, Any]], None]] = None):
        self.config = config or get_config().scraper
        self.strategy = strategy or VisitSeoulStrategy(self.config)
        self._acquire = acquire
        self._release = release
        self._sleep = sleep
        self.progress_callback = progress_callback
        self._executor: Optional[ThreadPoolExecutor] = None

    @property
    def max_attempts(self) -> int:
        return max(1, self.config.max_attempts)

    def backoff_seconds(self, attempt: int) -> float:
        """Delay applied after the given failed attempt, before the next one"""
        return self.config.retry_delay_seconds * attempt

    def scrape(self, run_id: Optional[str] = None) -> List[PlaceRecord]:
        return self.scrape_with_result(run_id).records

    def scrape_async(self, run_id: Optional[str] = None) -> 'Future[List[PlaceRecord]]':
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='place-scraper')
        return self._executor.submit(self.scrape, run_id)

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None

    def scrape_with_result(self, run_id: Optional[str] = None) -> ScrapeResult:
        started_at = datetime.now()
        attempts: List[AttemptResult] = []
        records: List[PlaceRecord] = []
        attempt = 0
        state = next_state(ScrapeState.IDLE)

        while state not in TERMINAL_STATES:
            if state == ScrapeState.ATTEMPTING:
                attempt += 1
                logger.log_attempt_start(run_id, attempt, self.max_attempts)
                self._notify(run_id, 'attempt_started', f"Scrape attempt {attempt}/{self.max_attempts}",
                             attempt=attempt)
                result = self._run_attempt(attempt, run_id)
                attempts.append(result)
                if result.outcome != AttemptOutcome.FAILED:
                    records = result.records
                state = next_state(state, result.outcome, attempt, self.max_attempts)
            elif state == ScrapeState.RETRYING:
                last = attempts[-1]
                delay = self.backoff_seconds(attempt)
                reason = last.error or "no places found"
                logger.log_retry(run_id, attempt + 1, delay, reason)
                self._notify(run_id, 'retry_scheduled', f"Retrying in {delay:.1f}s: {reason}",
                             attempt=attempt + 1, delay=delay)
                if delay > 0:
                    self._sleep(delay)
                state = next_state(state)

        if state == ScrapeState.SUCCEEDED:
            status = ScrapeStatus.SUCCEEDED
        elif attempts and attempts[-1].outcome == AttemptOutcome.FAILED:
            status = ScrapeStatus.EXHAUSTED
        else:
            status = ScrapeStatus.EMPTY

        if status != ScrapeStatus.SUCCEEDED:
            logger.warning(f"Scrape finished without places after {attempt} attempts ({status.value})",
                           run_id=run_id, stage='ATTEMPT')

        result = ScrapeResult(status=status, records=list(records), attempts=attempts,
                              started_at=started_at, finished_at=datetime.now())
        self._notify(run_id, 'completed', f"Scrape {status.value} with {len(result.records)} places",
                     status=status.value, record_count=len(result.records))
        return result

    def _run_attempt(self, attempt: int, run_id: Optional[str]) -> AttemptResult:
        """One session-scoped attempt; the session is released on every path"""
        start = time.time()
        session = None
        try:
            session = self._acquire(self.config)
            records = list(self.strategy.execute(session, run_id) or [])
        except Exception as e:
            category = categorize_error(e)
            logger.log_attempt_failed(run_id, attempt, str(e), category)
            self._notify(run_id, 'attempt_failed', f"Attempt {attempt} failed: {e}",
                         attempt=attempt, error=str(e), error_category=category)
            return AttemptResult(attempt=attempt, outcome=AttemptOutcome.FAILED, error=str(e),
                                 error_category=category, duration=time.time() - start)
        finally:
            if session is not None:
                self._release_quietly(session)

        duration = time.time() - start
        if not records:
            logger.warning(f"Attempt {attempt} found no places", run_id=run_id, stage='ATTEMPT')
            self._notify(run_id, 'attempt_empty', f"Attempt {attempt} found no places", attempt=attempt)
            return AttemptResult(attempt=attempt, outcome=AttemptOutcome.EMPTY, duration=duration)

        logger.info(f"Attempt {attempt} scraped {len(records)} places in {duration:.2f} seconds",
                    run_id=run_id, stage='ATTEMPT')
        return AttemptResult(attempt=attempt, outcome=AttemptOutcome.RECORDS, records=records,
                             duration=duration)

    def _release_quietly(self, session) -> None:
        try:
            self._release(session)
        except Exception as e:
            logger.warning(f"Failed to release browser session: {e}")

    def _notify(self, run_id: Optional[str], event_type: str, message: str, **metadata) -> None:
        if self.progress_callback is None:
            return
        try:
            self.progress_callback(run_id, {
                'event_type': event_type,
                'message': message,
                'metadata': metadata,
            })
        except Exception as e:
            logger.warning(f"Progress callback failed for {event_type}: {e}")
