"""
In-memory storage for scraped places and scrape runs.
Places are keyed by their stable identifier; the store decides what is new.
"""

import uuid
from datetime import datetime
from typing import Dict, List, Optional, Any
from dataclasses import dataclass, field, replace
from enum import Enum
import threading

from seoulmate_scraper.models.place import PlaceRecord, has_valid_coordinates

MIN_REPLACEMENT_DESCRIPTION = 50


class RunStatus(Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class RunTrigger(Enum):
    MANUAL = "manual"
    API = "api"
    SCHEDULER = "scheduler"
    STARTUP = "startup"


@dataclass
class StoredPlace:
    """A persisted place with store-assigned timestamps"""
    record: PlaceRecord
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        data = self.record.to_dict()
        data['created_at'] = self.created_at.isoformat()
        data['updated_at'] = self.updated_at.isoformat()
        return data


@dataclass
class ProgressEvent:
    """Represents a progress event for a scrape run"""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    run_id: str = ""
    event_type: str = ""
    message: str = ""
    timestamp: datetime = field(default_factory=datetime.now)
    metadata: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'event_type': self.event_type,
            'message': self.message,
            'timestamp': self.timestamp.isoformat(),
            'metadata': self.metadata or {},
        }


@dataclass
class ScrapeRun:
    """Represents one triggered scrape and its outcome"""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    trigger: RunTrigger = RunTrigger.MANUAL
    status: RunStatus = RunStatus.PENDING
    scrape_status: Optional[str] = None
    record_count: int = 0
    new_count: int = 0
    attempts: int = 0
    errors: List[str] = field(default_factory=list)
    error_message: Optional[str] = None
    quality: Optional[Dict[str, Any]] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    execution_time: Optional[float] = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'trigger': self.trigger.value,
            'status': self.status.value,
            'scrape_status': self.scrape_status,
            'record_count': self.record_count,
            'new_count': self.new_count,
            'attempts': self.attempts,
            'errors': list(self.errors),
            'error_message': self.error_message,
            'quality': self.quality,
            'start_time': self.start_time.isoformat() if self.start_time else None,
            'end_time': self.end_time.isoformat() if self.end_time else None,
            'execution_time': self.execution_time,
            'created_at': self.created_at.isoformat(),
        }


class MemoryStore:
    """In-memory storage manager for places and scrape runs"""

    def __init__(self):
        self._places: Dict[str, StoredPlace] = {}
        self._runs: Dict[str, ScrapeRun] = {}
        self._progress_events: Dict[str, List[ProgressEvent]] = {}
        self._lock = threading.RLock()

    # Place Management
    def count_places(self) -> int:
        with self._lock:
            return len(self._places)

    def get_place(self, identifier: str) -> Optional[StoredPlace]:
        with self._lock:
            return self._places.get(identifier)

    def list_places(self, limit: Optional[int] = None, offset: int = 0) -> List[StoredPlace]:
        with self._lock:
            places = sorted(self._places.values(), key=lambda p: p.created_at)
        if limit is None:
            return places[offset:]
        return places[offset:offset + limit]

    def save_places(self, records: List[PlaceRecord]) -> int:
        """Insert unseen places and improve known ones; returns the number newly inserted"""
        new_count = 0
        with self._lock:
            for record in records:
                if not record.identifier:
                    continue
                existing = self._places.get(record.identifier)
                if existing is None:
                    self._places[record.identifier] = StoredPlace(record=replace(record))
                    new_count += 1
                    continue
                if self._merge_into(existing, record):
                    existing.updated_at = datetime.now()
        return new_count

    @staticmethod
    def _merge_into(existing: StoredPlace, incoming: PlaceRecord) -> bool:
        current = existing.record
        changed = False
        if not has_valid_coordinates(current) and has_valid_coordinates(incoming):
            current.coordinate = incoming.coordinate
            changed = True
        new_description = incoming.description or ""
        if new_description and (not current.description or (
                len(new_description) > len(current.description)
                and len(new_description) > MIN_REPLACEMENT_DESCRIPTION)):
            current.description = new_description
            changed = True
        if not current.address and incoming.address:
            current.address = incoming.address
            changed = True
        if not current.name and incoming.name:
            current.name = incoming.name
            changed = True
        return changed

    # Run Management
    def create_run(self, trigger: RunTrigger = RunTrigger.MANUAL) -> ScrapeRun:
        with self._lock:
            run = ScrapeRun(trigger=trigger)
            self._runs[run.id] = run
            self._progress_events[run.id] = []
            return run

    def get_run(self, run_id: str) -> Optional[ScrapeRun]:
        with self._lock:
            return self._runs.get(run_id)

    def get_all_runs(self, status: Optional[RunStatus] = None, limit: int = 50) -> List[ScrapeRun]:
        with self._lock:
            runs = list(self._runs.values())
        if status:
            runs = [r for r in runs if r.status == status]
        runs.sort(key=lambda r: r.created_at, reverse=True)
        return runs[:limit]

    def get_active_run(self) -> Optional[ScrapeRun]:
        with self._lock:
            for run in self._runs.values():
                if run.status in (RunStatus.PENDING, RunStatus.RUNNING):
                    return run
        return None

    def mark_run_running(self, run_id: str) -> None:
        with self._lock:
            run = self._runs.get(run_id)
            if run:
                run.status = RunStatus.RUNNING
                run.start_time = datetime.now()
                run.updated_at = datetime.now()

    def mark_run_completed(self, run_id: str, scrape_status: str, record_count: int,
                           new_count: int, attempts: int, errors: List[str],
                           quality: Optional[Dict[str, Any]] = None) -> None:
        with self._lock:
            run = self._runs.get(run_id)
            if run:
                run.status = RunStatus.COMPLETED
                run.scrape_status = scrape_status
                run.record_count = record_count
                run.new_count = new_count
                run.attempts = attempts
                run.errors = list(errors)
                run.quality = quality
                self._finish(run)

    def mark_run_failed(self, run_id: str, error_message: str) -> None:
        with self._lock:
            run = self._runs.get(run_id)
            if run:
                run.status = RunStatus.FAILED
                run.error_message = error_message
                self._finish(run)

    @staticmethod
    def _finish(run: ScrapeRun) -> None:
        run.end_time = datetime.now()
        if run.start_time:
            run.execution_time = (run.end_time - run.start_time).total_seconds()
        run.updated_at = datetime.now()

    # Progress Events
    def add_progress_event(self, run_id: str, event_type: str, message: str,
                           metadata: Optional[Dict[str, Any]] = None) -> ProgressEvent:
        with self._lock:
            event = ProgressEvent(run_id=run_id, event_type=event_type, message=message,
                                  metadata=metadata)
            self._progress_events.setdefault(run_id, []).append(event)
            return event

    def get_progress_events(self, run_id: str) -> List[ProgressEvent]:
        with self._lock:
            return list(self._progress_events.get(run_id, []))


# Global memory store instance
_memory_store = None
_store_lock = threading.Lock()


def get_memory_store() -> MemoryStore:
    """Get the global memory store instance"""
    global _memory_store
    with _store_lock:
        if _memory_store is None:
            _memory_store = MemoryStore()
        return _memory_store


def reset_memory_store() -> None:
    """Reset the global memory store (for testing)"""
    global _memory_store
    with _store_lock:
        _memory_store = None
