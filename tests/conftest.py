import os
import sys
import tempfile

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="seoulmate-logs-"))

from seoulmate_scraper.models.place import Coordinate, PlaceRecord  # noqa: E402
from seoulmate_scraper.utils.config import ScraperConfig, SchedulerConfig  # noqa: E402

BASE_URL = "https://korean.visitseoul.net"


class FakeSite:
    """URL -> html (or an exception to raise on navigation)"""

    def __init__(self, pages=None, cookie_banner=False):
        self.pages = dict(pages or {})
        self.cookie_banner = cookie_banner
        self.visits = []
        self.clicks = []


class FakePage:
    def __init__(self, site, context):
        self.site = site
        self.context = context
        self.url = None
        self.closed = False
        self.default_timeout = None

    def set_default_timeout(self, timeout):
        self.default_timeout = timeout

    def goto(self, url, **kwargs):
        self.site.visits.append(url)
        target = self.site.pages.get(url)
        if isinstance(target, Exception):
            raise target
        self.url = url

    def content(self):
        target = self.site.pages.get(self.url)
        return target if isinstance(target, str) else "<html><body></body></html>"

    def wait_for_load_state(self, state=None, timeout=None):
        return None

    def wait_for_timeout(self, timeout):
        return None

    def is_visible(self, selector):
        return self.site.cookie_banner

    def click(self, selector):
        self.site.clicks.append(selector)

    def close(self):
        self.closed = True


class FakeContext:
    def __init__(self, site):
        self.site = site
        self.pages = []

    def new_page(self):
        page = FakePage(self.site, self)
        self.pages.append(page)
        return page


class FakeSession:
    def __init__(self, site):
        self.context = FakeContext(site)

    def new_page(self):
        return self.context.new_page()


class ScriptedStrategy:
    """Returns (or raises) one scripted outcome per execute call"""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.sessions = []
        self.run_ids = []

    def execute(self, session, run_id=None):
        self.sessions.append(session)
        self.run_ids.append(run_id)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class SessionLedger:
    """Records acquire/release calls in order"""

    def __init__(self, fail_acquire=0):
        self.events = []
        self.fail_acquire = fail_acquire

    def acquire(self, config):
        from seoulmate_scraper.extraction.session import SessionError
        if self.fail_acquire > 0:
            self.fail_acquire -= 1
            self.events.append("acquire-failed")
            raise SessionError("browser could not be launched")
        session = object()
        self.events.append("acquire")
        return session

    def release(self, session):
        self.events.append("release")

    @property
    def release_count(self):
        return self.events.count("release")


def make_record(identifier="KOP000072", name="경복궁", description=None, address="서울 종로구 사직로 161",
                coordinate=None):
    return PlaceRecord(
        identifier=identifier,
        name=name,
        description=description if description is not None else "조선 왕조의 법궁으로 1395년에 창건된 궁궐입니다.",
        address=address,
        coordinate=coordinate if coordinate is not None else Coordinate(37.5796, 126.977),
    )


@pytest.fixture()
def scraper_config():
    return ScraperConfig(
        base_url=BASE_URL,
        max_attempts=2,
        retry_delay_seconds=5,
        request_delay_ms=0,
        category_pause_ms=0,
        use_fallback_attractions=False,
    )


@pytest.fixture()
def scheduler_config():
    return SchedulerConfig(enabled=False, initial_run_enabled=True, interval_hours=168)


@pytest.fixture()
def sleeps():
    return []


@pytest.fixture()
def memory_store():
    from seoulmate_scraper.storage.memory_store import MemoryStore
    return MemoryStore()
