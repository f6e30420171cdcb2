"""
Browser session lifecycle: one Playwright process, one Chromium browser and
one browsing context per scrape attempt.
"""

from dataclasses import dataclass
from typing import Any, Optional

from playwright.sync_api import sync_playwright

from seoulmate_scraper.utils.config import ScraperConfig
from seoulmate_scraper.utils.logging_config import get_logger

logger = get_logger()

LAUNCH_ARGS = [
    "--disable-extensions",
    "--disable-gpu",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-features=IsolateOrigins,site-per-process",
]


class SessionError(Exception):
    """Raised when a browser session could not be created"""
    pass


@dataclass
class BrowserSession:
    playwright: Any
    browser: Any
    context: Any

    def new_page(self):
        return self.context.new_page()


def _safe_close(label: str, closer) -> None:
    try:
        closer()
        logger.log_session_event(f"{label} close")
    except Exception as e:
        logger.log_session_event(f"{label} close", error=str(e))


def acquire_session(config: ScraperConfig) -> BrowserSession:
    """Launch a headless browser and open a configured context"""
    playwright = None
    browser = None
    try:
        playwright = sync_playwright().start()
        browser = playwright.chromium.launch(
            headless=config.headless,
            timeout=config.launch_timeout_ms,
            slow_mo=config.slow_mo_ms,
            args=LAUNCH_ARGS,
        )
        context = browser.new_context(
            user_agent=config.user_agent,
            viewport={'width': config.viewport_width, 'height': config.viewport_height},
        )
    except Exception as e:
        if browser is not None:
            _safe_close("browser", browser.close)
        if playwright is not None:
            _safe_close("playwright", playwright.stop)
        raise SessionError(f"Failed to start browser session: {e}") from e

    logger.log_session_event("acquire")
    return BrowserSession(playwright=playwright, browser=browser, context=context)


def release_session(session: Optional[BrowserSession]) -> None:
    """Close context, browser and driver; close failures are logged, never raised"""
    if session is None:
        return
    if session.context is not None:
        _safe_close("context", session.context.close)
    if session.browser is not None:
        _safe_close("browser", session.browser.close)
    if session.playwright is not None:
        _safe_close("playwright", session.playwright.stop)

