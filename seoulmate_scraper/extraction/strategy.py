"""
Category/listing traversal for korean.visitseoul.net.

Walks every configured category, paginates its listing pages and opens each
item's detail page, delegating field extraction to field_extractor. Failures
are contained at the narrowest boundary (detail item, listing page, category)
so one broken page never drops the rest of the run.
"""

import time
from typing import Callable, Dict, List, Optional

from playwright.sync_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from seoulmate_scraper.extraction.field_extractor import (
    RenderedDocument, extract_address, extract_coordinates, extract_description,
    extract_identifier, truncate_description
)
from seoulmate_scraper.extraction.listing_parser import (
    build_page_url, detail_url_for, determine_total_pages, parse_listing_items
)
from seoulmate_scraper.models.place import PlaceRecord
from seoulmate_scraper.utils.config import ScraperConfig, get_config
from seoulmate_scraper.utils.logging_config import get_logger

logger = get_logger()

_LIST_QUERY = "?srchType=&srchOptnCode=&srchCtgry={code}&sortOrder=&srchWord=&radioOptionLike=TURSM_AREA_8"

CATEGORIES: Dict[str, str] = {
    "랜드마크": "/attractions" + _LIST_QUERY.format(code=68),
    "고궁": "/attractions" + _LIST_QUERY.format(code=69),
    "역사적 장소": "/attractions" + _LIST_QUERY.format(code=70),
    "전체": "/attractions",
    "오래가게": "/attractions" + _LIST_QUERY.format(code=71),
}

COOKIE_CONSENT_SELECTOR = "text=모두 허용"

# Well-known attractions per category, visited directly when a listing yields nothing
KNOWN_ATTRACTIONS: Dict[str, Dict[str, str]] = {
    "고궁": {
        "경복궁": "KOP000072",
        "창덕궁": "KOP000295",
        "덕수궁": "KOP002046",
        "창경궁": "KOP000297",
        "종묘": "KOP000507",
    },
    "랜드마크": {
        "남산서울타워": "KOP000036",
        "롯데월드타워": "KOP021278",
        "63스퀘어": "KOP000210",
        "북촌한옥마을": "KOP000261",
        "별마당 도서관": "KOP026558",
        "한강 이랜드크루즈": "KOP002126",
    },
    "역사적 장소": {
        "서울 한양도성": "KOP000090",
        "흥인지문(동대문)": "KOP001999",
        "숭례문(남대문)": "KOP022888",
        "서대문형무소역사관": "KOP001831",
        "남산골 한옥마을": "KOP000276",
    },
    "오래가게": {
        "익선동 한옥거리": "KOP037008",
        "삼청동 골목길": "KOP002121",
    },
}

DEFAULT_KNOWN_ATTRACTIONS: Dict[str, str] = {
    "경복궁": "KOP000072",
    "남산서울타워": "KOP000036",
    "창덕궁": "KOP000295",
    "서울 한양도성": "KOP000090",
    "북촌한옥마을": "KOP000261",
    "롯데월드타워": "KOP021278",
    "익선동 한옥거리": "KOP037008",
}


def _close_quietly(page) -> None:
    try:
        page.close()
    except Exception as e:
        logger.debug(f"Failed to close page: {e}")


class VisitSeoulStrategy:
    """Scraping strategy for the Visit Seoul attractions catalogue"""

    def __init__(self, config: Optional[ScraperConfig] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.config = config or get_config().scraper
        self._sleep = sleep

    @property
    def base_url(self) -> str:
        return self.config.base_url.rstrip('/')

    def get_categories(self) -> Dict[str, str]:
        return dict(CATEGORIES)

    def execute(self, session, run_id: Optional[str] = None) -> List[PlaceRecord]:
        """Run every category in declared order and concatenate the results"""
        records: List[PlaceRecord] = []
        categories = list(self.get_categories().items())
        for index, (name, path) in enumerate(categories):
            logger.info(f"Processing category: {name}", run_id=run_id, stage='CATEGORY')
            try:
                category_records = self.process_category(session, name, path, run_id)
                records.extend(category_records)
                logger.info(f"Found {len(category_records)} places in category {name}",
                            run_id=run_id, stage='CATEGORY')
            except Exception as e:
                logger.error(f"Failed to process category {name}: {e}", run_id=run_id, stage='CATEGORY')

            if index < len(categories) - 1 and self.config.category_pause_ms > 0:
                self._sleep(self.config.category_pause_ms / 1000.0)

        logger.info(f"Total places scraped across all categories: {len(records)}", run_id=run_id)
        return records

    def process_category(self, session, name: str, path: str,
                         run_id: Optional[str] = None) -> List[PlaceRecord]:
        records: List[PlaceRecord] = []
        category_url = self.base_url + path
        page = session.new_page()
        try:
            page.set_default_timeout(self.config.page_timeout_ms)
            logger.info(f"Navigating to category URL: {category_url}", run_id=run_id, stage='CATEGORY')
            page.goto(category_url)
            self._accept_cookies(page, run_id)
            self._wait_for_idle(page, category_url, run_id)

            first_page = self.process_listing_page(page, 1, 1, run_id)
            if not first_page:
                logger.warning(f"No places on first page of category {name}, trying known attractions",
                               run_id=run_id, stage='CATEGORY')
                return self._tag(self._scrape_known_attractions(session, name, run_id), name)
            records.extend(first_page)

            total_pages = determine_total_pages(page.content())
            pages_to_process = min(total_pages, self.config.max_pages_per_category)
            logger.info(f"Found {total_pages} pages for category {name}, will process up to {pages_to_process}",
                        run_id=run_id, stage='CATEGORY')

            for page_num in range(2, pages_to_process + 1):
                page_url = build_page_url(category_url, page_num)
                try:
                    page.goto(page_url)
                    self._wait_for_idle(page, page_url, run_id)
                    page_records = self.process_listing_page(page, page_num, pages_to_process, run_id)
                    records.extend(page_records)
                    logger.info(f"Extracted {len(page_records)} places from page {page_num} of category {name}",
                                run_id=run_id, stage='LISTING')
                except PlaywrightError as e:
                    logger.error(f"Error processing page {page_num} of category {name}: {e}",
                                 run_id=run_id, stage='LISTING')
        except PlaywrightError as e:
            logger.error(f"Error processing category {name}: {e}", run_id=run_id, stage='CATEGORY')
            if not records:
                records = self._scrape_known_attractions(session, name, run_id)
        finally:
            _close_quietly(page)

        return self._tag(records, name)

    def process_listing_page(self, page, page_num: int, total_pages: int,
                             run_id: Optional[str] = None) -> List[PlaceRecord]:
        records: List[PlaceRecord] = []
        items = parse_listing_items(page.content(), self.base_url)
        logger.info(f"Found {len(items)} places on page {page_num}/{total_pages}", run_id=run_id, stage='LISTING')

        for position, item in enumerate(items, start=1):
            detail_page = None
            try:
                detail_page = page.context.new_page()
                record = self.process_detail_page(detail_page, item.detail_url, item.name,
                                                  item.short_description, run_id)
                records.append(record)
                logger.debug(f"Processed place {position}/{len(items)}: {item.name} ({record.identifier})",
                             run_id=run_id, stage='DETAIL')
            except Exception as e:
                logger.warning(f"Failed to process place {item.name} on page {page_num}: {e}",
                               run_id=run_id, stage='DETAIL')
            finally:
                if detail_page is not None:
                    _close_quietly(detail_page)

            self._pause_between_items(page, run_id)

        return records

    def process_detail_page(self, detail_page, identifier_seed: str, name: str,
                            short_description: str, run_id: Optional[str] = None) -> PlaceRecord:
        detail_page.set_default_timeout(self.config.detail_timeout_ms)
        detail_page.goto(identifier_seed)
        self._wait_for_idle(detail_page, identifier_seed, run_id)

        document = RenderedDocument(url=identifier_seed, html=detail_page.content())
        description = extract_description(document, short_description)
        address = extract_address(document)
        coordinate = extract_coordinates(document)

        if not coordinate.is_present and address:
            logger.info(f"No coordinates found for {name}, address available for geocoding: {address}",
                        run_id=run_id, stage='DETAIL')

        return PlaceRecord(
            identifier=extract_identifier(identifier_seed),
            name=name,
            description=truncate_description(description or ""),
            address=address,
            coordinate=coordinate,
            source_url=identifier_seed,
        )

    def _scrape_known_attractions(self, session, category_name: str,
                                  run_id: Optional[str] = None) -> List[PlaceRecord]:
        if not self.config.use_fallback_attractions:
            return []
        attractions = KNOWN_ATTRACTIONS.get(category_name, DEFAULT_KNOWN_ATTRACTIONS)
        records = []
        for name, identifier in attractions.items():
            detail_url = detail_url_for(self.base_url, name, identifier)
            detail_page = None
            try:
                detail_page = session.new_page()
                records.append(self.process_detail_page(detail_page, detail_url, name, "", run_id))
            except Exception as e:
                logger.warning(f"Known attraction {name} could not be scraped: {e}",
                               run_id=run_id, stage='FALLBACK')
            finally:
                if detail_page is not None:
                    _close_quietly(detail_page)
        logger.info(f"Known-attraction fallback found {len(records)} places for {category_name}",
                    run_id=run_id, stage='FALLBACK')
        return records

    def _pause_between_items(self, page, run_id: Optional[str]) -> None:
        if self.config.request_delay_ms <= 0:
            return
        try:
            page.wait_for_timeout(self.config.request_delay_ms)
        except PlaywrightError as e:
            logger.warning(f"Delay between listing items interrupted: {e}", run_id=run_id, stage='LISTING')

    def _accept_cookies(self, page, run_id: Optional[str] = None) -> None:
        try:
            if page.is_visible(COOKIE_CONSENT_SELECTOR):
                page.click(COOKIE_CONSENT_SELECTOR)
                logger.info("Accepted cookies", run_id=run_id)
        except PlaywrightError as e:
            logger.debug(f"Cookie consent banner not handled: {e}", run_id=run_id)

    def _wait_for_idle(self, page, url: str, run_id: Optional[str] = None) -> None:
        try:
            page.wait_for_load_state("networkidle", timeout=self.config.network_idle_timeout_ms)
        except PlaywrightTimeoutError as e:
            logger.warning(f"Timeout waiting for network idle on {url}: {e}", run_id=run_id)

    @staticmethod
    def _tag(records: List[PlaceRecord], category: str) -> List[PlaceRecord]:
        for record in records:
            record.category = record.category or category
        return records
