"""
Pure parsing helpers for Visit Seoul category listing pages.
"""

import re
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import urljoin, urlparse, unquote

from bs4 import BeautifulSoup

from seoulmate_scraper.utils.logging_config import get_logger
from seoulmate_scraper.utils.validation import validate_url

logger = get_logger()

LISTING_ITEM_SELECTORS = [
    "main ul[class*='list'] > li",
    "main ol[class*='list'] > li",
    "main ul > li",
]
LISTING_LINK_FALLBACK = "main a[href*='/attractions/']"
NAME_SELECTORS = ".title, .tit, strong, h3, h4, em"

LAST_PAGE_LABEL = "마지막 페이지"
PAGE_PARAM_PATTERN = re.compile(r'curPage=(\d+)')
MAX_PAGES_LIMIT = 100
DEFAULT_TOTAL_PAGES = 5
PLACEHOLDER_NAME = "관광지 {index}"

_RATING_PATTERN = re.compile(r'평점\s*:\s*\d+(?:\.\d+)?\s+\d+\s+reviews')
_REVIEWS_PATTERN = re.compile(r'\d+\s+reviews')
_WHITESPACE = re.compile(r'\s+')


@dataclass
class ListingItem:
    """One entry on a listing page, before its detail page is visited"""
    detail_url: str
    name: str
    short_description: str = ""


def clean_description(text: str) -> str:
    """Strip review counters and collapse whitespace"""
    if not text:
        return ""
    text = _RATING_PATTERN.sub('', text)
    text = _REVIEWS_PATTERN.sub('', text)
    return _WHITESPACE.sub(' ', text).strip()


def name_from_url(url: str) -> str:
    """Name segment following 'attractions' in a detail URL, hyphens turned into spaces"""
    segments = [unquote(s) for s in urlparse(url or "").path.split('/') if s]
    if 'attractions' in segments:
        index = segments.index('attractions')
        if index + 1 < len(segments):
            return segments[index + 1].replace('-', ' ').strip()
    return ""


def detail_url_for(base_url: str, name: str, identifier: str) -> str:
    return f"{base_url.rstrip('/')}/attractions/{name.replace(' ', '-')}/{identifier}"


def build_page_url(category_url: str, page_num: int) -> str:
    separator = '&' if '?' in category_url else '?'
    return f"{category_url}{separator}curPage={page_num}"


def _absolute(base_url: str, href: Optional[str]) -> Optional[str]:
    if not href or not href.strip() or href.strip().startswith(('javascript:', '#')):
        return None
    return urljoin(base_url.rstrip('/') + '/', href.strip())


def _item_name(element, detail_url: str) -> str:
    name_element = element.select_one(NAME_SELECTORS)
    if name_element is not None:
        name = name_element.get_text(" ", strip=True)
        if len(name) >= 2:
            return name
    lines = element.get_text("\n", strip=True).split("\n")
    if lines and len(lines[0].strip()) >= 2:
        return lines[0].strip()
    return name_from_url(detail_url)


def _item_short_description(element, name: str) -> str:
    lines = [line.strip() for line in element.get_text("\n", strip=True).split("\n")]
    rest = [line for line in lines if line and line != name]
    return clean_description(" ".join(rest))


def parse_listing_items(html: str, base_url: str) -> List[ListingItem]:
    """Extract listing items in page order; items without a detail link are skipped"""
    soup = BeautifulSoup(html or "", "html.parser")

    elements = []
    for selector in LISTING_ITEM_SELECTORS:
        elements = [e for e in soup.select(selector) if e.select_one("a[href]") is not None]
        if elements:
            logger.debug(f"Found {len(elements)} listing elements using selector: {selector}")
            break

    if not elements:
        elements = soup.select(LISTING_LINK_FALLBACK)
        if elements:
            logger.debug(f"Found {len(elements)} listing links using fallback selector")

    items = []
    for index, element in enumerate(elements, start=1):
        href = element.get('href') if element.name == 'a' else None
        if href is None:
            link = element.select_one("a[href]")
            href = link.get('href') if link is not None else None
        detail_url = _absolute(base_url, href)
        if detail_url is None or not validate_url(detail_url)[0]:
            logger.warning(f"Missing or invalid detail URL for listing item {index}, skipping")
            continue

        name = _item_name(element, detail_url)
        if len(name) < 2:
            name = PLACEHOLDER_NAME.format(index=index)
            logger.warning(f"Could not extract name for listing item {index}, using placeholder")

        items.append(ListingItem(
            detail_url=detail_url,
            name=name,
            short_description=_item_short_description(element, name)
        ))
    return items


def _max_page(values) -> int:
    pages = [int(v) for v in values]
    return max(pages) if pages else 0


def determine_total_pages(html: str) -> int:
    """Total listing pages: last-page link, then pagination links, then any curPage in the markup"""
    soup = BeautifulSoup(html or "", "html.parser")

    last_page_links = soup.select(
        f"a[title*='{LAST_PAGE_LABEL}'], a[aria-label*='{LAST_PAGE_LABEL}'], "
        f"a:-soup-contains('{LAST_PAGE_LABEL}')"
    )
    for link in last_page_links:
        match = PAGE_PARAM_PATTERN.search(link.get('href') or "")
        if match:
            return min(int(match.group(1)), MAX_PAGES_LIMIT)

    pagination = soup.select("[class*='paging'] a[href], [class*='pagination'] a[href]")
    pages = _max_page(m.group(1) for a in pagination
                      for m in [PAGE_PARAM_PATTERN.search(a.get('href') or "")] if m)
    if not pages:
        pages = _max_page(a.get_text(strip=True) for a in pagination
                          if a.get_text(strip=True).isdigit())
    if pages:
        return min(pages, MAX_PAGES_LIMIT)

    pages = _max_page(PAGE_PARAM_PATTERN.findall(html or ""))
    if pages:
        return min(pages, MAX_PAGES_LIMIT)

    logger.info(f"Could not determine total pages, defaulting to {DEFAULT_TOTAL_PAGES}")
    return DEFAULT_TOTAL_PAGES
