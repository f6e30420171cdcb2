"""
Field extraction for rendered Visit Seoul detail pages.

Every field is pulled through an ordered fallback chain: a list of small
strategy functions taking a RenderedDocument and returning a candidate or
None. The first candidate that passes the field's validity predicate wins.
A strategy that raises is treated as having produced no candidate.
"""

import hashlib
import re
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, TypeVar
from urllib.parse import urlparse, parse_qs, unquote

from bs4 import BeautifulSoup

from seoulmate_scraper.models.place import Coordinate, in_seoul_bounds
from seoulmate_scraper.utils.logging_config import get_logger

logger = get_logger()

T = TypeVar('T')

MAX_DESCRIPTION_LENGTH = 500
ELLIPSIS = "..."
MIN_DESCRIPTION_CANDIDATE = 50
MIN_FALLBACK_PARAGRAPH = 100
MAX_ADDRESS_SCAN_LENGTH = 100
ADDRESS_MARKER = "주소"
CITY_MARKER = "서울"

PLACE_ID_PATTERN = re.compile(r'KOP\w+', re.ASCII)
SURROGATE_PREFIX = "URL-"


@dataclass
class RenderedDocument:
    """Snapshot of a rendered page: its final URL and serialized markup"""
    url: str
    html: str
    _soup: Optional[BeautifulSoup] = field(default=None, repr=False, compare=False)

    @property
    def soup(self) -> BeautifulSoup:
        if self._soup is None:
            self._soup = BeautifulSoup(self.html or "", "html.parser")
        return self._soup

    def select_text(self, selector: str) -> Optional[str]:
        """Text of the first element matching selector, or None"""
        element = self.soup.select_one(selector)
        if element is None:
            return None
        text = element.get_text(" ", strip=True)
        return text or None


Strategy = Callable[[RenderedDocument], Optional[T]]


def first_valid(chain: Iterable[Strategy], document: RenderedDocument,
                predicate: Callable[[T], bool]) -> Optional[T]:
    """Run strategies in order and return the first candidate accepted by predicate"""
    for strategy in chain:
        try:
            candidate = strategy(document)
        except Exception as e:
            logger.debug(f"Extraction strategy {getattr(strategy, '__name__', strategy)} failed: {e}")
            continue
        if candidate is not None and predicate(candidate):
            return candidate
    return None


def selector_strategy(selector: str) -> Strategy:
    def _strategy(document: RenderedDocument) -> Optional[str]:
        return document.select_text(selector)
    _strategy.__name__ = f"select({selector})"
    return _strategy


def truncate_description(text: str, max_length: int = MAX_DESCRIPTION_LENGTH) -> str:
    if text is None or len(text) <= max_length:
        return text
    return text[:max_length - len(ELLIPSIS)] + ELLIPSIS


# -- description ------------------------------------------------------------

DESCRIPTION_SELECTORS = [
    "[ref^='s1e199'] p",
    "[ref^='s1e200'] p",
    "p:-soup-contains('조선')",
    ".detail-txt p",
    ".text-area p",
    ".txt-detail",
    "article p",
    "main section p",
]


def _main_paragraph_strategy(document: RenderedDocument) -> Optional[str]:
    root = document.soup.select_one("main") or document.soup
    for paragraph in root.find_all("p"):
        text = paragraph.get_text(" ", strip=True)
        if len(text) > MIN_FALLBACK_PARAGRAPH:
            return text
    return None


def extract_description(document: RenderedDocument, default_description: str = "") -> str:
    chain = [selector_strategy(s) for s in DESCRIPTION_SELECTORS]
    description = first_valid(chain, document, lambda text: len(text) > MIN_DESCRIPTION_CANDIDATE)
    if description is None:
        description = first_valid([_main_paragraph_strategy], document,
                                  lambda text: len(text) > MIN_FALLBACK_PARAGRAPH)
    if description is None:
        return default_description
    return truncate_description(description)


# -- address ----------------------------------------------------------------

ADDRESS_SELECTORS = [
    f"dt:-soup-contains('{ADDRESS_MARKER}') + dd",
    f"th:-soup-contains('{ADDRESS_MARKER}') + td",
    f"strong:-soup-contains('{ADDRESS_MARKER}') + span",
    f"span:-soup-contains('{ADDRESS_MARKER}') + span",
]

_ADDRESS_LABEL = re.compile(rf'^\s*{ADDRESS_MARKER}\s*[:：]?\s*')


def _labelled_list_item_strategy(document: RenderedDocument) -> Optional[str]:
    text = document.select_text(f"li:-soup-contains('{ADDRESS_MARKER}')")
    if text is None:
        return None
    return _ADDRESS_LABEL.sub('', text).strip() or None


def _short_city_text_strategy(document: RenderedDocument) -> Optional[str]:
    root = document.soup.body or document.soup
    for element in root.find_all(True):
        if element.name in ('script', 'style', 'noscript'):
            continue
        text = element.get_text(" ", strip=True)
        if CITY_MARKER in text and len(text) < MAX_ADDRESS_SCAN_LENGTH:
            return _ADDRESS_LABEL.sub('', text).strip()
    return None


def extract_address(document: RenderedDocument) -> str:
    chain = [selector_strategy(s) for s in ADDRESS_SELECTORS] + [_labelled_list_item_strategy]
    address = first_valid(chain, document, lambda text: CITY_MARKER in text)
    if address is None:
        address = first_valid([_short_city_text_strategy], document, lambda text: CITY_MARKER in text)
    return address or ""


# -- coordinates ------------------------------------------------------------

MAP_ELEMENT_SELECTORS = [
    "#map, .map, [class*='map-area']",
    "[ref*='map'], [id*='map'], [class*='map']",
    "iframe[src*='map']",
    "img[src*='map']",
]

_NUM = r'(-?\d+(?:\.\d+)?)'

COORDINATE_PATTERNS = [
    re.compile(rf'lat\s*[=:]\s*{_NUM}\s*,\s*lng\s*[=:]\s*{_NUM}'),
    re.compile(rf'latitude\s*[=:]\s*{_NUM}\s*,?\s*longitude\s*[=:]\s*{_NUM}'),
    re.compile(rf'["\']lat["\']\s*:\s*["\']?{_NUM}["\']?\s*,\s*["\'](?:lng|lon)["\']\s*:\s*["\']?{_NUM}'),
    re.compile(rf'["\']latitude["\']\s*:\s*["\']?{_NUM}["\']?\s*,\s*["\']longitude["\']\s*:\s*["\']?{_NUM}'),
    re.compile(rf'position\s*[=:]\s*\{{\s*lat\s*:\s*{_NUM}\s*,\s*lng\s*:\s*{_NUM}'),
    re.compile(rf'LatLng\(\s*{_NUM}\s*,\s*{_NUM}'),
    re.compile(rf'\blat={_NUM}&(?:lon|lng)={_NUM}'),
    re.compile(rf'\blat={_NUM}&amp;(?:lon|lng)={_NUM}'),
]

MAP_DOMAINS = ('maps.google', 'google.com/maps', 'map.naver', 'map.kakao', 'map.daum')


def _parse_pair(latitude: str, longitude: str) -> Optional[Coordinate]:
    try:
        lat, lng = float(latitude), float(longitude)
    except (TypeError, ValueError):
        return None
    return Coordinate(lat, lng)


def _in_box(candidate: Coordinate) -> bool:
    return in_seoul_bounds(candidate.latitude, candidate.longitude)


def has_map_element(document: RenderedDocument) -> bool:
    return any(document.soup.select_one(selector) is not None for selector in MAP_ELEMENT_SELECTORS)


def _pattern_strategy(pattern: 're.Pattern') -> Strategy:
    def _strategy(document: RenderedDocument) -> Optional[Coordinate]:
        match = pattern.search(document.html or "")
        if match is None:
            return None
        return _parse_pair(match.group(1), match.group(2))
    _strategy.__name__ = f"pattern({pattern.pattern})"
    return _strategy


def _map_iframe_strategy(document: RenderedDocument) -> Optional[Coordinate]:
    for iframe in document.soup.find_all("iframe", src=True):
        src = iframe["src"]
        if not any(domain in src for domain in MAP_DOMAINS):
            continue
        query = parse_qs(urlparse(src).query)
        for key in ('q', 'll'):
            for value in query.get(key, []):
                parts = value.split(',')
                if len(parts) != 2:
                    continue
                candidate = _parse_pair(parts[0].strip(), parts[1].strip())
                if candidate is not None and _in_box(candidate):
                    return candidate
    return None


def extract_coordinates(document: RenderedDocument) -> Coordinate:
    if not has_map_element(document):
        return Coordinate.absent()
    chain = [_pattern_strategy(p) for p in COORDINATE_PATTERNS] + [_map_iframe_strategy]
    coordinate = first_valid(chain, document, _in_box)
    if coordinate is None:
        return Coordinate.absent()
    logger.debug(f"Found coordinates: lat={coordinate.latitude}, lng={coordinate.longitude}")
    return coordinate


# -- identifier -------------------------------------------------------------

def surrogate_identifier(url: str) -> str:
    """Deterministic fallback key: sha256 of the UTF-8 URL, first 16 hex chars"""
    return SURROGATE_PREFIX + hashlib.sha256(url.encode('utf-8')).hexdigest()[:16]


def extract_identifier(url: str) -> str:
    """Stable identifier for a detail URL; never empty"""
    url = url or ""
    parsed = urlparse(url)

    segments = [s for s in parsed.path.split('/') if s]
    if segments:
        last = unquote(segments[-1])
        if PLACE_ID_PATTERN.fullmatch(last):
            return last

    match = PLACE_ID_PATTERN.search(url)
    if match:
        return match.group(0)

    ids = [v.strip() for v in parse_qs(parsed.query).get('id', []) if v.strip()]
    if ids:
        return ids[0]

    return surrogate_identifier(url)
