from seoulmate_scraper.extraction.listing_parser import (
    build_page_url,
    clean_description,
    detail_url_for,
    determine_total_pages,
    name_from_url,
    parse_listing_items,
)

from conftest import BASE_URL

LISTING_HTML = """
<html><body><main>
<ul class="article-list">
  <li><a href="/attractions/경복궁/KOP000072"><strong>경복궁</strong><span>조선 왕조의 법궁 평점:4.5 12 reviews</span></a></li>
  <li><a href="/attractions/창덕궁/KOP000295"><strong>창덕궁</strong><span>유네스코   세계문화유산</span></a></li>
  <li><span>링크 없는 항목</span></li>
</ul>
<div class="paging"><a href="?curPage=1">1</a><a href="?curPage=2">2</a><a href="?curPage=3">3</a></div>
</main></body></html>
"""


def test_parse_listing_items_in_page_order():
    items = parse_listing_items(LISTING_HTML, BASE_URL)
    assert [item.name for item in items] == ["경복궁", "창덕궁"]
    assert items[0].detail_url == BASE_URL + "/attractions/경복궁/KOP000072"
    assert items[0].short_description == "조선 왕조의 법궁"
    assert items[1].short_description == "유네스코 세계문화유산"


def test_parse_listing_falls_back_to_attraction_links():
    html = '<main><div><a href="/attractions/남산서울타워/KOP000036">남산서울타워</a></div></main>'
    items = parse_listing_items(html, BASE_URL)
    assert len(items) == 1
    assert items[0].name == "남산서울타워"
    assert items[0].detail_url == BASE_URL + "/attractions/남산서울타워/KOP000036"


def test_parse_listing_uses_placeholder_for_short_names():
    html = '<main><ul class="list"><li><a href="/attractions/x/KOP1">A</a></li></ul></main>'
    items = parse_listing_items(html, BASE_URL)
    assert items[0].name == "관광지 1"


def test_parse_listing_takes_name_from_url_when_text_missing():
    html = '<main><ul class="list"><li><a href="/attractions/서울-한양도성/KOP000090"><img src="a.jpg"></a></li></ul></main>'
    items = parse_listing_items(html, BASE_URL)
    assert items[0].name == "서울 한양도성"


def test_parse_listing_empty_page():
    assert parse_listing_items("<main><p>결과가 없습니다</p></main>", BASE_URL) == []


def test_clean_description_removes_review_counters():
    assert clean_description("한옥  마을\n평점:4.7 230 reviews") == "한옥 마을"
    assert clean_description("야경 명소 15 reviews") == "야경 명소"
    assert clean_description("") == ""


def test_name_from_url():
    assert name_from_url(BASE_URL + "/attractions/별마당-도서관/KOP026558") == "별마당 도서관"
    assert name_from_url(BASE_URL + "/about") == ""


def test_detail_url_for_replaces_spaces():
    assert detail_url_for(BASE_URL, "한강 이랜드크루즈", "KOP002126") == \
        BASE_URL + "/attractions/한강-이랜드크루즈/KOP002126"


def test_build_page_url():
    assert build_page_url(BASE_URL + "/attractions", 2) == BASE_URL + "/attractions?curPage=2"
    assert build_page_url(BASE_URL + "/attractions?srchCtgry=69", 3) == \
        BASE_URL + "/attractions?srchCtgry=69&curPage=3"


def test_total_pages_from_last_page_link():
    html = '<div class="paging"><a href="?curPage=2">2</a><a href="?curPage=37" title="마지막 페이지">끝</a></div>'
    assert determine_total_pages(html) == 37


def test_total_pages_from_pagination_links():
    assert determine_total_pages(LISTING_HTML) == 3


def test_total_pages_from_markup_scan_is_capped():
    html = "<script>var next = 'list?curPage=250';</script>"
    assert determine_total_pages(html) == 100


def test_total_pages_defaults_to_five():
    assert determine_total_pages("<main></main>") == 5
