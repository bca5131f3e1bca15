from pathlib import Path

import pytest

from ipo_ingest.services.crawl.base import FetchError, ParseError, SourceReference
from ipo_ingest.services.crawl.sitemap import SitemapResolver, parse_record_url

from fakes import SITEMAP_URL, FakeTransport, ipo_url, sitemap_xml


def _resolver(xml):
    return SitemapResolver(FakeTransport({SITEMAP_URL: xml}), timeout_ms=1000)


def test_parse_record_url_extracts_id_and_slug():
    ref = parse_record_url("https://www.ipopremium.in/view/ipo/1092/marc-technocrats-ltd")
    assert ref == SourceReference(1092, "marc-technocrats-ltd", "https://www.ipopremium.in/view/ipo/1092/marc-technocrats-ltd")
    assert ref.slug == "marc-technocrats-ltd"
    assert parse_record_url("https://www.ipopremium.in/view/news/12/some-news") is None
    assert parse_record_url("https://www.ipopremium.in/view/ipo/abc/slug") is None


def test_only_ascii_digit_ids_are_accepted():
    arabic_indic = "https://www.ipopremium.in/view/ipo/١٢/foo"
    assert parse_record_url(arabic_indic) is None
    xml = sitemap_xml([arabic_indic, ipo_url(3)])
    assert [r.source_id for r in SitemapResolver.parse_sitemap(xml)] == [3]


def test_parse_sitemap_filters_and_sorts_ascending():
    xml = sitemap_xml(
        [
            ipo_url(30),
            "https://www.ipopremium.in/",
            ipo_url(4),
            "https://www.ipopremium.in/view/news/99/market-wrap",
            ipo_url(17),
            "https://www.ipopremium.in/view/ipo/18",
        ]
    )
    refs = SitemapResolver.parse_sitemap(xml)
    assert [r.source_id for r in refs] == [4, 17, 30]
    assert all("/view/ipo/" in r.url for r in refs)


def test_parse_sitemap_keeps_duplicate_ids():
    xml = sitemap_xml([ipo_url(5, "first"), ipo_url(5, "second"), ipo_url(2)])
    refs = SitemapResolver.parse_sitemap(xml)
    assert [r.source_id for r in refs] == [2, 5, 5]
    assert [r.slug for r in refs[1:]] == ["first", "second"]


def test_parse_sitemap_ignores_locs_outside_namespace():
    xml = (
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">'
        f"<url><loc>{ipo_url(1)}</loc></url>"
        "</urlset>"
    )
    assert len(SitemapResolver.parse_sitemap(xml)) == 1
    no_ns = f"<urlset><url><loc>{ipo_url(1)}</loc></url></urlset>"
    assert SitemapResolver.parse_sitemap(no_ns) == []


def test_resolve_returns_highest_ids_window():
    xml = sitemap_xml([ipo_url(i) for i in range(25, 0, -1)])
    refs = _resolver(xml).resolve(SITEMAP_URL, 20)
    assert len(refs) == 20
    assert [r.source_id for r in refs] == list(range(6, 26))


def test_resolve_window_larger_than_sitemap_returns_all():
    xml = sitemap_xml([ipo_url(i) for i in (3, 1, 2)])
    refs = _resolver(xml).resolve(SITEMAP_URL, 50)
    assert [r.source_id for r in refs] == [1, 2, 3]


def test_resolve_zero_window_is_empty():
    xml = sitemap_xml([ipo_url(1)])
    assert _resolver(xml).resolve(SITEMAP_URL, 0) == []


def test_resolve_is_idempotent():
    xml = sitemap_xml([ipo_url(i) for i in (8, 3, 11, 5)])
    resolver = _resolver(xml)
    assert resolver.resolve(SITEMAP_URL, 3) == resolver.resolve(SITEMAP_URL, 3)


def test_resolve_empty_sitemap_is_not_an_error():
    empty = '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9"></urlset>'
    assert _resolver(empty).resolve(SITEMAP_URL, 20) == []


def test_resolve_range_is_inclusive_and_unwindowed():
    xml = sitemap_xml([ipo_url(i) for i in range(1, 101)])
    refs = _resolver(xml).resolve_range(SITEMAP_URL, 10, 40)
    assert [r.source_id for r in refs] == list(range(10, 41))


def test_malformed_xml_raises_parse_error():
    with pytest.raises(ParseError):
        _resolver("<urlset><url><loc>oops</url>").resolve(SITEMAP_URL, 20)


def test_fetch_failure_propagates_without_retry():
    transport = FakeTransport({})
    resolver = SitemapResolver(transport, timeout_ms=1000)
    with pytest.raises(FetchError):
        resolver.resolve(SITEMAP_URL, 20)
    assert transport.calls == [SITEMAP_URL]


def read_fixture(name: str) -> str:
    p = Path(__file__).parent / "fixtures" / name
    return p.read_text(encoding="utf-8")


def test_sample_sitemap():
    refs = SitemapResolver.parse_sitemap(read_fixture("sitemap_sample.xml"))
    assert [(r.source_id, r.slug) for r in refs] == [
        (987, "srigee-dlm-ltd"),
        (1045, "infonative-solutions-pvt-ltd"),
        (1092, "marc-technocrats-ltd"),
        (1101, "ather-energy-ltd"),
    ]
    latest = _resolver(read_fixture("sitemap_sample.xml")).resolve(SITEMAP_URL, 2)
    assert [r.source_id for r in latest] == [1092, 1101]
