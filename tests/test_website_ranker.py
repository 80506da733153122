import pytest

from search_gateway import SearchHit
from website_ranker import (
    HostCategory,
    SiteReason,
    categorize_host,
    filter_candidates,
    host_matches,
    is_vanity_host,
    rank_candidates,
)

AUTHOR = "Tara Westover"
BOOK = "Educated"


def hit(url, title="", snippet=""):
    return SearchHit(url=url, title=title, snippet=snippet)


def test_host_matching_modes():
    assert host_matches("fox.com", "x.com")
    assert not host_matches("fox.com", "x.com", strict=True)
    assert host_matches("www.x.com", "x.com", strict=True)
    assert host_matches("amazon.co.uk", "amazon.", strict=True)
    assert not host_matches("notamazon.com", "amazon.", strict=True)


@pytest.mark.parametrize("host, category", [
    ("en.wikipedia.org", HostCategory.REFERENCE),
    ("www.goodreads.com", HostCategory.REFERENCE),
    ("www.amazon.de", HostCategory.RETAIL_SOCIAL),
    ("twitter.com", HostCategory.RETAIL_SOCIAL),
    ("www.harpercollins.com", HostCategory.PUBLISHER),
    ("tarawestover.com", None),
])
def test_categorize_host(host, category):
    assert categorize_host(host) == category


def test_vanity_host():
    assert is_vanity_host("www.tarawestover.com", AUTHOR)
    assert is_vanity_host("tara-westover.net", AUTHOR)
    assert is_vanity_host("garciamarquez.com", "García Márquez")
    assert not is_vanity_host("westoverbooks.com", AUTHOR)


def test_filter_candidates_excludes_and_dedupes():
    hits = [
        hit("https://en.wikipedia.org/wiki/Tara_Westover"),
        hit("https://www.amazon.com/dp/0399590501"),
        hit("https://tarawestover.com/"),
        hit("https://blog.tarawestover.com/post"),
        hit("https://www.penguinrandomhouse.com/authors/2124911/tara-westover/"),
        hit("not a url"),
    ]
    assert [h.url for h in filter_candidates(hits)] == ["https://tarawestover.com/"]
    with_publishers = filter_candidates(hits, allow_publishers=True)
    assert [h.host for h in with_publishers] == ["tarawestover.com", "www.penguinrandomhouse.com"]


def test_vanity_with_official_marker_wins():
    pick = rank_candidates([
        hit("https://someblog.net/westover", "Tara Westover official website"),
        hit("https://tarawestover.com/", "Home"),
        hit("https://www.tarawestover.org/books", "Books by Tara Westover"),
    ], AUTHOR, BOOK)
    assert pick.url == "https://www.tarawestover.org"
    assert pick.reason == SiteReason.VANITY_OFFICIAL_OR_BOOKS_HINT
    assert pick.confidence == 0.90
    assert pick.source_url == "https://www.tarawestover.org/books"


def test_plain_vanity_host():
    pick = rank_candidates([hit("https://tarawestover.com/", "Home")], AUTHOR, BOOK)
    assert pick.reason == SiteReason.VANITY_HOST
    assert pick.confidence == 0.88


def test_explicit_official_marker():
    pick = rank_candidates([
        hit("https://unrelated.net/", "Welcome"),
        hit("https://westover-writes.net/", "The official site of Tara Westover"),
    ], AUTHOR, BOOK)
    assert pick.url == "https://westover-writes.net"
    assert pick.reason == SiteReason.EXPLICIT_OFFICIAL_MARKER
    assert pick.confidence == 0.85


def test_publisher_profile_only_when_allowed():
    profile = hit(
        "https://www.penguinrandomhouse.com/authors/2124911/tara-westover/",
        "Tara Westover | Penguin Random House",
        "Books by Tara Westover",
    )
    pick = rank_candidates([profile], AUTHOR, BOOK, allow_publishers=True)
    assert pick.reason == SiteReason.PUBLISHER_AUTHOR_PROFILE
    assert pick.confidence == 0.75
    assert rank_candidates([profile], AUTHOR, BOOK, allow_publishers=False) is None


def test_publisher_needs_author_overlap():
    profile = hit("https://www.harpercollins.com/authors/someone", "Someone Else", "Books and more")
    assert rank_candidates([profile], AUTHOR, BOOK, allow_publishers=True) is None


def test_no_match():
    assert rank_candidates([hit("https://unrelated.net/", "Welcome")], AUTHOR, BOOK) is None
    assert rank_candidates([], AUTHOR, BOOK) is None
