from typing import Dict, List, Optional, Sequence, Tuple

import pytest
from fastapi.testclient import TestClient

import main
from resolver_config import Settings
from response_cache import MemoryCache
from search_gateway import PageResult, SearchError, SearchHit

SearchRule = Tuple[str, Optional[str], Sequence[SearchHit]]


class FakeGateway:
    """
    Stand-in for WebGateway. Search rules are (needle, site, hits): the first
    rule whose site matches and whose needle appears in the query answers it.
    Pages are served by exact URL; anything else is a failed fetch.
    """

    def __init__(
        self,
        rules: Optional[List[SearchRule]] = None,
        pages: Optional[Dict[str, str]] = None,
        fail_sites: Optional[Sequence[Optional[str]]] = None,
        fail_all: bool = False,
        enabled: bool = True,
    ):
        self.rules = rules or []
        self.pages = pages or {}
        self.fail_sites = set(fail_sites or [])
        self.fail_all = fail_all
        self.search_enabled = enabled
        self.queries: List[Tuple[str, Optional[str]]] = []
        self.fetched: List[str] = []

    async def search(self, query: str, num: int = 10, site: Optional[str] = None) -> List[SearchHit]:
        self.queries.append((query, site))
        if self.fail_all or site in self.fail_sites:
            raise SearchError("cse_http_500: boom")
        for needle, rule_site, hits in self.rules:
            if rule_site == site and needle in query:
                return list(hits)
        return []

    async def fetch_page(self, url: str, headers: Optional[Dict[str, str]] = None) -> Optional[PageResult]:
        self.fetched.append(url)
        if url not in self.pages:
            return None
        return PageResult(url=url, status=200, text=self.pages[url])


# --- "Educated" by Tara Westover ---

WIKI_BOOK_URL = "https://en.wikipedia.org/wiki/Educated_(memoir)"
WIKI_AUTHOR_URL = "https://en.wikipedia.org/wiki/Tara_Westover"
OPEN_LIBRARY_URL = "https://openlibrary.org/works/OL17930368W/Educated"
AUTHOR_SITE = "https://tarawestover.com"

WIKI_BOOK_PAGE = """
<html><head><title>Educated (memoir) - Wikipedia</title></head><body>
<table class="infobox">
<tr><th class="infobox-label">Author</th><td class="infobox-data"><a href="/wiki/Tara_Westover">Tara Westover</a></td></tr>
<tr><th class="infobox-label">Publisher</th><td class="infobox-data">Random House</td></tr>
</table>
<p><i>Educated</i> is a 2018 memoir by the American author Tara Westover.</p>
</body></html>
"""

WIKI_AUTHOR_PAGE = """
<html><head><title>Tara Westover - Wikipedia</title></head><body>
<table class="infobox"><tr><th>Born</th><td><span style="display:none">(<span class="bday">1986-09-27</span>)</span> September 27, 1986</td></tr></table>
<p><b>Tara Westover</b> (born September 27, 1986) is an American memoirist, essayist and historian.</p>
</body></html>
"""

OPEN_LIBRARY_PAGE = """
<html><head><title>Educated by Tara Westover | Open Library</title></head><body>
<h2 class="edition-byline">by <a itemprop="author" href="/authors/OL7527445A">Tara Westover</a></h2>
<div>First published in 2018</div>
</body></html>
"""

AUTHOR_HOME_PAGE = """
<html><head><title>Tara Westover</title>
<link rel="canonical" href="https://tarawestover.com/"></head>
<body><h1>Tara Westover</h1><p>Author of Educated</p><footer>&copy; 2024 Tara Westover</footer></body></html>
"""

WEBSITE_HITS = [
    SearchHit(title="Tara Westover - Wikipedia", url=WIKI_AUTHOR_URL, snippet="Tara Westover is an American memoirist."),
    SearchHit(title="Educated: A Memoir: Westover, Tara: Amazon.com", url="https://www.amazon.com/Educated-Memoir-Tara-Westover/dp/0399590501", snippet="Buy Educated."),
    SearchHit(title="Tara Westover | Official Website", url="https://tarawestover.com/", snippet="Author of Educated, a memoir."),
    SearchHit(title="Tara Westover | Penguin Random House", url="https://www.penguinrandomhouse.com/authors/2124911/tara-westover/", snippet="Books by Tara Westover"),
]


def educated_gateway(**overrides) -> FakeGateway:
    rules: List[SearchRule] = [
        ('"Tara Westover"', "en.wikipedia.org", [
            SearchHit(title="Tara Westover - Wikipedia", url=WIKI_AUTHOR_URL, snippet="American memoirist"),
        ]),
        ('"Educated"', "en.wikipedia.org", [
            SearchHit(title="Educated (memoir) - Wikipedia", url=WIKI_BOOK_URL, snippet="Educated is a 2018 memoir"),
        ]),
        ('"Educated"', "openlibrary.org", [
            SearchHit(title="Educated by Tara Westover | Open Library", url=OPEN_LIBRARY_URL, snippet=""),
        ]),
        ('"Tara Westover"', None, WEBSITE_HITS),
    ]
    pages = {
        WIKI_BOOK_URL: WIKI_BOOK_PAGE,
        WIKI_AUTHOR_URL: WIKI_AUTHOR_PAGE,
        OPEN_LIBRARY_URL: OPEN_LIBRARY_PAGE,
        AUTHOR_SITE: AUTHOR_HOME_PAGE,
    }
    kwargs = {"rules": rules, "pages": pages}
    kwargs.update(overrides)
    return FakeGateway(**kwargs)


# --- Fixtures ---

@pytest.fixture
def settings():
    return Settings(cse_key="test-key", cse_id="test-cx", auth_secrets=["s3cret", "old-secret"], enrich_html=False)


@pytest.fixture
def memory_cache():
    return MemoryCache()


@pytest.fixture
def gateway():
    return educated_gateway()


@pytest.fixture
def client(settings, memory_cache, gateway):
    async def fake_gateway():
        yield gateway

    main.app.dependency_overrides[main.get_settings] = lambda: settings
    main.app.dependency_overrides[main.get_cache] = lambda: memory_cache
    main.app.dependency_overrides[main.get_gateway] = fake_gateway
    main.limiter.enabled = False

    with TestClient(main.app) as test_client:
        yield test_client

    main.app.dependency_overrides.clear()
    main.app.state.upstream_transport = None
    main.limiter.enabled = True
