import asyncio
import httpx
from typing import Dict, List, Optional
from loguru import logger
from pydantic import BaseModel
from resolver_config import GOOGLE_CSE_URL, Settings
from text_utils import host_of

# Google Custom Search caps `num` at 10 per request
MAX_RESULTS_PER_QUERY = 10
MAX_PAGE_CHARS = 400_000


class SearchError(Exception):
    """Raised when the upstream search provider fails for one query attempt."""


class SearchHit(BaseModel):
    title: str = ""
    url: str
    snippet: str = ""

    @property
    def host(self) -> str:
        return host_of(self.url)

    @property
    def text(self) -> str:
        return f"{self.title} {self.snippet}".strip()


class PageResult(BaseModel):
    url: str
    status: int
    text: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def _item_to_hit(item: Dict) -> Optional[SearchHit]:
    link = item.get("link")
    if not link: return None
    return SearchHit(
        title=str(item.get("title") or ""),
        url=str(link),
        snippet=str(item.get("snippet") or item.get("htmlSnippet") or ""),
    )


class WebGateway:
    """
    Request-scoped access to the search provider and to arbitrary pages.

    One semaphore guards every network call made through the gateway, so a
    single request never has more than `fetch_concurrency` calls in flight.
    """

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._client = client
        self._owns_client = client is None
        self._limit = asyncio.Semaphore(settings.fetch_concurrency)

    async def __aenter__(self) -> "WebGateway":
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"User-Agent": self.settings.user_agent},
                follow_redirects=True,
            )
        return self

    async def __aexit__(self, *exc_info) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def search_enabled(self) -> bool:
        return self.settings.search_enabled

    async def search(self, query: str, num: int = MAX_RESULTS_PER_QUERY, site: Optional[str] = None) -> List[SearchHit]:
        if not self.search_enabled:
            return []

        params = {
            "key": self.settings.cse_key,
            "cx": self.settings.cse_id,
            "q": query,
            "num": min(num, MAX_RESULTS_PER_QUERY),
        }
        if site:
            params["siteSearch"] = site
            params["siteSearchFilter"] = "i"

        timeout = self.settings.search_timeout_seconds
        async with self._limit:
            try:
                # httpx timeouts are per phase; wait_for bounds the whole call
                resp = await asyncio.wait_for(self._client.get(GOOGLE_CSE_URL, params=params, timeout=timeout), timeout)
            except asyncio.TimeoutError as e:
                logger.error(f"CSE call exceeded {timeout}s for {query!r}")
                raise SearchError("cse_timeout") from e
            except httpx.HTTPError as e:
                logger.error(f"CSE transport error for {query!r}: {e!r}")
                raise SearchError(f"cse_transport: {e!r}") from e

        if resp.status_code >= 400:
            detail = resp.text[:200]
            logger.error(f"CSE HTTP {resp.status_code} for {query!r}: {detail}")
            raise SearchError(f"cse_http_{resp.status_code}: {detail}")

        try:
            data = resp.json()
        except ValueError as e:
            raise SearchError("cse_invalid_json") from e

        items = data.get("items") if isinstance(data, dict) else None
        hits = [_item_to_hit(item) for item in (items or []) if isinstance(item, dict)]
        return [h for h in hits if h is not None]

    async def fetch_page(self, url: str, headers: Optional[Dict[str, str]] = None) -> Optional[PageResult]:
        """Returns None on timeout or transport failure; the caller treats that as "no signal"."""
        timeout = self.settings.fetch_timeout_seconds
        async with self._limit:
            try:
                resp = await asyncio.wait_for(self._client.get(url, headers=headers, timeout=timeout), timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Page fetch exceeded {timeout}s for {url}")
                return None
            except httpx.HTTPError as e:
                logger.warning(f"Page fetch failed for {url}: {e!r}")
                return None
        return PageResult(url=str(resp.url), status=resp.status_code, text=resp.text[:MAX_PAGE_CHARS])
