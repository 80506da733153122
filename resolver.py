import asyncio
import re
import unicodedata
from typing import Any, Dict, List, Optional, Sequence, Tuple
from urllib.parse import urljoin
from loguru import logger
from api_models import AuthorSiteRequest, BookResolveRequest, BookResolveResponse, AuthorSiteResponse, LifeDatesPayload
from author_consensus import AuthorPick, resolve_author
from resolver_config import Settings
from search_gateway import SearchError, SearchHit, WebGateway
from site_scorer import ScoringContext, score_candidates
from source_extractors import DEFAULT_EXTRACTORS, LifeDates, SourceExtractor, SourceResult, fetch_life_dates, run_source
from text_utils import is_http_url, origin_of, page_title, parse_html
from viability import ViabilityReason, evaluate_viability
from website_ranker import SitePick, filter_candidates, rank_candidates

SEARCH_DISABLED_DIAG = {"reason": "search_disabled_or_not_configured"}


def normalize_author(s: Optional[str]) -> str:
    return re.sub(r"\s+", " ", unicodedata.normalize("NFKC", s or "")).strip()


def clamp_confidence(value: Optional[float], default: float) -> float:
    if value is None: return default
    return max(0.0, min(1.0, float(value)))


# --------------------------------------------------------------------
# Shared helpers
# --------------------------------------------------------------------

async def pooled_search(queries: Sequence[str], gateway: WebGateway, diag: Optional[Dict[str, Any]] = None) -> Tuple[List[SearchHit], int]:
    """
    Runs every phrasing concurrently and pools hits in query order.
    A failing query contributes nothing; returns (hits, failed_count).
    """
    async def run_one(query: str) -> Optional[List[SearchHit]]:
        try:
            return await gateway.search(query)
        except SearchError as e:
            logger.warning(f"Search failed for {query!r}: {e}")
            if diag is not None:
                diag.setdefault("search_errors", []).append({"query": query, "error": str(e)})
            return None

    results = await asyncio.gather(*(run_one(q) for q in queries))
    if diag is not None:
        diag["raw_counts"] = [len(r) if r is not None else 0 for r in results]

    pooled: List[SearchHit] = []
    for r in results:
        pooled.extend(r or [])
    return pooled, sum(1 for r in results if r is None)


async def fetch_site_details(origin: str, gateway: WebGateway) -> Tuple[Optional[str], Optional[str]]:
    """Homepage <title> and rel=canonical for the picked origin. Soft on any failure."""
    page = await gateway.fetch_page(origin)
    if page is None or not page.ok:
        return None, None

    soup = parse_html(page.text)
    site_title = page_title(soup) or None
    link = soup.find("link", rel="canonical", href=True)
    canonical = link["href"].strip() if link else None
    if canonical and not is_http_url(canonical):
        canonical = urljoin(origin + "/", canonical)
    return site_title, canonical or None


# --------------------------------------------------------------------
# Book flow: title -> author -> viability -> website
# --------------------------------------------------------------------

def website_queries(author: str, book_title: str) -> List[str]:
    queries = [
        f'"{author}" official website',
        f'"{author}" author website',
        f'"{author}" books',
    ]
    if book_title:
        queries.insert(2, f'"{author}" "{book_title}" author')
    return queries


async def gather_sources(book_title: str, gateway: WebGateway, extractors: Sequence[SourceExtractor]) -> List[SourceResult]:
    async def run_one(extractor: SourceExtractor) -> SourceResult:
        try:
            return await run_source(extractor, book_title, gateway)
        except SearchError as e:
            logger.warning(f"Source {extractor.tag} unavailable for {book_title!r}: {e}")
            return SourceResult(tag=extractor.tag, query=extractor.build_query(book_title), error=str(e))

    results = list(await asyncio.gather(*(run_one(x) for x in extractors)))
    if results and all(r.error for r in results):
        raise SearchError("all reference sources failed")
    return results


async def find_author_website(
    author: str,
    book_title: str,
    gateway: WebGateway,
    settings: Settings,
    allow_publishers: bool,
    diag: Optional[Dict[str, Any]] = None,
) -> Optional[SitePick]:
    queries = website_queries(author, book_title)
    if diag is not None:
        diag["queries"] = queries

    hits, failed = await pooled_search(queries, gateway, diag)
    candidates = filter_candidates(hits, allow_publishers=allow_publishers, strict=settings.strict_host_matching)
    if diag is not None:
        diag["failed_queries"] = failed
        diag["candidates"] = [{"url": h.url, "host": h.host, "title": h.title} for h in candidates[:10]]

    return rank_candidates(
        candidates, author, book_title,
        allow_publishers=allow_publishers,
        strict=settings.strict_host_matching,
    )


def _life_dates_payload(dates: LifeDates) -> Optional[LifeDatesPayload]:
    if not dates.known: return None
    return LifeDatesPayload(birthYear=dates.birth_year, deathYear=dates.death_year)


async def resolve_book(
    request: BookResolveRequest,
    gateway: WebGateway,
    settings: Settings,
    extractors: Sequence[SourceExtractor] = DEFAULT_EXTRACTORS,
    current_year: Optional[int] = None,
) -> BookResolveResponse:
    title = (request.book_title or "").strip()
    diag: Optional[Dict[str, Any]] = {} if request.debug else None

    if not (request.include_search and gateway.search_enabled):
        return BookResolveResponse(
            book_title=title, pub_year=None, life_dates=None,
            author_viable=False, viability_reason=ViabilityReason.SEARCH_DISABLED.value,
            confidence=0.0, author_confidence=0.0, source="web",
            **({"diag": dict(SEARCH_DISABLED_DIAG)} if request.debug else {}),
        )

    results = await gather_sources(title, gateway, extractors)
    pick: Optional[AuthorPick] = resolve_author([(r.tag, r.names) for r in results], title)
    pub_year = next((r.pub_year for r in results if r.pub_year), None)
    if diag is not None:
        diag["sources"] = [r.model_dump() for r in results]
        diag["author"] = pick.model_dump() if pick else None

    if pick is None:
        logger.info(f"No consensus author for {title!r}")
        return BookResolveResponse(
            book_title=title, pub_year=pub_year, life_dates=None,
            author_viable=False, viability_reason=ViabilityReason.AUTHOR_NOT_FOUND.value,
            confidence=0.0, author_confidence=0.0, source="web",
            **({"diag": diag} if diag is not None else {}),
        )

    life = await fetch_life_dates(pick.name, gateway)
    viability = evaluate_viability(life.birth_year, life.death_year, pub_year, request.allow_estate_sites, current_year)
    if diag is not None:
        diag["life_dates"] = life.model_dump()
        diag["viability"] = viability.model_dump(mode="json")

    fields: Dict[str, Any] = {
        "book_title": title,
        "inferred_author": pick.name,
        "pub_year": pub_year,
        "life_dates": _life_dates_payload(life),
        "author_viable": viability.viable,
        "viability_reason": viability.reason.value,
        "confidence": 0.0,
        "author_confidence": pick.confidence,
        "source": "web",
    }

    if viability.viable:
        site_diag: Optional[Dict[str, Any]] = {} if diag is not None else None
        site = await find_author_website(
            pick.name, title, gateway, settings,
            allow_publishers=not request.exclude_publisher_sites,
            diag=site_diag,
        )
        if site is not None:
            site_title, canonical = await fetch_site_details(site.url, gateway)
            fields.update(
                author_url=site.url,
                site_title=site_title or site.site_title,
                canonical_url=canonical or site.url,
                confidence=site.confidence,
            )
            logger.info(f"Resolved {title!r} -> {pick.name} -> {site.url} ({site.reason.value})")
        if site_diag is not None:
            site_diag["picked"] = site.model_dump(mode="json") if site else None
            diag["site"] = site_diag

    if diag is not None:
        fields["diag"] = diag
    return BookResolveResponse(**fields)


# --------------------------------------------------------------------
# Name flow: author (+ book) -> website
# --------------------------------------------------------------------

def author_site_queries(author: str, book_title: str = "") -> List[str]:
    quoted = f'"{author}"'
    book_part = f' "{book_title}"' if book_title else ""
    return [
        f"{quoted}{book_part} official site",
        f"{quoted}{book_part} official website",
        f"{quoted}{book_part} author website",
        f"{quoted} site",
        f"{quoted} website",
    ]


async def resolve_author_site(request: AuthorSiteRequest, gateway: WebGateway, settings: Settings) -> AuthorSiteResponse:
    author = normalize_author(request.author_name)
    book_title = request.book_title if isinstance(request.book_title, str) else ""
    min_confidence = clamp_confidence(request.min_site_confidence, settings.default_min_site_confidence)

    if not (request.include_search and gateway.search_enabled):
        return AuthorSiteResponse(
            author_name=author, confidence=0.0, source="web",
            **({"diag": dict(SEARCH_DISABLED_DIAG)} if request.debug else {}),
        )

    queries = author_site_queries(author, book_title)
    diag: Dict[str, Any] = {"queries": queries, "threshold": min_confidence}

    hits, failed = await pooled_search(queries, gateway, diag)
    if failed == len(queries):
        raise SearchError("all website queries failed")

    ctx = ScoringContext.build(author, book_title, request.unsafe_disable_domain_filters)
    ranked = await score_candidates(hits, ctx, gateway, enrich=settings.enrich_html)

    diag["candidates"] = [
        {"url": h.url, "host": h.host, "confidence": round(h.confidence, 2), "reasons": list(h.reasons)}
        for h in ranked[:10]
    ]
    best = ranked[0] if ranked else None
    if best is not None:
        diag["picked"] = {"url": best.url, "confidence": round(best.confidence, 2), "reasons": list(best.reasons)}

    extra = {"diag": diag} if request.debug else {}

    if best is None or best.confidence < min_confidence:
        return AuthorSiteResponse(
            author_name=author,
            confidence=round(best.confidence, 2) if best else 0.0,
            source="web",
            **extra,
        )

    origin = origin_of(best.url)
    site_title, canonical = await fetch_site_details(origin, gateway)
    return AuthorSiteResponse(
        author_name=author,
        author_url=origin,
        site_title=site_title,
        canonical_url=canonical or origin,
        confidence=round(best.confidence, 2),
        source="web",
        **extra,
    )
