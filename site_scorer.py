import asyncio
import re
from typing import Callable, List, Optional, Sequence, Tuple
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field
from search_gateway import SearchHit, WebGateway
from text_utils import (
    bare_host, compact, contains_all, is_http_url, jaccard, json_ld_objects, json_ld_types,
    node_text, origin_of, overlaps, page_title, parse_html, tokens,
)

# --- Name-flow blocklist ---
# Looser than the book-flow rosters: platforms authors actually use
# (Substack, Medium, WordPress) stay allowed and only lose the custom-domain bonus.
WEBSITE_BLOCKLIST = [
    "x.com", "twitter.com", "facebook.com", "instagram.com", "tiktok.com", "linkedin.com",
    "goodreads.com", "imdb.com", "wikipedia.org", "wikidata.org",
    "amazon.", "ebay.", "barnesandnoble.com", "bookshop.org", "audible.", "itunes.apple.com",
    "open.spotify.com", "podcasts.apple.com", "soundcloud.com", "stitcher.com", "podbean.com",
    "simplecast.com", "megaphone.fm",
    "nytimes.com", "theguardian.com", "wsj.com", "washingtonpost.com", "newyorker.com",
]

PLATFORM_HOST = re.compile(r"substack\.com|medium\.com|wordpress\.com|blogspot\.|ghost\.io", re.IGNORECASE)
OFFICIAL_WORDING = re.compile(r"\bofficial (?:site|website)\b", re.IGNORECASE)
COPYRIGHT_MARK = re.compile(r"©|copyright", re.IGNORECASE)
SCHEMA_PERSON_TYPES = {"Person", "Author"}

HTML_SIGNAL_WINDOW = 100_000


class ScoringContext(BaseModel):
    author_name: str
    author_tokens: List[str]
    book_tokens: List[str] = Field(default_factory=list)
    unsafe_disable_domain_filters: bool = False

    @classmethod
    def build(cls, author_name: str, book_title: str = "", unsafe_disable_domain_filters: bool = False) -> "ScoringContext":
        return cls(
            author_name=author_name,
            author_tokens=tokens(author_name),
            book_tokens=tokens(book_title),
            unsafe_disable_domain_filters=unsafe_disable_domain_filters,
        )


class WebHit(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str = ""
    url: str
    host: str
    snippet: str = ""
    confidence: float = 0.0
    reasons: Tuple[str, ...] = ()

    @classmethod
    def from_search(cls, hit: SearchHit) -> "WebHit":
        return cls(title=hit.title, url=hit.url, host=hit.host, snippet=hit.snippet)

    @property
    def text(self) -> str:
        return f"{self.title} {self.snippet}"


Step = Optional[Tuple[float, str]]
Rule = Callable[[WebHit, ScoringContext], Step]


def is_blocked_host(host: str) -> bool:
    h = host.lower()
    return any(bad in h for bad in WEBSITE_BLOCKLIST)


def apply_step(hit: WebHit, step: Step, ceiling: Optional[float] = None) -> WebHit:
    if step is None: return hit
    delta, reason = step
    confidence = hit.confidence + delta
    if ceiling is not None:
        confidence = min(ceiling, confidence)
    return hit.model_copy(update={"confidence": confidence, "reasons": hit.reasons + (reason,)})


def apply_rule(hit: WebHit, rule: Rule, ctx: ScoringContext) -> WebHit:
    return apply_step(hit, rule(hit, ctx))


# --- Base rules ---

def blocked_domain_rule(hit: WebHit, ctx: ScoringContext) -> Step:
    return (-1.0, "blocked_domain") if is_blocked_host(hit.host) else None


def author_mention_rule(hit: WebHit, ctx: ScoringContext) -> Step:
    return (0.35, "author_in_title_or_snippet") if overlaps(tokens(hit.text), ctx.author_tokens, 0.35) else None


def book_mention_rule(hit: WebHit, ctx: ScoringContext) -> Step:
    return (0.15, "book_in_title_or_snippet") if overlaps(tokens(hit.text), ctx.book_tokens, 0.25) else None


def vanity_domain_rule(hit: WebHit, ctx: ScoringContext) -> Step:
    name = compact(ctx.author_name)
    if name and name in compact(bare_host(hit.host).replace("-", "")):
        return (0.25, "vanity_domain_match")
    return None


def custom_domain_rule(hit: WebHit, ctx: ScoringContext) -> Step:
    if PLATFORM_HOST.search(hit.host):
        return (0.0, "platform_host")
    return (0.05, "custom_domain_preferred")


# The blocklist penalty lands before any positive signal
BASE_RULES: List[Rule] = [
    blocked_domain_rule,
    author_mention_rule,
    book_mention_rule,
    vanity_domain_rule,
    custom_domain_rule,
]


def score_base_signals(hit: WebHit, ctx: ScoringContext, rules: Sequence[Rule] = BASE_RULES) -> WebHit:
    for rule in rules:
        hit = apply_rule(hit, rule, ctx)
    return hit.model_copy(update={"confidence": max(0.0, min(1.0, hit.confidence))})


# --- HTML signals ---

class HtmlSignals(BaseModel):
    title_tokens: List[str] = Field(default_factory=list)
    has_copyright_name: bool = False
    has_schema_person: bool = False
    has_official_words: bool = False
    book_mentioned: bool = False


def extract_html_signals(page: str, ctx: ScoringContext) -> HtmlSignals:
    soup = parse_html(page[:HTML_SIGNAL_WINDOW])
    title = page_title(soup)
    text = node_text(soup)
    text_tokens = tokens(text)

    copyright_name = (
        bool(COPYRIGHT_MARK.search(text))
        and bool(ctx.author_tokens)
        and (contains_all(text_tokens, ctx.author_tokens)
             or " ".join(ctx.author_name.split()).lower() in text.lower())
    )
    book_mentioned = bool(ctx.book_tokens) and (
        contains_all(text_tokens, ctx.book_tokens) or jaccard(text_tokens, ctx.book_tokens) >= 0.25
    )
    schema_person = any(SCHEMA_PERSON_TYPES.intersection(json_ld_types(obj)) for obj in json_ld_objects(soup))

    return HtmlSignals(
        title_tokens=tokens(title),
        has_copyright_name=copyright_name,
        has_schema_person=schema_person,
        has_official_words=bool(OFFICIAL_WORDING.search(title) or OFFICIAL_WORDING.search(text)),
        book_mentioned=book_mentioned,
    )


async def fetch_html_signals(url: str, ctx: ScoringContext, gateway: WebGateway) -> HtmlSignals:
    page = await gateway.fetch_page(url)
    if page is None or not page.ok:
        return HtmlSignals()
    return extract_html_signals(page.text, ctx)


def signal_steps(signals: HtmlSignals, ctx: ScoringContext) -> List[Step]:
    steps: List[Step] = []
    if overlaps(signals.title_tokens, ctx.author_tokens, 0.4):
        steps.append((0.15, "title_matches_author"))
    if signals.has_official_words:
        steps.append((0.20, "official_wording"))
    if signals.has_copyright_name:
        steps.append((0.15, "copyright_name_match"))
    if signals.has_schema_person:
        steps.append((0.10, "schema_person_present"))
    if signals.book_mentioned:
        steps.append((0.10, "book_mentioned_on_site"))
    return steps


async def enrich_with_html(hit: WebHit, ctx: ScoringContext, gateway: WebGateway) -> WebHit:
    """Home page and /about each add their own bonuses; every addition is clamped at 1.0."""
    origin = origin_of(hit.url)
    if not origin: return hit

    home, about = await asyncio.gather(
        fetch_html_signals(origin, ctx, gateway),
        fetch_html_signals(origin + "/about", ctx, gateway),
    )
    for signals in (home, about):
        for step in signal_steps(signals, ctx):
            hit = apply_step(hit, step, ceiling=1.0)
    return hit


async def score_candidates(
    hits: Sequence[SearchHit],
    ctx: ScoringContext,
    gateway: WebGateway,
    enrich: bool = True,
) -> List[WebHit]:
    """
    Scores pooled search hits, drops blocked hosts (unless filters are
    disabled), optionally enriches, and returns them best-first. Sorting is
    stable, so equal scores keep search order.
    """
    seen = set()
    scored: List[WebHit] = []
    for hit in hits:
        if not is_http_url(hit.url) or hit.url in seen:
            continue
        seen.add(hit.url)
        scored.append(score_base_signals(WebHit.from_search(hit), ctx))

    if not ctx.unsafe_disable_domain_filters:
        scored = [h for h in scored if not is_blocked_host(h.host)]

    if enrich and scored:
        logger.debug(f"Enriching {len(scored)} candidates for {ctx.author_name!r}")
        scored = list(await asyncio.gather(*(enrich_with_html(h, ctx, gateway) for h in scored)))

    return sorted(scored, key=lambda h: h.confidence, reverse=True)
