import re
from enum import Enum
from typing import Dict, List, Optional, Sequence
from pydantic import BaseModel
from search_gateway import SearchHit
from text_utils import bare_host, compact, is_http_url, jaccard, origin_of, overlaps, registrable_domain, tokens

# --- Host rosters (book flow) ---
# Entries ending in "." match any TLD ("amazon." covers amazon.co.uk).

REFERENCE_HOSTS = [
    "wikipedia.org", "wikidata.org", "wikiquote.org", "britannica.com", "imdb.com",
    "goodreads.com", "openlibrary.org", "worldcat.org", "librarything.com",
    "books.google.", "loc.gov", "archive.org", "fantasticfiction.com",
    "kirkusreviews.com", "publishersweekly.com", "sparknotes.com", "litcharts.com",
]

RETAIL_SOCIAL_HOSTS = [
    "amazon.", "audible.", "ebay.", "barnesandnoble.com", "bookshop.org", "booksamillion.com",
    "books.apple.com", "itunes.apple.com", "podcasts.apple.com", "kobo.com", "walmart.com",
    "target.com", "abebooks.", "thriftbooks.com", "bookdepository.com", "waterstones.com",
    "facebook.com", "twitter.com", "x.com", "instagram.com", "tiktok.com", "linkedin.com",
    "youtube.com", "pinterest.com", "reddit.com", "threads.net", "open.spotify.com",
]

PUBLISHER_HOSTS = [
    "penguinrandomhouse.com", "penguin.co.uk", "randomhouse.com", "knopfdoubleday.com",
    "harpercollins.com", "harpercollins.co.uk", "simonandschuster.com", "macmillan.com",
    "panmacmillan.com", "hachettebookgroup.com", "hachette.co.uk", "littlebrown.com",
    "bloomsbury.com", "scholastic.com", "wwnorton.com", "hmhbooks.com", "sourcebooks.com",
    "tor.com", "torpublishinggroup.com", "faber.co.uk", "harlequin.com",
]

OFFICIAL_MARKER = re.compile(r"\b(?:official|author)\s+(?:web\s*)?site\b", re.IGNORECASE)
BOOKS_HINT = re.compile(r"\b(?:books|novels|works|bibliography)\b", re.IGNORECASE)


class HostCategory(str, Enum):
    REFERENCE = "reference"
    RETAIL_SOCIAL = "retail_social"
    PUBLISHER = "publisher"


CATEGORY_ROSTERS = [
    (HostCategory.REFERENCE, REFERENCE_HOSTS),
    (HostCategory.RETAIL_SOCIAL, RETAIL_SOCIAL_HOSTS),
    (HostCategory.PUBLISHER, PUBLISHER_HOSTS),
]


class SiteReason(str, Enum):
    VANITY_OFFICIAL_OR_BOOKS_HINT = "vanity_official_or_books_hint"
    VANITY_HOST = "vanity_host"
    EXPLICIT_OFFICIAL_MARKER = "explicit_official_marker"
    PUBLISHER_AUTHOR_PROFILE = "publisher_author_profile"


SITE_CONFIDENCE: Dict[SiteReason, float] = {
    SiteReason.VANITY_OFFICIAL_OR_BOOKS_HINT: 0.90,
    SiteReason.VANITY_HOST: 0.88,
    SiteReason.EXPLICIT_OFFICIAL_MARKER: 0.85,
    SiteReason.PUBLISHER_AUTHOR_PROFILE: 0.75,
}


class SitePick(BaseModel):
    url: str
    site_title: Optional[str] = None
    reason: SiteReason
    source_url: Optional[str] = None

    @property
    def confidence(self) -> float:
        return SITE_CONFIDENCE[self.reason]


# --- Host matching ---

def host_matches(host: str, entry: str, strict: bool = False) -> bool:
    """
    Substring containment by default. Strict mode only accepts the entry as
    a whole-label suffix ("x.com" matches "www.x.com", not "fox.com").
    """
    host = host.lower()
    if not strict:
        return entry in host
    if entry.endswith("."):
        return ("." + host).find("." + entry) >= 0
    return host == entry or host.endswith("." + entry)


def categorize_host(host: str, strict: bool = False) -> Optional[HostCategory]:
    """First matching category in priority order wins."""
    for category, roster in CATEGORY_ROSTERS:
        if any(host_matches(host, entry, strict) for entry in roster):
            return category
    return None


def is_vanity_host(host: str, author_name: str) -> bool:
    compact_name = compact(author_name)
    if not compact_name: return False
    return compact_name in compact(bare_host(host).replace("-", ""))


# --- Filtering ---

class CandidateFilter(BaseModel):
    allow_publishers: bool = False
    strict: bool = False

    def admit(self, hit: SearchHit) -> bool:
        if not is_http_url(hit.url): return False
        category = categorize_host(hit.host, self.strict)
        if category in (HostCategory.REFERENCE, HostCategory.RETAIL_SOCIAL): return False
        if category == HostCategory.PUBLISHER: return self.allow_publishers
        return True


def filter_candidates(hits: Sequence[SearchHit], allow_publishers: bool = False, strict: bool = False) -> List[SearchHit]:
    """Drops excluded hosts, then keeps the first hit per registrable domain in arrival order."""
    gate = CandidateFilter(allow_publishers=allow_publishers, strict=strict)
    seen = set()
    kept = []
    for hit in hits:
        if not gate.admit(hit):
            continue
        domain = registrable_domain(hit.host)
        if domain in seen:
            continue
        seen.add(domain)
        kept.append(hit)
    return kept


# --- Ranking ---

def _pick(hit: SearchHit, reason: SiteReason) -> SitePick:
    return SitePick(url=origin_of(hit.url), site_title=hit.title or None, reason=reason, source_url=hit.url)


def rank_candidates(
    candidates: Sequence[SearchHit],
    author_name: str,
    book_title: str = "",
    allow_publishers: bool = False,
    strict: bool = False,
) -> Optional[SitePick]:
    """
    Tiered acceptance, first tier with any match wins. Candidate order inside
    a tier is the filtered arrival order; scores are never compared across tiers.
    """
    author_tokens = tokens(author_name)
    book_tokens = tokens(book_title)

    own_sites = []
    publishers = []
    for hit in candidates:
        if categorize_host(hit.host, strict) == HostCategory.PUBLISHER:
            publishers.append(hit)
        else:
            own_sites.append(hit)

    vanity = [h for h in own_sites if is_vanity_host(h.host, author_name)]

    for hit in vanity:
        if OFFICIAL_MARKER.search(hit.text) or BOOKS_HINT.search(hit.text):
            return _pick(hit, SiteReason.VANITY_OFFICIAL_OR_BOOKS_HINT)

    if vanity:
        return _pick(vanity[0], SiteReason.VANITY_HOST)

    for hit in own_sites:
        if OFFICIAL_MARKER.search(hit.text):
            return _pick(hit, SiteReason.EXPLICIT_OFFICIAL_MARKER)

    if allow_publishers:
        for hit in publishers:
            text_tokens = tokens(hit.text)
            if not overlaps(text_tokens, author_tokens, 0.3):
                continue
            if jaccard(text_tokens, book_tokens) >= 0.2 or BOOKS_HINT.search(hit.text):
                return _pick(hit, SiteReason.PUBLISHER_AUTHOR_PROFILE)

    return None
