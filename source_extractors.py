import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Set, Tuple
from bs4 import BeautifulSoup, Tag
from loguru import logger
from pydantic import BaseModel, Field
from name_rules import CONNECTOR_WORDS
from search_gateway import SearchError, SearchHit, WebGateway
from text_utils import clean_title_like, contains_all, host_of, json_ld_objects, json_ld_types, node_text, page_title, parse_html, tokens

# --- CONFIGURATION ---
SOURCE_WIKIPEDIA = "wikipedia"
SOURCE_OPEN_LIBRARY = "openlibrary"
SOURCE_GOODREADS = "goodreads"

# Keeps adaptations (films, soundtracks) out of the author queries
NEGATIVE_TERMS = "-film -movie -screenplay -soundtrack -director"

# Initials ("J.K.") or a capitalized word; a trailing sentence period is never part of a name
_NAME_WORD = r"(?:[A-ZÀ-Þ]\.){1,3}|[A-ZÀ-Þ][^\W\d_]*(?:['’\-][^\W\d_]+)*"
_CONNECTOR = r"(?:" + "|".join(sorted(CONNECTOR_WORDS)) + r")"
NAME_PATTERN = rf"(?:{_NAME_WORD})(?:\s+(?:{_CONNECTOR}\s+)?(?:{_NAME_WORD})){{1,3}}"
_DESCRIBED = r"(?:author|writer|novelist|journalist|historian|poet|memoirist|essayist|playwright|scholar)"

BY_PHRASES = [
    # "a 2018 memoir by the American author Tara Westover"
    re.compile(rf"\b[Bb]y\s+(?:the\s+)?(?:[\w-]+\s+){{0,2}}?{_DESCRIBED}\s+({NAME_PATTERN})"),
    re.compile(rf"\bwritten\s+by\s+({NAME_PATTERN})"),
    re.compile(rf"\b(?:[Aa]uthor|[Ww]riter)\s*:\s*({NAME_PATTERN})"),
    re.compile(rf"\b[Bb]y\s+({NAME_PATTERN})"),
]

LEAD_PARAGRAPHS = 3


class NameCandidate(BaseModel):
    text: str
    sources: Set[str] = Field(default_factory=set)


class SourceResult(BaseModel):
    tag: str
    query: str
    page_url: Optional[str] = None
    names: List[str] = Field(default_factory=list)
    pub_year: Optional[int] = None
    error: Optional[str] = None


class LifeDates(BaseModel):
    birth_year: Optional[int] = None
    death_year: Optional[int] = None
    biography_url: Optional[str] = None

    @property
    def known(self) -> bool:
        return self.birth_year is not None or self.death_year is not None


def _dedupe(names: List[str]) -> List[str]:
    seen = set()
    out = []
    for n in names:
        n = re.sub(r"\s+", " ", n).strip()
        if n and n not in seen:
            seen.add(n)
            out.append(n)
    return out


def _split_people(text: str) -> List[str]:
    return [p.strip() for p in re.split(r",|;|&|\band\b", text) if p.strip()]


def _cell_people(cell: Tag) -> List[str]:
    """Splits an infobox/byline cell that may list several contributors, one per <li> or <br>."""
    items = cell.find_all("li")
    if items:
        lines = [node_text(li) for li in items]
    else:
        for br in cell.find_all("br"):
            br.replace_with("\n")
        lines = cell.get_text().split("\n")
    people = []
    for line in lines:
        people.extend(_split_people(re.sub(r"\s+", " ", line)))
    return people


def infobox_cell(soup: BeautifulSoup, label: str) -> Optional[Tag]:
    """The <td> beside the infobox <th> whose text is exactly `label` (a regex)."""
    for th in soup.find_all("th"):
        if re.fullmatch(label, node_text(th), re.IGNORECASE):
            return th.find_next_sibling("td")
    return None


def lead_paragraphs(soup: BeautifulSoup, limit: int = LEAD_PARAGRAPHS) -> List[str]:
    """First non-empty <p> texts; a page without any <p> (a search snippet) is one paragraph."""
    paragraphs = [node_text(p) for p in soup.find_all("p")]
    if not paragraphs:
        return [node_text(soup)]
    return [p for p in paragraphs if p][:limit]


def find_by_phrases(text: str) -> List[str]:
    names = []
    for pattern in BY_PHRASES:
        names.extend(m.group(1) for m in pattern.finditer(text))
    return _dedupe(names)


class SourceExtractor:
    """
    One reference site, one strategy. Subclasses implement `extract_names`
    over the parsed page; querying and fetching is shared.
    """
    tag: str = ""
    site: str = ""
    query_suffix: str = "book written by"
    title_suffix: str = ""

    def build_query(self, book_title: str) -> str:
        return f'"{clean_title_like(book_title)}" {self.query_suffix} {NEGATIVE_TERMS}'

    def owns(self, hit: SearchHit) -> bool:
        host = hit.host
        return host == self.site or host.endswith("." + self.site)

    def extract(self, page_text: str) -> List[NameCandidate]:
        return self._candidates(self.extract_names(parse_html(page_text)))

    def extract_names(self, soup: BeautifulSoup) -> List[str]:
        raise NotImplementedError

    def extract_pub_year(self, page_text: str) -> Optional[int]:
        return None

    def _title_byline(self, soup: BeautifulSoup) -> List[str]:
        """'<Book> by NAME | <Site>' from the page title, or from the bare text of a snippet."""
        title = page_title(soup) or node_text(soup)
        m = re.search(rf"\bby\s+(.+?)\s*\|\s*{self.title_suffix}", title, re.IGNORECASE)
        return _split_people(m.group(1)) if m else []

    def _candidates(self, names: List[str]) -> List[NameCandidate]:
        return [NameCandidate(text=n, sources={self.tag}) for n in _dedupe(names)]


class WikipediaExtractor(SourceExtractor):
    tag = SOURCE_WIKIPEDIA
    site = "en.wikipedia.org"

    def extract_names(self, soup: BeautifulSoup) -> List[str]:
        names: List[str] = []

        cell = infobox_cell(soup, r"Authors?")
        if cell is not None:
            names.extend(_cell_people(cell))

        for p in lead_paragraphs(soup):
            names.extend(find_by_phrases(p))
        return names


class OpenLibraryExtractor(SourceExtractor):
    tag = SOURCE_OPEN_LIBRARY
    site = "openlibrary.org"
    query_suffix = "book by"
    title_suffix = r"Open\s*Library"

    def extract_names(self, soup: BeautifulSoup) -> List[str]:
        names: List[str] = []

        for byline in soup.select(".edition-byline"):
            if byline.select("a[itemprop=author]"):
                continue
            names.extend(_split_people(re.sub(r"^by\s+", "", node_text(byline), flags=re.IGNORECASE)))
        names.extend(node_text(a) for a in soup.select("a[itemprop=author]"))

        names.extend(self._title_byline(soup))
        if not names:
            names.extend(find_by_phrases(node_text(soup)))
        return names

    def extract_pub_year(self, page_text: str) -> Optional[int]:
        text = node_text(parse_html(page_text))
        m = (re.search(r"First published in (\d{4})", text, re.IGNORECASE)
             or re.search(r'"first_publish_year"\s*:\s*(\d{4})', page_text)
             or re.search(r"Publish Date\s+(?:\w+\s+\d{1,2},\s+)?(\d{4})", text, re.IGNORECASE))
        if not m: return None
        year = int(m.group(1))
        return year if 1000 <= year <= datetime.now().year else None


def _json_ld_people(obj: Dict[str, Any], key: str) -> List[str]:
    value = obj.get(key)
    people = value if isinstance(value, list) else [value]
    return [p["name"] for p in people
            if isinstance(p, dict) and "Person" in json_ld_types(p) and isinstance(p.get("name"), str)]


class GoodreadsExtractor(SourceExtractor):
    tag = SOURCE_GOODREADS
    site = "goodreads.com"
    query_suffix = "book by"
    title_suffix = "Goodreads"

    def extract_names(self, soup: BeautifulSoup) -> List[str]:
        names: List[str] = []

        names.extend(node_text(s) for s in soup.select(".ContributorLink__name"))
        names.extend(node_text(s) for s in soup.select(".authorName [itemprop=name]"))
        for obj in json_ld_objects(soup):
            names.extend(_json_ld_people(obj, "author"))

        names.extend(self._title_byline(soup))
        if not names:
            names.extend(find_by_phrases(node_text(soup)))
        return names


DEFAULT_EXTRACTORS: List[SourceExtractor] = [WikipediaExtractor(), OpenLibraryExtractor(), GoodreadsExtractor()]


async def run_source(extractor: SourceExtractor, book_title: str, gateway: WebGateway) -> SourceResult:
    """
    Queries one reference site for the book and extracts author names from
    the top hit. Search failure raises SearchError; page failure falls back
    to the hit's own title and snippet.
    """
    query = extractor.build_query(book_title)
    hits = await gateway.search(query, site=extractor.site)
    result = SourceResult(tag=extractor.tag, query=query)

    top = next((h for h in hits if extractor.owns(h)), None)
    if top is None:
        logger.debug(f"{extractor.tag}: no on-site hit for {book_title!r}")
        return result

    result.page_url = top.url
    page = await gateway.fetch_page(top.url)
    page_text = page.text if page is not None and page.ok else ""
    if not page_text:
        page_text = top.text

    candidates = extractor.extract(page_text)
    if not candidates and page_text != top.text:
        candidates = extractor.extract(top.text)

    result.names = [c.text for c in candidates]
    result.pub_year = extractor.extract_pub_year(page_text)
    return result


# --- Life dates ---

def _first_year(fragment: Optional[str]) -> Optional[int]:
    if not fragment: return None
    m = re.search(r"\b(1\d{3}|20\d{2})\b", fragment)
    return int(m.group(1)) if m else None


_LIFESPAN = re.compile(r"\(([^()]*?\b(1\d{3}|20\d{2}))\s*[–—-]\s*([^()]*?\b(1\d{3}|20\d{2}))[^()]*\)")
_BORN = re.compile(r"\([^()]*?\bborn\b([^()]*)\)", re.IGNORECASE)


class LifeDateExtractor:
    site = "en.wikipedia.org"

    def extract(self, page_text: str) -> LifeDates:
        soup = parse_html(page_text)
        birth = _first_year(node_text(soup.select_one(".bday")))
        death = _first_year(node_text(soup.select_one(".dday")))

        if birth is None:
            birth = _first_year(node_text(infobox_cell(soup, "Born")))
        if death is None:
            death = _first_year(node_text(infobox_cell(soup, "Died")))

        if birth is None and death is None:
            birth, death = self._lead_parenthetical(soup)

        current_year = datetime.now().year
        if birth is not None and birth > current_year: birth = None
        if death is not None and (death > current_year or (birth is not None and death < birth)): death = None
        return LifeDates(birth_year=birth, death_year=death)

    @staticmethod
    def _lead_parenthetical(soup: BeautifulSoup) -> Tuple[Optional[int], Optional[int]]:
        for text in lead_paragraphs(soup):
            span = _LIFESPAN.search(text)
            if span:
                return int(span.group(2)), int(span.group(4))
            born = _BORN.search(text)
            if born:
                return _first_year(born.group(1)), None
        return None, None


async def fetch_life_dates(author: str, gateway: WebGateway, extractor: Optional[LifeDateExtractor] = None) -> LifeDates:
    extractor = extractor or LifeDateExtractor()
    try:
        hits = await gateway.search(f'"{author}"', site=extractor.site)
    except SearchError as e:
        logger.warning(f"Life-date search failed for {author!r}: {e}")
        return LifeDates()

    author_tokens = tokens(author)
    bio_hit = next((h for h in hits
                    if host_of(h.url).endswith(extractor.site)
                    and contains_all(tokens(clean_title_like(h.title)), author_tokens)), None)
    if bio_hit is None:
        return LifeDates()

    page = await gateway.fetch_page(bio_hit.url)
    if page is None or not page.ok:
        return LifeDates(biography_url=bio_hit.url)

    dates = extractor.extract(page.text)
    dates.biography_url = bio_hit.url
    return dates
