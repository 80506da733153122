import json
import re
import unicodedata
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urlsplit
from bs4 import BeautifulSoup, Tag

# --- Tokens & overlap ---

_NON_TOKEN_CHARS = re.compile(r"[^\w\s'-]|_")


def tokens(s: Optional[str]) -> List[str]:
    if not s: return []
    normalized = unicodedata.normalize("NFKC", s.lower())
    return [t for t in _NON_TOKEN_CHARS.sub(" ", normalized).split() if t]


def contains_all(hay: Iterable[str], needles: Iterable[str]) -> bool:
    hay_set = set(hay)
    return all(n in hay_set for n in needles)


def jaccard(a: Iterable[str], b: Iterable[str]) -> float:
    set_a, set_b = set(a), set(b)
    union = set_a | set_b
    if not union: return 0.0
    return len(set_a & set_b) / len(union)


def overlaps(hay: List[str], needles: List[str], threshold: float) -> bool:
    """Full containment of `needles` in `hay`, or Jaccard at/above `threshold`."""
    if not needles: return False
    return contains_all(hay, needles) or jaccard(hay, needles) >= threshold


def compact(s: Optional[str]) -> str:
    """Accent-folded, lower-cased, alphanumerics only: "Gabriel García Márquez" -> "gabrielgarciamarquez"."""
    if not s: return ""
    folded = unicodedata.normalize("NFKD", s)
    folded = "".join(ch for ch in folded if not unicodedata.combining(ch))
    return re.sub(r"[^a-z0-9]", "", folded.lower())


# --- URLs ---

def is_http_url(url: Optional[str]) -> bool:
    if not url: return False
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def host_of(url: Optional[str]) -> str:
    if not url: return ""
    try:
        return (urlsplit(url).hostname or "").lower()
    except ValueError:
        return ""


def origin_of(url: Optional[str]) -> Optional[str]:
    if not is_http_url(url): return None
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc.lower()}"


def bare_host(host: str) -> str:
    return host[4:] if host.startswith("www.") else host


def registrable_domain(host: str) -> str:
    labels = [label for label in host.lower().split(".") if label]
    return ".".join(labels[-2:])


# --- HTML & titles ---

def parse_html(page: Optional[str]) -> BeautifulSoup:
    return BeautifulSoup(page or "", "html.parser")


def node_text(node: Optional[Tag]) -> str:
    if node is None: return ""
    return re.sub(r"\s+", " ", node.get_text(" ", strip=True)).strip()


def page_title(soup: BeautifulSoup) -> str:
    return node_text(soup.title)


def json_ld_objects(soup: BeautifulSoup) -> List[Dict[str, Any]]:
    """Every JSON-LD object on the page, flattening top-level lists and @graph. Broken blocks are skipped."""
    objects: List[Dict[str, Any]] = []
    for script in soup.select('script[type="application/ld+json"]'):
        try:
            data = json.loads(script.string or "")
        except ValueError:
            continue
        pending = data if isinstance(data, list) else [data]
        while pending:
            item = pending.pop(0)
            if not isinstance(item, dict):
                continue
            objects.append(item)
            graph = item.get("@graph")
            if isinstance(graph, list):
                pending.extend(graph)
    return objects


def json_ld_types(obj: Dict[str, Any]) -> List[str]:
    raw = obj.get("@type")
    if isinstance(raw, str): return [raw]
    if isinstance(raw, list): return [t for t in raw if isinstance(t, str)]
    return []


SITE_SUFFIX = re.compile(
    r"\s*[-–:|]\s*(Wikipedia|Goodreads|Open\s*Library|Amazon(?:\.com)?|Barnes\s*&\s*Noble|"
    r"Penguin\s*Random\s*House|Macmillan|HarperCollins|Simon\s*&\s*Schuster|PRH)\s*$",
    re.IGNORECASE,
)


def clean_title_like(s: Optional[str]) -> str:
    """Strips site suffixes, pipes and quotes off a page or search title."""
    t = SITE_SUFFIX.sub("", s or "")
    t = re.sub(r"\s*\|.*$", "", t)
    t = re.sub(r"[“”\"]+", "", t)
    t = re.sub(r"\s{2,}", " ", t).strip()
    # ALL CAPS input reads badly in quoted queries
    if re.search(r"[A-Z]", t) and not re.search(r"[a-z]", t):
        t = t.lower()
    return t
