import html
import re
from typing import Optional, Set
from text_utils import tokens

# --- Vocabularies ---

NATIONALITY_WORDS = {
    "american", "british", "english", "scottish", "welsh", "irish", "canadian",
    "australian", "new zealand", "french", "german", "italian", "spanish",
    "portuguese", "dutch", "swedish", "norwegian", "danish", "finnish", "russian",
    "polish", "czech", "hungarian", "greek", "turkish", "israeli", "iranian",
    "indian", "pakistani", "chinese", "japanese", "korean", "nigerian",
    "kenyan", "south african", "mexican", "brazilian", "argentine", "chilean",
    "colombian", "cuban",
}

OCCUPATION_WORDS = {
    "author", "writer", "novelist", "poet", "journalist", "historian", "professor",
    "memoirist", "essayist", "playwright", "screenwriter", "illustrator", "editor",
    "translator", "philosopher", "scientist", "biographer", "columnist", "critic",
    "activist", "lecturer", "academic", "sir", "dame", "lord", "lady", "dr", "doctor",
    "prof", "mr", "mrs", "ms", "rev", "reverend",
}

CONNECTOR_WORDS = {
    "de", "da", "del", "della", "der", "di", "du", "la", "le", "van", "von",
    "den", "ter", "bin", "ibn", "al", "el", "dos", "das", "y",
}

STOP_WORDS = {
    "series", "press", "nation", "books", "book", "publishing", "publisher",
    "publishers", "edition", "editions", "novel", "novels", "review", "magazine",
    "times", "wikipedia", "goodreads", "library", "university", "house", "random",
    "penguin", "amazon", "company", "group", "media", "official", "audiobook",
    "paperback", "hardcover", "kindle", "summary", "volume", "trilogy", "collection",
    "literature", "fiction", "nonfiction", "memoir", "chapter", "story", "stories",
}

_DESCRIPTOR_WORDS = sorted(NATIONALITY_WORDS | OCCUPATION_WORDS, key=len, reverse=True)
_DESCRIPTOR_RE = re.compile(
    r"\b(?:" + "|".join(re.escape(w) for w in _DESCRIPTOR_WORDS) + r")\b\.?",
    re.IGNORECASE,
)
_ROLE_SUFFIX_RE = re.compile(
    r"\s*,\s*(?:Ph\.?D\.?|M\.?D\.?|Ed\.?D\.?|MBA|J\.?D\.?|Jr\.?|Sr\.?|Prof\.?|Professor|Editor|Ed\.|"
    r"Illustrator|Illustrated by|Translator|Foreword by|Preface by|Introduction by)\b.*$",
    re.IGNORECASE,
)
_LEAD_IN_RE = re.compile(r"^\s*(?:author|by|written by|writer|creator)\s*[:\-]?\s+", re.IGNORECASE)
_COAUTHOR_RE = re.compile(r"\s+(?:and|with|&)\s+.*$", re.IGNORECASE)
_NAME_TOKEN_RE = re.compile(r"^[^\W\d_](?:[^\W\d_]|['’.\-])*$")


def sanitize_name(raw: Optional[str]) -> str:
    """
    Cleans an extracted name fragment: asides, role suffixes, nationality and
    occupation descriptors and stray punctuation all go. May return "".
    """
    if not raw: return ""
    s = html.unescape(raw)
    s = re.sub(r"\([^)]*\)|\[[^\]]*\]|\{[^}]*\}", " ", s)
    s = _ROLE_SUFFIX_RE.sub("", s)
    s = _LEAD_IN_RE.sub("", s)
    s = _COAUTHOR_RE.sub("", s)
    s = _DESCRIPTOR_RE.sub(" ", s)
    s = re.sub(r"[–—]", " ", s)
    s = re.sub(r"[^\w\s'’.\-]|_|\d", " ", s)
    s = re.sub(r"(?<!\b\w)\.", " ", s)  # keep initials like "J." only
    s = re.sub(r"\s+", " ", s).strip(" -'’")
    return s


def _is_capitalized_word(token: str) -> bool:
    return bool(_NAME_TOKEN_RE.match(token)) and token[0].isupper()


def looks_like_person_name(name: str, book_title: Optional[str] = None) -> bool:
    parts = name.split()
    if not 2 <= len(parts) <= 4: return False

    title_words: Set[str] = set(tokens(book_title)) - CONNECTOR_WORDS
    for part in parts:
        lowered = part.lower().rstrip(".")
        if lowered in CONNECTOR_WORDS:
            continue
        if not _is_capitalized_word(part): return False
        if lowered in STOP_WORDS or lowered in title_words: return False
    return True


def clean_person_name(raw: Optional[str], book_title: Optional[str] = None) -> Optional[str]:
    name = sanitize_name(raw)
    if name and looks_like_person_name(name, book_title):
        return name
    return None
