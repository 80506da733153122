from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple
from pydantic import BaseModel, Field
from name_rules import clean_person_name
from source_extractors import SOURCE_GOODREADS, SOURCE_OPEN_LIBRARY, SOURCE_WIKIPEDIA, NameCandidate

SOURCE_ORDER = [SOURCE_WIKIPEDIA, SOURCE_OPEN_LIBRARY, SOURCE_GOODREADS]

# Keyed on the exact set of agreeing sources; never summed or blended.
CONSENSUS_CONFIDENCE: Dict[FrozenSet[str], float] = {
    frozenset({SOURCE_WIKIPEDIA, SOURCE_OPEN_LIBRARY, SOURCE_GOODREADS}): 0.98,
    frozenset({SOURCE_WIKIPEDIA, SOURCE_OPEN_LIBRARY}): 0.95,
    frozenset({SOURCE_WIKIPEDIA, SOURCE_GOODREADS}): 0.90,
    frozenset({SOURCE_OPEN_LIBRARY, SOURCE_GOODREADS}): 0.85,
}
SINGLE_SOURCE_CONFIDENCE = 0.80


class AuthorPick(BaseModel):
    name: str
    confidence: float
    sources: List[str] = Field(default_factory=list)


def consensus_confidence(sources: FrozenSet[str]) -> float:
    if not sources: return 0.0
    if len(sources) == 1: return SINGLE_SOURCE_CONFIDENCE
    return CONSENSUS_CONFIDENCE.get(sources, SINGLE_SOURCE_CONFIDENCE)


def group_candidates(source_names: Sequence[Tuple[str, Sequence[str]]], book_title: str) -> List[NameCandidate]:
    """Validated names grouped by exact cleaned text, in discovery order."""
    groups: Dict[str, NameCandidate] = {}
    for tag, names in source_names:
        for raw in names:
            name = clean_person_name(raw, book_title)
            if not name:
                continue
            if name not in groups:
                groups[name] = NameCandidate(text=name)
            groups[name].sources.add(tag)
    return list(groups.values())


def resolve_author(source_names: Sequence[Tuple[str, Sequence[str]]], book_title: str) -> Optional[AuthorPick]:
    best: Optional[NameCandidate] = None
    best_confidence = 0.0

    for candidate in group_candidates(source_names, book_title):
        confidence = consensus_confidence(frozenset(candidate.sources))
        # strict ">" keeps the first group that reached the max
        if confidence > best_confidence:
            best, best_confidence = candidate, confidence

    if best is None: return None

    ordered = [s for s in SOURCE_ORDER if s in best.sources]
    ordered += sorted(s for s in best.sources if s not in SOURCE_ORDER)
    return AuthorPick(name=best.text, confidence=best_confidence, sources=ordered)
