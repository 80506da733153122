from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel

WEB_ERA_START = 1995
ESTATE_ERA_START = 2005
MAX_PLAUSIBLE_AGE = 120


class ViabilityReason(str, Enum):
    DECEASED_PRE_WEB_ERA = "deceased_pre_web_era"
    DECEASED_EARLY_WEB_ERA = "deceased_early_web_era"
    DECEASED_ESTATE_SITE_ALLOWED = "deceased_estate_site_allowed"
    DECEASED_ESTATE_SITES_NOT_ALLOWED = "deceased_estate_sites_not_allowed"
    LIKELY_LIVING_AUTHOR = "likely_living_author"
    PUB_YEAR_PRE_1900 = "pub_year_pre_1900"
    PUB_YEAR_1900_1950_ESTATE_ALLOWED = "pub_year_1900_1950_estate_allowed"
    PUB_YEAR_1900_1950_ESTATE_NOT_ALLOWED = "pub_year_1900_1950_estate_not_allowed"
    PUB_YEAR_1950_1995_CAUTIOUS = "pub_year_1950_1995_cautious"
    PUB_YEAR_RECENT_LIKELY_LIVING = "pub_year_recent_likely_living"
    UNKNOWN = "unknown_life_and_pubyear_not_confident"
    # Flow-level outcomes, decided before the tree runs
    AUTHOR_NOT_FOUND = "author_not_found"
    SEARCH_DISABLED = "search_disabled"


class Viability(BaseModel):
    viable: bool
    reason: ViabilityReason


def evaluate_viability(
    birth_year: Optional[int],
    death_year: Optional[int],
    pub_year: Optional[int],
    allow_estate_sites: bool = False,
    current_year: Optional[int] = None,
) -> Viability:
    """
    Decides whether the author is worth a website search.

    Strict precedence: death year, then birth year, then publication year,
    then "unknown". No blending between the branches.
    """
    year_now = current_year or datetime.now().year

    if death_year is not None:
        if death_year < WEB_ERA_START:
            return Viability(viable=False, reason=ViabilityReason.DECEASED_PRE_WEB_ERA)
        if death_year < ESTATE_ERA_START and not allow_estate_sites:
            return Viability(viable=False, reason=ViabilityReason.DECEASED_EARLY_WEB_ERA)
        if allow_estate_sites:
            return Viability(viable=True, reason=ViabilityReason.DECEASED_ESTATE_SITE_ALLOWED)
        return Viability(viable=False, reason=ViabilityReason.DECEASED_ESTATE_SITES_NOT_ALLOWED)

    if birth_year is not None:
        age = year_now - birth_year
        if 0 <= age < MAX_PLAUSIBLE_AGE:
            return Viability(viable=True, reason=ViabilityReason.LIKELY_LIVING_AUTHOR)
        # implausible age: fall through to publication year

    if pub_year is not None:
        if pub_year < 1900:
            return Viability(viable=False, reason=ViabilityReason.PUB_YEAR_PRE_1900)
        if pub_year < 1950:
            if allow_estate_sites:
                return Viability(viable=True, reason=ViabilityReason.PUB_YEAR_1900_1950_ESTATE_ALLOWED)
            return Viability(viable=False, reason=ViabilityReason.PUB_YEAR_1900_1950_ESTATE_NOT_ALLOWED)
        if pub_year < WEB_ERA_START:
            return Viability(viable=True, reason=ViabilityReason.PUB_YEAR_1950_1995_CAUTIOUS)
        return Viability(viable=True, reason=ViabilityReason.PUB_YEAR_RECENT_LIKELY_LIVING)

    return Viability(viable=False, reason=ViabilityReason.UNKNOWN)
