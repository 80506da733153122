from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field

# --------------------------------------------------------------------
# Requests
# --------------------------------------------------------------------

class BookResolveRequest(BaseModel):
    book_title: Optional[str] = None
    include_search: bool = True
    allow_estate_sites: bool = False
    exclude_publisher_sites: bool = True
    debug: bool = False


class AuthorSiteRequest(BaseModel):
    author_name: Optional[str] = None
    book_title: Optional[str] = None
    debug: bool = False
    min_site_confidence: Optional[float] = None
    unsafe_disable_domain_filters: bool = False
    include_search: bool = True


# --------------------------------------------------------------------
# Responses
# Serialized with exclude_unset: fields the resolver never set are absent,
# fields it set to None come out as null.
# --------------------------------------------------------------------

class LifeDatesPayload(BaseModel):
    birthYear: Optional[int] = None
    deathYear: Optional[int] = None


class BookResolveResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    book_title: str
    inferred_author: Optional[str] = None
    pub_year: Optional[int] = None
    life_dates: Optional[LifeDatesPayload] = None
    author_viable: bool = False
    viability_reason: str
    author_url: Optional[str] = None
    site_title: Optional[str] = None
    canonical_url: Optional[str] = None
    confidence: float = 0.0
    author_confidence: float = 0.0
    source: str = "web"
    diag: Optional[Dict[str, Any]] = Field(default=None, alias="_diag")


class AuthorSiteResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    author_name: str
    author_url: Optional[str] = None
    site_title: Optional[str] = None
    canonical_url: Optional[str] = None
    confidence: float = 0.0
    source: str = "web"
    diag: Optional[Dict[str, Any]] = Field(default=None, alias="_diag")


class ErrorResponse(BaseModel):
    detail: str


class ServiceHealth(BaseModel):
    name: str
    status: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    status: str
    search_enabled: bool
    services: List[ServiceHealth]


def to_payload(model: BaseModel) -> Dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True, exclude_unset=True)
