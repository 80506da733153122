import os
from pathlib import Path
from typing import List, Optional
from dotenv import load_dotenv
from pydantic import BaseModel, Field

env_path = Path(__file__).parent / ".env"
load_dotenv(dotenv_path=env_path)

DEFAULT_USER_AGENT = "AuthorWebsite/1.0 (+https://example.com)"
GOOGLE_CSE_URL = "https://www.googleapis.com/customsearch/v1"


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None: return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_first(*names: str) -> str:
    for name in names:
        value = os.getenv(name)
        if value: return value.strip()
    return ""


class Settings(BaseModel):
    """
    Process configuration. Everything the resolver needs from the
    environment lives here so request handlers never touch os.environ.
    """
    cse_key: str = ""
    cse_id: str = ""
    auth_secrets: List[str] = Field(default_factory=list)
    skip_auth: bool = False
    redis_url: Optional[str] = None
    cache_ttl_seconds: int = 24 * 60 * 60
    fetch_timeout_seconds: float = 5.5
    search_timeout_seconds: float = 7.0
    fetch_concurrency: int = 4
    default_min_site_confidence: float = 0.55
    strict_host_matching: bool = False
    enrich_html: bool = True
    resolve_upstream_url: Optional[str] = None
    cors_allow_origins: List[str] = Field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    user_agent: str = DEFAULT_USER_AGENT

    @property
    def search_enabled(self) -> bool:
        return bool(self.cse_key and self.cse_id)


def load_settings() -> Settings:
    secrets = [s.strip() for s in os.getenv("AUTHOR_UPDATES_SECRET", "").split(",") if s.strip()]
    origins = [o.strip() for o in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",") if o.strip()]

    return Settings(
        cse_key=_env_first("GOOGLE_CSE_KEY", "CSE_KEY"),
        cse_id=_env_first("GOOGLE_CSE_ID", "GOOGLE_CSE_CX", "CSE_ID"),
        auth_secrets=secrets,
        skip_auth=_env_flag("SKIP_AUTH"),
        redis_url=os.getenv("REDIS_URL") or None,
        cache_ttl_seconds=int(os.getenv("CACHE_TTL_SECONDS", 24 * 60 * 60)),
        fetch_timeout_seconds=float(os.getenv("FETCH_TIMEOUT_SECONDS", 5.5)),
        search_timeout_seconds=float(os.getenv("SEARCH_TIMEOUT_SECONDS", 7.0)),
        fetch_concurrency=max(1, int(os.getenv("FETCH_CONCURRENCY", 4))),
        default_min_site_confidence=float(os.getenv("DEFAULT_MIN_SITE_CONFIDENCE", 0.55)),
        strict_host_matching=_env_flag("STRICT_HOST_MATCHING"),
        enrich_html=_env_flag("ENRICH_HTML", default=True),
        resolve_upstream_url=os.getenv("RESOLVE_UPSTREAM_URL") or None,
        cors_allow_origins=origins or ["*"],
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        user_agent=os.getenv("USER_AGENT", DEFAULT_USER_AGENT),
    )
