# (v1.2.0) - Consensus Author Inference + Tiered Website Picker + Name Scorer
import sys
import httpx
from typing import AsyncIterator, Optional
from fastapi import FastAPI, HTTPException, Request, Depends, Header, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from loguru import logger
from api_models import (
    AuthorSiteRequest,
    AuthorSiteResponse,
    BookResolveRequest,
    BookResolveResponse,
    ErrorResponse,
    HealthResponse,
    ServiceHealth,
    to_payload,
)
from resolver import clamp_confidence, normalize_author, resolve_author_site, resolve_book
from resolver_config import Settings, load_settings
from response_cache import ResponseCache, build_cache, make_cache_key
from search_gateway import SearchError, WebGateway

# --------------------------------------------------------------------
# 1. Configuration & Setup
# --------------------------------------------------------------------

SETTINGS = load_settings()

logger.remove()
logger.add(
    sys.stderr,
    serialize=True,
    enqueue=True,
    level=SETTINGS.log_level,
    format="{time} {level} {message}",
)

UPSTREAM_PATH = "/api/book-author-website"
AUTH_HEADER = "X-Auth"
ERROR_RESPONSES = {code: {"model": ErrorResponse} for code in (400, 401, 500, 502)}

limiter = Limiter(key_func=get_remote_address, storage_uri=SETTINGS.redis_url or "memory://", default_limits=["100/minute"])

app = FastAPI(
    title="Author Website Resolver",
    description="Infers a book's author from reference-source consensus and picks the author's most likely official website.",
    version="1.2.0"
)

app.state.limiter = limiter
app.state.upstream_transport = None
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(
    CORSMiddleware,
    allow_origins=SETTINGS.cors_allow_origins,
    allow_methods=["POST", "OPTIONS"],
    allow_headers=["Content-Type", AUTH_HEADER],
)

cache: ResponseCache = build_cache(SETTINGS.redis_url)


# --------------------------------------------------------------------
# 2. Dependencies
# --------------------------------------------------------------------

def get_settings() -> Settings:
    return SETTINGS


def get_cache() -> ResponseCache:
    return cache


async def get_gateway(settings: Settings = Depends(get_settings)) -> AsyncIterator[WebGateway]:
    async with WebGateway(settings) as gateway:
        yield gateway


async def require_auth(x_auth: Optional[str] = Header(None), settings: Settings = Depends(get_settings)):
    if settings.skip_auth: return True
    if not settings.auth_secrets:
        raise HTTPException(status_code=500, detail="server_misconfigured: missing AUTHOR_UPDATES_SECRET")
    if not x_auth or x_auth.strip() not in settings.auth_secrets:
        raise HTTPException(status_code=401, detail="unauthorized")
    return True


def _cacheable(payload: dict) -> dict:
    """Cached payloads never carry debug diagnostics."""
    return {k: v for k, v in payload.items() if k != "_diag"}


def _search_headers(response: Response, use_search: bool, settings: Settings) -> None:
    response.headers["x-use-search"] = str(use_search).lower()
    response.headers["x-cse-id-present"] = str(bool(settings.cse_id)).lower()
    response.headers["x-cse-key-present"] = str(bool(settings.cse_key)).lower()


# --------------------------------------------------------------------
# 3. API Endpoints
# --------------------------------------------------------------------

@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def get_health(response: Response, settings: Settings = Depends(get_settings), response_cache: ResponseCache = Depends(get_cache)):
    cache_ok = await response_cache.ping()
    services = [
        ServiceHealth(name=f"cache:{response_cache.backend}", status="ok" if cache_ok else "error"),
        ServiceHealth(
            name="google_cse",
            status="ok" if settings.search_enabled else "disabled",
            detail=None if settings.search_enabled else "GOOGLE_CSE_KEY / GOOGLE_CSE_ID not set.",
        ),
    ]
    if not cache_ok:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(status="error", search_enabled=settings.search_enabled, services=services)
    return HealthResponse(status="ok", search_enabled=settings.search_enabled, services=services)


@app.get("/")
async def read_root(request: Request): return {"message": "Author Website Resolver v1.2.0 is running!"}


@app.post(
    "/api/book-author-website",
    response_model=BookResolveResponse,
    response_model_exclude_unset=True,
    responses=ERROR_RESPONSES,
    tags=["Resolver"],
)
@limiter.limit("60/minute")
async def book_author_website(
    request: Request,
    response: Response,
    body: BookResolveRequest,
    authorized: bool = Depends(require_auth),
    settings: Settings = Depends(get_settings),
    response_cache: ResponseCache = Depends(get_cache),
    gateway: WebGateway = Depends(get_gateway),
):
    title = (body.book_title or "").strip()
    if not title:
        raise HTTPException(status_code=400, detail="missing_book_title")
    body.book_title = title

    use_search = body.include_search and settings.search_enabled
    _search_headers(response, use_search, settings)

    cache_key = make_cache_key("book", {
        "book_title": title,
        "use_search": use_search,
        "allow_estate_sites": body.allow_estate_sites,
        "exclude_publisher_sites": body.exclude_publisher_sites,
        "strict": settings.strict_host_matching,
    })
    if not body.debug:
        cached = await response_cache.get(cache_key)
        if cached:
            response.headers["x-cache"] = "HIT"
            return cached

    try:
        result = await resolve_book(body, gateway, settings)
    except SearchError as e:
        logger.error(f"Upstream search outage resolving {title!r}: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="upstream_search_failed")

    payload = to_payload(result)
    await response_cache.set(cache_key, _cacheable(payload), settings.cache_ttl_seconds)
    response.headers["x-cache"] = "MISS"
    return payload


@app.post(
    "/api/author-updates",
    response_model=AuthorSiteResponse,
    response_model_exclude_unset=True,
    responses=ERROR_RESPONSES,
    tags=["Resolver"],
)
@limiter.limit("60/minute")
async def author_updates(
    request: Request,
    response: Response,
    body: AuthorSiteRequest,
    authorized: bool = Depends(require_auth),
    settings: Settings = Depends(get_settings),
    response_cache: ResponseCache = Depends(get_cache),
    gateway: WebGateway = Depends(get_gateway),
):
    author = normalize_author(body.author_name)
    if not author:
        raise HTTPException(status_code=400, detail="author_name required")
    body.author_name = author

    use_search = body.include_search and settings.search_enabled
    _search_headers(response, use_search, settings)

    cache_key = make_cache_key("author", {
        "author": author,
        "book_title": body.book_title or "",
        "min_site_confidence": clamp_confidence(body.min_site_confidence, settings.default_min_site_confidence),
        "use_search": use_search,
        "unsafe_disable_domain_filters": body.unsafe_disable_domain_filters,
    })
    if not body.debug:
        cached = await response_cache.get(cache_key)
        if cached:
            response.headers["x-cache"] = "HIT"
            return cached

    try:
        result = await resolve_author_site(body, gateway, settings)
    except SearchError as e:
        logger.error(f"Upstream search outage resolving site for {author!r}: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="upstream_search_failed")

    payload = to_payload(result)
    await response_cache.set(cache_key, _cacheable(payload), settings.cache_ttl_seconds)
    response.headers["x-cache"] = "MISS"
    return payload


@app.post("/api/resolve", responses=ERROR_RESPONSES, tags=["Resolver"])
@limiter.limit("60/minute")
async def resolve_proxy(request: Request, settings: Settings = Depends(get_settings)):
    """Public entry point: forwards the body to the protected resolver with the shared secret attached."""
    if not settings.auth_secrets:
        raise HTTPException(status_code=500, detail="Missing AUTHOR_UPDATES_SECRET env var")

    base = settings.resolve_upstream_url or str(request.base_url)
    url = base.rstrip("/") + UPSTREAM_PATH
    raw_body = await request.body()

    try:
        async with httpx.AsyncClient(transport=request.app.state.upstream_transport) as client:
            upstream = await client.post(
                url,
                content=raw_body or b"{}",
                headers={"Content-Type": "application/json", AUTH_HEADER: settings.auth_secrets[0]},
                timeout=settings.search_timeout_seconds * 4,
            )
    except httpx.HTTPError as e:
        logger.error(f"Resolver proxy could not reach {url}: {e!r}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="upstream_unreachable")

    content_type = upstream.headers.get("content-type", "")
    if "application/json" in content_type:
        return JSONResponse(status_code=upstream.status_code, content=upstream.json())
    return JSONResponse(status_code=upstream.status_code, content={"raw": upstream.text})
