import pytest

from search_gateway import SearchHit
from site_scorer import (
    ScoringContext,
    WebHit,
    apply_rule,
    apply_step,
    custom_domain_rule,
    enrich_with_html,
    extract_html_signals,
    is_blocked_host,
    score_base_signals,
    score_candidates,
    signal_steps,
)
from tests.conftest import FakeGateway

CTX = ScoringContext.build("Tara Westover", "Educated")

SITE_HOME = """
<html><head><title>Tara Westover | Official Website</title>
<script type="application/ld+json">{"@context": "https://schema.org", "@type": "Person", "name": "Tara Westover"}</script>
</head><body><p>Educated, a memoir.</p><footer>&copy; 2024 Tara Westover</footer></body></html>
"""


def web_hit(url, title="", snippet=""):
    return WebHit.from_search(SearchHit(url=url, title=title, snippet=snippet))


def test_blocklist_is_substring_match():
    assert is_blocked_host("www.facebook.com")
    assert is_blocked_host("www.amazon.co.uk")
    assert not is_blocked_host("tarawestover.substack.com")


def test_apply_step_records_reason_and_respects_ceiling():
    h = web_hit("https://a.com").model_copy(update={"confidence": 0.9})
    stepped = apply_step(h, (0.2, "bonus"), ceiling=1.0)
    assert stepped.confidence == 1.0
    assert stepped.reasons == ("bonus",)
    assert h.reasons == ()
    assert apply_step(h, None) is h


def test_base_signals_for_vanity_domain():
    scored = score_base_signals(web_hit("https://tarawestover.com/", "Tara Westover", "Author of Educated"), CTX)
    assert scored.confidence == pytest.approx(0.80)
    assert scored.reasons == (
        "author_in_title_or_snippet",
        "book_in_title_or_snippet",
        "vanity_domain_match",
        "custom_domain_preferred",
    )


def test_base_signals_for_platform_host():
    scored = score_base_signals(web_hit("https://tarawestover.substack.com/", "Tara Westover"), CTX)
    assert scored.confidence == pytest.approx(0.60)
    assert scored.reasons[-1] == "platform_host"


def test_blocked_host_clamps_to_zero():
    scored = score_base_signals(web_hit("https://twitter.com/tara", "Tara Westover"), CTX)
    assert scored.confidence == 0.0
    assert scored.reasons[0] == "blocked_domain"


def test_extract_html_signals():
    signals = extract_html_signals(SITE_HOME, CTX)
    assert signals.title_tokens == ["tara", "westover", "official", "website"]
    assert signals.has_official_words
    assert signals.has_copyright_name
    assert signals.has_schema_person
    assert signals.book_mentioned

    steps = signal_steps(signals, CTX)
    assert [reason for _, reason in steps] == [
        "title_matches_author",
        "official_wording",
        "copyright_name_match",
        "schema_person_present",
        "book_mentioned_on_site",
    ]


def test_schema_person_only_from_json_ld_blocks():
    page = '<pre>{"@type": "Person", "name": "Tara Westover"}</pre><script>var t = {"@type": "Person"};</script>'
    assert not extract_html_signals(page, CTX).has_schema_person

    graph = '<script type="application/ld+json">{"@graph": [{"@type": ["Person"], "name": "Tara Westover"}]}</script>'
    assert extract_html_signals(graph, CTX).has_schema_person


def test_copyright_without_author_name():
    signals = extract_html_signals("<footer>© 2024 Acme Corp</footer>", CTX)
    assert not signals.has_copyright_name
    assert signal_steps(signals, CTX) == []


@pytest.mark.asyncio
async def test_enrich_with_html_caps_at_one():
    gateway = FakeGateway(pages={"https://tarawestover.com": SITE_HOME, "https://tarawestover.com/about": SITE_HOME})
    base = score_base_signals(web_hit("https://tarawestover.com/books", "Tara Westover", "Educated"), CTX)

    enriched = await enrich_with_html(base, CTX, gateway)
    assert enriched.confidence == 1.0
    assert "official_wording" in enriched.reasons
    assert set(gateway.fetched) == {"https://tarawestover.com", "https://tarawestover.com/about"}


@pytest.mark.asyncio
async def test_enrich_with_html_tolerates_failed_fetches():
    base = score_base_signals(web_hit("https://tarawestover.com/", "Tara Westover"), CTX)
    enriched = await enrich_with_html(base, CTX, FakeGateway())
    assert enriched == base


@pytest.mark.asyncio
async def test_score_candidates_orders_and_filters():
    hits = [
        SearchHit(url="https://www.facebook.com/tarawestover", title="Tara Westover | Facebook"),
        SearchHit(url="https://medium.com/@someone/educated-review", title="Review of Educated"),
        SearchHit(url="https://tarawestover.com/", title="Tara Westover", snippet="Author of Educated"),
        SearchHit(url="https://tarawestover.com/", title="duplicate"),
        SearchHit(url="javascript:void(0)", title="Tara Westover"),
    ]
    ranked = await score_candidates(hits, CTX, FakeGateway(), enrich=False)
    assert [h.url for h in ranked] == ["https://tarawestover.com/", "https://medium.com/@someone/educated-review"]

    unsafe_ctx = ScoringContext.build("Tara Westover", "Educated", unsafe_disable_domain_filters=True)
    unsafe = await score_candidates(hits, unsafe_ctx, FakeGateway(), enrich=False)
    assert "www.facebook.com" in [h.host for h in unsafe]


@pytest.mark.asyncio
async def test_score_candidates_equal_scores_keep_search_order():
    hits = [
        SearchHit(url="https://first.example/", title="Unrelated"),
        SearchHit(url="https://second.example/", title="Unrelated"),
    ]
    ranked = await score_candidates(hits, CTX, FakeGateway(), enrich=False)
    assert [h.url for h in ranked] == ["https://first.example/", "https://second.example/"]


def test_apply_rule_on_platform_host_adds_neutral_reason():
    h = web_hit("https://tarawestover.substack.com/")
    stepped = apply_rule(h, custom_domain_rule, CTX)
    assert stepped.confidence == 0.0
    assert stepped.reasons == ("platform_host",)
