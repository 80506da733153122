import pytest

from viability import ViabilityReason, evaluate_viability

R = ViabilityReason


@pytest.mark.parametrize("birth, death, pub, estate, viable, reason", [
    (1899, 1961, 1952, False, False, R.DECEASED_PRE_WEB_ERA),
    (1899, 1961, 1952, True, False, R.DECEASED_PRE_WEB_ERA),
    (1920, 1999, None, False, False, R.DECEASED_EARLY_WEB_ERA),
    (1920, 1999, None, True, True, R.DECEASED_ESTATE_SITE_ALLOWED),
    (1931, 2019, 1987, False, False, R.DECEASED_ESTATE_SITES_NOT_ALLOWED),
    (1931, 2019, 1987, True, True, R.DECEASED_ESTATE_SITE_ALLOWED),
    (1986, None, 2018, False, True, R.LIKELY_LIVING_AUTHOR),
    (1986, None, 1850, False, True, R.LIKELY_LIVING_AUTHOR),
    (None, None, 1851, True, False, R.PUB_YEAR_PRE_1900),
    (None, None, 1925, True, True, R.PUB_YEAR_1900_1950_ESTATE_ALLOWED),
    (None, None, 1925, False, False, R.PUB_YEAR_1900_1950_ESTATE_NOT_ALLOWED),
    (None, None, 1970, False, True, R.PUB_YEAR_1950_1995_CAUTIOUS),
    (None, None, 1995, False, True, R.PUB_YEAR_RECENT_LIKELY_LIVING),
    (None, None, None, False, False, R.UNKNOWN),
    (None, None, None, True, False, R.UNKNOWN),
])
def test_decision_tree(birth, death, pub, estate, viable, reason):
    result = evaluate_viability(birth, death, pub, allow_estate_sites=estate, current_year=2026)
    assert result.viable is viable
    assert result.reason == reason


def test_death_year_boundaries():
    assert evaluate_viability(None, 1994, None, current_year=2026).reason == R.DECEASED_PRE_WEB_ERA
    assert evaluate_viability(None, 1995, None, current_year=2026).reason == R.DECEASED_EARLY_WEB_ERA
    assert evaluate_viability(None, 2005, None, current_year=2026).reason == R.DECEASED_ESTATE_SITES_NOT_ALLOWED


def test_implausible_birth_year_falls_through_to_pub_year():
    result = evaluate_viability(1850, None, 2010, current_year=2026)
    assert result.reason == R.PUB_YEAR_RECENT_LIKELY_LIVING
    assert evaluate_viability(2030, None, None, current_year=2026).reason == R.UNKNOWN


def test_reason_serializes_as_code():
    assert evaluate_viability(None, None, None).model_dump(mode="json")["reason"] == "unknown_life_and_pubyear_not_confident"
