"""
Unit tests for country name handling.
"""

import pytest

from admitrack.core.countries import (
    clean_country_name,
    countries_match,
    dedupe_country_profiles,
    find_country_profile,
    normalize_country,
    normalize_country_key,
)
from admitrack.core.models import CountryProfile


class TestNormalization:
    """Test country normalization."""

    @pytest.mark.parametrize("name", ["UK", "uk", "U.K.", "U.K", "united  kingdom", " United Kingdom "])
    def test_uk_aliases(self, name):
        assert normalize_country(name) == "UNITED KINGDOM"

    @pytest.mark.parametrize("name", ["USA", "US", "U.S.", "u.s.a.", "United States of America"])
    def test_us_aliases(self, name):
        assert normalize_country(name) == "UNITED STATES"

    def test_other_countries_collapse_whitespace(self):
        assert normalize_country("  new   zealand ") == "NEW ZEALAND"

    def test_empty_input(self):
        assert normalize_country(None) == ""
        assert normalize_country("") == ""

    def test_clean_country_name(self):
        """Brackets and quotes left by list serialization are stripped."""
        assert clean_country_name('["Germany"]') == "Germany"
        assert clean_country_name(None) == ""

    def test_country_keys(self):
        assert normalize_country_key("United Kingdom") == "uk"
        assert normalize_country_key("U.S.A.") == "usa"
        assert normalize_country_key("Dubai") == "uae"
        assert normalize_country_key("Germany") == "germany"
        assert normalize_country_key("Narnia") == "narnia"
        assert normalize_country_key("") is None


class TestMatching:
    """Test country matching and profile lookup."""

    def test_countries_match(self):
        assert countries_match("UK", "United Kingdom")
        assert countries_match('["UK"]', "u.k.")
        assert not countries_match("UK", "Canada")
        assert not countries_match(None, None)

    def test_find_country_profile(self):
        profiles = [
            CountryProfile(country="Canada", current_phase="INTERVIEW"),
            CountryProfile(country="UK", current_phase="CAS_VISA"),
        ]

        assert find_country_profile(profiles, "United Kingdom").current_phase == "CAS_VISA"
        assert find_country_profile(profiles, "Canada").current_phase == "INTERVIEW"
        assert find_country_profile(profiles, "Germany") is None
        assert find_country_profile(profiles, None) is None

    def test_dedupe_country_profiles(self):
        profiles = [
            CountryProfile(country="UK", current_phase="INTERVIEW"),
            CountryProfile(country="United Kingdom", current_phase="CAS_VISA"),
            CountryProfile(country="Canada"),
        ]

        unique = dedupe_country_profiles(profiles)

        assert [p.country for p in unique] == ["UK", "Canada"]
