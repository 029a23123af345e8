import pytest

from profile_indexer.core.exceptions import ValidationError
from profile_indexer.utils.linkedin_url import (
    extract_linkedin_username,
    is_linkedin_profile_url,
    normalize_linkedin_url,
    safe_normalize_linkedin_url,
)


class TestNormalizeLinkedinUrl:

    @pytest.mark.parametrize(
        "raw",
        [
            "https://www.linkedin.com/in/Ada-Lovelace/",
            "http://linkedin.com/in/ada-lovelace?trk=public",
            "www.linkedin.com/in/ada-lovelace#about",
            "  https://linkedin.com/in/ada-lovelace  ",
        ],
    )
    def test_variants_normalize_to_one_key(self, raw):
        assert normalize_linkedin_url(raw) == "https://linkedin.com/in/ada-lovelace"

    def test_company_url_is_rejected(self):
        with pytest.raises(ValidationError):
            normalize_linkedin_url("https://www.linkedin.com/company/acme")

    def test_empty_is_rejected(self):
        with pytest.raises(ValidationError):
            normalize_linkedin_url("   ")

    def test_safe_variant_returns_none(self):
        assert safe_normalize_linkedin_url("not a url") is None

    def test_extract_username(self):
        assert extract_linkedin_username("https://www.linkedin.com/in/ada-lovelace/") == "ada-lovelace"


def test_is_linkedin_profile_url():
    assert is_linkedin_profile_url("https://www.LinkedIn.com/in/ada-lovelace/")
    assert not is_linkedin_profile_url("https://linkedin.com/company/acme")
    assert not is_linkedin_profile_url(None)
