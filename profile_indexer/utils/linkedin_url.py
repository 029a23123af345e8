"""LinkedIn profile URL normalization.

People are deduplicated on the normalized profile URL, so every writer that
stores or looks up a profile URL goes through normalize_linkedin_url.
"""

import re
from typing import Optional

from profile_indexer.core.exceptions import ValidationError

PROFILE_URL_PATTERN = re.compile(r"^https://linkedin\.com/in/[a-z0-9_-]+$")


def normalize_linkedin_url(url: Optional[str]) -> str:
    """Normalize a LinkedIn profile URL to https://linkedin.com/in/<slug>.

    Raises:
        ValidationError: If the URL is empty or not a profile URL
    """
    if not url or not url.strip():
        raise ValidationError("LinkedIn URL is required")

    normalized = url.strip().lower()

    if not normalized.startswith("http://") and not normalized.startswith("https://"):
        normalized = f"https://{normalized}"
    if normalized.startswith("http://"):
        normalized = "https://" + normalized[len("http://"):]

    normalized = normalized.split("?", 1)[0]
    normalized = normalized.split("#", 1)[0]
    normalized = normalized.rstrip("/")
    normalized = normalized.replace("://www.linkedin.com", "://linkedin.com", 1)

    if not PROFILE_URL_PATTERN.match(normalized):
        raise ValidationError(f"Invalid LinkedIn profile URL format: {url}")

    return normalized


def safe_normalize_linkedin_url(url: Optional[str]) -> Optional[str]:
    """Normalize, returning None instead of raising."""
    try:
        return normalize_linkedin_url(url)
    except ValidationError:
        return None


def extract_linkedin_username(url: Optional[str]) -> Optional[str]:
    normalized = safe_normalize_linkedin_url(url)
    if not normalized:
        return None
    return normalized.rsplit("/", 1)[-1]


def is_linkedin_profile_url(url: Optional[str]) -> bool:
    return bool(url) and "linkedin.com/in/" in url.lower()
