"""Company mapping helpers for prospect search items."""

import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional
from urllib.parse import urlparse

COMPANY_SIZE_RANGES = {
    "1-10": "1-10",
    "11-50": "11-50",
    "51-200": "51-200",
    "201-500": "201-500",
    "501-1000": "501-1000",
    "1001-5000": "1001-5000",
    "5001-10000": "5001-10000",
    "10001+": "10001+",
    "10001-plus": "10001+",
    "10000+": "10001+",
}

COMPANY_TYPES = {
    "public": "PUBLIC",
    "publiccompany": "PUBLIC",
    "private": "PRIVATE",
    "privatecompany": "PRIVATE",
    "privatelyheld": "PRIVATE",
    "nonprofit": "NONPROFIT",
    "government": "GOVERNMENT",
    "governmentagency": "GOVERNMENT",
    "educational": "EDUCATIONAL",
    "educationalinstitution": "EDUCATIONAL",
    "selfemployed": "SELF_EMPLOYED",
    "partnership": "PARTNERSHIP",
    "other": "OTHER",
}

_DOMAIN_FALLBACK = re.compile(r"(?:https?://)?(?:www\.)?([a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+)", re.IGNORECASE)


@dataclass
class MappedCompany:
    """Organization fields extracted from one prospect item."""
    name: str
    domain: Optional[str] = None
    website: Optional[str] = None
    industry: Optional[str] = None
    size_range: Optional[str] = None
    founded_year: Optional[int] = None
    type: Optional[str] = None
    inferred_revenue: Optional[str] = None
    total_funding_raised: Optional[str] = None
    linkedin_url: Optional[str] = None
    linkedin_company_id: Optional[str] = None
    linkedin_company_urn: Optional[str] = None
    location_display_name: Optional[str] = None


def map_company_size_range(size: Optional[str]) -> Optional[str]:
    if not size or not isinstance(size, str):
        return None
    return COMPANY_SIZE_RANGES.get(re.sub(r"\s+", "", size.strip().lower()))


def map_company_type(type_str: Optional[str]) -> Optional[str]:
    if not type_str or not isinstance(type_str, str):
        return None
    return COMPANY_TYPES.get(re.sub(r"[_\s-]+", "", type_str.strip().lower()))


def extract_domain(website: Optional[str]) -> Optional[str]:
    """Domain of a website URL without scheme, path or ``www.``.

    Example:
        extract_domain("https://www.example.com/about") -> "example.com"
    """
    if not website or not isinstance(website, str):
        return None

    url = website.strip()
    if "://" not in url:
        url = f"https://{url}"

    hostname = urlparse(url).hostname
    if hostname:
        hostname = hostname.lower()
        return hostname[4:] if hostname.startswith("www.") else hostname

    match = _DOMAIN_FALLBACK.search(website)
    return match.group(1).lower() if match else None


def build_linkedin_company_urn(company_id: Optional[Any]) -> Optional[str]:
    if company_id is None or company_id == "":
        return None
    company_id = str(company_id)
    if "urn:li:" in company_id:
        return company_id
    return f"urn:li:fsd_company:{company_id}"


def _parse_year(value: Any) -> Optional[int]:
    try:
        return int(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None


def map_company(item: Mapping[str, Any]) -> Optional[MappedCompany]:
    """Map a prospect search item to organization fields.

    Reads the flat ``job_company_*`` fields first, then ``enriched.profile``
    and ``enriched.preview.company``. Returns None when no company name is
    present.
    """
    enriched = item.get("enriched") or {}
    profile = enriched.get("profile") or {}
    preview_company = (enriched.get("preview") or {}).get("company") or {}

    def pick(field: str, preview_field: Optional[str] = None) -> Any:
        value = item.get(f"job_company_{field}") or profile.get(f"job_company_{field}")
        if not value and preview_field:
            value = preview_company.get(preview_field)
        return value or None

    name = pick("name", "name")
    if not name or not isinstance(name, str) or not name.strip():
        return None

    website = pick("website", "domain")
    linkedin_company_id = pick("linkedin_id") or profile.get("job_company_id") or None
    if linkedin_company_id is not None:
        linkedin_company_id = str(linkedin_company_id)

    return MappedCompany(
        name=name.strip(),
        domain=extract_domain(website),
        website=website,
        industry=pick("industry", "industry"),
        size_range=map_company_size_range(pick("size", "size_range")),
        founded_year=_parse_year(pick("founded", "founded")),
        type=map_company_type(pick("type")),
        inferred_revenue=pick("inferred_revenue"),
        total_funding_raised=pick("total_funding_raised"),
        linkedin_url=item.get("job_company_linkedin_url") or None,
        linkedin_company_id=linkedin_company_id,
        linkedin_company_urn=build_linkedin_company_urn(linkedin_company_id),
        location_display_name=pick("location_name", "location"),
    )
