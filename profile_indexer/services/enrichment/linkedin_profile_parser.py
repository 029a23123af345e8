"""Pure extraction of core-identity values from a scraped LinkedIn profile.

Scrapers disagree on field names (``basic_info`` vs ``basicInfo``,
``experience`` vs ``positions``, nested ``dateRange`` vs flat dates), so
every accessor walks a fixed list of fallbacks. Nothing here touches the
database; the enricher handler turns the returned values into claims.
"""

import re
from datetime import date
from typing import Any, Dict, List, Optional

from profile_indexer.core.constants import BOARD_POSITION_KEYWORDS, COUNTRY_CODE_TO_TIMEZONE
from profile_indexer.prompts.evidence import basic_info, profile_root
from profile_indexer.schemas.claims import (
    BoardPositionValue,
    CareerRoleValue,
    CertificationValue,
    EducationItemValue,
    LegalNameValue,
    LocationValue,
)
from profile_indexer.utils.clock import utcnow
from profile_indexer.utils.hashing import build_fingerprint

_YEAR_PATTERN = re.compile(r"\b(?:19|20)\d{2}\b")


def _dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _first_list(*candidates: Any) -> List[Dict[str, Any]]:
    for candidate in candidates:
        if candidate:
            if isinstance(candidate, list):
                return [item for item in candidate if isinstance(item, dict)]
            return []
    return []


def normalize_date(value: Any) -> Optional[str]:
    """``{year, month}`` -> ``YYYY-MM-01``, ``{year}`` -> ``YYYY-01-01``; strings pass through."""
    if not value:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        year = value.get("year")
        month = value.get("month")
        if year and month:
            return f"{year}-{int(month):02d}-01"
        if year:
            return f"{year}-01-01"
    return None


def extract_year(value: Any) -> Optional[int]:
    if not value:
        return None
    match = _YEAR_PATTERN.search(str(value))
    return int(match.group(0)) if match else None


def _to_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def duration_months(start_date: Optional[str], end_date: Optional[str], today: Optional[date] = None) -> Optional[int]:
    """Whole calendar months between two dates; an open end counts until today."""
    start = _to_date(start_date)
    if start is None:
        return None
    end = _to_date(end_date) or today or utcnow().date()
    return (end.year - start.year) * 12 + (end.month - start.month)


def extract_legal_name(payload: Any) -> Optional[LegalNameValue]:
    root = profile_root(payload)
    basic = basic_info(root)
    profile = _dict(root.get("profile"))

    first_name = basic.get("first_name") or basic.get("firstName") or root.get("firstName")
    last_name = basic.get("last_name") or basic.get("lastName") or root.get("lastName")

    root_full = None
    if root.get("firstName") and root.get("lastName"):
        root_full = f"{root['firstName']} {root['lastName']}"

    full_name = (
        basic.get("fullname")
        or basic.get("fullName")
        or basic.get("full_name")
        or root.get("fullName")
        or root.get("full_name")
        or root_full
        or root.get("name")
        or profile.get("fullName")
        or profile.get("name")
    )
    if not full_name and first_name and last_name:
        full_name = f"{first_name} {last_name}"
    if not full_name:
        return None

    return LegalNameValue(value=full_name, first_name=first_name or None, last_name=last_name or None)


def extract_location(payload: Any) -> Optional[LocationValue]:
    root = profile_root(payload)
    basic = basic_info(root)
    raw = (
        basic.get("location")
        or root.get("location")
        or _dict(root.get("geo")).get("full")
        or _dict(root.get("profile")).get("location")
    )
    if not raw:
        return None

    if isinstance(raw, str):
        parts = [part.strip() for part in raw.split(",")]
        if len(parts) >= 2:
            return LocationValue(full=raw, city=parts[0], country=parts[-1])
        return LocationValue(full=raw)

    if not isinstance(raw, dict):
        return None
    country_code = raw.get("country_code") or raw.get("countryCode") or None
    return LocationValue(
        full=raw.get("full") or None,
        city=raw.get("city") or None,
        country=raw.get("country") or None,
        country_code=country_code,
        timezone=COUNTRY_CODE_TO_TIMEZONE.get(country_code) if country_code else None,
    )


def education_list(payload: Any) -> List[Dict[str, Any]]:
    root = profile_root(payload)
    profile = _dict(root.get("profile"))
    return _first_list(
        root.get("education"),
        root.get("educations"),
        profile.get("educations"),
        profile.get("education"),
        root.get("education_section"),
    )


def experience_list(payload: Any) -> List[Dict[str, Any]]:
    root = profile_root(payload)
    profile = _dict(root.get("profile"))
    return _first_list(
        root.get("experience"),
        root.get("positions"),
        profile.get("positions"),
        profile.get("experience"),
        root.get("experience_section"),
    )


def certification_list(payload: Any) -> List[Dict[str, Any]]:
    root = profile_root(payload)
    profile = _dict(root.get("profile"))
    return _first_list(
        root.get("certifications"),
        root.get("licensesAndCertifications"),
        profile.get("certifications"),
    )


def normalize_education(edu: Dict[str, Any]) -> EducationItemValue:
    date_range = _dict(edu.get("dateRange"))
    school = edu.get("schoolName") or edu.get("school") or edu.get("institution") or ""
    degree = edu.get("degreeName") or edu.get("degree") or ""
    field = edu.get("fieldOfStudy") or edu.get("field") or ""
    start_year = _dict(date_range.get("start")).get("year") or edu.get("startYear") or extract_year(edu.get("startDate"))
    end_year = _dict(date_range.get("end")).get("year") or edu.get("endYear") or extract_year(edu.get("endDate"))

    return EducationItemValue(
        school=school,
        degree=degree,
        field=field,
        start_year=start_year or None,
        end_year=end_year or None,
        description=edu.get("description") or "",
        fingerprint=build_fingerprint([school, degree, field, start_year, end_year]),
    )


def normalize_career_role(exp: Dict[str, Any], today: Optional[date] = None) -> CareerRoleValue:
    date_range = _dict(exp.get("dateRange"))
    company = exp.get("companyName") or exp.get("company") or ""
    title = exp.get("title") or ""
    start_date = normalize_date(date_range.get("start") or exp.get("startDate"))
    end_date = normalize_date(date_range.get("end") or exp.get("endDate"))

    return CareerRoleValue(
        company=company,
        title=title,
        location=exp.get("location") or "",
        start_date=start_date,
        end_date=end_date,
        is_current=bool(not end_date or exp.get("isCurrent")),
        duration_months=duration_months(start_date, end_date, today),
        description=exp.get("description") or "",
        fingerprint=build_fingerprint([company, title, start_date, end_date or "present"]),
    )


def normalize_certification(cert: Dict[str, Any]) -> CertificationValue:
    date_range = _dict(cert.get("dateRange"))
    name = cert.get("name") or cert.get("certificationName") or ""
    issuer = cert.get("authority") or cert.get("issuer") or ""
    issue_date = normalize_date(date_range.get("start") or cert.get("date"))
    credential_id = cert.get("licenseNumber") or cert.get("credentialId") or ""

    return CertificationValue(
        name=name,
        issuer=issuer,
        issue_date=issue_date,
        expiration_date=normalize_date(date_range.get("end")),
        credential_id=credential_id,
        url=cert.get("url") or "",
        fingerprint=build_fingerprint([name, issuer, issue_date, credential_id]),
    )


def is_board_position(title: Optional[str]) -> bool:
    lowered = (title or "").lower()
    return any(keyword in lowered for keyword in BOARD_POSITION_KEYWORDS)


def board_position_from_role(role: CareerRoleValue) -> BoardPositionValue:
    return BoardPositionValue(
        organization=role.company,
        title=role.title,
        start_date=role.start_date,
        end_date=role.end_date,
        evidence_role_fingerprint=role.fingerprint,
    )


def board_position_group_key(board: BoardPositionValue) -> str:
    return build_fingerprint([board.organization, board.title, board.start_date])
