"""Location parsing and normalized-key helpers for prospect payloads."""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union

UNKNOWN_LOCATION_KEY = "unknown"


@dataclass
class ParsedLocation:
    """Location components ready for a Location upsert."""
    city: Optional[str]
    region: Optional[str]
    country: Optional[str]
    country_code: Optional[str]
    display_name: str
    normalized_key: str

    @property
    def is_unknown(self) -> bool:
        return self.normalized_key == UNKNOWN_LOCATION_KEY


def _clean(value: Optional[str]) -> Optional[str]:
    if not value or not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def build_normalized_key(location: Union[Mapping[str, Any], str, None]) -> str:
    """Build the dedup key for a location.

    Mappings produce ``country|region|city`` (lowercased, empty parts
    dropped); raw strings are lowercased as-is. Never returns an empty string.

    Example:
        build_normalized_key({"city": "Pune", "region": "Maharashtra", "country": "India"})
        -> "india|maharashtra|pune"
    """
    if location is None:
        return UNKNOWN_LOCATION_KEY
    if isinstance(location, str):
        return location.strip().lower() or UNKNOWN_LOCATION_KEY

    parts = [
        _clean(location.get("country")),
        _clean(location.get("region")),
        _clean(location.get("city")),
    ]
    key = "|".join(part.lower() for part in parts if part)
    return key or UNKNOWN_LOCATION_KEY


def build_display_name(location: Mapping[str, Any]) -> str:
    parts = [
        _clean(location.get("city")),
        _clean(location.get("region")),
        _clean(location.get("country")),
    ]
    return ", ".join(part for part in parts if part) or "Unknown"


def parse_location_string(location_str: Optional[str]) -> Dict[str, Optional[str]]:
    """Best-effort split of "City, Region, Country" strings.

    One part is treated as a country, two parts as city + country, three or
    more as city + region + the remaining parts joined as the country.
    """
    empty = {"city": None, "region": None, "country": None}
    if not location_str or not isinstance(location_str, str):
        return empty

    parts = [part.strip() for part in location_str.split(",") if part.strip()]
    if not parts:
        return empty
    if len(parts) == 1:
        return {"city": None, "region": None, "country": parts[0]}
    if len(parts) == 2:
        return {"city": parts[0], "region": None, "country": parts[1]}
    return {"city": parts[0], "region": parts[1], "country": ", ".join(parts[2:])}


def _to_parsed(components: Dict[str, Optional[str]], country_code: Optional[str] = None) -> ParsedLocation:
    return ParsedLocation(
        city=components.get("city"),
        region=components.get("region"),
        country=components.get("country"),
        country_code=country_code,
        display_name=build_display_name(components),
        normalized_key=build_normalized_key(components),
    )


def parse_prospect_location(item: Mapping[str, Any]) -> ParsedLocation:
    """Parse a person's location from a prospect search item.

    ``enriched.profile.location`` ({default, country, short}) wins over the
    top-level ``location_name``.
    """
    profile = ((item.get("enriched") or {}).get("profile") or {})
    enriched_location = profile.get("location")

    if isinstance(enriched_location, dict):
        components = parse_location_string(enriched_location.get("default") or "")
        country = _clean(enriched_location.get("country")) or components["country"]
        components["country"] = country
        return _to_parsed(components)

    return _to_parsed(parse_location_string(item.get("location_name") or ""))


def parse_company_location(item: Mapping[str, Any]) -> ParsedLocation:
    profile = ((item.get("enriched") or {}).get("profile") or {})
    location_name = item.get("job_company_location_name") or profile.get("job_company_location_name") or ""
    return _to_parsed(parse_location_string(location_name))
