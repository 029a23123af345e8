"""Evidence extraction shared by the prompt builders.

Scraped LinkedIn payloads come as a list of dataset items; the profile is
the first item. Posts come either as the posts dataset itself or under
``recentPosts`` of the profile.
"""

import json
from typing import Any, Dict, List, Optional

POST_TEXT_LIMIT = 240
CLAIM_VALUE_LIMIT = 800


def profile_root(payload: Any) -> Dict[str, Any]:
    if isinstance(payload, list):
        payload = payload[0] if payload else {}
    return payload if isinstance(payload, dict) else {}


def basic_info(root: Dict[str, Any]) -> Dict[str, Any]:
    return root.get("basic_info") or root.get("basicInfo") or root.get("basic") or {}


def profile_summary(payload: Any) -> Dict[str, Any]:
    """The identifying fields every prompt shows about the person."""
    root = profile_root(payload)
    basic = basic_info(root)
    experience = root.get("experience") or root.get("positions") or []
    return {
        "profileUrl": root.get("profileUrl") or basic.get("profile_url") or root.get("url"),
        "profileUrn": root.get("profileUrn") or basic.get("urn") or root.get("urn"),
        "fullName": basic.get("fullname") or basic.get("full_name") or root.get("fullName") or root.get("name"),
        "headline": basic.get("headline") or root.get("headline"),
        "about": basic.get("about") or root.get("about") or root.get("summary"),
        "experienceCount": len(experience) if isinstance(experience, list) else 0,
    }


def _post_text(post: Dict[str, Any]) -> str:
    text = post.get("text") or post.get("content") or ""
    return text if isinstance(text, str) else ""


def _post_created_at(post: Dict[str, Any]) -> Optional[str]:
    posted_at = post.get("posted_at")
    if isinstance(posted_at, dict):
        return posted_at.get("date") or posted_at.get("timestamp")
    return post.get("createdAt") or posted_at


def map_post(post: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "postUrl": post.get("postUrl") or post.get("url") or post.get("post_url"),
        "text": _post_text(post),
        "createdAt": _post_created_at(post),
    }


def extract_posts(posts_payload: Any) -> List[Dict[str, Any]]:
    if isinstance(posts_payload, dict):
        posts_payload = posts_payload.get("recentPosts") or posts_payload.get("posts") or []
    if not isinstance(posts_payload, list):
        return []
    return [map_post(post) for post in posts_payload if isinstance(post, dict)]


def extract_reposts(profile_payload: Any) -> List[Dict[str, Any]]:
    reposts = profile_root(profile_payload).get("recentReposts") or []
    if not isinstance(reposts, list):
        return []
    return [map_post(post) for post in reposts if isinstance(post, dict)]


def format_posts(posts: List[Dict[str, Any]], limit: int, empty: str) -> str:
    if not posts:
        return empty
    lines = []
    for idx, post in enumerate(posts[:limit], start=1):
        text = (post.get("text") or "")[:POST_TEXT_LIMIT]
        lines.append(f"{idx}. {post.get('createdAt') or 'unknown'} | {post.get('postUrl') or 'no-url'} | {text}")
    return "\n".join(lines)


def format_claims(claims: List[Dict[str, Any]]) -> str:
    if not claims:
        return "No claims provided"
    lines = []
    for idx, claim in enumerate(claims, start=1):
        value = json.dumps(claim.get("value"), ensure_ascii=False, default=str)[:CLAIM_VALUE_LIMIT]
        lines.append(f"{idx}. {claim.get('claimType')} | {value}")
    return "\n".join(lines)
