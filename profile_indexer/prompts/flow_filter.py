from typing import Any, Dict, List, Optional, Tuple

from profile_indexer.prompts.evidence import format_posts

FLOW_FILTER_SYSTEM_PROMPT = """You decide whether a professional profile passes a set of filter instructions.
Apply the instructions as written. Never filter on protected characteristics such as gender, race, religion,
ethnicity, nationality, sexual orientation, disability, pregnancy, age or health status; list any such
instruction as unsupported instead.
Respond with a single JSON object and nothing else."""

FLOW_FILTER_RESPONSE_SCHEMA = """{
  "shouldProceed": true | false,
  "reason": "short explanation",
  "confidence": 0.0-1.0,
  "unsupportedFilters": ["instruction that could not be applied"]
}"""


def build_flow_filter_prompt(
    profile: Dict[str, Any],
    recent_posts: List[Dict[str, Any]],
    recent_reposts: List[Dict[str, Any]],
    filter_instructions: str,
) -> Tuple[str, str]:
    """Build (system_prompt, user_prompt) for the filter gate."""
    user_prompt = f"""Decide whether this profile should continue to the enrichment and composer stages.

Filter instructions:
{filter_instructions}

Profile:
- URL: {profile.get('profileUrl') or 'unknown'}
- URN: {profile.get('profileUrn') or 'unknown'}
- Name: {profile.get('fullName') or 'unknown'}
- Headline: {profile.get('headline') or 'none'}
- About: {profile.get('about') or 'none'}
- Experience entries: {profile.get('experienceCount') or 0}

Recent posts:
{format_posts(recent_posts, 20, 'No posts provided')}

Recent reposts (secondary signal):
{format_posts(recent_reposts, 10, 'No reposts provided')}

Answer with JSON matching:
{FLOW_FILTER_RESPONSE_SCHEMA}

If only unsupported instructions remain, proceed and say so in the reason.
When evidence is missing, proceed unless the instructions explicitly require proof."""
    return FLOW_FILTER_SYSTEM_PROMPT, user_prompt


def build_flow_filter_retry_prompt(user_prompt: str, invalid_output: Optional[str]) -> str:
    """Corrective prompt embedding the previous unparseable answer."""
    return f"""{user_prompt}

Your previous answer was not valid JSON for the schema above:
{(invalid_output or '')[:2000]}

Reply again with only the JSON object."""
