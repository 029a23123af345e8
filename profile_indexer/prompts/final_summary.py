from typing import Any, Dict, List, Tuple

from profile_indexer.prompts.evidence import format_claims, format_posts

FINAL_SUMMARY_SYSTEM_PROMPT = """You are an analyst writing a structured summary of a B2B lead from profile evidence and extracted claims.
Respond with a single JSON object and nothing else."""

FINAL_SUMMARY_SECTIONS = (
    "decisionMakerBrand",
    "revenueSignal",
    "linkedinActivity",
    "competitorMentions",
    "hiringSignals",
    "topicThemes",
    "toneSignals",
    "colleagueNetwork",
    "externalSocials",
    "eventAttendance",
    "lowQualityEngagement",
    "designHelpSignals",
    "overallSummary",
)


def build_final_summary_prompt(
    profile: Dict[str, Any],
    recent_posts: List[Dict[str, Any]],
    recent_reposts: List[Dict[str, Any]],
    claims: List[Dict[str, Any]],
    custom_prompt: str = None,
) -> Tuple[str, str]:
    sections = ",\n".join(f'    "{name}": "..."' for name in FINAL_SUMMARY_SECTIONS)
    extra = f"\nAdditional guidance:\n{custom_prompt}\n" if custom_prompt else ""
    user_prompt = f"""Summarize this lead. Treat the claims as primary signals; use profile and posts to fill gaps.
{extra}
Profile:
- URL: {profile.get('profileUrl') or 'unknown'}
- URN: {profile.get('profileUrn') or 'unknown'}
- Name: {profile.get('fullName') or 'unknown'}
- Headline: {profile.get('headline') or 'none'}
- About: {profile.get('about') or 'none'}

Recent posts:
{format_posts(recent_posts, 30, 'No posts provided')}

Recent reposts (secondary signal):
{format_posts(recent_reposts, 20, 'No reposts provided')}

Latest claims:
{format_claims(claims)}

Answer with JSON matching:
{{
  "finalSummary": {{
{sections},
    "confidence": 0.0-1.0
  }}
}}"""
    return FINAL_SUMMARY_SYSTEM_PROMPT, user_prompt
