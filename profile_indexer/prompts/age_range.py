from typing import Any, Dict, List, Optional, Tuple

AGE_RANGE_SYSTEM_PROMPT = """Estimate a conservative age range for a person from career and education evidence only.
Never state an exact age. The range may be at most 12 years wide.
Prefer dated evidence (graduation years, first role start). Without dates, reason from degree level,
seniority and career length. With too little evidence return null bounds and LOW confidence.

Respond with a single JSON object:
{
  "minAge": number | null,
  "maxAge": number | null,
  "confidence": "LOW" | "MED" | "HIGH",
  "evidence": ["fact used"],
  "notes": "short reasoning"
}"""


def build_age_range_prompt(
    education: List[Dict[str, Any]],
    career: List[Dict[str, Any]],
    current_year: int,
    captured_year: Optional[int] = None,
) -> Tuple[str, str]:
    if education:
        education_lines = "\n".join(
            f"{idx}. {edu.get('school') or 'Unknown'}"
            f"{' - ' + edu['degree'] if edu.get('degree') else ''}"
            f"{' in ' + edu['field'] if edu.get('field') else ''}"
            f"{' (graduated ~' + str(edu['endYear']) + ')' if edu.get('endYear') else ' (graduation year unknown)'}"
            for idx, edu in enumerate(education, start=1)
        )
    else:
        education_lines = "No education history provided"

    if career:
        career_lines = "\n".join(
            f"{idx}. {role.get('title') or 'Unknown'} at {role.get('company') or 'Unknown'}"
            f"{' (started ' + str(role['startYear']) + ')' if role.get('startYear') else ' (start unknown)'}"
            f"{' [current]' if role.get('isCurrent') else ''}"
            for idx, role in enumerate(career, start=1)
        )
    else:
        career_lines = "No career history provided"

    captured = f"\nProfile captured: {captured_year}" if captured_year else ""
    user_prompt = f"""Current year: {current_year}{captured}

Education:
{education_lines}

Career:
{career_lines}"""
    return AGE_RANGE_SYSTEM_PROMPT, user_prompt
