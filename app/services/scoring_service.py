from __future__ import annotations

import json
import logging
import math
import re
import time
from typing import Any, Iterable

from app.ai.types import AIClient, ChatMessage
from app.core.scoring import get_scoring_value
from app.normalize.normalize_resume import calculate_experience_years, extract_skills
from app.schemas.applications import SalaryRange, ScoreVerdict
from app.schemas.normalized import NormalizedResume

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*\n?")
_LEADING_INT_RE = re.compile(r"^\s*[-+]?\d+")
_LEADING_FLOAT_RE = re.compile(r"^\s*[-+]?(?:\d+\.?\d*|\.\d+)")

_DEFAULT_VOCABULARY = (
    "javascript",
    "python",
    "java",
    "react",
    "node.js",
    "sql",
    "aws",
    "docker",
    "kubernetes",
    "git",
    "agile",
    "rest api",
    "mongodb",
)

SCORING_PROMPT_TEMPLATE = """You are an expert ATS (Applicant Tracking System) scoring engine. Analyze the following resume against the job description and provide a detailed scoring analysis.

**Job Description:**
{job_description}

**Resume Summary:**
Name: {name}
Total Experience: {experience}
Skills: {skills}
Education: {education}
Work History: {work_history}

**Task:**
Analyze the resume and provide a JSON response with the following structure:
{{
  "match_score": <integer 0-100>,
  "shortlist_probability": <decimal 0.00-1.00>,
  "salary_range": {{
    "min": <integer>,
    "max": <integer>
  }},
  "missing_skills": [<array of strings>],
  "strong_skills": [<array of strings>],
  "recommendation": "<string: detailed recommendation>",
  "key_highlights": [<array of strings>],
  "areas_of_concern": [<array of strings>]
}}

**Scoring Criteria:**
- match_score: Overall fit (0-100)
- shortlist_probability: Likelihood of shortlisting (0.00-1.00)
- salary_range: Estimated salary based on experience and skills
- missing_skills: Skills mentioned in job description but missing from resume
- strong_skills: Skills from resume that strongly match job requirements
- recommendation: Brief recommendation for hiring decision
- key_highlights: Top 3-5 strengths
- areas_of_concern: Potential weaknesses or gaps

Respond ONLY with valid JSON. Do not include any explanation outside the JSON structure."""


class ScoringResponseError(ValueError):
    pass


def build_scoring_prompt(resume: NormalizedResume, job_description: str) -> str:
    years = calculate_experience_years(resume)
    education = [
        {"degree": edu.degree, "institution": edu.institution, "graduation_date": edu.graduation_date}
        for edu in resume.education
    ]
    work_history = [
        {"title": exp.title, "company": exp.company, "duration": exp.duration}
        for exp in resume.experience
    ]
    return SCORING_PROMPT_TEMPLATE.format(
        job_description=job_description,
        name=resume.personal_info.name or "Unknown",
        experience=f"{years:g} years" if years else "Not specified",
        skills=", ".join(extract_skills(resume)),
        education=json.dumps(education, ensure_ascii=False),
        work_history=json.dumps(work_history, ensure_ascii=False),
    )


def strip_code_fences(text: str) -> str:
    return _FENCE_RE.sub("", text or "").replace("```", "").strip()


def _balanced_object_span(text: str, start: int) -> str | None:
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return None


def extract_json_object(text: str) -> dict[str, Any]:
    """Pull the verdict object out of free-form model output.

    Tries balanced ``{...}`` spans in order of their opening brace, then the
    greedy span from the first ``{`` to the last ``}``.
    """
    cleaned = strip_code_fences(text)
    if not cleaned:
        raise ScoringResponseError("No text content in LLM response")

    candidates: list[str] = []
    start = cleaned.find("{")
    while start >= 0:
        balanced = _balanced_object_span(cleaned, start)
        if balanced and balanced not in candidates:
            candidates.append(balanced)
        start = cleaned.find("{", start + 1)
    first, last = cleaned.find("{"), cleaned.rfind("}")
    if first >= 0 and last > first and cleaned[first : last + 1] not in candidates:
        candidates.append(cleaned[first : last + 1])

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(parsed, dict):
            return parsed
    raise ScoringResponseError("No valid JSON object found in LLM response")


def _to_int(value: Any) -> int:
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return 0
        return int(value)
    match = _LEADING_INT_RE.match(str(value))
    return int(match.group(0)) if match else 0


def _to_float(value: Any) -> float:
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else 0.0
    match = _LEADING_FLOAT_RE.match(str(value))
    return float(match.group(0)) if match else 0.0


def _to_str(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    if value is None or isinstance(value, (dict, list)):
        return ""
    return str(value)


def _to_str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [text for text in (_to_str(item) for item in value) if text]


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def coerce_verdict(parsed: dict[str, Any]) -> ScoreVerdict:
    salary = parsed.get("salary_range") if isinstance(parsed.get("salary_range"), dict) else {}
    salary_min = max(0, _to_int(salary.get("min")))
    salary_max = max(0, _to_int(salary.get("max")))
    if salary_max < salary_min:
        salary_min, salary_max = salary_max, salary_min
    return ScoreVerdict(
        match_score=int(_clamp(_to_int(parsed.get("match_score")), 0, 100)),
        shortlist_probability=round(_clamp(_to_float(parsed.get("shortlist_probability")), 0.0, 1.0), 2),
        salary_range=SalaryRange(min=salary_min, max=salary_max),
        missing_skills=_to_str_list(parsed.get("missing_skills")),
        strong_skills=_to_str_list(parsed.get("strong_skills")),
        recommendation=_to_str(parsed.get("recommendation")),
        key_highlights=_to_str_list(parsed.get("key_highlights")),
        areas_of_concern=_to_str_list(parsed.get("areas_of_concern")),
        used_fallback=False,
    )


def _flatten_text(value: Any) -> Iterable[str]:
    if isinstance(value, dict):
        for key, item in value.items():
            yield str(key)
            yield from _flatten_text(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from _flatten_text(item)
    elif value is not None and not isinstance(value, bool):
        yield str(value)


def _mentions(text: str, skill: str) -> bool:
    pattern = rf"(?<![a-z0-9]){re.escape(skill)}(?![a-z0-9])"
    return re.search(pattern, text) is not None


_DEFAULT_SALARY_MIN = 60000
_DEFAULT_SALARY_MAX = 100000
_DEFAULT_MAX_LISTED_SKILLS = 5
_DEFAULT_RECOMMENDATION = "Fallback scoring used - manual review recommended"
_DEFAULT_HIGHLIGHTS = ("Automated scoring unavailable",)
_DEFAULT_CONCERNS = ("LLM scoring service unavailable",)


def _fallback_value(key: str, default: Any = None) -> Any:
    try:
        value = get_scoring_value(f"fallback.{key}", default)
    except (RuntimeError, OSError) as exc:
        logger.warning("scoring_config_unavailable key=fallback.%s: %s", key, exc)
        return default
    return default if value is None else value


def _fallback_list(key: str, default: Iterable[str]) -> list[str]:
    items = _to_str_list(_fallback_value(key))
    return items or list(default)


def _fallback_salary() -> SalaryRange:
    configured = _fallback_value("salary_range")
    if not isinstance(configured, dict):
        return SalaryRange(min=_DEFAULT_SALARY_MIN, max=_DEFAULT_SALARY_MAX)
    low = max(0, _to_int(configured.get("min", _DEFAULT_SALARY_MIN)))
    high = max(0, _to_int(configured.get("max", _DEFAULT_SALARY_MAX)))
    return SalaryRange(min=min(low, high), max=max(low, high))


def fallback_score(resume: NormalizedResume, job_description: str) -> ScoreVerdict:
    """Deterministic keyword-overlap verdict used when the LLM is unavailable.

    Tunables come from the ``fallback`` block of the scoring config; a missing
    or malformed config falls back to the module defaults.
    """
    vocabulary = [skill.lower() for skill in _fallback_list("skill_vocabulary", _DEFAULT_VOCABULARY)]
    resume_text = "\n".join(_flatten_text(resume.model_dump())).lower()
    job_text = (job_description or "").lower()

    required = [skill for skill in vocabulary if _mentions(job_text, skill)]
    strong = [skill for skill in required if _mentions(resume_text, skill)]
    missing = [skill for skill in required if skill not in strong]

    ratio = len(strong) / max(len(required), 1)
    match_score = int(_clamp(math.floor(ratio * 100 + 0.5), 0, 100))
    listed = _to_int(_fallback_value("max_listed_skills")) or _DEFAULT_MAX_LISTED_SKILLS
    listed = max(listed, 0)

    return ScoreVerdict(
        match_score=match_score,
        shortlist_probability=round(match_score / 100, 2),
        salary_range=_fallback_salary(),
        missing_skills=missing[:listed],
        strong_skills=strong[:listed],
        recommendation=_to_str(_fallback_value("recommendation")) or _DEFAULT_RECOMMENDATION,
        key_highlights=_fallback_list("key_highlights", _DEFAULT_HIGHLIGHTS),
        areas_of_concern=_fallback_list("areas_of_concern", _DEFAULT_CONCERNS),
        used_fallback=True,
    )


class ScoringService:
    """Scores a resume against a job description. Never raises."""

    def __init__(self, ai_client: AIClient | None, *, json_mode: bool = False):
        self._ai = ai_client
        self._json_mode = json_mode

    async def _llm_verdict(self, resume: NormalizedResume, job_description: str) -> ScoreVerdict:
        if self._ai is None:
            raise ScoringResponseError("Scoring LLM is not configured")
        prompt = build_scoring_prompt(resume, job_description)
        text = await self._ai.complete([ChatMessage(role="user", content=prompt)], json_mode=self._json_mode)
        return coerce_verdict(extract_json_object(text))

    async def score(self, resume: NormalizedResume, job_description: str) -> ScoreVerdict:
        started = time.perf_counter()
        try:
            verdict = await self._llm_verdict(resume, job_description)
        except Exception as exc:  # noqa: BLE001 - deterministic fallback is expected
            logger.warning("scoring_llm_failed using_fallback=true: %s", exc)
            verdict = fallback_score(resume, job_description)
        logger.info(
            "scoring_done match_score=%s fallback=%s latency_ms=%d",
            verdict.match_score,
            verdict.used_fallback,
            int((time.perf_counter() - started) * 1000),
        )
        return verdict
