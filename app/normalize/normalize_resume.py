from __future__ import annotations

from typing import Any, Mapping

from app.schemas.normalized import EducationEntry, ExperienceEntry, NormalizedResume, PersonalInfo, SkillSet

from .utils import (
    as_mapping,
    as_mapping_list,
    as_str_list,
    dedupe,
    first_number,
    first_text,
)

_PERSONAL_BLOCK_KEYS = ("personal_info", "personalInfo", "contact", "contact_info")
_ENVELOPE_KEYS = ("data", "result", "resume")


def _unwrap_envelope(data: Mapping[str, Any]) -> Mapping[str, Any]:
    """Some parsers nest the resume under a single envelope key."""
    for key in _ENVELOPE_KEYS:
        inner = data.get(key)
        if isinstance(inner, Mapping) and not any(
            marker in data for marker in ("name", "full_name", "skills", "experience", *_PERSONAL_BLOCK_KEYS)
        ):
            return inner
    return data


def _personal_source(data: Mapping[str, Any]) -> dict[str, Any]:
    merged: dict[str, Any] = {}
    for key in _PERSONAL_BLOCK_KEYS:
        merged.update(as_mapping(data.get(key)))
    # Top-level fields win over nested blocks.
    merged.update({key: value for key, value in data.items() if value is not None and value != ""})
    return merged


def _normalize_personal_info(data: Mapping[str, Any]) -> PersonalInfo:
    source = _personal_source(data)
    social = as_mapping(source.get("social_links"))
    return PersonalInfo(
        name=first_text(source, "name", "full_name", "fullName"),
        email=first_text(source, "email", "email_address"),
        phone=first_text(source, "phone", "phone_number", "mobile"),
        location=first_text(source, "location", "address"),
        linkedin=first_text(source, "linkedin") or first_text(social, "linkedin"),
        portfolio=first_text(source, "portfolio", "website") or first_text(social, "portfolio", "website"),
    )


def _normalize_experience(entry: Mapping[str, Any]) -> ExperienceEntry:
    dates = as_mapping(entry.get("dates"))
    return ExperienceEntry(
        title=first_text(entry, "title", "position", "role"),
        company=first_text(entry, "company", "organization", "employer"),
        location=first_text(entry, "location"),
        start_date=first_text(entry, "start_date", "from", "startDate") or first_text(dates, "start", "from"),
        end_date=first_text(entry, "end_date", "to", "endDate") or first_text(dates, "end", "to"),
        description=first_text(entry, "description", "responsibilities"),
        duration=first_text(entry, "duration"),
    )


def _normalize_education(entry: Mapping[str, Any]) -> EducationEntry:
    return EducationEntry(
        degree=first_text(entry, "degree", "qualification"),
        institution=first_text(entry, "institution", "school", "university"),
        location=first_text(entry, "location"),
        graduation_date=first_text(entry, "graduation_date", "year", "graduationDate"),
        gpa=first_text(entry, "gpa"),
    )


def _normalize_skills(data: Mapping[str, Any]) -> SkillSet:
    raw = data.get("skills")
    if isinstance(raw, Mapping):
        technical = as_str_list(raw.get("technical"))
        soft = as_str_list(raw.get("soft"))
        listed = as_str_list(raw.get("all"))
    else:
        technical = []
        soft = []
        listed = as_str_list(raw)

    technical = technical or as_str_list(data.get("technical_skills"))
    soft = soft or as_str_list(data.get("soft_skills"))
    return SkillSet(
        technical=technical,
        soft=soft,
        all=dedupe([*listed, *technical, *soft]),
    )


def _experience_years(data: Mapping[str, Any], experience: list[ExperienceEntry]) -> float:
    for key in ("total_experience", "years_of_experience", "total_experience_years"):
        value = first_number(data.get(key))
        if value is not None:
            return value
    return calculate_experience_years_from_entries(experience)


def calculate_experience_years_from_entries(experience: list[ExperienceEntry]) -> float:
    # Entry durations are reported in months.
    total_months = 0.0
    for entry in experience:
        months = first_number(entry.duration)
        if months is not None:
            total_months += months
    return float(int(total_months // 12))


def normalize_parser_payload(payload: Mapping[str, Any]) -> NormalizedResume:
    """Map any known parser response variant onto the canonical resume shape."""
    raw = dict(as_mapping(payload))
    data = _unwrap_envelope(raw)
    experience = [_normalize_experience(entry) for entry in as_mapping_list(data.get("experience"))]
    education = [_normalize_education(entry) for entry in as_mapping_list(data.get("education"))]

    return NormalizedResume(
        personal_info=_normalize_personal_info(data),
        summary=first_text(data, "summary", "objective"),
        experience=experience,
        education=education,
        skills=_normalize_skills(data),
        certifications=as_str_list(data.get("certifications")),
        languages=as_str_list(data.get("languages")),
        total_experience_years=_experience_years(data, experience),
        raw_upstream_payload=raw,
    )


def extract_skills(resume: NormalizedResume) -> list[str]:
    return dedupe([*resume.skills.technical, *resume.skills.all])


def calculate_experience_years(resume: NormalizedResume) -> float:
    if resume.total_experience_years:
        return resume.total_experience_years
    return calculate_experience_years_from_entries(resume.experience)
