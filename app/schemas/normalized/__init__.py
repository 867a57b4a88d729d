from .resume import EducationEntry, ExperienceEntry, NormalizedResume, PersonalInfo, SkillSet

__all__ = [
    "PersonalInfo",
    "ExperienceEntry",
    "EducationEntry",
    "SkillSet",
    "NormalizedResume",
]
