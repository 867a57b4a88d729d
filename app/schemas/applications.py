from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from app.schemas.jobs import JobPosting

UserRole = Literal["candidate", "hr_approved", "admin"]
ErrorKind = Literal["validation", "upload", "parsing", "persistence"]


class Principal(BaseModel):
    """Authenticated caller, resolved upstream of this service."""

    id: str = Field(min_length=1)
    email: str = ""
    display_name: str = ""
    role: UserRole = "candidate"

    @property
    def name(self) -> str:
        return self.display_name or self.email or self.id


class SalaryRange(BaseModel):
    min: int = 0
    max: int = 0


class ScoreVerdict(BaseModel):
    match_score: int = Field(ge=0, le=100)
    shortlist_probability: float = Field(ge=0.0, le=1.0)
    salary_range: SalaryRange = Field(default_factory=SalaryRange)
    missing_skills: list[str] = Field(default_factory=list)
    strong_skills: list[str] = Field(default_factory=list)
    recommendation: str = ""
    key_highlights: list[str] = Field(default_factory=list)
    areas_of_concern: list[str] = Field(default_factory=list)
    used_fallback: bool = False


class ResumeRecord(BaseModel):
    id: int
    job_id: str
    candidate_user_id: str
    resume_url: str
    provider_id: str = ""
    parsed_data: dict[str, Any] = Field(default_factory=dict)
    uploaded_at: datetime


class ScoreRecord(ScoreVerdict):
    id: int
    resume_id: int
    job_id: str
    email_sent: bool = False
    created_at: datetime


class ApplicationDetail(BaseModel):
    score: ScoreRecord
    resume: ResumeRecord
    job: JobPosting | None = None


class ApplicationListResponse(BaseModel):
    job_id: str | None = None
    count: int
    applications: list[ApplicationDetail] = Field(default_factory=list)


class ApplicationResult(BaseModel):
    application_id: int
    resume_id: int
    job_id: str
    job_title: str
    match_score: int
    shortlist_probability: float
    salary_range: SalaryRange
    missing_skills: list[str] = Field(default_factory=list)
    strong_skills: list[str] = Field(default_factory=list)
    recommendation: str = ""
    key_highlights: list[str] = Field(default_factory=list)
    areas_of_concern: list[str] = Field(default_factory=list)
    email_sent: bool = False
    resume_url: str
    applied_at: datetime


class ApplicationErrorBody(BaseModel):
    kind: ErrorKind
    message: str
    retryable: bool
