from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

JobStatus = Literal["active", "closed", "draft"]


class JobPosting(BaseModel):
    id: int
    job_id: str
    title: str
    description: str
    requirements: str = ""
    location: str = ""
    salary_range: str = ""
    employment_type: str = ""
    company_name: str = ""
    hr_email: str = ""
    hr_name: str = ""
    status: JobStatus = "active"
    created_by: str | None = None
    created_at: datetime
    updated_at: datetime

    @property
    def accepts_applications(self) -> bool:
        return self.status == "active"


class JobCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1, max_length=120000)
    requirements: str = Field(default="", max_length=120000)
    location: str = Field(default="", max_length=255)
    salary_range: str = Field(default="", max_length=255)
    employment_type: str = Field(default="", max_length=100)
    company_name: str = Field(default="", max_length=255)
    status: JobStatus = "active"


class JobUpdateRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, min_length=1, max_length=120000)
    requirements: str | None = Field(default=None, max_length=120000)
    location: str | None = Field(default=None, max_length=255)
    salary_range: str | None = Field(default=None, max_length=255)
    employment_type: str | None = Field(default=None, max_length=100)
    company_name: str | None = Field(default=None, max_length=255)
    status: JobStatus | None = None


class JobListResponse(BaseModel):
    count: int
    jobs: list[JobPosting] = Field(default_factory=list)
