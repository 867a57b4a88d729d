from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.core.lifespan import Services, get_services
from app.core.security import get_principal, require_role
from app.db.store import StoreError
from app.schemas.applications import Principal
from app.schemas.jobs import JobCreateRequest, JobListResponse, JobPosting, JobStatus, JobUpdateRequest

router = APIRouter()


def get_job_or_404(services: Services, job_id: str) -> JobPosting:
    job = services.store.get_job_by_id(job_id)
    if job is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    return job


def ensure_job_owner(job: JobPosting, principal: Principal) -> None:
    if principal.role == "admin":
        return
    if job.created_by != principal.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only manage your own job postings.",
        )


@router.post("/jobs", response_model=JobPosting, status_code=status.HTTP_201_CREATED)
def create_job(
    payload: JobCreateRequest,
    principal: Principal = Depends(require_role("hr_approved", "admin")),
    services: Services = Depends(get_services),
):
    if not principal.email:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="An HR contact email is required to post jobs.",
        )
    try:
        return services.store.create_job(
            **payload.model_dump(),
            hr_email=principal.email,
            hr_name=principal.name,
            created_by=principal.id,
        )
    except StoreError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc


@router.get("/jobs", response_model=JobListResponse)
def list_jobs(
    job_status: JobStatus | None = Query(default=None, alias="status"),
    principal: Principal = Depends(get_principal),
    services: Services = Depends(get_services),
):
    if principal.role == "candidate":
        job_status = "active"
    jobs = services.store.list_jobs(status=job_status)
    return JobListResponse(count=len(jobs), jobs=jobs)


@router.get("/jobs/{job_id}", response_model=JobPosting)
def get_job(
    job_id: str,
    principal: Principal = Depends(get_principal),
    services: Services = Depends(get_services),
):
    job = get_job_or_404(services, job_id)
    if principal.role == "candidate" and not job.accepts_applications:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    return job


@router.patch("/jobs/{job_id}", response_model=JobPosting)
def update_job(
    job_id: str,
    payload: JobUpdateRequest,
    principal: Principal = Depends(require_role("hr_approved", "admin")),
    services: Services = Depends(get_services),
):
    ensure_job_owner(get_job_or_404(services, job_id), principal)
    try:
        job = services.store.update_job(job_id, payload.model_dump(exclude_none=True))
    except StoreError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    if job is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    return job


@router.delete("/jobs/{job_id}")
def delete_job(
    job_id: str,
    principal: Principal = Depends(require_role("hr_approved", "admin")),
    services: Services = Depends(get_services),
):
    ensure_job_owner(get_job_or_404(services, job_id), principal)
    services.store.delete_job(job_id)
    return {"status": "deleted", "job_id": job_id}
