from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile, status

from app.api.v1.jobs import ensure_job_owner, get_job_or_404
from app.core.lifespan import Services, get_services
from app.core.rate_limit import rate_limit
from app.core.security import get_principal, require_role
from app.core.uploads import UploadRejectedError, stage_upload
from app.schemas.applications import ApplicationDetail, ApplicationListResponse, ApplicationResult, Principal
from app.services.application_service import ApplicationError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/jobs/{job_id}/apply",
    response_model=ApplicationResult,
    status_code=status.HTTP_201_CREATED,
)
@rate_limit()
async def apply_to_job(
    request: Request,
    job_id: str,
    resume: UploadFile = File(...),
    principal: Principal = Depends(require_role("candidate")),
    services: Services = Depends(get_services),
):
    try:
        local_path = await stage_upload(resume, upload_dir=services.upload_dir)
    except UploadRejectedError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc

    try:
        return await services.orchestrator.submit_application(job_id, principal, local_path)
    except ApplicationError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.to_body().model_dump()) from exc


@router.get("/jobs/{job_id}/applications", response_model=ApplicationListResponse)
def list_job_applications(
    job_id: str,
    min_score: int | None = Query(default=None, ge=0, le=100),
    email_sent: bool | None = Query(default=None),
    principal: Principal = Depends(require_role("hr_approved", "admin")),
    services: Services = Depends(get_services),
):
    ensure_job_owner(get_job_or_404(services, job_id), principal)
    applications = services.store.list_applications_for_job(job_id, min_score=min_score, email_sent=email_sent)
    return ApplicationListResponse(job_id=job_id, count=len(applications), applications=applications)


@router.get("/jobs/{job_id}/top-candidates", response_model=ApplicationListResponse)
def top_candidates(
    job_id: str,
    limit: int = Query(default=10, ge=1, le=100),
    principal: Principal = Depends(require_role("hr_approved", "admin")),
    services: Services = Depends(get_services),
):
    ensure_job_owner(get_job_or_404(services, job_id), principal)
    applications = services.store.top_candidates(job_id, limit=limit)
    return ApplicationListResponse(job_id=job_id, count=len(applications), applications=applications)


@router.get("/applications/me", response_model=ApplicationListResponse)
def my_applications(
    principal: Principal = Depends(get_principal),
    services: Services = Depends(get_services),
):
    applications = services.store.applications_for_candidate(principal.id)
    return ApplicationListResponse(count=len(applications), applications=applications)


def _get_application_or_404(services: Services, application_id: int) -> ApplicationDetail:
    detail = services.store.get_application(application_id)
    if detail is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Application not found")
    return detail


@router.get("/applications/{application_id}", response_model=ApplicationDetail)
def get_application(
    application_id: int,
    principal: Principal = Depends(get_principal),
    services: Services = Depends(get_services),
):
    detail = _get_application_or_404(services, application_id)
    if principal.role == "candidate":
        if detail.resume.candidate_user_id != principal.id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    elif principal.role == "hr_approved":
        if detail.job is None:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
        ensure_job_owner(detail.job, principal)
    return detail


@router.delete("/applications/{application_id}")
def delete_application(
    application_id: int,
    principal: Principal = Depends(require_role("admin")),
    services: Services = Depends(get_services),
):
    detail = _get_application_or_404(services, application_id)
    services.store.delete_resume(detail.resume.id)
    logger.info("application_deleted application_id=%s by=%s", application_id, principal.id)
    return {"status": "deleted", "application_id": application_id}
