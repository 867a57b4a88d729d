from __future__ import annotations

import asyncio
import logging
import os
from datetime import datetime, timezone
from typing import Awaitable, Protocol

from pydantic import ValidationError

from app.db.store import ApplicationStore, DuplicateSubmissionError, StoreError
from app.integrations.resume_parser import ParsingFailedError
from app.integrations.storage import StoredObject, UploadFailedError
from app.normalize.normalize_resume import normalize_parser_payload
from app.schemas.applications import ApplicationErrorBody, ApplicationResult, Principal, ResumeRecord, ScoreVerdict
from app.schemas.jobs import JobPosting
from app.schemas.normalized import NormalizedResume
from app.services.notification_service import (
    CandidateAck,
    HRAlert,
    NotificationResult,
    hr_score_threshold,
)

logger = logging.getLogger(__name__)


class ApplicationError(RuntimeError):
    kind = "validation"
    status_code = 400
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_body(self) -> ApplicationErrorBody:
        return ApplicationErrorBody(kind=self.kind, message=self.message, retryable=self.retryable)


class JobNotFoundError(ApplicationError):
    status_code = 404


class JobNotAcceptingError(ApplicationError):
    status_code = 400


class DuplicateApplicationError(ApplicationError):
    status_code = 409


class UploadFailure(ApplicationError):
    kind = "upload"
    status_code = 502
    retryable = True


class ParsingFailure(ApplicationError):
    kind = "parsing"
    status_code = 502
    retryable = True


class PersistenceFailure(ApplicationError):
    kind = "persistence"
    status_code = 503
    retryable = True


class ObjectStore(Protocol):
    async def store(self, local_path: str) -> StoredObject: ...


class ResumeParser(Protocol):
    async def parse(self, retrieval_url: str) -> NormalizedResume: ...


class Scorer(Protocol):
    async def score(self, resume: NormalizedResume, job_description: str) -> ScoreVerdict: ...


class Notifier(Protocol):
    async def notify_hr(self, alert: HRAlert) -> NotificationResult: ...

    async def notify_candidate(self, ack: CandidateAck) -> NotificationResult: ...


def _remove_local_file(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        return
    except OSError as exc:
        logger.warning("temp_file_cleanup_failed path=%s: %s", path, exc)


def _restore_resume(record: ResumeRecord) -> NormalizedResume:
    try:
        return NormalizedResume.model_validate(record.parsed_data)
    except ValidationError:
        return normalize_parser_payload(record.parsed_data)


class ApplicationOrchestrator:
    """Runs one application submission through upload, parse, score and notify."""

    def __init__(
        self,
        store: ApplicationStore,
        object_store: ObjectStore,
        parser: ResumeParser,
        scorer: Scorer,
        notifier: Notifier,
        *,
        hr_threshold: int | None = None,
    ):
        self._store = store
        self._object_store = object_store
        self._parser = parser
        self._scorer = scorer
        self._notifier = notifier
        self._hr_threshold = hr_threshold

    @property
    def hr_threshold(self) -> int:
        return self._hr_threshold if self._hr_threshold is not None else hr_score_threshold()

    @staticmethod
    def _stage(job_id: str, stage: str) -> None:
        logger.info("application_stage job_id=%s stage=%s", job_id, stage)

    async def submit_application(
        self, job_id: str, principal: Principal, local_file_path: str
    ) -> ApplicationResult:
        try:
            return await self._run(job_id, principal, local_file_path)
        except ApplicationError as exc:
            logger.warning(
                "application_failed job_id=%s candidate=%s kind=%s: %s",
                job_id,
                principal.id,
                exc.kind,
                exc.message,
            )
            raise
        finally:
            self._stage(job_id, "CleaningUp")
            _remove_local_file(local_file_path)

    def _lookup(self, job_id: str, candidate_id: str) -> tuple[JobPosting | None, ResumeRecord | None, bool]:
        job = self._store.get_job_by_id(job_id)
        existing = self._store.find_submission(candidate_id, job_id) if job else None
        scored = self._store.get_score_for_resume(existing.id) if existing else None
        return job, existing, scored is not None

    async def _validate(self, job_id: str, principal: Principal) -> tuple[JobPosting, ResumeRecord | None]:
        self._stage(job_id, "Validating")
        try:
            job, existing, scored = await asyncio.to_thread(self._lookup, job_id, principal.id)
        except StoreError as exc:
            raise PersistenceFailure(str(exc)) from exc

        if job is None:
            raise JobNotFoundError("Job not found")
        if not job.accepts_applications:
            raise JobNotAcceptingError("This job is no longer accepting applications")
        if scored:
            raise DuplicateApplicationError("You have already applied for this job")
        return job, existing

    async def _upload_and_parse(self, job_id: str, local_file_path: str) -> tuple[StoredObject, NormalizedResume]:
        self._stage(job_id, "Uploading")
        try:
            stored = await self._object_store.store(local_file_path)
        except UploadFailedError as exc:
            raise UploadFailure(f"Failed to upload resume: {exc}") from exc

        self._stage(job_id, "Parsing")
        try:
            resume = await self._parser.parse(stored.retrieval_url)
        except ParsingFailedError as exc:
            raise ParsingFailure(f"Failed to parse resume: {exc}") from exc
        return stored, resume

    async def _persist_resume(
        self, job_id: str, principal: Principal, stored: StoredObject, resume: NormalizedResume
    ) -> ResumeRecord:
        self._stage(job_id, "PersistingResume")
        try:
            return await asyncio.to_thread(
                self._store.insert_resume,
                job_id=job_id,
                candidate_user_id=principal.id,
                resume_url=stored.retrieval_url,
                provider_id=stored.provider_id,
                parsed_data=resume.model_dump(),
            )
        except DuplicateSubmissionError as exc:
            raise DuplicateApplicationError("You have already applied for this job") from exc
        except StoreError as exc:
            raise PersistenceFailure(str(exc)) from exc

    async def _guarded(self, kind: str, send: Awaitable[NotificationResult]) -> NotificationResult:
        try:
            return await send
        except Exception as exc:  # noqa: BLE001 - Notifying never fails the application
            logger.warning("notification_error kind=%s: %s", kind, exc)
            return NotificationResult(sent=False, reason=str(exc) or exc.__class__.__name__)

    async def _notify(self, job: JobPosting, principal: Principal, resume_url: str, verdict: ScoreVerdict) -> bool:
        self._stage(job.job_id, "Notifying")
        email_sent = False
        if verdict.match_score >= self.hr_threshold:
            hr_result = await self._guarded(
                "hr",
                self._notifier.notify_hr(
                    HRAlert(
                        hr_email=job.hr_email,
                        candidate_name=principal.name,
                        candidate_email=principal.email,
                        job_id=job.job_id,
                        job_title=job.title,
                        match_score=verdict.match_score,
                        resume_url=resume_url,
                        key_highlights=list(verdict.key_highlights),
                    )
                ),
            )
            email_sent = hr_result.sent
        await self._guarded(
            "candidate",
            self._notifier.notify_candidate(
                CandidateAck(
                    candidate_email=principal.email,
                    candidate_name=principal.name,
                    job_title=job.title,
                    company_name=job.company_name or "the company",
                )
            ),
        )
        return email_sent

    async def _run(self, job_id: str, principal: Principal, local_file_path: str) -> ApplicationResult:
        job, existing = await self._validate(job_id, principal)

        if existing is not None:
            logger.info(
                "application_resume_unscored resume_id=%s job_id=%s candidate=%s",
                existing.id,
                job_id,
                principal.id,
            )
            record = existing
            resume = _restore_resume(existing)
        else:
            stored, resume = await self._upload_and_parse(job_id, local_file_path)
            record = await self._persist_resume(job_id, principal, stored, resume)

        self._stage(job_id, "Scoring")
        verdict = await self._scorer.score(resume, job.description)

        self._stage(job_id, "PersistingScore")
        try:
            score = await asyncio.to_thread(
                self._store.insert_score, resume_id=record.id, job_id=job.job_id, verdict=verdict
            )
        except DuplicateSubmissionError as exc:
            raise DuplicateApplicationError("You have already applied for this job") from exc
        except StoreError as exc:
            raise PersistenceFailure(str(exc)) from exc

        email_sent = await self._notify(job, principal, record.resume_url, verdict)
        try:
            await asyncio.to_thread(self._store.update_score_notified_flag, score.id, email_sent)
        except StoreError as exc:
            logger.warning("notified_flag_update_failed score_id=%s: %s", score.id, exc)

        logger.info(
            "application_done application_id=%s job_id=%s match_score=%s email_sent=%s",
            score.id,
            job.job_id,
            verdict.match_score,
            email_sent,
        )
        return ApplicationResult(
            application_id=score.id,
            resume_id=record.id,
            job_id=job.job_id,
            job_title=job.title,
            match_score=verdict.match_score,
            shortlist_probability=verdict.shortlist_probability,
            salary_range=verdict.salary_range,
            missing_skills=verdict.missing_skills,
            strong_skills=verdict.strong_skills,
            recommendation=verdict.recommendation,
            key_highlights=verdict.key_highlights,
            areas_of_concern=verdict.areas_of_concern,
            email_sent=email_sent,
            resume_url=record.resume_url,
            applied_at=datetime.now(timezone.utc),
        )
