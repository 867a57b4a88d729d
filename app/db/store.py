from __future__ import annotations

import json
import logging
import os
import secrets
import sqlite3
import string
import threading
import time
from datetime import datetime, timezone
from typing import Any

from app.schemas.applications import ApplicationDetail, ResumeRecord, ScoreRecord, ScoreVerdict
from app.schemas.jobs import JobPosting

logger = logging.getLogger(__name__)

_JOB_ID_ALPHABET = string.ascii_uppercase + string.digits
_JOB_UPDATABLE_FIELDS = (
    "title",
    "description",
    "requirements",
    "location",
    "salary_range",
    "employment_type",
    "company_name",
    "status",
)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS jobs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        job_id TEXT UNIQUE NOT NULL,
        title TEXT NOT NULL,
        description TEXT NOT NULL,
        requirements TEXT NOT NULL DEFAULT '',
        location TEXT NOT NULL DEFAULT '',
        salary_range TEXT NOT NULL DEFAULT '',
        employment_type TEXT NOT NULL DEFAULT '',
        company_name TEXT NOT NULL DEFAULT '',
        hr_email TEXT NOT NULL DEFAULT '',
        hr_name TEXT NOT NULL DEFAULT '',
        status TEXT NOT NULL DEFAULT 'active' CHECK (status IN ('active', 'closed', 'draft')),
        created_by TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS resumes (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        job_id TEXT NOT NULL,
        candidate_user_id TEXT NOT NULL,
        resume_url TEXT NOT NULL,
        provider_id TEXT NOT NULL DEFAULT '',
        parsed_data_json TEXT NOT NULL,
        uploaded_at TEXT NOT NULL
    );
    """,
    """
    CREATE UNIQUE INDEX IF NOT EXISTS idx_resumes_unique_application
    ON resumes (candidate_user_id, job_id);
    """,
    """
    CREATE TABLE IF NOT EXISTS ats_scores (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        resume_id INTEGER NOT NULL UNIQUE REFERENCES resumes(id) ON DELETE CASCADE,
        job_id TEXT NOT NULL,
        match_score INTEGER NOT NULL CHECK (match_score >= 0 AND match_score <= 100),
        shortlist_probability REAL NOT NULL CHECK (shortlist_probability >= 0 AND shortlist_probability <= 1),
        salary_range_json TEXT NOT NULL,
        missing_skills_json TEXT NOT NULL,
        strong_skills_json TEXT NOT NULL,
        recommendation TEXT NOT NULL DEFAULT '',
        key_highlights_json TEXT NOT NULL,
        areas_of_concern_json TEXT NOT NULL,
        used_fallback INTEGER NOT NULL DEFAULT 0,
        email_sent INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL
    );
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_ats_scores_job_score
    ON ats_scores (job_id, match_score DESC);
    """,
)

_APPLICATION_SELECT = """
    SELECT
        s.id AS score_id, s.resume_id, s.job_id AS score_job_id, s.match_score,
        s.shortlist_probability, s.salary_range_json, s.missing_skills_json,
        s.strong_skills_json, s.recommendation, s.key_highlights_json,
        s.areas_of_concern_json, s.used_fallback, s.email_sent, s.created_at AS score_created_at,
        r.id AS r_id, r.job_id AS r_job_id, r.candidate_user_id, r.resume_url,
        r.provider_id, r.parsed_data_json, r.uploaded_at
    FROM ats_scores s
    JOIN resumes r ON r.id = s.resume_id
"""


class StoreError(RuntimeError):
    pass


class DuplicateSubmissionError(StoreError):
    """The (candidate, job) uniqueness constraint rejected an insert."""


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def generate_job_id() -> str:
    suffix = "".join(secrets.choice(_JOB_ID_ALPHABET) for _ in range(7))
    return f"JOB-{int(time.time() * 1000)}-{suffix}"


def _loads(raw: str | None, default: Any) -> Any:
    if not raw:
        return default
    try:
        return json.loads(raw)
    except ValueError:
        return default


def _job_from_row(row: sqlite3.Row) -> JobPosting:
    return JobPosting(
        id=row["id"],
        job_id=row["job_id"],
        title=row["title"],
        description=row["description"],
        requirements=row["requirements"],
        location=row["location"],
        salary_range=row["salary_range"],
        employment_type=row["employment_type"],
        company_name=row["company_name"],
        hr_email=row["hr_email"],
        hr_name=row["hr_name"],
        status=row["status"],
        created_by=row["created_by"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def _resume_from_row(row: sqlite3.Row, *, prefix: str = "") -> ResumeRecord:
    return ResumeRecord(
        id=row[f"{prefix}id"],
        job_id=row[f"{prefix}job_id"],
        candidate_user_id=row["candidate_user_id"],
        resume_url=row["resume_url"],
        provider_id=row["provider_id"],
        parsed_data=_loads(row["parsed_data_json"], {}),
        uploaded_at=datetime.fromisoformat(row["uploaded_at"]),
    )


def _score_from_row(row: sqlite3.Row, *, joined: bool = False) -> ScoreRecord:
    return ScoreRecord(
        id=row["score_id"] if joined else row["id"],
        resume_id=row["resume_id"],
        job_id=row["score_job_id"] if joined else row["job_id"],
        match_score=row["match_score"],
        shortlist_probability=row["shortlist_probability"],
        salary_range=_loads(row["salary_range_json"], {}),
        missing_skills=_loads(row["missing_skills_json"], []),
        strong_skills=_loads(row["strong_skills_json"], []),
        recommendation=row["recommendation"],
        key_highlights=_loads(row["key_highlights_json"], []),
        areas_of_concern=_loads(row["areas_of_concern_json"], []),
        used_fallback=bool(row["used_fallback"]),
        email_sent=bool(row["email_sent"]),
        created_at=datetime.fromisoformat(row["score_created_at"] if joined else row["created_at"]),
    )


class ApplicationStore:
    """SQLite-backed persistence for jobs, resume submissions and their scores."""

    def __init__(self, db_path: str):
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._conn_lock = threading.RLock()

    def _get_connection(self) -> sqlite3.Connection:
        with self._conn_lock:
            if self._conn is not None:
                return self._conn

            directory = os.path.dirname(self._db_path)
            if directory:
                os.makedirs(directory, exist_ok=True)

            conn = sqlite3.connect(
                self._db_path,
                check_same_thread=False,
                timeout=5,
                isolation_level=None,
            )
            conn.row_factory = sqlite3.Row
            if self._db_path != ":memory:":
                conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
            conn.execute("PRAGMA busy_timeout=5000;")
            conn.execute("PRAGMA foreign_keys=ON;")
            for statement in _SCHEMA:
                conn.execute(statement)
            self._conn = conn
            return self._conn

    def init_db(self) -> None:
        self._get_connection()

    def ping(self) -> bool:
        try:
            conn = self._get_connection()
            with self._conn_lock:
                conn.execute("SELECT 1").fetchone()
        except sqlite3.Error as exc:
            logger.warning("store_ping_failed: %s", exc)
            return False
        return True

    def close(self) -> None:
        with self._conn_lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    # Jobs

    def create_job(
        self,
        *,
        title: str,
        description: str,
        hr_email: str,
        hr_name: str = "",
        created_by: str | None = None,
        requirements: str = "",
        location: str = "",
        salary_range: str = "",
        employment_type: str = "",
        company_name: str = "",
        status: str = "active",
    ) -> JobPosting:
        conn = self._get_connection()
        now_iso = _utc_now().isoformat()
        job_id = generate_job_id()
        with self._conn_lock:
            try:
                conn.execute(
                    """
                    INSERT INTO jobs (
                        job_id, title, description, requirements, location, salary_range,
                        employment_type, company_name, hr_email, hr_name, status, created_by,
                        created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        job_id,
                        title,
                        description,
                        requirements,
                        location,
                        salary_range,
                        employment_type,
                        company_name,
                        hr_email,
                        hr_name,
                        status,
                        created_by,
                        now_iso,
                        now_iso,
                    ),
                )
            except sqlite3.Error as exc:
                raise StoreError(f"Failed to create job: {exc}") from exc
        logger.info("job_created job_id=%s created_by=%s", job_id, created_by)
        job = self.get_job_by_id(job_id)
        if job is None:
            raise StoreError(f"Job {job_id} vanished after insert")
        return job

    def get_job_by_id(self, job_id: str) -> JobPosting | None:
        conn = self._get_connection()
        with self._conn_lock:
            row = conn.execute("SELECT * FROM jobs WHERE job_id = ?", (job_id,)).fetchone()
        return _job_from_row(row) if row else None

    def list_jobs(self, *, status: str | None = None) -> list[JobPosting]:
        conn = self._get_connection()
        query = "SELECT * FROM jobs"
        params: tuple[Any, ...] = ()
        if status:
            query += " WHERE status = ?"
            params = (status,)
        query += " ORDER BY created_at DESC, id DESC"
        with self._conn_lock:
            rows = conn.execute(query, params).fetchall()
        return [_job_from_row(row) for row in rows]

    def update_job(self, job_id: str, updates: dict[str, Any]) -> JobPosting | None:
        fields = {key: value for key, value in updates.items() if key in _JOB_UPDATABLE_FIELDS and value is not None}
        if not fields:
            return self.get_job_by_id(job_id)
        fields["updated_at"] = _utc_now().isoformat()
        assignments = ", ".join(f"{key} = ?" for key in fields)
        conn = self._get_connection()
        with self._conn_lock:
            try:
                cur = conn.execute(
                    f"UPDATE jobs SET {assignments} WHERE job_id = ?",
                    (*fields.values(), job_id),
                )
            except sqlite3.Error as exc:
                raise StoreError(f"Failed to update job {job_id}: {exc}") from exc
        if cur.rowcount == 0:
            return None
        return self.get_job_by_id(job_id)

    def delete_job(self, job_id: str) -> bool:
        conn = self._get_connection()
        with self._conn_lock:
            cur = conn.execute("DELETE FROM jobs WHERE job_id = ?", (job_id,))
        return cur.rowcount > 0

    # Submissions

    def find_submission(self, candidate_user_id: str, job_id: str) -> ResumeRecord | None:
        conn = self._get_connection()
        with self._conn_lock:
            row = conn.execute(
                "SELECT * FROM resumes WHERE candidate_user_id = ? AND job_id = ?",
                (candidate_user_id, job_id),
            ).fetchone()
        return _resume_from_row(row) if row else None

    def insert_resume(
        self,
        *,
        job_id: str,
        candidate_user_id: str,
        resume_url: str,
        parsed_data: dict[str, Any],
        provider_id: str = "",
    ) -> ResumeRecord:
        conn = self._get_connection()
        uploaded_at = _utc_now()
        with self._conn_lock:
            try:
                cur = conn.execute(
                    """
                    INSERT INTO resumes (
                        job_id, candidate_user_id, resume_url, provider_id, parsed_data_json, uploaded_at
                    ) VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        job_id,
                        candidate_user_id,
                        resume_url,
                        provider_id,
                        json.dumps(parsed_data, ensure_ascii=False),
                        uploaded_at.isoformat(),
                    ),
                )
            except sqlite3.IntegrityError as exc:
                raise DuplicateSubmissionError(
                    f"Candidate {candidate_user_id} already has a submission for job {job_id}"
                ) from exc
            except sqlite3.Error as exc:
                raise StoreError(f"Failed to create resume record: {exc}") from exc
        logger.info("resume_created resume_id=%s job_id=%s", cur.lastrowid, job_id)
        return ResumeRecord(
            id=int(cur.lastrowid),
            job_id=job_id,
            candidate_user_id=candidate_user_id,
            resume_url=resume_url,
            provider_id=provider_id,
            parsed_data=parsed_data,
            uploaded_at=uploaded_at,
        )

    def insert_score(self, *, resume_id: int, job_id: str, verdict: ScoreVerdict) -> ScoreRecord:
        conn = self._get_connection()
        created_at = _utc_now()
        with self._conn_lock:
            try:
                cur = conn.execute(
                    """
                    INSERT INTO ats_scores (
                        resume_id, job_id, match_score, shortlist_probability, salary_range_json,
                        missing_skills_json, strong_skills_json, recommendation, key_highlights_json,
                        areas_of_concern_json, used_fallback, email_sent, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 0, ?)
                    """,
                    (
                        resume_id,
                        job_id,
                        verdict.match_score,
                        verdict.shortlist_probability,
                        json.dumps(verdict.salary_range.model_dump()),
                        json.dumps(verdict.missing_skills, ensure_ascii=False),
                        json.dumps(verdict.strong_skills, ensure_ascii=False),
                        verdict.recommendation,
                        json.dumps(verdict.key_highlights, ensure_ascii=False),
                        json.dumps(verdict.areas_of_concern, ensure_ascii=False),
                        1 if verdict.used_fallback else 0,
                        created_at.isoformat(),
                    ),
                )
            except sqlite3.IntegrityError as exc:
                raise DuplicateSubmissionError(f"Resume {resume_id} already has a score: {exc}") from exc
            except sqlite3.Error as exc:
                raise StoreError(f"Failed to create ATS score record: {exc}") from exc
        logger.info("ats_score_created score_id=%s resume_id=%s", cur.lastrowid, resume_id)
        return ScoreRecord(
            **verdict.model_dump(),
            id=int(cur.lastrowid),
            resume_id=resume_id,
            job_id=job_id,
            email_sent=False,
            created_at=created_at,
        )

    def get_score_for_resume(self, resume_id: int) -> ScoreRecord | None:
        conn = self._get_connection()
        with self._conn_lock:
            row = conn.execute("SELECT * FROM ats_scores WHERE resume_id = ?", (resume_id,)).fetchone()
        return _score_from_row(row) if row else None

    def update_score_notified_flag(self, score_id: int, email_sent: bool) -> None:
        conn = self._get_connection()
        with self._conn_lock:
            try:
                conn.execute(
                    "UPDATE ats_scores SET email_sent = ? WHERE id = ?",
                    (1 if email_sent else 0, score_id),
                )
            except sqlite3.Error as exc:
                raise StoreError(f"Failed to update email status for score {score_id}: {exc}") from exc

    def delete_resume(self, resume_id: int) -> bool:
        conn = self._get_connection()
        with self._conn_lock:
            cur = conn.execute("DELETE FROM resumes WHERE id = ?", (resume_id,))
        if cur.rowcount:
            logger.info("resume_deleted resume_id=%s", resume_id)
        return cur.rowcount > 0

    # Application queries

    def _application_details(self, rows: list[sqlite3.Row], *, with_jobs: bool) -> list[ApplicationDetail]:
        jobs: dict[str, JobPosting | None] = {}
        details: list[ApplicationDetail] = []
        for row in rows:
            job = None
            if with_jobs:
                job_id = row["r_job_id"]
                if job_id not in jobs:
                    jobs[job_id] = self.get_job_by_id(job_id)
                job = jobs[job_id]
            details.append(
                ApplicationDetail(
                    score=_score_from_row(row, joined=True),
                    resume=_resume_from_row(row, prefix="r_"),
                    job=job,
                )
            )
        return details

    def list_applications_for_job(
        self,
        job_id: str,
        *,
        min_score: int | None = None,
        email_sent: bool | None = None,
        limit: int | None = None,
    ) -> list[ApplicationDetail]:
        conn = self._get_connection()
        query = _APPLICATION_SELECT + " WHERE s.job_id = ?"
        params: list[Any] = [job_id]
        if min_score is not None:
            query += " AND s.match_score >= ?"
            params.append(min_score)
        if email_sent is not None:
            query += " AND s.email_sent = ?"
            params.append(1 if email_sent else 0)
        query += " ORDER BY s.match_score DESC, s.id ASC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        with self._conn_lock:
            rows = conn.execute(query, tuple(params)).fetchall()
        return self._application_details(rows, with_jobs=False)

    def top_candidates(self, job_id: str, limit: int = 10) -> list[ApplicationDetail]:
        return self.list_applications_for_job(job_id, limit=max(1, limit))

    def applications_for_candidate(self, candidate_user_id: str) -> list[ApplicationDetail]:
        conn = self._get_connection()
        query = _APPLICATION_SELECT + " WHERE r.candidate_user_id = ? ORDER BY s.created_at DESC, s.id DESC"
        with self._conn_lock:
            rows = conn.execute(query, (candidate_user_id,)).fetchall()
        return self._application_details(rows, with_jobs=True)

    def get_application(self, application_id: int) -> ApplicationDetail | None:
        conn = self._get_connection()
        with self._conn_lock:
            row = conn.execute(_APPLICATION_SELECT + " WHERE s.id = ?", (application_id,)).fetchone()
        if not row:
            return None
        return self._application_details([row], with_jobs=True)[0]
