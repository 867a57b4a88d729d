import sys
import tempfile
import unittest
from dataclasses import replace
from pathlib import Path
from unittest.mock import patch

from fastapi.testclient import TestClient

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app.core.config import settings  # noqa: E402
from app.core.lifespan import Services  # noqa: E402
from app.core.rate_limit import limiter  # noqa: E402
from app.db.store import ApplicationStore  # noqa: E402
from app.integrations.storage import StoredObject  # noqa: E402
from app.main import app  # noqa: E402
from app.normalize.normalize_resume import normalize_parser_payload  # noqa: E402
from app.schemas.applications import SalaryRange, ScoreVerdict  # noqa: E402
from app.services.application_service import ApplicationOrchestrator  # noqa: E402
from app.services.notification_service import NotificationResult  # noqa: E402

HR = {"X-User-Id": "hr-1", "X-User-Email": "hr@example.com", "X-User-Name": "Hannah", "X-User-Role": "hr_approved"}
OTHER_HR = {"X-User-Id": "hr-2", "X-User-Email": "hr2@example.com", "X-User-Role": "hr_approved"}
ADMIN = {"X-User-Id": "admin-1", "X-User-Role": "admin"}


def candidate(user_id: str) -> dict:
    return {"X-User-Id": user_id, "X-User-Email": f"{user_id}@example.com", "X-User-Role": "candidate"}


class StubObjectStore:
    async def store(self, local_path):
        return StoredObject(retrieval_url="https://files.example.com/cv.txt", provider_id="ats-resumes/cv")


class StubParser:
    async def parse(self, retrieval_url):
        return normalize_parser_payload({"name": "Jane Doe", "skills": ["Python"]})


class StubScorer:
    async def score(self, resume, job_description):
        return ScoreVerdict(match_score=86, shortlist_probability=0.86, salary_range=SalaryRange(min=1, max=2))


class StubNotifier:
    async def notify_hr(self, alert):
        return NotificationResult(sent=True)

    async def notify_candidate(self, ack):
        return NotificationResult(sent=True)


class ApplicationsApiTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.store = ApplicationStore(":memory:")
        self.store.init_db()
        self.addCleanup(self.store.close)
        orchestrator = ApplicationOrchestrator(
            self.store, StubObjectStore(), StubParser(), StubScorer(), StubNotifier()
        )
        app.state.services = Services(store=self.store, orchestrator=orchestrator, upload_dir=self._tmp.name)
        limiter.reset()
        self.client = TestClient(app)

    def _create_job(self, **overrides) -> str:
        payload = {"title": "Backend Engineer", "description": "Python and SQL", "company_name": "Acme"}
        payload.update(overrides)
        response = self.client.post("/v1/jobs", json=payload, headers=HR)
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()["job_id"]

    def _apply(self, job_id: str, headers: dict, data: bytes = b"Python developer resume", content_type="text/plain"):
        return self.client.post(
            f"/v1/jobs/{job_id}/apply",
            files={"resume": ("cv.txt", data, content_type)},
            headers=headers,
        )

    def test_health(self):
        response = self.client.get("/v1/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "healthy")

    def test_job_creation_requires_hr_role(self):
        response = self.client.post("/v1/jobs", json={"title": "x", "description": "y"}, headers=candidate("c1"))
        self.assertEqual(response.status_code, 403)
        response = self.client.post("/v1/jobs", json={"title": "x", "description": "y"})
        self.assertEqual(response.status_code, 401)

    def test_created_job_uses_hr_contact(self):
        job_id = self._create_job()
        self.assertRegex(job_id, r"^JOB-\d{13}-[A-Z0-9]{7}$")
        job = self.client.get(f"/v1/jobs/{job_id}", headers=candidate("c1")).json()
        self.assertEqual(job["hr_email"], "hr@example.com")
        self.assertEqual(job["hr_name"], "Hannah")
        self.assertEqual(job["status"], "active")

    def test_candidates_only_see_active_jobs(self):
        self._create_job(title="Open role")
        self._create_job(title="Draft role", status="draft")
        listed = self.client.get("/v1/jobs", headers=candidate("c1")).json()
        self.assertEqual([job["title"] for job in listed["jobs"]], ["Open role"])
        everything = self.client.get("/v1/jobs", headers=HR).json()
        self.assertEqual(everything["count"], 2)

    def test_only_owner_can_update_job(self):
        job_id = self._create_job()
        response = self.client.patch(f"/v1/jobs/{job_id}", json={"status": "closed"}, headers=OTHER_HR)
        self.assertEqual(response.status_code, 403)
        response = self.client.patch(f"/v1/jobs/{job_id}", json={"status": "closed"}, headers=HR)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "closed")

    def test_apply_then_duplicate(self):
        job_id = self._create_job()
        response = self._apply(job_id, candidate("c1"))
        self.assertEqual(response.status_code, 201, response.text)
        body = response.json()
        self.assertEqual(body["match_score"], 86)
        self.assertTrue(body["email_sent"])
        self.assertEqual(body["job_title"], "Backend Engineer")

        again = self._apply(job_id, candidate("c1"))
        self.assertEqual(again.status_code, 409)
        self.assertEqual(again.json()["detail"], {
            "kind": "validation",
            "message": "You have already applied for this job",
            "retryable": False,
        })

    def test_apply_to_closed_job(self):
        job_id = self._create_job(status="closed")
        response = self._apply(job_id, candidate("c1"))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"]["kind"], "validation")

    def test_apply_to_unknown_job(self):
        self.assertEqual(self._apply("JOB-0-NOPE000", candidate("c1")).status_code, 404)

    def test_oversized_upload_is_rejected(self):
        job_id = self._create_job()
        response = self._apply(job_id, candidate("c1"), data=b"a" * (5 * 1024 * 1024 + 1))
        self.assertEqual(response.status_code, 413)
        self.assertIsNone(self.store.find_submission("c1", job_id))

    def test_wrong_file_type_is_rejected(self):
        job_id = self._create_job()
        response = self._apply(job_id, candidate("c1"), data=b"\x89PNG\r\n\x1a\n", content_type="image/png")
        self.assertEqual(response.status_code, 400)

    def test_hr_application_views(self):
        job_id = self._create_job()
        self._apply(job_id, candidate("c1"))
        listed = self.client.get(f"/v1/jobs/{job_id}/applications?min_score=80", headers=HR).json()
        self.assertEqual(listed["count"], 1)
        self.assertEqual(listed["applications"][0]["score"]["match_score"], 86)
        self.assertEqual(
            self.client.get(f"/v1/jobs/{job_id}/applications?min_score=90", headers=HR).json()["count"], 0
        )
        top = self.client.get(f"/v1/jobs/{job_id}/top-candidates?limit=5", headers=HR).json()
        self.assertEqual(top["count"], 1)
        self.assertEqual(self.client.get(f"/v1/jobs/{job_id}/applications", headers=OTHER_HR).status_code, 403)

    def test_candidate_application_access(self):
        job_id = self._create_job()
        application_id = self._apply(job_id, candidate("c1")).json()["application_id"]

        mine = self.client.get("/v1/applications/me", headers=candidate("c1")).json()
        self.assertEqual(mine["count"], 1)
        self.assertEqual(mine["applications"][0]["job"]["title"], "Backend Engineer")
        self.assertEqual(self.client.get(f"/v1/applications/{application_id}", headers=candidate("c1")).status_code, 200)
        self.assertEqual(self.client.get(f"/v1/applications/{application_id}", headers=candidate("c2")).status_code, 403)

    def test_admin_deletes_application(self):
        job_id = self._create_job()
        application_id = self._apply(job_id, candidate("c1")).json()["application_id"]
        self.assertEqual(self.client.delete(f"/v1/applications/{application_id}", headers=HR).status_code, 403)
        self.assertEqual(self.client.delete(f"/v1/applications/{application_id}", headers=ADMIN).status_code, 200)
        self.assertEqual(self.client.get(f"/v1/applications/{application_id}", headers=ADMIN).status_code, 404)
        self.assertIsNone(self.store.find_submission("c1", job_id))

    def test_api_key_is_enforced_when_configured(self):
        with patch("app.core.security.settings", replace(settings, api_key="secret")):
            self.assertEqual(self.client.get("/v1/jobs", headers=HR).status_code, 401)
            self.assertEqual(self.client.get("/v1/jobs", headers={**HR, "X-API-Key": "secret"}).status_code, 200)


if __name__ == "__main__":
    unittest.main()
