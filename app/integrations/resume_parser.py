from __future__ import annotations

import logging
from typing import Any

import httpx

from app.normalize.normalize_resume import normalize_parser_payload
from app.schemas.normalized import NormalizedResume

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 30.0


class ParsingFailedError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ResumeParserClient:
    """Calls the external resume parsing API and normalizes its response."""

    def __init__(
        self,
        *,
        endpoint: str | None,
        api_key: str | None,
        http_client: httpx.AsyncClient,
        timeout_s: float = DEFAULT_TIMEOUT_S,
    ):
        self._endpoint = (endpoint or "").strip()
        self._api_key = (api_key or "").strip()
        self._http = http_client
        self._timeout_s = timeout_s

    @property
    def configured(self) -> bool:
        return bool(self._endpoint and self._api_key)

    async def fetch_raw(self, retrieval_url: str) -> dict[str, Any]:
        if not self.configured:
            raise ParsingFailedError("PARSER_API_KEY and PARSER_ENDPOINT must be configured")

        logger.info("parser_request url=%s", retrieval_url)
        try:
            response = await self._http.get(
                self._endpoint,
                params={"url": retrieval_url},
                headers={"apikey": self._api_key},
                timeout=self._timeout_s,
            )
        except httpx.TimeoutException as exc:
            logger.error("parser_request_timeout timeout_s=%s", self._timeout_s)
            raise ParsingFailedError(f"Resume parsing timed out after {self._timeout_s:.0f}s") from exc
        except httpx.HTTPError as exc:
            logger.error("parser_request_failed: %s", exc)
            raise ParsingFailedError(f"Resume parsing failed: {exc}") from exc

        if response.status_code < 200 or response.status_code >= 300:
            logger.error(
                "parser_error_response status=%s body=%s",
                response.status_code,
                response.text[:500],
            )
            raise ParsingFailedError(
                f"Parser API error: {response.status_code} - {response.reason_phrase}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise ParsingFailedError(
                "Parser API returned a non-JSON body",
                status_code=response.status_code,
            ) from exc

        if not payload or not isinstance(payload, dict):
            raise ParsingFailedError("Empty response from parser API", status_code=response.status_code)
        return payload

    async def parse(self, retrieval_url: str) -> NormalizedResume:
        payload = await self.fetch_raw(retrieval_url)
        resume = normalize_parser_payload(payload)
        logger.info(
            "parser_ok skills=%d experience_entries=%d",
            len(resume.skills.all),
            len(resume.experience),
        )
        return resume
