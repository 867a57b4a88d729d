from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import cloudinary.uploader

logger = logging.getLogger(__name__)


class UploadFailedError(RuntimeError):
    pass


@dataclass(frozen=True)
class StoredObject:
    retrieval_url: str
    provider_id: str


class CloudinaryObjectStore:
    """Uploads resumes to Cloudinary.

    Credentials are handed to every SDK call instead of going through the
    global ``cloudinary.config`` so several stores can coexist in one process.
    """

    def __init__(
        self,
        *,
        cloud_name: str | None,
        api_key: str | None,
        api_secret: str | None,
        folder: str = "ats-resumes",
    ):
        self._cloud_name = cloud_name
        self._api_key = api_key
        self._api_secret = api_secret
        self._folder = folder

    @property
    def configured(self) -> bool:
        return bool(self._cloud_name and self._api_key and self._api_secret)

    def _credentials(self) -> dict[str, Any]:
        return {
            "cloud_name": self._cloud_name,
            "api_key": self._api_key,
            "api_secret": self._api_secret,
            "secure": True,
        }

    def _upload(self, local_path: str, options: dict[str, Any]) -> dict[str, Any]:
        return cloudinary.uploader.upload(local_path, **options, **self._credentials())

    async def store(
        self,
        local_path: str,
        *,
        folder: str | None = None,
        public_id: str | None = None,
    ) -> StoredObject:
        if not self.configured:
            raise UploadFailedError(
                "Cloudinary is not configured (set CLOUDINARY_CLOUD_NAME, CLOUDINARY_API_KEY, CLOUDINARY_API_SECRET)."
            )

        options: dict[str, Any] = {"folder": folder or self._folder, "resource_type": "auto"}
        if public_id:
            options["public_id"] = public_id
            options["overwrite"] = True

        try:
            result = await asyncio.to_thread(self._upload, local_path, options)
        except Exception as exc:  # noqa: BLE001 - every provider error is one failure kind
            logger.error("cloudinary_upload_failed path=%s: %s", local_path, exc)
            raise UploadFailedError(f"Upload failed: {exc}") from exc

        url = (result or {}).get("secure_url") or (result or {}).get("url")
        if not url:
            raise UploadFailedError("Upload failed: provider returned no URL.")
        stored = StoredObject(retrieval_url=str(url), provider_id=str(result.get("public_id") or ""))
        logger.info("cloudinary_upload_ok public_id=%s", stored.provider_id)
        return stored

    async def delete(self, provider_id: str) -> bool:
        if not self.configured:
            raise UploadFailedError("Cloudinary is not configured.")
        try:
            result = await asyncio.to_thread(cloudinary.uploader.destroy, provider_id, **self._credentials())
        except Exception as exc:  # noqa: BLE001
            logger.error("cloudinary_delete_failed public_id=%s: %s", provider_id, exc)
            raise UploadFailedError(f"Delete failed: {exc}") from exc
        deleted = (result or {}).get("result") == "ok"
        logger.info("cloudinary_delete public_id=%s deleted=%s", provider_id, deleted)
        return deleted
