import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass

import httpx
from fastapi import Request

from app.ai.config import load_ai_config
from app.ai.factory import get_ai_client
from app.ai.types import AIClient
from app.core.config import Settings, settings
from app.db.store import ApplicationStore
from app.integrations.email import SmtpMailer
from app.integrations.resume_parser import ResumeParserClient
from app.integrations.storage import CloudinaryObjectStore
from app.services.application_service import ApplicationOrchestrator
from app.services.notification_service import NotificationDispatcher
from app.services.scoring_service import ScoringService

logger = logging.getLogger(__name__)


@dataclass
class Services:
    store: ApplicationStore
    orchestrator: ApplicationOrchestrator
    upload_dir: str
    http_client: httpx.AsyncClient | None = None
    ai_client: AIClient | None = None

    async def aclose(self) -> None:
        if self.ai_client is not None:
            try:
                await self.ai_client.aclose()
            except Exception as exc:  # noqa: BLE001 - shutdown continues
                logger.warning("ai_client_close_failed: %s", exc)
        if self.http_client is not None:
            await self.http_client.aclose()
        self.store.close()


def build_services(cfg: Settings) -> Services:
    store = ApplicationStore(cfg.database_path)
    store.init_db()

    http_client = httpx.AsyncClient(follow_redirects=True)
    object_store = CloudinaryObjectStore(
        cloud_name=cfg.cloudinary_cloud_name,
        api_key=cfg.cloudinary_api_key,
        api_secret=cfg.cloudinary_api_secret,
        folder=cfg.cloudinary_folder,
    )
    parser = ResumeParserClient(
        endpoint=cfg.parser_endpoint,
        api_key=cfg.parser_api_key,
        http_client=http_client,
        timeout_s=cfg.parser_timeout_s,
    )
    ai_cfg = load_ai_config()
    ai_client = get_ai_client(ai_cfg)
    scorer = ScoringService(ai_client, json_mode=ai_cfg.provider == "openai")
    notifier = NotificationDispatcher(SmtpMailer.from_settings(cfg))

    if not object_store.configured:
        logger.warning("object_store_not_configured uploads_will_fail=true")
    if not parser.configured:
        logger.warning("resume_parser_not_configured parsing_will_fail=true")

    orchestrator = ApplicationOrchestrator(store, object_store, parser, scorer, notifier)
    return Services(
        store=store,
        orchestrator=orchestrator,
        upload_dir=cfg.upload_dir,
        http_client=http_client,
        ai_client=ai_client,
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


@asynccontextmanager
async def lifespan(app):
    services = build_services(settings)
    app.state.services = services
    logger.info("services_started database=%s", settings.database_path)
    try:
        yield
    finally:
        await services.aclose()
        logger.info("services_stopped")
