import logging
import os
from contextlib import asynccontextmanager
from typing import Literal

import opik
from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from procurematch.builder import WorkflowBuilder
from procurematch.config import AppConfig
from procurematch.core.filtering import count_by_status, filter_processes
from procurematch.core.process import STAGES
from procurematch.core.upload import UploadedFile
from procurematch.errors import ConfigurationMissing, DispatchFailure, StoreWriteError
from procurematch.services.settings.base import WebhookUrls

logger = logging.getLogger("procurematch.api")

UPLOAD_STATUS_CODES = {
    "dispatched": 202,
    "verified": 200,
    "conflict": 200,
}


class WebhookSettingsUpdate(BaseModel):
    confirmation: str | None = None
    delivery: str | None = None


def _configure_tracing(config: AppConfig) -> None:
    os.environ.setdefault("OPIK_PROJECT_NAME", config.opik_project)
    if config.opik_api_key:
        opik.configure(api_key=config.opik_api_key, workspace=config.opik_workspace)


def create_app(config: AppConfig | None = None, builder: WorkflowBuilder | None = None) -> FastAPI:
    """Factory function for creating the FastAPI app with config."""
    if config is None:
        config = builder.config if builder is not None else AppConfig.load("config.yaml")

    logging.basicConfig(level=config.log_level.upper())
    _configure_tracing(config)

    if builder is None:
        builder = WorkflowBuilder(config)
    synchronizer = builder.synchronizer
    orchestrator = builder.orchestrator
    settings_store = builder.settings_store
    gate = builder.gate

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        synchronizer.start()
        logger.info(f"Synchronizer started for {synchronizer.collection_path}: {synchronizer.connection}")
        yield
        synchronizer.stop()

    app = FastAPI(title="ProcureMatch", lifespan=lifespan)
    app.state.builder = builder

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/connection")
    async def connection():
        snapshot = synchronizer.snapshot
        return {
            "state": snapshot.connection,
            "error": snapshot.error,
            "app_id": config.app_id,
            "collection_path": synchronizer.collection_path,
        }

    @app.get("/processes")
    async def list_processes(
        status: Literal["all", "open", "conflict", "completed"] = "all",
        search: str = "",
    ):
        processes = filter_processes(synchronizer.processes, status, search)
        return [p.model_dump(mode="json", by_alias=True) for p in processes]

    @app.get("/processes/stats")
    async def process_stats():
        return count_by_status(synchronizer.processes).model_dump()

    @app.get("/processes/{process_id}")
    async def get_process(process_id: str):
        process = synchronizer.get(process_id)
        if process is None:
            raise HTTPException(status_code=404, detail=f"Process {process_id} not found")
        body = process.model_dump(mode="json", by_alias=True)
        body["availability"] = {stage: gate.availability(process, stage) for stage in STAGES}
        return body

    @app.post("/processes/{process_id}/stages/{stage}/upload")
    async def upload_stage_document(process_id: str, stage: str, file: UploadFile = File(...)):
        """Start verification of a confirmation or delivery document."""
        uploaded = UploadedFile(
            name=file.filename or "upload",
            content=await file.read(),
            content_type=file.content_type or "application/octet-stream",
        )
        try:
            outcome = await orchestrator.submit(process_id, stage, uploaded)
        except ConfigurationMissing as e:
            raise HTTPException(status_code=503, detail=str(e))
        except DispatchFailure as e:
            logger.warning(f"Upload of {process_id}/{stage} failed: {e}")
            raise HTTPException(
                status_code=502,
                detail=f"Upload failed: {e}. Check the webhook URL or the network connection.",
            )
        except StoreWriteError as e:
            logger.error(f"Upload of {process_id}/{stage} failed to write: {e}")
            raise HTTPException(status_code=502, detail=str(e))

        if outcome.result in ("rejected", "busy"):
            raise HTTPException(status_code=409, detail=outcome.detail)

        return JSONResponse(
            status_code=UPLOAD_STATUS_CODES[outcome.result],
            content=outcome.model_dump(mode="json"),
        )

    @app.get("/settings/webhooks")
    async def get_webhook_settings():
        return settings_store.get().model_dump()

    @app.put("/settings/webhooks")
    async def save_webhook_settings(update: WebhookSettingsUpdate):
        saved = settings_store.save(WebhookUrls(**update.model_dump()))
        logger.info("Webhook settings saved")
        return saved.model_dump()

    return app


# Served with the factory so importing this module has no side effects:
#   uvicorn procurematch.api:create_app --factory
