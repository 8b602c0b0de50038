from __future__ import annotations

import contextlib
import json
from datetime import datetime
from typing import Any, AsyncIterator, List, Mapping, Optional

from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from ...config import load_settings
from ...domain.models import Identity
from ...errors import ConfigurationError, InvalidSubmissionError, ProcessingError
from ...logging import get_logger
from ..service import IngestionPipeline


LOG = get_logger("records-api")

ADMIN_ROLE = "admin"
PROCESSING_FAILURE_MESSAGE = "Failed to process image"


def _first(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value is not None and value != "":
            return value
    return None


def _parse_bool(value: Optional[str], *, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() not in {"0", "false", "no", "off"}


def identity_from_payload(data: Mapping[str, Any]) -> Identity:
    """Build the trusted caller identity from request fields set by the session layer."""
    employee_id = _first(data, "userId", "employeeId", "user_id", "employee_id")
    role = str(_first(data, "role") or "").strip().lower()
    return Identity(
        employee_id=str(employee_id).strip() if employee_id is not None else "",
        employee_name=str(_first(data, "employeeName", "employee_name") or ""),
        is_admin=role == ADMIN_ROLE,
    )


def create_app(
    root_dir: Optional[str] = None,
    *,
    pipeline: Optional[IngestionPipeline] = None,
    allow_origins: Optional[List[str]] = None,
) -> Starlette:
    """Create a Starlette app exposing record ingestion, listing and statistics."""

    if pipeline is None:
        pipeline = IngestionPipeline.from_settings(load_settings(root_dir), root_dir=root_dir)

    async def health(_: Request) -> JSONResponse:
        return JSONResponse(
            {
                "status": "ok",
                "time": datetime.now().isoformat(timespec="seconds"),
                "db_path": pipeline.store.db_path,
            }
        )

    async def create_record(request: Request) -> JSONResponse:
        try:
            data = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise HTTPException(status_code=400, detail="Request body must be JSON") from exc
        if not isinstance(data, dict):
            raise HTTPException(status_code=400, detail="Request body must be a JSON object")

        identity = identity_from_payload(data)
        try:
            result = await run_in_threadpool(
                pipeline.create_record,
                identity,
                provider_name=_first(data, "providerName", "provider_name"),
                cash_amount=_first(data, "cashAmount", "cash_amount"),
                image_payload=_first(data, "imageBase64", "imagePayload", "image_payload"),
            )
        except InvalidSubmissionError as exc:
            return JSONResponse({"error": str(exc)}, status_code=400)
        except ConfigurationError as exc:
            LOG.error("Record rejected: %s", exc)
            return JSONResponse({"error": str(exc)}, status_code=500)
        except ProcessingError as exc:
            LOG.error("Record processing failed: %s", exc)
            return JSONResponse({"error": PROCESSING_FAILURE_MESSAGE}, status_code=500)
        return JSONResponse({"id": result["record_id"], "breadCount": result["bread_count"]})

    async def list_records(request: Request) -> JSONResponse:
        qp = request.query_params
        identity = identity_from_payload(qp)
        if not identity.is_admin and not identity.employee_id:
            raise HTTPException(status_code=400, detail="userId is required")
        include_images = _parse_bool(qp.get("include_images"), default=True)
        records = await run_in_threadpool(pipeline.get_records, identity, include_images=include_images)
        return JSONResponse([r.as_dict(include_image=include_images) for r in records])

    async def stats(_: Request) -> JSONResponse:
        payload = await run_in_threadpool(pipeline.get_statistics)
        return JSONResponse(
            {
                "totalByDay": payload["daily_totals"],
                "totalByEmployee": payload["employee_totals"],
            }
        )

    routes = [
        Route("/api/health", health, methods=["GET"]),
        Route("/api/records", create_record, methods=["POST"]),
        Route("/api/records", list_records, methods=["GET"]),
        Route("/api/stats", stats, methods=["GET"]),
    ]

    @contextlib.asynccontextmanager
    async def lifespan(_: Starlette) -> AsyncIterator[None]:
        try:
            yield
        finally:
            pipeline.estimator.close()

    app = Starlette(debug=False, routes=routes, lifespan=lifespan)

    origins = allow_origins or ["http://localhost:3000", "http://127.0.0.1:3000"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if "*" in origins else origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    LOG.info("Record API ready (db=%s)", pipeline.store.db_path)
    return app


__all__ = ["create_app", "identity_from_payload"]
